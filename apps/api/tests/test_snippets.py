import pytest
from sqlalchemy import func, select

from conftest import ADMIN_AUTH, OTHER_AUTH, OWNER_AUTH, VIEWER_AUTH, create_share, create_snippet
from models.comment import Comment
from models.share_token import ShareToken


@pytest.mark.asyncio
async def test_snippet_crud_and_view_count(api_client):
    client, _ = api_client
    snippet = await create_snippet(client)
    assert snippet["created_by"] == "user-owner"
    assert snippet["view_count"] == 0

    fetched = await client.get(f"/api/snippets/{snippet['id']}", headers=OWNER_AUTH)
    assert fetched.status_code == 200
    assert fetched.json()["view_count"] == 1
    assert fetched.json()["code"].startswith("def lower_bound")

    updated = await client.put(
        f"/api/snippets/{snippet['id']}",
        json={"title": "Lower bound", "is_public": True},
        headers=OWNER_AUTH,
    )
    assert updated.status_code == 200
    assert updated.json()["title"] == "Lower bound"
    assert updated.json()["description"] == "Classic lower bound"

    removed = await client.delete(f"/api/snippets/{snippet['id']}", headers=OWNER_AUTH)
    assert removed.json() == {"id": snippet["id"], "deleted": True}
    assert (await client.get(f"/api/snippets/{snippet['id']}", headers=OWNER_AUTH)).status_code == 404


@pytest.mark.asyncio
async def test_role_rules_for_snippets(api_client):
    client, _ = api_client
    viewer_create = await client.post(
        "/api/snippets",
        json={"title": "x", "code": "print(1)", "language": "python"},
        headers=VIEWER_AUTH,
    )
    assert viewer_create.status_code == 403

    private = await create_snippet(client, is_public=False)
    public = await create_snippet(client, is_public=True)

    assert (await client.get(f"/api/snippets/{private['id']}", headers=VIEWER_AUTH)).status_code == 403
    assert (await client.get(f"/api/snippets/{public['id']}", headers=VIEWER_AUTH)).status_code == 200

    assert (
        await client.put(f"/api/snippets/{public['id']}", json={"code": "pass"}, headers=OTHER_AUTH)
    ).status_code == 403
    assert (
        await client.put(f"/api/snippets/{private['id']}", json={"code": "pass"}, headers=OTHER_AUTH)
    ).status_code == 403
    assert (await client.delete(f"/api/snippets/{public['id']}", headers=OTHER_AUTH)).status_code == 403
    assert (await client.delete(f"/api/snippets/{private['id']}", headers=ADMIN_AUTH)).status_code == 200


@pytest.mark.asyncio
async def test_listing_respects_visibility_and_filters(api_client):
    client, _ = api_client
    private = await create_snippet(client, title="Private heap", is_public=False)
    public = await create_snippet(client, title="Public trie", language="rust", is_public=True)
    mine = await create_snippet(client, title="Other's queue", headers=OTHER_AUTH)

    viewer = (await client.get("/api/snippets", headers=VIEWER_AUTH)).json()
    assert [item["id"] for item in viewer["items"]] == [public["id"]]
    assert "code" not in viewer["items"][0]

    editor = (await client.get("/api/snippets", headers=OTHER_AUTH)).json()
    assert editor["total_count"] == 3

    own = (await client.get("/api/snippets", params={"mine": "true"}, headers=OTHER_AUTH)).json()
    assert [item["id"] for item in own["items"]] == [mine["id"]]

    by_language = (await client.get("/api/snippets", params={"language": "rust"}, headers=OWNER_AUTH)).json()
    assert [item["id"] for item in by_language["items"]] == [public["id"]]

    searched = (await client.get("/api/snippets", params={"search": "heap"}, headers=OWNER_AUTH)).json()
    assert [item["id"] for item in searched["items"]] == [private["id"]]


@pytest.mark.asyncio
async def test_deleting_snippet_removes_shares_and_comments(api_client):
    client, session_maker = api_client
    snippet = await create_snippet(client, is_public=True)
    share = await create_share(client, snippet["id"])
    assert (await client.get(f"/api/share/{share['token']}")).status_code == 200

    root = await client.post(
        "/api/comments",
        json={"snippet_id": snippet["id"], "content": "neat"},
        headers=OTHER_AUTH,
    )
    await client.post(
        "/api/comments",
        json={"snippet_id": snippet["id"], "content": "agreed", "parent_id": root.json()["id"]},
        headers=OWNER_AUTH,
    )
    await client.post(f"/api/comments/{root.json()['id']}/like", headers=OWNER_AUTH)

    assert (await client.delete(f"/api/snippets/{snippet['id']}", headers=OWNER_AUTH)).status_code == 200

    async with session_maker() as session:
        shares = await session.execute(
            select(func.count(ShareToken.id)).where(ShareToken.code_snippet_id == snippet["id"])
        )
        comments = await session.execute(select(func.count(Comment.id)).where(Comment.snippet_id == snippet["id"]))
        assert shares.scalar() == 0
        assert comments.scalar() == 0

    gone = await client.get(f"/api/share/{share['token']}")
    assert gone.status_code == 404
    assert gone.json()["code"] == "not_found"
