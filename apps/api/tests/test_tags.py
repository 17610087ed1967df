import pytest

from conftest import ADMIN_AUTH, OTHER_AUTH, OWNER_AUTH, VIEWER_AUTH, create_snippet


async def _create_tag(client, name, headers=OWNER_AUTH, **extra):
    return await client.post("/api/tags", json={"name": name, **extra}, headers=headers)


@pytest.mark.asyncio
async def test_snippet_tags_are_created_by_name_and_filterable(api_client):
    client, _ = api_client
    tagged = await create_snippet(client, tags=["Search", "algorithms", "search"], is_public=True)
    assert {tag["name"] for tag in tagged["tags"]} == {"Search", "algorithms"}
    await create_snippet(client, title="Untagged")

    filtered = (await client.get("/api/snippets", params={"tag": "SEARCH"}, headers=OWNER_AUTH)).json()
    assert [item["id"] for item in filtered["items"]] == [tagged["id"]]
    assert {tag["name"] for tag in filtered["items"][0]["tags"]} == {"Search", "algorithms"}

    retagged = await client.put(f"/api/snippets/{tagged['id']}", json={"tags": ["sorting"]}, headers=OWNER_AUTH)
    assert [tag["name"] for tag in retagged.json()["tags"]] == ["sorting"]

    by_snippet = await client.get(f"/api/tags/by-snippet/{tagged['id']}", headers=VIEWER_AUTH)
    assert [tag["name"] for tag in by_snippet.json()["items"]] == ["sorting"]

    crowded = await client.post(
        "/api/snippets",
        json={"title": "x", "code": "y", "language": "go", "tags": [f"t{i}" for i in range(11)]},
        headers=OWNER_AUTH,
    )
    assert crowded.status_code == 422


@pytest.mark.asyncio
async def test_tag_crud_and_ownership(api_client):
    client, _ = api_client
    created = await _create_tag(client, "graphs", color="#FF0000")
    assert created.status_code == 201
    tag = created.json()
    assert tag["color"] == "#ff0000"
    assert tag["usage_count"] == 0

    assert (await _create_tag(client, "Graphs")).status_code == 409
    assert (await _create_tag(client, "colors", color="red")).status_code == 400
    assert (await _create_tag(client, "viewer-tag", headers=VIEWER_AUTH)).status_code == 403

    default_color = (await _create_tag(client, "trees")).json()
    assert default_color["color"] == "#007bff"

    renamed = await client.put(f"/api/tags/{tag['id']}", json={"name": "graph theory"}, headers=OWNER_AUTH)
    assert renamed.json()["name"] == "graph theory"
    clash = await client.put(f"/api/tags/{tag['id']}", json={"name": "trees"}, headers=OWNER_AUTH)
    assert clash.status_code == 409
    assert (await client.put(f"/api/tags/{tag['id']}", json={"color": "#000000"}, headers=OTHER_AUTH)).status_code == 403

    fetched = await client.get(f"/api/tags/{tag['id']}", headers=VIEWER_AUTH)
    assert fetched.json()["name"] == "graph theory"

    listing = await client.get("/api/tags", headers=VIEWER_AUTH)
    assert [item["name"] for item in listing.json()["items"]] == ["graph theory", "trees"]

    assert (await client.delete(f"/api/tags/{tag['id']}", headers=OTHER_AUTH)).status_code == 403
    removed = await client.delete(f"/api/tags/{tag['id']}", headers=OWNER_AUTH)
    assert removed.json() == {"id": tag["id"], "deleted": True}
    assert (await client.get(f"/api/tags/{tag['id']}", headers=OWNER_AUTH)).status_code == 404


@pytest.mark.asyncio
async def test_tags_in_use_cannot_be_deleted(api_client):
    client, _ = api_client
    snippet = await create_snippet(client, tags=["heap"])
    heap_id = snippet["tags"][0]["id"]

    check = await client.get(f"/api/tags/{heap_id}/can-delete", headers=ADMIN_AUTH)
    assert check.json() == {"tag_id": heap_id, "can_delete": False, "usage_count": 1}
    assert (await client.get(f"/api/tags/{heap_id}/can-delete", headers=OWNER_AUTH)).status_code == 403

    blocked = await client.delete(f"/api/tags/{heap_id}", headers=ADMIN_AUTH)
    assert blocked.status_code == 409

    await client.delete(f"/api/snippets/{snippet['id']}", headers=OWNER_AUTH)
    check = await client.get(f"/api/tags/{heap_id}/can-delete", headers=ADMIN_AUTH)
    assert check.json()["can_delete"] is True
    assert (await client.delete(f"/api/tags/{heap_id}", headers=ADMIN_AUTH)).status_code == 200


@pytest.mark.asyncio
async def test_search_most_used_and_statistics(api_client):
    client, _ = api_client
    await create_snippet(client, tags=["python", "parsing"])
    await create_snippet(client, tags=["python"])
    await _create_tag(client, "pandas")
    await _create_tag(client, "under_score")

    found = await client.get("/api/tags/search", params={"prefix": "pa"}, headers=VIEWER_AUTH)
    assert [item["name"] for item in found.json()["items"]] == ["pandas", "parsing"]

    limited = await client.get("/api/tags/search", params={"prefix": "p", "limit": 1}, headers=VIEWER_AUTH)
    assert len(limited.json()["items"]) == 1

    wildcard = await client.get("/api/tags/search", params={"prefix": "under_"}, headers=VIEWER_AUTH)
    assert [item["name"] for item in wildcard.json()["items"]] == ["under_score"]
    assert (await client.get("/api/tags/search", params={"prefix": "_"}, headers=VIEWER_AUTH)).json()["items"] == []

    most_used = await client.get("/api/tags/most-used", headers=VIEWER_AUTH)
    assert [(item["name"], item["usage_count"]) for item in most_used.json()["items"]] == [
        ("python", 2),
        ("parsing", 1),
    ]

    stats = await client.get("/api/tags/statistics", headers=ADMIN_AUTH)
    assert stats.status_code == 200
    assert stats.json()["total_tags"] == 4
    assert stats.json()["unused_tags"] == 2
    assert (await client.get("/api/tags/statistics", headers=OWNER_AUTH)).status_code == 403
