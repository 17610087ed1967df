from datetime import datetime, timedelta

import pytest
from sqlalchemy import func, select

from config import settings
from conftest import ADMIN_AUTH, OTHER_AUTH, OWNER_AUTH, OWNER_ID, VIEWER_AUTH, create_share, create_snippet
from errors import ValidationFailed
from models.share_access_log import ShareAccessLog
from models.share_token import ShareToken
from routers.auth_scope import AuthContext
from services.share import create_share_token


async def _log_count(session_maker, share_id):
    async with session_maker() as session:
        result = await session.execute(
            select(func.count(ShareAccessLog.id)).where(ShareAccessLog.share_token_id == share_id)
        )
        return int(result.scalar() or 0)


@pytest.mark.asyncio
async def test_create_share_returns_token_and_url(api_client):
    client, _ = api_client
    snippet = await create_snippet(client)
    share = await create_share(client, snippet["id"], description="for review", permission="edit")

    assert share["is_active"] is True
    assert share["access_count"] == 0
    assert share["max_access_count"] == 0
    assert share["remaining_access_count"] == -1
    assert share["permission"] == "edit"
    assert share["has_password"] is False
    assert len(share["token"]) >= 16
    assert share["share_url"] == f"{settings.SHARE_BASE_URL.rstrip('/')}/{share['token']}"
    assert share["code_snippet_title"] == snippet["title"]

    created = datetime.fromisoformat(share["created_at"])
    expires = datetime.fromisoformat(share["expires_at"])
    assert timedelta(hours=23, minutes=59) < expires - created <= timedelta(hours=24, seconds=5)


@pytest.mark.asyncio
async def test_create_share_rejects_out_of_range_values(api_client):
    client, session_maker = api_client
    snippet = await create_snippet(client)

    for body in (
        {"expires_in_hours": 0},
        {"expires_in_hours": 8761},
        {"max_access_count": -1},
        {"max_access_count": 10001},
        {"password": "short"},
        {"permission": "owner"},
    ):
        response = await client.post(
            "/api/share",
            json={"code_snippet_id": snippet["id"], **body},
            headers=OWNER_AUTH,
        )
        assert response.status_code == 422, body

    actor = AuthContext(user_id=OWNER_ID, role="editor", username="owner")
    async with session_maker() as session:
        with pytest.raises(ValidationFailed):
            await create_share_token(actor=actor, code_snippet_id=snippet["id"], db=session, expires_in_hours=0)


@pytest.mark.asyncio
async def test_create_share_requires_existing_readable_snippet(api_client):
    client, _ = api_client
    private = await create_snippet(client, is_public=False)
    public = await create_snippet(client, is_public=True)

    missing = await client.post("/api/share", json={"code_snippet_id": "nope"}, headers=OWNER_AUTH)
    assert missing.status_code == 404

    viewer_private = await client.post("/api/share", json={"code_snippet_id": private["id"]}, headers=VIEWER_AUTH)
    assert viewer_private.status_code == 403
    assert viewer_private.json()["code"] == "forbidden"

    viewer_public = await client.post("/api/share", json={"code_snippet_id": public["id"]}, headers=VIEWER_AUTH)
    assert viewer_public.status_code == 201

    anonymous = await client.post("/api/share", json={"code_snippet_id": public["id"]})
    assert anonymous.status_code == 401


@pytest.mark.asyncio
async def test_only_owner_or_admin_can_manage_share(api_client):
    client, _ = api_client
    snippet = await create_snippet(client)
    share = await create_share(client, snippet["id"])

    for method, path in (
        ("delete", f"/api/share/{share['id']}/revoke"),
        ("delete", f"/api/share/{share['id']}"),
        ("post", f"/api/share/{share['id']}/reset-stats"),
        ("get", f"/api/share/{share['id']}/details"),
        ("get", f"/api/share/{share['id']}/stats"),
    ):
        response = await getattr(client, method)(path, headers=OTHER_AUTH)
        assert response.status_code == 403, path

    extend = await client.post(f"/api/share/{share['id']}/extend", json={"hours": 2}, headers=OTHER_AUTH)
    assert extend.status_code == 403

    admin_view = await client.get(f"/api/share/{share['id']}/details", headers=ADMIN_AUTH)
    assert admin_view.status_code == 200
    assert admin_view.json()["token"] == share["token"]


@pytest.mark.asyncio
async def test_revoke_is_idempotent(api_client):
    client, _ = api_client
    snippet = await create_snippet(client)
    share = await create_share(client, snippet["id"])

    first = await client.delete(f"/api/share/{share['id']}/revoke", headers=OWNER_AUTH)
    second = await client.delete(f"/api/share/{share['id']}/revoke", headers=OWNER_AUTH)
    assert first.status_code == 200
    assert second.status_code == 200
    assert second.json()["is_active"] is False

    details = await client.get(f"/api/share/{share['id']}/details", headers=OWNER_AUTH)
    assert details.json()["is_active"] is False


@pytest.mark.asyncio
async def test_extend_adds_hours_and_validates_range(api_client):
    client, _ = api_client
    snippet = await create_snippet(client)
    share = await create_share(client, snippet["id"], expires_in_hours=1)
    before = datetime.fromisoformat(share["expires_at"])

    extended = await client.post(f"/api/share/{share['id']}/extend", json={"hours": 5}, headers=OWNER_AUTH)
    assert extended.status_code == 200
    after = datetime.fromisoformat(extended.json()["expires_at"])
    assert after - before == timedelta(hours=5)

    for hours in (0, -3, 8761):
        bad = await client.post(f"/api/share/{share['id']}/extend", json={"hours": hours}, headers=OWNER_AUTH)
        assert bad.status_code == 400
        assert bad.json()["code"] == "validation_failed"


@pytest.mark.asyncio
async def test_update_sets_and_clears_password_without_resetting_count(api_client):
    client, _ = api_client
    snippet = await create_snippet(client)
    share = await create_share(client, snippet["id"])

    assert (await client.get(f"/api/share/{share['token']}")).status_code == 200

    updated = await client.put(
        f"/api/share/{share['id']}",
        json={"password": "new-pass", "description": "locked", "max_access_count": 10, "extend_hours": 2},
        headers=OWNER_AUTH,
    )
    assert updated.status_code == 200
    payload = updated.json()
    assert payload["has_password"] is True
    assert payload["description"] == "locked"
    assert payload["access_count"] == 1
    assert payload["max_access_count"] == 10
    assert datetime.fromisoformat(payload["expires_at"]) - datetime.fromisoformat(share["expires_at"]) == timedelta(
        hours=2
    )

    assert (await client.get(f"/api/share/{share['token']}")).status_code == 401
    assert (await client.get(f"/api/share/{share['token']}", headers={"X-Share-Password": "new-pass"})).status_code == 200

    cleared = await client.put(f"/api/share/{share['id']}", json={"clear_password": True}, headers=OWNER_AUTH)
    assert cleared.json()["has_password"] is False
    assert cleared.json()["access_count"] == 2
    assert (await client.get(f"/api/share/{share['token']}")).status_code == 200


@pytest.mark.asyncio
async def test_reset_stats_zeroes_count_and_removes_logs(api_client):
    client, session_maker = api_client
    snippet = await create_snippet(client)
    share = await create_share(client, snippet["id"], max_access_count=1)

    await client.get(f"/api/share/{share['token']}")
    assert (await client.get(f"/api/share/{share['token']}")).status_code == 429
    assert await _log_count(session_maker, share["id"]) == 2

    reset = await client.post(f"/api/share/{share['id']}/reset-stats", headers=OWNER_AUTH)
    assert reset.status_code == 200
    assert reset.json()["removed_access_logs"] == 2
    assert await _log_count(session_maker, share["id"]) == 0

    async with session_maker() as session:
        row = await session.get(ShareToken, share["id"])
        assert row.access_count == 0
        assert row.last_accessed_at is None
        assert row.is_active is True

    assert (await client.get(f"/api/share/{share['token']}")).status_code == 200


@pytest.mark.asyncio
async def test_delete_removes_share_and_its_logs(api_client):
    client, session_maker = api_client
    snippet = await create_snippet(client)
    share = await create_share(client, snippet["id"])
    await client.get(f"/api/share/{share['token']}")

    deleted = await client.delete(f"/api/share/{share['id']}", headers=OWNER_AUTH)
    assert deleted.status_code == 200
    assert await _log_count(session_maker, share["id"]) == 0

    missing = await client.get(f"/api/share/{share['id']}/details", headers=OWNER_AUTH)
    assert missing.status_code == 404
    assert (await client.get(f"/api/share/{share['token']}")).status_code == 404


@pytest.mark.asyncio
async def test_my_shares_and_snippet_shares(api_client):
    client, _ = api_client
    snippet = await create_snippet(client)
    for _ in range(3):
        await create_share(client, snippet["id"])
    other_snippet = await create_snippet(client, headers=OTHER_AUTH)
    await create_share(client, other_snippet["id"], headers=OTHER_AUTH)

    page = await client.get("/api/share/my-shares", params={"page": 1, "page_size": 2}, headers=OWNER_AUTH)
    assert page.status_code == 200
    body = page.json()
    assert body["total_count"] == 3
    assert body["total_pages"] == 2
    assert len(body["items"]) == 2

    by_snippet = await client.get(f"/api/share/snippet/{snippet['id']}", headers=OWNER_AUTH)
    assert by_snippet.status_code == 200
    assert len(by_snippet.json()["items"]) == 3

    forbidden = await client.get(f"/api/share/snippet/{snippet['id']}", headers=OTHER_AUTH)
    assert forbidden.status_code == 403


@pytest.mark.asyncio
async def test_stats_and_access_logs(api_client):
    client, _ = api_client
    snippet = await create_snippet(client)
    share = await create_share(client, snippet["id"], password="abcdef")

    iphone = "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) AppleWebKit/605.1.15 Mobile/15E148 Safari/604.1"
    await client.get(f"/api/share/{share['token']}", headers={"X-Share-Password": "abcdef", "User-Agent": iphone})
    await client.get(f"/api/share/{share['token']}", headers={"X-Share-Password": "abcdef"})
    await client.get(f"/api/share/{share['token']}", headers={"X-Share-Password": "wrong!"})

    stats = await client.get(f"/api/share/{share['id']}/stats", params={"days": 7}, headers=OWNER_AUTH)
    assert stats.status_code == 200
    payload = stats.json()
    assert payload["total_access_count"] == 2
    assert payload["today_access_count"] == 2
    assert payload["this_week_access_count"] == 2
    assert payload["this_month_access_count"] == 2
    assert payload["failed_attempt_count"] == 1
    assert payload["remaining_access_count"] == -1
    assert len(payload["daily_stats"]) == 7
    assert payload["daily_stats"][-1]["access_count"] == 2
    devices = {entry["name"]: entry["access_count"] for entry in payload["device_stats"]}
    assert devices.get("Mobile") == 1

    logs = await client.get(f"/api/share/{share['id']}/access-logs", headers=OWNER_AUTH)
    assert logs.json()["total_count"] == 3

    failures = await client.get(
        f"/api/share/{share['id']}/access-logs", params={"is_success": "false"}, headers=OWNER_AUTH
    )
    items = failures.json()["items"]
    assert len(items) == 1
    assert items[0]["failure_reason"] == "bad_password"
