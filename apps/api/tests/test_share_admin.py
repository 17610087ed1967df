from datetime import timedelta

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from sqlalchemy import func, select

from conftest import ADMIN_AUTH, OTHER_AUTH, OTHER_ID, OWNER_AUTH, OWNER_ID, create_share, create_snippet
from models.share_access_log import ShareAccessLog
from models.share_token import ShareToken
from routers import share as share_router
from services.timeutil import utcnow


@pytest.mark.asyncio
async def test_admin_endpoints_reject_non_admins(api_client):
    client, _ = api_client
    for method, path in (
        ("get", "/api/share/admin/all"),
        ("get", "/api/share/admin/stats"),
        ("post", "/api/share/admin/purge-expired"),
        ("post", "/api/share/admin/purge-logs"),
        ("get", f"/api/share/admin/users/{OWNER_ID}/shares"),
    ):
        response = await getattr(client, method)(path, headers=OWNER_AUTH)
        assert response.status_code == 403, path


@pytest.mark.asyncio
async def test_admin_list_filters(api_client):
    client, session_maker = api_client
    mine = await create_snippet(client, title="Owner heap")
    theirs = await create_snippet(client, headers=OTHER_AUTH, title="Other trie", language="go")
    locked = await create_share(client, mine["id"], password="abcdef", permission="full")
    open_share = await create_share(client, mine["id"])
    other_share = await create_share(client, theirs["id"], headers=OTHER_AUTH, description="review link")

    await client.delete(f"/api/share/{open_share['id']}/revoke", headers=OWNER_AUTH)
    async with session_maker() as session:
        row = await session.get(ShareToken, other_share["id"])
        row.expires_at = utcnow() - timedelta(hours=1)
        await session.commit()

    async def ids(**params):
        response = await client.get("/api/share/admin/all", params=params, headers=ADMIN_AUTH)
        assert response.status_code == 200
        return {item["id"] for item in response.json()["items"]}

    assert await ids() == {locked["id"], open_share["id"], other_share["id"]}
    assert await ids(created_by=OTHER_ID) == {other_share["id"]}
    assert await ids(has_password="true") == {locked["id"]}
    assert await ids(is_active="false") == {open_share["id"]}
    assert await ids(is_expired="true") == {other_share["id"]}
    assert await ids(permission="full") == {locked["id"]}
    assert await ids(search="trie") == {other_share["id"]}
    assert await ids(search="review") == {other_share["id"]}
    assert await ids(code_snippet_id=mine["id"]) == {locked["id"], open_share["id"]}


@pytest.mark.asyncio
async def test_admin_system_stats(api_client):
    client, _ = api_client
    snippet = await create_snippet(client, language="rust")
    popular = await create_share(client, snippet["id"])
    quiet = await create_share(client, snippet["id"], permission="edit")
    for _ in range(3):
        await client.get(f"/api/share/{popular['token']}")
    await client.delete(f"/api/share/{quiet['id']}/revoke", headers=OWNER_AUTH)

    response = await client.get("/api/share/admin/stats", headers=ADMIN_AUTH)
    assert response.status_code == 200
    stats = response.json()
    assert stats["total_shares"] == 2
    assert stats["active_shares"] == 1
    assert stats["revoked_shares"] == 1
    assert stats["expired_shares"] == 0
    assert stats["total_access_count"] == 3
    assert stats["today_access_count"] == 3
    assert stats["popular_shares"][0]["share_token_id"] == popular["id"]
    permissions = {entry["permission"]: entry["share_count"] for entry in stats["permission_stats"]}
    assert permissions == {"read_only": 1, "edit": 1}
    assert stats["language_stats"] == [{"language": "rust", "share_count": 2, "percentage": 100.0}]


@pytest.mark.asyncio
async def test_bulk_operation_reports_per_id_failures(api_client):
    client, session_maker = api_client
    snippet = await create_snippet(client)
    first = await create_share(client, snippet["id"])
    second = await create_share(client, snippet["id"])

    response = await client.post(
        "/api/share/admin/bulk",
        json={"share_token_ids": [first["id"], "missing-share", second["id"]], "operation": "revoke"},
        headers=ADMIN_AUTH,
    )
    assert response.status_code == 200
    result = response.json()
    assert result["total_count"] == 3
    assert result["success_count"] == 2
    assert result["failed_share_token_ids"] == ["missing-share"]

    async with session_maker() as session:
        active = await session.execute(select(func.count(ShareToken.id)).where(ShareToken.is_active.is_(True)))
        assert active.scalar() == 0


@pytest.mark.asyncio
async def test_bulk_extend_validates_param_and_activate_is_not_supported(api_client):
    client, _ = api_client
    snippet = await create_snippet(client)
    share = await create_share(client, snippet["id"])

    no_param = await client.post(
        "/api/share/admin/bulk",
        json={"share_token_ids": [share["id"]], "operation": "extend"},
        headers=ADMIN_AUTH,
    )
    assert no_param.status_code == 400

    activate = await client.post(
        "/api/share/admin/bulk",
        json={"share_token_ids": [share["id"]], "operation": "activate"},
        headers=ADMIN_AUTH,
    )
    assert activate.status_code == 422

    extended = await client.post(
        "/api/share/admin/bulk",
        json={"share_token_ids": [share["id"]], "operation": "extend", "operation_param": 12},
        headers=ADMIN_AUTH,
    )
    assert extended.json()["success_count"] == 1


@pytest.mark.asyncio
async def test_force_revoke_and_delete(api_client):
    client, _ = api_client
    snippet = await create_snippet(client)
    share = await create_share(client, snippet["id"])

    revoked = await client.delete(f"/api/share/admin/{share['id']}/revoke", headers=ADMIN_AUTH)
    assert revoked.status_code == 200
    assert (await client.get(f"/api/share/{share['token']}")).status_code == 410

    deleted = await client.delete(f"/api/share/admin/{share['id']}", headers=ADMIN_AUTH)
    assert deleted.status_code == 200
    assert (await client.get(f"/api/share/{share['token']}")).status_code == 404

    user_shares = await client.get(f"/api/share/admin/users/{OWNER_ID}/shares", headers=ADMIN_AUTH)
    assert user_shares.json()["total_count"] == 0


@pytest.mark.asyncio
async def test_purge_old_logs_and_expired_tokens(api_client):
    client, session_maker = api_client
    snippet = await create_snippet(client)
    live = await create_share(client, snippet["id"])
    stale = await create_share(client, snippet["id"])
    recent = await create_share(client, snippet["id"])
    await client.get(f"/api/share/{live['token']}")
    await client.get(f"/api/share/{stale['token']}")

    async with session_maker() as session:
        old_log = (
            await session.execute(select(ShareAccessLog).where(ShareAccessLog.share_token_id == live["id"]))
        ).scalar_one()
        old_log.accessed_at = utcnow() - timedelta(days=120)
        row = await session.get(ShareToken, stale["id"])
        row.expires_at = utcnow() - timedelta(days=40)
        row = await session.get(ShareToken, recent["id"])
        row.expires_at = utcnow() - timedelta(days=1)
        await session.commit()

    purged_logs = await client.post(
        "/api/share/admin/purge-logs", params={"older_than_days": 90}, headers=ADMIN_AUTH
    )
    assert purged_logs.json()["removed_count"] == 1

    too_soon = await client.post(
        "/api/share/admin/purge-expired", params={"min_days_expired": 0}, headers=ADMIN_AUTH
    )
    assert too_soon.status_code == 422

    purged_tokens = await client.post("/api/share/admin/purge-expired", headers=ADMIN_AUTH)
    assert purged_tokens.json() == {"removed_count": 1, "min_days_expired": 30}

    async with session_maker() as session:
        remaining = (await session.execute(select(ShareToken.id))).scalars().all()
        logs = (await session.execute(select(func.count(ShareAccessLog.id)))).scalar()
    assert sorted(remaining) == sorted([live["id"], recent["id"]])
    assert logs == 0
    assert (await client.get(f"/api/share/{recent['token']}")).status_code == 410


@pytest.mark.asyncio
async def test_enqueue_maintenance_maps_queue_outage_to_503(api_client, monkeypatch):
    client, _ = api_client

    class _Job:
        id = "job-1"

    monkeypatch.setattr(share_router, "enqueue_share_maintenance", lambda retention_days: _Job())
    queued = await client.post("/api/share/admin/maintenance", headers=ADMIN_AUTH)
    assert queued.status_code == 202
    assert queued.json() == {"job_id": "job-1", "queued": True}

    def _down(retention_days):
        raise RedisConnectionError("connection refused")

    monkeypatch.setattr(share_router, "enqueue_share_maintenance", _down)
    unavailable = await client.post("/api/share/admin/maintenance", headers=ADMIN_AUTH)
    assert unavailable.status_code == 503
    assert unavailable.json()["code"] == "service_unavailable"
