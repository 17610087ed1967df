import pytest
from fastapi import Depends, FastAPI
from httpx import ASGITransport, AsyncClient
from jose import jwt
from redis.exceptions import ConnectionError as RedisConnectionError
from sqlalchemy import delete, update

from config import settings
from conftest import ADMIN_AUTH, OWNER_AUTH, OWNER_ID, auth_header
from errors import register_error_handlers
from models.user import User
from routers import rate_limit
from services.session_token import SESSION_TOKEN_TYPE, create_session_token, decode_session_token


async def _register(client, username="alice", email="alice@example.org", password="secret123"):
    return await client.post(
        "/api/auth/register",
        json={"username": username, "email": email, "password": password},
    )


@pytest.mark.asyncio
async def test_first_registered_account_becomes_admin(api_client):
    client, session_maker = api_client
    async with session_maker() as session:
        await session.execute(delete(User))
        await session.commit()

    first = await _register(client)
    assert first.status_code == 201
    assert first.json()["role"] == "admin"
    assert first.json()["session_token"]

    second = await _register(client, username="bob", email="bob@example.org")
    assert second.json()["role"] == "editor"


@pytest.mark.asyncio
async def test_register_rejects_duplicates_and_weak_passwords(api_client):
    client, _ = api_client
    created = await _register(client)
    assert created.status_code == 201
    assert created.json()["role"] == "editor"

    assert (await _register(client, username="ALICE", email="new@example.org")).status_code == 409
    assert (await _register(client, username="alice2", email="Alice@Example.org")).status_code == 409

    short = await _register(client, username="carol", email="carol@example.org", password="abc12")
    assert short.status_code == 400
    assert short.json()["code"] == "validation_failed"
    no_digit = await _register(client, username="carol", email="carol@example.org", password="onlyletters")
    assert no_digit.status_code == 400


@pytest.mark.asyncio
async def test_login_by_username_or_email_and_me(api_client):
    client, _ = api_client
    await _register(client)

    by_name = await client.post("/api/auth/login", json={"login": "alice", "password": "secret123"})
    assert by_name.status_code == 200
    by_email = await client.post("/api/auth/login", json={"login": "ALICE@example.org", "password": "secret123"})
    assert by_email.status_code == 200

    token = by_email.json()["session_token"]
    me = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["username"] == "alice"
    assert "password_hash" not in me.json()

    wrong = await client.post("/api/auth/login", json={"login": "alice", "password": "secret124"})
    assert wrong.status_code == 401
    unknown = await client.post("/api/auth/login", json={"login": "nobody", "password": "secret123"})
    assert unknown.status_code == 401


@pytest.mark.asyncio
async def test_bearer_token_checks(api_client):
    client, session_maker = api_client
    assert (await client.get("/api/auth/me")).status_code == 401
    assert (await client.get("/api/auth/me", headers={"Authorization": "Bearer garbage"})).status_code == 401
    assert (await client.get("/api/auth/me", headers=auth_header("user-missing"))).status_code == 401

    async with session_maker() as session:
        await session.execute(update(User).where(User.id == OWNER_ID).values(is_active=False))
        await session.commit()
    disabled = await client.get("/api/auth/me", headers=OWNER_AUTH)
    assert disabled.status_code == 403
    assert disabled.json()["code"] == "forbidden"


@pytest.mark.asyncio
async def test_inactive_account_cannot_log_in(api_client):
    client, session_maker = api_client
    registered = (await _register(client)).json()
    async with session_maker() as session:
        await session.execute(update(User).where(User.id == registered["user_id"]).values(is_active=False))
        await session.commit()

    response = await client.post("/api/auth/login", json={"login": "alice", "password": "secret123"})
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_registration_can_be_disabled_by_admin(api_client):
    client, _ = api_client
    updated = await client.put("/api/settings", json={"site": {"allow_registration": False}}, headers=ADMIN_AUTH)
    assert updated.status_code == 200

    blocked = await _register(client)
    assert blocked.status_code == 403


@pytest.mark.asyncio
async def test_local_quota_fallback_counts_per_window():
    key = "snippet:rate:test:127.0.0.1"
    decisions = [await rate_limit.consume_local_quota(key, 2, 60) for _ in range(3)]
    assert [decision.allowed for decision in decisions] == [True, True, False]
    assert decisions[-1].retry_after >= 1
    assert rate_limit._local_counters[key][0] == 3


@pytest.mark.asyncio
async def test_rate_limited_route_answers_429_with_retry_after(monkeypatch):
    async def _redis_down(key, limit, window_seconds):
        raise RedisConnectionError("connection refused")

    monkeypatch.setattr(rate_limit, "consume_redis_quota", _redis_down)

    limited_app = FastAPI()
    register_error_handlers(limited_app)

    @limited_app.get("/limited", dependencies=[Depends(rate_limit.rate_limit("unit", 2, 60))])
    async def limited():
        return {"ok": True}

    transport = ASGITransport(app=limited_app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        statuses = [(await client.get("/limited")).status_code for _ in range(2)]
        blocked = await client.get("/limited")

    assert statuses == [200, 200]
    assert blocked.status_code == 429
    assert blocked.json()["code"] == "rate_limited"
    assert 1 <= int(blocked.headers["Retry-After"]) <= 60


def test_session_token_round_trip_and_rejections():
    issued = create_session_token(OWNER_ID, role="admin", username="owner", timeout_minutes=15)
    claims = decode_session_token(issued["token"])
    assert claims.user_id == OWNER_ID
    assert claims.role == "admin"
    assert claims.username == "owner"
    assert claims.expires_at - claims.issued_at == 15 * 60

    def _signed(**claims):
        return jwt.encode(claims, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)

    with pytest.raises(ValueError):
        decode_session_token(_signed(sub=OWNER_ID, role="editor", type="refresh"))
    with pytest.raises(ValueError):
        decode_session_token(_signed(sub=OWNER_ID, role="root", type=SESSION_TOKEN_TYPE))
    with pytest.raises(ValueError):
        decode_session_token(_signed(role="editor", type=SESSION_TOKEN_TYPE))
    with pytest.raises(ValueError):
        decode_session_token(issued["token"] + "tampered")
