import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from database import Base, get_db
from main import app
from models.user import User
from routers import rate_limit
from services.session_token import create_session_token


ADMIN_ID = "user-admin"
OWNER_ID = "user-owner"
OTHER_ID = "user-other"
VIEWER_ID = "user-viewer"

SEED_USERS = (
    (ADMIN_ID, "admin", "admin"),
    (OWNER_ID, "owner", "editor"),
    (OTHER_ID, "other", "editor"),
    (VIEWER_ID, "viewer", "viewer"),
)


def auth_header(user_id: str) -> dict:
    return {"Authorization": f"Bearer {create_session_token(user_id)['token']}"}


ADMIN_AUTH = auth_header(ADMIN_ID)
OWNER_AUTH = auth_header(OWNER_ID)
OTHER_AUTH = auth_header(OTHER_ID)
VIEWER_AUTH = auth_header(VIEWER_ID)


@pytest.fixture(autouse=True)
def reset_local_rate_limit_counters():
    """Keep in-memory rate-limit state isolated between tests."""
    previous = getattr(app.state, "disable_rate_limits", False)
    app.state.disable_rate_limits = True
    rate_limit._local_counters.clear()
    yield
    rate_limit._local_counters.clear()
    app.state.disable_rate_limits = previous


@pytest.fixture(autouse=True)
def reset_list_caches():
    app.state.comment_cache.clear()
    app.state.message_cache.clear()
    yield
    app.state.comment_cache.clear()
    app.state.message_cache.clear()


@pytest_asyncio.fixture
async def api_client(tmp_path):
    db_path = tmp_path / "snippet_share.db"
    engine = create_async_engine(f"sqlite+aiosqlite:///{db_path}")
    session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with session_maker() as session:
        for user_id, username, role in SEED_USERS:
            session.add(
                User(
                    id=user_id,
                    username=username,
                    email=f"{username}@example.com",
                    password_hash="not-a-login-account",
                    role=role,
                    is_active=True,
                )
            )
        await session.commit()

    async def override_get_db():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client, session_maker

    app.dependency_overrides.pop(get_db, None)
    await engine.dispose()


async def create_snippet(client, headers=OWNER_AUTH, **overrides) -> dict:
    body = {
        "title": "Binary search",
        "description": "Classic lower bound",
        "code": "def lower_bound(xs, x):\n    ...\n",
        "language": "python",
        "is_public": False,
    }
    body.update(overrides)
    response = await client.post("/api/snippets", json=body, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


async def create_share(client, snippet_id: str, headers=OWNER_AUTH, **overrides) -> dict:
    body = {"code_snippet_id": snippet_id}
    body.update(overrides)
    response = await client.post("/api/share", json=body, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()
