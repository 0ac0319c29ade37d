"""Pytest configuration and fixtures for integration tests."""
import os
import sys

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

# Set test environment before importing the app
os.environ["AUTH_ENABLED"] = "true"
os.environ["AUTH_SECRET_KEY"] = "test-secret-key-not-for-production-use-0123456789"
os.environ["AUTH_BCRYPT_ROUNDS"] = "4"
os.environ["AUTO_MIGRATE"] = "false"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["REDIS_URL"] = ""
os.environ["GITHUB_WEBHOOK_SECRET"] = "test-webhook-secret"

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from sampha.main import app
from sampha.database import create_engine_for, get_async_session
from sampha.models import Base

# Use in-memory SQLite for tests
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

HOUR_MS = 60 * 60 * 1000
DAY_MS = 24 * HOUR_MS


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Create test database engine (one shared in-memory connection, FKs enforced)."""
    engine = create_engine_for(TEST_DATABASE_URL)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def test_session(test_engine):
    """Create test database session."""
    async_session = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    async with async_session() as session:
        yield session


@pytest_asyncio.fixture(scope="function")
async def client(test_engine):
    """Create test client with overridden database."""
    async_session_maker = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    async def override_get_session():
        async with async_session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_async_session] = override_get_session

    # No Redis in tests: events are dropped, SSE returns 503
    from sampha import dependencies
    dependencies.redis_client = None

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as client:
        yield client

    app.dependency_overrides.clear()


# ─── Users ────────────────────────────────────────────────────────────────────


@pytest.fixture
def signup(client: AsyncClient):
    """Factory: sign up a user and return its id, tokens and auth headers."""

    async def _signup(name: str, email: str, password: str = "correct-horse-battery"):
        response = await client.post(
            "/v1/auth/signup",
            json={"name": name, "email": email, "password": password},
        )
        assert response.status_code == 200, response.text
        data = response.json()
        return {
            "id": data["user"]["id"],
            "name": name,
            "email": email,
            "access_token": data["accessToken"],
            "refresh_token": data["refreshToken"],
            "headers": {"Authorization": f"Bearer {data['accessToken']}"},
        }

    return _signup


@pytest_asyncio.fixture
async def alice(signup):
    return await signup("Alice", "alice@example.com")


@pytest_asyncio.fixture
async def bob(signup):
    return await signup("Bob", "bob@example.com")


@pytest_asyncio.fixture
async def carol(signup):
    return await signup("Carol", "carol@example.com")


# ─── Workspace tree ───────────────────────────────────────────────────────────


@pytest_asyncio.fixture
async def workspace(client: AsyncClient, alice, bob):
    """Workspace 'acme' with Alice as admin and Bob as member."""
    response = await client.post(
        "/v1/workspaces/",
        json={"name": "Acme", "slug": "acme", "type": "shared"},
        headers=alice["headers"],
    )
    assert response.status_code == 200, response.text
    ws = response.json()
    response = await client.post(
        f"/v1/workspaces/{ws['id']}/members",
        json={"userId": bob["id"], "role": "member"},
        headers=alice["headers"],
    )
    assert response.status_code == 200, response.text
    return ws


@pytest_asyncio.fixture
async def project(client: AsyncClient, alice, workspace):
    response = await client.post(
        f"/v1/workspaces/{workspace['id']}/projects",
        json={"name": "Launch", "description": "Product launch"},
        headers=alice["headers"],
    )
    assert response.status_code == 200, response.text
    return response.json()


@pytest_asyncio.fixture
async def phase(client: AsyncClient, alice, project):
    response = await client.post(
        f"/v1/projects/{project['id']}/phases",
        json={"name": "Design"},
        headers=alice["headers"],
    )
    assert response.status_code == 200, response.text
    return response.json()


@pytest.fixture
def make_task(client: AsyncClient, alice, workspace, project, phase):
    """Factory: create a task in the default project/phase as Alice."""

    async def _make_task(**overrides):
        body = {
            "projectId": project["id"],
            "phaseId": phase["id"],
            "title": "Write brief",
            "status": "todo",
            "startDate": 1_760_000_000_000,
            "dueDate": 1_760_000_000_000 + DAY_MS,
        }
        headers = overrides.pop("headers", alice["headers"])
        body.update(overrides)
        response = await client.post(
            f"/v1/workspaces/{workspace['id']}/tasks", json=body, headers=headers
        )
        assert response.status_code == 200, response.text
        return response.json()

    return _make_task
