"""Pytest configuration and fixtures for headless API tests.

PostgreSQL Handling:
- TEST_DATABASE_URL is used when set
- Otherwise, if testcontainers is installed and Docker is available, a PostgreSQL
  container is started
- Database-backed tests are skipped when neither is available

Middleware and endpoint tests don't need a database: they compose the app
with in-memory collaborators that honor the same contracts.
"""

import os
import time
import uuid
from collections.abc import AsyncGenerator
from dataclasses import dataclass

import pytest
import pytest_asyncio
from fastapi import APIRouter, Depends, FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

# Quiet, deterministic settings before importing app modules
os.environ.setdefault("LOG_LEVEL", "WARNING")

from headless_api.api.deps import get_auth_context, require_user  # noqa: E402
from headless_api.core.config import Settings  # noqa: E402
from headless_api.main import create_app  # noqa: E402
from headless_api.services.auth import AuthContext  # noqa: E402
from headless_api.services.token_store import generate_token_id  # noqa: E402

API_PREFIX = "/api/v1"

TEST_USERNAME = "alice"
TEST_PASSWORD = "secret"


# --- PostgreSQL Container Management ---

_container = None
_database_url = None
_pg_available = None


def _try_testcontainers() -> str | None:
    """Try to start PostgreSQL using testcontainers.

    Returns database URL if successful, None otherwise.
    """
    try:
        from testcontainers.postgres import PostgresContainer
    except ImportError:
        return None

    global _container
    try:
        _container = PostgresContainer(
            image="postgres:15-alpine",
            username="test",
            password="test",
            dbname="headless_api_test",
        )
        _container.start()
        url = _container.get_connection_url()
        async_url = url.replace("postgresql+psycopg2://", "postgresql+asyncpg://")
        return async_url.replace("postgresql://", "postgresql+asyncpg://")
    except Exception as e:
        import warnings

        warnings.warn(f"Testcontainers not available: {e}", stacklevel=2)
        if _container:
            try:
                _container.stop()
            except Exception:
                pass
            _container = None
        return None


def _get_database_url() -> str | None:
    global _database_url
    if _database_url is None:
        _database_url = os.environ.get("TEST_DATABASE_URL") or _try_testcontainers() or ""
    return _database_url or None


def pytest_sessionfinish(session, exitstatus):
    """Clean up testcontainers when tests finish."""
    global _container
    if _container:
        try:
            _container.stop()
        except Exception:
            pass
        _container = None


def pytest_collection_modifyitems(config, items):
    """Mark tests that use the database fixtures as integration, others as unit."""
    integration_fixtures = {"db_engine", "db_session_maker"}
    for item in items:
        if any(mark.name in ("unit", "integration") for mark in item.iter_markers()):
            continue
        if integration_fixtures & set(getattr(item, "fixturenames", ())):
            item.add_marker(pytest.mark.integration)
        else:
            item.add_marker(pytest.mark.unit)


# --- Database Fixtures ---


@pytest_asyncio.fixture
async def db_engine():
    """Create tables in the test database and drop them afterwards."""
    global _pg_available

    url = _get_database_url()
    if url is None or _pg_available is False:
        pytest.skip("PostgreSQL test database not available")

    from headless_api.core.database import Base
    from headless_api.models import BearerToken, User  # noqa: F401

    engine = create_async_engine(url, poolclass=NullPool, echo=False)
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        _pg_available = True
    except Exception as e:
        _pg_available = False
        await engine.dispose()
        pytest.skip(f"PostgreSQL not available: {e}")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session_maker(db_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


# --- In-memory collaborators ---


@dataclass
class FakeUser:
    id: uuid.UUID
    username: str


class InMemoryTokenStore:
    """Token store double with the same expiry-at-lookup semantics."""

    def __init__(self):
        self.tokens: dict[str, tuple[uuid.UUID, float]] = {}

    async def issue(self, owner_user_id: uuid.UUID, lifetime_seconds: int) -> str:
        token_id = generate_token_id()
        self.tokens[token_id] = (owner_user_id, time.time() + lifetime_seconds)
        return token_id

    async def lookup(self, token_id: str) -> uuid.UUID | None:
        record = self.tokens.get(token_id)
        if record is None or record[1] < time.time():
            return None
        return record[0]

    async def revoke(self, owner_user_id: uuid.UUID, token_id: str) -> None:
        record = self.tokens.get(token_id)
        if record is not None and record[0] == owner_user_id:
            del self.tokens[token_id]


class StaticUserDirectory:
    """Credential verifier and deserializer over a dict of users."""

    def __init__(self):
        self.users: dict[uuid.UUID, FakeUser] = {}
        self.passwords: dict[str, str] = {}

    def add(self, username: str, password: str) -> FakeUser:
        user = FakeUser(id=uuid.uuid4(), username=username)
        self.users[user.id] = user
        self.passwords[username] = password
        return user

    async def verify_credentials(self, username: str, password: str) -> FakeUser | None:
        if self.passwords.get(username) != password:
            return None
        return next((u for u in self.users.values() if u.username == username), None)

    async def deserialize_user(self, user_id: uuid.UUID) -> FakeUser | None:
        return self.users.get(user_id)


def add_test_routes(app: FastAPI, prefix: str = API_PREFIX) -> None:
    """Content routes standing in for the host's REST endpoints."""
    router = APIRouter(prefix=prefix)

    @router.get("/products")
    async def list_products(context: AuthContext = Depends(get_auth_context)) -> dict:
        return {
            "results": [{"title": "Cool Product #1"}],
            "user": context.user.username if context.user else None,
        }

    @router.post("/products")
    async def create_product(context: AuthContext = Depends(require_user)) -> dict:
        return {"title": "Cool Product", "created_by": context.user.username}

    @router.get("/private")
    async def private(context: AuthContext = Depends(require_user)) -> dict:
        return {"secret": "cheese", "user": context.user.username}

    app.include_router(router)

    @app.get("/outside")
    async def outside() -> dict:
        return {"ok": True}

    @app.get("/api/v10/ping")
    async def other_version() -> dict:
        return {"ok": True}


# --- App Fixtures ---


@pytest.fixture
def token_store() -> InMemoryTokenStore:
    return InMemoryTokenStore()


@pytest.fixture
def user_directory() -> StaticUserDirectory:
    return StaticUserDirectory()


@pytest.fixture
def alice(user_directory) -> FakeUser:
    return user_directory.add(TEST_USERNAME, TEST_PASSWORD)


@pytest.fixture
def app_settings() -> Settings:
    return Settings(_env_file=None, log_level="WARNING")


@pytest.fixture
def app(app_settings, token_store, user_directory) -> FastAPI:
    application = create_app(
        app_settings,
        token_store=token_store,
        credential_verifier=user_directory,
        user_deserializer=user_directory,
    )
    add_test_routes(application, app_settings.api_prefix)
    return application


@pytest_asyncio.fixture
async def async_client(app) -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest_asyncio.fixture
async def bearer(async_client, alice) -> str:
    """A bearer token obtained by logging in as alice."""
    response = await async_client.post(
        f"{API_PREFIX}/login",
        json={"username": TEST_USERNAME, "password": TEST_PASSWORD},
    )
    assert response.status_code == 200
    return response.json()["bearer"]


@pytest.fixture
def bearer_headers(bearer) -> dict[str, str]:
    return {"Authorization": f"Bearer {bearer}"}
