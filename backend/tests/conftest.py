"""Pytest configuration and fixtures for CareAccess tests.

Provides an in-memory SQLite database, an in-process Redis stand-in for
token revocation, user factories and auth headers.
"""

import os

# Settings are read at import time; point them at test backends first.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("DEBUG", "false")
os.environ.setdefault("SECRET_KEY", "test-secret-key")

import time
from typing import AsyncGenerator, Awaitable, Callable

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.auth.jwt import create_access_token
from app.auth.password import hash_password
from app.auth.permissions import resolve_permissions
from app.database import Base, get_db
from app.main import app
from app.models.user import User
from app.utils import redis_client

TEST_PASSWORD = "testpassword123"


# ── Redis stand-in ───────────────────────────────────────────────

class InMemoryRedis:
    """The handful of redis.asyncio calls the revocation layer makes."""

    def __init__(self):
        self._data: dict[str, tuple[str, float]] = {}
        self.fail = False

    def _check(self):
        if self.fail:
            raise ConnectionError("redis unavailable")

    async def setex(self, key: str, ttl: int, value: str):
        self._check()
        self._data[key] = (value, time.time() + ttl)
        return True

    async def exists(self, key: str) -> int:
        self._check()
        entry = self._data.get(key)
        return int(entry is not None and entry[1] > time.time())

    async def delete(self, key: str) -> int:
        self._check()
        return int(self._data.pop(key, None) is not None)

    async def ping(self) -> bool:
        self._check()
        return True

    async def aclose(self):
        pass


@pytest.fixture(autouse=True)
def fake_redis(monkeypatch) -> InMemoryRedis:
    fake = InMemoryRedis()
    monkeypatch.setattr(redis_client, "_redis_client", fake)
    return fake


# ── Test Database Setup ──────────────────────────────────────────

@pytest_asyncio.fixture
async def test_engine():
    """Fresh in-memory database per test."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    session_factory = async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False
    )
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture
async def client(db_session) -> AsyncGenerator[AsyncClient, None]:
    """Test client sharing the test session with the app."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


# ── Test Data Fixtures ───────────────────────────────────────────

@pytest_asyncio.fixture
async def make_user(db_session: AsyncSession) -> Callable[..., Awaitable[User]]:
    """Factory: `await make_user("Clinician", overrides=[...])`."""
    counter = 0

    async def _make(
        role: str = "Viewer",
        *,
        overrides=None,
        email: str | None = None,
        full_name: str | None = None,
        is_active: bool = True,
    ) -> User:
        nonlocal counter
        counter += 1
        user = User(
            email=email or f"user{counter}@careaccess.org",
            full_name=full_name or f"{role} User {counter}",
            hashed_password=hash_password(TEST_PASSWORD),
            role=role,
            location="Mombasa",
            is_active=is_active,
            permission_overrides=[] if overrides is None else overrides,
        )
        db_session.add(user)
        await db_session.flush()
        await db_session.refresh(user)
        return user

    return _make


@pytest_asyncio.fixture
async def admin_user(make_user) -> User:
    return await make_user("Admin", email="admin@careaccess.org", full_name="Ada Admin")


@pytest_asyncio.fixture
async def viewer_user(make_user) -> User:
    return await make_user("Viewer", email="viewer@careaccess.org", full_name="Vic Viewer")


def token_for(user: User) -> str:
    return create_access_token(
        user_id=user.id,
        role=user.role,
        permissions=resolve_permissions(user.role, user.permission_overrides),
    )


def headers_for(user: User) -> dict:
    return {"Authorization": f"Bearer {token_for(user)}"}


@pytest.fixture
def headers() -> Callable[[User], dict]:
    """`headers(user)` → bearer headers for any user made in the test."""
    return headers_for


@pytest.fixture
def auth_headers(admin_user: User) -> dict:
    """Authorization headers for the admin user."""
    return headers_for(admin_user)


@pytest.fixture
def viewer_headers(viewer_user: User) -> dict:
    return headers_for(viewer_user)


# ── Test Markers ─────────────────────────────────────────────────

def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line("markers", "unit: Pure-function tests")
    config.addinivalue_line("markers", "auth: Authentication and session tests")
    config.addinivalue_line("markers", "admin: Admin endpoint tests")
