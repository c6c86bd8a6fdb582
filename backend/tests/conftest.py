"""Pytest configuration and shared fixtures."""

import os
import sys
from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

PROJECT_ROOT = Path(__file__).resolve().parents[1]
project_root_str = str(PROJECT_ROOT)
if project_root_str in sys.path:
    sys.path.remove(project_root_str)
sys.path.insert(0, project_root_str)

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-for-argufight-tests")
os.environ.setdefault("STRICT_SETTING_KEYS", "false")

# ruff: noqa: E402 - Imports must come after environment variable setup
from argufight import database
from argufight.database import Base, get_db
from argufight.main import app
from argufight.models import User
from argufight.rate_limit import limiter

# Use in-memory SQLite for tests
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture(autouse=True)
def _reset_process_state(monkeypatch):
    """Fresh cache and feature-flag reader per test; no rate limiting."""
    monkeypatch.setattr("argufight.services.cache_manager._cache_manager", None)
    monkeypatch.setattr("argufight.services.feature_flags._feature_flags", None)
    limiter.enabled = False
    yield
    limiter.enabled = True


@pytest.fixture
async def db_engine():
    """Create test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    # Services that open their own sessions (feature flag snapshot) must use the test database
    original_maker = database.async_session_maker
    database.async_session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    try:
        yield engine
    finally:
        database.async_session_maker = original_maker

        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

        await engine.dispose(close=True)


@pytest.fixture
async def db_session(db_engine) -> AsyncGenerator[AsyncSession]:
    """Create test database session. The settings store starts empty."""
    async_session = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)

    session = async_session()
    try:
        yield session
    finally:
        await session.close()


@pytest.fixture
async def client(db_session: AsyncSession):
    """Create test client with database override."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    test_client = AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test", follow_redirects=True
    )

    try:
        yield test_client
    finally:
        await test_client.aclose()
        app.dependency_overrides.clear()


# ============================================
# Factory Fixtures
# ============================================


@pytest.fixture
def make_user(db_session: AsyncSession):
    """Factory fixture that creates and commits User rows.

    Usage:
        user = await make_user(username="bot", is_ai=True, ai_response_delay_ms=60_000)
    """

    async def _make_user(**kwargs) -> User:
        import secrets

        suffix = secrets.token_hex(4)
        defaults = {
            "email": f"user-{suffix}@example.com",
            "username": f"user-{suffix}",
        }
        user = User(**{**defaults, **kwargs})
        db_session.add(user)
        await db_session.commit()
        await db_session.refresh(user)
        return user

    return _make_user


# ============================================
# Authentication Fixtures
# ============================================


@pytest.fixture
async def admin_user(make_user) -> User:
    """Admin account. No password hash; tests authenticate with a minted token."""
    return await make_user(email="admin@example.com", username="admin", is_admin=True)


@pytest.fixture
async def regular_user(make_user) -> User:
    """Signed-in account without admin rights."""
    return await make_user(email="player@example.com", username="player")


@pytest.fixture
async def authenticated_client(client, admin_user):
    """AsyncClient carrying a valid session cookie for the admin account."""
    from argufight.services.user_auth import JWT_COOKIE_NAME, token_for_user

    client.cookies.set(JWT_COOKIE_NAME, token_for_user(admin_user))
    return client


@pytest.fixture
async def user_client(client, regular_user):
    """AsyncClient carrying a valid session cookie for a non-admin account."""
    from argufight.services.user_auth import JWT_COOKIE_NAME, token_for_user

    client.cookies.set(JWT_COOKIE_NAME, token_for_user(regular_user))
    return client


# ============================================
# Mock HTTP Fixtures
# ============================================


@pytest.fixture
def mock_http():
    """Patch httpx.AsyncClient for provider probes.

    Yields the AsyncMock instance every probe receives; configure
    ``mock_http.get`` / ``mock_http.post`` per test.
    """
    from unittest.mock import AsyncMock, patch

    with patch("httpx.AsyncClient") as mock_client_class:
        mock_instance = AsyncMock()
        mock_instance.aclose = AsyncMock()
        mock_client_class.return_value = mock_instance
        yield mock_instance


@pytest.fixture
def http_response():
    """Factory for stand-ins of httpx.Response.

    Usage:
        mock_http.get.return_value = http_response(200, {"data": []})
    """
    from unittest.mock import MagicMock

    def _make_response(status_code: int = 200, payload=None, text: str = ""):
        response = MagicMock()
        response.status_code = status_code
        if payload is None:
            response.json.side_effect = ValueError("no json")
        else:
            response.json.return_value = payload
        response.text = text
        return response

    return _make_response
