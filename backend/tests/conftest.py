"""Shared test configuration and fixtures.

Uses a transactional rollback strategy per test for full isolation:
- Tables are created once in an in-memory SQLite database (aiosqlite).
- Each test runs inside an outer transaction that rolls back afterwards;
  ``session.commit()`` inside the code under test only releases a savepoint.
"""

import os
import uuid
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import timedelta
from decimal import Decimal
from unittest.mock import patch

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.pool import StaticPool

# Settings are read at import time.
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("CRON_SECRET_KEY", "test-cron-secret")
os.environ.setdefault("ASAAS_BASE_URL", "https://asaas.test/v3")
os.environ.setdefault("ASAAS_API_KEY", "test-asaas-key")

from rxautos.auth.jwt import create_token_pair  # noqa: E402
from rxautos.auth.passwords import hash_password  # noqa: E402
from rxautos.database import Base, enable_sqlite_savepoints, get_db  # noqa: E402
from rxautos.main import app  # noqa: E402
from rxautos.models.profile import Profile  # noqa: E402
from rxautos.models.subscription import Subscription  # noqa: E402
from rxautos.utils.dates import utcnow  # noqa: E402

_TEST_DB_URL = "sqlite+aiosqlite://"


def _make_engine():
    engine = create_async_engine(
        _TEST_DB_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    enable_sqlite_savepoints(engine)
    return engine


# ---------------------------------------------------------------------------
# Session-scoped: create / drop all tables once per test session
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture(scope="session", loop_scope="session")
async def test_engine():
    engine = _make_engine()
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture(scope="session", loop_scope="session")
async def setup_test_db(test_engine):
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


# ---------------------------------------------------------------------------
# Per-test: transactional rollback for isolation
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def db_session(test_engine, setup_test_db) -> AsyncGenerator[AsyncSession, None]:
    """Yield an async session wrapped in a transaction that always rolls back."""
    async with test_engine.connect() as connection:
        transaction = await connection.begin()
        session = AsyncSession(
            bind=connection,
            expire_on_commit=False,
            join_transaction_mode="create_savepoint",
        )

        try:
            yield session
        finally:
            await session.close()
            await transaction.rollback()


@pytest_asyncio.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """httpx AsyncClient wired to the test DB session."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def webhook_session(db_session: AsyncSession):
    """Route the webhook endpoint's own session factory to the test session."""

    @asynccontextmanager
    async def _factory():
        yield db_session

    with patch("rxautos.api.v1.webhooks.async_session_factory", _factory):
        yield db_session


# ---------------------------------------------------------------------------
# Convenience fixtures: accounts
# ---------------------------------------------------------------------------


async def create_profile(db: AsyncSession, plan: str | None = "basico", **overrides) -> Profile:
    """Insert a profile directly in the DB."""
    unique = uuid.uuid4().hex[:8]
    fields = {
        "email": f"seller-{unique}@test.com",
        "hashed_password": hash_password("testpass123"),
        "full_name": "Test Seller",
        "is_active": True,
        "role": "user",
        "plan": plan,
    }
    fields.update(overrides)
    profile = Profile(**fields)
    db.add(profile)
    await db.flush()
    await db.refresh(profile)
    return profile


def headers_for(profile: Profile) -> dict[str, str]:
    tokens = create_token_pair(str(profile.id))
    return {"Authorization": f"Bearer {tokens['access_token']}"}


@pytest_asyncio.fixture
async def test_user(db_session: AsyncSession) -> Profile:
    """Profissional-plan seller with an active, paid subscription."""
    user = await create_profile(db_session, plan="profissional")
    now = utcnow()
    db_session.add(
        Subscription(
            user_id=user.id,
            plan_type="profissional",
            plan_value=Decimal("299.00"),
            status="active",
            start_date=now - timedelta(days=1),
            end_date=now + timedelta(days=29),
        )
    )
    await db_session.flush()
    return user


@pytest_asyncio.fixture
async def auth_headers(test_user: Profile) -> dict[str, str]:
    return headers_for(test_user)


@pytest_asyncio.fixture
async def basic_user(db_session: AsyncSession) -> Profile:
    """Básico-plan seller with no subscription, trial or promotion."""
    return await create_profile(db_session, plan="basico")


@pytest_asyncio.fixture
async def basic_auth_headers(basic_user: Profile) -> dict[str, str]:
    return headers_for(basic_user)


@pytest_asyncio.fixture
async def admin_user(db_session: AsyncSession) -> Profile:
    return await create_profile(db_session, plan="ilimitado", role="admin")


@pytest_asyncio.fixture
async def admin_headers(admin_user: Profile) -> dict[str, str]:
    return headers_for(admin_user)


@pytest_asyncio.fixture
async def make_profile(db_session: AsyncSession):
    """Factory fixture: ``await make_profile(plan="empresarial", unlimited_access=True)``."""

    async def _make(plan: str | None = "basico", **overrides) -> Profile:
        return await create_profile(db_session, plan, **overrides)

    return _make


@pytest_asyncio.fixture
async def make_headers():
    return headers_for
