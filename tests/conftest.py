"""
Shared test fixtures.

Uses an in-memory SQLite database (via aiosqlite) so tests run without
Docker / PostgreSQL / Redis.  SQLite ignores ``FOR UPDATE``; the tests
exercise serialised transitions, which is what the row locks guarantee in
production.
"""

import os

# Settings are read at import time; point them at test-friendly values first.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("RELAY_ENABLED", "false")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret")

from typing import AsyncGenerator
from unittest.mock import AsyncMock, patch

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from ridescrow.api.security import create_access_token
from ridescrow.infrastructure import models  # noqa: F401  registers tables
from ridescrow.infrastructure.database import Base


# ── Test DB (SQLite in-memory) ────────────────────────────────────────

TEST_DB_URL = "sqlite+aiosqlite:///:memory:"

test_engine = create_async_engine(TEST_DB_URL, echo=False, poolclass=StaticPool)
TestSessionFactory = async_sessionmaker(
    test_engine, class_=AsyncSession, expire_on_commit=False
)

# ── Identities ────────────────────────────────────────────────────────

RIDER = "0x1111111111111111111111111111111111111111"
RIDER_2 = "0x2222222222222222222222222222222222222222"
DRIVER = "0xaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaa"
DRIVER_2 = "0xbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbb"
STRANGER = "0x9999999999999999999999999999999999999999"


def auth_headers(identity: str) -> dict:
    return {"Authorization": f"Bearer {create_access_token(identity)}"}


# ── Fixtures ──────────────────────────────────────────────────────────


@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create tables, yield a session, then drop everything."""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with TestSessionFactory() as session:
        yield session

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture
async def client() -> AsyncGenerator[AsyncClient, None]:
    """AsyncClient backed by SQLite; the relay worker is not started."""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    with (
        patch("ridescrow.workers.relay.start_relay_loop", new_callable=AsyncMock),
        patch("ridescrow.workers.relay.stop_relay_loop", new_callable=AsyncMock),
    ):

        async def _test_db():
            async with TestSessionFactory() as session:
                try:
                    yield session
                    await session.commit()
                except Exception:
                    await session.rollback()
                    raise

        async def _test_read_db():
            async with TestSessionFactory() as session:
                try:
                    yield session
                finally:
                    await session.rollback()

        from ridescrow.api.app import create_app
        from ridescrow.api.dependencies import get_db, get_read_db

        app = create_app()
        app.dependency_overrides[get_db] = _test_db
        app.dependency_overrides[get_read_db] = _test_read_db

        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            yield ac

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture
async def session_factory(db_session) -> async_sessionmaker:
    """Factory for extra sessions on the same in-memory database as ``db_session``."""
    return TestSessionFactory
