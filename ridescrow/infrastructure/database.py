"""
Async SQLAlchemy engines and session factories.

Two factories share one schema:

* ``async_session_factory`` -- the primary ledger; every write goes here.
* ``read_session_factory``  -- the public read mirror (``database_read_url``),
  which is the primary itself unless a replica is configured.
"""

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from ridescrow.config import settings

engine = create_async_engine(
    settings.database_url,
    echo=False,
    pool_pre_ping=True,
)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

if settings.database_read_url and settings.database_read_url != settings.database_url:
    read_engine = create_async_engine(
        settings.database_read_url,
        echo=False,
        pool_pre_ping=True,
    )
else:
    read_engine = engine

read_session_factory = async_sessionmaker(
    read_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """Shared declarative base for all ORM models."""


async def init_db() -> None:
    """Create all tables and the ride counter (development only; production uses Alembic)."""
    from . import models  # noqa: F401  registers tables on Base.metadata
    from .repositories import CounterRepository

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with async_session_factory() as session:
        await CounterRepository(session).ensure()
        await session.commit()
