"""
Shared fixtures.

Every test gets its own file-backed SQLite database (aiosqlite) with the
real schema, so conditional UPDATEs and concurrent sessions run against
an actual SQL engine instead of mocks.
"""

import datetime
import os

# Settings are read at import time, before any app module is loaded.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import pytest
import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.core.database import Base
from app.models.api_key import ApiKey  # noqa: F401
from app.models.usage import UsageEvent


def _begin_immediate(engine):
    # Writers queue on the busy timeout instead of failing lock upgrades.
    @event.listens_for(engine.sync_engine, "connect")
    def _connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


@pytest_asyncio.fixture
async def db_engine(tmp_path):
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'keys.db'}",
        connect_args={"timeout": 30},
    )
    _begin_immediate(engine)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def broken_engine(tmp_path):
    """Engine pointing at a database with no tables, so every query fails."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'empty.db'}")
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def unreachable_session():
    """Session on a PostgreSQL URL where nothing listens; connecting is refused."""
    engine = create_async_engine("postgresql+asyncpg://u:p@127.0.0.1:1/db")
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        yield session
    await engine.dispose()


@pytest_asyncio.fixture
async def broken_session(broken_engine):
    factory = async_sessionmaker(broken_engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        yield session


@pytest.fixture
def add_usage(session):
    """Insert a usage event with an explicit timestamp."""

    async def _add(key_id, timestamp=None, response_time_ms=None, success=True):
        session.add(
            UsageEvent(
                key_id=key_id,
                timestamp=timestamp or datetime.datetime.now(datetime.timezone.utc),
                response_time_ms=response_time_ms,
                success=success,
            )
        )
        await session.commit()

    return _add
