"""
Async database engine, session factory, and ORM base.

Rules enforced:
  • Every DB call goes through AsyncSession (no sync, no raw SQL).
  • Sessions are request-scoped via FastAPI's Depends(get_db_session).
  • Backend errors are converted to StorageFailure at the store boundary
    by storage_operation(); callers never see SQLAlchemy exceptions.
"""

import asyncio
import logging
import uuid
from collections.abc import AsyncGenerator, AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from app.core.config import settings
from app.core.errors import StorageFailure

logger = logging.getLogger(__name__)

# asyncpg raises OSError / TimeoutError on connect without SQLAlchemy wrapping
_BACKEND_ERRORS = (SQLAlchemyError, OSError, asyncio.TimeoutError)

# ── Engine ──────────────────────────────────────────────────
# pool_pre_ping: drop stale connections before reuse
# echo: SQL logging, only in debug mode
engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    pool_pre_ping=True,
)

# ── Session factory ─────────────────────────────────────────
async_session_factory = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,  # avoid lazy-load issues after commit
)


# ── ORM Base ────────────────────────────────────────────────
class Base(DeclarativeBase):
    """Shared declarative base for all SQLAlchemy models."""


# ── Dependency ──────────────────────────────────────────────
async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Yield a scoped async session for one request.

    The session is committed by the store functions;
    this generator only guarantees cleanup on exit.
    """
    async with async_session_factory() as session:
        try:
            yield session
        finally:
            await session.close()


# ── Error boundary ──────────────────────────────────────────
@asynccontextmanager
async def storage_operation(
    session: AsyncSession,
    operation: str,
    key_id: uuid.UUID | None = None,
) -> AsyncIterator[None]:
    """
    Run a block of store calls, translating backend errors.

    Any SQLAlchemyError, or a driver connectivity error the dialect
    does not wrap (refused connection, timeout), rolls the session back,
    is logged with the operation name and key id, and is re-raised as
    StorageFailure.
    """
    try:
        yield
    except _BACKEND_ERRORS as exc:
        try:
            await session.rollback()
        except _BACKEND_ERRORS:
            logger.warning("Rollback after storage failure during %s also failed", operation)
        logger.exception("Storage failure during %s (key_id=%s)", operation, key_id)
        raise StorageFailure(operation, key_id) from exc
