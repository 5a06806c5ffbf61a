"""
Append-only usage ledger over the api_usage table.

append_usage() is best-effort telemetry: a failed insert is logged and
swallowed so it can never fail or roll back the request that spent the
quota. That is also why count_for_key() (ledger rows) and a key's
remaining_uses (decremented quota) are tracked independently and may drift.
"""

from __future__ import annotations

import datetime
import logging
import uuid
from dataclasses import dataclass

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import storage_operation
from app.models.usage import UsageEvent

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class UsageRecord:
    """Typed snapshot of one api_usage row."""

    key_id: uuid.UUID
    timestamp: datetime.datetime
    response_time_ms: int | None
    success: bool


async def append_usage(
    session: AsyncSession,
    key_id: uuid.UUID,
    response_time_ms: int | None = None,
    success: bool = True,
) -> None:
    """Record one call. Never raises."""
    try:
        session.add(
            UsageEvent(
                key_id=key_id,
                timestamp=datetime.datetime.now(datetime.timezone.utc),
                response_time_ms=response_time_ms,
                success=success,
            )
        )
        await session.commit()
    except Exception:
        logger.exception("Failed to record API usage for key %s", key_id)
        try:
            await session.rollback()
        except Exception:
            logger.exception("Rollback after failed usage append also failed")


async def count_for_key(session: AsyncSession, key_id: uuid.UUID) -> int:
    """Exact number of ledger rows for one key."""
    stmt = select(func.count()).select_from(UsageEvent).where(UsageEvent.key_id == key_id)
    async with storage_operation(session, "count_for_key", key_id):
        return (await session.execute(stmt)).scalar_one()


async def query_all(
    session: AsyncSession,
    since: datetime.datetime | None = None,
) -> list[UsageRecord]:
    """All events (optionally at or after `since`), oldest first."""
    stmt = select(UsageEvent).order_by(UsageEvent.timestamp.asc())
    if since is not None:
        stmt = stmt.where(UsageEvent.timestamp >= since)

    async with storage_operation(session, "query_usage"):
        rows = (await session.execute(stmt)).scalars().all()

    return [
        UsageRecord(
            key_id=row.key_id,
            timestamp=(
                row.timestamp
                if row.timestamp.tzinfo is not None
                else row.timestamp.replace(tzinfo=datetime.timezone.utc)
            ),
            response_time_ms=row.response_time_ms,
            success=row.success,
        )
        for row in rows
    ]


async def delete_for_key(session: AsyncSession, key_id: uuid.UUID) -> None:
    """Remove every event of one key."""
    stmt = (
        delete(UsageEvent)
        .where(UsageEvent.key_id == key_id)
        .execution_options(synchronize_session=False)
    )
    async with storage_operation(session, "delete_usage_for_key", key_id):
        await session.execute(stmt)
        await session.commit()
