"""
Persistence-backed key store.

Owns the api_keys table. Every read is scoped by owner_id except
get_key_by_secret(), which credential validation needs owner-agnostic.
ORM rows are converted to the frozen ApiKeyRecord before leaving this
module; nothing above the store sees SQLAlchemy objects.

CONCURRENCY:
  consume_one_use() is a single conditional UPDATE:
      UPDATE api_keys
         SET remaining_uses = remaining_uses - 1, last_used_at = :now
       WHERE id = :id AND remaining_uses > 0
  The precondition is evaluated by the database at write time, so two
  callers racing on the last unit cannot both succeed, even across
  service instances. Never replace it with a SELECT followed by an UPDATE.

Not-found is a normal outcome (None / False). Backend errors surface as
StorageFailure via storage_operation().
"""

from __future__ import annotations

import datetime
import logging
import uuid
from dataclasses import dataclass

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.key_material import generate_api_key
from app.core.config import settings
from app.core.database import storage_operation
from app.models.api_key import ApiKey
from app.services import usage_ledger

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ApiKeyRecord:
    """Typed snapshot of one api_keys row. `secret` is unmasked."""

    id: uuid.UUID
    owner_id: str
    name: str
    secret: str
    created_at: datetime.datetime
    last_used_at: datetime.datetime | None
    usage_limit: int
    remaining_uses: int


def _as_utc(value: datetime.datetime | None) -> datetime.datetime | None:
    """Attach UTC to naive timestamps (SQLite drops the offset)."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=datetime.timezone.utc)


def _to_record(row: ApiKey) -> ApiKeyRecord:
    return ApiKeyRecord(
        id=row.id,
        owner_id=row.owner_id,
        name=row.name,
        secret=row.secret,
        created_at=_as_utc(row.created_at),  # type: ignore[arg-type]
        last_used_at=_as_utc(row.last_used_at),
        usage_limit=row.usage_limit,
        remaining_uses=row.remaining_uses,
    )


# ── Create ──────────────────────────────────────────────────
async def create_key(
    session: AsyncSession,
    owner_id: str,
    name: str,
) -> ApiKeyRecord:
    """Generate a secret and persist a key with a full quota."""
    row = ApiKey(
        owner_id=owner_id,
        name=name,
        secret=generate_api_key(),
        created_at=datetime.datetime.now(datetime.timezone.utc),
        usage_limit=settings.DEFAULT_USAGE_LIMIT,
        remaining_uses=settings.DEFAULT_USAGE_LIMIT,
    )
    async with storage_operation(session, "create_key"):
        session.add(row)
        await session.commit()
        await session.refresh(row)

    logger.info("API key %s created for owner %s", row.id, owner_id)
    return _to_record(row)


# ── Reads ───────────────────────────────────────────────────
async def list_keys(session: AsyncSession, owner_id: str) -> list[ApiKeyRecord]:
    """All keys of one owner, newest first."""
    stmt = (
        select(ApiKey)
        .where(ApiKey.owner_id == owner_id)
        .order_by(ApiKey.created_at.desc())
        .execution_options(populate_existing=True)
    )
    async with storage_operation(session, "list_keys"):
        rows = (await session.execute(stmt)).scalars().all()
    return [_to_record(row) for row in rows]


async def get_key_by_id(
    session: AsyncSession,
    key_id: uuid.UUID,
    owner_id: str,
) -> ApiKeyRecord | None:
    """
    Fetch one key of one owner, bypassing the identity map.

    populate_existing forces a re-read so quota checks see the value
    currently stored, not one cached earlier in the same session.
    """
    stmt = (
        select(ApiKey)
        .where(ApiKey.id == key_id, ApiKey.owner_id == owner_id)
        .execution_options(populate_existing=True)
    )
    async with storage_operation(session, "get_key_by_id", key_id):
        row = (await session.execute(stmt)).scalar_one_or_none()
    return _to_record(row) if row is not None else None


async def get_key_by_secret(
    session: AsyncSession,
    secret: str,
) -> ApiKeyRecord | None:
    """Owner-agnostic lookup, used by credential validation only."""
    stmt = select(ApiKey).where(ApiKey.secret == secret)
    async with storage_operation(session, "get_key_by_secret"):
        row = (await session.execute(stmt)).scalar_one_or_none()
    return _to_record(row) if row is not None else None


# ── Mutations ───────────────────────────────────────────────
async def rename_key(
    session: AsyncSession,
    key_id: uuid.UUID,
    owner_id: str,
    name: str,
) -> ApiKeyRecord | None:
    """Change the display name. Nothing else about a key is mutable."""
    stmt = (
        update(ApiKey)
        .where(ApiKey.id == key_id, ApiKey.owner_id == owner_id)
        .values(name=name)
        .execution_options(synchronize_session=False)
    )
    async with storage_operation(session, "rename_key", key_id):
        result = await session.execute(stmt)
        await session.commit()

    if result.rowcount == 0:
        return None
    return await get_key_by_id(session, key_id, owner_id)


async def delete_key(
    session: AsyncSession,
    key_id: uuid.UUID,
    owner_id: str,
) -> bool:
    """
    Delete a key and all of its usage events.

    Two steps: events first, then the key row. If the second step fails
    the key survives without history; deleting again completes the job.
    Returns False when the key does not exist for this owner.
    """
    owned = select(ApiKey.id).where(ApiKey.id == key_id, ApiKey.owner_id == owner_id)
    async with storage_operation(session, "delete_key", key_id):
        if (await session.execute(owned)).scalar_one_or_none() is None:
            return False

    await usage_ledger.delete_for_key(session, key_id)

    stmt = (
        delete(ApiKey)
        .where(ApiKey.id == key_id, ApiKey.owner_id == owner_id)
        .execution_options(synchronize_session=False)
    )
    async with storage_operation(session, "delete_key", key_id):
        result = await session.execute(stmt)
        await session.commit()

    deleted = result.rowcount > 0
    if deleted:
        logger.info("API key %s deleted for owner %s", key_id, owner_id)
    return deleted


async def consume_one_use(session: AsyncSession, key_id: uuid.UUID) -> bool:
    """
    Atomically spend one unit of quota and stamp last_used_at.

    Returns False when the key is missing or already at zero, including
    when a concurrent caller took the last unit first.
    """
    stmt = (
        update(ApiKey)
        .where(ApiKey.id == key_id, ApiKey.remaining_uses > 0)
        .values(
            remaining_uses=ApiKey.remaining_uses - 1,
            last_used_at=datetime.datetime.now(datetime.timezone.utc),
        )
        .execution_options(synchronize_session=False)
    )
    async with storage_operation(session, "consume_one_use", key_id):
        result = await session.execute(stmt)
        await session.commit()

    return result.rowcount == 1
