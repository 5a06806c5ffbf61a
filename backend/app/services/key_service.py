"""
Dashboard-facing key lifecycle, scoped to one owner.

Masking policy:
  • create_key  → raw secret (shown to the user once).
  • reveal_key  → raw secret (deliberate call).
  • everything else → masked via mask_api_key().
Keeping reveal a separate function means an unmasked secret can never
leak through an ordinary read by accident.
"""

from __future__ import annotations

import logging
import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.masking import mask_api_key
from app.core.config import settings
from app.core.errors import NotFound, ValidationError
from app.schemas.api_key import ApiKeyCreatedOut, ApiKeyOut, ApiKeyRevealOut
from app.services import key_store, usage_ledger
from app.services.key_store import ApiKeyRecord

logger = logging.getLogger(__name__)


def _clean_name(name: object) -> str:
    """Trim and validate a display name before any storage write."""
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("Name is required and must be a non-empty string")
    cleaned = name.strip()
    if len(cleaned) > settings.KEY_NAME_MAX_LENGTH:
        raise ValidationError(
            f"Name must be at most {settings.KEY_NAME_MAX_LENGTH} characters"
        )
    return cleaned


async def _masked(session: AsyncSession, record: ApiKeyRecord) -> ApiKeyOut:
    return ApiKeyOut(
        id=record.id,
        name=record.name,
        secret=mask_api_key(record.secret),
        created_at=record.created_at,
        last_used_at=record.last_used_at,
        usage_limit=record.usage_limit,
        remaining_uses=record.remaining_uses,
        actual_usage=await usage_ledger.count_for_key(session, record.id),
    )


async def create_key(session: AsyncSession, owner_id: str, name: object) -> ApiKeyCreatedOut:
    record = await key_store.create_key(session, owner_id, _clean_name(name))
    return ApiKeyCreatedOut(
        id=record.id,
        name=record.name,
        secret=record.secret,
        created_at=record.created_at,
        last_used_at=record.last_used_at,
        usage_limit=record.usage_limit,
        remaining_uses=record.remaining_uses,
    )


async def list_keys(session: AsyncSession, owner_id: str) -> list[ApiKeyOut]:
    records = await key_store.list_keys(session, owner_id)
    return [await _masked(session, record) for record in records]


async def get_key(session: AsyncSession, key_id: uuid.UUID, owner_id: str) -> ApiKeyOut:
    record = await key_store.get_key_by_id(session, key_id, owner_id)
    if record is None:
        raise NotFound("API key not found")
    return await _masked(session, record)


async def reveal_key(session: AsyncSession, key_id: uuid.UUID, owner_id: str) -> ApiKeyRevealOut:
    record = await key_store.get_key_by_id(session, key_id, owner_id)
    if record is None:
        raise NotFound("API key not found")
    logger.info("API key %s revealed for owner %s", key_id, owner_id)
    return ApiKeyRevealOut(id=record.id, secret=record.secret)


async def rename_key(
    session: AsyncSession,
    key_id: uuid.UUID,
    owner_id: str,
    name: object,
) -> ApiKeyOut:
    cleaned = _clean_name(name)
    record = await key_store.rename_key(session, key_id, owner_id, cleaned)
    if record is None:
        raise NotFound("API key not found")
    return await _masked(session, record)


async def delete_key(session: AsyncSession, key_id: uuid.UUID, owner_id: str) -> None:
    """Raises NotFound when there was nothing to delete."""
    if not await key_store.delete_key(session, key_id, owner_id):
        raise NotFound("API key not found")
