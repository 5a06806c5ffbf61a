"""
Quota gate for protected API calls.

Flow per request:
  1. Resolve   : look the key up by the presented secret.
  2. Refresh   : re-read it by id for a current remaining_uses.
  3. Integrity : the refreshed secret must equal the presented one.
  4. Quota     : remaining_uses > 0.
  5. Consume   : atomic conditional decrement (key_store.consume_one_use).
  6. Proceed   : caller runs its own work.
  7. Record    : exactly one usage event, success or failure, always.

Early exits (Unauthorized, QuotaExceeded, IntegrityViolation) happen
before any unit is spent and therefore record nothing.

Usage in routers:
    async with guarded_call(session, secret) as grant:
        ...  # downstream work; an exception records success=False
"""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import IntegrityViolation, QuotaExceeded, Unauthorized
from app.services import key_store, usage_ledger

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class QuotaGrant:
    """Proof that one quota unit was spent for this request.

    Attributes:
        key_id:         Key the unit was taken from.
        remaining_uses: Units left after this consumption.
        usage_limit:    The key's quota ceiling.
    """

    key_id: uuid.UUID
    remaining_uses: int
    usage_limit: int


async def validate_key(session: AsyncSession, secret: str) -> bool:
    """Existence check by secret. Does not consume quota."""
    record = await key_store.get_key_by_secret(session, secret)
    if record is None:
        logger.debug("API key validation failed: key not found")
        return False
    logger.debug("API key validated successfully: %s", record.id)
    return True


async def validate_and_consume(session: AsyncSession, secret: str) -> QuotaGrant:
    """
    Steps 1-5: resolve the secret and spend one unit.

    Raises:
        Unauthorized:       Unknown secret, or key removed between steps.
        IntegrityViolation: Refreshed record carries a different secret.
        QuotaExceeded:      No units left (or the last one was lost to a race).
    """
    # ── 1. Resolve ──────────────────────────────────────────
    resolved = await key_store.get_key_by_secret(session, secret)
    if resolved is None:
        raise Unauthorized("Invalid API key")

    # ── 2. Refresh ──────────────────────────────────────────
    fresh = await key_store.get_key_by_id(session, resolved.id, resolved.owner_id)
    if fresh is None:
        raise Unauthorized("API key not found")

    # ── 3. Integrity ────────────────────────────────────────
    if fresh.secret != secret:
        logger.critical("API key integrity violation: secret mismatch for key %s", fresh.id)
        raise IntegrityViolation("API key validation error")

    # ── 4. Quota ────────────────────────────────────────────
    if fresh.remaining_uses <= 0:
        raise QuotaExceeded(fresh.remaining_uses, fresh.usage_limit)

    # ── 5. Consume ──────────────────────────────────────────
    if not await key_store.consume_one_use(session, fresh.id):
        logger.info("Quota consumption lost for key %s", fresh.id)
        raise QuotaExceeded(0, fresh.usage_limit)

    return QuotaGrant(
        key_id=fresh.id,
        remaining_uses=fresh.remaining_uses - 1,
        usage_limit=fresh.usage_limit,
    )


async def record_outcome(
    session: AsyncSession,
    grant: QuotaGrant,
    success: bool,
    response_time_ms: int | None = None,
) -> None:
    """Step 7: append the usage event owed for a spent unit. Never raises."""
    await usage_ledger.append_usage(
        session,
        grant.key_id,
        response_time_ms=response_time_ms,
        success=success,
    )


@asynccontextmanager
async def guarded_call(session: AsyncSession, secret: str) -> AsyncIterator[QuotaGrant]:
    """
    Spend one unit, run the caller's block, then record its outcome.

    The usage event is written in `finally`, so a failing block still
    leaves a success=False entry for the unit it consumed. The block's
    exception propagates unchanged.
    """
    grant = await validate_and_consume(session, secret)
    started = time.perf_counter()
    success = False
    try:
        yield grant
        success = True
    finally:
        elapsed_ms = int((time.perf_counter() - started) * 1000)
        if not success:
            # Drop anything the failed block left pending on the session.
            try:
                await session.rollback()
            except Exception:
                logger.exception("Rollback before recording failed usage failed")
        await record_outcome(session, grant, success, elapsed_ms)
