"""Tests for the quota gate around protected calls."""

import dataclasses
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import select, update

from app.core.errors import IntegrityViolation, QuotaExceeded, Unauthorized
from app.models.api_key import ApiKey
from app.models.usage import UsageEvent
from app.services import key_store, quota_guard, usage_ledger


async def _events(session):
    return (await session.execute(select(UsageEvent))).scalars().all()


class TestValidateKey:
    """validate_key is a pure existence check."""

    @pytest.mark.asyncio
    async def test_known_key_is_valid_and_not_consumed(self, session):
        record = await key_store.create_key(session, "user-1", "k")

        assert await quota_guard.validate_key(session, record.secret) is True

        fresh = await key_store.get_key_by_id(session, record.id, "user-1")
        assert fresh.remaining_uses == 1000
        assert await usage_ledger.count_for_key(session, record.id) == 0

    @pytest.mark.asyncio
    async def test_unknown_key_is_invalid(self, session):
        assert await quota_guard.validate_key(session, "sk_live_nope") is False


class TestValidateAndConsume:
    """Resolve, refresh, integrity, quota and consume steps."""

    @pytest.mark.asyncio
    async def test_unknown_secret_is_unauthorized_and_records_nothing(self, session):
        with pytest.raises(Unauthorized):
            async with quota_guard.guarded_call(session, "sk_live_doesnotexist"):
                pytest.fail("block must not run")

        assert await _events(session) == []

    @pytest.mark.asyncio
    async def test_happy_path_spends_one_unit(self, session):
        record = await key_store.create_key(session, "user-1", "k")

        grant = await quota_guard.validate_and_consume(session, record.secret)

        assert grant.key_id == record.id
        assert grant.remaining_uses == 999
        assert grant.usage_limit == 1000
        fresh = await key_store.get_key_by_id(session, record.id, "user-1")
        assert fresh.remaining_uses == 999

    @pytest.mark.asyncio
    async def test_exhausted_key_raises_quota_exceeded(self, session):
        record = await key_store.create_key(session, "user-1", "k")
        await session.execute(
            update(ApiKey).where(ApiKey.id == record.id).values(remaining_uses=0)
        )
        await session.commit()

        with pytest.raises(QuotaExceeded) as exc_info:
            async with quota_guard.guarded_call(session, record.secret):
                pytest.fail("block must not run")

        assert exc_info.value.remaining_uses == 0
        assert exc_info.value.usage_limit == 1000
        assert await _events(session) == []

    @pytest.mark.asyncio
    async def test_key_removed_between_steps_is_unauthorized(self, session):
        record = await key_store.create_key(session, "user-1", "k")

        with patch.object(key_store, "get_key_by_id", new=AsyncMock(return_value=None)):
            with pytest.raises(Unauthorized):
                await quota_guard.validate_and_consume(session, record.secret)

    @pytest.mark.asyncio
    async def test_secret_mismatch_is_integrity_violation(self, session):
        record = await key_store.create_key(session, "user-1", "k")
        tampered = dataclasses.replace(record, secret="sk_live_other")

        with patch.object(key_store, "get_key_by_id", new=AsyncMock(return_value=tampered)):
            with pytest.raises(IntegrityViolation):
                await quota_guard.validate_and_consume(session, record.secret)

        fresh = await key_store.get_key_by_id(session, record.id, "user-1")
        assert fresh.remaining_uses == 1000

    @pytest.mark.asyncio
    async def test_lost_race_reports_zero_remaining(self, session):
        record = await key_store.create_key(session, "user-1", "k")

        with patch.object(key_store, "consume_one_use", new=AsyncMock(return_value=False)):
            with pytest.raises(QuotaExceeded) as exc_info:
                await quota_guard.validate_and_consume(session, record.secret)

        assert exc_info.value.remaining_uses == 0
        assert exc_info.value.usage_limit == 1000


class TestGuardedCall:
    """Every spent unit leaves exactly one usage event."""

    @pytest.mark.asyncio
    async def test_success_records_one_successful_event(self, session):
        record = await key_store.create_key(session, "user-1", "k")

        async with quota_guard.guarded_call(session, record.secret) as grant:
            assert grant.remaining_uses == 999

        [event] = await _events(session)
        assert event.key_id == record.id
        assert event.success is True
        assert event.response_time_ms is not None
        assert event.response_time_ms >= 0

    @pytest.mark.asyncio
    async def test_failing_block_records_failure_and_reraises(self, session):
        record = await key_store.create_key(session, "user-1", "k")

        with pytest.raises(RuntimeError, match="downstream"):
            async with quota_guard.guarded_call(session, record.secret):
                raise RuntimeError("downstream broke")

        [event] = await _events(session)
        assert event.success is False
        fresh = await key_store.get_key_by_id(session, record.id, "user-1")
        assert fresh.remaining_uses == 999

    @pytest.mark.asyncio
    async def test_consecutive_calls_decrement_each_time(self, session):
        record = await key_store.create_key(session, "user-1", "k")

        for _ in range(3):
            async with quota_guard.guarded_call(session, record.secret):
                pass

        fresh = await key_store.get_key_by_id(session, record.id, "user-1")
        assert fresh.remaining_uses == 997
        assert await usage_ledger.count_for_key(session, record.id) == 3
