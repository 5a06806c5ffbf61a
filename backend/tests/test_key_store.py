"""Tests for the persistence-backed key store."""

import asyncio
import datetime
import re
import uuid

import pytest
from sqlalchemy import update

from app.core.errors import StorageFailure
from app.models.api_key import ApiKey
from app.services import key_store, usage_ledger


async def _set_remaining(session, key_id, remaining):
    await session.execute(
        update(ApiKey).where(ApiKey.id == key_id).values(remaining_uses=remaining)
    )
    await session.commit()


class TestCreateKey:
    """Tests for create_key."""

    @pytest.mark.asyncio
    async def test_creates_key_with_full_quota(self, session):
        record = await key_store.create_key(session, "user-1", "test")

        assert record.name == "test"
        assert record.owner_id == "user-1"
        assert record.usage_limit == 1000
        assert record.remaining_uses == 1000
        assert record.last_used_at is None
        assert record.created_at.tzinfo is not None
        assert re.fullmatch(r"sk_live_[0-9a-f]{64}", record.secret)

    @pytest.mark.asyncio
    async def test_secrets_are_distinct(self, session):
        first = await key_store.create_key(session, "user-1", "a")
        second = await key_store.create_key(session, "user-1", "b")
        assert first.secret != second.secret
        assert first.id != second.id


class TestReads:
    """Tests for list_keys, get_key_by_id and get_key_by_secret."""

    @pytest.mark.asyncio
    async def test_list_is_newest_first_and_owner_scoped(self, session):
        older = await key_store.create_key(session, "user-1", "older")
        newer = await key_store.create_key(session, "user-1", "newer")
        await key_store.create_key(session, "user-2", "someone else")

        await session.execute(
            update(ApiKey)
            .where(ApiKey.id == older.id)
            .values(created_at=newer.created_at - datetime.timedelta(hours=1))
        )
        await session.commit()

        records = await key_store.list_keys(session, "user-1")
        assert [r.name for r in records] == ["newer", "older"]

    @pytest.mark.asyncio
    async def test_list_empty_for_unknown_owner(self, session):
        assert await key_store.list_keys(session, "nobody") == []

    @pytest.mark.asyncio
    async def test_get_by_id_respects_owner(self, session):
        record = await key_store.create_key(session, "user-1", "mine")

        assert (await key_store.get_key_by_id(session, record.id, "user-1")) == record
        assert await key_store.get_key_by_id(session, record.id, "user-2") is None
        assert await key_store.get_key_by_id(session, uuid.uuid4(), "user-1") is None

    @pytest.mark.asyncio
    async def test_get_by_secret_is_owner_agnostic(self, session):
        record = await key_store.create_key(session, "user-1", "mine")

        found = await key_store.get_key_by_secret(session, record.secret)
        assert found is not None
        assert found.id == record.id
        assert await key_store.get_key_by_secret(session, "sk_live_unknown") is None

    @pytest.mark.asyncio
    async def test_get_by_id_sees_fresh_remaining_uses(self, session):
        record = await key_store.create_key(session, "user-1", "mine")
        await key_store.get_key_by_id(session, record.id, "user-1")
        await key_store.consume_one_use(session, record.id)

        fresh = await key_store.get_key_by_id(session, record.id, "user-1")
        assert fresh.remaining_uses == 999
        assert fresh.last_used_at is not None


class TestRenameKey:
    """Tests for rename_key."""

    @pytest.mark.asyncio
    async def test_only_name_changes(self, session):
        record = await key_store.create_key(session, "user-1", "before")

        renamed = await key_store.rename_key(session, record.id, "user-1", "after")

        assert renamed.name == "after"
        assert renamed.secret == record.secret
        assert renamed.remaining_uses == record.remaining_uses
        assert renamed.created_at == record.created_at

    @pytest.mark.asyncio
    async def test_other_owner_gets_none(self, session):
        record = await key_store.create_key(session, "user-1", "before")

        assert await key_store.rename_key(session, record.id, "user-2", "hijack") is None
        unchanged = await key_store.get_key_by_id(session, record.id, "user-1")
        assert unchanged.name == "before"


class TestDeleteKey:
    """Tests for delete_key."""

    @pytest.mark.asyncio
    async def test_deletes_key_and_usage_events(self, session, add_usage):
        record = await key_store.create_key(session, "user-1", "doomed")
        for _ in range(5):
            await add_usage(record.id)
        assert await usage_ledger.count_for_key(session, record.id) == 5

        assert await key_store.delete_key(session, record.id, "user-1") is True

        assert await usage_ledger.count_for_key(session, record.id) == 0
        assert await key_store.get_key_by_id(session, record.id, "user-1") is None

    @pytest.mark.asyncio
    async def test_other_owner_cannot_delete(self, session, add_usage):
        record = await key_store.create_key(session, "user-1", "kept")
        await add_usage(record.id)

        assert await key_store.delete_key(session, record.id, "user-2") is False

        assert await key_store.get_key_by_id(session, record.id, "user-1") is not None
        assert await usage_ledger.count_for_key(session, record.id) == 1

    @pytest.mark.asyncio
    async def test_missing_key_returns_false(self, session):
        assert await key_store.delete_key(session, uuid.uuid4(), "user-1") is False


class TestConsumeOneUse:
    """Tests for the atomic quota decrement."""

    @pytest.mark.asyncio
    async def test_consumes_full_quota_then_refuses(self, session):
        record = await key_store.create_key(session, "user-1", "busy")

        for _ in range(999):
            assert await key_store.consume_one_use(session, record.id) is True

        assert await key_store.consume_one_use(session, record.id) is True
        fresh = await key_store.get_key_by_id(session, record.id, "user-1")
        assert fresh.remaining_uses == 0

        assert await key_store.consume_one_use(session, record.id) is False

    @pytest.mark.asyncio
    async def test_zero_quota_never_goes_negative(self, session):
        record = await key_store.create_key(session, "user-1", "empty")
        await _set_remaining(session, record.id, 0)

        for _ in range(3):
            assert await key_store.consume_one_use(session, record.id) is False

        fresh = await key_store.get_key_by_id(session, record.id, "user-1")
        assert fresh.remaining_uses == 0
        assert fresh.last_used_at is None

    @pytest.mark.asyncio
    async def test_unknown_key_returns_false(self, session):
        assert await key_store.consume_one_use(session, uuid.uuid4()) is False

    @pytest.mark.asyncio
    async def test_two_racers_on_last_unit_exactly_one_wins(self, session, session_factory):
        record = await key_store.create_key(session, "user-1", "race")
        await _set_remaining(session, record.id, 1)

        async def consume():
            async with session_factory() as own_session:
                return await key_store.consume_one_use(own_session, record.id)

        results = await asyncio.gather(consume(), consume())

        assert sorted(results) == [False, True]
        fresh = await key_store.get_key_by_id(session, record.id, "user-1")
        assert fresh.remaining_uses == 0

    @pytest.mark.asyncio
    async def test_concurrent_consumers_never_exceed_quota(self, session, session_factory):
        record = await key_store.create_key(session, "user-1", "crowd")
        await _set_remaining(session, record.id, 5)

        async def consume():
            async with session_factory() as own_session:
                return await key_store.consume_one_use(own_session, record.id)

        results = await asyncio.gather(*(consume() for _ in range(20)))

        assert results.count(True) == 5
        fresh = await key_store.get_key_by_id(session, record.id, "user-1")
        assert fresh.remaining_uses == 0


class TestStorageFailure:
    """Backend errors surface as StorageFailure, not as not-found."""

    @pytest.mark.asyncio
    async def test_read_failure_is_not_conflated_with_not_found(self, broken_session):
        with pytest.raises(StorageFailure) as exc_info:
            await key_store.get_key_by_secret(broken_session, "sk_live_x")
        assert exc_info.value.operation == "get_key_by_secret"

    @pytest.mark.asyncio
    async def test_consume_failure_carries_key_id(self, broken_session):
        key_id = uuid.uuid4()
        with pytest.raises(StorageFailure) as exc_info:
            await key_store.consume_one_use(broken_session, key_id)
        assert exc_info.value.key_id == key_id

    @pytest.mark.asyncio
    async def test_refused_connection_is_storage_failure(self, unreachable_session):
        key_id = uuid.uuid4()
        with pytest.raises(StorageFailure) as exc_info:
            await key_store.get_key_by_id(unreachable_session, key_id, "user-1")
        assert exc_info.value.operation == "get_key_by_id"
        assert isinstance(exc_info.value.__cause__, OSError)
