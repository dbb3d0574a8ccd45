"""
Tests for the acquisition paths that only trigger when the store misbehaves
or another process interleaves with an expired-lock takeover.
"""

from __future__ import annotations

import json

import pytest

from kvlock.core.errors import LockConsistencyError
from kvlock.core.models import decode_version
from kvlock.core.store import InMemoryKeyValueStore
from kvlock.core.versioned_lock import VersionedLock
from kvlock.services.audit_logger import AuditLogger


KEY = "lock:ledger"


class FlakyStore(InMemoryKeyValueStore):
    """In-memory store with switches that inject failures or competing writes."""

    def __init__(self, *, clock) -> None:
        super().__init__(clock=clock)
        self.expire_failures = 0
        self.fail_delete = False
        self.vanish_after_failed_set = False
        self.vanish_before_swap = False
        self.competitor_swap: str | None = None
        self.competitor_after_expire_failure: str | None = None

    async def set_if_absent(self, key, value, ttl_seconds):
        ok = await super().set_if_absent(key, value, ttl_seconds)
        if not ok and self.vanish_after_failed_set:
            self.vanish_after_failed_set = False
            await super().delete(key)
        return ok

    async def get_and_replace(self, key, value):
        if self.vanish_before_swap:
            self.vanish_before_swap = False
            await super().delete(key)
        if self.competitor_swap is not None:
            competitor, self.competitor_swap = self.competitor_swap, None
            await super().get_and_replace(key, competitor)
        return await super().get_and_replace(key, value)

    async def set_expire(self, key, ttl_seconds):
        if self.expire_failures > 0:
            self.expire_failures -= 1
            if self.competitor_after_expire_failure is not None:
                competitor, self.competitor_after_expire_failure = self.competitor_after_expire_failure, None
                await super().get_and_replace(key, competitor)
            return False
        return await super().set_expire(key, ttl_seconds)

    async def delete(self, key):
        if self.fail_delete:
            return False
        return await super().delete(key)


@pytest.fixture
def flaky(clock) -> FlakyStore:
    return FlakyStore(clock=clock)


async def expired_claim(store, clock) -> VersionedLock:
    """Leave behind a claim whose token has lapsed while the key is still live."""
    stale = VersionedLock(store, KEY, 10, 1000, clock=clock)
    assert await stale.acquire() is True
    clock.advance(1500)
    return VersionedLock(store, KEY, 10, 1000, clock=clock)


@pytest.mark.asyncio
async def test_key_vanishing_before_read_retries_create(flaky, clock):
    holder = VersionedLock(flaky, KEY, 10, 1000, clock=clock)
    contender = VersionedLock(flaky, KEY, 10, 1000, clock=clock)
    assert await holder.acquire() is True
    flaky.vanish_after_failed_set = True

    assert await contender.acquire() is True
    assert await flaky.ttl_ms(KEY) == 10_000
    assert await contender.check() is True


@pytest.mark.asyncio
async def test_key_vanishing_before_swap_falls_back_to_create(flaky, clock):
    contender = await expired_claim(flaky, clock)
    flaky.vanish_before_swap = True

    # The swap itself recreated the key, so the fallback create loses.
    assert await contender.acquire() is False


@pytest.mark.asyncio
async def test_losing_the_swap_race_fails(flaky, clock):
    contender = await expired_claim(flaky, clock)
    flaky.competitor_swap = str(clock.now + 5000)

    assert await contender.acquire() is False


@pytest.mark.asyncio
async def test_expire_retry_succeeds(flaky, clock):
    contender = await expired_claim(flaky, clock)
    flaky.expire_failures = 1

    assert await contender.acquire() is True
    assert await flaky.ttl_ms(KEY) == 10_000
    assert await contender.check() is True


@pytest.mark.asyncio
async def test_expire_failure_then_capture_fails(flaky, clock):
    contender = await expired_claim(flaky, clock)
    flaky.expire_failures = 1
    flaky.competitor_after_expire_failure = str(clock.now + 7000)

    assert await contender.acquire() is False
    assert await flaky.get(KEY) == str(clock.now + 7000)


@pytest.mark.asyncio
async def test_unrenewable_lock_is_released_and_recreated(flaky, clock):
    contender = await expired_claim(flaky, clock)
    flaky.expire_failures = 2

    assert await contender.acquire() is True
    assert decode_version(await flaky.get(KEY)) == contender.version
    assert await flaky.ttl_ms(KEY) == 10_000


@pytest.mark.asyncio
async def test_unreleasable_lock_raises(flaky, clock, tmp_path):
    audit = AuditLogger(tmp_path / "audit.log")
    stale = VersionedLock(flaky, KEY, 10, 1000, clock=clock)
    assert await stale.acquire() is True
    clock.advance(1500)
    contender = VersionedLock(flaky, KEY, 10, 1000, clock=clock, audit_logger=audit)
    flaky.expire_failures = 2
    flaky.fail_delete = True

    with pytest.raises(LockConsistencyError) as excinfo:
        await contender.acquire()
    assert excinfo.value.key == KEY

    # try_lock must not hide it either.
    flaky.expire_failures = 2
    clock.advance(1500)
    with pytest.raises(LockConsistencyError):
        await contender.try_lock()

    events = [json.loads(line)["event"] for line in audit.path.read_text().splitlines()]
    assert events == ["lock.consistency_error", "lock.consistency_error"]


@pytest.mark.asyncio
async def test_unwritable_audit_trail_does_not_change_outcomes(flaky, clock, tmp_path):
    # A directory cannot be opened for appending.
    audit = AuditLogger(tmp_path)
    lock = VersionedLock(flaky, KEY, 10, 1000, clock=clock, audit_logger=audit)

    assert await lock.acquire() is True
    assert await lock.check() is True
    assert await lock.heartbeat() is True
    assert await lock.unlock() is True
    assert await flaky.get(KEY) is None
    assert await lock.heartbeat() is False


@pytest.mark.asyncio
async def test_unwritable_audit_trail_keeps_consistency_error(flaky, clock, tmp_path):
    stale = VersionedLock(flaky, KEY, 10, 1000, clock=clock)
    assert await stale.acquire() is True
    clock.advance(1500)
    contender = VersionedLock(flaky, KEY, 10, 1000, clock=clock, audit_logger=AuditLogger(tmp_path))
    flaky.expire_failures = 2
    flaky.fail_delete = True

    with pytest.raises(LockConsistencyError):
        await contender.acquire()
