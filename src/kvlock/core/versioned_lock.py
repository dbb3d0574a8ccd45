"""Versioned (fencing-token) lock on top of a key-value store with per-key TTL.

The stored value is the instant, in epoch milliseconds, until which the
current holder claims the lock: ``now + heartbeat_ms + 1``. A handle owns the
lock while the stored value equals the token it last wrote and that instant is
still in the future. The store TTL (``timeout_seconds``) is the backstop for
holders that crash without releasing.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from kvlock.core.errors import LockConsistencyError
from kvlock.core.locks import DistributedLock, LockManager
from kvlock.core.models import Clock, LockConfig, current_millis, decode_version, encode_version
from kvlock.core.settings import LockSettings
from kvlock.core.store import KeyValueStore
from kvlock.core.store_redis import RedisKeyValueStore
from kvlock.services.audit_logger import AuditLogger
from kvlock.utils.logging import get_logger


class VersionedLock(DistributedLock):
    """Lock handle driven by its owner only; not shared between tasks."""

    def __init__(
        self,
        store: KeyValueStore,
        key: str,
        timeout_seconds: int,
        heartbeat_ms: Optional[int] = None,
        fast_fail: Optional[bool] = None,
        *,
        clock: Clock = current_millis,
        audit_logger: Optional[AuditLogger] = None,
    ) -> None:
        super().__init__()
        self.config = LockConfig.build(key, timeout_seconds, heartbeat_ms, fast_fail)
        self.version = 0
        self._store = store
        self._clock = clock
        self._audit = audit_logger
        self.logger = get_logger("VersionedLock")

    @property
    def key(self) -> str:
        return self.config.key

    def _next_version(self) -> str:
        self.version = self._clock() + self.config.heartbeat_ms + 1
        return encode_version(self.version)

    async def _set_if_absent(self) -> bool:
        return await self._store.set_if_absent(
            self.key, self._next_version(), self.config.timeout_seconds
        )

    async def _set_expire(self) -> bool:
        return await self._store.set_expire(self.key, self.config.timeout_seconds)

    async def acquire(self) -> bool:
        try:
            acquired = await self._lock()
        except LockConsistencyError as exc:
            self.logger.error("%s", exc)
            await self._record("lock.consistency_error", {"version": self.version})
            raise
        if acquired:
            self.logger.info("Acquired lock %s (version %d)", self.key, self.version)
            await self._record("lock.acquired", {"version": self.version})
        else:
            self.logger.debug("Lock %s is held elsewhere", self.key)
        return acquired

    async def _lock(self) -> bool:
        # 1. Plain create-if-missing; the winner owns the lock.
        if await self._set_if_absent():
            return True
        if self.config.fast_fail:
            return False

        # 2. Someone holds it; only contend when their claim has run out.
        observed = decode_version(await self._store.get(self.key))
        if observed == 0:
            # Key vanished in between.
            return await self._set_if_absent()
        if observed > self._clock():
            return False

        # 3. Expired claim: swap in our token and see whose value we replaced.
        previous = decode_version(await self._store.get_and_replace(self.key, self._next_version()))
        if previous == 0:
            return await self._set_if_absent()
        if previous != observed:
            return False

        # 4. Ours. The TTL still belongs to the previous holder, so reset it.
        if await self._set_expire():
            return True
        if decode_version(await self._store.get(self.key)) != self.version:
            return False
        if await self._set_expire():
            return True

        # 5. Owned but unrenewable: release and start over once.
        if await self._release():
            return await self._set_if_absent()
        raise LockConsistencyError(self.key)

    async def check(self) -> bool:
        stored = decode_version(await self._store.get(self.key))
        return self.version != 0 and stored == self.version and self._clock() < stored

    async def heartbeat(self) -> bool:
        if not self.config.renewable:
            self.logger.debug(
                "Heartbeat on %s cannot outlive its TTL (heartbeat_ms == timeout)", self.key
            )
        if not await self.check():
            await self._record("lock.heartbeat_lost", {"version": self.version})
            return False
        previous = await self._store.get_and_replace(self.key, self._next_version())
        if decode_version(previous) == 0:
            await self._record("lock.heartbeat_lost", {"version": self.version})
            return False
        return True

    async def unlock(self) -> bool:
        released = await self._release()
        if released:
            self.logger.info("Released lock %s", self.key)
            await self._record("lock.released", {"version": self.version})
        return released

    async def _release(self) -> bool:
        # Never delete a key another holder has taken over.
        return await self.check() and await self._store.delete(self.key)

    async def _record(self, event: str, payload: Dict[str, Any]) -> None:
        if self._audit is None:
            return
        try:
            await self._audit.log(event=event, key=self.key, payload=payload)
        except Exception:
            self.logger.debug("Failed to persist audit log", exc_info=True)


class VersionedLockManager(LockManager):
    """Hands out ``VersionedLock`` handles bound to one store and one set of defaults."""

    def __init__(
        self,
        store: KeyValueStore,
        *,
        key_prefix: str = "lock:",
        timeout_seconds: int = 30,
        heartbeat_ms: Optional[int] = None,
        fast_fail: Optional[bool] = None,
        clock: Clock = current_millis,
        audit_logger: Optional[AuditLogger] = None,
    ) -> None:
        self.store = store
        self._key_prefix = key_prefix
        self._timeout_seconds = timeout_seconds
        self._heartbeat_ms = heartbeat_ms
        self._fast_fail = fast_fail
        self._clock = clock
        self._audit = audit_logger

    @classmethod
    def from_settings(
        cls,
        settings: LockSettings,
        store: Optional[KeyValueStore] = None,
        *,
        clock: Clock = current_millis,
    ) -> "VersionedLockManager":
        audit = AuditLogger(settings.audit_log_path) if settings.audit_log_path else None
        return cls(
            store or RedisKeyValueStore(settings.redis_url),
            key_prefix=settings.key_prefix,
            timeout_seconds=settings.timeout_seconds,
            heartbeat_ms=settings.heartbeat_ms,
            fast_fail=settings.fast_fail,
            clock=clock,
            audit_logger=audit,
        )

    def lock(
        self,
        key: str,
        *,
        timeout_seconds: Optional[int] = None,
        heartbeat_ms: Optional[int] = None,
        fast_fail: Optional[bool] = None,
    ) -> VersionedLock:
        timeout = self._timeout_seconds if timeout_seconds is None else timeout_seconds
        if heartbeat_ms is None and timeout_seconds is None:
            heartbeat_ms = self._heartbeat_ms
        if fast_fail is None:
            fast_fail = self._fast_fail
        return VersionedLock(
            self.store,
            f"{self._key_prefix}{key}",
            timeout,
            heartbeat_ms,
            fast_fail,
            clock=self._clock,
            audit_logger=self._audit,
        )
