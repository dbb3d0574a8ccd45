"""Abstract interfaces for distributed locks."""

from __future__ import annotations

import abc
import asyncio
from typing import Optional, Protocol


class AsyncLock(Protocol):
    async def __aenter__(self) -> bool: ...
    async def __aexit__(self, exc_type, exc, tb) -> None: ...


class DistributedLock(abc.ABC):
    """A single lock handle; ``async with`` attempts acquisition once and releases on exit."""

    poll_interval_ms: int = 100

    def __init__(self) -> None:
        self._held = False

    async def try_lock(self, timeout_ms: Optional[int] = None) -> bool:
        """Acquire the lock, polling until ``timeout_ms`` is used up.

        A ``False`` means "not obtained within the budget", never that the lock
        is free. Consistency errors raised by ``acquire`` propagate.
        """
        remaining = timeout_ms or 0
        while True:
            if await self.acquire():
                return True
            if remaining <= 0:
                return False
            await asyncio.sleep(min(self.poll_interval_ms, remaining) / 1000)
            remaining -= self.poll_interval_ms

    @abc.abstractmethod
    async def acquire(self) -> bool:  # pragma: no cover - interface
        """Make one acquisition attempt."""
        raise NotImplementedError

    @abc.abstractmethod
    async def check(self) -> bool:  # pragma: no cover - interface
        """Return whether this handle still owns the lock."""
        raise NotImplementedError

    @abc.abstractmethod
    async def heartbeat(self) -> bool:  # pragma: no cover - interface
        """Extend ownership; only useful when renewals fire before the TTL lapses."""
        raise NotImplementedError

    @abc.abstractmethod
    async def unlock(self) -> bool:  # pragma: no cover - interface
        """Release the lock if this handle still owns it."""
        raise NotImplementedError

    async def __aenter__(self) -> bool:
        self._held = await self.try_lock()
        return self._held

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if not self._held:
            return
        try:
            await self.unlock()
        finally:
            self._held = False


class LockManager(abc.ABC):
    @abc.abstractmethod
    def lock(self, key: str, *, timeout_seconds: Optional[int] = None) -> AsyncLock:  # pragma: no cover - interface
        """Return an async context manager that attempts to acquire a lock on ``key``."""
        raise NotImplementedError
