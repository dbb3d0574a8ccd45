"""Key-value store contract used by the lock protocol."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Dict, Optional, Protocol

from .models import Clock, current_millis


class KeyValueStore(Protocol):
    """
    Storage boundary for lock keys.

    Guarantees:
    - ``set_if_absent`` and ``get_and_replace`` are atomic at the store
    - Failures come back as ``False`` / ``None``, never as exceptions
    - ``get_and_replace`` keeps whatever expiry the key already had
    """

    async def set_if_absent(self, key: str, value: str, ttl_seconds: int) -> bool:
        ...

    async def get(self, key: str) -> Optional[str]:
        ...

    async def get_and_replace(self, key: str, value: str) -> Optional[str]:
        ...

    async def set_expire(self, key: str, ttl_seconds: int) -> bool:
        ...

    async def delete(self, key: str) -> bool:
        ...


@dataclass(slots=True)
class _Entry:
    value: str
    expires_at: Optional[int]


class InMemoryKeyValueStore:
    """
    In-memory reference implementation.

    Used for:
    - Tests (pair it with a manual clock to drive expiry)
    - Local experiments with several lock handles in one process

    NOT for coordinating separate processes.
    """

    def __init__(self, *, clock: Clock = current_millis) -> None:
        self._clock = clock
        self._data: Dict[str, _Entry] = {}
        self._lock = asyncio.Lock()

    def _live(self, key: str) -> Optional[_Entry]:
        entry = self._data.get(key)
        if entry is None:
            return None
        if entry.expires_at is not None and entry.expires_at <= self._clock():
            del self._data[key]
            return None
        return entry

    async def set_if_absent(self, key: str, value: str, ttl_seconds: int) -> bool:
        async with self._lock:
            if self._live(key) is not None:
                return False
            self._data[key] = _Entry(value=value, expires_at=self._clock() + ttl_seconds * 1000)
            return True

    async def get(self, key: str) -> Optional[str]:
        async with self._lock:
            entry = self._live(key)
            return entry.value if entry else None

    async def get_and_replace(self, key: str, value: str) -> Optional[str]:
        async with self._lock:
            entry = self._live(key)
            self._data[key] = _Entry(value=value, expires_at=entry.expires_at if entry else None)
            return entry.value if entry else None

    async def set_expire(self, key: str, ttl_seconds: int) -> bool:
        async with self._lock:
            entry = self._live(key)
            if entry is None:
                return False
            entry.expires_at = self._clock() + ttl_seconds * 1000
            return True

    async def delete(self, key: str) -> bool:
        async with self._lock:
            if self._live(key) is None:
                return False
            del self._data[key]
            return True

    async def ttl_ms(self, key: str) -> Optional[int]:
        """Remaining lifetime of ``key``; ``-1`` when it has no expiry, ``None`` when absent."""
        async with self._lock:
            entry = self._live(key)
            if entry is None:
                return None
            if entry.expires_at is None:
                return -1
            return entry.expires_at - self._clock()
