"""Fencing-token distributed lock over a key-value store with per-key expiry."""

from .core import (
    InMemoryKeyValueStore,
    KeyValueStore,
    LockConsistencyError,
    LockError,
    LockSettings,
    RedisKeyValueStore,
    VersionedLock,
    VersionedLockManager,
)

__all__ = [
    "InMemoryKeyValueStore",
    "KeyValueStore",
    "LockConsistencyError",
    "LockError",
    "LockSettings",
    "RedisKeyValueStore",
    "VersionedLock",
    "VersionedLockManager",
    "__version__",
]

__version__ = "0.1.0"
