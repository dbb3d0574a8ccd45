"""Core lock primitives: the store contract and the versioned lock protocol."""

from .errors import LockConsistencyError, LockError
from .locks import AsyncLock, DistributedLock, LockManager
from .models import LockConfig, decode_version, encode_version
from .settings import LockSettings
from .store import InMemoryKeyValueStore, KeyValueStore
from .store_redis import RedisKeyValueStore
from .versioned_lock import VersionedLock, VersionedLockManager

__all__ = [
    "AsyncLock",
    "DistributedLock",
    "InMemoryKeyValueStore",
    "KeyValueStore",
    "LockConfig",
    "LockConsistencyError",
    "LockError",
    "LockManager",
    "LockSettings",
    "RedisKeyValueStore",
    "VersionedLock",
    "VersionedLockManager",
    "decode_version",
    "encode_version",
]
