"""Redis-backed key-value store for lock keys."""

from __future__ import annotations

from typing import Optional

from redis.asyncio import Redis
from redis.exceptions import RedisError

from kvlock.core.settings import DEFAULT_REDIS_URL
from kvlock.utils.env import get_env
from kvlock.utils.logging import get_logger


class RedisKeyValueStore:
    """Maps the store contract onto SET NX EX, GET, SET KEEPTTL GET, EXPIRE and DEL.

    Client errors are logged and reported as the failing result of the call so
    that transport problems never reach the lock protocol as exceptions.
    """

    def __init__(self, url: Optional[str] = None, *, client: Optional[Redis] = None) -> None:
        if client is None:
            client = Redis.from_url(
                url or get_env("KVLOCK_REDIS_URL", default=DEFAULT_REDIS_URL),
                decode_responses=True,
            )
        self._redis = client
        self.logger = get_logger("RedisKeyValueStore")

    async def set_if_absent(self, key: str, value: str, ttl_seconds: int) -> bool:
        try:
            return bool(await self._redis.set(key, value, ex=ttl_seconds, nx=True))
        except RedisError as exc:
            self.logger.warning("SET NX failed for %s: %s", key, exc)
            return False

    async def get(self, key: str) -> Optional[str]:
        try:
            return _text(await self._redis.get(key))
        except (RedisError, UnicodeDecodeError) as exc:
            self.logger.warning("GET failed for %s: %s", key, exc)
            return None

    async def get_and_replace(self, key: str, value: str) -> Optional[str]:
        try:
            return _text(await self._redis.set(key, value, keepttl=True, get=True))
        except (RedisError, UnicodeDecodeError) as exc:
            self.logger.warning("SET GET failed for %s: %s", key, exc)
            return None

    async def set_expire(self, key: str, ttl_seconds: int) -> bool:
        try:
            return bool(await self._redis.expire(key, ttl_seconds))
        except RedisError as exc:
            self.logger.warning("EXPIRE failed for %s: %s", key, exc)
            return False

    async def delete(self, key: str) -> bool:
        try:
            return await self._redis.delete(key) == 1
        except RedisError as exc:
            self.logger.warning("DEL failed for %s: %s", key, exc)
            return False

    async def close(self) -> None:
        await self._redis.aclose()


def _text(value: object) -> Optional[str]:
    # Tolerate clients built without decode_responses.
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return value  # type: ignore[return-value]
