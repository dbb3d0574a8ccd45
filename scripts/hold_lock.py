"""CLI entrypoint that takes a lock, keeps it alive with heartbeats, then releases it."""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Optional

from kvlock.core.settings import LockSettings
from kvlock.core.store_redis import RedisKeyValueStore
from kvlock.core.versioned_lock import VersionedLock, VersionedLockManager
from kvlock.utils.logging import get_logger, set_default_level


logger = get_logger("HoldLockCLI")


async def hold(lock: VersionedLock, hold_seconds: float) -> bool:
    """Heartbeat ``lock`` until ``hold_seconds`` pass; False if ownership was lost."""
    interval = lock.config.heartbeat_ms / 1000
    loop = asyncio.get_running_loop()
    deadline = loop.time() + hold_seconds
    while True:
        remaining = deadline - loop.time()
        if remaining <= 0:
            return await lock.check()
        await asyncio.sleep(min(interval / 2, remaining))
        if not await lock.heartbeat():
            logger.warning("Lost lock %s while holding it", lock.key)
            return False


async def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Acquire a distributed lock and hold it for a while.")
    parser.add_argument("--config", type=Path, default=None, help="Path to lock settings YAML")
    parser.add_argument("--key", required=True, help="Resource name to lock")
    parser.add_argument("--hold-seconds", type=float, default=10.0, help="How long to keep the lock")
    parser.add_argument("--wait-ms", type=int, default=0, help="How long to poll for the lock")
    args = parser.parse_args(argv)

    settings = LockSettings.from_file(args.config) if args.config else LockSettings.from_env()
    set_default_level(settings.log_level)

    store = RedisKeyValueStore(settings.redis_url)
    manager = VersionedLockManager.from_settings(settings, store=store)
    lock = manager.lock(args.key)
    if not lock.config.renewable:
        logger.warning(
            "heartbeat_ms equals the timeout; the lock for %s cannot be extended", args.key
        )

    try:
        if not await lock.try_lock(args.wait_ms):
            logger.error("Could not acquire %s within %d ms", lock.key, args.wait_ms)
            return 1
        held = await hold(lock, args.hold_seconds)
        if held:
            await lock.unlock()
        return 0 if held else 1
    finally:
        await store.close()


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
