"""Lock error hierarchy."""

from __future__ import annotations


class LockError(RuntimeError):
    """Base class for lock failures that cannot be reported as a plain ``False``."""


class LockConsistencyError(LockError):
    """Ownership was confirmed but the lock could neither be renewed nor released."""

    def __init__(self, key: str, message: str | None = None) -> None:
        self.key = key
        super().__init__(
            message
            or f"Acquired lock {key!r} but could not set its expiry nor release it"
        )
