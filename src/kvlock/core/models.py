"""Data models and token helpers shared across the lock runtime."""

from __future__ import annotations

import time
from typing import Any, Callable, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator


Clock = Callable[[], int]


def current_millis() -> int:
    """Wall-clock time in epoch milliseconds."""
    return time.time_ns() // 1_000_000


def encode_version(version: int) -> str:
    return str(version)


def decode_version(value: Optional[str]) -> int:
    """Parse a stored version token; blank or malformed text means absent (0)."""
    if value is None:
        return 0
    text = value.strip()
    if not text:
        return 0
    try:
        return int(text)
    except ValueError:
        return 0


class LockConfig(BaseModel):
    """Fixed parameters of a single lock handle.

    ``heartbeat_ms`` is both the lifetime encoded into every version token and
    the renewal period; it must not exceed the natural timeout. When omitted it
    equals the timeout, and ``fast_fail`` defaults to whether the two are equal.
    """

    model_config = ConfigDict(frozen=True)

    key: str = Field(min_length=1)
    timeout_seconds: int = Field(ge=1)
    heartbeat_ms: Optional[int] = Field(default=None, ge=1)
    fast_fail: Optional[bool] = None

    @model_validator(mode="before")
    @classmethod
    def _fill_defaults(cls, data: Any) -> Any:
        if not isinstance(data, dict) or not isinstance(data.get("timeout_seconds"), int):
            return data
        data = dict(data)
        limit = data["timeout_seconds"] * 1000
        if data.get("heartbeat_ms") is None:
            data["heartbeat_ms"] = limit
        if data.get("fast_fail") is None and isinstance(data["heartbeat_ms"], int):
            data["fast_fail"] = data["heartbeat_ms"] == limit
        return data

    @model_validator(mode="after")
    def _check_heartbeat(self) -> "LockConfig":
        limit = self.timeout_seconds * 1000
        if self.heartbeat_ms is None or self.fast_fail is None:
            raise ValueError("heartbeat_ms and fast_fail could not be resolved")
        if self.heartbeat_ms > limit:
            raise ValueError(
                f"heartbeat_ms ({self.heartbeat_ms}) must not exceed timeout_seconds * 1000 ({limit})"
            )
        return self

    @classmethod
    def build(
        cls,
        key: str,
        timeout_seconds: int,
        heartbeat_ms: Optional[int] = None,
        fast_fail: Optional[bool] = None,
    ) -> "LockConfig":
        try:
            return cls(
                key=key,
                timeout_seconds=timeout_seconds,
                heartbeat_ms=heartbeat_ms,
                fast_fail=fast_fail,
            )
        except ValidationError as exc:
            raise ValueError(f"Invalid lock configuration: {exc}") from exc

    @property
    def renewable(self) -> bool:
        """Heartbeats only matter when they fire before the TTL runs out."""
        return self.heartbeat_ms < self.timeout_seconds * 1000
