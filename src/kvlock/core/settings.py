"""Runtime settings loader."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from kvlock.utils.env import get_bool_env, get_env, get_int_env
from kvlock.utils.logging import resolve_level


DEFAULT_REDIS_URL = "redis://localhost:6379/0"


class LockSettings(BaseModel):
    redis_url: str = Field(default_factory=lambda: get_env("KVLOCK_REDIS_URL", default=DEFAULT_REDIS_URL))
    key_prefix: str = "lock:"
    timeout_seconds: int = Field(default=30, ge=1)
    heartbeat_ms: Optional[int] = Field(default=None, ge=1)  # defaults to the full timeout
    fast_fail: Optional[bool] = None
    audit_log_path: Optional[Path] = None
    log_level: str = "INFO"

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        resolve_level(value)
        return value.strip().upper()

    @model_validator(mode="after")
    def _check_heartbeat(self) -> "LockSettings":
        if self.heartbeat_ms is not None and self.heartbeat_ms > self.timeout_seconds * 1000:
            raise ValueError("heartbeat_ms must not exceed timeout_seconds * 1000")
        return self

    @classmethod
    def from_file(cls, path: Path) -> "LockSettings":
        data = yaml.safe_load(path.read_text()) or {}
        try:
            settings = cls.model_validate(data)
        except ValidationError as exc:
            raise ValueError(f"Invalid lock settings: {exc}") from exc
        if settings.audit_log_path and not settings.audit_log_path.is_absolute():
            settings.audit_log_path = (path.parent / settings.audit_log_path).resolve()
        return settings

    @classmethod
    def from_env(cls) -> "LockSettings":
        """Build settings from ``KVLOCK_*`` variables; unset ones keep their defaults."""
        candidates: Dict[str, Any] = {
            "redis_url": get_env("KVLOCK_REDIS_URL"),
            "key_prefix": get_env("KVLOCK_KEY_PREFIX"),
            "timeout_seconds": get_int_env("KVLOCK_TIMEOUT_SECONDS"),
            "heartbeat_ms": get_int_env("KVLOCK_HEARTBEAT_MS"),
            "fast_fail": get_bool_env("KVLOCK_FAST_FAIL", default=None),
            "audit_log_path": get_env("KVLOCK_AUDIT_LOG"),
            "log_level": get_env("KVLOCK_LOG_LEVEL"),
        }
        data = {name: value for name, value in candidates.items() if value is not None}
        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            raise ValueError(f"Invalid lock settings: {exc}") from exc
