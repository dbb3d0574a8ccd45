"""Logging helpers with consistent formatting."""

from __future__ import annotations

import logging
import os
import sys
from typing import Optional

from rich.logging import RichHandler


_NAMESPACE = "kvlock"
_default_level: Optional[int] = None


def resolve_level(name: str) -> int:
    """Map a level name such as ``"debug"`` to its numeric value."""
    level = logging.getLevelName(name.strip().upper())
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {name!r}")
    return level


def set_default_level(name: str) -> None:
    """Apply ``name`` (e.g. ``"DEBUG"``) to existing and future kvlock loggers."""
    global _default_level
    _default_level = resolve_level(name)
    for logger_name, logger in logging.root.manager.loggerDict.items():
        if logger_name.startswith(_NAMESPACE) and isinstance(logger, logging.Logger):
            logger.setLevel(_default_level)
            for handler in logger.handlers:
                handler.setLevel(_default_level)


def get_logger(name: str, level: Optional[int] = None, *, rich: bool = True) -> logging.Logger:
    """Configure and return a logger under the ``kvlock`` namespace."""
    if not name.startswith(_NAMESPACE):
        name = f"{_NAMESPACE}.{name}"
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    if level is None:
        level = _default_level or resolve_level(os.getenv("KVLOCK_LOG_LEVEL", "INFO"))
    logger.setLevel(level)

    if rich:
        handler: logging.Handler = RichHandler(
            level=level,
            markup=False,
            rich_tracebacks=True,
            tracebacks_show_locals=False,
            show_time=True,
            show_path=False,
        )
        formatter = logging.Formatter("%(name)s: %(message)s")
    else:
        handler = logging.StreamHandler(sys.stdout)
        handler.setLevel(level)
        formatter = logging.Formatter(
            "%(asctime)s %(name)s %(levelname)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    handler.setFormatter(formatter)

    logger.addHandler(handler)
    logger.propagate = False
    return logger
