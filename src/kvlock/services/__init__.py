"""Auxiliary services used by locks."""

from .audit_logger import AuditLogger

__all__ = ["AuditLogger"]
