"""Audit log backends and chain verification."""

from .base import (
    DEFAULT_HISTORY_LIMIT,
    MAX_HISTORY_LIMIT,
    AuditLog,
    clamp_limit,
    parse_status,
)
from .jsonl import JSONLAuditLog
from .memory import MemoryAuditLog
from .sqlite import SQLiteAuditLog

__all__ = (
    "AuditLog",
    "MemoryAuditLog",
    "SQLiteAuditLog",
    "JSONLAuditLog",
    "DEFAULT_HISTORY_LIMIT",
    "MAX_HISTORY_LIMIT",
    "clamp_limit",
    "parse_status",
)
