"""remedygate public API."""

from .actions import build_default_registry
from .async_engine import AsyncRemediationExecutor
from .audit import AuditLog, JSONLAuditLog, MemoryAuditLog, SQLiteAuditLog
from .config import Settings, build_executor, configure_logging, open_audit_log
from .engine import RemediationExecutor
from .errors import (
    AuditVerificationError,
    ConfigError,
    EffectFault,
    InvalidFilter,
    PersistenceError,
    PolicyRejection,
    RemedyGateError,
    ValidationFailure,
)
from .notifiers import NotificationError, Notifier, NullNotifier, SlackWebhookNotifier
from .policies import Allowed, GateResult, Invalid, MissingParam, PolicyGate, Unknown
from .registry import ActionDefinition, ActionRegistry
from .types import (
    ActionRequest,
    ActionSummary,
    AuditRecord,
    AuditStats,
    AuditStatus,
    ExecutionOutcome,
)

__all__ = (
    # Executors
    "RemediationExecutor",
    "AsyncRemediationExecutor",
    # Registry and policy gate
    "ActionDefinition",
    "ActionRegistry",
    "build_default_registry",
    "PolicyGate",
    "GateResult",
    "Unknown",
    "MissingParam",
    "Invalid",
    "Allowed",
    # Types
    "ActionRequest",
    "ActionSummary",
    "AuditRecord",
    "AuditStats",
    "AuditStatus",
    "ExecutionOutcome",
    # Audit log
    "AuditLog",
    "MemoryAuditLog",
    "SQLiteAuditLog",
    "JSONLAuditLog",
    # Notifiers
    "Notifier",
    "NullNotifier",
    "SlackWebhookNotifier",
    "NotificationError",
    # Configuration
    "Settings",
    "build_executor",
    "configure_logging",
    "open_audit_log",
    # Errors
    "RemedyGateError",
    "PolicyRejection",
    "ValidationFailure",
    "EffectFault",
    "PersistenceError",
    "AuditVerificationError",
    "InvalidFilter",
    "ConfigError",
)
