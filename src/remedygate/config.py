"""Environment configuration and wiring for remedygate.

Every environment variable is read and validated by ``Settings``; nothing
else in the package looks at ``os.environ``.
"""

from __future__ import annotations

import logging
import random
from pathlib import Path
from typing import Any, Literal, Optional

from pydantic import AliasChoices, Field, PositiveFloat, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .actions import build_default_registry
from .audit import AuditLog, JSONLAuditLog, MemoryAuditLog, SQLiteAuditLog
from .engine import RemediationExecutor
from .errors import ConfigError
from .notifiers import Notifier, NullNotifier, SlackWebhookNotifier

AUDIT_BACKENDS = ("sqlite", "jsonl", "memory")
DEFAULT_AUDIT_PATH = Path("data") / "remedygate.db"
DEFAULT_NOTIFY_TIMEOUT_SECONDS = 5.0
DEFAULT_LOG_LEVEL = "WARNING"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

ENV_AUDIT_BACKEND = "REMEDYGATE_AUDIT_BACKEND"
ENV_AUDIT_PATH = "REMEDYGATE_AUDIT_PATH"
ENV_SLACK_WEBHOOK_URL = "SLACK_WEBHOOK_URL"
ENV_NOTIFY_TIMEOUT = "REMEDYGATE_NOTIFY_TIMEOUT"
ENV_LOG_LEVEL = "REMEDYGATE_LOG_LEVEL"

_LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def _describe(exc: ValidationError) -> str:
    problems = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error["loc"]) or "settings"
        problems.append(f"{location}: {error['msg']}")
    return "; ".join(problems)


class Settings(BaseSettings):
    """Runtime configuration, loaded from ``REMEDYGATE_*`` variables.

    The webhook URL keeps its conventional unprefixed name, ``SLACK_WEBHOOK_URL``.
    Without it, notifications are simulated.
    """

    audit_backend: Literal["sqlite", "jsonl", "memory"] = "sqlite"
    audit_path: Path = DEFAULT_AUDIT_PATH
    slack_webhook_url: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices(ENV_SLACK_WEBHOOK_URL, "slack_webhook_url"),
    )
    notify_timeout: PositiveFloat = DEFAULT_NOTIFY_TIMEOUT_SECONDS
    log_level: str = DEFAULT_LOG_LEVEL

    model_config = SettingsConfigDict(
        env_prefix="REMEDYGATE_",
        case_sensitive=False,
        env_ignore_empty=True,
        extra="ignore",
        frozen=True,
    )

    @field_validator("audit_backend", mode="before")
    @classmethod
    def _normalise_backend(cls, v: Any) -> Any:
        return v.strip().lower() if isinstance(v, str) else v

    @field_validator("slack_webhook_url")
    @classmethod
    def _blank_webhook_is_unset(cls, v: Optional[str]) -> Optional[str]:
        if v is None or not v.strip():
            return None
        return v.strip()

    @field_validator("log_level")
    @classmethod
    def _validate_log_level(cls, v: str) -> str:
        v_upper = v.strip().upper()
        if v_upper not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(LOG_LEVELS)}")
        return v_upper

    @classmethod
    def from_env(cls) -> "Settings":
        """Load settings from the process environment. Raises ConfigError."""
        try:
            return cls()
        except ValidationError as exc:
            raise ConfigError(_describe(exc)) from exc

    def with_overrides(self, **changes: Any) -> "Settings":
        """Return a validated copy with the non-None ``changes`` applied."""
        values = self.model_dump()
        values.update({k: v for k, v in changes.items() if v is not None})
        try:
            return type(self).model_validate(values)
        except ValidationError as exc:
            raise ConfigError(_describe(exc)) from exc


def configure_logging(level: str = DEFAULT_LOG_LEVEL) -> None:
    logging.basicConfig(level=level.upper(), format=_LOG_FORMAT)


def open_audit_log(settings: Settings) -> AuditLog:
    if settings.audit_backend == "memory":
        return MemoryAuditLog()
    if settings.audit_backend == "jsonl":
        return JSONLAuditLog(settings.audit_path)
    return SQLiteAuditLog(settings.audit_path)


def build_notifier(settings: Settings) -> Notifier:
    if settings.slack_webhook_url:
        return SlackWebhookNotifier(settings.slack_webhook_url, timeout=settings.notify_timeout)
    return NullNotifier()


def build_executor(
    settings: Settings,
    *,
    audit_log: AuditLog | None = None,
    rng: random.Random | None = None,
) -> RemediationExecutor:
    """Wire registry, notifier and audit store from ``settings``."""
    registry = build_default_registry(notifier=build_notifier(settings), rng=rng)
    return RemediationExecutor(
        registry=registry,
        audit_log=audit_log if audit_log is not None else open_audit_log(settings),
    )
