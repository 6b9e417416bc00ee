"""Typed models for remedygate."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
import json
from typing import Any, Mapping
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator


class AuditStatus(str, Enum):
    """Outcome recorded for one execution attempt."""

    SUCCESS = "success"
    REJECTED = "rejected"
    ERROR = "error"


AUDIT_STATUSES: tuple[str, ...] = tuple(status.value for status in AuditStatus)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ActionRequest(BaseModel):
    """A single requested action as received from a caller."""

    model_config = {"frozen": True}

    action: str
    params: dict[str, Any] = Field(default_factory=dict)
    reason: str | None = None

    @field_validator("action")
    @classmethod
    def _action_non_empty(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("action must be a non-empty string")
        return value.strip()

    @field_validator("params", mode="before")
    @classmethod
    def _params_mapping(cls, value: Any) -> dict[str, Any]:
        if value is None:
            return {}
        if isinstance(value, Mapping):
            return dict(value)
        raise ValueError("params must be an object")


class AuditRecord(BaseModel):
    """Immutable audit entry describing one execution attempt and its outcome."""

    model_config = {"frozen": True}

    id: str = Field(default_factory=lambda: str(uuid4()))
    timestamp: datetime = Field(default_factory=utc_now)
    action: str
    params: dict[str, Any] = Field(default_factory=dict)
    result: Any = None
    status: AuditStatus
    duration_ms: int = Field(default=0, ge=0)
    reason: str | None = None

    @field_validator("timestamp")
    @classmethod
    def _timestamp_timezone_aware(cls, value: datetime) -> datetime:
        if value.tzinfo is None or value.tzinfo.utcoffset(value) is None:
            raise ValueError("timestamp must be timezone-aware")
        return value

    @field_validator("id")
    @classmethod
    def _id_non_empty(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("id must be a non-empty string")
        return value

    def to_payload(self) -> dict[str, Any]:
        """Return the JSON-compatible dict stored by the audit backends."""
        return self.model_dump(mode="json")

    def to_json_line(self) -> str:
        return json.dumps(self.to_payload(), ensure_ascii=False)


class ExecutionOutcome(BaseModel):
    """Caller-facing result of an allowed action (successful or faulted)."""

    model_config = {"frozen": True}

    execution_id: str
    action: str
    status: AuditStatus
    result: Any = None
    params: dict[str, Any] = Field(default_factory=dict)
    duration_ms: int = Field(ge=0)
    timestamp: datetime
    reason_code: str

    @field_validator("status")
    @classmethod
    def _status_not_rejected(cls, value: AuditStatus) -> AuditStatus:
        if value is AuditStatus.REJECTED:
            raise ValueError("rejected attempts are reported as PolicyRejection, not outcomes")
        return value

    @property
    def ok(self) -> bool:
        return self.status is AuditStatus.SUCCESS


class ActionSummary(BaseModel):
    """Introspection view of one allowlisted action."""

    model_config = {"frozen": True}

    name: str
    description: str
    required_params: list[str]


class AuditStats(BaseModel):
    """Aggregate counts over the audit log."""

    total: int = 0
    by_status: dict[str, int] = Field(default_factory=dict)
    by_action: dict[str, int] = Field(default_factory=dict)
