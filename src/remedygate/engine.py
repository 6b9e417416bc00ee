"""Execution engine for remedygate."""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, Mapping, NoReturn

from pydantic import ValidationError

from .audit.base import AuditLog
from .errors import PolicyRejection, ValidationFailure, sanitize_exception
from .policies import Allowed, Invalid, MissingParam, PolicyGate, Unknown
from .reason_codes import (
    EFFECT_FAULT,
    EFFECT_OK,
    POLICY_UNKNOWN_ACTION,
    REQUEST_MALFORMED,
    VALIDATION_MISSING_PARAM,
)
from .redaction import redact_params, redact_value
from .registry import ActionRegistry
from .types import (
    ActionRequest,
    ActionSummary,
    AuditRecord,
    AuditStats,
    AuditStatus,
    ExecutionOutcome,
)

DEFAULT_MAX_ERROR_LENGTH: int = 200

_logger = logging.getLogger(__name__)


def _elapsed_ms(started: float) -> int:
    return max(0, int((time.perf_counter() - started) * 1000))


class RemediationExecutor:
    """Runs allowlisted remediation actions and records every attempt.

    Flow: policy gate -> (reject | validation failure | effect) -> audit append.

    Design notes:
    - The effect producer is invoked at most once per call; nothing is retried.
    - Unknown actions are audited as ``rejected`` and raise PolicyRejection.
    - Missing or invalid parameters raise ValidationFailure and are not audited.
    - Audit appends are best-effort once a decision is made: a failed append
      is logged and counted but never changes what the caller sees.
    """

    __slots__ = ("registry", "gate", "audit_log", "_on_error", "_error_count", "_count_lock")

    def __init__(
        self,
        *,
        registry: ActionRegistry,
        audit_log: AuditLog,
        gate: PolicyGate | None = None,
        on_error: Callable[[str, Exception], None] | None = None,
    ) -> None:
        if registry is None:
            raise ValueError("registry is required")
        if audit_log is None:
            raise ValueError("audit_log is required")
        self.registry = registry
        self.gate = gate if gate is not None else PolicyGate(registry)
        self.audit_log = audit_log
        self._on_error = on_error
        self._error_count = 0
        self._count_lock = threading.Lock()

    @property
    def error_count(self) -> int:
        """Number of audit append failures since the executor was created."""
        return self._error_count

    def execute_action(
        self,
        action: str,
        params: Mapping[str, Any] | None = None,
        reason: str | None = None,
    ) -> ExecutionOutcome:
        """Build a request from loose caller input and execute it."""
        try:
            request = ActionRequest(action=action, params=params, reason=reason)
        except ValidationError as exc:
            errors = [error["msg"] for error in exc.errors()]
            _logger.warning("Malformed request for action=%r: %s", action, "; ".join(errors))
            raise ValidationFailure(
                "Malformed request",
                errors=errors,
                action=action if isinstance(action, str) else None,
                reason_code=REQUEST_MALFORMED,
            ) from exc
        return self.execute(request)

    def execute(self, request: ActionRequest) -> ExecutionOutcome:
        started = time.perf_counter()
        verdict = self.gate.check(request.action, request.params)

        if isinstance(verdict, Unknown):
            self._reject(request, started)

        if isinstance(verdict, MissingParam):
            definition = self.registry.get(request.action)
            required = definition.required_params if definition is not None else ()
            _logger.warning(
                "Validation failed for action=%r: missing parameter %r", request.action, verdict.name
            )
            raise ValidationFailure(
                f"Missing required parameter: {verdict.name}",
                errors=[f"Missing required parameter: {verdict.name}"],
                action=request.action,
                required_params=required,
                reason_code=VALIDATION_MISSING_PARAM,
            )

        if isinstance(verdict, Invalid):
            definition = self.registry.get(request.action)
            _logger.warning(
                "Validation failed for action=%r: %s", request.action, "; ".join(verdict.errors)
            )
            raise ValidationFailure(
                "Parameter validation failed",
                errors=verdict.errors,
                action=request.action,
                required_params=definition.required_params if definition is not None else (),
            )

        if not isinstance(verdict, Allowed):
            raise TypeError(f"unexpected gate result: {verdict!r}")
        return self._run_allowed(request, verdict, started)

    def _reject(self, request: ActionRequest, started: float) -> NoReturn:
        record = AuditRecord(
            action=request.action,
            params=redact_params(request.params),
            result={
                "error": f"Action '{request.action}' is not permitted by policy",
                "reason_code": POLICY_UNKNOWN_ACTION,
            },
            status=AuditStatus.REJECTED,
            duration_ms=_elapsed_ms(started),
            reason=request.reason,
        )
        self._append(record)
        _logger.warning("REJECTED action=%r: not in allowlist (id=%s)", request.action, record.id)
        raise PolicyRejection(
            request.action,
            allowed_actions=self.registry.names(),
            execution_id=record.id,
        )

    def _run_allowed(
        self, request: ActionRequest, verdict: Allowed, started: float
    ) -> ExecutionOutcome:
        definition = verdict.definition
        try:
            payload = definition.effect(dict(request.params))
        except Exception as exc:
            status = AuditStatus.ERROR
            reason_code = EFFECT_FAULT
            result: Any = {
                "error": sanitize_exception(exc, DEFAULT_MAX_ERROR_LENGTH),
                "error_type": type(exc).__name__,
            }
            _logger.error("FAILED action=%r: %s: %s", definition.name, type(exc).__name__, exc)
        else:
            status = AuditStatus.SUCCESS
            reason_code = EFFECT_OK
            result = payload

        record = AuditRecord(
            action=definition.name,
            params=redact_params(request.params, definition.required_params),
            result=redact_value(None, result, check_values=False),
            status=status,
            duration_ms=_elapsed_ms(started),
            reason=request.reason,
        )
        self._append(record)
        if status is AuditStatus.SUCCESS:
            _logger.info(
                "EXECUTED action=%r in %dms (id=%s)", definition.name, record.duration_ms, record.id
            )
        return ExecutionOutcome(
            execution_id=record.id,
            action=definition.name,
            status=status,
            result=result,
            params=record.params,
            duration_ms=record.duration_ms,
            timestamp=record.timestamp,
            reason_code=reason_code,
        )

    def _append(self, record: AuditRecord) -> None:
        """Append ``record``; failures are reported, not raised."""
        try:
            self.audit_log.append(record)
        except Exception as exc:
            with self._count_lock:
                self._error_count += 1
            _logger.error(
                "Failed to append audit record id=%s action=%r status=%s: %s",
                record.id,
                record.action,
                record.status.value,
                exc,
            )
            if self._on_error is not None:
                try:
                    self._on_error("audit_append", exc)
                except Exception:
                    _logger.exception("on_error hook failed")

    def list_actions(self) -> list[ActionSummary]:
        return [definition.summary() for definition in self.registry.list()]

    def get_history(
        self, status: str | None = None, limit: int | None = None
    ) -> list[AuditRecord]:
        """Return audit records newest first. Raises InvalidFilter on a bad status or limit."""
        return self.audit_log.query(status=status, limit=limit)

    def stats(self) -> AuditStats:
        return self.audit_log.stats()
