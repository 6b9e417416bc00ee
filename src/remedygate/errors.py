"""Exception types for remedygate."""

from __future__ import annotations

from typing import Sequence

from .reason_codes import (
    AUDIT_CHAIN_BROKEN,
    AUDIT_PERSISTENCE_FAILED,
    CONFIG_INVALID,
    EFFECT_FAULT,
    HISTORY_INVALID_FILTER,
    POLICY_UNKNOWN_ACTION,
    VALIDATION_INVALID_PARAMS,
)


class RemedyGateError(Exception):
    """Base exception for all remedygate errors."""

    reason_code: str = "error"


class PolicyRejection(RemedyGateError):
    """Raised when the requested action is not on the allowlist (forbidden)."""

    reason_code = POLICY_UNKNOWN_ACTION

    def __init__(
        self,
        action: str,
        *,
        allowed_actions: Sequence[str],
        execution_id: str | None = None,
    ) -> None:
        super().__init__(f"Action '{action}' is not permitted by policy")
        self.action = action
        self.allowed_actions = tuple(allowed_actions)
        self.execution_id = execution_id


class ValidationFailure(RemedyGateError):
    """Raised when a known action is requested with missing or invalid params (bad request)."""

    def __init__(
        self,
        message: str,
        *,
        errors: Sequence[str],
        action: str | None = None,
        required_params: Sequence[str] = (),
        reason_code: str = VALIDATION_INVALID_PARAMS,
    ) -> None:
        super().__init__(message)
        self.errors = list(errors)
        self.action = action
        self.required_params = tuple(required_params)
        self.reason_code = reason_code


class EffectFault(RemedyGateError):
    """Raised by an effect producer that could not complete its side effect."""

    reason_code = EFFECT_FAULT


class PersistenceError(RemedyGateError):
    """Raised when the audit store cannot be written or read."""

    reason_code = AUDIT_PERSISTENCE_FAILED


class AuditVerificationError(RemedyGateError):
    """Raised when the audit hash chain does not verify."""

    reason_code = AUDIT_CHAIN_BROKEN


class InvalidFilter(RemedyGateError, ValueError):
    """Raised when a history query carries an unknown status or bad limit."""

    reason_code = HISTORY_INVALID_FILTER


class ConfigError(RemedyGateError, ValueError):
    """Raised when environment configuration is invalid."""

    reason_code = CONFIG_INVALID


def sanitize_exception(exc: BaseException, max_length: int = 200) -> str:
    """Return a short error message without filesystem paths or tracebacks."""
    if isinstance(exc, OSError):
        parts: list[str] = [exc.__class__.__name__]
        if exc.errno is not None:
            parts.append(f"errno={exc.errno}")
        if exc.strerror:
            parts.append(exc.strerror)
        return " ".join(parts).strip()
    message = str(exc) or exc.__class__.__name__
    if len(message) > max_length:
        message = message[: max_length - 3] + "..."
    return message
