"""Policy gate deciding whether a requested action may run."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Union

from .registry import ActionDefinition, ActionRegistry


@dataclass(frozen=True, slots=True)
class Unknown:
    """The action is not on the allowlist."""

    action: str


@dataclass(frozen=True, slots=True)
class MissingParam:
    """A required parameter is absent, None or an empty string."""

    name: str


@dataclass(frozen=True, slots=True)
class Invalid:
    """All required parameters are present but the validator rejected some values."""

    errors: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class Allowed:
    """Every constraint is satisfied; the definition may be executed."""

    definition: ActionDefinition


GateResult = Union[Unknown, MissingParam, Invalid, Allowed]


def _is_missing(params: Mapping[str, Any], name: str) -> bool:
    value = params.get(name)
    return value is None or (isinstance(value, str) and value == "")


class PolicyGate:
    """Staged check: allowlist membership, then presence, then domain constraints."""

    def __init__(self, registry: ActionRegistry) -> None:
        self.registry = registry

    def check(self, action: str, params: Mapping[str, Any]) -> GateResult:
        definition = self.registry.get(action)
        if definition is None:
            return Unknown(action)

        for name in definition.required_params:
            if _is_missing(params, name):
                return MissingParam(name)

        try:
            errors = tuple(str(error) for error in definition.validate(params))
        except Exception as exc:
            # Fail closed: a validator that crashes never lets the action through.
            return Invalid((f"{definition.name} parameter validation failed: {type(exc).__name__}",))
        if errors:
            return Invalid(errors)
        return Allowed(definition)
