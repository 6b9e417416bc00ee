"""Action registry: the fixed allowlist of remediation actions."""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Callable, Iterable, Iterator, Mapping

from .types import ActionSummary

Validator = Callable[[Mapping[str, Any]], list[str]]
Effect = Callable[[Mapping[str, Any]], dict[str, Any]]


@dataclass(frozen=True, slots=True)
class ActionDefinition:
    """One allowlisted action: its parameter schema, validator and effect producer."""

    name: str
    description: str
    required_params: tuple[str, ...]
    validate: Validator
    effect: Effect

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or not self.name.strip():
            raise ValueError("action name must be a non-empty string")
        if isinstance(self.required_params, str):
            raise TypeError("required_params must be a sequence of names, not a string")
        object.__setattr__(self, "required_params", tuple(self.required_params))

    def summary(self) -> ActionSummary:
        return ActionSummary(
            name=self.name,
            description=self.description,
            required_params=list(self.required_params),
        )


class ActionRegistry:
    """Read-only mapping of action name to definition.

    The registry is populated once at construction and exposes no way to add
    or replace entries afterwards. Lookups are safe from any thread.
    """

    __slots__ = ("_actions",)

    def __init__(self, definitions: Iterable[ActionDefinition]) -> None:
        actions: dict[str, ActionDefinition] = {}
        for definition in definitions:
            if definition.name in actions:
                raise ValueError(f"duplicate action definition: {definition.name}")
            actions[definition.name] = definition
        self._actions: Mapping[str, ActionDefinition] = MappingProxyType(actions)

    def get(self, name: object) -> ActionDefinition | None:
        if not isinstance(name, str):
            return None
        return self._actions.get(name)

    def list(self) -> tuple[ActionDefinition, ...]:
        return tuple(self._actions.values())

    def names(self) -> tuple[str, ...]:
        return tuple(self._actions.keys())

    def __contains__(self, name: object) -> bool:
        return self.get(name) is not None

    def __iter__(self) -> Iterator[str]:
        return iter(self._actions)

    def __len__(self) -> int:
        return len(self._actions)
