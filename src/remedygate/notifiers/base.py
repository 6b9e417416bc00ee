"""Notifier interface for the notification effect."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from ..errors import EffectFault


class NotificationError(EffectFault):
    """Raised when an outbound notification could not be delivered."""


@dataclass(frozen=True)
class NotificationResult:
    delivered: bool
    simulated: bool
    status_code: int | None = None
    detail: str | None = None


class Notifier(Protocol):
    """Protocol for outbound notification channels."""

    def send(self, *, channel: str, message: str, severity: str = "info") -> NotificationResult:
        """Deliver ``message`` to ``channel``. Raises NotificationError on failure."""
        ...


class NullNotifier:
    """Notifier used when no webhook is configured; nothing leaves the process."""

    def __init__(self, detail: str = "No SLACK_WEBHOOK_URL configured (simulated)") -> None:
        self.detail = detail

    def send(self, *, channel: str, message: str, severity: str = "info") -> NotificationResult:
        return NotificationResult(delivered=False, simulated=True, detail=self.detail)
