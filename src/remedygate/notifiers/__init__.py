"""Outbound notification channels used by the notify effect."""

from .base import NotificationError, NotificationResult, Notifier, NullNotifier
from .slack import SlackWebhookNotifier

__all__ = [
    "Notifier",
    "NotificationResult",
    "NotificationError",
    "NullNotifier",
    "SlackWebhookNotifier",
]
