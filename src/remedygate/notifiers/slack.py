"""Slack incoming-webhook notifier."""

from __future__ import annotations

import logging

import httpx

from .base import NotificationError, NotificationResult

DEFAULT_TIMEOUT_SECONDS: float = 5.0

_logger = logging.getLogger(__name__)


class SlackWebhookNotifier:
    """Posts notifications to a Slack incoming webhook.

    Each send is a single bounded HTTP call. Timeouts, transport errors and
    non-2xx responses raise NotificationError; nothing is retried.
    """

    def __init__(
        self,
        webhook_url: str,
        *,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        username: str = "Incident Slayer Bot",
        icon_emoji: str = ":crossed_swords:",
        client: httpx.Client | None = None,
    ) -> None:
        if not webhook_url or not webhook_url.strip():
            raise ValueError("webhook_url must be a non-empty string")
        if timeout <= 0:
            raise ValueError("timeout must be positive")
        self.webhook_url = webhook_url
        self.timeout = timeout
        self.username = username
        self.icon_emoji = icon_emoji
        self._client = client

    def _payload(self, channel: str, message: str, severity: str) -> dict[str, str]:
        return {
            "channel": channel,
            "text": f"*Incident Slayer* [{severity}]\n{message}",
            "username": self.username,
            "icon_emoji": self.icon_emoji,
        }

    def send(self, *, channel: str, message: str, severity: str = "info") -> NotificationResult:
        payload = self._payload(channel, message, severity)
        try:
            if self._client is not None:
                response = self._client.post(self.webhook_url, json=payload, timeout=self.timeout)
            else:
                with httpx.Client(timeout=self.timeout) as client:
                    response = client.post(self.webhook_url, json=payload)
        except httpx.TimeoutException as exc:
            raise NotificationError(
                f"slack webhook timed out after {self.timeout:g}s"
            ) from exc
        except httpx.HTTPError as exc:
            raise NotificationError(f"slack webhook request failed: {type(exc).__name__}") from exc

        if response.status_code >= 400:
            raise NotificationError(f"slack webhook returned HTTP {response.status_code}")
        _logger.info("Slack notification delivered to %s (HTTP %s)", channel, response.status_code)
        return NotificationResult(delivered=True, simulated=False, status_code=response.status_code)
