"""Built-in remediation actions.

Effects are simulated: they describe what would have happened to the cluster
without touching it. ``notify_slack`` is the exception and goes through the
configured notifier, which may perform a real webhook call.
"""

from __future__ import annotations

import random
import re
from typing import Any, Mapping

from .notifiers.base import Notifier, NullNotifier
from .registry import ActionDefinition, ActionRegistry
from .types import utc_now

MIN_REPLICAS = 1
MAX_REPLICAS = 20
MAX_MESSAGE_LENGTH = 2000

_SERVICE_RE = re.compile(r"^[a-z0-9-]+$")
_CHANNEL_RE = re.compile(r"^#?[a-z0-9_-]+$")
_VERSION_RE = re.compile(r"^v?\d+(\.\d+){0,3}([-+][0-9A-Za-z.-]+)?$")
_NODE_RE = re.compile(r"^[a-z0-9]([a-z0-9.-]{0,251}[a-z0-9])?$")


def _matches(pattern: re.Pattern[str], value: Any) -> bool:
    return isinstance(value, str) and pattern.fullmatch(value) is not None


def _service_errors(params: Mapping[str, Any]) -> list[str]:
    if _matches(_SERVICE_RE, params.get("service")):
        return []
    return ["service must be a lowercase alphanumeric string with dashes"]


def validate_scale_pods(params: Mapping[str, Any]) -> list[str]:
    errors = _service_errors(params)
    replicas = params.get("replicas")
    # bool is an int subclass; reject it explicitly.
    if (
        isinstance(replicas, bool)
        or not isinstance(replicas, int)
        or not MIN_REPLICAS <= replicas <= MAX_REPLICAS
    ):
        errors.append(f"replicas must be an integer between {MIN_REPLICAS} and {MAX_REPLICAS}")
    return errors


def validate_service_only(params: Mapping[str, Any]) -> list[str]:
    return _service_errors(params)


def validate_notify_slack(params: Mapping[str, Any]) -> list[str]:
    errors: list[str] = []
    if not _matches(_CHANNEL_RE, params.get("channel")):
        errors.append("channel must be a valid Slack channel name")
    message = params.get("message")
    if not isinstance(message, str) or not 1 <= len(message) <= MAX_MESSAGE_LENGTH:
        errors.append(f"message must be a string between 1 and {MAX_MESSAGE_LENGTH} characters")
    return errors


def validate_rollback_deployment(params: Mapping[str, Any]) -> list[str]:
    errors = _service_errors(params)
    if not _matches(_VERSION_RE, params.get("version")):
        errors.append('version must be a valid version string (e.g. "v1.2.3")')
    return errors


def validate_drain_node(params: Mapping[str, Any]) -> list[str]:
    if _matches(_NODE_RE, params.get("node")):
        return []
    return ["node must be a valid Kubernetes node name"]


def build_default_registry(
    notifier: Notifier | None = None,
    rng: random.Random | None = None,
) -> ActionRegistry:
    """Build the standard allowlist.

    ``rng`` drives the simulated figures (replica counts, timings) so tests can
    pin them; ``notifier`` receives ``notify_slack`` messages.
    """
    rng = rng if rng is not None else random.Random()
    notifier = notifier if notifier is not None else NullNotifier()

    def scale_pods(params: Mapping[str, Any]) -> dict[str, Any]:
        return {
            "message": f"Scaled {params['service']} to {params['replicas']} replicas",
            "previous_replicas": rng.randint(1, 3),
            "new_replicas": params["replicas"],
            "estimated_ready_seconds": rng.randint(10, 39),
        }

    def restart_service(params: Mapping[str, Any]) -> dict[str, Any]:
        return {
            "message": f"Rolling restart initiated for {params['service']}",
            "strategy": params.get("strategy") or "rolling",
            "pods_restarting": rng.randint(1, 3),
            "estimated_completion_seconds": rng.randint(30, 89),
        }

    def notify_slack(params: Mapping[str, Any]) -> dict[str, Any]:
        severity = params.get("severity") or "info"
        sent = notifier.send(channel=params["channel"], message=params["message"], severity=severity)
        verb = "sent" if sent.delivered else "simulated"
        result: dict[str, Any] = {
            "message": f"Notification {verb} to {params['channel']}",
            "slack_message": params["message"],
            "severity": severity,
            "delivered": sent.delivered,
            "simulated": sent.simulated,
            "timestamp": utc_now().isoformat(),
        }
        if sent.status_code is not None:
            result["status_code"] = sent.status_code
        if sent.detail:
            result["detail"] = sent.detail
        return result

    def clear_cache(params: Mapping[str, Any]) -> dict[str, Any]:
        return {
            "message": f"Cache cleared for service: {params['service']}",
            "freed_mb": rng.randint(64, 2048),
        }

    def rollback_deployment(params: Mapping[str, Any]) -> dict[str, Any]:
        return {
            "message": f"Rolled back {params['service']} to version {params['version']}",
            "target_version": params["version"],
            "pods_replaced": rng.randint(1, 5),
        }

    def drain_node(params: Mapping[str, Any]) -> dict[str, Any]:
        return {
            "message": f"Node {params['node']} drained. Pods rescheduled to healthy nodes.",
            "pods_evicted": rng.randint(3, 12),
            "cordoned": True,
        }

    return ActionRegistry(
        [
            ActionDefinition(
                name="scale_pods",
                description="Scale a Kubernetes deployment to the specified replica count",
                required_params=("service", "replicas"),
                validate=validate_scale_pods,
                effect=scale_pods,
            ),
            ActionDefinition(
                name="restart_service",
                description="Perform a rolling restart of a service (zero-downtime)",
                required_params=("service",),
                validate=validate_service_only,
                effect=restart_service,
            ),
            ActionDefinition(
                name="notify_slack",
                description="Send a notification to a Slack channel (simulated without a webhook)",
                required_params=("channel", "message"),
                validate=validate_notify_slack,
                effect=notify_slack,
            ),
            ActionDefinition(
                name="clear_cache",
                description="Clear application cache for a service",
                required_params=("service",),
                validate=validate_service_only,
                effect=clear_cache,
            ),
            ActionDefinition(
                name="rollback_deployment",
                description="Rollback a service to the previous stable version",
                required_params=("service", "version"),
                validate=validate_rollback_deployment,
                effect=rollback_deployment,
            ),
            ActionDefinition(
                name="drain_node",
                description="Drain a Kubernetes node to safely evict pods before maintenance",
                required_params=("node",),
                validate=validate_drain_node,
                effect=drain_node,
            ),
        ]
    )
