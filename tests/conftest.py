from __future__ import annotations

import random
from typing import Iterator

import pytest

from remedygate.actions import build_default_registry
from remedygate.audit import MemoryAuditLog
from remedygate.config import (
    ENV_AUDIT_BACKEND,
    ENV_AUDIT_PATH,
    ENV_LOG_LEVEL,
    ENV_NOTIFY_TIMEOUT,
    ENV_SLACK_WEBHOOK_URL,
)
from remedygate.engine import RemediationExecutor
from remedygate.registry import ActionRegistry


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Keep the developer's environment (webhooks, audit paths) out of tests."""
    for name in (
        ENV_AUDIT_BACKEND,
        ENV_AUDIT_PATH,
        ENV_LOG_LEVEL,
        ENV_NOTIFY_TIMEOUT,
        ENV_SLACK_WEBHOOK_URL,
    ):
        monkeypatch.delenv(name, raising=False)
    yield


@pytest.fixture
def registry() -> ActionRegistry:
    return build_default_registry(rng=random.Random(1234))


@pytest.fixture
def audit_log() -> MemoryAuditLog:
    return MemoryAuditLog()


@pytest.fixture
def executor(registry: ActionRegistry, audit_log: MemoryAuditLog) -> RemediationExecutor:
    return RemediationExecutor(registry=registry, audit_log=audit_log)
