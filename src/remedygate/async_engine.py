"""Async front end for RemediationExecutor.

Effects and audit writes are blocking I/O, so each call runs in a worker
thread via ``asyncio.to_thread``. The event loop stays free while many
requests are in flight; the audit backend's single-writer lock keeps
appends serialised.
"""

from __future__ import annotations

import asyncio
from typing import Any, Mapping

from .engine import RemediationExecutor
from .types import ActionRequest, ActionSummary, AuditRecord, AuditStats, ExecutionOutcome


class AsyncRemediationExecutor:
    """Wraps a sync RemediationExecutor for use from asyncio code.

    Usage:
        executor = build_executor(Settings.from_env())
        aexecutor = AsyncRemediationExecutor(executor)
        outcome = await aexecutor.execute_action("restart_service", {"service": "api"})
    """

    __slots__ = ("_executor",)

    def __init__(self, executor: RemediationExecutor) -> None:
        self._executor = executor

    @property
    def executor(self) -> RemediationExecutor:
        return self._executor

    async def execute(self, request: ActionRequest) -> ExecutionOutcome:
        return await asyncio.to_thread(self._executor.execute, request)

    async def execute_action(
        self,
        action: str,
        params: Mapping[str, Any] | None = None,
        reason: str | None = None,
    ) -> ExecutionOutcome:
        return await asyncio.to_thread(self._executor.execute_action, action, params, reason)

    async def list_actions(self) -> list[ActionSummary]:
        # Registry lookups are in-memory; no thread hop needed.
        return self._executor.list_actions()

    async def get_history(
        self, status: str | None = None, limit: int | None = None
    ) -> list[AuditRecord]:
        return await asyncio.to_thread(self._executor.get_history, status, limit)

    async def stats(self) -> AuditStats:
        return await asyncio.to_thread(self._executor.stats)
