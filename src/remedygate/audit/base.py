"""Audit log interface and shared query helpers."""

from __future__ import annotations

from collections import Counter
from typing import Iterable, Protocol

from ..errors import InvalidFilter
from ..types import AUDIT_STATUSES, AuditRecord, AuditStats, AuditStatus

DEFAULT_HISTORY_LIMIT = 50
MAX_HISTORY_LIMIT = 500


class AuditLog(Protocol):
    """Append-only store of execution attempts.

    Implementations must:
    - serialise physical writes (single writer) and be safe for concurrent callers
    - never mutate or delete a record once appended
    - return query results newest first
    """

    def append(self, record: AuditRecord) -> None:
        """Persist one record. Raises PersistenceError if the store is unavailable."""

    def query(self, *, status: str | None = None, limit: int | None = None) -> list[AuditRecord]:
        """Return up to ``limit`` records, newest first, optionally filtered by status."""

    def get(self, record_id: str) -> AuditRecord | None:
        """Return a single record by id."""

    def stats(self) -> AuditStats:
        """Return counts grouped by status and action."""

    def verify(self) -> int:
        """Verify stored records and return how many were checked."""

    def close(self) -> None:
        """Release resources; later appends fail with PersistenceError."""


def parse_status(status: str | AuditStatus | None) -> AuditStatus | None:
    """Normalise a status filter. Empty means "no filter"."""
    if status is None or status == "":
        return None
    if isinstance(status, AuditStatus):
        return status
    if isinstance(status, str) and status in AUDIT_STATUSES:
        return AuditStatus(status)
    raise InvalidFilter(f"Invalid status. Must be: {', '.join(AUDIT_STATUSES)}")


def clamp_limit(limit: int | str | None) -> int:
    """Clamp ``limit`` into [1, MAX_HISTORY_LIMIT]; None selects the default."""
    if limit is None or limit == "":
        return DEFAULT_HISTORY_LIMIT
    if isinstance(limit, bool):
        raise InvalidFilter("limit must be an integer")
    try:
        value = int(limit)
    except (TypeError, ValueError) as exc:
        raise InvalidFilter("limit must be an integer") from exc
    return max(1, min(value, MAX_HISTORY_LIMIT))


def summarize(records: Iterable[AuditRecord]) -> AuditStats:
    by_status: Counter[str] = Counter()
    by_action: Counter[str] = Counter()
    for record in records:
        by_status[record.status.value] += 1
        by_action[record.action] += 1
    return AuditStats(
        total=sum(by_status.values()),
        by_status=dict(by_status.most_common()),
        by_action=dict(by_action.most_common()),
    )
