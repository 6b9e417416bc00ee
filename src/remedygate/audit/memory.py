"""In-process audit log for tests and ephemeral runs."""

from __future__ import annotations

import threading

from ..errors import PersistenceError
from ..types import AuditRecord, AuditStats
from .base import clamp_limit, parse_status, summarize


class MemoryAuditLog:
    """List-backed audit log. Not durable; records live as long as the process."""

    def __init__(self) -> None:
        self._records: list[AuditRecord] = []
        self._lock = threading.Lock()
        self._closed = False

    def append(self, record: AuditRecord) -> None:
        with self._lock:
            if self._closed:
                raise PersistenceError("audit log is closed")
            self._records.append(record.model_copy(deep=True))

    def _snapshot(self) -> list[AuditRecord]:
        with self._lock:
            return list(self._records)

    def query(self, *, status: str | None = None, limit: int | None = None) -> list[AuditRecord]:
        wanted = parse_status(status)
        size = clamp_limit(limit)
        matches = [
            record
            for record in reversed(self._snapshot())
            if wanted is None or record.status is wanted
        ]
        return [record.model_copy(deep=True) for record in matches[:size]]

    def get(self, record_id: str) -> AuditRecord | None:
        for record in self._snapshot():
            if record.id == record_id:
                return record.model_copy(deep=True)
        return None

    def stats(self) -> AuditStats:
        return summarize(self._snapshot())

    def verify(self) -> int:
        return len(self._snapshot())

    def close(self) -> None:
        with self._lock:
            self._closed = True

    def __len__(self) -> int:
        return len(self._snapshot())

    def __enter__(self) -> "MemoryAuditLog":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
