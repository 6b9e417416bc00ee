"""SQLite-backed audit log with WAL journaling and hash chaining."""

from __future__ import annotations

import json
import sqlite3
import threading
from contextlib import closing
from pathlib import Path
from typing import Any, Iterator

from ..errors import AuditVerificationError, PersistenceError, sanitize_exception
from ..types import AuditRecord, AuditStats
from .base import clamp_limit, parse_status
from .chain import canonical_json, chain_entry, strip_chain, verify_chain

_SCHEMA = """
CREATE TABLE IF NOT EXISTS audit_records (
    seq INTEGER PRIMARY KEY AUTOINCREMENT,
    id TEXT NOT NULL UNIQUE,
    timestamp TEXT NOT NULL,
    action TEXT NOT NULL,
    status TEXT NOT NULL,
    duration_ms INTEGER NOT NULL DEFAULT 0,
    entry_json TEXT NOT NULL,
    entry_hash TEXT NOT NULL,
    prev_entry_hash TEXT
)
"""

_STATUS_INDEX = "CREATE INDEX IF NOT EXISTS idx_audit_records_status ON audit_records (status, seq)"


class SQLiteAuditLog:
    """Durable audit log stored in a single SQLite file.

    Design notes:
    - Writes go through one in-process lock plus ``BEGIN IMMEDIATE``, so a
      single writer touches the chain tail at a time, across processes too.
    - Each operation opens a short-lived connection; under WAL, readers do
      not block on the writer.
    - Rows are ordered by ``seq`` (insertion order), never by timestamp.
    """

    def __init__(self, path: Path | str, *, busy_timeout: float = 5.0) -> None:
        self.path = Path(path)
        self.busy_timeout = busy_timeout
        self._write_lock = threading.Lock()
        self._closed = False
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with closing(self._connect()) as conn:
                conn.execute("PRAGMA journal_mode=WAL")
                conn.execute(_SCHEMA)
                conn.execute(_STATUS_INDEX)
                conn.commit()
        except (OSError, sqlite3.Error) as exc:
            raise PersistenceError(f"cannot open audit store: {sanitize_exception(exc)}") from exc

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.path, timeout=self.busy_timeout, isolation_level=None)
        conn.execute("PRAGMA synchronous=FULL")
        return conn

    def _ensure_open(self) -> None:
        if self._closed:
            raise PersistenceError("audit log is closed")

    def append(self, record: AuditRecord) -> None:
        with self._write_lock:
            self._ensure_open()
            try:
                with closing(self._connect()) as conn:
                    conn.execute("BEGIN IMMEDIATE")
                    try:
                        row = conn.execute(
                            "SELECT entry_hash FROM audit_records ORDER BY seq DESC LIMIT 1"
                        ).fetchone()
                        entry = chain_entry(record.to_payload(), row[0] if row else None)
                        conn.execute(
                            "INSERT INTO audit_records "
                            "(id, timestamp, action, status, duration_ms, entry_json, entry_hash, prev_entry_hash) "
                            "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                            (
                                record.id,
                                entry["timestamp"],
                                record.action,
                                record.status.value,
                                record.duration_ms,
                                canonical_json(entry),
                                entry["entry_hash"],
                                entry["prev_entry_hash"],
                            ),
                        )
                    except BaseException:
                        conn.execute("ROLLBACK")
                        raise
                    conn.execute("COMMIT")
            except sqlite3.Error as exc:
                raise PersistenceError(f"audit append failed: {sanitize_exception(exc)}") from exc

    def _rows(self, sql: str, params: tuple[Any, ...] = ()) -> list[tuple[Any, ...]]:
        self._ensure_open()
        try:
            with closing(self._connect()) as conn:
                return conn.execute(sql, params).fetchall()
        except sqlite3.Error as exc:
            raise PersistenceError(f"audit query failed: {sanitize_exception(exc)}") from exc

    def query(self, *, status: str | None = None, limit: int | None = None) -> list[AuditRecord]:
        wanted = parse_status(status)
        size = clamp_limit(limit)
        if wanted is None:
            rows = self._rows(
                "SELECT entry_json FROM audit_records ORDER BY seq DESC LIMIT ?", (size,)
            )
        else:
            rows = self._rows(
                "SELECT entry_json FROM audit_records WHERE status = ? ORDER BY seq DESC LIMIT ?",
                (wanted.value, size),
            )
        return [_record_from_json(row[0]) for row in rows]

    def get(self, record_id: str) -> AuditRecord | None:
        rows = self._rows("SELECT entry_json FROM audit_records WHERE id = ?", (record_id,))
        return _record_from_json(rows[0][0]) if rows else None

    def stats(self) -> AuditStats:
        by_status = self._rows(
            "SELECT status, COUNT(*) AS n FROM audit_records GROUP BY status ORDER BY n DESC, status"
        )
        by_action = self._rows(
            "SELECT action, COUNT(*) AS n FROM audit_records GROUP BY action ORDER BY n DESC, action"
        )
        return AuditStats(
            total=sum(count for _, count in by_status),
            by_status={name: count for name, count in by_status},
            by_action={name: count for name, count in by_action},
        )

    def verify(self) -> int:
        rows = self._rows(
            "SELECT entry_json, entry_hash, prev_entry_hash FROM audit_records ORDER BY seq ASC"
        )

        def _entries() -> Iterator[dict[str, Any]]:
            for index, (entry_json, entry_hash, prev_hash) in enumerate(rows, start=1):
                try:
                    entry = json.loads(entry_json)
                except json.JSONDecodeError as exc:
                    raise AuditVerificationError(f"invalid JSON at entry {index}") from exc
                if entry.get("entry_hash") != entry_hash:
                    raise AuditVerificationError(f"entry_hash column mismatch at entry {index}")
                if entry.get("prev_entry_hash") != prev_hash:
                    raise AuditVerificationError(f"prev_entry_hash column mismatch at entry {index}")
                yield entry

        return verify_chain(_entries())

    def close(self) -> None:
        with self._write_lock:
            self._closed = True

    def __enter__(self) -> "SQLiteAuditLog":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def _record_from_json(entry_json: str) -> AuditRecord:
    return AuditRecord.model_validate(strip_chain(json.loads(entry_json)))
