"""Append-only JSONL audit log with hash chaining and file locking."""

from __future__ import annotations

import json
import logging
import mmap
import os
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, BinaryIO, Iterator

from ..errors import AuditVerificationError, PersistenceError, sanitize_exception
from ..types import AuditRecord, AuditStats
from .base import clamp_limit, parse_status, summarize
from .chain import canonical_json, chain_entry, strip_chain, verify_chain

if os.name == "nt":
    import msvcrt
else:
    import fcntl

_logger = logging.getLogger(__name__)


@contextmanager
def _exclusive(handle: BinaryIO) -> Iterator[None]:
    """Hold an OS-level write lock on ``handle``; every writer of the file must use it."""
    fd = handle.fileno()
    if os.name == "nt":
        # msvcrt locks byte ranges; byte 0 stands in for the whole file.
        handle.seek(0)
        msvcrt.locking(fd, msvcrt.LK_LOCK, 1)  # type: ignore[attr-defined]
        try:
            yield
        finally:
            handle.seek(0)
            msvcrt.locking(fd, msvcrt.LK_UNLCK, 1)  # type: ignore[attr-defined]
        return
    fcntl.flock(fd, fcntl.LOCK_EX)
    try:
        yield
    finally:
        fcntl.flock(fd, fcntl.LOCK_UN)


class JSONLAuditLog:
    """One canonical JSON document per line, fsynced on every append.

    Readers only consider newline-terminated lines, so a reader racing a
    writer never sees a half-written record. A writer that finds a torn
    (unterminated) tail left by a crash truncates it before appending.
    """

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        self._write_lock = threading.Lock()
        self._closed = False

    def _ensure_open(self) -> None:
        if self._closed:
            raise PersistenceError("audit log is closed")

    def append(self, record: AuditRecord) -> None:
        with self._write_lock:
            self._ensure_open()
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                with self.path.open("a+b") as handle, _exclusive(handle):
                    entry = chain_entry(record.to_payload(), self._last_entry_hash(handle))
                    handle.write((canonical_json(entry) + "\n").encode("utf-8"))
                    handle.flush()
                    os.fsync(handle.fileno())
            except (OSError, AuditVerificationError) as exc:
                raise PersistenceError(f"audit append failed: {sanitize_exception(exc)}") from exc

    def _last_entry_hash(self, handle: BinaryIO) -> str | None:
        """Return the chain tail's entry_hash. Must be called with the file lock held."""
        size = os.fstat(handle.fileno()).st_size
        if size == 0:
            return None
        with mmap.mmap(handle.fileno(), 0, access=mmap.ACCESS_READ) as view:
            complete = view.rfind(b"\n") + 1
            start = view.rfind(b"\n", 0, complete - 1) + 1 if complete > 1 else 0
            last_line = view[start:complete].strip()

        if complete < size:
            _logger.warning(
                "Discarding %d bytes of torn write at the end of %s", size - complete, self.path.name
            )
            handle.truncate(complete)
        if not last_line:
            if complete == 0:
                return None
            raise AuditVerificationError("blank line at tail")
        try:
            tail = json.loads(last_line)
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise AuditVerificationError("invalid JSON at tail") from exc
        entry_hash = tail.get("entry_hash") if isinstance(tail, dict) else None
        if not isinstance(entry_hash, str):
            raise AuditVerificationError("entry_hash missing at tail")
        return entry_hash

    def _iter_entries(self) -> Iterator[dict[str, Any]]:
        self._ensure_open()
        if not self.path.exists():
            return
        try:
            with self.path.open("r", encoding="utf-8") as handle:
                for line_number, raw_line in enumerate(handle, start=1):
                    if not raw_line.endswith("\n"):
                        break
                    line = raw_line.strip()
                    if not line:
                        continue
                    try:
                        entry = json.loads(line)
                    except json.JSONDecodeError as exc:
                        raise AuditVerificationError(f"invalid JSON at line {line_number}") from exc
                    if not isinstance(entry, dict):
                        raise AuditVerificationError(f"line {line_number} is not an object")
                    yield entry
        except OSError as exc:
            raise PersistenceError(f"audit read failed: {sanitize_exception(exc)}") from exc

    def _records(self) -> list[AuditRecord]:
        return [AuditRecord.model_validate(strip_chain(entry)) for entry in self._iter_entries()]

    def query(self, *, status: str | None = None, limit: int | None = None) -> list[AuditRecord]:
        wanted = parse_status(status)
        size = clamp_limit(limit)
        matches = [
            record
            for record in reversed(self._records())
            if wanted is None or record.status is wanted
        ]
        return matches[:size]

    def get(self, record_id: str) -> AuditRecord | None:
        for entry in self._iter_entries():
            if entry.get("id") == record_id:
                return AuditRecord.model_validate(strip_chain(entry))
        return None

    def stats(self) -> AuditStats:
        return summarize(self._records())

    def verify(self) -> int:
        return verify_chain(self._iter_entries())

    def close(self) -> None:
        with self._write_lock:
            self._closed = True

    def __enter__(self) -> "JSONLAuditLog":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
