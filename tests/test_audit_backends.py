"""Behaviour shared by every audit log backend."""

from __future__ import annotations

import threading
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Iterator

import pytest

from remedygate.audit import AuditLog, JSONLAuditLog, MemoryAuditLog, SQLiteAuditLog
from remedygate.errors import InvalidFilter, PersistenceError
from remedygate.types import AuditRecord, AuditStatus

BACKENDS = ("memory", "sqlite", "jsonl")


def _open(kind: str, tmp_path: Path) -> AuditLog:
    if kind == "memory":
        return MemoryAuditLog()
    if kind == "sqlite":
        return SQLiteAuditLog(tmp_path / "audit.db")
    return JSONLAuditLog(tmp_path / "audit.jsonl")


def _record(action: str = "clear_cache", status: AuditStatus = AuditStatus.SUCCESS, **extra: object) -> AuditRecord:
    return AuditRecord(
        action=action,
        params={"service": "api"},
        result={"message": "ok"},
        status=status,
        duration_ms=3,
        **extra,
    )


@pytest.fixture(params=BACKENDS)
def log(request: pytest.FixtureRequest, tmp_path: Path) -> Iterator[AuditLog]:
    audit_log = _open(request.param, tmp_path)
    try:
        yield audit_log
    finally:
        audit_log.close()


def test_query_returns_newest_first(log: AuditLog) -> None:
    records = [_record(action=f"action_{index}") for index in range(3)]
    for record in records:
        log.append(record)

    assert [record.id for record in log.query()] == [record.id for record in reversed(records)]


def test_insertion_order_wins_over_timestamps(log: AuditLog) -> None:
    late = _record(timestamp=datetime(2030, 1, 1, tzinfo=timezone.utc))
    early = _record(timestamp=datetime(2030, 1, 1, tzinfo=timezone.utc) - timedelta(days=1))
    log.append(late)
    log.append(early)

    assert [record.id for record in log.query()] == [early.id, late.id]


def test_records_round_trip_unchanged(log: AuditLog) -> None:
    record = _record(reason="cpu saturation")
    log.append(record)

    stored = log.get(record.id)
    assert stored == record
    assert log.get("missing-id") is None


def test_status_filter(log: AuditLog) -> None:
    log.append(_record(status=AuditStatus.SUCCESS))
    log.append(_record(action="nuke", status=AuditStatus.REJECTED))
    log.append(_record(status=AuditStatus.ERROR))

    rejected = log.query(status="rejected")
    assert [record.action for record in rejected] == ["nuke"]
    assert len(log.query(status="")) == 3
    assert len(log.query(status=None)) == 3


def test_invalid_status_is_rejected(log: AuditLog) -> None:
    with pytest.raises(InvalidFilter, match="success, rejected, error"):
        log.query(status="bogus")


def test_limit_is_clamped(log: AuditLog) -> None:
    for _ in range(5):
        log.append(_record())

    assert len(log.query(limit=2)) == 2
    assert len(log.query(limit=0)) == 1
    assert len(log.query(limit=-10)) == 1
    assert len(log.query(limit=10_000)) == 5
    with pytest.raises(InvalidFilter):
        log.query(limit="many")  # type: ignore[arg-type]


def test_stats(log: AuditLog) -> None:
    log.append(_record())
    log.append(_record())
    log.append(_record(action="nuke", status=AuditStatus.REJECTED))

    stats = log.stats()
    assert stats.total == 3
    assert stats.by_status == {"success": 2, "rejected": 1}
    assert stats.by_action == {"clear_cache": 2, "nuke": 1}


def test_empty_log(log: AuditLog) -> None:
    assert log.query() == []
    assert log.stats().total == 0
    assert log.verify() == 0


def test_verify_counts_records(log: AuditLog) -> None:
    for _ in range(4):
        log.append(_record())
    assert log.verify() == 4


def test_append_after_close_fails(log: AuditLog) -> None:
    log.close()
    with pytest.raises(PersistenceError):
        log.append(_record())


def test_concurrent_appends_keep_every_record(log: AuditLog) -> None:
    workers = 6
    per_worker = 10
    barrier = threading.Barrier(workers)
    appended: list[str] = []
    appended_lock = threading.Lock()

    def worker() -> None:
        barrier.wait()
        for _ in range(per_worker):
            record = _record()
            log.append(record)
            with appended_lock:
                appended.append(record.id)

    threads = [threading.Thread(target=worker) for _ in range(workers)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    stored = [record.id for record in log.query(limit=500)]
    assert len(stored) == workers * per_worker
    assert sorted(stored) == sorted(appended)
    assert log.verify() == workers * per_worker
