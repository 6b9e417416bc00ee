from __future__ import annotations

import sqlite3
from pathlib import Path

import pytest

from remedygate.audit import SQLiteAuditLog
from remedygate.errors import AuditVerificationError, PersistenceError
from remedygate.types import AuditRecord, AuditStatus


def _record(action: str = "restart_service") -> AuditRecord:
    return AuditRecord(
        action=action,
        params={"service": "api"},
        result={"message": "ok"},
        status=AuditStatus.SUCCESS,
    )


def test_records_survive_reopen(tmp_path: Path) -> None:
    path = tmp_path / "audit.db"
    first = SQLiteAuditLog(path)
    record = _record()
    first.append(record)
    first.close()

    reopened = SQLiteAuditLog(path)
    assert [stored.id for stored in reopened.query()] == [record.id]
    reopened.append(_record())
    assert reopened.verify() == 2


def test_wal_journal_is_enabled(tmp_path: Path) -> None:
    path = tmp_path / "audit.db"
    SQLiteAuditLog(path)

    conn = sqlite3.connect(path)
    try:
        mode = conn.execute("PRAGMA journal_mode").fetchone()[0]
    finally:
        conn.close()
    assert mode.lower() == "wal"


def test_tamper_detection_on_modified_entry(tmp_path: Path) -> None:
    path = tmp_path / "audit.db"
    log = SQLiteAuditLog(path)
    log.append(_record())
    log.append(_record())

    conn = sqlite3.connect(path)
    entry_json = conn.execute("SELECT entry_json FROM audit_records WHERE seq = 1").fetchone()[0]
    conn.execute(
        "UPDATE audit_records SET entry_json = ? WHERE seq = 1",
        (entry_json.replace("restart_service", "drain_node"),),
    )
    conn.commit()
    conn.close()

    with pytest.raises(AuditVerificationError):
        log.verify()


def test_tamper_detection_on_hash_columns(tmp_path: Path) -> None:
    path = tmp_path / "audit.db"
    log = SQLiteAuditLog(path)
    log.append(_record())
    log.append(_record())

    conn = sqlite3.connect(path)
    conn.execute("UPDATE audit_records SET entry_hash = ? WHERE seq = 1", ("bogus",))
    conn.commit()
    conn.close()

    with pytest.raises(AuditVerificationError):
        log.verify()


def test_tamper_detection_on_deleted_row(tmp_path: Path) -> None:
    path = tmp_path / "audit.db"
    log = SQLiteAuditLog(path)
    for _ in range(3):
        log.append(_record())

    conn = sqlite3.connect(path)
    conn.execute("DELETE FROM audit_records WHERE seq = 2")
    conn.commit()
    conn.close()

    with pytest.raises(AuditVerificationError, match="prev_entry_hash"):
        log.verify()


def test_duplicate_id_is_a_persistence_error(tmp_path: Path) -> None:
    log = SQLiteAuditLog(tmp_path / "audit.db")
    record = _record()
    log.append(record)

    with pytest.raises(PersistenceError):
        log.append(record)
    assert log.verify() == 1


def test_unopenable_path_raises_persistence_error(tmp_path: Path) -> None:
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("x", encoding="utf-8")

    with pytest.raises(PersistenceError):
        SQLiteAuditLog(blocker / "audit.db")
