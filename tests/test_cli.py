"""Tests for the remedygate command-line interface."""

from __future__ import annotations

import csv
import io
import json
import sqlite3
from pathlib import Path

import pytest

from remedygate.cli import EXIT_BAD_REQUEST, EXIT_FAILED, EXIT_FORBIDDEN, EXIT_OK, main


def _sqlite_args(tmp_path: Path) -> list[str]:
    return ["--backend", "sqlite", "--audit-path", str(tmp_path / "audit.db")]


def _json_out(capsys: pytest.CaptureFixture[str]) -> object:
    return json.loads(capsys.readouterr().out)


def test_actions_json(capsys: pytest.CaptureFixture[str]) -> None:
    assert main(["--backend", "memory", "actions", "--json"]) == EXIT_OK
    payload = _json_out(capsys)
    assert isinstance(payload, list)
    assert payload[0] == {
        "name": "scale_pods",
        "description": "Scale a Kubernetes deployment to the specified replica count",
        "required_params": ["service", "replicas"],
    }


def test_actions_table(capsys: pytest.CaptureFixture[str]) -> None:
    assert main(["--backend", "memory", "actions"]) == EXIT_OK
    out = capsys.readouterr().out
    assert "drain_node" in out


def test_execute_success(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    code = main(
        _sqlite_args(tmp_path)
        + ["execute", "scale_pods", "-p", "service=payment-service", "-p", "replicas=5", "--json"]
    )
    assert code == EXIT_OK
    payload = _json_out(capsys)
    assert payload["success"] is True
    assert payload["status"] == "success"
    assert payload["result"]["new_replicas"] == 5


def test_execute_with_params_json(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    code = main(
        _sqlite_args(tmp_path)
        + [
            "execute",
            "rollback_deployment",
            "--params-json",
            '{"service": "api", "version": "v1.2.3"}',
            "--reason",
            "bad deploy",
            "--json",
        ]
    )
    assert code == EXIT_OK
    assert _json_out(capsys)["result"]["target_version"] == "v1.2.3"


def test_execute_forbidden(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    code = main(_sqlite_args(tmp_path) + ["execute", "delete_all_pods", "--json"])
    assert code == EXIT_FORBIDDEN
    payload = _json_out(capsys)
    assert payload["success"] is False
    assert payload["error"] == "Action 'delete_all_pods' is not permitted by policy"
    assert "scale_pods" in payload["allowed_actions"]

    assert main(_sqlite_args(tmp_path) + ["history", "--status", "rejected", "--format", "json"]) == EXIT_OK
    history = _json_out(capsys)
    assert [record["id"] for record in history] == [payload["execution_id"]]


def test_execute_bad_request(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    code = main(
        _sqlite_args(tmp_path)
        + ["execute", "scale_pods", "-p", "service=payment-service", "-p", "replicas=100", "--json"]
    )
    assert code == EXIT_BAD_REQUEST
    payload = _json_out(capsys)
    assert any("1 and 20" in error for error in payload["validation_errors"])
    assert payload["required_params"] == ["service", "replicas"]


def test_execute_params_json_must_be_object(tmp_path: Path) -> None:
    code = main(_sqlite_args(tmp_path) + ["execute", "clear_cache", "--params-json", "[1, 2]"])
    assert code == EXIT_BAD_REQUEST


def test_history_invalid_status(tmp_path: Path) -> None:
    assert main(_sqlite_args(tmp_path) + ["history", "--status", "bogus"]) == EXIT_BAD_REQUEST


def test_history_csv_export(tmp_path: Path) -> None:
    main(_sqlite_args(tmp_path) + ["execute", "clear_cache", "-p", "service=api"])
    main(_sqlite_args(tmp_path) + ["execute", "clear_cache", "-p", "service=web"])
    output = tmp_path / "history.csv"

    code = main(_sqlite_args(tmp_path) + ["history", "--format", "csv", "--output", str(output)])

    assert code == EXIT_OK
    rows = list(csv.DictReader(io.StringIO(output.read_text(encoding="utf-8"))))
    assert len(rows) == 2
    assert json.loads(rows[0]["params"]) == {"service": "web"}
    assert rows[0]["status"] == "success"


def test_history_ndjson_respects_limit(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    for service in ("a", "b", "c"):
        main(_sqlite_args(tmp_path) + ["execute", "clear_cache", "-p", f"service={service}"])
    capsys.readouterr()

    assert main(_sqlite_args(tmp_path) + ["history", "--format", "ndjson", "--limit", "2"]) == EXIT_OK
    lines = capsys.readouterr().out.splitlines()
    assert len(lines) == 2
    assert json.loads(lines[0])["params"] == {"service": "c"}


def test_stats_and_verify(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    main(_sqlite_args(tmp_path) + ["execute", "clear_cache", "-p", "service=api"])
    main(_sqlite_args(tmp_path) + ["execute", "nuke"])
    capsys.readouterr()

    assert main(_sqlite_args(tmp_path) + ["stats", "--json"]) == EXIT_OK
    stats = _json_out(capsys)
    assert stats["total"] == 2
    assert stats["by_status"] == {"success": 1, "rejected": 1}

    assert main(_sqlite_args(tmp_path) + ["verify", "--json"]) == EXIT_OK
    assert _json_out(capsys) == {"ok": True, "records": 2}


def test_verify_detects_tampering(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    main(_sqlite_args(tmp_path) + ["execute", "clear_cache", "-p", "service=api"])
    capsys.readouterr()
    conn = sqlite3.connect(tmp_path / "audit.db")
    conn.execute("UPDATE audit_records SET entry_hash = 'bogus'")
    conn.commit()
    conn.close()

    assert main(_sqlite_args(tmp_path) + ["verify", "--json"]) == EXIT_FAILED
    payload = _json_out(capsys)
    assert payload["ok"] is False
    assert payload["reason_code"] == "audit.chain_broken"


def test_invalid_configuration_exits_bad_request(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("REMEDYGATE_NOTIFY_TIMEOUT", "never")
    assert main(["--backend", "memory", "actions"]) == EXIT_BAD_REQUEST


def test_unopenable_audit_store_exits_failed(tmp_path: Path) -> None:
    blocker = tmp_path / "file"
    blocker.write_text("x", encoding="utf-8")
    code = main(["--backend", "sqlite", "--audit-path", str(blocker / "audit.db"), "actions"])
    assert code == EXIT_FAILED


def test_history_unwritable_output_exits_failed(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    output = tmp_path / "missing-dir" / "history.csv"

    code = main(_sqlite_args(tmp_path) + ["history", "--format", "csv", "--output", str(output)])

    assert code == EXIT_FAILED
    assert "cannot write output" in capsys.readouterr().err
    assert not output.exists()
