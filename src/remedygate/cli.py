"""Command-line interface for remedygate."""

from __future__ import annotations

import argparse
import csv
import json
import sys
from pathlib import Path
from typing import Any, Iterable, TextIO

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .config import AUDIT_BACKENDS, Settings, build_executor, configure_logging
from .engine import RemediationExecutor
from .errors import (
    AuditVerificationError,
    ConfigError,
    InvalidFilter,
    PersistenceError,
    PolicyRejection,
    ValidationFailure,
    sanitize_exception,
)
from .types import AUDIT_STATUSES, AuditRecord, AuditStatus

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_BAD_REQUEST = 2
EXIT_FORBIDDEN = 3

CSV_FIELDS = ("id", "timestamp", "action", "status", "duration_ms", "reason", "params", "result")

_STATUS_STYLES = {
    AuditStatus.SUCCESS: "green",
    AuditStatus.REJECTED: "yellow",
    AuditStatus.ERROR: "red",
}


def _console(stderr: bool = False) -> Console:
    return Console(stderr=stderr, soft_wrap=True, highlight=False)


def _emit_json(payload: Any) -> None:
    sys.stdout.write(json.dumps(payload, ensure_ascii=False) + "\n")


def _parse_param(text: str) -> tuple[str, Any]:
    key, sep, raw = text.partition("=")
    if not sep or not key.strip():
        raise argparse.ArgumentTypeError(f"expected key=value, got {text!r}")
    try:
        value = json.loads(raw)
    except json.JSONDecodeError:
        value = raw
    return key.strip(), value


def _parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="remedygate", add_help=True)
    parser.add_argument("--backend", choices=AUDIT_BACKENDS, help="Audit store backend")
    parser.add_argument("--audit-path", dest="audit_path", type=Path, help="Audit store file")
    parser.add_argument("--log-level", dest="log_level", help="Logging level (default WARNING)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    actions_parser = subparsers.add_parser("actions", help="List allowlisted actions")
    actions_parser.add_argument("--json", action="store_true", help="Output JSON")

    execute_parser = subparsers.add_parser("execute", help="Execute a remediation action")
    execute_parser.add_argument("action", help="Action name")
    execute_parser.add_argument(
        "-p",
        "--param",
        dest="params",
        action="append",
        type=_parse_param,
        default=[],
        help="Action parameter as key=value (value parsed as JSON when possible)",
    )
    execute_parser.add_argument("--params-json", dest="params_json", help="Parameters as a JSON object")
    execute_parser.add_argument("--reason", help="Why the action is being taken")
    execute_parser.add_argument("--json", action="store_true", help="Output JSON")

    history_parser = subparsers.add_parser("history", help="Show the audit trail")
    history_parser.add_argument("--status", help=f"Filter by status ({', '.join(AUDIT_STATUSES)})")
    history_parser.add_argument("--limit", type=int, help="Maximum records (1-500, default 50)")
    history_parser.add_argument(
        "--format",
        choices=("table", "json", "ndjson", "csv"),
        default="table",
        help="Output format",
    )
    history_parser.add_argument("--output", type=Path, help="Output file path")

    stats_parser = subparsers.add_parser("stats", help="Aggregate audit counts")
    stats_parser.add_argument("--json", action="store_true", help="Output JSON")

    verify_parser = subparsers.add_parser("verify", help="Verify the audit hash chain")
    verify_parser.add_argument("--json", action="store_true", help="Output JSON")

    return parser.parse_args(argv)


def _cmd_actions(executor: RemediationExecutor, json_output: bool) -> int:
    actions = executor.list_actions()
    if json_output:
        _emit_json([action.model_dump() for action in actions])
        return EXIT_OK
    table = Table(title="Allowed remediation actions")
    table.add_column("Action", style="bold")
    table.add_column("Required params")
    table.add_column("Description")
    for action in actions:
        table.add_row(
            escape(action.name), escape(", ".join(action.required_params)), escape(action.description)
        )
    _console().print(table)
    return EXIT_OK


def _collect_params(pairs: list[tuple[str, Any]], params_json: str | None) -> dict[str, Any]:
    params: dict[str, Any] = {}
    if params_json:
        loaded = json.loads(params_json)
        if not isinstance(loaded, dict):
            raise ValueError("--params-json must be a JSON object")
        params.update(loaded)
    params.update(dict(pairs))
    return params


def _cmd_execute(
    executor: RemediationExecutor,
    action: str,
    pairs: list[tuple[str, Any]],
    params_json: str | None,
    reason: str | None,
    json_output: bool,
) -> int:
    err = _console(stderr=True)
    try:
        params = _collect_params(pairs, params_json)
    except ValueError as exc:
        err.print(f"[red]invalid parameters:[/red] {escape(str(exc))}")
        return EXIT_BAD_REQUEST

    try:
        outcome = executor.execute_action(action, params, reason)
    except PolicyRejection as exc:
        if json_output:
            _emit_json(
                {
                    "success": False,
                    "error": str(exc),
                    "reason_code": exc.reason_code,
                    "allowed_actions": list(exc.allowed_actions),
                    "execution_id": exc.execution_id,
                }
            )
        else:
            err.print(f"[bold red]FORBIDDEN[/bold red] {escape(str(exc))}")
            err.print(f"Allowed actions: {escape(', '.join(exc.allowed_actions))}")
        return EXIT_FORBIDDEN
    except ValidationFailure as exc:
        if json_output:
            _emit_json(
                {
                    "success": False,
                    "error": str(exc),
                    "reason_code": exc.reason_code,
                    "validation_errors": exc.errors,
                    "required_params": list(exc.required_params),
                }
            )
        else:
            err.print(f"[bold red]BAD REQUEST[/bold red] {escape(str(exc))}")
            for item in exc.errors:
                err.print(f"  - {escape(item)}")
        return EXIT_BAD_REQUEST

    if json_output:
        _emit_json({"success": outcome.ok, **outcome.model_dump(mode="json")})
    else:
        style = _STATUS_STYLES[outcome.status]
        console = _console()
        console.print(
            f"[{style}]{outcome.status.value.upper()}[/{style}] {escape(outcome.action)} "
            f"in {outcome.duration_ms}ms (id={outcome.execution_id})"
        )
        console.print(escape(json.dumps(outcome.result, indent=2, ensure_ascii=False)))
    return EXIT_OK if outcome.ok else EXIT_FAILED


def _flatten_record(record: AuditRecord) -> dict[str, str]:
    payload = record.to_payload()
    return {
        "id": payload["id"],
        "timestamp": payload["timestamp"],
        "action": payload["action"],
        "status": payload["status"],
        "duration_ms": str(payload["duration_ms"]),
        "reason": payload.get("reason") or "",
        "params": json.dumps(payload["params"], ensure_ascii=False, sort_keys=True),
        "result": json.dumps(payload["result"], ensure_ascii=False, sort_keys=True),
    }


def _write_records(records: Iterable[AuditRecord], output_format: str, output: TextIO) -> None:
    if output_format == "json":
        json.dump([record.to_payload() for record in records], output, ensure_ascii=False)
        output.write("\n")
    elif output_format == "ndjson":
        for record in records:
            output.write(record.to_json_line() + "\n")
    elif output_format == "csv":
        writer = csv.DictWriter(output, fieldnames=CSV_FIELDS, lineterminator="\n")
        writer.writeheader()
        for record in records:
            writer.writerow(_flatten_record(record))
    else:
        raise ValueError(f"unknown format: {output_format}")


def _history_table(records: list[AuditRecord]) -> Table:
    table = Table(title=f"Audit trail ({len(records)} records)")
    table.add_column("Timestamp")
    table.add_column("Action", style="bold")
    table.add_column("Status")
    table.add_column("ms", justify="right")
    table.add_column("ID")
    for record in records:
        style = _STATUS_STYLES[record.status]
        table.add_row(
            record.timestamp.isoformat(timespec="seconds"),
            escape(record.action),
            f"[{style}]{record.status.value}[/{style}]",
            str(record.duration_ms),
            record.id,
        )
    return table


def _cmd_history(
    executor: RemediationExecutor,
    status: str | None,
    limit: int | None,
    output_format: str,
    output_path: Path | None,
) -> int:
    try:
        records = executor.get_history(status=status, limit=limit)
    except InvalidFilter as exc:
        _console(stderr=True).print(f"[red]invalid filter:[/red] {escape(str(exc))}")
        return EXIT_BAD_REQUEST

    if output_format == "table" and output_path is None:
        _console().print(_history_table(records))
        return EXIT_OK

    output: TextIO = sys.stdout
    if output_path is not None:
        try:
            output = output_path.open("w", encoding="utf-8", newline="")
        except OSError as exc:
            _console(stderr=True).print(
                f"[red]cannot write output:[/red] {escape(sanitize_exception(exc))}"
            )
            return EXIT_FAILED
    try:
        _write_records(records, "json" if output_format == "table" else output_format, output)
    finally:
        if output_path is not None:
            output.close()
    return EXIT_OK


def _cmd_stats(executor: RemediationExecutor, json_output: bool) -> int:
    stats = executor.stats()
    if json_output:
        _emit_json(stats.model_dump())
        return EXIT_OK
    table = Table(title=f"Audit stats ({stats.total} records)")
    table.add_column("Group")
    table.add_column("Key", style="bold")
    table.add_column("Count", justify="right")
    for name, count in stats.by_status.items():
        table.add_row("status", escape(name), str(count))
    for name, count in stats.by_action.items():
        table.add_row("action", escape(name), str(count))
    _console().print(table)
    return EXIT_OK


def _cmd_verify(executor: RemediationExecutor, json_output: bool) -> int:
    try:
        count = executor.audit_log.verify()
    except AuditVerificationError as exc:
        if json_output:
            _emit_json({"ok": False, "error": str(exc), "reason_code": exc.reason_code})
        else:
            _console(stderr=True).print(f"[bold red]verification failed:[/bold red] {escape(str(exc))}")
        return EXIT_FAILED
    if json_output:
        _emit_json({"ok": True, "records": count})
    else:
        _console().print(f"[green]ok[/green] {count} records verified")
    return EXIT_OK


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(sys.argv[1:] if argv is None else argv)
    try:
        settings = Settings.from_env().with_overrides(
            audit_backend=args.backend,
            audit_path=args.audit_path,
            log_level=args.log_level.upper() if args.log_level else None,
        )
    except ConfigError as exc:
        print(f"configuration error: {exc}", file=sys.stderr)
        return EXIT_BAD_REQUEST
    configure_logging(settings.log_level)

    try:
        executor = build_executor(settings)
    except PersistenceError as exc:
        print(f"audit store error: {exc}", file=sys.stderr)
        return EXIT_FAILED

    try:
        if args.command == "actions":
            return _cmd_actions(executor, args.json)
        if args.command == "execute":
            return _cmd_execute(
                executor, args.action, args.params, args.params_json, args.reason, args.json
            )
        if args.command == "history":
            return _cmd_history(executor, args.status, args.limit, args.format, args.output)
        if args.command == "stats":
            return _cmd_stats(executor, args.json)
        if args.command == "verify":
            return _cmd_verify(executor, args.json)
    except PersistenceError as exc:
        print(f"audit store error: {exc}", file=sys.stderr)
        return EXIT_FAILED
    finally:
        executor.audit_log.close()
    print("unknown command", file=sys.stderr)
    return EXIT_FAILED


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
