"""Hash chaining for durable audit backends.

Each stored entry carries ``prev_entry_hash`` and ``entry_hash`` where
``entry_hash = sha256(canonical_json(record payload + prev_entry_hash))``.
Any edit, deletion or reordering of stored entries breaks the chain.
"""

from __future__ import annotations

import hashlib
import json
from typing import Any, Iterable

from ..errors import AuditVerificationError

CHAIN_FIELDS = ("prev_entry_hash", "entry_hash")


def canonical_json(value: Any) -> str:
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def compute_entry_hash(payload: dict[str, Any], prev_hash: str | None) -> str:
    candidate = {k: v for k, v in payload.items() if k not in CHAIN_FIELDS}
    candidate["prev_entry_hash"] = prev_hash
    return hashlib.sha256(canonical_json(candidate).encode("utf-8")).hexdigest()


def chain_entry(payload: dict[str, Any], prev_hash: str | None) -> dict[str, Any]:
    """Return a copy of ``payload`` with chain hashes filled in."""
    entry = {k: v for k, v in payload.items() if k not in CHAIN_FIELDS}
    entry["prev_entry_hash"] = prev_hash
    entry["entry_hash"] = compute_entry_hash(payload, prev_hash)
    return entry


def strip_chain(entry: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in entry.items() if k not in CHAIN_FIELDS}


def verify_chain(entries: Iterable[dict[str, Any]]) -> int:
    """Walk entries oldest first. Raises AuditVerificationError on the first break."""
    expected_prev: str | None = None
    count = 0
    for count, entry in enumerate(entries, start=1):
        prev_hash = entry.get("prev_entry_hash")
        if prev_hash != expected_prev:
            raise AuditVerificationError(f"prev_entry_hash mismatch at entry {count}")
        actual = entry.get("entry_hash")
        if not isinstance(actual, str):
            raise AuditVerificationError(f"entry_hash missing at entry {count}")
        if compute_entry_hash(entry, prev_hash) != actual:
            raise AuditVerificationError(f"entry_hash mismatch at entry {count}")
        expected_prev = actual
    return count
