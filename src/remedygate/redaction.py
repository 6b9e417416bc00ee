"""Redaction of action parameters and effect payloads before they are audited.

Two rules apply. Key rules redact any value stored under a secret-sounding
name. Value rules redact strings that look like credentials whatever their
key. Declared action parameters are exempt from the value rules, so the audit
trail records exactly the target the caller named.
"""

from __future__ import annotations

import re
from datetime import datetime
from decimal import Decimal
from typing import Any, Collection, Mapping

REDACTED = "[redacted]"

# Matched anywhere in a lowercased key ("db_password", "X-Api-Key", ...).
_SECRET_KEY_RE = re.compile(
    r"api_?key|token|secret|passw(or)?d|authorization|bearer|private_?key"
    r"|access_?key|credential|webhook|jwt"
)

# Vendor key prefixes and Slack webhook URLs.
_SECRET_PREFIX_RE = re.compile(r"^(sk-|rk-|ghp_|github_pat_|xox[abp]-|https://hooks\.slack\.com/)")
# A bare authorization header value: "Bearer <one token>".
_BEARER_RE = re.compile(r"^bearer\s+\S+$", re.IGNORECASE)
# Compact JWS: base64url header starting with '{"' ("eyJ"), payload, signature.
_JWT_RE = re.compile(r"^eyJ[\w-]+\.[\w-]+\.[\w-]*$")


def is_sensitive_key(key: str) -> bool:
    return _SECRET_KEY_RE.search(key.lower()) is not None


def is_sensitive_value(value: Any) -> bool:
    if not isinstance(value, str):
        return False
    text = value.strip()
    if "-----BEGIN" in text:
        return True
    return any(pattern.match(text) for pattern in (_SECRET_PREFIX_RE, _BEARER_RE, _JWT_RE))


def _placeholder(value: Any) -> str:
    if isinstance(value, (bytes, bytearray, memoryview)):
        return f"<bytes:{len(value)}>"
    return f"<{type(value).__name__}>"


def redact_value(key: str | None, value: Any, *, check_values: bool = True) -> Any:
    """Return a JSON-safe copy of ``value`` with secret content replaced.

    Numbers, booleans and None pass through untouched so audit queries and
    stats stay meaningful. Containers are walked; anything else that JSON
    cannot carry becomes a deterministic placeholder. With
    ``check_values=False`` only key rules apply.
    """
    if key is not None and is_sensitive_key(key):
        return REDACTED
    if isinstance(value, str):
        return REDACTED if check_values and is_sensitive_value(value) else value
    if value is None or isinstance(value, (bool, int, float)):
        return value
    if isinstance(value, (Decimal, datetime)):
        return value.isoformat() if isinstance(value, datetime) else str(value)
    if isinstance(value, Mapping):
        if any(not isinstance(name, str) for name in value):
            return _placeholder(value)
        return {
            name: redact_value(name, item, check_values=check_values)
            for name, item in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [redact_value(None, item, check_values=check_values) for item in value]
    return _placeholder(value)


def redact_params(params: Mapping[str, Any], declared: Collection[str] = ()) -> dict[str, Any]:
    """Redact request params; names in ``declared`` only get the key rules."""
    return {
        key: redact_value(key, value, check_values=key not in declared)
        for key, value in params.items()
    }
