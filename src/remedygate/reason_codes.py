"""Stable, machine-checkable reason codes attached to outcomes and errors."""

POLICY_UNKNOWN_ACTION = "policy.unknown_action"
VALIDATION_MISSING_PARAM = "validation.missing_param"
VALIDATION_INVALID_PARAMS = "validation.invalid_params"
REQUEST_MALFORMED = "request.malformed"
EFFECT_OK = "effect.ok"
EFFECT_FAULT = "effect.fault"
AUDIT_PERSISTENCE_FAILED = "audit.persistence_failed"
AUDIT_CHAIN_BROKEN = "audit.chain_broken"
HISTORY_INVALID_FILTER = "history.invalid_filter"
CONFIG_INVALID = "config.invalid"
