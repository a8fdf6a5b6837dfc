from __future__ import annotations

from datetime import date, datetime
from typing import Any, Dict

REDACTED_VALUE = "<redacted>"
# Exact key names only: fields such as automountServiceAccountToken or a
# projected serviceAccountToken volume are configuration, not secrets.
SENSITIVE_KEYS = frozenset(
    (
        "password",
        "token",
        "bearerToken",
        "client-key-data",
        "clientKeyData",
        "privateKey",
    )
)
SECRET_KINDS = frozenset(("Secret",))
SECRET_PAYLOAD_KEYS = ("data", "stringData")


def _is_sensitive_key(key: Any) -> bool:
    return isinstance(key, str) and key in SENSITIVE_KEYS


def _redact_secret_payload(obj: Dict[str, Any]) -> Dict[str, Any]:
    """Keep the keys of a Secret's data maps but none of their values."""
    if obj.get("kind") not in SECRET_KINDS:
        return obj
    for field in SECRET_PAYLOAD_KEYS:
        payload = obj.get(field)
        if isinstance(payload, dict):
            obj[field] = {k: REDACTED_VALUE for k in payload}
    return obj


def sanitize_for_json(value: Any) -> Any:
    """
    Convert listed items to JSON-serializable forms and redact sensitive fields.

    Generated client models are rendered with their wire (camelCase) keys via
    attribute_map; other objects fall back to to_dict() or __dict__.
    """
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, bytes):
        return value.decode("utf-8", "replace")
    if isinstance(value, dict):
        out = {}
        for k, v in value.items():
            if _is_sensitive_key(k):
                out[k] = REDACTED_VALUE
            else:
                out[k] = sanitize_for_json(v)
        return _redact_secret_payload(out)
    if isinstance(value, (list, tuple, set)):
        return [sanitize_for_json(v) for v in value]
    attribute_map = getattr(value, "attribute_map", None)
    if isinstance(attribute_map, dict):
        out = {}
        for attr, json_key in attribute_map.items():
            if _is_sensitive_key(json_key):
                out[json_key] = REDACTED_VALUE
                continue
            out[json_key] = sanitize_for_json(getattr(value, attr, None))
        return _redact_secret_payload(out)
    to_dict = getattr(value, "to_dict", None)
    if callable(to_dict):
        return sanitize_for_json(to_dict())
    if hasattr(value, "__dict__"):
        return sanitize_for_json(vars(value))
    return value
