"""Helpers for safe debug logging.

Title records carry personal data (owner names) and raw writes can carry
arbitrarily large values.  This module renders stored values for DEBUG
logs with owner fields masked and long strings truncated.
"""

from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from typing import Any

_SENSITIVE_VALUE_KEYS: frozenset[str] = frozenset({"owner"})


def redact_for_log(value: Any, *, max_string: int = 256, _depth: int = 0) -> Any:
    """Return a redacted copy of *value* suitable for debug logs."""
    if _depth > 20:
        return "<max-depth>"

    if value is None:
        return None

    if isinstance(value, str):
        if len(value) > max_string:
            return f"{value[:max_string]}…<truncated>"
        return value

    if isinstance(value, (int, float, bool)):
        return value

    if isinstance(value, (bytes, bytearray)):
        return redact_stored_value(bytes(value), max_string=max_string)

    if isinstance(value, Mapping):
        redacted: dict[str, Any] = {}
        for k, v in value.items():
            key = str(k)
            if key.lower() in _SENSITIVE_VALUE_KEYS:
                redacted[key] = "<redacted>"
            else:
                redacted[key] = redact_for_log(v, max_string=max_string, _depth=_depth + 1)
        return redacted

    if isinstance(value, Sequence):
        return [redact_for_log(v, max_string=max_string, _depth=_depth + 1) for v in value]

    # Fallback: represent unknown objects without dumping internals.
    return repr(value)


def redact_stored_value(data: bytes, *, max_string: int = 256) -> Any:
    """Render stored bytes for a log line.

    JSON payloads (records, the index) are parsed and redacted
    structurally; anything else is summarized by size.
    """
    try:
        decoded = json.loads(data)
    except (UnicodeDecodeError, json.JSONDecodeError):
        return f"<bytes:{len(data)}b>"
    if isinstance(decoded, (Mapping, list)):
        return redact_for_log(decoded, max_string=max_string)
    return f"<bytes:{len(data)}b>"
