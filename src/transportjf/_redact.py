"""Helpers for safe debug logging.

Records pass through the store as plain dicts and some of them carry
secrets (conductor credentials) or large blobs (identity payloads, profile
images).  This module redacts those fields before they reach DEBUG logs.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

_SENSITIVE_VALUE_KEYS: frozenset[str] = frozenset(
    {
        "password",
        "token",
        "authorization",
        # Encoded payloads and images
        "qrcode",
        "avatarurl",
        "coverurl",
    }
)


def redact_for_log(value: Any, *, max_string: int = 512, _depth: int = 0) -> Any:
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

    if isinstance(value, bytes):
        return f"<bytes:{len(value)}b>"

    if isinstance(value, Mapping):
        redacted: dict[str, Any] = {}
        for k, v in value.items():
            key = str(k)
            if key.lower() in _SENSITIVE_VALUE_KEYS:
                redacted[key] = "<redacted>"
            else:
                redacted[key] = redact_for_log(v, max_string=max_string, _depth=_depth + 1)
        return redacted

    if isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray)):
        return [redact_for_log(v, max_string=max_string, _depth=_depth + 1) for v in value]

    return repr(value)


def summarize_records(records: Sequence[Mapping[str, Any]], *, limit: int = 3) -> str:
    """Short description of a record batch for logs: count plus a few ids."""
    ids = [str(r.get("id")) for r in records[:limit]]
    more = "" if len(records) <= limit else f", +{len(records) - limit} more"
    return f"{len(records)} record(s) [{', '.join(ids)}{more}]"
