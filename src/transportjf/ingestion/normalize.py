"""Normalization helpers for imported spreadsheet cells.

Centralizes defensive parsing and placeholder handling.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from typing import Any

_PLACEHOLDERS = frozenset({"", "-", "--", "n/a", "N/A", "nan", "NaN", "None"})


def safe_str(value: Any) -> str | None:
    """Return the stripped text of *value*, or ``None`` for empty/placeholder cells."""
    if value is None:
        return None
    if isinstance(value, float):
        if math.isnan(value):
            return None
        # Spreadsheets hand integers back as floats (12345678.0).
        if value.is_integer():
            value = int(value)
    text = str(value).strip()
    if text in _PLACEHOLDERS:
        return None
    return text


def normalize_cedula(value: Any) -> str | None:
    """Cedula as digits-and-letters text: drops dots, spaces and thousands separators."""
    text = safe_str(value)
    if text is None:
        return None
    cleaned = "".join(ch for ch in text if ch not in ". ,")
    return cleaned or None


def first_present(row: Mapping[str, Any], keys: Iterable[str]) -> str | None:
    """Return the first meaningful value among *keys* in *row*."""
    for key in keys:
        if key in row:
            value = safe_str(row[key])
            if value is not None:
                return value
    return None
