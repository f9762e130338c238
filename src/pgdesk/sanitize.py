"""Normalize field values before they are bound into INSERT/UPDATE statements."""

from __future__ import annotations

import datetime as dt
from collections.abc import Mapping
from typing import Any, Optional

import pandas as pd

ID_FIELD = "id"
INTERNAL_FIELD_PREFIX = "_"


class _Unset:
    """Marker for a field that was not supplied at all (JavaScript ``undefined``)."""

    def __repr__(self) -> str:  # pragma: no cover - trivial
        return "UNSET"


UNSET: Any = _Unset()


def is_date_column(column_name: Optional[str]) -> bool:
    """Date-like columns are named ``*date*`` or ``*_at*`` (``created_at``, ``start_date``)."""
    name = (column_name or "").lower()
    return "date" in name or "_at" in name


def _to_timestamp(value: Any) -> Optional[pd.Timestamp]:
    if isinstance(value, bool):
        return None
    try:
        if isinstance(value, (int, float)):
            ts = pd.to_datetime(value, unit="ms", errors="coerce")
        elif isinstance(value, (str, dt.date)):
            if isinstance(value, str) and not value.strip():
                return None
            ts = pd.to_datetime(value.strip() if isinstance(value, str) else value, errors="coerce")
        else:
            return None
    except (ValueError, TypeError, OverflowError):
        return None
    if ts is None or pd.isna(ts):
        return None
    return ts


def format_timestamp(ts: pd.Timestamp) -> str:
    """Render ``ts`` as ``YYYY-MM-DDTHH:MM:SS.mmmZ`` in UTC."""
    if ts.tzinfo is None:
        ts = ts.tz_localize("UTC")
    else:
        ts = ts.tz_convert("UTC")
    return (
        f"{ts.year:04d}-{ts.month:02d}-{ts.day:02d}"
        f"T{ts.hour:02d}:{ts.minute:02d}:{ts.second:02d}.{ts.microsecond // 1000:03d}Z"
    )


def sanitize_value(value: Any, column_name: Optional[str]) -> Any:
    """
    Coerce empty input to ``None`` and canonicalize date-like columns.

    Values for columns whose name looks like a date are parsed; anything that
    does not parse becomes ``None``. Other values are returned unchanged.
    The function is idempotent for every ``(value, column_name)`` pair.
    """
    if value is None or value is UNSET or (isinstance(value, str) and value == ""):
        return None

    if is_date_column(column_name):
        ts = _to_timestamp(value)
        return None if ts is None else format_timestamp(ts)

    return value


def clean_fields(fields: Mapping[str, Any], *, drop_unset: bool = False) -> dict[str, Any]:
    """Drop the identifier and internal bookkeeping fields (``_tableName`` and friends)."""
    cleaned: dict[str, Any] = {}
    for key, value in fields.items():
        if key == ID_FIELD or key.startswith(INTERNAL_FIELD_PREFIX):
            continue
        if drop_unset and value is UNSET:
            continue
        cleaned[key] = value
    return cleaned


def sanitize_fields(fields: Mapping[str, Any]) -> dict[str, Any]:
    return {key: sanitize_value(value, key) for key, value in fields.items()}
