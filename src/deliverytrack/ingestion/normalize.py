"""Normalization helpers.

Centralizes defensive parsing of device readings and store rows.
"""

from __future__ import annotations

import math
from datetime import UTC, datetime
from typing import Any


def safe_float(value: Any) -> float | None:
    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(result) or math.isinf(result):
        return None
    return result


def safe_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text if text else None


def non_negative_or_none(value: Any) -> float | None:
    """Parse *value* as a float, dropping negative readings."""
    parsed = safe_float(value)
    if parsed is None or parsed < 0:
        return None
    return parsed


def normalize_heading(value: Any) -> float | None:
    """Fold a compass heading into ``[0, 360)``.

    Devices report ``NaN`` or nothing while stationary; both map to ``None``.
    """
    parsed = safe_float(value)
    if parsed is None:
        return None
    folded = parsed % 360.0
    # tiny negative headings fold to exactly 360.0
    return 0.0 if folded >= 360.0 else folded + 0.0


def ensure_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an ISO-8601 string or an epoch number (seconds or ms) to UTC.

    Returns ``None`` for missing or unparseable values.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            ts = float(value)
            if ts <= 0:
                return None
            if ts > 1e11:
                ts /= 1000.0
            return datetime.fromtimestamp(ts, tz=UTC)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = f"{text[:-1]}+00:00"
        try:
            return ensure_utc(datetime.fromisoformat(text))
        except ValueError:
            return None
    return None
