from __future__ import annotations

import math
from datetime import UTC, datetime, timedelta, timezone

from deliverytrack.ingestion.normalize import (
    non_negative_or_none,
    normalize_heading,
    parse_timestamp,
    safe_float,
    safe_str,
)


def test_safe_float() -> None:
    assert safe_float("1.5") == 1.5
    assert safe_float(True) is None
    assert safe_float("") is None
    assert safe_float("abc") is None
    assert safe_float(math.inf) is None
    assert safe_float(math.nan) is None


def test_safe_str() -> None:
    assert safe_str("  x ") == "x"
    assert safe_str("   ") is None
    assert safe_str(12) == "12"


def test_non_negative_or_none() -> None:
    assert non_negative_or_none(0) == 0.0
    assert non_negative_or_none(-0.5) is None


def test_normalize_heading_folds_into_range() -> None:
    assert normalize_heading(360) == 0.0
    assert normalize_heading(725) == 5.0
    assert normalize_heading(-1e-20) == 0.0
    assert normalize_heading(None) is None


def test_parse_timestamp_variants() -> None:
    expected = datetime(2026, 1, 1, 12, 0, tzinfo=UTC)

    assert parse_timestamp("2026-01-01T12:00:00Z") == expected
    assert parse_timestamp("2026-01-01T09:00:00-03:00") == expected
    assert parse_timestamp(1_767_268_800) == expected
    assert parse_timestamp(1_767_268_800_000) == expected
    assert parse_timestamp(expected.astimezone(timezone(timedelta(hours=2)))) == expected
    assert parse_timestamp("not a date") is None
    assert parse_timestamp(0) is None


def test_parse_timestamp_out_of_range_epoch_is_none() -> None:
    assert parse_timestamp(1e300) is None
    assert parse_timestamp(10**400) is None
    assert parse_timestamp(math.inf) is None
