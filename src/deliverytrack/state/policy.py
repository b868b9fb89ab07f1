"""Deterministic "most recent wins" policy."""

from __future__ import annotations

from datetime import datetime


def should_accept_update(
    *,
    cached_updated_at: datetime | None,
    incoming_updated_at: datetime | None,
) -> bool:
    """Decide whether an incoming sample replaces the cached one.

    Policy:
    - Nothing cached: accept.
    - Both timestamps known: accept unless incoming is strictly older.
    - Either timestamp missing: accept (blind replacement).
    """
    if cached_updated_at is None or incoming_updated_at is None:
        return True
    return incoming_updated_at >= cached_updated_at
