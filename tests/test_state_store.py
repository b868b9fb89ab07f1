from __future__ import annotations

from datetime import UTC, datetime, timedelta

from deliverytrack.models.location import LocationSample
from deliverytrack.state.events import LocationUpdate, UpdateSource
from deliverytrack.state.policy import should_accept_update
from deliverytrack.state.store import StateStore


def _dt(seconds: int = 0) -> datetime:
    return datetime(2026, 1, 1, tzinfo=UTC) + timedelta(seconds=seconds)


def _update(seconds: int | None, source: UpdateSource = UpdateSource.REALTIME, **fields: float) -> LocationUpdate:
    sample = LocationSample(
        delivery_id="order-1",
        latitude=fields.pop("latitude", -15.78),
        longitude=fields.pop("longitude", -47.93),
        updated_at=_dt(seconds) if seconds is not None else None,
        **fields,
    )
    return LocationUpdate(delivery_id="order-1", source=source, sample=sample)


def test_update_replaces_sample_wholesale() -> None:
    store = StateStore()

    assert store.apply(_update(1, UpdateSource.FETCH, speed_kmh=30.0))
    assert store.apply(_update(2, latitude=-15.79))

    sample = store.get("order-1")
    assert sample is not None
    assert sample.latitude == -15.79
    # No field-level merge: speed absent from the newer sample is cleared.
    assert sample.speed_kmh is None
    assert store.source_of("order-1") == UpdateSource.REALTIME


def test_older_update_is_discarded() -> None:
    store = StateStore()
    store.apply(_update(10, latitude=-15.70))

    assert not store.apply(_update(5, UpdateSource.FETCH, latitude=-15.60))

    sample = store.get("order-1")
    assert sample is not None
    assert sample.latitude == -15.70
    assert store.source_of("order-1") == UpdateSource.REALTIME


def test_missing_timestamp_is_accepted() -> None:
    store = StateStore()
    store.apply(_update(10))

    assert store.apply(_update(None, latitude=-15.50))
    sample = store.get("order-1")
    assert sample is not None
    assert sample.latitude == -15.50


def test_clear_forgets_delivery() -> None:
    store = StateStore()
    store.apply(_update(1))
    store.clear("order-1")

    assert store.get("order-1") is None
    assert store.source_of("order-1") is None


def test_policy_accepts_equal_timestamps() -> None:
    assert should_accept_update(cached_updated_at=_dt(1), incoming_updated_at=_dt(1))
    assert not should_accept_update(cached_updated_at=_dt(2), incoming_updated_at=_dt(1))
    assert should_accept_update(cached_updated_at=None, incoming_updated_at=_dt(1))
