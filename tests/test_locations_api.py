from __future__ import annotations

import dataclasses

import pytest
from conftest import FakeStore

from deliverytrack._api import locations as api
from deliverytrack._api.locations import UpsertOutcome
from deliverytrack.client import DeliveryTrackingClient
from deliverytrack.config import TrackingConfig, UpsertStrategy
from deliverytrack.exceptions import DeliveryTrackError, StoreReadError, StoreTransportError, StoreWriteError
from deliverytrack.models.location import LocationSample


def _sample(latitude: float = -15.7801, longitude: float = -47.9292, **fields: float) -> LocationSample:
    return LocationSample(delivery_id="order-1", latitude=latitude, longitude=longitude, **fields)


@pytest.mark.asyncio
async def test_fetch_returns_none_without_row(config: TrackingConfig, store: FakeStore) -> None:
    assert await api.fetch_latest_location(config, store, "order-1") is None

    method, params, _, _ = store.calls[0]
    assert method == "GET"
    assert params == {
        "select": "*",
        "pedido_delivery_id": "eq.order-1",
        "order": "updated_at.desc",
        "limit": "1",
    }


@pytest.mark.asyncio
async def test_written_coordinates_round_trip_exactly(config: TrackingConfig, store: FakeStore) -> None:
    await api.upsert_location(config, store, _sample(-15.780123456789, -47.929234567891, speed_kmh=36.0))

    fetched = await api.fetch_latest_location(config, store, "order-1")

    assert fetched is not None
    assert fetched.latitude == -15.780123456789
    assert fetched.longitude == -47.929234567891
    assert fetched.speed_kmh == 36.0
    assert fetched.updated_at is not None


@pytest.mark.asyncio
async def test_atomic_upsert_keeps_single_row(config: TrackingConfig, store: FakeStore) -> None:
    first = await api.upsert_location(config, store, _sample(-15.78, -47.93))
    second = await api.upsert_location(config, store, _sample(-15.79, -47.94))

    assert first.outcome == UpsertOutcome.UPSERTED
    assert second.sample is not None
    assert second.sample.latitude == -15.79
    assert len(store.rows_for("order-1")) == 1

    method, params, body, prefer = store.calls[-1]
    assert method == "POST"
    assert params == {"on_conflict": "pedido_delivery_id"}
    assert body["latitude"] == -15.79
    assert prefer == "resolution=merge-duplicates,return=representation"


@pytest.mark.asyncio
async def test_read_then_write_inserts_then_updates(config: TrackingConfig, store: FakeStore) -> None:
    config = dataclasses.replace(config, upsert_strategy=UpsertStrategy.READ_THEN_WRITE)

    first = await api.upsert_location(config, store, _sample(-15.78, -47.93, speed_kmh=20.0))
    second = await api.upsert_location(config, store, _sample(-15.79, -47.94))

    assert first.outcome == UpsertOutcome.INSERTED
    assert second.outcome == UpsertOutcome.UPDATED
    rows = store.rows_for("order-1")
    assert len(rows) == 1
    assert rows[0]["latitude"] == -15.79
    # Optional fields are written as null and clear the previous value.
    assert rows[0]["velocidade"] is None
    assert [call[0] for call in store.calls] == ["GET", "POST", "GET", "PATCH"]


@pytest.mark.asyncio
async def test_fetch_failure_raises_read_error(config: TrackingConfig, store: FakeStore) -> None:
    store.failures.append(StoreTransportError("HTTP 503", status_code=503, endpoint="/x"))

    with pytest.raises(StoreReadError) as exc_info:
        await api.fetch_latest_location(config, store, "order-1")

    assert exc_info.value.status_code == 503
    assert exc_info.value.is_transient


@pytest.mark.asyncio
async def test_malformed_row_raises_read_error(config: TrackingConfig, store: FakeStore) -> None:
    store.add_row(pedido_delivery_id="order-1", latitude=999, longitude=0)

    with pytest.raises(StoreReadError):
        await api.fetch_latest_location(config, store, "order-1")


@pytest.mark.asyncio
async def test_write_failure_raises_write_error(config: TrackingConfig, store: FakeStore) -> None:
    store.failures.append(StoreTransportError("HTTP 401", status_code=401, endpoint="/x"))

    with pytest.raises(StoreWriteError) as exc_info:
        await api.upsert_location(config, store, _sample())

    assert not exc_info.value.is_transient
    assert store.rows == []


@pytest.mark.asyncio
async def test_client_retries_transient_write_failures(config: TrackingConfig, store: FakeStore) -> None:
    config = dataclasses.replace(config, write_retries=2, realtime_enabled=False)
    store.failures.append(StoreTransportError("HTTP 503", status_code=503, endpoint="/x"))

    async with DeliveryTrackingClient(config, transport=store) as client:
        result = await client.upsert_location(_sample())

    assert result.outcome == UpsertOutcome.UPSERTED
    assert len(store.rows_for("order-1")) == 1
    assert len(store.calls) == 2


@pytest.mark.asyncio
async def test_client_does_not_retry_by_default(config: TrackingConfig, store: FakeStore) -> None:
    store.failures.append(StoreTransportError("HTTP 503", status_code=503, endpoint="/x"))

    async with DeliveryTrackingClient(config, transport=store) as client:
        with pytest.raises(StoreWriteError):
            await client.upsert_location(_sample())

    assert len(store.calls) == 1


@pytest.mark.asyncio
async def test_client_requires_context_manager(config: TrackingConfig) -> None:
    client = DeliveryTrackingClient(config)

    with pytest.raises(DeliveryTrackError):
        await client.fetch_latest_location("order-1")
