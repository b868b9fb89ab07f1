from __future__ import annotations

import dataclasses

import pytest
from conftest import FakeChannel, FakeStore

from deliverytrack._realtime import ChannelEvent, ChannelState
from deliverytrack.client import DeliveryTrackingClient
from deliverytrack.config import TrackingConfig
from deliverytrack.models.notification import ChangeNotification

TOPIC = "realtime/public/entregador_localizacao/order-1"


def _event(delivery_id: str = "order-1", latitude: float = -15.78) -> ChannelEvent:
    notification = ChangeNotification.model_validate(
        {
            "eventType": "UPDATE",
            "new": {"pedido_delivery_id": delivery_id, "latitude": latitude, "longitude": -47.93},
        }
    )
    return ChannelEvent(
        topic=f"realtime/public/entregador_localizacao/{delivery_id}",
        delivery_id=delivery_id,
        notification=notification,
    )


@pytest.mark.asyncio
async def test_subscribe_starts_channel_and_filters_by_delivery(
    config: TrackingConfig, store: FakeStore, channel: FakeChannel
) -> None:
    received: list[ChangeNotification] = []

    async with DeliveryTrackingClient(config, transport=store, channel=channel) as client:
        subscription = await client.subscribe_location("order-1", received.append)

        assert channel.starts == 1
        assert channel.topics == {TOPIC}

        client._on_channel_event(_event("order-2"))
        client._on_channel_event(_event("order-1", latitude=-15.79))

        assert len(received) == 1
        assert received[0].new["latitude"] == -15.79
        assert subscription.is_active

    assert not subscription.is_active
    assert not channel.is_running


@pytest.mark.asyncio
async def test_topic_is_released_with_last_listener(
    config: TrackingConfig, store: FakeStore, channel: FakeChannel
) -> None:
    async with DeliveryTrackingClient(config, transport=store, channel=channel) as client:
        first = await client.subscribe_location("order-1", lambda _: None)
        second = await client.subscribe_location("order-1", lambda _: None)

        first.close()
        assert channel.topics == {TOPIC}
        assert channel.unsubscribed == []

        second.close()
        second.close()
        assert channel.topics == set()
        assert channel.unsubscribed == [TOPIC]


@pytest.mark.asyncio
async def test_closed_subscription_receives_nothing(
    config: TrackingConfig, store: FakeStore, channel: FakeChannel
) -> None:
    received: list[ChangeNotification] = []

    async with DeliveryTrackingClient(config, transport=store, channel=channel) as client:
        with await client.subscribe_location("order-1", received.append):
            pass
        client._on_channel_event(_event())

    assert received == []


@pytest.mark.asyncio
async def test_callback_errors_do_not_break_dispatch(
    config: TrackingConfig, store: FakeStore, channel: FakeChannel
) -> None:
    received: list[ChangeNotification] = []

    def _boom(_: ChangeNotification) -> None:
        raise RuntimeError("listener bug")

    async with DeliveryTrackingClient(config, transport=store, channel=channel) as client:
        await client.subscribe_location("order-1", _boom)
        await client.subscribe_location("order-1", received.append)
        client._on_channel_event(_event())

    assert len(received) == 1


@pytest.mark.asyncio
async def test_channel_start_failure_reports_disconnected(config: TrackingConfig, store: FakeStore) -> None:
    channel = FakeChannel(fail_start=True)
    states: list[ChannelState] = []

    async with DeliveryTrackingClient(config, transport=store, channel=channel) as client:
        subscription = await client.subscribe_location("order-1", lambda _: None, on_state=states.append)

        assert subscription.is_active
        assert client.channel_state == ChannelState.DISCONNECTED
        assert states == [ChannelState.DISCONNECTED]
        # REST keeps working without the change feed.
        assert await client.fetch_latest_location("order-1") is None


@pytest.mark.asyncio
async def test_missing_broker_host_reports_disconnected(config: TrackingConfig, store: FakeStore) -> None:
    config = dataclasses.replace(config, realtime_host=None)

    async with DeliveryTrackingClient(config, transport=store) as client:
        await client.subscribe_location("order-1", lambda _: None)
        assert client.channel_state == ChannelState.DISCONNECTED


@pytest.mark.asyncio
async def test_realtime_disabled_never_starts_channel(
    config: TrackingConfig, store: FakeStore, channel: FakeChannel
) -> None:
    config = dataclasses.replace(config, realtime_enabled=False)

    async with DeliveryTrackingClient(config, transport=store, channel=channel) as client:
        await client.subscribe_location("order-1", lambda _: None)

    assert channel.starts == 0


@pytest.mark.asyncio
async def test_channel_state_changes_fan_out_once(
    config: TrackingConfig, store: FakeStore, channel: FakeChannel
) -> None:
    states: list[ChannelState] = []

    async with DeliveryTrackingClient(config, transport=store, channel=channel) as client:
        await client.subscribe_location("order-1", lambda _: None, on_state=states.append)
        client._on_channel_state(ChannelState.CONNECTED)
        client._on_channel_state(ChannelState.CONNECTED)
        client._on_channel_state(ChannelState.DISCONNECTED)

    assert states == [ChannelState.CONNECTED, ChannelState.DISCONNECTED]
