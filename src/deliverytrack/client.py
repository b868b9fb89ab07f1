"""High-level async client for the delivery location store."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import aiohttp

from deliverytrack._api import locations as _locations_api
from deliverytrack._api.locations import UpsertResult
from deliverytrack._realtime import (
    ChannelEndpoint,
    ChannelEvent,
    ChannelRuntime,
    ChannelState,
    MqttChannelRuntime,
)
from deliverytrack._transport import RestTransport, Transport
from deliverytrack.config import TrackingConfig
from deliverytrack.exceptions import DeliveryTrackError, StoreWriteError
from deliverytrack.geolocation import Geolocation
from deliverytrack.models.location import LocationSample
from deliverytrack.models.notification import ChangeNotification
from deliverytrack.publisher import LocationPublisher
from deliverytrack.subscriber import LocationSubscriber

_logger = logging.getLogger(__name__)

T = TypeVar("T")

ChangeCallback = Callable[[ChangeNotification], None]
StateCallback = Callable[[ChannelState], None]


class LocationSubscription:
    """Live change subscription for one delivery.

    Obtained from :meth:`DeliveryTrackingClient.subscribe_location`; must be
    released with :meth:`close` (or used as a context manager).
    """

    def __init__(
        self,
        client: DeliveryTrackingClient,
        delivery_id: str,
        topic: str,
        on_change: ChangeCallback,
        on_state: StateCallback | None = None,
    ) -> None:
        self._client = client
        self.delivery_id = delivery_id
        self.topic = topic
        self._on_change = on_change
        self._on_state = on_state
        self._active = True

    @property
    def is_active(self) -> bool:
        return self._active

    def close(self) -> None:
        """Release the subscription. Safe to call more than once."""
        if not self._active:
            return
        self._active = False
        self._client._release(self)

    def __enter__(self) -> LocationSubscription:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def _deliver(self, notification: ChangeNotification) -> None:
        if not self._active:
            return
        try:
            self._on_change(notification)
        except Exception:
            _logger.debug("on_change callback failed delivery=%s", self.delivery_id, exc_info=True)

    def _deliver_state(self, state: ChannelState) -> None:
        if not self._active or self._on_state is None:
            return
        try:
            self._on_state(state)
        except Exception:
            _logger.debug("on_state callback failed delivery=%s", self.delivery_id, exc_info=True)


class DeliveryTrackingClient:
    """Async client for the delivery location store and its change feed.

    Usage::

        async with DeliveryTrackingClient(config) as client:
            sample = await client.fetch_latest_location(delivery_id)
            async with client.subscriber(delivery_id) as view:
                ...
    """

    def __init__(
        self,
        config: TrackingConfig,
        *,
        session: aiohttp.ClientSession | None = None,
        transport: Transport | None = None,
        channel: ChannelRuntime | None = None,
    ) -> None:
        self._config = config
        self._external_session = session is not None
        self._http_session = session
        self._transport: Transport | None = transport
        self._external_transport = transport is not None
        self._channel: ChannelRuntime | None = channel
        self._channel_state = ChannelState.IDLE
        self._loop: asyncio.AbstractEventLoop | None = None
        self._subscriptions: dict[str, list[LocationSubscription]] = {}
        # Subscribed topic -> delivery id, so dispatch never re-parses topics.
        self._topic_deliveries: dict[str, str] = {}

    @property
    def config(self) -> TrackingConfig:
        return self._config

    @property
    def channel_state(self) -> ChannelState:
        return self._channel_state

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> DeliveryTrackingClient:
        self._loop = asyncio.get_running_loop()
        if self._transport is None:
            if self._http_session is None:
                self._http_session = aiohttp.ClientSession()
            self._transport = RestTransport(self._config, self._http_session)
        return self

    async def __aexit__(self, *exc: Any) -> None:
        for subs in list(self._subscriptions.values()):
            for sub in list(subs):
                sub.close()
        self._stop_channel()
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None
        if not self._external_transport:
            self._transport = None
        self._loop = None

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _require_transport(self) -> Transport:
        if self._transport is None:
            raise DeliveryTrackError("Client not initialized. Use 'async with DeliveryTrackingClient(...) as client:'")
        return self._transport

    async def _call_with_retry(self, fn: Callable[[], Awaitable[T]]) -> T:
        """Run a write, retrying transient failures with exponential backoff."""
        remaining = self._config.write_retries
        delay = self._config.write_retry_backoff
        while True:
            try:
                return await fn()
            except StoreWriteError as exc:
                if remaining <= 0 or not exc.is_transient:
                    raise
                _logger.debug("Retrying write in %.2fs (%d left): %s", delay, remaining, exc)
                remaining -= 1
                await asyncio.sleep(delay)
                delay *= 2

    # ------------------------------------------------------------------
    # Store
    # ------------------------------------------------------------------

    async def fetch_latest_location(self, delivery_id: str) -> LocationSample | None:
        """Fetch the latest known location of a delivery, or ``None``."""
        transport = self._require_transport()
        return await _locations_api.fetch_latest_location(self._config, transport, delivery_id)

    async def upsert_location(self, sample: LocationSample) -> UpsertResult:
        """Write *sample* as the current location of its delivery."""
        transport = self._require_transport()

        async def _call() -> UpsertResult:
            return await _locations_api.upsert_location(self._config, transport, sample)

        return await self._call_with_retry(_call)

    # ------------------------------------------------------------------
    # Change feed
    # ------------------------------------------------------------------

    async def _ensure_channel_started(self) -> None:
        """Best-effort change-feed startup (failures must not break REST flow)."""
        if not self._config.realtime_enabled:
            return
        if self._channel is not None and self._channel.is_running:
            return
        loop = self._loop or asyncio.get_running_loop()
        try:
            endpoint = ChannelEndpoint.from_config(self._config)
            if self._channel is None:
                self._channel = MqttChannelRuntime(
                    loop=loop,
                    on_event=self._on_channel_event,
                    on_state=self._on_channel_state,
                    logger=_logger,
                )
            await loop.run_in_executor(None, self._channel.start, endpoint)
            for topic in list(self._topic_deliveries):
                self._channel.subscribe(topic)
        except Exception:
            _logger.warning("Change feed startup failed", exc_info=True)
            self._on_channel_state(ChannelState.DISCONNECTED)

    def _stop_channel(self) -> None:
        channel = self._channel
        if channel is None or not channel.is_running:
            return
        try:
            channel.stop()
        except Exception:
            _logger.debug("Change feed stop failed", exc_info=True)

    def _on_channel_event(self, event: ChannelEvent) -> None:
        """Dispatch a decoded notification (called on the event loop)."""
        delivery_id = self._topic_deliveries.get(event.topic, event.delivery_id)
        for sub in list(self._subscriptions.get(delivery_id, ())):
            sub._deliver(event.notification)

    def _on_channel_state(self, state: ChannelState) -> None:
        if state == self._channel_state:
            return
        _logger.debug("Change feed state %s -> %s", self._channel_state, state)
        self._channel_state = state
        for subs in list(self._subscriptions.values()):
            for sub in list(subs):
                sub._deliver_state(state)

    def _release(self, subscription: LocationSubscription) -> None:
        subs = self._subscriptions.get(subscription.delivery_id)
        if not subs or subscription not in subs:
            return
        subs.remove(subscription)
        if subs:
            return
        del self._subscriptions[subscription.delivery_id]
        self._topic_deliveries.pop(subscription.topic, None)
        channel = self._channel
        if channel is not None and channel.is_running:
            try:
                channel.unsubscribe(subscription.topic)
            except Exception:
                _logger.debug("Unsubscribe failed topic=%s", subscription.topic, exc_info=True)
        _logger.debug("Released subscription delivery=%s", subscription.delivery_id)

    async def subscribe_location(
        self,
        delivery_id: str,
        on_change: ChangeCallback,
        *,
        on_state: StateCallback | None = None,
    ) -> LocationSubscription:
        """Subscribe to insert/update/delete notifications for *delivery_id*."""
        topic = self._config.topic_for(delivery_id)
        subscription = LocationSubscription(self, delivery_id, topic, on_change, on_state)
        self._subscriptions.setdefault(delivery_id, []).append(subscription)
        self._topic_deliveries[topic] = delivery_id

        await self._ensure_channel_started()
        channel = self._channel
        # Closed while the channel was starting: nothing to subscribe.
        if subscription.is_active and channel is not None and channel.is_running:
            channel.subscribe(topic)
        _logger.debug("Subscribed delivery=%s topic=%s", delivery_id, topic)
        return subscription

    # ------------------------------------------------------------------
    # Roles
    # ------------------------------------------------------------------

    def publisher(self, delivery_id: str, geolocation: Geolocation | None) -> LocationPublisher:
        """Courier-side publisher writing fixes for *delivery_id*."""
        return LocationPublisher(self, delivery_id, geolocation)

    def subscriber(
        self,
        delivery_id: str,
        *,
        on_change: Callable[[LocationSample | None], None] | None = None,
    ) -> LocationSubscriber:
        """Customer-side view of the latest location of *delivery_id*."""
        return LocationSubscriber(self, delivery_id, on_change=on_change)
