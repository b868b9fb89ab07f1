"""Customer-side location subscriber."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from deliverytrack._constants import MSG_CONNECTION_LOST, MSG_LOAD_ERROR
from deliverytrack._realtime import ChannelState
from deliverytrack.exceptions import DeliveryTrackError, SubscriptionError
from deliverytrack.ingestion.changes import build_update_from_notification
from deliverytrack.models.location import LocationSample
from deliverytrack.models.notification import ChangeNotification
from deliverytrack.state.events import LocationUpdate, UpdateSource
from deliverytrack.state.store import StateStore

if TYPE_CHECKING:
    from deliverytrack.client import DeliveryTrackingClient, LocationSubscription

_logger = logging.getLogger(__name__)


class LocationSubscriber:
    """Latest known courier location of one delivery, kept live.

    Activation subscribes to the delivery's change topic and then seeds
    state with one fetch. Every accepted update replaces the sample
    wholesale; updates older than the current ``updated_at`` are dropped.

    Use as an async context manager so the subscription is released on
    every exit path::

        async with client.subscriber(delivery_id) as view:
            render(view.location)
    """

    def __init__(
        self,
        client: DeliveryTrackingClient,
        delivery_id: str,
        *,
        on_change: Callable[[LocationSample | None], None] | None = None,
    ) -> None:
        self._client = client
        self.delivery_id = delivery_id.strip()
        self._on_change = on_change
        self._state = StateStore()
        self._subscription: LocationSubscription | None = None
        # Bumped on every activate/deactivate; a fetch started under an
        # older generation must not touch state.
        self._generation = 0

        self.is_loading = True
        self.error: str | None = None
        self.connection_state = ChannelState.IDLE

    @property
    def location(self) -> LocationSample | None:
        return self._state.get(self.delivery_id) if self.delivery_id else None

    @property
    def has_location(self) -> bool:
        return self.location is not None

    @property
    def is_active(self) -> bool:
        return self._subscription is not None

    @property
    def connection_lost(self) -> bool:
        return self.connection_state == ChannelState.DISCONNECTED

    @property
    def connection_message(self) -> str | None:
        return MSG_CONNECTION_LOST if self.connection_lost else None

    def _notify(self) -> None:
        if self._on_change is None:
            return
        try:
            self._on_change(self.location)
        except Exception:
            _logger.debug("Subscriber on_change callback failed", exc_info=True)

    def _apply(self, update: LocationUpdate) -> None:
        if self._state.apply(update):
            self._notify()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def activate(self) -> None:
        """Subscribe to live changes, then seed state with the latest row."""
        if self._subscription is not None:
            return
        if not self.delivery_id:
            self.is_loading = False
            return

        self._generation += 1
        generation = self._generation
        self.is_loading = True
        try:
            self._subscription = await self._client.subscribe_location(
                self.delivery_id,
                self._on_notification,
                on_state=self._on_channel_state,
            )
            self.connection_state = self._client.channel_state
            await self._seed(generation)
        except BaseException:
            # Covers cancellation during activation.
            await self.deactivate()
            raise

    async def _seed(self, generation: int) -> None:
        try:
            sample = await self._client.fetch_latest_location(self.delivery_id)
        except DeliveryTrackError as exc:
            if generation != self._generation:
                return
            _logger.warning("Error fetching delivery location delivery=%s: %s", self.delivery_id, exc, exc_info=True)
            self.error = MSG_LOAD_ERROR
            self.is_loading = False
            self._notify()
            return

        if generation != self._generation:
            _logger.debug("Ignoring fetch that resolved after teardown delivery=%s", self.delivery_id)
            return
        self.error = None
        self.is_loading = False
        if sample is None:
            self._notify()
            return
        self._apply(LocationUpdate(delivery_id=self.delivery_id, source=UpdateSource.FETCH, sample=sample))

    async def deactivate(self) -> None:
        """Release the live subscription. Safe to call more than once."""
        self._generation += 1
        subscription = self._subscription
        self._subscription = None
        if subscription is not None:
            subscription.close()
            _logger.debug("Subscriber deactivated delivery=%s", self.delivery_id)

    async def __aenter__(self) -> LocationSubscriber:
        await self.activate()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.deactivate()

    # ------------------------------------------------------------------
    # Change feed callbacks
    # ------------------------------------------------------------------

    def _on_notification(self, notification: ChangeNotification) -> None:
        if self._subscription is None:
            return
        _logger.debug("Location update received delivery=%s kind=%s", self.delivery_id, notification.kind)
        try:
            update = build_update_from_notification(notification, delivery_id=self.delivery_id)
        except SubscriptionError:
            _logger.warning("Ignoring malformed notification delivery=%s", self.delivery_id, exc_info=True)
            return
        if update is None:
            return
        self._apply(update)

    def _on_channel_state(self, state: ChannelState) -> None:
        self.connection_state = state
        if state == ChannelState.DISCONNECTED:
            _logger.warning("Live location channel lost delivery=%s", self.delivery_id)
        self._notify()
