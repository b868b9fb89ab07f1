"""Courier-side location publisher."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from enum import StrEnum
from typing import TYPE_CHECKING

from deliverytrack._api.locations import UpsertResult
from deliverytrack._constants import (
    MSG_PERMISSION_DENIED,
    MSG_POSITION_ERROR,
    MSG_UNSUPPORTED,
    MSG_UPDATE_ERROR,
)
from deliverytrack.exceptions import DeliveryTrackError, DevicePositionError, DeviceUnsupportedError
from deliverytrack.geolocation import Geolocation, WatchHandle
from deliverytrack.models.location import LocationFix, LocationSample

if TYPE_CHECKING:
    from deliverytrack.client import DeliveryTrackingClient

_logger = logging.getLogger(__name__)


class PermissionStatus(StrEnum):
    PROMPT = "prompt"
    GRANTED = "granted"
    DENIED = "denied"


class LocationPublisher:
    """Watch the device position and upsert every fix for one delivery.

    Failures never propagate out of the watch: store errors set
    ``error`` to a fixed pt-BR message and drop the fix, device errors set
    a distinct message and leave the watch running. The caller decides
    when to stop.
    """

    def __init__(
        self,
        client: DeliveryTrackingClient,
        delivery_id: str,
        geolocation: Geolocation | None,
        *,
        on_change: Callable[[LocationPublisher], None] | None = None,
    ) -> None:
        self._client = client
        self.delivery_id = delivery_id.strip()
        self._geolocation = geolocation
        self._on_change = on_change
        self._options = client.config.position
        self._watch: WatchHandle | None = None
        self._pending: set[asyncio.Task[UpsertResult | None]] = set()
        self._write_lock = asyncio.Lock()
        self._updating = 0

        self.error: str | None = None
        self.last_error: DeliveryTrackError | None = None
        self.last_sample: LocationSample | None = None
        self.permission_status = PermissionStatus.PROMPT

    @property
    def is_tracking(self) -> bool:
        return self._watch is not None

    @property
    def is_updating(self) -> bool:
        return self._updating > 0

    def _notify(self) -> None:
        if self._on_change is None:
            return
        try:
            self._on_change(self)
        except Exception:
            _logger.debug("Publisher on_change callback failed", exc_info=True)

    def _set_error(self, message: str | None, exc: DeliveryTrackError | None = None) -> None:
        self.error = message
        self.last_error = exc
        self._notify()

    # ------------------------------------------------------------------
    # Tracking
    # ------------------------------------------------------------------

    def start_tracking(self) -> WatchHandle | None:
        """Start the continuous watch.

        Returns the watch handle, or ``None`` when tracking cannot start
        (no delivery, no location source, or permission denied).
        """
        if self._watch is not None:
            return self._watch
        if not self.delivery_id or self._geolocation is None:
            self._set_error(MSG_UNSUPPORTED, DeviceUnsupportedError("no geolocation source for this delivery"))
            return None
        if self.permission_status == PermissionStatus.DENIED:
            self._set_error(MSG_PERMISSION_DENIED)
            return None

        self._watch = self._geolocation.watch_position(self._on_fix, self._on_position_error, self._options)
        _logger.info("Tracking started delivery=%s watch=%s", self.delivery_id, self._watch)
        self._notify()
        return self._watch

    def stop_tracking(self, handle: WatchHandle | None = None) -> None:
        """Stop the watch. In-flight writes are left to complete."""
        target = handle if handle is not None else self._watch
        if target is None or self._geolocation is None:
            return
        self._geolocation.clear_watch(target)
        if target == self._watch:
            self._watch = None
            _logger.info("Tracking stopped delivery=%s", self.delivery_id)
            self._notify()

    async def current_position(self) -> LocationFix | None:
        """One-shot fix for display; errors are logged and yield ``None``."""
        if self._geolocation is None:
            return None
        try:
            fix = await self._geolocation.get_current_position(self._options)
        except DevicePositionError as exc:
            _logger.warning("Error getting current position: %s", exc, exc_info=True)
            self._track_permission(exc)
            return None
        self.permission_status = PermissionStatus.GRANTED
        return fix

    async def drain(self) -> None:
        """Wait for every scheduled write to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def aclose(self) -> None:
        self.stop_tracking()
        await self.drain()

    async def __aenter__(self) -> LocationPublisher:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Callbacks from the location source
    # ------------------------------------------------------------------

    def _track_permission(self, exc: DevicePositionError) -> None:
        if exc.code == DevicePositionError.PERMISSION_DENIED:
            self.permission_status = PermissionStatus.DENIED

    def _on_fix(self, fix: LocationFix) -> None:
        self.permission_status = PermissionStatus.GRANTED
        task = asyncio.get_running_loop().create_task(self.update_location(fix))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    def _on_position_error(self, exc: DevicePositionError) -> None:
        _logger.warning("Geolocation error delivery=%s code=%d: %s", self.delivery_id, exc.code, exc)
        self._track_permission(exc)
        message = MSG_PERMISSION_DENIED if exc.code == DevicePositionError.PERMISSION_DENIED else MSG_POSITION_ERROR
        self._set_error(message, exc)

    # ------------------------------------------------------------------
    # Store writes
    # ------------------------------------------------------------------

    async def update_location(self, fix: LocationFix) -> UpsertResult | None:
        """Upsert the sample derived from *fix*.

        Writes of one publisher are serialized so they land in fix order.
        Returns ``None`` when the write failed.
        """
        if not self.delivery_id:
            return None
        sample = fix.to_sample(self.delivery_id)

        self._updating += 1
        self._notify()
        try:
            async with self._write_lock:
                result = await self._client.upsert_location(sample)
        except DeliveryTrackError as exc:
            _logger.warning("Error updating delivery location delivery=%s: %s", self.delivery_id, exc, exc_info=True)
            self._set_error(MSG_UPDATE_ERROR, exc)
            return None
        finally:
            self._updating -= 1

        self.last_sample = result.sample or sample
        _logger.debug("Location written delivery=%s outcome=%s", self.delivery_id, result.outcome)
        self._set_error(None)
        return result
