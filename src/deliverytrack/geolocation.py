"""Device location sources.

:class:`Geolocation` is the structural interface the publisher watches;
it follows the browser geolocation API (continuous watch with
``PositionOptions``, plus a one-shot current position).
:class:`PollingGeolocation` implements it over any async fix reader, such
as a GNSS receiver driver or a phone bridge.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import Protocol

from deliverytrack.config import PositionOptions
from deliverytrack.exceptions import DevicePositionError, DeviceTimeoutError
from deliverytrack.models.location import LocationFix

_logger = logging.getLogger(__name__)

WatchHandle = int
FixCallback = Callable[[LocationFix], None]
ErrorCallback = Callable[[DevicePositionError], None]
FixReader = Callable[[PositionOptions], Awaitable[LocationFix]]


def _utcnow() -> datetime:
    return datetime.now(UTC)


class Geolocation(Protocol):
    def watch_position(
        self,
        on_fix: FixCallback,
        on_error: ErrorCallback,
        options: PositionOptions,
    ) -> WatchHandle: ...

    def clear_watch(self, handle: WatchHandle) -> None: ...

    async def get_current_position(self, options: PositionOptions) -> LocationFix: ...


class PollingGeolocation:
    """Geolocation source that polls an async reader on a fixed interval.

    Each watch runs as its own asyncio task. A fix older than
    ``options.maximum_age_ms`` is rejected and the reader is asked again
    until ``options.timeout_ms`` elapses, which is reported as a
    :class:`DeviceTimeoutError`. Errors are reported to the watcher and the
    watch keeps running; only :meth:`clear_watch` ends it.
    """

    def __init__(
        self,
        read_fix: FixReader,
        *,
        clock: Callable[[], datetime] = _utcnow,
        stale_retry_delay: float = 0.2,
    ) -> None:
        self._read_fix = read_fix
        self._clock = clock
        self._stale_retry_delay = stale_retry_delay
        self._handles = itertools.count(1)
        self._watches: dict[WatchHandle, asyncio.Task[None]] = {}

    @property
    def active_watches(self) -> int:
        return len(self._watches)

    async def _fresh_fix(self, options: PositionOptions) -> LocationFix:
        while True:
            fix = await self._read_fix(options)
            age_ms = fix.age_ms(self._clock())
            if age_ms <= options.maximum_age_ms:
                return fix
            _logger.debug("Rejecting stale fix age_ms=%.0f max=%d", age_ms, options.maximum_age_ms)
            await asyncio.sleep(self._stale_retry_delay)

    async def _read(self, options: PositionOptions) -> LocationFix:
        try:
            return await asyncio.wait_for(self._fresh_fix(options), options.timeout_ms / 1000.0)
        except TimeoutError as exc:
            raise DeviceTimeoutError() from exc
        except DevicePositionError:
            raise
        except Exception as exc:
            raise DevicePositionError(f"position unavailable: {exc}") from exc

    async def get_current_position(self, options: PositionOptions) -> LocationFix:
        """Read one fresh fix."""
        return await self._read(options)

    def watch_position(
        self,
        on_fix: FixCallback,
        on_error: ErrorCallback,
        options: PositionOptions,
    ) -> WatchHandle:
        """Start delivering fixes to *on_fix* until :meth:`clear_watch`."""
        handle = next(self._handles)
        task = asyncio.get_running_loop().create_task(self._watch(handle, on_fix, on_error, options))
        self._watches[handle] = task
        _logger.debug("Started position watch handle=%d", handle)
        return handle

    def clear_watch(self, handle: WatchHandle) -> None:
        task = self._watches.pop(handle, None)
        if task is not None:
            task.cancel()
            _logger.debug("Cleared position watch handle=%d", handle)

    def close(self) -> None:
        for handle in list(self._watches):
            self.clear_watch(handle)

    async def _watch(
        self,
        handle: WatchHandle,
        on_fix: FixCallback,
        on_error: ErrorCallback,
        options: PositionOptions,
    ) -> None:
        interval = options.poll_interval_ms / 1000.0
        last_timestamp: datetime | None = None
        while True:
            try:
                fix = await self._read(options)
            except DevicePositionError as exc:
                _logger.debug("Position watch handle=%d error code=%d", handle, exc.code, exc_info=True)
                try:
                    on_error(exc)
                except Exception:
                    _logger.debug("Position error callback failed", exc_info=True)
            else:
                # Only changed positions are delivered, like a browser watch.
                if fix.timestamp != last_timestamp:
                    last_timestamp = fix.timestamp
                    try:
                        on_fix(fix)
                    except Exception:
                        _logger.debug("Position fix callback failed", exc_info=True)
            await asyncio.sleep(interval)
