#!/usr/bin/env python3
"""Drive a simulated courier along a straight route and publish every fix.

Reads store and broker settings from ``DELIVERYTRACK_*`` environment
variables (see ``TrackingConfig.from_env``).

Example::

    python scripts/simulate_courier.py 3f2a9b10-... \\
        --start -15.7801,-47.9292 --end -15.7950,-47.8825 --steps 30
"""

from __future__ import annotations

import argparse
import asyncio
import logging
from datetime import UTC, datetime

from deliverytrack import DeliveryTrackingClient, LocationFix, PollingGeolocation, PositionOptions, TrackingConfig
from deliverytrack.formatters import order_label, position_details, tracking_status

_logger = logging.getLogger("simulate_courier")


def _parse_point(text: str) -> tuple[float, float]:
    try:
        lat_text, lng_text = text.split(",", 1)
        return float(lat_text), float(lng_text)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"expected 'lat,lng', got {text!r}") from exc


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Publish a simulated courier route for one delivery.")
    parser.add_argument("delivery_id", help="Delivery (order) identifier")
    parser.add_argument("--start", type=_parse_point, default=(-15.7801, -47.9292), help="Start point 'lat,lng'")
    parser.add_argument("--end", type=_parse_point, default=(-15.7950, -47.8825), help="End point 'lat,lng'")
    parser.add_argument("--steps", type=int, default=20, help="Number of fixes along the route")
    parser.add_argument("--interval", type=float, default=2.0, help="Seconds between fixes")
    parser.add_argument("--speed", type=float, default=8.0, help="Reported speed in m/s")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser.parse_args()


class _RouteReader:
    """Fix reader walking linearly from *start* to *end*."""

    def __init__(self, start: tuple[float, float], end: tuple[float, float], steps: int, speed: float) -> None:
        self._start = start
        self._end = end
        self._steps = max(steps, 1)
        self._speed = speed
        self.step = 0

    @property
    def finished(self) -> bool:
        return self.step > self._steps

    async def __call__(self, options: PositionOptions) -> LocationFix:
        ratio = min(self.step / self._steps, 1.0)
        self.step += 1
        latitude = self._start[0] + (self._end[0] - self._start[0]) * ratio
        longitude = self._start[1] + (self._end[1] - self._start[1]) * ratio
        return LocationFix(
            latitude=latitude,
            longitude=longitude,
            accuracy=5.0 if options.enable_high_accuracy else 50.0,
            speed=self._speed if ratio < 1.0 else 0.0,
            timestamp=datetime.now(UTC),
        )


async def run() -> None:
    args = _parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = TrackingConfig.from_env(
        realtime_enabled=False,
        position={"poll_interval_ms": int(args.interval * 1000)},
    )
    reader = _RouteReader(args.start, args.end, args.steps, args.speed)
    geolocation = PollingGeolocation(reader)

    async with DeliveryTrackingClient(config) as client:
        async with client.publisher(args.delivery_id, geolocation) as publisher:
            if publisher.start_tracking() is None:
                raise SystemExit(publisher.error or "tracking could not start")
            _logger.info("%s: %s", order_label(args.delivery_id), tracking_status(True)[0])

            while not reader.finished:
                await asyncio.sleep(args.interval)
                await publisher.drain()
                if publisher.error:
                    _logger.warning("%s", publisher.error)
                elif publisher.last_sample is not None:
                    details = ", ".join(f"{label}: {value}" for label, value in position_details(publisher.last_sample))
                    _logger.info("%s", details)

    _logger.info("%s: %s", order_label(args.delivery_id), tracking_status(False)[0])


def main() -> None:
    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
