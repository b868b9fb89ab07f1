#!/usr/bin/env python3
"""Follow the live courier location of one delivery from the terminal.

Reads store and broker settings from ``DELIVERYTRACK_*`` environment
variables. With ``--map`` the current map view is printed as GeoJSON on
every change.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging

from deliverytrack import DeliveryMapRenderer, DeliveryTrackingClient, LocationSample, MapView, TrackingConfig
from deliverytrack.formatters import order_label, position_details

_logger = logging.getLogger("watch_delivery")


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Print live location updates for a delivery.")
    parser.add_argument("delivery_id", help="Delivery (order) identifier")
    parser.add_argument("--customer", help="Customer point 'lat,lng' for the map view")
    parser.add_argument("--once", action="store_true", help="Fetch the latest location and exit")
    parser.add_argument("--map", action="store_true", help="Print the map view as GeoJSON")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser.parse_args()


def _print_sample(delivery_id: str, sample: LocationSample | None) -> None:
    if sample is None:
        print(f"{order_label(delivery_id)}: Aguardando rastreamento")
        return
    details = " | ".join(f"{label}: {value}" for label, value in position_details(sample))
    print(f"{order_label(delivery_id)} [{sample.updated_at}] {details}")


async def run() -> None:
    args = _parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    customer = tuple(float(part) for part in args.customer.split(",", 1)) if args.customer else None
    renderer = DeliveryMapRenderer()

    def _on_change(sample: LocationSample | None) -> None:
        _print_sample(args.delivery_id, sample)
        if args.map:
            view = renderer.render(sample, customer)
            payload = view.to_geojson() if isinstance(view, MapView) else view.model_dump()
            print(json.dumps(payload, ensure_ascii=False))

    config = TrackingConfig.from_env(realtime_enabled=not args.once)
    async with DeliveryTrackingClient(config) as client:
        if args.once:
            _on_change(await client.fetch_latest_location(args.delivery_id))
            return

        async with client.subscriber(args.delivery_id, on_change=_on_change) as view:
            if view.error:
                _logger.warning("%s", view.error)
            while True:
                await asyncio.sleep(5)
                if view.connection_message:
                    _logger.warning("%s", view.connection_message)


def main() -> None:
    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
