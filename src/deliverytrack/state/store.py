"""Deterministic in-memory state store.

This is the only component allowed to replace the known location of a
delivery.
"""

from __future__ import annotations

import logging
from datetime import datetime

from pydantic import BaseModel, ConfigDict

from deliverytrack.models.location import LocationSample
from deliverytrack.state.events import LocationUpdate, UpdateSource
from deliverytrack.state.policy import should_accept_update

_logger = logging.getLogger(__name__)


class TrackedLocation(BaseModel):
    model_config = ConfigDict(frozen=True)

    sample: LocationSample
    source: UpdateSource
    observed_at: datetime


class StateStore:
    """Latest known location per delivery.

    Updates replace the sample wholesale; there is no field-level merge, so a
    notification without speed clears a previously known speed.
    """

    def __init__(self) -> None:
        self._locations: dict[str, TrackedLocation] = {}

    def apply(self, update: LocationUpdate) -> bool:
        """Apply *update*; return ``True`` if it replaced the known state."""
        cached = self._locations.get(update.delivery_id)
        if cached is not None and not should_accept_update(
            cached_updated_at=cached.sample.updated_at,
            incoming_updated_at=update.sample.updated_at,
        ):
            _logger.debug(
                "Discarding stale %s update delivery=%s incoming=%s cached=%s",
                update.source,
                update.delivery_id,
                update.sample.updated_at,
                cached.sample.updated_at,
            )
            return False

        self._locations[update.delivery_id] = TrackedLocation(
            sample=update.sample,
            source=update.source,
            observed_at=update.observed_at,
        )
        return True

    def get(self, delivery_id: str) -> LocationSample | None:
        tracked = self._locations.get(delivery_id)
        return tracked.sample if tracked is not None else None

    def source_of(self, delivery_id: str) -> UpdateSource | None:
        tracked = self._locations.get(delivery_id)
        return tracked.source if tracked is not None else None

    def clear(self, delivery_id: str) -> None:
        self._locations.pop(delivery_id, None)
