"""Normalized location updates.

Both ingestion paths (initial fetch, live notifications) convert their
inputs into these updates. Only the state/store layer is allowed to apply
them.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator

from deliverytrack.models.location import LocationSample


class UpdateSource(StrEnum):
    FETCH = "fetch"
    REALTIME = "realtime"


class LocationUpdate(BaseModel):
    """A full replacement of the known location of a delivery."""

    model_config = ConfigDict(frozen=True)

    delivery_id: str
    source: UpdateSource
    sample: LocationSample
    observed_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @field_validator("delivery_id")
    @classmethod
    def _normalize_delivery_id(cls, value: str) -> str:
        delivery_id = value.strip()
        if not delivery_id:
            raise ValueError("delivery_id must be non-empty")
        return delivery_id

    @field_validator("observed_at")
    @classmethod
    def _ensure_tz_aware(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value
