"""Location sample and device fix models."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from pydantic import AliasChoices, Field, field_validator

from deliverytrack._constants import DELIVERY_COLUMN, MPS_TO_KMH
from deliverytrack.ingestion.normalize import (
    ensure_utc,
    non_negative_or_none,
    normalize_heading,
    parse_timestamp,
    safe_float,
    safe_str,
)
from deliverytrack.models._base import TrackBaseModel


def mps_to_kmh(speed_mps: float | None) -> float | None:
    """Convert a device speed in m/s to km/h, keeping ``None`` as ``None``."""
    if speed_mps is None:
        return None
    return speed_mps * MPS_TO_KMH


class LocationSample(TrackBaseModel):
    """Latest known courier position for one delivery.

    The store holds at most one of these per delivery; it is upserted,
    never appended.

    Parameters
    ----------
    delivery_id : str
        Delivery (order) identifier, column ``pedido_delivery_id``.
    latitude, longitude : float
        Signed degrees.
    speed_kmh : float or None
        Ground speed in km/h, column ``velocidade``.
    heading_degrees : float or None
        Heading in ``[0, 360)``, column ``direcao``.
    accuracy_meters : float or None
        Radius of position uncertainty, column ``precisao``.
    updated_at : datetime or None
        Time of last write, set by the store.
    id : str or None
        Store row id.
    """

    id: str | None = None
    delivery_id: str = Field(validation_alias=AliasChoices(DELIVERY_COLUMN, "delivery_id", "deliveryId"))
    latitude: float = Field(ge=-90.0, le=90.0)
    longitude: float = Field(ge=-180.0, le=180.0)
    speed_kmh: float | None = Field(
        default=None,
        validation_alias=AliasChoices("velocidade", "speed_kmh", "speedKmh"),
    )
    heading_degrees: float | None = Field(
        default=None,
        validation_alias=AliasChoices("direcao", "heading_degrees", "headingDegrees"),
    )
    accuracy_meters: float | None = Field(
        default=None,
        validation_alias=AliasChoices("precisao", "accuracy_meters", "accuracyMeters"),
    )
    updated_at: datetime | None = Field(default=None, validation_alias=AliasChoices("updated_at", "updatedAt"))

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> str | None:
        return safe_str(value)

    @field_validator("delivery_id", mode="before")
    @classmethod
    def _coerce_delivery_id(cls, value: Any) -> str:
        text = safe_str(value)
        if text is None:
            raise ValueError("delivery_id must be non-empty")
        return text

    @field_validator("speed_kmh", "accuracy_meters", mode="before")
    @classmethod
    def _coerce_non_negative(cls, value: Any) -> float | None:
        return non_negative_or_none(value)

    @field_validator("heading_degrees", mode="before")
    @classmethod
    def _coerce_heading(cls, value: Any) -> float | None:
        return normalize_heading(value)

    @field_validator("updated_at", mode="before")
    @classmethod
    def _coerce_updated_at(cls, value: Any) -> datetime | None:
        return parse_timestamp(value)

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> LocationSample:
        """Build a sample from a store row."""
        return cls.model_validate(row)

    def to_row(self) -> dict[str, Any]:
        """Columns written to the store.

        ``id`` and ``updated_at`` are owned by the store and never sent.
        Optional fields are sent as ``null`` so an update clears them.
        """
        return {
            DELIVERY_COLUMN: self.delivery_id,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "velocidade": self.speed_kmh,
            "direcao": self.heading_degrees,
            "precisao": self.accuracy_meters,
        }


class LocationFix(TrackBaseModel):
    """A single position reading from the device.

    Parameters
    ----------
    latitude, longitude : float
        Signed degrees.
    accuracy : float or None
        Accuracy radius in metres.
    speed : float or None
        Ground speed in **m/s**, as reported by the device.
    heading : float or None
        Heading in degrees clockwise from true north.
    timestamp : datetime
        When the fix was taken.
    """

    latitude: float = Field(ge=-90.0, le=90.0, validation_alias=AliasChoices("latitude", "lat"))
    longitude: float = Field(ge=-180.0, le=180.0, validation_alias=AliasChoices("longitude", "lng", "lon"))
    accuracy: float | None = None
    speed: float | None = None
    heading: float | None = Field(default=None, validation_alias=AliasChoices("heading", "course", "track"))
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC), validation_alias=AliasChoices("timestamp", "time"))

    @field_validator("accuracy", "speed", mode="before")
    @classmethod
    def _coerce_non_negative(cls, value: Any) -> float | None:
        return non_negative_or_none(value)

    @field_validator("heading", mode="before")
    @classmethod
    def _coerce_heading(cls, value: Any) -> float | None:
        return safe_float(value)

    @field_validator("timestamp", mode="before")
    @classmethod
    def _coerce_timestamp(cls, value: Any) -> Any:
        parsed = parse_timestamp(value)
        return parsed if parsed is not None else value

    @property
    def speed_kmh(self) -> float | None:
        return mps_to_kmh(self.speed)

    def age_ms(self, now: datetime | None = None) -> float:
        """Milliseconds elapsed since the fix was taken."""
        reference = ensure_utc(now) if now is not None else datetime.now(UTC)
        return (reference - ensure_utc(self.timestamp)).total_seconds() * 1000.0

    def to_sample(self, delivery_id: str) -> LocationSample:
        """Derive the store sample for *delivery_id* from this fix."""
        return LocationSample(
            delivery_id=delivery_id,
            latitude=self.latitude,
            longitude=self.longitude,
            speed_kmh=self.speed_kmh,
            heading_degrees=self.heading,
            accuracy_meters=self.accuracy,
        )
