"""Map view models produced by :mod:`deliverytrack.renderer`."""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class MarkerRole(StrEnum):
    COURIER = "courier"
    CUSTOMER = "customer"
    RESTAURANT = "restaurant"


class LatLng(BaseModel):
    model_config = ConfigDict(frozen=True)

    latitude: float = Field(ge=-90.0, le=90.0)
    longitude: float = Field(ge=-180.0, le=180.0)

    def as_pair(self) -> tuple[float, float]:
        return (self.latitude, self.longitude)


class MarkerStyle(BaseModel):
    model_config = ConfigDict(frozen=True)

    color: str
    icon: str
    size_px: int
    css_class: str


class Marker(BaseModel):
    model_config = ConfigDict(frozen=True)

    role: MarkerRole
    position: LatLng
    style: MarkerStyle
    title: str
    description: str | None = None


class RouteLine(BaseModel):
    model_config = ConfigDict(frozen=True)

    points: tuple[LatLng, ...]
    color: str = "#8b5cf6"
    weight: int = 3
    opacity: float = 0.7
    dash_array: str = "10, 10"


class GeoBounds(BaseModel):
    """Axis-aligned latitude/longitude box."""

    model_config = ConfigDict(frozen=True)

    south: float
    west: float
    north: float
    east: float

    @classmethod
    def around(cls, points: list[LatLng]) -> GeoBounds:
        if not points:
            raise ValueError("cannot bound an empty point set")
        lats = [p.latitude for p in points]
        lngs = [p.longitude for p in points]
        return cls(south=min(lats), west=min(lngs), north=max(lats), east=max(lngs))

    def contains(self, point: LatLng) -> bool:
        return self.south <= point.latitude <= self.north and self.west <= point.longitude <= self.east

    @property
    def center(self) -> LatLng:
        return LatLng(latitude=(self.south + self.north) / 2, longitude=(self.west + self.east) / 2)


class Overlay(BaseModel):
    model_config = ConfigDict(frozen=True)

    title: str
    message: str


class LegendEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    label: str
    color: str


class MapView(BaseModel):
    """Everything a front end needs to draw the delivery map."""

    model_config = ConfigDict(frozen=True)

    center: LatLng
    zoom: int | None
    tile_url: str
    attribution: str
    max_zoom: int
    markers: tuple[Marker, ...] = ()
    route: RouteLine | None = None
    fit_bounds: GeoBounds | None = None
    padding_px: tuple[int, int] = (50, 50)
    overlay: Overlay | None = None
    legend: tuple[LegendEntry, ...] = ()

    def marker(self, role: MarkerRole) -> Marker | None:
        return next((m for m in self.markers if m.role == role), None)

    def padded_bounds(self, width_px: int, height_px: int) -> GeoBounds | None:
        """``fit_bounds`` grown so that the padding is honoured in a viewport.

        The inner area (viewport minus padding on both sides) shows the
        raw bounds, so each side grows by ``span * pad / inner``.
        """
        if self.fit_bounds is None:
            return None
        pad_x, pad_y = self.padding_px
        inner_w = width_px - 2 * pad_x
        inner_h = height_px - 2 * pad_y
        if inner_w <= 0 or inner_h <= 0:
            raise ValueError("viewport is smaller than the padding")
        b = self.fit_bounds
        grow_lat = (b.north - b.south) * pad_y / inner_h
        grow_lng = (b.east - b.west) * pad_x / inner_w
        return GeoBounds(
            south=max(-90.0, b.south - grow_lat),
            west=max(-180.0, b.west - grow_lng),
            north=min(90.0, b.north + grow_lat),
            east=min(180.0, b.east + grow_lng),
        )

    def to_geojson(self) -> dict[str, Any]:
        """Markers and route as a GeoJSON ``FeatureCollection``."""
        features: list[dict[str, Any]] = []
        for marker in self.markers:
            features.append(
                {
                    "type": "Feature",
                    "geometry": {
                        "type": "Point",
                        # GeoJSON is lng, lat
                        "coordinates": [marker.position.longitude, marker.position.latitude],
                    },
                    "properties": {
                        "role": marker.role.value,
                        "title": marker.title,
                        "description": marker.description,
                        "color": marker.style.color,
                    },
                }
            )
        if self.route is not None:
            features.append(
                {
                    "type": "Feature",
                    "geometry": {
                        "type": "LineString",
                        "coordinates": [[p.longitude, p.latitude] for p in self.route.points],
                    },
                    "properties": {
                        "role": "route",
                        "color": self.route.color,
                        "weight": self.route.weight,
                        "opacity": self.route.opacity,
                        "dashArray": self.route.dash_array,
                    },
                }
            )
        return {"type": "FeatureCollection", "features": features}


class MapErrorPanel(BaseModel):
    """Static panel shown instead of the map when it cannot be built."""

    model_config = ConfigDict(frozen=True)

    message: str
