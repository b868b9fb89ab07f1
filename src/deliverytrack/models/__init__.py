"""Data models for location rows, device fixes, notifications and map views."""

from deliverytrack.models._base import TrackBaseModel
from deliverytrack.models.location import LocationFix, LocationSample, mps_to_kmh
from deliverytrack.models.map_view import (
    GeoBounds,
    LatLng,
    LegendEntry,
    MapErrorPanel,
    MapView,
    Marker,
    MarkerRole,
    MarkerStyle,
    Overlay,
    RouteLine,
)
from deliverytrack.models.notification import ChangeKind, ChangeNotification

__all__ = [
    "ChangeKind",
    "ChangeNotification",
    "GeoBounds",
    "LatLng",
    "LegendEntry",
    "LocationFix",
    "LocationSample",
    "MapErrorPanel",
    "MapView",
    "Marker",
    "MarkerRole",
    "MarkerStyle",
    "Overlay",
    "RouteLine",
    "TrackBaseModel",
    "mps_to_kmh",
]
