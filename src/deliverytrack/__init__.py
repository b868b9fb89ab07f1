"""deliverytrack - Live courier location tracking for food delivery orders."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("deliverytrack")
except PackageNotFoundError:
    __version__ = "0+local"
from deliverytrack._api.locations import UpsertOutcome, UpsertResult
from deliverytrack._realtime import ChannelState
from deliverytrack.client import DeliveryTrackingClient, LocationSubscription
from deliverytrack.config import PositionOptions, TrackingConfig, UpsertStrategy
from deliverytrack.exceptions import (
    DeliveryTrackError,
    DeviceError,
    DevicePermissionDeniedError,
    DevicePositionError,
    DeviceTimeoutError,
    DeviceUnsupportedError,
    MapInitError,
    StoreError,
    StoreReadError,
    StoreTransportError,
    StoreWriteError,
    SubscriptionError,
    TrackingConfigError,
)
from deliverytrack.geolocation import Geolocation, PollingGeolocation
from deliverytrack.models import (
    ChangeKind,
    ChangeNotification,
    LocationFix,
    LocationSample,
    MapErrorPanel,
    MapView,
)
from deliverytrack.publisher import LocationPublisher, PermissionStatus
from deliverytrack.renderer import DeliveryMapRenderer, MapOptions, build_map_view
from deliverytrack.subscriber import LocationSubscriber

__all__ = [
    "__version__",
    "ChangeKind",
    "ChangeNotification",
    "ChannelState",
    "DeliveryMapRenderer",
    "DeliveryTrackError",
    "DeliveryTrackingClient",
    "DeviceError",
    "DevicePermissionDeniedError",
    "DevicePositionError",
    "DeviceTimeoutError",
    "DeviceUnsupportedError",
    "Geolocation",
    "LocationFix",
    "LocationPublisher",
    "LocationSample",
    "LocationSubscriber",
    "LocationSubscription",
    "MapErrorPanel",
    "MapInitError",
    "MapOptions",
    "MapView",
    "PermissionStatus",
    "PollingGeolocation",
    "PositionOptions",
    "StoreError",
    "StoreReadError",
    "StoreTransportError",
    "StoreWriteError",
    "SubscriptionError",
    "TrackingConfig",
    "TrackingConfigError",
    "UpsertOutcome",
    "UpsertResult",
    "UpsertStrategy",
    "build_map_view",
]
