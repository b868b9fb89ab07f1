"""Custom exception hierarchy for deliverytrack."""

from __future__ import annotations


class DeliveryTrackError(Exception):
    """Base exception for all deliverytrack errors."""


class TrackingConfigError(DeliveryTrackError):
    """Invalid or missing configuration."""


class StoreTransportError(DeliveryTrackError):
    """HTTP-level failure (network, non-2xx, invalid JSON)."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        endpoint: str = "",
    ) -> None:
        self.status_code = status_code
        self.endpoint = endpoint
        super().__init__(message)


class StoreError(DeliveryTrackError):
    """A location store operation failed."""

    def __init__(
        self,
        message: str,
        *,
        endpoint: str = "",
        status_code: int | None = None,
    ) -> None:
        self.endpoint = endpoint
        self.status_code = status_code
        super().__init__(message)

    @property
    def is_transient(self) -> bool:
        """Whether retrying the same request may succeed (network or 5xx)."""
        return self.status_code is None or self.status_code >= 500


class StoreReadError(StoreError):
    """Fetching the latest location row failed."""


class StoreWriteError(StoreError):
    """Inserting or updating the location row failed."""


class SubscriptionError(DeliveryTrackError):
    """Change-feed failure (broker connection, malformed notification)."""


class DeviceError(DeliveryTrackError):
    """Base for device location failures."""


class DeviceUnsupportedError(DeviceError):
    """No geolocation source is available on this device."""


class DevicePositionError(DeviceError):
    """The device could not produce a position fix.

    ``code`` follows the W3C ``GeolocationPositionError`` numbering:
    ``1`` permission denied, ``2`` position unavailable, ``3`` timeout.
    """

    PERMISSION_DENIED = 1
    POSITION_UNAVAILABLE = 2
    TIMEOUT = 3

    def __init__(self, message: str, *, code: int = POSITION_UNAVAILABLE) -> None:
        self.code = code
        super().__init__(message)


class DevicePermissionDeniedError(DevicePositionError):
    """The user denied location permission."""

    def __init__(self, message: str = "location permission denied") -> None:
        super().__init__(message, code=DevicePositionError.PERMISSION_DENIED)


class DeviceTimeoutError(DevicePositionError):
    """No fix was produced within the configured timeout."""

    def __init__(self, message: str = "timed out waiting for a position fix") -> None:
        super().__init__(message, code=DevicePositionError.TIMEOUT)


class MapInitError(DeliveryTrackError):
    """The base map surface could not be constructed."""
