"""Client configuration for deliverytrack."""

from __future__ import annotations

import dataclasses
import os
from enum import StrEnum
from typing import Any
from urllib.parse import quote

from deliverytrack._constants import DEFAULT_TABLE, POSITION_MAXIMUM_AGE_MS, POSITION_TIMEOUT_MS
from deliverytrack.exceptions import TrackingConfigError


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


class UpsertStrategy(StrEnum):
    """How the publisher writes the single location row of a delivery."""

    ATOMIC = "atomic"
    READ_THEN_WRITE = "read_then_write"


@dataclasses.dataclass(frozen=True)
class PositionOptions:
    """Options passed to the device location source.

    These mirror the W3C ``PositionOptions`` dictionary.
    """

    enable_high_accuracy: bool = True
    timeout_ms: int = POSITION_TIMEOUT_MS
    maximum_age_ms: int = POSITION_MAXIMUM_AGE_MS
    poll_interval_ms: int = 2_000


@dataclasses.dataclass(frozen=True)
class TrackingConfig:
    """Client configuration.

    Parameters
    ----------
    rest_url : str
        Base URL of the REST endpoint exposing the location table
        (e.g. ``"https://project.example.co/rest/v1"``).
    api_key : str
        Project API key, sent as the ``apikey`` header.
    access_token : str or None
        User JWT. When unset the API key is used as bearer token.
    table : str
        Name of the location table.
    upsert_strategy : UpsertStrategy
        ``ATOMIC`` issues one insert-or-update-on-conflict request.
        ``READ_THEN_WRITE`` looks the row up first, for stores without a
        unique constraint on the delivery column.
    request_timeout : float
        Total timeout in seconds for a single REST request.
    write_retries : int
        Extra attempts on transient write failures. ``0`` leaves retrying
        to the next position fix.
    write_retry_backoff : float
        Initial backoff in seconds, doubled on every retry.
    realtime_enabled : bool
        Connect to the change-feed broker for live notifications.
    realtime_host : str or None
        Broker host. Required when realtime is enabled.
    realtime_port : int
        Broker port.
    realtime_tls : bool
        Use TLS for the broker connection.
    realtime_username, realtime_password : str or None
        Broker credentials.
    realtime_topic_prefix : str
        Topics are ``{prefix}/{table}/{delivery_id}``.
    realtime_keepalive : int
        MQTT keepalive in seconds.
    reconnect_min_delay, reconnect_max_delay : int
        Bounds in seconds of the broker reconnect backoff.
    api_trace_enabled : bool
        Log redacted request/response bodies at DEBUG level.
    position : PositionOptions
        Device location options.
    """

    rest_url: str
    api_key: str
    access_token: str | None = None
    table: str = DEFAULT_TABLE
    upsert_strategy: UpsertStrategy = UpsertStrategy.ATOMIC
    request_timeout: float = 10.0
    write_retries: int = 0
    write_retry_backoff: float = 0.5
    realtime_enabled: bool = True
    realtime_host: str | None = None
    realtime_port: int = 8883
    realtime_tls: bool = True
    realtime_username: str | None = None
    realtime_password: str | None = None
    realtime_topic_prefix: str = "realtime/public"
    realtime_keepalive: int = 60
    reconnect_min_delay: int = 1
    reconnect_max_delay: int = 30
    api_trace_enabled: bool = False
    position: PositionOptions = dataclasses.field(default_factory=PositionOptions)

    def __post_init__(self) -> None:
        if not self.rest_url.strip():
            raise TrackingConfigError("rest_url must be non-empty")
        if not self.api_key.strip():
            raise TrackingConfigError("api_key must be non-empty")
        if self.write_retries < 0:
            raise TrackingConfigError("write_retries must be >= 0")
        if self.reconnect_min_delay > self.reconnect_max_delay:
            raise TrackingConfigError("reconnect_min_delay must not exceed reconnect_max_delay")
        # Accept plain strings for the strategy (e.g. from env vars).
        try:
            object.__setattr__(self, "upsert_strategy", UpsertStrategy(self.upsert_strategy))
        except ValueError as exc:
            raise TrackingConfigError(f"unknown upsert_strategy {self.upsert_strategy!r}") from exc

    def topic_for(self, delivery_id: str) -> str:
        """Change-feed topic carrying notifications for *delivery_id*.

        The id is percent-encoded into a single topic level, so ``/``,
        ``+`` and ``#`` never act as separators or wildcards.
        """
        prefix = self.realtime_topic_prefix.strip("/")
        return f"{prefix}/{self.table}/{quote(delivery_id, safe='')}"

    @classmethod
    def from_env(cls, **overrides: Any) -> TrackingConfig:
        """Create configuration from environment variables.

        Reads ``DELIVERYTRACK_REST_URL``, ``DELIVERYTRACK_API_KEY`` and the
        optional ``DELIVERYTRACK_*`` variables below. Explicit keyword
        arguments override environment values.

        Parameters
        ----------
        **overrides
            Explicit field values that take precedence over env vars.

        Returns
        -------
        TrackingConfig
            Populated configuration.
        """
        env = os.environ

        position_kwargs: dict[str, Any] = {}
        _ENV_POSITION_MAP = {
            "DELIVERYTRACK_POSITION_TIMEOUT_MS": "timeout_ms",
            "DELIVERYTRACK_POSITION_MAXIMUM_AGE_MS": "maximum_age_ms",
            "DELIVERYTRACK_POSITION_POLL_INTERVAL_MS": "poll_interval_ms",
        }
        for env_key, field_name in _ENV_POSITION_MAP.items():
            val = env.get(env_key)
            if val is not None:
                position_kwargs[field_name] = int(val)
        high_accuracy = env.get("DELIVERYTRACK_POSITION_HIGH_ACCURACY")
        if high_accuracy is not None:
            position_kwargs["enable_high_accuracy"] = _env_bool(high_accuracy, True)

        position_overrides = overrides.pop("position", None)
        if isinstance(position_overrides, dict):
            position_kwargs.update(position_overrides)
        elif isinstance(position_overrides, PositionOptions):
            position_kwargs = dataclasses.asdict(position_overrides)

        position = PositionOptions(**position_kwargs) if position_kwargs else PositionOptions()

        _ENV_CONFIG_MAP = {
            "DELIVERYTRACK_REST_URL": "rest_url",
            "DELIVERYTRACK_API_KEY": "api_key",
            "DELIVERYTRACK_ACCESS_TOKEN": "access_token",
            "DELIVERYTRACK_TABLE": "table",
            "DELIVERYTRACK_UPSERT_STRATEGY": "upsert_strategy",
            "DELIVERYTRACK_REALTIME_HOST": "realtime_host",
            "DELIVERYTRACK_REALTIME_USERNAME": "realtime_username",
            "DELIVERYTRACK_REALTIME_PASSWORD": "realtime_password",
            "DELIVERYTRACK_REALTIME_TOPIC_PREFIX": "realtime_topic_prefix",
        }
        config_kwargs: dict[str, Any] = {"position": position}
        for env_key, field_name in _ENV_CONFIG_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        _ENV_NUMERIC_MAP: dict[str, tuple[str, type]] = {
            "DELIVERYTRACK_REQUEST_TIMEOUT": ("request_timeout", float),
            "DELIVERYTRACK_WRITE_RETRIES": ("write_retries", int),
            "DELIVERYTRACK_WRITE_RETRY_BACKOFF": ("write_retry_backoff", float),
            "DELIVERYTRACK_REALTIME_PORT": ("realtime_port", int),
            "DELIVERYTRACK_REALTIME_KEEPALIVE": ("realtime_keepalive", int),
            "DELIVERYTRACK_RECONNECT_MIN_DELAY": ("reconnect_min_delay", int),
            "DELIVERYTRACK_RECONNECT_MAX_DELAY": ("reconnect_max_delay", int),
        }
        for env_key, (field_name, caster) in _ENV_NUMERIC_MAP.items():
            val = env.get(env_key)
            if val is not None and field_name not in overrides:
                config_kwargs[field_name] = caster(val)

        if "realtime_enabled" not in overrides:
            config_kwargs["realtime_enabled"] = _env_bool(env.get("DELIVERYTRACK_REALTIME_ENABLED"), True)

        if "realtime_tls" not in overrides:
            config_kwargs["realtime_tls"] = _env_bool(env.get("DELIVERYTRACK_REALTIME_TLS"), True)

        if "api_trace_enabled" not in overrides:
            config_kwargs["api_trace_enabled"] = _env_bool(
                env.get("DELIVERYTRACK_API_TRACE_ENABLED"),
                False,
            )

        config_kwargs.update(overrides)

        missing = [name for name in ("rest_url", "api_key") if not config_kwargs.get(name)]
        if missing:
            raise TrackingConfigError(f"missing required configuration: {', '.join(missing)}")

        return cls(**config_kwargs)
