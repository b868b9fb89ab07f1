"""Internal change-feed runtime over MQTT.

The store publishes every row change of the location table on
``{prefix}/{table}/{delivery_id}``. Subscribing to one topic is the
server-side filter on the delivery identifier.
"""

from __future__ import annotations

import asyncio
import logging
import secrets
import threading
from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Protocol, cast
from urllib.parse import unquote

import paho.mqtt.client as mqtt

from deliverytrack.config import TrackingConfig
from deliverytrack.exceptions import SubscriptionError, TrackingConfigError
from deliverytrack.ingestion.changes import decode_change_payload
from deliverytrack.models.notification import ChangeNotification


class ChannelState(StrEnum):
    IDLE = "idle"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    CLOSED = "closed"


@dataclass(frozen=True)
class ChannelEndpoint:
    """Broker connection details."""

    host: str
    port: int
    tls: bool
    client_id: str
    username: str | None = None
    password: str | None = None
    keepalive: int = 60
    reconnect_min_delay: int = 1
    reconnect_max_delay: int = 30

    @classmethod
    def from_config(cls, config: TrackingConfig) -> ChannelEndpoint:
        if not config.realtime_host:
            raise TrackingConfigError("realtime_host is required when realtime is enabled")
        return cls(
            host=config.realtime_host,
            port=config.realtime_port,
            tls=config.realtime_tls,
            client_id=f"deliverytrack-{secrets.token_hex(6)}",
            username=config.realtime_username,
            password=config.realtime_password,
            keepalive=config.realtime_keepalive,
            reconnect_min_delay=config.reconnect_min_delay,
            reconnect_max_delay=config.reconnect_max_delay,
        )


@dataclass(frozen=True)
class ChannelEvent:
    """A decoded change notification for one delivery topic."""

    topic: str
    delivery_id: str
    notification: ChangeNotification


def delivery_id_from_topic(topic: str) -> str:
    """Inverse of :meth:`TrackingConfig.topic_for` for the last topic level."""
    return unquote(topic.rsplit("/", 1)[-1])


class ChannelRuntime(Protocol):
    """Structural interface of the change-feed runtime used by the client."""

    @property
    def is_running(self) -> bool: ...

    def start(self, endpoint: ChannelEndpoint) -> None: ...

    def stop(self) -> None: ...

    def subscribe(self, topic: str) -> None: ...

    def unsubscribe(self, topic: str) -> None: ...


class MqttChannelRuntime:
    """Threaded paho-mqtt runtime that emits change events onto an asyncio loop.

    paho's network thread reconnects on its own with exponential backoff
    between ``reconnect_min_delay`` and ``reconnect_max_delay``; every
    (re)connect resubscribes all active topics.
    """

    def __init__(
        self,
        *,
        loop: asyncio.AbstractEventLoop,
        on_event: Callable[[ChannelEvent], None],
        on_state: Callable[[ChannelState], None] | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._loop = loop
        self._on_event = on_event
        self._on_state = on_state
        self._logger = logger or logging.getLogger(__name__)
        self._client: mqtt.Client | None = None
        self._running = False
        self._topics: set[str] = set()
        self._lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        """Whether the MQTT runtime is actively running."""
        return self._running

    def _emit_state(self, state: ChannelState) -> None:
        if self._on_state is None:
            return
        self._loop.call_soon_threadsafe(self._on_state, state)

    def start(self, endpoint: ChannelEndpoint) -> None:
        """Start connecting in the background with provided broker details."""
        self.stop()
        self._logger.debug(
            "MQTT runtime start requested host=%s port=%s client_id=%s",
            endpoint.host,
            endpoint.port,
            endpoint.client_id,
        )

        client = mqtt.Client(
            callback_api_version=cast(Any, mqtt).CallbackAPIVersion.VERSION2,
            client_id=endpoint.client_id,
            protocol=mqtt.MQTTv5,
        )
        client.enable_logger(self._logger)
        if endpoint.username:
            client.username_pw_set(endpoint.username, endpoint.password)
        if endpoint.tls:
            client.tls_set()
        client.reconnect_delay_set(min_delay=endpoint.reconnect_min_delay, max_delay=endpoint.reconnect_max_delay)

        def on_connect(
            c: mqtt.Client,
            _userdata: Any,
            _flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            if reason_code.value != 0:
                self._logger.warning("MQTT connect failed: %s", reason_code)
                self._emit_state(ChannelState.DISCONNECTED)
                return
            with self._lock:
                topics = sorted(self._topics)
            self._logger.debug("MQTT connected reason=%s resubscribing=%s", reason_code, topics)
            for topic in topics:
                c.subscribe(topic, qos=1)
            self._emit_state(ChannelState.CONNECTED)

        def on_message(_c: mqtt.Client, _userdata: Any, msg: mqtt.MQTTMessage) -> None:
            try:
                notification = decode_change_payload(msg.payload)
            except SubscriptionError:
                self._logger.warning("Dropping malformed change notification topic=%s", msg.topic, exc_info=True)
                return
            self._logger.debug(
                "Change notification topic=%s kind=%s",
                msg.topic,
                notification.kind,
            )
            event = ChannelEvent(
                topic=msg.topic,
                delivery_id=delivery_id_from_topic(msg.topic),
                notification=notification,
            )
            self._loop.call_soon_threadsafe(self._on_event, event)

        def on_disconnect(
            _client: mqtt.Client,
            _userdata: Any,
            _disconnect_flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            if self._running:
                self._logger.warning("MQTT connection lost: %s", reason_code)
                self._emit_state(ChannelState.DISCONNECTED)

        client.on_connect = on_connect
        client.on_message = on_message
        client.on_disconnect = on_disconnect

        self._client = client
        self._running = True
        self._emit_state(ChannelState.CONNECTING)
        client.connect_async(endpoint.host, endpoint.port, keepalive=endpoint.keepalive)
        client.loop_start()
        self._logger.debug("MQTT network loop started")

    def subscribe(self, topic: str) -> None:
        with self._lock:
            if topic in self._topics:
                return
            self._topics.add(topic)
        client = self._client
        if client is not None and client.is_connected():
            self._logger.debug("MQTT subscribing topic=%s", topic)
            client.subscribe(topic, qos=1)

    def unsubscribe(self, topic: str) -> None:
        with self._lock:
            if topic not in self._topics:
                return
            self._topics.discard(topic)
        client = self._client
        if client is not None and client.is_connected():
            self._logger.debug("MQTT unsubscribing topic=%s", topic)
            client.unsubscribe(topic)

    def stop(self) -> None:
        """Stop and disconnect current MQTT client if running."""
        client = self._client
        self._client = None
        was_running = self._running
        self._running = False
        with self._lock:
            self._topics.clear()

        if client is None:
            return
        try:
            if was_running:
                self._logger.debug("MQTT disconnect requested")
                client.disconnect()
        finally:
            client.loop_stop()
            self._logger.debug("MQTT network loop stopped")
            self._emit_state(ChannelState.CLOSED)
