"""Internal MQTT telemetry feed: payload decoding and threaded runtime."""

from __future__ import annotations

import asyncio
import json
import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, cast

import paho.mqtt.client as mqtt

from fleettrack.config import TrackingConfig
from fleettrack.exceptions import FeedError, TelemetryValidationError
from fleettrack.ingestion.telemetry import is_position_message, parse_sample
from fleettrack.models.telemetry import TelemetrySample


@dataclass(frozen=True)
class MqttFeedSettings:
    """Broker details for the telemetry feed."""

    host: str
    port: int
    topic: str
    client_id: str
    username: str | None = None
    password: str | None = None
    tls: bool = False
    keepalive: int = 60

    @classmethod
    def from_config(cls, config: TrackingConfig, *, client_id: str | None = None) -> MqttFeedSettings:
        return cls(
            host=config.mqtt_host,
            port=config.mqtt_port,
            topic=config.mqtt_topic,
            client_id=client_id or f"fleettrack-{uuid.uuid4().hex[:12]}",
            username=config.mqtt_username,
            password=config.mqtt_password,
            tls=config.mqtt_tls,
            keepalive=config.mqtt_keepalive,
        )


def decode_feed_payload(payload: bytes) -> list[dict[str, Any]]:
    """Decode an MQTT payload into position message objects.

    A payload is a JSON object or a JSON array of objects. Messages that
    are not position updates (alerts, status changes) are skipped.

    Raises
    ------
    ValueError
        When the payload is not valid UTF-8 JSON of the expected shape.
    """
    parsed = json.loads(payload.decode("utf-8"))
    if isinstance(parsed, dict):
        items = [parsed]
    elif isinstance(parsed, list):
        items = parsed
    else:
        raise ValueError(f"MQTT payload decoded to {type(parsed).__name__}, expected object or array")
    return [item for item in items if is_position_message(item)]


def decode_samples(
    payload: bytes,
    *,
    logger: logging.Logger | None = None,
) -> list[TelemetrySample]:
    """Decode and validate every position message in *payload*.

    Invalid messages are logged and dropped; valid ones in the same
    payload are still returned.
    """
    log = logger or logging.getLogger(__name__)
    samples: list[TelemetrySample] = []
    for item in decode_feed_payload(payload):
        try:
            samples.append(parse_sample(item))
        except TelemetryValidationError as exc:
            log.warning("Rejected telemetry vehicle=%s errors=%s", exc.vehicle_id, exc.errors)
    return samples


class TelemetryMqttRuntime:
    """Threaded paho-mqtt runtime that hands validated samples to an asyncio loop."""

    def __init__(
        self,
        *,
        loop: asyncio.AbstractEventLoop,
        on_sample: Callable[[TelemetrySample], Any],
        logger: logging.Logger | None = None,
    ) -> None:
        self._loop = loop
        self._on_sample = on_sample
        self._logger = logger or logging.getLogger(__name__)
        self._client: mqtt.Client | None = None
        self._running = False
        self._topic: str | None = None

    @property
    def is_running(self) -> bool:
        """Whether the MQTT runtime is actively running."""
        return self._running

    def _handle_payload(self, topic: str, payload: bytes) -> None:
        try:
            samples = decode_samples(payload, logger=self._logger)
        except ValueError:
            self._logger.debug("MQTT payload parse failure topic=%s", topic, exc_info=True)
            return
        self._logger.debug("MQTT payload topic=%s samples=%d", topic, len(samples))
        for sample in samples:
            self._loop.call_soon_threadsafe(self._on_sample, sample)

    def start(self, settings: MqttFeedSettings) -> None:
        """Connect and subscribe with provided broker details.

        Raises :class:`FeedError` when the broker cannot be reached.
        """
        self.stop()
        self._logger.debug(
            "MQTT runtime start requested host=%s port=%s topic=%s client_id=%s",
            settings.host,
            settings.port,
            settings.topic,
            settings.client_id,
        )

        client = mqtt.Client(
            callback_api_version=cast(Any, mqtt).CallbackAPIVersion.VERSION2,
            client_id=settings.client_id,
            protocol=mqtt.MQTTv5,
        )
        client.enable_logger(self._logger)
        if settings.username:
            client.username_pw_set(settings.username, settings.password)
        if settings.tls:
            client.tls_set()

        self._topic = settings.topic

        def on_connect(
            c: mqtt.Client,
            _userdata: Any,
            _flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            if reason_code.value != 0:
                self._logger.warning("MQTT connect failed: %s", reason_code)
                return
            self._logger.debug("MQTT connected reason=%s", reason_code)
            if self._topic:
                self._logger.debug("MQTT subscribing topic=%s", self._topic)
                c.subscribe(self._topic, qos=0)

        def on_message(_c: mqtt.Client, _userdata: Any, msg: mqtt.MQTTMessage) -> None:
            self._handle_payload(msg.topic, msg.payload)

        def on_disconnect(
            _client: mqtt.Client,
            _userdata: Any,
            _disconnect_flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            if self._running:
                self._logger.debug("MQTT disconnected: %s", reason_code)

        client.on_connect = on_connect
        client.on_message = on_message
        client.on_disconnect = on_disconnect

        try:
            client.connect(settings.host, settings.port, keepalive=settings.keepalive)
        except OSError as exc:
            self._topic = None
            raise FeedError(
                f"Could not connect to MQTT broker {settings.host}:{settings.port}: {exc}",
                host=settings.host,
                port=settings.port,
            ) from exc
        client.loop_start()

        self._client = client
        self._running = True
        self._logger.debug("MQTT network loop started")

    def stop(self) -> None:
        """Stop and disconnect current MQTT client if running."""
        client = self._client
        self._client = None
        was_running = self._running
        self._running = False
        self._topic = None

        if client is None:
            return
        try:
            if was_running:
                self._logger.debug("MQTT disconnect requested")
                client.disconnect()
        finally:
            client.loop_stop()
            self._logger.debug("MQTT network loop stopped")
