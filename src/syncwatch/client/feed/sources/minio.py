"""MinIO bucket notifications over MQTT.

This module provides:
- MinioMQTTSource: Push source subscribed to the topic MinIO publishes
  bucket notifications to

Architecture:
    MinIO ─publish─► MQTT broker ─► MinioMQTTSource ─► normalizer ─► dispatcher
                                         │
                           (paho network loop thread, auto-reconnect)

The session is persistent (clean session disabled) and the subscription
uses QoS 1, so the broker keeps messages published during a short outage
and delivers them after the reconnect.
"""

from __future__ import annotations

import contextlib
import json
import logging
import ssl
from typing import TYPE_CHECKING, Any

import paho.mqtt.client as mqtt

from syncwatch.client.feed.normalizer import MinioNormalizer
from syncwatch.client.feed.sources.base import PushSource
from syncwatch.client.feed.types import MalformedEventError

if TYPE_CHECKING:
    from collections.abc import Iterator

    from syncwatch.client.feed.dispatcher import InvalidationDispatcher
    from syncwatch.core.config import BrokerConfig

logger = logging.getLogger(__name__)


class MinioMQTTSource(PushSource):
    """Push source for MinIO notifications published to an MQTT broker.

    Usage:
        source = MinioMQTTSource(broker_config, dispatcher)
        source.listen(cancel_event)  # blocks until cancel_event is set
    """

    def __init__(
        self,
        config: BrokerConfig,
        dispatcher: InvalidationDispatcher,
        name: str = "minio",
    ) -> None:
        """Initialize the source.

        Args:
            config: Broker configuration (URL, topic, credentials).
            dispatcher: Invalidation dispatcher of the directory cache.
            name: Source key.
        """
        super().__init__(name, MinioNormalizer(), dispatcher)
        self._config = config
        self._connected = False

    @property
    def connected(self) -> bool:
        """Check if currently connected to the broker."""
        return self._connected

    def create_client(self) -> mqtt.Client:
        """Create an MQTT client configured for a persistent session."""
        config = self._config
        client = mqtt.Client(
            callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
            client_id=config.client_id,
            clean_session=False,
            transport=config.transport,
        )
        if config.transport == "websockets":
            client.ws_set_options(path=config.path)
        if config.is_secure:
            if config.verify_ssl:
                client.tls_set()
            else:
                client.tls_set(cert_reqs=ssl.CERT_NONE)
                client.tls_insecure_set(True)
        if config.username:
            client.username_pw_set(config.username, config.password or None)
        client.reconnect_delay_set(
            min_delay=config.min_reconnect_delay,
            max_delay=config.max_reconnect_delay,
        )

        client.on_connect = self._on_connect
        client.on_disconnect = self._on_disconnect
        client.on_message = self._on_message
        return client

    @contextlib.contextmanager
    def subscribe(self) -> Iterator[mqtt.Client]:
        """Connect and run the network loop until the context exits.

        The first connection attempt is made in the background, and retried
        like any later reconnect, so an unreachable broker does not fail the
        listener.
        """
        client = self.create_client()
        client.connect_async(
            self._config.host,
            self._config.port,
            keepalive=self._config.keepalive,
        )
        client.loop_start()
        logger.info(
            "Listening to Minio MQTT Notifications: %s, %s",
            self._config.broker_url,
            self._config.topic,
        )
        try:
            yield client
        finally:
            client.disconnect()
            client.loop_stop()
            self._connected = False

    def decode_message(self, payload: bytes) -> list[Any]:
        """Decode a MinIO notification into its records."""
        try:
            data = json.loads(payload)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise MalformedEventError(f"Invalid notification payload: {e}") from e
        if not isinstance(data, dict):
            raise MalformedEventError(f"Unexpected notification payload: {payload[:100]!r}")
        records = data.get("Records") or []
        if not isinstance(records, list):
            raise MalformedEventError(f"Records is not a list: {records!r}")
        return records

    # === paho callbacks (network loop thread) ===

    def _on_connect(
        self,
        client: mqtt.Client,
        userdata: Any,
        flags: Any,
        reason_code: Any,
        properties: Any,
    ) -> None:
        if reason_code.is_failure:
            logger.error("Failed to connect to MQTT broker: %s", reason_code)
            return
        self._connected = True
        logger.info("Connected to MQTT broker %s", self._config.broker_url)
        # Persistent sessions keep subscriptions, subscribing again is harmless
        client.subscribe(self._config.topic, qos=self._config.qos)

    def _on_disconnect(
        self,
        client: mqtt.Client,
        userdata: Any,
        flags: Any,
        reason_code: Any,
        properties: Any,
    ) -> None:
        self._connected = False
        if reason_code.is_failure:
            logger.warning("Disconnected from MQTT broker (%s), reconnecting...", reason_code)
        else:
            logger.info("Disconnected from MQTT broker")

    def _on_message(self, client: mqtt.Client, userdata: Any, message: mqtt.MQTTMessage) -> None:
        logger.debug("Received Message: %s, %s", message.topic, message.payload[:200])
        try:
            self.handle_message(message.payload)
        except Exception as e:
            # An exception here would stop the network loop
            logger.error("Failed to process notification: %s", e)
            logger.debug("Full traceback:", exc_info=True)
