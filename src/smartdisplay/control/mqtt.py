"""MQTT control channel.

Receives commands on ``smartDisplay/server/in/<command>`` and publishes
frames and status for the display device.
"""

from __future__ import annotations

import logging
import ssl
import threading
from collections.abc import Callable

import paho.mqtt.client as mqtt

from ..core.config import MqttConfig
from ..core.errors import TransportError

logger = logging.getLogger(__name__)

SERVER_IN_PREFIX = "smartDisplay/server/in/"
SERVER_IN_TOPIC = SERVER_IN_PREFIX + "#"
SERVER_OUT_TOPIC = "smartDisplay/server/out"
CLIENT_IN_PREFIX = "smartDisplay/client/in/"
CLIENT_OUT_PREFIX = "smartDisplay/client/out/"

CommandHandler = Callable[[str | None, str], None]


def get_last_topic_part(topic: str) -> str | None:
    """Return the last segment of a topic, or None if it is empty."""
    last = topic.rsplit("/", 1)[-1]
    return last or None


class ControlChannel:
    """paho-mqtt adapter delivering ``(command, payload)`` pairs.

    The network loop runs on paho's own thread and reconnects by itself;
    subscriptions are renewed on every (re)connect.
    """

    def __init__(self, config: MqttConfig, on_command: CommandHandler | None = None) -> None:
        self.config = config
        self.on_command = on_command
        self.on_connected: Callable[[], None] | None = None
        self._client: mqtt.Client | None = None
        self._handlers: dict[str, Callable[[str], None]] = {}
        self._lock = threading.Lock()

    @property
    def connected(self) -> bool:
        return self.is_connected()

    def connect(self) -> None:
        """Start connecting in the background. Idempotent.

        The broker itself may still be unreachable afterwards; paho keeps
        retrying on its network thread.

        Raises:
            TransportError: If paho rejects the connection settings
        """
        with self._lock:
            if self._client is not None:
                return

            callback_kwargs: dict[str, object] = {}
            if hasattr(mqtt, "CallbackAPIVersion"):
                callback_kwargs["callback_api_version"] = mqtt.CallbackAPIVersion.VERSION2
            client = mqtt.Client(
                client_id=self.config.client_id,
                clean_session=True,
                **callback_kwargs,
            )
            if self.config.username:
                password = self.config.password.get_secret_value() if self.config.password else ""
                client.username_pw_set(self.config.username, password)
            if self.config.tls_enabled:
                client.tls_set(tls_version=getattr(ssl, "PROTOCOL_TLS_CLIENT", ssl.PROTOCOL_TLS))

            client.on_connect = self._on_connect
            client.on_disconnect = self._on_disconnect
            client.message_callback_add(SERVER_IN_TOPIC, self._on_server_message)
            for topic in self._handlers:
                client.message_callback_add(topic, self._make_callback(topic))

            try:
                client.connect_async(self.config.host, self.config.port, keepalive=self.config.keepalive)
                client.loop_start()
            except (OSError, ValueError) as exc:
                logger.error("[mqtt] Failed to connect to MQTT: %s", exc)
                raise TransportError(
                    "Could not start MQTT client",
                    broker=f"{self.config.host}:{self.config.port}",
                    cause=exc,
                ) from exc

            self._client = client
            logger.info("[mqtt] Connecting to %s:%d", self.config.host, self.config.port)

    def disconnect(self) -> None:
        with self._lock:
            client = self._client
            self._client = None
        if client:
            client.loop_stop()
            client.disconnect()

    def is_connected(self) -> bool:
        client = self._client
        try:
            return bool(client and client.is_connected())
        except Exception:
            return False

    def publish(self, topic: str, payload: str | bytes, retain: bool = False, qos: int = 0) -> None:
        """Publish without waiting; failures are logged."""
        client = self._client
        if not client:
            logger.debug("[mqtt] Not connected, dropping message for %s", topic)
            return
        try:
            client.publish(topic, payload=payload, qos=qos, retain=retain)
        except Exception as exc:
            logger.warning("[mqtt] Failed to publish to %s: %s", topic, exc)

    def subscribe(self, topic: str, on_message: Callable[[str], None]) -> None:
        """Route messages on topic to on_message (decoded as UTF-8).

        Registrations made before connect() are applied on connect.

        Raises:
            TransportError: If the broker rejects the subscription
        """
        self._handlers[topic] = on_message

        client = self._client
        if client is None:
            return

        client.message_callback_add(topic, self._make_callback(topic))
        if client.is_connected():
            result, _mid = client.subscribe(topic)
            if result != mqtt.MQTT_ERR_SUCCESS:
                raise TransportError("Subscription failed", topic=topic, rc=result)

    # ------------------------------------------------------------------
    # paho callbacks
    # ------------------------------------------------------------------

    def _on_connect(self, client, _userdata, _flags, reason_code, _properties=None):  # type: ignore[no-untyped-def]
        if getattr(reason_code, "is_failure", False):
            logger.error("[mqtt] Connection refused: %s", reason_code)
            return

        logger.info("[mqtt] Connected")
        for topic in (SERVER_IN_TOPIC, *self._handlers):
            result, _mid = client.subscribe(topic)
            if result != mqtt.MQTT_ERR_SUCCESS:
                logger.warning("[mqtt] Failed to subscribe to topic: %s (rc=%s)", topic, result)

        if self.on_connected is not None:
            try:
                self.on_connected()
            except Exception as exc:
                logger.error("[mqtt] Connect hook failed: %s", exc, exc_info=True)

    def _on_disconnect(self, _client, _userdata, _flags, reason_code, _properties=None):  # type: ignore[no-untyped-def]
        logger.warning("[mqtt] Disconnected: %s", reason_code)

    def _on_server_message(self, _client, _userdata, message):  # type: ignore[no-untyped-def]
        topic = message.topic
        if not topic.startswith(SERVER_IN_PREFIX):
            return

        payload = message.payload.decode("utf-8", errors="ignore")
        self.dispatch(get_last_topic_part(topic), payload)

    def dispatch(self, command: str | None, payload: str) -> None:
        """Hand a command to the handler, logging any failure."""
        if self.on_command is None:
            return
        try:
            self.on_command(command, payload)
        except Exception as exc:
            logger.error("[mqtt] Command handler failed for '%s': %s", command, exc, exc_info=True)

    def _make_callback(self, topic: str):  # type: ignore[no-untyped-def]
        def _callback(_client, _userdata, message):  # type: ignore[no-untyped-def]
            handler = self._handlers.get(topic)
            if handler is None:
                return
            try:
                handler(message.payload.decode("utf-8", errors="ignore"))
            except Exception as exc:
                logger.error(
                    "[mqtt] Subscriber callback failed for topic '%s': %s", topic, exc, exc_info=True
                )

        return _callback
