# components/protocols/mqtt/paho_mqtt_transport.py
"""
MQTT v5 transport using paho-mqtt 2.x

Topics (prefix and device id are configurable):
    <prefix>/<device_id>/telemetry            telemetry, QoS 1
    <prefix>/<device_id>/commands/<name>      inbound commands
    <prefix>/<device_id>/responses/<name>     default response topic

Message properties travel as MQTT v5 user properties. Telemetry is handed to
paho and acknowledged in the background; command responses wait for the
broker. Responses echo the request's CorrelationData and go to its
ResponseTopic when one is set.

paho runs its network loop on its own thread. Inbound commands are handed to
the asyncio loop that called connect(), so handlers never run concurrently
with the simulation.
"""

import asyncio
import json
import logging
from http import HTTPStatus

import paho.mqtt.client as mqtt
from paho.mqtt.packettypes import PacketTypes
from paho.mqtt.properties import Properties

from components.protocols.transport import (
    CommandRequest,
    CommandResponder,
    Transport,
    TransportError,
    TransportMessage,
)

logger = logging.getLogger(__name__)


class MQTTCommandResponder(CommandResponder):
    """Publishes the response to one MQTT command."""

    def __init__(
        self,
        transport: "MQTTTransport",
        topic: str,
        correlation_data: bytes | None,
    ):
        self.transport = transport
        self.topic = topic
        self.correlation_data = correlation_data

    async def send(self, status: int, message: str) -> None:
        properties = Properties(PacketTypes.PUBLISH)
        properties.ContentType = "application/json"
        properties.UserProperty = [("status", str(int(status)))]
        if self.correlation_data:
            properties.CorrelationData = self.correlation_data

        body = json.dumps({"status": int(status), "message": message})
        await self.transport.publish_raw(self.topic, body.encode("utf-8"), properties)


class MQTTTransport(Transport):
    """Device transport over an MQTT v5 broker."""

    def __init__(
        self,
        host: str,
        port: int = 1883,
        device_id: str = "cheese-cave",
        username: str | None = None,
        password: str | None = None,
        topic_prefix: str = "devices",
        keepalive: int = 60,
        tls: bool = False,
        qos: int = 1,
        connect_timeout: float = 10.0,
        publish_timeout: float = 10.0,
        client: mqtt.Client | None = None,
    ):
        super().__init__("mqtt")
        if not host:
            raise ValueError("MQTT host cannot be empty")
        if not device_id:
            raise ValueError("device_id cannot be empty")

        self.host = host
        self.port = port
        self.device_id = device_id
        self.topic_prefix = topic_prefix.rstrip("/")
        self.keepalive = keepalive
        self.qos = qos
        self.connect_timeout = connect_timeout
        self.publish_timeout = publish_timeout

        self.client = client or mqtt.Client(
            mqtt.CallbackAPIVersion.VERSION2,
            client_id=device_id,
            protocol=mqtt.MQTTv5,
        )
        if username:
            self.client.username_pw_set(username, password)
        if tls:
            self.client.tls_set()

        self.client.on_connect = self._on_connect
        self.client.on_disconnect = self._on_disconnect
        self.client.on_message = self._on_message

        self._loop: asyncio.AbstractEventLoop | None = None
        self._connack: asyncio.Future | None = None
        self._pending_acks: set[asyncio.Task] = set()
        self.unacknowledged = 0

    # ------------------------------------------------------------------
    # Topics
    # ------------------------------------------------------------------
    @property
    def base_topic(self) -> str:
        return f"{self.topic_prefix}/{self.device_id}"

    @property
    def telemetry_topic(self) -> str:
        return f"{self.base_topic}/telemetry"

    @property
    def command_topic_filter(self) -> str:
        return f"{self.base_topic}/commands/+"

    def default_response_topic(self, method_name: str) -> str:
        return f"{self.base_topic}/responses/{method_name}"

    # ------------------------------------------------------------------
    # Client lifecycle
    # ------------------------------------------------------------------
    async def connect(self) -> None:
        if self.connected:
            return

        self._loop = asyncio.get_running_loop()
        self._connack = self._loop.create_future()

        try:
            await self._loop.run_in_executor(
                None,
                lambda: self.client.connect(
                    self.host, self.port, keepalive=self.keepalive
                ),
            )
        except OSError as e:
            raise TransportError(
                f"Cannot connect to MQTT broker {self.host}:{self.port}: {e}"
            ) from e

        self.client.loop_start()

        try:
            await asyncio.wait_for(self._connack, timeout=self.connect_timeout)
        except asyncio.TimeoutError as e:
            self.client.loop_stop()
            raise TransportError(
                f"No CONNACK from {self.host}:{self.port} "
                f"within {self.connect_timeout}s"
            ) from e
        except TransportError:
            self.client.loop_stop()
            raise

        logger.info(
            f"MQTT transport connected to {self.host}:{self.port} as {self.device_id}"
        )

    async def disconnect(self) -> None:
        if not self.connected and self._connack is None:
            return

        for task in list(self._pending_acks):
            task.cancel()
        self.client.disconnect()
        self.client.loop_stop()
        self.connected = False
        self._connack = None
        logger.info("MQTT transport disconnected")

    # ------------------------------------------------------------------
    # Publishing
    # ------------------------------------------------------------------
    async def publish(self, message: TransportMessage) -> None:
        """Hand telemetry to paho without waiting for the broker.

        The acknowledgement is awaited in a background task so a slow broker
        never stretches the telemetry interval. A missing acknowledgement is
        logged as a send error and counted in ``unacknowledged``.

        Raises:
            TransportError: If the client refuses the message
        """
        properties = Properties(PacketTypes.PUBLISH)
        properties.ContentType = "application/json"
        if message.properties:
            properties.UserProperty = list(message.properties.items())

        info = self._submit(self.telemetry_topic, message.body, properties)

        task = asyncio.create_task(
            self._acknowledge_in_background(self.telemetry_topic, info)
        )
        self._pending_acks.add(task)
        task.add_done_callback(self._pending_acks.discard)

    async def wait_for_acknowledgements(self) -> None:
        """Wait until every telemetry message in flight is acknowledged or failed."""
        if self._pending_acks:
            await asyncio.gather(*self._pending_acks)

    async def publish_raw(
        self, topic: str, payload: bytes, properties: Properties
    ) -> None:
        """Publish and wait for the broker acknowledgement.

        Raises:
            TransportError: If the client refuses the message or the broker
                does not acknowledge it in time
        """
        info = self._submit(topic, payload, properties)
        await self._wait_for_ack(topic, info)

    def _submit(
        self, topic: str, payload: bytes, properties: Properties
    ) -> mqtt.MQTTMessageInfo:
        if not self.connected:
            raise TransportError("MQTT transport not connected")

        try:
            info = self.client.publish(
                topic, payload, qos=self.qos, properties=properties
            )
        except ValueError as e:
            # paho rejects wildcard topics and oversized payloads this way
            raise TransportError(f"Publish to {topic} failed: {e}") from e

        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            raise TransportError(
                f"Publish to {topic} failed: {mqtt.error_string(info.rc)}"
            )
        return info

    async def _wait_for_ack(self, topic: str, info: mqtt.MQTTMessageInfo) -> None:
        try:
            await asyncio.get_running_loop().run_in_executor(
                None, info.wait_for_publish, self.publish_timeout
            )
        except (RuntimeError, ValueError) as e:
            raise TransportError(f"Publish to {topic} failed: {e}") from e

        if not info.is_published():
            raise TransportError(
                f"Publish to {topic} not acknowledged within {self.publish_timeout}s"
            )

    async def _acknowledge_in_background(
        self, topic: str, info: mqtt.MQTTMessageInfo
    ) -> None:
        try:
            await self._wait_for_ack(topic, info)
        except TransportError as e:
            self.unacknowledged += 1
            logger.error(f"Send error: {e}")

    # ------------------------------------------------------------------
    # paho callbacks (network thread)
    # ------------------------------------------------------------------
    def _on_connect(self, client, userdata, flags, reason_code, properties=None):
        if reason_code.is_failure:
            logger.error(f"MQTT connection refused: {reason_code}")
            self._set_connack(TransportError(f"Connection refused: {reason_code}"))
            return

        self.connected = True
        client.subscribe(self.command_topic_filter, qos=self.qos)
        self._set_connack(None)

    def _on_disconnect(self, client, userdata, flags, reason_code, properties=None):
        self.connected = False
        logger.warning(f"MQTT transport disconnected: {reason_code}")

    def _on_message(self, client, userdata, msg):
        prefix = f"{self.base_topic}/commands/"
        if not msg.topic.startswith(prefix):
            logger.debug(f"Ignoring message on {msg.topic}")
            return None

        method_name = msg.topic[len(prefix) :]
        properties = getattr(msg, "properties", None)
        correlation_data = getattr(properties, "CorrelationData", None)
        response_topic = getattr(properties, "ResponseTopic", None)

        request = CommandRequest(
            method_name=method_name,
            payload=self._decode_payload(msg.payload),
            request_id=correlation_data.hex() if correlation_data else str(msg.mid),
        )
        responder = MQTTCommandResponder(
            self,
            response_topic or self.default_response_topic(method_name),
            correlation_data,
        )

        if self._loop is None:
            logger.error(f"Command '{method_name}' received before connect()")
            return None

        future = asyncio.run_coroutine_threadsafe(
            self._dispatch(request, responder), self._loop
        )
        future.add_done_callback(self._log_dispatch_failure)
        return future

    # ------------------------------------------------------------------
    # Event loop side
    # ------------------------------------------------------------------
    def _set_connack(self, error: Exception | None) -> None:
        def _resolve():
            if self._connack is None or self._connack.done():
                return
            if error is None:
                self._connack.set_result(True)
            else:
                self._connack.set_exception(error)

        if self._loop is not None:
            self._loop.call_soon_threadsafe(_resolve)

    async def _dispatch(
        self, request: CommandRequest, responder: MQTTCommandResponder
    ) -> None:
        handler = self.get_command_handler(request.method_name)
        if handler is not None:
            await handler(request, responder)
            return

        logger.warning(f"No handler for command '{request.method_name}'")
        try:
            await responder.send(
                HTTPStatus.NOT_FOUND, f"Unknown method: {request.method_name}"
            )
        except TransportError as e:
            logger.error(f"Failed to reject unknown command: {e}")

    @staticmethod
    def _log_dispatch_failure(future) -> None:
        if future.cancelled():
            return
        error = future.exception()
        if error is not None:
            logger.error(f"Command handler failed: {error!r}", exc_info=error)

    @staticmethod
    def _decode_payload(raw: bytes) -> str:
        """Commands carry a JSON string ("on") or plain text (on)."""
        text = raw.decode("utf-8", errors="replace")
        try:
            value = json.loads(text)
        except json.JSONDecodeError:
            return text
        return value if isinstance(value, str) else text
