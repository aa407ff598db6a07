"""
Device transports.

Structure:
    components/protocols/
    ├── transport.py                 # Transport base, messages, TransportError
    ├── loopback/
    │   └── loopback_transport.py    # In-memory transport (offline, tests)
    └── mqtt/
        └── paho_mqtt_transport.py   # MQTT v5 over paho-mqtt

Usage:
    from components.protocols import create_transport

    transport = create_transport({"type": "mqtt", "host": "localhost"})
    await transport.connect()
"""

from typing import Any

from components.protocols.loopback import LoopbackTransport
from components.protocols.transport import (
    CommandRequest,
    CommandResponder,
    CommandResponse,
    Transport,
    TransportError,
    TransportMessage,
)

__all__ = [
    "CommandRequest",
    "CommandResponder",
    "CommandResponse",
    "LoopbackTransport",
    "Transport",
    "TransportError",
    "TransportMessage",
    "create_transport",
]


def create_transport(transport_cfg: dict[str, Any]) -> Transport:
    """Build a transport from the ``transport`` config section.

    Raises:
        ValueError: If the transport type is unknown
    """
    transport_type = transport_cfg.get("type", "loopback")
    device_id = transport_cfg.get("device_id", "cheese-cave")

    if transport_type == "loopback":
        return LoopbackTransport(
            device_id=device_id,
            history_limit=int(transport_cfg.get("history_limit", 100)),
        )

    if transport_type == "mqtt":
        # paho is only imported when an MQTT transport is requested
        from components.protocols.mqtt import MQTTTransport

        return MQTTTransport(
            host=transport_cfg.get("host", "localhost"),
            port=int(transport_cfg.get("port", 1883)),
            device_id=device_id,
            username=transport_cfg.get("username"),
            password=transport_cfg.get("password"),
            topic_prefix=transport_cfg.get("topic_prefix", "devices"),
            keepalive=int(transport_cfg.get("keepalive", 60)),
            tls=bool(transport_cfg.get("tls", False)),
        )

    raise ValueError(f"Unknown transport type: {transport_type}")
