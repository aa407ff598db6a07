"""MQTT v5 transport (paho-mqtt)."""

from components.protocols.mqtt.paho_mqtt_transport import (
    MQTTCommandResponder,
    MQTTTransport,
)

__all__ = [
    "MQTTTransport",
    "MQTTCommandResponder",
]
