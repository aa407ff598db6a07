# components/devices/telemetry_publisher.py
"""
Telemetry publishing for the cave device.

Each interval the current readings are sent as a JSON body with the values
fixed to two decimals. Alert conditions travel as message properties that are
present only when the alert is active; absence means no alert.
"""

import json
import logging

from components.protocols.transport import (
    Transport,
    TransportError,
    TransportMessage,
)
from components.state.environment_state import EnvironmentState

logger = logging.getLogger(__name__)


def evaluate_alerts(state: EnvironmentState) -> dict[str, str]:
    """Alert properties for the current state, active alerts only."""
    alerts = {}
    if state.is_failed:
        alerts["fanAlert"] = "true"
    if state.temperature_out_of_range():
        alerts["temperatureAlert"] = "true"
    if state.humidity_out_of_range():
        alerts["humidityAlert"] = "true"
    return alerts


class TelemetryPublisher:
    """Formats EnvironmentState into messages and hands them to a transport.

    Delivery is fire-and-forget: a failed send is logged and counted, never
    retried or buffered. The next interval's message supersedes it.
    """

    def __init__(self, state: EnvironmentState, transport: Transport):
        self.state = state
        self.transport = transport
        self.messages_sent = 0
        self.send_failures = 0

    def build_message(self) -> TransportMessage:
        """Freeze the current state into a telemetry message."""
        body = json.dumps(
            {
                "temperature": f"{self.state.current_temperature:.2f}",
                "humidity": f"{self.state.current_humidity:.2f}",
            }
        )
        properties = {"sensorID": self.state.params.sensor_id}
        properties.update(evaluate_alerts(self.state))

        return TransportMessage(body=body.encode("utf-8"), properties=properties)

    async def publish(self) -> TransportMessage:
        """Build one message from the current state and send it.

        Returns:
            The message that was handed to the transport, whether or not the
            send succeeded
        """
        message = self.build_message()
        logger.debug(f"Message data: {message.body.decode('utf-8')} {message.properties}")

        try:
            await self.transport.publish(message)
        except TransportError as e:
            self.send_failures += 1
            logger.error(f"Send error: {e}")
            return message

        self.messages_sent += 1
        logger.info("Message sent")
        return message

    def get_stats(self) -> dict[str, int]:
        return {
            "messages_sent": self.messages_sent,
            "send_failures": self.send_failures,
        }
