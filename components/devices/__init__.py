"""Cheese cave device and its collaborators."""

from components.devices.cave_device import CaveDevice
from components.devices.command_handler import (
    FAN_FAILED_MESSAGE,
    SET_FAN_STATE,
    CommandHandler,
)
from components.devices.telemetry_publisher import TelemetryPublisher, evaluate_alerts

__all__ = [
    "CaveDevice",
    "CommandHandler",
    "TelemetryPublisher",
    "evaluate_alerts",
    "SET_FAN_STATE",
    "FAN_FAILED_MESSAGE",
]
