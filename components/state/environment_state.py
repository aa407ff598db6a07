# components/state/environment_state.py
"""
Environment state for the cheese cave.

One EnvironmentState exists per process. It holds the current sensor readings
and the fan actuator state together with the immutable cave parameters, and is
passed explicitly to the simulator, the telemetry publisher and the command
handler.
"""

import logging
from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)


class ActuatorState(Enum):
    """Fan actuator state. FAILED is terminal."""

    OFF = "off"
    ON = "on"
    FAILED = "failed"


# Permitted actuator transitions; same-state writes for OFF/ON are no-ops.
_ALLOWED_TRANSITIONS: dict[ActuatorState, frozenset[ActuatorState]] = {
    ActuatorState.OFF: frozenset({ActuatorState.OFF, ActuatorState.ON}),
    ActuatorState.ON: frozenset(
        {ActuatorState.ON, ActuatorState.OFF, ActuatorState.FAILED}
    ),
    ActuatorState.FAILED: frozenset(),
}

# device.yml keys that configure the device but are not cave parameters
NON_PARAMETER_KEYS = frozenset({"seed"})


@dataclass(frozen=True)
class CaveParameters:
    """Cave design parameters.

    Attributes:
        ambient_temperature: Natural cave temperature in °F
        ambient_humidity: Natural cave relative humidity (%)
        desired_temperature: Temperature setpoint in °F
        desired_temperature_limit: Acceptable deviation from the setpoint in °F
        desired_humidity: Humidity setpoint (%)
        desired_humidity_limit: Acceptable deviation from the setpoint (%)
        failure_probability: Chance per tick that a running fan fails
        max_humidity: Physical ceiling for relative humidity
        sensor_id: Identifier attached to every telemetry message
    """

    ambient_temperature: float = 70.0  # southern cave, °F
    ambient_humidity: float = 99.0
    desired_temperature: float = 60.0  # ambient - 10
    desired_temperature_limit: float = 5.0
    desired_humidity: float = 79.0  # ambient - 20
    desired_humidity_limit: float = 10.0
    failure_probability: float = 0.01
    max_humidity: float = 100.0
    sensor_id: str = "S1"

    def __post_init__(self):
        if self.desired_temperature_limit < 0 or self.desired_humidity_limit < 0:
            raise ValueError("setpoint limits must be non-negative")
        if not 0.0 <= self.failure_probability <= 1.0:
            raise ValueError(
                f"failure_probability must be in [0, 1], got {self.failure_probability}"
            )
        if not self.sensor_id:
            raise ValueError("sensor_id cannot be empty")

    @classmethod
    def from_config(cls, device_cfg: dict[str, Any]) -> "CaveParameters":
        """Build parameters from the ``device`` config section.

        Keys in NON_PARAMETER_KEYS are skipped; any other unknown key is an
        error.

        Raises:
            ValueError: On unknown keys or invalid values
        """
        known = {f.name for f in fields(cls)}
        unknown = set(device_cfg) - known - NON_PARAMETER_KEYS
        if unknown:
            raise ValueError(f"Unknown device parameters: {sorted(unknown)}")

        kwargs = {k: v for k, v in device_cfg.items() if k in known}
        for name, value in kwargs.items():
            if name != "sensor_id":
                kwargs[name] = float(value)
        return cls(**kwargs)


@dataclass
class EnvironmentState:
    """Current readings and actuator state of the cave.

    Readings start at the ambient values; the fan starts OFF.
    """

    params: CaveParameters = field(default_factory=CaveParameters)
    current_temperature: float | None = None
    current_humidity: float | None = None
    actuator_state: ActuatorState = ActuatorState.OFF

    def __post_init__(self):
        if self.current_temperature is None:
            self.current_temperature = self.params.ambient_temperature
        if self.current_humidity is None:
            self.current_humidity = self.params.ambient_humidity

    def transition_actuator(self, target: ActuatorState) -> bool:
        """Move the actuator to ``target``.

        Returns:
            True if the state changed, False for a same-state no-op

        Raises:
            ValueError: If the transition is not permitted
        """
        current = self.actuator_state
        if target not in _ALLOWED_TRANSITIONS[current]:
            raise ValueError(
                f"Actuator transition {current.value} -> {target.value} not permitted"
            )

        if target is current:
            return False

        self.actuator_state = target
        logger.info(f"Actuator state {current.value} -> {target.value}")
        return True

    @property
    def is_failed(self) -> bool:
        return self.actuator_state is ActuatorState.FAILED

    def clamp_humidity(self) -> None:
        """Relative humidity can never exceed the physical ceiling."""
        self.current_humidity = min(self.params.max_humidity, self.current_humidity)

    def temperature_out_of_range(self) -> bool:
        deviation = abs(self.current_temperature - self.params.desired_temperature)
        return deviation > self.params.desired_temperature_limit

    def humidity_out_of_range(self) -> bool:
        deviation = abs(self.current_humidity - self.params.desired_humidity)
        return deviation > self.params.desired_humidity_limit

    def snapshot(self) -> dict[str, Any]:
        """Readings, actuator state and alert conditions for status reporting."""
        return {
            "temperature": round(self.current_temperature, 2),
            "humidity": round(self.current_humidity, 2),
            "actuator_state": self.actuator_state.value,
            "fan_alert": self.is_failed,
            "temperature_alert": self.temperature_out_of_range(),
            "humidity_alert": self.humidity_out_of_range(),
        }
