# components/physics/cave_physics.py
"""
Cheese cave environment simulation.

Models the cave's temperature and humidity over discrete time steps:
- Fan ON: readings take a random walk biased towards the setpoints
- Fan OFF or FAILED: readings creep back towards the ambient cave values
- A running fan can fail at random; failure is permanent

The random walk is deliberately noisy so the alert thresholds on the telemetry
side are crossed regularly, not only when the fan changes state.
"""

import math
import random

from components.security.logging_system import (
    AlarmPriority,
    EventCategory,
    EventSeverity,
    get_logger,
)
from components.state.environment_state import ActuatorState, EnvironmentState

__all__ = ["EnvironmentSimulator"]


def _sign(value: float) -> float:
    if value == 0:
        return 0.0
    return math.copysign(1.0, value)


class EnvironmentSimulator:
    """
    Advances an EnvironmentState by one step per tick().

    Example:
        >>> state = EnvironmentState()
        >>> simulator = EnvironmentSimulator(state, rng=random.Random(42))
        >>> simulator.tick()  # Called once per telemetry interval
    """

    def __init__(
        self,
        state: EnvironmentState,
        rng: random.Random | None = None,
    ):
        """Initialise the simulator.

        Args:
            state: Shared environment state mutated in place
            rng: Randomness source (module-level generator if None)
        """
        self.state = state
        self.params = state.params
        self.rng = rng or random.Random()
        self.tick_count = 0

        self.logger = get_logger(self.__class__.__name__, device=self.params.sensor_id)

    def tick(self) -> None:
        """Advance the environment by one time step."""
        if self.state.actuator_state is ActuatorState.ON:
            self._fan_running()
        else:
            self._drift_to_ambient()

        self.state.clamp_humidity()
        self.tick_count += 1

        self.logger.log_event(
            EventSeverity.DEBUG,
            EventCategory.TELEMETRY,
            f"tick {self.tick_count}: T={self.state.current_temperature:.2f}, "
            f"RH={self.state.current_humidity:.2f}, "
            f"fan={self.state.actuator_state.value}",
        )

    def _fan_running(self) -> None:
        """Nudge readings towards the setpoints most of the time."""
        delta_temperature = _sign(
            self.params.desired_temperature - self.state.current_temperature
        )
        delta_humidity = _sign(
            self.params.desired_humidity - self.state.current_humidity
        )

        self.state.current_temperature += (
            delta_temperature * self.rng.random() + self.rng.random() - 0.5
        )
        self.state.current_humidity += (
            delta_humidity * self.rng.random() + self.rng.random() - 0.5
        )

        if self.rng.random() < self.params.failure_probability:
            self.state.transition_actuator(ActuatorState.FAILED)
            self.logger.log_alarm(
                "Fan has failed",
                AlarmPriority.HIGH,
                tick=self.tick_count,
                temperature=round(self.state.current_temperature, 2),
                humidity=round(self.state.current_humidity, 2),
            )

    def _drift_to_ambient(self) -> None:
        """Creep up to ambient, then fluctuate around it."""
        if self.state.current_temperature < self.params.ambient_temperature:
            self.state.current_temperature += self.rng.random() / 10
        else:
            self.state.current_temperature += self.rng.random() - 0.5

        if self.state.current_humidity < self.params.ambient_humidity - 1:
            self.state.current_humidity += self.rng.random() / 10
        else:
            self.state.current_humidity += self.rng.random() - 0.5
