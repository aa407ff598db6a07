# tests/unit/state/test_environment_state.py
"""Tests for CaveParameters and EnvironmentState.

This is Level 0 in our dependency tree - no other components involved.

Test Coverage:
- Default parameters and validation
- Building parameters from config
- Initial readings and actuator state
- Actuator transitions (FAILED is terminal)
- Humidity clamping
- Alert conditions and snapshot
"""

import pytest

from components.state.environment_state import (
    ActuatorState,
    CaveParameters,
    EnvironmentState,
)


# ================================================================
# PARAMETER TESTS
# ================================================================
class TestCaveParameters:
    """Test CaveParameters defaults and validation."""

    def test_defaults_describe_southern_cave(self):
        """Test default parameters match a southern cave."""
        params = CaveParameters()

        assert params.ambient_temperature == 70.0
        assert params.ambient_humidity == 99.0
        assert params.desired_temperature == 60.0
        assert params.desired_temperature_limit == 5.0
        assert params.desired_humidity == 79.0
        assert params.desired_humidity_limit == 10.0
        assert params.failure_probability == 0.01
        assert params.max_humidity == 100.0
        assert params.sensor_id == "S1"

    def test_parameters_are_immutable(self):
        """Test parameters cannot be changed after construction."""
        params = CaveParameters()

        with pytest.raises(AttributeError):
            params.desired_temperature = 50.0

    @pytest.mark.parametrize("probability", [-0.1, 1.5])
    def test_failure_probability_out_of_range_raises(self, probability):
        """Test failure probability must be a probability."""
        with pytest.raises(ValueError, match="failure_probability"):
            CaveParameters(failure_probability=probability)

    def test_negative_limit_raises(self):
        """Test negative setpoint limits are rejected."""
        with pytest.raises(ValueError, match="non-negative"):
            CaveParameters(desired_humidity_limit=-1.0)

    def test_empty_sensor_id_raises(self):
        """Test sensor id cannot be empty."""
        with pytest.raises(ValueError, match="sensor_id cannot be empty"):
            CaveParameters(sensor_id="")

    def test_from_config_converts_numbers(self):
        """Test YAML integers become floats and sensor id stays a string."""
        params = CaveParameters.from_config(
            {"ambient_temperature": 55, "sensor_id": "S7", "seed": 3}
        )

        assert params.ambient_temperature == 55.0
        assert isinstance(params.ambient_temperature, float)
        assert params.sensor_id == "S7"

    def test_from_config_unknown_key_raises(self):
        """Test a misspelt parameter is reported, not ignored."""
        with pytest.raises(ValueError, match="Unknown device parameters"):
            CaveParameters.from_config({"ambient_temprature": 55})


# ================================================================
# STATE TESTS
# ================================================================
class TestEnvironmentStateInitialisation:
    """Test EnvironmentState initial values."""

    def test_readings_start_at_ambient(self, environment_state):
        """Test initial readings equal the ambient values."""
        assert environment_state.current_temperature == 70.0
        assert environment_state.current_humidity == 99.0

    def test_fan_starts_off(self, environment_state):
        """Test the actuator starts OFF."""
        assert environment_state.actuator_state is ActuatorState.OFF
        assert not environment_state.is_failed

    def test_explicit_readings_are_kept(self, cave_params):
        """Test explicitly given readings override ambient."""
        state = EnvironmentState(
            params=cave_params, current_temperature=61.0, current_humidity=80.0
        )

        assert state.current_temperature == 61.0
        assert state.current_humidity == 80.0


class TestActuatorTransitions:
    """Test the actuator state machine."""

    def test_off_to_on(self, environment_state):
        """Test OFF -> ON changes state."""
        assert environment_state.transition_actuator(ActuatorState.ON) is True
        assert environment_state.actuator_state is ActuatorState.ON

    def test_on_to_off(self, environment_state):
        """Test ON -> OFF changes state."""
        environment_state.transition_actuator(ActuatorState.ON)

        assert environment_state.transition_actuator(ActuatorState.OFF) is True
        assert environment_state.actuator_state is ActuatorState.OFF

    @pytest.mark.parametrize("state", [ActuatorState.OFF, ActuatorState.ON])
    def test_same_state_is_noop(self, environment_state, state):
        """Test writing the current state reports no change."""
        environment_state.actuator_state = state

        assert environment_state.transition_actuator(state) is False
        assert environment_state.actuator_state is state

    def test_on_to_failed(self, environment_state):
        """Test a running fan can fail."""
        environment_state.transition_actuator(ActuatorState.ON)

        assert environment_state.transition_actuator(ActuatorState.FAILED) is True
        assert environment_state.is_failed

    def test_off_to_failed_not_permitted(self, environment_state):
        """Test only a running fan can fail."""
        with pytest.raises(ValueError, match="not permitted"):
            environment_state.transition_actuator(ActuatorState.FAILED)

    @pytest.mark.parametrize(
        "target", [ActuatorState.ON, ActuatorState.OFF, ActuatorState.FAILED]
    )
    def test_failed_is_terminal(self, environment_state, target):
        """Test no transition leaves FAILED."""
        environment_state.transition_actuator(ActuatorState.ON)
        environment_state.transition_actuator(ActuatorState.FAILED)

        with pytest.raises(ValueError, match="not permitted"):
            environment_state.transition_actuator(target)

        assert environment_state.actuator_state is ActuatorState.FAILED


# ================================================================
# DERIVED CONDITION TESTS
# ================================================================
class TestDerivedConditions:
    """Test clamping, alerts and snapshot."""

    def test_clamp_humidity_caps_at_ceiling(self, environment_state):
        """Test humidity above the ceiling is capped."""
        environment_state.current_humidity = 100.4
        environment_state.clamp_humidity()

        assert environment_state.current_humidity == 100.0

    def test_clamp_humidity_leaves_lower_values(self, environment_state):
        """Test humidity below the ceiling is untouched."""
        environment_state.current_humidity = 85.5
        environment_state.clamp_humidity()

        assert environment_state.current_humidity == 85.5

    @pytest.mark.parametrize(
        "temperature,expected",
        [(66.0, True), (64.0, False), (60.0, False), (54.9, True), (65.0, False)],
    )
    def test_temperature_alert_threshold(self, environment_state, temperature, expected):
        """Test the temperature alert fires only strictly beyond the limit."""
        environment_state.current_temperature = temperature

        assert environment_state.temperature_out_of_range() is expected

    @pytest.mark.parametrize(
        "humidity,expected", [(99.0, True), (89.0, False), (68.0, True)]
    )
    def test_humidity_alert_threshold(self, environment_state, humidity, expected):
        """Test the humidity alert uses the humidity setpoint and limit."""
        environment_state.current_humidity = humidity

        assert environment_state.humidity_out_of_range() is expected

    def test_snapshot(self, environment_state):
        """Test snapshot reports readings, actuator and alerts."""
        environment_state.current_temperature = 62.346
        environment_state.current_humidity = 80.0

        snapshot = environment_state.snapshot()

        assert snapshot == {
            "temperature": 62.35,
            "humidity": 80.0,
            "actuator_state": "off",
            "fan_alert": False,
            "temperature_alert": False,
            "humidity_alert": False,
        }
