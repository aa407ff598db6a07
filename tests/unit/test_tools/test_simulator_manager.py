# tests/unit/test_tools/test_simulator_manager.py
"""
Unit tests for SimulatorManager - Main orchestrator.

Tests configuration loading, command-line and environment overrides, device
creation and the simulation lifecycle.
"""

import asyncio
import logging
import random
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest
import yaml

from components.protocols.loopback import LoopbackTransport
from components.protocols.transport import TransportError
from components.time.simulation_time import TimeMode
from tools.simulator_manager import SimulatorManager, build_parser, main

# ================================================================
# FIXTURES
# ================================================================


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Keep the developer's environment out of the tests."""
    monkeypatch.delenv("DEVICE_CONNECTION_STRING", raising=False)
    monkeypatch.delenv("TELEMETRY_INTERVAL_MS", raising=False)


@pytest.fixture
def config_dir(tmp_path):
    """Config directory with a fast, reliable, seeded cave."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()

    files = {
        "device.yml": {"device": {"sensor_id": "S1", "failure_probability": 0.0, "seed": 42}},
        "simulation.yml": {
            "simulation": {"runtime": {"telemetry_interval": 0.05, "realtime": True}}
        },
        "transport.yml": {"transport": {"type": "loopback"}},
    }
    for name, data in files.items():
        with open(config_dir / name, "w") as f:
            yaml.dump(data, f)

    return config_dir


@pytest.fixture
async def manager(config_dir, clean_simulation_time):
    """SimulatorManager on the temp config, stopped after the test."""
    manager = SimulatorManager(config_dir=str(config_dir))
    yield manager
    if manager._running:
        await manager.stop()


# ================================================================
# INITIALISATION TESTS
# ================================================================


class TestSimulatorManagerInit:
    """Test construction."""

    def test_init_creates_config_dir(self, tmp_path):
        """Test a missing config directory is created."""
        config_dir = tmp_path / "new_config"

        SimulatorManager(config_dir=str(config_dir))

        assert config_dir.is_dir()

    def test_init_state(self, config_dir):
        """Test a new manager is neither initialised nor running."""
        manager = SimulatorManager(config_dir=str(config_dir))

        assert manager.config_dir == Path(config_dir)
        assert manager.device is None
        assert not manager._initialised
        assert not manager._running


class TestSimulatorManagerInitialise:
    """Test loading configuration and building the device."""

    async def test_initialise_builds_device(self, manager):
        """Test the device follows the config files."""
        await manager.initialise()

        assert manager._initialised
        assert manager.device.params.sensor_id == "S1"
        assert manager.device.params.failure_probability == 0.0
        assert manager.device.interval == 0.05
        assert isinstance(manager.device.transport, LoopbackTransport)

    async def test_seed_makes_rng_reproducible(self, manager):
        """Test the configured seed feeds the simulator's generator."""
        await manager.initialise()

        assert manager.device.simulator.rng.random() == random.Random(42).random()

    async def test_overrides(self, config_dir, clean_simulation_time):
        """Test command-line overrides beat the config files."""
        manager = SimulatorManager(
            config_dir=str(config_dir),
            overrides={"interval": 2.0, "seed": 7, "speed": 20.0, "transport": None},
        )

        await manager.initialise()

        assert manager.device.interval == 2.0
        assert manager.config["device"]["seed"] == 7
        assert clean_simulation_time.state.mode is TimeMode.ACCELERATED
        assert clean_simulation_time.speed() == 20.0

    async def test_environment_interval(self, manager, monkeypatch):
        """Test TELEMETRY_INTERVAL_MS overrides the telemetry interval."""
        monkeypatch.setenv("TELEMETRY_INTERVAL_MS", "250")

        await manager.initialise()

        assert manager.device.interval == 0.25

    async def test_environment_connection_string(self, manager, monkeypatch):
        """Test DEVICE_CONNECTION_STRING selects the MQTT transport."""
        from components.protocols.mqtt import MQTTTransport

        monkeypatch.setenv("DEVICE_CONNECTION_STRING", "HostName=broker.local;DeviceId=c9")

        await manager.initialise()

        assert isinstance(manager.device.transport, MQTTTransport)
        assert manager.device.transport.device_id == "c9"

    async def test_invalid_config_raises(self, config_dir, clean_simulation_time):
        """Test a bad device section fails initialisation."""
        with open(config_dir / "device.yml", "w") as f:
            yaml.dump({"device": {"ambient_temprature": 55}}, f)
        manager = SimulatorManager(config_dir=str(config_dir))

        with pytest.raises(RuntimeError, match="Failed to initialise simulator"):
            await manager.initialise()

        assert not manager._initialised

    async def test_log_level_reaches_device_loggers(self, config_dir, clean_simulation_time):
        """Test a debug log level shows simulator ticks on the console."""
        manager = SimulatorManager(config_dir=str(config_dir), log_level=logging.DEBUG)

        await manager.initialise()

        assert manager.device.simulator.logger.console_level == logging.DEBUG

    async def test_initialise_twice(self, manager):
        """Test a second initialise keeps the first device."""
        await manager.initialise()
        device = manager.device

        await manager.initialise()

        assert manager.device is device


# ================================================================
# LIFECYCLE TESTS
# ================================================================


class TestSimulatorManagerLifecycle:
    """Test start, stop and run."""

    async def test_start_before_initialise_raises(self, manager):
        """Test start requires initialise."""
        with pytest.raises(RuntimeError, match="not initialised"):
            await manager.start()

    async def test_start_and_stop(self, manager, clean_simulation_time):
        """Test the clock and device run between start and stop."""
        await manager.initialise()
        await manager.start()

        assert manager._running
        assert manager.device.is_running()
        assert clean_simulation_time.is_running()

        await manager.stop()

        assert not manager._running
        assert not manager.device.is_running()
        assert not clean_simulation_time.is_running()

    async def test_telemetry_flows(self, manager, wait_for_condition):
        """Test telemetry is published while running."""
        await manager.initialise()
        await manager.start()

        await wait_for_condition(
            lambda: len(manager.device.transport.published) >= 2, timeout=2.0
        )

        status = manager.get_status()
        assert status["running"]
        assert status["device"]["messages_sent"] >= 2

    async def test_start_failure_stops_clock(self, manager, clean_simulation_time):
        """Test a transport that cannot connect leaves nothing running."""
        await manager.initialise()
        manager.device.transport.connect = AsyncMock(side_effect=TransportError("down"))

        with pytest.raises(TransportError):
            await manager.start()

        assert not manager._running
        assert not clean_simulation_time.is_running()

    async def test_stop_when_not_running(self, manager):
        """Test stop before start is harmless."""
        await manager.stop()

        assert not manager._running

    async def test_run_until_shutdown(self, manager, wait_for_condition):
        """Test run() keeps going until shutdown is requested."""
        with patch.object(manager, "setup_signal_handlers"):
            task = asyncio.create_task(manager.run())
            await wait_for_condition(lambda: manager._running, timeout=2.0)

            manager.request_shutdown()
            await asyncio.wait_for(task, timeout=2.0)

        assert not manager._running
        assert not manager.device.is_running()

    async def test_status_before_initialise(self, manager):
        """Test status without a device."""
        status = manager.get_status()

        assert status["device"] is None
        assert not status["initialised"]


# ================================================================
# COMMAND-LINE TESTS
# ================================================================


class TestCommandLine:
    """Test argument parsing and main()."""

    def test_parser_defaults(self):
        """Test defaults leave the config files in charge."""
        args = build_parser().parse_args([])

        assert args.config_dir == "config"
        assert args.transport is None
        assert args.interval is None
        assert args.seed is None
        assert not args.verbose

    def test_parser_options(self):
        """Test all options parse."""
        args = build_parser().parse_args(
            ["--transport", "mqtt", "--interval", "1.5", "--seed", "3", "--speed", "10", "-v"]
        )

        assert args.transport == "mqtt"
        assert args.interval == 1.5
        assert args.seed == 3
        assert args.speed == 10.0
        assert args.verbose

    def test_parser_rejects_unknown_transport(self):
        """Test only known transports are accepted."""
        with pytest.raises(SystemExit):
            build_parser().parse_args(["--transport", "amqp"])

    async def test_main_builds_manager(self, tmp_path):
        """Test main() loads .env and hands the options to the manager."""
        with patch("tools.simulator_manager.load_dotenv") as load_dotenv, patch(
            "tools.simulator_manager.SimulatorManager"
        ) as manager_cls:
            manager_cls.return_value.run = AsyncMock()

            await main(["--config-dir", str(tmp_path), "--seed", "5"])

        load_dotenv.assert_called_once()
        kwargs = manager_cls.call_args.kwargs
        assert kwargs["config_dir"] == str(tmp_path)
        assert kwargs["overrides"]["seed"] == 5
        assert kwargs["log_level"] == logging.INFO
        manager_cls.return_value.run.assert_awaited_once()

    async def test_main_verbose_sets_debug(self, tmp_path):
        """Test --verbose turns on debug output for device loggers."""
        with patch("tools.simulator_manager.load_dotenv"), patch(
            "tools.simulator_manager.SimulatorManager"
        ) as manager_cls:
            manager_cls.return_value.run = AsyncMock()

            await main(["--config-dir", str(tmp_path), "-v"])

        assert manager_cls.call_args.kwargs["log_level"] == logging.DEBUG
