# tests/conftest.py
"""Shared pytest fixtures for cave device tests.

Foundation components are tested with real dependencies wherever possible:
real EnvironmentState, real LoopbackTransport, real YAML files. Randomness
is pinned with a seeded random.Random so trajectories are reproducible.
"""

import asyncio
import random
import tempfile
from pathlib import Path
from typing import Generator

import pytest
import yaml

from components.protocols.loopback import LoopbackTransport
from components.security.logging_system import configure_logging, reset_loggers
from components.state.environment_state import CaveParameters, EnvironmentState
from components.time.simulation_time import SimulationTime


# ----------------------------------------------------------------
# Isolation of process-wide singletons
# ----------------------------------------------------------------
@pytest.fixture(autouse=True)
def fresh_loggers():
    """Give every test its own DeviceLogger instances and audit trails."""
    reset_loggers()
    configure_logging(None)
    yield
    reset_loggers()


@pytest.fixture(autouse=True)
def stopped_simulation_clock():
    """Every test starts with the SimulationTime singleton stopped."""
    SimulationTime().reset_for_testing()
    yield
    SimulationTime().reset_for_testing()


# ----------------------------------------------------------------
# Configuration fixtures
# ----------------------------------------------------------------
@pytest.fixture
def temp_config_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test configuration files.

    Yields:
        Path to temporary configuration directory
    """
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def write_config_file(temp_config_dir):
    """Factory fixture for writing YAML configuration files.

    Returns:
        Function that writes config dict to YAML file
    """

    def _write_config(config: dict, filename: str = "simulation.yml") -> Path:
        config_file = temp_config_dir / filename
        with open(config_file, "w") as f:
            yaml.dump(config, f)
        return config_file

    return _write_config


# ----------------------------------------------------------------
# Domain fixtures
# ----------------------------------------------------------------
@pytest.fixture
def cave_params() -> CaveParameters:
    """Default cave: ambient 70°F / 99%, setpoints 60±5°F / 79±10%."""
    return CaveParameters()


@pytest.fixture
def reliable_params() -> CaveParameters:
    """Cave whose fan never fails."""
    return CaveParameters(failure_probability=0.0)


@pytest.fixture
def environment_state(cave_params) -> EnvironmentState:
    return EnvironmentState(params=cave_params)


@pytest.fixture
def rng() -> random.Random:
    """Seeded randomness source."""
    return random.Random(42)


@pytest.fixture
async def loopback():
    """Connected loopback transport."""
    transport = LoopbackTransport()
    await transport.connect()
    yield transport
    await transport.disconnect()


# ----------------------------------------------------------------
# Time-related fixtures
# ----------------------------------------------------------------
@pytest.fixture
async def clean_simulation_time():
    """Provide a stopped, freshly reset SimulationTime singleton.

    Yields:
        Fresh SimulationTime instance
    """
    sim_time = SimulationTime()
    await sim_time.stop()
    sim_time.reset_for_testing()

    yield sim_time

    await sim_time.stop()
    sim_time.reset_for_testing()


@pytest.fixture
def time_tolerance() -> float:
    """Tolerance for time comparisons affected by async scheduling (50ms)."""
    return 0.05


# ----------------------------------------------------------------
# Async utilities
# ----------------------------------------------------------------
@pytest.fixture
async def wait_for_condition():
    """Provide utility for waiting on async conditions.

    Returns:
        Async function that polls a condition until true or timeout
    """

    async def _wait(
        condition_fn,
        timeout: float = 1.0,
        poll_interval: float = 0.01,
        error_msg: str = "Condition not met within timeout",
    ):
        loop = asyncio.get_running_loop()
        start = loop.time()
        while loop.time() - start < timeout:
            if condition_fn():
                return
            await asyncio.sleep(poll_interval)

        raise AssertionError(error_msg)

    return _wait
