# components/time/simulation_time.py
"""
Simulation time authority for the cave device.

The telemetry interval is expressed in simulation seconds. In REALTIME mode a
simulation second is a wall-clock second; in ACCELERATED mode the clock runs
faster by the configured multiplier, so a five-second telemetry interval can
be exercised in a fraction of the time.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Optional

logger = logging.getLogger(__name__)


class TimeMode(Enum):
    """Simulation time operation modes."""

    REALTIME = "realtime"
    ACCELERATED = "accelerated"
    PAUSED = "paused"


@dataclass
class TimeState:
    """State container for simulation time tracking."""

    simulation_time: float = 0.0
    wall_time_start: float = 0.0
    wall_time_elapsed: float = 0.0
    mode: TimeMode = TimeMode.REALTIME
    speed_multiplier: float = 1.0
    paused: bool = False
    update_interval: float = 0.01
    pause_start: Optional[float] = None
    total_pause_duration: float = 0.0


class SimulationTime:
    """Singleton simulation clock.

    Example:
        `>>> sim_time = SimulationTime()`
        `>>> sim_time.configure(realtime=False, speed=10.0)`
        `>>> await sim_time.start()`
        `>>> await wait_simulation_time(5.0)  # half a wall second`
    """

    _instance: Optional["SimulationTime"] = None
    _MAX_SPEED_MULTIPLIER = 1000.0

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self):
        if not hasattr(self, "_initialized"):
            self._initialized = True
            self.state = TimeState()
            self._running = False
            self._update_task: Optional[asyncio.Task] = None

    def configure(
        self,
        realtime: bool = True,
        speed: float = 1.0,
        update_interval: float = 0.01,
    ) -> None:
        """Apply runtime settings before start().

        Args:
            realtime: Run at wall-clock speed (speed is ignored when True)
            speed: Acceleration multiplier for ACCELERATED mode
            update_interval: Clock resolution in wall seconds

        Raises:
            ValueError: If speed or update_interval are out of range
        """
        if update_interval <= 0:
            raise ValueError(f"update_interval must be > 0, got {update_interval}")
        if speed <= 0 or speed > self._MAX_SPEED_MULTIPLIER:
            raise ValueError(
                f"speed must be in (0, {self._MAX_SPEED_MULTIPLIER}], got {speed}"
            )

        self.state.update_interval = update_interval
        if realtime:
            self.state.mode = TimeMode.REALTIME
            self.state.speed_multiplier = 1.0
        else:
            self.state.mode = TimeMode.ACCELERATED
            self.state.speed_multiplier = speed

        logger.info(
            f"SimulationTime configured: mode={self.state.mode.value}, "
            f"speed={self.state.speed_multiplier}x, "
            f"update_interval={self.state.update_interval}s"
        )

    # ----------------------------------------------------------------
    # Lifecycle
    # ----------------------------------------------------------------
    async def start(self) -> None:
        """Start the clock and its update loop."""
        if self._running:
            logger.warning("SimulationTime already running")
            return

        self.state.wall_time_start = time.time()
        self.state.simulation_time = 0.0
        self.state.wall_time_elapsed = 0.0
        self.state.total_pause_duration = 0.0
        self.state.pause_start = None
        self.state.paused = False

        self._running = True
        self._update_task = asyncio.create_task(self._time_loop())

        logger.info(f"SimulationTime started in {self.state.mode.value} mode")

    async def stop(self) -> None:
        """Stop the clock loop."""
        if not self._running:
            return

        self._running = False
        if self._update_task:
            self._update_task.cancel()
            try:
                await self._update_task
            except asyncio.CancelledError:
                pass
            self._update_task = None

        logger.info("SimulationTime stopped")

    def reset_for_testing(self) -> None:
        """Return the singleton to its pristine state."""
        self.state = TimeState()
        self._running = False
        self._update_task = None

    # ----------------------------------------------------------------
    # Queries
    # ----------------------------------------------------------------
    def now(self) -> float:
        """Current simulation time in seconds."""
        return self.state.simulation_time

    def wall_elapsed(self) -> float:
        return self.state.wall_time_elapsed

    def speed(self) -> float:
        return self.state.speed_multiplier

    def is_running(self) -> bool:
        return self._running

    def is_paused(self) -> bool:
        return self.state.paused

    # ----------------------------------------------------------------
    # Control
    # ----------------------------------------------------------------
    async def pause(self) -> None:
        """Freeze simulation time."""
        if self.state.paused:
            logger.warning("SimulationTime already paused")
            return

        self.state.paused = True
        self.state.pause_start = time.time()
        logger.info("SimulationTime paused")

    async def resume(self) -> None:
        """Resume after pause()."""
        if not self.state.paused:
            logger.warning("SimulationTime not paused")
            return

        self.state.paused = False
        if self.state.pause_start is not None:
            self.state.total_pause_duration += time.time() - self.state.pause_start
            self.state.pause_start = None

        logger.info("SimulationTime resumed")

    async def _time_loop(self) -> None:
        last_update = time.time()

        while self._running:
            await asyncio.sleep(self.state.update_interval)
            current_time = time.time()

            if self.state.paused:
                last_update = current_time
                continue

            wall_delta = current_time - last_update
            last_update = current_time
            self.state.simulation_time += wall_delta * self.state.speed_multiplier
            self.state.wall_time_elapsed = (
                current_time
                - self.state.wall_time_start
                - self.state.total_pause_duration
            )

    def get_status(self) -> dict:
        """Snapshot of clock state."""
        return {
            "simulation_time": self.state.simulation_time,
            "wall_time_elapsed": self.state.wall_time_elapsed,
            "mode": self.state.mode.value,
            "speed_multiplier": self.state.speed_multiplier,
            "paused": self.state.paused,
            "running": self._running,
        }


async def wait_simulation_time(seconds: float) -> None:
    """Wait for a duration measured in simulation seconds.

    If the clock is not running this degrades to a plain wall-clock sleep.

    Raises:
        ValueError: If seconds is negative
    """
    if seconds < 0:
        raise ValueError(f"Cannot wait negative time: {seconds}")

    if seconds == 0:
        return

    sim_time = SimulationTime()
    if not sim_time.is_running():
        await asyncio.sleep(seconds)
        return

    target_time = sim_time.now() + seconds

    while sim_time.now() < target_time:
        if sim_time.is_paused():
            await asyncio.sleep(0.1)
            continue

        remaining = (target_time - sim_time.now()) / sim_time.speed()
        await asyncio.sleep(max(0.001, min(sim_time.state.update_interval, remaining)))
