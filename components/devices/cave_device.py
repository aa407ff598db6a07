# components/devices/cave_device.py
"""
Cheese cave device.

Owns the environment state and wires the simulator, the telemetry publisher
and the SetFanState handler to a transport. A single asyncio task runs the
telemetry cycle; commands arrive as coroutines on the same event loop, so the
two never interleave within a tick or within a command decision.
"""

import asyncio
import random
from typing import Any

from components.devices.command_handler import SET_FAN_STATE, CommandHandler
from components.devices.telemetry_publisher import TelemetryPublisher
from components.physics.cave_physics import EnvironmentSimulator
from components.protocols.transport import (
    CommandRequest,
    CommandResponder,
    Transport,
    TransportMessage,
)
from components.security.logging_system import EventCategory, EventSeverity, get_logger
from components.state.environment_state import CaveParameters, EnvironmentState
from components.time.simulation_time import wait_simulation_time

__all__ = ["CaveDevice"]


class CaveDevice:
    """
    Simulated environmental-control device.

    Example:
        >>> device = CaveDevice(CaveParameters(), LoopbackTransport(), interval=5.0)
        >>> await device.start()
        >>> # ... telemetry every 5 simulation seconds ...
        >>> await device.stop()
    """

    def __init__(
        self,
        params: CaveParameters,
        transport: Transport,
        interval: float = 5.0,
        rng: random.Random | None = None,
    ):
        """
        Args:
            params: Cave parameters
            transport: Messaging transport for telemetry and commands
            interval: Telemetry interval in simulation seconds
            rng: Randomness source for the simulator

        Raises:
            ValueError: If interval is not positive
        """
        if interval <= 0:
            raise ValueError(f"interval must be > 0, got {interval}")

        self.params = params
        self.transport = transport
        self.interval = interval

        self.state = EnvironmentState(params=params)
        self.simulator = EnvironmentSimulator(self.state, rng=rng)
        self.publisher = TelemetryPublisher(self.state, transport)
        self.command_handler = CommandHandler(self.state)

        self.logger = get_logger(self.__class__.__name__, device=params.sensor_id)

        self._running = False
        self._loop_task: asyncio.Task | None = None
        self.cycle_count = 0
        self.error_count = 0

    # ----------------------------------------------------------------
    # Lifecycle
    # ----------------------------------------------------------------

    async def start(self) -> None:
        """Connect the transport, register commands and start telemetry.

        Raises:
            TransportError: If the transport cannot connect
        """
        if self._running:
            self.logger.warning("Cave device already running")
            return

        self.logger.info(
            f"Starting cave device {self.params.sensor_id} "
            f"(interval {self.interval}s, transport {self.transport.transport_name})"
        )

        self.transport.register_command_handler(SET_FAN_STATE, self._on_set_fan_state)
        await self.transport.connect()

        self._running = True
        self._loop_task = asyncio.create_task(self._telemetry_loop())

        self.logger.log_event(EventSeverity.INFO, EventCategory.SYSTEM, "Cave device started")

    async def stop(self) -> None:
        """Stop telemetry and disconnect the transport."""
        if not self._running:
            return

        self._running = False
        if self._loop_task:
            self._loop_task.cancel()
            try:
                await self._loop_task
            except asyncio.CancelledError:
                pass
            self._loop_task = None

        await self.transport.disconnect()
        self.logger.log_event(
            EventSeverity.INFO,
            EventCategory.SYSTEM,
            "Cave device stopped",
            data={"cycles": self.cycle_count, "errors": self.error_count},
        )

    def is_running(self) -> bool:
        return self._running

    # ----------------------------------------------------------------
    # Telemetry cycle
    # ----------------------------------------------------------------

    async def run_cycle(self) -> TransportMessage:
        """Advance the simulation one step, then publish the result."""
        self.simulator.tick()
        message = await self.publisher.publish()
        self.cycle_count += 1
        return message

    async def _telemetry_loop(self) -> None:
        while self._running:
            try:
                await wait_simulation_time(self.interval)
                await self.run_cycle()
            except asyncio.CancelledError:
                self._running = False
                break
            except Exception as e:
                self.error_count += 1
                self.logger.error(f"Error in telemetry cycle: {e}", exc_info=True)

    # ----------------------------------------------------------------
    # Commands
    # ----------------------------------------------------------------

    async def _on_set_fan_state(
        self, request: CommandRequest, responder: CommandResponder
    ) -> None:
        await self.command_handler.handle(request, responder)

    # ----------------------------------------------------------------
    # Status
    # ----------------------------------------------------------------

    def get_status(self) -> dict[str, Any]:
        """Device status with state snapshot and counters."""
        status = {
            "sensor_id": self.params.sensor_id,
            "running": self._running,
            "connected": self.transport.connected,
            "interval": self.interval,
            "cycle_count": self.cycle_count,
            "error_count": self.error_count,
            "tick_count": self.simulator.tick_count,
            "state": self.state.snapshot(),
        }
        status.update(self.publisher.get_stats())
        status.update(self.command_handler.get_stats())
        return status

    def __repr__(self) -> str:
        return (
            f"<{self.__class__.__name__} '{self.params.sensor_id}' "
            f"(fan: {self.state.actuator_state.value}, running: {self._running})>"
        )
