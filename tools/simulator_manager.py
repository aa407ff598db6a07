#!/usr/bin/env python3
# tools/simulator_manager.py
"""
Cheese Cave Simulator Manager - Main Orchestrator

Loads configuration, builds the transport and the cave device, and runs the
telemetry loop until SIGINT/SIGTERM.

Usage:
  python -m tools.simulator_manager
  python -m tools.simulator_manager --transport mqtt --interval 1 --seed 42
  python -m tools.simulator_manager --speed 10   # 10x accelerated clock
"""

import argparse
import asyncio
import logging
import random
import signal
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from components.devices.cave_device import CaveDevice
from components.protocols import create_transport
from components.security.logging_system import configure_logging
from components.state.environment_state import CaveParameters
from components.time.simulation_time import SimulationTime
from config.config_loader import ConfigLoader, apply_environment

logger = logging.getLogger(__name__)


class SimulatorManager:
    """
    Main orchestrator for the cave device simulation.

    Example:
        >>> manager = SimulatorManager()
        >>> await manager.initialise()
        >>> await manager.start()
        >>> # Simulation runs...
        >>> await manager.stop()
    """

    def __init__(
        self,
        config_dir: str = "config",
        overrides: dict[str, Any] | None = None,
        log_dir: Path | None = None,
        log_level: int = logging.INFO,
    ):
        """Initialise simulator manager.

        Args:
            config_dir: Directory containing configuration files
            overrides: Command-line overrides (transport, interval, seed, speed)
            log_dir: Directory for JSON device logs (None = console only)
            log_level: Console level for device loggers
        """
        self.config_dir = Path(config_dir)
        self.overrides = overrides or {}
        self.log_dir = log_dir
        self.log_level = log_level

        self.config_loader = ConfigLoader(config_dir=str(self.config_dir))
        self.sim_time = SimulationTime()
        self.config: dict[str, Any] = {}
        self.device: CaveDevice | None = None

        self._initialised = False
        self._running = False
        self._shutdown_event = asyncio.Event()

        logger.info("SimulatorManager created")

    # ----------------------------------------------------------------
    # Initialisation
    # ----------------------------------------------------------------

    async def initialise(self) -> None:
        """Load configuration and build the device.

        Raises:
            RuntimeError: If configuration is invalid
        """
        if self._initialised:
            logger.warning("Simulator already initialised")
            return

        try:
            configure_logging(self.log_dir, level=self.log_level)

            config = apply_environment(self.config_loader.load_all())
            self._apply_overrides(config)
            self.config = config

            runtime = config["simulation"]["runtime"]
            self.sim_time.configure(
                realtime=bool(runtime.get("realtime", True)),
                speed=float(runtime.get("time_acceleration", 1.0)),
                update_interval=float(runtime.get("update_interval", 0.01)),
            )

            params = CaveParameters.from_config(config["device"])
            seed = config["device"].get("seed")
            rng = random.Random(seed) if seed is not None else None

            transport = create_transport(config["transport"])
            self.device = CaveDevice(
                params,
                transport,
                interval=float(runtime["telemetry_interval"]),
                rng=rng,
            )

            self._initialised = True
            logger.info(
                f"Initialised cave {params.sensor_id}: "
                f"transport={config['transport']['type']}, "
                f"interval={runtime['telemetry_interval']}s, seed={seed}"
            )

        except (ValueError, TypeError, KeyError) as e:
            logger.error(f"Initialisation failed: {e}", exc_info=True)
            raise RuntimeError(f"Failed to initialise simulator: {e}") from e

    def _apply_overrides(self, config: dict[str, Any]) -> None:
        if self.overrides.get("transport"):
            config["transport"]["type"] = self.overrides["transport"]
        if self.overrides.get("interval") is not None:
            config["simulation"]["runtime"]["telemetry_interval"] = self.overrides[
                "interval"
            ]
        if self.overrides.get("seed") is not None:
            config["device"]["seed"] = self.overrides["seed"]
        if self.overrides.get("speed") is not None:
            config["simulation"]["runtime"]["realtime"] = False
            config["simulation"]["runtime"]["time_acceleration"] = self.overrides[
                "speed"
            ]

    # ----------------------------------------------------------------
    # Lifecycle
    # ----------------------------------------------------------------

    async def start(self) -> None:
        """Start the clock and the device.

        Raises:
            RuntimeError: If not initialised
        """
        if not self._initialised:
            raise RuntimeError("Cannot start: simulator not initialised")

        if self._running:
            logger.warning("Simulator already running")
            return

        logger.info("=== Starting Simulation ===")
        await self.sim_time.start()
        try:
            await self.device.start()
        except Exception:
            await self.sim_time.stop()
            raise
        self._running = True

    async def stop(self) -> None:
        """Stop the device and the clock, then log final statistics."""
        if not self._running:
            logger.warning("Simulator not running")
            return

        logger.info("=== Stopping Simulation ===")
        self._running = False

        await self.device.stop()
        await self.sim_time.stop()

        self._log_final_statistics()

    def get_status(self) -> dict[str, Any]:
        """Simulation and device status."""
        return {
            "running": self._running,
            "initialised": self._initialised,
            "simulation_time": self.sim_time.get_status(),
            "device": self.device.get_status() if self.device else None,
        }

    def _log_final_statistics(self) -> None:
        status = self.device.get_status()
        logger.info("--- Final Statistics ---")
        logger.info(f"Telemetry cycles: {status['cycle_count']}")
        logger.info(
            f"Messages sent: {status['messages_sent']}, "
            f"send failures: {status['send_failures']}"
        )
        logger.info(
            f"Commands accepted: {status['commands_accepted']}, "
            f"rejected: {status['commands_rejected']}"
        )
        logger.info(f"Final state: {status['state']}")
        logger.info("------------------------")

    # ----------------------------------------------------------------
    # Signal handling
    # ----------------------------------------------------------------

    def setup_signal_handlers(self) -> None:
        """Set up signal handlers for graceful shutdown."""

        def signal_handler(signum, frame):
            logger.info(f"Received signal {signum}")
            self._shutdown_event.set()

        signal.signal(signal.SIGINT, signal_handler)
        signal.signal(signal.SIGTERM, signal_handler)

    async def wait_for_shutdown(self) -> None:
        await self._shutdown_event.wait()

    def request_shutdown(self) -> None:
        self._shutdown_event.set()

    async def run(self) -> None:
        """Initialise, start and run until interrupted."""
        try:
            self.setup_signal_handlers()
            await self.initialise()
            await self.start()

            logger.info("Simulation running. Press Ctrl+C to stop.")
            await self.wait_for_shutdown()

        except KeyboardInterrupt:
            logger.info("KeyboardInterrupt received")
        finally:
            if self._running:
                await self.stop()


# ----------------------------------------------------------------
# Command-line interface
# ----------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Cheese cave environmental device simulator",
    )
    parser.add_argument(
        "--config-dir", default="config", help="Configuration directory"
    )
    parser.add_argument(
        "--transport", choices=["loopback", "mqtt"], help="Override transport type"
    )
    parser.add_argument(
        "--interval", type=float, help="Telemetry interval in seconds"
    )
    parser.add_argument("--seed", type=int, help="Random seed for reproducible runs")
    parser.add_argument(
        "--speed", type=float, help="Run the clock accelerated by this factor"
    )
    parser.add_argument("--log-dir", type=Path, help="Directory for JSON device logs")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


async def main(argv: list[str] | None = None) -> None:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    log_level = logging.DEBUG if args.verbose else logging.INFO

    load_dotenv()
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    logger.info("=== Cheese Cave Device Simulator ===")

    manager = SimulatorManager(
        config_dir=args.config_dir,
        overrides={
            "transport": args.transport,
            "interval": args.interval,
            "seed": args.seed,
            "speed": args.speed,
        },
        log_dir=args.log_dir,
        log_level=log_level,
    )
    await manager.run()


def cli() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    cli()
