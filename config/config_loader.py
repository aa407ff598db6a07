# config/config_loader.py
"""
Config loader module for modular YAML configuration.

Files in the config directory:
    device.yml      cave parameters and optional random seed
    simulation.yml  telemetry interval and clock settings
    transport.yml   transport type and connection settings

Environment variables override the files:
    DEVICE_CONNECTION_STRING  HostName=...;DeviceId=...  (selects MQTT)
    TELEMETRY_INTERVAL_MS     telemetry interval in milliseconds
"""

import logging
import os
from pathlib import Path
from typing import Any, Mapping

import yaml

logger = logging.getLogger(__name__)

DEFAULT_SIMULATION = {
    "runtime": {
        "telemetry_interval": 5.0,
        "realtime": True,
        "time_acceleration": 1.0,
        "update_interval": 0.01,
    }
}

DEFAULT_TRANSPORT = {
    "type": "loopback",
    "host": "localhost",
    "port": 1883,
    "device_id": "cheese-cave",
    "topic_prefix": "devices",
    "keepalive": 60,
    "tls": False,
    "history_limit": 100,
}


def parse_connection_string(connection_string: str) -> dict[str, str]:
    """Split ``Key=Value;Key=Value`` into a dictionary.

    Raises:
        ValueError: If a segment has no ``=`` or HostName is missing
    """
    parts = {}
    for segment in connection_string.split(";"):
        if not segment.strip():
            continue
        key, sep, value = segment.partition("=")
        if not sep:
            raise ValueError(f"Malformed connection string segment: {segment!r}")
        parts[key.strip()] = value.strip()

    if "HostName" not in parts:
        raise ValueError("Connection string has no HostName")
    return parts


class ConfigLoader:
    """Loads and merges modular configuration files."""

    def __init__(self, config_dir="config"):
        self.config_dir = Path(config_dir)
        self.config_dir.mkdir(parents=True, exist_ok=True)

    def load_all(self):
        """Load all configuration files and merge them."""
        config = {}

        device_path = self.config_dir / "device.yml"
        if device_path.exists():
            device_data = self._read_yaml(device_path)
            config["device"] = device_data.get("device", {}) or {}
        else:
            config["device"] = self._create_default_device()
            self._save_device(config["device"])

        simulation_path = self.config_dir / "simulation.yml"
        simulation = {"runtime": dict(DEFAULT_SIMULATION["runtime"])}
        if simulation_path.exists():
            simulation_data = self._read_yaml(simulation_path)
            runtime = (simulation_data.get("simulation", {}) or {}).get("runtime", {})
            simulation["runtime"].update(runtime or {})
        config["simulation"] = simulation

        transport_path = self.config_dir / "transport.yml"
        transport = dict(DEFAULT_TRANSPORT)
        if transport_path.exists():
            transport_data = self._read_yaml(transport_path)
            transport.update(transport_data.get("transport", {}) or {})
        config["transport"] = transport

        return config

    def _read_yaml(self, path: Path) -> dict:
        with open(path) as f:
            data = yaml.safe_load(f)
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ValueError(f"{path} must contain a mapping")
        return data

    def _create_default_device(self):
        """Create default device configuration."""
        return {
            "sensor_id": "S1",
            "ambient_temperature": 70.0,
            "ambient_humidity": 99.0,
            "desired_temperature": 60.0,
            "desired_temperature_limit": 5.0,
            "desired_humidity": 79.0,
            "desired_humidity_limit": 10.0,
            "failure_probability": 0.01,
        }

    def _save_device(self, device):
        """Save device configuration to file."""
        device_path = self.config_dir / "device.yml"
        with open(device_path, "w") as f:
            yaml.dump({"device": device}, f, default_flow_style=False)
        logger.info(f"Created default device config at {device_path}")


def apply_environment(
    config: dict[str, Any], environ: Mapping[str, str] | None = None
) -> dict[str, Any]:
    """Apply environment variable overrides to a loaded config in place.

    Raises:
        ValueError: If an override is malformed
    """
    environ = os.environ if environ is None else environ

    connection_string = environ.get("DEVICE_CONNECTION_STRING")
    if connection_string:
        parts = parse_connection_string(connection_string)
        transport = config.setdefault("transport", dict(DEFAULT_TRANSPORT))
        transport["type"] = "mqtt"
        transport["host"] = parts["HostName"]
        if "DeviceId" in parts:
            transport["device_id"] = parts["DeviceId"]
        if "Port" in parts:
            transport["port"] = int(parts["Port"])
        logger.info(f"Transport overridden from environment: mqtt://{parts['HostName']}")

    interval_ms = environ.get("TELEMETRY_INTERVAL_MS")
    if interval_ms:
        try:
            interval = int(interval_ms) / 1000.0
        except ValueError as e:
            raise ValueError(
                f"TELEMETRY_INTERVAL_MS must be an integer, got {interval_ms!r}"
            ) from e
        if interval <= 0:
            raise ValueError(f"TELEMETRY_INTERVAL_MS must be > 0, got {interval_ms}")
        runtime = config.setdefault("simulation", {}).setdefault("runtime", {})
        runtime["telemetry_interval"] = interval

    return config
