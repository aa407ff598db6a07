# components/security/logging_system.py
"""
Structured logging system for the cave device.

Provides:
- Console output prefixed with simulation time
- Optional rotating JSON log files
- Event severity and category classification
- Alarm logging (actuator failure)
- Bounded in-memory audit trail of remote commands
"""

import json
import logging
import logging.handlers
import threading
import uuid
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from components.time.simulation_time import SimulationTime

__all__ = [
    "EventSeverity",
    "EventCategory",
    "AlarmPriority",
    "LogEntry",
    "SimTimeFormatter",
    "JSONFormatter",
    "DeviceLogger",
    "configure_logging",
    "get_logger",
    "reset_loggers",
]


class EventSeverity(Enum):
    """Event severity levels. Lower number = higher severity."""

    CRITICAL = 1
    ALERT = 2
    ERROR = 3
    WARNING = 4
    NOTICE = 5
    INFO = 6
    DEBUG = 7


class EventCategory(Enum):
    """Event categories."""

    TELEMETRY = "telemetry"
    COMMAND = "command"
    ALARM = "alarm"
    AUDIT = "audit"
    COMMUNICATION = "communication"
    SYSTEM = "system"


class AlarmPriority(Enum):
    """Alarm priority levels."""

    CRITICAL = 1
    HIGH = 2
    MEDIUM = 3
    LOW = 4


LOGGING_TO_SEVERITY = {
    logging.CRITICAL: EventSeverity.CRITICAL,
    logging.ERROR: EventSeverity.ERROR,
    logging.WARNING: EventSeverity.WARNING,
    logging.INFO: EventSeverity.INFO,
    logging.DEBUG: EventSeverity.DEBUG,
}

SEVERITY_TO_LOGGING = {
    EventSeverity.CRITICAL: logging.CRITICAL,
    EventSeverity.ALERT: logging.CRITICAL,
    EventSeverity.ERROR: logging.ERROR,
    EventSeverity.WARNING: logging.WARNING,
    EventSeverity.NOTICE: logging.INFO,
    EventSeverity.INFO: logging.INFO,
    EventSeverity.DEBUG: logging.DEBUG,
}


@dataclass
class LogEntry:
    """Structured log entry."""

    simulation_time: float
    wall_time: float
    severity: EventSeverity
    category: EventCategory
    message: str

    device: str = ""
    component: str = ""
    event_id: str = field(default_factory=lambda: uuid.uuid4().hex)

    data: dict[str, Any] = field(default_factory=dict)
    alarm_priority: AlarmPriority | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialisation."""
        entry_dict = {
            "simulation_time": self.simulation_time,
            "wall_time": self.wall_time,
            "severity": self.severity.name,
            "category": self.category.value,
            "message": self.message,
            "event_id": self.event_id,
        }

        if self.device:
            entry_dict["device"] = self.device
        if self.component:
            entry_dict["component"] = self.component
        if self.data:
            entry_dict["data"] = self.data
        if self.alarm_priority:
            entry_dict["alarm_priority"] = self.alarm_priority.name

        return entry_dict

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    def to_human_readable(self) -> str:
        device_str = f"{self.device}: " if self.device else ""
        return f"[{self.category.value}] {device_str}{self.message}"


class SimTimeFormatter(logging.Formatter):
    """Format log records with simulation time prefix."""

    def __init__(self, sim_time: SimulationTime):
        super().__init__(
            fmt="[SIM:%(sim_time)8.2fs] [%(levelname)8s] %(name)s: %(message)s"
        )
        self.sim_time = sim_time

    def format(self, record: logging.LogRecord) -> str:
        record.sim_time = self.sim_time.now()
        return super().format(record)


class JSONFormatter(logging.Formatter):
    """Format log records as one JSON object per line."""

    def __init__(self, device: str = ""):
        super().__init__()
        self.device = device
        self.sim_time = SimulationTime()

    def format(self, record: logging.LogRecord) -> str:
        entry = LogEntry(
            simulation_time=self.sim_time.now(),
            wall_time=record.created,
            severity=LOGGING_TO_SEVERITY.get(record.levelno, EventSeverity.INFO),
            category=getattr(record, "category", EventCategory.SYSTEM),
            message=record.getMessage(),
            device=self.device,
            component=record.name,
        )

        if record.exc_info:
            entry.data["exception"] = self.formatException(record.exc_info)

        return entry.to_json()


class DeviceLogger:
    """
    Logger wrapper carrying device context.

    Wraps a standard library logger and adds classified events, alarms and an
    audit trail. All methods are synchronous so they can be called from
    simulation steps that must not yield to the event loop.
    """

    def __init__(
        self,
        name: str,
        device: str = "",
        log_dir: Path | None = None,
        enable_console: bool = True,
        console_level: int | None = None,
        max_audit_entries: int = 1000,
    ):
        """
        Args:
            name: Logger name (typically module or class name)
            device: Device identifier for context
            log_dir: Directory for JSON log files (None = no file logging)
            enable_console: Attach a console handler with simulation time
            console_level: Console threshold (None = level from configure_logging)
            max_audit_entries: Maximum audit trail entries to retain
        """
        self.name = name
        self.device = device
        self.log_dir = log_dir
        self.console_level = _console_level if console_level is None else console_level
        self.sim_time = SimulationTime()

        self.logger = logging.getLogger(f"{name}.{device}" if device else name)
        self.logger.setLevel(logging.DEBUG)
        self.logger.propagate = False
        self.logger.handlers.clear()

        if enable_console:
            self._add_console_handler()
        if log_dir:
            self._add_json_handler()

        self.audit_trail: list[LogEntry] = []
        self._audit_lock = threading.Lock()
        self._max_audit_entries = max_audit_entries

    def _add_console_handler(self) -> None:
        handler = logging.StreamHandler()
        handler.setLevel(self.console_level)
        handler.setFormatter(SimTimeFormatter(self.sim_time))
        self.logger.addHandler(handler)

    def _add_json_handler(self) -> None:
        """Add JSON file handler with rotation (10MB, 5 backups)."""
        self.log_dir.mkdir(parents=True, exist_ok=True)
        log_file = self.log_dir / f"{self.device or 'system'}.json.log"

        handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
        )
        handler.setLevel(logging.DEBUG)
        handler.setFormatter(JSONFormatter(device=self.device))
        self.logger.addHandler(handler)

    # ----------------------------------------------------------------
    # Standard logging methods
    # ----------------------------------------------------------------

    def debug(self, message: str, **kwargs) -> None:
        self.logger.debug(message, **kwargs)

    def info(self, message: str, **kwargs) -> None:
        self.logger.info(message, **kwargs)

    def warning(self, message: str, **kwargs) -> None:
        self.logger.warning(message, **kwargs)

    def error(self, message: str, **kwargs) -> None:
        self.logger.error(message, **kwargs)

    def exception(self, message: str, **kwargs) -> None:
        self.logger.exception(message, **kwargs)

    # ----------------------------------------------------------------
    # Classified events
    # ----------------------------------------------------------------

    def log_event(
        self,
        severity: EventSeverity,
        category: EventCategory,
        message: str,
        data: dict[str, Any] | None = None,
        alarm_priority: AlarmPriority | None = None,
    ) -> LogEntry:
        """
        Log a classified event.

        Audit and alarm events are retained in the audit trail.

        Returns:
            LogEntry that was created
        """
        entry = LogEntry(
            simulation_time=self.sim_time.now(),
            wall_time=self.sim_time.wall_elapsed(),
            severity=severity,
            category=category,
            message=message,
            device=self.device,
            component=self.name,
            data=data or {},
            alarm_priority=alarm_priority,
        )

        self.logger.log(
            SEVERITY_TO_LOGGING.get(severity, logging.INFO),
            entry.to_human_readable(),
            extra={"category": category},
        )

        if category in (EventCategory.AUDIT, EventCategory.ALARM):
            with self._audit_lock:
                self.audit_trail.append(entry)
                if len(self.audit_trail) > self._max_audit_entries:
                    self.audit_trail = self.audit_trail[-self._max_audit_entries :]

        return entry

    def log_alarm(
        self, message: str, priority: AlarmPriority, **data: Any
    ) -> LogEntry:
        """Log an alarm, mapping its priority to a severity."""
        severity_map = {
            AlarmPriority.CRITICAL: EventSeverity.CRITICAL,
            AlarmPriority.HIGH: EventSeverity.ALERT,
            AlarmPriority.MEDIUM: EventSeverity.WARNING,
            AlarmPriority.LOW: EventSeverity.NOTICE,
        }
        return self.log_event(
            severity=severity_map.get(priority, EventSeverity.WARNING),
            category=EventCategory.ALARM,
            message=message,
            data=data,
            alarm_priority=priority,
        )

    def log_audit(self, message: str, action: str, result: str, **data: Any) -> LogEntry:
        """Record an audit trail entry for a remote action."""
        data.update({"action": action, "result": result})
        severity = EventSeverity.NOTICE if result == "ACCEPTED" else EventSeverity.WARNING
        return self.log_event(
            severity=severity,
            category=EventCategory.AUDIT,
            message=message,
            data=data,
        )

    def get_audit_trail(
        self, limit: int = 100, category: EventCategory | None = None
    ) -> list[LogEntry]:
        """Most recent audit trail entries, oldest first."""
        with self._audit_lock:
            entries = self.audit_trail
            if category:
                entries = [e for e in entries if e.category == category]
            return entries[-limit:]


# ----------------------------------------------------------------
# Global logger factory
# ----------------------------------------------------------------

_loggers: dict[str, DeviceLogger] = {}
_loggers_lock = threading.Lock()
_default_log_dir: Path | None = None
_console_level = logging.INFO


def configure_logging(
    log_dir: Path | str | None = None, level: int = logging.INFO
) -> None:
    """Set the JSON log directory and console level for new DeviceLoggers."""
    global _default_log_dir, _console_level

    _console_level = level

    if log_dir:
        _default_log_dir = Path(log_dir)
        _default_log_dir.mkdir(parents=True, exist_ok=True)
    else:
        _default_log_dir = None


def get_logger(name: str, device: str = "", **kwargs) -> DeviceLogger:
    """
    Get or create a DeviceLogger. Thread-safe.

    Args:
        name: Logger name
        device: Device identifier for context
        **kwargs: Additional DeviceLogger arguments
    """
    logger_key = f"{name}:{device}"

    with _loggers_lock:
        if logger_key not in _loggers:
            if "log_dir" not in kwargs and _default_log_dir:
                kwargs["log_dir"] = _default_log_dir
            _loggers[logger_key] = DeviceLogger(name, device, **kwargs)

        return _loggers[logger_key]


def reset_loggers() -> None:
    """Forget cached loggers so the next get_logger() builds fresh ones."""
    with _loggers_lock:
        _loggers.clear()
