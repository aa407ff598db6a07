# components/security/__init__.py
"""
Security and audit components for the cave device.

Modules:
- logging_system: Structured device logging with alarms and audit trail
"""

from components.security.logging_system import (
    AlarmPriority,
    DeviceLogger,
    EventCategory,
    EventSeverity,
    get_logger,
)

__all__ = [
    # Logging
    "DeviceLogger",
    "EventSeverity",
    "EventCategory",
    "AlarmPriority",
    "get_logger",
]
