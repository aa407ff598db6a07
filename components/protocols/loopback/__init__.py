"""In-memory loopback transport."""

from components.protocols.loopback.loopback_transport import (
    LoopbackResponder,
    LoopbackTransport,
)

__all__ = [
    "LoopbackTransport",
    "LoopbackResponder",
]
