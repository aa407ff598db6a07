# components/protocols/transport.py
"""
Messaging transport abstraction.

A transport offers two primitives to the device:
- publish a telemetry message (fire-and-forget, may fail)
- deliver remote commands to a registered handler, which answers through a
  responder with a status code and a message

Concrete transports own connection, authentication and retry policy.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Awaitable, Callable

__all__ = [
    "TransportError",
    "TransportMessage",
    "CommandRequest",
    "CommandResponse",
    "CommandResponder",
    "CommandCallback",
    "Transport",
]


class TransportError(RuntimeError):
    """A send or receive operation on the transport failed."""


@dataclass(frozen=True)
class TransportMessage:
    """Outbound telemetry message.

    Attributes:
        body: Encoded message payload
        properties: Application properties the endpoint can filter on
    """

    body: bytes
    properties: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class CommandRequest:
    """Inbound remote command."""

    method_name: str
    payload: str
    request_id: str = ""


@dataclass(frozen=True)
class CommandResponse:
    """Structured answer to a remote command."""

    status: int
    message: str


class CommandResponder(ABC):
    """Sends the single response to one CommandRequest."""

    @abstractmethod
    async def send(self, status: int, message: str) -> None:
        """Deliver the response.

        Raises:
            TransportError: If the response could not be delivered
        """


CommandCallback = Callable[[CommandRequest, CommandResponder], Awaitable[object]]


class Transport(ABC):
    """Base class for device transports."""

    def __init__(self, transport_name: str):
        self.transport_name = transport_name
        self.connected = False
        self._handlers: dict[str, CommandCallback] = {}

    # ------------------------------------------------------------
    # lifecycle
    # ------------------------------------------------------------

    @abstractmethod
    async def connect(self) -> None:
        """Open the connection.

        Raises:
            TransportError: If the connection cannot be established
        """

    @abstractmethod
    async def disconnect(self) -> None:
        """Close the connection. Safe to call when not connected."""

    # ------------------------------------------------------------
    # primitives
    # ------------------------------------------------------------

    @abstractmethod
    async def publish(self, message: TransportMessage) -> None:
        """Send one telemetry message.

        Raises:
            TransportError: If the message could not be sent
        """

    def register_command_handler(self, name: str, handler: CommandCallback) -> None:
        """Route commands called ``name`` to ``handler``."""
        if not name:
            raise ValueError("command name cannot be empty")
        self._handlers[name] = handler

    def get_command_handler(self, name: str) -> CommandCallback | None:
        return self._handlers.get(name)

    def registered_commands(self) -> list[str]:
        return sorted(self._handlers)
