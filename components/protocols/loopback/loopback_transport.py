# components/protocols/loopback/loopback_transport.py
"""
In-memory loopback transport.

Keeps the most recent published messages and responses in bounded deques and
lets a local caller invoke commands as if they came from the remote endpoint.
Used for offline runs and tests. Failures can be injected for the next publish
or the next response.
"""

import logging
from collections import deque
from http import HTTPStatus

from components.protocols.transport import (
    CommandRequest,
    CommandResponder,
    CommandResponse,
    Transport,
    TransportError,
    TransportMessage,
)

logger = logging.getLogger(__name__)


class LoopbackResponder(CommandResponder):
    """Captures the response to one loopback command."""

    def __init__(self, transport: "LoopbackTransport", request: CommandRequest):
        self.transport = transport
        self.request = request
        self.response: CommandResponse | None = None

    async def send(self, status: int, message: str) -> None:
        if self.transport.fail_next_response:
            self.transport.fail_next_response = False
            raise TransportError(
                f"response to '{self.request.method_name}' dropped by loopback"
            )
        if self.response is not None:
            raise TransportError("response already sent")

        self.response = CommandResponse(status=status, message=message)
        self.transport.responses.append(self.response)


class LoopbackTransport(Transport):
    """Transport that never leaves the process."""

    def __init__(self, device_id: str = "cheese-cave", history_limit: int = 100):
        """
        Args:
            device_id: Device identifier used in log messages
            history_limit: Number of published messages and responses retained

        Raises:
            ValueError: If history_limit is not positive
        """
        super().__init__("loopback")
        if history_limit <= 0:
            raise ValueError(f"history_limit must be > 0, got {history_limit}")

        self.device_id = device_id
        self.history_limit = history_limit
        self.published: deque[TransportMessage] = deque(maxlen=history_limit)
        self.responses: deque[CommandResponse] = deque(maxlen=history_limit)
        self.published_count = 0
        self.fail_next_publish = False
        self.fail_next_response = False
        self._request_counter = 0

    async def connect(self) -> None:
        self.connected = True
        logger.info(f"Loopback transport connected for {self.device_id}")

    async def disconnect(self) -> None:
        self.connected = False

    async def publish(self, message: TransportMessage) -> None:
        if not self.connected:
            raise TransportError("loopback transport not connected")
        if self.fail_next_publish:
            self.fail_next_publish = False
            raise TransportError("publish dropped by loopback")

        self.published.append(message)
        self.published_count += 1

    async def invoke(self, method_name: str, payload: str) -> CommandResponse | None:
        """Invoke a command the way the remote endpoint would.

        Returns:
            The response the handler sent, or None if it sent nothing
            (or its response was dropped)
        """
        self._request_counter += 1
        request = CommandRequest(
            method_name=method_name,
            payload=payload,
            request_id=str(self._request_counter),
        )
        responder = LoopbackResponder(self, request)

        handler = self.get_command_handler(method_name)
        if handler is None:
            await responder.send(
                HTTPStatus.NOT_FOUND, f"Unknown method: {method_name}"
            )
            return responder.response

        await handler(request, responder)
        return responder.response
