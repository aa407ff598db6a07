# components/devices/command_handler.py
"""
SetFanState command handling.

The fan accepts "on" and "off" from the remote endpoint. A failed fan rejects
every request. The state change is applied before the response is sent and
is not rolled back if the response cannot be delivered.
"""

from http import HTTPStatus

from components.protocols.transport import (
    CommandRequest,
    CommandResponder,
    CommandResponse,
    TransportError,
)
from components.security.logging_system import EventCategory, EventSeverity, get_logger
from components.state.environment_state import ActuatorState, EnvironmentState

__all__ = ["SET_FAN_STATE", "FAN_FAILED_MESSAGE", "CommandHandler"]

SET_FAN_STATE = "SetFanState"
FAN_FAILED_MESSAGE = "fan has failed and cannot have its state changed"

_COMMANDABLE_STATES = {
    ActuatorState.ON.value: ActuatorState.ON,
    ActuatorState.OFF.value: ActuatorState.OFF,
}


class CommandHandler:
    """Applies SetFanState requests to the shared EnvironmentState."""

    def __init__(self, state: EnvironmentState):
        self.state = state
        self.accepted = 0
        self.rejected = 0
        self.logger = get_logger(self.__class__.__name__, device=state.params.sensor_id)

    def decide(self, request: CommandRequest) -> CommandResponse:
        """Validate the request and apply it. Never awaits."""
        self.logger.log_event(
            EventSeverity.INFO,
            EventCategory.COMMAND,
            f"Direct method payload received: {request.payload}",
            data={"method": request.method_name, "request_id": request.request_id},
        )

        if self.state.is_failed:
            self.rejected += 1
            self.logger.log_audit(
                "Fan has failed and cannot have its state changed",
                action=request.method_name,
                result="REJECTED_FAILED",
                payload=request.payload,
            )
            return CommandResponse(HTTPStatus.CONFLICT, FAN_FAILED_MESSAGE)

        target = _COMMANDABLE_STATES.get(request.payload)
        if target is None:
            self.rejected += 1
            self.logger.log_audit(
                "Invalid state received in payload",
                action=request.method_name,
                result="REJECTED_INVALID",
                payload=request.payload,
            )
            return CommandResponse(
                HTTPStatus.BAD_REQUEST,
                f"Invalid direct method parameter: {request.payload}",
            )

        self.state.transition_actuator(target)
        self.accepted += 1
        self.logger.log_audit(
            f"Fan state set: {target.value}",
            action=request.method_name,
            result="ACCEPTED",
            payload=request.payload,
        )
        return CommandResponse(HTTPStatus.OK, f"Fan state set: {target.value}")

    async def handle(
        self, request: CommandRequest, responder: CommandResponder
    ) -> CommandResponse:
        """Decide on the request, then send the response.

        Returns:
            The response that was (or failed to be) delivered
        """
        response = self.decide(request)

        try:
            await responder.send(response.status, response.message)
        except TransportError as e:
            self.logger.log_event(
                EventSeverity.ERROR,
                EventCategory.COMMUNICATION,
                f"An error occurred when sending a method response: {e}",
                data={"method": request.method_name, "status": int(response.status)},
            )
            return response

        self.logger.info(
            f"Response to method '{request.method_name}' sent successfully."
        )
        return response

    def get_stats(self) -> dict[str, int]:
        return {"commands_accepted": self.accepted, "commands_rejected": self.rejected}
