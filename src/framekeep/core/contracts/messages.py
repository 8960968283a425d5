"""Cross-context message protocol.

Embedded app → host::

    {"type": "TI89_STATE", "state": {...snapshot...}}

Host → embedded app::

    {"type": "REQUEST_STATE"}
    {"type": "RESTORE_STATE", "state": {...}}
    {"type": "START_AUTO_CAPTURE", "interval": 5000}
    {"type": "STOP_AUTO_CAPTURE"}

Parsing never raises: anything that does not validate comes back as ``None``
and the receiver drops it.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

STATE = "TI89_STATE"
REQUEST_STATE = "REQUEST_STATE"
RESTORE_STATE = "RESTORE_STATE"
START_AUTO_CAPTURE = "START_AUTO_CAPTURE"
STOP_AUTO_CAPTURE = "STOP_AUTO_CAPTURE"


class StateMessage(BaseModel):
    type: Literal["TI89_STATE"]
    state: dict[str, Any]


class RequestStateMessage(BaseModel):
    type: Literal["REQUEST_STATE"]


class RestoreStateMessage(BaseModel):
    type: Literal["RESTORE_STATE"]
    state: dict[str, Any]


class StartAutoCaptureMessage(BaseModel):
    type: Literal["START_AUTO_CAPTURE"]
    interval: int | None = Field(default=None, ge=0)


class StopAutoCaptureMessage(BaseModel):
    type: Literal["STOP_AUTO_CAPTURE"]


BridgeCommand = Annotated[
    RequestStateMessage | RestoreStateMessage | StartAutoCaptureMessage | StopAutoCaptureMessage,
    Field(discriminator="type"),
]

_bridge_command_adapter: TypeAdapter[BridgeCommand] = TypeAdapter(BridgeCommand)


def parse_state_message(data: Any) -> StateMessage | None:
    """Return a :class:`StateMessage` or ``None`` for anything malformed."""
    try:
        return StateMessage.model_validate(data)
    except ValidationError:
        return None


def parse_bridge_command(data: Any) -> BridgeCommand | None:
    """Return the host command carried by ``data`` or ``None``."""
    try:
        return _bridge_command_adapter.validate_python(data)
    except ValidationError:
        return None


def state_message(state: dict[str, Any]) -> dict[str, Any]:
    return {"type": STATE, "state": state}


def request_state_message() -> dict[str, Any]:
    return {"type": REQUEST_STATE}


def restore_state_message(state: dict[str, Any]) -> dict[str, Any]:
    return {"type": RESTORE_STATE, "state": state}


__all__ = [
    "REQUEST_STATE",
    "RESTORE_STATE",
    "START_AUTO_CAPTURE",
    "STATE",
    "STOP_AUTO_CAPTURE",
    "BridgeCommand",
    "RequestStateMessage",
    "RestoreStateMessage",
    "StartAutoCaptureMessage",
    "StateMessage",
    "StopAutoCaptureMessage",
    "parse_bridge_command",
    "parse_state_message",
    "request_state_message",
    "restore_state_message",
    "state_message",
]
