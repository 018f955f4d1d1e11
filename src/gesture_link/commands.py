"""Command types and the controller/host peer message codec.

Two families of commands leave the emitter:

- ControlCommand: discrete workspace navigation (four swipe directions)
- MouseCommand: pointer operations carrying target screen coordinates

Commands crossing the peer link are wrapped in a closed set of messages:

    {"type": "CONTROL", "action": "SWIPE_LEFT"}
    {"type": "MOUSE", "mouseType": "DRAG", "x": 812.0, "y": 430.5}
    {"gesture": "POINT", "handPosition": [0.1, 0.2, 0.0]}   # display state

Anything carrying an unknown ``type`` tag is rejected with MessageError.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union


class MessageError(ValueError):
    """A wire message could not be decoded."""


class ControlCommand(Enum):
    SWIPE_LEFT = "SWIPE_LEFT"
    SWIPE_RIGHT = "SWIPE_RIGHT"
    SWIPE_UP = "SWIPE_UP"
    SWIPE_DOWN = "SWIPE_DOWN"


class MouseKind(Enum):
    MOVE = "MOVE"
    DOWN = "DOWN"
    DRAG = "DRAG"
    UP = "UP"
    RIGHT_CLICK = "RIGHT_CLICK"


# Line protocol opcodes understood by the pointer executor process.
_OPCODES = {
    MouseKind.MOVE: "m",
    MouseKind.DOWN: "l",
    MouseKind.UP: "u",
    MouseKind.RIGHT_CLICK: "r",
    MouseKind.DRAG: "d",
}

_POSITIONAL = {MouseKind.MOVE, MouseKind.DRAG}


@dataclass(frozen=True)
class MouseCommand:
    """A pointer operation at absolute screen coordinates."""
    kind: MouseKind
    x: float
    y: float

    def to_line(self) -> str:
        """Encode as one line of the executor's stdin protocol.

        Press, release and right-click act at the current cursor position,
        so only move and drag carry coordinates on the wire.
        """
        opcode = _OPCODES[self.kind]
        if self.kind in _POSITIONAL:
            return f"{opcode} {self.x:.1f} {self.y:.1f}\n"
        return f"{opcode}\n"

    def to_dict(self) -> dict:
        return {"type": self.kind.value, "x": self.x, "y": self.y}

    @classmethod
    def from_dict(cls, data: dict) -> MouseCommand:
        """Decode the ``{type, x, y}`` shape used on the hub's mouse channel."""
        return cls(
            kind=_parse_enum(MouseKind, data.get("type"), "mouse type"),
            x=_parse_coord(data.get("x", 0.0)),
            y=_parse_coord(data.get("y", 0.0)),
        )


@dataclass(frozen=True)
class ControlMessage:
    action: ControlCommand


@dataclass(frozen=True)
class MouseMessage:
    command: MouseCommand


@dataclass(frozen=True)
class AuxiliaryState:
    """Display-only state pushed by a controller. Never dispatched."""
    values: dict[str, Any] = field(default_factory=dict)


PeerMessage = Union[ControlMessage, MouseMessage, AuxiliaryState]

# Keys a controller may push into the host's display state.
DISPLAY_FIELDS = frozenset({
    "handPosition",
    "isPinching",
    "isOpenPalm",
    "gesture",
    "rotation",
    "zoom",
    "shapePosition",
})


def encode_message(message: PeerMessage) -> dict:
    """Serialize a peer message to its JSON-compatible dict form."""
    if isinstance(message, ControlMessage):
        return {"type": "CONTROL", "action": message.action.value}
    if isinstance(message, MouseMessage):
        cmd = message.command
        return {"type": "MOUSE", "mouseType": cmd.kind.value, "x": cmd.x, "y": cmd.y}
    if isinstance(message, AuxiliaryState):
        return dict(message.values)
    raise TypeError(f"Not a peer message: {message!r}")


def decode_message(data: Any) -> PeerMessage:
    """Parse an inbound peer payload.

    Raises:
        MessageError: payload is not an object, carries an unknown tag,
            or a tagged message is missing/has invalid fields.
    """
    if not isinstance(data, dict):
        raise MessageError(f"Expected a JSON object, got {type(data).__name__}")

    tag = data.get("type")
    if tag is None:
        values = {k: v for k, v in data.items() if k in DISPLAY_FIELDS}
        return AuxiliaryState(values=values)

    if tag == "CONTROL":
        return ControlMessage(action=_parse_enum(ControlCommand, data.get("action"), "action"))

    if tag == "MOUSE":
        return MouseMessage(command=MouseCommand(
            kind=_parse_enum(MouseKind, data.get("mouseType"), "mouse type"),
            x=_parse_coord(data.get("x")),
            y=_parse_coord(data.get("y")),
        ))

    raise MessageError(f"Unknown message type: {tag!r}")


def _parse_enum(enum_cls, value, what: str):
    try:
        return enum_cls(value)
    except ValueError:
        raise MessageError(f"Unknown {what}: {value!r}") from None


def _parse_coord(value) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise MessageError(f"Coordinate must be a number, got {value!r}")
    return float(value)
