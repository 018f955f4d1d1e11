"""Tests for command types and the peer message codec."""

import pytest

from gesture_link.commands import (
    AuxiliaryState,
    ControlCommand,
    ControlMessage,
    MessageError,
    MouseCommand,
    MouseKind,
    MouseMessage,
    decode_message,
    encode_message,
)


class TestLineProtocol:
    @pytest.mark.parametrize("kind,line", [
        (MouseKind.MOVE, "m 100.0 200.5\n"),
        (MouseKind.DOWN, "l\n"),
        (MouseKind.UP, "u\n"),
        (MouseKind.RIGHT_CLICK, "r\n"),
        (MouseKind.DRAG, "d 100.0 200.5\n"),
    ])
    def test_to_line(self, kind, line):
        assert MouseCommand(kind, 100.0, 200.5).to_line() == line

    def test_from_dict(self):
        cmd = MouseCommand.from_dict({"type": "DRAG", "x": 10, "y": 20})
        assert cmd == MouseCommand(MouseKind.DRAG, 10.0, 20.0)

    def test_from_dict_unknown_type(self):
        with pytest.raises(MessageError):
            MouseCommand.from_dict({"type": "SCROLL", "x": 1, "y": 1})


class TestEncode:
    def test_control(self):
        msg = ControlMessage(ControlCommand.SWIPE_LEFT)
        assert encode_message(msg) == {"type": "CONTROL", "action": "SWIPE_LEFT"}

    def test_mouse_keeps_tag(self):
        msg = MouseMessage(MouseCommand(MouseKind.MOVE, 1.5, 2.5))
        assert encode_message(msg) == {"type": "MOUSE", "mouseType": "MOVE", "x": 1.5, "y": 2.5}

    def test_auxiliary_is_untagged(self):
        payload = encode_message(AuxiliaryState({"gesture": "POINT"}))
        assert payload == {"gesture": "POINT"}
        assert "type" not in payload

    def test_rejects_other_objects(self):
        with pytest.raises(TypeError):
            encode_message({"type": "CONTROL"})


class TestDecode:
    def test_control(self):
        msg = decode_message({"type": "CONTROL", "action": "SWIPE_UP"})
        assert msg == ControlMessage(ControlCommand.SWIPE_UP)

    def test_mouse(self):
        msg = decode_message({"type": "MOUSE", "mouseType": "RIGHT_CLICK", "x": 5, "y": 6})
        assert msg == MouseMessage(MouseCommand(MouseKind.RIGHT_CLICK, 5.0, 6.0))

    def test_untagged_keeps_display_fields_only(self):
        msg = decode_message({"gesture": "PINCH", "isPinching": True, "conn": "evil"})
        assert isinstance(msg, AuxiliaryState)
        assert msg.values == {"gesture": "PINCH", "isPinching": True}

    @pytest.mark.parametrize("payload", [
        {"type": "RESET"},
        {"type": "CONTROL", "action": "SWIPE_SIDEWAYS"},
        {"type": "CONTROL"},
        {"type": "MOUSE", "mouseType": "MOVE", "x": "1", "y": 2},
        {"type": "MOUSE", "mouseType": "MOVE", "x": 1},
        {"type": "MOUSE", "mouseType": "WIGGLE", "x": 1, "y": 2},
        ["CONTROL", "SWIPE_LEFT"],
        "SWIPE_LEFT",
    ])
    def test_malformed(self, payload):
        with pytest.raises(MessageError):
            decode_message(payload)

    def test_message_error_is_value_error(self):
        assert issubclass(MessageError, ValueError)
