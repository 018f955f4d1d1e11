"""Shared fixtures: synthetic hands, fake clock, fake dispatcher and peer link."""

import asyncio

import numpy as np
import pytest

from gesture_link.frames import HandFrame

WRIST = (0.5, 0.8)
PINKY_MCP = (0.56, 0.74)
INDEX_MCP = (0.46, 0.74)

# Fingertip positions, (extended, curled). Extended tips sit > 0.2 from the
# wrist, curled ones < 0.07.
TIPS = {
    8: ((0.44, 0.55), (0.44, 0.77)),    # index
    12: ((0.50, 0.53), (0.48, 0.76)),   # middle
    16: ((0.54, 0.55), (0.52, 0.76)),   # ring
    20: ((0.60, 0.60), (0.56, 0.78)),   # pinky
}
THUMB_OUT = (0.30, 0.75)     # far from the pinky MCP
THUMB_TUCKED = (0.56, 0.70)  # across the palm


def make_hand(
    index=False, middle=False, ring=False, pinky=False, thumb=False,
    pinch=False, middle_pinch=False, offset=(0.0, 0.0),
) -> np.ndarray:
    """Build a (21, 3) landmark array with the requested finger states."""
    lm = np.zeros((21, 3), dtype=np.float64)
    lm[:, :2] = WRIST
    lm[5, :2] = INDEX_MCP
    lm[17, :2] = PINKY_MCP

    for tip, extended in zip((8, 12, 16, 20), (index, middle, ring, pinky)):
        lm[tip, :2] = TIPS[tip][0] if extended else TIPS[tip][1]

    lm[4, :2] = THUMB_OUT if thumb else THUMB_TUCKED
    if pinch:
        lm[4, :2] = lm[8, :2] + (-0.03, 0.0)
    elif middle_pinch:
        lm[4, :2] = lm[12, :2] + (0.02, 0.0)

    lm[:, 0] += offset[0]
    lm[:, 1] += offset[1]
    return lm


class FakeClock:
    def __init__(self, start: float = 100.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class FakeDispatcher:
    def __init__(self, control_result: bool = True):
        self.controls = []
        self.mouse = []
        self.control_result = control_result

    async def dispatch_control(self, command):
        self.controls.append(command)
        return self.control_result

    async def dispatch_mouse(self, command):
        self.mouse.append(command)

    async def close(self):
        pass


class FakeLink:
    def __init__(self, open=True, fail=False):
        self.sent = []
        self._open = open
        self.fail = fail
        self.closed = False

    @property
    def open(self):
        return self._open

    async def send(self, payload):
        if self.fail:
            raise ConnectionError("link down")
        self.sent.append(payload)

    async def close(self):
        self._open = False
        self.closed = True


class StallingDispatcher(FakeDispatcher):
    """Accepts commands but never finishes delivering them."""

    def __init__(self):
        super().__init__()
        self.started = 0
        self._release = asyncio.Event()

    async def dispatch_control(self, command):
        self.started += 1
        await self._release.wait()
        return await super().dispatch_control(command)

    async def dispatch_mouse(self, command):
        self.started += 1
        await self._release.wait()
        await super().dispatch_mouse(command)


class StallingLink(FakeLink):
    """An open link whose sends never complete."""

    async def send(self, payload):
        await asyncio.Event().wait()


class ListFrameSource:
    """Hands out a fixed sequence of frames, then None."""

    def __init__(self, frames):
        self.frames = list(frames)
        self.opened = False
        self.closed = False

    def open(self):
        self.opened = True

    def read(self):
        return self.frames.pop(0) if self.frames else None

    def close(self):
        self.closed = True


@pytest.fixture
def hand():
    return make_hand


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def dispatcher():
    return FakeDispatcher()


@pytest.fixture
def frame():
    def _frame(timestamp, *hands):
        return HandFrame(timestamp=timestamp, hands=list(hands))
    return _frame
