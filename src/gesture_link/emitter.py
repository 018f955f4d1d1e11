"""Gesture state → control and pointer commands.

The emitter owns three pieces of state, all reset together:

- the pointer drag lifecycle (IDLE → DOWN → DRAGGING → IDLE)
- one refractory timer shared by all four swipe directions
- one refractory timer for right-click

Time comes from an injectable clock so refractory windows can be tested
deterministically.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional

from gesture_link.classifier import Gesture, GestureState
from gesture_link.commands import ControlCommand, MouseCommand, MouseKind

logger = logging.getLogger("gesture_link.emitter")


class PointerPhase(Enum):
    IDLE = "idle"
    DOWN = "down"
    DRAGGING = "dragging"


@dataclass
class PointerState:
    phase: PointerPhase = PointerPhase.IDLE
    x: float = 0.0
    y: float = 0.0


@dataclass
class EmitterConfig:
    screen_width: int = 1920
    screen_height: int = 1080
    swipe_threshold: float = 0.04
    swipe_refractory: float = 0.5  # seconds, shared by all directions
    right_click_refractory: float = 1.0  # seconds


@dataclass
class Emission:
    """Commands produced by one frame, in emission order per family."""
    controls: list[ControlCommand] = field(default_factory=list)
    mouse: list[MouseCommand] = field(default_factory=list)

    def __bool__(self) -> bool:
        return bool(self.controls or self.mouse)


class RefractoryTimer:
    """Minimum interval between successive firings of one command class."""

    def __init__(self, window: float):
        self.window = window
        self._last: Optional[float] = None

    def ready(self, now: float) -> bool:
        return self._last is None or now - self._last >= self.window

    def mark(self, now: float):
        self._last = now

    def reset(self):
        self._last = None


class CommandEmitter:
    """Turns successive GestureStates into commands.

    Pointer lifecycle, driven by the index-thumb pinch flag:
        IDLE + pinch            → DOWN      emits DOWN
        DOWN/DRAGGING + pinch   → DRAGGING  emits DRAG (every frame)
        DOWN/DRAGGING + release → IDLE      emits UP (once)
        IDLE + pointing         → IDLE      emits MOVE (every frame)

    Right-click fires on the middle-thumb pinch, independently of the drag
    state. Swipes are only considered while the label is FOUR_FINGERS; the
    axis with the larger delta wins and horizontal wins ties.
    """

    def __init__(
        self,
        config: Optional[EmitterConfig] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.config = config or EmitterConfig()
        self._clock = clock or time.monotonic
        self.pointer = PointerState()
        self._swipe_timer = RefractoryTimer(self.config.swipe_refractory)
        self._right_click_timer = RefractoryTimer(self.config.right_click_refractory)
        self._previous_position: Optional[tuple[float, float, float]] = None

    def update(self, state: GestureState) -> Emission:
        """Feed one frame's classifier output and collect resulting commands."""
        now = self._clock()
        emission = Emission()

        if state.index_tip is not None:
            tip_x, tip_y = state.index_tip
            self.pointer.x = (1.0 - tip_x) * self.config.screen_width
            self.pointer.y = tip_y * self.config.screen_height

        self._update_pointer(state, emission)
        self._update_right_click(state, now, emission)
        self._update_swipe(state, now, emission)

        self._previous_position = state.position
        return emission

    def _update_pointer(self, state: GestureState, emission: Emission):
        phase = self.pointer.phase

        if state.pinching:
            if phase == PointerPhase.IDLE:
                self.pointer.phase = PointerPhase.DOWN
                emission.mouse.append(self._mouse(MouseKind.DOWN))
            else:
                self.pointer.phase = PointerPhase.DRAGGING
                emission.mouse.append(self._mouse(MouseKind.DRAG))
        elif phase != PointerPhase.IDLE:
            self.pointer.phase = PointerPhase.IDLE
            emission.mouse.append(self._mouse(MouseKind.UP))
        elif state.pointing:
            emission.mouse.append(self._mouse(MouseKind.MOVE))

    def _update_right_click(self, state: GestureState, now: float, emission: Emission):
        if state.middle_pinching and self._right_click_timer.ready(now):
            self._right_click_timer.mark(now)
            emission.mouse.append(self._mouse(MouseKind.RIGHT_CLICK))

    def _update_swipe(self, state: GestureState, now: float, emission: Emission):
        if state.gesture != Gesture.FOUR_FINGERS or self._previous_position is None:
            return

        dx = state.position[0] - self._previous_position[0]
        dy = state.position[1] - self._previous_position[1]

        if abs(dx) >= abs(dy):
            magnitude = abs(dx)
            command = ControlCommand.SWIPE_RIGHT if dx > 0 else ControlCommand.SWIPE_LEFT
        else:
            magnitude = abs(dy)
            command = ControlCommand.SWIPE_UP if dy > 0 else ControlCommand.SWIPE_DOWN

        if magnitude <= self.config.swipe_threshold:
            return
        if not self._swipe_timer.ready(now):
            logger.debug("Swipe %s suppressed by refractory window", command.value)
            return

        self._swipe_timer.mark(now)
        emission.controls.append(command)

    def _mouse(self, kind: MouseKind) -> MouseCommand:
        return MouseCommand(kind=kind, x=self.pointer.x, y=self.pointer.y)

    def release(self) -> Emission:
        """End any press or drag in progress with an UP at the last position."""
        emission = Emission()
        if self.pointer.phase != PointerPhase.IDLE:
            self.pointer.phase = PointerPhase.IDLE
            emission.mouse.append(self._mouse(MouseKind.UP))
        return emission

    def reset(self):
        """Return to IDLE and clear both refractory timers."""
        self.pointer = PointerState()
        self._swipe_timer.reset()
        self._right_click_timer.reset()
        self._previous_position = None
