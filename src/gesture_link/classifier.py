"""Landmark → gesture classification with position smoothing."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

import numpy as np

from gesture_link.bimanual import TwoHandTracker, TwoHandTransform
from gesture_link.frames import HandFrame


class Gesture(Enum):
    NONE = "NONE"
    PINCH = "PINCH"
    POINT = "POINT"
    FOUR_FINGERS = "FOUR_FINGERS"
    OPEN_PALM = "OPEN_PALM"


@dataclass
class ClassifierConfig:
    """Distance thresholds in normalized image space (planar x/y)."""
    pinch_threshold: float = 0.06
    finger_extension_threshold: float = 0.10
    thumb_extension_threshold: float = 0.15
    smoothing: float = 0.2
    position_range: float = 1.25
    mirror_x: bool = True
    min_zoom: float = 0.5
    max_zoom: float = 3.0


@dataclass
class GestureState:
    """Classifier output for one frame.

    Only `position` is smoothed; every flag reflects the current frame alone.
    """
    position: tuple[float, float, float] = (0.0, 0.0, 0.0)
    pinching: bool = False
    middle_pinching: bool = False
    open_palm: bool = False
    pointing: bool = False
    four_fingers_extended: bool = False
    thumb_extended: bool = False
    gesture: Gesture = Gesture.NONE
    index_tip: Optional[tuple[float, float]] = None
    hand_present: bool = False
    two_hand: Optional[TwoHandTransform] = field(default=None, compare=False)

    def to_display(self) -> dict:
        """Display-state payload in the shape hosts merge for rendering."""
        display = {
            "handPosition": list(self.position),
            "isPinching": self.pinching,
            "isOpenPalm": self.open_palm,
            "gesture": self.gesture.value,
        }
        if self.two_hand is not None:
            display["zoom"] = self.two_hand.zoom
            display["rotation"] = [0.0, 0.0, self.two_hand.rotation]
            display["shapePosition"] = list(self.two_hand.midpoint)
        return display


class LandmarkClassifier:
    """Classifies the primary hand of each frame into a single gesture label.

    Finger extension is a tip-to-wrist distance test; the thumb is tested
    against the pinky MCP, which stays small while the thumb is tucked
    across the palm. Labels are resolved by strict priority:
    PINCH > POINT > FOUR_FINGERS > OPEN_PALM > NONE.

    Frames with no hands reset the label and flags but hold the smoothed
    position where it was.
    """

    WRIST = 0
    THUMB_TIP = 4
    INDEX_MCP = 5
    INDEX_TIP = 8
    MIDDLE_TIP = 12
    RING_TIP = 16
    PINKY_MCP = 17
    PINKY_TIP = 20

    def __init__(self, config: Optional[ClassifierConfig] = None):
        self.config = config or ClassifierConfig()
        self._position = np.zeros(3, dtype=np.float64)
        self._two_hand = TwoHandTracker(
            min_zoom=self.config.min_zoom,
            max_zoom=self.config.max_zoom,
            smoothing=self.config.smoothing,
            position_range=self.config.position_range,
            mirror_x=self.config.mirror_x,
        )

    @property
    def position(self) -> tuple[float, float, float]:
        return _as_tuple(self._position)

    def classify(self, frame: HandFrame) -> GestureState:
        hand = frame.primary
        two_hand = self._two_hand.update(frame.hands)

        if hand is None:
            return GestureState(position=self.position, two_hand=two_hand)

        cfg = self.config
        wrist = hand[self.WRIST]
        thumb = hand[self.THUMB_TIP]
        index = hand[self.INDEX_TIP]
        middle = hand[self.MIDDLE_TIP]

        index_ext, middle_ext, ring_ext, pinky_ext = (
            _distance(hand[tip], wrist) > cfg.finger_extension_threshold
            for tip in (self.INDEX_TIP, self.MIDDLE_TIP, self.RING_TIP, self.PINKY_TIP)
        )
        thumb_ext = _distance(thumb, hand[self.PINKY_MCP]) > cfg.thumb_extension_threshold

        pinching = _distance(index, thumb) < cfg.pinch_threshold
        middle_pinching = _distance(middle, thumb) < cfg.pinch_threshold

        four_extended = index_ext and middle_ext and ring_ext and pinky_ext
        four_fingers = four_extended and not thumb_ext
        open_palm = four_extended and thumb_ext and not pinching
        pointing = index_ext and not middle_ext and not ring_ext and not pinky_ext

        if pinching:
            gesture = Gesture.PINCH
        elif pointing:
            gesture = Gesture.POINT
        elif four_fingers:
            gesture = Gesture.FOUR_FINGERS
        elif open_palm:
            gesture = Gesture.OPEN_PALM
        else:
            gesture = Gesture.NONE

        self._smooth(index)

        return GestureState(
            position=self.position,
            pinching=pinching,
            middle_pinching=middle_pinching,
            open_palm=open_palm,
            pointing=pointing,
            four_fingers_extended=four_extended,
            thumb_extended=thumb_ext,
            gesture=gesture,
            index_tip=(float(index[0]), float(index[1])),
            hand_present=True,
            two_hand=two_hand,
        )

    def _smooth(self, index_tip: np.ndarray):
        """Map the index tip into the display range and lerp toward it."""
        cfg = self.config
        sign = -1.0 if cfg.mirror_x else 1.0
        raw = np.array([
            sign * (float(index_tip[0]) - 0.5) * 2.0 * cfg.position_range,
            -(float(index_tip[1]) - 0.5) * 2.0 * cfg.position_range,
            0.0,
        ])
        self._position = self._position + (raw - self._position) * cfg.smoothing

    def reset(self):
        """Forget smoothing history, e.g. after switching cameras."""
        self._position = np.zeros(3, dtype=np.float64)
        self._two_hand.reset()


def _distance(a: np.ndarray, b: np.ndarray) -> float:
    return float(np.hypot(a[0] - b[0], a[1] - b[1]))


def _as_tuple(vec: np.ndarray) -> tuple[float, float, float]:
    return (float(vec[0]), float(vec[1]), float(vec[2]))
