"""Two-hand transform tracking.

When a second hand is in view, the pair drives a placement transform that is
independent of the primary hand's gesture:

- inter-hand distance → zoom scalar (clamped)
- inter-hand angle → planar rotation (radians)
- midpoint → placement position in the classifier's mapped range

Usage:
    tracker = TwoHandTracker()
    transform = tracker.update(frame.hands)
    if transform:
        print(f"zoom={transform.zoom:.2f} angle={transform.rotation:.2f}")
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

import numpy as np


@dataclass(frozen=True)
class TwoHandTransform:
    """Placement transform derived from a pair of hands."""
    zoom: float
    rotation: float
    midpoint: tuple[float, float, float]
    distance: float


class TwoHandTracker:
    """Derives zoom, rotation and midpoint from the first two hands.

    Hands are ordered left/right by wrist x-coordinate so the angle does not
    flip when MediaPipe swaps detection order. Zoom is the inter-wrist
    distance relative to `reference_distance`, lerped by `smoothing` and
    clamped to [min_zoom, max_zoom].
    """

    WRIST = 0

    def __init__(
        self,
        reference_distance: float = 0.3,
        min_zoom: float = 0.5,
        max_zoom: float = 3.0,
        smoothing: float = 0.2,
        position_range: float = 1.25,
        mirror_x: bool = True,
    ):
        self.reference_distance = reference_distance
        self.min_zoom = min_zoom
        self.max_zoom = max_zoom
        self.smoothing = smoothing
        self.position_range = position_range
        self.mirror_x = mirror_x
        self._zoom: Optional[float] = None

    def update(self, hands: list[np.ndarray]) -> Optional[TwoHandTransform]:
        """Feed one frame's hands. Returns None unless at least two are present."""
        if len(hands) < 2:
            self._zoom = None
            return None

        a, b = hands[0][self.WRIST], hands[1][self.WRIST]
        left, right = (a, b) if a[0] <= b[0] else (b, a)

        dx = float(right[0] - left[0])
        dy = float(right[1] - left[1])
        distance = math.hypot(dx, dy)

        target = distance / max(self.reference_distance, 1e-6)
        if self._zoom is None:
            zoom = target
        else:
            zoom = self._zoom + (target - self._zoom) * self.smoothing
        zoom = float(np.clip(zoom, self.min_zoom, self.max_zoom))
        self._zoom = zoom

        # Image y grows downward; flip so counter-clockwise is positive.
        rotation = math.atan2(-dy, dx)

        mid_x = (left[0] + right[0]) / 2.0
        mid_y = (left[1] + right[1]) / 2.0
        sign = -1.0 if self.mirror_x else 1.0
        midpoint = (
            sign * (float(mid_x) - 0.5) * 2.0 * self.position_range,
            -(float(mid_y) - 0.5) * 2.0 * self.position_range,
            0.0,
        )

        return TwoHandTransform(
            zoom=zoom,
            rotation=rotation,
            midpoint=midpoint,
            distance=distance,
        )

    def reset(self):
        """Clear zoom smoothing state."""
        self._zoom = None
