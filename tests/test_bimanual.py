"""Tests for two-hand transform tracking."""

import math

import numpy as np
import pytest

from gesture_link.bimanual import TwoHandTracker


def _hand(x, y=0.5):
    lm = np.zeros((21, 3), dtype=np.float32)
    lm[:, 0] = x
    lm[:, 1] = y
    return lm


class TestTwoHandTracker:
    def test_needs_two_hands(self):
        assert TwoHandTracker().update([_hand(0.5)]) is None
        assert TwoHandTracker().update([]) is None

    def test_zoom_from_reference_distance(self):
        t = TwoHandTracker(reference_distance=0.3).update([_hand(0.2), _hand(0.8)])
        assert t.distance == pytest.approx(0.6)
        assert t.zoom == pytest.approx(2.0)

    def test_zoom_clamped(self):
        tracker = TwoHandTracker(reference_distance=0.1, max_zoom=3.0)
        assert tracker.update([_hand(0.0), _hand(1.0)]).zoom == 3.0

    def test_zoom_smoothed_after_first_frame(self):
        tracker = TwoHandTracker(reference_distance=0.3, smoothing=0.5)
        tracker.update([_hand(0.35), _hand(0.65)])  # zoom 1.0
        t = tracker.update([_hand(0.2), _hand(0.8)])  # target 2.0
        assert t.zoom == pytest.approx(1.5)

    def test_order_independent(self):
        a = TwoHandTracker().update([_hand(0.2, 0.4), _hand(0.7, 0.6)])
        b = TwoHandTracker().update([_hand(0.7, 0.6), _hand(0.2, 0.4)])
        assert a.rotation == pytest.approx(b.rotation)

    def test_rotation_counter_clockwise_positive(self):
        # Right hand higher in the image (smaller y).
        t = TwoHandTracker().update([_hand(0.3, 0.6), _hand(0.7, 0.2)])
        assert t.rotation == pytest.approx(math.atan2(0.4, 0.4))

    def test_midpoint_mapped_and_mirrored(self):
        t = TwoHandTracker().update([_hand(0.6, 0.3), _hand(0.8, 0.3)])
        assert t.midpoint[0] == pytest.approx(-(0.7 - 0.5) * 2.5)
        assert t.midpoint[1] == pytest.approx(0.2 * 2.5)
        assert t.midpoint[2] == 0.0

    def test_losing_a_hand_resets_smoothing(self):
        tracker = TwoHandTracker(reference_distance=0.3, smoothing=0.5)
        tracker.update([_hand(0.35), _hand(0.65)])
        tracker.update([_hand(0.5)])
        assert tracker.update([_hand(0.2), _hand(0.8)]).zoom == pytest.approx(2.0)
