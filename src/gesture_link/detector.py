"""MediaPipe Hands wrapper yielding raw image-space landmarks."""

import numpy as np

try:
    import mediapipe as mp
except ImportError:
    mp = None


class HandDetector:
    """Runs MediaPipe Hands in video (tracking) mode.

    Landmarks are left in MediaPipe's image space: x and y in [0, 1] with the
    origin at the top-left, z a depth relative to the wrist. The classifier's
    distance thresholds are calibrated for that space, so nothing here
    re-centers or rescales the hand. Hands come back in MediaPipe's order and
    the first one is treated as primary downstream.
    """

    LANDMARKS_PER_HAND = 21

    def __init__(
        self,
        max_hands: int = 2,
        min_detection_confidence: float = 0.7,
        min_tracking_confidence: float = 0.5,
    ):
        if mp is None:
            raise ImportError(
                "mediapipe is required for camera input. "
                "Install with: pip install gesture-link[camera]"
            )

        self.max_hands = max_hands
        self._hands = mp.solutions.hands.Hands(
            static_image_mode=False,
            max_num_hands=max_hands,
            min_detection_confidence=min_detection_confidence,
            min_tracking_confidence=min_tracking_confidence,
        )

    def detect(self, frame_rgb: np.ndarray) -> list[np.ndarray]:
        """Landmarks for every hand in `frame_rgb`, each a (21, 3) float32 array.

        Raises:
            ValueError: the frame is not an (H, W, 3) image.
        """
        if frame_rgb.ndim != 3 or frame_rgb.shape[2] != 3:
            raise ValueError(f"Expected an RGB image, got shape {frame_rgb.shape}")

        results = self._hands.process(frame_rgb)
        found = results.multi_hand_landmarks or []
        return [self._to_array(hand) for hand in found[: self.max_hands]]

    @classmethod
    def _to_array(cls, hand_landmarks) -> np.ndarray:
        points = np.empty((cls.LANDMARKS_PER_HAND, 3), dtype=np.float32)
        for i, lm in enumerate(hand_landmarks.landmark):
            points[i] = (lm.x, lm.y, lm.z)
        return points

    def close(self):
        self._hands.close()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()
