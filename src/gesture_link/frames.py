"""Frame sources feeding the gesture pipeline."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Optional, Protocol

import numpy as np

try:
    import cv2
except ImportError:
    cv2 = None

from gesture_link.detector import HandDetector

logger = logging.getLogger("gesture_link.frames")


@dataclass
class HandFrame:
    """Landmarks for every hand visible in one video frame."""
    timestamp: float
    hands: list[np.ndarray] = field(default_factory=list)

    @property
    def primary(self) -> Optional[np.ndarray]:
        return self.hands[0] if self.hands else None


class FrameSource(Protocol):
    """Anything that can hand the pipeline its next frame.

    `read()` returns None when no new frame is ready yet. Returning the same
    timestamp twice is allowed; the pipeline skips the repeat.
    """

    def open(self) -> None: ...

    def read(self) -> Optional[HandFrame]: ...

    def close(self) -> None: ...


class CameraFrameSource:
    """Webcam capture through OpenCV with MediaPipe landmark extraction."""

    def __init__(
        self,
        device: int = 0,
        width: int = 640,
        height: int = 480,
        max_hands: int = 2,
    ):
        self.device = device
        self.width = width
        self.height = height
        self.max_hands = max_hands
        self._capture = None
        self._detector: Optional[HandDetector] = None

    def open(self):
        """Start the camera and load the hand model.

        Raises:
            ImportError: opencv-python or mediapipe missing.
            RuntimeError: the camera could not be opened.
        """
        if cv2 is None:
            raise ImportError(
                "opencv-python is required. Install with: pip install gesture-link[camera]"
            )

        self._detector = HandDetector(max_hands=self.max_hands)
        capture = cv2.VideoCapture(self.device)
        capture.set(cv2.CAP_PROP_FRAME_WIDTH, self.width)
        capture.set(cv2.CAP_PROP_FRAME_HEIGHT, self.height)
        if not capture.isOpened():
            self._detector.close()
            self._detector = None
            raise RuntimeError(f"Could not open camera {self.device}")

        self._capture = capture
        logger.info("Camera %d opened (%dx%d)", self.device, self.width, self.height)

    def read(self) -> Optional[HandFrame]:
        if self._capture is None or self._detector is None:
            return None

        ret, frame = self._capture.read()
        if not ret:
            return None

        # Position in the stream (ms); some backends report 0, so fall back to wall time.
        timestamp = self._capture.get(cv2.CAP_PROP_POS_MSEC) / 1000.0
        if timestamp <= 0:
            timestamp = time.monotonic()

        frame_rgb = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
        return HandFrame(timestamp=timestamp, hands=self._detector.detect(frame_rgb))

    def close(self):
        if self._capture is not None:
            self._capture.release()
            self._capture = None
        if self._detector is not None:
            self._detector.close()
            self._detector = None
        logger.info("Camera %d closed", self.device)
