"""Frame-driven pipeline: frame source → classifier → emitter → router."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, Optional

from gesture_link.classifier import GestureState, LandmarkClassifier
from gesture_link.emitter import CommandEmitter, Emission
from gesture_link.frames import FrameSource
from gesture_link.metrics import MetricsCollector
from gesture_link.router import RoleRouter

logger = logging.getLogger("gesture_link.pipeline")


class GesturePipeline:
    """Runs one frame at a time through classification, emission and routing.

    A frame whose timestamp equals the last processed one is skipped. All
    classifier, emitter and session state is touched only from the task
    running `run()` / `step()`, so no locking is needed.
    """

    def __init__(
        self,
        source: FrameSource,
        router: RoleRouter,
        classifier: Optional[LandmarkClassifier] = None,
        emitter: Optional[CommandEmitter] = None,
        metrics: Optional[MetricsCollector] = None,
        poll_interval: float = 0.001,
    ):
        self.source = source
        self.router = router
        self.classifier = classifier or LandmarkClassifier()
        self.emitter = emitter or CommandEmitter()
        self.metrics = metrics or router.metrics
        self.poll_interval = poll_interval
        self.last_state: Optional[GestureState] = None
        self.running = False

        self._callbacks: list[Callable[[GestureState], None]] = []
        self._last_timestamp: Optional[float] = None

    def on_state(self, callback: Callable[[GestureState], None]):
        """Register a callback invoked with every frame's GestureState."""
        self._callbacks.append(callback)

    async def step(self) -> Optional[Emission]:
        """Process the next frame if a new one is available."""
        frame = self.source.read()
        if frame is None or frame.timestamp == self._last_timestamp:
            return None
        self._last_timestamp = frame.timestamp

        t_start = time.perf_counter()
        state = self.classifier.classify(frame)
        emission = self.emitter.update(state)
        await self.router.route(emission)
        await self.router.publish_state(state.to_display())

        self.last_state = state
        self.metrics.record_gesture(state.gesture.value)
        self.metrics.record_frame(time.perf_counter() - t_start, len(frame.hands))

        for cb in self._callbacks:
            cb(state)
        return emission

    async def run(self) -> bool:
        """Open the source and process frames until `stop()`.

        Returns False if the source could not be opened.
        """
        try:
            self.source.open()
        except (ImportError, RuntimeError, OSError) as e:
            logger.error("Frame source failed to start: %s", e)
            return False

        self.running = True
        logger.info("Pipeline running (role %s)", self.router.role.value)
        try:
            while self.running:
                await self.step()
                await asyncio.sleep(self.poll_interval)
        finally:
            self.running = False
            self.source.close()
            logger.info("Pipeline stopped")
        return True

    def stop(self):
        self.running = False

    async def switch_source(self, source: FrameSource):
        """Swap frame sources, e.g. when the user picks another camera.

        Any drag in progress is ended with an UP before the switch and the
        classifier's smoothing starts over. Refractory timers are kept.
        """
        await self.router.route(self.emitter.release())
        self.classifier.reset()
        self._last_timestamp = None

        old, self.source = self.source, source
        if self.running:
            old.close()
            try:
                self.source.open()
            except (ImportError, RuntimeError, OSError) as e:
                logger.error("New frame source failed to start: %s", e)
                self.stop()
                return
        logger.info("Frame source switched")
