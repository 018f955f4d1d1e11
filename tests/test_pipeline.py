"""Tests for the frame-driven gesture pipeline."""

import asyncio

from conftest import ListFrameSource, StallingDispatcher, StallingLink, make_hand
from gesture_link.classifier import Gesture
from gesture_link.commands import MouseKind
from gesture_link.emitter import CommandEmitter
from gesture_link.frames import HandFrame
from gesture_link.pipeline import GesturePipeline
from gesture_link.router import Role, RoleRouter


def _pipeline(frames, dispatcher, clock, role=Role.STANDALONE):
    router = RoleRouter(dispatcher, role=role)
    return GesturePipeline(
        ListFrameSource(frames),
        router,
        emitter=CommandEmitter(clock=clock),
        poll_interval=0,
    )


def _drain(pipeline, steps):
    async def scenario():
        results = [await pipeline.step() for _ in range(steps)]
        await pipeline.router.drain()
        return results
    return asyncio.run(scenario())


class TestStep:
    def test_pinch_frame_dispatches_down(self, dispatcher, clock):
        pipeline = _pipeline([HandFrame(0.0, [make_hand(index=True, pinch=True)])], dispatcher, clock)
        _drain(pipeline, 1)

        assert [m.kind for m in dispatcher.mouse] == [MouseKind.DOWN]
        assert pipeline.last_state.gesture == Gesture.PINCH
        assert pipeline.metrics.frames_total == 1

    def test_duplicate_timestamp_skipped(self, dispatcher, clock):
        lm = make_hand(index=True)
        pipeline = _pipeline([HandFrame(1.0, [lm]), HandFrame(1.0, [lm]), HandFrame(2.0, [lm])], dispatcher, clock)
        results = _drain(pipeline, 3)

        assert results[1] is None
        assert pipeline.metrics.frames_total == 2
        assert [m.kind for m in dispatcher.mouse] == [MouseKind.MOVE, MouseKind.MOVE]

    def test_no_frame(self, dispatcher, clock):
        pipeline = _pipeline([], dispatcher, clock)
        assert _drain(pipeline, 1) == [None]

    def test_callbacks_receive_state(self, dispatcher, clock):
        seen = []
        pipeline = _pipeline([HandFrame(0.0, [make_hand()])], dispatcher, clock)
        pipeline.on_state(seen.append)
        _drain(pipeline, 1)
        assert [s.gesture for s in seen] == [Gesture.NONE]

    def test_display_state_published(self, dispatcher, clock):
        pipeline = _pipeline([HandFrame(0.0, [make_hand(index=True)])], dispatcher, clock)
        _drain(pipeline, 1)
        assert pipeline.router.display_state["gesture"] == "POINT"

    def test_pinch_then_release(self, dispatcher, clock):
        frames = [
            HandFrame(0.0, [make_hand(index=True, pinch=True)]),
            HandFrame(0.1, [make_hand(index=True, pinch=True)]),
            HandFrame(0.2, [make_hand(index=True)]),
            HandFrame(0.3, []),
        ]
        pipeline = _pipeline(frames, dispatcher, clock)
        _drain(pipeline, 4)
        assert [m.kind for m in dispatcher.mouse] == [MouseKind.DOWN, MouseKind.DRAG, MouseKind.UP]

    def test_controller_never_dispatches(self, dispatcher, clock):
        pipeline = _pipeline([HandFrame(0.0, [make_hand(index=True, pinch=True)])], dispatcher, clock, Role.CONTROLLER)
        _drain(pipeline, 1)
        assert dispatcher.mouse == []
        assert pipeline.metrics.dropped_counts == {"no_link": 1}


class TestSwitchSource:
    def test_switch_ends_drag(self, dispatcher, clock):
        pinch = make_hand(index=True, pinch=True)
        pipeline = _pipeline([HandFrame(0.0, [pinch]), HandFrame(0.1, [pinch])], dispatcher, clock)
        _drain(pipeline, 2)

        replacement = ListFrameSource([HandFrame(0.1, [make_hand()])])

        async def switch():
            await pipeline.switch_source(replacement)
            await pipeline.router.drain()

        asyncio.run(switch())

        assert [m.kind for m in dispatcher.mouse] == [MouseKind.DOWN, MouseKind.DRAG, MouseKind.UP]
        assert pipeline.source is replacement
        assert pipeline.classifier.position == (0.0, 0.0, 0.0)

        # Timestamps restart with the new source.
        assert _drain(pipeline, 1)[0] is not None


class TestStalledDelivery:
    def _step_twice(self, pipeline):
        async def scenario():
            first = await asyncio.wait_for(pipeline.step(), 1.0)
            second = await asyncio.wait_for(pipeline.step(), 1.0)
            pending = pipeline.router.pending
            await pipeline.router.close(timeout=0)
            return first, second, pending
        return asyncio.run(scenario())

    def test_stalled_dispatcher_does_not_hold_frames(self, clock):
        dispatcher = StallingDispatcher()
        pinch = make_hand(index=True, pinch=True)
        pipeline = _pipeline([HandFrame(0.0, [pinch]), HandFrame(0.1, [pinch])], dispatcher, clock)

        first, second, pending = self._step_twice(pipeline)

        assert [m.kind for m in first.mouse] == [MouseKind.DOWN]
        assert [m.kind for m in second.mouse] == [MouseKind.DRAG]
        assert pipeline.metrics.frames_total == 2
        assert pending == 2
        assert dispatcher.mouse == []
        assert pipeline.router.pending == 0

    def test_stalled_link_does_not_hold_frames(self, dispatcher, clock):
        pinch = make_hand(index=True, pinch=True)
        pipeline = _pipeline([HandFrame(0.0, [pinch]), HandFrame(0.1, [pinch])], dispatcher, clock, Role.CONTROLLER)
        link = StallingLink()
        assert pipeline.router.attach(link)

        first, second, pending = self._step_twice(pipeline)

        assert first is not None and second is not None
        assert pipeline.metrics.frames_total == 2
        assert pending > 0
        assert link.sent == []
        assert dispatcher.mouse == []


class TestRun:
    def test_failed_open_returns_false(self, dispatcher, clock):
        class BrokenSource(ListFrameSource):
            def open(self):
                raise RuntimeError("no camera")

        pipeline = GesturePipeline(BrokenSource([]), RoleRouter(dispatcher, role=Role.STANDALONE))
        assert asyncio.run(pipeline.run()) is False

    def test_run_until_stopped(self, dispatcher, clock):
        pipeline = _pipeline([HandFrame(0.0, [make_hand(index=True)])], dispatcher, clock)

        def stop_after_first(state):
            pipeline.stop()

        pipeline.on_state(stop_after_first)
        assert asyncio.run(pipeline.run()) is True
        assert pipeline.source.opened
        assert pipeline.source.closed
        assert not pipeline.running
