"""
Test cases for session lifecycle, frame queueing and consumer dispatch.
"""
import asyncio
import time
import sys
import unittest
from pathlib import Path
from typing import Dict, List, Optional

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from gesture_pipeline.arbitration import ArbitrationGateway, ArbitrationResponse
from gesture_pipeline.config import ArbitrationConfig, load_config
from gesture_pipeline.consumer_mock import MockConsumer
from gesture_pipeline.errors import ConfigError, LandmarkSourceError, SessionStateError
from gesture_pipeline.session import GestureSession, SourceClock
from gesture_pipeline.types import (
    FrameSample,
    GestureConsumerProto,
    LandmarkFrame,
    LandmarkSourceProto,
    TemplateScorerProto,
)


def sample(t: float, scores: Optional[Dict[str, float]] = None) -> FrameSample:
    landmarks = LandmarkFrame(points=[(320.0, 240.0, 0.0)] * 21, timestamp=t)
    return FrameSample(timestamp=t, landmarks=landmarks, scores=scores or {})


class BlockingArbitrator:
    """Arbitrator that never answers until cancelled."""

    def __init__(self):
        self.started = asyncio.Event()

    async def arbitrate(self, request):
        self.started.set()
        await asyncio.sleep(60)


class RecordingArbitrator:
    def __init__(self, gesture: str):
        self.gesture = gesture
        self.requests = []

    async def arbitrate(self, request):
        self.requests.append(request)
        return ArbitrationResponse(gesture=self.gesture, confidence=9.5, explanation="menu is open")


class OrderedConsumer:
    """Consumer that appends every callback to a shared log."""

    def __init__(self, label: str, log: List[tuple]):
        self.label = label
        self.log = log

    async def on_gesture(self, event):
        self.log.append((self.label, "gesture", event.name))

    async def on_combo(self, combo):
        self.log.append((self.label, "combo", combo.action))

    async def on_session_error(self, error):
        self.log.append((self.label, "error", type(error).__name__))


class FailingConsumer(MockConsumer):
    async def on_gesture(self, event):
        raise RuntimeError("consumer crashed")


class ListSource:
    """Landmark source that replays frames and then loses the device."""

    def __init__(self, frames: List[Optional[LandmarkFrame]]):
        self.frames = list(frames)

    async def read(self) -> Optional[LandmarkFrame]:
        if not self.frames:
            raise LandmarkSourceError("camera disconnected")
        return self.frames.pop(0)


class DrainingSource(ListSource):
    """Source that lets the session finish pending frames before the device is lost."""

    def __init__(self, frames, session):
        super().__init__(frames)
        self.session = session

    async def read(self):
        if not self.frames:
            await self.session.drain()
        return await super().read()


class StoppingSource:
    """Source whose pending read is interrupted by the session stopping."""

    def __init__(self, session):
        self.session = session

    async def read(self):
        await self.session.stop()
        return LandmarkFrame(points=[(320.0, 240.0, 0.0)] * 21, timestamp=0.0)


class TimedScorer:
    """Scores palm before the cutover time and fist after it."""

    def __init__(self, cutover: float):
        self.cutover = cutover

    def score(self, frame, threshold):
        return {"palm" if frame.timestamp < self.cutover else "fist": 9.0}


class StoppingConsumer(MockConsumer):
    """Consumer that ends the session from inside its callback."""

    def __init__(self, session):
        super().__init__(verbose=False)
        self.session = session
        self.stopped = asyncio.Event()

    async def on_gesture(self, event):
        await super().on_gesture(event)
        await self.session.stop()
        self.stopped.set()


class FixedScorer:
    def __init__(self, scores: Dict[str, float]):
        self.scores = scores
        self.thresholds = []

    def score(self, frame, threshold):
        self.thresholds.append(threshold)
        return dict(self.scores)


class TestSessionLifecycle(unittest.IsolatedAsyncioTestCase):
    """Test start, stop and error paths."""

    async def asyncSetUp(self):
        self.cfg = load_config()
        self.consumer = MockConsumer(verbose=False)
        self.session = GestureSession(self.cfg, consumers=[self.consumer])

    async def asyncTearDown(self):
        await self.session.stop()

    async def test_submit_before_start(self):
        with self.assertRaises(SessionStateError):
            self.session.submit(sample(0.0, {"palm": 9.0}))

    async def test_double_start(self):
        await self.session.start()
        with self.assertRaises(SessionStateError):
            await self.session.start()

    async def test_invalid_config_rejected_at_start(self):
        self.cfg.threshold.floor = 9.5
        with self.assertRaises(ConfigError):
            await self.session.start()
        self.assertFalse(self.session.running)

    async def test_events_delivered(self):
        await self.session.start()
        for i in range(5):
            self.session.submit(sample(i * 0.033, {"palm": 9.0}))
            await self.session.drain()
        self.assertEqual(self.consumer.names, ["palm"])
        self.assertEqual(self.session.stats.frequency["palm"], 1)

    async def test_stop_discards_state(self):
        await self.session.start()
        self.session.submit(sample(0.0, {"palm": 9.0}))
        await self.session.drain()
        await self.session.stop()
        self.assertFalse(self.session.running)
        self.assertIsNone(self.session.stats)
        with self.assertRaises(SessionStateError):
            self.session.submit(sample(0.1, {"palm": 9.0}))

        # A restarted session starts from scratch
        await self.session.start()
        self.session.submit(sample(0.2, {"palm": 9.0}))
        await self.session.drain()
        self.assertEqual(self.consumer.names, ["palm", "palm"])

    async def test_drop_oldest_when_full(self):
        self.cfg.session.max_pending_frames = 2
        await self.session.start()
        names = ["palm", "fist", "victory", "point_up", "thumbs_up"]
        for i, name in enumerate(names):
            self.session.submit(sample(i * 0.4, {name: 9.0}))
        self.assertEqual(self.session.dropped_frames, 3)

        await self.session.drain()
        self.assertEqual(self.consumer.names, ["point_up", "thumbs_up"])

    async def test_threshold_before_start(self):
        self.assertEqual(self.session.threshold, 7.5)


class TestSessionArbitration(unittest.IsolatedAsyncioTestCase):
    """Test the awaited arbitration step."""

    async def asyncSetUp(self):
        self.cfg = load_config()
        self.consumer = MockConsumer(verbose=False)

    async def test_adjudicated_event(self):
        arbitrator = RecordingArbitrator("victory")
        gateway = ArbitrationGateway(ArbitrationConfig(enabled=True, timeout_ms=1000), arbitrator)
        session = GestureSession(self.cfg, gateway=gateway, consumers=[self.consumer])
        session.set_activity("photo_gallery")
        await session.start()
        session.submit(sample(0.0, {"palm": 9.0, "victory": 8.8}))
        await session.drain()
        await session.stop()

        self.assertEqual(self.consumer.names, ["victory"])
        event = self.consumer.events[0]
        self.assertTrue(event.adjudicated)
        self.assertEqual(event.confidence, 9.5)
        self.assertEqual(event.explanation, "menu is open")
        context = arbitrator.requests[0].context
        self.assertEqual(context.current_screen, "photo_gallery")
        self.assertEqual(context.hand_position, {"x": 320.0, "y": 240.0})

    async def test_stop_during_arbitration_emits_nothing(self):
        arbitrator = BlockingArbitrator()
        gateway = ArbitrationGateway(ArbitrationConfig(enabled=True, timeout_ms=60000), arbitrator)
        session = GestureSession(self.cfg, gateway=gateway, consumers=[self.consumer])
        await session.start()
        session.submit(sample(0.0, {"palm": 9.0, "victory": 8.8}))
        await asyncio.wait_for(arbitrator.started.wait(), timeout=5)

        await session.stop()
        self.assertEqual(self.consumer.events, [])
        self.assertEqual(self.consumer.combos, [])

    async def test_frames_processed_in_order_around_arbitration(self):
        arbitrator = RecordingArbitrator("palm")
        gateway = ArbitrationGateway(ArbitrationConfig(enabled=True, timeout_ms=1000), arbitrator)
        session = GestureSession(self.cfg, gateway=gateway, consumers=[self.consumer])
        await session.start()
        session.submit(sample(0.0, {"palm": 9.0, "victory": 8.8}))
        session.submit(sample(0.5, {"fist": 9.0}))
        await session.drain()
        await session.stop()

        self.assertEqual(self.consumer.names, ["palm", "fist"])
        self.assertEqual([c.action for c in self.consumer.combos], ["GRAB_OBJECT"])


class TestSessionDispatch(unittest.IsolatedAsyncioTestCase):
    """Test consumer ordering and isolation."""

    async def test_registration_order_and_combo_after_event(self):
        log = []
        session = GestureSession(load_config(), consumers=[OrderedConsumer("A", log)])
        session.add_consumer(OrderedConsumer("B", log))
        await session.start()
        session.submit(sample(0.0, {"palm": 9.0}))
        session.submit(sample(0.5, {"fist": 9.0}))
        await session.drain()
        await session.stop()

        self.assertEqual(log, [
            ("A", "gesture", "palm"),
            ("B", "gesture", "palm"),
            ("A", "gesture", "fist"),
            ("B", "gesture", "fist"),
            ("A", "combo", "GRAB_OBJECT"),
            ("B", "combo", "GRAB_OBJECT"),
        ])

    async def test_failing_consumer_does_not_stop_session(self):
        healthy = MockConsumer(verbose=False)
        session = GestureSession(load_config(), consumers=[FailingConsumer(verbose=False), healthy])
        await session.start()
        session.submit(sample(0.0, {"palm": 9.0}))
        await session.drain()
        self.assertTrue(session.running)
        self.assertEqual(healthy.names, ["palm"])
        await session.stop()

    def test_protocols(self):
        self.assertIsInstance(MockConsumer(), GestureConsumerProto)
        self.assertIsInstance(ListSource([]), LandmarkSourceProto)
        self.assertIsInstance(FixedScorer({}), TemplateScorerProto)


class TestSessionPump(unittest.IsolatedAsyncioTestCase):
    """Test driving a session from a landmark source."""

    async def test_source_failure_is_fatal(self):
        consumer = MockConsumer(verbose=False)
        session = GestureSession(load_config(), consumers=[consumer])
        frames = [LandmarkFrame(points=[(320.0, 240.0, 0.0)] * 21, timestamp=i * 0.033) for i in range(3)]
        scorer = FixedScorer({"palm": 9.0})

        await session.start()
        await asyncio.wait_for(session.pump(ListSource(frames + [None]), scorer), timeout=5)

        self.assertFalse(session.running)
        self.assertEqual(len(consumer.errors), 1)
        self.assertIsInstance(consumer.errors[0], LandmarkSourceError)
        self.assertIsInstance(session.error, LandmarkSourceError)
        self.assertEqual(scorer.thresholds[0], 7.5)
        self.assertEqual(len(scorer.thresholds), 3)
        with self.assertRaises(SessionStateError):
            session.submit(sample(1.0, {"palm": 9.0}))

    async def test_dropped_detection_keeps_combo(self):
        """A missed detection between gestures stays on the source's clock."""
        consumer = MockConsumer(verbose=False)
        session = GestureSession(load_config(), consumers=[consumer])
        hand = [(320.0, 240.0, 0.0)] * 21
        frames = [LandmarkFrame(points=hand, timestamp=i * 0.033) for i in range(5)]
        frames.append(None)
        frames += [LandmarkFrame(points=hand, timestamp=0.5 + i * 0.033) for i in range(5)]

        await session.start()
        await asyncio.wait_for(session.pump(DrainingSource(frames, session), TimedScorer(0.3)), timeout=5)

        self.assertEqual(consumer.names, ["palm", "fist"])
        self.assertEqual([c.action for c in consumer.combos], ["GRAB_OBJECT"])

    async def test_stop_during_pending_read(self):
        session = GestureSession(load_config(), consumers=[MockConsumer(verbose=False)])
        await session.start()
        await asyncio.wait_for(session.pump(StoppingSource(session), FixedScorer({"palm": 9.0})), timeout=5)
        self.assertFalse(session.running)
        self.assertIsNone(session.error)

    async def test_consumer_stop_releases_worker(self):
        session = GestureSession(load_config())
        consumer = StoppingConsumer(session)
        session.add_consumer(consumer)
        await session.start()
        worker = session._worker

        session.submit(sample(0.0, {"palm": 9.0}))
        await asyncio.wait_for(consumer.stopped.wait(), timeout=5)
        await asyncio.wait_for(worker, timeout=5)

        self.assertTrue(worker.done())
        self.assertFalse(worker.cancelled())
        self.assertFalse(session.running)


class TestSourceClock(unittest.TestCase):
    """Test timestamps for frames without a hand."""

    def test_wall_clock_before_first_frame(self):
        self.assertAlmostEqual(SourceClock().estimate(), time.time(), delta=1.0)

    def test_carries_source_time_forward(self):
        clock = SourceClock()
        clock.observe(12.5)
        estimate = clock.estimate()
        self.assertGreaterEqual(estimate, 12.5)
        self.assertLess(estimate, 13.5)


if __name__ == "__main__":
    unittest.main()
