"""
Session lifecycle: frame queue, worker task and consumer dispatch.
"""
import asyncio
import logging
import time
from typing import Iterable, List, Optional

from .arbitration import ArbitrationGateway
from .config import Cfg, validate_config
from .errors import LandmarkSourceError, SessionStateError
from .processor import GestureProcessor
from .stats import SessionStats
from .types import (
    FrameOutput,
    FrameSample,
    GestureConsumerProto,
    LandmarkSourceProto,
    ResolutionStatus,
    TemplateScorerProto,
    now,
)

logger = logging.getLogger(__name__)


class SourceClock:
    """
    Timestamps frames without a hand on the landmark source's own clock.

    The last source timestamp is carried forward by the monotonic time elapsed
    since it was seen. Before the first frame the wall clock is used.
    """

    def __init__(self):
        self.last_timestamp: Optional[float] = None
        self.seen_at: Optional[float] = None

    def observe(self, timestamp: float) -> None:
        self.last_timestamp = timestamp
        self.seen_at = time.monotonic()

    def estimate(self) -> float:
        if self.last_timestamp is None:
            return now()
        return self.last_timestamp + (time.monotonic() - self.seen_at)


class GestureSession:
    """
    One gesture recognition session.

    Frames are queued by ``submit`` and processed one at a time by a single
    worker task, so every frame sees the state left by the previous one.
    When the queue is full the oldest pending frame is dropped. Only the
    arbitration call is awaited; a session stopped while that call is in
    flight emits nothing for the frame.
    """

    def __init__(self, cfg: Cfg, gateway: Optional[ArbitrationGateway] = None,
                 consumers: Iterable[GestureConsumerProto] = ()):
        """
        Initialize the session.

        Args:
            cfg: Pipeline configuration (validated again at start)
            gateway: Arbitration gateway; defaults to fallback-only
            consumers: Receivers of events, combos and session errors, in dispatch order
        """
        self.cfg = cfg
        self.gateway = gateway or ArbitrationGateway(cfg.arbitration)
        self.consumers: List[GestureConsumerProto] = list(consumers)
        self.processor: Optional[GestureProcessor] = None
        self.current_screen = "unknown"
        self.dropped_frames = 0
        self.error: Optional[Exception] = None
        self._queue: Optional[asyncio.Queue] = None
        self._worker: Optional[asyncio.Task] = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    @property
    def stats(self) -> Optional[SessionStats]:
        return self.processor.stats if self.processor else None

    @property
    def threshold(self) -> float:
        """Working confidence threshold, the value a template scorer should use."""
        if self.processor is None:
            return self.cfg.threshold.base
        return self.processor.threshold.current

    def add_consumer(self, consumer: GestureConsumerProto) -> None:
        self.consumers.append(consumer)

    def set_activity(self, screen: str) -> None:
        """Record what the user is looking at, forwarded as arbitration context."""
        self.current_screen = screen

    async def start(self) -> None:
        """
        Start processing with fresh session state.

        Raises:
            ConfigError: if the configuration violates a bound
            SessionStateError: if the session is already running
        """
        if self._running:
            raise SessionStateError("Session already running")

        validate_config(self.cfg)
        self.processor = GestureProcessor(self.cfg)
        self.dropped_frames = 0
        self.error = None
        self._queue = asyncio.Queue(maxsize=self.cfg.session.max_pending_frames)
        self._running = True
        self._worker = asyncio.create_task(self._run())
        logger.info(f"🚀 Gesture session started (profile={self.cfg.profile or 'default'})")

    def submit(self, sample: FrameSample) -> None:
        """
        Queue a frame for processing without blocking.

        Raises:
            SessionStateError: if the session is not running
        """
        if not self._running:
            raise SessionStateError("Session is not running; call start() first")

        try:
            self._queue.put_nowait(sample)
        except asyncio.QueueFull:
            dropped = self._queue.get_nowait()
            self._queue.task_done()
            self.dropped_frames += 1
            logger.warning(f"Frame queue full, dropped frame at t={dropped.timestamp:.3f}")
            self._queue.put_nowait(sample)

    async def drain(self) -> None:
        """Wait until every queued frame has been processed."""
        if self._running:
            await self._queue.join()

    async def stop(self) -> None:
        """Stop the worker, cancelling any in-flight arbitration, and discard session state."""
        if self._worker is None:
            return

        self._running = False
        worker, self._worker = self._worker, None
        if worker is not asyncio.current_task():
            worker.cancel()
            try:
                await worker
            except asyncio.CancelledError:
                pass

        self.processor = None
        self._queue = None
        logger.info("🛑 Gesture session stopped")

    async def fail(self, error: Exception) -> None:
        """Notify consumers of a fatal error and tear the session down."""
        logger.error(f"❌ Gesture session failed: {error}")
        self.error = error
        for consumer in self.consumers:
            try:
                await consumer.on_session_error(error)
            except Exception:
                logger.exception(f"Consumer {consumer!r} failed handling session error")
        await self.stop()

    async def pump(self, source: LandmarkSourceProto, scorer: TemplateScorerProto) -> None:
        """
        Drive the session from a landmark source until it stops or fails.

        A ``LandmarkSourceError`` from the source is fatal to the session.
        """
        clock = SourceClock()
        while self._running:
            try:
                frame = await source.read()
            except LandmarkSourceError as e:
                await self.fail(e)
                return

            # Stopped while the read was pending
            if not self._running:
                return

            if frame is None:
                sample = FrameSample(timestamp=clock.estimate())
            else:
                clock.observe(frame.timestamp)
                sample = FrameSample(
                    timestamp=frame.timestamp,
                    landmarks=frame,
                    scores=scorer.score(frame, self.threshold),
                )
            self.submit(sample)
            # Let the worker run between frames
            await asyncio.sleep(0)

    async def _run(self) -> None:
        queue = self._queue
        task = asyncio.current_task()
        while self._worker is task:
            sample = await queue.get()
            try:
                await self._process(sample)
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception(f"Error processing frame at t={sample.timestamp:.3f}")
            finally:
                queue.task_done()

    async def _process(self, sample: FrameSample) -> None:
        processor = self.processor
        analysis = processor.analyze(sample)

        resolved = None
        if analysis.resolution.status is ResolutionStatus.AMBIGUOUS:
            context = processor.arbitration_context(analysis, self.current_screen)
            resolved = await self.gateway.arbitrate(analysis.resolution.tied, context)
            if not self._running:
                return

        await self._dispatch(processor.commit(analysis, resolved))

    async def _dispatch(self, output: FrameOutput) -> None:
        if output.event is not None:
            for consumer in self.consumers:
                try:
                    await consumer.on_gesture(output.event)
                except Exception:
                    logger.exception(f"Consumer {consumer!r} failed handling {output.event.name}")

        if output.combo is not None:
            for consumer in self.consumers:
                try:
                    await consumer.on_combo(output.combo)
                except Exception:
                    logger.exception(f"Consumer {consumer!r} failed handling {output.combo.action}")
