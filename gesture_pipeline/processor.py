"""
Per-frame gesture decision pipeline.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from .arbitration import ArbitrationContext, ArbitrationGateway
from .config import Cfg
from .debounce import EventDebouncer
from .history import ConfidenceHistory
from .motion import MotionTracker
from .resolver import CandidateResolver
from .sequences import SequenceDetector
from .stats import SessionStats
from .threshold import AdaptiveThresholdController
from .types import (
    FrameOutput,
    FrameSample,
    GestureEvent,
    MotionState,
    Resolution,
    ResolutionStatus,
    ResolvedGesture,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FrameAnalysis:
    """Everything decided about a frame before debouncing."""
    sample: FrameSample
    motion: MotionState
    threshold: float
    resolution: Resolution


class GestureProcessor:
    """
    Owns all per-session decision state and turns frames into events.

    Processing is split in two so the awaited arbitration step can sit in
    between: ``analyze`` runs motion, threshold, history and resolution;
    ``commit`` runs the debouncer and the sequence detector. ``process_frame``
    chains both with the synchronous arbitration fallback.
    """

    def __init__(self, cfg: Cfg):
        """Initialize gesture processor with configuration."""
        self.cfg = cfg
        self.motion = MotionTracker(cfg.motion)
        self.threshold = AdaptiveThresholdController(cfg.threshold)
        self.history = ConfidenceHistory(cfg.history)
        self.resolver = CandidateResolver(cfg.resolver)
        self.debouncer = EventDebouncer(cfg.debounce)
        self.sequences = SequenceDetector(cfg.sequences)
        self.stats = SessionStats()
        self.absent_since: Optional[float] = None

    def analyze(self, sample: FrameSample) -> FrameAnalysis:
        """
        Run the pre-debounce stages for one frame.

        Args:
            sample: Landmarks and candidate scores for the frame

        Returns:
            Motion, threshold and resolution for the frame
        """
        t_now = sample.timestamp
        motion = self.motion.update(sample.landmarks, t_now)
        self.sequences.expire(t_now)

        if not sample.hand_present:
            if self.absent_since is None:
                self.absent_since = t_now
            self.debouncer.hand_absent(self.absent_since, t_now)
            return FrameAnalysis(sample, _snapshot(motion), self.threshold.current,
                                 Resolution(status=ResolutionStatus.NONE))

        self.absent_since = None
        threshold = self.threshold.update(motion.magnitude)
        self.history.record(sample.scores)
        resolution = self.resolver.resolve(sample.scores, threshold, motion, self.history)
        return FrameAnalysis(sample, _snapshot(motion), threshold, resolution)

    def commit(self, analysis: FrameAnalysis,
               resolved: Optional[ResolvedGesture] = None) -> FrameOutput:
        """
        Debounce the frame's winner and feed emitted events to the sequence detector.

        Args:
            analysis: Result of ``analyze`` for the frame
            resolved: Winner to use; defaults to the resolver's winner

        Returns:
            The event and combo produced by this frame, if any
        """
        if resolved is None:
            resolved = analysis.resolution.winner

        t_now = analysis.sample.timestamp
        name = resolved.name if resolved is not None else None
        if not self.debouncer.update(name, t_now):
            return FrameOutput(resolution=analysis.resolution)

        event = GestureEvent(
            name=resolved.name,
            confidence=resolved.confidence,
            timestamp=t_now,
            hand_position=analysis.motion.previous_anchor,
            velocity=analysis.motion.velocity,
            adjudicated=resolved.adjudicated,
            explanation=resolved.explanation,
        )
        self.stats.record(event.name, event.confidence, t_now, analysis.sample.scores)
        logger.info(f"Gesture {event.name} ({event.confidence:.2f})")

        combo = self.sequences.push(event.name, t_now)
        return FrameOutput(event=event, combo=combo, resolution=analysis.resolution)

    def process_frame(self, sample: FrameSample) -> FrameOutput:
        """Process a frame end to end, settling ambiguous ties by the highest raw score."""
        analysis = self.analyze(sample)
        resolved = None
        if analysis.resolution.status is ResolutionStatus.AMBIGUOUS:
            resolved = ArbitrationGateway.fallback(analysis.resolution.tied)
        return self.commit(analysis, resolved)

    def arbitration_context(self, analysis: FrameAnalysis, current_screen: str) -> ArbitrationContext:
        """Session context forwarded to the arbitration service."""
        position = analysis.motion.previous_anchor
        recent = [record.name for record in self.stats.recent]
        return ArbitrationContext(
            current_screen=current_screen,
            recent_gestures=recent[-self.cfg.arbitration.recent_gestures:],
            hand_position={"x": position[0], "y": position[1]} if position else None,
        )

    def reset(self) -> None:
        """Discard all session state."""
        self.motion.reset()
        self.threshold.reset()
        self.history.reset()
        self.debouncer.reset()
        self.sequences.reset()
        self.stats.reset()
        self.absent_since = None


def _snapshot(motion: MotionState) -> MotionState:
    return MotionState(
        previous_anchor=motion.previous_anchor,
        velocity=motion.velocity,
        magnitude=motion.magnitude,
    )
