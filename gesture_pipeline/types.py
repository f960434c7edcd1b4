"""
Type definitions for the gesture decision pipeline.
"""
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional, Protocol, Sequence, Tuple, runtime_checkable

Point2D = Tuple[float, float]
Point3D = Tuple[float, float, float]
Vector2D = Tuple[float, float]
CandidateScoreMap = Dict[str, float]

ZERO_VECTOR: Vector2D = (0.0, 0.0)


@dataclass(frozen=True)
class LandmarkFrame:
    """One hand pose: ordered 3D keypoints plus the capture time in seconds."""
    points: Tuple[Point3D, ...]
    timestamp: float

    def __post_init__(self):
        # Accept any sequence of points but store an immutable copy
        object.__setattr__(self, "points", tuple(tuple(p) for p in self.points))

    def __len__(self) -> int:
        return len(self.points)


@dataclass(frozen=True)
class FrameSample:
    """Everything the pipeline receives for a single video frame."""
    timestamp: float
    landmarks: Optional[LandmarkFrame] = None
    scores: CandidateScoreMap = field(default_factory=dict)

    @property
    def hand_present(self) -> bool:
        return self.landmarks is not None and len(self.landmarks) > 0


@dataclass
class MotionState:
    """Current state of hand motion tracking."""
    previous_anchor: Optional[Point2D] = None
    velocity: Vector2D = ZERO_VECTOR
    magnitude: float = 0.0


@dataclass
class ThresholdState:
    """Working confidence threshold and its bounds."""
    current: float
    floor: float
    ceiling: float


@dataclass(frozen=True)
class Candidate:
    """A named gesture with its raw score for the current frame."""
    name: str
    confidence: float


@dataclass(frozen=True)
class ResolvedGesture:
    """The gesture chosen for a frame, before debouncing."""
    name: str
    confidence: float
    motion_confirmed: bool = False
    adjudicated: bool = False
    explanation: Optional[str] = None


class ResolutionStatus(str, Enum):
    """Outcome of candidate resolution for one frame."""
    NONE = "none"
    RESOLVED = "resolved"
    AMBIGUOUS = "ambiguous"


@dataclass(frozen=True)
class Resolution:
    """Result of the candidate resolver."""
    status: ResolutionStatus
    winner: Optional[ResolvedGesture] = None
    tied: Tuple[Candidate, ...] = ()
    stability_swapped: bool = False


@dataclass(frozen=True)
class GestureEvent:
    """A debounced gesture, the sole per-gesture output of the pipeline."""
    name: str
    confidence: float
    timestamp: float
    hand_position: Optional[Point2D]
    velocity: Vector2D
    adjudicated: bool = False
    explanation: Optional[str] = None


@dataclass(frozen=True)
class ComboEvent:
    """A matched multi-gesture sequence."""
    action: str
    gestures: Tuple[str, ...]
    timestamp: float


@dataclass(frozen=True)
class FrameOutput:
    """What a single processed frame produced."""
    event: Optional[GestureEvent] = None
    combo: Optional[ComboEvent] = None
    resolution: Optional[Resolution] = None


@runtime_checkable
class LandmarkSourceProto(Protocol):
    """Pose estimator that yields at most one hand per frame."""

    async def read(self) -> Optional[LandmarkFrame]:
        """Return the next hand pose, or None when no hand is visible."""
        ...


@runtime_checkable
class TemplateScorerProto(Protocol):
    """Template matcher that scores a pose against the known gestures."""

    def score(self, frame: LandmarkFrame, threshold: float) -> CandidateScoreMap:
        """Return raw scores for every gesture that matched."""
        ...


@runtime_checkable
class GestureConsumerProto(Protocol):
    """Downstream receiver of pipeline output."""

    async def on_gesture(self, event: GestureEvent) -> None:
        """Handle a debounced gesture event."""
        ...

    async def on_combo(self, combo: ComboEvent) -> None:
        """Handle a matched combo action."""
        ...

    async def on_session_error(self, error: Exception) -> None:
        """Handle a fatal session failure."""
        ...


def now() -> float:
    """Wall-clock time in seconds, the clock used for frame timestamps."""
    return time.time()


def ranked(candidates: Sequence[Candidate]) -> Tuple[Candidate, ...]:
    """Sort candidates by score descending, then by name for a stable order."""
    return tuple(sorted(candidates, key=lambda c: (-c.confidence, c.name)))
