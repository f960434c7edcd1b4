"""
Hand motion tracking from landmark frames.
"""
import math
from typing import Optional

from .config import MotionConfig
from .types import LandmarkFrame, MotionState, Point2D, ZERO_VECTOR


class MotionTracker:
    """
    Tracks a stable anchor landmark between frames and derives per-frame velocity.

    Features:
    - Velocity is the anchor displacement since the previous frame
    - Zero velocity on the first frame and while the hand is absent
    - Previous anchor is forgotten after the hand-lost timeout so tracking
      resumes without a velocity spike
    """

    def __init__(self, cfg: MotionConfig):
        """Initialize motion tracker."""
        self.cfg = cfg
        self.state = MotionState()
        self.last_hand_seen_time: Optional[float] = None

    def update(self, landmarks: Optional[LandmarkFrame], t_now: float) -> MotionState:
        """
        Update motion state from the current frame.

        Args:
            landmarks: Hand landmarks (None if no hand detected)
            t_now: Current timestamp in seconds

        Returns:
            Updated motion state
        """
        anchor = self.anchor(landmarks)

        if anchor is None:
            self.state.velocity = ZERO_VECTOR
            self.state.magnitude = 0.0
            if self.last_hand_seen_time is not None:
                time_since_hand_lost = (t_now - self.last_hand_seen_time) * 1000  # ms
                if time_since_hand_lost > self.cfg.hand_lost_timeout_ms:
                    self.state.previous_anchor = None
            return self.state

        if self.state.previous_anchor is not None:
            vx = anchor[0] - self.state.previous_anchor[0]
            vy = anchor[1] - self.state.previous_anchor[1]
        else:
            vx, vy = ZERO_VECTOR

        self.state.velocity = (vx, vy)
        self.state.magnitude = math.hypot(vx, vy)
        self.state.previous_anchor = anchor
        self.last_hand_seen_time = t_now
        return self.state

    def anchor(self, landmarks: Optional[LandmarkFrame]) -> Optional[Point2D]:
        """Return the (x, y) of the anchor landmark, or None without a usable hand."""
        if landmarks is None or len(landmarks) <= self.cfg.anchor_index:
            return None
        point = landmarks.points[self.cfg.anchor_index]
        return (float(point[0]), float(point[1]))

    def reset(self) -> None:
        self.state = MotionState()
        self.last_hand_seen_time = None
