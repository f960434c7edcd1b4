"""
Winner selection among the per-frame gesture candidates.
"""
import logging
from typing import Mapping

from .config import ResolverConfig
from .history import ConfidenceHistory
from .types import (
    Candidate,
    MotionState,
    Resolution,
    ResolutionStatus,
    ResolvedGesture,
    ranked,
)

logger = logging.getLogger(__name__)

NO_GESTURE = Resolution(status=ResolutionStatus.NONE)


class CandidateResolver:
    """
    Picks the winning gesture for a frame.

    Features:
    - Threshold gate: only candidates strictly above the working threshold compete
    - Stability tie-break: inside the near-tie band a much steadier runner-up wins
    - Motion confirmation: a directional gesture whose direction matches the
      hand velocity is preferred in a tie, but is never rejected without it
    - Unresolvable near-ties are reported as ambiguous instead of guessed
    """

    def __init__(self, cfg: ResolverConfig):
        """Initialize candidate resolver."""
        self.cfg = cfg

    def resolve(self, scores: Mapping[str, float], threshold: float,
                motion: MotionState, history: ConfidenceHistory) -> Resolution:
        """
        Resolve the frame's candidates to at most one gesture.

        Args:
            scores: Raw candidate score map for this frame
            threshold: Score a candidate must exceed to compete
            motion: Current hand motion state
            history: Confidence history (already updated with this frame)

        Returns:
            Resolution with status NONE, RESOLVED or AMBIGUOUS
        """
        eligible = [Candidate(name, float(score)) for name, score in scores.items() if score > threshold]
        if not eligible:
            return NO_GESTURE

        top = list(ranked(eligible)[:self.cfg.top_k])
        first = top[0]

        if len(top) == 1 or top[1].confidence < self.cfg.near_tie_ratio * first.confidence:
            return self._resolved(first, motion)

        second = top[1]
        first_stability = history.stability(first.name)
        second_stability = history.stability(second.name)

        # Prefer the steadier signal over a transient spike
        if second_stability > self.cfg.stability_ratio * first_stability:
            logger.debug(
                f"Stability swap: {second.name} ({second_stability:.2f}) over "
                f"{first.name} ({first_stability:.2f})"
            )
            return self._resolved(second, motion, stability_swapped=True)
        if first_stability > self.cfg.stability_ratio * second_stability:
            return self._resolved(first, motion)

        first_confirmed = self.motion_confirms(first.name, motion)
        second_confirmed = self.motion_confirms(second.name, motion)
        if first_confirmed and not second_confirmed:
            return self._resolved(first, motion)
        if second_confirmed and not first_confirmed:
            logger.debug(f"Motion confirms {second.name} over {first.name}")
            return self._resolved(second, motion)

        tied = tuple(c for c in top if c.confidence >= self.cfg.near_tie_ratio * first.confidence)
        logger.debug(f"Ambiguous candidates: {[(c.name, c.confidence) for c in tied]}")
        return Resolution(status=ResolutionStatus.AMBIGUOUS, tied=tied)

    def motion_confirms(self, name: str, motion: MotionState) -> bool:
        """True when a directional gesture is moving its named way fast enough."""
        sign = self.cfg.directional.get(name)
        if sign is None:
            return False
        return sign * motion.velocity[0] >= self.cfg.min_swipe_speed

    def _resolved(self, candidate: Candidate, motion: MotionState,
                  stability_swapped: bool = False) -> Resolution:
        winner = ResolvedGesture(
            name=candidate.name,
            confidence=candidate.confidence,
            motion_confirmed=self.motion_confirms(candidate.name, motion),
        )
        return Resolution(
            status=ResolutionStatus.RESOLVED,
            winner=winner,
            stability_swapped=stability_swapped,
        )
