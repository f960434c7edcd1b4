"""
Motion-adaptive confidence threshold.
"""
import logging

from .config import ThresholdConfig
from .types import ThresholdState

logger = logging.getLogger(__name__)


class AdaptiveThresholdController:
    """
    Keeps the minimum candidate score in step with hand motion.

    Fast motion raises the threshold to suppress motion-blur false positives,
    a steady hand lowers it to improve sensitivity. Every update is blended
    with the previous value and clamped to [floor, ceiling].
    """

    def __init__(self, cfg: ThresholdConfig):
        self.cfg = cfg
        self.state = ThresholdState(
            current=self._clamp(cfg.base),
            floor=cfg.floor,
            ceiling=cfg.ceiling,
        )

    @property
    def current(self) -> float:
        return self.state.current

    def update(self, magnitude: float) -> float:
        """
        Fold the current motion magnitude into the threshold.

        Args:
            magnitude: Anchor displacement for this frame

        Returns:
            The threshold a candidate must exceed this frame
        """
        if not self.cfg.adaptive:
            return self.state.current

        previous = self.state.current
        if magnitude > self.cfg.high_motion_cutoff:
            target = previous + self.cfg.raise_step
        elif magnitude < self.cfg.low_motion_cutoff:
            target = previous - self.cfg.lower_step
        else:
            target = previous
        target = self._clamp(target)

        blended = self.cfg.smoothing * previous + (1.0 - self.cfg.smoothing) * target
        self.state.current = self._clamp(blended)

        if self.state.current != previous:
            logger.debug(f"Threshold {previous:.3f} -> {self.state.current:.3f} (motion={magnitude:.1f})")
        return self.state.current

    def _clamp(self, value: float) -> float:
        return max(self.cfg.floor, min(self.cfg.ceiling, value))

    def reset(self) -> None:
        self.state.current = self._clamp(self.cfg.base)
