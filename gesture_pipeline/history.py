"""
Rolling per-gesture confidence history and the stability metric derived from it.
"""
from collections import deque
from typing import Deque, Dict, List, Mapping

import numpy as np

from .config import HistoryConfig


class ConfidenceHistory:
    """
    Bounded window of recent scores for every gesture seen this session.

    Stability is the inverse of the standard deviation of a gesture's recent
    scores: a gesture that has stayed consistently high is more stable than
    one that spikes erratically, even if the spike is momentarily higher.
    """

    def __init__(self, cfg: HistoryConfig):
        self.cfg = cfg
        self._scores: Dict[str, Deque[float]] = {}

    def record(self, scores: Mapping[str, float]) -> None:
        """Append every score in the frame's candidate map to its gesture's history."""
        for name, score in scores.items():
            history = self._scores.get(name)
            if history is None:
                history = deque(maxlen=self.cfg.capacity)
                self._scores[name] = history
            history.append(float(score))

    def stability(self, name: str) -> float:
        """
        Inverse-deviation stability of a gesture.

        Returns 0.0 until the gesture has at least ``min_samples`` scores.
        """
        history = self._scores.get(name)
        if history is None or len(history) < self.cfg.min_samples:
            return 0.0
        return 1.0 / (float(np.std(history)) + self.cfg.epsilon)

    def scores(self, name: str) -> List[float]:
        return list(self._scores.get(name, ()))

    def __contains__(self, name: str) -> bool:
        return name in self._scores

    def reset(self) -> None:
        self._scores.clear()
