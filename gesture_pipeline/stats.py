"""
In-memory usage statistics for one session.
"""
from collections import Counter, deque
from dataclasses import dataclass
from typing import Deque, Dict, Mapping

MAX_RECENT = 100


@dataclass(frozen=True)
class EmissionRecord:
    name: str
    timestamp: float
    confidence: float


class SessionStats:
    """Emission frequency, confusion tally and the latest emissions."""

    def __init__(self):
        self.frequency: Counter = Counter()
        self.confusion: Dict[str, Counter] = {}
        self.recent: Deque[EmissionRecord] = deque(maxlen=MAX_RECENT)

    def record(self, name: str, confidence: float, timestamp: float,
               scores: Mapping[str, float]) -> None:
        """Count an emission and every other candidate present alongside it."""
        self.frequency[name] += 1
        confused = self.confusion.setdefault(name, Counter())
        for other in scores:
            if other != name:
                confused[other] += 1
        self.recent.append(EmissionRecord(name, timestamp, confidence))

    def most_confused_with(self, name: str) -> Dict[str, int]:
        return dict(self.confusion.get(name, Counter()).most_common())

    def reset(self) -> None:
        self.frequency.clear()
        self.confusion.clear()
        self.recent.clear()
