"""
Combo detection over the stream of emitted gestures.
"""
import logging
from collections import deque
from dataclasses import dataclass
from typing import Deque, List, Optional, Tuple

from .config import SequenceConfig
from .types import ComboEvent

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SequenceEntry:
    name: str
    timestamp: float


class SequenceDetector:
    """
    Matches the most recent emitted gestures against the combo pattern table.

    The window holds at most ``capacity`` entries, all within ``window_ms``
    of each other. A match consumes the window.
    """

    def __init__(self, cfg: SequenceConfig):
        self.cfg = cfg
        self.window: Deque[SequenceEntry] = deque(maxlen=cfg.capacity)
        # Longest patterns first so a three-step combo wins over its two-step tail
        self._patterns: List[Tuple[Tuple[str, ...], str]] = sorted(
            ((tuple(p.gestures), p.action) for p in cfg.patterns),
            key=lambda p: -len(p[0]),
        )

    def push(self, name: str, t_now: float) -> Optional[ComboEvent]:
        """
        Record an emitted gesture and check for a combo.

        Args:
            name: Emitted gesture name
            t_now: Emission timestamp in seconds

        Returns:
            ComboEvent if the tail of the window matches a pattern, None otherwise
        """
        self._prune(t_now)
        self.window.append(SequenceEntry(name, t_now))

        names = tuple(entry.name for entry in self.window)
        for gestures, action in self._patterns:
            if len(gestures) <= len(names) and names[-len(gestures):] == gestures:
                logger.info(f"Gesture sequence {' -> '.join(gestures)} => {action}")
                self.window.clear()
                return ComboEvent(action=action, gestures=gestures, timestamp=t_now)
        return None

    def expire(self, t_now: float) -> None:
        """Clear the window once its span has elapsed with no new entries."""
        if self.window and (t_now - self.window[0].timestamp) * 1000 > self.cfg.window_ms:
            if len(self.window) > 1:
                logger.debug(f"Sequence ended: {' -> '.join(e.name for e in self.window)}")
            self.window.clear()

    def _prune(self, t_now: float) -> None:
        while self.window and (t_now - self.window[0].timestamp) * 1000 > self.cfg.window_ms:
            self.window.popleft()

    def recent(self) -> List[str]:
        return [entry.name for entry in self.window]

    def reset(self) -> None:
        self.window.clear()
