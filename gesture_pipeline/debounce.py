"""
Debouncing state machine between resolved gestures and emitted events.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .config import DebounceConfig

logger = logging.getLogger(__name__)


class DebouncePhase(str, Enum):
    """Debouncer states."""
    IDLE = "idle"
    HOLDING = "holding"


@dataclass
class DebounceState:
    """Name and time of the last emitted gesture."""
    last_emitted_name: Optional[str] = None
    last_emitted_at: Optional[float] = None


class EventDebouncer:
    """
    Suppresses rapid oscillation between resolved gestures.

    A changed gesture is emitted only once the dwell interval has elapsed
    since the previous emission; a repeated gesture is never re-emitted while
    it is held. Sustained hand absence returns the machine to IDLE so the same
    gesture reappearing counts as fresh.
    """

    def __init__(self, cfg: DebounceConfig):
        """Initialize event debouncer."""
        self.cfg = cfg
        self.state = DebounceState()
        self.phase = DebouncePhase.IDLE
        self.suppressed_count = 0

    @property
    def holding(self) -> Optional[str]:
        """Name of the gesture currently held, or None when idle."""
        return self.state.last_emitted_name if self.phase is DebouncePhase.HOLDING else None

    def update(self, name: Optional[str], t_now: float) -> bool:
        """
        Feed the resolved gesture for a frame.

        Args:
            name: Resolved gesture name, or None when no gesture won
            t_now: Frame timestamp in seconds

        Returns:
            True if an event should be emitted for ``name``
        """
        if name is None or name == self.state.last_emitted_name:
            return False

        if self.state.last_emitted_at is not None:
            elapsed_ms = (t_now - self.state.last_emitted_at) * 1000
            if elapsed_ms < self.cfg.effective_dwell_ms:
                self.suppressed_count += 1
                logger.debug(
                    f"Suppressed {name} after {elapsed_ms:.0f}ms "
                    f"(holding {self.state.last_emitted_name})"
                )
                return False

        self.state.last_emitted_name = name
        self.state.last_emitted_at = t_now
        self.phase = DebouncePhase.HOLDING
        return True

    def hand_absent(self, absent_since: float, t_now: float) -> None:
        """
        Report a frame without a hand.

        Args:
            absent_since: Timestamp of the first frame of the current absence
            t_now: Current timestamp in seconds
        """
        if self.phase is DebouncePhase.IDLE:
            return
        if (t_now - absent_since) * 1000 > self.cfg.absence_reset_ms:
            logger.debug(f"Hand absent, releasing {self.state.last_emitted_name}")
            # Keep last_emitted_at so the dwell guarantee still holds
            self.state.last_emitted_name = None
            self.phase = DebouncePhase.IDLE

    def reset(self) -> None:
        self.state = DebounceState()
        self.phase = DebouncePhase.IDLE
        self.suppressed_count = 0
