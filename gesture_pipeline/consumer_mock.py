"""
Mock consumer implementation for demos and tests.
"""
from typing import List

from .types import ComboEvent, GestureEvent


class MockConsumer:
    """Mock consumer that records pipeline output and prints it instead of acting on it."""

    def __init__(self, name: str = "MockConsumer", verbose: bool = True):
        """Initialize the mock consumer."""
        self.name = name
        self.verbose = verbose
        self.events: List[GestureEvent] = []
        self.combos: List[ComboEvent] = []
        self.errors: List[Exception] = []

    async def on_gesture(self, event: GestureEvent) -> None:
        """Record a gesture event."""
        self.events.append(event)
        if self.verbose:
            source = " (adjudicated)" if event.adjudicated else ""
            print(f"[{self.name}] Gesture: {event.name} conf={event.confidence:.2f}{source} "
                  f"(event #{len(self.events)})")

    async def on_combo(self, combo: ComboEvent) -> None:
        """Record a combo action."""
        self.combos.append(combo)
        if self.verbose:
            print(f"[{self.name}] Combo: {combo.action} <- {' -> '.join(combo.gestures)}")

    async def on_session_error(self, error: Exception) -> None:
        """Record a fatal session error."""
        self.errors.append(error)
        if self.verbose:
            print(f"[{self.name}] Session error: {error}")

    @property
    def names(self) -> List[str]:
        return [event.name for event in self.events]

    def reset_counters(self) -> None:
        """Forget everything recorded so far."""
        self.events.clear()
        self.combos.clear()
        self.errors.clear()
