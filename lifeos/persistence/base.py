"""Abstract collaborators the focus timer writes completions to."""

from abc import ABC, abstractmethod
from typing import Optional

from lifeos.core.models import FocusSession, TimerMode, XPUpdate


class SessionLedger(ABC):
    """Persists completed focus sessions."""

    @abstractmethod
    def record(
        self, minutes: int, task_id: Optional[str] = None, mode: TimerMode = TimerMode.FOCUS
    ) -> FocusSession:
        """Store a completed session ending now and return it."""
        pass


class ProfileStore(ABC):
    """Holds the cumulative XP total and derived level."""

    @abstractmethod
    def add_xp(self, amount: int) -> XPUpdate:
        """Add *amount* XP and return the new total and level."""
        pass
