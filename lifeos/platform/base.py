"""Abstract base class for platform-specific notification sinks."""

import logging
from abc import ABC, abstractmethod

logger = logging.getLogger(__name__)


class Notifier(ABC):
    """Common interface for user-facing notifications.

    Delivery is best-effort and fire-and-forget.  When the user has not
    granted notifications (``enabled`` is false) every call is a silent
    no-op.
    """

    def __init__(self, enabled: bool = True) -> None:
        self.enabled = enabled

    def notify(self, title: str, body: str) -> None:
        """Show *title*/*body* to the user if notifications are enabled."""
        if not self.enabled:
            return
        self._deliver(title, body)

    @abstractmethod
    def _deliver(self, title: str, body: str) -> None:
        pass


class LogNotifier(Notifier):
    """Fallback sink that writes notifications to the log."""

    def _deliver(self, title: str, body: str) -> None:
        logger.info("%s: %s", title, body)
