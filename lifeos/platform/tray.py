"""Notification sink that posts through the pystray tray icon."""

import logging
from typing import Any, Optional

from lifeos.platform.base import Notifier

logger = logging.getLogger(__name__)


class TrayNotifier(Notifier):
    """Show notifications as tray balloons (``pystray.Icon.notify``).

    The icon is attached after the tray starts; until then messages go
    to the log.
    """

    def __init__(self, icon: Optional[Any] = None, enabled: bool = True) -> None:
        super().__init__(enabled=enabled)
        self.icon = icon

    def _deliver(self, title: str, body: str) -> None:
        icon = self.icon
        if icon is None or not getattr(icon, "HAS_NOTIFICATION", True):
            logger.info("%s: %s", title, body)
            return
        try:
            icon.notify(body, title)
        except Exception:
            logger.exception("Tray notification failed")
