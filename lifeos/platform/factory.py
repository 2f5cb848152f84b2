"""Factory for creating the appropriate Notifier for the current OS."""

import sys
from typing import Any, Optional

from lifeos.platform.base import LogNotifier, Notifier


def create_notifier(config: dict, tray_icon: Optional[Any] = None) -> Notifier:
    """Pick a notification sink from the OS and the ``notifications`` config.

    Uses lazy imports so platform-specific modules are only loaded on
    the OS where they are actually needed.  macOS posts to Notification
    Center; elsewhere the tray icon is used, falling back to the log.
    """
    enabled = bool((config.get("notifications") or {}).get("enabled", True))

    if sys.platform == "darwin":
        from lifeos.platform.macos import MacOSNotifier
        return MacOSNotifier(enabled=enabled)

    if tray_icon is not None:
        from lifeos.platform.tray import TrayNotifier
        return TrayNotifier(tray_icon, enabled=enabled)

    return LogNotifier(enabled=enabled)
