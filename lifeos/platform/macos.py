"""macOS notification sink using AppleScript (osascript)."""

import logging
import subprocess

from lifeos.platform.base import Notifier

logger = logging.getLogger(__name__)


class MacOSNotifier(Notifier):
    """Post Notification Center banners via ``osascript``.

    The process is started without waiting on it so a slow or denied
    notification never holds up the caller.
    """

    def _deliver(self, title: str, body: str) -> None:
        script = (
            f'display notification "{_escape(body)}" '
            f'with title "{_escape(title)}" '
            f'sound name "Glass"'
        )
        try:
            subprocess.Popen(
                ["osascript", "-e", script],
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
        except (OSError, subprocess.SubprocessError):
            logger.exception("osascript notification failed")
            logger.info("%s: %s", title, body)


def _escape(text: str) -> str:
    """Escape backslashes and double quotes for an AppleScript string."""
    return text.replace("\\", "\\\\").replace('"', '\\"')
