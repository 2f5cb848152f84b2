"""System tray application for LifeOS.

Provides a pystray-based system tray icon with menu items for controlling
the focus timer, opening the dashboard, viewing today's focus, and quitting.
The countdown ticks on a daemon thread so the tray icon remains responsive.
"""

import logging
import os
import subprocess
import sys
import webbrowser
from datetime import date
from pathlib import Path
from typing import Optional

from PIL import Image, ImageDraw

from lifeos.core.config import get_timer_settings, load_config
from lifeos.core.models import CompletionResult
from lifeos.core.ticker import ThreadingTicker
from lifeos.core.timer import FocusTimer
from lifeos.persistence.store import LifeStore
from lifeos.platform.base import Notifier
from lifeos.platform.factory import create_notifier
from lifeos.reporting.formatter import TextFormatter
from lifeos.reporting.summary import FocusSummaryGenerator

logger = logging.getLogger(__name__)

DEFAULT_DASHBOARD_PORT = 5555


def _create_default_icon() -> Image.Image:
    """Load the bundled icon, or draw a simple tomato-coloured disc."""
    icon_path = Path(__file__).resolve().parent.parent.parent / "assets" / "icon.png"
    if icon_path.exists():
        try:
            return Image.open(str(icon_path))
        except OSError:
            logger.debug("Could not load icon from %s, creating default", icon_path)

    img = Image.new("RGBA", (64, 64), (0, 0, 0, 0))
    draw = ImageDraw.Draw(img)
    draw.ellipse((6, 6, 58, 58), fill=(214, 84, 64))
    return img


class LifeOSApp:
    """Main application class that runs LifeOS as a system tray app."""

    def __init__(self, config_path: str) -> None:
        self.config_path = config_path
        self.config = load_config(config_path)
        self.tray_icon = None
        self._store: Optional[LifeStore] = None
        self._timer: Optional[FocusTimer] = None
        self._notifier: Optional[Notifier] = None
        self._summary_generator: Optional[FocusSummaryGenerator] = None
        self._dashboard_port = DEFAULT_DASHBOARD_PORT

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Initialize all components, start the dashboard and run the tray."""
        self._init_components()
        self._start_dashboard()
        self._run_tray()

    def stop(self) -> None:
        """Stop the timer and clean up resources."""
        if self._timer is not None:
            self._timer.pause()
        if self._store is not None:
            self._store.close()
            self._store = None
        if self.tray_icon is not None:
            try:
                self.tray_icon.stop()
            except Exception:
                logger.debug("Tray icon already stopped")
            self.tray_icon = None

    def toggle_timer(self) -> None:
        if self._timer is None:
            return
        if self._timer.is_active:
            self._timer.pause()
        else:
            self._timer.reset_daily_count()
            self._timer.start()

    def reset_timer(self) -> None:
        if self._timer is not None:
            self._timer.reset()

    def show_daily_summary(self) -> None:
        """Display today's focus in a popup window."""
        if self._summary_generator is None:
            logger.warning("Summary generator not initialized")
            return

        try:
            summary = self._summary_generator.daily_summary(date.today())
            self._show_popup("Today's Focus", TextFormatter.format_daily(summary))
        except Exception:
            logger.exception("Failed to generate daily summary")

    # ------------------------------------------------------------------
    # Wiring
    # ------------------------------------------------------------------

    def _init_components(self) -> None:
        """Wire store, notifier, ticker and timer from config."""
        config = self.config

        db_path = os.path.expanduser(config.get("database_path", "~/.lifeos/lifeos.db"))
        db_dir = os.path.dirname(db_path)
        if db_dir:
            os.makedirs(db_dir, exist_ok=True)
        self._store = LifeStore(db_path)
        self._store.init_db()

        settings = get_timer_settings(config)
        self._summary_generator = FocusSummaryGenerator(self._store, settings.xp_per_minute)

        # Re-created with the tray icon once it exists
        self._notifier = create_notifier(config)

        self._timer = FocusTimer(
            ticker=ThreadingTicker(),
            ledger=self._store,
            profile_store=self._store,
            notifier=self._notifier,
            settings=settings,
        )
        self._timer.add_listener(self._on_completion)

        self._dashboard_port = int(
            (config.get("dashboard") or {}).get("port", DEFAULT_DASHBOARD_PORT)
        )

    def _on_completion(self, result: CompletionResult) -> None:
        if result.xp_update is not None:
            logger.info(
                "XP total %d, level %d", result.xp_update.new_total, result.xp_update.new_level
            )
        if self.tray_icon is not None:
            self.tray_icon.update_menu()

    # ------------------------------------------------------------------
    # System tray
    # ------------------------------------------------------------------

    def _run_tray(self) -> None:
        """Create and run the pystray system tray icon."""
        try:
            import pystray
            from pystray import Menu, MenuItem
        except ImportError:
            logger.warning("pystray backend not available; running without system tray")
            return

        def _timer_label(item):
            if self._timer is not None and self._timer.is_active:
                return f"Pause ({TextFormatter.format_timer(self._timer.time_left)})"
            return "Start Focus"

        menu = Menu(
            MenuItem(_timer_label, lambda: self.toggle_timer(), default=True),
            MenuItem("Reset", lambda: self.reset_timer()),
            Menu.SEPARATOR,
            MenuItem("Dashboard", lambda: self._open_dashboard()),
            MenuItem("Today's Focus", lambda: self.show_daily_summary()),
            Menu.SEPARATOR,
            MenuItem("Quit", lambda: self._quit()),
        )

        self.tray_icon = pystray.Icon("LifeOS", _create_default_icon(), "LifeOS", menu)
        self._notifier = create_notifier(self.config, tray_icon=self.tray_icon)
        if self._timer is not None:
            self._timer.notifier = self._notifier
        self.tray_icon.run()

    def _quit(self) -> None:
        self.stop()

    # ------------------------------------------------------------------
    # Web dashboard
    # ------------------------------------------------------------------

    def _start_dashboard(self) -> None:
        """Start the web dashboard in a background thread."""
        try:
            from lifeos.ui.web import start_dashboard
            start_dashboard(self, port=self._dashboard_port)
        except Exception:
            logger.exception("Failed to start web dashboard")

    def _open_dashboard(self) -> None:
        url = f"http://127.0.0.1:{self._dashboard_port}"
        try:
            webbrowser.open(url)
        except webbrowser.Error:
            logger.exception("Failed to open dashboard at %s", url)

    # ------------------------------------------------------------------
    # Config hot-reload
    # ------------------------------------------------------------------

    def _apply_config_changes(self) -> None:
        """Apply updated config to running components without restart."""
        config = self.config
        settings = get_timer_settings(config)

        if self._timer is not None:
            self._timer.settings = settings
            # Only a timer at rest picks up the new length; a paused
            # session keeps its remaining time
            state = self._timer.state
            if not state.is_active and state.time_left == state.duration:
                self._timer.set_mode(self._timer.mode)
        if self._summary_generator is not None:
            self._summary_generator.xp_per_minute = settings.xp_per_minute
        if self._notifier is not None:
            self._notifier.enabled = bool(
                (config.get("notifications") or {}).get("enabled", True)
            )

    # ------------------------------------------------------------------
    # UI helpers
    # ------------------------------------------------------------------

    def _show_popup(self, title: str, message: str) -> None:
        """Show a popup with native macOS dialogs, or log it elsewhere."""
        if sys.platform != "darwin":
            logger.info("%s:\n%s", title, message)
            return

        escaped = message.replace("\\", "\\\\").replace('"', '\\"')
        script = (
            f'display dialog "{escaped}" '
            f'with title "{title}" '
            f'buttons {{"OK"}} default button "OK"'
        )
        try:
            subprocess.Popen(
                ["osascript", "-e", script],
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
        except OSError:
            logger.info("%s:\n%s", title, message)
