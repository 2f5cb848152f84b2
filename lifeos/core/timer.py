"""Focus timer engine for LifeOS.

A single countdown with start/pause/reset that survives navigation between
dashboard pages.  Ticks come from an injected :class:`Ticker`; when the
countdown crosses zero the session is recorded, XP is awarded and the user
is notified, then the timer rests at its full duration ready to restart.
"""

import logging
import threading
from dataclasses import replace
from datetime import date, datetime
from typing import Callable, Optional

from lifeos.core.gamification import xp_for_focus
from lifeos.core.models import CompletionResult, TimerMode, TimerSettings, TimerState
from lifeos.core.ticker import Ticker
from lifeos.persistence.base import ProfileStore, SessionLedger
from lifeos.platform.base import Notifier

logger = logging.getLogger(__name__)

MIN_DURATION_MINUTES = 1


class FocusTimer:
    """The focus countdown state machine.

    States are Paused (``is_active`` false) and Running (``is_active``
    true); Completed is a transient step that always ends in Paused with
    ``time_left`` back at ``duration``.  Side-effect failures during
    completion are logged and reported in :attr:`last_completion`, never
    raised, so the countdown cannot get stuck.
    """

    def __init__(
        self,
        ticker: Ticker,
        ledger: Optional[SessionLedger] = None,
        profile_store: Optional[ProfileStore] = None,
        notifier: Optional[Notifier] = None,
        settings: Optional[TimerSettings] = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.settings = settings or TimerSettings()
        self.ledger = ledger
        self.profile_store = profile_store
        self.notifier = notifier
        self._ticker = ticker
        self._clock = clock
        duration = _clamp_minutes(self.settings.pomodoro_minutes) * 60
        self._state = TimerState(time_left=duration, duration=duration)
        self._completing = False
        self._count_date: Optional[date] = None
        self._listeners: list[Callable[[CompletionResult], None]] = []
        self._lock = threading.RLock()
        self.last_completion: Optional[CompletionResult] = None

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    @property
    def state(self) -> TimerState:
        """A copy of the current state."""
        with self._lock:
            return replace(self._state)

    @property
    def is_active(self) -> bool:
        return self._state.is_active

    @property
    def time_left(self) -> int:
        return self._state.time_left

    @property
    def duration(self) -> int:
        return self._state.duration

    @property
    def task_id(self) -> Optional[str]:
        return self._state.task_id

    @property
    def mode(self) -> TimerMode:
        return self._state.mode

    @property
    def completing(self) -> bool:
        return self._completing

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def start(self) -> bool:
        """Resume counting down.  Returns ``False`` when nothing changed."""
        with self._lock:
            if self._state.is_active or self._completing or self._state.time_left <= 0:
                return False
            self._state.is_active = True
        self._sync_ticker()
        logger.info("Timer started (%ds left)", self._state.time_left)
        return True

    def pause(self) -> None:
        with self._lock:
            was_active = self._state.is_active
            self._state.is_active = False
        self._sync_ticker()
        if was_active:
            logger.info("Timer paused (%ds left)", self._state.time_left)

    def reset(self) -> None:
        """Stop and rewind to the full duration from any state."""
        with self._lock:
            self._state.is_active = False
            self._state.time_left = self._state.duration
            self._completing = False
        self._sync_ticker()
        logger.info("Timer reset to %ds", self._state.duration)

    def set_duration(self, minutes) -> bool:
        """Set the session length in minutes.

        Rejected while the timer is running so an in-progress session is
        never corrupted.  Non-positive or non-numeric values clamp to
        :data:`MIN_DURATION_MINUTES`.
        """
        with self._lock:
            if self._state.is_active:
                logger.warning("Ignoring duration change while the timer is running")
                return False
            seconds = _clamp_minutes(minutes) * 60
            self._state.duration = seconds
            self._state.time_left = seconds
            self._completing = False
        logger.info("Timer duration set to %d minutes", seconds // 60)
        return True

    def set_task_id(self, task_id: Optional[str]) -> None:
        with self._lock:
            self._state.task_id = task_id

    def set_mode(self, mode: TimerMode | str) -> bool:
        """Switch between focus and break intervals while paused."""
        mode = TimerMode(mode)
        with self._lock:
            if self._state.is_active:
                logger.warning("Ignoring mode change while the timer is running")
                return False
            seconds = _clamp_minutes(self.settings.minutes_for(mode)) * 60
            self._state.mode = mode
            self._state.duration = seconds
            self._state.time_left = seconds
            self._completing = False
        logger.info("Timer mode set to %s (%d minutes)", mode.value, seconds // 60)
        return True

    def next_break_mode(self) -> TimerMode:
        """Long break every ``long_break_interval`` pomodoros, short otherwise."""
        count = self._state.pomodoros_completed
        interval = max(1, self.settings.long_break_interval)
        if count > 0 and count % interval == 0:
            return TimerMode.LONG_BREAK
        return TimerMode.SHORT_BREAK

    def reset_daily_count(self, today: Optional[date] = None) -> bool:
        """Zero the pomodoro count the first time it is called on a new day."""
        today = today or self._clock().date()
        with self._lock:
            if self._count_date == today:
                return False
            self._count_date = today
            self._state.pomodoros_completed = 0
        return True

    def add_listener(self, callback: Callable[[CompletionResult], None]) -> None:
        """Register *callback* to receive every CompletionResult."""
        self._listeners.append(callback)

    def tick(self) -> list[str]:
        """Advance the countdown by one second.

        Returns a list of event strings:
        - ``'tick'``              – one second elapsed
        - ``'session_completed'`` – the countdown crossed zero
        """
        events: list[str] = []

        with self._lock:
            if not self._state.is_active or self._completing:
                return events
            if self._state.time_left > 1:
                self._state.time_left -= 1
                events.append("tick")
                return events

            # --- Zero crossing: stop first so no further tick can complete twice ---
            self._state.time_left = 0
            self._state.is_active = False
            self._completing = True
            if self._state.mode == TimerMode.FOCUS:
                self._state.pomodoros_completed += 1
            snapshot = replace(self._state)

        events.append("tick")
        self._sync_ticker()

        try:
            result = self._complete(snapshot)
        finally:
            with self._lock:
                # reset()/set_duration() during completion already rewound the timer
                if self._completing:
                    self._state.time_left = self._state.duration
                    self._completing = False

        self.last_completion = result
        events.append("session_completed")
        self._emit(result)
        return events

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _complete(self, snapshot: TimerState) -> CompletionResult:
        """Run the completion side effects, each guarded independently."""
        minutes = snapshot.duration // 60
        xp = 0
        if snapshot.mode == TimerMode.FOCUS:
            xp = xp_for_focus(minutes, self.settings.xp_per_minute)

        result = CompletionResult(
            minutes=minutes,
            xp_awarded=xp,
            task_id=snapshot.task_id,
            mode=snapshot.mode,
        )

        if self.ledger is not None:
            try:
                result.session = self.ledger.record(minutes, snapshot.task_id, snapshot.mode)
            except Exception as exc:
                logger.exception("Failed to record focus session")
                result.warnings.append(f"session not recorded: {exc}")

        if self.profile_store is not None and xp > 0:
            try:
                result.xp_update = self.profile_store.add_xp(xp)
            except Exception as exc:
                logger.exception("Failed to award %d XP", xp)
                result.warnings.append(f"xp not awarded: {exc}")

        if self.notifier is not None:
            title, body = self._completion_message(result)
            try:
                self.notifier.notify(title, body)
            except Exception as exc:
                logger.exception("Failed to deliver completion notification")
                result.warnings.append(f"notification failed: {exc}")

        logger.info(
            "%s session complete: %d min, +%d XP%s",
            snapshot.mode.value, minutes, xp,
            f" ({len(result.warnings)} warnings)" if result.warnings else "",
        )
        return result

    def _completion_message(self, result: CompletionResult) -> tuple[str, str]:
        if result.mode == TimerMode.FOCUS:
            brk = self.next_break_mode()
            brk_label = "long" if brk == TimerMode.LONG_BREAK else "short"
            body = (
                f"You focused for {result.minutes} minutes and earned "
                f"{result.xp_awarded} XP. Time for a {brk_label} break."
            )
            return "Focus session complete!", body
        return "Break over!", "Ready to focus? Let's get back to work."

    def _emit(self, result: CompletionResult) -> None:
        for callback in list(self._listeners):
            try:
                callback(result)
            except Exception:
                logger.exception("Completion listener failed")

    def _sync_ticker(self) -> None:
        """Run the ticker exactly while the timer is active."""
        active = self._state.is_active
        if active and not self._ticker.is_running:
            self._ticker.start(self.tick)
        elif not active and self._ticker.is_running:
            self._ticker.stop()


def _clamp_minutes(minutes) -> int:
    """Coerce *minutes* to a whole number of at least MIN_DURATION_MINUTES."""
    try:
        value = int(minutes)
    except (TypeError, ValueError):
        logger.warning("Invalid duration %r; using %d minute(s)", minutes, MIN_DURATION_MINUTES)
        return MIN_DURATION_MINUTES
    return max(value, MIN_DURATION_MINUTES)
