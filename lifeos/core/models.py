"""Core data models for LifeOS.

Defines all dataclasses and enums used across the application:
- Focus timer: TimerMode, TimerSettings, TimerState
- Focus history: FocusSession, CompletionResult
- Gamification: XPUpdate, UserProfile
- Calendar: RecurrencePreset, RecurrenceEndType, RecurringEvent,
  ExceptionStatus, EventException, EventInstance
- Reporting: FocusDaySummary, FocusWeekSummary
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Optional


# ---------------------------------------------------------------------------
# Focus timer
# ---------------------------------------------------------------------------

class TimerMode(Enum):
    """Which kind of interval the focus timer is counting down."""
    FOCUS = "focus"
    SHORT_BREAK = "short_break"
    LONG_BREAK = "long_break"


@dataclass
class TimerSettings:
    """User-tunable durations and rewards for the focus timer."""
    pomodoro_minutes: int = 25
    short_break_minutes: int = 5
    long_break_minutes: int = 15
    long_break_interval: int = 4
    xp_per_minute: int = 10

    def minutes_for(self, mode: TimerMode) -> int:
        if mode == TimerMode.SHORT_BREAK:
            return self.short_break_minutes
        if mode == TimerMode.LONG_BREAK:
            return self.long_break_minutes
        return self.pomodoro_minutes


@dataclass
class TimerState:
    """Snapshot of the single focus countdown."""
    is_active: bool = False
    time_left: int = 1500      # seconds, 0 <= time_left <= duration
    duration: int = 1500       # seconds
    task_id: Optional[str] = None
    mode: TimerMode = TimerMode.FOCUS
    pomodoros_completed: int = 0


# ---------------------------------------------------------------------------
# Focus history
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class FocusSession:
    """A completed focus interval, written once and never mutated."""
    id: str
    minutes: int
    task_id: Optional[str]
    started_at: datetime
    completed_at: datetime
    mode: TimerMode = TimerMode.FOCUS


@dataclass
class XPUpdate:
    """Result of adding XP to the profile."""
    new_total: int
    new_level: int


@dataclass
class UserProfile:
    """Cumulative gamification totals."""
    xp: int = 0
    level: int = 0
    focus_minutes: int = 0
    sessions_completed: int = 0


@dataclass
class CompletionResult:
    """Everything a single timer completion produced.

    ``warnings`` collects side-effect failures (ledger, XP, notification)
    that were logged instead of raised.
    """
    minutes: int
    xp_awarded: int
    task_id: Optional[str]
    mode: TimerMode
    session: Optional[FocusSession] = None
    xp_update: Optional[XPUpdate] = None
    warnings: list[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Calendar
# ---------------------------------------------------------------------------

class RecurrencePreset(Enum):
    """Recurrence choices offered when creating an event."""
    NONE = "NONE"
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"
    YEARLY = "YEARLY"
    WEEKDAY = "WEEKDAY"
    CUSTOM = "CUSTOM"


class RecurrenceEndType(Enum):
    """How a recurring series ends."""
    NEVER = "NEVER"
    ON_DATE = "ON_DATE"
    AFTER_COUNT = "AFTER_COUNT"


@dataclass
class RecurringEvent:
    """A stored calendar event, optionally repeating via an RRULE."""
    id: str
    title: str
    start: datetime
    end: datetime
    recurrence_rule: Optional[str] = None  # RRULE body, e.g. "FREQ=WEEKLY;BYDAY=TH"
    all_day: bool = False
    description: str = ""
    location: str = ""


class ExceptionStatus(Enum):
    """What happened to a single occurrence of a series."""
    CANCELLED = "cancelled"
    MODIFIED = "modified"


@dataclass
class EventException:
    """An override of one occurrence, keyed by its original start."""
    parent_event_id: str
    original_start: datetime
    status: ExceptionStatus = ExceptionStatus.CANCELLED
    # Replacement values, only meaningful for MODIFIED
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    title: Optional[str] = None


@dataclass
class EventInstance:
    """A concrete occurrence ready for rendering. Never persisted."""
    id: str
    title: str
    start: datetime
    end: datetime
    all_day: bool = False
    description: str = ""
    location: str = ""
    is_recurring_instance: bool = False
    parent_event_id: Optional[str] = None
    occurrence: Optional[datetime] = None
    recurrence_rule: Optional[str] = None

    @classmethod
    def from_event(cls, event: RecurringEvent) -> "EventInstance":
        """The single instance of a non-recurring event."""
        return cls(
            id=event.id,
            title=event.title,
            start=event.start,
            end=event.end,
            all_day=event.all_day,
            description=event.description,
            location=event.location,
            recurrence_rule=event.recurrence_rule,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "all_day": self.all_day,
            "description": self.description,
            "location": self.location,
            "is_recurring_instance": self.is_recurring_instance,
            "parent_event_id": self.parent_event_id,
            "occurrence": self.occurrence.isoformat() if self.occurrence else None,
            "recurrence_rule": self.recurrence_rule,
        }


# ---------------------------------------------------------------------------
# Reporting
# ---------------------------------------------------------------------------

@dataclass
class FocusDaySummary:
    """Focus totals for a single day."""
    date: date
    sessions: list[FocusSession] = field(default_factory=list)
    total_minutes: int = 0
    minutes_by_task: dict[str, int] = field(default_factory=dict)  # "" = no task
    xp_earned: int = 0


@dataclass
class FocusWeekSummary:
    """Focus totals for a 7-day period."""
    start_date: date
    end_date: date
    daily_breakdowns: list[FocusDaySummary] = field(default_factory=list)
    total_minutes: int = 0
    total_sessions: int = 0
    minutes_by_task: dict[str, int] = field(default_factory=dict)
    xp_earned: int = 0
