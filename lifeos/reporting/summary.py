"""Focus summaries computed from the session ledger."""

from datetime import date, datetime, time, timedelta

from lifeos.core.gamification import XP_PER_MINUTE, xp_for_focus
from lifeos.core.models import FocusDaySummary, FocusWeekSummary, TimerMode
from lifeos.persistence.store import LifeStore


class FocusSummaryGenerator:
    """Aggregates completed focus sessions per day and per week.

    Break sessions are stored in the ledger but never count towards
    focus minutes or XP.
    """

    def __init__(self, store: LifeStore, xp_per_minute: int = XP_PER_MINUTE) -> None:
        self.store = store
        self.xp_per_minute = xp_per_minute

    def daily_summary(self, day: date) -> FocusDaySummary:
        start = datetime.combine(day, time.min)
        end = start + timedelta(days=1)
        sessions = [
            s for s in self.store.get_sessions(start, end) if s.mode == TimerMode.FOCUS
        ]

        by_task: dict[str, int] = {}
        for session in sessions:
            key = session.task_id or ""
            by_task[key] = by_task.get(key, 0) + session.minutes

        total = sum(s.minutes for s in sessions)
        xp = sum(xp_for_focus(s.minutes, self.xp_per_minute) for s in sessions)
        return FocusDaySummary(
            date=day,
            sessions=sessions,
            total_minutes=total,
            minutes_by_task=_sorted_by_minutes(by_task),
            xp_earned=xp,
        )

    def weekly_summary(self, start_date: date) -> FocusWeekSummary:
        """Summarise the 7 days starting at *start_date*."""
        days = [self.daily_summary(start_date + timedelta(days=i)) for i in range(7)]

        by_task: dict[str, int] = {}
        for day in days:
            for task, minutes in day.minutes_by_task.items():
                by_task[task] = by_task.get(task, 0) + minutes

        return FocusWeekSummary(
            start_date=start_date,
            end_date=start_date + timedelta(days=6),
            daily_breakdowns=days,
            total_minutes=sum(d.total_minutes for d in days),
            total_sessions=sum(len(d.sessions) for d in days),
            minutes_by_task=_sorted_by_minutes(by_task),
            xp_earned=sum(d.xp_earned for d in days),
        )


def _sorted_by_minutes(by_task: dict[str, int]) -> dict[str, int]:
    return dict(sorted(by_task.items(), key=lambda kv: (-kv[1], kv[0])))
