"""Text formatter for LifeOS reports.

Renders focus summaries, the XP profile and the calendar agenda as
aligned plain text, and provides duration format/parse utilities.
"""

import re
from datetime import timedelta

from lifeos.core.gamification import level_title, xp_for_next_level
from lifeos.core.models import EventInstance, FocusDaySummary, FocusWeekSummary, UserProfile
from lifeos.core.recurrence import describe

NO_TASK_LABEL = "(no task)"


class TextFormatter:
    """Formats LifeOS data as human-readable plain text."""

    # "2h 15m", "2h", "15m", "0m"
    _DURATION_RE = re.compile(
        r"^\s*(?:(\d+)h)?\s*(?:(\d+)m)?\s*$"
    )

    @staticmethod
    def format_duration(duration: timedelta) -> str:
        """Format a timedelta as 'Xh Ym' (e.g., '2h 15m').

        Truncates to whole minutes. Returns '0m' for zero/negative durations.
        """
        total_minutes = max(0, int(duration.total_seconds())) // 60
        hours, minutes = divmod(total_minutes, 60)
        if hours == 0:
            return f"{minutes}m"
        return f"{hours}h {minutes}m"

    @staticmethod
    def parse_duration(text: str) -> timedelta:
        """Parse 'Xh Ym', 'Xh', or 'Ym' back to a timedelta.

        Raises ValueError if the text doesn't match the expected format.
        """
        match = TextFormatter._DURATION_RE.match(text)
        if not match or (match.group(1) is None and match.group(2) is None):
            raise ValueError(f"Invalid duration format: {text!r}")

        hours = int(match.group(1)) if match.group(1) else 0
        minutes = int(match.group(2)) if match.group(2) else 0
        return timedelta(hours=hours, minutes=minutes)

    @staticmethod
    def format_timer(seconds: int) -> str:
        """Countdown display, e.g. 1500 -> '25:00'."""
        seconds = max(0, int(seconds))
        return f"{seconds // 60:02d}:{seconds % 60:02d}"

    @staticmethod
    def _format_task_table(by_task: dict[str, int], total_minutes: int) -> str:
        """Render minutes per task with aligned columns.

          Task                Time
          ────────────────────────
          Write report      1h 15m
          (no task)            25m
          ────────────────────────
          Total             1h 40m
        """
        if not by_task:
            return "  No focus sessions recorded.\n"

        labels = [task or NO_TASK_LABEL for task in by_task]
        durations = [
            TextFormatter.format_duration(timedelta(minutes=m)) for m in by_task.values()
        ]
        total_str = TextFormatter.format_duration(timedelta(minutes=total_minutes))

        label_width = max(len(s) for s in labels + ["Task", "Total"])
        dur_width = max(len(s) for s in durations + [total_str, "Time"])

        header = f"  {'Task':<{label_width}}  {'Time':>{dur_width}}"
        separator = "  " + "─" * (len(header) - 2)

        lines = [header, separator]
        for label, dur in zip(labels, durations):
            lines.append(f"  {label:<{label_width}}  {dur:>{dur_width}}")
        lines.append(separator)
        lines.append(f"  {'Total':<{label_width}}  {total_str:>{dur_width}}")
        return "\n".join(lines) + "\n"

    @staticmethod
    def format_daily(summary: FocusDaySummary) -> str:
        header = f"Focus Summary: {summary.date.strftime('%A, %B %d, %Y')}\n"
        stats = (
            f"  Sessions: {len(summary.sessions)}   "
            f"XP earned: {summary.xp_earned}\n"
        )
        body = TextFormatter._format_task_table(summary.minutes_by_task, summary.total_minutes)
        return header + stats + "\n" + body

    @staticmethod
    def format_weekly(summary: FocusWeekSummary) -> str:
        start_str = summary.start_date.strftime("%B %d, %Y")
        end_str = summary.end_date.strftime("%B %d, %Y")
        parts: list[str] = [f"Weekly Focus Summary: {start_str} - {end_str}\n"]

        parts.append(
            f"  Sessions: {summary.total_sessions}   XP earned: {summary.xp_earned}\n"
        )
        parts.append("\nWeekly Totals:\n")
        parts.append(
            TextFormatter._format_task_table(summary.minutes_by_task, summary.total_minutes)
        )

        parts.append("\nDaily Breakdown:\n")
        for daily in summary.daily_breakdowns:
            day_label = daily.date.strftime("%A, %B %d")
            if not daily.sessions:
                parts.append(f"\n  {day_label}: No focus sessions\n")
            else:
                parts.append(f"\n  {day_label}:\n")
                parts.append(
                    TextFormatter._format_task_table(daily.minutes_by_task, daily.total_minutes)
                )

        return "".join(parts)

    @staticmethod
    def format_profile(profile: UserProfile) -> str:
        focus = TextFormatter.format_duration(timedelta(minutes=profile.focus_minutes))
        return (
            f"Level {profile.level} ({level_title(profile.level)})\n"
            f"  XP: {profile.xp} / {xp_for_next_level(profile.level)}\n"
            f"  Focus time: {focus}\n"
            f"  Sessions completed: {profile.sessions_completed}\n"
        )

    @staticmethod
    def format_agenda(instances: list[EventInstance]) -> str:
        """List occurrences grouped by day."""
        if not instances:
            return "No events scheduled.\n"

        lines: list[str] = []
        current_day = None
        for inst in instances:
            day = inst.start.date()
            if day != current_day:
                if current_day is not None:
                    lines.append("")
                lines.append(inst.start.strftime("%A, %B %d, %Y"))
                current_day = day

            if inst.all_day:
                when = "All day"
            else:
                when = f"{inst.start.strftime('%H:%M')}-{inst.end.strftime('%H:%M')}"
            line = f"  {when:<11}  {inst.title}"
            if inst.recurrence_rule:
                line += f"  ({describe(inst.recurrence_rule, inst.start)})"
            lines.append(line)

        return "\n".join(lines) + "\n"
