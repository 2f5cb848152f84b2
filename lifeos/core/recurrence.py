"""Recurrence rules for calendar events.

Generates, validates, describes and expands iCalendar RRULE strings
(FREQ, INTERVAL, BYDAY, COUNT, UNTIL) using ``dateutil.rrule``.  The
calendar math lives in dateutil; this module only handles presets,
windowing, exceptions and instance synthesis.

Rules are stored without the ``RRULE:`` prefix, e.g. ``FREQ=WEEKLY;BYDAY=TH``.
"""

import logging
import math
import re
from datetime import date, datetime, time, timedelta, tzinfo
from typing import Iterable, Optional

from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta
from dateutil.rrule import rrule, rrulestr

from lifeos.core.models import (
    EventException,
    EventInstance,
    RecurrenceEndType,
    RecurrencePreset,
    RecurringEvent,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_INSTANCES = 365

# RRULE weekday codes indexed by ``date.weekday()`` (0 = Monday)
WEEKDAY_CODES = ["MO", "TU", "WE", "TH", "FR", "SA", "SU"]
WEEKDAY_NAMES = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]
WORKWEEK_BYDAY = "MO,TU,WE,TH,FR"

_FREQ_UNITS = {"DAILY": "day", "WEEKLY": "week", "MONTHLY": "month", "YEARLY": "year"}
_NTH_WEEKDAY_RE = re.compile(r"^([+-]?\d{1,2})(MO|TU|WE|TH|FR|SA|SU)$")
_UNTIL_RE = re.compile(r"^(\d{4})(\d{2})(\d{2})")

# RFC 5545 value ranges: (min |n|, max |n|, negatives allowed)
_BY_RANGES = {
    "BYMONTH": (1, 12, False),
    "BYMONTHDAY": (1, 31, True),
    "BYWEEKNO": (1, 53, True),
    "BYYEARDAY": (1, 366, True),
}
_MONTH_LENGTHS = [31, 29, 31, 30, 31, 30, 31, 31, 30, 31, 30, 31]

# Generation horizons (relative to the event's own start)
_OPEN_ENDED_HORIZON = relativedelta(years=1)
_COUNT_HORIZON = relativedelta(years=5)


# ---------------------------------------------------------------------------
# Generation
# ---------------------------------------------------------------------------

def generate_rule(
    preset: RecurrencePreset | str,
    start_date: date,
    end_type: RecurrenceEndType | str = RecurrenceEndType.NEVER,
    end_value: int | str | date | None = None,
) -> Optional[str]:
    """Build the RRULE body for a preset anchored on *start_date*.

    Returns ``None`` for ``NONE`` and ``CUSTOM`` (the user supplies the
    rule).  Examples::

        generate_rule("WEEKLY", date(2025, 1, 9))                  -> "FREQ=WEEKLY;BYDAY=TH"
        generate_rule("DAILY", d, "AFTER_COUNT", 10)               -> "FREQ=DAILY;COUNT=10"
        generate_rule("YEARLY", d, "ON_DATE", "2030-12-25")        -> "FREQ=YEARLY;UNTIL=20301225T235959"
    """
    try:
        preset = RecurrencePreset(preset)
        end_type = RecurrenceEndType(end_type)
    except ValueError:
        logger.warning("Unknown recurrence preset/end type: %r / %r", preset, end_type)
        return None

    weekday = WEEKDAY_CODES[start_date.weekday()]

    if preset == RecurrencePreset.DAILY:
        rule = "FREQ=DAILY"
    elif preset == RecurrencePreset.WEEKLY:
        rule = f"FREQ=WEEKLY;BYDAY={weekday}"
    elif preset == RecurrencePreset.MONTHLY:
        nth = math.ceil(start_date.day / 7)
        rule = f"FREQ=MONTHLY;BYDAY={nth}{weekday}"
    elif preset == RecurrencePreset.YEARLY:
        rule = "FREQ=YEARLY"
    elif preset == RecurrencePreset.WEEKDAY:
        rule = f"FREQ=WEEKLY;BYDAY={WORKWEEK_BYDAY}"
    else:
        return None

    if end_type == RecurrenceEndType.AFTER_COUNT and end_value is not None:
        try:
            count = max(1, int(end_value))
        except (TypeError, ValueError):
            logger.warning("Ignoring invalid occurrence count %r", end_value)
        else:
            rule += f";COUNT={count}"
    elif end_type == RecurrenceEndType.ON_DATE and end_value is not None:
        until = _coerce_date(end_value)
        if until is None:
            logger.warning("Ignoring invalid until date %r", end_value)
        else:
            # End of day so the until date itself is included
            rule += f";UNTIL={until.strftime('%Y%m%d')}T235959"

    return rule


def _coerce_date(value) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date_parser.isoparse(value).date()
        except ValueError:
            return None
    return None


# ---------------------------------------------------------------------------
# Validation and description
# ---------------------------------------------------------------------------

def is_valid_rule(rule: Optional[str]) -> bool:
    """Return whether *rule* is a usable RRULE (``RRULE:`` prefix optional).

    Besides parsing, the rule must use a supported FREQ, a positive
    INTERVAL and COUNT, BY* values inside their RFC 5545 ranges, and a
    BYMONTHDAY that fits at least one of its BYMONTH months.
    """
    if not isinstance(rule, str) or not rule.strip():
        return False
    try:
        _parse(rule, datetime(2000, 1, 1))
    except (ValueError, TypeError, OverflowError):
        return False
    return True


def describe(rule: Optional[str], start_date: date) -> str:
    """Short English description of *rule* for display.

    Handles every rule :func:`generate_rule` produces; anything else
    becomes "custom recurrence".
    """
    if not rule:
        return "does not repeat"
    if not is_valid_rule(rule):
        return "invalid recurrence"

    parts = _split_parts(rule)
    freq = parts.get("FREQ", "")
    byday = parts.get("BYDAY", "")
    try:
        interval = max(1, int(parts.get("INTERVAL", "1")))
    except ValueError:
        interval = 1
    weekday_name = WEEKDAY_NAMES[start_date.weekday()]
    extra_keys = set(parts) - {"FREQ", "INTERVAL", "BYDAY", "COUNT", "UNTIL", "WKST"}

    text = None
    if not extra_keys and freq in _FREQ_UNITS:
        unit = _FREQ_UNITS[freq]
        every = f"every {unit}" if interval == 1 else f"every {interval} {unit}s"

        if freq == "DAILY" and not byday:
            text = every
        elif freq == "WEEKLY" and byday == WORKWEEK_BYDAY and interval == 1:
            text = "every weekday (Monday to Friday)"
        elif freq == "WEEKLY":
            days = byday.split(",") if byday else [WEEKDAY_CODES[start_date.weekday()]]
            if all(d in WEEKDAY_CODES for d in days):
                names = [WEEKDAY_NAMES[WEEKDAY_CODES.index(d)] for d in days]
                text = f"{every} on {_join_names(names)}"
        elif freq == "MONTHLY":
            match = _NTH_WEEKDAY_RE.match(byday) if byday else None
            if match:
                nth = int(match.group(1))
                day_name = WEEKDAY_NAMES[WEEKDAY_CODES.index(match.group(2))]
                which = "last" if nth == -1 else ordinal(nth)
                text = f"{every} on the {which} {day_name}"
            elif not byday:
                text = f"{every} on the {ordinal(start_date.day)}"
        elif freq == "YEARLY" and not byday:
            text = f"{every} on {start_date.strftime('%B')} {start_date.day}"

    if text is None:
        text = "custom recurrence"

    if "COUNT" in parts:
        text += f", {parts['COUNT']} times"
    elif "UNTIL" in parts:
        match = _UNTIL_RE.match(parts["UNTIL"])
        if match:
            until = date(int(match.group(1)), int(match.group(2)), int(match.group(3)))
            text += f", until {until.strftime('%B')} {until.day}, {until.year}"
    return text


def ordinal(n: int) -> str:
    """1 -> '1st', 2 -> '2nd', 11 -> '11th', 23 -> '23rd'."""
    if 10 < n % 100 < 14:
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(n % 10, "th")
    return f"{n}{suffix}"


def _join_names(names: list[str]) -> str:
    if len(names) == 1:
        return names[0]
    return ", ".join(names[:-1]) + " and " + names[-1]


def _split_parts(rule: str) -> dict[str, str]:
    body = _strip_prefix(rule)
    parts: dict[str, str] = {}
    for pair in body.split(";"):
        if "=" in pair:
            key, value = pair.split("=", 1)
            parts[key.strip().upper()] = value.strip().upper()
    return parts


def _strip_prefix(rule: str) -> str:
    body = rule.strip()
    if body.upper().startswith("RRULE:"):
        body = body[len("RRULE:"):]
    return body


def _parse(rule: str, dtstart: datetime) -> rrule:
    """Parse an RRULE body against a naive *dtstart*.

    ``ignoretz`` keeps UNTIL naive too, so a ``...Z`` until never clashes
    with the naive wall-clock start.
    """
    parsed = rrulestr(_strip_prefix(rule), dtstart=dtstart, ignoretz=True)
    if not isinstance(parsed, rrule):
        raise ValueError(f"Expected a single RRULE, got {type(parsed).__name__}")
    _check_values(_split_parts(rule))
    return parsed


def _check_values(parts: dict[str, str]) -> None:
    """Reject rules dateutil accepts but that never, or endlessly, repeat."""
    freq = parts.get("FREQ", "")
    if freq not in _FREQ_UNITS:
        raise ValueError(f"Unsupported FREQ {freq!r}")
    for key in ("INTERVAL", "COUNT"):
        if key in parts and int(parts[key]) < 1:
            raise ValueError(f"{key} must be at least 1, got {parts[key]}")

    values = {key: _int_list(parts[key]) for key in _BY_RANGES if key in parts}
    for key, numbers in values.items():
        low, high, signed = _BY_RANGES[key]
        for n in numbers:
            if (n < 0 and not signed) or not low <= abs(n) <= high:
                raise ValueError(f"{key} value {n} out of range")

    if "BYMONTHDAY" in values:
        months = values.get("BYMONTH") or range(1, 13)
        longest = max(_MONTH_LENGTHS[m - 1] for m in months)
        if all(abs(n) > longest for n in values["BYMONTHDAY"]):
            raise ValueError("BYMONTHDAY never falls inside BYMONTH")


def _int_list(value: str) -> list[int]:
    return [int(v) for v in value.split(",") if v]


# ---------------------------------------------------------------------------
# Expansion
# ---------------------------------------------------------------------------

def expand(
    event: RecurringEvent,
    range_start: datetime,
    range_end: datetime,
    exceptions: Iterable[EventException] = (),
    max_instances: int = DEFAULT_MAX_INSTANCES,
) -> list[EventInstance]:
    """Expand *event* into the instances that overlap [range_start, range_end].

    A non-recurring event always yields exactly one instance (the event
    itself), whatever the window.  A malformed rule degrades the same way
    so a broken series never breaks the whole calendar.
    """
    if not event.recurrence_rule:
        return [EventInstance.from_event(event)]

    try:
        return _expand_recurring(event, range_start, range_end, exceptions, max_instances)
    except (ValueError, TypeError, OverflowError):
        logger.warning(
            "Failed to expand recurring event %s (%r); showing it once",
            event.id, event.recurrence_rule, exc_info=True,
        )
        return [EventInstance.from_event(event)]


def _expand_recurring(
    event: RecurringEvent,
    range_start: datetime,
    range_end: datetime,
    exceptions: Iterable[EventException],
    max_instances: int,
) -> list[EventInstance]:
    tz = event.start.tzinfo
    start = event.start.replace(tzinfo=None)
    duration = event.end - event.start
    window_start = _to_wall(range_start, tz)
    window_end = _to_wall(range_end, tz)
    limit = max(1, int(max_instances))

    rule = _parse(event.recurrence_rule, start)
    horizon = _generation_horizon(rule, start, window_end)
    if rule._until is None and rule._count is None:
        # dateutil stops searching at UNTIL rather than year 9999
        rule = rule.replace(until=horizon)

    skipped = {
        _to_wall(exc.original_start, tz)
        for exc in exceptions
        if exc.parent_event_id == event.id
    }

    instances: list[EventInstance] = []
    for occurrence in rule.xafter(start, inc=True):
        if occurrence > horizon or occurrence > window_end:
            break
        if occurrence + duration < window_start or occurrence in skipped:
            continue
        instances.append(_make_instance(event, occurrence.replace(tzinfo=tz), duration))
        if len(instances) >= limit:
            break
    return instances


def _generation_horizon(rule: rrule, start: datetime, window_end: datetime) -> datetime:
    """Latest occurrence start worth generating.

    An explicit UNTIL bounds the series itself; a COUNT series gets a long
    horizon and lets the count truncate; open-ended series run a year past
    their start, or further if the caller asks for a later window.
    """
    until = getattr(rule, "_until", None)
    if until is not None:
        return until
    if getattr(rule, "_count", None) is not None:
        return max(start + _COUNT_HORIZON, window_end)
    return max(start + _OPEN_ENDED_HORIZON, window_end)


def _make_instance(event: RecurringEvent, occurrence: datetime, duration: timedelta) -> EventInstance:
    return EventInstance(
        id=f"{event.id}-{occurrence.isoformat()}",
        title=event.title,
        start=occurrence,
        end=occurrence + duration,
        all_day=event.all_day,
        description=event.description,
        location=event.location,
        is_recurring_instance=True,
        parent_event_id=event.id,
        occurrence=occurrence,
        recurrence_rule=event.recurrence_rule,
    )


def _to_wall(value: datetime | date, tz: Optional[tzinfo]) -> datetime:
    """Express *value* as naive wall-clock time in the event's zone.

    Naive values are taken as already being in that zone; a naive event
    is treated as local time.
    """
    if not isinstance(value, datetime):
        value = datetime.combine(value, time.min)
    if value.tzinfo is None:
        return value
    if tz is None:
        return value.astimezone().replace(tzinfo=None)
    return value.astimezone(tz).replace(tzinfo=None)
