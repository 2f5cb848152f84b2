"""Unit tests for RRULE generation, validation, description and expansion."""

import time
from datetime import date, datetime, timedelta, timezone

import pytest
from dateutil import tz

from lifeos.core.models import (
    EventException,
    ExceptionStatus,
    RecurrenceEndType,
    RecurrencePreset,
    RecurringEvent,
)
from lifeos.core.recurrence import describe, expand, generate_rule, is_valid_rule, ordinal


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------

THURSDAY = date(2025, 1, 9)


def _event(rule=None, start=datetime(2025, 1, 9, 9, 0), minutes=60, **overrides) -> RecurringEvent:
    kwargs = dict(
        id="ev1",
        title="Standup",
        start=start,
        end=start + timedelta(minutes=minutes),
        recurrence_rule=rule,
    )
    kwargs.update(overrides)
    return RecurringEvent(**kwargs)


def _starts(instances):
    return [i.start for i in instances]


# ------------------------------------------------------------------
# generate_rule
# ------------------------------------------------------------------

class TestGenerateRule:
    @pytest.mark.parametrize(
        "preset, expected",
        [
            (RecurrencePreset.DAILY, "FREQ=DAILY"),
            (RecurrencePreset.WEEKLY, "FREQ=WEEKLY;BYDAY=TH"),
            (RecurrencePreset.MONTHLY, "FREQ=MONTHLY;BYDAY=2TH"),
            (RecurrencePreset.YEARLY, "FREQ=YEARLY"),
            (RecurrencePreset.WEEKDAY, "FREQ=WEEKLY;BYDAY=MO,TU,WE,TH,FR"),
        ],
    )
    def test_presets(self, preset, expected):
        assert generate_rule(preset, THURSDAY) == expected

    def test_accepts_preset_names(self):
        assert generate_rule("WEEKLY", THURSDAY) == "FREQ=WEEKLY;BYDAY=TH"

    @pytest.mark.parametrize("preset", [RecurrencePreset.NONE, RecurrencePreset.CUSTOM])
    def test_no_rule_presets(self, preset):
        assert generate_rule(preset, THURSDAY) is None

    def test_unknown_preset(self):
        assert generate_rule("FORTNIGHTLY", THURSDAY) is None

    def test_monthly_uses_nth_weekday_of_start(self):
        assert generate_rule("MONTHLY", date(2025, 1, 1)) == "FREQ=MONTHLY;BYDAY=1WE"
        assert generate_rule("MONTHLY", date(2025, 1, 29)) == "FREQ=MONTHLY;BYDAY=5WE"

    def test_after_count(self):
        rule = generate_rule("DAILY", THURSDAY, RecurrenceEndType.AFTER_COUNT, 10)
        assert rule == "FREQ=DAILY;COUNT=10"

    def test_count_clamped_to_one(self):
        assert generate_rule("DAILY", THURSDAY, "AFTER_COUNT", 0) == "FREQ=DAILY;COUNT=1"

    def test_invalid_count_ignored(self):
        assert generate_rule("DAILY", THURSDAY, "AFTER_COUNT", "many") == "FREQ=DAILY"

    @pytest.mark.parametrize(
        "until",
        ["2030-12-25", date(2030, 12, 25), datetime(2030, 12, 25, 8, 30)],
    )
    def test_on_date(self, until):
        rule = generate_rule("YEARLY", date(2025, 12, 25), RecurrenceEndType.ON_DATE, until)
        assert rule == "FREQ=YEARLY;UNTIL=20301225T235959"

    def test_invalid_until_ignored(self):
        assert generate_rule("DAILY", THURSDAY, "ON_DATE", "someday") == "FREQ=DAILY"

    def test_never_ignores_end_value(self):
        assert generate_rule("DAILY", THURSDAY, "NEVER", 5) == "FREQ=DAILY"

    def test_generated_rules_are_valid(self):
        for preset in ("DAILY", "WEEKLY", "MONTHLY", "YEARLY", "WEEKDAY"):
            assert is_valid_rule(generate_rule(preset, THURSDAY, "AFTER_COUNT", 3))
            assert is_valid_rule(generate_rule(preset, THURSDAY, "ON_DATE", "2026-01-01"))


# ------------------------------------------------------------------
# is_valid_rule
# ------------------------------------------------------------------

class TestIsValidRule:
    @pytest.mark.parametrize(
        "rule",
        ["FREQ=WEEKLY;BYDAY=TH", "RRULE:FREQ=DAILY;INTERVAL=2", "FREQ=MONTHLY;BYDAY=-1FR"],
    )
    def test_valid(self, rule):
        assert is_valid_rule(rule) is True

    @pytest.mark.parametrize(
        "rule",
        [None, "", "   ", "garbage", "FREQ=SOMETIMES", "COUNT=3", "FREQ=DAILY;BYDAY=XX"],
    )
    def test_invalid(self, rule):
        assert is_valid_rule(rule) is False

    @pytest.mark.parametrize(
        "rule",
        [
            "FREQ=DAILY;INTERVAL=0",
            "FREQ=DAILY;INTERVAL=-2",
            "FREQ=DAILY;COUNT=0",
            "FREQ=DAILY;COUNT=-1",
            "FREQ=YEARLY;BYMONTH=13",
            "FREQ=YEARLY;BYMONTH=-1",
            "FREQ=MONTHLY;BYMONTHDAY=40",
            "FREQ=MONTHLY;BYMONTHDAY=0",
            "FREQ=YEARLY;BYWEEKNO=60",
            "FREQ=YEARLY;BYYEARDAY=-367",
        ],
    )
    def test_out_of_range_values(self, rule):
        assert is_valid_rule(rule) is False

    @pytest.mark.parametrize("rule", ["FREQ=HOURLY", "FREQ=MINUTELY", "FREQ=SECONDLY"])
    def test_sub_daily_frequencies(self, rule):
        assert is_valid_rule(rule) is False

    def test_month_day_that_never_occurs(self):
        assert is_valid_rule("FREQ=YEARLY;BYMONTH=2;BYMONTHDAY=30") is False
        assert is_valid_rule("FREQ=YEARLY;BYMONTH=4,6;BYMONTHDAY=31") is False

    def test_month_day_that_fits_some_month(self):
        assert is_valid_rule("FREQ=YEARLY;BYMONTH=2;BYMONTHDAY=29") is True
        assert is_valid_rule("FREQ=YEARLY;BYMONTH=4,5;BYMONTHDAY=31") is True
        assert is_valid_rule("FREQ=MONTHLY;BYMONTHDAY=-1") is True

    @pytest.mark.parametrize("rule", [5, ["FREQ=DAILY"], {"FREQ": "DAILY"}])
    def test_non_string(self, rule):
        assert is_valid_rule(rule) is False


# ------------------------------------------------------------------
# describe
# ------------------------------------------------------------------

class TestDescribe:
    @pytest.mark.parametrize(
        "rule, start, expected",
        [
            (None, THURSDAY, "does not repeat"),
            ("FREQ=DAILY", THURSDAY, "every day"),
            ("FREQ=DAILY;INTERVAL=3", THURSDAY, "every 3 days"),
            ("FREQ=WEEKLY;BYDAY=MO,TU,WE,TH,FR", THURSDAY, "every weekday (Monday to Friday)"),
            ("FREQ=WEEKLY;BYDAY=TH", THURSDAY, "every week on Thursday"),
            ("FREQ=WEEKLY;BYDAY=MO,WE", THURSDAY, "every week on Monday and Wednesday"),
            ("FREQ=WEEKLY;INTERVAL=2", THURSDAY, "every 2 weeks on Thursday"),
            ("FREQ=MONTHLY;BYDAY=2TH", THURSDAY, "every month on the 2nd Thursday"),
            ("FREQ=MONTHLY;BYDAY=-1FR", THURSDAY, "every month on the last Friday"),
            ("FREQ=MONTHLY", THURSDAY, "every month on the 9th"),
            ("FREQ=YEARLY", date(2025, 12, 25), "every year on December 25"),
            ("FREQ=DAILY;COUNT=10", THURSDAY, "every day, 10 times"),
            (
                "FREQ=YEARLY;UNTIL=20301225T235959",
                date(2025, 12, 25),
                "every year on December 25, until December 25, 2030",
            ),
            ("FREQ=HOURLY", THURSDAY, "invalid recurrence"),
            ("FREQ=DAILY;BYHOUR=9,17", THURSDAY, "custom recurrence"),
            ("nonsense", THURSDAY, "invalid recurrence"),
        ],
    )
    def test_descriptions(self, rule, start, expected):
        assert describe(rule, start) == expected

    def test_round_trips_generated_rules(self):
        rule = generate_rule("MONTHLY", THURSDAY, "AFTER_COUNT", 6)
        assert describe(rule, THURSDAY) == "every month on the 2nd Thursday, 6 times"

    @pytest.mark.parametrize(
        "n, expected",
        [(1, "1st"), (2, "2nd"), (3, "3rd"), (4, "4th"), (11, "11th"), (12, "12th"),
         (13, "13th"), (21, "21st"), (22, "22nd"), (23, "23rd"), (31, "31st")],
    )
    def test_ordinal(self, n, expected):
        assert ordinal(n) == expected


# ------------------------------------------------------------------
# expand: non-recurring
# ------------------------------------------------------------------

class TestExpandSingle:
    def test_single_event_is_one_instance(self):
        event = _event()
        instances = expand(event, datetime(2025, 1, 1), datetime(2025, 1, 31))
        assert len(instances) == 1
        assert instances[0].id == "ev1"
        assert instances[0].is_recurring_instance is False

    def test_single_event_ignores_window(self):
        event = _event()
        instances = expand(event, datetime(2030, 1, 1), datetime(2030, 1, 2))
        assert len(instances) == 1
        assert instances[0].start == event.start


# ------------------------------------------------------------------
# expand: recurring
# ------------------------------------------------------------------

class TestExpandRecurring:
    def test_weekly_in_month(self):
        event = _event("FREQ=WEEKLY;BYDAY=TH")
        instances = expand(event, datetime(2025, 1, 1), datetime(2025, 1, 31, 23, 59))
        assert [d.day for d in _starts(instances)] == [9, 16, 23, 30]
        assert all(i.is_recurring_instance for i in instances)
        assert all(i.parent_event_id == "ev1" for i in instances)
        assert all(i.end - i.start == timedelta(hours=1) for i in instances)

    def test_instance_ids_are_unique_and_stable(self):
        event = _event("FREQ=DAILY")
        window = (datetime(2025, 1, 9), datetime(2025, 1, 20))
        first = [i.id for i in expand(event, *window)]
        second = [i.id for i in expand(event, *window)]
        assert first == second
        assert len(set(first)) == len(first)
        assert first[0] == "ev1-2025-01-09T09:00:00"

    def test_first_occurrence_is_event_start(self):
        event = _event("FREQ=WEEKLY;BYDAY=TH")
        instances = expand(event, datetime(2025, 1, 1), datetime(2025, 2, 1))
        assert instances[0].start == event.start
        assert instances[0].occurrence == event.start

    def test_starts_are_sorted_and_not_before_series(self):
        event = _event("FREQ=WEEKLY;BYDAY=MO,WE,FR")
        starts = _starts(expand(event, datetime(2024, 12, 1), datetime(2025, 3, 1)))
        assert starts == sorted(starts)
        assert min(starts) >= event.start

    def test_window_filters_occurrences(self):
        event = _event("FREQ=DAILY", start=datetime(2025, 1, 1, 9, 0))
        instances = expand(event, datetime(2025, 3, 1), datetime(2025, 3, 3, 23, 59))
        assert [d.date() for d in _starts(instances)] == [
            date(2025, 3, 1), date(2025, 3, 2), date(2025, 3, 3),
        ]

    def test_occurrence_overlapping_window_start_is_included(self):
        event = _event("FREQ=DAILY", start=datetime(2025, 1, 9, 23, 0), minutes=120)
        instances = expand(event, datetime(2025, 1, 10, 0, 30), datetime(2025, 1, 10, 12, 0))
        assert _starts(instances) == [datetime(2025, 1, 9, 23, 0)]

    def test_window_before_series_is_empty(self):
        event = _event("FREQ=DAILY")
        assert expand(event, datetime(2024, 1, 1), datetime(2024, 12, 31)) == []

    def test_count_limits_series(self):
        event = _event("FREQ=DAILY;COUNT=3")
        instances = expand(event, datetime(2025, 1, 1), datetime(2025, 12, 31))
        assert [d.day for d in _starts(instances)] == [9, 10, 11]

    def test_count_counts_from_series_start(self):
        event = _event("FREQ=DAILY;COUNT=3")
        instances = expand(event, datetime(2025, 1, 11), datetime(2025, 12, 31))
        assert [d.day for d in _starts(instances)] == [11]

    def test_until_is_inclusive(self):
        event = _event("FREQ=DAILY;UNTIL=20250112T235959")
        instances = expand(event, datetime(2025, 1, 1), datetime(2025, 12, 31))
        assert [d.day for d in _starts(instances)] == [9, 10, 11, 12]

    def test_generated_until_rule(self):
        rule = generate_rule("WEEKLY", THURSDAY, "ON_DATE", "2025-01-23")
        instances = expand(_event(rule), datetime(2025, 1, 1), datetime(2025, 12, 31))
        assert [d.day for d in _starts(instances)] == [9, 16, 23]

    def test_monthly_nth_weekday(self):
        event = _event("FREQ=MONTHLY;BYDAY=2TH")
        starts = _starts(expand(event, datetime(2025, 1, 1), datetime(2025, 4, 30)))
        assert [d.date() for d in starts] == [
            date(2025, 1, 9), date(2025, 2, 13), date(2025, 3, 13), date(2025, 4, 10),
        ]

    def test_weekday_preset_skips_weekends(self):
        event = _event("FREQ=WEEKLY;BYDAY=MO,TU,WE,TH,FR")
        starts = _starts(expand(event, datetime(2025, 1, 9), datetime(2025, 1, 16, 23, 59)))
        assert all(d.weekday() < 5 for d in starts)
        assert len(starts) == 6

    def test_max_instances_caps_output(self):
        event = _event("FREQ=DAILY")
        instances = expand(event, datetime(2025, 1, 1), datetime(2025, 12, 31), max_instances=5)
        assert len(instances) == 5

    def test_open_ended_series_reaches_far_windows(self):
        event = _event("FREQ=YEARLY")
        instances = expand(event, datetime(2040, 1, 1), datetime(2040, 12, 31))
        assert _starts(instances) == [datetime(2040, 1, 9, 9, 0)]

    def test_rrule_prefix_accepted(self):
        event = _event("RRULE:FREQ=DAILY;COUNT=2")
        assert len(expand(event, datetime(2025, 1, 1), datetime(2025, 2, 1))) == 2


# ------------------------------------------------------------------
# expand: exceptions
# ------------------------------------------------------------------

class TestExpandExceptions:
    def test_cancelled_occurrence_is_skipped(self):
        event = _event("FREQ=WEEKLY;BYDAY=TH")
        exc = EventException(parent_event_id="ev1", original_start=datetime(2025, 1, 16, 9, 0))
        instances = expand(event, datetime(2025, 1, 1), datetime(2025, 1, 31), [exc])
        assert [d.day for d in _starts(instances)] == [9, 23, 30]

    def test_modified_occurrence_is_skipped(self):
        event = _event("FREQ=DAILY;COUNT=3")
        exc = EventException(
            parent_event_id="ev1",
            original_start=datetime(2025, 1, 10, 9, 0),
            status=ExceptionStatus.MODIFIED,
            start=datetime(2025, 1, 10, 14, 0),
        )
        instances = expand(event, datetime(2025, 1, 1), datetime(2025, 1, 31), [exc])
        assert [d.day for d in _starts(instances)] == [9, 11]

    def test_exceptions_of_other_events_ignored(self):
        event = _event("FREQ=DAILY;COUNT=3")
        exc = EventException(parent_event_id="other", original_start=datetime(2025, 1, 10, 9, 0))
        assert len(expand(event, datetime(2025, 1, 1), datetime(2025, 1, 31), [exc])) == 3

    def test_non_matching_original_start_ignored(self):
        event = _event("FREQ=DAILY;COUNT=3")
        exc = EventException(parent_event_id="ev1", original_start=datetime(2025, 1, 10, 10, 0))
        assert len(expand(event, datetime(2025, 1, 1), datetime(2025, 1, 31), [exc])) == 3


# ------------------------------------------------------------------
# expand: malformed rules and time zones
# ------------------------------------------------------------------

class TestExpandEdgeCases:
    @pytest.mark.parametrize("rule", ["garbage", "FREQ=NEVER", "COUNT=3"])
    def test_malformed_rule_falls_back_to_single_instance(self, rule):
        event = _event(rule)
        instances = expand(event, datetime(2025, 1, 1), datetime(2025, 1, 31))
        assert len(instances) == 1
        assert instances[0].id == "ev1"
        assert instances[0].start == event.start

    @pytest.mark.parametrize(
        "rule",
        [
            "FREQ=DAILY;INTERVAL=0",
            "FREQ=DAILY;COUNT=-1",
            "FREQ=YEARLY;BYMONTH=13",
            "FREQ=MONTHLY;BYMONTHDAY=40",
            "FREQ=YEARLY;BYWEEKNO=60",
        ],
    )
    def test_out_of_range_rule_falls_back_to_single_instance(self, rule):
        event = _event(rule)
        instances = expand(event, datetime(2025, 1, 1), datetime(2025, 1, 31))
        assert [i.id for i in instances] == ["ev1"]
        assert instances[0].is_recurring_instance is False

    @pytest.mark.parametrize(
        "rule",
        ["FREQ=HOURLY;BYMONTH=2;BYMONTHDAY=30", "FREQ=DAILY;BYMONTH=2;BYMONTHDAY=30"],
    )
    def test_impossible_rule_falls_back_quickly(self, rule):
        began = time.monotonic()
        instances = expand(_event(rule), datetime(2025, 1, 1), datetime(2025, 12, 31))
        assert time.monotonic() - began < 1
        assert [i.id for i in instances] == ["ev1"]

    def test_rule_with_no_occurrences_stops_at_horizon(self):
        # ISO week 1 never lands in June
        event = _event("FREQ=DAILY;BYWEEKNO=1;BYMONTH=6")
        began = time.monotonic()
        instances = expand(event, datetime(2025, 1, 1), datetime(2025, 12, 31))
        assert time.monotonic() - began < 1
        assert instances == []

    def test_aware_event_keeps_zone(self):
        start = datetime(2025, 1, 9, 9, 0, tzinfo=timezone.utc)
        event = _event("FREQ=DAILY;COUNT=3", start=start)
        instances = expand(
            event,
            datetime(2025, 1, 1, tzinfo=timezone.utc),
            datetime(2025, 1, 31, tzinfo=timezone.utc),
        )
        assert len(instances) == 3
        assert all(i.start.tzinfo is timezone.utc for i in instances)
        assert [i.start.hour for i in instances] == [9, 9, 9]

    def test_wall_clock_time_kept_across_dst(self):
        ny = tz.gettz("America/New_York")
        start = datetime(2025, 3, 7, 9, 0, tzinfo=ny)
        event = _event("FREQ=DAILY;COUNT=4", start=start)
        instances = expand(
            event,
            datetime(2025, 3, 1, tzinfo=ny),
            datetime(2025, 3, 31, tzinfo=ny),
        )
        assert [i.start.hour for i in instances] == [9, 9, 9, 9]
        offsets = {i.start.utcoffset() for i in instances}
        assert len(offsets) == 2

    def test_utc_until_with_aware_start(self):
        start = datetime(2025, 1, 9, 9, 0, tzinfo=timezone.utc)
        event = _event("FREQ=DAILY;UNTIL=20250111T235959Z", start=start)
        instances = expand(
            event,
            datetime(2025, 1, 1, tzinfo=timezone.utc),
            datetime(2025, 1, 31, tzinfo=timezone.utc),
        )
        assert [i.start.day for i in instances] == [9, 10, 11]

    def test_aware_exception_matches_aware_event(self):
        start = datetime(2025, 1, 9, 9, 0, tzinfo=timezone.utc)
        event = _event("FREQ=DAILY;COUNT=3", start=start)
        exc = EventException(
            parent_event_id="ev1",
            original_start=datetime(2025, 1, 10, 9, 0, tzinfo=timezone.utc),
        )
        instances = expand(
            event,
            datetime(2025, 1, 1, tzinfo=timezone.utc),
            datetime(2025, 1, 31, tzinfo=timezone.utc),
            [exc],
        )
        assert [i.start.day for i in instances] == [9, 11]
