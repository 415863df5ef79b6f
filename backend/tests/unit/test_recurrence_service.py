"""Tests for recurrence expansion and description."""

from datetime import datetime, timedelta, timezone
from itertools import islice

import pytest

from services.exceptions import InvalidRecurrence
from services.recurrence_service import (
    SHORTHAND_CRON,
    describe_recurrence,
    expand,
    normalize_recurrence,
    recurrence_to_cron,
    validate_recurrence,
)


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


class TestNormalize:
    def test_shorthands_resolve_to_cron(self):
        assert normalize_recurrence("daily") == "0 9 * * *"
        assert normalize_recurrence("Weekly") == "0 9 * * 1"
        assert normalize_recurrence("  quarterly ") == "0 9 1 */3 *"

    def test_cron_whitespace_is_collapsed(self):
        assert normalize_recurrence("30  8 *  * 1-5") == "30 8 * * 1-5"

    @pytest.mark.parametrize("spec", ["", "   ", "fortnightly", "0 9 * *", "0 9 * * * *"])
    def test_malformed_specs_rejected(self, spec):
        with pytest.raises(InvalidRecurrence):
            normalize_recurrence(spec)

    @pytest.mark.parametrize("spec", ["61 9 * * *", "0 25 * * *", "0 9 32 * *", "0 9 * 13 *", "0 9 * * 8"])
    def test_out_of_range_fields_rejected(self, spec):
        with pytest.raises(InvalidRecurrence):
            validate_recurrence(spec)

    def test_validate_returns_canonical_form(self):
        assert validate_recurrence("monthly") == "0 9 1 * *"


class TestExpand:
    """Expansion over windows covering at least one full period."""

    def test_daily_yields_one_occurrence_per_day_at_nine(self):
        result = list(expand("daily", utc(2024, 1, 1), utc(2024, 1, 7, 23, 59)))

        assert len(result) == 7
        assert all(r.hour == 9 and r.minute == 0 for r in result)
        assert [r.day for r in result] == [1, 2, 3, 4, 5, 6, 7]

    def test_weekly_fires_on_mondays(self):
        result = list(expand("weekly", utc(2024, 1, 1), utc(2024, 1, 31)))

        assert [r.day for r in result] == [1, 8, 15, 22, 29]
        assert all(r.weekday() == 0 for r in result)

    def test_monthly_fires_on_the_first(self):
        result = list(expand("monthly", utc(2024, 1, 1), utc(2024, 6, 30)))

        assert [(r.month, r.day) for r in result] == [(m, 1) for m in range(1, 7)]

    def test_quarterly_fires_every_three_months(self):
        result = list(expand("quarterly", utc(2024, 1, 1), utc(2024, 12, 31)))

        assert [r.month for r in result] == [1, 4, 7, 10]

    def test_yearly_fires_on_january_first(self):
        result = list(expand("yearly", utc(2023, 6, 1), utc(2026, 6, 1)))

        assert [(r.year, r.month, r.day) for r in result] == [(2024, 1, 1), (2025, 1, 1), (2026, 1, 1)]

    def test_every_minute(self):
        result = list(expand("every-minute", utc(2024, 1, 1, 12, 0), utc(2024, 1, 1, 12, 4)))

        assert len(result) == 5

    @pytest.mark.parametrize("spec", sorted(SHORTHAND_CRON))
    def test_every_shorthand_is_non_empty_over_a_full_period(self, spec):
        result = list(islice(expand(spec, utc(2024, 1, 1), utc(2025, 1, 1)), 10))

        assert result

    def test_window_bounds_are_inclusive(self):
        result = list(expand("daily", utc(2024, 1, 1, 9), utc(2024, 1, 2, 9)))

        assert result == [utc(2024, 1, 1, 9), utc(2024, 1, 2, 9)]

    def test_results_are_strictly_increasing_utc(self):
        result = list(expand("0 */6 * * *", utc(2024, 1, 1), utc(2024, 1, 3)))

        assert all(r.tzinfo is not None and r.utcoffset() == timedelta(0) for r in result)
        assert all(a < b for a, b in zip(result, result[1:]))

    def test_cron_sunday_is_zero_and_seven(self):
        sundays_zero = list(expand("0 9 * * 0", utc(2024, 1, 1), utc(2024, 1, 31)))
        sundays_seven = list(expand("0 9 * * 7", utc(2024, 1, 1), utc(2024, 1, 31)))

        assert [r.day for r in sundays_zero] == [7, 14, 21, 28]
        assert sundays_zero == sundays_seven

    def test_weekday_range(self):
        result = list(expand("30 8 * * 1-5", utc(2024, 1, 1), utc(2024, 1, 7, 23)))

        assert [r.day for r in result] == [1, 2, 3, 4, 5]

    def test_empty_window_yields_nothing(self):
        assert list(expand("monthly", utc(2024, 1, 2), utc(2024, 1, 31))) == []

    def test_limit_caps_the_sequence(self):
        result = list(expand("daily", utc(2024, 1, 1), utc(2024, 12, 31), limit=3))

        assert len(result) == 3

    def test_naive_bounds_are_treated_as_utc(self):
        result = list(expand("daily", datetime(2024, 1, 1), datetime(2024, 1, 2)))

        assert result == [utc(2024, 1, 1, 9)]

    def test_invalid_spec_raises_before_iteration(self):
        with pytest.raises(InvalidRecurrence):
            expand("0 9 * * funday", utc(2024, 1, 1), utc(2024, 2, 1))

    def test_start_after_end_rejected(self):
        with pytest.raises(ValueError):
            expand("daily", utc(2024, 2, 1), utc(2024, 1, 1))

    def test_expansion_is_restartable(self):
        first = list(expand("weekly", utc(2024, 1, 1), utc(2024, 2, 1)))
        second = list(expand("weekly", utc(2024, 1, 1), utc(2024, 2, 1)))

        assert first == second


class TestRecurrenceToCron:
    def test_day(self):
        assert recurrence_to_cron("Day", 9) == "0 9 * * *"

    def test_week_defaults_to_sunday(self):
        assert recurrence_to_cron("Week", 9, 30) == "30 9 * * 0"
        assert recurrence_to_cron("Week", 9, day_of_week=3) == "0 9 * * 3"

    def test_month_and_quarter(self):
        assert recurrence_to_cron("Month", 18, day_of_month=15) == "0 18 15 * *"
        assert recurrence_to_cron("Quarter", 9) == "0 9 1 */3 *"

    def test_hour_and_minute_are_clamped(self):
        assert recurrence_to_cron("Day", 30, 75) == "59 23 * * *"

    def test_unknown_period(self):
        with pytest.raises(InvalidRecurrence):
            recurrence_to_cron("Fortnight", 9)


class TestDescribe:
    @pytest.mark.parametrize(
        "spec,expected",
        [
            ("daily", "Daily at 9:00 AM"),
            ("weekly", "Weekly on Monday at 9:00 AM"),
            ("monthly", "Monthly on the 1st at 9:00 AM"),
            ("quarterly", "Monthly on the 1st at 9:00 AM every 3 months"),
            ("yearly", "Monthly on the 1st at 9:00 AM in January"),
            ("every-minute", "Every minute"),
            ("30 18 * * 0,6", "Weekly on Sunday, Saturday at 6:30 PM"),
            ("0 8 * * 1-5", "Weekly from Monday to Friday at 8:00 AM"),
            ("0 0 22 * *", "Monthly on the 22nd at 12:00 AM"),
        ],
    )
    def test_descriptions(self, spec, expected):
        assert describe_recurrence(spec) == expected

    def test_empty(self):
        assert describe_recurrence(None) == "No recurrence"
        assert describe_recurrence("") == "No recurrence"

    def test_steps_and_ranges_do_not_crash(self):
        assert describe_recurrence("*/15 9-17 */2 1-6 *").startswith("Monthly on the */2")
