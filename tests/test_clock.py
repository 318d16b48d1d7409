"""Tests for the clock and calendar adapter."""

from datetime import date, datetime, timedelta, timezone

import pytest

from nest_egg.clock import Calendar, DeterministicClock, add_months

UTC = timezone.utc
PLUS_TEN = timezone(timedelta(hours=10))


class TestAddMonths:
    def test_simple(self):
        assert add_months(datetime(2024, 1, 15, 9, 0), 1) == datetime(2024, 2, 15, 9, 0)

    def test_clamps_to_month_end(self):
        assert add_months(datetime(2024, 1, 31), 1) == datetime(2024, 2, 29)
        assert add_months(datetime(2023, 1, 31), 1) == datetime(2023, 2, 28)

    def test_year_rollover(self):
        assert add_months(datetime(2024, 12, 10), 1) == datetime(2025, 1, 10)

    def test_keeps_tzinfo(self):
        result = add_months(datetime(2024, 3, 5, tzinfo=PLUS_TEN), 2)
        assert result.tzinfo is PLUS_TEN


class TestCalendar:
    def test_localize_naive_is_local_wall_time(self):
        cal = Calendar(PLUS_TEN)
        result = cal.localize(datetime(2024, 1, 2, 8, 0))
        assert result.tzinfo is PLUS_TEN
        assert result.hour == 8

    def test_local_date_crosses_midnight(self):
        cal = Calendar(PLUS_TEN)
        # 20:00 UTC is 06:00 next day at +10
        assert cal.local_date(datetime(2024, 1, 1, 20, 0, tzinfo=UTC)) == date(2024, 1, 2)
        assert cal.local_hour(datetime(2024, 1, 1, 20, 0, tzinfo=UTC)) == 6

    def test_weekday_monday_zero(self):
        cal = Calendar(UTC)
        assert cal.weekday(datetime(2024, 1, 1, tzinfo=UTC)) == 0
        assert cal.weekday(datetime(2024, 1, 2, tzinfo=UTC)) == 1

    def test_days_between_uses_calendar_days(self):
        cal = Calendar(UTC)
        late = datetime(2024, 1, 1, 23, 59, tzinfo=UTC)
        early = datetime(2024, 1, 2, 0, 1, tzinfo=UTC)
        assert cal.days_between(late, early) == 1

    def test_month_key(self):
        cal = Calendar(PLUS_TEN)
        assert cal.month_key(datetime(2024, 1, 31, 20, 0, tzinfo=UTC)) == (2024, 2)

    def test_add_period_weekly(self):
        cal = Calendar(UTC)
        start = datetime(2024, 1, 1, 12, 0, tzinfo=UTC)
        assert cal.add_period(start, "weekly") == start + timedelta(days=7)

    def test_add_period_monthly(self):
        cal = Calendar(UTC)
        start = datetime(2024, 1, 31, 12, 0, tzinfo=UTC)
        assert cal.add_period(start, "monthly") == datetime(2024, 2, 29, 12, 0, tzinfo=UTC)

    def test_add_period_unknown(self):
        with pytest.raises(ValueError):
            Calendar(UTC).add_period(datetime(2024, 1, 1, tzinfo=UTC), "daily")


class TestDeterministicClock:
    def test_now_is_fixed(self):
        clock = DeterministicClock(datetime(2024, 1, 1, 12, 0, tzinfo=UTC))
        assert clock.now() == clock.now()

    def test_advance(self):
        clock = DeterministicClock(datetime(2024, 1, 1, 12, 0, tzinfo=UTC))
        clock.advance(days=2, hours=1)
        assert clock.now() == datetime(2024, 1, 3, 13, 0, tzinfo=UTC)

    def test_uses_given_zone(self):
        clock = DeterministicClock(datetime(2024, 1, 1, 0, 0, tzinfo=UTC), tz=PLUS_TEN)
        assert clock.now().tzinfo is PLUS_TEN
        assert clock.now().hour == 10
