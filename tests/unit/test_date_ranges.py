"""
Unit tests for business-day windows and the injectable clocks.
"""

from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest
from pydantic import ValidationError

from orderwatch.engine.date_ranges import DateRangeCalculator, FixedClock
from orderwatch.models.orders import DateRange
from tests.conftest import FIXED_NOW


class TestFixedClock:
    def test_naive_instant_is_utc(self):
        clock = FixedClock(datetime(2026, 3, 5, 14, 0))
        assert clock.now().tzinfo == timezone.utc

    def test_advance(self):
        clock = FixedClock(FIXED_NOW)
        clock.advance(minutes=16)
        assert clock.now() == FIXED_NOW + timedelta(minutes=16)


class TestDateRangeCalculator:
    def test_today_range_utc(self, clock):
        today = DateRangeCalculator(clock).today_range()

        assert today.start == datetime(2026, 3, 5, tzinfo=timezone.utc)
        assert today.end == datetime(2026, 3, 6, tzinfo=timezone.utc)
        assert today.contains(FIXED_NOW)

    def test_yesterday_is_adjacent(self, clock):
        calc = DateRangeCalculator(clock)
        today = calc.today_range()
        yesterday = calc.yesterday_range(today.start)

        assert yesterday.end == today.start
        assert yesterday.start == datetime(2026, 3, 4, tzinfo=timezone.utc)

    def test_half_open_bounds(self, clock):
        today = DateRangeCalculator(clock).today_range()

        assert today.contains(today.start)
        assert not today.contains(today.end)

    def test_business_timezone(self):
        # 02:00 UTC on March 5 is still March 4 in Mexico City (UTC-6)
        clock = FixedClock(datetime(2026, 3, 5, 2, 0, tzinfo=timezone.utc))
        today = DateRangeCalculator(clock, tz="America/Mexico_City").today_range()

        local_start = today.start.astimezone(ZoneInfo("America/Mexico_City"))
        assert (local_start.year, local_start.month, local_start.day) == (2026, 3, 4)
        assert today.start == datetime(2026, 3, 4, 6, 0, tzinfo=timezone.utc)

    def test_dst_day_is_23_hours(self):
        tz = ZoneInfo("America/New_York")
        clock = FixedClock(datetime(2026, 3, 8, 12, 0, tzinfo=tz))
        today = DateRangeCalculator(clock, tz="America/New_York").today_range()

        assert today.end - today.start == timedelta(hours=23)

    def test_trailing_window(self, clock):
        window = DateRangeCalculator(clock).trailing_window(7)

        assert window.end == FIXED_NOW
        assert window.start == FIXED_NOW - timedelta(days=7)

    def test_trailing_window_requires_a_day(self, clock):
        with pytest.raises(ValueError):
            DateRangeCalculator(clock).trailing_window(0)


class TestDateRange:
    def test_inverted_range_rejected(self):
        with pytest.raises(ValidationError):
            DateRange(start=FIXED_NOW, end=FIXED_NOW - timedelta(hours=1))

    def test_empty_range_rejected(self):
        with pytest.raises(ValidationError):
            DateRange(start=FIXED_NOW, end=FIXED_NOW)

    def test_naive_bounds_treated_as_utc(self):
        window = DateRange(start=datetime(2026, 3, 5), end=datetime(2026, 3, 6))
        assert window.start.tzinfo == timezone.utc
