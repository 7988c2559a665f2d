"""
Date Range Calculator — Business-Day Windows.

Produces half-open [start, end) windows from an injectable clock, so every
aggregation pass is deterministic under test. "Today" is the local business
day of the configured timezone; the returned bounds are UTC instants.
"""

from datetime import datetime, time, timedelta, timezone, tzinfo
from typing import Optional, Protocol, Union
from zoneinfo import ZoneInfo

from orderwatch.models.orders import DateRange


class Clock(Protocol):
    """Source of the current instant."""

    def now(self) -> datetime:
        """Return the current timezone-aware instant."""
        ...


class SystemClock:
    """Wall clock."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock:
    """
    Clock frozen at a given instant; advance() moves it forward.

    Naive datetimes are interpreted as UTC.
    """

    def __init__(self, instant: datetime):
        self._instant = instant if instant.tzinfo else instant.replace(tzinfo=timezone.utc)

    def now(self) -> datetime:
        return self._instant

    def advance(self, **delta) -> None:
        """Move the clock forward by a timedelta expressed as keyword args."""
        self._instant = self._instant + timedelta(**delta)

    def set(self, instant: datetime) -> None:
        self._instant = instant if instant.tzinfo else instant.replace(tzinfo=timezone.utc)


class DateRangeCalculator:
    """
    Half-open window calculator bound to a clock and a business timezone.

    Example:
        >>> calc = DateRangeCalculator(FixedClock(datetime(2026, 3, 5, 14, 0)))
        >>> today = calc.today_range()
        >>> yesterday = calc.yesterday_range(today.start)
    """

    def __init__(self, clock: Optional[Clock] = None, tz: Union[str, tzinfo] = "UTC"):
        self.clock = clock or SystemClock()
        self.tz = ZoneInfo(tz) if isinstance(tz, str) else tz

    def _local_midnight(self, instant: datetime) -> datetime:
        local = instant.astimezone(self.tz)
        return datetime.combine(local.date(), time.min, tzinfo=self.tz)

    def today_range(self) -> DateRange:
        """Local midnight today to local midnight tomorrow."""
        start = self._local_midnight(self.clock.now())
        return DateRange(start=start, end=self._shift_days(start, 1))

    def yesterday_range(self, today_start: datetime) -> DateRange:
        """The business day before the one starting at today_start."""
        start = self._local_midnight(today_start)
        return DateRange(start=self._shift_days(start, -1), end=start)

    def trailing_window(self, days: int, anchor: Optional[datetime] = None) -> DateRange:
        """
        The ``days`` days ending at anchor, [anchor - days, anchor).

        Args:
            days: Window length in days (>= 1)
            anchor: Exclusive end (default: now)

        Raises:
            ValueError: If days < 1
        """
        if days < 1:
            raise ValueError("Trailing window must span at least one day")
        end = anchor or self.clock.now()
        if end.tzinfo is None:
            end = end.replace(tzinfo=timezone.utc)
        return DateRange(start=end - timedelta(days=days), end=end)

    def _shift_days(self, local_midnight: datetime, days: int) -> datetime:
        # Calendar arithmetic on the local date keeps DST days at 23/25 hours
        target = local_midnight.date() + timedelta(days=days)
        return datetime.combine(target, time.min, tzinfo=self.tz)
