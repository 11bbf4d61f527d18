"""
Working-day calendar for consumption-rate normalisation.

This module handles:
- Working-day predicate (Monday-Friday, minus statutory holidays)
- Working-day counting over an open-closed interval (start, end]

Weekdays come from the plain calendar date (``date.weekday()``); there is no
time-zone or local-clock involvement, so results are identical on every
machine.

Usage Examples:
    from datetime import date
    from cyclecount.domain.calendar import is_working_day, count_working_days

    is_working_day(date(2025, 7, 1))                          # False (Canada Day)
    count_working_days(date(2025, 6, 27), date(2025, 7, 4))   # 4
"""
from dataclasses import dataclass, field
from datetime import date as Date, timedelta
from typing import FrozenSet, Union

from cyclecount.domain.holidays import HolidayCalendar


@dataclass(frozen=True)
class CalendarConfig:
    """
    Working-day calendar configuration.

    Attributes:
        working_weekdays: Weekdays counted as working days (0=Monday, 6=Sunday)
        holiday_calendar: Versioned holiday table
    """
    working_weekdays: FrozenSet[int] = frozenset({0, 1, 2, 3, 4})
    holiday_calendar: HolidayCalendar = field(default_factory=HolidayCalendar.ontario)

    def __post_init__(self):
        weekdays = frozenset(self.working_weekdays)
        if not weekdays:
            raise ValueError("working_weekdays cannot be empty")
        if any(day < 0 or day > 6 for day in weekdays):
            raise ValueError(f"working_weekdays must be within 0-6, got {sorted(weekdays)}")
        object.__setattr__(self, 'working_weekdays', weekdays)


# Default configuration (callers inject their own for other regions/years)
DEFAULT_CONFIG = CalendarConfig()


def to_date(value: Union[Date, str]) -> Date:
    """Accept a date or an ISO ``YYYY-MM-DD`` string."""
    if isinstance(value, Date):
        return value
    return Date.fromisoformat(str(value).strip())


def is_working_day(day: Union[Date, str], config: CalendarConfig = DEFAULT_CONFIG) -> bool:
    """
    Check if a date is a working day.

    Args:
        day: Date (or ISO string) to check
        config: Calendar configuration

    Returns:
        False on non-working weekdays and listed holidays, True otherwise
    """
    day = to_date(day)
    if day.weekday() not in config.working_weekdays:
        return False
    if config.holiday_calendar.is_holiday(day):
        return False
    return True


def count_working_days(
    start: Union[Date, str],
    end: Union[Date, str],
    config: CalendarConfig = DEFAULT_CONFIG,
) -> int:
    """
    Count working days in the interval (start, end].

    ``start`` itself is never counted; ``end`` is counted when it is a
    working day.

    Args:
        start: Exclusive lower bound
        end: Inclusive upper bound
        config: Calendar configuration

    Returns:
        Number of working days, 0 when end <= start
    """
    start = to_date(start)
    end = to_date(end)
    if end <= start:
        return 0

    count = 0
    current = start + timedelta(days=1)
    while current <= end:
        if is_working_day(current, config):
            count += 1
        current += timedelta(days=1)
    return count
