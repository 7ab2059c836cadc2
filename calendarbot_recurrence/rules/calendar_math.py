"""Gregorian calendar arithmetic used by the recurrence pipeline.

All helpers work on ``date`` or ``datetime`` values and never look at tzinfo.
Week numbers follow the four-day-minimum rule: week 1 is the first week,
starting on the configured week start, that has at least four days in the
year. With a Monday week start this is ISO-8601 week numbering.
"""

from __future__ import annotations

import calendar
from datetime import date, datetime, timedelta
from typing import Optional, TypeVar

from dateutil.relativedelta import relativedelta

DateT = TypeVar("DateT", date, datetime)

DAYS_PER_WEEK = 7
MIN_DAYS_IN_FIRST_WEEK = 4


def days_in_month(year: int, month: int) -> int:
    """Return the number of days of ``month`` in ``year``."""
    return calendar.monthrange(year, month)[1]


def days_in_year(year: int) -> int:
    """Return 366 for leap years, 365 otherwise."""
    return 366 if calendar.isleap(year) else 365


def day_of_year(value: date) -> int:
    """Return the 1-based ordinal day within the year."""
    return value.timetuple().tm_yday


def ceil_div(numerator: int, denominator: int) -> int:
    """Integer ceiling division for positive operands."""
    return -(-numerator // denominator)


def week_start_of(value: DateT, week_start: int) -> DateT:
    """Return the first day of the week containing ``value``.

    Args:
        value: Any date or datetime; time fields are preserved
        week_start: Weekday number (Monday=0) on which weeks begin
    """
    return value - timedelta(days=(value.weekday() - week_start) % DAYS_PER_WEEK)


def first_week_start(year: int, week_start: int) -> date:
    """Return the first day of week 1 of ``year``."""
    january_first = date(year, 1, 1)
    offset = (january_first.weekday() - week_start) % DAYS_PER_WEEK
    first = january_first - timedelta(days=offset)
    if DAYS_PER_WEEK - offset < MIN_DAYS_IN_FIRST_WEEK:
        first += timedelta(days=DAYS_PER_WEEK)
    return first


def weeks_in_year(year: int, week_start: int) -> int:
    """Return 52 or 53, the number of numbered weeks belonging to ``year``."""
    span = first_week_start(year + 1, week_start) - first_week_start(year, week_start)
    return span.days // DAYS_PER_WEEK


def week_number(value: date, week_start: int) -> int:
    """Return the week number of ``value`` within the week-numbering year.

    Days before week 1 belong to the last week of the previous year; days on
    or after week 1 of the next year belong to week 1.
    """
    day = value if type(value) is date else value.date()
    year = day.year
    if day >= first_week_start(year + 1, week_start):
        return 1
    first = first_week_start(year, week_start)
    if day < first:
        first = first_week_start(year - 1, week_start)
    return (day - first).days // DAYS_PER_WEEK + 1


def resolve_ordinal(value: int, total: int) -> Optional[int]:
    """Resolve a signed 1-based ordinal against a period of ``total`` units.

    Positive values count from the start, negative values from the end
    (-1 is the last unit). Returns ``None`` when the ordinal falls outside
    the period.
    """
    resolved = value if value > 0 else total + value + 1
    if 1 <= resolved <= total and value != 0:
        return resolved
    return None


def matches_ordinal(position: int, total: int, values: list[int]) -> bool:
    """Check whether ``position`` (1-based) matches any signed ordinal in ``values``."""
    return position in values or (position - total - 1) in values


def add_months(value: datetime, months: int) -> Optional[datetime]:
    """Shift ``value`` by whole months keeping the day-of-month.

    Unlike ``relativedelta`` on its own this does not clamp: when the target
    month is too short for the day, ``None`` is returned.
    """
    shifted = value.replace(day=1) + relativedelta(months=months)
    if value.day > days_in_month(shifted.year, shifted.month):
        return None
    return shifted.replace(day=value.day)
