"""Frequency and weekday enumerations for recurrence rules."""

from enum import IntEnum
from typing import Any


class Frequency(IntEnum):
    """Recurrence frequency (RFC 5545 FREQ), ordered from finest to coarsest."""

    SECONDLY = 0
    MINUTELY = 1
    HOURLY = 2
    DAILY = 3
    WEEKLY = 4
    MONTHLY = 5
    YEARLY = 6


class Weekday(IntEnum):
    """Day of week with the same numbering as ``datetime.weekday()``."""

    MONDAY = 0
    TUESDAY = 1
    WEDNESDAY = 2
    THURSDAY = 3
    FRIDAY = 4
    SATURDAY = 5
    SUNDAY = 6


FREQUENCY_LABELS: dict[Frequency, str] = {
    Frequency.SECONDLY: "secondly",
    Frequency.MINUTELY: "minutely",
    Frequency.HOURLY: "hourly",
    Frequency.DAILY: "daily",
    Frequency.WEEKLY: "weekly",
    Frequency.MONTHLY: "monthly",
    Frequency.YEARLY: "yearly",
}


def frequency_options(minimum: Frequency = Frequency.SECONDLY) -> list[tuple[str, str]]:
    """Return selectable frequencies at or above ``minimum``.

    Args:
        minimum: Finest frequency a caller wants to offer

    Returns:
        List of ``(value, label)`` pairs in ascending frequency order. The
        value is the enum's integer as a string. YEARLY is always included.
    """
    return [
        (str(int(frequency)), FREQUENCY_LABELS[frequency])
        for frequency in Frequency
        if frequency >= minimum or frequency is Frequency.YEARLY
    ]


WEEKDAY_ABBREVIATIONS: dict[str, Weekday] = {day.name[:2]: day for day in Weekday}


def parse_frequency(value: Any) -> Any:
    """Accept ``"daily"``/``"DAILY"`` as well as enum values; other input passes through."""
    if isinstance(value, str):
        name = value.strip().upper()
        if name in Frequency.__members__:
            return Frequency[name]
    return value


def parse_weekday(value: Any) -> Any:
    """Accept ``"MO"``/``"monday"`` as well as enum values; other input passes through."""
    if isinstance(value, str):
        name = value.strip().upper()
        if name in WEEKDAY_ABBREVIATIONS:
            return WEEKDAY_ABBREVIATIONS[name]
        if name in Weekday.__members__:
            return Weekday[name]
    return value
