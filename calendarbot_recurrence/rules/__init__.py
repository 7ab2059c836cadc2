"""Recurrence rule evaluation: frequencies, BYDAY matching and the expand/limit pipeline."""

from .day_match import DayMatchRule
from .frequency import Frequency, Weekday, frequency_options
from .recurrence_rule import DEFAULT_MAX_IDLE_YEARS, RecurrenceRule

__all__ = [
    "DEFAULT_MAX_IDLE_YEARS",
    "DayMatchRule",
    "Frequency",
    "RecurrenceRule",
    "Weekday",
    "frequency_options",
]
