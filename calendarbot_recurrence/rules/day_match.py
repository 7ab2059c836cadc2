"""BYDAY entries: weekday matching with an optional ordinal."""

from datetime import date
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .calendar_math import ceil_div, day_of_year, days_in_month, days_in_year
from .frequency import Weekday, parse_weekday


class DayMatchRule(BaseModel):
    """One BYDAY entry such as ``MO``, ``2TU`` or ``-1FR``.

    ``occurrence`` selects the nth such weekday within the month or year;
    positive values count from the start of the period, negative values from
    its end, ``None`` or 0 matches every such weekday. Ordinals are only
    meaningful inside MONTHLY and YEARLY rules.
    """

    day_of_week: Weekday = Field(..., description="Day of week to match")
    occurrence: Optional[int] = Field(
        default=None, ge=-53, le=53, description="Ordinal within month or year"
    )

    model_config = ConfigDict(validate_assignment=True)

    @field_validator("day_of_week", mode="before")
    @classmethod
    def validate_day_of_week(cls, v: object) -> object:
        return parse_weekday(v)

    @classmethod
    def of(cls, day_of_week: Weekday, occurrence: Optional[int] = None) -> "DayMatchRule":
        """Build a rule positionally, e.g. ``DayMatchRule.of(Weekday.FRIDAY, -1)``."""
        return cls(day_of_week=day_of_week, occurrence=occurrence)

    @property
    def has_ordinal(self) -> bool:
        return bool(self.occurrence)

    def matches_for_week(self, value: date) -> bool:
        """Check the day of week only."""
        return value.weekday() == self.day_of_week

    def matches_for_month(self, value: date) -> bool:
        """Check the day of week and the ordinal within the month of ``value``."""
        if not self.matches_for_week(value):
            return False
        if not self.occurrence:
            return True
        if self.occurrence > 0:
            return ceil_div(value.day, 7) == self.occurrence
        remaining = days_in_month(value.year, value.month) - value.day + 1
        return ceil_div(remaining, 7) == -self.occurrence

    def matches_for_year(self, value: date) -> bool:
        """Check the day of week and the ordinal within the year of ``value``."""
        if not self.matches_for_week(value):
            return False
        if not self.occurrence:
            return True
        ordinal = day_of_year(value)
        if self.occurrence > 0:
            return ceil_div(ordinal, 7) == self.occurrence
        remaining = days_in_year(value.year) - ordinal + 1
        return ceil_div(remaining, 7) == -self.occurrence

    def __str__(self) -> str:
        prefix = str(self.occurrence) if self.occurrence else ""
        return f"{prefix}{self.day_of_week.name[:2]}"
