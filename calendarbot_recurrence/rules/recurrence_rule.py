"""Recurrence rule model and occurrence generation."""

import logging
from collections.abc import Callable, Iterator
from datetime import datetime, timedelta
from typing import Optional

from dateutil.relativedelta import relativedelta
from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..exceptions import InvalidRecurrenceOperationError
from .calendar_math import ceil_div, first_week_start, week_start_of
from .day_match import DayMatchRule
from .frequency import Frequency, Weekday, parse_frequency, parse_weekday
from .stages import Candidate, Scope, StageContext, run_pipeline

logger = logging.getLogger(__name__)

# One Gregorian cycle: a rule that matched nothing for this long never will.
DEFAULT_MAX_IDLE_YEARS = 400

_FIXED_STEPS: dict[Frequency, timedelta] = {
    Frequency.SECONDLY: timedelta(seconds=1),
    Frequency.MINUTELY: timedelta(minutes=1),
    Frequency.HOURLY: timedelta(hours=1),
    Frequency.DAILY: timedelta(days=1),
    Frequency.WEEKLY: timedelta(weeks=1),
}

# Rule parts that must not be combined with a frequency (RFC 5545 table, N/A cells).
_UNSUPPORTED_PARTS: dict[str, frozenset[Frequency]] = {
    "by_week_number": frozenset(f for f in Frequency if f is not Frequency.YEARLY),
    "by_year_day": frozenset({Frequency.DAILY, Frequency.WEEKLY, Frequency.MONTHLY}),
    "by_month_day": frozenset({Frequency.WEEKLY}),
}


def _check_values(values: list[int], low: int, high: int, signed: bool, name: str) -> list[int]:
    for value in values:
        magnitude = abs(value) if signed else value
        if not low <= magnitude <= high or (signed and value == 0):
            bounds = f"+-{low}..{high}" if signed else f"{low}..{high}"
            raise ValueError(f"{name} value {value} outside {bounds}")
    return values


class RecurrenceRule(BaseModel):
    """RFC 5545 recurrence rule (RRULE) evaluated against an anchor date/time.

    Build a rule empty and fill it with attribute assignments, or pass the
    fields to the constructor. Every assignment is validated: an interval
    below 1 or an out-of-range BY value raises ``ValueError`` immediately
    and is never stored.

    ``get_occurrences`` reads the rule lazily while the returned iterator is
    consumed. Callers must not change a rule while iterating over its
    occurrences; the rule is not copied.

    ``by_set_position`` is kept for completeness but never applied.
    """

    frequency: Optional[Frequency] = Field(default=None, description="FREQ")
    interval: int = Field(default=1, ge=1, description="INTERVAL")
    count: Optional[int] = Field(default=None, ge=0, description="COUNT, 0 or None = unbounded")
    end_date_time: Optional[datetime] = Field(default=None, description="UNTIL, inclusive")
    week_start: Weekday = Field(default=Weekday.MONDAY, description="WKST")

    by_second: list[int] = Field(default_factory=list)
    by_minute: list[int] = Field(default_factory=list)
    by_hour: list[int] = Field(default_factory=list)
    by_day: list[DayMatchRule] = Field(default_factory=list)
    by_month_day: list[int] = Field(default_factory=list)
    by_year_day: list[int] = Field(default_factory=list)
    by_week_number: list[int] = Field(default_factory=list)
    by_month: list[int] = Field(default_factory=list)
    by_set_position: list[int] = Field(default_factory=list)

    model_config = ConfigDict(validate_assignment=True)

    @field_validator("frequency", mode="before")
    @classmethod
    def validate_frequency(cls, v: object) -> object:
        return parse_frequency(v)

    @field_validator("week_start", mode="before")
    @classmethod
    def validate_week_start(cls, v: object) -> object:
        return parse_weekday(v)

    @field_validator("by_second")
    @classmethod
    def validate_by_second(cls, v: list[int]) -> list[int]:
        return _check_values(v, 0, 60, signed=False, name="BYSECOND")

    @field_validator("by_minute")
    @classmethod
    def validate_by_minute(cls, v: list[int]) -> list[int]:
        return _check_values(v, 0, 59, signed=False, name="BYMINUTE")

    @field_validator("by_hour")
    @classmethod
    def validate_by_hour(cls, v: list[int]) -> list[int]:
        return _check_values(v, 0, 23, signed=False, name="BYHOUR")

    @field_validator("by_month_day")
    @classmethod
    def validate_by_month_day(cls, v: list[int]) -> list[int]:
        return _check_values(v, 1, 31, signed=True, name="BYMONTHDAY")

    @field_validator("by_year_day", "by_set_position")
    @classmethod
    def validate_by_year_day(cls, v: list[int]) -> list[int]:
        return _check_values(v, 1, 366, signed=True, name="BYYEARDAY/BYSETPOS")

    @field_validator("by_week_number")
    @classmethod
    def validate_by_week_number(cls, v: list[int]) -> list[int]:
        return _check_values(v, 1, 53, signed=True, name="BYWEEKNO")

    @field_validator("by_month")
    @classmethod
    def validate_by_month(cls, v: list[int]) -> list[int]:
        return _check_values(v, 1, 12, signed=False, name="BYMONTH")

    @property
    def has_value(self) -> bool:
        """True when the rule can produce occurrences."""
        return self.frequency is not None and self.interval > 0

    def get_occurrences(
        self,
        start: datetime,
        max_idle_years: int = DEFAULT_MAX_IDLE_YEARS,
        accept: Optional[Callable[[datetime], bool]] = None,
    ) -> Iterator[datetime]:
        """Return the occurrences of this rule anchored at ``start``.

        The rule is validated right away; the occurrences themselves are
        computed lazily as the iterator is consumed. The sequence is
        ascending, free of duplicates and of the same kind (naive or aware)
        as ``start``. It is infinite when neither ``count`` nor
        ``end_date_time`` bounds it, so callers must stop pulling on their
        own in that case. Calling again with the same rule and start yields
        the same sequence.

        Args:
            start: Anchor date/time; no occurrence is earlier than this
            max_idle_years: Stop once this many calendar years produced no
                candidate at all
            accept: Optional predicate; candidates it rejects (e.g. wall-clock
                times skipped by a DST transition) are dropped before they
                count towards ``count``

        Raises:
            InvalidRecurrenceOperationError: Frequency unset, interval < 1,
                unsupported rule part combination, or ``start`` and
                ``end_date_time`` of different kinds
        """
        context = self._validate(start)
        return self._generate(start, context, max_idle_years, accept)

    def _validate(self, start: datetime) -> StageContext:
        if self.frequency is None:
            raise InvalidRecurrenceOperationError(
                "Frequency must not be None in order to calculate recurrent date/times."
            )
        if self.interval < 1:
            raise InvalidRecurrenceOperationError(
                "Interval must be > 0 in order to calculate recurrent date/times."
            )
        for part, frequencies in _UNSUPPORTED_PARTS.items():
            if getattr(self, part) and self.frequency in frequencies:
                raise InvalidRecurrenceOperationError(
                    f"{part} must not be used with frequency {self.frequency.name}."
                )
        if any(rule.has_ordinal for rule in self.by_day):
            if self.frequency not in (Frequency.MONTHLY, Frequency.YEARLY) or self.by_week_number:
                raise InvalidRecurrenceOperationError(
                    "Numbered BYDAY entries are only valid for MONTHLY rules and YEARLY "
                    "rules without BYWEEKNO."
                )
        if self.end_date_time is not None and (
            (self.end_date_time.tzinfo is None) != (start.tzinfo is None)
        ):
            raise InvalidRecurrenceOperationError(
                "Recurrence end and start must both be naive or both be aware."
            )
        if self.by_set_position:
            logger.debug("BYSETPOS %s is stored but not applied", self.by_set_position)
        return StageContext.from_rule(self, start)

    def _seed(self, start: datetime, index: int) -> Candidate:
        """Return the candidate standing for period number ``index``."""
        frequency = self.frequency
        steps = index * self.interval
        if frequency is Frequency.WEEKLY:
            return Candidate(start + _FIXED_STEPS[frequency] * steps, Scope.WEEK)
        if frequency is Frequency.MONTHLY:
            return Candidate(start.replace(day=1) + relativedelta(months=steps), Scope.MONTH)
        if frequency is Frequency.YEARLY:
            return Candidate(
                start.replace(month=1, day=1) + relativedelta(years=steps), Scope.YEAR
            )
        return Candidate(start + _FIXED_STEPS[frequency] * steps, Scope.DAY)

    def _period_floor(self, seed: Candidate) -> datetime:
        """Earliest instant any candidate of this period can have."""
        moment = seed.moment
        if self.frequency is Frequency.SECONDLY:
            return moment
        if self.frequency is Frequency.MINUTELY:
            return moment.replace(second=0, microsecond=0)
        if self.frequency is Frequency.HOURLY:
            return moment.replace(minute=0, second=0, microsecond=0)
        if seed.scope is Scope.WEEK:
            moment = week_start_of(moment, self.week_start)
        elif seed.scope is Scope.YEAR and self.by_week_number:
            # Week 1 may begin in late December of the previous year
            first = first_week_start(moment.year, self.week_start)
            moment = datetime.combine(min(first, moment.date()), moment.timetz())
        return moment.replace(hour=0, minute=0, second=0, microsecond=0)

    def _next_index_after_day(self, start: datetime, moment: datetime) -> int:
        """First sub-daily period index whose seed falls on a later day than ``moment``."""
        next_day = moment.replace(hour=0, minute=0, second=0, microsecond=0) + timedelta(days=1)
        step = _FIXED_STEPS[self.frequency] * self.interval
        return ceil_div((next_day - start) // timedelta(microseconds=1), step // timedelta(microseconds=1))

    def _generate(
        self,
        start: datetime,
        context: StageContext,
        max_idle_years: int,
        accept: Optional[Callable[[datetime], bool]] = None,
    ) -> Iterator[datetime]:
        remaining = self.count if self.count else None
        end = self.end_date_time
        sub_daily = self.frequency < Frequency.DAILY
        last_productive_year = start.year
        index = 0
        while True:
            try:
                seed = self._seed(start, index)
                floor = self._period_floor(seed)
            except (OverflowError, ValueError):
                logger.debug("Recurrence reached the end of the supported date range")
                return
            if end is not None and floor > end:
                return
            if floor.year - last_productive_year > max_idle_years:
                logger.warning(
                    "Recurrence stopped: no match in %d years since %d (rule never matches again)",
                    max_idle_years,
                    last_productive_year,
                )
                return
            if sub_daily and not context.date_allows(seed.moment):
                try:
                    index = max(index + 1, self._next_index_after_day(start, seed.moment))
                except OverflowError:
                    return
                continue
            candidates = run_pipeline(context, seed)
            if candidates:
                last_productive_year = floor.year
            for moment in candidates:
                if moment < start:
                    continue
                if end is not None and moment > end:
                    return
                if accept is not None and not accept(moment):
                    continue
                yield moment
                if remaining is not None:
                    remaining -= 1
                    if remaining == 0:
                        return
            index += 1
