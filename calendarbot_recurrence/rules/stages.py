"""BYxxx pipeline stages for recurrence rule evaluation.

Each period of a rule starts as a single ``Candidate`` whose ``scope`` says
how much of the calendar it stands for: a whole year (YEARLY), a whole month
(MONTHLY), a whole week (WEEKLY) or one concrete day (DAILY and finer). The
stages below run in a fixed order and either expand a candidate into finer
ones or limit (drop) candidates that do not match a rule part:

    month -> week number -> year day -> month day -> day
          -> anchor day -> hour -> minute -> second

``resolve_anchor_day`` is not a BYxxx part: it turns whatever coarse scope is
left after the day-level parts into the anchor's own day within that period.
Every stage takes and returns a list of candidates in ascending order, so the
pipeline is a plain fold over ``PIPELINE``.

Calendar-invalid values produced by an expansion (the 31st of a 30-day month,
second 60, February 29 of a common year) are dropped silently.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import IntEnum
from functools import reduce
from typing import TYPE_CHECKING, NamedTuple, Optional

from ..exceptions import InvalidRecurrenceOperationError
from .calendar_math import (
    DAYS_PER_WEEK,
    day_of_year,
    days_in_month,
    days_in_year,
    first_week_start,
    matches_ordinal,
    resolve_ordinal,
    week_start_of,
    weeks_in_year,
)
from .frequency import Frequency

if TYPE_CHECKING:
    from .day_match import DayMatchRule
    from .recurrence_rule import RecurrenceRule


class Scope(IntEnum):
    """Calendar span a candidate stands for."""

    DAY = 0
    WEEK = 1
    MONTH = 2
    YEAR = 3


class Candidate(NamedTuple):
    """One point in the pipeline: a moment and the span it represents.

    For WEEK scope the moment is any day inside the week; for MONTH and YEAR
    scope it is the first day of the period. Time fields always carry the
    anchor's time of day until an hour/minute/second stage replaces them.
    """

    moment: datetime
    scope: Scope


@dataclass
class StageContext:
    """Rule parts normalized once per evaluation (sorted, de-duplicated)."""

    frequency: Frequency
    anchor: datetime
    week_start: int
    months: list[int] = field(default_factory=list)
    week_numbers: list[int] = field(default_factory=list)
    year_days: list[int] = field(default_factory=list)
    month_days: list[int] = field(default_factory=list)
    days: list[DayMatchRule] = field(default_factory=list)
    hours: list[int] = field(default_factory=list)
    minutes: list[int] = field(default_factory=list)
    seconds: list[int] = field(default_factory=list)

    @classmethod
    def from_rule(cls, rule: RecurrenceRule, anchor: datetime) -> StageContext:
        if rule.frequency is None:
            raise InvalidRecurrenceOperationError(
                "Frequency must be set in order to calculate recurrent date/times."
            )
        return cls(
            frequency=rule.frequency,
            anchor=anchor,
            week_start=int(rule.week_start),
            months=sorted(set(rule.by_month)),
            week_numbers=sorted(set(rule.by_week_number)),
            year_days=sorted(set(rule.by_year_day)),
            month_days=sorted(set(rule.by_month_day)),
            days=list(rule.by_day),
            hours=sorted(set(rule.by_hour)),
            minutes=sorted(set(rule.by_minute)),
            seconds=sorted(set(rule.by_second)),
        )

    # Day-level predicates shared by limit stages and the sub-daily day skip.

    def month_allows(self, value: date) -> bool:
        return not self.months or value.month in self.months

    def year_day_allows(self, value: date) -> bool:
        if not self.year_days:
            return True
        return matches_ordinal(day_of_year(value), days_in_year(value.year), self.year_days)

    def month_day_allows(self, value: date) -> bool:
        if not self.month_days:
            return True
        return matches_ordinal(
            value.day, days_in_month(value.year, value.month), self.month_days
        )

    def day_allows(self, value: date) -> bool:
        if not self.days:
            return True
        if self.frequency is Frequency.MONTHLY or (
            self.frequency is Frequency.YEARLY and self.months
        ):
            return any(rule.matches_for_month(value) for rule in self.days)
        if self.frequency is Frequency.YEARLY:
            return any(rule.matches_for_year(value) for rule in self.days)
        return any(rule.matches_for_week(value) for rule in self.days)

    def date_allows(self, value: date) -> bool:
        """Apply every day-level limit; used to skip whole days in sub-daily rules."""
        return (
            self.month_allows(value)
            and self.year_day_allows(value)
            and self.month_day_allows(value)
            and self.day_allows(value)
        )


Stage = Callable[[StageContext, list[Candidate]], list[Candidate]]


def days_of(context: StageContext, candidate: Candidate) -> list[datetime]:
    """Return every day a candidate stands for, ascending.

    Week days are restricted to BYMONTH when it is set, which is how BYMONTH
    limits WEEKLY rules and YEARLY rules expanded by week number.
    """
    moment = candidate.moment
    if candidate.scope is Scope.DAY:
        return [moment]
    if candidate.scope is Scope.WEEK:
        first = week_start_of(moment, context.week_start)
        week = [first + timedelta(days=offset) for offset in range(DAYS_PER_WEEK)]
        return [day for day in week if context.month_allows(day)]
    if candidate.scope is Scope.MONTH:
        return [
            moment.replace(day=day)
            for day in range(1, days_in_month(moment.year, moment.month) + 1)
        ]
    return [moment + timedelta(days=offset) for offset in range(days_in_year(moment.year))]


def _expand_or_limit(
    context: StageContext,
    candidates: list[Candidate],
    predicate: Callable[[date], bool],
) -> list[Candidate]:
    """Expand coarse candidates to the matching days, limit day candidates."""
    result: list[Candidate] = []
    for candidate in candidates:
        if candidate.scope is Scope.DAY:
            if predicate(candidate.moment):
                result.append(candidate)
            continue
        result.extend(
            Candidate(day, Scope.DAY) for day in days_of(context, candidate) if predicate(day)
        )
    return result


def by_month(context: StageContext, candidates: list[Candidate]) -> list[Candidate]:
    """BYMONTH: expand years into months (YEARLY), limit everything else."""
    if not context.months:
        return candidates
    result: list[Candidate] = []
    for candidate in candidates:
        if candidate.scope is Scope.YEAR:
            if context.week_numbers:
                # Months then restrict the days of the expanded weeks.
                result.append(candidate)
                continue
            result.extend(
                Candidate(candidate.moment.replace(month=month, day=1), Scope.MONTH)
                for month in context.months
            )
        elif candidate.scope is Scope.WEEK:
            if days_of(context, candidate):
                result.append(candidate)
        elif context.month_allows(candidate.moment):
            result.append(candidate)
    return result


def by_week_number(context: StageContext, candidates: list[Candidate]) -> list[Candidate]:
    """BYWEEKNO: expand a year into the listed weeks (YEARLY only)."""
    if not context.week_numbers:
        return candidates
    result: list[Candidate] = []
    for candidate in candidates:
        if candidate.scope is not Scope.YEAR:
            result.append(candidate)
            continue
        year = candidate.moment.year
        total = weeks_in_year(year, context.week_start)
        first = first_week_start(year, context.week_start)
        resolved = sorted(
            {n for n in (resolve_ordinal(value, total) for value in context.week_numbers) if n}
        )
        for number in resolved:
            week_first = first + timedelta(days=DAYS_PER_WEEK * (number - 1))
            moment = datetime.combine(week_first, candidate.moment.timetz())
            result.append(Candidate(moment, Scope.WEEK))
    return result


def by_year_day(context: StageContext, candidates: list[Candidate]) -> list[Candidate]:
    """BYYEARDAY: expand (YEARLY) or limit (sub-daily); negatives count from Dec 31."""
    if not context.year_days:
        return candidates
    return _expand_or_limit(context, candidates, context.year_day_allows)


def by_month_day(context: StageContext, candidates: list[Candidate]) -> list[Candidate]:
    """BYMONTHDAY: expand (MONTHLY, YEARLY) or limit (DAILY and finer)."""
    if not context.month_days:
        return candidates
    return _expand_or_limit(context, candidates, context.month_day_allows)


def _day_matcher(context: StageContext, scope: Scope) -> Callable[[DayMatchRule, date], bool]:
    if context.frequency not in (Frequency.WEEKLY, Frequency.MONTHLY, Frequency.YEARLY):
        raise InvalidRecurrenceOperationError(
            f"Expanding dates by day is not supported for recurrence frequency "
            f"{context.frequency.name}."
        )
    if scope is Scope.WEEK:
        return lambda rule, day: rule.matches_for_week(day)
    if scope is Scope.MONTH:
        return lambda rule, day: rule.matches_for_month(day)
    return lambda rule, day: rule.matches_for_year(day)


def by_day(context: StageContext, candidates: list[Candidate]) -> list[Candidate]:
    """BYDAY: expand weeks, months and years; limit concrete days."""
    if not context.days:
        return candidates
    result: list[Candidate] = []
    for candidate in candidates:
        if candidate.scope is Scope.DAY:
            if context.day_allows(candidate.moment):
                result.append(candidate)
            continue
        matches = _day_matcher(context, candidate.scope)
        result.extend(
            Candidate(day, Scope.DAY)
            for day in days_of(context, candidate)
            if any(matches(rule, day) for rule in context.days)
        )
    return result


def resolve_anchor_day(context: StageContext, candidates: list[Candidate]) -> list[Candidate]:
    """Pin periods no day-level part expanded to the anchor's day in that period."""
    anchor = context.anchor
    result: list[Candidate] = []
    for candidate in candidates:
        moment = candidate.moment
        if candidate.scope is Scope.DAY:
            result.append(candidate)
        elif candidate.scope is Scope.WEEK:
            result.extend(
                Candidate(day, Scope.DAY)
                for day in days_of(context, candidate)
                if day.weekday() == anchor.weekday()
            )
        elif candidate.scope is Scope.MONTH:
            if anchor.day <= days_in_month(moment.year, moment.month):
                result.append(Candidate(moment.replace(day=anchor.day), Scope.DAY))
        elif anchor.day <= days_in_month(moment.year, anchor.month):
            result.append(
                Candidate(moment.replace(month=anchor.month, day=anchor.day), Scope.DAY)
            )
    return result


def _expand_or_limit_time(
    candidates: list[Candidate],
    values: Sequence[int],
    limit: bool,
    attribute: str,
) -> list[Candidate]:
    if not values:
        return candidates
    if limit:
        return [c for c in candidates if getattr(c.moment, attribute) in values]
    result: list[Candidate] = []
    for candidate in candidates:
        for value in values:
            try:
                moment = candidate.moment.replace(**{attribute: value})
            except ValueError:
                continue
            result.append(Candidate(moment, candidate.scope))
    return result


def by_hour(context: StageContext, candidates: list[Candidate]) -> list[Candidate]:
    """BYHOUR: limit for HOURLY and finer, expand for DAILY and coarser."""
    return _expand_or_limit_time(
        candidates, context.hours, context.frequency <= Frequency.HOURLY, "hour"
    )


def by_minute(context: StageContext, candidates: list[Candidate]) -> list[Candidate]:
    """BYMINUTE: limit for MINUTELY and finer, expand for HOURLY and coarser."""
    return _expand_or_limit_time(
        candidates, context.minutes, context.frequency <= Frequency.MINUTELY, "minute"
    )


def by_second(context: StageContext, candidates: list[Candidate]) -> list[Candidate]:
    """BYSECOND: limit for SECONDLY, expand otherwise; second 60 is dropped."""
    return _expand_or_limit_time(
        candidates, context.seconds, context.frequency is Frequency.SECONDLY, "second"
    )


PIPELINE: tuple[Stage, ...] = (
    by_month,
    by_week_number,
    by_year_day,
    by_month_day,
    by_day,
    resolve_anchor_day,
    by_hour,
    by_minute,
    by_second,
)


def run_pipeline(
    context: StageContext,
    seed: Candidate,
    stages: Optional[Sequence[Stage]] = None,
) -> list[datetime]:
    """Run one period's seed through the stages.

    Returns:
        Ascending, de-duplicated concrete date/times for the period
    """
    candidates = reduce(
        lambda current, stage: stage(context, current),
        stages if stages is not None else PIPELINE,
        [seed],
    )
    return sorted({candidate.moment for candidate in candidates})
