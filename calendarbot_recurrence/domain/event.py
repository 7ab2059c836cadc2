"""Recurring calendar event: occurrence merging, time zone round trips, flattening."""

from __future__ import annotations

import heapq
import logging
from collections.abc import Callable, Iterator
from datetime import datetime, timedelta, tzinfo
from typing import Any, ClassVar, Optional

from pydantic import Field

from ..core.timezone_utils import (
    TimezoneResolver,
    exists_locally,
    get_default_resolver,
    get_server_timezone,
    local_to_utc,
    utc_to_local,
)
from ..exceptions import InvalidRecurrenceOperationError
from ..rules.recurrence_rule import DEFAULT_MAX_IDLE_YEARS, RecurrenceRule
from .entity import PersistentEntity
from .models import (
    Alarm,
    Attachment,
    Attendee,
    Classification,
    EventStatus,
    Location,
    Priority,
    TimeTransparency,
)

logger = logging.getLogger(__name__)

Converter = Callable[[datetime, tzinfo], datetime]


class Event(PersistentEntity):
    """Calendar event that may repeat.

    Date/time fields hold one representation at a time: naive values are
    wall-clock time in ``time_zone``, aware values are UTC. Storage keeps UTC;
    recurrence arithmetic needs wall-clock time, which is why ``flatten``
    works on a local copy.

    ``convert_to_utc`` and ``convert_from_utc`` change the representation
    only. They leave values already in the target representation alone and
    never bump ``sequence_number``.

    A persisted event (see ``mark_persisted``) bumps ``sequence_number`` once
    per logical change of a field in ``RELEVANT_FIELD_PATHS``: one attribute
    assignment, one ``apply_changes`` call or one explicit mutator call.
    Direct edits of a sub-object (``event.location.city = ...``,
    ``event.recurrence_rule.interval = 3``) are not seen by the event; route
    them through ``apply_changes({"location.city": ...})`` to record a
    revision.
    """

    # Top-level fields whose changes (including sub-field paths) are revisions
    RELEVANT_FIELD_PATHS: ClassVar[frozenset[str]] = frozenset(
        {
            "title",
            "description",
            "start_date_time",
            "end_date_time",
            "location",
            "recurrence_rule",
            "attachments",
            "exception_date_times",
            "recurrence_date_times",
            "status",
        }
    )

    title: Optional[str] = None
    description: Optional[str] = None
    start_date_time: Optional[datetime] = Field(default=None, description="Anchor of the recurrence")
    end_date_time: Optional[datetime] = None
    location: Optional[Location] = None
    attachments: list[Attachment] = Field(default_factory=list)
    attendees: list[Attendee] = Field(default_factory=list)
    alarms: list[Alarm] = Field(default_factory=list)
    categories: list[str] = Field(default_factory=list)
    comments: list[str] = Field(default_factory=list)
    classification: Optional[Classification] = Classification.PUBLIC
    priority: Optional[Priority] = None
    status: Optional[EventStatus] = None
    time_transparency: Optional[TimeTransparency] = None
    organizer: Optional[Attendee] = None
    web_site: Optional[str] = None
    recurrence_id: Optional[datetime] = Field(
        default=None, description="Original start of a flattened instance"
    )
    recurrence_rule: Optional[RecurrenceRule] = None
    recurrence_date_times: list[datetime] = Field(
        default_factory=list, description="Explicit extra occurrence starts (RDATE)"
    )
    exception_date_times: list[datetime] = Field(
        default_factory=list, description="Excluded occurrence starts (EXDATE)"
    )
    time_zone: Optional[str] = Field(
        default_factory=get_server_timezone, description="IANA or Windows zone id"
    )
    sequence_number: int = Field(default=0, ge=0, description="Revision counter")

    @property
    def duration(self) -> Optional[timedelta]:
        if self.start_date_time is None or self.end_date_time is None:
            return None
        return self.end_date_time - self.start_date_time

    @property
    def has_recurrence(self) -> bool:
        has_rule = self.recurrence_rule is not None and self.recurrence_rule.has_value
        return has_rule or bool(self.recurrence_date_times)

    # Revisions

    def _on_fields_changed(self, paths: tuple[str, ...]) -> None:
        super()._on_fields_changed(paths)
        if self.is_new or "sequence_number" in paths:
            return
        if any(path.split(".", 1)[0] in self.RELEVANT_FIELD_PATHS for path in paths):
            with self.untracked():
                self.sequence_number += 1
            logger.debug("Event %s now at sequence %d", self.id, self.sequence_number)

    def add_exception_date_time(self, value: datetime) -> None:
        """Exclude ``value`` from the occurrences (no-op when already excluded)."""
        if value not in self.exception_date_times:
            self.exception_date_times = [*self.exception_date_times, value]

    def add_recurrence_date_time(self, value: datetime) -> None:
        """Add an explicit occurrence start (no-op when already listed)."""
        if value not in self.recurrence_date_times:
            self.recurrence_date_times = sorted([*self.recurrence_date_times, value])

    # Occurrences

    def occurrences_ignoring_zone(
        self,
        max_idle_years: int = DEFAULT_MAX_IDLE_YEARS,
        accept: Optional[Callable[[datetime], bool]] = None,
    ) -> Iterator[datetime]:
        """Return the event's occurrence starts in their stored representation.

        Merges the rule's occurrences (or just the start when there is no
        usable rule) with the explicit recurrence dates, ascending and
        without duplicates, leaving out every exception date. Nothing is
        produced without a start. The sequence is unbounded for an unbounded
        rule. Values rejected by ``accept`` are left out and do not use up the
        rule's ``count``.

        Raises:
            InvalidRecurrenceOperationError: The rule cannot be evaluated
        """
        start = self.start_date_time
        if start is None:
            return iter(())
        rule = self.recurrence_rule
        if rule is not None and rule.has_value:
            source: Iterator[datetime] = rule.get_occurrences(start, max_idle_years, accept)
        else:
            source = iter((start,))
        return self._merge(
            source, sorted(self.recurrence_date_times), set(self.exception_date_times), accept
        )

    @staticmethod
    def _merge(
        source: Iterator[datetime],
        explicit: list[datetime],
        exceptions: set[datetime],
        accept: Optional[Callable[[datetime], bool]] = None,
    ) -> Iterator[datetime]:
        previous: Optional[datetime] = None
        for value in heapq.merge(source, explicit):
            if value == previous:
                continue
            previous = value
            if value in exceptions:
                continue
            if accept is None or accept(value):
                yield value

    def latest_recurrence(self) -> datetime:
        """Return the last instant any occurrence of this event can occupy.

        ``datetime.max`` (in the start's representation) stands for "never
        ends". Count-bounded rules are evaluated to find their last occurrence.

        Raises:
            InvalidRecurrenceOperationError: The event has no start
        """
        start = self.start_date_time
        if start is None:
            raise InvalidRecurrenceOperationError("An event without start has no recurrence.")
        unbounded = datetime.max.replace(tzinfo=start.tzinfo)
        duration = self.duration or timedelta(0)
        latest = start + duration
        rule = self.recurrence_rule
        try:
            if rule is not None and rule.has_value:
                if rule.end_date_time is not None:
                    latest = max(latest, rule.end_date_time + duration)
                elif rule.count:
                    for occurrence in rule.get_occurrences(start):
                        latest = max(latest, occurrence + duration)
                else:
                    return unbounded
            for value in self.recurrence_date_times:
                latest = max(latest, value + duration)
        except OverflowError:
            return unbounded
        return latest

    # Time zones

    def resolve_time_zone(self, resolver: Optional[TimezoneResolver] = None) -> tzinfo:
        return (resolver or get_default_resolver()).resolve(self.time_zone)

    def convert_to_utc(self, resolver: Optional[TimezoneResolver] = None) -> None:
        """Turn wall-clock date/times into UTC using the event's zone."""
        self._convert(local_to_utc, self.resolve_time_zone(resolver))

    def convert_from_utc(self, resolver: Optional[TimezoneResolver] = None) -> None:
        """Turn UTC date/times into wall-clock time in the event's zone."""
        self._convert(utc_to_local, self.resolve_time_zone(resolver))

    def _convert(self, converter: Converter, zone: tzinfo) -> None:
        def convert(value: Optional[datetime]) -> Optional[datetime]:
            return None if value is None else converter(value, zone)

        with self.untracked():
            self.start_date_time = convert(self.start_date_time)
            self.end_date_time = convert(self.end_date_time)
            self.recurrence_id = convert(self.recurrence_id)
            self.exception_date_times = [converter(v, zone) for v in self.exception_date_times]
            self.recurrence_date_times = [converter(v, zone) for v in self.recurrence_date_times]
            rule = self.recurrence_rule
            if rule is not None and rule.end_date_time is not None:
                rule.end_date_time = converter(rule.end_date_time, zone)

    # Flattening

    def flatten(
        self,
        min_date_time: datetime,
        max_date_time: datetime,
        destination_zone: Optional[str] = None,
        resolver: Optional[TimezoneResolver] = None,
    ) -> Iterator[Event]:
        """Yield one non-recurring copy per occurrence in ``(min, max]``.

        Copies keep this event's ``id`` and share its sub-objects; each gets
        start = occurrence, end = occurrence + duration and ``recurrence_id``
        = occurrence, and is returned in UTC. With ``destination_zone`` every
        copy is then re-localized to wall-clock time in that zone.

        Aware bounds are converted to the event's wall clock, naive bounds are
        taken as wall-clock time already. This event is never modified.
        Occurrences that do not exist on the wall clock (DST gap) are skipped
        and do not count towards the rule's ``count``.

        Raises:
            InvalidRecurrenceOperationError: The rule cannot be evaluated
        """
        resolver = resolver or get_default_resolver()
        zone = self.resolve_time_zone(resolver)
        destination = resolver.resolve(destination_zone) if destination_zone else None
        working = self._local_copy(zone)
        lower = utc_to_local(min_date_time, zone)
        upper = utc_to_local(max_date_time, zone)
        occurrences = working.occurrences_ignoring_zone(accept=self._exists_in(zone))
        return self._flat_copies(working, occurrences, lower, upper, zone, destination_zone, destination)

    def _local_copy(self, zone: tzinfo) -> Event:
        rule = self.recurrence_rule
        working = self.model_copy(
            update={
                "recurrence_rule": rule.model_copy() if rule is not None else None,
                "exception_date_times": list(self.exception_date_times),
                "recurrence_date_times": list(self.recurrence_date_times),
            }
        )
        working._convert(utc_to_local, zone)
        return working

    @staticmethod
    def _exists_in(zone: tzinfo) -> Callable[[datetime], bool]:
        def exists(value: datetime) -> bool:
            if exists_locally(value, zone):
                return True
            logger.debug("Skipping %s: not a valid wall-clock time in %s", value, zone)
            return False

        return exists

    @staticmethod
    def _flat_copies(
        working: Event,
        occurrences: Iterator[datetime],
        lower: datetime,
        upper: datetime,
        zone: tzinfo,
        destination_zone: Optional[str],
        destination: Optional[tzinfo],
    ) -> Iterator[Event]:
        duration = working.duration
        for occurrence in occurrences:
            if occurrence > upper:
                break
            if occurrence <= lower:
                continue
            update: dict[str, Any] = {
                "start_date_time": occurrence,
                "end_date_time": occurrence + duration if duration is not None else None,
                "recurrence_id": occurrence,
                "recurrence_rule": None,
                "recurrence_date_times": [],
                "exception_date_times": [],
            }
            flat = working.model_copy(update=update)
            flat._convert(local_to_utc, zone)
            if destination is not None:
                flat._convert(utc_to_local, destination)
                with flat.untracked():
                    flat.time_zone = destination_zone
            yield flat

    # Ordering

    def sort_key(self) -> tuple[Any, ...]:
        """(start, end) with unset values first."""
        start, end = self.start_date_time, self.end_date_time
        return (start is not None, start, end is not None, end)

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Event):
            return NotImplemented
        return self.sort_key() < other.sort_key()
