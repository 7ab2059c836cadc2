"""
Unit tests for Event.flatten().

Covers:
- window bounds (exclusive minimum, inclusive maximum) for aware and naive bounds
- identity, duration and sharing of sub-objects in flattened copies
- wall-clock recurrence across DST transitions and skipped local times
- destination zone re-localization
- the source event is never modified
"""

from datetime import datetime, timedelta, timezone

import pytest

from calendarbot_recurrence.domain import Alarm, Event, Location
from calendarbot_recurrence.domain.models import TriggerRelation
from calendarbot_recurrence.exceptions import InvalidRecurrenceOperationError
from calendarbot_recurrence.rules import Frequency, RecurrenceRule

pytestmark = pytest.mark.unit

UTC = timezone.utc


def _starts(events):
    return [event.start_date_time for event in events]


def test_flat_instances_inside_window(utc_weekly_event, resolver):
    flat = list(
        utc_weekly_event.flatten(
            datetime(2024, 1, 7, tzinfo=UTC), datetime(2024, 1, 31, tzinfo=UTC), resolver=resolver
        )
    )

    assert _starts(flat) == [datetime(2024, 1, d, 8, tzinfo=UTC) for d in (8, 15, 22, 29)]
    for event in flat:
        assert event.id == utc_weekly_event.id
        assert event == utc_weekly_event
        assert event.end_date_time - event.start_date_time == timedelta(hours=1, minutes=30)
        assert event.recurrence_rule is None
        assert not event.has_recurrence
        assert event.recurrence_id == event.start_date_time
        assert event.title == "Team sync"


def test_minimum_is_exclusive_and_maximum_inclusive(utc_weekly_event, resolver):
    flat = utc_weekly_event.flatten(
        datetime(2024, 1, 8, 8, tzinfo=UTC), datetime(2024, 1, 29, 8, tzinfo=UTC), resolver=resolver
    )

    assert _starts(flat) == [datetime(2024, 1, d, 8, tzinfo=UTC) for d in (15, 22, 29)]


def test_naive_bounds_are_wall_clock_time(utc_weekly_event, resolver):
    flat = utc_weekly_event.flatten(datetime(2024, 1, 1, 9), datetime(2024, 1, 15, 9), resolver=resolver)

    assert _starts(flat) == [
        datetime(2024, 1, 8, 8, tzinfo=UTC),
        datetime(2024, 1, 15, 8, tzinfo=UTC),
    ]


def test_source_event_is_not_modified(utc_weekly_event, resolver):
    utc_weekly_event.mark_persisted()
    utc_weekly_event.add_exception_date_time(datetime(2024, 1, 15, 8, tzinfo=UTC))
    before = utc_weekly_event.model_dump()

    flat = list(
        utc_weekly_event.flatten(
            datetime(2024, 1, 1, tzinfo=UTC), datetime(2024, 2, 1, tzinfo=UTC), resolver=resolver
        )
    )

    assert datetime(2024, 1, 15, 8, tzinfo=UTC) not in _starts(flat)
    assert utc_weekly_event.model_dump() == before
    assert utc_weekly_event.sequence_number == 1


def test_sub_objects_are_shared(utc_weekly_event, resolver):
    utc_weekly_event.location = Location(title="Room 1")
    utc_weekly_event.alarms = [Alarm(trigger_offset=timedelta(minutes=-15))]

    flat = next(
        utc_weekly_event.flatten(
            datetime(2024, 1, 7, tzinfo=UTC), datetime(2024, 1, 31, tzinfo=UTC), resolver=resolver
        )
    )

    assert flat.location is utc_weekly_event.location
    assert flat.alarms is utc_weekly_event.alarms


def test_wall_clock_time_is_kept_across_dst(resolver, test_timezone):
    event = Event(
        start_date_time=datetime(2024, 3, 18, 9),
        end_date_time=datetime(2024, 3, 18, 10),
        time_zone=test_timezone,
        recurrence_rule=RecurrenceRule(frequency=Frequency.WEEKLY),
    )
    event.convert_to_utc(resolver)

    flat = event.flatten(
        datetime(2024, 3, 20, tzinfo=UTC), datetime(2024, 4, 10, tzinfo=UTC), resolver=resolver
    )

    assert _starts(flat) == [
        datetime(2024, 3, 25, 8, tzinfo=UTC),
        datetime(2024, 4, 1, 7, tzinfo=UTC),
        datetime(2024, 4, 8, 7, tzinfo=UTC),
    ]


def test_skipped_local_times_are_dropped(resolver, test_timezone):
    event = Event(
        start_date_time=datetime(2024, 3, 29, 2, 30),
        time_zone=test_timezone,
        recurrence_rule=RecurrenceRule(frequency=Frequency.DAILY),
    )

    flat = event.flatten(datetime(2024, 3, 29), datetime(2024, 4, 2), resolver=resolver)

    assert _starts(flat) == [
        datetime(2024, 3, 29, 1, 30, tzinfo=UTC),
        datetime(2024, 3, 30, 1, 30, tzinfo=UTC),
        datetime(2024, 4, 1, 0, 30, tzinfo=UTC),
    ]
    assert event.start_date_time == datetime(2024, 3, 29, 2, 30)


def test_skipped_local_times_do_not_use_up_count(resolver, test_timezone):
    event = Event(
        start_date_time=datetime(2024, 3, 30, 2, 30),
        time_zone=test_timezone,
        recurrence_rule=RecurrenceRule(frequency=Frequency.DAILY, count=3),
    )

    flat = event.flatten(datetime(2024, 3, 29), datetime(2024, 4, 10), resolver=resolver)

    assert _starts(flat) == [
        datetime(2024, 3, 30, 1, 30, tzinfo=UTC),
        datetime(2024, 4, 1, 0, 30, tzinfo=UTC),
        datetime(2024, 4, 2, 0, 30, tzinfo=UTC),
    ]


def test_destination_zone(utc_weekly_event, resolver):
    flat = list(
        utc_weekly_event.flatten(
            datetime(2024, 1, 14, tzinfo=UTC),
            datetime(2024, 1, 16, tzinfo=UTC),
            destination_zone="America/New_York",
            resolver=resolver,
        )
    )

    assert len(flat) == 1
    assert flat[0].start_date_time == datetime(2024, 1, 15, 3)
    assert flat[0].end_date_time == datetime(2024, 1, 15, 4, 30)
    assert flat[0].time_zone == "America/New_York"


def test_unbounded_rule_stops_at_maximum(resolver, test_timezone):
    event = Event(
        start_date_time=datetime(2024, 1, 1, 12),
        time_zone=test_timezone,
        recurrence_rule=RecurrenceRule(frequency=Frequency.DAILY),
    )

    flat = list(event.flatten(datetime(2024, 1, 9), datetime(2024, 1, 12, 12), resolver=resolver))

    assert _starts(flat) == [datetime(2024, 1, d, 11, tzinfo=UTC) for d in (9, 10, 11, 12)]
    assert all(item.end_date_time is None for item in flat)


def test_single_event_without_rule(resolver, test_timezone):
    event = Event(
        start_date_time=datetime(2024, 6, 1, 18),
        end_date_time=datetime(2024, 6, 1, 20),
        time_zone=test_timezone,
    )

    flat = list(event.flatten(datetime(2024, 6, 1), datetime(2024, 6, 2), resolver=resolver))

    assert _starts(flat) == [datetime(2024, 6, 1, 16, tzinfo=UTC)]


def test_invalid_rule_raises_before_iteration(weekly_event, resolver):
    weekly_event.recurrence_rule = RecurrenceRule(frequency=Frequency.DAILY, by_year_day=[1])

    with pytest.raises(InvalidRecurrenceOperationError):
        weekly_event.flatten(datetime(2024, 1, 1), datetime(2024, 2, 1), resolver=resolver)


class TestAlarms:
    def test_trigger_before_start(self, weekly_event):
        alarm = Alarm(trigger_offset=timedelta(minutes=-15))

        assert alarm.trigger_times(weekly_event) == [datetime(2024, 1, 1, 8, 45)]

    def test_repetitions(self, weekly_event):
        alarm = Alarm(
            trigger_relation=TriggerRelation.END,
            repetition_count=2,
            repetition_duration=timedelta(minutes=5),
        )

        assert alarm.trigger_times(weekly_event) == [
            datetime(2024, 1, 1, 10, 30),
            datetime(2024, 1, 1, 10, 35),
            datetime(2024, 1, 1, 10, 40),
        ]

    def test_missing_boundary(self):
        alarm = Alarm(trigger_relation=TriggerRelation.END)

        assert alarm.trigger_times(Event(start_date_time=datetime(2024, 1, 1))) == []

    def test_alarms_for_flat_instance(self, utc_weekly_event, resolver):
        alarm = Alarm(trigger_offset=timedelta(hours=-1))

        flat = next(
            utc_weekly_event.flatten(
                datetime(2024, 1, 7, tzinfo=UTC), datetime(2024, 1, 31, tzinfo=UTC), resolver=resolver
            )
        )

        assert alarm.trigger_times(flat) == [datetime(2024, 1, 8, 7, tzinfo=UTC)]


def test_location_str():
    location = Location(title="Office", street="Hauptstr.", house_number="5", zip_code="10115", city="Berlin")

    assert str(location) == "Office, Hauptstr. 5, 10115 Berlin"
