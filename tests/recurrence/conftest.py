from collections.abc import Generator
from datetime import datetime, timezone
from typing import Any

import pytest

from calendarbot_recurrence.core import timezone_utils
from calendarbot_recurrence.core.timezone_utils import TimezoneResolver
from calendarbot_recurrence.domain import Event
from calendarbot_recurrence.rules import Frequency, RecurrenceRule


@pytest.fixture
def test_timezone() -> str:
    """Return a deterministic zone id for tests.

    Using a fixed zone avoids host-local differences which can make
    datetime-sensitive tests flaky. Berlin has DST transitions on
    2024-03-31 and 2024-10-27.
    """
    return "Europe/Berlin"


@pytest.fixture
def resolver(test_timezone: str) -> TimezoneResolver:
    """Resolver whose fallback zone does not depend on the host."""
    return TimezoneResolver(fallback_zone=test_timezone)


@pytest.fixture(autouse=True)
def default_resolver(resolver: TimezoneResolver) -> Generator[TimezoneResolver, Any, None]:
    """Install a host-independent default resolver, reset it afterwards."""
    timezone_utils.set_default_resolver(resolver)
    yield resolver
    timezone_utils.set_default_resolver(None)


@pytest.fixture(autouse=True)
def clean_test_environment(monkeypatch: Any) -> None:
    """Ensure configuration environment variables do not leak into tests."""
    for name in ("CALENDARBOT_DEBUG", "CALENDARBOT_LOG_LEVEL", "CALENDARBOT_RECURRENCE_CONFIG"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def weekly_event(test_timezone: str) -> Event:
    """Persisted-looking weekly event in local (naive) representation.

    Mondays 09:00-10:30 Berlin time starting 2024-01-01, ten occurrences.
    """
    return Event(
        title="Team sync",
        start_date_time=datetime(2024, 1, 1, 9, 0),
        end_date_time=datetime(2024, 1, 1, 10, 30),
        time_zone=test_timezone,
        recurrence_rule=RecurrenceRule(frequency=Frequency.WEEKLY, count=10),
    )


@pytest.fixture
def utc_weekly_event(weekly_event: Event, resolver: TimezoneResolver) -> Event:
    """The weekly event as it is stored: every date/time in UTC."""
    weekly_event.convert_to_utc(resolver)
    return weekly_event


@pytest.fixture
def utc() -> timezone:
    return timezone.utc
