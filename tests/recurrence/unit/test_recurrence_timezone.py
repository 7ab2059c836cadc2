"""Unit tests for calendarbot_recurrence.core.timezone_utils.

Tests zone detection, the memoizing resolver (including concurrent access)
and the local/UTC conversion helpers.
"""

import datetime
import logging
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import patch
from zoneinfo import ZoneInfo

import pytest

from calendarbot_recurrence.core import timezone_utils
from calendarbot_recurrence.core.timezone_utils import (
    DEFAULT_SERVER_TIMEZONE,
    TimezoneDetector,
    TimezoneResolver,
    exists_locally,
    get_default_resolver,
    local_to_utc,
    utc_to_local,
    windows_tz_to_iana,
)
from calendarbot_recurrence.exceptions import TimezoneResolutionError

pytestmark = pytest.mark.unit

UTC = datetime.timezone.utc
BERLIN = ZoneInfo("Europe/Berlin")


class TestTimezoneDetector:
    def test_fallback_is_pacific(self):
        assert TimezoneDetector().get_fallback_timezone() == DEFAULT_SERVER_TIMEZONE

    def test_tz_environment_variable_wins(self, monkeypatch):
        monkeypatch.setenv("TZ", ":Asia/Tokyo")

        assert TimezoneDetector().get_server_timezone() == "Asia/Tokyo"

    def test_falls_back_when_nothing_is_detectable(self, monkeypatch):
        monkeypatch.setenv("TZ", "Not/AZone")
        monkeypatch.setattr(timezone_utils.time, "tzname", ("XYZ", "XYZ"))
        detector = TimezoneDetector()

        with patch.object(TimezoneDetector, "_zone_from_localtime_link", return_value=""):
            assert detector.get_server_timezone() == DEFAULT_SERVER_TIMEZONE

    def test_abbreviation_mapping(self, monkeypatch):
        monkeypatch.delenv("TZ", raising=False)
        monkeypatch.setattr(timezone_utils.time, "tzname", ("CET", "CEST"))
        detector = TimezoneDetector()

        with patch.object(TimezoneDetector, "_zone_from_localtime_link", return_value=""):
            assert detector.get_server_timezone() == "Europe/Berlin"


def test_windows_tz_to_iana():
    assert windows_tz_to_iana("W. Europe Standard Time") == "Europe/Berlin"
    assert windows_tz_to_iana("Pacific Standard Time") == "America/Los_Angeles"
    assert windows_tz_to_iana("Nowhere Standard Time") is None


class TestTimezoneResolver:
    def test_resolves_iana_ids(self, resolver):
        assert resolver.resolve("America/New_York").key == "America/New_York"

    def test_caches_results(self, resolver):
        first = resolver.resolve("Asia/Tokyo")

        assert resolver.resolve("Asia/Tokyo") is first
        assert "Asia/Tokyo" in resolver.cached_zone_ids()

    def test_resolves_windows_names(self, resolver):
        assert resolver.resolve("W. Europe Standard Time").key == "Europe/Berlin"

    def test_unknown_id_uses_fallback_with_warning(self, caplog):
        resolver = TimezoneResolver(fallback_zone="Asia/Tokyo")

        with caplog.at_level(logging.WARNING, logger="calendarbot_recurrence.core.timezone_utils"):
            zone = resolver.resolve("Mars/Olympus_Mons")

        assert zone.key == "Asia/Tokyo"
        assert "Mars/Olympus_Mons" in caplog.text

    def test_none_uses_fallback(self, resolver, test_timezone):
        assert resolver.resolve(None).key == test_timezone
        assert resolver.fallback_zone == test_timezone

    def test_fallback_from_detector(self):
        detector = TimezoneDetector()
        with patch.object(detector, "get_server_timezone", return_value="Asia/Tokyo"):
            resolver = TimezoneResolver(detector=detector)

            assert resolver.fallback_zone == "Asia/Tokyo"

    def test_missing_fallback_raises(self):
        resolver = TimezoneResolver(fallback_zone="Not/AZone")

        with pytest.raises(TimezoneResolutionError):
            resolver.resolve("Also/Not_A_Zone")

    def test_concurrent_lookups_share_one_result(self):
        resolver = TimezoneResolver(fallback_zone="UTC")
        ids = ["Europe/Berlin", "Asia/Tokyo", "W. Europe Standard Time"] * 40

        with ThreadPoolExecutor(max_workers=8) as pool:
            zones = list(pool.map(resolver.resolve, ids))

        berlin = {id(zone) for zone_id, zone in zip(ids, zones) if zone_id == "Europe/Berlin"}
        assert len(berlin) == 1
        assert resolver.cached_zone_ids() == sorted(
            ["Asia/Tokyo", "Europe/Berlin", "W. Europe Standard Time"]
        )


def test_default_resolver_is_shared(default_resolver):
    assert get_default_resolver() is default_resolver
    assert timezone_utils.get_server_timezone() == default_resolver.fallback_zone


class TestConversions:
    @pytest.mark.parametrize(
        "local,utc",
        [
            (datetime.datetime(2024, 1, 15, 12), datetime.datetime(2024, 1, 15, 11, tzinfo=UTC)),
            (datetime.datetime(2024, 7, 1, 12), datetime.datetime(2024, 7, 1, 10, tzinfo=UTC)),
        ],
    )
    def test_round_trip(self, local, utc):
        assert local_to_utc(local, BERLIN) == utc
        assert utc_to_local(utc, BERLIN) == local
        assert utc_to_local(utc, BERLIN).tzinfo is None

    def test_values_already_in_target_kind_are_kept(self):
        aware = datetime.datetime(2024, 1, 1, 8, tzinfo=UTC)
        naive = datetime.datetime(2024, 1, 1, 9)

        assert local_to_utc(aware, BERLIN) == aware
        assert utc_to_local(naive, BERLIN) == naive

    def test_spring_forward_gap(self):
        assert not exists_locally(datetime.datetime(2024, 3, 31, 2, 30), BERLIN)
        assert exists_locally(datetime.datetime(2024, 3, 31, 3, 30), BERLIN)
        assert exists_locally(datetime.datetime(2024, 3, 31, 2, 30, tzinfo=UTC), BERLIN)
