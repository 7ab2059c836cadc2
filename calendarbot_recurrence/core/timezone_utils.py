"""Time zone resolution and local/UTC conversion for recurring events.

Recurrence arithmetic happens on local wall-clock time; storage uses UTC.
A naive ``datetime`` is local wall-clock time in the owning event's zone, an
aware one is an absolute instant (normally UTC).
"""

from __future__ import annotations

import datetime
import logging
import os
import threading
import time
import zoneinfo
from pathlib import Path
from typing import ClassVar, Optional

from ..exceptions import TimezoneResolutionError

logger = logging.getLogger(__name__)

# Fallback when the local system zone cannot be detected
DEFAULT_SERVER_TIMEZONE = "America/Los_Angeles"

UTC = datetime.timezone.utc


class TimezoneDetector:
    """Detects the local system zone as an IANA identifier."""

    TZ_ABBREV_MAP: ClassVar[dict[str, str]] = {
        "PST": "America/Los_Angeles",
        "PDT": "America/Los_Angeles",
        "MST": "America/Denver",
        "MDT": "America/Denver",
        "CST": "America/Chicago",
        "CDT": "America/Chicago",
        "EST": "America/New_York",
        "EDT": "America/New_York",
        "GMT": "Europe/London",
        "BST": "Europe/London",
        "CET": "Europe/Berlin",
        "CEST": "Europe/Berlin",
        "UTC": "UTC",
    }

    # Windows zone names as written by Outlook/Exchange
    WINDOWS_TZ_MAP: ClassVar[dict[str, str]] = {
        "Pacific Standard Time": "America/Los_Angeles",
        "Mountain Standard Time": "America/Denver",
        "US Mountain Standard Time": "America/Phoenix",
        "Central Standard Time": "America/Chicago",
        "Eastern Standard Time": "America/New_York",
        "Atlantic Standard Time": "America/Halifax",
        "Alaskan Standard Time": "America/Anchorage",
        "Hawaiian Standard Time": "Pacific/Honolulu",
        "GMT Standard Time": "Europe/London",
        "W. Europe Standard Time": "Europe/Berlin",
        "Central European Standard Time": "Europe/Warsaw",
        "Central Europe Standard Time": "Europe/Budapest",
        "Romance Standard Time": "Europe/Paris",
        "E. Europe Standard Time": "Europe/Chisinau",
        "FLE Standard Time": "Europe/Kiev",
        "GTB Standard Time": "Europe/Bucharest",
        "Russian Standard Time": "Europe/Moscow",
        "India Standard Time": "Asia/Kolkata",
        "China Standard Time": "Asia/Shanghai",
        "Tokyo Standard Time": "Asia/Tokyo",
        "Korea Standard Time": "Asia/Seoul",
        "Singapore Standard Time": "Asia/Singapore",
        "AUS Eastern Standard Time": "Australia/Sydney",
        "New Zealand Standard Time": "Pacific/Auckland",
        "South Africa Standard Time": "Africa/Johannesburg",
        "E. South America Standard Time": "America/Sao_Paulo",
        "UTC": "UTC",
    }

    def get_server_timezone(self) -> str:
        """Return the local system zone, never raising.

        Tries, in order: the ``TZ`` environment variable, the target of the
        ``/etc/localtime`` link and the abbreviation reported by ``time``.
        Falls back to ``DEFAULT_SERVER_TIMEZONE``.
        """
        candidates = [os.environ.get("TZ", "").lstrip(":"), self._zone_from_localtime_link()]
        abbreviation = time.tzname[time.daylight] if time.daylight else time.tzname[0]
        candidates.append(self.TZ_ABBREV_MAP.get(abbreviation, ""))
        for candidate in candidates:
            if candidate and _is_loadable(candidate):
                return candidate
        logger.warning(
            "Could not detect local time zone (tzname=%r), falling back to %s",
            abbreviation,
            DEFAULT_SERVER_TIMEZONE,
        )
        return DEFAULT_SERVER_TIMEZONE

    def get_fallback_timezone(self) -> str:
        return DEFAULT_SERVER_TIMEZONE

    @staticmethod
    def _zone_from_localtime_link() -> str:
        try:
            target = str(Path("/etc/localtime").resolve())
        except OSError:
            return ""
        marker = "zoneinfo/"
        if marker not in target:
            return ""
        return target.split(marker, 1)[1]


def _is_loadable(zone_id: str) -> bool:
    try:
        zoneinfo.ZoneInfo(zone_id)
    except (zoneinfo.ZoneInfoNotFoundError, ValueError):
        return False
    return True


def windows_tz_to_iana(windows_tz: str) -> Optional[str]:
    """Map a Windows zone name (e.g. "W. Europe Standard Time") to IANA, or None."""
    return TimezoneDetector.WINDOWS_TZ_MAP.get(windows_tz)


class TimezoneResolver:
    """Memoizing zone id -> ``ZoneInfo`` lookup, safe to share between threads.

    Lookups are get-or-compute: the zone is loaded outside the lock and the
    first successfully stored value for an id wins, later computations for the
    same id are discarded. Loading is a pure function of the id, so nothing
    is retried.

    Ids that are neither IANA names nor known Windows names resolve to the
    fallback zone (the local system zone unless one is configured).
    """

    def __init__(
        self,
        fallback_zone: Optional[str] = None,
        detector: Optional[TimezoneDetector] = None,
    ) -> None:
        self._detector = detector or TimezoneDetector()
        self._fallback_zone = fallback_zone
        self._cache: dict[str, zoneinfo.ZoneInfo] = {}
        self._lock = threading.Lock()

    @property
    def fallback_zone(self) -> str:
        if self._fallback_zone is None:
            self._fallback_zone = self._detector.get_server_timezone()
        return self._fallback_zone

    def resolve(self, zone_id: Optional[str]) -> zoneinfo.ZoneInfo:
        """Return the zone for ``zone_id`` (``None`` means the fallback zone)."""
        key = zone_id or self.fallback_zone
        cached = self._cache.get(key)
        if cached is not None:
            return cached
        loaded = self._load(key)
        with self._lock:
            return self._cache.setdefault(key, loaded)

    def cached_zone_ids(self) -> list[str]:
        with self._lock:
            return sorted(self._cache)

    def _load(self, zone_id: str) -> zoneinfo.ZoneInfo:
        if _is_loadable(zone_id):
            return zoneinfo.ZoneInfo(zone_id)
        mapped = windows_tz_to_iana(zone_id)
        if mapped is not None and _is_loadable(mapped):
            logger.debug("Resolved Windows zone %r to %s", zone_id, mapped)
            return zoneinfo.ZoneInfo(mapped)
        fallback = self.fallback_zone
        logger.warning("Unknown time zone %r, using %s", zone_id, fallback)
        try:
            return zoneinfo.ZoneInfo(fallback)
        except (zoneinfo.ZoneInfoNotFoundError, ValueError) as e:
            raise TimezoneResolutionError(
                f"Fallback time zone {fallback!r} is not available"
            ) from e


def local_to_utc(value: datetime.datetime, zone: datetime.tzinfo) -> datetime.datetime:
    """Interpret naive ``value`` as wall-clock time in ``zone`` and return UTC.

    Aware values are already instants and are only normalized to UTC.
    Ambiguous wall-clock times (autumn fold) resolve to the first instant.
    """
    if value.tzinfo is not None:
        return value.astimezone(UTC)
    return value.replace(tzinfo=zone).astimezone(UTC)


def utc_to_local(value: datetime.datetime, zone: datetime.tzinfo) -> datetime.datetime:
    """Return aware ``value`` as naive wall-clock time in ``zone``; naive values pass through."""
    if value.tzinfo is None:
        return value
    return value.astimezone(zone).replace(tzinfo=None)


def exists_locally(value: datetime.datetime, zone: datetime.tzinfo) -> bool:
    """False for naive wall-clock times skipped by a DST transition in ``zone``."""
    if value.tzinfo is not None:
        return True
    return utc_to_local(local_to_utc(value, zone), zone) == value


_default_resolver: Optional[TimezoneResolver] = None
_default_resolver_lock = threading.Lock()


def get_default_resolver() -> TimezoneResolver:
    """Return the shared resolver used when callers do not inject one."""
    global _default_resolver
    with _default_resolver_lock:
        if _default_resolver is None:
            _default_resolver = TimezoneResolver()
        return _default_resolver


def set_default_resolver(resolver: Optional[TimezoneResolver]) -> None:
    """Replace the shared resolver (``None`` resets it to a fresh one on next use)."""
    global _default_resolver
    with _default_resolver_lock:
        _default_resolver = resolver


def get_server_timezone() -> str:
    """Local system zone id (convenience function)."""
    return get_default_resolver().fallback_zone
