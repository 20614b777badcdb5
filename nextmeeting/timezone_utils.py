"""Timezone detection and TZID resolution utilities for nextmeeting."""

from __future__ import annotations

import datetime
import functools
import logging
import os
import time
import zoneinfo
from pathlib import Path
from typing import ClassVar

logger = logging.getLogger(__name__)

# Fallback when the local zone cannot be detected
DEFAULT_TIMEZONE = "UTC"


@functools.lru_cache(maxsize=1)
def _iana_names_by_lower() -> dict[str, str]:
    return {name.lower(): name for name in zoneinfo.available_timezones()}


class TimezoneResolver:
    """Resolves TZID parameter values to tzinfo objects.

    Calendar software emits IANA names, Windows names (Outlook/Exchange) and
    the occasional abbreviation. Ambiguous abbreviations (CST, IST) are left
    unresolved on purpose.
    """

    # Windows timezone names to IANA identifier mapping
    WINDOWS_TZ_MAP: ClassVar[dict[str, str]] = {
        "Dateline Standard Time": "Etc/GMT+12",
        "UTC-11": "Etc/GMT+11",
        "Hawaiian Standard Time": "Pacific/Honolulu",
        "Alaskan Standard Time": "America/Anchorage",
        "Pacific Standard Time": "America/Los_Angeles",
        "Pacific Standard Time (Mexico)": "America/Tijuana",
        "US Mountain Standard Time": "America/Phoenix",
        "Arizona Standard Time": "America/Phoenix",
        "Mountain Standard Time": "America/Denver",
        "Central America Standard Time": "America/Guatemala",
        "Central Standard Time": "America/Chicago",
        "Central Standard Time (Mexico)": "America/Mexico_City",
        "Canada Central Standard Time": "America/Regina",
        "SA Pacific Standard Time": "America/Bogota",
        "Eastern Standard Time": "America/New_York",
        "US Eastern Standard Time": "America/Indiana/Indianapolis",
        "Atlantic Standard Time": "America/Halifax",
        "Newfoundland Standard Time": "America/St_Johns",
        "E. South America Standard Time": "America/Sao_Paulo",
        "Argentina Standard Time": "America/Buenos_Aires",
        "UTC": "Etc/UTC",
        "GMT Standard Time": "Europe/London",
        "Greenwich Standard Time": "Atlantic/Reykjavik",
        "W. Europe Standard Time": "Europe/Berlin",
        "Central Europe Standard Time": "Europe/Budapest",
        "Romance Standard Time": "Europe/Paris",
        "Central European Standard Time": "Europe/Warsaw",
        "W. Central Africa Standard Time": "Africa/Lagos",
        "GTB Standard Time": "Europe/Bucharest",
        "E. Europe Standard Time": "Europe/Chisinau",
        "FLE Standard Time": "Europe/Kiev",
        "Israel Standard Time": "Asia/Jerusalem",
        "Egypt Standard Time": "Africa/Cairo",
        "South Africa Standard Time": "Africa/Johannesburg",
        "Russian Standard Time": "Europe/Moscow",
        "Turkey Standard Time": "Europe/Istanbul",
        "Arabian Standard Time": "Asia/Dubai",
        "Arab Standard Time": "Asia/Riyadh",
        "Iran Standard Time": "Asia/Tehran",
        "Pakistan Standard Time": "Asia/Karachi",
        "India Standard Time": "Asia/Kolkata",
        "Nepal Standard Time": "Asia/Katmandu",
        "Bangladesh Standard Time": "Asia/Dhaka",
        "SE Asia Standard Time": "Asia/Bangkok",
        "China Standard Time": "Asia/Shanghai",
        "Singapore Standard Time": "Asia/Singapore",
        "Taipei Standard Time": "Asia/Taipei",
        "W. Australia Standard Time": "Australia/Perth",
        "Tokyo Standard Time": "Asia/Tokyo",
        "Korea Standard Time": "Asia/Seoul",
        "Cen. Australia Standard Time": "Australia/Adelaide",
        "AUS Central Standard Time": "Australia/Darwin",
        "E. Australia Standard Time": "Australia/Brisbane",
        "AUS Eastern Standard Time": "Australia/Sydney",
        "Tasmania Standard Time": "Australia/Hobart",
        "New Zealand Standard Time": "Pacific/Auckland",
    }

    # Unambiguous abbreviations seen in the wild that are not IANA names
    TZ_ABBREV_MAP: ClassVar[dict[str, str]] = {
        "PST": "America/Los_Angeles",
        "PDT": "America/Los_Angeles",
        "EDT": "America/New_York",
        "CDT": "America/Chicago",
        "MDT": "America/Denver",
        "BST": "Europe/London",
        "CEST": "Europe/Berlin",
        "JST": "Asia/Tokyo",
        "SGT": "Asia/Singapore",
        "KST": "Asia/Seoul",
        "NZST": "Pacific/Auckland",
        "NZDT": "Pacific/Auckland",
        "AEST": "Australia/Sydney",
        "AEDT": "Australia/Sydney",
        "AWST": "Australia/Perth",
        "Z": "UTC",
    }

    def resolve_name(self, tzid: str) -> str | None:
        """Map a TZID value to a canonical IANA name.

        Args:
            tzid: TZID parameter value

        Returns:
            IANA name, or None if the value is not recognised
        """
        tzid = (tzid or "").strip().strip('"')
        if not tzid:
            return None

        iana = _iana_names_by_lower().get(tzid.lower())
        if iana is not None:
            return "UTC" if iana in ("Etc/UTC", "Etc/Universal", "UCT") else iana

        # CLDR only lists "Standard Time" names
        windows = tzid.replace(" Daylight Time", " Standard Time")
        if windows in self.WINDOWS_TZ_MAP:
            mapped = self.WINDOWS_TZ_MAP[windows]
            return "UTC" if mapped == "Etc/UTC" else mapped

        return self.TZ_ABBREV_MAP.get(tzid)

    def resolve(self, tzid: str) -> datetime.tzinfo | None:
        """Resolve a TZID value to a ZoneInfo, or None with a warning."""
        name = self.resolve_name(tzid)
        if name is None:
            if tzid:
                logger.warning("Unrecognized timezone %r, falling back to local time", tzid)
            return None
        try:
            return zoneinfo.ZoneInfo(name)
        except (zoneinfo.ZoneInfoNotFoundError, ValueError) as e:
            logger.warning("Timezone %r mapped to %r but could not be loaded: %s", tzid, name, e)
            return None


class TimezoneDetector:
    """Detects the viewer's local timezone using multiple fallback strategies."""

    def __init__(self, resolver: TimezoneResolver):
        """Initialize detector.

        Args:
            resolver: TimezoneResolver used to validate detected names
        """
        self.resolver = resolver

    def get_local_timezone_name(self) -> str:
        """Get the local timezone as an IANA identifier.

        Returns:
            IANA timezone string, "UTC" if detection fails
        """
        # Strategy 1: explicit TZ environment variable
        env_tz = os.environ.get("TZ", "").lstrip(":")
        if env_tz:
            name = self.resolver.resolve_name(env_tz)
            if name:
                return name

        # Strategy 2: /etc/localtime symlink into the zoneinfo database
        try:
            target = str(Path("/etc/localtime").resolve())
            if "zoneinfo/" in target:
                name = self.resolver.resolve_name(target.split("zoneinfo/", 1)[1])
                if name:
                    return name
        except OSError as e:
            logger.debug("Could not resolve /etc/localtime: %s", e)

        # Strategy 3: system abbreviation
        abbrev = time.tzname[time.daylight] if time.daylight else time.tzname[0]
        name = self.resolver.resolve_name(abbrev)
        if name:
            return name

        logger.warning("Could not detect local timezone, falling back to %s", DEFAULT_TIMEZONE)
        return DEFAULT_TIMEZONE

    def get_local_timezone(self) -> datetime.tzinfo:
        """Get the local timezone as a tzinfo object."""
        return zoneinfo.ZoneInfo(self.get_local_timezone_name())


class TimeProvider:
    """Provides current time with test time override support."""

    def now_utc(self) -> datetime.datetime:
        """Return current UTC time with tzinfo.

        Can be overridden for testing via the NEXTMEETING_TEST_TIME environment
        variable (ISO 8601, e.g. "2025-10-27T08:20:00-07:00"). Naive values are
        taken as UTC.

        Returns:
            Current time in UTC with timezone info
        """
        test_time = os.environ.get("NEXTMEETING_TEST_TIME")
        if test_time:
            try:
                from dateutil import parser as date_parser

                dt = date_parser.isoparse(test_time)
                if dt.tzinfo is not None:
                    return dt.astimezone(datetime.timezone.utc)
                return dt.replace(tzinfo=datetime.timezone.utc)
            except ValueError as e:
                logger.warning("Failed to parse NEXTMEETING_TEST_TIME=%r: %s", test_time, e)

        return datetime.datetime.now(datetime.timezone.utc)


# Singleton instances for global use
_resolver = TimezoneResolver()
_detector = TimezoneDetector(_resolver)
_time_provider = TimeProvider()


def resolve_timezone(tzid: str) -> datetime.tzinfo | None:
    """Resolve a TZID value (convenience function)."""
    return _resolver.resolve(tzid)


def get_local_timezone() -> datetime.tzinfo:
    """Get the viewer's local timezone (convenience function)."""
    return _detector.get_local_timezone()


def now_utc() -> datetime.datetime:
    """Get current UTC time (convenience function)."""
    return _time_provider.now_utc()
