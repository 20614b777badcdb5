"""Unit tests for nextmeeting.timezone_utils."""

import logging
import zoneinfo
from datetime import UTC, datetime

import pytest

from nextmeeting.timezone_utils import TimeProvider, TimezoneDetector, TimezoneResolver, now_utc

pytestmark = pytest.mark.unit


@pytest.fixture
def resolver() -> TimezoneResolver:
    """Fresh resolver."""
    return TimezoneResolver()


class TestTimezoneResolver:
    """Tests for TZID resolution."""

    @pytest.mark.parametrize(
        ("tzid", "expected"),
        [
            ("America/New_York", "America/New_York"),
            ("america/new_york", "America/New_York"),
            ('"Europe/Berlin"', "Europe/Berlin"),
            ("Etc/UTC", "UTC"),
            ("Eastern Standard Time", "America/New_York"),
            ("Pacific Daylight Time", "America/Los_Angeles"),
            ("W. Europe Standard Time", "Europe/Berlin"),
            ("PST", "America/Los_Angeles"),
            ("AEDT", "Australia/Sydney"),
        ],
    )
    def test_resolve_name(self, resolver: TimezoneResolver, tzid: str, expected: str) -> None:
        """Should map IANA, Windows and abbreviation values to IANA names."""
        assert resolver.resolve_name(tzid) == expected

    def test_resolve_name_unknown(self, resolver: TimezoneResolver) -> None:
        """Should return None for unrecognised values."""
        assert resolver.resolve_name("Nowhere/Special") is None
        assert resolver.resolve_name("") is None

    def test_resolve_returns_zoneinfo(self, resolver: TimezoneResolver) -> None:
        """Should return a loadable ZoneInfo."""
        tz = resolver.resolve("Tokyo Standard Time")
        assert tz == zoneinfo.ZoneInfo("Asia/Tokyo")

    def test_resolve_unknown_logs_warning(self, resolver: TimezoneResolver, caplog) -> None:
        """Should warn and return None for unknown zones."""
        with caplog.at_level(logging.WARNING, logger="nextmeeting.timezone_utils"):
            assert resolver.resolve("Mars/Olympus_Mons") is None
        assert "Mars/Olympus_Mons" in caplog.text


class TestTimezoneDetector:
    """Tests for local timezone detection."""

    def test_tz_environment_wins(self, monkeypatch, resolver: TimezoneResolver) -> None:
        """Should use the TZ environment variable when it names a zone."""
        monkeypatch.setenv("TZ", ":Europe/Berlin")
        assert TimezoneDetector(resolver).get_local_timezone_name() == "Europe/Berlin"

    def test_always_returns_a_zone(self, monkeypatch, resolver: TimezoneResolver) -> None:
        """Should fall back to some loadable zone when TZ is unusable."""
        monkeypatch.setenv("TZ", "Not/AZone")
        tz = TimezoneDetector(resolver).get_local_timezone()
        assert isinstance(tz, zoneinfo.ZoneInfo)


class TestTimeProvider:
    """Tests for the test-time override."""

    def test_override_with_offset(self, monkeypatch) -> None:
        """Should convert the override to UTC."""
        monkeypatch.setenv("NEXTMEETING_TEST_TIME", "2025-10-27T08:20:00-07:00")
        assert TimeProvider().now_utc() == datetime(2025, 10, 27, 15, 20, tzinfo=UTC)

    def test_naive_override_is_utc(self, monkeypatch) -> None:
        """Should read naive overrides as UTC."""
        monkeypatch.setenv("NEXTMEETING_TEST_TIME", "2025-10-27T08:20:00")
        assert now_utc() == datetime(2025, 10, 27, 8, 20, tzinfo=UTC)

    def test_invalid_override_falls_back(self, monkeypatch) -> None:
        """Should ignore an unparsable override."""
        monkeypatch.setenv("NEXTMEETING_TEST_TIME", "yesterday-ish")
        current = TimeProvider().now_utc()
        assert current.tzinfo is not None
        assert current.year >= 2025

    def test_without_override(self) -> None:
        """Should return an aware current time."""
        assert now_utc().utcoffset().total_seconds() == 0
