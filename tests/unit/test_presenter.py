"""Unit tests for nextmeeting.presenter."""

import zoneinfo
from datetime import UTC, datetime, timedelta

import pytest

from nextmeeting.models import CalendarSource, FormatOptions, MeetingCandidate, TimeMode, Visibility
from nextmeeting.presenter import Presenter, minutes_until, parse_hex_color
from nextmeeting.url_extractor import build_pattern_set

pytestmark = pytest.mark.unit

ZOOM_URL = "https://acme.zoom.us/j/123456789"


@pytest.fixture
def presenter(localize, sample_sources) -> Presenter:
    """Presenter in UTC with the sample sources."""
    return Presenter(localize, UTC, sample_sources, build_pattern_set())


@pytest.fixture
def ten_am() -> datetime:
    """Monday 2025-10-27 10:00 UTC."""
    return datetime(2025, 10, 27, 10, 0, tzinfo=UTC)


class TestHelpers:
    """Tests for module-level helpers."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            ("#62a0ea", "#62a0ea"),
            ("62A0EA", "#62a0ea"),
            (" #FFFFFF ", "#ffffff"),
            ("#fff", None),
            ("not-a-color", None),
            ("", None),
            (None, None),
        ],
    )
    def test_parse_hex_color(self, value, expected) -> None:
        """Should normalize six-digit hex colors."""
        assert parse_hex_color(value) == expected

    def test_minutes_until(self, ten_am: datetime) -> None:
        """Should truncate toward zero."""
        assert minutes_until(ten_am + timedelta(minutes=14, seconds=59), ten_am) == 14
        assert minutes_until(ten_am - timedelta(minutes=3), ten_am) == -3


class TestFormatRelative:
    """Tests for relative time formatting."""

    @pytest.mark.parametrize(
        ("delta", "expected"),
        [
            (timedelta(hours=2, minutes=30), "in 2h 30m"),
            (timedelta(hours=3), "in 3h"),
            (timedelta(minutes=45), "in 45m"),
            (timedelta(days=1, hours=3, minutes=20), "in 1d 3h"),
            (timedelta(days=2, minutes=5), "in 2d"),
            (timedelta(seconds=30), "now"),
        ],
    )
    def test_two_most_significant_units(self, presenter: Presenter, delta, expected) -> None:
        """Should render at most two units."""
        assert presenter.format_relative(delta) == expected


class TestFormatClock:
    """Tests for clock formatting."""

    def test_12h(self, presenter: Presenter) -> None:
        """Should use unpadded hours with am/pm."""
        assert presenter.format_clock(datetime(2025, 10, 27, 13, 5, tzinfo=UTC), False) == "1:05pm"
        assert presenter.format_clock(datetime(2025, 10, 27, 0, 30, tzinfo=UTC), False) == "12:30am"
        assert presenter.format_clock(datetime(2025, 10, 27, 12, 0, tzinfo=UTC), False) == "12:00pm"

    def test_24h(self, presenter: Presenter) -> None:
        """Should zero-pad hours."""
        assert presenter.format_clock(datetime(2025, 10, 27, 9, 5, tzinfo=UTC), True) == "09:05"

    def test_absolute_today_and_later(self, presenter: Presenter, ten_am: datetime) -> None:
        """Should add the weekday for meetings on another day."""
        assert presenter.format_absolute(datetime(2025, 10, 27, 11, 0, tzinfo=UTC), ten_am, False) == "11:00am"
        assert presenter.format_absolute(datetime(2025, 10, 28, 9, 0, tzinfo=UTC), ten_am, False) == "Tue 9:00am"

    def test_absolute_uses_viewer_timezone(self, localize, ten_am: datetime) -> None:
        """Should render the start in the viewer's zone."""
        presenter = Presenter(localize, zoneinfo.ZoneInfo("America/New_York"))
        assert presenter.format_absolute(datetime(2025, 10, 27, 15, 0, tzinfo=UTC), ten_am, True) == "11:00"


class TestFormatTitle:
    """Tests for title formatting."""

    def test_truncates_long_titles(self, presenter: Presenter) -> None:
        """Should keep max-3 characters and append an ellipsis."""
        title = "Quarterly planning with the extended team"
        assert presenter.format_title(title, 30) == title[:27] + "..."

    def test_keeps_short_titles(self, presenter: Presenter) -> None:
        """Should leave titles within the limit alone."""
        assert presenter.format_title("Standup", 30) == "Standup"
        assert presenter.format_title("x" * 30, 30) == "x" * 30

    def test_empty_title_placeholder(self, presenter: Presenter) -> None:
        """Should substitute a placeholder for empty titles."""
        assert presenter.format_title("   ", 30) == "Untitled Event"


class TestVisibility:
    """Tests for visibility rules."""

    def test_rules(self, presenter: Presenter, ten_am: datetime) -> None:
        """Should evaluate each visibility option."""
        in_20 = ten_am + timedelta(minutes=20)
        tomorrow = ten_am + timedelta(days=1)
        assert presenter.is_visible(Visibility.SHOW, tomorrow, ten_am)
        assert not presenter.is_visible(Visibility.HIDE, in_20, ten_am)
        assert presenter.is_visible(Visibility.SAME_DAY, in_20, ten_am)
        assert not presenter.is_visible(Visibility.SAME_DAY, tomorrow, ten_am)
        assert presenter.is_visible(Visibility.WITHIN_30M, in_20, ten_am)
        assert not presenter.is_visible(Visibility.WITHIN_15M, in_20, ten_am)
        assert presenter.is_visible(Visibility.WITHIN_15M, ten_am + timedelta(minutes=15), ten_am)
        assert presenter.is_visible(Visibility.WITHIN_5M, ten_am - timedelta(minutes=10), ten_am)


class TestPresent:
    """Tests for Presenter.present."""

    def test_relative_scenario(self, presenter: Presenter, make_occurrence, ten_am: datetime) -> None:
        """Should render "in 2h 30m" for a 12:30 meeting at 10:00."""
        occurrence = make_occurrence(title="Planning").model_copy(
            update={"start": datetime(2025, 10, 27, 12, 30, tzinfo=UTC), "end": datetime(2025, 10, 27, 13, 0, tzinfo=UTC)}
        )
        display = presenter.present(
            MeetingCandidate(occurrence=occurrence), ten_am, FormatOptions(time_mode=TimeMode.RELATIVE)
        )
        assert display.time == "in 2h 30m"
        assert display.info == "(in 2h 30m)"
        assert display.title == "Planning"
        assert display.in_progress is False

    def test_in_progress_scenario(self, presenter: Presenter, make_occurrence, ten_am: datetime) -> None:
        """Should render "in progress" for a 09:00-11:00 meeting at 10:00."""
        occurrence = make_occurrence().model_copy(
            update={"start": datetime(2025, 10, 27, 9, 0, tzinfo=UTC), "end": datetime(2025, 10, 27, 11, 0, tzinfo=UTC)}
        )
        for mode in TimeMode:
            display = presenter.present(MeetingCandidate(occurrence=occurrence), ten_am, FormatOptions(time_mode=mode))
            assert display.time == "in progress"
            assert display.in_progress is True

    def test_starting_within_a_minute_is_now(self, presenter: Presenter, make_occurrence, now: datetime) -> None:
        """Should render "now" when the start is under a minute away."""
        occurrence = make_occurrence(starts_in=timedelta(seconds=40))
        assert presenter.present(MeetingCandidate(occurrence=occurrence), now, FormatOptions()).time == "now"

    def test_location_and_join(self, presenter: Presenter, make_occurrence, now: datetime) -> None:
        """Should include the room and the join button."""
        occurrence = make_occurrence(title="Design review", location="Room 4", starts_in=timedelta(minutes=10))
        candidate = MeetingCandidate(occurrence=occurrence, join_url=ZOOM_URL)
        display = presenter.present(candidate, now, FormatOptions(join_visibility=Visibility.WITHIN_15M))
        assert display.info == "(8:10am in Room 4)"
        assert display.location == "Room 4"
        assert display.join_url == ZOOM_URL
        assert display.join_label == "Join"

    def test_join_hidden_until_close(self, presenter: Presenter, make_occurrence, now: datetime) -> None:
        """Should hide the join button for meetings further away than the rule allows."""
        candidate = MeetingCandidate(occurrence=make_occurrence(starts_in=timedelta(hours=3)), join_url=ZOOM_URL)
        display = presenter.present(candidate, now, FormatOptions(join_visibility=Visibility.WITHIN_15M))
        assert display.join_url is None
        assert display.join_label is None

    def test_url_location_not_shown(self, presenter: Presenter, make_occurrence, now: datetime) -> None:
        """Should not show a URL as the location."""
        occurrence = make_occurrence(location=ZOOM_URL, starts_in=timedelta(hours=3))
        display = presenter.present(MeetingCandidate(occurrence=occurrence, join_url=ZOOM_URL), now, FormatOptions())
        assert display.info == "(11:00am)"
        assert display.location is None

    def test_location_hidden(self, presenter: Presenter, make_occurrence, now: datetime) -> None:
        """Should omit the location when show_location is off."""
        occurrence = make_occurrence(location="Room 4")
        display = presenter.present(MeetingCandidate(occurrence=occurrence), now, FormatOptions(show_location=False))
        assert display.location is None
        assert display.info == "(9:00am)"

    def test_calendar_color(self, presenter: Presenter, make_occurrence, now: datetime) -> None:
        """Should attach the normalized color of the owning calendar when enabled."""
        candidate = MeetingCandidate(occurrence=make_occurrence())
        assert presenter.present(candidate, now, FormatOptions(show_calendar_color=True)).calendar_color == "#62a0ea"
        assert presenter.present(candidate, now, FormatOptions()).calendar_color is None

        home = MeetingCandidate(occurrence=make_occurrence(calendar_id="home"))
        assert presenter.present(home, now, FormatOptions(show_calendar_color=True)).calendar_color is None

    def test_uses_localize(self, sample_sources, make_occurrence, now: datetime) -> None:
        """Should route every visible string through the localize callable."""
        calls = []

        def localize(message_id, params):
            calls.append(message_id)
            return f"<{message_id}>"

        presenter = Presenter(localize, UTC, sample_sources)
        display = presenter.present(MeetingCandidate(occurrence=make_occurrence(title="")), now, FormatOptions())
        assert display.title == "<untitled-event>"
        assert display.info == "<panel-time>"
        assert "time-clock" in calls


class TestPresentNone:
    """Tests for placeholder text."""

    def test_placeholders(self, presenter: Presenter) -> None:
        """Should distinguish loading, no calendars and no meetings."""
        assert presenter.present_none(has_sources=True, loaded=False) == "Loading meetings..."
        assert presenter.present_none(has_sources=False) == "No calendars"
        assert presenter.present_none(has_sources=True) == "No upcoming meetings"
