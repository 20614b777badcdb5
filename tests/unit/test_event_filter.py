"""Unit tests for nextmeeting.event_filter."""

from datetime import timedelta

import pytest

from nextmeeting.event_filter import EventFilter, EventStatusFilter, compile_exclusions
from nextmeeting.models import AcceptanceStatus, FilterConfig, MeetingCandidate

pytestmark = pytest.mark.unit

ZOOM_URL = "https://acme.zoom.us/j/123456789"


@pytest.fixture
def event_filter() -> EventFilter:
    """Fresh filter."""
    return EventFilter()


class TestEventStatusFilter:
    """Tests for EventStatusFilter."""

    def test_all(self) -> None:
        """Should admit every status."""
        assert EventStatusFilter.ALL.statuses == frozenset(AcceptanceStatus)

    def test_accepted(self) -> None:
        """Should admit accepted and unknown events."""
        assert EventStatusFilter.ACCEPTED.statuses == {AcceptanceStatus.ACCEPTED, AcceptanceStatus.UNKNOWN}

    def test_accepted_or_tentative(self) -> None:
        """Should add tentative events."""
        assert AcceptanceStatus.TENTATIVE in EventStatusFilter.ACCEPTED_OR_TENTATIVE.statuses
        assert AcceptanceStatus.DECLINED not in EventStatusFilter.ACCEPTED_OR_TENTATIVE.statuses


class TestFilter:
    """Tests for EventFilter.filter."""

    def test_calendar_enablement(self, event_filter, make_occurrence, work_filter) -> None:
        """Should drop occurrences from calendars that are not enabled."""
        occurrences = [make_occurrence("a"), make_occurrence("b", calendar_id="home")]
        assert [o.uid for o in event_filter.filter(occurrences, work_filter)] == ["a"]

    def test_nothing_enabled(self, event_filter, make_occurrence) -> None:
        """Should drop everything when no calendar is enabled."""
        assert event_filter.filter([make_occurrence("a")], FilterConfig()) == []

    def test_all_day_exclusion(self, event_filter, make_occurrence) -> None:
        """Should drop all-day events when they are not included."""
        config = FilterConfig(enabled_calendars=frozenset({"work"}), include_all_day=False)
        occurrences = [make_occurrence("timed"), make_occurrence("allday", is_all_day=True)]
        assert [o.uid for o in event_filter.filter(occurrences, config)] == ["timed"]

    def test_acceptance_status(self, event_filter, make_occurrence) -> None:
        """Should keep accepted and unknown events under the accepted setting."""
        config = FilterConfig(
            enabled_calendars=frozenset({"work"}),
            included_acceptance_statuses=EventStatusFilter.ACCEPTED.statuses,
        )
        occurrences = [
            make_occurrence("accepted", acceptance_status=AcceptanceStatus.ACCEPTED),
            make_occurrence("declined", acceptance_status=AcceptanceStatus.DECLINED),
            make_occurrence("tentative", acceptance_status=AcceptanceStatus.TENTATIVE),
            make_occurrence("mine", acceptance_status=AcceptanceStatus.UNKNOWN),
        ]
        assert [o.uid for o in event_filter.filter(occurrences, config)] == ["accepted", "mine"]

    def test_unknown_treated_as_accepted(self, event_filter, make_occurrence) -> None:
        """Should admit UNKNOWN whenever ACCEPTED is admitted."""
        config = FilterConfig(
            enabled_calendars=frozenset({"work"}),
            included_acceptance_statuses=frozenset({AcceptanceStatus.ACCEPTED}),
        )
        assert event_filter.admits(make_occurrence("mine"), config)

    def test_preserves_order(self, event_filter, make_occurrence, work_filter) -> None:
        """Should not reorder occurrences."""
        occurrences = [
            make_occurrence("c", starts_in=timedelta(hours=3)),
            make_occurrence("a", starts_in=timedelta(hours=1)),
            make_occurrence("b", starts_in=timedelta(hours=2)),
        ]
        assert [o.uid for o in event_filter.filter(occurrences, work_filter)] == ["c", "a", "b"]

    def test_idempotent(self, event_filter, make_occurrence) -> None:
        """Should give the same result when applied twice."""
        config = FilterConfig(
            enabled_calendars=frozenset({"work"}),
            include_all_day=False,
            included_acceptance_statuses=EventStatusFilter.ACCEPTED_OR_TENTATIVE.statuses,
        )
        occurrences = [
            make_occurrence("a", acceptance_status=AcceptanceStatus.DECLINED),
            make_occurrence("b", is_all_day=True),
            make_occurrence("c", acceptance_status=AcceptanceStatus.TENTATIVE),
            make_occurrence("d", calendar_id="home"),
            make_occurrence("e"),
        ]
        once = event_filter.filter(occurrences, config)
        assert event_filter.filter(once, config) == once
        assert [o.uid for o in once] == ["c", "e"]


class TestUrlExclusions:
    """Tests for join URL exclusion."""

    def test_excluded_url_suppressed_not_hidden(self, event_filter, make_occurrence) -> None:
        """Should remove the join URL but keep the candidate."""
        config = FilterConfig(enabled_calendars=frozenset({"work"}), excluded_url_patterns=(r"zoom\.us",))
        candidate = MeetingCandidate(occurrence=make_occurrence("a"), join_url=ZOOM_URL)
        (kept,) = event_filter.apply_url_exclusions([candidate], config)
        assert kept.occurrence.uid == "a"
        assert kept.join_url is None
        assert kept.join_url_excluded is True
        assert candidate.join_url == ZOOM_URL

    def test_exclusion_can_hide_event(self, event_filter, make_occurrence) -> None:
        """Should drop the candidate when exclusion_hides_event is set."""
        config = FilterConfig(excluded_url_patterns=(r"zoom\.us",), exclusion_hides_event=True)
        candidates = [
            MeetingCandidate(occurrence=make_occurrence("a"), join_url=ZOOM_URL),
            MeetingCandidate(occurrence=make_occurrence("b"), join_url="https://meet.google.com/abc-defg-hij"),
        ]
        assert [c.occurrence.uid for c in event_filter.apply_url_exclusions(candidates, config)] == ["b"]

    def test_candidates_without_url_untouched(self, event_filter, make_occurrence) -> None:
        """Should pass through candidates without a join URL."""
        config = FilterConfig(excluded_url_patterns=(".*",), exclusion_hides_event=True)
        candidate = MeetingCandidate(occurrence=make_occurrence("a"))
        assert event_filter.apply_url_exclusions([candidate], config) == [candidate]

    def test_case_insensitive(self, event_filter) -> None:
        """Should match exclusion patterns case-insensitively."""
        config = FilterConfig(excluded_url_patterns=("ZOOM",))
        assert event_filter.is_url_excluded(ZOOM_URL, config)

    def test_invalid_pattern_ignored(self, event_filter, caplog) -> None:
        """Should skip invalid patterns and keep the valid ones."""
        compile_exclusions.cache_clear()
        config = FilterConfig(excluded_url_patterns=("([unclosed", "webex"))
        assert not event_filter.is_url_excluded(ZOOM_URL, config)
        assert event_filter.is_url_excluded("https://acme.webex.com/meet/bob", config)
        assert "([unclosed" in caplog.text
