"""Renders the selected meeting into display-ready, localized strings."""

import logging
import re
from collections.abc import Callable, Iterable, Mapping, Sequence
from datetime import datetime, timedelta, tzinfo
from typing import Any, Optional

from .models import CalendarSource, DisplayStrings, FormatOptions, MeetingCandidate, TimeMode, Visibility
from .timezone_utils import get_local_timezone
from .url_extractor import MeetingUrlExtractor, UrlPattern

logger = logging.getLogger(__name__)

Localize = Callable[[str, Mapping[str, Any]], str]

WEEKDAY_IDS = (
    "weekday-mon",
    "weekday-tue",
    "weekday-wed",
    "weekday-thu",
    "weekday-fri",
    "weekday-sat",
    "weekday-sun",
)

VISIBILITY_MINUTES = {
    Visibility.WITHIN_30M: 30,
    Visibility.WITHIN_15M: 15,
    Visibility.WITHIN_5M: 5,
}

_HEX_COLOR_RE = re.compile(r"^[0-9a-fA-F]{6}$")


def parse_hex_color(value: Optional[str]) -> Optional[str]:
    """Normalize "#62a0ea" or "62A0EA" to "#62a0ea"; None if invalid."""
    if not value:
        return None
    digits = value.strip().lstrip("#")
    if not _HEX_COLOR_RE.match(digits):
        return None
    return "#" + digits.lower()


def minutes_until(start: datetime, now: datetime) -> int:
    """Whole minutes from now until start, truncated toward zero."""
    return int((start - now).total_seconds() / 60)


class Presenter:
    """Formats a MeetingCandidate for the panel.

    All user-visible text goes through the `localize` callable; the presenter
    only decides which message to use and with which parameters.
    """

    def __init__(
        self,
        localize: Localize,
        timezone: Optional[tzinfo] = None,
        sources: Iterable[CalendarSource] = (),
        pattern_set: Sequence[UrlPattern] = (),
    ):
        """Initialize presenter.

        Args:
            localize: Callable (message_id, params) -> text
            timezone: Viewer's timezone, detected when None
            sources: Calendar sources, for calendar colors
            pattern_set: Meeting URL patterns, used to tell URLs from rooms
        """
        self.localize = localize
        self.timezone = timezone or get_local_timezone()
        self.sources = {s.id: s for s in sources}
        self.pattern_set = list(pattern_set)
        self._extractor = MeetingUrlExtractor()

    def _t(self, message_id: str, **params: Any) -> str:
        return self.localize(message_id, params)

    def format_relative(self, delta: timedelta) -> str:
        """Format a positive time-until-start with its two most significant units."""
        total_minutes = int(delta.total_seconds() // 60)
        if total_minutes <= 0:
            return self._t("time-now")

        days, remainder = divmod(total_minutes, 24 * 60)
        hours, minutes = divmod(remainder, 60)
        if days > 0:
            if hours > 0:
                return self._t("time-in-days-hours", days=days, hours=hours)
            return self._t("time-in-days", days=days)
        if hours > 0:
            if minutes > 0:
                return self._t("time-in-hours-minutes", hours=hours, minutes=minutes)
            return self._t("time-in-hours", hours=hours)
        return self._t("time-in-minutes", minutes=minutes)

    def format_clock(self, dt: datetime, use_24h: bool) -> str:
        """Format a local wall-clock time."""
        minute = f"{dt.minute:02d}"
        if use_24h:
            return self._t("clock-24h", hour=f"{dt.hour:02d}", minute=minute)
        hour = dt.hour % 12 or 12
        period = self._t("clock-am" if dt.hour < 12 else "clock-pm")
        return self._t("clock-12h", hour=str(hour), minute=minute, period=period)

    def format_absolute(self, start: datetime, now: datetime, use_24h: bool) -> str:
        """Clock only for today, weekday and clock otherwise."""
        local_start = start.astimezone(self.timezone)
        local_now = now.astimezone(self.timezone)
        clock = self.format_clock(local_start, use_24h)
        if local_start.date() == local_now.date():
            return self._t("time-clock", clock=clock)
        weekday = self._t(WEEKDAY_IDS[local_start.weekday()])
        return self._t("time-day-clock", weekday=weekday, clock=clock)

    def format_time(self, candidate: MeetingCandidate, now: datetime, options: FormatOptions) -> str:
        """Format the time element of the panel text."""
        occurrence = candidate.occurrence
        if occurrence.is_in_progress(now):
            return self._t("time-in-progress")

        delta = occurrence.start - now
        if delta < timedelta(minutes=1):
            return self._t("time-now")
        if options.time_mode is TimeMode.RELATIVE:
            return self.format_relative(delta)
        return self.format_absolute(occurrence.start, now, options.use_24h)

    def format_title(self, title: str, max_length: int) -> str:
        """Truncate long titles; substitute a placeholder for empty ones."""
        title = title.strip()
        if not title:
            return self._t("untitled-event")
        if len(title) > max_length:
            return self._t("title-truncated", title=title[: max_length - 3])
        return title

    def is_visible(self, visibility: Visibility, start: datetime, now: datetime) -> bool:
        """Evaluate a visibility rule for an element of the panel."""
        if visibility is Visibility.HIDE:
            return False
        if visibility is Visibility.SHOW:
            return True
        if visibility is Visibility.SAME_DAY:
            return start.astimezone(self.timezone).date() == now.astimezone(self.timezone).date()
        return minutes_until(start, now) <= VISIBILITY_MINUTES[visibility]

    def calendar_color(self, calendar_id: str) -> Optional[str]:
        """Normalized color of the owning source, if valid."""
        source = self.sources.get(calendar_id)
        if source is None:
            return None
        color = parse_hex_color(source.color)
        if color is None and source.color:
            logger.debug("Ignoring invalid color %r for calendar %s", source.color, calendar_id)
        return color

    def present(self, candidate: MeetingCandidate, now: datetime, options: FormatOptions) -> DisplayStrings:
        """Render the selected meeting.

        Args:
            candidate: Selected occurrence with its join URL
            now: Current time (timezone-aware)
            options: Presentation options

        Returns:
            DisplayStrings for the panel
        """
        occurrence = candidate.occurrence
        time_text = self.format_time(candidate, now, options)

        location = None
        if options.show_location and self.is_visible(options.location_visibility, occurrence.start, now):
            location = self._extractor.physical_location(occurrence, self.pattern_set)

        if location:
            info = self._t("panel-time-location", time=time_text, location=location)
        else:
            info = self._t("panel-time", time=time_text)

        join_url = None
        join_label = None
        if candidate.has_join_url and self.is_visible(options.join_visibility, occurrence.start, now):
            join_url = candidate.join_url
            join_label = self._t("join")

        return DisplayStrings(
            title=self.format_title(occurrence.title, options.max_title_length),
            time=time_text,
            info=info,
            location=location,
            calendar_color=self.calendar_color(occurrence.calendar_id) if options.show_calendar_color else None,
            join_url=join_url,
            join_label=join_label,
            in_progress=occurrence.is_in_progress(now),
        )

    def present_none(self, has_sources: bool, loaded: bool = True) -> str:
        """Text for the panel when there is no meeting to show.

        Args:
            has_sources: Whether any calendar is enabled
            loaded: Whether the first refresh has completed

        Returns:
            Localized placeholder text
        """
        if not loaded:
            return self._t("loading-meetings")
        if not has_sources:
            return self._t("no-calendars")
        return self._t("no-meetings")
