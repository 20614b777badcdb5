"""Event component parsing for ICS calendar processing.

Turns one VEVENT component into a ParsedEvent: the occurrence as written in
the source plus the recurrence data the expander needs.
"""

import hashlib
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Optional

from icalendar import Event as ICalEvent

from .attendee_parser import AttendeeParser
from .datetime_utils import DateTimeResolver
from .models import EventOccurrence

logger = logging.getLogger(__name__)

# Properties some producers use for a dedicated conferencing link, in priority order
CONFERENCE_PROPERTIES = (
    "CONFERENCE",
    "X-GOOGLE-CONFERENCE",
    "X-MICROSOFT-SKYPETEAMSMEETINGURL",
    "X-MICROSOFT-ONLINEMEETINGCONFLINK",
)


@dataclass
class ParsedEvent:
    """A VEVENT as written, before recurrence expansion."""

    occurrence: EventOccurrence
    status: Optional[str] = None
    rrule: Any = None
    rdates: list[date | datetime] = field(default_factory=list)
    exdates: list[date | datetime] = field(default_factory=list)
    recurrence_id: Optional[datetime] = None

    @property
    def is_recurring(self) -> bool:
        """Check if this is a series master."""
        return self.recurrence_id is None and (self.rrule is not None or bool(self.rdates))

    @property
    def is_cancelled(self) -> bool:
        """Check if the event (or override) was cancelled."""
        return self.status == "CANCELLED"

    @property
    def duration(self) -> timedelta:
        """Length of each instance."""
        return self.occurrence.end - self.occurrence.start


class EventComponentParser:
    """Parser for iCalendar VEVENT components."""

    def __init__(self, datetime_resolver: DateTimeResolver, attendee_parser: AttendeeParser):
        """Initialize event component parser.

        Args:
            datetime_resolver: Resolver for date/datetime properties
            attendee_parser: Parser for attendee properties
        """
        self.datetime_resolver = datetime_resolver
        self.attendee_parser = attendee_parser

    def parse_event_component(
        self,
        component: ICalEvent,
        calendar_id: str,
        own_emails: frozenset[str],
    ) -> ParsedEvent:
        """Parse a single VEVENT component.

        Args:
            component: iCalendar VEVENT component
            calendar_id: Owning calendar source id
            own_emails: Normalized addresses of the viewing user

        Returns:
            ParsedEvent

        Raises:
            ValueError: If the event has no usable DTSTART or its end precedes
                its start
        """
        uid = self._extract_uid(component)
        start, end, is_all_day = self._parse_event_times(component)
        if end < start:
            raise ValueError(f"end {end.isoformat()} is before start {start.isoformat()}")

        occurrence = EventOccurrence(
            uid=uid,
            calendar_id=calendar_id,
            title=self._text(component.get("SUMMARY")),
            location=self._text(component.get("LOCATION")),
            description=self._text(component.get("DESCRIPTION")),
            conference_url=self._extract_conference_url(component),
            start=start,
            end=end,
            is_all_day=is_all_day,
            acceptance_status=self.attendee_parser.resolve_status(component, own_emails),
        )

        recurrence_id = self._parse_recurrence_id(component)

        status = component.get("STATUS")
        return ParsedEvent(
            occurrence=occurrence,
            status=str(status).upper() if status is not None else None,
            rrule=component.get("RRULE"),
            rdates=self.datetime_resolver.resolve_list(component.get("RDATE")),
            exdates=self.datetime_resolver.resolve_list(component.get("EXDATE")),
            recurrence_id=recurrence_id,
        )

    def _parse_recurrence_id(self, component: ICalEvent) -> Optional[datetime]:
        # An override that loses its RECURRENCE-ID would duplicate the series
        for name, message in getattr(component, "errors", ()):
            if str(name).upper() == "RECURRENCE-ID":
                raise ValueError(f"unparsable RECURRENCE-ID: {message}")

        recurrence_prop = component.get("RECURRENCE-ID")
        if recurrence_prop is None:
            return None
        try:
            return self.datetime_resolver.resolve(recurrence_prop)[0]
        except ValueError as e:
            raise ValueError(f"unparsable RECURRENCE-ID: {e}") from e

    def _extract_uid(self, component: ICalEvent) -> str:
        uid = self._text(component.get("UID")).strip()
        if uid:
            return uid
        # Stable across refreshes so selection stays deterministic
        raw = component.to_ical()
        return "generated-" + hashlib.sha1(raw).hexdigest()[:16]

    @staticmethod
    def _text(value: Any) -> str:
        if value is None:
            return ""
        if isinstance(value, list):
            value = value[0] if value else ""
        return str(value)

    def _parse_event_times(self, component: ICalEvent) -> tuple[datetime, datetime, bool]:
        """Parse event start and end times from component.

        Args:
            component: iCalendar VEVENT component

        Returns:
            Tuple of (start, end, is_all_day)

        Raises:
            ValueError: If DTSTART is missing or unparsable
        """
        dtstart = component.get("DTSTART")
        if dtstart is None:
            raise ValueError("missing DTSTART")

        start, is_all_day = self.datetime_resolver.resolve(dtstart)

        dtend = component.get("DTEND")
        if dtend is not None:
            end, _ = self.datetime_resolver.resolve(dtend)
            return start, end, is_all_day

        duration = component.get("DURATION")
        if duration is not None:
            delta = duration.dt
            if not isinstance(delta, timedelta):
                raise ValueError(f"unsupported DURATION {duration!r}")
            if is_all_day:
                # Whole days keep wall-clock midnight across DST changes
                end_day = start.date() + timedelta(days=delta.days)
                end = start.replace(year=end_day.year, month=end_day.month, day=end_day.day)
                return start, end + (delta - timedelta(days=delta.days)), is_all_day
            return start, start + delta, is_all_day

        # RFC 5545: a date DTSTART alone lasts one day, a datetime alone is instantaneous
        if is_all_day:
            next_day = start.date() + timedelta(days=1)
            return start, start.replace(year=next_day.year, month=next_day.month, day=next_day.day), True
        return start, start, False

    def _extract_conference_url(self, component: ICalEvent) -> Optional[str]:
        """Return the first http(s) value of a dedicated conferencing property."""
        for name in CONFERENCE_PROPERTIES:
            values = component.get(name)
            if values is None:
                continue
            if not isinstance(values, list):
                values = [values]
            for value in values:
                url = str(value).strip()
                if url.lower().startswith(("https://", "http://")):
                    return url
        return None
