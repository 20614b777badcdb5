"""iCalendar decoder - turns raw calendar payloads into event occurrences."""

import logging
from collections.abc import Iterable, Mapping, Sequence
from datetime import UTC, datetime, timedelta, tzinfo
from typing import Optional, Union

from icalendar import Calendar

from .attendee_parser import AttendeeParser, normalize_emails
from .datetime_utils import DateTimeResolver, ensure_timezone_aware
from .event_parser import EventComponentParser, ParsedEvent
from .exceptions import DecodeError
from .models import CalendarSource, DecodeResult, EventOccurrence
from .rrule_expander import RRuleExpander, RRuleExpanderConfig, RRuleExpansionError

logger = logging.getLogger(__name__)

# A full VCALENDAR text, a bare VEVENT text, or a sequence of either
Payload = Union[str, bytes, Sequence[str]]

DEFAULT_HORIZON_DAYS = 30

_ENVELOPE_HEADER = "BEGIN:VCALENDAR\r\nVERSION:2.0\r\nPRODID:-//nextmeeting//decoder//EN\r\n"
_ENVELOPE_FOOTER = "END:VCALENDAR\r\n"


def default_window(now: datetime, horizon_days: int = DEFAULT_HORIZON_DAYS) -> tuple[datetime, datetime]:
    """Query window [now, now + horizon)."""
    return now, now + timedelta(days=horizon_days)


def _intersects(occurrence: EventOccurrence, window_start: datetime, window_end: datetime) -> bool:
    if occurrence.start < window_end and occurrence.end > window_start:
        return True
    # Zero-length events exactly at the window start are still upcoming
    return occurrence.start == occurrence.end == window_start


def _wrap(text: str) -> str:
    text = text.strip()
    if not text.endswith("\n"):
        text += "\r\n"
    return _ENVELOPE_HEADER + text + _ENVELOPE_FOOTER


def normalize_payload(payload: Payload) -> list[str]:
    """Convert a payload into a list of VCALENDAR documents.

    Bare VEVENT texts (as returned by evolution-data-server) are collected
    into a single envelope.

    Raises:
        DecodeError: If the payload contains no iCalendar data at all
    """
    if isinstance(payload, bytes):
        payload = payload.decode("utf-8", errors="replace")
    items = [payload] if isinstance(payload, str) else list(payload)

    documents: list[str] = []
    bare: list[str] = []
    for item in items:
        if isinstance(item, bytes):
            item = item.decode("utf-8", errors="replace")
        if not item or not item.strip():
            continue
        upper = item.upper()
        if "BEGIN:VCALENDAR" in upper:
            documents.append(item)
        elif "BEGIN:" in upper:
            bare.append(item.strip())
        else:
            raise DecodeError(f"payload is not iCalendar data: {item[:40]!r}")

    if bare:
        documents.append(_wrap("\r\n".join(bare)))
    return documents


class ICalendarDecoder:
    """Decodes iCalendar payloads into occurrences within a query window."""

    def __init__(
        self,
        local_tz: Optional[tzinfo] = None,
        expander_config: Optional[RRuleExpanderConfig] = None,
    ):
        """Initialize decoder.

        Args:
            local_tz: Viewer's timezone, detected when None
            expander_config: Recurrence expansion limits
        """
        self._datetime_resolver = DateTimeResolver(local_tz)
        self._attendee_parser = AttendeeParser()
        self._event_parser = EventComponentParser(self._datetime_resolver, self._attendee_parser)
        self._expander = RRuleExpander(expander_config)

    @property
    def local_tz(self) -> tzinfo:
        """Timezone used for floating and all-day values."""
        return self._datetime_resolver.local_tz

    def _parse_calendars(self, payload: Payload) -> list[Calendar]:
        calendars: list[Calendar] = []
        for document in normalize_payload(payload):
            try:
                calendars.extend(Calendar.from_ical(document, multiple=True))
            except ValueError as e:
                raise DecodeError(f"unreadable calendar payload: {e}") from e
        return calendars

    def decode(
        self,
        payload: Payload,
        calendar_id: str,
        window_start: datetime,
        window_end: datetime,
        own_emails: Iterable[str] = (),
    ) -> DecodeResult:
        """Decode one calendar's payload.

        Args:
            payload: VCALENDAR text, bare VEVENT text, or a sequence of either
            calendar_id: Source id stamped on every occurrence
            window_start: Inclusive window start
            window_end: Exclusive window end
            own_emails: The user's addresses for acceptance-status matching

        Returns:
            DecodeResult with occurrences intersecting the window, in source
            order, plus diagnostics for skipped events

        Raises:
            DecodeError: If the payload container is unreadable
        """
        window_start = ensure_timezone_aware(window_start)
        window_end = ensure_timezone_aware(window_end)
        emails = normalize_emails(own_emails)
        result = DecodeResult(calendar_id=calendar_id)

        calendars = self._parse_calendars(payload)
        components = [c for calendar in calendars for c in calendar.walk("VEVENT")]
        result.component_count = len(components)

        # Standalone events and series masters in source order
        entries: list[ParsedEvent] = []
        masters: dict[str, ParsedEvent] = {}
        overrides: dict[str, dict[datetime, ParsedEvent]] = {}

        for component in components:
            try:
                parsed = self._event_parser.parse_event_component(component, calendar_id, emails)
            except ValueError as e:
                uid = str(component.get("UID", "")) or None
                logger.warning("Skipping event %s in %s: %s", uid, calendar_id, e)
                result.add_diagnostic(str(e), uid)
                continue

            uid = parsed.occurrence.uid
            if parsed.recurrence_id is not None:
                overrides.setdefault(uid, {})[parsed.recurrence_id.astimezone(UTC)] = parsed
            elif parsed.is_cancelled:
                logger.debug("Skipping cancelled event %s", uid)
                result.add_diagnostic("event is cancelled", uid)
            elif parsed.is_recurring:
                if uid in masters:
                    result.add_diagnostic("duplicate recurring master ignored", uid)
                    continue
                masters[uid] = parsed
                entries.append(parsed)
            else:
                entries.append(parsed)

        occurrences: list[EventOccurrence] = []
        for parsed in entries:
            uid = parsed.occurrence.uid
            if uid in masters and masters[uid] is parsed:
                result.recurring_count += 1
                occurrences.extend(
                    self._expand(parsed, window_start, window_end, overrides.get(uid, {}), result)
                )
            elif _intersects(parsed.occurrence, window_start, window_end):
                occurrences.append(parsed.occurrence)

        # Overrides whose master is not in this payload stand on their own
        for uid, by_start in overrides.items():
            if uid in masters:
                continue
            for override in by_start.values():
                if override.is_cancelled:
                    continue
                occurrence = override.occurrence.model_copy(update={"recurrence_instance_of": uid})
                if _intersects(occurrence, window_start, window_end):
                    occurrences.append(occurrence)

        result.occurrences = self._deduplicate(occurrences)
        logger.debug(
            "Decoded %s: %d components, %d occurrences in window, %d diagnostics",
            calendar_id,
            result.component_count,
            len(result.occurrences),
            len(result.diagnostics),
        )
        return result

    def _expand(
        self,
        master: ParsedEvent,
        window_start: datetime,
        window_end: datetime,
        overrides: dict[datetime, ParsedEvent],
        result: DecodeResult,
    ) -> list[EventOccurrence]:
        try:
            return self._expander.expand(master, window_start, window_end, overrides)
        except RRuleExpansionError as e:
            logger.warning("RRULE expansion failed for %s, using first instance only: %s", master.occurrence.uid, e)
            result.add_diagnostic(str(e), master.occurrence.uid)
            if _intersects(master.occurrence, window_start, window_end):
                return [master.occurrence]
            return []

    @staticmethod
    def _deduplicate(occurrences: list[EventOccurrence]) -> list[EventOccurrence]:
        """Drop repeated (uid, start) pairs, first wins."""
        seen: set[tuple[str, datetime]] = set()
        unique: list[EventOccurrence] = []
        for occurrence in occurrences:
            key = (occurrence.uid, occurrence.start.astimezone(UTC))
            if key in seen:
                continue
            seen.add(key)
            unique.append(occurrence)
        return unique

    def decode_payload(
        self,
        payload: Payload,
        calendar_id: str,
        window_start: datetime,
        window_end: datetime,
        own_emails: Iterable[str] = (),
    ) -> list[EventOccurrence]:
        """Decode and return only the occurrences.

        Raises:
            DecodeError: If the payload container is unreadable
        """
        return self.decode(payload, calendar_id, window_start, window_end, own_emails).occurrences

    def decode_many(
        self,
        payloads: Mapping[str, Payload],
        window_start: datetime,
        window_end: datetime,
        own_emails: Iterable[str] = (),
        sources: Iterable[CalendarSource] = (),
    ) -> dict[str, DecodeResult]:
        """Decode several sources, isolating failures per source.

        Args:
            payloads: Payload per calendar id
            window_start: Inclusive window start
            window_end: Exclusive window end
            own_emails: Additional addresses of the user
            sources: Known sources; each contributes its owner_email

        Returns:
            DecodeResult per calendar id; unreadable payloads yield a failed
            result with no occurrences
        """
        extra = list(own_emails)
        owners = {s.id: s.owner_email for s in sources}
        results: dict[str, DecodeResult] = {}
        for calendar_id, payload in payloads.items():
            emails = [*extra, owners.get(calendar_id)]
            try:
                results[calendar_id] = self.decode(
                    payload, calendar_id, window_start, window_end, [e for e in emails if e]
                )
            except DecodeError as e:
                logger.warning("Failed to decode calendar %s: %s", calendar_id, e)
                results[calendar_id] = DecodeResult(
                    calendar_id=calendar_id, failed=True, error_message=str(e)
                )
        return results


def decode_payload(
    payload: Payload,
    calendar_id: str,
    window_start: datetime,
    window_end: datetime,
    own_emails: Iterable[str] = (),
    local_tz: Optional[tzinfo] = None,
) -> list[EventOccurrence]:
    """Decode a payload with a default decoder (convenience function).

    Raises:
        DecodeError: If the payload container is unreadable
    """
    return ICalendarDecoder(local_tz).decode_payload(
        payload, calendar_id, window_start, window_end, own_emails
    )
