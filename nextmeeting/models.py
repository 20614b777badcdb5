"""Data models for meeting selection - calendar sources, occurrences and display output."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator, model_validator

from .timezone_utils import now_utc as _now_utc

NON_MEETING_BACKENDS = frozenset({"contacts", "weather", "birthdays"})


class AcceptanceStatus(str, Enum):
    """The viewing user's RSVP state for an event."""

    ACCEPTED = "accepted"
    TENTATIVE = "tentative"
    DECLINED = "declined"
    NEEDS_ACTION = "needsAction"
    # No attendee entry for the user (organizer or personal event)
    UNKNOWN = "unknown"


ALL_ACCEPTANCE_STATUSES = frozenset(AcceptanceStatus)


class TimeMode(str, Enum):
    """How the meeting start is rendered."""

    ABSOLUTE = "absolute"
    RELATIVE = "relative"


class Visibility(str, Enum):
    """When an optional display element (location, join button) is shown."""

    HIDE = "hide"
    SHOW = "show"
    SAME_DAY = "same_day"
    WITHIN_30M = "within_30m"
    WITHIN_15M = "within_15m"
    WITHIN_5M = "within_5m"


class CalendarSource(BaseModel):
    """A calendar the user can enable, as listed by the calendar service."""

    id: str = Field(..., description="Source UID")
    name: str = Field(..., description="Display name")
    enabled: bool = Field(default=True, description="Whether the user enabled this calendar")
    color: Optional[str] = Field(default=None, description="Color tag for the UI dot")
    backend: Optional[str] = Field(default=None, description="Backend type, e.g. caldav, google")
    owner_email: Optional[str] = Field(
        default=None, description="Primary address of the user for this calendar"
    )
    last_synced: Optional[str] = Field(default=None, description="Last upstream sync timestamp")

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_source_data(
        cls,
        uid: str,
        data: str,
        enabled: bool = True,
        owner_email: Optional[str] = None,
    ) -> "CalendarSource":
        """Build a source from evolution-data-server key file text."""
        from .sources import source_from_data

        return source_from_data(uid, data, enabled=enabled, owner_email=owner_email)

    @property
    def is_meeting_source(self) -> bool:
        """Contacts, weather and birthday calendars never hold meetings."""
        return (self.backend or "").lower() not in NON_MEETING_BACKENDS


class EventOccurrence(BaseModel):
    """One concrete, time-bounded instance of a calendar event."""

    uid: str = Field(..., description="UID shared by all instances of a series")
    calendar_id: str = Field(..., description="Owning CalendarSource id")
    title: str = Field(default="", description="Event summary")
    location: str = Field(default="", description="Location text")
    description: str = Field(default="", description="Description text")
    conference_url: Optional[str] = Field(
        default=None, description="Dedicated conferencing URL surfaced by the source"
    )

    start: datetime = Field(..., description="Timezone-aware start")
    end: datetime = Field(..., description="Timezone-aware end")
    is_all_day: bool = Field(default=False, description="Source encoded date-only values")
    acceptance_status: AcceptanceStatus = Field(default=AcceptanceStatus.UNKNOWN)

    recurrence_instance_of: Optional[str] = Field(
        default=None, description="UID of the recurring series this instance was expanded from"
    )

    model_config = ConfigDict(frozen=True)

    @field_validator("start", "end")
    @classmethod
    def _require_aware(cls, value: datetime) -> datetime:
        if value.tzinfo is None or value.utcoffset() is None:
            raise ValueError("occurrence datetimes must be timezone-aware")
        return value

    @model_validator(mode="after")
    def _check_interval(self) -> "EventOccurrence":
        if self.end < self.start:
            raise ValueError(f"end {self.end} is before start {self.start}")
        return self

    @property
    def instance_key(self) -> str:
        """Key unique per occurrence within one decode."""
        if self.recurrence_instance_of:
            return f"{self.uid}@{self.start.strftime('%Y%m%dT%H%M%S')}"
        return self.uid

    @property
    def counts_as_accepted(self) -> bool:
        """Unknown status means the user owns the event."""
        return self.acceptance_status in (AcceptanceStatus.ACCEPTED, AcceptanceStatus.UNKNOWN)

    def is_in_progress(self, now: datetime) -> bool:
        """Check if the occurrence has started but not ended."""
        return self.start <= now < self.end

    @field_serializer("start", "end")
    def serialize_datetime(self, dt: datetime) -> str:
        """Serialize datetime to ISO format."""
        return dt.isoformat()


class MeetingCandidate(BaseModel):
    """An occurrence plus its extracted join URL, built during one selection pass."""

    occurrence: EventOccurrence
    join_url: Optional[str] = None
    join_url_excluded: bool = Field(
        default=False, description="A URL was found but an exclusion pattern suppressed it"
    )

    model_config = ConfigDict(frozen=True)

    @property
    def has_join_url(self) -> bool:
        """Check if the candidate offers a join affordance."""
        return bool(self.join_url)


class FilterConfig(BaseModel):
    """User-configured inclusion and exclusion rules."""

    enabled_calendars: frozenset[str] = Field(default_factory=frozenset)
    include_all_day: bool = True
    included_acceptance_statuses: frozenset[AcceptanceStatus] = Field(
        default=ALL_ACCEPTANCE_STATUSES
    )
    excluded_url_patterns: tuple[str, ...] = Field(default_factory=tuple)
    additional_own_emails: frozenset[str] = Field(default_factory=frozenset)

    # When true, an excluded join URL hides the whole event instead of the join button
    exclusion_hides_event: bool = False

    model_config = ConfigDict(frozen=True)


class FormatOptions(BaseModel):
    """Presentation options for the selected meeting."""

    time_mode: TimeMode = TimeMode.ABSOLUTE
    show_location: bool = True
    show_calendar_color: bool = False
    use_24h: bool = False
    location_visibility: Visibility = Visibility.SHOW
    join_visibility: Visibility = Visibility.SHOW
    max_title_length: int = Field(default=30, ge=4)

    model_config = ConfigDict(frozen=True)


class DisplayStrings(BaseModel):
    """Display-ready, localized text for the panel."""

    title: str
    time: str
    info: str
    location: Optional[str] = None
    calendar_color: Optional[str] = None
    join_url: Optional[str] = None
    join_label: Optional[str] = None
    in_progress: bool = False


class DecodeDiagnostic(BaseModel):
    """Structured record of an event skipped during decoding."""

    calendar_id: str
    uid: Optional[str] = None
    reason: str
    severity: str = "warning"


class DecodeResult(BaseModel):
    """Result of decoding one calendar's payload."""

    calendar_id: str
    occurrences: list[EventOccurrence] = Field(default_factory=list)
    diagnostics: list[DecodeDiagnostic] = Field(default_factory=list)

    failed: bool = False
    error_message: Optional[str] = None

    # Statistics
    component_count: int = 0
    recurring_count: int = 0
    decoded_at: datetime = Field(default_factory=_now_utc)

    def add_diagnostic(self, reason: str, uid: Optional[str] = None) -> None:
        """Record a skipped event."""
        self.diagnostics.append(
            DecodeDiagnostic(calendar_id=self.calendar_id, uid=uid, reason=reason)
        )
