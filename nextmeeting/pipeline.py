"""One selection pass: Decoder -> Filter -> Selector -> URL Extractor -> Presenter.

Usage:
    engine = MeetingEngine(localize=MessageCatalog())
    result = engine.run(payloads, sources, filter_config, now, options)
    if result.display:
        print(result.display.title, result.display.info)
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timedelta, tzinfo
from typing import Any, Optional

from .decoder import DEFAULT_HORIZON_DAYS, ICalendarDecoder, Payload, default_window
from .event_filter import EventFilter
from .event_selector import EventSelector
from .messages import MessageCatalog
from .models import (
    CalendarSource,
    DecodeDiagnostic,
    DecodeResult,
    DisplayStrings,
    EventOccurrence,
    FilterConfig,
    FormatOptions,
    MeetingCandidate,
)
from .presenter import Localize, Presenter
from .rrule_expander import RRuleExpanderConfig
from .url_extractor import MeetingUrlExtractor, UrlPattern, build_pattern_set

logger = logging.getLogger(__name__)


@dataclass
class SelectionResult:
    """Outcome of one selection pass."""

    now: datetime
    candidate: Optional[MeetingCandidate] = None
    display: Optional[DisplayStrings] = None
    placeholder: Optional[str] = None
    upcoming: list[MeetingCandidate] = field(default_factory=list)
    decode_results: dict[str, DecodeResult] = field(default_factory=dict)

    # Statistics
    occurrences_decoded: int = 0
    occurrences_filtered: int = 0

    @property
    def diagnostics(self) -> list[DecodeDiagnostic]:
        """Diagnostics from every decoded source."""
        return [d for r in self.decode_results.values() for d in r.diagnostics]

    @property
    def failed_sources(self) -> list[str]:
        """Ids of sources whose payload could not be read."""
        return [cid for cid, r in self.decode_results.items() if r.failed]


class MeetingEngine:
    """Runs the meeting-selection stages for one refresh.

    Stages share no mutable state, so one engine can serve concurrent passes.
    """

    def __init__(
        self,
        localize: Optional[Localize] = None,
        local_tz: Optional[tzinfo] = None,
        user_patterns: Iterable[str] = (),
        horizon_days: int = DEFAULT_HORIZON_DAYS,
        expander_config: Optional[RRuleExpanderConfig] = None,
    ):
        """Initialize engine.

        Args:
            localize: Message lookup, defaults to the English MessageCatalog
            local_tz: Viewer's timezone, detected when None
            user_patterns: Extra meeting URL regexes, tried before built-ins
            horizon_days: Length of the query window
            expander_config: Recurrence expansion limits
        """
        self.localize = localize or MessageCatalog()
        self.decoder = ICalendarDecoder(local_tz, expander_config)
        self.local_tz = self.decoder.local_tz
        self.event_filter = EventFilter()
        self.selector = EventSelector()
        self.extractor = MeetingUrlExtractor()
        self.pattern_set: Sequence[UrlPattern] = build_pattern_set(user_patterns)
        self.horizon_days = horizon_days

    def apply_settings(self, settings: Any) -> None:
        """Adopt URL patterns, horizon and recurrence limits from a Config.

        Args:
            settings: Object with meeting_url_patterns and horizon_days, and
                optionally the RRULE expansion settings
        """
        self.pattern_set = build_pattern_set(settings.meeting_url_patterns)
        self.horizon_days = settings.horizon_days
        self.decoder = ICalendarDecoder(self.local_tz, RRuleExpanderConfig.from_settings(settings))
        logger.debug(
            "Engine settings applied: %d URL patterns, %d day horizon",
            len(self.pattern_set),
            self.horizon_days,
        )

    def to_candidate(self, occurrence: EventOccurrence) -> MeetingCandidate:
        """Attach the extracted join URL to an occurrence."""
        return MeetingCandidate(
            occurrence=occurrence,
            join_url=self.extractor.extract(occurrence, self.pattern_set),
        )

    def rank_candidates(
        self,
        filtered: Sequence[EventOccurrence],
        config: FilterConfig,
        now: datetime,
        limit: int,
        in_progress_limit: Optional[timedelta] = None,
    ) -> list[MeetingCandidate]:
        """Candidates in selection order after URL exclusions.

        Candidates are built lazily so extraction only runs on what is shown.
        """
        ordered = self.selector.select_upcoming(filtered, now, len(filtered), in_progress_limit)
        ranked: list[MeetingCandidate] = []
        for occurrence in ordered:
            if len(ranked) >= limit:
                break
            ranked.extend(self.event_filter.apply_url_exclusions([self.to_candidate(occurrence)], config))
        return ranked

    def run(
        self,
        payloads: Mapping[str, Payload],
        sources: Iterable[CalendarSource],
        filter_config: FilterConfig,
        now: datetime,
        options: Optional[FormatOptions] = None,
        in_progress_limit: Optional[timedelta] = None,
        upcoming_limit: int = 0,
        loaded: bool = True,
    ) -> SelectionResult:
        """Execute one selection pass with a single `now`.

        Args:
            payloads: Raw payload per calendar id
            sources: Known calendar sources
            filter_config: User filter configuration
            now: Current time (timezone-aware)
            options: Presentation options, defaults when None
            in_progress_limit: Hide meetings that started longer ago than this
            upcoming_limit: Number of candidates for the upcoming list
            loaded: Whether the host has finished its first load

        Returns:
            SelectionResult with the selected candidate and its display strings
        """
        options = options or FormatOptions()
        sources = list(sources)
        result = SelectionResult(now=now)

        window_start, window_end = default_window(now, self.horizon_days)
        result.decode_results = self.decoder.decode_many(
            payloads,
            window_start,
            window_end,
            own_emails=filter_config.additional_own_emails,
            sources=sources,
        )

        occurrences = [o for r in result.decode_results.values() for o in r.occurrences]
        filtered = self.event_filter.filter(occurrences, filter_config)
        result.occurrences_decoded = len(occurrences)
        result.occurrences_filtered = len(filtered)

        ranked = self.rank_candidates(
            filtered, filter_config, now, max(1, upcoming_limit), in_progress_limit
        )
        result.upcoming = ranked[:upcoming_limit]

        presenter = Presenter(self.localize, self.local_tz, sources, self.pattern_set)
        if ranked:
            result.candidate = ranked[0]
            result.display = presenter.present(result.candidate, now, options)
        else:
            result.placeholder = presenter.present_none(
                has_sources=bool(filter_config.enabled_calendars), loaded=loaded
            )

        logger.debug(
            "Selection pass: %d decoded, %d after filter, selected=%s",
            result.occurrences_decoded,
            result.occurrences_filtered,
            result.candidate.occurrence.uid if result.candidate else None,
        )
        return result
