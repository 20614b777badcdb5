"""Event filtering by calendar, all-day flag, acceptance status and URL exclusions."""

from __future__ import annotations

import functools
import logging
import re
from collections.abc import Iterable
from enum import Enum

from .models import (
    ALL_ACCEPTANCE_STATUSES,
    AcceptanceStatus,
    EventOccurrence,
    FilterConfig,
    MeetingCandidate,
)

logger = logging.getLogger(__name__)


class EventStatusFilter(str, Enum):
    """Three-way acceptance setting exposed to users."""

    ALL = "all"
    ACCEPTED = "accepted"
    ACCEPTED_OR_TENTATIVE = "accepted_or_tentative"

    @property
    def statuses(self) -> frozenset[AcceptanceStatus]:
        """Acceptance statuses admitted by this setting."""
        if self is EventStatusFilter.ACCEPTED:
            return frozenset({AcceptanceStatus.ACCEPTED, AcceptanceStatus.UNKNOWN})
        if self is EventStatusFilter.ACCEPTED_OR_TENTATIVE:
            return frozenset(
                {AcceptanceStatus.ACCEPTED, AcceptanceStatus.TENTATIVE, AcceptanceStatus.UNKNOWN}
            )
        return ALL_ACCEPTANCE_STATUSES


@functools.lru_cache(maxsize=32)
def compile_exclusions(patterns: tuple[str, ...]) -> tuple[re.Pattern[str], ...]:
    """Compile exclusion patterns, skipping invalid ones with a warning."""
    compiled = []
    for pattern in patterns:
        try:
            compiled.append(re.compile(pattern, re.IGNORECASE))
        except re.error as e:
            logger.warning("Ignoring invalid excluded URL pattern %r: %s", pattern, e)
    return tuple(compiled)


class EventFilter:
    """Filters occurrences against the user's FilterConfig.

    Filtering never mutates or reorders occurrences, so applying it twice
    gives the same result as applying it once.
    """

    def status_admitted(self, occurrence: EventOccurrence, config: FilterConfig) -> bool:
        """Check the acceptance rule, treating UNKNOWN as accepted."""
        status = occurrence.acceptance_status
        if status is AcceptanceStatus.UNKNOWN:
            return (
                AcceptanceStatus.UNKNOWN in config.included_acceptance_statuses
                or AcceptanceStatus.ACCEPTED in config.included_acceptance_statuses
            )
        return status in config.included_acceptance_statuses

    def admits(self, occurrence: EventOccurrence, config: FilterConfig) -> bool:
        """Check every occurrence-level rule."""
        if occurrence.calendar_id not in config.enabled_calendars:
            return False
        if occurrence.is_all_day and not config.include_all_day:
            return False
        return self.status_admitted(occurrence, config)

    def filter(
        self,
        occurrences: Iterable[EventOccurrence],
        config: FilterConfig,
    ) -> list[EventOccurrence]:
        """Keep occurrences that pass every rule, preserving order.

        Args:
            occurrences: Decoded occurrences
            config: User filter configuration

        Returns:
            Filtered occurrences in input order
        """
        occurrences = list(occurrences)
        kept = [o for o in occurrences if self.admits(o, config)]
        logger.debug("Filter kept %d of %d occurrences", len(kept), len(occurrences))
        return kept

    def is_url_excluded(self, url: str, config: FilterConfig) -> bool:
        """Check a join URL against the exclusion patterns."""
        return any(p.search(url) for p in compile_exclusions(tuple(config.excluded_url_patterns)))

    def apply_url_exclusions(
        self,
        candidates: Iterable[MeetingCandidate],
        config: FilterConfig,
    ) -> list[MeetingCandidate]:
        """Suppress join URLs matching an exclusion pattern.

        Args:
            candidates: Candidates with extracted join URLs
            config: User filter configuration

        Returns:
            Candidates in input order. An excluded URL is removed from its
            candidate (join_url_excluded set), or the candidate is dropped
            entirely when exclusion_hides_event is enabled.
        """
        result = []
        for candidate in candidates:
            if candidate.join_url is None or not self.is_url_excluded(candidate.join_url, config):
                result.append(candidate)
                continue
            if config.exclusion_hides_event:
                logger.debug("Hiding %s: join URL is excluded", candidate.occurrence.uid)
                continue
            logger.debug("Suppressing excluded join URL for %s", candidate.occurrence.uid)
            result.append(candidate.model_copy(update={"join_url": None, "join_url_excluded": True}))
        return result
