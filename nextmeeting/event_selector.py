"""Next-meeting selection logic."""

from __future__ import annotations

import datetime
import logging
from collections.abc import Iterable

from .models import EventOccurrence

logger = logging.getLogger(__name__)


def selection_key(occurrence: EventOccurrence) -> tuple[datetime.datetime, datetime.datetime, str]:
    """Ordering used for selection: start, then end, then uid."""
    return occurrence.start, occurrence.end, occurrence.uid


class EventSelector:
    """Selects the soonest qualifying occurrence with a deterministic tie-break."""

    def qualifies(
        self,
        occurrence: EventOccurrence,
        now: datetime.datetime,
        in_progress_limit: datetime.timedelta | None = None,
    ) -> bool:
        """Check whether an occurrence can still be shown.

        Args:
            occurrence: Candidate occurrence
            now: Current time (timezone-aware)
            in_progress_limit: Only show meetings that started at most this
                many whole minutes ago; zero hides meetings from their start,
                None keeps every in-progress meeting

        Returns:
            True if the occurrence has not ended and passes the limit
        """
        if occurrence.end <= now:
            return False
        if in_progress_limit is not None and occurrence.start <= now:
            limit_minutes = int(in_progress_limit.total_seconds() // 60)
            if limit_minutes <= 0:
                return False
            minutes_since_start = int((now - occurrence.start).total_seconds() // 60)
            return minutes_since_start <= limit_minutes
        return True

    def select_upcoming(
        self,
        filtered: Iterable[EventOccurrence],
        now: datetime.datetime,
        limit: int,
        in_progress_limit: datetime.timedelta | None = None,
    ) -> list[EventOccurrence]:
        """Return the first `limit` qualifying occurrences in selection order.

        Args:
            filtered: Filtered occurrences
            now: Current time (timezone-aware)
            limit: Maximum number of occurrences
            in_progress_limit: See qualifies()

        Returns:
            Occurrences ordered by start, end, uid
        """
        if limit <= 0:
            return []
        qualifying = [o for o in filtered if self.qualifies(o, now, in_progress_limit)]
        qualifying.sort(key=selection_key)
        return qualifying[:limit]

    def select(
        self,
        filtered: Iterable[EventOccurrence],
        now: datetime.datetime,
        in_progress_limit: datetime.timedelta | None = None,
    ) -> EventOccurrence | None:
        """Select the next meeting.

        Args:
            filtered: Filtered occurrences
            now: Current time (timezone-aware)
            in_progress_limit: See qualifies()

        Returns:
            The occurrence with the smallest (start, end, uid), or None when
            nothing qualifies
        """
        qualifying = [o for o in filtered if self.qualifies(o, now, in_progress_limit)]
        if not qualifying:
            logger.debug("No qualifying occurrence at %s", now.isoformat())
            return None

        selected = min(qualifying, key=selection_key)
        logger.debug(
            "Selected %s starting %s out of %d candidates",
            selected.uid,
            selected.start.isoformat(),
            len(qualifying),
        )
        return selected
