"""DateTime parsing utilities for iCalendar properties.

Turns DTSTART/DTEND/RECURRENCE-ID/EXDATE/RDATE values into timezone-aware
datetimes. Date-only values become local midnight in the viewer's zone.
"""

import logging
from datetime import UTC, date, datetime, time, tzinfo
from typing import Any, Optional

from .timezone_utils import get_local_timezone, resolve_timezone

logger = logging.getLogger(__name__)


def ensure_timezone_aware(dt: datetime, default_tz: Optional[tzinfo] = None) -> datetime:
    """Ensure datetime is timezone-aware.

    Args:
        dt: Datetime to make timezone-aware
        default_tz: Zone for naive values (UTC if None)

    Returns:
        Timezone-aware datetime
    """
    if dt.tzinfo is None or dt.utcoffset() is None:
        return dt.replace(tzinfo=default_tz or UTC)
    return dt


def local_midnight(day: date, tz: tzinfo) -> datetime:
    """Start of the given calendar day in the given zone."""
    return datetime.combine(day, time.min, tzinfo=tz)


class DateTimeResolver:
    """Resolves iCalendar date/datetime properties to aware datetimes."""

    def __init__(self, local_tz: Optional[tzinfo] = None):
        """Initialize resolver.

        Args:
            local_tz: Viewer's timezone, used for floating times, all-day
                dates and unresolvable TZIDs. Detected when None.
        """
        self.local_tz = local_tz or get_local_timezone()

    def _zone_for(self, tzid: Optional[str]) -> tzinfo:
        if not tzid:
            return self.local_tz
        tz = resolve_timezone(str(tzid))
        return tz if tz is not None else self.local_tz

    def to_aware(self, value: date | datetime, tzid: Optional[str] = None) -> datetime:
        """Convert a decoded iCalendar value to an aware datetime.

        Args:
            value: date or datetime as decoded by icalendar
            tzid: TZID parameter of the property, if any

        Returns:
            Aware datetime; dates map to local midnight
        """
        if isinstance(value, datetime):
            if value.tzinfo is not None and value.utcoffset() is not None:
                return value
            # Naive: either floating or a TZID icalendar could not resolve
            return value.replace(tzinfo=self._zone_for(tzid))
        return local_midnight(value, self.local_tz)

    def resolve(self, dt_prop: Any) -> tuple[datetime, bool]:
        """Resolve a single-valued date/datetime property.

        Args:
            dt_prop: icalendar vDDDTypes property

        Returns:
            Tuple of (aware datetime, is_date_only)

        Raises:
            ValueError: If the property value could not be parsed
        """
        value = getattr(dt_prop, "dt", None)
        tzid = getattr(dt_prop, "params", {}).get("TZID")
        if isinstance(value, datetime):
            return self.to_aware(value, tzid), False
        if isinstance(value, date):
            return local_midnight(value, self.local_tz), True
        raise ValueError(f"Unsupported date value {value!r}")

    def resolve_list(self, list_props: Any) -> list[date | datetime]:
        """Flatten EXDATE/RDATE properties into a list of values.

        Datetimes come back aware; dates are returned as-is so callers can
        match them against whole days. PERIOD values contribute their start.

        Args:
            list_props: vDDDLists, or a list of them, or None

        Returns:
            Flattened list of dates and aware datetimes
        """
        if list_props is None:
            return []
        if not isinstance(list_props, list):
            list_props = [list_props]

        values: list[date | datetime] = []
        for prop in list_props:
            tzid = getattr(prop, "params", {}).get("TZID")
            for item in getattr(prop, "dts", []):
                try:
                    value = item.dt
                except ValueError as e:
                    logger.warning("Skipping unparsable date list entry: %s", e)
                    continue
                if isinstance(value, tuple):
                    value = value[0]
                if isinstance(value, datetime):
                    values.append(self.to_aware(value, tzid))
                elif isinstance(value, date):
                    values.append(value)
        return values
