"""Calendar source construction and enablement resolution."""

import logging
import re
from collections.abc import Iterable
from typing import Optional

from .models import CalendarSource

logger = logging.getLogger(__name__)

_SECTION_RE = re.compile(r"^\[(?P<name>[^\]]+)\]\s*$")


def parse_source_data(data: str) -> dict[str, dict[str, str]]:
    """Parse evolution-data-server key file text into sections.

    Keys before the first section header land in the "" section. Only the
    first occurrence of a key within a section is kept.

    Args:
        data: Key file text (the Data property of an EDS source)

    Returns:
        Mapping of section name to key/value pairs
    """
    sections: dict[str, dict[str, str]] = {"": {}}
    current = sections[""]
    for raw_line in data.splitlines():
        line = raw_line.strip()
        if not line or line.startswith(("#", ";")):
            continue
        match = _SECTION_RE.match(line)
        if match:
            current = sections.setdefault(match.group("name").strip(), {})
            continue
        key, sep, value = line.partition("=")
        if not sep:
            continue
        current.setdefault(key.strip(), value.strip())
    return sections


def source_from_data(
    uid: str,
    data: str,
    enabled: bool = True,
    owner_email: Optional[str] = None,
) -> CalendarSource:
    """Build a CalendarSource from EDS source data.

    DisplayName may appear in any section (normally [Data Source]); Color and
    BackendName are read from the [Calendar] section.

    Args:
        uid: Source UID
        data: Key file text
        enabled: Whether the user enabled the calendar
        owner_email: The user's primary address for this source

    Returns:
        CalendarSource; the name falls back to the UID
    """
    sections = parse_source_data(data)
    name = None
    for values in sections.values():
        if values.get("DisplayName"):
            name = values["DisplayName"]
            break

    calendar = sections.get("Calendar", {})
    color = calendar.get("Color") or None
    backend = calendar.get("BackendName") or None

    return CalendarSource(
        id=uid,
        name=name or uid,
        enabled=enabled,
        color=color,
        backend=backend,
        owner_email=owner_email or None,
    )


def resolve_enabled_calendars(
    sources: Iterable[CalendarSource],
    configured_ids: Iterable[str],
) -> frozenset[str]:
    """Resolve which calendar ids participate in selection.

    Args:
        sources: Sources reported by the calendar service; may be empty
            when the listing has not arrived yet
        configured_ids: Ids the user enabled; empty means all

    Returns:
        An empty configured list enables every meeting source. Otherwise the
        configured ids that name meeting sources. Without a source listing the
        configured ids are returned as-is.
    """
    sources = list(sources)
    configured = [uid for uid in configured_ids if uid]

    if not sources:
        return frozenset(configured)

    meeting_ids = {s.id for s in sources if s.is_meeting_source and s.enabled}
    if not configured:
        return frozenset(meeting_ids)

    unknown = [uid for uid in configured if uid not in meeting_ids]
    if unknown:
        logger.debug("Ignoring configured calendars that are not meeting sources: %s", unknown)
    return frozenset(uid for uid in configured if uid in meeting_ids)
