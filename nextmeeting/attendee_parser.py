"""Attendee parsing utilities for ICS calendar processing.

Resolves the viewing user's acceptance status from ATTENDEE properties.
"""

import logging
from collections.abc import Iterable
from typing import Any, Optional

from .models import AcceptanceStatus

logger = logging.getLogger(__name__)

PARTSTAT_MAP = {
    "ACCEPTED": AcceptanceStatus.ACCEPTED,
    "TENTATIVE": AcceptanceStatus.TENTATIVE,
    "DECLINED": AcceptanceStatus.DECLINED,
    "NEEDS-ACTION": AcceptanceStatus.NEEDS_ACTION,
}


def normalize_emails(emails: Iterable[Optional[str]]) -> frozenset[str]:
    """Lowercase and strip addresses, dropping blanks."""
    return frozenset(e.strip().lower() for e in emails if e and e.strip())


class AttendeeParser:
    """Parser for iCalendar ATTENDEE properties."""

    def attendee_email(self, attendee_prop: Any) -> Optional[str]:
        """Extract the attendee's email address.

        The EMAIL parameter wins over the property value, which is usually a
        mailto: URI.

        Args:
            attendee_prop: iCalendar ATTENDEE property

        Returns:
            Lowercased address or None
        """
        params = getattr(attendee_prop, "params", {})
        email = params.get("EMAIL")
        if not email:
            value = str(attendee_prop).strip()
            if value.lower().startswith("mailto:"):
                value = value[len("mailto:"):]
            email = value
        email = str(email).strip().lower()
        return email or None

    def iter_attendees(self, component: Any) -> list[Any]:
        """Return the ATTENDEE properties of a component as a flat list."""
        attendee_props = component.get("ATTENDEE", [])
        if not isinstance(attendee_props, list):
            attendee_props = [attendee_props] if attendee_props else []

        flat = []
        for attendee_prop in attendee_props:
            # Some producers yield nested lists
            if isinstance(attendee_prop, list):
                flat.extend(attendee_prop)
            else:
                flat.append(attendee_prop)
        return flat

    def resolve_status(self, component: Any, own_emails: frozenset[str]) -> AcceptanceStatus:
        """Resolve the viewing user's acceptance status.

        Args:
            component: iCalendar VEVENT component
            own_emails: Normalized addresses belonging to the user

        Returns:
            Status from the first attendee entry matching one of the user's
            addresses, UNKNOWN when none matches
        """
        if not own_emails:
            return AcceptanceStatus.UNKNOWN

        for attendee in self.iter_attendees(component):
            email = self.attendee_email(attendee)
            if email is None or email not in own_emails:
                continue
            partstat = str(getattr(attendee, "params", {}).get("PARTSTAT", "NEEDS-ACTION"))
            status = PARTSTAT_MAP.get(partstat.upper(), AcceptanceStatus.UNKNOWN)
            logger.debug("Attendee %s has PARTSTAT %s -> %s", email, partstat, status.value)
            return status

        return AcceptanceStatus.UNKNOWN
