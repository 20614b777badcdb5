"""Default English message catalog for display strings.

Hosts with a real localization system pass their own `localize` callable to
the presenter; this catalog keeps the CLI and tests self-contained.
"""

import logging
from collections.abc import Mapping
from typing import Any, Optional

logger = logging.getLogger(__name__)

DEFAULT_MESSAGES: dict[str, str] = {
    # Time until start
    "time-now": "now",
    "time-in-progress": "in progress",
    "time-in-days-hours": "in {days}d {hours}h",
    "time-in-days": "in {days}d",
    "time-in-hours-minutes": "in {hours}h {minutes}m",
    "time-in-hours": "in {hours}h",
    "time-in-minutes": "in {minutes}m",
    # Clock
    "clock-12h": "{hour}:{minute}{period}",
    "clock-24h": "{hour}:{minute}",
    "clock-am": "am",
    "clock-pm": "pm",
    "time-clock": "{clock}",
    "time-day-clock": "{weekday} {clock}",
    "weekday-mon": "Mon",
    "weekday-tue": "Tue",
    "weekday-wed": "Wed",
    "weekday-thu": "Thu",
    "weekday-fri": "Fri",
    "weekday-sat": "Sat",
    "weekday-sun": "Sun",
    # Panel
    "panel-time": "({time})",
    "panel-time-location": "({time} in {location})",
    "title-truncated": "{title}...",
    "untitled-event": "Untitled Event",
    "join": "Join",
    # Empty states
    "loading-meetings": "Loading meetings...",
    "no-calendars": "No calendars",
    "no-meetings": "No upcoming meetings",
}


class MessageCatalog:
    """Looks up message templates and fills in parameters."""

    def __init__(self, messages: Optional[Mapping[str, str]] = None):
        """Initialize catalog.

        Args:
            messages: Overrides merged over DEFAULT_MESSAGES
        """
        self.messages = {**DEFAULT_MESSAGES, **(messages or {})}

    def lookup(self, message_id: str, params: Optional[Mapping[str, Any]] = None) -> str:
        """Render a message.

        Args:
            message_id: Message identifier
            params: Named parameters for the template

        Returns:
            Rendered text; the id itself when the message is unknown
        """
        template = self.messages.get(message_id)
        if template is None:
            logger.debug("Missing message id %r", message_id)
            return message_id
        if not params:
            return template
        try:
            return template.format(**params)
        except (KeyError, IndexError) as e:
            logger.debug("Message %r is missing parameter %s", message_id, e)
            return template

    __call__ = lookup
