"""RRULE expansion logic for the iCalendar decoder."""

import logging
from dataclasses import dataclass
from datetime import UTC, date, datetime, time, timedelta
from typing import Any, Optional

from dateutil.rrule import rruleset, rrulestr
from icalendar import vRecur

from .event_parser import ParsedEvent
from .models import EventOccurrence

logger = logging.getLogger(__name__)


@dataclass
class RRuleExpanderConfig:
    """Configuration for RRULE expansion.

    Consolidates all RRULE-related settings with explicit defaults.
    """

    max_occurrences_per_rule: int = 250
    enable_rrule_expansion: bool = True

    @classmethod
    def from_settings(cls, settings: Any) -> "RRuleExpanderConfig":
        """Extract RRULE configuration from settings object.

        Args:
            settings: Configuration object with RRULE settings

        Returns:
            RRuleExpanderConfig with values from settings or defaults
        """
        return cls(
            max_occurrences_per_rule=getattr(settings, "max_occurrences_per_rule", 250),
            enable_rrule_expansion=getattr(settings, "enable_rrule_expansion", True),
        )


class RRuleExpansionError(ValueError):
    """A recurrence rule could not be parsed or expanded."""


def _instant(dt: datetime) -> datetime:
    return dt.astimezone(UTC)


class RRuleExpander:
    """Expands recurring series into concrete occurrences within a window."""

    def __init__(self, config: Optional[RRuleExpanderConfig] = None):
        """Initialize expander.

        Args:
            config: Expansion limits, defaults when None
        """
        self.config = config or RRuleExpanderConfig()

    def build_ruleset(self, master: ParsedEvent) -> rruleset:
        """Build a dateutil ruleset for a series master.

        Args:
            master: Parsed recurring master event

        Returns:
            rruleset with RRULE, RDATE and datetime EXDATE entries

        Raises:
            RRuleExpansionError: If the RRULE cannot be parsed
        """
        dtstart = master.occurrence.start
        rule_set = rruleset()

        if master.rrule is not None:
            rrule_string = self._rrule_string(master.rrule, dtstart)
            try:
                parsed_rule = rrulestr(rrule_string, dtstart=dtstart)
            except (ValueError, TypeError) as e:
                raise RRuleExpansionError(f"invalid RRULE {rrule_string!r}: {e}") from e
            if isinstance(parsed_rule, rruleset):
                rule_set = parsed_rule
            else:
                rule_set.rrule(parsed_rule)
        else:
            # RDATE-only series still start at DTSTART
            rule_set.rdate(dtstart)

        for rdate in master.rdates:
            rule_set.rdate(self._as_start(rdate, dtstart))

        for exdate in master.exdates:
            if isinstance(exdate, datetime):
                rule_set.exdate(exdate)

        return rule_set

    def _rrule_string(self, rrule_prop: Any, dtstart: datetime) -> str:
        """Serialize an RRULE, pinning UNTIL to UTC for aware DTSTART values."""
        if isinstance(rrule_prop, list):
            rrule_prop = rrule_prop[0]
        if not isinstance(rrule_prop, vRecur):
            return "RRULE:" + str(rrule_prop)

        parts = vRecur(rrule_prop)
        until_values = parts.get("UNTIL")
        if until_values:
            until = until_values[0] if isinstance(until_values, list) else until_values
            if isinstance(until, datetime):
                if until.tzinfo is None:
                    until = until.replace(tzinfo=dtstart.tzinfo)
            elif isinstance(until, date):
                # A date UNTIL includes instances on that day
                until = datetime.combine(until, time(23, 59, 59), tzinfo=dtstart.tzinfo)
            parts["UNTIL"] = [until.astimezone(UTC)]
        return "RRULE:" + parts.to_ical().decode("utf-8")

    @staticmethod
    def _as_start(value: date | datetime, dtstart: datetime) -> datetime:
        if isinstance(value, datetime):
            return value
        return datetime.combine(value, dtstart.timetz())

    def expand(
        self,
        master: ParsedEvent,
        window_start: datetime,
        window_end: datetime,
        overrides: Optional[dict[datetime, ParsedEvent]] = None,
    ) -> list[EventOccurrence]:
        """Expand a series into occurrences intersecting the window.

        Args:
            master: Parsed recurring master event
            window_start: Inclusive window start (aware)
            window_end: Exclusive window end (aware)
            overrides: RECURRENCE-ID overrides keyed by UTC original start

        Returns:
            Occurrences in start order, at most max_occurrences_per_rule

        Raises:
            RRuleExpansionError: If the rule cannot be expanded
        """
        overrides = overrides or {}
        template = master.occurrence
        duration = master.duration
        excluded_days = {d for d in master.exdates if not isinstance(d, datetime)}

        if not self.config.enable_rrule_expansion:
            return [template] if template.start < window_end and template.end > window_start else []

        rule_set = self.build_ruleset(master)
        # Instances starting before the window can still overlap it
        lookback = window_start - duration

        occurrences: list[EventOccurrence] = []
        generated = 0
        try:
            for instance_start in rule_set.xafter(lookback, inc=True):
                if instance_start >= window_end:
                    break
                if instance_start.date() in excluded_days:
                    continue

                generated += 1
                if generated > self.config.max_occurrences_per_rule:
                    logger.debug(
                        "RRULE expansion for %s limited to %d occurrences",
                        template.uid,
                        self.config.max_occurrences_per_rule,
                    )
                    break

                override = overrides.get(_instant(instance_start))
                if override is not None:
                    if override.is_cancelled:
                        continue
                    occurrence = override.occurrence.model_copy(
                        update={"uid": template.uid, "recurrence_instance_of": template.uid}
                    )
                else:
                    occurrence = template.model_copy(
                        update={
                            "start": instance_start,
                            "end": instance_start + duration,
                            "recurrence_instance_of": template.uid,
                        }
                    )

                if occurrence.start < window_end and occurrence.end > window_start:
                    occurrences.append(occurrence)
                elif occurrence.start == occurrence.end == window_start:
                    occurrences.append(occurrence)
        except (ValueError, TypeError) as e:
            raise RRuleExpansionError(f"failed to expand {template.uid}: {e}") from e

        # Overrides moved into the window from an original slot outside it
        for original_start, override in overrides.items():
            if override.is_cancelled:
                continue
            moved = override.occurrence
            if lookback <= original_start < window_end:
                continue
            if moved.start < window_end and moved.end > window_start:
                occurrences.append(
                    moved.model_copy(update={"uid": template.uid, "recurrence_instance_of": template.uid})
                )

        logger.debug(
            "Expanded %s into %d occurrences within window", template.uid, len(occurrences)
        )
        return occurrences
