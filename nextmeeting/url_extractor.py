"""Join URL extraction from event text."""

import logging
import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Optional

from .exceptions import PatternError
from .models import EventOccurrence

logger = logging.getLogger(__name__)

# Generic URL grammar: scheme://host[/path][?query]
URL_TOKEN_RE = re.compile(r"""[a-z][a-z0-9+.\-]*://[^\s<>"'{}|\\^`\[\]]+""", re.IGNORECASE)
TRAILING_PUNCTUATION = ".,;:!?)]}>'\""

BUILTIN_PATTERNS: tuple[tuple[str, str], ...] = (
    ("google-meet", r"^https://meet\.google\.com/[a-z-]+"),
    ("zoom", r"^https://([a-z0-9-]+\.)*zoom\.us/(j|my|w|s|wc/join)/"),
    ("zoom-gov", r"^https://([a-z0-9-]+\.)*zoomgov\.com/j/"),
    ("teams", r"^https://teams\.microsoft\.com/l/meetup-join/"),
    ("teams-live", r"^https://teams\.live\.com/meet/"),
    ("webex", r"^https://[a-z0-9-]+\.webex\.com/\S*j\.php\?MTID="),
    ("webex-meet", r"^https://[a-z0-9-]+\.webex\.com/meet/"),
    ("goto", r"^https://(meet\.goto\.com|global\.gotomeeting\.com/join|app\.gotomeeting\.com)/"),
    ("jitsi", r"^https://meet\.jit\.si/[^/?#]+"),
    ("whereby", r"^https://whereby\.com/[^/?#]+"),
    ("slack-huddle", r"^https://app\.slack\.com/huddle/"),
    ("chime", r"^https://chime\.aws/[0-9]+"),
)


@dataclass(frozen=True)
class UrlPattern:
    """A named matcher applied to URL tokens."""

    name: str
    pattern: str
    compiled: re.Pattern[str] = field(repr=False, compare=False)

    @classmethod
    def compile(cls, name: str, pattern: str) -> "UrlPattern":
        """Compile a case-insensitive pattern.

        Raises:
            PatternError: If the pattern is not a valid regular expression
        """
        try:
            return cls(name=name, pattern=pattern, compiled=re.compile(pattern, re.IGNORECASE))
        except re.error as e:
            raise PatternError(f"invalid URL pattern {pattern!r}: {e}") from e

    def matches(self, token: str) -> bool:
        """Check whether the pattern matches anywhere in the token."""
        return self.compiled.search(token) is not None


def builtin_pattern_set() -> list[UrlPattern]:
    """Built-in patterns for common conferencing services."""
    return [UrlPattern.compile(name, pattern) for name, pattern in BUILTIN_PATTERNS]


def build_pattern_set(user_patterns: Iterable[str] = (), strict: bool = False) -> list[UrlPattern]:
    """Build the ordered pattern set: user patterns first, then built-ins.

    Args:
        user_patterns: Regex strings from the user's configuration
        strict: Raise on invalid user patterns instead of skipping them

    Returns:
        Ordered list of UrlPattern

    Raises:
        PatternError: If strict and a user pattern is invalid
    """
    patterns: list[UrlPattern] = []
    for index, pattern in enumerate(user_patterns):
        if not pattern or not pattern.strip():
            continue
        try:
            patterns.append(UrlPattern.compile(f"user-{index}", pattern.strip()))
        except PatternError as e:
            if strict:
                raise
            logger.warning("Skipping meeting URL pattern: %s", e)
    patterns.extend(builtin_pattern_set())
    return patterns


def tokenize_urls(text: str) -> list[str]:
    """Find URL tokens in text, in order, with trailing punctuation trimmed."""
    tokens = []
    for match in URL_TOKEN_RE.finditer(text or ""):
        token = match.group(0).rstrip(TRAILING_PUNCTUATION)
        if "://" in token and not token.endswith("://"):
            tokens.append(token)
    return tokens


class MeetingUrlExtractor:
    """Finds a joinable conferencing URL in an occurrence's fields."""

    def candidate_fields(self, occurrence: EventOccurrence) -> list[str]:
        """Scanned fields in priority order."""
        return [occurrence.conference_url or "", occurrence.location, occurrence.description]

    def extract(self, occurrence: EventOccurrence, pattern_set: Sequence[UrlPattern]) -> Optional[str]:
        """Extract the join URL.

        Fields are scanned in priority order; within a field the first URL
        token (by position) matching any pattern wins, and patterns are tried
        in order for each token.

        Args:
            occurrence: Occurrence to scan
            pattern_set: Ordered patterns, see build_pattern_set()

        Returns:
            The matching URL token, or None
        """
        if not pattern_set:
            return None
        for text in self.candidate_fields(occurrence):
            for token in tokenize_urls(text):
                for pattern in pattern_set:
                    if pattern.matches(token):
                        logger.debug("Join URL for %s matched %s", occurrence.uid, pattern.name)
                        return token
        return None

    def physical_location(
        self, occurrence: EventOccurrence, pattern_set: Sequence[UrlPattern] = ()
    ) -> Optional[str]:
        """Return the location unless it is empty or just a URL.

        Args:
            occurrence: Occurrence to inspect
            pattern_set: Patterns that identify meeting URLs

        Returns:
            Stripped location text, or None
        """
        location = occurrence.location.strip()
        if not location:
            return None
        if location.lower().startswith(("http://", "https://")):
            return None
        tokens = tokenize_urls(location)
        if len(tokens) == 1 and tokens[0] == location.rstrip(TRAILING_PUNCTUATION):
            return None
        for pattern in pattern_set:
            if pattern.compiled.fullmatch(location):
                return None
        return location
