"""Exception hierarchy for the meeting-selection engine.

Only whole-payload and configuration failures are raised as exceptions.
Problems with individual events are reported as DecodeDiagnostic records
and never interrupt a selection pass.
"""


class NextMeetingError(Exception):
    """Base exception for all nextmeeting errors.

    Hosts can catch this single type around a refresh cycle; nothing in the
    engine raises anything else on malformed input.
    """


class DecodeError(NextMeetingError):
    """A calendar payload container could not be read at all.

    Raised when:
    - The payload is not iCalendar data
    - The VCALENDAR envelope is structurally broken

    The selection pass for that source yields no occurrences; other sources
    are unaffected.
    """


class ConfigError(NextMeetingError):
    """Configuration file exists but cannot be used.

    Raised when:
    - The file is neither valid YAML nor valid JSON
    - The top-level value is not a mapping
    """


class PatternError(NextMeetingError):
    """A meeting URL pattern is not a valid regular expression.

    Only raised when strict compilation is requested; the default behaviour
    is to skip invalid patterns with a warning.
    """
