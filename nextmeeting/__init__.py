"""nextmeeting - picks the next meeting from a set of calendars.

The package decodes iCalendar payloads, filters and ranks the occurrences,
extracts a join URL and renders panel-ready strings. Imports stay light so
the package can be inspected without loading icalendar or dateutil.
"""

__version__ = "0.1.0"

from typing import Any

__all__ = [
    "Config",
    "MeetingEngine",
    "MessageCatalog",
    "RefreshCoordinator",
    "SelectionResult",
    "load_config",
]


def __getattr__(name: str) -> Any:
    """Resolve the public API lazily on first access."""
    if name in ("Config", "load_config"):
        from . import config_loader

        return getattr(config_loader, name)
    if name in ("MeetingEngine", "SelectionResult"):
        from . import pipeline

        return getattr(pipeline, name)
    if name == "MessageCatalog":
        from .messages import MessageCatalog

        return MessageCatalog
    if name == "RefreshCoordinator":
        from .refresh import RefreshCoordinator

        return RefreshCoordinator
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
