"""Shared fixtures for nextmeeting tests."""

import logging
from collections.abc import Callable, Generator, Iterable
from datetime import UTC, datetime, timedelta
from typing import Any, Optional

import pytest

from nextmeeting.messages import MessageCatalog
from nextmeeting.models import AcceptanceStatus, CalendarSource, EventOccurrence, FilterConfig


def pytest_configure(config: Any) -> None:
    """Configure pytest with project markers."""
    config.addinivalue_line("markers", "unit: Fast unit tests")


@pytest.fixture(autouse=True)
def clean_test_environment(monkeypatch: Any) -> Generator[None, Any, None]:
    """Ensure time and logging overrides do not leak between tests.

    Some tests set NEXTMEETING_TEST_TIME to freeze time. This fixture clears
    it, and the logging overrides, before and after each test.
    """
    for name in ("NEXTMEETING_TEST_TIME", "NEXTMEETING_DEBUG", "NEXTMEETING_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
    yield
    for name in ("NEXTMEETING_TEST_TIME", "NEXTMEETING_DEBUG", "NEXTMEETING_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture(autouse=True)
def restore_logger_levels() -> Generator[None, Any, None]:
    """Restore logger levels changed by configure_logging()."""
    names = ["", "nextmeeting", "asyncio", "icalendar"]
    saved = {name: logging.getLogger(name).level for name in names}
    yield
    for name, level in saved.items():
        logging.getLogger(name).setLevel(level)


@pytest.fixture
def now() -> datetime:
    """Fixed evaluation time: Monday 2025-10-27 08:00 UTC."""
    return datetime(2025, 10, 27, 8, 0, tzinfo=UTC)


@pytest.fixture
def localize() -> MessageCatalog:
    """Default English message catalog."""
    return MessageCatalog()


@pytest.fixture
def make_vevent() -> Callable[..., str]:
    """Factory for VEVENT text blocks.

    `dtstart`/`dtend` accept either a bare value ("20251027T110000Z") or a
    full property line ("DTSTART;VALUE=DATE:20251027"). Pass None to omit.
    """

    def _make(
        uid: Optional[str],
        dtstart: Optional[str],
        dtend: Optional[str] = None,
        summary: Optional[str] = "Meeting",
        extra: Iterable[str] = (),
    ) -> str:
        lines = ["BEGIN:VEVENT", "DTSTAMP:20251001T000000Z"]
        if uid is not None:
            lines.append(f"UID:{uid}")
        if dtstart is not None:
            lines.append(dtstart if dtstart.startswith("DTSTART") else f"DTSTART:{dtstart}")
        if dtend is not None:
            lines.append(dtend if dtend.startswith("DTEND") else f"DTEND:{dtend}")
        if summary is not None:
            lines.append(f"SUMMARY:{summary}")
        lines.extend(extra)
        lines.append("END:VEVENT")
        return "\r\n".join(lines)

    return _make


@pytest.fixture
def make_calendar() -> Callable[..., str]:
    """Factory wrapping VEVENT blocks in a VCALENDAR envelope."""

    def _make(*vevents: str) -> str:
        parts = ["BEGIN:VCALENDAR", "VERSION:2.0", "PRODID:-//nextmeeting//tests//EN", *vevents, "END:VCALENDAR"]
        return "\r\n".join(parts) + "\r\n"

    return _make


@pytest.fixture
def make_occurrence(now: datetime) -> Callable[..., EventOccurrence]:
    """Factory for EventOccurrence values relative to the `now` fixture.

    `starts_in` and `duration` are timedeltas; other keyword arguments are
    passed to the model.
    """

    def _make(
        uid: str = "evt",
        starts_in: timedelta = timedelta(hours=1),
        duration: timedelta = timedelta(hours=1),
        calendar_id: str = "work",
        **kwargs: Any,
    ) -> EventOccurrence:
        start = now + starts_in
        return EventOccurrence(
            uid=uid,
            calendar_id=calendar_id,
            title=kwargs.pop("title", f"Event {uid}"),
            start=start,
            end=start + duration,
            acceptance_status=kwargs.pop("acceptance_status", AcceptanceStatus.UNKNOWN),
            **kwargs,
        )

    return _make


@pytest.fixture
def work_filter() -> FilterConfig:
    """FilterConfig enabling only the "work" calendar."""
    return FilterConfig(enabled_calendars=frozenset({"work"}))


@pytest.fixture
def sample_sources() -> list[CalendarSource]:
    """A meeting calendar, a personal calendar and a birthdays calendar."""
    return [
        CalendarSource(id="work", name="Work", color="#62a0ea", backend="caldav", owner_email="me@example.com"),
        CalendarSource(id="home", name="Home", color="not-a-color", backend="local"),
        CalendarSource(id="birthdays", name="Birthdays", backend="contacts"),
    ]
