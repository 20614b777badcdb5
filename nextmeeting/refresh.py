"""Refresh coordination: triggers selection passes and publishes the latest result."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from .config_loader import Config
from .decoder import Payload
from .models import CalendarSource
from .pipeline import MeetingEngine, SelectionResult
from .timezone_utils import now_utc

logger = logging.getLogger(__name__)


@dataclass
class RefreshSnapshot:
    """Sources and payloads fetched by the host for one pass."""

    sources: list[CalendarSource] = field(default_factory=list)
    payloads: Mapping[str, Payload] = field(default_factory=dict)


FetchSnapshot = Callable[[], Awaitable[RefreshSnapshot]]
ResultCallback = Callable[[SelectionResult], None]


class RefreshCoordinator:
    """Drives selection passes on triggers and on a fixed cadence.

    Every trigger gets a generation number. A pass publishes its result only
    if no newer trigger started meanwhile, and starting a trigger cancels the
    pass it supersedes.
    """

    def __init__(
        self,
        engine: MeetingEngine,
        fetch_snapshot: FetchSnapshot,
        config: Optional[Config] = None,
        on_result: Optional[ResultCallback] = None,
        time_provider: Callable[[], datetime] = now_utc,
    ):
        """Initialize coordinator.

        Args:
            engine: Engine that runs the pure selection stages
            fetch_snapshot: Coroutine function returning fresh sources and payloads
            config: User configuration; when given, its engine settings are
                applied to the engine
            on_result: Called with each published result
            time_provider: Function returning the current aware time
        """
        self.engine = engine
        self.fetch_snapshot = fetch_snapshot
        self.config = config or Config()
        if config is not None:
            engine.apply_settings(config)
        self.on_result = on_result
        self.time_provider = time_provider

        self.latest: Optional[SelectionResult] = None
        self.published_generation = 0
        self._generation = 0
        self._task: Optional[asyncio.Task[Optional[SelectionResult]]] = None
        self._stop_event = asyncio.Event()

    @property
    def generation(self) -> int:
        """Number of triggers so far."""
        return self._generation

    @property
    def loaded(self) -> bool:
        """Whether any pass has published a result."""
        return self.latest is not None

    def update_config(self, config: Config) -> None:
        """Replace the configuration used by subsequent passes.

        URL patterns, the query horizon and recurrence limits live in the
        engine, so they are pushed there as well.
        """
        self.config = config
        self.engine.apply_settings(config)

    def trigger(self, reason: str = "manual") -> asyncio.Task[Optional[SelectionResult]]:
        """Start a new pass, superseding any pass still in flight.

        Args:
            reason: Short label for logs (e.g. "periodic", "calendar-changed")

        Returns:
            Task resolving to the published result, or None if the pass was
            superseded or its fetch failed
        """
        self._generation += 1
        generation = self._generation

        if self._task is not None and not self._task.done():
            logger.debug("Cancelling superseded refresh pass")
            self._task.cancel()

        logger.debug("Starting refresh pass %d (%s)", generation, reason)
        self._task = asyncio.create_task(self._run_pass(generation, reason))
        return self._task

    async def _run_pass(self, generation: int, reason: str) -> Optional[SelectionResult]:
        try:
            snapshot = await self.fetch_snapshot()
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Refresh pass %d (%s) failed to fetch calendars", generation, reason)
            return None

        if generation != self._generation:
            logger.debug("Discarding stale refresh pass %d", generation)
            return None

        config = self.config
        result = self.engine.run(
            snapshot.payloads,
            snapshot.sources,
            config.to_filter_config(snapshot.sources),
            self.time_provider(),
            options=config.to_format_options(),
            in_progress_limit=config.in_progress_limit(),
            upcoming_limit=config.upcoming_events_count,
            loaded=True,
        )

        # Nothing awaits between the check above and here
        self.latest = result
        self.published_generation = generation
        logger.debug("Published refresh pass %d", generation)
        if self.on_result is not None:
            self.on_result(result)
        return result

    async def run_periodic(self, interval_seconds: float) -> None:
        """Trigger passes on a fixed cadence until stop() is called.

        Args:
            interval_seconds: Delay between the end of one pass and the next trigger
        """
        logger.debug("Refresh loop starting with interval %s seconds", interval_seconds)
        self._stop_event.clear()
        while not self._stop_event.is_set():
            task = self.trigger("periodic")
            await asyncio.wait({task})
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=interval_seconds)
            except asyncio.TimeoutError:
                continue
        logger.debug("Refresh loop stopped")

    async def stop(self) -> None:
        """Stop the periodic loop and cancel any pass in flight."""
        self._stop_event.set()
        task = self._task
        if task is not None and not task.done():
            task.cancel()
            await asyncio.wait({task})
