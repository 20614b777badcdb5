"""Command-line entry for nextmeeting.

Reads one or more .ics files, runs a single selection pass (or keeps
refreshing with --watch) and prints what the panel would show.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import NoReturn, Optional

from .config_loader import Config, load_config
from .exceptions import ConfigError
from .logging_config import configure_logging
from .models import CalendarSource, TimeMode
from .pipeline import MeetingEngine, SelectionResult
from .refresh import RefreshCoordinator, RefreshSnapshot
from .timezone_utils import now_utc, resolve_timezone

logger = logging.getLogger(__name__)


def _create_parser() -> argparse.ArgumentParser:
    """Create argument parser for nextmeeting CLI.

    Returns:
        Configured argument parser
    """
    parser = argparse.ArgumentParser(
        prog="nextmeeting",
        description="nextmeeting - show the next meeting from iCalendar files",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  nextmeeting work.ics                          # Next meeting from one calendar
  nextmeeting work.ics home.ics --relative      # "in 2h 30m" style times
  nextmeeting work.ics --now 2025-10-27T08:00:00Z --list 5
        """,
    )

    parser.add_argument("files", nargs="+", metavar="FILE", help="iCalendar (.ics) files; each is one calendar")
    parser.add_argument("--config", metavar="PATH", help="Config file (default: ~/.config/nextmeeting/config.yaml)")
    parser.add_argument("--now", metavar="ISO", help="Evaluate at this time instead of the current time")
    parser.add_argument("--timezone", metavar="TZ", help="Viewer timezone (default: detected)")
    parser.add_argument("--relative", action="store_true", help="Show relative times")
    parser.add_argument("--list", type=int, default=0, metavar="N", help="Also list the next N meetings")
    parser.add_argument(
        "--email",
        action="append",
        default=[],
        metavar="ADDR",
        help="Your address for acceptance status (repeatable)",
    )
    parser.add_argument("--watch", action="store_true", help="Keep refreshing at the configured interval")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    return parser


def _parse_now(value: Optional[str]) -> datetime:
    if not value:
        return now_utc()
    from dateutil import parser as date_parser

    dt = date_parser.isoparse(value)
    if dt.tzinfo is None:
        raise ValueError(f"--now needs a UTC offset: {value!r}")
    return dt


def _read_snapshot(paths: list[Path]) -> RefreshSnapshot:
    """Read every file; a file's stem is its calendar id."""
    snapshot = RefreshSnapshot()
    payloads = {}
    for path in paths:
        snapshot.sources.append(CalendarSource(id=path.stem, name=path.stem))
        payloads[path.stem] = path.read_bytes()
    snapshot.payloads = payloads
    return snapshot


def _print_result(result: SelectionResult, engine: MeetingEngine) -> None:
    if result.display is not None:
        print(result.display.title)
        print(result.display.info)
        if result.display.join_url:
            print(f"{result.display.join_label}: {result.display.join_url}")
    else:
        print(result.placeholder)

    if result.upcoming:
        print()
        for candidate in result.upcoming:
            occurrence = candidate.occurrence
            start = occurrence.start.astimezone(engine.local_tz)
            print(f"  {start:%a %Y-%m-%d %H:%M}  {occurrence.title or '-'}")

    for calendar_id in result.failed_sources:
        print(f"error: {calendar_id}: {result.decode_results[calendar_id].error_message}", file=sys.stderr)
    for diagnostic in result.diagnostics:
        print(f"warning: {diagnostic.calendar_id}: {diagnostic.uid}: {diagnostic.reason}", file=sys.stderr)


async def _watch(
    engine: MeetingEngine, paths: list[Path], config: Config, fixed_now: Optional[datetime] = None
) -> None:
    async def fetch() -> RefreshSnapshot:
        return _read_snapshot(paths)

    coordinator = RefreshCoordinator(
        engine,
        fetch,
        config,
        on_result=lambda result: _print_result(result, engine),
        time_provider=(lambda: fixed_now) if fixed_now is not None else now_utc,
    )
    try:
        await coordinator.run_periodic(config.refresh_interval_seconds)
    finally:
        await coordinator.stop()


def main(argv: Optional[list[str]] = None) -> NoReturn:
    """Run the nextmeeting CLI.

    Exit codes: 0 on success, 1 when a file cannot be read, 2 on bad
    configuration or arguments.
    """
    parser = _create_parser()
    args = parser.parse_args(argv)

    try:
        config = load_config(args.config)
    except ConfigError as exc:
        print(f"nextmeeting: {exc}", file=sys.stderr)
        sys.exit(2)

    configure_logging(debug_mode=args.debug, level=config.log_level)

    config.additional_emails = [*config.additional_emails, *args.email]
    if args.relative:
        config.display_format = TimeMode.RELATIVE
    if args.list:
        config.upcoming_events_count = max(0, args.list)

    local_tz = None
    if args.timezone:
        local_tz = resolve_timezone(args.timezone)
        if local_tz is None:
            print(f"nextmeeting: unknown timezone {args.timezone!r}", file=sys.stderr)
            sys.exit(2)

    try:
        now = _parse_now(args.now)
    except ValueError as exc:
        print(f"nextmeeting: invalid --now: {exc}", file=sys.stderr)
        sys.exit(2)

    engine = MeetingEngine(local_tz=local_tz)
    engine.apply_settings(config)
    paths = [Path(f) for f in args.files]

    if args.watch:
        try:
            asyncio.run(_watch(engine, paths, config, fixed_now=now if args.now else None))
        except KeyboardInterrupt:
            logger.debug("Interrupted")
        sys.exit(0)

    try:
        snapshot = _read_snapshot(paths)
    except OSError as exc:
        print(f"nextmeeting: {exc}", file=sys.stderr)
        sys.exit(1)

    result = engine.run(
        snapshot.payloads,
        snapshot.sources,
        config.to_filter_config(snapshot.sources),
        now,
        options=config.to_format_options(),
        in_progress_limit=config.in_progress_limit(),
        upcoming_limit=config.upcoming_events_count if args.list else 0,
    )
    _print_result(result, engine)
    sys.exit(0)


if __name__ == "__main__":
    main()
