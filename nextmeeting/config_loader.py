"""nextmeeting.config_loader

Config loader for nextmeeting.

- Reads YAML (PyYAML) or, for `.json` files, JSON.
- Exposes a typed dataclass `Config` and a `load_config()` helper that accepts
  an optional path override.
- Coerces values leniently, logging a warning and keeping the default for
  anything it cannot use.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Any

from .event_filter import EventStatusFilter
from .exceptions import ConfigError
from .models import CalendarSource, FilterConfig, FormatOptions, TimeMode, Visibility
from .sources import resolve_enabled_calendars

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path.home() / ".config" / "nextmeeting" / "config.yaml"

DEFAULT_MEETING_URL_PATTERNS = [
    r"https://meet\.google\.com/[a-z-]+",
    r"https://[a-z0-9]+\.zoom\.us/j/[0-9]+",
    r"https://teams\.microsoft\.com/l/meetup-join/[^\s]+",
    r"https://teams\.live\.com/meet/[^\s]+",
    r"https://[a-z0-9]+\.webex\.com/[^\s]+/j\.php\?MTID=[^\s]+",
    r"https://[a-z0-9]+\.webex\.com/meet/[^\s]+",
]

IN_PROGRESS_CHOICES = {"off": 0, "5": 5, "10": 10, "15": 15, "30": 30}
REFRESH_INTERVAL_CHOICES = (5, 10, 15, 30)
DISPLAY_FORMATS = {
    "day_and_time": TimeMode.ABSOLUTE,
    "relative": TimeMode.RELATIVE,
    # Legacy values
    "title_only": TimeMode.ABSOLUTE,
    "time_only": TimeMode.ABSOLUTE,
}
VISIBILITY_ALIASES = {
    "hide": Visibility.HIDE,
    "show": Visibility.SHOW,
    "show_if_same_day": Visibility.SAME_DAY,
    "same_day": Visibility.SAME_DAY,
    "show_if_30m": Visibility.WITHIN_30M,
    "within_30m": Visibility.WITHIN_30M,
    "show_if_15m": Visibility.WITHIN_15M,
    "within_15m": Visibility.WITHIN_15M,
    "show_if_5m": Visibility.WITHIN_5M,
    "within_5m": Visibility.WITHIN_5M,
}


def _str_list(data: dict[str, Any], key: str, default: list[str]) -> list[str]:
    raw = data.get(key, default)
    if raw is None:
        return []
    if isinstance(raw, str):
        logger.warning("Config `%s` is not a list; coercing to single-item list", key)
        raw = [raw]
    if not isinstance(raw, (list, tuple)):
        logger.warning("Config `%s`=%r is not a list; using default", key, raw)
        return list(default)
    return [str(item).strip() for item in raw if item is not None and str(item).strip()]


def _bool(data: dict[str, Any], key: str, default: bool) -> bool:
    raw = data.get(key, default)
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, str) and raw.strip().lower() in ("1", "true", "yes", "on"):
        return True
    if isinstance(raw, str) and raw.strip().lower() in ("0", "false", "no", "off"):
        return False
    if isinstance(raw, int):
        return bool(raw)
    logger.warning("Config %s=%r is not a boolean; using default %s", key, raw, default)
    return default


def _int(data: dict[str, Any], key: str, default: int, low: int, high: int) -> int:
    raw = data.get(key, default)
    try:
        value = int(raw)
    except (TypeError, ValueError):
        logger.warning("Config %s=%r is not an int; using default %d", key, raw, default)
        return default
    if value < low:
        logger.warning("%s %d below minimum; coercing to %d", key, value, low)
        return low
    if value > high:
        logger.warning("%s %d above maximum; coercing to %d", key, value, high)
        return high
    return value


def _choice(data: dict[str, Any], key: str, choices: dict[str, Any], default: Any) -> Any:
    raw = data.get(key)
    if raw is None:
        return default
    normalized = str(raw).strip().lower().replace("-", "_")
    if normalized in choices:
        return choices[normalized]
    logger.warning("Config %s=%r is not one of %s; using default", key, raw, sorted(choices))
    return default


@dataclass
class Config:
    """Typed configuration for nextmeeting.

    Fields mirror the applet settings: which calendars to use, which events
    to show, how the panel renders them, and how often to refresh.
    """

    enabled_calendar_uids: list[str] = field(default_factory=list)
    show_all_day_events: bool = True
    event_status_filter: EventStatusFilter = EventStatusFilter.ALL
    additional_emails: list[str] = field(default_factory=list)
    meeting_url_patterns: list[str] = field(default_factory=lambda: list(DEFAULT_MEETING_URL_PATTERNS))
    excluded_url_patterns: list[str] = field(default_factory=list)
    exclusion_hides_event: bool = False

    display_format: TimeMode = TimeMode.ABSOLUTE
    use_24h: bool = False
    panel_location: Visibility = Visibility.SHOW
    panel_join_button: Visibility = Visibility.WITHIN_15M
    panel_calendar_indicator: bool = False
    max_title_length: int = 30
    # Minutes after start a meeting stays selectable; 0 shows only future meetings
    show_in_progress: int = 5
    upcoming_events_count: int = 3
    horizon_days: int = 30
    max_occurrences_per_rule: int = 250

    auto_refresh_enabled: bool = False
    auto_refresh_interval_minutes: int = 10
    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> Config:
        """Create Config from a plain mapping, applying defaults and validation.

        Unknown keys are ignored. Invalid values are replaced by defaults and
        logged as warnings, so a partially broken file still yields a usable
        configuration.
        """
        if data is None:
            data = {}

        show_in_progress = _choice(data, "show_in_progress", IN_PROGRESS_CHOICES, 5)

        interval = _int(data, "auto_refresh_interval_minutes", 10, 1, 1440)
        if interval not in REFRESH_INTERVAL_CHOICES:
            closest = min(REFRESH_INTERVAL_CHOICES, key=lambda c: abs(c - interval))
            logger.warning(
                "auto_refresh_interval_minutes %d not supported; coercing to %d", interval, closest
            )
            interval = closest

        status_choices = {f.value: f for f in EventStatusFilter}
        log_level = data.get("log_level", "INFO")

        return cls(
            enabled_calendar_uids=_str_list(data, "enabled_calendar_uids", []),
            show_all_day_events=_bool(data, "show_all_day_events", True),
            event_status_filter=_choice(data, "event_status_filter", status_choices, EventStatusFilter.ALL),
            additional_emails=_str_list(data, "additional_emails", []),
            meeting_url_patterns=_str_list(data, "meeting_url_patterns", DEFAULT_MEETING_URL_PATTERNS),
            excluded_url_patterns=_str_list(data, "excluded_url_patterns", []),
            exclusion_hides_event=_bool(data, "exclusion_hides_event", False),
            display_format=_choice(data, "display_format", DISPLAY_FORMATS, TimeMode.ABSOLUTE),
            use_24h=_bool(data, "use_24h", False),
            panel_location=_choice(data, "panel_location", VISIBILITY_ALIASES, Visibility.SHOW),
            panel_join_button=_choice(data, "panel_join_button", VISIBILITY_ALIASES, Visibility.WITHIN_15M),
            panel_calendar_indicator=_bool(data, "panel_calendar_indicator", False),
            max_title_length=_int(data, "max_title_length", 30, 4, 200),
            show_in_progress=show_in_progress,
            upcoming_events_count=_int(data, "upcoming_events_count", 3, 0, 10),
            horizon_days=_int(data, "horizon_days", 30, 1, 366),
            max_occurrences_per_rule=_int(data, "max_occurrences_per_rule", 250, 1, 5000),
            auto_refresh_enabled=_bool(data, "auto_refresh_enabled", False),
            auto_refresh_interval_minutes=interval,
            log_level=str(log_level).upper() if log_level is not None else "INFO",
        )

    def to_filter_config(self, sources: Iterable[CalendarSource] = ()) -> FilterConfig:
        """Build the engine's FilterConfig for the given source listing."""
        return FilterConfig(
            enabled_calendars=resolve_enabled_calendars(sources, self.enabled_calendar_uids),
            include_all_day=self.show_all_day_events,
            included_acceptance_statuses=self.event_status_filter.statuses,
            excluded_url_patterns=tuple(self.excluded_url_patterns),
            additional_own_emails=frozenset(self.additional_emails),
            exclusion_hides_event=self.exclusion_hides_event,
        )

    def to_format_options(self) -> FormatOptions:
        """Build the presenter's FormatOptions."""
        return FormatOptions(
            time_mode=self.display_format,
            show_location=self.panel_location is not Visibility.HIDE,
            show_calendar_color=self.panel_calendar_indicator,
            use_24h=self.use_24h,
            location_visibility=self.panel_location,
            join_visibility=self.panel_join_button,
            max_title_length=self.max_title_length,
        )

    def in_progress_limit(self) -> timedelta:
        """How long after its start a meeting may still be selected."""
        return timedelta(minutes=self.show_in_progress)

    @property
    def refresh_interval_seconds(self) -> int:
        """Auto-refresh cadence in seconds."""
        return self.auto_refresh_interval_minutes * 60


def _load_mapping(path: Path) -> Any:
    """Load a YAML file, or a JSON file when the suffix says so.

    The `yaml` import is deferred to keep package import cheap.
    """
    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() == ".json":
        try:
            return json.loads(text)
        except json.JSONDecodeError as exc:
            raise ConfigError(f"Config file {path} is not valid JSON: {exc}") from exc

    import yaml  # noqa: PLC0415

    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Config file {path} is not valid YAML: {exc}") from exc
    # safe_load returns None for empty files
    return {} if loaded is None else loaded


def load_config(path: str | Path | None = None) -> Config:
    """Load configuration from a YAML/JSON file and return a Config instance.

    Args:
        path: Optional path to the config file. Defaults to
              ~/.config/nextmeeting/config.yaml.

    Returns:
        Config dataclass instance with values from file (or defaults).

    Raises:
        ConfigError: If the file cannot be parsed or its top level is not a mapping.
    """
    p = Path(path) if path else DEFAULT_CONFIG_PATH
    logger.debug("Attempting to load config from %s", p)
    if not p.exists():
        logger.info("Config file %s not found; using defaults", p)
        return Config()

    raw = _load_mapping(p)
    if not isinstance(raw, dict):
        logger.warning("Config file %s parsed but top-level is not a mapping: %r", p, raw)
        raise ConfigError("Config file must contain a mapping at top level")
    cfg = Config.from_dict(raw)
    logger.info("Loaded configuration from %s", p)
    logger.debug("Configuration values: %s", cfg)
    return cfg
