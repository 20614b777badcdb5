"""
Central logging configuration for nextmeeting.

Keeps nextmeeting's own loggers at the requested level while quieting
third-party libraries that are chatty at DEBUG.
"""

import logging
import os
from typing import Optional

PACKAGE_LOGGER = "nextmeeting"

# Third-party loggers kept above DEBUG
QUIET_LOGGERS: dict[str, int] = {
    "asyncio": logging.WARNING,
    "icalendar": logging.INFO,
}

LOG_FORMAT = "[%(asctime)s] %(levelname)s - %(name)s - %(message)s"


def configure_logging(
    debug_mode: bool = False,
    force_debug: Optional[bool] = None,
    level: Optional[str] = None,
) -> None:
    """
    Configure logging levels for nextmeeting.

    Args:
        debug_mode: Whether to enable debug logging for nextmeeting modules
        force_debug: Override debug mode setting (None to use env var detection)
        level: Root level name from configuration (e.g. "WARNING")

    Environment Variables:
        NEXTMEETING_DEBUG: Set to '1', 'true', 'yes' to force debug logging
        NEXTMEETING_LOG_LEVEL: Override root log level (DEBUG, INFO, WARNING, ERROR)
    """
    env_debug = os.getenv("NEXTMEETING_DEBUG", "").lower() in ("1", "true", "yes")
    env_log_level = os.getenv("NEXTMEETING_LOG_LEVEL", "").upper()

    if force_debug is not None:
        final_debug = force_debug
    elif env_debug:
        final_debug = True
    else:
        final_debug = debug_mode

    root_level = logging.DEBUG if final_debug else logging.INFO
    if level and level.upper() in ("DEBUG", "INFO", "WARNING", "ERROR"):
        root_level = getattr(logging, level.upper())
    if env_log_level in ("DEBUG", "INFO", "WARNING", "ERROR"):
        root_level = getattr(logging, env_log_level)

    root_logger = logging.getLogger()
    root_logger.setLevel(root_level)

    # Leave handlers installed by a host application alone
    if not root_logger.handlers:
        handler = logging.StreamHandler()
        handler.setLevel(root_level)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root_logger.addHandler(handler)

    for logger_name, quiet_level in QUIET_LOGGERS.items():
        logging.getLogger(logger_name).setLevel(quiet_level)

    logging.getLogger(PACKAGE_LOGGER).setLevel(logging.DEBUG if final_debug else root_level)

    if final_debug:
        root_logger.debug("Debug logging enabled for nextmeeting modules")


def get_logging_status() -> dict[str, str]:
    """
    Get current logging configuration status.

    Returns:
        Dictionary mapping logger names to their current levels
    """
    status = {"root": logging.getLevelName(logging.getLogger().level)}
    for logger_name in (PACKAGE_LOGGER, *QUIET_LOGGERS):
        status[logger_name] = logging.getLevelName(logging.getLogger(logger_name).level)
    return status
