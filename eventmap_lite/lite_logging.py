"""
Central logging configuration for eventmap_lite.

Keeps package loggers at INFO (or DEBUG on request) while quieting chatty
third-party HTTP and event-loop loggers.
"""

import logging
import os
from typing import Optional

NOISY_LOGGERS = ("httpx", "httpcore", "asyncio", "charset_normalizer")
PACKAGE_LOGGER = "eventmap_lite"
VALID_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


def configure_lite_logging(debug_mode: bool = False, force_debug: Optional[bool] = None) -> None:
    """
    Configure logger levels for eventmap_lite.

    Args:
        debug_mode: Whether to enable debug logging for eventmap_lite modules
        force_debug: Override debug mode setting (None to use env var detection)

    Environment Variables:
        EVENTMAP_DEBUG: Set to '1', 'true', 'yes' to force debug logging
        EVENTMAP_LOG_LEVEL: Override root log level (DEBUG, INFO, WARNING, ERROR)
    """
    env_debug = os.getenv("EVENTMAP_DEBUG", "").lower() in ("1", "true", "yes")
    env_log_level = os.getenv("EVENTMAP_LOG_LEVEL", "").upper()

    if force_debug is not None:
        final_debug = force_debug
    elif env_debug:
        final_debug = True
    else:
        final_debug = debug_mode

    root_level = logging.DEBUG if final_debug else logging.INFO
    if env_log_level in VALID_LEVELS:
        root_level = getattr(logging, env_log_level)

    root_logger = logging.getLogger()
    root_logger.setLevel(root_level)

    # Only add a plain handler when __init__._init_logging has not installed one
    if not root_logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("[%(asctime)s] %(levelname)s - %(name)s - %(message)s"))
        root_logger.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(PACKAGE_LOGGER).setLevel(logging.DEBUG if final_debug else logging.INFO)

    if final_debug:
        root_logger.debug("Debug logging enabled for eventmap_lite; third-party debug logs suppressed")


def get_logging_status() -> dict[str, str]:
    """
    Get current logging configuration status.

    Returns:
        Dictionary mapping logger names to their current levels
    """
    status = {"root": logging.getLevelName(logging.getLogger().level)}
    for name in (PACKAGE_LOGGER, *NOISY_LOGGERS):
        status[name] = logging.getLevelName(logging.getLogger(name).level)
    return status
