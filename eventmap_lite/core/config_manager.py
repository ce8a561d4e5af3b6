"""Environment and .env overrides for eventmap_lite configuration.

Values already present in the process environment always win over the
``.env`` file; ``.env`` only fills gaps.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

TRUTHY_VALUES = ("1", "true", "yes", "on")
FALSY_VALUES = ("0", "false", "no", "off")
_QUOTES = "\"'"


def _split_assignment(line: str) -> tuple[str, str] | None:
    """Split one ``KEY=VALUE`` line, or return None for blanks and comments."""
    stripped = line.strip()
    if not stripped or stripped.startswith("#") or "=" not in stripped:
        return None
    name, _, value = stripped.partition("=")
    name = name.strip()
    if not name:
        return None
    return name, value.strip().strip(_QUOTES)


def parse_env_file(path: Path) -> dict[str, str]:
    """Read ``KEY=VALUE`` pairs from a .env file.

    Missing or unreadable files yield an empty mapping. Quotes around values
    are dropped and later duplicates replace earlier ones.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return {}
    except OSError:
        logger.debug("Could not read %s; ignoring", path, exc_info=True)
        return {}

    pairs = (_split_assignment(line) for line in text.splitlines())
    return dict(pair for pair in pairs if pair is not None)


def _parse_bool(raw: str) -> bool | None:
    lowered = raw.strip().lower()
    if lowered in TRUTHY_VALUES:
        return True
    if lowered in FALSY_VALUES:
        return False
    return None


class ConfigManager:
    """Reads eventmap_lite overrides from the environment and an optional .env file."""

    def __init__(self, env_file_path: Path | None = None):
        # Relative to the working directory the CLI is started from
        self.env_file_path = env_file_path or Path.cwd() / ".env"

    def load_env_file(self) -> list[str]:
        """Export .env values that the environment does not already define.

        Returns:
            Names exported from the file, in file order
        """
        values = parse_env_file(self.env_file_path)
        if not values:
            logger.debug("No .env values loaded from %s", self.env_file_path)
            return []

        exported = [name for name in values if name not in os.environ]
        for name in exported:
            os.environ[name] = values[name]
        if exported:
            logger.debug("Exported from %s: %s", self.env_file_path, ", ".join(exported))
        return exported

    def build_config_from_env(self) -> dict[str, Any]:
        """Build configuration overrides from environment variables.

        Recognizes:
        - EVENTMAP_SOURCES -> 'sources' (comma-separated source ids)
        - GOOGLE_MAPS_API_KEY -> 'google_maps_api_key'
        - EVENTMAP_EVENTS_CACHE_TTL or EVENTSOURCE_API_CACHE_TTL -> 'events_cache_ttl_seconds'
        - EVENTMAP_CACHE_UNRESOLVED -> 'cache_unresolved_locations' (bool)
        - EVENTMAP_LOCATION_CACHE_PATH -> 'location_cache_path'
        - EVENTMAP_FETCH_CONCURRENCY -> 'fetch_concurrency' (int)
        - EVENTMAP_LOG_LEVEL -> 'log_level'

        Returns:
            Configuration overrides compatible with Config.from_dict
        """
        cfg: dict[str, Any] = {}

        sources = os.environ.get("EVENTMAP_SOURCES")
        if sources:
            cfg["sources"] = [s.strip() for s in sources.split(",") if s.strip()]

        api_key = os.environ.get("GOOGLE_MAPS_API_KEY")
        if api_key:
            cfg["google_maps_api_key"] = api_key

        ttl = os.environ.get("EVENTMAP_EVENTS_CACHE_TTL") or os.environ.get(
            "EVENTSOURCE_API_CACHE_TTL"
        )
        if ttl:
            try:
                cfg["events_cache_ttl_seconds"] = int(ttl)
            except ValueError:
                logger.warning("Invalid EVENTMAP_EVENTS_CACHE_TTL=%r; ignoring", ttl)

        cache_unresolved = os.environ.get("EVENTMAP_CACHE_UNRESOLVED")
        if cache_unresolved:
            parsed = _parse_bool(cache_unresolved)
            if parsed is None:
                logger.warning("Invalid EVENTMAP_CACHE_UNRESOLVED=%r; ignoring", cache_unresolved)
            else:
                cfg["cache_unresolved_locations"] = parsed

        cache_path = os.environ.get("EVENTMAP_LOCATION_CACHE_PATH")
        if cache_path:
            cfg["location_cache_path"] = cache_path

        concurrency = os.environ.get("EVENTMAP_FETCH_CONCURRENCY")
        if concurrency:
            try:
                cfg["fetch_concurrency"] = int(concurrency)
            except ValueError:
                logger.warning("Invalid EVENTMAP_FETCH_CONCURRENCY=%r; ignoring", concurrency)

        log_level = os.environ.get("EVENTMAP_LOG_LEVEL")
        if log_level:
            cfg["log_level"] = log_level

        return cfg

    def load_full_config(self) -> dict[str, Any]:
        """Load .env file and build configuration overrides from environment."""
        self.load_env_file()
        return self.build_config_from_env()


def get_config_value(config: Any, key: str, default: Any = None) -> Any:
    """Get configuration value supporting both dict and dataclass-like objects."""
    if isinstance(config, dict):
        return config.get(key, default)
    return getattr(config, key, default)
