"""eventmap_lite.config_loader

Lightweight config loader for eventmap_lite.

- Reads YAML (PyYAML); JSON files parse too since JSON is a YAML subset.
- Exposes a typed dataclass `Config` and a `load_config()` helper that accepts
  an optional path override and applies environment overrides on top.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml

from .core.config_manager import ConfigManager
from .exceptions import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_EVENTS_CACHE_TTL = 60 * 10
MAX_FETCH_CONCURRENCY = 8


@dataclass
class Config:
    """Typed configuration for eventmap_lite.

    Fields:
        sources: prefixed source ids to aggregate (e.g. "gc:abc", "file:events.json")
        fetch_concurrency: parallel source fetches (1..8)
        fetch_timeout_seconds: overall timeout for one multi-source fetch
        events_cache_ttl_seconds: per-source response cache TTL, -1 caches indefinitely
        geocode_batch_size: locations resolved concurrently per batch
        geocode_batch_delay_seconds: pause between geocoding batches
        cache_unresolved_locations: write "no result" geocodes to the location cache
        location_cache_path: JSON file for the persistent location cache, None for memory only
        log_level: logging level name
        google_maps_api_key: geocoding credential; geocoding is skipped when missing
    """

    sources: list[str] = field(default_factory=list)
    fetch_concurrency: int = 3
    fetch_timeout_seconds: float = 120.0
    events_cache_ttl_seconds: int = DEFAULT_EVENTS_CACHE_TTL
    geocode_batch_size: int = 10
    geocode_batch_delay_seconds: float = 0.05
    cache_unresolved_locations: bool = True
    location_cache_path: Optional[str] = None
    log_level: str = "INFO"
    google_maps_api_key: Optional[str] = field(default=None, repr=False)

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> Config:
        """Create Config from a plain mapping, applying defaults and validation.

        Numeric-like values are coerced, out-of-range values are clamped, and
        each coercion logs a warning.
        """
        if data is None:
            data = {}

        sources_raw = data.get("sources", [])
        if sources_raw is None:
            sources_raw = []
        if not isinstance(sources_raw, (list, tuple)):
            logger.warning("Config `sources` is not a list; coercing to single-item list")
            sources_list: list[str] = [str(sources_raw)]
        else:
            sources_list = [str(s) for s in sources_raw]

        def _coerce_int(key: str, default: int) -> int:
            raw = data.get(key, default)
            try:
                return int(raw)
            except (TypeError, ValueError):
                logger.warning("Config %s=%r is not an int; using default %d", key, raw, default)
                return default

        def _coerce_float(key: str, default: float) -> float:
            raw = data.get(key, default)
            try:
                return float(raw)
            except (TypeError, ValueError):
                logger.warning("Config %s=%r is not a number; using default %s", key, raw, default)
                return default

        concurrency = _coerce_int("fetch_concurrency", 3)
        if concurrency < 1 or concurrency > MAX_FETCH_CONCURRENCY:
            clamped = max(1, min(concurrency, MAX_FETCH_CONCURRENCY))
            logger.warning("fetch_concurrency %d out of range; coercing to %d", concurrency, clamped)
            concurrency = clamped

        ttl = _coerce_int("events_cache_ttl_seconds", DEFAULT_EVENTS_CACHE_TTL)
        if ttl < -1:
            logger.warning("events_cache_ttl_seconds %d invalid; coercing to -1 (no expiry)", ttl)
            ttl = -1

        batch_size = _coerce_int("geocode_batch_size", 10)
        if batch_size < 1:
            logger.warning("geocode_batch_size %d below minimum; coercing to 1", batch_size)
            batch_size = 1

        batch_delay = _coerce_float("geocode_batch_delay_seconds", 0.05)
        if batch_delay < 0:
            logger.warning("geocode_batch_delay_seconds %s negative; coercing to 0", batch_delay)
            batch_delay = 0.0

        cache_unresolved = data.get("cache_unresolved_locations", True)
        if not isinstance(cache_unresolved, bool):
            logger.warning(
                "Config cache_unresolved_locations=%r is not a bool; using True", cache_unresolved
            )
            cache_unresolved = True

        cache_path = data.get("location_cache_path")
        log_level = data.get("log_level", "INFO")
        api_key = data.get("google_maps_api_key")

        return cls(
            sources=sources_list,
            fetch_concurrency=concurrency,
            fetch_timeout_seconds=_coerce_float("fetch_timeout_seconds", 120.0),
            events_cache_ttl_seconds=ttl,
            geocode_batch_size=batch_size,
            geocode_batch_delay_seconds=batch_delay,
            cache_unresolved_locations=cache_unresolved,
            location_cache_path=str(cache_path) if cache_path else None,
            log_level=str(log_level).upper() if log_level is not None else "INFO",
            google_maps_api_key=str(api_key) if api_key else None,
        )


def _load_yaml(path: Path) -> Any:
    """Load a mapping from a YAML (or JSON) file; empty files yield {}."""
    try:
        loaded = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ConfigError(f"Unable to parse config file {path}: {exc}") from exc
    return {} if loaded is None else loaded


def load_config(path: str | None = None, env_manager: ConfigManager | None = None) -> Config:
    """Load configuration from a YAML file and environment, returning a Config.

    Args:
        path: Optional path to the config file. Defaults to ./eventmap.yaml.
        env_manager: Optional ConfigManager used for .env/environment overrides.

    Returns:
        Config dataclass instance with values from file, then environment.

    Behavior:
    - If file is missing: defaults plus environment overrides.
    - If file exists but top-level is not a mapping: raises ConfigError.
    """
    p = Path(path) if path else Path.cwd() / "eventmap.yaml"
    logger.debug("Attempting to load config from %s", p)

    raw: dict[str, Any] = {}
    if p.exists():
        loaded = _load_yaml(p)
        if not isinstance(loaded, dict):
            logger.warning("Config file %s parsed but top-level is not a mapping: %r", p, loaded)
            raise ConfigError("Config file must contain a mapping at top level")
        raw.update(loaded)
        logger.info("Loaded configuration from %s", p)
    else:
        logger.info("Config file %s not found; using defaults", p)

    manager = env_manager or ConfigManager()
    raw.update(manager.load_full_config())

    cfg = Config.from_dict(raw)
    logger.debug("Configuration values: %s", cfg)
    return cfg
