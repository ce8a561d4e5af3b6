"""Command-line entry for eventmap_lite.

Fetches one or more event sources, resolves their locations, applies the
requested filters and prints a JSON summary of the resulting view.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
from typing import Any, NoReturn, Optional

from . import _init_logging

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FETCH_FAILED = 1
EXIT_BAD_INPUT = 2


def _create_parser() -> argparse.ArgumentParser:
    """Create argument parser for eventmap_lite CLI.

    Returns:
        Configured argument parser
    """
    parser = argparse.ArgumentParser(
        prog="eventmap_lite",
        description="EventMap Lite - aggregate, geocode and filter events from several sources",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m eventmap_lite file:events.json
  python -m eventmap_lite file:a.json file:b.json --search concert
  python -m eventmap_lite file:events.json --bounds 38.0,37.5,-122.0,-122.6 --unknown-only
        """,
    )
    parser.add_argument(
        "source_ids",
        nargs="*",
        metavar="SOURCE_ID",
        help="Prefixed source ids (default: 'sources' from config or EVENTMAP_SOURCES)",
    )
    parser.add_argument("--time-min", help="ISO-8601 start of the fetch window and date filter")
    parser.add_argument("--time-max", help="ISO-8601 end of the fetch window and date filter")
    parser.add_argument("--search", help="Case-insensitive search text")
    parser.add_argument(
        "--bounds",
        metavar="N,S,E,W",
        help="Map viewport as north,south,east,west degrees",
    )
    parser.add_argument(
        "--unknown-only",
        action="store_true",
        help="Only show events whose location could not be resolved",
    )
    parser.add_argument("--config", metavar="PATH", help="YAML config file (default: ./eventmap.yaml)")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument(
        "--list-events",
        action="store_true",
        help="Include the visible events in the output",
    )
    return parser


def parse_bounds(raw: str) -> dict[str, float]:
    """Parse "N,S,E,W" into a bounds mapping.

    Raises:
        ValueError: if there are not exactly four numbers
    """
    parts = [p.strip() for p in raw.split(",")]
    if len(parts) != 4:
        raise ValueError(f"expected N,S,E,W but got {raw!r}")
    north, south, east, west = (float(p) for p in parts)
    return {"north": north, "south": south, "east": east, "west": west}


def _register_builtin_sources() -> None:
    from .sources.file_source import FILE_SOURCE_PREFIX, JsonFileEventSource
    from .sources.registry import get_event_source_handler, register_event_source

    handler, _ = get_event_source_handler(f"{FILE_SOURCE_PREFIX}:probe")
    if handler is None:
        register_event_source(JsonFileEventSource())


def _event_summary(event: Any) -> dict[str, Any]:
    loc = event.resolved_location
    return {
        "id": event.id,
        "name": event.name,
        "start": event.start,
        "end": event.end,
        "location": event.location,
        "source_index": event.source_index,
        "lat": loc.lat if loc is not None else None,
        "lng": loc.lng if loc is not None else None,
    }


async def run_cli(args: argparse.Namespace, config: Any) -> dict[str, Any]:
    """Fetch, resolve and filter, returning the JSON-ready summary."""
    from .core.http_client import close_all_clients
    from .domain.filter_pipeline import FilterEventsManager
    from .domain.markers import generate_map_markers
    from .geo.geocoding import LocationResolver
    from .sources.fetch_orchestrator import FetchOrchestrator

    _register_builtin_sources()

    source_ids = list(args.source_ids or config.sources)
    resolver = LocationResolver.from_config(config)
    orchestrator = FetchOrchestrator.from_config(config, resolver)

    try:
        result = await orchestrator.fetch_all_sources(source_ids, args.time_min, args.time_max)
    finally:
        await close_all_clients()

    manager = FilterEventsManager(result.events)
    if args.time_min and args.time_max:
        manager.set_date_range({"start_iso": args.time_min, "end_iso": args.time_max})
    manager.set_search_query(args.search)
    if args.bounds:
        manager.set_map_bounds(parse_bounds(args.bounds))
    manager.set_unknown_locations_only(args.unknown_only)

    view = manager.get_view()
    output: dict[str, Any] = {
        "sources": [s.model_dump() for s in result.sources],
        "duplicate_ids": result.duplicate_ids,
        "markers": len(generate_map_markers(view.visible_events)),
        **view.summary(),
    }
    if args.list_events:
        output["events"] = [_event_summary(e) for e in view.visible_events]
    return output


def main(argv: Optional[list[str]] = None) -> NoReturn:
    """Run the eventmap_lite CLI and exit with a status code."""
    from .config_loader import load_config
    from .exceptions import AggregationError, ConfigError
    from .lite_logging import configure_lite_logging

    parser = _create_parser()
    args = parser.parse_args(argv)

    _init_logging("DEBUG" if args.debug else os.environ.get("EVENTMAP_LOG_LEVEL"))

    try:
        config = load_config(args.config)
    except ConfigError as exc:
        print(json.dumps({"error": str(exc)}), file=sys.stderr)
        sys.exit(EXIT_BAD_INPUT)

    _init_logging("DEBUG" if args.debug else config.log_level)
    configure_lite_logging(debug_mode=args.debug or config.log_level == "DEBUG")

    if args.bounds:
        try:
            parse_bounds(args.bounds)
        except ValueError as exc:
            parser.error(f"--bounds: {exc}")

    try:
        output = asyncio.run(run_cli(args, config))
    except AggregationError as exc:
        logger.error("Fetching events failed: %s", exc)
        print(
            json.dumps({"error": str(exc), "status_code": exc.status_code, "source_id": exc.source_id}),
            file=sys.stderr,
        )
        sys.exit(EXIT_FETCH_FAILED)
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        sys.exit(130)

    print(json.dumps(output, indent=2, default=str))
    sys.exit(EXIT_OK)


if __name__ == "__main__":
    main()
