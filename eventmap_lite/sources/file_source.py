"""Event source reading events from a local JSON file (``file:<path>``).

The file holds either a list of event objects or an object with an
``events`` list and optional ``name`` and ``url`` keys.
"""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from ..domain.interval_matcher import event_in_date_range
from ..exceptions import SourceFetchError, SourceNotFoundError
from ..models import DateRange, Event, SourceDescriptor, SourceResponse
from .registry import BaseEventSourceHandler, EventSourceParams, EventSourceType

logger = logging.getLogger(__name__)

FILE_SOURCE_PREFIX = "file"


class JsonFileEventSource(BaseEventSourceHandler):
    """Serve events from JSON files, relative paths resolved against ``base_dir``."""

    source_type = EventSourceType(prefix=FILE_SOURCE_PREFIX, name="JSON File")

    def __init__(self, base_dir: Optional[str | Path] = None) -> None:
        self.base_dir = Path(base_dir) if base_dir else Path.cwd()

    def _resolve_path(self, sub_id: str) -> Path:
        path = Path(sub_id).expanduser()
        return path if path.is_absolute() else self.base_dir / path

    async def fetch_events(self, params: EventSourceParams) -> SourceResponse:
        path = self._resolve_path(params.id)
        if not path.is_file():
            raise SourceNotFoundError(f"Event file not found: {path}", source_id=params.id)

        try:
            raw_text = await asyncio.to_thread(path.read_text, encoding="utf-8")
            payload = json.loads(raw_text)
        except (OSError, ValueError) as e:
            raise SourceFetchError(f"Unable to read event file {path}: {e}", source_id=params.id) from e

        if isinstance(payload, list):
            raw_events: Any = payload
            meta: dict[str, Any] = {}
        elif isinstance(payload, dict):
            raw_events = payload.get("events", [])
            meta = payload
        else:
            raise SourceFetchError(f"Event file {path} must hold a list or object", source_id=params.id)

        if not isinstance(raw_events, list):
            raise SourceFetchError(f"Event file {path} 'events' is not a list", source_id=params.id)

        built = (self._build_event(raw, path) for raw in raw_events)
        events = [ev for ev in built if ev is not None]
        events = self._within_window(events, params)

        logger.info("Loaded %d events from %s", len(events), path)
        return SourceResponse(
            events=events,
            source=SourceDescriptor(
                id=f"{FILE_SOURCE_PREFIX}:{params.id}",
                name=str(meta.get("name") or path.stem),
                total_count=len(events),
                url=meta.get("url"),
                prefix=FILE_SOURCE_PREFIX,
            ),
        )

    def _build_event(self, raw: Any, path: Path) -> Optional[Event]:
        if not isinstance(raw, dict):
            logger.debug("Skipping non-object event entry in %s", path)
            return None
        data = dict(raw)
        if not data.get("description_urls"):
            data["description_urls"] = self.extract_urls(data.get("description"))
        try:
            return Event.model_validate(data)
        except ValidationError as e:
            logger.warning("Skipping invalid event %r in %s: %s", raw.get("id"), path, e)
            return None

    @staticmethod
    def _within_window(events: list[Event], params: EventSourceParams) -> list[Event]:
        if not params.time_min or not params.time_max:
            return events
        try:
            window = DateRange(start_iso=params.time_min, end_iso=params.time_max)
        except ValidationError as e:
            raise SourceFetchError(f"Invalid time window: {e}", status_code=400) from e
        return [ev for ev in events if event_in_date_range(ev, window)]
