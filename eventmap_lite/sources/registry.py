"""Event source handler registry and fetch contract.

Source ids take the form ``"<prefix>:<sub id>"``, e.g. ``"gc:team@example.com"``
or ``"file:events.json"``. The prefix selects a registered handler, which
receives the remainder as ``EventSourceParams.id``.

Handlers signal HTTP-style failures by raising SourceFetchError (or a
subclass) with a status code.
"""

from __future__ import annotations

import abc
import logging
import re
from dataclasses import dataclass
from typing import Optional

from ..exceptions import UnsupportedSourceError
from ..models import SourceResponse

logger = logging.getLogger(__name__)

_URL_RE = re.compile(r"https?://[^\s]+")


@dataclass(frozen=True)
class EventSourceType:
    """Identity of a handler: the id prefix it serves and a display name."""

    prefix: str
    name: str


@dataclass(frozen=True)
class EventSourceParams:
    """Arguments passed to a handler's fetch_events."""

    id: str
    time_min: Optional[str] = None
    time_max: Optional[str] = None


class BaseEventSourceHandler(abc.ABC):
    """Base class for event source adapters."""

    source_type: EventSourceType

    @abc.abstractmethod
    async def fetch_events(self, params: EventSourceParams) -> SourceResponse:
        """Fetch events for ``params.id`` within the optional time window."""

    @staticmethod
    def extract_urls(text: Optional[str]) -> list[str]:
        """Return every http(s) URL found in free text."""
        if not text:
            return []
        return _URL_RE.findall(text)


class SourceRegistry:
    """Ordered collection of handlers keyed by unique prefix."""

    def __init__(self) -> None:
        self._handlers: list[BaseEventSourceHandler] = []

    @property
    def handlers(self) -> list[BaseEventSourceHandler]:
        return list(self._handlers)

    def register(self, handler: BaseEventSourceHandler) -> bool:
        """Add a handler. A second handler for an existing prefix is logged and ignored."""
        prefix = handler.source_type.prefix
        for existing in self._handlers:
            if existing.source_type.prefix == prefix:
                logger.error(
                    'Prefix %s already registered for "%s", not registering "%s"',
                    prefix,
                    existing.source_type.name,
                    handler.source_type.name,
                )
                return False
        self._handlers.append(handler)
        logger.debug('Registered event source handler %s: "%s"', prefix, handler.source_type.name)
        return True

    def get_handler(self, source_id: str) -> tuple[Optional[BaseEventSourceHandler], str]:
        """Find the handler for ``source_id``; returns (None, "") when none matches."""
        for handler in self._handlers:
            marker = f"{handler.source_type.prefix}:"
            if source_id.startswith(marker):
                return handler, source_id[len(marker) :]
        return None, ""

    async def fetch(
        self,
        source_id: str,
        time_min: Optional[str] = None,
        time_max: Optional[str] = None,
    ) -> SourceResponse:
        """Dispatch a fetch to the matching handler.

        Raises:
            UnsupportedSourceError: if no handler serves the id's prefix
        """
        handler, sub_id = self.get_handler(source_id)
        if handler is None:
            raise UnsupportedSourceError(
                f"No handler available for event source: {source_id}", source_id=source_id
            )
        logger.info('Fetching events from "%s" with id: %s', handler.source_type.name, sub_id)
        return await handler.fetch_events(
            EventSourceParams(id=sub_id, time_min=time_min, time_max=time_max)
        )


_default_registry = SourceRegistry()


def get_default_registry() -> SourceRegistry:
    return _default_registry


def register_event_source(handler: BaseEventSourceHandler) -> bool:
    """Register a handler with the process-wide registry."""
    return _default_registry.register(handler)


def get_event_source_handler(source_id: str) -> tuple[Optional[BaseEventSourceHandler], str]:
    return _default_registry.get_handler(source_id)
