"""Merge per-source responses into one event list."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from ..models import AggregateResult, Event, SourceResponse

logger = logging.getLogger(__name__)


class SourceAggregator:
    """Concatenate events from several sources, de-duplicating by id.

    With more than one source each event is stamped with its 1-based source
    position in ``source_index``; a single source is passed through unstamped.
    The first source to supply an id wins.
    """

    def aggregate(self, responses: Sequence[SourceResponse]) -> AggregateResult:
        stamp = len(responses) > 1
        seen: set[str] = set()
        events: list[Event] = []
        duplicates: list[str] = []

        for index, response in enumerate(responses, start=1):
            kept = 0
            for event in response.events:
                if event.id in seen:
                    duplicates.append(event.id)
                    continue
                seen.add(event.id)
                events.append(event.model_copy(update={"source_index": index}) if stamp else event)
                kept += 1
            logger.debug(
                "Source %d (%s): kept %d of %d events",
                index,
                response.source.id,
                kept,
                len(response.events),
            )

        if duplicates:
            logger.info(
                "Dropped %d duplicate event id(s) across sources: %s",
                len(duplicates),
                ", ".join(duplicates[:10]),
            )

        return AggregateResult(
            events=events,
            sources=[r.source for r in responses],
            duplicate_ids=duplicates,
        )


def aggregate(responses: Sequence[SourceResponse]) -> AggregateResult:
    """Module-level shortcut for SourceAggregator().aggregate."""
    return SourceAggregator().aggregate(responses)
