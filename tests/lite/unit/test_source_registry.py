"""Unit tests for the source registry and the JSON file source."""

import json
import logging

import pytest

from eventmap_lite.exceptions import SourceFetchError, SourceNotFoundError, UnsupportedSourceError
from eventmap_lite.models import SourceDescriptor, SourceResponse
from eventmap_lite.sources.file_source import JsonFileEventSource
from eventmap_lite.sources.registry import (
    BaseEventSourceHandler,
    EventSourceParams,
    EventSourceType,
    SourceRegistry,
)

pytestmark = pytest.mark.unit


class RecordingSource(BaseEventSourceHandler):
    def __init__(self, prefix, name="Recording"):
        self.source_type = EventSourceType(prefix=prefix, name=name)
        self.calls = []

    async def fetch_events(self, params):
        self.calls.append(params)
        return SourceResponse(events=[], source=SourceDescriptor(id=params.id, name=self.source_type.name))


class TestSourceRegistry:
    def test_get_handler_strips_prefix(self):
        registry = SourceRegistry()
        gc = RecordingSource("gc")
        registry.register(gc)

        handler, sub_id = registry.get_handler("gc:team@example.com")

        assert handler is gc
        assert sub_id == "team@example.com"

    def test_unknown_prefix_returns_none(self):
        registry = SourceRegistry()
        registry.register(RecordingSource("gc"))

        assert registry.get_handler("fb:123") == (None, "")
        assert registry.get_handler("gcx:123") == (None, "")

    def test_duplicate_prefix_is_ignored(self, caplog):
        registry = SourceRegistry()
        first = RecordingSource("gc", "First")
        second = RecordingSource("gc", "Second")

        assert registry.register(first) is True
        with caplog.at_level(logging.ERROR):
            assert registry.register(second) is False

        assert registry.handlers == [first]
        assert "already registered" in caplog.text

    async def test_fetch_passes_params(self):
        registry = SourceRegistry()
        source = RecordingSource("gc")
        registry.register(source)

        await registry.fetch("gc:abc", "2024-06-01T00:00:00Z", "2024-06-30T00:00:00Z")

        assert source.calls == [
            EventSourceParams(id="abc", time_min="2024-06-01T00:00:00Z", time_max="2024-06-30T00:00:00Z")
        ]

    async def test_fetch_unsupported_raises_400(self):
        with pytest.raises(UnsupportedSourceError) as exc_info:
            await SourceRegistry().fetch("nope:1")

        assert exc_info.value.status_code == 400
        assert exc_info.value.source_id == "nope:1"

    def test_extract_urls(self):
        text = "Tickets at https://example.com/t?id=1 and http://foo.org more"

        assert BaseEventSourceHandler.extract_urls(text) == [
            "https://example.com/t?id=1",
            "http://foo.org",
        ]
        assert BaseEventSourceHandler.extract_urls(None) == []


class TestJsonFileEventSource:
    def _write(self, path, payload):
        path.write_text(json.dumps(payload), encoding="utf-8")

    async def test_reads_object_payload(self, tmp_path):
        self._write(
            tmp_path / "events.json",
            {
                "name": "Local Events",
                "url": "https://example.com/cal",
                "events": [
                    {
                        "id": "1",
                        "name": "Picnic",
                        "description": "Details: https://example.com/picnic",
                        "start": "2024-06-01T12:00:00",
                        "end": "2024-06-01T14:00:00",
                        "location": "Dolores Park",
                        "tz": "America/Los_Angeles",
                    },
                    {"id": "broken"},
                    "not an event",
                ],
            },
        )
        source = JsonFileEventSource(base_dir=tmp_path)

        response = await source.fetch_events(EventSourceParams(id="events.json"))

        assert [e.id for e in response.events] == ["1"]
        assert response.events[0].description_urls == ["https://example.com/picnic"]
        assert response.source.id == "file:events.json"
        assert response.source.name == "Local Events"
        assert response.source.prefix == "file"
        assert response.source.total_count == 1

    async def test_reads_list_payload_and_filters_window(self, tmp_path):
        self._write(
            tmp_path / "list.json",
            [
                {"id": "june", "start": "2024-06-01T12:00:00Z", "end": "2024-06-01T13:00:00Z"},
                {"id": "july", "start": "2024-07-01T12:00:00Z", "end": "2024-07-01T13:00:00Z"},
            ],
        )
        source = JsonFileEventSource(base_dir=tmp_path)

        response = await source.fetch_events(
            EventSourceParams(id="list.json", time_min="2024-06-01T00:00:00Z", time_max="2024-06-30T00:00:00Z")
        )

        assert [e.id for e in response.events] == ["june"]
        assert response.source.name == "list"

    async def test_missing_file_is_404(self, tmp_path):
        source = JsonFileEventSource(base_dir=tmp_path)

        with pytest.raises(SourceNotFoundError) as exc_info:
            await source.fetch_events(EventSourceParams(id="missing.json"))

        assert exc_info.value.status_code == 404

    async def test_invalid_json_is_500(self, tmp_path):
        (tmp_path / "bad.json").write_text("{", encoding="utf-8")
        source = JsonFileEventSource(base_dir=tmp_path)

        with pytest.raises(SourceFetchError) as exc_info:
            await source.fetch_events(EventSourceParams(id="bad.json"))

        assert exc_info.value.status_code == 500
