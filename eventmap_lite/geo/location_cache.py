"""Location cache collaborators keyed by the trimmed location string.

Two implementations share the same async interface:

- ``InMemoryLocationCache`` for tests and one-shot CLI runs
- ``JsonFileLocationCache`` persisting a JSON object (key -> ResolvedLocation)
  with atomic temp-file replace
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Optional, Protocol, runtime_checkable

from pydantic import ValidationError

from ..models import LocationStatus, ResolvedLocation

logger = logging.getLogger(__name__)


@runtime_checkable
class LocationCache(Protocol):
    """Interface expected by LocationResolver."""

    async def get_cached_location(self, key: str) -> Optional[ResolvedLocation]: ...

    async def cache_location(self, key: str, value: ResolvedLocation) -> None: ...


class InMemoryLocationCache:
    """Process-local location cache; last write wins."""

    def __init__(self) -> None:
        self._entries: dict[str, ResolvedLocation] = {}
        self._lock = asyncio.Lock()

    async def get_cached_location(self, key: str) -> Optional[ResolvedLocation]:
        async with self._lock:
            return self._entries.get(key)

    async def cache_location(self, key: str, value: ResolvedLocation) -> None:
        async with self._lock:
            self._entries[key] = value

    async def evict(self, key: str) -> bool:
        """Remove one entry. Returns True when it existed."""
        async with self._lock:
            return self._entries.pop(key, None) is not None

    async def evict_unresolved(self) -> int:
        """Drop every cached unresolved entry so they are retried on next lookup."""
        async with self._lock:
            stale = [k for k, v in self._entries.items() if v.status == LocationStatus.UNRESOLVED]
            for key in stale:
                del self._entries[key]
        if stale:
            logger.info("Evicted %d unresolved location(s) from memory cache", len(stale))
        return len(stale)

    def __len__(self) -> int:
        return len(self._entries)


class JsonFileLocationCache:
    """Location cache persisted to a JSON file.

    The whole mapping is loaded on construction and rewritten on each change,
    off the event loop.
    Malformed entries are skipped on load. Write failures are logged and the
    in-memory value is kept.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._lock = threading.Lock()
        self._write_lock = asyncio.Lock()
        self._entries: dict[str, ResolvedLocation] = {}

        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
        except OSError:
            logger.debug("Could not ensure directory for location cache: %s", self._path.parent)

        self.load()

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> None:
        """(Re)load entries from disk; a missing or unreadable file starts empty."""
        with self._lock:
            if not self._path.exists():
                logger.debug("Location cache file not found; starting empty: %s", self._path)
                self._entries = {}
                return

            try:
                with self._path.open("r", encoding="utf-8") as fh:
                    data = json.load(fh)
            except (OSError, ValueError) as exc:
                logger.warning("Failed to read location cache %s: %s", self._path, exc)
                self._entries = {}
                return

            if not isinstance(data, dict):
                logger.warning("Location cache %s root is not an object; ignoring", self._path)
                self._entries = {}
                return

            entries: dict[str, ResolvedLocation] = {}
            for key, raw in data.items():
                if not isinstance(key, str) or not isinstance(raw, dict):
                    continue
                try:
                    entries[key] = ResolvedLocation.model_validate(raw)
                except ValidationError:
                    logger.debug("Skipping malformed location cache entry %r", key)

            self._entries = entries
            logger.debug("Loaded location cache %s (%d entries)", self._path, len(entries))

    def _snapshot(self) -> dict[str, dict]:
        with self._lock:
            return {k: v.model_dump(mode="json") for k, v in self._entries.items()}

    def _write_snapshot(self, data: dict[str, dict]) -> None:
        """Write ``data`` to a temp file in the same directory, then replace."""
        tmp_path: Optional[Path] = None
        try:
            with tempfile.NamedTemporaryFile(
                "w", dir=self._path.parent, delete=False, encoding="utf-8", suffix=".tmp"
            ) as tf:
                tmp_path = Path(tf.name)
                json.dump(data, tf, ensure_ascii=False)
                tf.flush()
                with contextlib.suppress(OSError):
                    os.fsync(tf.fileno())
            tmp_path.replace(self._path)
        except OSError as exc:
            logger.warning("Failed to persist location cache to %s: %s", self._path, exc)
            if tmp_path is not None:
                with contextlib.suppress(OSError):
                    tmp_path.unlink()

    async def _persist(self) -> None:
        """Write the current entries from a worker thread.

        Writes are serialized and each one snapshots the entries after taking
        its turn, so the file always ends with the newest state.
        """
        async with self._write_lock:
            await asyncio.to_thread(self._write_snapshot, self._snapshot())

    async def get_cached_location(self, key: str) -> Optional[ResolvedLocation]:
        with self._lock:
            return self._entries.get(key)

    async def cache_location(self, key: str, value: ResolvedLocation) -> None:
        with self._lock:
            self._entries[key] = value
        await self._persist()

    async def evict(self, key: str) -> bool:
        """Remove one entry and persist. Returns True when it existed."""
        with self._lock:
            existed = self._entries.pop(key, None) is not None
        if existed:
            await self._persist()
        return existed

    async def evict_unresolved(self) -> int:
        """Drop every cached unresolved entry and persist once."""
        with self._lock:
            stale = [k for k, v in self._entries.items() if v.status == LocationStatus.UNRESOLVED]
            for key in stale:
                del self._entries[key]
        if stale:
            await self._persist()
            logger.info("Evicted %d unresolved location(s) from %s", len(stale), self._path)
        return len(stale)

    def __len__(self) -> int:
        return len(self._entries)
