"""JSON-lines event source.

Reads provenance events exported by the data-flow engine as one JSON
object per line and tracks the last acknowledged event id in a small
JSON state file, so consumption resumes where it stopped across
restarts. Lines that do not parse as a RawEvent are logged and skipped.
"""

from __future__ import annotations

import json
import logging
import os
import pathlib
from typing import Any, Optional

from pydantic import ValidationError

from linea.config import BEGINNING_OF_STREAM, END_OF_STREAM
from linea.models.events import EventBatch, RawEvent
from linea.sources.base import EventSource, SourceState

logger = logging.getLogger("linea.sources.file")


class FileEventSource(EventSource):
    """Event source backed by a JSON-lines file.

    Required config keys:
        path: str            - JSON-lines file of raw events
        state_path: str      - File holding the persisted read position

    Optional config keys:
        start_position: str  - beginning-of-stream (default) or end-of-stream,
                               used only when no read position was persisted
    """

    def __init__(self, source_id: str, config: dict[str, Any]):
        super().__init__(source_id, config)
        self._events_path = pathlib.Path(config["path"])
        self._state_path = pathlib.Path(config["state_path"])
        self._start_position = config.get("start_position", BEGINNING_OF_STREAM)
        self._position: Optional[int] = None
        # Parsed file contents, reused while size and mtime are unchanged
        self._cache_key: Optional[tuple[int, int]] = None
        self._cached: list[RawEvent] = []
        self._reported: set[tuple[int, str]] = set()

    @property
    def source_type(self) -> str:
        return "file"

    @property
    def read_position(self) -> Optional[int]:
        return self._position

    async def open(self) -> SourceState:
        """Restore the read position, or derive it from the start position."""
        try:
            self._position = self._load_position()
            if self._position is None and self._start_position == END_OF_STREAM:
                events = self._read_events()
                self._position = events[-1].event_id if events else -1
                self._save_position()
                logger.info(
                    "Source [%s] starting at end of stream, position %d",
                    self.source_id, self._position,
                )
            self._state = SourceState.OPEN
        except (OSError, ValueError) as e:
            self._state = SourceState.FAILED
            self._record_error(f"Open failed: {e}")
        return self._state

    async def fetch(self, max_events: int) -> EventBatch:
        if self._state != SourceState.OPEN:
            logger.error("Cannot fetch: source [%s] not open", self.source_id)
            return EventBatch(source_id=self.source_id)

        events = self._read_events()
        if self._position is not None:
            events = [e for e in events if e.event_id > self._position]
        events = events[:max_events]
        self._record_events(len(events))
        logger.debug(
            "Fetched %d events from [%s] after position %s",
            len(events), self.source_id, self._position,
        )
        return EventBatch(source_id=self.source_id, events=events)

    async def acknowledge(self, batch: EventBatch) -> None:
        last = batch.last_event_id
        if last is None:
            return
        self._position = last
        self._save_position()
        logger.debug("Source [%s] read position now %d", self.source_id, last)

    async def close(self) -> None:
        self._state = SourceState.CLOSED
        logger.info("Source [%s] closed", self.source_id)

    def _read_events(self) -> list[RawEvent]:
        if not self._events_path.exists():
            return []
        stat = self._events_path.stat()
        key = (stat.st_mtime_ns, stat.st_size)
        if key == self._cache_key:
            return self._cached

        events: list[RawEvent] = []
        with self._events_path.open("r", encoding="utf-8") as fh:
            for lineno, line in enumerate(fh, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    events.append(RawEvent.model_validate(json.loads(line)))
                except (json.JSONDecodeError, ValidationError) as e:
                    # A bad line is reported once, not on every re-read
                    if (lineno, line) in self._reported:
                        continue
                    self._reported.add((lineno, line))
                    self._record_error(
                        f"Skipping line {lineno} of {self._events_path}: {e}"
                    )
        events.sort(key=lambda e: e.event_id)
        self._cache_key = key
        self._cached = events
        return events

    def _load_position(self) -> Optional[int]:
        if not self._state_path.exists():
            return None
        with self._state_path.open("r", encoding="utf-8") as fh:
            state = json.load(fh)
        position = state.get("last_event_id")
        return int(position) if position is not None else None

    def _save_position(self) -> None:
        tmp = self._state_path.with_suffix(self._state_path.suffix + ".tmp")
        with tmp.open("w", encoding="utf-8") as fh:
            json.dump(
                {"source_id": self.source_id, "last_event_id": self._position}, fh
            )
        os.replace(tmp, self._state_path)
