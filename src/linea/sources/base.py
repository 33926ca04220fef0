"""Abstract collaborator interfaces.

The pipeline never talks to the data-flow engine directly. It pulls
events through an EventSource and resolves component names through a
ComponentDirectory. Both are owned by the host and injected; the
pipeline only calls the methods defined here.

The source owns its read position. The pipeline acknowledges a batch
once every sink has seen it, and only then may the source advance and
persist that position. An unacknowledged batch is delivered again on
the next run.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from linea.models.events import EventBatch

logger = logging.getLogger("linea.sources")


class SourceState(str, Enum):
    """Event source lifecycle states."""
    CLOSED = "closed"
    OPEN = "open"
    FAILED = "failed"


@dataclass
class SourceHealth:
    """Health snapshot for an event source."""
    state: SourceState = SourceState.CLOSED
    source_id: str = ""
    source_type: str = ""
    read_position: Optional[int] = None
    events_delivered: int = 0
    errors: int = 0
    checked_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc)
    )


class EventSource(ABC):
    """Abstract base for lineage event sources.

    The contract:
    - open(): prepare the source, restoring the persisted read position
    - fetch(max_events): return the next batch after the read position
    - acknowledge(batch): advance and persist the read position
    - close(): release resources
    """

    def __init__(self, source_id: str, config: dict[str, Any]):
        self.source_id = source_id
        self.config = config
        self._state = SourceState.CLOSED
        self._events_delivered = 0
        self._errors = 0

    @property
    @abstractmethod
    def source_type(self) -> str:
        """Return the source type identifier (e.g. 'file')."""
        ...

    @property
    @abstractmethod
    def read_position(self) -> Optional[int]:
        """Id of the last acknowledged event, None before the first one."""
        ...

    @abstractmethod
    async def open(self) -> SourceState:
        """Prepare the source for fetching. Must not raise."""
        ...

    @abstractmethod
    async def fetch(self, max_events: int) -> EventBatch:
        """Return up to max_events events after the read position.

        An empty batch means the source is drained for now. Fetching
        twice without acknowledging returns the same events.
        """
        ...

    @abstractmethod
    async def acknowledge(self, batch: EventBatch) -> None:
        """Mark every event in the batch as consumed."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release all resources."""
        ...

    def health(self) -> SourceHealth:
        return SourceHealth(
            state=self._state,
            source_id=self.source_id,
            source_type=self.source_type,
            read_position=self.read_position,
            events_delivered=self._events_delivered,
            errors=self._errors,
        )

    def _record_events(self, count: int) -> None:
        self._events_delivered += count

    def _record_error(self, msg: str) -> None:
        """Track errors. Call from subclass on failures."""
        self._errors += 1
        logger.warning(
            "Source %s error [%s]: %s",
            self.source_type, self.source_id, msg,
        )


class ComponentDirectory(ABC):
    """Resolves component identifiers to display names and owning groups.

    Process groups are components too: the name of a group is looked up
    with component_name(group_id).
    """

    @abstractmethod
    def component_name(self, component_id: Optional[str]) -> Optional[str]:
        ...

    @abstractmethod
    def process_group_id(
        self, component_id: Optional[str], component_type: Optional[str]
    ) -> Optional[str]:
        ...
