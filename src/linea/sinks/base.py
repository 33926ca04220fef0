"""Abstract sink interface.

A sink receives every normalized event of a batch and decides on its
own which ones to forward. Sinks never see each other's decisions.

Failures are isolated per record: a sink logs a record it cannot
forward and carries on with the rest of the batch. deliver() only
raises for failures that make the whole sink unusable.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone

from linea.models.events import NormalizedEvent

logger = logging.getLogger("linea.sinks")


@dataclass(frozen=True)
class RunContext:
    """Identifies the run and batch a delivery belongs to."""
    run_id: str
    source_id: str
    started_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc)
    )


@dataclass
class DeliveryReport:
    """What a sink did with one batch.

    skipped: records missing identity fields
    dropped: records the sink is not interested in
    """
    sink: str
    received: int = 0
    delivered: int = 0
    skipped: int = 0
    dropped: int = 0
    failed: int = 0


class BaseSink(ABC):

    @property
    @abstractmethod
    def name(self) -> str:
        ...

    @abstractmethod
    async def deliver(
        self, events: list[NormalizedEvent], context: RunContext
    ) -> DeliveryReport:
        ...

    async def close(self) -> None:
        """Release resources owned by the sink."""
        return None


def missing_identity(event: NormalizedEvent, required: tuple[str, ...]) -> list[str]:
    """Names of required identity fields the event does not carry."""
    return [name for name in required if getattr(event, name) is None]
