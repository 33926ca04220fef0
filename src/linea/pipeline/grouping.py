"""Grouping of similar errors.

Two error events are similar when they share a GroupKey: same
component, same details and same event type. Event ids and timestamps
play no part, so a processor failing the same way on many flow files
forms a single group.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from linea.models.events import GroupKey, NormalizedEvent


@dataclass
class ErrorGroup:
    """Similar errors in arrival order. The first one stands for the group."""
    key: GroupKey
    events: list[NormalizedEvent] = field(default_factory=list)

    @property
    def template(self) -> NormalizedEvent:
        return self.events[0]

    @property
    def size(self) -> int:
        return len(self.events)


def error_events(events: Iterable[NormalizedEvent]) -> list[NormalizedEvent]:
    return [e for e in events if e.is_error]


def group_similar(events: Iterable[NormalizedEvent]) -> list[ErrorGroup]:
    """Partition events by GroupKey, groups ordered by first occurrence."""
    groups: dict[GroupKey, ErrorGroup] = {}
    for event in events:
        key = GroupKey.of(event)
        if key not in groups:
            groups[key] = ErrorGroup(key=key)
        groups[key].events.append(event)
    return list(groups.values())
