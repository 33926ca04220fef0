"""Lineage event models.

A RawEvent is one provenance record exactly as the data-flow engine
reported it. A NormalizedEvent is the flat, classified record derived
from it once per run and handed to the sinks. Both are immutable.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, NamedTuple, Optional

from pydantic import BaseModel, Field


class EventStatus(str, Enum):
    """Outcome of error classification."""
    INFO = "Info"
    ERROR = "Error"


class RawEvent(BaseModel):
    """Immutable provenance record produced upstream.

    Timestamps are epoch milliseconds. An event duration below zero means
    the engine did not measure it.
    """
    event_id: int = Field(
        description="Monotonic event identifier assigned by the engine"
    )
    event_type: Optional[str] = Field(
        default=None,
        description="Provenance event type tag (e.g. ATTRIBUTES_MODIFIED, DROP)"
    )
    event_time: int = Field(
        description="When the event occurred, epoch millis"
    )
    flow_file_entry_date: int = Field(
        default=0,
        description="When the flow file entered the flow, epoch millis"
    )
    lineage_start_date: int = Field(
        default=0,
        description="When the flow file lineage began, epoch millis"
    )
    event_duration: int = Field(
        default=-1,
        description="Event duration in millis, negative when unknown"
    )
    component_id: Optional[str] = Field(
        default=None,
        description="Identifier of the component that emitted the event"
    )
    component_type: Optional[str] = Field(
        default=None,
        description="Component type name (e.g. InvokeHTTP)"
    )
    file_size: int = Field(
        default=0,
        description="Content size after the event, in bytes"
    )
    previous_file_size: Optional[int] = Field(
        default=None,
        description="Content size before the event, in bytes"
    )
    relationship: Optional[str] = Field(
        default=None,
        description="Relationship the flow file was routed to"
    )
    details: Optional[str] = Field(
        default=None,
        description="Free-text details reported by the component"
    )
    flow_file_uuid: Optional[str] = Field(
        default=None,
        description="Identifier of the flow file the event is about"
    )
    source_system_flow_file_id: Optional[str] = Field(
        default=None,
        description="Identifier of the flow file in the originating system"
    )
    source_queue_id: Optional[str] = Field(
        default=None,
        description="Queue the flow file was pulled from"
    )
    parent_uuids: list[str] = Field(
        default_factory=list,
        description="Parent flow file identifiers, in engine order"
    )
    child_uuids: list[str] = Field(
        default_factory=list,
        description="Child flow file identifiers, in engine order"
    )
    previous_attributes: dict[str, str] = Field(
        default_factory=dict,
        description="Flow file attributes before the event"
    )
    updated_attributes: dict[str, str] = Field(
        default_factory=dict,
        description="Flow file attributes changed by the event"
    )

    class Config:
        frozen = True

    def attribute(self, name: str) -> Optional[str]:
        """Current value of a flow file attribute.

        Updated values win over previous ones, as the engine reports them.
        """
        if name in self.updated_attributes:
            return self.updated_attributes[name]
        return self.previous_attributes.get(name)


class EventBatch(BaseModel):
    """An ordered batch of raw events pulled from a source in one call."""
    source_id: str = Field(
        description="Source that produced these events"
    )
    events: list[RawEvent] = Field(
        default_factory=list,
        description="Events in ascending event id order"
    )
    fetched_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When this batch was pulled from the source"
    )

    class Config:
        frozen = True

    @property
    def size(self) -> int:
        return len(self.events)

    @property
    def last_event_id(self) -> Optional[int]:
        if not self.events:
            return None
        return self.events[-1].event_id


class NormalizedEvent(BaseModel):
    """The flat, classified record derived from one RawEvent.

    Optional fields are None when the source value was absent or empty
    and are left out of as_record().
    """
    event_id: int
    event_time_millis: int
    event_time_iso_utc: str
    ingested_at: str = Field(
        description="When LINEA derived this record, same format as event_time_iso_utc"
    )
    entry_date: str
    lineage_start_date: str
    file_size: int
    status: EventStatus

    event_type: Optional[str] = None
    component_id: Optional[str] = None
    component_type: Optional[str] = None
    component_name: Optional[str] = None
    component_url: Optional[str] = None
    process_group_id: Optional[str] = None
    process_group_name: Optional[str] = None

    details: Optional[str] = None
    relationship: Optional[str] = None
    source_system_id: Optional[str] = None
    flow_file_id: Optional[str] = None
    source_queue_id: Optional[str] = None
    previous_file_size: Optional[int] = None
    event_duration_millis: Optional[int] = None
    event_duration_seconds: Optional[int] = None
    parent_ids: Optional[list[str]] = None
    child_ids: Optional[list[str]] = None
    previous_attributes: Optional[dict[str, str]] = None
    updated_attributes: Optional[dict[str, str]] = None

    download_input_content_uri: str
    download_output_content_uri: str
    view_input_content_uri: str
    view_output_content_uri: str

    class Config:
        frozen = True

    @property
    def is_error(self) -> bool:
        return self.status == EventStatus.ERROR

    def as_record(self) -> dict[str, Any]:
        """Flat mapping of the present fields, status as its string value."""
        record = self.model_dump(exclude_none=True)
        record["status"] = self.status.value
        return record


class GroupKey(NamedTuple):
    """Identity of "similar" errors: same component, details and event type."""
    component_id: str
    details: str
    event_type: str

    @classmethod
    def of(cls, event: NormalizedEvent) -> GroupKey:
        # Missing values compare as empty strings.
        return cls(
            component_id=event.component_id or "",
            details=event.details or "",
            event_type=event.event_type or "",
        )
