"""Field derivation from raw lineage events.

Turns one RawEvent into the flat field set of a NormalizedEvent. The
derivation is deterministic: the same event, directory and instance URL
always give the same fields. The only outside input is the injected
clock stamping ingested_at.

Optional values are only set when the source value is present and
non-empty, so downstream payloads never carry null placeholders.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

from linea.models.events import NormalizedEvent, RawEvent
from linea.pipeline.classifier import Classification
from linea.pipeline.uris import ContentURIs, URIBuilder
from linea.sources.base import ComponentDirectory

logger = logging.getLogger("linea.pipeline.normalizer")

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """Render as yyyy-MM-ddTHH:mm:ss.SSSZ in UTC."""
    value = value.astimezone(timezone.utc)
    return f"{value:%Y-%m-%dT%H:%M:%S}.{value.microsecond // 1000:03d}Z"


def format_millis(millis: int) -> str:
    return format_timestamp(EPOCH + timedelta(milliseconds=millis))


class EventNormalizer:
    """Derives NormalizedEvent fields from raw events.

    Args:
        directory: Resolves component and process group names.
        uri_builder: Builds the component link from the instance URL.
        clock: Returns the current time, used for ingested_at.
    """

    def __init__(
        self,
        directory: ComponentDirectory,
        uri_builder: URIBuilder,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.directory = directory
        self.uri_builder = uri_builder
        self.clock = clock

    def derive_fields(self, raw: RawEvent) -> dict[str, Any]:
        fields: dict[str, Any] = {
            "event_id": raw.event_id,
            "event_time_millis": raw.event_time,
            "event_time_iso_utc": format_millis(raw.event_time),
            "ingested_at": format_timestamp(self.clock()),
            "entry_date": format_millis(raw.flow_file_entry_date),
            "lineage_start_date": format_millis(raw.lineage_start_date),
            "file_size": raw.file_size,
        }

        # Directory lookups
        component_name = self.directory.component_name(raw.component_id)
        group_id = self.directory.process_group_id(raw.component_id, raw.component_type)
        group_name = self.directory.component_name(group_id)
        _put(fields, "component_name", component_name)
        _put(fields, "process_group_id", group_id)
        _put(fields, "process_group_name", group_name)

        if raw.previous_file_size is not None and raw.previous_file_size >= 0:
            fields["previous_file_size"] = raw.previous_file_size

        if raw.event_duration >= 0:
            fields["event_duration_millis"] = raw.event_duration
            fields["event_duration_seconds"] = raw.event_duration // 1000

        _put(fields, "event_type", raw.event_type)

        if raw.component_id:
            fields["component_id"] = raw.component_id
            fields["component_url"] = self.uri_builder.component_url(
                group_id, raw.component_id
            )

        _put(fields, "component_type", raw.component_type)
        _put(fields, "source_system_id", raw.source_system_flow_file_id)
        _put(fields, "flow_file_id", raw.flow_file_uuid)
        _put(fields, "parent_ids", list(raw.parent_uuids))
        _put(fields, "child_ids", list(raw.child_uuids))
        _put(fields, "details", raw.details)
        _put(fields, "relationship", raw.relationship)
        _put(fields, "source_queue_id", raw.source_queue_id)
        _put(fields, "updated_attributes", dict(raw.updated_attributes))
        _put(fields, "previous_attributes", dict(raw.previous_attributes))
        return fields

    @staticmethod
    def assemble(
        fields: dict[str, Any],
        classification: Classification,
        uris: ContentURIs,
    ) -> NormalizedEvent:
        """Build the immutable record once classification and links are known."""
        values = dict(fields)
        values["status"] = classification.status
        values["details"] = classification.details
        values.update(uris.as_fields())
        return NormalizedEvent(**values)


def _put(fields: dict[str, Any], key: str, value: Optional[Any]) -> None:
    if value is None:
        return
    if isinstance(value, (str, list, dict)) and not value:
        return
    fields[key] = value
