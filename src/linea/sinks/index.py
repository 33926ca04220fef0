"""Search index sink.

Writes normalized events to an Elasticsearch-compatible index. Every
event from an allowlisted component type is indexed; events from other
components are indexed only when classified as errors.

The event id is the document id, so a redelivered event overwrites its
earlier document instead of duplicating it.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Callable, Iterable

from elasticsearch import ApiError, AsyncElasticsearch, TransportError

from linea.models.events import NormalizedEvent
from linea.sinks.base import BaseSink, DeliveryReport, RunContext, missing_identity

logger = logging.getLogger("linea.sinks.index")

IDENTITY_FIELDS = ("process_group_name", "component_name", "component_type")

DOCUMENT_FIELDS = (
    "event_id",
    "event_time_millis",
    "event_time_iso_utc",
    "event_type",
    "component_type",
    "component_url",
    "component_name",
    "process_group_name",
    "process_group_id",
    "status",
    "download_input_content_uri",
    "download_output_content_uri",
    "view_input_content_uri",
    "view_output_content_uri",
)

ATTRIBUTE_FIELDS = ("updated_attributes", "previous_attributes")


def create_index_client(url: str, request_timeout: int = 30) -> AsyncElasticsearch:
    """Build the async client used to write documents."""
    return AsyncElasticsearch(
        hosts=[url],
        request_timeout=request_timeout,
        retry_on_timeout=True,
        max_retries=3,
    )


def build_document(event: NormalizedEvent) -> dict[str, Any]:
    """Shape an event into the index document.

    Attribute mappings are stored as JSON strings. A mapping that cannot
    be encoded is logged and left out; the rest of the document is kept.
    """
    record = event.as_record()
    document: dict[str, Any] = {name: record.get(name) for name in DOCUMENT_FIELDS}
    for name in ATTRIBUTE_FIELDS:
        try:
            document[name] = json.dumps(getattr(event, name) or {}, sort_keys=True)
        except (TypeError, ValueError):
            logger.error(
                "Error while encoding %s of event %d, ignoring them",
                name, event.event_id,
                exc_info=True,
                extra={"event_id": event.event_id},
            )
    if event.details is not None:
        document["details"] = event.details
    return document


class IndexSink(BaseSink):
    """Forwards allowlisted or erroneous events to the search index.

    Args:
        client_provider: Returns the (cached) async index client.
        index: Target index name.
        component_types_allowlist: Component types indexed regardless of status.
    """

    def __init__(
        self,
        client_provider: Callable[[], Any],
        index: str,
        component_types_allowlist: Iterable[str],
    ):
        self._client_provider = client_provider
        self.index = index
        self.allowlist = frozenset(component_types_allowlist)

    @property
    def name(self) -> str:
        return "index"

    def accepts(self, event: NormalizedEvent) -> bool:
        return event.component_type in self.allowlist or event.is_error

    async def deliver(
        self, events: list[NormalizedEvent], context: RunContext
    ) -> DeliveryReport:
        report = DeliveryReport(sink=self.name, received=len(events))
        client = self._client_provider()

        for event in events:
            missing = missing_identity(event, IDENTITY_FIELDS)
            if missing:
                logger.warning(
                    "Provenance event %d has no %s, ignoring",
                    event.event_id, ", ".join(missing),
                    extra={"event_id": event.event_id},
                )
                report.skipped += 1
                continue

            if not self.accepts(event):
                report.dropped += 1
                continue

            doc_id = str(event.event_id)
            try:
                await client.index(
                    index=self.index, id=doc_id, document=build_document(event)
                )
                report.delivered += 1
            except (ApiError, TransportError, OSError):
                logger.error(
                    "Error while indexing event %s", doc_id,
                    exc_info=True,
                    extra={"event_id": event.event_id},
                )
                report.failed += 1

        logger.info(
            "Run %s: indexed %d of %d events into '%s' (%d skipped, %d failed)",
            context.run_id, report.delivered, report.received, self.index,
            report.skipped, report.failed,
        )
        return report
