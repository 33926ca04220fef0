"""Pipeline orchestration.

One run drains the event source batch by batch:

    fetch -> derive fields -> classify -> content links -> every sink -> acknowledge

Every sink sees the same batch. The batch is acknowledged only after
all sinks returned, so a run that fails half way leaves the source
read position untouched and the next run picks the batch up again.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from functools import partial
from typing import Optional

from linea.config import ConfigurationError, Settings
from linea.models.events import EventBatch, NormalizedEvent, RawEvent
from linea.pipeline.classifier import ErrorClassifier
from linea.pipeline.normalizer import EventNormalizer
from linea.pipeline.session import ReportingSession
from linea.pipeline.uris import URIBuilder
from linea.sinks.alert import AlertSink
from linea.sinks.base import BaseSink, DeliveryReport, RunContext
from linea.sinks.index import IndexSink

logger = logging.getLogger("linea.pipeline")


class RunStatus:
    COMPLETED = "completed"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class RunReport:
    """Outcome of one pipeline run."""
    run_id: str
    started_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    status: str = RunStatus.COMPLETED
    batches: int = 0
    events: int = 0
    rejected: int = 0
    deliveries: list[DeliveryReport] = field(default_factory=list)
    error: Optional[str] = None


class Pipeline:
    """Runs batches from the session's source through every sink.

    Args:
        session: Source and client holder, owned by the caller.
        normalizer: Derives record fields from raw events.
        classifier: Assigns Info/Error status.
        uri_builder: Builds content links.
        sinks: Active sinks, each receiving every batch.
        batch_size: Maximum events fetched per batch.
        cluster_enabled: Whether this instance runs in a cluster.
        node_id: Cluster node identifier, None until assigned.
    """

    def __init__(
        self,
        session: ReportingSession,
        normalizer: EventNormalizer,
        classifier: ErrorClassifier,
        uri_builder: URIBuilder,
        sinks: list[BaseSink],
        batch_size: int = 1000,
        cluster_enabled: bool = False,
        node_id: Optional[str] = None,
    ):
        self.session = session
        self.normalizer = normalizer
        self.classifier = classifier
        self.uri_builder = uri_builder
        self.sinks = list(sinks)
        self.batch_size = batch_size
        self.cluster_enabled = cluster_enabled
        self.node_id = node_id

    async def run(self) -> RunReport:
        report = RunReport(run_id=uuid.uuid4().hex[:12])
        logger.debug("Triggering provenance events reporting, run %s", report.run_id)

        if self.cluster_enabled and not self.node_id:
            logger.debug(
                "Clustering is enabled but the cluster node identifier is not yet "
                "available, waiting for it to be established"
            )
            report.status = RunStatus.SKIPPED
            return report

        try:
            source = await self.session.source()
            while True:
                batch = await source.fetch(self.batch_size)
                if batch.size == 0:
                    break
                await self._process_batch(batch, report)
                await source.acknowledge(batch)
                report.batches += 1
        except Exception as e:
            logger.error(
                "Failed to process provenance events in run %s", report.run_id,
                exc_info=True,
            )
            report.status = RunStatus.FAILED
            report.error = str(e)
            return report

        logger.info(
            "Run %s complete: %d batches, %d events, %d rejected",
            report.run_id, report.batches, report.events, report.rejected,
        )
        return report

    async def _process_batch(self, batch: EventBatch, report: RunReport) -> None:
        context = RunContext(run_id=report.run_id, source_id=batch.source_id)
        events: list[NormalizedEvent] = []
        for raw in batch.events:
            logger.debug("Processing provenance event: %d", raw.event_id)
            try:
                events.append(self.prepare(raw))
            except ConfigurationError as e:
                logger.error(
                    "Cannot derive record for event %d: %s", raw.event_id, e,
                    extra={"event_id": raw.event_id},
                )
                report.rejected += 1
        report.events += len(events)

        for sink in self.sinks:
            report.deliveries.append(await sink.deliver(events, context))

    def prepare(self, raw: RawEvent) -> NormalizedEvent:
        """Derive, classify and link one raw event."""
        fields = self.normalizer.derive_fields(raw)
        classification = self.classifier.classify(fields, raw)
        uris = self.uri_builder.content_uris(raw.event_id)
        return self.normalizer.assemble(fields, classification, uris)


def build_sinks(settings: Settings, session: ReportingSession) -> list[BaseSink]:
    sinks: list[BaseSink] = []
    if settings.index.enabled:
        sinks.append(IndexSink(
            client_provider=partial(session.index_client, settings.index.url),
            index=settings.index.index,
            component_types_allowlist=settings.index.component_types_allowlist,
        ))
    if settings.alert.enabled:
        sinks.append(AlertSink(settings.alert))
    return sinks


def build_pipeline(settings: Settings, session: ReportingSession) -> Pipeline:
    """Wire a pipeline from settings around an existing session."""
    uri_builder = URIBuilder(settings.instance_url)
    return Pipeline(
        session=session,
        normalizer=EventNormalizer(session.directory, uri_builder),
        classifier=ErrorClassifier.build(
            settings.details_as_error,
            check_http_errors=settings.check_http_errors,
            check_script_errors=settings.check_script_errors,
        ),
        uri_builder=uri_builder,
        sinks=build_sinks(settings, session),
        batch_size=settings.batch_size,
        cluster_enabled=settings.cluster_enabled,
        node_id=settings.cluster_node_id,
    )
