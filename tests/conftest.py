"""Pytest configuration for LINEA test suite."""

import logging
import os
import tempfile
from datetime import datetime, timezone

import pytest

# Ensure test environment variables are set before any imports
_workdir = tempfile.mkdtemp(prefix="linea-tests-")
os.environ.setdefault("LINEA_LOG_LEVEL", "warning")
os.environ.setdefault("LINEA_EVENTS_PATH", os.path.join(_workdir, "events.jsonl"))
os.environ.setdefault("LINEA_STATE_PATH", os.path.join(_workdir, "state.json"))
os.environ.setdefault("LINEA_COMPONENTS_PATH", os.path.join(_workdir, "components.json"))

from linea.models.events import EventStatus, RawEvent  # noqa: E402
from linea.pipeline.classifier import Classification  # noqa: E402
from linea.pipeline.normalizer import EventNormalizer  # noqa: E402
from linea.pipeline.uris import URIBuilder  # noqa: E402
from linea.sources.directory import StaticComponentDirectory  # noqa: E402

INSTANCE_URL = "https://localhost:443/nifi"
FIXED_NOW = datetime(2026, 1, 15, 12, 30, 0, tzinfo=timezone.utc)

# 2026-01-15T12:00:00.123Z
EVENT_TIME = 1768478400123

COMPONENTS = {
    "proc-http": {"name": "Call partner API", "group_id": "pg-partner"},
    "proc-ftp": {"name": "Upload report", "group_id": "pg-partner"},
    "proc-script": {"name": "Run converter", "group_id": "pg-convert"},
    "proc-orphan": {"name": "Detached processor"},
    "pg-partner": {"name": "Partner ingest"},
    "pg-convert": {"name": "Conversion"},
}


@pytest.fixture(autouse=True)
def _propagate_linea_logs():
    """configure_logging() stops propagation; caplog needs it back.

    Its stdout handler is also detached per test so that importing
    linea.main in one test does not leak a JSON handler (which calls
    json.dumps) into tests that patch json.dumps.
    """
    logger = logging.getLogger("linea")
    previous = logger.propagate
    previous_handlers = logger.handlers[:]
    logger.handlers = []
    logger.propagate = True
    yield
    logger.handlers = previous_handlers
    logger.propagate = previous


@pytest.fixture
def directory():
    return StaticComponentDirectory(COMPONENTS)


@pytest.fixture
def uri_builder():
    return URIBuilder(INSTANCE_URL)


@pytest.fixture
def normalizer(directory, uri_builder):
    return EventNormalizer(directory, uri_builder, clock=lambda: FIXED_NOW)


@pytest.fixture
def make_raw():
    """Factory for RawEvents with realistic defaults."""

    def _make(**overrides) -> RawEvent:
        defaults = dict(
            event_id=123456,
            event_type="ATTRIBUTES_MODIFIED",
            event_time=EVENT_TIME,
            flow_file_entry_date=EVENT_TIME - 5000,
            lineage_start_date=EVENT_TIME - 10000,
            event_duration=1500,
            component_id="proc-http",
            component_type="InvokeHTTP",
            file_size=2048,
            flow_file_uuid="ff-0001",
        )
        defaults.update(overrides)
        return RawEvent(**defaults)

    return _make


@pytest.fixture
def make_event(normalizer, uri_builder, make_raw):
    """Factory for NormalizedEvents with an explicit classification."""

    def _make(status=EventStatus.INFO, details=None, **raw_overrides):
        raw = make_raw(details=details, **raw_overrides)
        fields = normalizer.derive_fields(raw)
        return normalizer.assemble(
            fields,
            Classification(status, fields.get("details")),
            uri_builder.content_uris(raw.event_id),
        )

    return _make
