"""Tests for the JSON-lines event source and the static directory."""

import json

import pytest

from linea.config import END_OF_STREAM
from linea.sources.base import SourceState
from linea.sources.directory import StaticComponentDirectory
from linea.sources.file_source import FileEventSource


def _write_events(path, ids, extra_lines=()):
    lines = [
        json.dumps({
            "event_id": i,
            "event_type": "DROP",
            "event_time": 1768478400000 + i,
            "component_id": "proc-http",
            "component_type": "InvokeHTTP",
        })
        for i in ids
    ]
    lines.extend(extra_lines)
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")


def _source(tmp_path, **config):
    config.setdefault("path", str(tmp_path / "events.jsonl"))
    config.setdefault("state_path", str(tmp_path / "state.json"))
    return FileEventSource("provenance", config)


class TestFileEventSource:

    @pytest.mark.asyncio
    async def test_reads_from_beginning(self, tmp_path):
        _write_events(tmp_path / "events.jsonl", [3, 1, 2])
        source = _source(tmp_path)
        assert await source.open() == SourceState.OPEN
        batch = await source.fetch(10)
        assert [e.event_id for e in batch.events] == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_batch_size_bound(self, tmp_path):
        _write_events(tmp_path / "events.jsonl", range(1, 6))
        source = _source(tmp_path)
        await source.open()
        assert (await source.fetch(2)).size == 2

    @pytest.mark.asyncio
    async def test_fetch_without_ack_repeats(self, tmp_path):
        _write_events(tmp_path / "events.jsonl", [1, 2])
        source = _source(tmp_path)
        await source.open()
        first = await source.fetch(10)
        second = await source.fetch(10)
        assert [e.event_id for e in first.events] == [e.event_id for e in second.events]

    @pytest.mark.asyncio
    async def test_acknowledge_persists_position(self, tmp_path):
        _write_events(tmp_path / "events.jsonl", [1, 2, 3])
        source = _source(tmp_path)
        await source.open()
        await source.acknowledge(await source.fetch(2))
        assert source.read_position == 2

        state = json.loads((tmp_path / "state.json").read_text())
        assert state["last_event_id"] == 2

        restarted = _source(tmp_path)
        await restarted.open()
        batch = await restarted.fetch(10)
        assert [e.event_id for e in batch.events] == [3]

    @pytest.mark.asyncio
    async def test_end_of_stream_skips_existing(self, tmp_path):
        events_path = tmp_path / "events.jsonl"
        _write_events(events_path, [1, 2])
        source = _source(tmp_path, start_position=END_OF_STREAM)
        await source.open()
        assert (await source.fetch(10)).size == 0

        _write_events(events_path, [1, 2, 3])
        batch = await source.fetch(10)
        assert [e.event_id for e in batch.events] == [3]

    @pytest.mark.asyncio
    async def test_persisted_position_wins_over_start_position(self, tmp_path):
        _write_events(tmp_path / "events.jsonl", [1, 2, 3])
        (tmp_path / "state.json").write_text(json.dumps({"last_event_id": 1}))
        source = _source(tmp_path, start_position=END_OF_STREAM)
        await source.open()
        assert [e.event_id for e in (await source.fetch(10)).events] == [2, 3]

    @pytest.mark.asyncio
    async def test_bad_lines_are_skipped(self, tmp_path):
        _write_events(
            tmp_path / "events.jsonl", [1, 2],
            extra_lines=["{not json", json.dumps({"event_type": "DROP"})],
        )
        source = _source(tmp_path)
        await source.open()
        assert (await source.fetch(10)).size == 2
        assert source.health().errors == 2

    @pytest.mark.asyncio
    async def test_bad_line_counted_once(self, tmp_path):
        events_path = tmp_path / "events.jsonl"
        _write_events(events_path, [1], extra_lines=["{not json"])
        source = _source(tmp_path)
        await source.open()
        await source.fetch(10)
        await source.fetch(10)
        assert source.health().errors == 1

        # File grows; the old bad line is still not reported again
        _write_events(events_path, [1], extra_lines=[
            "{not json",
            json.dumps({"event_id": 2, "event_type": "DROP", "event_time": 1768478400002}),
        ])
        batch = await source.fetch(10)
        assert [e.event_id for e in batch.events] == [1, 2]
        assert source.health().errors == 1

    @pytest.mark.asyncio
    async def test_missing_file_is_empty(self, tmp_path):
        source = _source(tmp_path)
        assert await source.open() == SourceState.OPEN
        assert (await source.fetch(10)).size == 0

    @pytest.mark.asyncio
    async def test_corrupt_state_fails_open(self, tmp_path):
        (tmp_path / "state.json").write_text("{broken")
        source = _source(tmp_path)
        assert await source.open() == SourceState.FAILED

    @pytest.mark.asyncio
    async def test_fetch_before_open(self, tmp_path):
        _write_events(tmp_path / "events.jsonl", [1])
        source = _source(tmp_path)
        assert (await source.fetch(10)).size == 0

    @pytest.mark.asyncio
    async def test_health(self, tmp_path):
        _write_events(tmp_path / "events.jsonl", [1, 2])
        source = _source(tmp_path)
        await source.open()
        await source.acknowledge(await source.fetch(10))
        health = source.health()
        assert health.state == SourceState.OPEN
        assert health.source_type == "file"
        assert health.read_position == 2
        assert health.events_delivered == 2


class TestStaticComponentDirectory:

    def test_lookups(self):
        directory = StaticComponentDirectory({
            "p1": {"name": "Fetch files", "group_id": "g1"},
            "g1": {"name": "Ingest"},
        })
        assert directory.component_name("p1") == "Fetch files"
        assert directory.process_group_id("p1", "FetchSFTP") == "g1"
        assert directory.component_name("g1") == "Ingest"
        assert directory.component_name("missing") is None
        assert directory.component_name(None) is None
        assert directory.process_group_id(None, None) is None

    def test_from_file(self, tmp_path):
        path = tmp_path / "components.json"
        path.write_text(json.dumps({"p1": {"name": "Fetch files"}}))
        assert StaticComponentDirectory.from_file(path).component_name("p1") == "Fetch files"

    def test_from_missing_file(self, tmp_path):
        directory = StaticComponentDirectory.from_file(tmp_path / "absent.json")
        assert directory.component_name("p1") is None
