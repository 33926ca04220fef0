"""Reporting session.

Holds the long-lived collaborators a pipeline run needs: the event
source and the search index clients. The session is created by the
host, handed to the pipeline, and closed on shutdown. Collaborators are
built lazily on first use and rebuilt if a previous attempt failed.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional

from linea.config import Settings
from linea.sinks.index import create_index_client
from linea.sources.base import ComponentDirectory, EventSource, SourceState
from linea.sources.directory import StaticComponentDirectory
from linea.sources.file_source import FileEventSource

logger = logging.getLogger("linea.pipeline.session")


class SourceUnavailableError(RuntimeError):
    """The event source could not be opened."""


class ReportingSession:
    """Lazily built, explicitly closed collaborators for pipeline runs.

    Args:
        source_factory: Builds the (unopened) event source.
        directory: Component directory used by the normalizer.
        index_client_factory: Builds an index client for a URL.
    """

    def __init__(
        self,
        source_factory: Callable[[], EventSource],
        directory: ComponentDirectory,
        index_client_factory: Callable[[str], Any] = create_index_client,
    ):
        self._source_factory = source_factory
        self.directory = directory
        self._index_client_factory = index_client_factory
        self._source: Optional[EventSource] = None
        self._index_clients: dict[str, Any] = {}

    @classmethod
    def from_settings(cls, settings: Settings) -> ReportingSession:
        def source_factory() -> EventSource:
            return FileEventSource("provenance", {
                "path": settings.events_path,
                "state_path": settings.state_path,
                "start_position": settings.start_position,
            })

        return cls(
            source_factory=source_factory,
            directory=StaticComponentDirectory.from_file(settings.components_path),
            index_client_factory=lambda url: create_index_client(
                url, settings.index.request_timeout
            ),
        )

    async def source(self) -> EventSource:
        """The open event source, opening it on first use."""
        if self._source is not None:
            return self._source

        source = self._source_factory()
        state = await source.open()
        if state != SourceState.OPEN:
            raise SourceUnavailableError(
                f"Event source [{source.source_id}] failed to open: {state.value}"
            )
        logger.info("Event source [%s] opened", source.source_id)
        self._source = source
        return source

    @property
    def current_source(self) -> Optional[EventSource]:
        return self._source

    def index_client(self, url: str) -> Any:
        """Index client for url, built once per session."""
        if url not in self._index_clients:
            logger.info("Creating index client for %s", url)
            self._index_clients[url] = self._index_client_factory(url)
        return self._index_clients[url]

    async def close(self) -> None:
        if self._source is not None:
            await self._source.close()
            self._source = None
        for url, client in self._index_clients.items():
            await client.close()
            logger.info("Index client for %s closed", url)
        self._index_clients.clear()
