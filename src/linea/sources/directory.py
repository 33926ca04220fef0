"""Static component directory loaded from a JSON file.

The file maps each component id to its display name and the id of the
process group that owns it:

    {"4b1c...": {"name": "Call partner API", "group_id": "9e0a..."},
     "9e0a...": {"name": "Partner ingest"}}
"""

from __future__ import annotations

import json
import logging
import pathlib
from typing import Any, Optional

from linea.sources.base import ComponentDirectory

logger = logging.getLogger("linea.sources.directory")


class StaticComponentDirectory(ComponentDirectory):

    def __init__(self, components: dict[str, dict[str, Any]]):
        self._components = components

    @classmethod
    def from_file(cls, path: str | pathlib.Path) -> StaticComponentDirectory:
        path = pathlib.Path(path)
        if not path.exists():
            logger.warning(
                "Component directory %s not found, names will not resolve", path
            )
            return cls({})
        with path.open("r", encoding="utf-8") as fh:
            components = json.load(fh)
        logger.info("Loaded %d components from %s", len(components), path)
        return cls(components)

    def component_name(self, component_id: Optional[str]) -> Optional[str]:
        if component_id is None:
            return None
        return self._components.get(component_id, {}).get("name")

    def process_group_id(
        self, component_id: Optional[str], component_type: Optional[str]
    ) -> Optional[str]:
        if component_id is None:
            return None
        return self._components.get(component_id, {}).get("group_id")
