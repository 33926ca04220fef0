"""Link construction for normalized events.

All links derive from the configured instance URL, which points at the
engine UI and ends with UI_PATH_SUFFIX. Content links live next to the
UI, so the suffix is stripped to obtain the prefix:

    https://host:443/nifi
      -> https://host:443/nifi-api/provenance-events/{id}/content/input
      -> https://host:443/nifi-content-viewer/?ref=<download link>

The ref parameter is appended verbatim; the viewer expects it unencoded.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from linea.config import UI_PATH_SUFFIX, ConfigurationError


@dataclass(frozen=True)
class ContentURIs:
    download_input: str
    download_output: str
    view_input: str
    view_output: str

    def as_fields(self) -> dict[str, str]:
        return {
            "download_input_content_uri": self.download_input,
            "download_output_content_uri": self.download_output,
            "view_input_content_uri": self.view_input,
            "view_output_content_uri": self.view_output,
        }


class URIBuilder:
    """Builds component and content links from the instance URL."""

    def __init__(self, instance_url: str, suffix: str = UI_PATH_SUFFIX):
        self.instance_url = instance_url
        self.suffix = suffix

    @property
    def prefix(self) -> str:
        if not self.instance_url.endswith(self.suffix):
            raise ConfigurationError(
                f"Instance URL '{self.instance_url}' does not end with '{self.suffix}'"
            )
        return self.instance_url[: -len(self.suffix)]

    def content_uris(self, event_id: int) -> ContentURIs:
        content = f"{self.prefix}/nifi-api/provenance-events/{event_id}/content"
        viewer = f"{self.prefix}/nifi-content-viewer/?ref={content}"
        return ContentURIs(
            download_input=f"{content}/input",
            download_output=f"{content}/output",
            view_input=f"{viewer}/input",
            view_output=f"{viewer}/output",
        )

    def component_url(
        self, process_group_id: Optional[str], component_id: str
    ) -> str:
        """Link opening the UI on the component inside its process group."""
        return (
            f"{self.instance_url}?processGroupId={process_group_id or ''}"
            f"&componentsIds={component_id}"
        )
