"""Tests for component and content link construction."""

import pytest

from linea.config import ConfigurationError
from linea.pipeline.uris import URIBuilder


class TestContentURIs:

    def test_download_links(self, uri_builder):
        uris = uri_builder.content_uris(123456)
        assert uris.download_input == (
            "https://localhost:443/nifi-api/provenance-events/123456/content/input"
        )
        assert uris.download_output == (
            "https://localhost:443/nifi-api/provenance-events/123456/content/output"
        )

    def test_view_links_carry_download_link(self, uri_builder):
        uris = uri_builder.content_uris(123456)
        assert uris.view_input == (
            "https://localhost:443/nifi-content-viewer/"
            "?ref=https://localhost:443/nifi-api/provenance-events/123456/content/input"
        )
        assert uris.view_output.endswith("/123456/content/output")

    def test_as_fields(self, uri_builder):
        fields = uri_builder.content_uris(7).as_fields()
        assert set(fields) == {
            "download_input_content_uri",
            "download_output_content_uri",
            "view_input_content_uri",
            "view_output_content_uri",
        }

    def test_prefix_with_path(self):
        builder = URIBuilder("http://proxy.example.com/dataflow/nifi")
        assert builder.content_uris(1).download_input == (
            "http://proxy.example.com/dataflow/nifi-api/provenance-events/1/content/input"
        )

    @pytest.mark.parametrize("url", [
        "https://localhost:443",
        "https://localhost:443/nifi/",
        "https://localhost:443/NIFI",
    ])
    def test_missing_suffix_is_configuration_error(self, url):
        with pytest.raises(ConfigurationError):
            URIBuilder(url).content_uris(1)


class TestComponentURL:

    def test_component_url(self, uri_builder):
        assert uri_builder.component_url("pg-1", "proc-1") == (
            "https://localhost:443/nifi?processGroupId=pg-1&componentsIds=proc-1"
        )

    def test_unknown_group(self, uri_builder):
        assert uri_builder.component_url(None, "proc-1") == (
            "https://localhost:443/nifi?processGroupId=&componentsIds=proc-1"
        )
