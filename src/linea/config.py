"""LINEA configuration via environment variables.

Every setting has an explicit default so the service starts with an
empty environment. Values that cannot be checked per field (the base
URL suffix, address fields of the alert sink) are reported by
Settings.problems() instead of failing at import time.
"""

import codecs
import os
import logging

logger = logging.getLogger("linea.config")

BEGINNING_OF_STREAM = "beginning-of-stream"
END_OF_STREAM = "end-of-stream"
START_POSITIONS = (BEGINNING_OF_STREAM, END_OF_STREAM)

# Path segment identifying the engine UI at the end of the instance URL.
UI_PATH_SUFFIX = "/nifi"

DEFAULT_DETAILS_AS_ERROR = [
    "Auto-Terminated by Failure Relationship",
    "Auto-Terminated by No Retry Relationship",
    "Auto-Terminated by Retry Relationship",
    "Auto-Terminated by invalid Relationship",
    "Auto-Terminated by timeout Relationship",
]

DEFAULT_COMPONENT_TYPES_ALLOWLIST = [
    "DeleteSFTP", "ExecuteSQLRecord", "ExtendedValidateCsv", "FetchFTP",
    "FetchSFTP", "FetchSmb", "GenerateFlowFile", "GetFTP", "GetSFTP",
    "GetSmbFile", "InvokeHTTP", "ListenFTP", "ListFTP", "ListSFTP",
    "ListSmb", "PutFTP", "PutSFTP", "PutSmbFile",
]


class ConfigurationError(ValueError):
    """A configured value cannot be used to build a record or a message."""


def parse_list(value: str | None) -> list[str]:
    """Split a comma-separated setting, dropping blank entries."""
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def parse_bool(value: str | None, default: bool) -> bool:
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() == "true"


def _env(name: str, default: str | None = None) -> str | None:
    value = os.environ.get(f"LINEA_{name}")
    if value is None or value == "":
        return default
    return value


class IndexSinkConfig:
    """Search index sink settings."""

    def __init__(self):
        self.enabled = parse_bool(_env("INDEX_ENABLED"), True)
        self.url = _env("INDEX_URL", "http://localhost:9200")
        self.index = _env("INDEX_NAME", "nifi")
        self.request_timeout = int(_env("INDEX_REQUEST_TIMEOUT", "30"))
        self.component_types_allowlist = parse_list(
            _env("INDEX_COMPONENT_TYPES_ALLOWLIST",
                 ",".join(DEFAULT_COMPONENT_TYPES_ALLOWLIST))
        )


class AlertSinkConfig:
    """E-mail alert sink settings.

    Address fields hold the raw comma-separated strings; they are parsed
    per message so a bad value only fails the messages that use it.
    """

    def __init__(self):
        self.enabled = parse_bool(_env("ALERT_ENABLED"), False)
        self.group_similar_errors = parse_bool(_env("ALERT_GROUP_SIMILAR_ERRORS"), False)
        self.subject_prefix = _env("ALERT_SUBJECT_PREFIX")
        self.specific_recipient_attribute = _env("ALERT_SPECIFIC_RECIPIENT_ATTRIBUTE")

        # SMTP transport
        self.smtp_host = _env("SMTP_HOST", "")
        self.smtp_port = int(_env("SMTP_PORT", "25"))
        self.smtp_auth = parse_bool(_env("SMTP_AUTH"), True)
        self.smtp_username = _env("SMTP_USERNAME", "")
        self.smtp_password = _env("SMTP_PASSWORD", "")
        self.smtp_starttls = parse_bool(_env("SMTP_STARTTLS"), False)
        self.smtp_timeout = int(_env("SMTP_TIMEOUT", "30"))
        self.x_mailer = _env("SMTP_X_MAILER", "LINEA")

        # Message
        self.content_type = _env("MAIL_CONTENT_TYPE", "text/plain")
        self.charset = _env("MAIL_CHARSET", "UTF-8")
        self.mail_from = _env("MAIL_FROM", "")
        self.mail_to = _env("MAIL_TO", "")
        self.mail_cc = _env("MAIL_CC", "")
        self.mail_bcc = _env("MAIL_BCC", "")


class Settings:
    """All configuration sourced from environment."""

    def __init__(self):
        # Core
        self.version = "0.1.0"
        self.log_level = _env("LOG_LEVEL", "info")
        self.api_port = int(_env("API_PORT", "8080"))
        self.run_interval = int(_env("RUN_INTERVAL", "0"))

        # Cluster identity
        self.cluster_enabled = parse_bool(_env("CLUSTER_ENABLED"), False)
        self.cluster_node_id = _env("CLUSTER_NODE_ID")

        # Source
        self.start_position = _env("START_POSITION", BEGINNING_OF_STREAM)
        self.batch_size = int(_env("BATCH_SIZE", "1000"))
        self.events_path = _env("EVENTS_PATH", "events.jsonl")
        self.state_path = _env("STATE_PATH", "linea-state.json")
        self.components_path = _env("COMPONENTS_PATH", "components.json")

        # Classification
        self.details_as_error = parse_list(
            _env("DETAILS_AS_ERROR", ",".join(DEFAULT_DETAILS_AS_ERROR))
        )
        self.check_http_errors = parse_bool(_env("CHECK_HTTP_ERRORS"), True)
        self.check_script_errors = parse_bool(_env("CHECK_SCRIPT_ERRORS"), True)

        # Links
        self.instance_url = _env("INSTANCE_URL", "https://localhost:443/nifi")

        # Sinks
        self.index = IndexSinkConfig()
        self.alert = AlertSinkConfig()

    def problems(self) -> list[str]:
        """Return every configuration problem found, empty when valid."""
        found: list[str] = []
        if self.start_position not in START_POSITIONS:
            found.append(
                f"Start position must be one of {', '.join(START_POSITIONS)}, "
                f"got '{self.start_position}'"
            )
        if self.batch_size <= 0:
            found.append(f"Batch size must be a positive integer, got {self.batch_size}")
        if not self.instance_url.endswith(UI_PATH_SUFFIX):
            found.append(
                f"Instance URL '{self.instance_url}' must end with '{UI_PATH_SUFFIX}'"
            )
        if self.alert.enabled:
            if not self.alert.smtp_host:
                found.append("SMTP host is required when the alert sink is enabled")
            if not self.alert.mail_from:
                found.append("Mail From is required when the alert sink is enabled")
            if not (self.alert.mail_to or self.alert.mail_cc or self.alert.mail_bcc):
                found.append("Must specify at least one To/CC/BCC address")
            if self.alert.smtp_auth and not self.alert.smtp_username:
                found.append("SMTP username is required when SMTP auth is enabled")
            try:
                codecs.lookup(self.alert.charset)
            except LookupError:
                found.append(f"Unknown mail character set '{self.alert.charset}'")
        if not (self.index.enabled or self.alert.enabled):
            found.append("No sink enabled; events will be consumed and discarded")
        return found


settings = Settings()
