"""E-mail alert sink.

Sends one e-mail per error event, or one per group of similar errors
when grouping is enabled. Each message names the failing processor,
the error, the flow file attributes and links to the flow file content.

Address fields are parsed for every message. An empty From, no
recipient at all, an address that does not parse or a message that
cannot be encoded with the configured charset fails that message only;
the next one is still attempted.
"""

from __future__ import annotations

import asyncio
import logging
import smtplib
from email.message import EmailMessage
from email.utils import formataddr, formatdate, getaddresses
from typing import Optional

from linea.config import AlertSinkConfig
from linea.models.events import GroupKey, NormalizedEvent
from linea.pipeline.grouping import ErrorGroup, error_events, group_similar
from linea.sinks.base import BaseSink, DeliveryReport, RunContext, missing_identity

logger = logging.getLogger("linea.sinks.alert")

IDENTITY_FIELDS = ("process_group_name", "component_name")


class AddressError(ValueError):
    """An address field is empty where required, or does not parse."""


def parse_addresses(value: Optional[str], field_name: str, required: bool = False) -> list[str]:
    """Parse a comma-separated RFC 822 address list.

    Returns formatted addresses. Raises AddressError when a required
    field is empty or any entry is not a valid address.
    """
    value = (value or "").strip().strip(",")
    if not value:
        if required:
            raise AddressError(f"Required field '{field_name}' evaluates to an empty string.")
        return []

    addresses: list[str] = []
    for display_name, address in getaddresses([value]):
        local, _, domain = address.partition("@")
        if not local or not domain:
            raise AddressError(
                f"Unable to parse a valid address for field '{field_name}' with value '{value}'"
            )
        addresses.append(formataddr((display_name, address)))
    return addresses


def compose_subject(
    event: NormalizedEvent, similar_errors: int = 0, prefix: Optional[str] = None
) -> str:
    subject = f"[{prefix}] " if prefix else ""
    if similar_errors > 1:
        subject += f"{similar_errors} errors occurred in processor "
    else:
        subject += "Error occurred in processor "
    return subject + f"{event.component_name} in process group {event.process_group_name}"


def compose_body(event: NormalizedEvent, similar_errors: int = 0) -> str:
    """Plain-text message body, sections in fixed order."""
    lines = [
        "Affected processor:",
        f"\tProcessor name: {event.component_name}",
        f"\tProcessor type: {event.component_type}",
        f"\tProcess group: {event.process_group_name}",
    ]
    if similar_errors > 1:
        lines.append(f"\tTotal similar errors : {similar_errors}")
    lines.append(f"\tURL: {event.component_url}")

    lines += [
        "",
        "Error information:",
        f"\tDetails: {event.details}",
        f"\tEvent type: {event.event_type}",
    ]

    for title, attributes in (
        ("Updated attributes", event.updated_attributes),
        ("Previous attributes", event.previous_attributes),
    ):
        if attributes:
            lines += ["", f"Flow file - {title}:"]
            lines += [f"\t{key}: {attributes[key]}" for key in sorted(attributes)]

    lines += [
        "",
        "Flow file - content:",
        f"\tDownload input: {event.download_input_content_uri}",
        f"\tDownload output: {event.download_output_content_uri}",
        f"\tView input: {event.view_input_content_uri}",
        f"\tView output: {event.view_output_content_uri}",
        "",
    ]
    return "\n".join(lines) + "\n"


class MailTransport:
    """Sends messages through the configured SMTP server."""

    def __init__(self, config: AlertSinkConfig):
        self.config = config

    def send(self, message: EmailMessage) -> None:
        cfg = self.config
        with smtplib.SMTP(cfg.smtp_host, cfg.smtp_port, timeout=cfg.smtp_timeout) as server:
            if cfg.smtp_starttls:
                server.starttls()
            if cfg.smtp_auth:
                if cfg.smtp_username:
                    server.login(cfg.smtp_username, cfg.smtp_password)
                else:
                    logger.warning("SMTP auth enabled without a username, sending unauthenticated")
            server.send_message(message)


class AlertSink(BaseSink):
    """Mails error events, individually or grouped by similarity."""

    def __init__(self, config: AlertSinkConfig, transport: Optional[MailTransport] = None):
        self.config = config
        self.transport = transport or MailTransport(config)

    @property
    def name(self) -> str:
        return "alert"

    def specific_recipient(self, event: NormalizedEvent) -> Optional[str]:
        """Attribute value naming an extra recipient for this flow.

        Previous attributes are consulted first, updated ones second.
        """
        attribute = self.config.specific_recipient_attribute
        if not attribute:
            return None
        value = (event.previous_attributes or {}).get(attribute)
        if value is None:
            value = (event.updated_attributes or {}).get(attribute)
        return value

    def recipients(self, event: NormalizedEvent) -> list[str]:
        to = parse_addresses(self.config.mail_to, "To")
        value = self.specific_recipient(event)
        if value is not None:
            try:
                to += parse_addresses(value, "Specific Recipient Attribute Name")
            except AddressError:
                logger.error(
                    "Unable to parse a valid address from the attribute '%s' with value '%s'",
                    self.config.specific_recipient_attribute, value,
                    extra={"event_id": event.event_id},
                )
        return to

    def build_message(self, event: NormalizedEvent, similar_errors: int = 0) -> EmailMessage:
        cfg = self.config
        sender = parse_addresses(cfg.mail_from, "From", required=True)
        to = self.recipients(event)
        cc = parse_addresses(cfg.mail_cc, "CC")
        bcc = parse_addresses(cfg.mail_bcc, "BCC")
        if not (to or cc or bcc):
            raise AddressError("Must specify at least one To/CC/BCC address")

        message = EmailMessage()
        message["From"] = ", ".join(sender)
        if to:
            message["To"] = ", ".join(to)
        if cc:
            message["Cc"] = ", ".join(cc)
        if bcc:
            message["Bcc"] = ", ".join(bcc)
        message["Subject"] = compose_subject(event, similar_errors, cfg.subject_prefix)
        message["X-Mailer"] = cfg.x_mailer
        message["Date"] = formatdate(localtime=True)

        subtype = cfg.content_type.partition("/")[2] or "plain"
        message.set_content(
            compose_body(event, similar_errors), subtype=subtype, charset=cfg.charset
        )
        return message

    async def deliver(
        self, events: list[NormalizedEvent], context: RunContext
    ) -> DeliveryReport:
        report = DeliveryReport(sink=self.name, received=len(events))

        errors: list[NormalizedEvent] = []
        for event in error_events(events):
            missing = missing_identity(event, IDENTITY_FIELDS)
            if missing:
                logger.warning(
                    "Error event %d has no %s, not alerting",
                    event.event_id, ", ".join(missing),
                    extra={"event_id": event.event_id},
                )
                report.skipped += 1
                continue
            errors.append(event)
        report.dropped = report.received - report.skipped - len(errors)

        if self.config.group_similar_errors:
            groups = group_similar(errors)
        else:
            groups = [ErrorGroup(key=GroupKey.of(e), events=[e]) for e in errors]

        for group in groups:
            similar = group.size if self.config.group_similar_errors else 0
            if await self._send(group.template, similar):
                report.delivered += 1
            else:
                report.failed += 1

        logger.info(
            "Run %s: sent %d alert messages for %d error events (%d failed)",
            context.run_id, report.delivered, len(errors), report.failed,
        )
        return report

    async def _send(self, event: NormalizedEvent, similar_errors: int) -> bool:
        try:
            message = self.build_message(event, similar_errors)
            await asyncio.to_thread(self.transport.send, message)
        except (LookupError, ValueError, smtplib.SMTPException, OSError) as e:
            logger.error(
                "Failed to send error email for provenance event %d: %s",
                event.event_id, e,
                extra={"event_id": event.event_id},
            )
            return False
        logger.debug("Error email for provenance event %d sent", event.event_id)
        return True
