"""Error classification.

Every normalized event is either Info or Error. The decision is made by
an ordered list of rules: the first rule that applies to an event owns
it, and no later rule is looked at. A rule that applies but finds no
error leaves the event at the default, Info.

Default rule order:
1. DetailsAsErrorRule  - details text is one of the configured markers
2. HttpStatusRule      - HTTP invocation answered with a 4xx/5xx code
3. ScriptErrorRule     - script execution reported an error message

Explicit detail markers come first so a terminated flow file is
reported with its termination reason rather than an inferred one.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Iterable, Optional

from linea.models.events import EventStatus, RawEvent

logger = logging.getLogger("linea.pipeline.classifier")

HTTP_COMPONENT_TYPE = "InvokeHTTP"
HTTP_EVENT_TYPE = "ATTRIBUTES_MODIFIED"
HTTP_STATUS_ATTRIBUTE = "invokehttp.status.code"

SCRIPT_COMPONENT_TYPE = "ExecuteStreamCommand"
SCRIPT_ERROR_ATTRIBUTE = "execution.error"


@dataclass(frozen=True)
class Classification:
    status: EventStatus
    details: Optional[str] = None


class ClassificationRule(ABC):
    """One predicate -> outcome step of the classification chain."""

    name: str = "rule"

    @abstractmethod
    def applies(self, fields: dict[str, Any], raw: RawEvent) -> bool:
        """Whether this rule owns the event."""
        ...

    @abstractmethod
    def evaluate(
        self, fields: dict[str, Any], raw: RawEvent
    ) -> Optional[Classification]:
        """Outcome for an owned event, None to keep the default."""
        ...


class DetailsAsErrorRule(ClassificationRule):
    name = "details_as_error"

    def __init__(self, markers: Iterable[str]):
        self.markers = frozenset(m.lower() for m in markers)

    def applies(self, fields, raw):
        details = fields.get("details")
        return details is not None and details.lower() in self.markers

    def evaluate(self, fields, raw):
        return Classification(EventStatus.ERROR, fields["details"])


class HttpStatusRule(ClassificationRule):
    name = "http_status"

    def applies(self, fields, raw):
        return (
            raw.component_type == HTTP_COMPONENT_TYPE
            and raw.event_type == HTTP_EVENT_TYPE
        )

    def evaluate(self, fields, raw):
        status_code = raw.attribute(HTTP_STATUS_ATTRIBUTE)
        if not status_code:
            logger.warning(
                "No status code found in event from %s processor %s in process group %s",
                HTTP_COMPONENT_TYPE,
                fields.get("component_name"),
                fields.get("process_group_name"),
                extra={"event_id": raw.event_id},
            )
            return None
        if status_code[0] in ("4", "5"):
            return Classification(
                EventStatus.ERROR,
                f"HTTP status code received identified as an error: {status_code}",
            )
        return None


class ScriptErrorRule(ClassificationRule):
    name = "script_error"

    def applies(self, fields, raw):
        return raw.component_type == SCRIPT_COMPONENT_TYPE

    def evaluate(self, fields, raw):
        message = raw.attribute(SCRIPT_ERROR_ATTRIBUTE)
        if message:
            return Classification(
                EventStatus.ERROR, f"Script returned an error: {message}"
            )
        return None


class ErrorClassifier:
    """Runs the rule chain, first applicable rule wins."""

    def __init__(self, rules: list[ClassificationRule]):
        self.rules = list(rules)

    @classmethod
    def build(
        cls,
        details_as_error: Iterable[str],
        check_http_errors: bool = True,
        check_script_errors: bool = True,
    ) -> ErrorClassifier:
        rules: list[ClassificationRule] = [DetailsAsErrorRule(details_as_error)]
        if check_http_errors:
            rules.append(HttpStatusRule())
        if check_script_errors:
            rules.append(ScriptErrorRule())
        return cls(rules)

    def classify(self, fields: dict[str, Any], raw: RawEvent) -> Classification:
        for rule in self.rules:
            if not rule.applies(fields, raw):
                continue
            outcome = rule.evaluate(fields, raw)
            if outcome is not None:
                logger.debug(
                    "Event %d classified as %s by %s",
                    raw.event_id, outcome.status.value, rule.name,
                )
                return outcome
            break
        return Classification(EventStatus.INFO, fields.get("details"))
