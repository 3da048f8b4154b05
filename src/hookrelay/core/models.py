"""Core domain models.

These dataclasses are shared across the core and adapters to avoid tight
coupling to any integration-specific types.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Mapping, Optional, Tuple, Union


# Names used by the original notification source; kept so older configs load.
FIELD_ALIASES = {
    "packageName": "sourceId",
    "appName": "sourceName",
    "text": "body",
    "bigText": "expandedBody",
}


@dataclass(frozen=True)
class Event:
    """One inbound notification as produced by the event source."""

    source_id: str
    source_name: str
    title: str
    body: str
    sub_text: str
    expanded_body: str
    timestamp_ms: int

    def field_value(self, field_name: str) -> Optional[str]:
        """Return the value for a rule field name, or None if the name is unknown."""

        canonical = FIELD_ALIASES.get(field_name, field_name)
        if canonical == "sourceId":
            return self.source_id
        if canonical == "sourceName":
            return self.source_name
        if canonical == "title":
            return self.title
        if canonical == "body":
            return self.body
        if canonical == "subText":
            return self.sub_text
        if canonical == "expandedBody":
            return self.expanded_body
        return None


@dataclass(frozen=True)
class Condition:
    field: str
    operator: str
    value: str


@dataclass(frozen=True)
class Extractor:
    """Derives one named string from one event field via a capture group."""

    output_name: str
    source_field: str
    pattern: str
    group_index: int = 1


@dataclass(frozen=True)
class Rule:
    """A filter rule: all conditions must hold, then extractors run."""

    id: str
    name: str
    enabled: bool
    conditions: Tuple[Condition, ...] = ()
    extractors: Tuple[Extractor, ...] = ()


@dataclass(frozen=True)
class Matched:
    """The event matched; carries the fields extracted by the winning rule."""

    extracted_fields: Mapping[str, str] = field(default_factory=dict)
    rule_id: Optional[str] = None

    @property
    def matched(self) -> bool:
        return True


@dataclass(frozen=True)
class Unmatched:
    """No enabled rule accepted the event."""

    @property
    def matched(self) -> bool:
        return False

    @property
    def extracted_fields(self) -> Mapping[str, str]:
        return {}


MatchResult = Union[Matched, Unmatched]


@dataclass(frozen=True)
class EndpointSet:
    """Merged webhook destinations for one source."""

    urls: Tuple[str, ...] = ()
    headers: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class DeliveryOutcome:
    """Result of a single POST to one endpoint."""

    url: str
    succeeded: bool
    http_status: Optional[int] = None
    error: Optional[str] = None


class DeliveryStatus(str, Enum):
    """Status label persisted against an event."""

    SUCCESS = "success"
    FAILED = "failed"
    FILTERED = "filtered"
