"""Ports (interfaces) used by the core pipeline.

Ports define the minimal contracts for configuration, storage, delivery and
failure alerts so that the core can be reused with different backends.
"""

from __future__ import annotations

from typing import Any, List, Mapping, Protocol

from hookrelay.core.models import DeliveryOutcome, DeliveryStatus, EndpointSet, Event, Rule


class RuleStorePort(Protocol):
    """Read-only view of the externally managed configuration."""

    def load_rules(self, source_id: str) -> List[Rule]:
        ...

    def load_endpoints(self, source_id: str) -> EndpointSet:
        ...

    def is_feature_enabled(self) -> bool:
        ...

    def is_source_monitored(self, source_id: str) -> bool:
        ...


class StatusStorePort(Protocol):
    """Persistence of the per-event delivery status column."""

    def update_delivery_status(self, event_id: int, status: DeliveryStatus) -> None:
        ...


class EventStorePort(StatusStorePort, Protocol):
    """Storage operations required by ingestion."""

    def insert_event(self, event: Event) -> int:
        ...


class DeliveryPort(Protocol):
    """Performs one webhook POST."""

    def deliver(self, url: str, payload: Mapping[str, Any], headers: Mapping[str, str]) -> DeliveryOutcome:
        ...


class FailureNotifierPort(Protocol):
    """Best-effort alert when an event could not be delivered anywhere."""

    def notify_failure(self, event_id: int, source_name: str, title: str) -> None:
        ...
