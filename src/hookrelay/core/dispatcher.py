"""Core dispatch pipeline.

This module is integration-agnostic. It only relies on ports for config,
storage, delivery and failure alerts. The pipeline enforces a strict order:
1) Feature flag check
2) Load rules and endpoints for the event's source
3) Match, recording "filtered" for unmatched events
4) Build the payload
5) Stop quietly when no endpoint is configured
6) Deliver to every endpoint, each attempt isolated
7) Aggregate (any success wins) and record the status
8) Alert on aggregate failure
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, List, Mapping, Optional, Sequence, Tuple

from hookrelay.core.models import DeliveryOutcome, DeliveryStatus, Event
from hookrelay.core.payload import build_payload
from hookrelay.core.ports import DeliveryPort, FailureNotifierPort, RuleStorePort
from hookrelay.core.rules_engine import evaluate
from hookrelay.core.status import StatusRecorder

LOGGER = logging.getLogger(__name__)

REASON_DISABLED = "disabled"
REASON_FILTERED = "filtered"
REASON_NO_ENDPOINTS = "no_endpoints"
REASON_DELIVERED = "delivered"
REASON_ERROR = "error"


@dataclass(frozen=True)
class DispatchResult:
    """What happened to one event; ``status`` is None when nothing was recorded."""

    reason: str
    status: Optional[DeliveryStatus] = None
    outcomes: Tuple[DeliveryOutcome, ...] = field(default_factory=tuple)
    error: Optional[str] = None


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def aggregate_status(outcomes: Sequence[DeliveryOutcome]) -> DeliveryStatus:
    """At least one successful endpoint counts as overall success."""

    if any(outcome.succeeded for outcome in outcomes):
        return DeliveryStatus.SUCCESS
    return DeliveryStatus.FAILED


class Dispatcher:
    """Orchestrates matching, delivery fan-out, status recording and alerts."""

    def __init__(
        self,
        rule_store: RuleStorePort,
        delivery: DeliveryPort,
        recorder: StatusRecorder,
        failure_notifier: FailureNotifierPort,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._rule_store = rule_store
        self._delivery = delivery
        self._recorder = recorder
        self._failure_notifier = failure_notifier
        self._clock = clock

    async def dispatch(self, event: Event, event_id: int) -> DispatchResult:
        """Run one event through the pipeline. Never raises."""

        try:
            return await self._dispatch(event, event_id)
        except Exception as exc:
            LOGGER.exception("Error dispatching event %s", event_id)
            await self._record_failure_safely(event, event_id)
            return DispatchResult(reason=REASON_ERROR, status=DeliveryStatus.FAILED, error=repr(exc))

    async def _dispatch(self, event: Event, event_id: int) -> DispatchResult:
        # Config and status stores do blocking file I/O, so they run off the loop.
        if not await asyncio.to_thread(self._rule_store.is_feature_enabled):
            LOGGER.debug("Webhook delivery disabled, skipping event %s", event_id)
            return DispatchResult(reason=REASON_DISABLED)

        rules = await asyncio.to_thread(self._rule_store.load_rules, event.source_id)
        endpoints = await asyncio.to_thread(self._rule_store.load_endpoints, event.source_id)

        result = evaluate(event, rules)
        if not result.matched:
            LOGGER.info("Event %s from %s filtered out", event_id, event.source_id)
            await asyncio.to_thread(self._recorder.record_status, event_id, DeliveryStatus.FILTERED)
            return DispatchResult(reason=REASON_FILTERED, status=DeliveryStatus.FILTERED)

        payload = build_payload(event, result.extracted_fields, self._clock())

        # A matched event with nowhere to go is a configuration no-op, not a failure.
        if not endpoints.urls:
            LOGGER.info("No webhook URLs configured for %s, event %s not sent", event.source_id, event_id)
            return DispatchResult(reason=REASON_NO_ENDPOINTS)

        outcomes = await self._deliver_all(endpoints.urls, payload, endpoints.headers)
        status = aggregate_status(outcomes)
        await asyncio.to_thread(self._recorder.record_status, event_id, status)

        if status is DeliveryStatus.FAILED:
            # An alert failure is logged here and never reaches the boundary.
            self._notify_failure_safely(event, event_id)

        LOGGER.info(
            "Webhook result for event %s: %s (%s/%s endpoints ok)",
            event_id,
            status.value,
            sum(1 for outcome in outcomes if outcome.succeeded),
            len(outcomes),
        )
        return DispatchResult(reason=REASON_DELIVERED, status=status, outcomes=tuple(outcomes))

    async def _deliver_all(
        self,
        urls: Sequence[str],
        payload: Mapping[str, Any],
        headers: Mapping[str, str],
    ) -> List[DeliveryOutcome]:
        attempts = [
            asyncio.to_thread(self._delivery.deliver, url, payload, dict(headers)) for url in urls
        ]
        results = await asyncio.gather(*attempts, return_exceptions=True)

        outcomes: List[DeliveryOutcome] = []
        for url, result in zip(urls, results):
            if isinstance(result, BaseException):
                LOGGER.error("Delivery to %s raised %r", url, result)
                outcomes.append(DeliveryOutcome(url=url, succeeded=False, error=repr(result)))
                continue
            outcomes.append(result)
        return outcomes

    async def _record_failure_safely(self, event: Event, event_id: int) -> None:
        try:
            await asyncio.to_thread(self._recorder.record_status, event_id, DeliveryStatus.FAILED)
        except Exception:
            LOGGER.exception("Error updating failed status for event %s", event_id)
        self._notify_failure_safely(event, event_id)

    def _notify_failure_safely(self, event: Event, event_id: int) -> None:
        try:
            self._failure_notifier.notify_failure(event_id, event.source_name, event.title)
        except Exception:
            LOGGER.exception("Error sending failure notification for event %s", event_id)
