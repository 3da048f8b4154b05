"""Ingestion hand-off from the event source to the dispatch pool."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from hookrelay.core.models import Event
from hookrelay.core.ports import EventStorePort, RuleStorePort
from hookrelay.core.worker_pool import DispatchWorkerPool

LOGGER = logging.getLogger(__name__)


class EventIngestor:
    """Persist monitored events and queue them for dispatch."""

    def __init__(
        self,
        rule_store: RuleStorePort,
        event_store: EventStorePort,
        pool: DispatchWorkerPool,
        own_source_id: Optional[str] = None,
    ) -> None:
        self._rule_store = rule_store
        self._event_store = event_store
        self._pool = pool
        self._own_source_id = own_source_id

    async def ingest(self, event: Event) -> Optional[int]:
        """Return the persisted event id, or None when the event was dropped.

        Dropped events are never stored: they come from our own source (failure
        alerts would otherwise loop back in), from an unmonitored source, or the
        store rejected them. Config and database access run in a thread so a
        locked database never stalls the dispatch workers.
        """

        if self._own_source_id and event.source_id == self._own_source_id:
            return None

        if not await asyncio.to_thread(self._rule_store.is_source_monitored, event.source_id):
            LOGGER.debug("Event from %s skipped, source not monitored", event.source_id)
            return None

        try:
            event_id = await asyncio.to_thread(self._event_store.insert_event, event)
        except Exception:
            LOGGER.exception("Error saving event from %s", event.source_id)
            return None

        self._pool.submit(event, event_id)
        LOGGER.debug("Event %s from %s queued for dispatch", event_id, event.source_id)
        return event_id
