"""Delivery status recording.

The recorder sits between the dispatcher and the store so that a storage
hiccup can never crash a dispatch.
"""

from __future__ import annotations

import logging
from typing import Union

from hookrelay.core.models import DeliveryStatus
from hookrelay.core.ports import StatusStorePort

LOGGER = logging.getLogger(__name__)


class StatusRecorder:
    """Persist a status label per event id with overwrite semantics."""

    def __init__(self, store: StatusStorePort) -> None:
        self._store = store

    def record_status(self, event_id: int, status: Union[DeliveryStatus, str]) -> None:
        """Record the latest status for an event; errors are logged, never raised."""

        try:
            label = DeliveryStatus(status)
        except ValueError:
            LOGGER.error("Refusing to record unknown status %r for event %s", status, event_id)
            return

        try:
            self._store.update_delivery_status(event_id, label)
        except Exception:
            LOGGER.exception("Failed to record status %s for event %s", label.value, event_id)
            return
        LOGGER.debug("Recorded status %s for event %s", label.value, event_id)
