"""Failure alert adapter.

Formats the "webhook failed" alert shown to the user and emits it through the
logging system, where file and console handlers pick it up.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

LOGGER = logging.getLogger(__name__)

ALERT_TITLE = "Webhook delivery failed"


@dataclass(frozen=True)
class FailureAlert:
    event_id: int
    title: str
    text: str


def format_failure_alert(event_id: int, source_name: str, title: str) -> FailureAlert:
    """Build the alert for an event that reached no endpoint."""

    source = source_name.strip() or "unknown source"
    subject = title.strip() or "(no title)"
    text = f'Notification "{subject}" from {source} could not be delivered to any webhook (event #{event_id}).'
    return FailureAlert(event_id=event_id, title=ALERT_TITLE, text=text)


class LoggingFailureNotifier:
    """FailureNotifierPort implementation that logs alerts at WARNING level."""

    def __init__(self, logger: logging.Logger = LOGGER) -> None:
        self._logger = logger
        self.alerts_sent = 0

    def notify_failure(self, event_id: int, source_name: str, title: str) -> None:
        alert = format_failure_alert(event_id, source_name, title)
        self._logger.warning("%s: %s", alert.title, alert.text)
        self.alerts_sent += 1
