"""JSON-lines event source adapter.

This keeps the raw record format out of the core pipeline. Records may use the
core field names or the names emitted by the original notification listener.
"""

from __future__ import annotations

import json
import logging
import time
from typing import Any, Dict, Iterable, Iterator, Optional

from hookrelay.core.models import Event

LOGGER = logging.getLogger(__name__)


def _text(record: Dict[str, Any], *keys: str) -> Optional[str]:
    for key in keys:
        value = record.get(key)
        if value is not None:
            return str(value)
    return None


def event_from_record(record: Dict[str, Any]) -> Event:
    """Map one raw record onto an Event.

    ``source_id`` is required. Missing text fields become empty strings, the
    expanded body falls back to the body, and a missing timestamp means now.
    """

    source_id = _text(record, "source_id", "packageName")
    if not source_id:
        raise ValueError("record has no source_id")

    body = _text(record, "body", "text") or ""
    raw_timestamp = record.get("timestamp_ms", record.get("timestamp"))
    if raw_timestamp is None:
        timestamp_ms = int(time.time() * 1000)
    elif isinstance(raw_timestamp, bool):
        raise ValueError("timestamp must be a number")
    else:
        timestamp_ms = int(raw_timestamp)

    return Event(
        source_id=source_id,
        source_name=_text(record, "source_name", "appName") or source_id,
        title=_text(record, "title") or "",
        body=body,
        sub_text=_text(record, "sub_text", "subText") or "",
        expanded_body=_text(record, "expanded_body", "bigText") or body,
        timestamp_ms=timestamp_ms,
    )


def parse_event_line(line: str, line_number: int = 0) -> Optional[Event]:
    """Parse one JSON line; blank or malformed lines yield None."""

    if not line.strip():
        return None
    try:
        record = json.loads(line)
        if not isinstance(record, dict):
            raise ValueError("record must be a JSON object")
        return event_from_record(record)
    except (ValueError, TypeError) as exc:
        LOGGER.error("Skipping malformed event on line %s: %s", line_number, exc)
        return None


def read_events(lines: Iterable[str]) -> Iterator[Event]:
    """Yield events from JSON lines, skipping blank and malformed lines."""

    for line_number, line in enumerate(lines, start=1):
        event = parse_event_line(line, line_number)
        if event is not None:
            yield event
