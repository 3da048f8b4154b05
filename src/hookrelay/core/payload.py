"""Webhook payload construction.

The wire format is shared with existing receivers, so key names and timestamp
formatting must stay exactly as they are.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Mapping

from hookrelay.core.models import Event

PAYLOAD_TYPE = "notification"


def format_iso_millis(moment: datetime) -> str:
    """Format as yyyy-MM-ddTHH:mm:ss.SSSZ in UTC, truncating to milliseconds."""

    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    utc = moment.astimezone(timezone.utc)
    return f"{utc.strftime('%Y-%m-%dT%H:%M:%S')}.{utc.microsecond // 1000:03d}Z"


def epoch_millis_to_iso(timestamp_ms: int) -> str:
    seconds, millis = divmod(int(timestamp_ms), 1000)
    moment = datetime.fromtimestamp(seconds, tz=timezone.utc).replace(microsecond=millis * 1000)
    return format_iso_millis(moment)


def build_payload(
    event: Event,
    extracted_fields: Mapping[str, str],
    dispatched_at: datetime,
) -> Dict[str, Any]:
    """Build the JSON-ready envelope for one event."""

    data: Dict[str, Any] = {
        "packageName": event.source_id,
        "appName": event.source_name,
        "title": event.title,
        "text": event.body,
        "subText": event.sub_text,
        "bigText": event.expanded_body,
        "timestamp": event.timestamp_ms,
        "timestampISO": epoch_millis_to_iso(event.timestamp_ms),
    }
    if extracted_fields:
        data["extractedFields"] = dict(extracted_fields)

    return {
        "type": PAYLOAD_TYPE,
        "timestamp": format_iso_millis(dispatched_at),
        "data": data,
    }
