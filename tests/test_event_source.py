from __future__ import annotations

import json

import pytest

from hookrelay.adapters.event_source import event_from_record, read_events
from hookrelay.adapters.failure_notifier import LoggingFailureNotifier, format_failure_alert


def test_core_field_names() -> None:
    event = event_from_record(
        {
            "source_id": "com.example.bank",
            "source_name": "Bank",
            "title": "Your OTP",
            "body": "Code is 123456",
            "sub_text": "now",
            "expanded_body": "Code is 123456, valid 5 minutes",
            "timestamp_ms": 1704067200000,
        }
    )

    assert event.source_name == "Bank"
    assert event.sub_text == "now"
    assert event.timestamp_ms == 1704067200000


def test_original_listener_field_names() -> None:
    event = event_from_record(
        {
            "packageName": "com.example.chat",
            "appName": "Chat",
            "title": "Alice",
            "text": "hi",
            "timestamp": 1704067200000,
        }
    )

    assert event.source_id == "com.example.chat"
    assert event.body == "hi"
    # The expanded body falls back to the short body when the source has none.
    assert event.expanded_body == "hi"
    assert event.sub_text == ""


def test_source_id_is_required() -> None:
    with pytest.raises(ValueError):
        event_from_record({"title": "orphan"})


def test_read_events_skips_bad_lines() -> None:
    lines = [
        json.dumps({"source_id": "a", "timestamp_ms": 1}),
        "",
        "{broken",
        json.dumps(["not", "an", "object"]),
        json.dumps({"source_id": "b", "timestamp_ms": True}),
        json.dumps({"source_id": "c", "timestamp_ms": 3}),
    ]

    events = list(read_events(lines))

    assert [event.source_id for event in events] == ["a", "c"]
    assert events[0].source_name == "a"


def test_failure_alert_text() -> None:
    alert = format_failure_alert(42, "Bank", "Your OTP")

    assert alert.title == "Webhook delivery failed"
    assert '"Your OTP"' in alert.text
    assert "Bank" in alert.text
    assert "#42" in alert.text
    assert "(no title)" in format_failure_alert(1, "", " ").text


def test_logging_failure_notifier(caplog) -> None:
    notifier = LoggingFailureNotifier()

    with caplog.at_level("WARNING"):
        notifier.notify_failure(7, "Chat", "Alice")

    assert notifier.alerts_sent == 1
    assert "Webhook delivery failed" in caplog.text
    assert "Alice" in caplog.text
