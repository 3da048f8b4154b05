from __future__ import annotations

import os
import threading

from hookrelay.adapters.sqlite_storage import SQLiteStorage
from hookrelay.core.models import DeliveryStatus, Event
from hookrelay.core.status import StatusRecorder


def _event(title: str = "Hello", timestamp_ms: int = 1000) -> Event:
    return Event(
        source_id="com.example.chat",
        source_name="Chat",
        title=title,
        body="body",
        sub_text="",
        expanded_body="body",
        timestamp_ms=timestamp_ms,
    )


def _storage(tmp_path) -> SQLiteStorage:
    storage = SQLiteStorage(os.path.join(tmp_path, "events.db"))
    storage.init_db()
    return storage


def test_insert_assigns_increasing_ids(tmp_path) -> None:
    storage = _storage(tmp_path)

    first = storage.insert_event(_event("one"))
    second = storage.insert_event(_event("two"))

    assert second > first
    stored = storage.get_event(first)
    assert stored is not None
    assert stored.event == _event("one")
    assert stored.delivery_status is None


def test_recording_twice_keeps_latest_label(tmp_path) -> None:
    storage = _storage(tmp_path)
    recorder = StatusRecorder(storage)
    event_id = storage.insert_event(_event())

    recorder.record_status(event_id, DeliveryStatus.FAILED)
    recorder.record_status(event_id, DeliveryStatus.SUCCESS)

    assert storage.get_delivery_status(event_id) == "success"
    assert storage.count_by_status() == {"success": 1}


def test_recorder_accepts_plain_labels_and_rejects_unknown(tmp_path) -> None:
    storage = _storage(tmp_path)
    recorder = StatusRecorder(storage)
    event_id = storage.insert_event(_event())

    recorder.record_status(event_id, "filtered")
    recorder.record_status(event_id, "delivered-ish")

    assert storage.get_delivery_status(event_id) == "filtered"


def test_recorder_swallows_storage_errors(tmp_path) -> None:
    missing_dir = os.path.join(tmp_path, "does", "not", "exist", "events.db")
    recorder = StatusRecorder(SQLiteStorage(missing_dir))

    recorder.record_status(1, DeliveryStatus.SUCCESS)


def test_unresolved_events_are_listed_oldest_first(tmp_path) -> None:
    storage = _storage(tmp_path)
    done = storage.insert_event(_event("done"))
    pending_a = storage.insert_event(_event("a"))
    pending_b = storage.insert_event(_event("b"))
    storage.update_delivery_status(done, DeliveryStatus.SUCCESS)

    unresolved = storage.list_unresolved()

    assert [item.id for item in unresolved] == [pending_a, pending_b]
    assert storage.count_by_status() == {"success": 1, "pending": 2}


def test_list_recent_orders_by_event_time(tmp_path) -> None:
    storage = _storage(tmp_path)
    storage.insert_event(_event("old", timestamp_ms=1000))
    storage.insert_event(_event("new", timestamp_ms=5000))

    assert [item.event.title for item in storage.list_recent(limit=1)] == ["new"]


def test_concurrent_status_writes(tmp_path) -> None:
    storage = _storage(tmp_path)
    ids = [storage.insert_event(_event(str(index))) for index in range(20)]
    recorder = StatusRecorder(storage)

    threads = [
        threading.Thread(target=recorder.record_status, args=(event_id, DeliveryStatus.SUCCESS))
        for event_id in ids
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert storage.count_by_status() == {"success": 20}
