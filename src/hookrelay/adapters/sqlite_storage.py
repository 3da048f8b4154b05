"""SQLite storage adapter.

Implements the core EventStorePort using a simple SQLite database.
"""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Optional

from hookrelay.core.models import DeliveryStatus, Event


@dataclass(frozen=True)
class StoredEvent:
    """An event row together with its delivery status, if any."""

    id: int
    event: Event
    received_at: str
    delivery_status: Optional[str]


class SQLiteStorage:
    """Thin SQLite wrapper that satisfies the EventStorePort contract."""

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path

    def _connect(self) -> sqlite3.Connection:
        # One short-lived connection per operation keeps concurrent dispatch
        # threads independent; SQLite serializes the single-row writes.
        conn = sqlite3.connect(self._db_path, timeout=30)
        conn.row_factory = sqlite3.Row
        return conn

    def init_db(self) -> None:
        """Create tables if they do not exist.

        Tables:
        - events: every captured event plus its webhook delivery status
        """

        with self._connect() as conn:
            # Fields:
            # - id: auto-increment primary key, the persisted event id
            # - source_id / source_name: originating app identifier and label
            # - title, body, sub_text, expanded_body: raw event text
            # - timestamp_ms: original event time in epoch milliseconds
            # - received_at: when we stored the row (UTC ISO-8601)
            # - delivery_status: success / failed / filtered, NULL until decided
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS events (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    source_id TEXT NOT NULL,
                    source_name TEXT NOT NULL,
                    title TEXT NOT NULL,
                    body TEXT NOT NULL,
                    sub_text TEXT,
                    expanded_body TEXT,
                    timestamp_ms INTEGER NOT NULL,
                    received_at TIMESTAMP NOT NULL,
                    delivery_status TEXT
                )
                """
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_events_timestamp ON events(timestamp_ms DESC)"
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_events_source_id ON events(source_id)"
            )

    def insert_event(self, event: Event) -> int:
        """Persist an event and return its id."""

        received_at = datetime.now(timezone.utc)
        with self._connect() as conn:
            cur = conn.execute(
                """
                INSERT INTO events (
                    source_id,
                    source_name,
                    title,
                    body,
                    sub_text,
                    expanded_body,
                    timestamp_ms,
                    received_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    event.source_id,
                    event.source_name,
                    event.title,
                    event.body,
                    event.sub_text,
                    event.expanded_body,
                    event.timestamp_ms,
                    received_at.isoformat(),
                ),
            )
            return int(cur.lastrowid)

    def update_delivery_status(self, event_id: int, status: DeliveryStatus) -> None:
        """Overwrite the delivery status of one event."""

        with self._connect() as conn:
            conn.execute(
                "UPDATE events SET delivery_status = ? WHERE id = ?",
                (DeliveryStatus(status).value, event_id),
            )

    def get_delivery_status(self, event_id: int) -> Optional[str]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT delivery_status FROM events WHERE id = ?",
                (event_id,),
            ).fetchone()
        return row["delivery_status"] if row else None

    def get_event(self, event_id: int) -> Optional[StoredEvent]:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM events WHERE id = ?", (event_id,)).fetchone()
        return _row_to_stored(row) if row else None

    def list_recent(self, limit: int = 50) -> List[StoredEvent]:
        """Return the newest events first."""

        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM events ORDER BY timestamp_ms DESC, id DESC LIMIT ?",
                (limit,),
            ).fetchall()
        return [_row_to_stored(row) for row in rows]

    def list_unresolved(self, limit: int = 100) -> List[StoredEvent]:
        """Return events that never got a status, oldest first.

        After a crash these are the events whose delivery outcome is unknown.
        """

        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM events WHERE delivery_status IS NULL ORDER BY id ASC LIMIT ?",
                (limit,),
            ).fetchall()
        return [_row_to_stored(row) for row in rows]

    def count_by_status(self) -> Dict[str, int]:
        """Return event counts keyed by status label; unresolved rows count as 'pending'."""

        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT COALESCE(delivery_status, 'pending') AS status, COUNT(*) AS total
                FROM events
                GROUP BY COALESCE(delivery_status, 'pending')
                """
            ).fetchall()
        return {row["status"]: int(row["total"]) for row in rows}


def _row_to_stored(row: sqlite3.Row) -> StoredEvent:
    return StoredEvent(
        id=int(row["id"]),
        event=Event(
            source_id=row["source_id"],
            source_name=row["source_name"],
            title=row["title"],
            body=row["body"],
            sub_text=row["sub_text"] or "",
            expanded_body=row["expanded_body"] or "",
            timestamp_ms=int(row["timestamp_ms"]),
        ),
        received_at=row["received_at"],
        delivery_status=row["delivery_status"],
    )
