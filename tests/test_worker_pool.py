from __future__ import annotations

import asyncio
from typing import List

import pytest

from hookrelay.core.ingestion import EventIngestor
from hookrelay.core.models import Event
from hookrelay.core.worker_pool import DispatchWorkerPool


class SlowDispatcher:
    """Records concurrency while pretending each dispatch takes a while."""

    def __init__(self, delay: float = 0.05) -> None:
        self.delay = delay
        self.active = 0
        self.peak = 0
        self.dispatched: List[int] = []

    async def dispatch(self, event: Event, event_id: int) -> None:
        self.active += 1
        self.peak = max(self.peak, self.active)
        await asyncio.sleep(self.delay)
        self.active -= 1
        self.dispatched.append(event_id)


class RaisingDispatcher:
    def __init__(self) -> None:
        self.calls = 0

    async def dispatch(self, event: Event, event_id: int) -> None:
        self.calls += 1
        raise RuntimeError("unexpected")


class FakeRuleStore:
    def __init__(self, unmonitored: set[str]) -> None:
        self.unmonitored = unmonitored

    def is_source_monitored(self, source_id: str) -> bool:
        return source_id not in self.unmonitored


class FakeEventStore:
    def __init__(self) -> None:
        self.events: List[Event] = []

    def insert_event(self, event: Event) -> int:
        self.events.append(event)
        return len(self.events)

    def update_delivery_status(self, event_id: int, status) -> None:
        pass


def _event(source_id: str = "com.example.chat") -> Event:
    return Event(
        source_id=source_id,
        source_name="Chat",
        title="t",
        body="b",
        sub_text="",
        expanded_body="b",
        timestamp_ms=0,
    )


def test_pool_bounds_concurrent_dispatches() -> None:
    dispatcher = SlowDispatcher()

    async def run() -> None:
        pool = DispatchWorkerPool(dispatcher, size=2)
        pool.start()
        for event_id in range(1, 7):
            pool.submit(_event(), event_id)
        await pool.close()

    asyncio.run(run())

    assert sorted(dispatcher.dispatched) == [1, 2, 3, 4, 5, 6]
    assert dispatcher.peak == 2


def test_submit_returns_before_dispatch_finishes() -> None:
    dispatcher = SlowDispatcher(delay=0.2)

    async def run() -> None:
        pool = DispatchWorkerPool(dispatcher, size=1)
        pool.start()
        pool.submit(_event(), 1)
        assert dispatcher.dispatched == []
        await pool.join()
        assert dispatcher.dispatched == [1]
        await pool.close()

    asyncio.run(run())


def test_worker_survives_dispatch_errors() -> None:
    dispatcher = RaisingDispatcher()

    async def run() -> None:
        pool = DispatchWorkerPool(dispatcher, size=1)
        pool.start()
        pool.submit(_event(), 1)
        pool.submit(_event(), 2)
        await pool.close()
        assert not pool.running

    asyncio.run(run())

    assert dispatcher.calls == 2


def test_pool_requires_start_and_positive_size() -> None:
    with pytest.raises(ValueError):
        DispatchWorkerPool(SlowDispatcher(), size=0)
    with pytest.raises(RuntimeError):
        DispatchWorkerPool(SlowDispatcher()).submit(_event(), 1)


def test_ingestor_persists_then_queues_monitored_events() -> None:
    dispatcher = SlowDispatcher(delay=0)
    event_store = FakeEventStore()

    async def run() -> List[object]:
        pool = DispatchWorkerPool(dispatcher, size=2)
        pool.start()
        ingestor = EventIngestor(
            FakeRuleStore(unmonitored={"com.example.games"}),
            event_store,
            pool,
            own_source_id="hookrelay",
        )
        ids = [
            await ingestor.ingest(_event("com.example.chat")),
            await ingestor.ingest(_event("com.example.games")),
            await ingestor.ingest(_event("hookrelay")),
            await ingestor.ingest(_event("com.example.bank")),
        ]
        await pool.close()
        return ids

    ids = asyncio.run(run())

    assert ids == [1, None, None, 2]
    assert [event.source_id for event in event_store.events] == ["com.example.chat", "com.example.bank"]
    assert sorted(dispatcher.dispatched) == [1, 2]


def test_ingestor_drops_event_when_store_fails() -> None:
    class BrokenStore(FakeEventStore):
        def insert_event(self, event: Event) -> int:
            raise OSError("read-only database")

    dispatcher = SlowDispatcher(delay=0)

    async def run() -> object:
        pool = DispatchWorkerPool(dispatcher, size=1)
        pool.start()
        ingestor = EventIngestor(FakeRuleStore(unmonitored=set()), BrokenStore(), pool)
        event_id = await ingestor.ingest(_event())
        await pool.close()
        return event_id

    assert asyncio.run(run()) is None
    assert dispatcher.dispatched == []
