"""Bounded fire-and-forget execution of dispatches.

Ingestion only enqueues; a fixed number of worker tasks drain the queue, which
caps concurrent dispatches and therefore concurrent outbound connections.
"""

from __future__ import annotations

import asyncio
import logging
from typing import List, Optional, Tuple

from hookrelay.core.config import DEFAULT_WORKER_POOL_SIZE
from hookrelay.core.dispatcher import Dispatcher
from hookrelay.core.models import Event

LOGGER = logging.getLogger(__name__)


class DispatchWorkerPool:
    """Queue-backed pool of asyncio workers running Dispatcher.dispatch."""

    def __init__(self, dispatcher: Dispatcher, size: int = DEFAULT_WORKER_POOL_SIZE) -> None:
        if size < 1:
            raise ValueError("Worker pool size must be at least 1")
        self._dispatcher = dispatcher
        self._size = size
        self._queue: Optional[asyncio.Queue[Tuple[Event, int]]] = None
        self._workers: List[asyncio.Task] = []

    @property
    def size(self) -> int:
        return self._size

    @property
    def running(self) -> bool:
        return bool(self._workers)

    def start(self) -> None:
        """Spawn the worker tasks on the running event loop."""

        if self._workers:
            return
        self._queue = asyncio.Queue()
        self._workers = [
            asyncio.create_task(self._worker(index), name=f"dispatch-worker-{index}")
            for index in range(self._size)
        ]
        LOGGER.info("Started %s dispatch workers", self._size)

    def submit(self, event: Event, event_id: int) -> None:
        """Hand an event off for dispatch without waiting for it."""

        if self._queue is None:
            raise RuntimeError("Worker pool is not started")
        self._queue.put_nowait((event, event_id))

    async def join(self) -> None:
        """Wait until every submitted event has been dispatched."""

        if self._queue is not None:
            await self._queue.join()

    async def close(self) -> None:
        """Drain outstanding work, then stop the workers."""

        await self.join()
        for worker in self._workers:
            worker.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []
        self._queue = None

    async def _worker(self, index: int) -> None:
        assert self._queue is not None
        queue = self._queue
        while True:
            event, event_id = await queue.get()
            try:
                await self._dispatcher.dispatch(event, event_id)
            except Exception:
                # dispatch() already guards its own boundary; keep the worker alive regardless.
                LOGGER.exception("Worker %s failed on event %s", index, event_id)
            finally:
                queue.task_done()
