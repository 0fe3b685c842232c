"""Shared, unbounded FIFO of pending queries."""

from __future__ import annotations

import queue
import time
from dataclasses import dataclass, replace
from typing import Iterable, Optional

from ..model.query import Query


@dataclass(frozen=True, slots=True)
class WorkItem:
    """A query plus its delivery bookkeeping."""

    query: Query
    attempts: int = 0
    not_before: float = 0.0

    @property
    def identity(self) -> str:
        return self.query.identity()

    def retried(self, delay: float = 0.0) -> "WorkItem":
        return replace(self, attempts=self.attempts + 1, not_before=time.monotonic() + delay)


class CrawlQueue:
    """Thread-safe FIFO shared by producers and workers.

    The queue is never closed: split children and requeued items can arrive at
    any time, so emptiness alone does not mean the crawl is finished.
    """

    def __init__(self) -> None:
        self._queue: "queue.Queue[WorkItem]" = queue.Queue()

    def put(self, item: WorkItem | Query) -> None:
        if isinstance(item, Query):
            item = WorkItem(item)
        self._queue.put(item)

    def extend(self, items: Iterable[WorkItem | Query]) -> int:
        count = 0
        for item in items:
            self.put(item)
            count += 1
        return count

    def get(self, timeout: Optional[float] = None) -> Optional[WorkItem]:
        """Return the next item, or ``None`` when ``timeout`` elapses."""

        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def task_done(self) -> None:
        """Mark one item returned by ``get`` as fully handled."""

        self._queue.task_done()

    @property
    def pending(self) -> int:
        """Items queued or claimed but not yet marked done."""

        with self._queue.mutex:
            return self._queue.unfinished_tasks

    @property
    def depth(self) -> int:
        return self._queue.qsize()

    def __len__(self) -> int:
        return self.depth


__all__ = ["CrawlQueue", "WorkItem"]
