"""Worker threads that drain the crawl queue through their own transport."""

from __future__ import annotations

import random
import threading
import time
from collections import Counter
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Sequence

import structlog

from ..config.models import MirrorConfig, RetryPolicy
from ..errors import (
    MirrorError,
    ParseError,
    SaturationDetected,
    SinkError,
    StoreUnavailable,
    TransportError,
)
from ..infra.metrics import MirrorMetrics
from ..logging_conf import worker_logger
from ..model.records import TopTime
from .crawl_queue import CrawlQueue, WorkItem
from .dedup import DedupStore
from .fetcher import RawDocument, Transport
from .guard import DEFAULT_SATURATION_FRACTION, check_saturation
from .parser import parse_document
from .partitioner import Partitioner, is_proven_empty
from .sink.base import BaseResultSink

LEAF_ERRORS = (TransportError, ParseError, SinkError)


@dataclass(slots=True)
class PoolSettings:
    """Knobs shared by every worker of a pool."""

    saturation_fraction: float = DEFAULT_SATURATION_FRACTION
    delay_range: tuple[float, float] = (5.0, 10.0)
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    poll_interval: float = 0.5

    @classmethod
    def from_config(cls, config: MirrorConfig) -> "PoolSettings":
        return cls(
            saturation_fraction=config.saturation_fraction,
            delay_range=config.pacing.delay_range,
            retry=config.retry,
        )


@dataclass(slots=True)
class WorkerFailure:
    worker: str
    error: str


class Worker(threading.Thread):
    """Own one transport for the lifetime of the pool.

    Per item: Pending -> InFlight -> Completed, Split or Requeued. Leaf errors
    and unexpected exceptions never leave this thread; they are recorded and
    the item is requeued. Only :class:`StoreUnavailable` ends it.
    """

    def __init__(self, pool: "WorkerPool", transport: Transport, index: int) -> None:
        name = getattr(transport, "name", None) or f"worker-{index}"
        super().__init__(name=name, daemon=True)
        self.pool = pool
        self.transport = transport
        self.logger = pool.logger_factory(name)
        self.warmed_up = False

    def run(self) -> None:
        pool = self.pool
        try:
            try:
                self.transport.warm_up()
            except Exception as exc:  # noqa: BLE001
                self.logger.error(
                    "worker_warm_up_failed", error=str(exc), exc_info=not isinstance(exc, MirrorError)
                )
                pool._record_failure(self.name, exc)
                return
            self.warmed_up = True
            self.logger.info("worker_started")
            while not pool.stop_event.is_set():
                item = pool.queue.get(timeout=pool.settings.poll_interval)
                if item is None:
                    continue
                pool._claim()
                try:
                    self._handle(item)
                except StoreUnavailable as exc:
                    self._abandon(item, exc)
                    return
                except Exception as exc:  # noqa: BLE001
                    self.logger.exception("item_failed", identity=item.identity, error=str(exc))
                    try:
                        self._requeue(item, exc, 0.0)
                    except StoreUnavailable as store_exc:
                        self._abandon(item, store_exc)
                        return
                finally:
                    pool._release()
                    pool.queue.task_done()
        finally:
            pool._worker_stopped()
            self.logger.info("worker_stopped")

    def _abandon(self, item: WorkItem, exc: StoreUnavailable) -> None:
        self.pool.queue.put(item)
        self.logger.error("store_unavailable", identity=item.identity, error=str(exc))
        self.pool._record_failure(self.name, exc)

    # ------------------------------------------------------------------
    def _handle(self, item: WorkItem) -> None:
        pool = self.pool
        wait = item.not_before - time.monotonic()
        if wait > 0:
            pool.queue.put(item)
            pool.stop_event.wait(min(wait, pool.settings.poll_interval))
            return
        identity = item.identity
        if pool.store.is_complete(identity):
            pool._count("skipped")
            self.logger.debug("item_skipped", identity=identity)
            return

        start = time.perf_counter()
        records: List[TopTime] = []
        try:
            raw = self.transport.fetch(item.query)
            records = pool.parse(raw)
            pool.metrics.fetch_seconds.observe(time.perf_counter() - start)
            check_saturation(item.query, len(records), pool.settings.saturation_fraction)
        except SaturationDetected as exc:
            self._split(item, records, start, exc)
        except LEAF_ERRORS as exc:
            self._requeue(item, exc, time.perf_counter() - start)
        else:
            self._complete(item, records, start, saturated=False)
        self._pace(start)

    def _complete(
        self, item: WorkItem, records: Sequence[TopTime], start: float, saturated: bool
    ) -> None:
        pool = self.pool
        identity = item.identity
        try:
            pool.sink.write(identity, records)
        except SinkError as exc:
            self._requeue(item, exc, time.perf_counter() - start)
            return
        duration = time.perf_counter() - start
        pool.store.record_success(identity, len(records), duration, saturated=saturated)
        if saturated:
            pool._count("saturated_leaf")
            self.logger.warning(
                "saturated_leaf", identity=identity, count=len(records), cap=item.query.result_cap
            )
        else:
            pool._count("completed")
            self.logger.info(
                "item_completed", identity=identity, count=len(records), duration=round(duration, 3)
            )

    def _split(
        self, item: WorkItem, records: Sequence[TopTime], start: float, signal: SaturationDetected
    ) -> None:
        pool = self.pool
        partitioner = pool.partitioner
        children = partitioner.divide(item.query) or partitioner.divide(item.query, force=True)
        children = [child for child in children if not is_proven_empty(child)]
        if not children:
            self._complete(item, records, start, saturated=True)
            return
        pool.queue.extend(WorkItem(child) for child in children)
        pool._count("split")
        self.logger.info(
            "item_split",
            identity=item.identity,
            count=signal.count,
            threshold=signal.threshold,
            children=len(children),
        )

    def _requeue(self, item: WorkItem, exc: Exception, duration: float) -> None:
        pool = self.pool
        identity = item.identity
        error = f"{type(exc).__name__}: {exc}"
        pool.store.record_error(identity, error, duration)
        failures = item.attempts + 1
        if pool.settings.retry.allows(failures):
            pool.queue.put(item.retried(pool.settings.retry.delay(failures)))
            pool._count("requeued")
            self.logger.warning("item_requeued", identity=identity, attempts=failures, error=error)
        else:
            pool._count("dropped")
            self.logger.error("item_dropped", identity=identity, attempts=failures, error=error)

    def _pace(self, start: float) -> None:
        low, high = self.pool.settings.delay_range
        budget = self.pool.rng.uniform(low, high)
        remaining = budget - (time.perf_counter() - start)
        if remaining > 0:
            self.pool.stop_event.wait(remaining)


class WorkerPool:
    """Fixed set of workers, one per transport, sharing a queue and a store."""

    def __init__(
        self,
        queue: CrawlQueue,
        store: DedupStore,
        sink: BaseResultSink,
        transports: Sequence[Transport],
        partitioner: Partitioner | None = None,
        settings: PoolSettings | None = None,
        metrics: MirrorMetrics | None = None,
        parse: Callable[[RawDocument], List[TopTime]] = parse_document,
        logger_factory: Callable[[str], structlog.BoundLogger] | None = None,
        rng: random.Random | None = None,
    ) -> None:
        if not transports:
            raise ValueError("WorkerPool needs at least one transport")
        if len({id(transport) for transport in transports}) != len(transports):
            raise ValueError("Each worker needs its own transport")
        self.queue = queue
        self.store = store
        self.sink = sink
        self.transports = list(transports)
        self.partitioner = partitioner or Partitioner()
        self.settings = settings or PoolSettings()
        self.metrics = metrics or MirrorMetrics()
        self.parse = parse
        self.logger_factory = logger_factory or worker_logger
        self.rng = rng or random.Random()
        self.stop_event = threading.Event()
        self.workers: List[Worker] = []
        self._lock = threading.Lock()
        self._stats: Counter[str] = Counter()
        self._failures: List[WorkerFailure] = []
        self._in_flight = 0
        self._alive = 0

    # ------------------------------------------------------------------
    def start(self) -> None:
        if self.workers:
            raise RuntimeError("WorkerPool already started")
        self.stop_event.clear()
        self.workers = [
            Worker(self, transport, index) for index, transport in enumerate(self.transports)
        ]
        for worker in self.workers:
            self._worker_started()
            worker.start()

    def stop(self, timeout: float | None = 10.0) -> None:
        self.stop_event.set()
        deadline = None if timeout is None else time.monotonic() + timeout
        for worker in self.workers:
            remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
            worker.join(remaining)
        self.refresh_gauges()

    def wait_idle(self, timeout: float | None = None, poll: float = 0.2) -> bool:
        """Block until nothing is queued or in flight.

        Returns ``False`` on timeout. Raises :class:`MirrorError` when every
        worker has exited while work remains.
        """

        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            self.refresh_gauges()
            if self.idle:
                return True
            if self.workers and self.alive_workers == 0:
                raise MirrorError(
                    f"All workers exited with {self.queue.pending} queries outstanding"
                )
            if deadline is not None and time.monotonic() >= deadline:
                return False
            time.sleep(poll)

    def refresh_gauges(self) -> None:
        self.metrics.queue_depth.set(self.queue.depth)
        self.metrics.in_flight.set(self.in_flight)
        self.metrics.alive_workers.set(self.alive_workers)

    # ------------------------------------------------------------------
    @property
    def idle(self) -> bool:
        return self.queue.pending == 0

    @property
    def in_flight(self) -> int:
        with self._lock:
            return self._in_flight

    @property
    def alive_workers(self) -> int:
        with self._lock:
            return self._alive

    @property
    def failures(self) -> List[WorkerFailure]:
        with self._lock:
            return list(self._failures)

    @property
    def stats(self) -> Dict[str, int]:
        with self._lock:
            return dict(self._stats)

    # ------------------------------------------------------------------
    def _count(self, outcome: str) -> None:
        with self._lock:
            self._stats[outcome] += 1
        self.metrics.count(outcome)

    def _claim(self) -> None:
        with self._lock:
            self._in_flight += 1
        self.metrics.in_flight.inc()
        self.metrics.queue_depth.set(self.queue.depth)

    def _release(self) -> None:
        with self._lock:
            self._in_flight -= 1
        self.metrics.in_flight.dec()

    def _worker_started(self) -> None:
        with self._lock:
            self._alive += 1
        self.metrics.alive_workers.inc()

    def _worker_stopped(self) -> None:
        with self._lock:
            self._alive -= 1
        self.metrics.alive_workers.dec()

    def _record_failure(self, worker: str, exc: Exception) -> None:
        with self._lock:
            self._failures.append(WorkerFailure(worker, f"{type(exc).__name__}: {exc}"))


__all__ = ["LEAF_ERRORS", "PoolSettings", "Worker", "WorkerFailure", "WorkerPool"]
