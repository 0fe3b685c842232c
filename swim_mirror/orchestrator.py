"""Mirror orchestrator wiring seeds, queue, workers, ledger, sinks and progress."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Callable, Iterator, List, Optional

from .config import ConfigRepository, MirrorConfig, SeedConfig
from .engine import CrawlQueue, DedupStore, Partitioner, PoolSettings, TopTimesClient, WorkerPool
from .engine.fetcher import Transport
from .engine.partitioner import is_proven_empty
from .engine.sink import BaseResultSink, build_sink
from .errors import MirrorError
from .infra import MirrorMetrics, ProxyPool, SQLiteManager, UserAgentPool
from .logging_conf import configure_logging
from .model.query import Query
from .scheduler import MirrorScheduler
from .ui import MirrorProgress

TransportFactory = Callable[[str, Optional[str], Optional[str]], Transport]

# Identities from the two seed modes do not overlap, so a mode switch re-fetches covered space.
SEED_MODE_KEY = "seed_mode"
SEED_MODE_ADAPTIVE = "adaptive"
SEED_MODE_ATOMIZED = "atomized"


def _days(date_from: date, date_to: date) -> Iterator[date]:
    current = date_from
    while current <= date_to:
        yield current
        current += timedelta(days=1)


def build_seed_grid(seed: SeedConfig, date_from: date, date_to: date) -> List[Query]:
    """Coarse starting queries: every gender and age band, per day or for the window."""

    if date_to < date_from:
        raise ValueError(f"date_to {date_to} is before date_from {date_from}")
    windows = (
        [(day, day) for day in _days(date_from, date_to)]
        if seed.per_day
        else [(date_from, date_to)]
    )
    return [
        Query(
            date_from=start,
            date_to=end,
            gender=gender,
            age_from=age_from,
            age_to=age_to,
            members_only=seed.members_only,
            best_only=seed.best_only,
            result_cap=seed.result_cap,
        )
        for start, end in windows
        for gender in seed.genders
        for age_from, age_to in seed.age_bands
    ]


@dataclass(slots=True)
class PlanSummary:
    seeds: int
    queries: int
    complete: int

    @property
    def pending(self) -> int:
        return self.queries - self.complete


@dataclass(slots=True)
class RunSummary:
    seeds: int = 0
    enqueued: int = 0
    already_complete: int = 0
    workers: int = 0
    stats: dict[str, int] = field(default_factory=dict)
    failures: list[str] = field(default_factory=list)
    idle: bool = False
    duration: float = 0.0
    error: str | None = None
    mode_changed_from: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and (self.idle or not self.failures)


class MirrorOrchestrator:
    """Central coordinator managing the lifecycle of mirror runs."""

    def __init__(
        self,
        config_repository: ConfigRepository,
        storage: SQLiteManager | None = None,
        scheduler: MirrorScheduler | None = None,
        transport_factory: TransportFactory | None = None,
        sink_factory: Callable[[MirrorConfig], BaseResultSink] | None = None,
        metrics: MirrorMetrics | None = None,
        poll_interval: float = 1.0,
    ) -> None:
        self.config_repository = config_repository
        self.config: MirrorConfig = config_repository.load()
        self.storage = storage or SQLiteManager()
        self.scheduler = scheduler
        self.transport_factory = transport_factory or self._default_transport
        self.sink_factory = sink_factory or self._default_sink
        self.metrics = metrics or MirrorMetrics()
        self.poll_interval = poll_interval
        self.partitioner = Partitioner(split_zones=self.config.split_zones)
        self.logger = configure_logging().bind(component="orchestrator")
        self._store: DedupStore | None = None

    # ------------------------------------------------------------------
    @property
    def store(self) -> DedupStore:
        if self._store is None:
            self._store = DedupStore(self.storage, self.config_repository.store_path())
        return self._store

    def queries(
        self, date_from: date, date_to: date, atomize: bool | None = None
    ) -> tuple[int, List[Query]]:
        """Seed count and the queries a run over the window would start from."""

        seeds = build_seed_grid(self.config.seed, date_from, date_to)
        if self._use_atomize(atomize):
            return len(seeds), self.partitioner.atomize_all(seeds)
        return len(seeds), [seed for seed in seeds if not is_proven_empty(seed)]

    def _use_atomize(self, atomize: bool | None) -> bool:
        return self.config.seed.atomize if atomize is None else atomize

    def plan(self, date_from: date, date_to: date, atomize: bool | None = None) -> PlanSummary:
        seeds, queries = self.queries(date_from, date_to, atomize)
        completed = self.store.completed_ids()
        complete = sum(1 for query in queries if query.identity() in completed)
        return PlanSummary(seeds=seeds, queries=len(queries), complete=complete)

    # ------------------------------------------------------------------
    def run(
        self,
        date_from: date,
        date_to: date,
        until_idle: bool = False,
        timeout: float | None = None,
        clients: int | None = None,
        atomize: bool | None = None,
        progress: MirrorProgress | None = None,
    ) -> RunSummary:
        """Mirror ``[date_from, date_to]``.

        Without ``until_idle`` the call blocks until interrupted, ``timeout``
        elapses or every worker has exited, since the queue is never closed.
        """

        started = time.monotonic()
        seeds, queries = self.queries(date_from, date_to, atomize)
        completed = self.store.completed_ids()
        pending = [query for query in queries if query.identity() not in completed]
        summary = RunSummary(seeds=seeds, already_complete=len(queries) - len(pending))
        mode = SEED_MODE_ATOMIZED if self._use_atomize(atomize) else SEED_MODE_ADAPTIVE
        previous = self.store.get_meta(SEED_MODE_KEY)
        if previous is not None and previous != mode:
            summary.mode_changed_from = previous
            self.logger.warning("seed_mode_changed", previous=previous, current=mode)
        self.store.set_meta(SEED_MODE_KEY, mode)

        queue = CrawlQueue()
        summary.enqueued = queue.extend(pending)
        self.logger.info(
            "run_planned",
            date_from=date_from.isoformat(),
            date_to=date_to.isoformat(),
            seeds=seeds,
            enqueued=summary.enqueued,
            already_complete=summary.already_complete,
        )

        transports = self._build_transports(clients or self.config.identity.clients)
        summary.workers = len(transports)
        sink = self.sink_factory(self.config)
        pool = WorkerPool(
            queue,
            self.store,
            sink,
            transports,
            partitioner=self.partitioner,
            settings=PoolSettings.from_config(self.config),
            metrics=self.metrics,
        )
        if self.config.metrics_port is not None and not self.metrics.serving:
            self.metrics.serve(self.config.metrics_port)
        progress = progress or MirrorProgress(enabled=False)
        try:
            progress.start()
            pool.start()
            summary.idle = self._watch(pool, progress, until_idle, timeout)
        except MirrorError as exc:
            summary.error = str(exc)
            self.logger.error("run_aborted", error=str(exc))
        except KeyboardInterrupt:
            self.logger.warning("run_interrupted", queue_depth=queue.depth)
        finally:
            pool.stop()
            progress.close()
            for transport in transports:
                transport.close()
            sink.close()

        summary.stats = pool.stats
        summary.failures = [f"{failure.worker}: {failure.error}" for failure in pool.failures]
        summary.duration = time.monotonic() - started
        self.logger.info(
            "run_finished",
            idle=summary.idle,
            stats=summary.stats,
            failures=len(summary.failures),
            duration=round(summary.duration, 3),
        )
        return summary

    def _watch(
        self,
        pool: WorkerPool,
        progress: MirrorProgress,
        until_idle: bool,
        timeout: float | None,
    ) -> bool:
        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            progress.update(pool.queue.depth, pool.in_flight, pool.alive_workers, pool.stats)
            if until_idle:
                if pool.wait_idle(timeout=self.poll_interval, poll=min(0.2, self.poll_interval)):
                    return True
            else:
                if pool.alive_workers == 0:
                    return pool.idle
                time.sleep(self.poll_interval)
            if deadline is not None and time.monotonic() >= deadline:
                return pool.idle

    # ------------------------------------------------------------------
    def refresh(self, today: date | None = None) -> RunSummary:
        """Invalidate and re-mirror the trailing window ending ``lag_days`` ago."""

        window_from, window_to = self.config.refresh.window(today or date.today())
        invalidated = self.store.invalidate_window(window_from, window_to)
        self.logger.info(
            "refresh_started",
            date_from=window_from.isoformat(),
            date_to=window_to.isoformat(),
            invalidated=invalidated,
        )
        return self.run(window_from, window_to, until_idle=True)

    def register_refresh(self, start: bool = True) -> bool:
        """Schedule the refresh job; ``False`` when ``refresh.enabled`` is off."""

        if not self.config.refresh.enabled:
            self.logger.warning("refresh_disabled")
            return False
        if self.scheduler is None:
            self.scheduler = MirrorScheduler()
        self.scheduler.schedule_refresh(self.config.refresh.schedule, self.refresh)
        if start:
            self.scheduler.start()
        return True

    def invalidate(self, date_from: date, date_to: date) -> int:
        return self.store.invalidate_window(date_from, date_to)

    def reset(self) -> None:
        self.store.reset()

    def close(self) -> None:
        if self.scheduler is not None:
            self.scheduler.shutdown()
        self.metrics.shutdown()
        self.storage.close_all()

    # ------------------------------------------------------------------
    def _build_transports(self, count: int) -> List[Transport]:
        identity = self.config.identity
        proxy_file = None
        if identity.proxy_file is not None:
            proxy_file = self.config.resolve_path(
                identity.proxy_file, self.config_repository.locator.project_root
            )
            if not proxy_file.is_file():
                raise MirrorError(f"Proxy file not found: {proxy_file}")
        proxy_pool = ProxyPool(
            identity.resolved_proxies(count), file_path=proxy_file, shuffle=identity.shuffle_proxies
        )
        if proxy_pool.empty and proxy_file is not None:
            self.logger.warning("proxy_file_empty", path=str(proxy_file))
        if not proxy_pool.empty and count > len(proxy_pool):
            self.logger.warning("clients_capped", requested=count, proxies=len(proxy_pool))
            count = len(proxy_pool)
        proxies = proxy_pool.assign(count)
        user_agents = UserAgentPool(identity.resolved_user_agents()).assign(count)
        return [
            self.transport_factory(f"client-{index}", proxy, user_agent)
            for index, (proxy, user_agent) in enumerate(zip(proxies, user_agents))
        ]

    def _default_transport(self, name: str, proxy: str | None, user_agent: str | None) -> Transport:
        return TopTimesClient(
            name=name, proxy=proxy, user_agent=user_agent, timeout=self.config.request_timeout
        )

    def _default_sink(self, config: MirrorConfig) -> BaseResultSink:
        sink_config = config.sink
        if sink_config.path is not None:
            root = self.config_repository.locator.project_root
            sink_config = sink_config.model_copy(
                update={"path": config.resolve_path(sink_config.path, root)}
            )
        return build_sink(sink_config, self.config_repository.results_dir())


__all__ = [
    "MirrorOrchestrator",
    "PlanSummary",
    "RunSummary",
    "SEED_MODE_ADAPTIVE",
    "SEED_MODE_ATOMIZED",
    "SEED_MODE_KEY",
    "TransportFactory",
    "build_seed_grid",
]
