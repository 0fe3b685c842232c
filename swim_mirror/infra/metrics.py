"""Prometheus collectors for crawl progress.

Completion is never self-reported: an operator watches ``queue_depth`` and
``in_flight`` reach zero together.
"""

from __future__ import annotations

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, start_http_server

OUTCOMES = ("completed", "split", "requeued", "saturated_leaf", "dropped", "skipped")


class MirrorMetrics:
    """Collectors bound to one registry so tests and runs never collide."""

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        self.registry = registry or CollectorRegistry()
        self.queue_depth = Gauge(
            "swim_mirror_queue_depth", "Queries waiting in the crawl queue", registry=self.registry
        )
        self.in_flight = Gauge(
            "swim_mirror_in_flight", "Queries currently held by a worker", registry=self.registry
        )
        self.alive_workers = Gauge(
            "swim_mirror_alive_workers", "Worker threads still running", registry=self.registry
        )
        self.items = Counter(
            "swim_mirror_items",
            "Processed queue items by outcome",
            ["outcome"],
            registry=self.registry,
        )
        self.fetch_seconds = Histogram(
            "swim_mirror_fetch_seconds",
            "Wall time of one fetch and parse round-trip",
            buckets=(0.5, 1, 2, 5, 10, 20, 30, 60, 120),
            registry=self.registry,
        )
        for outcome in OUTCOMES:
            self.items.labels(outcome=outcome)
        self._server = None
        self._thread = None

    def count(self, outcome: str, amount: int = 1) -> None:
        self.items.labels(outcome=outcome).inc(amount)

    def value(self, outcome: str) -> float:
        return self.registry.get_sample_value("swim_mirror_items_total", {"outcome": outcome}) or 0.0

    def serve(self, port: int, addr: str = "0.0.0.0") -> None:
        """Expose ``/metrics`` on ``port`` from a daemon thread."""

        if self._server is not None:
            return
        self._server, self._thread = start_http_server(port, addr=addr, registry=self.registry)

    def shutdown(self) -> None:
        if self._server is None:
            return
        self._server.shutdown()
        self._server.server_close()
        self._server = None
        self._thread = None

    @property
    def serving(self) -> bool:
        return self._server is not None


__all__ = ["MirrorMetrics", "OUTCOMES"]
