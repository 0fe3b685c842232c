"""Engine components: partition -> queue -> workers -> fetch/parse -> sink + ledger."""

from .crawl_queue import CrawlQueue, WorkItem
from .dedup import DedupRecord, DedupStore
from .fetcher import RawDocument, TopTimesClient, Transport, build_form
from .guard import check_saturation, saturation_threshold
from .parser import parse_document, parse_top_times
from .partitioner import Partitioner
from .worker_pool import PoolSettings, WorkerPool

__all__ = [
    "CrawlQueue",
    "DedupRecord",
    "DedupStore",
    "Partitioner",
    "PoolSettings",
    "RawDocument",
    "TopTimesClient",
    "Transport",
    "WorkItem",
    "WorkerPool",
    "build_form",
    "check_saturation",
    "parse_document",
    "parse_top_times",
    "saturation_threshold",
]
