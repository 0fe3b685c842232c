"""Result sink SPI, implementations and factory."""

from __future__ import annotations

from pathlib import Path

from ...config.models import SinkConfig
from .base import BaseResultSink
from .file_sink import FileResultSink
from .mongo_sink import MongoResultSink
from .sqlite_sink import SQLiteResultSink


def build_sink(config: SinkConfig, results_dir: Path) -> BaseResultSink:
    """Instantiate the sink selected by ``config.format``."""

    if config.format in ("csv", "json"):
        return FileResultSink(config.path or results_dir, fmt=config.format)
    if config.format == "sqlite":
        return SQLiteResultSink(config.path or results_dir / "top_times.db")
    if config.format == "mongodb":
        return MongoResultSink(config.mongo_uri, config.mongo_database, config.mongo_collection)
    raise ValueError(f"Unsupported sink format: {config.format}")


__all__ = [
    "BaseResultSink",
    "FileResultSink",
    "MongoResultSink",
    "SQLiteResultSink",
    "build_sink",
]
