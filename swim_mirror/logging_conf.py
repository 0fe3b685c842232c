"""Logging configuration built around structlog JSON logging."""

from __future__ import annotations

import logging
import logging.config
import os
from pathlib import Path
from typing import Iterable

import structlog

_LOGGING_INITIALISED = False
ROOT_LOGGER = "swim_mirror"


def _default_log_dir() -> Path:
    env_root = os.environ.get("SWIM_MIRROR_HOME")
    root = Path(env_root).expanduser() if env_root else Path.cwd()
    return root.resolve() / "logs"


def configure_logging(verbose: bool = False) -> structlog.BoundLogger:
    """Configure structlog + stdlib handlers and return application logger."""

    global _LOGGING_INITIALISED
    log_dir = _default_log_dir()
    error_log = log_dir / "error.log"
    mirror_log = log_dir / "mirror.log"
    workers_dir = log_dir / "workers"
    workers_dir.mkdir(parents=True, exist_ok=True)
    error_log.touch(exist_ok=True)
    mirror_log.touch(exist_ok=True)

    if not _LOGGING_INITIALISED:
        level = "DEBUG" if verbose else "INFO"
        logging.config.dictConfig(
            {
                "version": 1,
                "disable_existing_loggers": False,
                "formatters": {
                    "json": {
                        "()": "pythonjsonlogger.json.JsonFormatter",
                        "fmt": "%(asctime)s %(levelname)s %(name)s %(message)s",
                    }
                },
                "handlers": {
                    "console": {
                        "class": "logging.StreamHandler",
                        "level": level,
                        "formatter": "json",
                    },
                    "mirror_file": {
                        "class": "logging.FileHandler",
                        "level": "INFO",
                        "filename": str(mirror_log),
                        "formatter": "json",
                        "encoding": "utf-8",
                    },
                    "error_file": {
                        "class": "logging.FileHandler",
                        "level": "ERROR",
                        "filename": str(error_log),
                        "formatter": "json",
                        "encoding": "utf-8",
                    },
                },
                "loggers": {
                    ROOT_LOGGER: {
                        "handlers": ["console", "mirror_file", "error_file"],
                        "level": level,
                        "propagate": False,
                    },
                },
            }
        )

        # structlog renders the event dict into stdlib kwargs; JSON happens in the handler.
        structlog.configure(
            processors=[
                structlog.contextvars.merge_contextvars,
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.stdlib.add_log_level,
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
                structlog.stdlib.render_to_log_kwargs,
            ],
            logger_factory=structlog.stdlib.LoggerFactory(),
            wrapper_class=structlog.stdlib.BoundLogger,
            cache_logger_on_first_use=True,
        )
        _LOGGING_INITIALISED = True
    return structlog.get_logger(ROOT_LOGGER)


def worker_logger(worker_name: str, verbose: bool = False) -> structlog.BoundLogger:
    """Return a logger bound to one worker, with its own file under logs/workers."""

    configure_logging(verbose)
    worker_log_path = _default_log_dir() / "workers" / f"{worker_name}.log"
    worker_log_path.parent.mkdir(parents=True, exist_ok=True)

    logger_name = f"{ROOT_LOGGER}.worker.{worker_name}"
    py_logger = logging.getLogger(logger_name)
    if not any(
        isinstance(handler, logging.FileHandler) and handler.baseFilename == str(worker_log_path)
        for handler in py_logger.handlers
    ):
        file_handler = logging.FileHandler(worker_log_path, encoding="utf-8")
        root_logger = logging.getLogger(ROOT_LOGGER)
        if root_logger.handlers:
            file_handler.setFormatter(root_logger.handlers[0].formatter)
        file_handler.setLevel(logging.INFO)
        py_logger.addHandler(file_handler)

    return structlog.get_logger(logger_name).bind(worker=worker_name)


def main_log_path() -> Path:
    return _default_log_dir() / "mirror.log"


def tail_log(path: Path, line_count: int = 100) -> list[str]:
    """Return the last N lines from a log file."""

    if not path.exists():
        return []
    with path.open("r", encoding="utf-8", errors="ignore") as stream:
        lines = stream.readlines()
    return lines[-line_count:]


def available_worker_logs() -> Iterable[Path]:
    """Yield available worker log file paths."""

    workers_dir = _default_log_dir() / "workers"
    if not workers_dir.exists():
        return []
    return sorted(p for p in workers_dir.glob("*.log"))


__all__ = [
    "available_worker_logs",
    "configure_logging",
    "main_log_path",
    "tail_log",
    "worker_logger",
]
