"""Write accepted record sets to a SQLite table."""

from __future__ import annotations

import sqlite3
from pathlib import Path
from threading import Lock
from typing import Sequence

from ...errors import SinkError
from ...model.records import TopTime
from .base import BaseResultSink

_COLUMNS = (
    "rank",
    "time",
    "relay",
    "swimmer_name",
    "foreign",
    "age",
    "lsc",
    "event",
    "team_name",
    "meet_name",
    "time_standard",
    "sanctioned",
    "gender",
    "distance",
    "stroke",
    "course",
)


class SQLiteResultSink(BaseResultSink):
    """Persist records in ``top_times`` keyed by request identity."""

    def __init__(self, path: Path, table: str = "top_times") -> None:
        self.path = Path(path)
        self.table = table
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = Lock()
        self.conn = sqlite3.connect(self.path, check_same_thread=False)
        self.conn.execute(
            f"""
            CREATE TABLE IF NOT EXISTS {self.table} (
                request_id TEXT NOT NULL,
                rank INTEGER,
                time REAL,
                relay INTEGER,
                swimmer_name TEXT,
                "foreign" INTEGER,
                age INTEGER,
                lsc TEXT,
                event TEXT,
                team_name TEXT,
                meet_name TEXT,
                time_standard TEXT,
                sanctioned INTEGER,
                gender TEXT,
                distance INTEGER,
                stroke TEXT,
                course TEXT
            )
            """
        )
        self.conn.execute(
            f"CREATE INDEX IF NOT EXISTS idx_{self.table}_request ON {self.table}(request_id)"
        )
        self.conn.commit()

    def write(self, identity: str, records: Sequence[TopTime]) -> None:
        columns = ", ".join(f'"{name}"' for name in ("request_id",) + _COLUMNS)
        placeholders = ", ".join("?" for _ in range(len(_COLUMNS) + 1))
        rows = []
        for record in records:
            row = record.to_row()
            rows.append((identity,) + tuple(row[name] for name in _COLUMNS))
        with self._lock:
            try:
                with self.conn:
                    self.conn.execute(f"DELETE FROM {self.table} WHERE request_id = ?", (identity,))
                    self.conn.executemany(
                        f"INSERT INTO {self.table}({columns}) VALUES ({placeholders})", rows
                    )
            except sqlite3.Error as exc:
                raise SinkError(f"Cannot write {identity} to {self.path}: {exc}") from exc

    def count(self, identity: str | None = None) -> int:
        with self._lock:
            if identity is None:
                row = self.conn.execute(f"SELECT COUNT(*) FROM {self.table}").fetchone()
            else:
                row = self.conn.execute(
                    f"SELECT COUNT(*) FROM {self.table} WHERE request_id = ?", (identity,)
                ).fetchone()
        return row[0]

    def close(self) -> None:
        with self._lock:
            self.conn.close()


__all__ = ["SQLiteResultSink"]
