"""Request ledger: the single source of truth for resume and dedup."""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from threading import Lock
from typing import Dict, Iterable, Iterator, List, Optional, Set

from ..errors import InvalidFacet, StoreUnavailable
from ..infra.storage import SQLiteManager
from ..model.query import parse_identity

STATE_SUCCESS = "success"
STATE_ERROR = "error"


@dataclass(slots=True)
class DedupRecord:
    id: str
    state: str
    num_results: Optional[int]
    error: Optional[str]
    duration: Optional[float]
    saturated: bool
    updated_at: str

    @property
    def is_success(self) -> bool:
        return self.state == STATE_SUCCESS

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "DedupRecord":
        return cls(
            id=row["id"],
            state=row["state"],
            num_results=row["num_results"],
            error=row["error"],
            duration=row["duration"],
            saturated=bool(row["saturated"]),
            updated_at=row["updated_at"],
        )


class DedupStore:
    """Persist one record per request identity.

    A success overwrites anything; an error is only inserted when the identity
    has no record yet, so an error can never shadow a success. All statements
    run on one connection serialized by a lock.
    """

    def __init__(self, manager: SQLiteManager, db_path: Path) -> None:
        self.manager = manager
        self.db_path = Path(db_path)
        self._lock = Lock()
        with self._guard():
            self._conn = self.manager.connect(self.db_path)

    @contextmanager
    def _guard(self) -> Iterator[None]:
        try:
            yield
        except sqlite3.Error as exc:
            raise StoreUnavailable(f"{self.db_path}: {exc}") from exc

    # ------------------------------------------------------------------
    def is_complete(self, request_id: str) -> bool:
        with self._lock, self._guard():
            cur = self._conn.execute(
                "SELECT 1 FROM requests WHERE id = ? AND state = ?", (request_id, STATE_SUCCESS)
            )
            return cur.fetchone() is not None

    def completed_ids(self) -> Set[str]:
        with self._lock, self._guard():
            cur = self._conn.execute("SELECT id FROM requests WHERE state = ?", (STATE_SUCCESS,))
            return {row["id"] for row in cur.fetchall()}

    def record_success(
        self, request_id: str, count: int, duration: float, saturated: bool = False
    ) -> None:
        with self._lock, self._guard():
            self._conn.execute(
                """
                INSERT INTO requests(id, state, num_results, error, duration, saturated, updated_at)
                VALUES (?, ?, ?, NULL, ?, ?, datetime('now'))
                ON CONFLICT(id) DO UPDATE SET
                    state = excluded.state,
                    num_results = excluded.num_results,
                    error = NULL,
                    duration = excluded.duration,
                    saturated = excluded.saturated,
                    updated_at = excluded.updated_at
                """,
                (request_id, STATE_SUCCESS, count, duration, int(saturated)),
            )
            self._conn.commit()

    def record_error(self, request_id: str, error: str, duration: float) -> None:
        with self._lock, self._guard():
            self._conn.execute(
                """
                INSERT INTO requests(id, state, num_results, error, duration, saturated, updated_at)
                VALUES (?, ?, NULL, ?, ?, 0, datetime('now'))
                ON CONFLICT(id) DO NOTHING
                """,
                (request_id, STATE_ERROR, error, duration),
            )
            self._conn.commit()

    def get(self, request_id: str) -> Optional[DedupRecord]:
        with self._lock, self._guard():
            cur = self._conn.execute("SELECT * FROM requests WHERE id = ?", (request_id,))
            row = cur.fetchone()
        return DedupRecord.from_row(row) if row is not None else None

    def summary(self) -> Dict[str, int]:
        with self._lock, self._guard():
            rows = self._conn.execute(
                "SELECT state, COUNT(*) AS total, SUM(saturated) AS saturated FROM requests GROUP BY state"
            ).fetchall()
        summary = {STATE_SUCCESS: 0, STATE_ERROR: 0, "saturated": 0}
        for row in rows:
            summary[row["state"]] = row["total"]
            summary["saturated"] += row["saturated"] or 0
        return summary

    def history(self, state: Optional[str] = None, limit: int = 50) -> List[DedupRecord]:
        query = "SELECT * FROM requests"
        params: tuple = ()
        if state is not None:
            query += " WHERE state = ?"
            params = (state,)
        query += " ORDER BY updated_at DESC, rowid DESC LIMIT ?"
        with self._lock, self._guard():
            rows = self._conn.execute(query, params + (limit,)).fetchall()
        return [DedupRecord.from_row(row) for row in rows]

    def get_meta(self, key: str) -> Optional[str]:
        with self._lock, self._guard():
            row = self._conn.execute("SELECT value FROM ledger_meta WHERE key = ?", (key,)).fetchone()
        return row["value"] if row is not None else None

    def set_meta(self, key: str, value: str) -> None:
        with self._lock, self._guard():
            self._conn.execute(
                "INSERT INTO ledger_meta(key, value) VALUES (?, ?) "
                "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
                (key, value),
            )
            self._conn.commit()

    # ------------------------------------------------------------------
    def invalidate(self, request_ids: Iterable[str]) -> int:
        ids = [(request_id,) for request_id in request_ids]
        if not ids:
            return 0
        with self._lock, self._guard():
            before = self._conn.total_changes
            self._conn.executemany("DELETE FROM requests WHERE id = ?", ids)
            self._conn.commit()
            return self._conn.total_changes - before

    def invalidate_window(self, date_from: date, date_to: date) -> int:
        """Drop every record whose date range overlaps ``[date_from, date_to]``."""

        with self._lock, self._guard():
            ids = [row["id"] for row in self._conn.execute("SELECT id FROM requests").fetchall()]
        matching = []
        for request_id in ids:
            try:
                query = parse_identity(request_id)
            except InvalidFacet:
                continue
            if query.date_from <= date_to and query.date_to >= date_from:
                matching.append(request_id)
        return self.invalidate(matching)

    def reset(self) -> None:
        with self._lock, self._guard():
            self.manager.reset(self.db_path)
            self._conn = self.manager.connect(self.db_path)


__all__ = ["DedupRecord", "DedupStore", "STATE_ERROR", "STATE_SUCCESS"]
