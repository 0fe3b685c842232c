"""File based sink writing one CSV or JSON-lines file per identity."""

from __future__ import annotations

import csv
import json
import os
import tempfile
from pathlib import Path
from typing import Sequence

from ...errors import SinkError
from ...model.query import identity_path
from ...model.records import TopTime
from .base import BaseResultSink


class FileResultSink(BaseResultSink):
    """Write ``root/<identity path>/results.<ext>`` atomically."""

    def __init__(self, root: Path, fmt: str = "csv") -> None:
        if fmt not in ("csv", "json"):
            raise ValueError(f"Unsupported file format: {fmt}")
        self.root = Path(root)
        self.format = fmt
        self.root.mkdir(parents=True, exist_ok=True)

    @property
    def _extension(self) -> str:
        return "jsonl" if self.format == "json" else "csv"

    def path_for(self, identity: str) -> Path:
        return self.root / identity_path(identity) / f"results.{self._extension}"

    def write(self, identity: str, records: Sequence[TopTime]) -> None:
        if not records:
            return
        target = self.path_for(identity)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=target.parent, prefix=".results-", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8", newline="") as stream:
                    if self.format == "json":
                        for record in records:
                            json.dump(record.to_row(), stream, ensure_ascii=False)
                            stream.write("\n")
                    else:
                        writer = csv.DictWriter(stream, fieldnames=TopTime.columns())
                        writer.writeheader()
                        writer.writerows(record.to_row() for record in records)
                os.replace(tmp_name, target)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as exc:
            raise SinkError(f"Cannot write {target}: {exc}") from exc

    def close(self) -> None:
        return


__all__ = ["FileResultSink"]
