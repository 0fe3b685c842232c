"""MongoDB sink implementation."""

from __future__ import annotations

from typing import Sequence

from ...errors import SinkError
from ...model.records import TopTime
from .base import BaseResultSink

try:  # noqa: SIM105
    from pymongo import MongoClient
    from pymongo import errors as mongo_errors
except ImportError as exc:
    MongoClient = None  # type: ignore[assignment]
    mongo_errors = None  # type: ignore[assignment]
    _IMPORT_ERROR = exc
else:
    _IMPORT_ERROR = None


class MongoResultSink(BaseResultSink):
    """Replace the documents of an identity inside one collection."""

    def __init__(self, uri: str, database: str, collection: str) -> None:
        if MongoClient is None:  # pragma: no cover - import guard
            raise RuntimeError(f"pymongo is required for MongoResultSink: {_IMPORT_ERROR}")
        self.client = MongoClient(uri)
        self.collection = self.client[database][collection]
        self.collection.create_index("request_id")

    def write(self, identity: str, records: Sequence[TopTime]) -> None:
        documents = [dict(record.to_row(), request_id=identity) for record in records]
        try:
            self.collection.delete_many({"request_id": identity})
            if documents:
                self.collection.insert_many(documents)
        except mongo_errors.PyMongoError as exc:
            raise SinkError(f"Cannot write {identity} to MongoDB: {exc}") from exc

    def close(self) -> None:
        self.client.close()


__all__ = ["MongoResultSink"]
