"""Shared fixtures: an isolated project home, a fake remote and fake workers."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Any, Callable, Iterable, Sequence

import pytest

from swim_mirror.config import ConfigLocator, ConfigRepository, MirrorConfig
from swim_mirror.engine import DedupStore, PoolSettings, RawDocument
from swim_mirror.engine.sink import BaseResultSink
from swim_mirror.errors import SinkError, TransportError
from swim_mirror.infra import SQLiteManager
from swim_mirror.model import Course, Distance, Gender, Query, Stroke, SwimEvent, TopTime, Zone


@dataclass(frozen=True)
class SwimRow:
    """One swim known to the fake remote, with the facets it can be searched by."""

    day: date
    gender: Gender
    event: SwimEvent
    age: int
    zone: Zone = Zone.CENTRAL
    name: str = "Swimmer"


def _cell(value: Any) -> str:
    return f'<td class="usas-hide-mobile">{value}</td>'


class FakeRemote:
    """In-memory stand-in for the search endpoint, truncating at ``result_cap``."""

    def __init__(self, rows: Iterable[SwimRow] = ()) -> None:
        self.rows = list(rows)
        self.calls: list[str] = []
        self._lock = threading.Lock()

    @staticmethod
    def matches(query: Query, row: SwimRow) -> bool:
        if query.gender is not Gender.MIXED and row.gender is not query.gender:
            return False
        if query.course is not Course.ALL and row.event.course is not query.course:
            return False
        if query.stroke is not Stroke.ALL and row.event.stroke is not query.stroke:
            return False
        if query.distance is not Distance.ALL and row.event.distance is not query.distance:
            return False
        if not query.date_from <= row.day <= query.date_to:
            return False
        if query.age_from is not None and row.age < query.age_from:
            return False
        if query.age_to is not None and row.age > query.age_to:
            return False
        return query.zone is Zone.ALL or row.zone is query.zone

    def answer(self, query: Query) -> list[SwimRow]:
        with self._lock:
            self.calls.append(query.identity())
        found = [row for row in self.rows if self.matches(query, row)]
        return found[: query.result_cap]

    @staticmethod
    def render(rows: Sequence[SwimRow]) -> str:
        body = []
        for rank, row in enumerate(rows, start=1):
            cells = [
                rank,
                "1:02.50",
                row.name,
                "No",
                row.age,
                "PC",
                str(row.event),
                "Team",
                f"Meet {row.day.isoformat()}",
                "AA",
                "Yes",
                "",
            ]
            body.append("<tr>" + "".join(_cell(value) for value in cells) + "</tr>")
        return "<table><tbody>" + "".join(body) + "</tbody></table>"


class FakeTransport:
    """Transport answering from a :class:`FakeRemote`.

    ``failures`` maps an identity to the number of times its fetch fails
    before succeeding. Failures raise ``error_type``.
    """

    def __init__(
        self,
        name: str,
        remote: FakeRemote,
        failures: dict[str, int] | None = None,
        warm_up_error: Exception | None = None,
        error_type: type[Exception] = TransportError,
    ) -> None:
        self.name = name
        self.remote = remote
        self.failures = dict(failures or {})
        self.warm_up_error = warm_up_error
        self.error_type = error_type
        self.fetched: list[str] = []
        self.closed = False
        self._lock = threading.Lock()

    def warm_up(self) -> None:
        if self.warm_up_error is not None:
            raise self.warm_up_error

    def fetch(self, query: Query) -> RawDocument:
        identity = query.identity()
        with self._lock:
            self.fetched.append(identity)
            remaining = self.failures.get(identity, 0)
            if remaining:
                self.failures[identity] = remaining - 1
                raise self.error_type(f"simulated failure for {identity}")
        rows = self.remote.answer(query)
        return RawDocument(
            identity=identity,
            gender=query.gender,
            status_code=200,
            text=self.remote.render(rows),
        )

    def close(self) -> None:
        self.closed = True


class MemorySink(BaseResultSink):
    """Keep written record sets in a dict; optionally fail the first writes."""

    def __init__(self, fail_times: int = 0) -> None:
        self.written: dict[str, list[TopTime]] = {}
        self.writes = 0
        self.fail_times = fail_times
        self.closed = False
        self._lock = threading.Lock()

    def write(self, identity: str, records: Sequence[TopTime]) -> None:
        with self._lock:
            self.writes += 1
            if self.fail_times:
                self.fail_times -= 1
                raise SinkError("disk full")
            self.written[identity] = list(records)

    def close(self) -> None:
        self.closed = True

    @property
    def total(self) -> int:
        return sum(len(records) for records in self.written.values())


def swim_event(text: str) -> SwimEvent:
    return SwimEvent.parse(text)


@pytest.fixture(autouse=True)
def isolated_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.setenv("SWIM_MIRROR_HOME", str(tmp_path))
    return tmp_path


@pytest.fixture
def temp_config_repository(tmp_path: Path) -> Iterable[ConfigRepository]:
    locator = ConfigLocator(project_root=tmp_path)
    repository = ConfigRepository(locator)
    yield repository


@pytest.fixture
def sample_mirror_config() -> Callable[..., MirrorConfig]:
    def _builder(**overrides: Any) -> MirrorConfig:
        base: dict[str, Any] = {
            "identity": {"clients": 2, "proxy_template": None},
            "pacing": {"delay_range": [0, 0]},
            "seed": {"genders": ["Mixed"], "age_bands": None, "per_day": False},
            "enable_progress_bar": False,
        }
        base.update(overrides)
        return MirrorConfig.model_validate(base)

    return _builder


@pytest.fixture
def fast_settings() -> PoolSettings:
    return PoolSettings(delay_range=(0.0, 0.0), poll_interval=0.05)


@pytest.fixture
def dedup_store(tmp_path: Path) -> Iterable[DedupStore]:
    manager = SQLiteManager()
    yield DedupStore(manager, tmp_path / "history" / "requests.db")
    manager.close_all()


@pytest.fixture
def fake_remote() -> Callable[..., FakeRemote]:
    return FakeRemote


@pytest.fixture
def fake_transport() -> Callable[..., FakeTransport]:
    return FakeTransport


@pytest.fixture
def memory_sink() -> Callable[..., MemorySink]:
    return MemorySink


@pytest.fixture
def swim_row() -> Callable[..., SwimRow]:
    def _builder(
        day: date,
        event: str = "100 FR SCY",
        gender: Gender = Gender.MALE,
        age: int = 12,
        **overrides: Any,
    ) -> SwimRow:
        return SwimRow(day=day, gender=gender, event=swim_event(event), age=age, **overrides)

    return _builder
