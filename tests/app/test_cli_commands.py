from __future__ import annotations

from datetime import date
from types import SimpleNamespace

from typer.testing import CliRunner

from swim_mirror.app import AppState, app
from swim_mirror.config import RefreshConfig
from swim_mirror.engine import DedupRecord
from swim_mirror.errors import MirrorError
from swim_mirror.orchestrator import PlanSummary, RunSummary


class StubOrchestrator:
    def __init__(self, summary: RunSummary | None = None) -> None:
        self.summary = summary or RunSummary(seeds=1, enqueued=3, workers=2, stats={"completed": 3}, idle=True)
        self.calls: list[tuple] = []
        self.config = SimpleNamespace(enable_progress_bar=False, refresh=RefreshConfig(enabled=True))
        self.scheduler = SimpleNamespace(
            list_jobs=lambda: [
                {"id": "mirror::refresh", "next_run_time": "soon", "trigger": "cron[hour='3']"}
            ]
        )
        self.store = SimpleNamespace(
            summary=lambda: {"success": 12, "error": 3, "saturated": 1},
            history=self._history,
        )

    def _history(self, state=None, limit=50):
        self.calls.append(("history", state, limit))
        return [
            DedupRecord(
                id="male_scy_fr_50",
                state="error",
                num_results=None,
                error="TransportError: 403",
                duration=0.3,
                saturated=False,
                updated_at="2024-06-01 10:00:00",
            )
        ]

    def run(self, date_from, date_to, **kwargs) -> RunSummary:
        self.calls.append(("run", date_from, date_to, kwargs))
        return self.summary

    def plan(self, date_from, date_to, atomize=None) -> PlanSummary:
        self.calls.append(("plan", date_from, date_to, atomize))
        return PlanSummary(seeds=34, queries=5512, complete=512)

    def invalidate(self, date_from, date_to) -> int:
        self.calls.append(("invalidate", date_from, date_to))
        return 7

    def reset(self) -> None:
        self.calls.append(("reset",))

    def register_refresh(self, start: bool = True) -> None:
        self.calls.append(("register_refresh", start))

    def close(self) -> None:
        self.calls.append(("close",))


def make_state(summary: RunSummary | None = None) -> AppState:
    return AppState(
        repository=SimpleNamespace(),
        orchestrator=StubOrchestrator(summary),
        storage=SimpleNamespace(),
    )


def _invoke(monkeypatch, args, state=None, **kwargs):
    state = state or make_state()
    monkeypatch.setattr("swim_mirror.app.build_state", lambda verbose: state)
    result = CliRunner().invoke(app, args, **kwargs)
    return state, result


def test_cli_run_parses_window_and_options(monkeypatch) -> None:
    state, result = _invoke(
        monkeypatch, ["run", "2024-01-01", "2024-01-31", "--clients", "4", "--until-idle", "--atomize"]
    )
    assert result.exit_code == 0, result.stdout
    name, date_from, date_to, kwargs = state.orchestrator.calls[0]
    assert name == "run"
    assert (date_from, date_to) == (date(2024, 1, 1), date(2024, 1, 31))
    assert kwargs["clients"] == 4
    assert kwargs["until_idle"] is True
    assert kwargs["atomize"] is True
    assert kwargs["timeout"] is None
    assert "Run summary" in result.stdout
    assert "Completed" in result.stdout


def test_cli_run_warns_when_the_seed_mode_changed(monkeypatch) -> None:
    summary = RunSummary(seeds=1, enqueued=1, workers=1, idle=True, mode_changed_from="atomized")
    _, result = _invoke(monkeypatch, ["run", "2024-01-01", "2024-01-02"], state=make_state(summary))
    assert result.exit_code == 0, result.stdout
    assert "Seed mode changed" in result.stdout


def test_cli_run_fails_when_the_run_is_not_ok(monkeypatch) -> None:
    summary = RunSummary(seeds=1, enqueued=1, workers=1, error="All workers exited")
    _, result = _invoke(monkeypatch, ["run", "2024-01-01", "2024-01-02"], state=make_state(summary))
    assert result.exit_code == 1
    assert "All workers exited" in result.stdout


def test_cli_rejects_reversed_or_malformed_windows(monkeypatch) -> None:
    state, result = _invoke(monkeypatch, ["run", "2024-02-01", "2024-01-01"])
    assert result.exit_code == 1
    assert state.orchestrator.calls == []
    _, result = _invoke(monkeypatch, ["plan", "01/02/2024", "2024-01-03"])
    assert result.exit_code == 2


def test_cli_plan(monkeypatch) -> None:
    state, result = _invoke(monkeypatch, ["plan", "2024-01-01", "2024-01-02", "--no-atomize"])
    assert result.exit_code == 0, result.stdout
    assert state.orchestrator.calls == [("plan", date(2024, 1, 1), date(2024, 1, 2), False)]
    assert "5512" in result.stdout
    assert "5000" in result.stdout


def test_cli_status(monkeypatch) -> None:
    _, result = _invoke(monkeypatch, ["status"])
    assert result.exit_code == 0, result.stdout
    assert "Request ledger" in result.stdout
    assert "12" in result.stdout


def test_cli_history(monkeypatch) -> None:
    state, result = _invoke(monkeypatch, ["history", "--state", "error", "--limit", "5"])
    assert result.exit_code == 0, result.stdout
    assert state.orchestrator.calls == [("history", "error", 5)]
    assert "403" in result.stdout

    _, result = _invoke(monkeypatch, ["history", "--state", "pending"])
    assert result.exit_code == 1


def test_cli_invalidate_requires_confirmation(monkeypatch) -> None:
    state, result = _invoke(monkeypatch, ["invalidate", "2024-01-01", "2024-01-31"], input="n\n")
    assert result.exit_code == 0
    assert state.orchestrator.calls == []
    assert "Cancelled" in result.stdout

    state, result = _invoke(monkeypatch, ["invalidate", "2024-01-01", "2024-01-31", "--yes"])
    assert result.exit_code == 0, result.stdout
    assert state.orchestrator.calls == [("invalidate", date(2024, 1, 1), date(2024, 1, 31))]
    assert "Invalidated 7 records" in result.stdout


def test_cli_reset(monkeypatch) -> None:
    state, result = _invoke(monkeypatch, ["reset", "--yes"])
    assert result.exit_code == 0, result.stdout
    assert state.orchestrator.calls == [("reset",)]


def test_cli_schedule_dry_run(monkeypatch) -> None:
    state, result = _invoke(monkeypatch, ["schedule", "--dry-run"])
    assert result.exit_code == 0, result.stdout
    assert state.orchestrator.calls == [("register_refresh", False)]
    assert "mirror::refresh" in result.stdout
    assert "last 30 days" in result.stdout


def test_cli_schedule_refuses_when_refresh_is_disabled(monkeypatch) -> None:
    state = make_state()
    state.orchestrator.config.refresh = RefreshConfig()
    _, result = _invoke(monkeypatch, ["schedule", "--dry-run"], state=state)
    assert result.exit_code == 1
    assert state.orchestrator.calls == []
    assert "Refresh is disabled" in result.stdout


def test_cli_log_commands(monkeypatch, isolated_home) -> None:
    workers = isolated_home / "logs" / "workers"
    workers.mkdir(parents=True, exist_ok=True)
    (workers / "client-3.log").write_text("worker line\n", encoding="utf-8")
    (isolated_home / "logs" / "mirror.log").write_text("main line\n", encoding="utf-8")

    _, result = _invoke(monkeypatch, ["log", "list"])
    assert result.exit_code == 0, result.stdout
    assert "client-3.log" in result.stdout

    _, result = _invoke(monkeypatch, ["log", "show", "client-3"])
    assert "worker line" in result.stdout
    _, result = _invoke(monkeypatch, ["log", "show"])
    assert "main line" in result.stdout
    _, result = _invoke(monkeypatch, ["log", "show", "client-9"])
    assert result.exit_code == 1


def test_cli_reports_configuration_errors(monkeypatch) -> None:
    def broken(verbose: bool) -> AppState:
        raise MirrorError("clients must be >= 1")

    monkeypatch.setattr("swim_mirror.app.build_state", broken)
    result = CliRunner().invoke(app, ["status"])
    assert result.exit_code == 1
    assert "Invalid configuration" in result.stdout
