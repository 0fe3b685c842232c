"""Typer CLI entrypoint for swim-mirror."""

from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterable, Optional

import typer
from pydantic import ValidationError
from rich import box
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .config import ConfigRepository, ScheduleConfig, ScheduleType
from .errors import MirrorError
from .infra import SQLiteManager
from .logging_conf import available_worker_logs, configure_logging, main_log_path, tail_log
from .orchestrator import MirrorOrchestrator, RunSummary
from .ui import MirrorProgress

DATE_FORMATS = ["%Y-%m-%d"]

app = typer.Typer(
    help="Exhaustive mirror of the USA Swimming Top Times database.",
    no_args_is_help=True,
    rich_markup_mode=None,
)
log_app = typer.Typer(
    name="log",
    help="Inspect log files.",
    no_args_is_help=True,
    rich_markup_mode=None,
)
app.add_typer(log_app, name="log")

console = Console()


@dataclass
class AppState:
    repository: ConfigRepository
    orchestrator: MirrorOrchestrator
    storage: SQLiteManager


def build_state(verbose: bool) -> AppState:
    configure_logging(verbose=verbose)
    repository = ConfigRepository()
    storage = SQLiteManager()
    orchestrator = MirrorOrchestrator(config_repository=repository, storage=storage)
    return AppState(repository=repository, orchestrator=orchestrator, storage=storage)


def _get_state(ctx: typer.Context) -> AppState:
    state = ctx.obj
    if state is None:
        state = build_state(verbose=False)
        ctx.obj = state
    return state


def _as_date(value: datetime | date) -> date:
    return value.date() if isinstance(value, datetime) else value


def _check_window(date_from: date, date_to: date) -> None:
    if date_to < date_from:
        console.print(f"TO ({date_to}) must not be before FROM ({date_from}).", style="red")
        raise typer.Exit(code=1)


def _format_schedule(schedule: ScheduleConfig) -> str:
    data = schedule.value
    label = schedule.type.value
    if data in (None, "", [], {}):
        return label
    if schedule.type is ScheduleType.CRON:
        return f"cron ({data})"
    if schedule.type is ScheduleType.INTERVAL:
        return f"interval ({data})"
    return f"{label} ({data})"


def _render_summary(summary: RunSummary) -> Table:
    table = Table(title="Run summary", box=box.SIMPLE_HEAD)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Seeds", str(summary.seeds))
    table.add_row("Enqueued", str(summary.enqueued))
    table.add_row("Already complete", str(summary.already_complete))
    table.add_row("Workers", str(summary.workers))
    for outcome, count in sorted(summary.stats.items()):
        table.add_row(outcome.replace("_", " ").capitalize(), str(count))
    table.add_row("Idle at exit", "yes" if summary.idle else "no")
    table.add_row("Duration", f"{summary.duration:.1f}s")
    return table


def _render_jobs_table(jobs: Iterable[dict]) -> Table:
    table = Table(title="Scheduled jobs", box=box.SIMPLE_HEAD)
    table.add_column("Job ID", style="cyan", no_wrap=True)
    table.add_column("Next run", style="green")
    table.add_column("Trigger", style="magenta", overflow="fold")
    for job in jobs:
        table.add_row(
            escape(str(job.get("id", "-"))),
            escape(str(job.get("next_run_time", "-"))),
            escape(str(job.get("trigger", "-"))),
        )
    return table


@app.callback()
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging.", is_flag=True),
) -> None:
    try:
        ctx.obj = build_state(verbose)
    except (ValidationError, MirrorError) as exc:
        console.print(f"Invalid configuration: {escape(str(exc))}", style="red")
        raise typer.Exit(code=1) from exc


@app.command("run", help="Mirror every record dated FROM..TO (inclusive).")
def run(
    ctx: typer.Context,
    date_from: datetime = typer.Argument(..., formats=DATE_FORMATS, metavar="FROM"),
    date_to: datetime = typer.Argument(..., formats=DATE_FORMATS, metavar="TO"),
    clients: Optional[int] = typer.Option(None, "--clients", min=1, help="Number of workers."),
    until_idle: bool = typer.Option(
        False, "--until-idle", help="Exit once the queue drains.", is_flag=True
    ),
    atomize: Optional[bool] = typer.Option(
        None,
        "--atomize/--no-atomize",
        help=(
            "Pre-expand seeds into leaf queries. Resume matches exact queries, so "
            "switching modes re-fetches records mirrored in the other mode."
        ),
    ),
    timeout: Optional[float] = typer.Option(None, "--timeout", help="Stop after N seconds."),
    quiet: bool = typer.Option(False, "--quiet", help="Hide the live status line.", is_flag=True),
) -> None:
    state = _get_state(ctx)
    start, end = _as_date(date_from), _as_date(date_to)
    _check_window(start, end)
    show_progress = not quiet and state.orchestrator.config.enable_progress_bar
    try:
        summary = state.orchestrator.run(
            start,
            end,
            until_idle=until_idle,
            timeout=timeout,
            clients=clients,
            atomize=atomize,
            progress=MirrorProgress(enabled=show_progress, console=console),
        )
    except MirrorError as exc:
        console.print(f"Run failed: {escape(str(exc))}", style="red")
        raise typer.Exit(code=1) from exc
    console.print(_render_summary(summary))
    if summary.mode_changed_from:
        console.print(
            f"Seed mode changed since the last run (was {escape(summary.mode_changed_from)}); "
            "records mirrored in the other mode were fetched again.",
            style="yellow",
        )
    for failure in summary.failures:
        console.print(f"- {escape(failure)}", style="red")
    if summary.error:
        console.print(escape(summary.error), style="red")
    if not summary.ok:
        raise typer.Exit(code=1)


@app.command("plan", help="Show how many queries a run over FROM..TO would issue.")
def plan(
    ctx: typer.Context,
    date_from: datetime = typer.Argument(..., formats=DATE_FORMATS, metavar="FROM"),
    date_to: datetime = typer.Argument(..., formats=DATE_FORMATS, metavar="TO"),
    atomize: Optional[bool] = typer.Option(
        None, "--atomize/--no-atomize", help="Count leaf queries instead of seeds."
    ),
) -> None:
    state = _get_state(ctx)
    start, end = _as_date(date_from), _as_date(date_to)
    _check_window(start, end)
    summary = state.orchestrator.plan(start, end, atomize=atomize)
    table = Table(title=f"Plan {start} → {end}", box=box.SIMPLE_HEAD)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Seeds", str(summary.seeds))
    table.add_row("Queries", str(summary.queries))
    table.add_row("Complete", str(summary.complete))
    table.add_row("Pending", str(summary.pending))
    console.print(table)


@app.command("status", help="Summarise the request ledger.")
def status(ctx: typer.Context) -> None:
    state = _get_state(ctx)
    try:
        summary = state.orchestrator.store.summary()
    except MirrorError as exc:
        console.print(f"Store unavailable: {escape(str(exc))}", style="red")
        raise typer.Exit(code=1) from exc
    table = Table(title="Request ledger", box=box.SIMPLE_HEAD)
    table.add_column("State", style="cyan")
    table.add_column("Count", justify="right")
    for key in ("success", "error", "saturated"):
        table.add_row(key, str(summary.get(key, 0)))
    console.print(table)


@app.command("history", help="List the most recent ledger records.")
def history(
    ctx: typer.Context,
    state_filter: Optional[str] = typer.Option(
        None, "--state", help="Only show 'success' or 'error' records."
    ),
    limit: int = typer.Option(20, "--limit", min=1, help="Number of records to show."),
) -> None:
    state = _get_state(ctx)
    if state_filter not in (None, "success", "error"):
        console.print("--state must be 'success' or 'error'.", style="red")
        raise typer.Exit(code=1)
    records = state.orchestrator.store.history(state=state_filter, limit=limit)
    if not records:
        console.print("No ledger records yet.", style="dim")
        return
    table = Table(title=f"Last {len(records)} records", box=box.SIMPLE_HEAD)
    table.add_column("Updated", style="green", no_wrap=True)
    table.add_column("State")
    table.add_column("Results", justify="right")
    table.add_column("Identity", overflow="fold")
    table.add_column("Error", overflow="fold", style="red")
    for record in records:
        label = record.state + (" (saturated)" if record.saturated else "")
        table.add_row(
            record.updated_at,
            label,
            "-" if record.num_results is None else str(record.num_results),
            escape(record.id),
            escape(record.error or ""),
        )
    console.print(table)


@app.command("invalidate", help="Forget ledger records overlapping FROM..TO so they are fetched again.")
def invalidate(
    ctx: typer.Context,
    date_from: datetime = typer.Argument(..., formats=DATE_FORMATS, metavar="FROM"),
    date_to: datetime = typer.Argument(..., formats=DATE_FORMATS, metavar="TO"),
    yes: bool = typer.Option(False, "--yes", help="Skip the confirmation prompt.", is_flag=True),
) -> None:
    state = _get_state(ctx)
    start, end = _as_date(date_from), _as_date(date_to)
    _check_window(start, end)
    if not yes and not typer.confirm(f"Invalidate every record between {start} and {end}?"):
        console.print("Cancelled.", style="yellow")
        raise typer.Exit(code=0)
    removed = state.orchestrator.invalidate(start, end)
    console.print(f"Invalidated {removed} records.", style="green")


@app.command("reset", help="Delete the whole request ledger.")
def reset(
    ctx: typer.Context,
    yes: bool = typer.Option(False, "--yes", help="Skip the confirmation prompt.", is_flag=True),
) -> None:
    state = _get_state(ctx)
    if not yes and not typer.confirm("Delete the whole request ledger?", default=False):
        console.print("Cancelled.", style="yellow")
        raise typer.Exit(code=0)
    state.orchestrator.reset()
    console.print("Request ledger cleared.", style="green")


@app.command("schedule", help="Run the rolling-window refresh on its configured schedule.")
def schedule(
    ctx: typer.Context,
    dry_run: bool = typer.Option(
        False, "--dry-run", help="Register the job, print it and exit.", is_flag=True
    ),
) -> None:
    state = _get_state(ctx)
    refresh = state.orchestrator.config.refresh
    if not refresh.enabled:
        console.print(
            "Refresh is disabled; set refresh.enabled to true in the configuration.",
            style="yellow",
        )
        raise typer.Exit(code=1)
    console.print(
        f"Refresh: last {refresh.trailing_days} days ending {refresh.lag_days} days ago, "
        f"{_format_schedule(refresh.schedule)}",
        style="cyan",
    )
    state.orchestrator.register_refresh(start=not dry_run)
    console.print(_render_jobs_table(state.orchestrator.scheduler.list_jobs()))
    if dry_run:
        return
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        console.print("Stopping scheduler.", style="yellow")
    finally:
        state.orchestrator.close()


@log_app.command("list", help="List worker log files.")
def log_list() -> None:
    logs = list(available_worker_logs())
    if not logs:
        console.print("No worker logs yet.", style="dim")
        return
    table = Table(box=box.SIMPLE_HEAD)
    table.add_column("File", style="green")
    for path in logs:
        table.add_row(path.name)
    console.print(table)


@log_app.command("show", help="Show the tail of a worker log, or the main log.")
def log_show(
    name: Optional[str] = typer.Argument(None, help="Worker name; omit for the main log."),
    lines: int = typer.Option(100, "--lines", min=1, help="Number of lines to show."),
) -> None:
    if name:
        matches = [path for path in available_worker_logs() if path.stem == name]
        if not matches:
            console.print(f"No log for worker {name}.", style="red")
            raise typer.Exit(code=1)
        path = matches[0]
    else:
        path = main_log_path()
    content = tail_log(path, lines)
    if not content:
        console.print("No log lines yet.", style="dim")
        return
    console.print("".join(content), markup=False, highlight=False)


__all__ = ["AppState", "app", "build_state"]
