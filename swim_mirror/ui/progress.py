"""Terminal status line for a running mirror."""

from __future__ import annotations

from dataclasses import dataclass, field
from threading import Lock
from typing import Mapping

from rich.console import Console
from rich.errors import LiveError
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn


@dataclass
class ProgressState:
    queue_depth: int = 0
    in_flight: int = 0
    alive_workers: int = 0
    outcomes: dict[str, int] = field(default_factory=dict)

    def get(self, outcome: str) -> int:
        return self.outcomes.get(outcome, 0)


class MirrorProgress:
    """Render queue depth, in-flight items and outcome counters.

    Falls back to silent mode when the console is not a terminal or another
    live display already owns it; ``state`` is kept up to date either way.
    """

    def __init__(self, enabled: bool = True, console: Console | None = None) -> None:
        self.enabled = enabled
        self.console = console or Console()
        if enabled and not self.console.is_terminal:
            self.enabled = False
        self.state = ProgressState()
        self._lock = Lock()
        self._progress: Progress | None = None
        self._task_id = None

    def start(self, label: str = "mirror") -> None:
        if not self.enabled or self._progress is not None:
            return
        progress = Progress(
            SpinnerColumn(style="cyan"),
            TextColumn("[bold blue]{task.description:<10}"),
            TimeElapsedColumn(),
            TextColumn("queue [bold]{task.fields[queue]:>6}"),
            TextColumn("in-flight [bold]{task.fields[in_flight]:>3}"),
            TextColumn("workers {task.fields[workers]:>3}"),
            TextColumn("[green]✓{task.fields[done]:>6}"),
            TextColumn("[cyan]⑂{task.fields[split]:>5}"),
            TextColumn("[yellow]↺{task.fields[requeued]:>5}"),
            TextColumn("[red]!{task.fields[saturated]:>3}"),
            console=self.console,
            transient=True,
            refresh_per_second=4,
        )
        try:
            progress.start()
        except LiveError:
            self.enabled = False
            return
        self._progress = progress
        self._task_id = progress.add_task(label, total=None, **self._fields())

    def update(
        self,
        queue_depth: int,
        in_flight: int,
        alive_workers: int,
        outcomes: Mapping[str, int],
    ) -> None:
        with self._lock:
            self.state = ProgressState(queue_depth, in_flight, alive_workers, dict(outcomes))
            if self._progress is not None and self._task_id is not None:
                self._progress.update(self._task_id, **self._fields())

    def close(self) -> None:
        with self._lock:
            if self._progress is not None:
                self._progress.stop()
                self._progress = None
            self._task_id = None

    def summary(self) -> dict[str, int]:
        return dict(self.state.outcomes)

    def _fields(self) -> dict[str, int]:
        state = self.state
        return {
            "queue": state.queue_depth,
            "in_flight": state.in_flight,
            "workers": state.alive_workers,
            "done": state.get("completed"),
            "split": state.get("split"),
            "requeued": state.get("requeued"),
            "saturated": state.get("saturated_leaf"),
        }


__all__ = ["MirrorProgress", "ProgressState"]
