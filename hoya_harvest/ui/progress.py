"""Rich progress bar for collection runs and trend batches."""

from __future__ import annotations

from dataclasses import dataclass

from rich.console import Console
from rich.errors import LiveError
from rich.progress import (
    BarColumn,
    Progress,
    ProgressColumn,
    SpinnerColumn,
    Task,
    TaskID,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
)
from rich.text import Text


@dataclass
class ProgressState:
    total: int
    success: int = 0
    failed: int = 0
    current: str | None = None


class RateColumn(ProgressColumn):
    """Entities processed per second."""

    def render(self, task: Task) -> Text:
        speed = task.finished_speed or task.speed
        if speed is None:
            return Text("", style="progress.percentage")
        return Text(f"{speed:.2f} ent/s", style="progress.percentage")


class ProgressReporter:
    """Render progress and keep success/failure counters for CLI feedback.

    Falls back to counting only when disabled or when stdout is not a
    terminal, so tests and piped runs print nothing.
    """

    def __init__(self, enabled: bool = True, console: Console | None = None, label: str = "collect") -> None:
        self.enabled = enabled
        self.label = label
        self._console = console
        self._progress: Progress | None = None
        self._task_id: TaskID | None = None
        self.state: ProgressState | None = None

    def start(self, total: int) -> None:
        self.state = ProgressState(total=total)
        if not self.enabled:
            return
        console = self._console or Console()
        if not console.is_terminal:
            self.enabled = False
            return
        self._progress = Progress(
            SpinnerColumn(style="cyan"),
            TextColumn("[bold blue]{task.fields[label]:<10}", justify="left"),
            BarColumn(bar_width=None, complete_style="green", finished_style="green"),
            TaskProgressColumn(show_speed=False),
            TimeElapsedColumn(),
            RateColumn(),
            TextColumn("[green]✓{task.fields[success]:>3}", justify="right"),
            TextColumn("[red]✗{task.fields[failed]:>3}", justify="right"),
            TextColumn("[dim]{task.fields[current]}", justify="left"),
            console=console,
            transient=True,
            expand=True,
        )
        try:
            self._progress.__enter__()
        except LiveError:
            self.enabled = False
            self._progress = None
            return
        self._task_id = self._progress.add_task(
            self.label, total=total, label=self.label, success=0, failed=0, current=""
        )

    def advance(self, success: bool = True, current: str | None = None) -> None:
        if not self.state:
            raise RuntimeError("ProgressReporter.start must be called before advance")
        if success:
            self.state.success += 1
        else:
            self.state.failed += 1
        if current:
            self.state.current = current
        if self._progress is not None and self._task_id is not None:
            display = self.state.current or ""
            if len(display) > 40:
                display = display[:37] + "..."
            self._progress.update(
                self._task_id,
                advance=1,
                success=self.state.success,
                failed=self.state.failed,
                current=display,
            )

    def close(self) -> None:
        if self._progress is not None:
            self._progress.stop()
            self._progress.__exit__(None, None, None)
            self._progress = None
        self._task_id = None

    def summary(self) -> dict[str, int]:
        if not self.state:
            return {"success": 0, "failed": 0}
        return {"success": self.state.success, "failed": self.state.failed}


__all__ = ["ProgressReporter", "ProgressState", "RateColumn"]
