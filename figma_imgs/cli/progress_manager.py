"""
Manages a Rich progress display for the ETag-comparison and download phases.
"""

from rich.console import Console
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
)


class ProgressManager:
    """
    Shows one progress bar per phase. The sync engine drives it through
    ``start_phase``, ``advance`` and ``finish_phase``.
    """

    def __init__(self, console: Console, dry_run: bool = False):
        self.console = console
        self.dry_run = dry_run
        self.progress = Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}", justify="left"),
            BarColumn(bar_width=30),
            MofNCompleteColumn(),
            "•",
            TimeElapsedColumn(),
            console=console,
            transient=False,
        )
        self._task_id: TaskID | None = None

    def start_phase(self, description: str, total: int) -> None:
        if self.dry_run:
            return
        self.finish_phase()
        self._task_id = self.progress.add_task(
            f"[cyan]{description}[/cyan]", total=total, start=True
        )

    def advance(self, count: int = 1) -> None:
        if self._task_id is not None and not self.dry_run:
            self.progress.advance(self._task_id, count)

    def finish_phase(self) -> None:
        if self._task_id is None:
            return
        self.progress.stop_task(self._task_id)
        self._task_id = None

    async def __aenter__(self):
        if not self.dry_run:
            self.progress.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        self.finish_phase()
        if not self.dry_run:
            self.progress.stop()
