"""
Console progress for bulk uploads.

``BatchProgress`` is a rich progress bar whose ``update`` method plugs into
the ``on_progress`` callbacks of ``PreparationPipeline.prepare_many`` and
``batching.process``. ``upload_with_progress`` wires it to a bulk upload.
"""

from typing import Any

from rich.console import Console
from rich.markup import escape
from rich.progress import BarColumn, MofNCompleteColumn, Progress, SpinnerColumn, TextColumn, TimeElapsedColumn


class BatchProgress:
    """Progress bar counting finished items, failed or not."""

    def __init__(self, description: str, total: int, console: Console | None = None):
        self.console = console or Console(stderr=True)
        self.description = description
        self.total = total
        self.completed = 0
        self.failed = 0
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            MofNCompleteColumn(),
            TimeElapsedColumn(),
            console=self.console,
            transient=False,
        )
        self._task_id = None

    def __enter__(self) -> "BatchProgress":
        self._progress.start()
        self._task_id = self._progress.add_task(self.description, total=self.total)
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self._progress.stop()
        if self.failed:
            self.console.print(f"[yellow]{self.failed} of {self.completed} {self.description} failed[/yellow]")

    def update(self, outcome: Any) -> None:
        """Advance by one outcome.

        BatchResults advance by their item count, anything else by one.
        Outcomes with an ``error`` are counted as failed and printed.
        """
        items = getattr(outcome, "items", None)
        step = len(items) if isinstance(items, list) else 1
        self.completed += step

        error = getattr(outcome, "error", None)
        if error is not None:
            self.failed += step
            self.console.print(f"[red]✗ {escape(str(error))}[/red]")

        if self._task_id is not None:
            self._progress.advance(self._task_id, step)


async def upload_with_progress(uploader, items, kind, console: Console | None = None):
    """Run ``uploader.upload`` with a progress bar over the submitted items."""
    with BatchProgress(f"{kind.value} objects", total=len(items), console=console) as progress:
        report = await uploader.upload(items, kind, on_progress=progress.update)
        # Objects that never reached a batch still count as finished
        for failure in report.preparation_failures:
            progress.update(failure)
    return report
