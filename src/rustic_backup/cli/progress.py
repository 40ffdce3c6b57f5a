# pyright: standard

"""rustic-backup: rustic_backup/cli/progress.py
Render stage events as a rich spinner plus one static line per stage.
"""

from typing import Optional

from rich.console import Console
from rich.markup import escape
from rich.status import Status

from ..core.events import StageEvent, StagePhase
from ..core.pipeline import PipelineRun, StageRecord, StageState

ICONS = {
    StageState.SUCCEEDED: "[bold green]✓[/]",
    StageState.SKIPPED: "[dim]-[/]",
    StageState.FAILED: "[bold red]✗[/]",
}


class RichStageReporter:
    """Event sink drawing stage progress on the terminal.

    Captured command output stays hidden unless a stage fails; then all of
    it is replayed on the error console.
    """

    def __init__(
        self, console: Optional[Console] = None, err_console: Optional[Console] = None
    ) -> None:
        self.console = console or Console()
        self.err_console = err_console or Console(stderr=True)
        self._status: Optional[Status] = None

    def emit(self, event: StageEvent) -> None:
        if event.phase is StagePhase.STARTED:
            self._stop_spinner()
            self._status = self.console.status(
                f"[dim]{event.stage}[/]", spinner="dots"
            )
            self._status.start()
            return

        self._stop_spinner()
        if event.record is not None:
            self.print_record(event.record)

    def close(self) -> None:
        """Stop a spinner left running by a stage that never finished."""
        self._stop_spinner()

    def _stop_spinner(self) -> None:
        if self._status is not None:
            self._status.stop()
            self._status = None

    def print_record(self, record: StageRecord) -> None:
        label = f"[bold]{record.stage}[/]"
        if record.state is StageState.SKIPPED:
            reason = f" ({escape(record.note)})" if record.note else ""
            self.console.print(f"  {ICONS[record.state]}  [dim]{record.stage}{reason}[/]")
            return

        note = f" [dim]{escape(record.note)}[/]" if record.note else ""
        self.console.print(f"  {ICONS[record.state]}  {label}{note}")

        if record.failed:
            print_failure(record, self.err_console)


def print_failure(record: StageRecord, console: Console) -> None:
    """Replay everything a failed stage wrote, untruncated."""
    console.print()
    console.print(f"  [bold red]Error:[/] {escape(record.note)}")

    result = record.result
    if result is None:
        return
    for name, text in (("stdout", result.stdout), ("stderr", result.stderr)):
        if not text:
            continue
        console.print()
        console.print(f"  [dim]►[/] {name}:")
        for line in text.splitlines():
            console.print(f"    {line}", markup=False, highlight=False, soft_wrap=True)


def print_summary(
    pipeline_run: PipelineRun, console: Console, err_console: Console
) -> None:
    """Print the final banner listing every stage's state."""
    console.print()
    if pipeline_run.succeeded:
        console.print(
            f"  [bold cyan]✓ All stages completed successfully[/] "
            f"[dim]({pipeline_run.duration:.1f}s)[/]"
        )
        console.print()
        return

    err_console.print("  [bold red]✗  Backup failed.[/]")
    for record in pipeline_run.records:
        err_console.print(
            f"    {ICONS[record.state]} {record.stage}: {record.state.value}"
        )
    for stage in pipeline_run.not_run():
        err_console.print(f"    [dim]·[/] {stage}: not run")
    err_console.print()
