"""Terminal output handling using Rich library.

This module provides the OutputHandler class for all user-facing CLI output.
Diagnostic logging goes to stderr through the ``src`` logger; the handler is
for messages, the progress spinner and the final run summary.
"""

from contextlib import contextmanager
from typing import Iterator, List

from rich.console import Console
from rich.live import Live
from rich.markup import escape
from rich.spinner import Spinner
from rich.table import Table

from src.pipeline.result import PipelineResult, PipelineStatus

STATUS_STYLES = {
    PipelineStatus.SUCCESS: "green",
    PipelineStatus.WARNING: "yellow",
    PipelineStatus.CRITICAL_ERROR: "red",
    PipelineStatus.ABORT: "red",
}


class OutputHandler:
    """Handles all terminal output using Rich library.

    Attributes:
        console: Rich Console instance for output

    Example:
        >>> handler = OutputHandler(no_color=False)
        >>> handler.success("Operation completed")
        >>> with handler.spinner("Processing..."):
        ...     pass
    """

    def __init__(self, no_color: bool = False, console: Console = None):
        """Initialize output handler.

        Args:
            no_color: Disable color output if True
            console: Console to print to (tests pass a recording console)
        """
        self.console = console or Console(no_color=no_color, highlight=False)

    def success(self, message: str) -> None:
        self.console.print(f"[green]✓[/green] {escape(message)}")

    def error(self, message: str) -> None:
        self.console.print(f"[red]✗[/red] {escape(message)}", style="red")

    def warning(self, message: str) -> None:
        self.console.print(f"[yellow]⚠[/yellow] {escape(message)}", style="yellow")

    def info(self, message: str) -> None:
        self.console.print(escape(message))

    @contextmanager
    def spinner(self, message: str) -> Iterator[None]:
        """Display a spinner while the block runs.

        Example:
            >>> with handler.spinner("Uploading..."):
            ...     runner.run(steps, context)
        """
        spinner = Spinner("dots", text=message)
        with Live(spinner, console=self.console, refresh_per_second=10, transient=True):
            yield

    def print_summary(self, step_results: List[PipelineResult], final: PipelineResult) -> None:
        """Display one row per executed step, then the final outcome.

        Args:
            step_results: Results in execution order
            final: The run's final result
        """
        table = Table(title="Run Summary", show_lines=False)
        table.add_column("Step")
        table.add_column("Status")
        table.add_column("Processed", justify="right")
        table.add_column("Failed", justify="right")
        table.add_column("Duration", justify="right")

        for result in step_results:
            style = STATUS_STYLES.get(result.status, "")
            table.add_row(
                escape(result.step_name),
                f"[{style}]{result.status.value}[/{style}]",
                str(result.items_processed),
                str(result.items_failed),
                f"{result.duration:.2f}s",
            )

        self.console.print(table)

        if final.status == PipelineStatus.SUCCESS:
            self.success(final.message or "Run completed")
        elif final.status == PipelineStatus.WARNING:
            self.warning(final.message or "Run completed with warnings")
        else:
            self.error(f"{final.step_name}: {final.message}")
