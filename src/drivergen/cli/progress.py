"""drivergen CLI progress and report rendering.

Wraps Rich :class:`~rich.progress.Progress` for spinners and renders
the command reports as Rich tables and panels.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Generator, Sequence

from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn
from rich.table import Table

from drivergen.llm.token_tracker import TokenTracker
from drivergen.models.artifact import Checkpoint, DriverArtifactSet
from drivergen.models.validation import Severity, ValidationIssue

# ---------------------------------------------------------------------------
# Spinner
# ---------------------------------------------------------------------------


@contextmanager
def spinner(message: str, console: Console | None = None) -> Generator[None, None, None]:
    """Show an indeterminate spinner with *message*.

    Usage::

        with spinner("Generating driver..."):
            asyncio.run(manager.generate_driver(spec, name))
    """
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        TimeElapsedColumn(),
        console=console or Console(stderr=True),
        transient=True,
    ) as progress:
        progress.add_task(message, total=None)
        yield


# ---------------------------------------------------------------------------
# Tables
# ---------------------------------------------------------------------------


def issues_table(issues: Sequence[ValidationIssue]) -> Table:
    table = Table(title="Validation issues", show_lines=True)
    table.add_column("Severity")
    table.add_column("Component")
    table.add_column("Message")
    table.add_column("Suggestion")
    for issue in issues:
        style = "red" if issue.severity is Severity.ERROR else "yellow"
        table.add_row(
            f"[{style}]{issue.severity.value}[/{style}]",
            issue.component.value,
            issue.message,
            issue.suggestion or "",
        )
    return table


def checkpoints_table(checkpoints: Sequence[Checkpoint], current: int) -> Table:
    table = Table(title="Checkpoints")
    table.add_column("", width=1)
    table.add_column("ID", justify="right")
    table.add_column("Created (UTC)")
    table.add_column("Valid")
    table.add_column("Errors", justify="right")
    table.add_column("Message")
    for checkpoint in checkpoints:
        table.add_row(
            "*" if checkpoint.id == current else "",
            str(checkpoint.id),
            checkpoint.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
            "[green]yes[/green]" if checkpoint.is_valid else "[red]no[/red]",
            str(len(checkpoint.validation_errors)),
            checkpoint.message,
        )
    return table


def drivers_table(drivers: Sequence[DriverArtifactSet]) -> Table:
    table = Table(title="Drivers")
    table.add_column("Name")
    table.add_column("Status")
    table.add_column("Valid")
    table.add_column("Issues", justify="right")
    table.add_column("Checkpoints", justify="right")
    for driver in drivers:
        table.add_row(
            driver.name,
            driver.status.value,
            "[green]yes[/green]" if driver.is_valid else "[red]no[/red]",
            str(len(driver.validation_errors)),
            str(len(driver.checkpoints)),
        )
    return table


def summary_panel(driver: DriverArtifactSet) -> Panel:
    """Render a one-panel outcome summary for *driver*."""
    if driver.is_valid:
        body = f"[green]{driver.name} is valid[/green]"
        style = "green"
    else:
        body = (
            f"[yellow]{driver.name} has {len(driver.validation_errors)} "
            f"validation issue(s)[/yellow]"
        )
        style = "yellow"
    body += f"\nStatus: {driver.status.value}\nCheckpoints: {len(driver.checkpoints)}"
    return Panel(body, title="Driver", border_style=style)


def usage_table(tracker: TokenTracker) -> Table:
    """Render LLM token usage per pipeline step, with a total row."""
    table = Table(title="LLM usage")
    table.add_column("Step")
    table.add_column("Requests", justify="right")
    table.add_column("Prompt", justify="right")
    table.add_column("Completion", justify="right")
    table.add_column("Cost (USD)", justify="right")
    for usage in [*tracker.by_step(), tracker.totals()]:
        table.add_row(
            usage.step,
            str(usage.requests),
            f"{usage.prompt_tokens:,}",
            f"{usage.completion_tokens:,}",
            f"{usage.cost_usd:.4f}",
        )
    return table
