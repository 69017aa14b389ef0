"""
Rich rendering for validation reports, execution plans and run results.

Used by the CLI; every ``print_*`` function takes the Console to write to so
callers (and tests) control where output goes.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

if TYPE_CHECKING:
    from tmql_orchestration.core.results import RunResult
    from tmql_orchestration.core.scheduler import ExecutionPlan
    from tmql_orchestration.core.validation import ValidationResult

STATUS_STYLES = {
    "pending": "dim",
    "running": "cyan",
    "succeeded": "green",
    "failed": "red",
    "skipped": "yellow",
    "success": "green",
    "partial_failure": "yellow",
    "failure": "red",
}


def format_duration(seconds: float) -> str:
    """Format a duration as ``850ms``, ``2.35s`` or ``3m 05s``."""
    if seconds < 1:
        return f"{seconds * 1000:.0f}ms"
    if seconds < 60:
        return f"{seconds:.2f}s"
    minutes, secs = divmod(int(seconds), 60)
    return f"{minutes}m {secs:02d}s"


def _styled(value: str) -> Text:
    return Text(value, style=STATUS_STYLES.get(value, ""))


def print_validation(result: ValidationResult, console: Console) -> None:
    """Print errors and warnings, then a one-line verdict."""
    for issue in result.errors:
        console.print(Text.assemble(("  ✗ ", "red"), (f"[{issue.kind.value}] ", "bold red"), issue.message))
    for issue in result.warnings:
        console.print(Text.assemble(("  ⚠ ", "yellow"), (f"[{issue.kind.value}] ", "yellow"), issue.message))

    summary = Text()
    if result.ok:
        summary.append("Project is valid", style="bold green")
    else:
        summary.append(f"{len(result.errors)} error(s)", style="bold red")
    if result.warnings:
        summary.append(f", {len(result.warnings)} warning(s)", style="yellow")
    console.print(summary)


def plan_table(plan: ExecutionPlan) -> Table:
    table = Table(title="Execution Plan", title_style="bold")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Batch", justify="right")
    table.add_column("Model", style="cyan")
    table.add_column("Source", style="dim")
    table.add_column("Output", style="green")
    table.add_column("Materialize", style="magenta")
    table.add_column("Depends On", style="yellow")

    for position, model in enumerate(plan.order, start=1):
        deps = plan.dependencies.get(model.name, ())
        table.add_row(
            str(position),
            str(plan.batch_of(model.name)),
            model.name,
            model.primary_source_name,
            model.output,
            str(model.materialize),
            ", ".join(deps) or "-",
        )
    return table


def print_plan(plan: ExecutionPlan, console: Console) -> None:
    """Print the plan table followed by its parallel layers."""
    if not len(plan):
        console.print("[dim]Nothing to run[/dim]")
        return
    console.print(plan_table(plan))
    console.print()
    console.print(plan.visualize_layers())


def run_table(result: RunResult) -> Table:
    table = Table(title="Run Result", title_style="bold")
    table.add_column("Model", style="cyan")
    table.add_column("Status")
    table.add_column("Output", style="dim")
    table.add_column("Documents", justify="right")
    table.add_column("Time", justify="right")
    table.add_column("Details")

    for name, stats in result.per_model.items():
        if stats.error_message:
            details = Text(f"{stats.error_type}: {stats.error_message}", style="red")
        elif stats.skipped_reason:
            reason = stats.skipped_reason.value.replace("_", " ")
            if stats.failed_dependencies:
                reason += f" ({', '.join(stats.failed_dependencies)})"
            details = Text(reason, style="yellow")
        else:
            details = Text("")
        table.add_row(
            name,
            _styled(stats.status.value),
            stats.output,
            "-" if stats.document_count is None else str(stats.document_count),
            "-" if stats.duration is None else format_duration(stats.duration),
            details,
        )
    return table


def print_run_result(result: RunResult, console: Console) -> None:
    """Print the per-model table and a summary panel."""
    if result.per_model:
        console.print(run_table(result))
        console.print()

    summary = result.summary()
    text = Text()
    text.append("Status: ", style="bold")
    text.append(summary["status"], style=STATUS_STYLES[summary["status"]])
    text.append(f"\n{summary['succeeded']}/{summary['total']} succeeded", style="green")
    if summary["failed"]:
        text.append(f", {summary['failed']} failed", style="red")
    if summary["skipped"]:
        text.append(f", {summary['skipped']} skipped", style="yellow")
    if result.cancelled:
        text.append(" (cancelled)", style="yellow")
    if result.duration is not None:
        text.append(f"\nDuration: {format_duration(result.duration)}", style="dim")
    console.print(Panel(text, title="Run Complete"))
