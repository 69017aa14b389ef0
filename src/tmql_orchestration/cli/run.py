"""
tmql run - Execute a project with the engine its project file provides.
"""

import json
from pathlib import Path

import typer
from rich.console import Console

from tmql_orchestration.cli.common import fail, load_project
from tmql_orchestration.core.execution.config import FailurePolicy
from tmql_orchestration.exceptions import TmqlError
from tmql_orchestration.utils.discovery import resolve_engine
from tmql_orchestration.utils.display import print_run_result


def run(
    project_file: Path = typer.Argument(..., help="Python file defining the project and engine"),
    continue_on_error: bool = typer.Option(
        False, "--continue-on-error", help="Keep running models that do not depend on a failure"
    ),
    max_workers: int | None = typer.Option(None, "--max-workers", "-w", min=1, help="Models executed at once"),
    timeout: float | None = typer.Option(None, "--timeout", help="Per-model time budget in seconds"),
    env: str | None = typer.Option(None, "--env", "-e", help="Environment (selects config.{env}.yaml)"),
    config_dir: Path | None = typer.Option(None, "--config-dir", help="Directory holding config.yaml"),
    output_json: bool = typer.Option(False, "--json", help="Print the run result as JSON"),
    verbose: bool = typer.Option(False, "--verbose", help="Debug logging"),
) -> None:
    """
    Run every model of the project in dependency order.

    Exits with 1 unless every model succeeded.
    """
    console = Console()
    ctx = load_project(project_file, console, env=env, config_dir=config_dir, verbose=verbose)

    try:
        engine = resolve_engine(ctx.module, ctx.config)
        options = ctx.project.options(
            failure_policy=FailurePolicy.CONTINUE_ON_ERROR if continue_on_error else None,
            max_workers=max_workers,
            model_timeout=timeout,
        )
    except TmqlError as e:
        raise fail(str(e)) from e

    result = ctx.project.run_sync(engine, options)

    if output_json:
        typer.echo(json.dumps(result.to_dict(), indent=2, default=str))
    else:
        print_run_result(result, console)

    if not result.ok:
        raise typer.Exit(1)
