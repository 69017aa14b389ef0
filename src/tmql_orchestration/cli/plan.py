"""
tmql plan - Show the execution plan without running anything.
"""

import json
from enum import StrEnum
from pathlib import Path

import typer
from rich.console import Console

from tmql_orchestration.cli.common import load_project
from tmql_orchestration.utils.display import print_plan


class PlanFormat(StrEnum):
    TABLE = "table"
    JSON = "json"


def plan(
    project_file: Path = typer.Argument(..., help="Python file defining the project"),
    format: PlanFormat = typer.Option(PlanFormat.TABLE, "--format", "-f", help="Output format"),
    env: str | None = typer.Option(None, "--env", "-e", help="Environment (selects config.{env}.yaml)"),
    config_dir: Path | None = typer.Option(None, "--config-dir", help="Directory holding config.yaml"),
    verbose: bool = typer.Option(False, "--verbose", help="Debug logging"),
) -> None:
    """
    Print the execution order and parallel batches.
    """
    console = Console()
    ctx = load_project(project_file, console, env=env, config_dir=config_dir, verbose=verbose)
    if format == PlanFormat.JSON:
        typer.echo(json.dumps(ctx.project.describe(), indent=2, default=str))
    else:
        print_plan(ctx.project.plan(), console)
