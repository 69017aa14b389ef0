"""
tmql validate - Check a project for errors and warnings.
"""

import json
from pathlib import Path

import typer
from rich.console import Console

from tmql_orchestration.cli.common import load_project
from tmql_orchestration.utils.display import print_validation


def validate(
    project_file: Path = typer.Argument(..., help="Python file defining the project"),
    env: str | None = typer.Option(None, "--env", "-e", help="Environment (selects config.{env}.yaml)"),
    config_dir: Path | None = typer.Option(None, "--config-dir", help="Directory holding config.yaml"),
    output_json: bool = typer.Option(False, "--json", help="Print the report as JSON"),
    verbose: bool = typer.Option(False, "--verbose", help="Debug logging"),
) -> None:
    """
    Validate a project.

    Exits with 1 if the project has fatal errors.
    """
    console = Console()
    ctx = load_project(project_file, console, env=env, config_dir=config_dir, verbose=verbose)
    report = ctx.project.validate()
    if output_json:
        typer.echo(json.dumps(report.to_dict(), indent=2))
    else:
        print_validation(report, console)
