"""
Shared CLI helpers: loading config, logging and the project file.
"""

from dataclasses import dataclass
from pathlib import Path
from types import ModuleType

import typer
from rich.console import Console

from tmql_orchestration.config import Config, load_config
from tmql_orchestration.core.project import Project
from tmql_orchestration.exceptions import ProjectValidationError, TmqlError
from tmql_orchestration.utils.discovery import load_project_module, resolve_project
from tmql_orchestration.utils.display import print_validation
from tmql_orchestration.utils.logging import get_logger, setup_logging_from_config

logger = get_logger("tmql.cli")


@dataclass
class ProjectContext:
    config: Config
    module: ModuleType
    project: Project


def fail(message: str) -> typer.Exit:
    """Print *message* to stderr and return the exit to raise."""
    typer.echo(f"Error: {message}", err=True)
    return typer.Exit(1)


def load_project(
    project_file: Path,
    console: Console,
    env: str | None = None,
    config_dir: Path | None = None,
    verbose: bool = False,
) -> ProjectContext:
    """
    Load config (from the project file's directory by default), set up
    logging and build the project.

    Validation failures are printed as a report; every failure exits with 1.
    """
    project_dir = config_dir or project_file.resolve().parent
    try:
        config = load_config(project_dir, env=env)
    except TmqlError as e:
        raise fail(str(e)) from e

    setup_logging_from_config(config, project_dir=project_dir)
    if verbose:
        get_logger().setLevel("DEBUG")

    try:
        module = load_project_module(project_file)
        project = resolve_project(module, config)
    except ProjectValidationError as e:
        print_validation(e.result, console)
        raise typer.Exit(1) from e
    except TmqlError as e:
        logger.debug(f"Loading {project_file} failed", exc_info=True)
        raise fail(str(e)) from e
    return ProjectContext(config=config, module=module, project=project)
