"""
Main CLI entry point.
"""

import typer

from tmql_orchestration import __version__
from tmql_orchestration.cli.plan import plan
from tmql_orchestration.cli.run import run
from tmql_orchestration.cli.validate import validate


def version_callback(value: bool):
    """Callback to display version and exit."""
    if value:
        typer.echo(f"tmql version {__version__}")
        raise typer.Exit()


app = typer.Typer(
    name="tmql",
    help="tmql - Dependency-aware orchestration of aggregation pipeline models",
    add_completion=False,
)

# Register commands
app.command(name="validate")(validate)
app.command(name="plan")(plan)
app.command(name="run")(run)


@app.callback(invoke_without_command=True)
def entrypoint(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
):
    """
    tmql - Dependency-aware orchestration of aggregation pipeline models.

    Run 'tmql <command> --help' for help on a specific command.
    """
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit()


def main():
    """Main CLI entry point."""
    app()


if __name__ == "__main__":
    main()
