"""Main CLI application entry point."""

from __future__ import annotations

from typing import Annotated

import typer

from dbprofile import __version__
from dbprofile.cli.commands import analyze

app = typer.Typer(
    name="dbprofile",
    help="Column statistics for the tables of a relational database.",
    no_args_is_help=True,
)

# Register commands
app.command()(analyze.analyze)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"dbprofile {__version__}")
        raise typer.Exit()


@app.callback()
def callback(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show the version and exit",
        ),
    ] = False,
) -> None:
    """Column statistics for the tables of a relational database."""


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
