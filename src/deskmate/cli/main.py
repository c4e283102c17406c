"""deskmate CLI entry point."""

from __future__ import annotations

import importlib.metadata
from typing import Annotated

import typer

from deskmate.cli.chat import chat_cmd
from deskmate.cli.common import setup_logging
from deskmate.cli.index import index_cmd
from deskmate.cli.projects import projects_cmd
from deskmate.cli.recall import recall_cmd


def _version() -> str:
    try:
        return importlib.metadata.version("deskmate")
    except importlib.metadata.PackageNotFoundError:
        return "dev"


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"deskmate {_version()}")
        raise typer.Exit()


app = typer.Typer(
    name="deskmate",
    help=(
        "deskmate: a project-aware coding assistant in your terminal.\n\n"
        "  deskmate index PATH   Index a project folder.\n"
        "  deskmate chat         Chat about your indexed projects."
    ),
    add_completion=False,
)


@app.callback()
def main_callback(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Show debug logging on stderr."),
    ] = False,
) -> None:
    """deskmate: a project-aware coding assistant in your terminal."""
    setup_logging(verbose)


app.command("index")(index_cmd)
app.command("projects")(projects_cmd)
app.command("chat")(chat_cmd)
app.command("recall")(recall_cmd)


@app.command("version")
def version_cmd() -> None:
    """Show the installed deskmate version."""
    typer.echo(f"deskmate {_version()}")


if __name__ == "__main__":
    app()
