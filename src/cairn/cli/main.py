"""Cairn CLI entry point."""

from __future__ import annotations

import importlib.metadata
from typing import Annotated

import typer

from cairn.cli.cache import cache_app
from cairn.cli.index import add_folder_cmd, reindex_cmd
from cairn.cli.init import init_cmd
from cairn.cli.remove import remove_folder_cmd
from cairn.cli.search import search_cmd
from cairn.cli.status import status_cmd
from cairn.cli.watch import watch_cmd


def _installed_version() -> str:
    try:
        return importlib.metadata.version("cairn")
    except importlib.metadata.PackageNotFoundError:
        return "dev"


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"cairn {_installed_version()}")
        raise typer.Exit()


app = typer.Typer(
    name="cairn",
    help=(
        "Cairn: local hybrid search over your agent workspace and folders.\n\n"
        "  cairn add-folder  Index a folder.\n"
        "  cairn search      Vector + keyword search over everything indexed."
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
) -> None:
    """Cairn: local hybrid search over your agent workspace and folders."""


app.command("init")(init_cmd)
app.command("reindex")(reindex_cmd)
app.command("add-folder")(add_folder_cmd)
app.command("remove-folder")(remove_folder_cmd)
app.command("search")(search_cmd)
app.command("status")(status_cmd)
app.command("watch")(watch_cmd)
app.add_typer(cache_app, name="cache")


@app.command("version")
def version_cmd() -> None:
    """Show the installed Cairn version."""
    typer.echo(f"cairn {_installed_version()}")


if __name__ == "__main__":
    app()
