"""cairn remove-folder: forget an indexed folder.

Deletes the folder's chunks (+ FTS5 entries and vectors) and its folder
stats. Files on disk are never touched.

Usage:
  cairn remove-folder ~/notes
  cairn remove-folder ~/notes --yes
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Annotated

import typer

from cairn.cli.common import DbOption, WorkspaceOption, console, load_cli_config, running_service
from cairn.cli.errors import err_folder
from cairn.service import FolderError


def remove_folder_cmd(
    path: Annotated[Path, typer.Argument(help="Indexed folder to remove.")],
    db: DbOption = None,
    workspace: WorkspaceOption = None,
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Skip confirmation prompt."),
    ] = False,
) -> None:
    """Remove a folder and all its chunks from the index."""
    cfg = load_cli_config(db, workspace)
    folder = path.expanduser().resolve()

    if not yes and not typer.confirm(f"Remove '{folder}' from the index?", default=False):
        console.print("[dim]Cancelled.[/]")
        raise typer.Exit(0)

    async def _run() -> None:
        async with running_service(cfg) as service:
            await service.remove_folder(folder)

    try:
        asyncio.run(_run())
    except FolderError as exc:
        console.print(err_folder(str(exc)))
        raise typer.Exit(1) from exc
    console.print(f"  [green]✓[/] Removed {folder}")
