"""cairn reindex / add-folder: build the index with live progress.

  cairn reindex               full rebuild of workspace + all folders
  cairn add-folder ~/notes    add one root and index only that folder
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Annotated

import typer
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn

from cairn.cli.common import DbOption, WorkspaceOption, console, load_cli_config, running_service
from cairn.cli.errors import err_folder, err_reindex_failed, warn_indexing_busy
from cairn.index.progress import IndexPhase, IndexProgress
from cairn.service import FolderError, RagService


def reindex_cmd(db: DbOption = None, workspace: WorkspaceOption = None) -> None:
    """Rebuild the whole index (workspace and every added folder)."""
    cfg = load_cli_config(db, workspace)

    async def _run() -> IndexProgress | None:
        async with running_service(cfg) as service:
            Path(cfg.storage.workspace).expanduser().mkdir(parents=True, exist_ok=True)
            return await _with_progress(service, service.reindex())

    _report(asyncio.run(_run()))


def add_folder_cmd(
    path: Annotated[Path, typer.Argument(help="Directory to add to the index.")],
    db: DbOption = None,
    workspace: WorkspaceOption = None,
) -> None:
    """Add a folder to the index and index it."""
    cfg = load_cli_config(db, workspace)

    async def _run() -> IndexProgress | None:
        async with running_service(cfg) as service:
            return await _with_progress(service, service.add_folder(path))

    try:
        _report(asyncio.run(_run()))
    except FolderError as exc:
        console.print(err_folder(str(exc)))
        raise typer.Exit(1) from exc
    console.print(f"  [green]✓[/] Added {path.expanduser().resolve()}")


async def _with_progress(service: RagService, operation) -> IndexProgress | None:
    """Await *operation* while rendering progress events; return the terminal event."""
    terminal: list[IndexProgress] = []
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        TextColumn("[dim]{task.fields[chunks]} chunks[/dim]"),
        transient=True,
        console=console,
    ) as prog:
        task = prog.add_task("Scanning…", total=100, chunks=0)

        def _on_progress(event: IndexProgress) -> None:
            prog.update(
                task,
                description=event.phase.value.capitalize() + "…",
                completed=event.overall_percent,
                chunks=event.chunks_created,
            )
            if event.phase.is_terminal:
                terminal.append(event)

        unsubscribe = service.subscribe(_on_progress)
        try:
            await operation
        finally:
            unsubscribe()
    return terminal[-1] if terminal else None


def _report(event: IndexProgress | None) -> None:
    if event is None:
        console.print(warn_indexing_busy())
        return
    if event.phase is IndexPhase.ERROR:
        console.print(err_reindex_failed(event.error))
        raise typer.Exit(1)
    console.print(
        f"  [green]✓[/] Indexed {event.files_processed} files, {event.chunks_created} chunks"
    )
