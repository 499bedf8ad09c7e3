"""cairn watch: keep the index current until interrupted (Ctrl+C)."""

from __future__ import annotations

import asyncio

import typer

from cairn.cli.common import DbOption, WorkspaceOption, console, load_cli_config, running_service
from cairn.cli.errors import err_reindex_failed


def watch_cmd(db: DbOption = None, workspace: WorkspaceOption = None) -> None:
    """Index if needed, then re-index changed files as they are saved."""
    cfg = load_cli_config(db, workspace)
    cfg.watcher.enabled = True

    async def _run() -> None:
        async with running_service(cfg) as service:
            if not await service.initialize():
                console.print(err_reindex_failed(service.reporter.latest.error))
                raise typer.Exit(1)
            roots = service.start_watchers()
            for root in roots:
                console.print(f"  [green]✓[/] Watching {root}")
            console.print("[dim]Press Ctrl+C to stop.[/]")
            await asyncio.Event().wait()

    try:
        asyncio.run(_run())
    except KeyboardInterrupt:
        console.print("[dim]Stopped.[/]")
