"""cairn cache CLI commands.

Commands:
  cairn cache evict  : trim the persistent embedding cache to its ceiling
  cairn cache purge  : drop entries of retired models, then trim
"""

from __future__ import annotations

import asyncio
from typing import Annotated

import typer

from cairn.cli.common import DbOption, WorkspaceOption, console, load_cli_config, running_service

cache_app = typer.Typer(
    name="cache",
    help="Maintain the persistent embedding cache (evict, purge).",
    add_completion=False,
)


@cache_app.command("evict")
def cache_evict_cmd(
    max_entries: Annotated[
        int | None,
        typer.Option("--max-entries", min=0, help="Rows to keep (default: cache.persistent_max_entries)."),
    ] = None,
    db: DbOption = None,
    workspace: WorkspaceOption = None,
) -> None:
    """Remove the oldest persistent cache rows above the ceiling."""
    cfg = load_cli_config(db, workspace)

    async def _run() -> int:
        async with running_service(cfg) as service:
            return service.maintain_cache(max_entries)

    removed = asyncio.run(_run())
    console.print(f"  [green]✓[/] Evicted {removed:,} cache entries")


@cache_app.command("purge")
def cache_purge_cmd(db: DbOption = None, workspace: WorkspaceOption = None) -> None:
    """Delete cache rows of every model except the active one."""
    cfg = load_cli_config(db, workspace)

    async def _run() -> tuple[str, int]:
        async with running_service(cfg) as service:
            # Local model ids depend on the corpus statistics.
            await service.load_statistics()
            model = service.generator.active_model
            return model, service.maintain_cache(purge=True)

    model, removed = asyncio.run(_run())
    console.print(f"  [green]✓[/] Purged {removed:,} cache entries (kept model: {model})")
