"""cairn status: index overview: chunks, embedding mode, folders and cache."""

from __future__ import annotations

import asyncio
from pathlib import Path

from rich.panel import Panel
from rich.table import Table

from cairn.cli.common import DbOption, WorkspaceOption, console, load_cli_config, running_service
from cairn.db.models import WORKSPACE_FOLDER
from cairn.service import IndexStats


def status_cmd(db: DbOption = None, workspace: WorkspaceOption = None) -> None:
    """Show index status: size, embedding mode, indexed folders and cache."""
    cfg = load_cli_config(db, workspace)

    async def _run() -> IndexStats:
        async with running_service(cfg) as service:
            return service.get_stats()

    stats = asyncio.run(_run())
    db_path = Path(cfg.storage.db).expanduser()

    # ---- Panel 1: Index ----
    size = f" ({db_path.stat().st_size / (1024 * 1024):.1f} MB)" if db_path.exists() else ""
    mode = "[green]remote[/]" if stats.embedding_type == "remote" else "[yellow]fallback[/]"
    lines = [
        f"Database:    {db_path}{size}",
        f"Workspace:   {cfg.storage.workspace}",
        f"Chunks:      [bold]{stats.total_chunks:,}[/]  |  Files: [bold]{stats.total_files:,}[/]",
        f"Embeddings:  {mode}  [dim]{stats.embedding_model}[/]",
        f"Vector search: {'[green]yes[/]' if stats.vector_search else '[yellow]keyword only[/]'}",
    ]
    if not stats.total_chunks:
        lines.append("[dim]Nothing indexed yet. Run:  cairn reindex[/]")
    console.print(Panel("\n".join(lines), title="[bold]Index[/]", expand=False))

    # ---- Panel 2: Folders ----
    table = Table(box=None, padding=(0, 1))
    table.add_column("Folder", style="bold")
    table.add_column("Files", justify="right")
    table.add_column("Chunks", justify="right")
    table.add_column("Last indexed", style="dim")
    for folder in stats.folders:
        name = "(workspace)" if folder.path == WORKSPACE_FOLDER else folder.path
        table.add_row(name, str(folder.file_count), str(folder.chunk_count), folder.last_indexed_at or "never")
    console.print(Panel(table, title="[bold]Folders[/]", expand=False))

    # ---- Panel 3: Cache ----
    console.print(
        Panel(
            f"Hot: {stats.hot_cache_entries:,} / {cfg.cache.hot_max_entries:,}\n"
            f"Persistent: {stats.persistent_cache_entries:,} / {cfg.cache.persistent_max_entries:,}",
            title="[bold]Embedding cache[/]",
            expand=False,
        )
    )

