"""cairn search: hybrid (vector + keyword) query against the index."""

from __future__ import annotations

import asyncio
from typing import Annotated

import typer
from rich.panel import Panel

from cairn.cli.common import DbOption, WorkspaceOption, console, load_cli_config, running_service
from cairn.cli.errors import err_index_not_ready
from cairn.db.models import SearchResult
from cairn.rag.search import IndexNotReadyError


def search_cmd(
    query: Annotated[str, typer.Argument(help="Search query.")],
    top_k: Annotated[
        int | None,
        typer.Option("--top-k", "-k", min=1, help="Number of results (default from config)."),
    ] = None,
    min_score: Annotated[
        float | None,
        typer.Option("--min-score", min=0.0, max=1.0, help="Drop results below this score."),
    ] = None,
    context: Annotated[
        bool,
        typer.Option("--context", help="Print a prompt-ready context block instead."),
    ] = False,
    db: DbOption = None,
    workspace: WorkspaceOption = None,
) -> None:
    """Search the index and print the best matching chunks."""
    cfg = load_cli_config(db, workspace)

    async def _run() -> list[SearchResult] | str:
        async with running_service(cfg) as service:
            await service.initialize()
            if context:
                return await service.build_context(query)
            return await service.search(query, top_k=top_k, min_score=min_score)

    try:
        outcome = asyncio.run(_run())
    except IndexNotReadyError as exc:
        console.print(err_index_not_ready())
        raise typer.Exit(1) from exc

    if isinstance(outcome, str):
        typer.echo(outcome)
        return
    if not outcome:
        console.print("[dim]No results.[/]")
        return
    for n, result in enumerate(outcome, start=1):
        chunk = result.chunk
        title = f"[bold]{n}.[/] {chunk.file_path} > {chunk.section}  [dim]score {result.score:.3f}[/]"
        console.print(Panel(chunk.content, title=title, title_align="left", expand=False))
