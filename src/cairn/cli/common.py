"""Shared CLI plumbing: config + flag overrides, logging, service lifecycle."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler

from cairn.cli.errors import err_config, err_no_api_key
from cairn.config import CairnConfig, ConfigError, load_config
from cairn.embed.provider import api_key_available
from cairn.service import RagService

console = Console()

DbOption = Annotated[
    Path | None,
    typer.Option("--db", help="Path to the index database (default: ~/.cairn/cairn.db)."),
]
WorkspaceOption = Annotated[
    Path | None,
    typer.Option("--workspace", help="Agent workspace directory (default: ~/.cairn/workspace)."),
]


def configure_logging(level: str) -> None:
    """Route log records through rich on stderr; keep litellm quiet."""
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )
    logging.getLogger("LiteLLM").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


def load_cli_config(db: Path | None, workspace: Path | None) -> CairnConfig:
    """Load config and apply CLI flag overrides (highest priority layer)."""
    try:
        cfg = load_config()
    except ConfigError as exc:
        console.print(err_config(str(exc)))
        raise typer.Exit(1) from exc
    if db is not None:
        cfg.storage.db = str(db)
    if workspace is not None:
        cfg.storage.workspace = str(workspace)
    configure_logging(cfg.logging.level)
    if cfg.embedding.model and not api_key_available(cfg.embedding.model):
        console.print(err_no_api_key(cfg.embedding.model))
    return cfg


@asynccontextmanager
async def running_service(cfg: CairnConfig) -> AsyncIterator[RagService]:
    """Open a RagService on the running loop and always destroy it."""
    service = RagService(cfg)
    try:
        yield service
    finally:
        await service.destroy()
