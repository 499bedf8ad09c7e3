"""cairn init: create the global config, workspace and empty index.

Creates:
  ~/.cairn/config.yaml    : global model config (created once, mode 0o600)
  <workspace>/memory/     : agent memory notes (indexed recursively)
  <db>                    : empty index with schema
"""

from __future__ import annotations

from pathlib import Path

from cairn.cli.common import DbOption, WorkspaceOption, console, load_cli_config
from cairn.config import ensure_global_config
from cairn.db.connection import Database
from cairn.db.schema import initialize
from cairn.index.scanner import WORKSPACE_MEMORY_DIR


def init_cmd(db: DbOption = None, workspace: WorkspaceOption = None) -> None:
    """Create ~/.cairn/config.yaml, the workspace and an empty index."""
    cfg_path = ensure_global_config()
    console.print(f"  [green]✓[/] {cfg_path} (global config)")

    cfg = load_cli_config(db, workspace)

    ws = Path(cfg.storage.workspace).expanduser()
    (ws / WORKSPACE_MEMORY_DIR).mkdir(parents=True, exist_ok=True)
    console.print(f"  [green]✓[/] {ws} (workspace)")

    db_path = Path(cfg.storage.db).expanduser()
    with Database(db_path) as conn:
        initialize(conn)
    console.print(f"  [green]✓[/] {db_path} (index)")

    console.print("\nNext steps:")
    console.print("  1. cairn add-folder <dir>    (index a folder)")
    console.print("  2. cairn search \"<query>\"    (query the index)")
    console.print("  3. cairn watch               (keep the index current)")
