"""Cairn database layer."""

from cairn.db.connection import Database
from cairn.db.migrations import MIGRATIONS, run_migrations
from cairn.db.repository import Repository
from cairn.db.schema import initialize
from cairn.db.vectors import ensure_vec_table, list_vec_tables, vec_table_name

__all__ = [
    "Database",
    "Repository",
    "initialize",
    "run_migrations",
    "MIGRATIONS",
    "ensure_vec_table",
    "list_vec_tables",
    "vec_table_name",
]
