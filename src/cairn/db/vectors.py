"""Per-dimension sqlite-vec virtual table management.

Vectors of different sizes (remote model vs. local fallback) never share a
table; a query vector is matched only against the table of its own size.
"""

from __future__ import annotations

import sqlite3

_VEC_PREFIX = "vec_chunks_"


def vec_table_name(dimensions: int) -> str:
    """Return the vec table name for vectors of *dimensions* floats."""
    if dimensions < 1:
        raise ValueError(f"dimensions must be >= 1, got {dimensions}")
    return f"{_VEC_PREFIX}{int(dimensions)}"


def ensure_vec_table(conn: sqlite3.Connection, dimensions: int) -> str:
    """Create vec_chunks_{dimensions} (cosine distance) if it doesn't already exist.

    Args:
        conn: Active database connection (sqlite-vec must be loaded).
        dimensions: Embedding vector dimensions (e.g. 1536 or 256).

    Returns:
        The table name.
    """
    table = vec_table_name(dimensions)
    if not vec_table_exists(conn, table):
        conn.execute(
            f"CREATE VIRTUAL TABLE {table} USING vec0("
            f"embedding float[{int(dimensions)}] distance_metric=cosine)"
        )
        conn.commit()
    return table


def vec_table_exists(conn: sqlite3.Connection, table: str) -> bool:
    row = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' AND name=?", (table,)
    ).fetchone()
    return row is not None


def list_vec_tables(conn: sqlite3.Connection) -> list[str]:
    """Return the names of all existing vec tables, sorted."""
    rows = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' AND name LIKE ? ORDER BY name",
        (f"{_VEC_PREFIX}%",),
    ).fetchall()
    # vec0 creates shadow tables (vec_chunks_256_chunks, ...); keep the virtual ones
    return [r[0] for r in rows if r[0][len(_VEC_PREFIX):].isdigit()]
