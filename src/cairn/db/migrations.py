"""Forward-only migration runner for Cairn's database schema.

Vec tables (vec_chunks_*) are NOT migration-managed: use ensure_vec_table().
"""

from __future__ import annotations

import sqlite3

# schema_version is the bootstrap table, created before migrations run.
_CREATE_SCHEMA_VERSION = """
CREATE TABLE IF NOT EXISTS schema_version (
    version     INTEGER NOT NULL,
    applied_at  DATETIME NOT NULL DEFAULT (datetime('now'))
)
"""

_V1_SQL = """
CREATE TABLE IF NOT EXISTS chunks (
    id              TEXT PRIMARY KEY,
    file_path       TEXT NOT NULL,
    file_name       TEXT NOT NULL,
    section         TEXT NOT NULL,
    content         TEXT NOT NULL,
    char_count      INTEGER NOT NULL,
    source_folder   TEXT NOT NULL,
    file_type       TEXT NOT NULL DEFAULT '',
    mtime           REAL NOT NULL DEFAULT 0
);

CREATE INDEX IF NOT EXISTS idx_chunks_file ON chunks(source_folder, file_path);

CREATE VIRTUAL TABLE IF NOT EXISTS chunks_fts USING fts5(content, tokenize='porter unicode61');

CREATE TABLE IF NOT EXISTS folder_stats (
    path            TEXT PRIMARY KEY,
    file_count      INTEGER NOT NULL,
    chunk_count     INTEGER NOT NULL,
    last_indexed_at DATETIME NOT NULL DEFAULT (datetime('now'))
);

CREATE TABLE IF NOT EXISTS indexed_folders (
    path            TEXT PRIMARY KEY,
    added_at        DATETIME NOT NULL DEFAULT (datetime('now'))
);
"""

_V2_SQL = """
CREATE TABLE IF NOT EXISTS embedding_cache (
    content_hash    TEXT NOT NULL,
    model_id        TEXT NOT NULL,
    vector          TEXT NOT NULL,
    created_at      REAL NOT NULL,
    PRIMARY KEY (content_hash, model_id)
);

CREATE INDEX IF NOT EXISTS idx_embedding_cache_age ON embedding_cache(created_at);
"""

# Append-only. Each entry: (version: int, sql: str).
# executescript() issues an implicit COMMIT before running.
MIGRATIONS: list[tuple[int, str]] = [
    (1, _V1_SQL),
    (2, _V2_SQL),
]


def run_migrations(conn: sqlite3.Connection) -> None:
    """Apply all pending migrations in ascending version order.

    Idempotent: safe to call on a database at any version.
    Vec tables are NOT managed here: use ensure_vec_table() instead.
    """
    conn.execute(_CREATE_SCHEMA_VERSION)
    conn.commit()

    row = conn.execute("SELECT MAX(version) FROM schema_version").fetchone()
    current = row[0] if row[0] is not None else 0

    for version, sql in MIGRATIONS:
        if version > current:
            conn.executescript(sql)
            conn.execute(
                "INSERT INTO schema_version (version) VALUES (?)", (version,)
            )
            conn.commit()
