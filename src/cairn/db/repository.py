"""Repository pattern for all Cairn storage operations.

Single interface for: chunks, FTS5 search, vec embeddings, hybrid search,
folder bookkeeping and the persistent embedding cache. Vec tables are
created per vector size on first write (ensure_vec_table).
"""

from __future__ import annotations

import json
import sqlite3
import time
from collections.abc import Iterable, Iterator

from cairn.db.models import Chunk, ChunkEmbedding, FolderStats, SearchResult
from cairn.db.vectors import ensure_vec_table, list_vec_tables, vec_table_exists, vec_table_name
from cairn.ingest.text import tokenize

_RRF_K = 60

_CHUNK_COLUMNS = (
    "rowid, id, file_path, file_name, section, content, char_count, "
    "source_folder, file_type, mtime"
)


class Repository:
    """Data access layer for all Cairn storage entities.

    Wraps an open sqlite3.Connection. The connection is owned by the caller
    and must be closed after use. All methods run on the caller's thread;
    ``sqlite3.Error`` propagates to the caller unchanged.
    """

    def __init__(self, conn: sqlite3.Connection, *, vector_search: bool = True) -> None:
        """Initialise with an open database connection.

        Args:
            conn: An open sqlite3.Connection with schema initialised
                (see cairn.db.schema.initialize).
            vector_search: Whether sqlite-vec is loaded on *conn*.
        """
        self._conn = conn
        self._vector_search = vector_search

    def has_vector_search_capability(self) -> bool:
        return self._vector_search

    # ------------------------------------------------------------------
    # Chunks
    # ------------------------------------------------------------------

    def upsert_chunks(self, chunks: Iterable[Chunk]) -> int:
        """Insert or replace chunks by id and keep FTS5 in sync. Returns the count."""
        n = 0
        for chunk in chunks:
            cur = self._conn.execute(
                """
                INSERT INTO chunks (id, file_path, file_name, section, content,
                                    char_count, source_folder, file_type, mtime)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    file_path = excluded.file_path,
                    file_name = excluded.file_name,
                    section = excluded.section,
                    content = excluded.content,
                    char_count = excluded.char_count,
                    source_folder = excluded.source_folder,
                    file_type = excluded.file_type,
                    mtime = excluded.mtime
                RETURNING rowid
                """,
                (
                    chunk.id,
                    chunk.file_path,
                    chunk.file_name,
                    chunk.section,
                    chunk.content,
                    chunk.char_count,
                    chunk.source_folder,
                    chunk.file_type,
                    chunk.mtime,
                ),
            )
            rowid = cur.fetchone()[0]
            chunk.rowid = rowid
            # Keep FTS5 in sync with explicit rowid mapping
            self._conn.execute("DELETE FROM chunks_fts WHERE rowid = ?", (rowid,))
            self._conn.execute(
                "INSERT INTO chunks_fts(rowid, content) VALUES (?, ?)",
                (rowid, chunk.content),
            )
            n += 1
        self._conn.commit()
        return n

    def get_chunk(self, chunk_id: str) -> Chunk | None:
        row = self._conn.execute(
            f"SELECT {_CHUNK_COLUMNS} FROM chunks WHERE id = ?", (chunk_id,)
        ).fetchone()
        return _row_to_chunk(row) if row else None

    def get_chunk_by_rowid(self, rowid: int) -> Chunk | None:
        row = self._conn.execute(
            f"SELECT {_CHUNK_COLUMNS} FROM chunks WHERE rowid = ?", (rowid,)
        ).fetchone()
        return _row_to_chunk(row) if row else None

    def list_chunks_by_file(self, source_folder: str, file_path: str) -> list[Chunk]:
        rows = self._conn.execute(
            f"SELECT {_CHUNK_COLUMNS} FROM chunks WHERE source_folder = ? AND file_path = ? "
            "ORDER BY rowid",
            (source_folder, file_path),
        ).fetchall()
        return [_row_to_chunk(r) for r in rows]

    def get_chunk_count(self, source_folder: str | None = None) -> int:
        if source_folder is None:
            return self._conn.execute("SELECT COUNT(*) FROM chunks").fetchone()[0]
        return self._conn.execute(
            "SELECT COUNT(*) FROM chunks WHERE source_folder = ?", (source_folder,)
        ).fetchone()[0]

    def iter_chunk_contents(self, batch_size: int = 1000) -> Iterator[str]:
        """Yield the content of every stored chunk, in rowid order."""
        last = 0
        while True:
            rows = self._conn.execute(
                "SELECT rowid, content FROM chunks WHERE rowid > ? ORDER BY rowid LIMIT ?",
                (last, batch_size),
            ).fetchall()
            if not rows:
                return
            for row in rows:
                yield row["content"]
            last = rows[-1]["rowid"]

    def delete_chunks_by_file(self, source_folder: str, file_path: str) -> int:
        """Delete chunks, FTS entries and embeddings of one file. Returns chunks deleted."""
        return self._delete_where("source_folder = ? AND file_path = ?", (source_folder, file_path))

    def delete_chunks_by_folder(self, source_folder: str) -> int:
        """Delete chunks, FTS entries and embeddings of one indexed root."""
        return self._delete_where("source_folder = ?", (source_folder,))

    def clear(self) -> None:
        """Remove every chunk, FTS entry and stored embedding."""
        self._conn.execute("DELETE FROM chunks")
        self._conn.execute("DELETE FROM chunks_fts")
        for table in self._vec_tables():
            self._conn.execute(f"DELETE FROM [{table}]")  # noqa: S608
        self._conn.execute("DELETE FROM folder_stats")
        self._conn.commit()

    def _delete_where(self, where: str, params: tuple) -> int:
        # FTS and vec tables have no cascade; delete by rowid explicitly.
        rowids = [
            r[0]
            for r in self._conn.execute(
                f"SELECT rowid FROM chunks WHERE {where}", params  # noqa: S608
            ).fetchall()
        ]
        if not rowids:
            return 0
        for start in range(0, len(rowids), 500):
            part = rowids[start : start + 500]
            placeholders = ",".join("?" * len(part))
            self._conn.execute(
                f"DELETE FROM chunks_fts WHERE rowid IN ({placeholders})", part  # noqa: S608
            )
            for table in self._vec_tables():
                self._conn.execute(
                    f"DELETE FROM [{table}] WHERE rowid IN ({placeholders})", part  # noqa: S608
                )
        self._conn.execute(f"DELETE FROM chunks WHERE {where}", params)  # noqa: S608
        self._conn.commit()
        return len(rowids)

    # ------------------------------------------------------------------
    # Vec embeddings
    # ------------------------------------------------------------------

    def upsert_chunk_embeddings(self, entries: Iterable[ChunkEmbedding]) -> int:
        """Store vectors keyed by chunk id. Entries for unknown chunk ids are skipped.

        Returns the number of vectors written. A no-op without vector capability.
        """
        if not self._vector_search:
            return 0
        written = 0
        for entry in entries:
            if not entry.embedding:
                continue
            row = self._conn.execute(
                "SELECT rowid FROM chunks WHERE id = ?", (entry.chunk_id,)
            ).fetchone()
            if row is None:
                continue
            rowid = row[0]
            table = ensure_vec_table(self._conn, len(entry.embedding))
            # A chunk has at most one vector across all tables.
            for other in self._vec_tables():
                self._conn.execute(f"DELETE FROM [{other}] WHERE rowid = ?", (rowid,))  # noqa: S608
            self._conn.execute(
                f"INSERT INTO {table}(rowid, embedding) VALUES (?, ?)",
                (rowid, json.dumps(entry.embedding)),
            )
            written += 1
        self._conn.commit()
        return written

    def count_embeddings(self) -> int:
        return sum(
            self._conn.execute(f"SELECT COUNT(*) FROM [{t}]").fetchone()[0]  # noqa: S608
            for t in self._vec_tables()
        )

    def _vec_tables(self) -> list[str]:
        # vec0 tables cannot be touched without the extension loaded
        if not self._vector_search:
            return []
        return list_vec_tables(self._conn)

    def search_vec(self, embedding: list[float], limit: int = 10) -> list[tuple[Chunk, float]]:
        """Nearest-neighbour search. Returns (chunk, cosine distance) sorted by distance.

        Only vectors with the same dimensionality as *embedding* are searched.
        """
        if not self._vector_search or not embedding:
            return []
        table = vec_table_name(len(embedding))
        if not vec_table_exists(self._conn, table):
            return []
        vec_rows = self._conn.execute(
            f"SELECT rowid, distance FROM {table} WHERE embedding MATCH ? AND k = ? ORDER BY distance",
            (json.dumps(embedding), limit),
        ).fetchall()

        results: list[tuple[Chunk, float]] = []
        for vec_row in vec_rows:
            chunk = self.get_chunk_by_rowid(vec_row["rowid"])
            if chunk is not None:
                results.append((chunk, vec_row["distance"]))
        return results

    # ------------------------------------------------------------------
    # FTS5 / BM25 search
    # ------------------------------------------------------------------

    def search_fts(self, query: str, limit: int = 10) -> list[tuple[Chunk, float]]:
        """BM25 full-text search. Returns (chunk, score) sorted best-first.

        Query tokens are quoted and OR-ed, so punctuation and FTS5 operators
        in user input never raise syntax errors. bm25() is negative; lower is
        a better match.
        """
        tokens = tokenize(query)
        if not tokens:
            return []
        fts_query = " OR ".join(f'"{t}"' for t in dict.fromkeys(tokens))
        fts_rows = self._conn.execute(
            "SELECT rowid, bm25(chunks_fts) AS score FROM chunks_fts "
            "WHERE chunks_fts MATCH ? ORDER BY score LIMIT ?",
            (fts_query, limit),
        ).fetchall()

        results: list[tuple[Chunk, float]] = []
        for fts_row in fts_rows:
            chunk = self.get_chunk_by_rowid(fts_row["rowid"])
            if chunk is not None:
                results.append((chunk, fts_row["score"]))
        return results

    # ------------------------------------------------------------------
    # Hybrid search
    # ------------------------------------------------------------------

    def hybrid_search(
        self,
        query_vector: list[float],
        query_text: str,
        top_k: int = 5,
        *,
        rrf_k: int = _RRF_K,
    ) -> list[SearchResult]:
        """Vector top-K and keyword top-K fused by Reciprocal Rank Fusion.

        score(d) = 1/(k + rank_vec) + 1/(k + rank_kw)   k = rrf_k (60)

        A chunk missing from one channel gets rank (channel size + k) there.

        Scores are divided by the best achievable score (rank 1 in both
        channels), so they fall in (0, 1].
        """
        vec_results = self.search_vec(query_vector, limit=top_k)
        fts_results = self.search_fts(query_text, limit=top_k)
        return _rrf_fuse(vec_results, fts_results, top_k=top_k, k=rrf_k)

    # ------------------------------------------------------------------
    # Folder stats + indexed folders
    # ------------------------------------------------------------------

    def upsert_folder_stats(self, path: str, file_count: int, chunk_count: int) -> None:
        self._conn.execute(
            """
            INSERT INTO folder_stats (path, file_count, chunk_count)
            VALUES (?, ?, ?)
            ON CONFLICT(path) DO UPDATE SET
                file_count = excluded.file_count,
                chunk_count = excluded.chunk_count,
                last_indexed_at = datetime('now')
            """,
            (path, file_count, chunk_count),
        )
        self._conn.commit()

    def get_folder_stats(self) -> list[FolderStats]:
        rows = self._conn.execute(
            "SELECT path, file_count, chunk_count, last_indexed_at FROM folder_stats ORDER BY path"
        ).fetchall()
        return [
            FolderStats(
                path=r["path"],
                file_count=r["file_count"],
                chunk_count=r["chunk_count"],
                last_indexed_at=r["last_indexed_at"],
            )
            for r in rows
        ]

    def delete_folder_stats(self, path: str) -> None:
        self._conn.execute("DELETE FROM folder_stats WHERE path = ?", (path,))
        self._conn.commit()

    def list_indexed_folders(self) -> list[str]:
        rows = self._conn.execute(
            "SELECT path FROM indexed_folders ORDER BY added_at, path"
        ).fetchall()
        return [r["path"] for r in rows]

    def add_indexed_folder(self, path: str) -> None:
        self._conn.execute(
            "INSERT OR IGNORE INTO indexed_folders (path) VALUES (?)", (path,)
        )
        self._conn.commit()

    def remove_indexed_folder(self, path: str) -> None:
        self._conn.execute("DELETE FROM indexed_folders WHERE path = ?", (path,))
        self._conn.commit()

    # ------------------------------------------------------------------
    # Persistent embedding cache
    # ------------------------------------------------------------------

    def get_cached_embedding(self, content_hash: str, model_id: str) -> list[float] | None:
        row = self._conn.execute(
            "SELECT vector FROM embedding_cache WHERE content_hash = ? AND model_id = ?",
            (content_hash, model_id),
        ).fetchone()
        return json.loads(row["vector"]) if row else None

    def put_cached_embedding(self, content_hash: str, model_id: str, vector: list[float]) -> None:
        self._conn.execute(
            """
            INSERT INTO embedding_cache (content_hash, model_id, vector, created_at)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(content_hash, model_id) DO UPDATE SET
                vector = excluded.vector,
                created_at = excluded.created_at
            """,
            (content_hash, model_id, json.dumps(vector), time.time()),
        )
        self._conn.commit()

    def count_cached_embeddings(self, model_id: str | None = None) -> int:
        if model_id is None:
            return self._conn.execute("SELECT COUNT(*) FROM embedding_cache").fetchone()[0]
        return self._conn.execute(
            "SELECT COUNT(*) FROM embedding_cache WHERE model_id = ?", (model_id,)
        ).fetchone()[0]

    def evict_cached_embeddings(self, max_entries: int) -> int:
        """Delete the oldest cache rows beyond *max_entries*. Returns rows deleted."""
        total = self.count_cached_embeddings()
        excess = total - max(0, max_entries)
        if excess <= 0:
            return 0
        cur = self._conn.execute(
            """
            DELETE FROM embedding_cache WHERE rowid IN (
                SELECT rowid FROM embedding_cache ORDER BY created_at, rowid LIMIT ?
            )
            """,
            (excess,),
        )
        self._conn.commit()
        return cur.rowcount

    def purge_cached_embeddings_except(self, model_id: str) -> int:
        """Delete cache rows produced by any model other than *model_id*."""
        cur = self._conn.execute(
            "DELETE FROM embedding_cache WHERE model_id != ?", (model_id,)
        )
        self._conn.commit()
        return cur.rowcount


# ------------------------------------------------------------------
# RRF fusion
# ------------------------------------------------------------------


def _rrf_fuse(
    vec_results: list[tuple[Chunk, float]],
    fts_results: list[tuple[Chunk, float]],
    top_k: int,
    k: int = _RRF_K,
) -> list[SearchResult]:
    # Build rowid → rank maps (1-indexed)
    vec_rank: dict[int, int] = {}
    chunk_map: dict[int, Chunk] = {}
    for i, (chunk, _) in enumerate(vec_results):
        vec_rank[chunk.rowid] = i + 1
        chunk_map[chunk.rowid] = chunk

    fts_rank: dict[int, int] = {}
    for i, (chunk, _) in enumerate(fts_results):
        fts_rank[chunk.rowid] = i + 1
        chunk_map.setdefault(chunk.rowid, chunk)

    best = 2.0 / (k + 1)
    n_vec = len(vec_results)
    n_fts = len(fts_results)

    scored: list[SearchResult] = []
    for rowid, chunk in chunk_map.items():
        vr = vec_rank.get(rowid, n_vec + k)
        fr = fts_rank.get(rowid, n_fts + k)
        score = (1.0 / (k + vr) + 1.0 / (k + fr)) / best
        scored.append(
            SearchResult(
                chunk=chunk,
                score=score,
                vector_rank=vec_rank.get(rowid),
                keyword_rank=fts_rank.get(rowid),
            )
        )

    scored.sort(key=lambda s: (-s.score, s.chunk.rowid))
    return scored[:top_k]


# ------------------------------------------------------------------
# Row → model helpers
# ------------------------------------------------------------------


def _row_to_chunk(row: sqlite3.Row) -> Chunk:
    return Chunk(
        rowid=row["rowid"],
        id=row["id"],
        file_path=row["file_path"],
        file_name=row["file_name"],
        section=row["section"],
        content=row["content"],
        char_count=row["char_count"],
        source_folder=row["source_folder"],
        file_type=row["file_type"],
        mtime=row["mtime"],
    )
