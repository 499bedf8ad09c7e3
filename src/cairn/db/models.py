"""Domain models for the Cairn storage layer."""

from __future__ import annotations

from dataclasses import dataclass

WORKSPACE_FOLDER = "workspace"


@dataclass
class Chunk:
    id: str
    file_path: str
    file_name: str
    section: str
    content: str
    char_count: int
    source_folder: str
    file_type: str
    mtime: float = 0.0
    rowid: int | None = None  # set once persisted; None for unsaved chunks


@dataclass
class ChunkEmbedding:
    """Vector for one chunk, joined to the chunk by ``chunk_id``."""

    chunk_id: str
    embedding: list[float]


@dataclass
class FolderStats:
    path: str
    file_count: int
    chunk_count: int
    last_indexed_at: str | None = None


@dataclass
class SearchResult:
    """A ranked chunk from hybrid search.

    Attributes:
        chunk: The matched Chunk.
        score: Combined relevance in (0, 1]; higher is better.
        vector_rank: 1-based rank in the vector channel (None if not retrieved).
        keyword_rank: 1-based rank in the keyword channel (None if not retrieved).
    """

    chunk: Chunk
    score: float
    vector_rank: int | None = None
    keyword_rank: int | None = None
