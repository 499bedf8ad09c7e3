"""File → Chunk dispatch: reads a file, picks a strategy by extension, splits oversize sections."""

from __future__ import annotations

import logging
import os
from pathlib import Path

from cairn.config import ChunkingCfg
from cairn.db.models import Chunk
from cairn.ingest.base import BaseChunker, Section, split_oversize
from cairn.ingest.code import CodeChunker
from cairn.ingest.csv_chunker import CsvChunker
from cairn.ingest.extract import BINARY_EXTENSIONS, extract_text
from cairn.ingest.json_chunker import JsonChunker
from cairn.ingest.markdown import MarkdownChunker
from cairn.ingest.plaintext import PlainTextChunker
from cairn.ingest.yaml_chunker import TomlChunker, YamlChunker

logger = logging.getLogger(__name__)

CODE_EXTENSIONS = frozenset(
    {
        ".ts", ".tsx", ".js", ".jsx", ".mjs", ".cjs",
        ".py", ".pyx",
        ".java", ".kt", ".scala",
        ".cpp", ".c", ".h", ".hpp", ".cc", ".cs",
        ".go", ".rs", ".rb", ".php", ".swift", ".lua",
        ".sh", ".bash", ".zsh", ".ps1", ".bat", ".cmd",
        ".sql", ".r",
    }
)

DOCUMENT_EXTENSIONS = frozenset(
    {
        ".md", ".mdx", ".markdown", ".txt", ".text", ".rst",
        ".json", ".jsonc", ".json5", ".yaml", ".yml", ".toml", ".xml",
        ".csv", ".tsv", ".ini", ".cfg", ".conf", ".env", ".log",
        ".html", ".htm", ".css", ".scss", ".less", ".svg",
    }
)

DEFAULT_EXTENSIONS = CODE_EXTENSIONS | DOCUMENT_EXTENSIONS | BINARY_EXTENSIONS

MARKDOWN_EXTENSIONS = frozenset({".md", ".mdx", ".markdown", ".rst"})
JSON_EXTENSIONS = frozenset({".json", ".jsonc", ".json5"})
TABULAR_EXTENSIONS = frozenset({".csv", ".tsv"})

MAX_FILE_SIZE = 500 * 1024 * 1024
MAX_TEXT_READ = 10 * 1024 * 1024


def get_chunker(ext: str, cfg: ChunkingCfg | None = None) -> BaseChunker:
    """Return the chunking strategy for a lowercase extension (with the dot)."""
    cfg = cfg or ChunkingCfg()
    sizes = {"max_chars": cfg.max_chars, "lines_per_block": cfg.lines_per_block}
    if ext in MARKDOWN_EXTENSIONS:
        return MarkdownChunker(**sizes)
    if ext in CODE_EXTENSIONS:
        return CodeChunker(ext, **sizes)
    if ext in JSON_EXTENSIONS:
        return JsonChunker(**sizes)
    if ext in (".yaml", ".yml"):
        return YamlChunker(**sizes)
    if ext == ".toml":
        return TomlChunker(**sizes)
    if ext in TABULAR_EXTENSIONS:
        return CsvChunker(rows_per_block=cfg.csv_rows_per_block, **sizes)
    return PlainTextChunker(**sizes)


def chunk_file(
    path: Path | str,
    relative_path: str,
    source_folder: str,
    *,
    cfg: ChunkingCfg | None = None,
    max_file_bytes: int = MAX_FILE_SIZE,
    max_text_read_bytes: int = MAX_TEXT_READ,
) -> list[Chunk]:
    """Read and chunk one file.

    Binary documents (.pdf/.docx/.epub) are converted to text first and
    chunked as plain text. Files over *max_file_bytes* are skipped; text
    files over *max_text_read_bytes* are truncated to it. Unreadable or
    binary-looking files yield no chunks; errors are logged, never raised.

    Args:
        path: Absolute path of the file.
        relative_path: Path relative to its indexed root (used in chunk ids).
        source_folder: ``"workspace"`` or the absolute root path.
        cfg: Chunk sizing; defaults to ChunkingCfg().

    Returns:
        Chunks in document order. Deterministic for an unchanged file.
    """
    cfg = cfg or ChunkingCfg()
    path = Path(path)
    ext = path.suffix.lower()

    try:
        stat = path.stat()
    except OSError as exc:
        logger.warning("Cannot stat %s: %s", path, exc)
        return []
    if stat.st_size > max_file_bytes:
        logger.info("Skipping %s: %d bytes exceeds limit", path, stat.st_size)
        return []

    if ext in BINARY_EXTENSIONS:
        try:
            content = extract_text(path)
        except Exception as exc:
            logger.warning("Failed to extract text from %s: %s", relative_path, exc)
            return []
        chunker: BaseChunker = PlainTextChunker(cfg.max_chars, cfg.lines_per_block)
    else:
        try:
            content = _read_text(path, max_text_read_bytes)
        except OSError as exc:
            logger.warning("Cannot read %s: %s", path, exc)
            return []
        if "\0" in content:
            return []
        chunker = get_chunker(ext, cfg)

    if len(content) < cfg.min_chars:
        return []

    return build_chunks(
        chunker.sections(content),
        relative_path=relative_path,
        source_folder=source_folder,
        file_name=path.name,
        file_type=ext.lstrip("."),
        mtime=stat.st_mtime,
        cfg=cfg,
    )


def build_chunks(
    sections: list[Section],
    *,
    relative_path: str,
    source_folder: str,
    file_name: str,
    file_type: str,
    mtime: float,
    cfg: ChunkingCfg,
) -> list[Chunk]:
    """Drop short sections, split oversize ones and assign chunk ids."""
    chunks: list[Chunk] = []
    seen: set[str] = set()
    for section in sections:
        if len(section.content.strip()) < cfg.min_chars:
            continue
        pieces = split_oversize(section.content, cfg.max_chars)
        n = len(pieces)
        for i, piece in enumerate(pieces):
            label = f"{section.header} ({i + 1}/{n})" if n > 1 else section.header
            chunk_id = f"{source_folder}:{relative_path}:{label}:{i}"
            # Two sections with the same header in one file (overloads, repeated
            # headings) get an ordinal suffix so ids stay unique.
            if chunk_id in seen:
                dup = 2
                while f"{chunk_id}#{dup}" in seen:
                    dup += 1
                chunk_id = f"{chunk_id}#{dup}"
            seen.add(chunk_id)
            chunks.append(
                Chunk(
                    id=chunk_id,
                    file_path=relative_path,
                    file_name=file_name,
                    section=label,
                    content=piece,
                    char_count=len(piece),
                    source_folder=source_folder,
                    file_type=file_type,
                    mtime=mtime,
                )
            )
    return chunks


def _read_text(path: Path, limit: int) -> str:
    with open(path, "rb") as fh:
        data = fh.read(limit)
    # A truncated read may cut a multi-byte sequence; replace, don't fail.
    return data.decode("utf-8", errors="replace")


def relative_to_root(path: Path | str, root: Path | str) -> str:
    """Return *path* relative to *root* using the platform separator."""
    return os.path.relpath(path, root)
