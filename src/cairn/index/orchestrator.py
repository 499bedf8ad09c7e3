"""Index orchestrator: full reindex, single-folder index and incremental file updates.

All three operations share one single-flight guard: a request made while
another operation runs returns immediately without doing anything. A
batch's chunks are always persisted before its embeddings are requested.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable
from pathlib import Path

from cairn.config import ChunkingCfg
from cairn.db.models import WORKSPACE_FOLDER, Chunk, ChunkEmbedding
from cairn.db.repository import Repository
from cairn.embed.generator import EmbeddingGenerator
from cairn.index.checkpoint import Checkpoint
from cairn.index.progress import (
    IndexPhase,
    IndexProgress,
    ProgressReporter,
    chunking_percent,
    embedding_percent,
    overall_from_embedding,
)
from cairn.index.scanner import (
    WORKSPACE_MEMORY_DIR,
    FileEntry,
    ScanRules,
    find_source_folder,
    scan_root,
    scan_workspace,
)
from cairn.ingest.dispatch import MAX_TEXT_READ, chunk_file

logger = logging.getLogger(__name__)


class IndexOrchestrator:
    """Drive chunking, persistence and embedding for the indexed roots.

    Args:
        repo: Storage collaborator.
        generator: Embedding generator.
        workspace: The agent workspace directory (source folder ``"workspace"``).
        rules: File selection rules.
        reporter: Progress fan-out.
        chunking: Chunk sizing.
        max_text_read_bytes: Read cap for text files.
        chunk_batch_size: Chunks persisted per storage call.
        embed_batch_size: Chunks embedded and persisted per batch.
        yield_every_files: Checkpoint interval during full reindex chunking.
        folder_yield_every_files: Checkpoint interval during folder indexing.
    """

    def __init__(
        self,
        repo: Repository,
        generator: EmbeddingGenerator,
        workspace: Path,
        *,
        rules: ScanRules | None = None,
        reporter: ProgressReporter | None = None,
        chunking: ChunkingCfg | None = None,
        max_text_read_bytes: int = MAX_TEXT_READ,
        chunk_batch_size: int = 500,
        embed_batch_size: int = 100,
        yield_every_files: int = 20,
        folder_yield_every_files: int = 50,
    ) -> None:
        self.repo = repo
        self.generator = generator
        self.workspace = workspace
        self.rules = rules or ScanRules()
        self.reporter = reporter or ProgressReporter()
        self.chunking = chunking or ChunkingCfg()
        self.max_text_read_bytes = max_text_read_bytes
        self.chunk_batch_size = chunk_batch_size
        self.embed_batch_size = embed_batch_size
        self.yield_every_files = yield_every_files
        self.folder_yield_every_files = folder_yield_every_files
        self.indexing = False
        self.ready = False

    # ------------------------------------------------------------------
    # Full reindex
    # ------------------------------------------------------------------

    async def reindex(self) -> bool:
        """Rebuild the whole index. Returns True on completion.

        Never raises: failures are logged and reported as an ``error``
        progress event. Returns False if another operation was running.
        """
        if self.indexing:
            logger.info("Reindex requested while indexing; ignored")
            return False
        self.indexing = True
        self.ready = False
        try:
            logger.info("Starting full reindex")
            self._emit(IndexPhase.SCANNING)
            self.repo.clear()

            folders = self.repo.list_indexed_folders()
            files = self._collect_all(folders)
            total = len(files)
            logger.info("Found %d files to index", total)
            self._emit(IndexPhase.CHUNKING, files_total=total, overall_percent=5)

            chunks = await self._chunk_files(files, Checkpoint(self.yield_every_files))
            self._emit(
                IndexPhase.SAVING,
                files_processed=total,
                files_total=total,
                chunks_created=len(chunks),
                overall_percent=50,
            )
            await self._persist_chunks(chunks)

            self._update_folder_stats(WORKSPACE_FOLDER, files, chunks)
            for folder in folders:
                self._update_folder_stats(folder, files, chunks)

            await self._embed_chunks(chunks, files_total=total)
            self.ready = True
            logger.info("Indexing complete: %d chunks from %d files", len(chunks), total)
            self._emit(
                IndexPhase.DONE,
                files_processed=total,
                files_total=total,
                chunks_created=len(chunks),
                embedding_percent=100,
                overall_percent=100,
            )
            return True
        except Exception as exc:
            self._fail("Reindex failed", exc)
            return False
        finally:
            self.indexing = False

    # ------------------------------------------------------------------
    # Single folder
    # ------------------------------------------------------------------

    async def index_folder(self, folder: str) -> bool:
        """(Re)index one user folder; other roots are untouched. Returns True on completion."""
        if self.indexing:
            logger.info("Folder index requested while indexing; ignored: %s", folder)
            return False
        self.indexing = True
        try:
            self.repo.delete_chunks_by_folder(folder)
            files = scan_root(Path(folder), folder, self.rules)
            total = len(files)
            logger.info("Indexing folder %s: %d files", folder, total)
            self._emit(IndexPhase.CHUNKING, files_total=total, overall_percent=5)

            chunks = await self._chunk_files(files, Checkpoint(self.folder_yield_every_files))
            self._emit(
                IndexPhase.SAVING,
                files_processed=total,
                files_total=total,
                chunks_created=len(chunks),
                overall_percent=50,
            )
            await self._persist_chunks(chunks)
            self._update_folder_stats(folder, files, chunks)

            await self._embed_chunks(chunks, files_total=total, corpus_from_storage=True)
            self.ready = True
            logger.info("Folder indexed: %s, %d chunks", folder, len(chunks))
            self._emit(
                IndexPhase.DONE,
                files_processed=total,
                files_total=total,
                chunks_created=len(chunks),
                embedding_percent=100,
                overall_percent=100,
            )
            return True
        except Exception as exc:
            self._fail(f"Failed to index folder {folder}", exc)
            return False
        finally:
            self.indexing = False

    # ------------------------------------------------------------------
    # Incremental (file level)
    # ------------------------------------------------------------------

    async def incremental_reindex(self, paths: Iterable[str | Path]) -> bool:
        """Re-chunk and re-embed only the given files. Deleted files lose their chunks."""
        paths = list(dict.fromkeys(str(p) for p in paths))
        if self.indexing or not paths:
            return False
        self.indexing = True
        try:
            logger.info("Incremental reindex: %d changed paths", len(paths))
            folders = self.repo.list_indexed_folders()
            checkpoint = Checkpoint(1)
            for raw in paths:
                target = self._resolve_target(Path(raw), folders)
                if target is None:
                    continue
                path, relative, source = target
                self.repo.delete_chunks_by_file(source, relative)
                if path.is_file():
                    chunks = self._chunk_one(FileEntry(path, relative, source))
                    if chunks:
                        self.repo.upsert_chunks(chunks)
                        vectors = await self.generator.embed_batch([c.content for c in chunks])
                        self.repo.upsert_chunk_embeddings(
                            ChunkEmbedding(c.id, v) for c, v in zip(chunks, vectors)
                        )
                await checkpoint.yield_if_needed()
            return True
        except Exception as exc:
            self._fail("Incremental reindex failed", exc)
            return False
        finally:
            self.indexing = False

    def _resolve_target(self, path: Path, folders: list[str]) -> tuple[Path, str, str] | None:
        if not self.rules.accepts_extension(path):
            return None
        path = path.resolve()
        workspace = self.workspace.resolve()
        source = find_source_folder(path, workspace, folders)
        if source is None:
            return None
        base = workspace if source == WORKSPACE_FOLDER else Path(source)
        relative = os.path.relpath(path, base)
        dirs = Path(relative).parts[:-1]
        if source == WORKSPACE_FOLDER and dirs and dirs[0] != WORKSPACE_MEMORY_DIR:
            return None
        if any(self.rules.is_excluded_dir(d) for d in dirs):
            return None
        return path, relative, source

    # ------------------------------------------------------------------
    # Shared steps
    # ------------------------------------------------------------------

    def _collect_all(self, folders: list[str]) -> list[FileEntry]:
        limit = self.rules.max_files
        files = scan_workspace(self.workspace, self.rules, limit=limit)
        for folder in folders:
            if len(files) >= limit:
                logger.warning("File limit %d reached; remaining folders skipped", limit)
                break
            root = Path(folder)
            if not root.is_dir():
                logger.warning("Indexed folder missing: %s", folder)
                continue
            scan_root(root, folder, self.rules, limit=limit, out=files)
        return files

    def _chunk_one(self, entry: FileEntry) -> list[Chunk]:
        return chunk_file(
            entry.path,
            entry.relative_path,
            entry.source_folder,
            cfg=self.chunking,
            max_file_bytes=self.rules.max_file_bytes,
            max_text_read_bytes=self.max_text_read_bytes,
        )

    async def _chunk_files(self, files: list[FileEntry], checkpoint: Checkpoint) -> list[Chunk]:
        chunks: list[Chunk] = []
        total = len(files)
        for n, entry in enumerate(files, start=1):
            chunks.extend(self._chunk_one(entry))
            if await checkpoint.yield_if_needed():
                self._emit(
                    IndexPhase.CHUNKING,
                    current_file=entry.relative_path,
                    files_processed=n,
                    files_total=total,
                    chunks_created=len(chunks),
                    overall_percent=chunking_percent(n, total),
                )
        return chunks

    async def _persist_chunks(self, chunks: list[Chunk]) -> None:
        checkpoint = Checkpoint(1)
        for start in range(0, len(chunks), self.chunk_batch_size):
            self.repo.upsert_chunks(chunks[start : start + self.chunk_batch_size])
            await checkpoint.yield_if_needed()

    async def _embed_chunks(
        self, chunks: list[Chunk], *, files_total: int, corpus_from_storage: bool = False
    ) -> None:
        self._emit(
            IndexPhase.EMBEDDING,
            files_processed=files_total,
            files_total=files_total,
            chunks_created=len(chunks),
            overall_percent=55,
        )
        if not self.generator.has_remote_provider():
            corpus = (
                list(self.repo.iter_chunk_contents())
                if corpus_from_storage
                else [c.content for c in chunks]
            )
            await self.generator.build_corpus_statistics(corpus)

        checkpoint = Checkpoint(1)
        total = len(chunks)
        for start in range(0, total, self.embed_batch_size):
            batch = chunks[start : start + self.embed_batch_size]
            vectors = await self.generator.embed_batch([c.content for c in batch])
            self.repo.upsert_chunk_embeddings(
                ChunkEmbedding(c.id, v) for c, v in zip(batch, vectors)
            )
            await checkpoint.yield_now()
            pct = embedding_percent(start + len(batch), total)
            self._emit(
                IndexPhase.EMBEDDING,
                files_processed=files_total,
                files_total=files_total,
                chunks_created=total,
                embedding_percent=pct,
                overall_percent=overall_from_embedding(pct),
            )

    def _update_folder_stats(self, folder: str, files: list[FileEntry], chunks: list[Chunk]) -> None:
        file_count = sum(1 for f in files if f.source_folder == folder)
        chunk_count = sum(1 for c in chunks if c.source_folder == folder)
        self.repo.upsert_folder_stats(folder, file_count, chunk_count)

    def _emit(self, phase: IndexPhase, **fields: object) -> None:
        self.reporter.emit(IndexProgress(phase=phase, **fields))  # type: ignore[arg-type]

    def _fail(self, message: str, exc: Exception) -> None:
        logger.error("%s: %s", message, exc, exc_info=exc)
        self._emit(IndexPhase.ERROR, error=str(exc) or type(exc).__name__)
