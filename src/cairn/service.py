"""RagService: the upward API used by the agent and the CLI.

Wires storage, embedding, indexing, search and watching from one
CairnConfig. All methods run on the caller's asyncio event loop; the
SQLite connection is confined to that loop's thread.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from cairn.config import CairnConfig
from cairn.db.connection import Database
from cairn.db.models import FolderStats, SearchResult
from cairn.db.repository import Repository
from cairn.db.schema import initialize as initialize_schema
from cairn.embed.cache import EmbeddingCache
from cairn.embed.generator import EmbeddingGenerator
from cairn.embed.provider import RemoteEmbeddingProvider, api_key_available
from cairn.embed.worker import OffloadWorker
from cairn.index.orchestrator import IndexOrchestrator
from cairn.index.progress import ProgressCallback, ProgressReporter
from cairn.index.scanner import ScanRules
from cairn.index.watcher import FileWatcher
from cairn.rag.search import HybridSearch

logger = logging.getLogger(__name__)


class FolderError(ValueError):
    """A folder cannot be added to or removed from the index."""


@dataclass
class IndexStats:
    """Snapshot returned by RagService.get_stats()."""

    total_chunks: int
    total_files: int
    ready: bool
    indexing: bool
    embedding_type: str
    embedding_model: str
    vector_search: bool
    hot_cache_entries: int
    persistent_cache_entries: int
    folders: list[FolderStats] = field(default_factory=list)


class RagService:
    """Local retrieval engine over the agent workspace and user-added folders.

    Args:
        cfg: Merged configuration.
        provider: Remote embedding provider override. By default one is
            created when ``cfg.embedding.model`` is set and its API key is
            available in the environment.
    """

    def __init__(
        self,
        cfg: CairnConfig,
        *,
        provider: RemoteEmbeddingProvider | None = None,
    ) -> None:
        self.cfg = cfg
        self.workspace = Path(cfg.storage.workspace).expanduser()
        self._db = Database(Path(cfg.storage.db).expanduser())
        self.conn = self._db.connect()
        initialize_schema(self.conn)
        self.repo = Repository(self.conn, vector_search=self._db.vector_search)

        emb = cfg.embedding
        if provider is None and emb.model:
            if api_key_available(emb.model):
                provider = RemoteEmbeddingProvider(
                    emb.model,
                    max_batch=emb.provider_batch_size,
                    max_input_chars=emb.max_input_chars,
                )
            else:
                logger.warning("No API key for %s; using local embeddings", emb.model)

        self.cache = EmbeddingCache(
            self.repo,
            hot_max_entries=cfg.cache.hot_max_entries,
            persistent_max_entries=cfg.cache.persistent_max_entries,
        )
        self.worker = OffloadWorker()
        self.generator = EmbeddingGenerator(
            self.cache,
            provider,
            worker=self.worker,
            dimensions=emb.fallback_dimensions,
            offload_threshold=emb.offload_threshold,
        )

        ix = cfg.indexing
        self.rules = ScanRules.from_lists(
            ix.extensions,
            ix.excluded_dirs,
            max_file_bytes=ix.max_file_bytes,
            max_files=ix.max_files,
        )
        self.reporter = ProgressReporter(throttle_ms=ix.progress_throttle_ms)
        self.orchestrator = IndexOrchestrator(
            self.repo,
            self.generator,
            self.workspace,
            rules=self.rules,
            reporter=self.reporter,
            chunking=cfg.chunking,
            max_text_read_bytes=ix.max_text_read_bytes,
            chunk_batch_size=ix.chunk_batch_size,
            embed_batch_size=emb.batch_size,
            yield_every_files=ix.yield_every_files,
            folder_yield_every_files=ix.folder_yield_every_files,
        )
        self.searcher = HybridSearch(
            self.repo, self.generator, self.orchestrator, rrf_k=cfg.retrieval.rrf_k
        )
        self.watcher = FileWatcher(
            self.orchestrator.incremental_reindex,
            self.rules,
            debounce_seconds=cfg.watcher.debounce_seconds,
        )
        self._closed = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(self) -> bool:
        """Make the index usable. Returns True when it is ready.

        Existing chunks are reused; an empty store triggers a full reindex.
        """
        self.workspace.mkdir(parents=True, exist_ok=True)
        if self.repo.get_chunk_count() > 0:
            await self.load_statistics()
            self.orchestrator.ready = True
            logger.info("Index loaded: %d chunks", self.repo.get_chunk_count())
            return True
        return await self.orchestrator.reindex()

    async def load_statistics(self) -> None:
        """Rebuild fallback corpus statistics from stored chunk text (no-op on a remote provider)."""
        if not self.generator.has_remote_provider():
            await self.generator.build_corpus_statistics(list(self.repo.iter_chunk_contents()))

    def start_watchers(self) -> list[Path]:
        """Watch the workspace and every indexed folder. Must run inside the event loop."""
        if not self.cfg.watcher.enabled:
            logger.info("File watching disabled by config")
            return []
        return self.watcher.start(self._roots())

    async def destroy(self) -> None:
        """Stop watchers, shut down the offload worker and close storage."""
        if self._closed:
            return
        self._closed = True
        self.watcher.stop()
        await self.generator.close()
        self.conn.close()

    # ------------------------------------------------------------------
    # Indexing
    # ------------------------------------------------------------------

    async def reindex(self) -> bool:
        return await self.orchestrator.reindex()

    async def add_folder(self, path: str | Path) -> str:
        """Add *path* as an indexed root and index it. Returns the stored path.

        Raises:
            FolderError: If the path is missing, not a directory, already
                indexed, or nested with an existing root.
        """
        folder = Path(path).expanduser().resolve()
        if not folder.exists():
            raise FolderError(f"Folder does not exist: {folder}")
        if not folder.is_dir():
            raise FolderError(f"Not a directory: {folder}")

        for existing in [self.workspace.resolve(), *map(Path, self.repo.list_indexed_folders())]:
            if folder == existing:
                raise FolderError(f"Folder is already indexed: {folder}")
            if folder.is_relative_to(existing) or existing.is_relative_to(folder):
                raise FolderError(f"Folder overlaps an indexed root: {existing}")

        key = str(folder)
        self.repo.add_indexed_folder(key)
        logger.info("Added folder %s", key)
        await self.orchestrator.index_folder(key)
        if self.watcher.running:
            self.watcher.start(self._roots())
        return key

    async def remove_folder(self, path: str | Path) -> None:
        """Forget an indexed root and delete its chunks.

        Raises:
            FolderError: If the folder is not indexed.
        """
        key = str(Path(path).expanduser().resolve())
        if key not in self.repo.list_indexed_folders():
            raise FolderError(f"Folder is not indexed: {key}")
        self.repo.remove_indexed_folder(key)
        removed = self.repo.delete_chunks_by_folder(key)
        self.repo.delete_folder_stats(key)
        logger.info("Removed folder %s (%d chunks)", key, removed)
        if self.watcher.running:
            self.watcher.start(self._roots())

    # ------------------------------------------------------------------
    # Query
    # ------------------------------------------------------------------

    async def search(
        self, query: str, top_k: int | None = None, min_score: float | None = None
    ) -> list[SearchResult]:
        r = self.cfg.retrieval
        return await self.searcher.search(
            query,
            top_k=r.top_k if top_k is None else top_k,
            min_score=r.min_score if min_score is None else min_score,
        )

    async def build_context(self, query: str, max_tokens: int | None = None) -> str:
        budget = self.cfg.retrieval.context_max_tokens if max_tokens is None else max_tokens
        return await self.searcher.build_context(
            query, max_tokens=budget, top_k=max(self.cfg.retrieval.top_k, 8)
        )

    # ------------------------------------------------------------------
    # Status / maintenance
    # ------------------------------------------------------------------

    def subscribe(self, callback: ProgressCallback) -> Callable[[], None]:
        return self.reporter.subscribe(callback)

    def get_stats(self) -> IndexStats:
        folders = self.repo.get_folder_stats()
        return IndexStats(
            total_chunks=self.repo.get_chunk_count(),
            total_files=sum(f.file_count for f in folders),
            ready=self.orchestrator.ready,
            indexing=self.orchestrator.indexing,
            embedding_type="remote" if self.generator.has_remote_provider() else "fallback",
            embedding_model=self.generator.active_model,
            vector_search=self.repo.has_vector_search_capability(),
            hot_cache_entries=len(self.cache.hot),
            persistent_cache_entries=self.cache.persistent_size(),
            folders=folders,
        )

    def maintain_cache(self, max_entries: int | None = None, *, purge: bool = False) -> int:
        """Evict old persistent cache rows; with *purge*, drop other models' rows first."""
        removed = 0
        if purge:
            removed += self.cache.purge_other_models(self.generator.active_model)
        removed += self.cache.evict(max_entries)
        return removed

    def _roots(self) -> list[Path]:
        return [self.workspace, *(Path(f) for f in self.repo.list_indexed_folders())]
