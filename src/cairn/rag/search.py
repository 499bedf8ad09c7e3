"""Hybrid search query path: embed the query once, fuse vector + keyword ranks in storage.

Reciprocal Rank Fusion (done by Repository.hybrid_search):
  score(d) = 1 / (k + rank_vec) + 1 / (k + rank_kw)   k = 60
normalised so the best possible score is 1.0.
"""

from __future__ import annotations

import logging

from cairn.db.models import SearchResult
from cairn.db.repository import Repository
from cairn.embed.generator import EmbeddingGenerator
from cairn.index.orchestrator import IndexOrchestrator
from cairn.rag.context import format_context

logger = logging.getLogger(__name__)


class IndexNotReadyError(RuntimeError):
    """Search was requested but the index could not be built."""


class HybridSearch:
    """Query side of the engine.

    If the index has never been built (or storage is empty) the first
    search triggers a full reindex through *orchestrator*.
    """

    def __init__(
        self,
        repo: Repository,
        generator: EmbeddingGenerator,
        orchestrator: IndexOrchestrator,
        *,
        rrf_k: int = 60,
    ) -> None:
        self.repo = repo
        self.generator = generator
        self.orchestrator = orchestrator
        self.rrf_k = rrf_k

    async def search(self, query: str, top_k: int = 5, min_score: float = 0.0) -> list[SearchResult]:
        """Return up to *top_k* chunks for *query*, best first, with score >= *min_score*.

        Raises:
            IndexNotReadyError: If the lazy bootstrap reindex ran and failed.
                A search during an in-flight reindex queries current storage.
            sqlite3.Error: On storage failure.
        """
        if top_k < 1:
            raise ValueError("top_k must be >= 1")
        await self._ensure_ready()
        if not query.strip():
            return []

        query_vector = await self.generator.embed(query)
        results = self.repo.hybrid_search(query_vector, query, top_k, rrf_k=self.rrf_k)
        return [r for r in results if r.score >= min_score]

    async def build_context(self, query: str, max_tokens: int = 2_000, top_k: int = 8) -> str:
        """Format the best matches for *query* as a prompt block within *max_tokens*."""
        results = await self.search(query, top_k=top_k)
        return format_context(results, max_tokens=max_tokens)

    async def _ensure_ready(self) -> None:
        if self.orchestrator.ready and self.repo.get_chunk_count() > 0:
            return
        if self.orchestrator.indexing:
            logger.debug("Reindex in progress; searching what storage holds now")
            return
        logger.info("Index not ready; running bootstrap reindex before search")
        if not await self.orchestrator.reindex():
            raise IndexNotReadyError("Index is not ready: bootstrap reindex failed")
