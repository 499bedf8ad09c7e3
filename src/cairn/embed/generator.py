"""Embedding generator: cache first, then the remote provider, then the local fallback.

Provider health is owned here. An auth or quota failure disables the
remote provider for the rest of the process; any other failure is answered
with fallback vectors for that call only.
"""

from __future__ import annotations

import asyncio
import logging

from cairn.embed.cache import EmbeddingCache
from cairn.embed.provider import (
    Disabled,
    Healthy,
    ProviderError,
    ProviderHealth,
    RemoteEmbeddingProvider,
)
from cairn.embed.tfidf import (
    DEFAULT_DIMENSIONS,
    CorpusStatistics,
    build_corpus_statistics,
    tfidf_embed,
    tfidf_embed_batch,
)
from cairn.embed.worker import OffloadWorker, WorkerError
from cairn.ingest.text import content_hash

logger = logging.getLogger(__name__)


def fallback_model_id(dimensions: int, stats: CorpusStatistics) -> str:
    """Model id of local vectors: changes whenever the corpus statistics change."""
    return f"local/tfidf-{dimensions}@{stats.fingerprint}"


class EmbeddingGenerator:
    """Produce embeddings for chunks and queries.

    Args:
        cache: Two-tier embedding cache.
        provider: Remote provider, or None when no model / API key is configured.
        worker: Offload worker for large fallback batches (optional).
        dimensions: Size of fallback vectors.
        offload_threshold: Uncached fallback batches larger than this go to
            the worker.
    """

    def __init__(
        self,
        cache: EmbeddingCache,
        provider: RemoteEmbeddingProvider | None = None,
        *,
        worker: OffloadWorker | None = None,
        dimensions: int = DEFAULT_DIMENSIONS,
        offload_threshold: int = 50,
    ) -> None:
        self.cache = cache
        self.provider = provider
        self.worker = worker
        self.dimensions = dimensions
        self.offload_threshold = offload_threshold
        self.stats = CorpusStatistics()
        self.health: ProviderHealth = (
            Healthy() if provider is not None else Disabled("no remote provider configured")
        )

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    def has_remote_provider(self) -> bool:
        return self.provider is not None and isinstance(self.health, Healthy)

    @property
    def active_model(self) -> str:
        """Model id vectors are currently produced with."""
        if self.has_remote_provider():
            return self.provider.model
        return fallback_model_id(self.dimensions, self.stats)

    def disable_provider(self, reason: str) -> None:
        if isinstance(self.health, Healthy):
            logger.warning("Remote embeddings disabled: %s", reason)
        self.health = Disabled(reason)

    # ------------------------------------------------------------------
    # Corpus statistics
    # ------------------------------------------------------------------

    async def build_corpus_statistics(self, corpus: list[str]) -> CorpusStatistics:
        """Rebuild fallback IDF weights from *corpus*, replacing any prior state.

        Large corpora are processed in the worker; if it fails, inline.
        """
        stats: CorpusStatistics | None = None
        if self.worker is not None and len(corpus) > self.offload_threshold:
            try:
                stats = await self.worker.build_stats(corpus)
            except WorkerError as exc:
                logger.warning("Offload worker failed, building statistics inline: %s", exc)
        if stats is None:
            stats = build_corpus_statistics(corpus)
        self.stats = stats
        logger.info(
            "Corpus statistics rebuilt: %d documents, %d terms",
            stats.document_count,
            len(stats.idf),
        )
        return stats

    def fallback_embed(self, text: str) -> list[float]:
        return tfidf_embed(text, self.stats.idf, self.dimensions)

    # ------------------------------------------------------------------
    # Embedding
    # ------------------------------------------------------------------

    async def embed(self, text: str) -> list[float]:
        """Embed one text (chunk or query)."""
        model = self.active_model
        key = content_hash(text)
        cached = self.cache.get(key, model)
        if cached is not None:
            return cached

        if self.has_remote_provider():
            try:
                vectors = await asyncio.to_thread(self.provider.embed_batch, [text])
            except ProviderError as exc:
                self._on_provider_error(exc)
            else:
                self.cache.put(key, model, vectors[0])
                return vectors[0]

        vector = self.fallback_embed(text)
        self.cache.put(key, fallback_model_id(self.dimensions, self.stats), vector)
        return vector

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Embed *texts*; the result is aligned with the input order."""
        model = self.active_model
        results: list[list[float] | None] = [None] * len(texts)
        keys = [content_hash(t) for t in texts]
        missing: list[int] = []
        for i, key in enumerate(keys):
            cached = self.cache.get(key, model)
            if cached is not None:
                results[i] = cached
            else:
                missing.append(i)

        if missing and self.has_remote_provider():
            missing = await self._embed_remote(texts, keys, missing, results)

        if missing:
            vectors = await self._embed_fallback([texts[i] for i in missing])
            local_model = fallback_model_id(self.dimensions, self.stats)
            for i, vector in zip(missing, vectors):
                results[i] = vector
                self.cache.put(keys[i], local_model, vector)

        return results  # type: ignore[return-value]

    async def _embed_remote(
        self,
        texts: list[str],
        keys: list[str],
        missing: list[int],
        results: list[list[float] | None],
    ) -> list[int]:
        """Fill *results* from the provider in slices. Returns indices still missing."""
        step = self.provider.max_batch
        failed: list[int] = []
        for start in range(0, len(missing), step):
            idxs = missing[start : start + step]
            if not self.has_remote_provider():
                failed.extend(idxs)
                continue
            try:
                vectors = await asyncio.to_thread(
                    self.provider.embed_batch, [texts[i] for i in idxs]
                )
            except ProviderError as exc:
                self._on_provider_error(exc)
                failed.extend(idxs)
                continue
            for i, vector in zip(idxs, vectors):
                results[i] = vector
                self.cache.put(keys[i], self.provider.model, vector)
        return failed

    async def _embed_fallback(self, texts: list[str]) -> list[list[float]]:
        if self.worker is not None and len(texts) > self.offload_threshold:
            try:
                return await self.worker.embed_batch(texts, self.stats.idf, self.dimensions)
            except WorkerError as exc:
                logger.warning("Offload worker failed, embedding inline: %s", exc)
        return tfidf_embed_batch(texts, self.stats.idf, self.dimensions)

    def _on_provider_error(self, exc: ProviderError) -> None:
        if exc.disables_provider:
            self.disable_provider(str(exc))
        else:
            logger.warning("Remote embedding failed, using local fallback: %s", exc)

    async def close(self) -> None:
        if self.worker is not None:
            await asyncio.to_thread(self.worker.close)
