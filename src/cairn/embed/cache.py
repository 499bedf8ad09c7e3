"""Two-tier embedding cache: bounded in-process map over the persistent table.

Keys are ``(content_hash, model_id)``: identical text is embedded once per
model, and vectors from different models never collide.
"""

from __future__ import annotations

import logging

from cairn.db.repository import Repository

logger = logging.getLogger(__name__)

CacheKey = tuple[str, str]


class HotCache:
    """Insertion-ordered map with a size ceiling.

    When an insert pushes the size past ``max_entries``, the oldest 20 %
    of entries are dropped in one sweep.
    """

    def __init__(self, max_entries: int = 10_000) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be >= 1")
        self.max_entries = max_entries
        self._data: dict[CacheKey, list[float]] = {}

    def __len__(self) -> int:
        return len(self._data)

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def get(self, key: CacheKey) -> list[float] | None:
        return self._data.get(key)

    def put(self, key: CacheKey, vector: list[float]) -> None:
        self._data[key] = vector
        if len(self._data) > self.max_entries:
            drop = max(1, len(self._data) // 5)
            for old in list(self._data)[:drop]:
                del self._data[old]

    def clear(self) -> None:
        self._data.clear()


class EmbeddingCache:
    """Hot tier in front of the ``embedding_cache`` table.

    Persistent hits are promoted into the hot tier. Writes go to both
    tiers. The persistent ceiling is enforced only by ``evict()``.
    """

    def __init__(
        self,
        repo: Repository | None,
        *,
        hot_max_entries: int = 10_000,
        persistent_max_entries: int = 200_000,
    ) -> None:
        self._repo = repo
        self.hot = HotCache(hot_max_entries)
        self.persistent_max_entries = persistent_max_entries

    def get(self, content_hash: str, model_id: str) -> list[float] | None:
        key = (content_hash, model_id)
        vector = self.hot.get(key)
        if vector is not None:
            return vector
        if self._repo is None:
            return None
        vector = self._repo.get_cached_embedding(content_hash, model_id)
        if vector is not None:
            self.hot.put(key, vector)
        return vector

    def put(self, content_hash: str, model_id: str, vector: list[float]) -> None:
        self.hot.put((content_hash, model_id), vector)
        if self._repo is not None:
            self._repo.put_cached_embedding(content_hash, model_id, vector)

    def persistent_size(self) -> int:
        return self._repo.count_cached_embeddings() if self._repo is not None else 0

    def evict(self, max_entries: int | None = None) -> int:
        """Trim the persistent tier to *max_entries*, oldest first. Returns rows removed."""
        if self._repo is None:
            return 0
        limit = self.persistent_max_entries if max_entries is None else max_entries
        removed = self._repo.evict_cached_embeddings(limit)
        if removed:
            logger.info("Evicted %d persistent cache entries (limit %d)", removed, limit)
        return removed

    def purge_other_models(self, model_id: str) -> int:
        """Delete persistent entries of every model except *model_id*."""
        if self._repo is None:
            return 0
        removed = self._repo.purge_cached_embeddings_except(model_id)
        self.hot.clear()
        if removed:
            logger.info("Purged %d cache entries from retired models", removed)
        return removed
