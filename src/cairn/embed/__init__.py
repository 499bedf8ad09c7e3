"""Cairn embedding layer: remote provider, local fallback, cache and offload worker."""

from cairn.embed.cache import EmbeddingCache, HotCache
from cairn.embed.generator import EmbeddingGenerator, fallback_model_id
from cairn.embed.provider import (
    Disabled,
    Healthy,
    ProviderError,
    ProviderHealth,
    RemoteEmbeddingProvider,
    api_key_available,
)
from cairn.embed.tfidf import CorpusStatistics, build_corpus_statistics, cosine_similarity, tfidf_embed
from cairn.embed.worker import OffloadWorker, WorkerError

__all__ = [
    "CorpusStatistics",
    "Disabled",
    "EmbeddingCache",
    "EmbeddingGenerator",
    "Healthy",
    "HotCache",
    "OffloadWorker",
    "ProviderError",
    "ProviderHealth",
    "RemoteEmbeddingProvider",
    "WorkerError",
    "api_key_available",
    "build_corpus_statistics",
    "cosine_similarity",
    "fallback_model_id",
    "tfidf_embed",
]
