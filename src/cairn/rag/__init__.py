"""Cairn retrieval: hybrid search and prompt context formatting."""

from cairn.rag.context import count_tokens, format_context
from cairn.rag.search import HybridSearch, IndexNotReadyError

__all__ = ["HybridSearch", "IndexNotReadyError", "count_tokens", "format_context"]
