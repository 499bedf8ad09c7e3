"""Prompt context block from search results, under a token budget."""

from __future__ import annotations

from pathlib import Path

from cairn.db.models import WORKSPACE_FOLDER, SearchResult

CONTEXT_HEADING = "## Relevant knowledge fragments\n"


def count_tokens(text: str) -> int:
    """Approximate token count: 4 characters ≈ 1 token."""
    return max(1, len(text) // 4)


def format_context(results: list[SearchResult], max_tokens: int = 2_000) -> str:
    """Render *results* in rank order until the next one would exceed *max_tokens*.

    Each entry is headed ``### [source] [type] file > section`` where source
    is ``memory`` for the workspace or the folder's base name. Returns an
    empty string when there are no results.
    """
    if not results:
        return ""

    parts = [CONTEXT_HEADING]
    used = 0
    for result in results:
        chunk = result.chunk
        if chunk.source_folder and chunk.source_folder != WORKSPACE_FOLDER:
            source = Path(chunk.source_folder).name
        else:
            source = "memory"
        type_label = f"[{chunk.file_type}]" if chunk.file_type else ""
        entry = (
            f"### [{source}] {type_label} {chunk.file_name} > {chunk.section}\n"
            f"{chunk.content}\n"
            f"(score: {result.score:.4f})\n"
        )
        tokens = count_tokens(entry)
        if used + tokens > max_tokens:
            break
        parts.append(entry)
        used += tokens

    return "\n".join(parts)
