"""Tokenizer and content fingerprint shared by chunking, embedding and search."""

from __future__ import annotations

import hashlib
import re

# Anything that is not a letter, digit or whitespace. ``\w`` also matches
# "_", which is treated as punctuation.
_NON_WORD_RE = re.compile(r"[^\w\s]|_")


def tokenize(text: str) -> list[str]:
    """Lowercase *text*, strip punctuation and drop one-character tokens.

    Re-tokenizing ``" ".join(tokenize(t))`` returns the same list.
    """
    cleaned = _NON_WORD_RE.sub(" ", text.lower())
    return [t for t in cleaned.split() if len(t) > 1]


def content_hash(text: str) -> str:
    """SHA-256 fingerprint of *text*, used as the embedding cache key."""
    return hashlib.sha256(text.encode("utf-8", errors="surrogatepass")).hexdigest()
