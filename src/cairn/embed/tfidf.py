"""Local statistical embeddings: TF-IDF weights folded into a fixed-size vector.

Used whenever the remote provider is unconfigured, disabled, or fails.
Tokens are mapped to dimensions by feature hashing, so no vocabulary has to
be stored with the vectors.
"""

from __future__ import annotations

import hashlib
import json
import math
from collections import Counter
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from cairn.ingest.text import tokenize

DEFAULT_DIMENSIONS = 256

# IDF for tokens never seen in the corpus.
DEFAULT_IDF = math.log(10)

_INT32_MASK = 0xFFFFFFFF


@dataclass
class CorpusStatistics:
    """Document frequencies over a corpus and the derived IDF weights.

    Attributes:
        document_count: Number of documents the statistics were built from.
        idf: token → ``ln((N + 1) / (df + 1)) + 1``.
        fingerprint: Short digest of the statistics; part of the fallback
            model id so vectors built under different weights never mix.
    """

    document_count: int = 0
    idf: dict[str, float] = field(default_factory=dict)
    fingerprint: str = ""

    def __post_init__(self) -> None:
        if not self.fingerprint:
            self.fingerprint = _fingerprint(self.document_count, self.idf)


def build_corpus_statistics(documents: Iterable[str]) -> CorpusStatistics:
    """Compute document frequencies over *documents*. Replaces, never merges."""
    df: Counter[str] = Counter()
    n = 0
    for doc in documents:
        n += 1
        df.update(set(tokenize(doc)))
    idf = {token: math.log((n + 1) / (count + 1)) + 1 for token, count in df.items()}
    return CorpusStatistics(document_count=n, idf=idf)


def feature_hash(token: str) -> int:
    """32-bit signed rolling hash: ``h = h * 31 + unit`` with int32 wraparound.

    Runs over UTF-16 code units, so characters outside the BMP contribute
    their two surrogates.
    """
    data = token.encode("utf-16-le", errors="surrogatepass")
    h = 0
    for i in range(0, len(data), 2):
        h = (h * 31 + int.from_bytes(data[i : i + 2], "little")) & _INT32_MASK
    return h - (1 << 32) if h & 0x80000000 else h


def tfidf_embed(
    text: str,
    idf: Mapping[str, float] | None = None,
    dimensions: int = DEFAULT_DIMENSIONS,
) -> list[float]:
    """Embed *text* as an L2-normalised hashed TF-IDF vector.

    Each distinct token contributes ``(count / n_tokens) * idf`` to
    dimension ``|hash| mod dimensions`` with sign ``+1`` if the hash is
    positive, else ``-1``. Text with no tokens yields the zero vector.
    """
    idf = idf or {}
    vector = [0.0] * dimensions
    tokens = tokenize(text)
    if not tokens:
        return vector

    n = len(tokens)
    for token, count in Counter(tokens).items():
        h = feature_hash(token)
        sign = 1.0 if h > 0 else -1.0
        vector[abs(h) % dimensions] += sign * (count / n) * idf.get(token, DEFAULT_IDF)

    norm = math.sqrt(sum(v * v for v in vector))
    if norm > 0:
        vector = [v / norm for v in vector]
    return vector


def tfidf_embed_batch(
    texts: Iterable[str],
    idf: Mapping[str, float] | None = None,
    dimensions: int = DEFAULT_DIMENSIONS,
) -> list[list[float]]:
    return [tfidf_embed(t, idf, dimensions) for t in texts]


def cosine_similarity(a: list[float], b: list[float]) -> float:
    """Cosine of the angle between *a* and *b*.

    Returns 0.0 for vectors of different lengths or when either is zero.
    """
    if len(a) != len(b):
        return 0.0
    dot = norm_a = norm_b = 0.0
    for x, y in zip(a, b):
        dot += x * y
        norm_a += x * x
        norm_b += y * y
    denominator = math.sqrt(norm_a) * math.sqrt(norm_b)
    if denominator == 0:
        return 0.0
    if a == b:
        return 1.0
    return dot / denominator


def _fingerprint(document_count: int, idf: Mapping[str, float]) -> str:
    payload = json.dumps([document_count, sorted(idf.items())], separators=(",", ":"))
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()[:12]
