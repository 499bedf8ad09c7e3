"""Base chunker interface and the shared oversize splitter."""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass

_PARAGRAPH_RE = re.compile(r"\n\n+")
_SENTENCE_RE = re.compile(r"(?<=[.!?])\s+")


@dataclass
class Section:
    """A labelled region of a document, before oversize splitting."""

    header: str
    content: str


class BaseChunker(ABC):
    """Abstract base for all format strategies.

    Subclasses implement ``sections()``; the dispatcher turns sections into
    Chunk rows (see cairn.ingest.dispatch). ``_line_blocks()`` is the
    shared fixed-line fallback.
    """

    def __init__(self, max_chars: int = 1500, lines_per_block: int = 80) -> None:
        if max_chars < 1:
            raise ValueError("max_chars must be >= 1")
        if lines_per_block < 1:
            raise ValueError("lines_per_block must be >= 1")
        self.max_chars = max_chars
        self.lines_per_block = lines_per_block

    @abstractmethod
    def sections(self, content: str) -> list[Section]:
        """Split decoded *content* into ordered sections.

        Args:
            content: Full decoded text of the file.

        Returns:
            Sections in document order. Contents may still exceed
            ``max_chars``; the dispatcher applies ``split_oversize()``.
        """

    def _line_blocks(self, content: str) -> list[Section]:
        """Fixed blocks of ``lines_per_block`` lines labelled ``lines a-b``."""
        lines = content.split("\n")
        n = self.lines_per_block
        blocks: list[Section] = []
        for i in range(0, len(lines), n):
            part = lines[i : i + n]
            blocks.append(Section(f"lines {i + 1}-{i + len(part)}", "\n".join(part)))
        return blocks


def split_oversize(text: str, max_chars: int = 1500) -> list[str]:
    """Split *text* into pieces of at most *max_chars* characters.

    Paragraph boundaries are preferred, then sentence boundaries, then hard
    character cuts. Text that already fits is returned unchanged as the only
    piece. Never returns an empty list.
    """
    if max_chars < 1:
        raise ValueError("max_chars must be >= 1")
    if len(text) <= max_chars:
        return [text]

    pieces: list[str] = []
    current = ""

    for para in _PARAGRAPH_RE.split(text):
        if len(para) > max_chars:
            if current.strip():
                pieces.append(current.strip())
                current = ""
            pieces.extend(_split_sentences(para, max_chars))
            continue

        if current and len(current) + len(para) + 2 > max_chars:
            pieces.append(current.strip())
            current = ""
        current += para + "\n\n"

    if current.strip():
        pieces.append(current.strip())

    return pieces or [text[:max_chars]]


def _split_sentences(para: str, max_chars: int) -> list[str]:
    pieces: list[str] = []
    buf = ""
    for sentence in _SENTENCE_RE.split(para):
        if buf and len(buf) + len(sentence) + 1 > max_chars:
            pieces.append(buf.strip())
            buf = ""
        if len(sentence) > max_chars:
            pieces.extend(
                sentence[i : i + max_chars] for i in range(0, len(sentence), max_chars)
            )
        else:
            buf += sentence + " "
    if buf.strip():
        pieces.append(buf.strip())
    return pieces
