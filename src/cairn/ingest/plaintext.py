"""Plain text chunker: paragraph packing with line-block fallback."""

from __future__ import annotations

import re

from cairn.ingest.base import BaseChunker, Section

_PARAGRAPH_RE = re.compile(r"\n\n+")


class PlainTextChunker(BaseChunker):
    """Greedily pack blank-line separated paragraphs into ``section N`` blocks.

    A block is closed before it would grow past ``max_chars``. Text with no
    blank-line boundary is split into fixed line blocks instead.
    """

    def sections(self, content: str) -> list[Section]:
        paragraphs = _PARAGRAPH_RE.split(content)
        if len(paragraphs) <= 1:
            return self._line_blocks(content)

        sections: list[Section] = []
        current = ""
        for para in paragraphs:
            if current and len(current) + len(para) > self.max_chars:
                sections.append(Section(f"section {len(sections) + 1}", current.strip()))
                current = ""
            current += para + "\n\n"

        if current.strip():
            sections.append(Section(f"section {len(sections) + 1}", current.strip()))
        return sections
