"""Markdown chunker: heading-aware splits for .md/.mdx/.markdown/.rst."""

from __future__ import annotations

import re

from cairn.ingest.base import BaseChunker, Section

# Matches H1, H2, H3 headings; group 1 is the heading text.
_HEADING_RE = re.compile(r"^#{1,3}\s+(.+)$")


class MarkdownChunker(BaseChunker):
    """Split Markdown on H1/H2/H3 heading boundaries.

    Strategy:
    - Each heading opens a section labelled with the heading text.
    - The heading line itself is not part of the section content.
    - Content before the first heading becomes section ``Intro``.
    - A heading immediately followed by another heading yields no section.
    """

    def sections(self, content: str) -> list[Section]:
        sections: list[Section] = []
        header = "Intro"
        lines: list[str] = []

        for line in content.split("\n"):
            match = _HEADING_RE.match(line)
            if match:
                if lines:
                    sections.append(Section(header, "\n".join(lines).strip()))
                header = match.group(1).strip()
                lines = []
            else:
                lines.append(line)

        if lines:
            sections.append(Section(header, "\n".join(lines).strip()))
        return sections
