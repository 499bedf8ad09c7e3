"""CSV / TSV chunker: fixed row blocks, each prefixed with the header row."""

from __future__ import annotations

from cairn.ingest.base import BaseChunker, Section


class CsvChunker(BaseChunker):
    """Split tabular text into blocks of ``rows_per_block`` data rows.

    Blocks are labelled ``rows {first}-{last}`` using 1-based data row
    numbers. Header-only input yields a single ``data`` section.
    """

    def __init__(self, rows_per_block: int = 50, max_chars: int = 1500, lines_per_block: int = 80) -> None:
        super().__init__(max_chars=max_chars, lines_per_block=lines_per_block)
        if rows_per_block < 1:
            raise ValueError("rows_per_block must be >= 1")
        self.rows_per_block = rows_per_block

    def sections(self, content: str) -> list[Section]:
        lines = content.rstrip("\n").split("\n")
        header = lines[0]
        n = self.rows_per_block

        sections: list[Section] = []
        for i in range(1, len(lines), n):
            rows = lines[i : i + n]
            sections.append(
                Section(f"rows {i}-{i + len(rows) - 1}", header + "\n" + "\n".join(rows))
            )
        return sections or [Section("data", content)]
