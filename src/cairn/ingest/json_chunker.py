"""JSON chunker: one section per top-level key (.json/.jsonc/.json5)."""

from __future__ import annotations

import json

from cairn.ingest.base import BaseChunker, Section
from cairn.ingest.plaintext import PlainTextChunker


class JsonChunker(BaseChunker):
    """Split a JSON document by its top-level keys.

    Supported top-level shapes:
    - **Object** ``{...}``: each key becomes a section ``"key: <value>"``
      with the value pretty-printed (2-space indent).
    - **Array** ``[...]``: indices are used as keys.
    - **Scalar / null / empty container**: a single ``json`` section with
      the raw text.

    Content that does not parse (comments in .jsonc, .json5 syntax) is
    chunked as plain text.
    """

    def sections(self, content: str) -> list[Section]:
        try:
            data = json.loads(content)
        except json.JSONDecodeError:
            return PlainTextChunker(self.max_chars, self.lines_per_block).sections(content)

        if isinstance(data, dict):
            items = list(data.items())
        elif isinstance(data, list):
            items = [(str(i), v) for i, v in enumerate(data)]
        else:
            items = []

        if not items:
            return [Section("json", content)]
        return [
            Section(key, f"{key}: {json.dumps(value, ensure_ascii=False, indent=2)}")
            for key, value in items
        ]
