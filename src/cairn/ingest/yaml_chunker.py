"""YAML / TOML chunker: line scan on top-level keys.

No parser is involved: a config file with syntax errors still chunks.
"""

from __future__ import annotations

import re

from cairn.ingest.base import BaseChunker, Section

_YAML_KEY_RE = re.compile(r"^(\w[\w.-]*)\s*:")
_TOML_KEY_RE = re.compile(r"^(\w[\w.-]*)\s*=")
_TOML_TABLE_RE = re.compile(r"^\[\[?\s*([^\]]+?)\s*\]\]?")


class YamlChunker(BaseChunker):
    """A non-indented ``key:`` line opens a new section labelled ``key``.

    Content before the first key is section ``config``.
    """

    def sections(self, content: str) -> list[Section]:
        sections: list[Section] = []
        header = "config"
        lines: list[str] = []

        for line in content.split("\n"):
            key = None if line[:1] in (" ", "\t") else self._match_key(line)
            if key is not None:
                if lines:
                    sections.append(Section(header, "\n".join(lines).strip()))
                header = key
                lines = [line]
            else:
                lines.append(line)

        if lines:
            sections.append(Section(header, "\n".join(lines).strip()))
        return sections

    def _match_key(self, line: str) -> str | None:
        m = _YAML_KEY_RE.match(line)
        return m.group(1) if m else None


class TomlChunker(YamlChunker):
    """TOML variant: ``key =`` and ``[table]`` / ``[[array]]`` headers open sections.

    Keys inside a table stay in the table's section.
    """

    _in_table = False

    def sections(self, content: str) -> list[Section]:
        self._in_table = False
        return super().sections(content)

    def _match_key(self, line: str) -> str | None:
        m = _TOML_TABLE_RE.match(line)
        if m:
            self._in_table = True
            return m.group(1)
        if self._in_table:
            return None
        m = _TOML_KEY_RE.match(line)
        return m.group(1) if m else None
