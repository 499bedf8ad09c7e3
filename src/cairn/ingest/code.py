"""Source code chunker: one section per top-level symbol.

Symbol detection is a table of ``extension -> [pattern, ...]``; the first
pattern that matches a line at brace depth <= 1 opens a new section.
"""

from __future__ import annotations

import re

from cairn.ingest.base import BaseChunker, Section

_JS_PATTERNS = [
    r"^(?:export\s+)?(?:default\s+)?(?:async\s+)?function\s+(\w+)",
    r"^(?:export\s+)?(?:abstract\s+)?class\s+(\w+)",
    r"^(?:export\s+)?(?:const|let|var)\s+(\w+)\s*=\s*(?:async\s*)?\(",
    r"^(?:export\s+)?interface\s+(\w+)",
    r"^(?:export\s+)?type\s+(\w+)",
    r"^(?:export\s+)?enum\s+(\w+)",
]
_PYTHON_PATTERNS = [r"^(?:async\s+)?def\s+(\w+)", r"^class\s+(\w+)"]
_JVM_PATTERNS = [
    r"^(?:public|private|protected)?\s*(?:static\s+)?(?:abstract\s+)?class\s+(\w+)",
    r"^(?:public|private|protected)?\s*(?:static\s+)?(?:abstract\s+)?interface\s+(\w+)",
    r"^(?:public|private|protected)?\s*(?:static\s+)?(?:\w+\s+)+(\w+)\s*\(",
]
_GO_PATTERNS = [
    r"^func\s+(?:\(\w+\s+\*?\w+\)\s+)?(\w+)",
    r"^type\s+(\w+)\s+(?:struct|interface)",
]
_RUST_PATTERNS = [
    r"^(?:pub\s+)?(?:async\s+)?fn\s+(\w+)",
    r"^(?:pub\s+)?struct\s+(\w+)",
    r"^(?:pub\s+)?enum\s+(\w+)",
    r"^(?:pub\s+)?trait\s+(\w+)",
    r"^impl(?:<[^>]+>)?\s+(\w+)",
]
_CSHARP_PATTERNS = [
    r"^(?:public|private|protected|internal)?\s*(?:static\s+)?(?:partial\s+)?class\s+(\w+)",
    r"^(?:public|private|protected|internal)?\s*(?:static\s+)?(?:\w+\s+)+(\w+)\s*\(",
]
_RUBY_PATTERNS = [r"^\s*def\s+(\w+)", r"^\s*class\s+(\w+)", r"^\s*module\s+(\w+)"]
_PHP_PATTERNS = [
    r"^(?:public|private|protected)?\s*(?:static\s+)?function\s+(\w+)",
    r"^class\s+(\w+)",
]
_DEFAULT_PATTERNS = [
    r"^(?:export\s+)?(?:async\s+)?function\s+(\w+)",
    r"^class\s+(\w+)",
    r"^def\s+(\w+)",
]


def _compile(patterns: list[str]) -> list[re.Pattern[str]]:
    return [re.compile(p) for p in patterns]


SYMBOL_PATTERNS: dict[str, list[re.Pattern[str]]] = {
    **dict.fromkeys((".ts", ".tsx", ".js", ".jsx", ".mjs", ".cjs"), _compile(_JS_PATTERNS)),
    **dict.fromkeys((".py", ".pyx"), _compile(_PYTHON_PATTERNS)),
    **dict.fromkeys((".java", ".kt", ".scala"), _compile(_JVM_PATTERNS)),
    ".go": _compile(_GO_PATTERNS),
    ".rs": _compile(_RUST_PATTERNS),
    ".cs": _compile(_CSHARP_PATTERNS),
    ".rb": _compile(_RUBY_PATTERNS),
    ".php": _compile(_PHP_PATTERNS),
}
DEFAULT_SYMBOL_PATTERNS = _compile(_DEFAULT_PATTERNS)

# Files longer than this that yield at most one section use line blocks.
_FALLBACK_MIN_CHARS = 2000


def patterns_for(ext: str) -> list[re.Pattern[str]]:
    """Return the symbol patterns for *ext* (lowercase, with the dot)."""
    return SYMBOL_PATTERNS.get(ext, DEFAULT_SYMBOL_PATTERNS)


class CodeChunker(BaseChunker):
    """Split source code at top-level function / class / type definitions.

    Leading lines before the first symbol form section ``module``. Brace
    depth is updated after each line so nested definitions stay inside
    their parent's section.
    """

    def __init__(self, ext: str, max_chars: int = 1500, lines_per_block: int = 80) -> None:
        super().__init__(max_chars=max_chars, lines_per_block=lines_per_block)
        self.ext = ext
        self.patterns = patterns_for(ext)

    def sections(self, content: str) -> list[Section]:
        sections: list[Section] = []
        header = "module"
        lines: list[str] = []
        depth = 0

        for line in content.split("\n"):
            symbol = self._match_symbol(line) if depth <= 1 else None
            if symbol is not None:
                if lines:
                    sections.append(Section(header, "\n".join(lines).strip()))
                header = symbol
                lines = [line]
            else:
                lines.append(line)

            for ch in line:
                if ch == "{":
                    depth += 1
                elif ch == "}":
                    depth = max(0, depth - 1)

        if lines:
            sections.append(Section(header, "\n".join(lines).strip()))

        if len(sections) <= 1 and len(content) > _FALLBACK_MIN_CHARS:
            return self._line_blocks(content)
        return sections

    def _match_symbol(self, line: str) -> str | None:
        for pattern in self.patterns:
            m = pattern.match(line)
            if m:
                return m.group(1) or m.group(0).strip()[:60]
        return None
