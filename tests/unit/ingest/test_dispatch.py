"""Tests for chunk_file / build_chunks / get_chunker dispatch."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import pytest

from cairn.config import ChunkingCfg
from cairn.ingest.base import Section
from cairn.ingest.code import CodeChunker
from cairn.ingest.csv_chunker import CsvChunker
from cairn.ingest.dispatch import build_chunks, chunk_file, get_chunker
from cairn.ingest.json_chunker import JsonChunker
from cairn.ingest.markdown import MarkdownChunker
from cairn.ingest.plaintext import PlainTextChunker
from cairn.ingest.yaml_chunker import TomlChunker, YamlChunker


@pytest.mark.parametrize(
    ("ext", "cls"),
    [
        (".md", MarkdownChunker),
        (".rst", MarkdownChunker),
        (".py", CodeChunker),
        (".tsx", CodeChunker),
        (".json", JsonChunker),
        (".yml", YamlChunker),
        (".toml", TomlChunker),
        (".tsv", CsvChunker),
        (".txt", PlainTextChunker),
        (".html", PlainTextChunker),
    ],
)
def test_get_chunker_by_extension(ext, cls):
    assert type(get_chunker(ext)) is cls


def test_get_chunker_passes_sizes():
    chunker = get_chunker(".csv", ChunkingCfg(max_chars=300, csv_rows_per_block=7))
    assert chunker.max_chars == 300
    assert chunker.rows_per_block == 7


# ------------------------------------------------------------------
# chunk_file
# ------------------------------------------------------------------


def _write(tmp_path: Path, name: str, text: str) -> Path:
    path = tmp_path / name
    path.write_text(text, encoding="utf-8")
    return path


def test_chunk_markdown_file(tmp_path):
    path = _write(tmp_path, "notes.md", "# Setup\nInstall the package with pip.\n# Usage\nRun the command line tool.\n")
    chunks = chunk_file(path, "notes.md", "workspace")
    assert [c.section for c in chunks] == ["Setup", "Usage"]
    first = chunks[0]
    assert first.id == "workspace:notes.md:Setup:0"
    assert first.file_name == "notes.md"
    assert first.file_type == "md"
    assert first.source_folder == "workspace"
    assert first.char_count == len(first.content)
    assert first.mtime == path.stat().st_mtime


def test_short_sections_are_dropped(tmp_path):
    path = _write(tmp_path, "a.md", "# Tiny\nok\n# Real\nThis section has enough characters.\n")
    assert [c.section for c in chunk_file(path, "a.md", "workspace")] == ["Real"]


def test_file_below_min_chars_yields_nothing(tmp_path):
    path = _write(tmp_path, "tiny.txt", "hi")
    assert chunk_file(path, "tiny.txt", "workspace") == []


def test_oversize_section_split_with_labels(tmp_path):
    body = "\n\n".join("word " * 50 for _ in range(6))
    path = _write(tmp_path, "long.md", "# Big\n" + body)
    chunks = chunk_file(path, "long.md", "/docs", cfg=ChunkingCfg(max_chars=600))
    assert len(chunks) > 1
    assert all(c.char_count <= 600 for c in chunks)
    n = len(chunks)
    assert chunks[0].section == f"Big (1/{n})"
    assert chunks[-1].id == f"/docs:long.md:Big ({n}/{n}):{n - 1}"


def test_duplicate_headers_get_unique_ids(tmp_path):
    path = _write(tmp_path, "dup.md", "# Notes\nfirst block of notes here\n# Notes\nsecond block of notes here\n")
    ids = [c.id for c in chunk_file(path, "dup.md", "workspace")]
    assert ids == ["workspace:dup.md:Notes:0", "workspace:dup.md:Notes:0#2"]


def test_rechunking_is_deterministic(tmp_path):
    path = _write(tmp_path, "src.py", "def a():\n    return 'alpha value'\n\ndef b():\n    return 'beta value'\n")
    assert chunk_file(path, "src.py", "workspace") == chunk_file(path, "src.py", "workspace")


def test_binary_looking_file_skipped(tmp_path):
    path = tmp_path / "blob.txt"
    path.write_bytes(b"header\x00\x01\x02 more bytes than twenty characters")
    assert chunk_file(path, "blob.txt", "workspace") == []


def test_file_over_size_cap_skipped(tmp_path):
    path = _write(tmp_path, "big.txt", "x" * 500)
    assert chunk_file(path, "big.txt", "workspace", max_file_bytes=100) == []


def test_text_read_truncated_at_cap(tmp_path):
    path = _write(tmp_path, "big.txt", "a" * 100 + "\n\n" + "b" * 1000)
    chunks = chunk_file(path, "big.txt", "workspace", max_text_read_bytes=150)
    assert "".join(c.content for c in chunks).count("b") == 48


def test_missing_file_returns_empty(tmp_path):
    assert chunk_file(tmp_path / "gone.md", "gone.md", "workspace") == []


def test_extraction_failure_is_logged_and_skipped(tmp_path, caplog):
    path = tmp_path / "broken.pdf"
    path.write_bytes(b"not really a pdf")
    with patch("cairn.ingest.dispatch.extract_text", side_effect=RuntimeError("bad xref")):
        assert chunk_file(path, "broken.pdf", "workspace") == []
    assert "bad xref" in caplog.text


def test_binary_document_uses_plain_text_strategy(tmp_path):
    path = tmp_path / "report.docx"
    path.write_bytes(b"PK")
    extracted = "First paragraph of the report.\n\nSecond paragraph of the report."
    with patch("cairn.ingest.dispatch.extract_text", return_value=extracted):
        chunks = chunk_file(path, "report.docx", "workspace")
    assert [c.section for c in chunks] == ["section 1"]
    assert chunks[0].file_type == "docx"


# ------------------------------------------------------------------
# build_chunks
# ------------------------------------------------------------------


def test_build_chunks_ids_compose_folder_path_label_index():
    chunks = build_chunks(
        [Section("intro", "x" * 30)],
        relative_path="dir/file.txt",
        source_folder="/home/u/notes",
        file_name="file.txt",
        file_type="txt",
        mtime=1.5,
        cfg=ChunkingCfg(),
    )
    assert chunks[0].id == "/home/u/notes:dir/file.txt:intro:0"
    assert chunks[0].rowid is None
