"""Tests for YamlChunker, TomlChunker and CsvChunker."""

from __future__ import annotations

import pytest

from cairn.ingest.csv_chunker import CsvChunker
from cairn.ingest.yaml_chunker import TomlChunker, YamlChunker


# ------------------------------------------------------------------
# YAML
# ------------------------------------------------------------------


def test_yaml_top_level_keys():
    text = "# comment\nname: cairn\nembedding:\n  model: x\n  size: 256\nretrieval:\n  top_k: 5\n"
    result = YamlChunker().sections(text)
    assert [s.header for s in result] == ["config", "name", "embedding", "retrieval"]
    assert "size: 256" in result[2].content


def test_yaml_indented_keys_do_not_split():
    result = YamlChunker().sections("outer:\n  inner: 1\n  other: 2\n")
    assert [s.header for s in result] == ["outer"]


def test_yaml_without_keys_single_config_section():
    result = YamlChunker().sections("- a\n- b\n")
    assert [s.header for s in result] == ["config"]


# ------------------------------------------------------------------
# TOML
# ------------------------------------------------------------------


def test_toml_root_keys_and_tables():
    text = 'name = "cairn"\nversion = "0.1"\n\n[tool.pytest]\naddopts = "-q"\n\n[[bin]]\npath = "x"\n'
    result = TomlChunker().sections(text)
    assert [s.header for s in result] == ["name", "version", "tool.pytest", "bin"]
    assert 'addopts = "-q"' in result[2].content


def test_toml_chunker_resets_between_documents():
    chunker = TomlChunker()
    chunker.sections("[table]\nkey = 1\n")
    result = chunker.sections("a = 1\nb = 2\n")
    assert [s.header for s in result] == ["a", "b"]


# ------------------------------------------------------------------
# CSV / TSV
# ------------------------------------------------------------------


def test_csv_blocks_repeat_header():
    rows = "\n".join(f"{i},{i * 2}" for i in range(1, 121))
    result = CsvChunker(rows_per_block=50).sections("a,b\n" + rows)
    assert [s.header for s in result] == ["rows 1-50", "rows 51-100", "rows 101-120"]
    assert all(s.content.startswith("a,b\n") for s in result)
    assert result[2].content.split("\n")[1] == "101,202"


def test_csv_trailing_newline_not_a_row():
    result = CsvChunker().sections("a,b\n1,2\n")
    assert [s.header for s in result] == ["rows 1-1"]


def test_csv_header_only_single_data_section():
    result = CsvChunker().sections("a,b,c")
    assert [s.header for s in result] == ["data"]


def test_csv_invalid_rows_per_block():
    with pytest.raises(ValueError, match="rows_per_block"):
        CsvChunker(rows_per_block=0)
