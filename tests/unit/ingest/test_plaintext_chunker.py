"""Tests for PlainTextChunker and split_oversize."""

from __future__ import annotations

import pytest

from cairn.ingest.base import split_oversize
from cairn.ingest.plaintext import PlainTextChunker


# ------------------------------------------------------------------
# PlainTextChunker
# ------------------------------------------------------------------


def test_paragraphs_packed_into_one_section_when_small():
    result = PlainTextChunker().sections("para one\n\npara two\n\npara three")
    assert len(result) == 1
    assert result[0].header == "section 1"
    assert "para three" in result[0].content


def test_paragraphs_split_at_max_chars():
    para = "x" * 60
    text = "\n\n".join([para] * 5)
    result = PlainTextChunker(max_chars=130).sections(text)
    assert [s.header for s in result] == ["section 1", "section 2", "section 3"]
    assert all(len(s.content) <= 130 for s in result)


def test_no_blank_lines_falls_back_to_line_blocks():
    text = "\n".join(f"line {i}" for i in range(1, 201))
    result = PlainTextChunker(lines_per_block=80).sections(text)
    assert [s.header for s in result] == ["lines 1-80", "lines 81-160", "lines 161-200"]


def test_single_line_is_one_block():
    result = PlainTextChunker().sections("hello world")
    assert len(result) == 1
    assert result[0].content == "hello world"


# ------------------------------------------------------------------
# split_oversize
# ------------------------------------------------------------------


def test_split_short_text_unchanged():
    assert split_oversize("short", 100) == ["short"]


def test_split_invalid_max_chars():
    with pytest.raises(ValueError):
        split_oversize("abc", 0)


def test_split_prefers_paragraph_boundaries():
    text = "a" * 40 + "\n\n" + "b" * 40 + "\n\n" + "c" * 40
    pieces = split_oversize(text, 90)
    assert pieces == ["a" * 40 + "\n\n" + "b" * 40, "c" * 40]


def test_split_long_paragraph_at_sentences():
    sentences = [f"Sentence number {i} ends here." for i in range(20)]
    pieces = split_oversize(" ".join(sentences), 100)
    assert len(pieces) > 1
    assert all(p.endswith(".") for p in pieces)


def test_split_hard_cut_without_boundaries():
    pieces = split_oversize("z" * 1000, 300)
    assert [len(p) for p in pieces] == [300, 300, 300, 100]


@pytest.mark.parametrize(
    "text",
    [
        "word " * 2000,
        ("Short sentence. " * 50 + "\n\n") * 10,
        "x" * 5000,
        "para\n\n" * 800,
        "A" * 1499 + ". " + "B" * 1600,
    ],
)
def test_split_never_exceeds_max_and_never_empty(text):
    pieces = split_oversize(text, 1500)
    assert pieces
    assert all(len(p) <= 1500 for p in pieces)
