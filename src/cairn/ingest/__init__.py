"""Cairn ingest pipeline: format-aware chunkers and binary document extraction."""

from cairn.ingest.base import BaseChunker, Section, split_oversize
from cairn.ingest.code import CodeChunker
from cairn.ingest.csv_chunker import CsvChunker
from cairn.ingest.dispatch import DEFAULT_EXTENSIONS, chunk_file, get_chunker
from cairn.ingest.extract import extract_text
from cairn.ingest.json_chunker import JsonChunker
from cairn.ingest.markdown import MarkdownChunker
from cairn.ingest.plaintext import PlainTextChunker
from cairn.ingest.text import content_hash, tokenize
from cairn.ingest.yaml_chunker import TomlChunker, YamlChunker

__all__ = [
    "BaseChunker",
    "CodeChunker",
    "CsvChunker",
    "DEFAULT_EXTENSIONS",
    "JsonChunker",
    "MarkdownChunker",
    "PlainTextChunker",
    "Section",
    "TomlChunker",
    "YamlChunker",
    "chunk_file",
    "content_hash",
    "extract_text",
    "get_chunker",
    "split_oversize",
    "tokenize",
]
