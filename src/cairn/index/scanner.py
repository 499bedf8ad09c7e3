"""File enumeration for indexed roots."""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from cairn.db.models import WORKSPACE_FOLDER
from cairn.ingest.dispatch import DEFAULT_EXTENSIONS, MAX_FILE_SIZE

logger = logging.getLogger(__name__)

MAX_TOTAL_FILES = 10_000

# Directories never descended into (dot-directories are skipped as well).
EXCLUDED_DIRS = frozenset(
    {
        "node_modules", ".git", ".svn", ".hg",
        "dist", "build", "out", "target", "bin", "obj",
        "__pycache__", ".pytest_cache", ".mypy_cache",
        ".venv", "venv", "env", ".env",
        ".next", ".nuxt", ".output", ".cache", ".tmp", ".temp",
        "coverage", ".nyc_output", ".idea", ".vscode", ".vs",
        "vendor", "packages",
        "rag",  # the index's own directory
    }
)

WORKSPACE_MEMORY_DIR = "memory"


@dataclass
class FileEntry:
    """A file selected for indexing."""

    path: Path
    relative_path: str
    source_folder: str


@dataclass
class ScanRules:
    """Which files an index operation considers."""

    extensions: frozenset[str] = DEFAULT_EXTENSIONS
    excluded_dirs: frozenset[str] = EXCLUDED_DIRS
    max_file_bytes: int = MAX_FILE_SIZE
    max_files: int = MAX_TOTAL_FILES

    @classmethod
    def from_lists(
        cls,
        extensions: Iterable[str] | None = None,
        excluded_dirs: Iterable[str] | None = None,
        **kwargs: int,
    ) -> ScanRules:
        return cls(
            extensions=frozenset(e.lower() for e in extensions) if extensions is not None else DEFAULT_EXTENSIONS,
            excluded_dirs=frozenset(excluded_dirs) if excluded_dirs is not None else EXCLUDED_DIRS,
            **kwargs,
        )

    def accepts_extension(self, path: Path | str) -> bool:
        return Path(path).suffix.lower() in self.extensions

    def is_excluded_dir(self, name: str) -> bool:
        return name in self.excluded_dirs or name.startswith(".")


def scan_root(
    root: Path,
    source_folder: str,
    rules: ScanRules,
    *,
    recursive: bool = True,
    limit: int | None = None,
    base: Path | None = None,
    out: list[FileEntry] | None = None,
) -> list[FileEntry]:
    """Collect allow-listed files under *root* in sorted order.

    Files larger than ``rules.max_file_bytes`` are left out. Collection
    stops once *limit* entries (default ``rules.max_files``) are gathered.
    Unreadable directories are logged and skipped.
    """
    base = base if base is not None else root
    out = out if out is not None else []
    limit = rules.max_files if limit is None else limit
    if len(out) >= limit:
        return out

    try:
        entries = sorted(root.iterdir())
    except OSError as exc:
        logger.warning("Cannot read directory %s: %s", root, exc)
        return out

    for entry in entries:
        if len(out) >= limit:
            break
        try:
            if entry.is_file():
                if not rules.accepts_extension(entry):
                    continue
                if entry.stat().st_size > rules.max_file_bytes:
                    continue
                out.append(FileEntry(entry, os.path.relpath(entry, base), source_folder))
            elif entry.is_dir() and recursive and not rules.is_excluded_dir(entry.name):
                scan_root(entry, source_folder, rules, recursive=True, limit=limit, base=base, out=out)
        except OSError as exc:
            logger.warning("Skipping %s: %s", entry, exc)
    return out


def scan_workspace(workspace: Path, rules: ScanRules, limit: int | None = None) -> list[FileEntry]:
    """Workspace root files (non-recursive) plus the whole ``memory/`` subtree."""
    if not workspace.is_dir():
        return []
    out = scan_root(workspace, WORKSPACE_FOLDER, rules, recursive=False, limit=limit)
    memory = workspace / WORKSPACE_MEMORY_DIR
    if memory.is_dir():
        scan_root(memory, WORKSPACE_FOLDER, rules, recursive=True, limit=limit, base=workspace, out=out)
    return out


def find_source_folder(path: Path, workspace: Path, folders: Iterable[str]) -> str | None:
    """Return the root *path* belongs to: ``"workspace"``, a folder path, or None."""
    if _is_within(path, workspace):
        return WORKSPACE_FOLDER
    for folder in folders:
        if _is_within(path, Path(folder)):
            return folder
    return None


def _is_within(path: Path, root: Path) -> bool:
    try:
        path.relative_to(root)
    except ValueError:
        return False
    return True
