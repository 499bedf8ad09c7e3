"""Cairn indexing: orchestration, progress reporting, scanning and file watching."""

from cairn.index.checkpoint import Checkpoint
from cairn.index.orchestrator import IndexOrchestrator
from cairn.index.progress import IndexPhase, IndexProgress, ProgressReporter
from cairn.index.scanner import EXCLUDED_DIRS, FileEntry, ScanRules, scan_root, scan_workspace
from cairn.index.watcher import FileWatcher

__all__ = [
    "Checkpoint",
    "EXCLUDED_DIRS",
    "FileEntry",
    "FileWatcher",
    "IndexOrchestrator",
    "IndexPhase",
    "IndexProgress",
    "ProgressReporter",
    "ScanRules",
    "scan_root",
    "scan_workspace",
]
