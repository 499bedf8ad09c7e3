"""Filesystem watcher: debounced incremental reindex on file changes.

watchdog delivers events on its own threads; they are handed to the event
loop with ``call_soon_threadsafe``. One debounce timer is shared by all
watched roots and re-armed on every event, so a burst of changes results in
a single incremental reindex of every distinct path.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from pathlib import Path

from watchdog.events import (
    EVENT_TYPE_CREATED,
    EVENT_TYPE_DELETED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

from cairn.index.scanner import ScanRules

logger = logging.getLogger(__name__)

# Open and close events fire on plain reads, including the indexer's own.
_CONTENT_EVENTS = frozenset(
    {EVENT_TYPE_CREATED, EVENT_TYPE_MODIFIED, EVENT_TYPE_DELETED, EVENT_TYPE_MOVED}
)

ChangeCallback = Callable[[list[str]], Awaitable[object]]


class _RootEventHandler(FileSystemEventHandler):
    """Forward allow-listed content changes under one root to the watcher."""

    def __init__(self, watcher: FileWatcher, root: Path) -> None:
        super().__init__()
        self._watcher = watcher
        self._root = root

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory or event.event_type not in _CONTENT_EVENTS:
            return
        for raw in (event.src_path, getattr(event, "dest_path", "")):
            if raw:
                path = Path(raw.decode() if isinstance(raw, bytes) else raw)
                if self._watcher.accepts(path, self._root):
                    self._watcher.notify_threadsafe(str(path))


class FileWatcher:
    """Watch indexed roots and call *on_change* with batches of changed paths.

    Args:
        on_change: Coroutine function receiving the distinct changed paths.
        rules: Extension allow-list and excluded directory names.
        debounce_seconds: Quiet period after the last event before firing.
        loop: Event loop to deliver on; defaults to the running loop at
            ``start()``.
    """

    def __init__(
        self,
        on_change: ChangeCallback,
        rules: ScanRules | None = None,
        *,
        debounce_seconds: float = 5.0,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self.on_change = on_change
        self.rules = rules or ScanRules()
        self.debounce_seconds = debounce_seconds
        self.pending: set[str] = set()
        self._loop = loop
        self._timer: asyncio.TimerHandle | None = None
        self._observer: Observer | None = None
        self._tasks: set[asyncio.Task] = set()
        self.roots: list[Path] = []

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self, roots: Iterable[Path | str]) -> list[Path]:
        """Start watching *roots* recursively. Returns the roots actually watched.

        A root that is missing or cannot be scheduled is logged and skipped.
        """
        self.stop()
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        observer = Observer()
        watched: list[Path] = []
        for raw in roots:
            root = Path(raw)
            if not root.is_dir():
                logger.warning("Not watching %s: not a directory", root)
                continue
            try:
                observer.schedule(_RootEventHandler(self, root), str(root), recursive=True)
            except OSError as exc:
                logger.warning("Failed to watch %s: %s", root, exc)
                continue
            watched.append(root)
        if watched:
            observer.start()
            self._observer = observer
        self.roots = watched
        logger.info("Watching %d roots", len(watched))
        return watched

    def stop(self) -> None:
        """Cancel the pending debounce and join the observer threads."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self.pending.clear()
        if self._observer is not None:
            self._observer.stop()
            self._observer.join()
            self._observer = None
        self.roots = []

    @property
    def running(self) -> bool:
        return self._observer is not None

    # ------------------------------------------------------------------
    # Event intake
    # ------------------------------------------------------------------

    def accepts(self, path: Path, root: Path) -> bool:
        if not self.rules.accepts_extension(path):
            return False
        try:
            parts = path.relative_to(root).parts
        except ValueError:
            return False
        return not (len(parts) > 1 and parts[0] in self.rules.excluded_dirs)

    def notify_threadsafe(self, path: str) -> None:
        """Called from watchdog threads."""
        if self._loop is not None and not self._loop.is_closed():
            self._loop.call_soon_threadsafe(self.notify, path)

    def notify(self, path: str) -> None:
        """Record a change and (re)arm the debounce timer. Loop thread only."""
        self.pending.add(path)
        if self._timer is not None:
            self._timer.cancel()
        loop = self._loop or asyncio.get_running_loop()
        self._timer = loop.call_later(self.debounce_seconds, self._fire)

    def _fire(self) -> None:
        self._timer = None
        changes = sorted(self.pending)
        self.pending.clear()
        if not changes:
            return
        logger.info("File watcher: %d files changed, incremental reindex", len(changes))
        task = asyncio.ensure_future(self.on_change(changes), loop=self._loop)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def flush(self) -> None:
        """Fire a pending debounce immediately and wait for the reindex to finish."""
        if self._timer is not None:
            self._timer.cancel()
            self._fire()
        if self._tasks:
            await asyncio.gather(*self._tasks)
