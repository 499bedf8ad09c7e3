"""Indexing progress events and the throttled reporter that fans them out."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger(__name__)


class IndexPhase(str, Enum):
    IDLE = "idle"
    SCANNING = "scanning"
    CHUNKING = "chunking"
    SAVING = "saving"
    EMBEDDING = "embedding"
    DONE = "done"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (IndexPhase.DONE, IndexPhase.ERROR)


@dataclass
class IndexProgress:
    """One progress snapshot of a running index operation."""

    phase: IndexPhase
    current_file: str | None = None
    files_processed: int = 0
    files_total: int = 0
    chunks_created: int = 0
    embedding_percent: int = 0
    overall_percent: int = 0
    error: str | None = None


ProgressCallback = Callable[[IndexProgress], None]

# Overall percent bands: scanning 0, chunking 5-50, saving 50, embedding 55-100.


def chunking_percent(files_processed: int, files_total: int) -> int:
    if files_total <= 0:
        return 50
    return 5 + round(min(1.0, files_processed / files_total) * 45)


def embedding_percent(done: int, total: int) -> int:
    if total <= 0:
        return 100
    return round(min(1.0, done / total) * 100)


def overall_from_embedding(embed_pct: int) -> int:
    return 55 + round(embed_pct * 0.45)


class ProgressReporter:
    """Deliver progress to subscribers, at most once per throttle interval.

    Phase transitions and terminal states (done / error) are always
    delivered. Subscriber exceptions are logged and do not interrupt
    indexing.

    Args:
        throttle_ms: Minimum spacing of same-phase events.
        clock: Monotonic clock in seconds (injectable for tests).
    """

    def __init__(
        self,
        throttle_ms: int = 500,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.throttle_s = throttle_ms / 1000.0
        self._clock = clock
        self._subscribers: list[ProgressCallback] = []
        self._last_time: float | None = None
        self._last_phase: IndexPhase | None = None
        self.latest: IndexProgress = IndexProgress(phase=IndexPhase.IDLE)

    def subscribe(self, callback: ProgressCallback) -> Callable[[], None]:
        """Register *callback*; returns a function that unregisters it."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def emit(self, progress: IndexProgress) -> bool:
        """Offer *progress* to subscribers. Returns True if it was delivered."""
        self.latest = progress
        now = self._clock()
        forced = progress.phase.is_terminal or progress.phase != self._last_phase
        if (
            not forced
            and self._last_time is not None
            and now - self._last_time < self.throttle_s
        ):
            return False

        self._last_time = now
        self._last_phase = progress.phase
        for callback in list(self._subscribers):
            try:
                callback(progress)
            except Exception:
                logger.exception("Progress subscriber failed")
        return True
