"""Tests for progress events and the throttled reporter."""

from __future__ import annotations

from cairn.index.progress import (
    IndexPhase,
    IndexProgress,
    ProgressReporter,
    chunking_percent,
    embedding_percent,
    overall_from_embedding,
)


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def _reporter(throttle_ms: int = 500):
    clock = FakeClock()
    reporter = ProgressReporter(throttle_ms=throttle_ms, clock=clock)
    seen: list[IndexProgress] = []
    reporter.subscribe(seen.append)
    return reporter, clock, seen


def test_same_phase_events_are_throttled():
    reporter, clock, seen = _reporter()
    assert reporter.emit(IndexProgress(IndexPhase.CHUNKING, files_processed=1))
    clock.now = 0.1
    assert not reporter.emit(IndexProgress(IndexPhase.CHUNKING, files_processed=2))
    clock.now = 0.6
    assert reporter.emit(IndexProgress(IndexPhase.CHUNKING, files_processed=3))
    assert [e.files_processed for e in seen] == [1, 3]


def test_phase_change_always_delivered():
    reporter, clock, seen = _reporter()
    reporter.emit(IndexProgress(IndexPhase.CHUNKING))
    reporter.emit(IndexProgress(IndexPhase.SAVING))
    reporter.emit(IndexProgress(IndexPhase.EMBEDDING))
    assert [e.phase for e in seen] == [IndexPhase.CHUNKING, IndexPhase.SAVING, IndexPhase.EMBEDDING]


def test_terminal_events_bypass_throttle():
    reporter, clock, seen = _reporter()
    reporter.emit(IndexProgress(IndexPhase.DONE))
    reporter.emit(IndexProgress(IndexPhase.DONE))
    reporter.emit(IndexProgress(IndexPhase.ERROR, error="boom"))
    assert len(seen) == 3
    assert seen[-1].error == "boom"


def test_latest_tracks_throttled_events():
    reporter, clock, seen = _reporter()
    reporter.emit(IndexProgress(IndexPhase.EMBEDDING, embedding_percent=10))
    reporter.emit(IndexProgress(IndexPhase.EMBEDDING, embedding_percent=20))
    assert len(seen) == 1
    assert reporter.latest.embedding_percent == 20


def test_unsubscribe():
    reporter = ProgressReporter(clock=FakeClock())
    seen: list[IndexProgress] = []
    unsubscribe = reporter.subscribe(seen.append)
    unsubscribe()
    unsubscribe()
    reporter.emit(IndexProgress(IndexPhase.DONE))
    assert seen == []


def test_failing_subscriber_does_not_stop_others(caplog):
    reporter, clock, seen = _reporter()

    def broken(_event):
        raise RuntimeError("subscriber bug")

    reporter.subscribe(broken)
    reporter.subscribe(seen.append)
    reporter.emit(IndexProgress(IndexPhase.DONE))
    assert len(seen) == 2
    assert "Progress subscriber failed" in caplog.text


def test_initial_state_is_idle():
    assert ProgressReporter().latest.phase is IndexPhase.IDLE
    assert not IndexPhase.IDLE.is_terminal
    assert IndexPhase.DONE.is_terminal and IndexPhase.ERROR.is_terminal


def test_percent_bands():
    assert chunking_percent(0, 10) == 5
    assert chunking_percent(10, 10) == 50
    assert chunking_percent(0, 0) == 50
    assert embedding_percent(0, 0) == 100
    assert embedding_percent(50, 200) == 25
    assert overall_from_embedding(0) == 55
    assert overall_from_embedding(100) == 100
