"""Tests for the offload worker message protocol."""

from __future__ import annotations

import asyncio
from concurrent.futures.process import BrokenProcessPool
from unittest.mock import patch

import pytest

from cairn.embed.tfidf import build_corpus_statistics, tfidf_embed_batch
from cairn.embed.worker import (
    BUILD_STATS,
    EMBED_BATCH,
    OffloadWorker,
    WorkerError,
    handle_message,
)


def test_build_stats_message():
    docs = ["red apples", "green apples"]
    reply = handle_message({"id": 7, "type": BUILD_STATS, "payload": {"documents": docs}})
    expected = build_corpus_statistics(docs)
    assert reply["id"] == 7
    assert reply["type"] == BUILD_STATS
    assert reply["result"]["document_count"] == 2
    assert reply["result"]["idf"] == expected.idf
    assert reply["result"]["fingerprint"] == expected.fingerprint


def test_embed_batch_message():
    payload = {"texts": ["one two", "three"], "idf": {"one": 2.0}, "dimensions": 8}
    reply = handle_message({"id": 1, "type": EMBED_BATCH, "payload": payload})
    assert reply["result"] == tfidf_embed_batch(["one two", "three"], {"one": 2.0}, 8)


def test_unknown_type_is_error_reply():
    reply = handle_message({"id": 3, "type": "shutdown", "payload": {}})
    assert reply["id"] == 3
    assert "unknown message type" in reply["error"]
    assert "result" not in reply


def test_malformed_payload_is_error_reply():
    reply = handle_message({"id": 4, "type": EMBED_BATCH, "payload": {}})
    assert reply["error"].startswith("KeyError")


class _InlineLoop:
    """Stand-in for run_in_executor that answers in the calling thread."""

    def __init__(self, reply=None, exc=None):
        self.reply = reply
        self.exc = exc

    async def run_in_executor(self, executor, fn, message):
        if self.exc is not None:
            raise self.exc
        return self.reply(message) if self.reply else fn(message)


def test_request_round_trip_without_process():
    worker = OffloadWorker()
    with patch("cairn.embed.worker.asyncio.get_running_loop", return_value=_InlineLoop()):
        stats = asyncio.run(worker.build_stats(["alpha beta", "beta gamma"]))
    assert stats.document_count == 2
    assert stats.fingerprint == build_corpus_statistics(["alpha beta", "beta gamma"]).fingerprint
    worker.close()


def test_error_reply_raises_worker_error():
    worker = OffloadWorker()
    with patch("cairn.embed.worker.asyncio.get_running_loop", return_value=_InlineLoop()):
        with pytest.raises(WorkerError, match="unknown message type"):
            asyncio.run(worker.request("bogus", {}))
    worker.close()


def test_mismatched_reply_id_raises():
    worker = OffloadWorker()
    loop = _InlineLoop(reply=lambda m: {"id": -1, "type": m["type"], "result": None})
    with patch("cairn.embed.worker.asyncio.get_running_loop", return_value=loop):
        with pytest.raises(WorkerError, match="does not match"):
            asyncio.run(worker.request(BUILD_STATS, {"documents": []}))
    worker.close()


def test_broken_pool_resets_worker():
    worker = OffloadWorker()
    loop = _InlineLoop(exc=BrokenProcessPool("child died"))
    with patch("cairn.embed.worker.asyncio.get_running_loop", return_value=loop):
        with pytest.raises(WorkerError, match="unavailable"):
            asyncio.run(worker.request(BUILD_STATS, {"documents": []}))
    assert worker._pool is None
