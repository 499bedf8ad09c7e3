"""CPU-offload worker: fallback statistics and batch vectors in a separate process.

The worker process is stateless. Each request is a plain message
``{"id", "type", "payload"}`` answered with ``{"id", "type", "result"}`` or
``{"id", "type", "error"}``; IDF weights travel with every embed request.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from concurrent.futures import ProcessPoolExecutor
from concurrent.futures.process import BrokenProcessPool
from typing import Any

from cairn.embed.tfidf import CorpusStatistics, build_corpus_statistics, tfidf_embed_batch

logger = logging.getLogger(__name__)

BUILD_STATS = "build_stats"
EMBED_BATCH = "embed_batch"


class WorkerError(RuntimeError):
    """The offload worker could not answer a request."""


# ------------------------------------------------------------------
# Worker side (runs in the child process)
# ------------------------------------------------------------------


def handle_message(message: dict[str, Any]) -> dict[str, Any]:
    """Answer one request message. Errors are reported in the reply, not raised."""
    msg_id = message.get("id")
    msg_type = message.get("type")
    payload = message.get("payload") or {}
    try:
        if msg_type == BUILD_STATS:
            stats = build_corpus_statistics(payload["documents"])
            result: Any = {
                "document_count": stats.document_count,
                "idf": stats.idf,
                "fingerprint": stats.fingerprint,
            }
        elif msg_type == EMBED_BATCH:
            result = tfidf_embed_batch(
                payload["texts"], payload.get("idf") or {}, payload["dimensions"]
            )
        else:
            raise ValueError(f"unknown message type: {msg_type!r}")
    except Exception as exc:  # reported to the caller as an error reply
        return {"id": msg_id, "type": msg_type, "error": f"{type(exc).__name__}: {exc}"}
    return {"id": msg_id, "type": msg_type, "result": result}


# ------------------------------------------------------------------
# Caller side
# ------------------------------------------------------------------


class OffloadWorker:
    """Single background process reached through request/response messages.

    The process is started on first use and restarted after a crash.
    """

    def __init__(self) -> None:
        self._pool: ProcessPoolExecutor | None = None
        self._ids = itertools.count(1)

    async def request(self, msg_type: str, payload: dict[str, Any]) -> Any:
        """Send one message and await its reply.

        Raises:
            WorkerError: If the process is unavailable, crashed, or replied
                with an error.
        """
        message = {"id": next(self._ids), "type": msg_type, "payload": payload}
        loop = asyncio.get_running_loop()
        try:
            reply = await loop.run_in_executor(self._ensure_pool(), handle_message, message)
        except (BrokenProcessPool, OSError) as exc:
            self._reset()
            raise WorkerError(f"offload worker unavailable: {exc}") from exc

        if reply.get("id") != message["id"]:
            raise WorkerError(f"reply id {reply.get('id')} does not match request {message['id']}")
        if "error" in reply:
            raise WorkerError(reply["error"])
        return reply["result"]

    async def build_stats(self, documents: list[str]) -> CorpusStatistics:
        result = await self.request(BUILD_STATS, {"documents": documents})
        return CorpusStatistics(
            document_count=result["document_count"],
            idf=result["idf"],
            fingerprint=result["fingerprint"],
        )

    async def embed_batch(
        self, texts: list[str], idf: dict[str, float], dimensions: int
    ) -> list[list[float]]:
        return await self.request(
            EMBED_BATCH, {"texts": texts, "idf": idf, "dimensions": dimensions}
        )

    def close(self) -> None:
        if self._pool is not None:
            self._pool.shutdown(wait=True, cancel_futures=True)
            self._pool = None

    def _ensure_pool(self) -> ProcessPoolExecutor:
        if self._pool is None:
            self._pool = ProcessPoolExecutor(max_workers=1)
        return self._pool

    def _reset(self) -> None:
        pool, self._pool = self._pool, None
        if pool is not None:
            pool.shutdown(wait=False, cancel_futures=True)
