"""Cooperative yield points for long loops on the event loop thread."""

from __future__ import annotations

import asyncio


class Checkpoint:
    """Yield to the event loop once every *every_n* units of work.

    Usage::

        checkpoint = Checkpoint(20)
        for path in files:
            ...
            await checkpoint.yield_if_needed()
    """

    def __init__(self, every_n: int) -> None:
        if every_n < 1:
            raise ValueError("every_n must be >= 1")
        self.every_n = every_n
        self.count = 0

    async def yield_if_needed(self) -> bool:
        """Count one unit; yield on every *every_n*-th call. Returns True if it yielded."""
        self.count += 1
        if self.count % self.every_n == 0:
            await asyncio.sleep(0)
            return True
        return False

    async def yield_now(self) -> None:
        await asyncio.sleep(0)
