# src/conductor_board/core/ticker.py

from __future__ import annotations

"""
Fixed-interval tick driver.

- calls an async handler every interval_seconds,
- runs at most one handler instance at a time,
- a tick that fires while the previous handler is still running is skipped, not queued,
- handler failures are logged and do not stop the loop.

To stop ticking, call stop() (safe from inside the handler).
"""

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

TickHandler = Callable[[], Awaitable[None]]


class Ticker:
    def __init__(self, handler: TickHandler, interval_seconds: float, *, name: str = "ticker") -> None:
        self._handler = handler
        self._interval = max(0.001, float(interval_seconds))
        self._name = name

        self._loop_task: asyncio.Task[None] | None = None
        self._current: asyncio.Task[None] | None = None
        self._draining: list[asyncio.Task[None]] = []
        self._busy = False

        self.fired = 0
        self.skipped = 0

    @property
    def running(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    @property
    def busy(self) -> bool:
        return self._busy

    def start(self) -> None:
        if self.running:
            return
        self._loop_task = asyncio.create_task(self._run(), name=f"{self._name}-loop")
        logger.debug("%s started (interval=%.2fs)", self._name, self._interval)

    def stop(self) -> None:
        # Tasks cancelled by earlier stops that nobody waited for.
        self._draining = [t for t in self._draining if not t.done()]

        loop_task, self._loop_task = self._loop_task, None
        if loop_task is not None and not loop_task.done():
            loop_task.cancel()
            self._draining.append(loop_task)

        current = self._current
        if current is not None and not current.done() and current is not asyncio.current_task():
            current.cancel()
            self._draining.append(current)
            # A handler cancelled before it ever ran never reaches its finally.
            self._busy = False
        self._current = None
        logger.debug("%s stopped (fired=%d skipped=%d)", self._name, self.fired, self.skipped)

    async def wait_stopped(self) -> None:
        """Wait for cancelled loop/handler tasks to wind down."""
        draining, self._draining = self._draining, []
        for t in draining:
            with contextlib.suppress(asyncio.CancelledError):
                await t

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)

            if self._busy:
                self.skipped += 1
                logger.debug("%s: previous tick still running, skipping", self._name)
                continue

            self._busy = True
            self.fired += 1
            self._current = asyncio.create_task(self._invoke(), name=f"{self._name}-tick")

    async def _invoke(self) -> None:
        try:
            await self._handler()
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("%s: tick handler failed", self._name)
        finally:
            self._busy = False
