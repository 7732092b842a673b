# src/conductor_board/tasks/progression.py

from __future__ import annotations

"""
Simulated progression engine.

Drives the board when no live agent is attached. On every tick it:
- promotes the first pending task to in_progress when nothing is running,
- otherwise advances the running task by a bounded random step,
- completes the running task on the tick its progress reaches 100,
- stops (once) when no pending or in_progress task is left.

Log lines for the running task come from a LogTextProvider. The request is
fired in the background so a slow provider never delays progress, with at most
one outstanding request per task. Its result is applied only if the session is
still in the same generation and mode, and the task is still the active one.
"""

import asyncio
import logging
import random
import time
from collections.abc import Callable
from dataclasses import replace
from enum import StrEnum

from ..core.ports import LogTextProvider
from ..core.state import SessionMode, SessionState
from ..core.ticker import Ticker
from .task_models import LogEntry, LogLine, LogSeverity, Task, TaskStatus, clamp_progress
from .task_store import TaskStore

logger = logging.getLogger(__name__)

FALLBACK_LOG_LINE = LogLine(message="Executing internal process...", severity=LogSeverity.INFO)
ALL_COMPLETED_MESSAGE = "All tasks completed successfully."
ENGINE_STARTED_MESSAGE = "Conductor simulation engine started."


class TickOutcome(StrEnum):
    INACTIVE = "inactive"  # session is not simulating
    STARTED = "started"  # pending -> in_progress
    ADVANCED = "advanced"
    COMPLETED = "completed"
    FINISHED = "finished"  # nothing left; completion announced
    IDLE = "idle"  # already finished, nothing to do


class ProgressionEngine:
    def __init__(
        self,
        store: TaskStore,
        log_provider: LogTextProvider,
        session: SessionState,
        *,
        interval_seconds: float = 2.0,
        seed_progress: int = 5,
        step_range: tuple[int, int] = (5, 19),
        step: Callable[[], int] | None = None,
        on_finished: Callable[[], None] | None = None,
        clock: Callable[[], float] = time.time,
        rng: random.Random | None = None,
    ) -> None:
        self._store = store
        self._log_provider = log_provider
        self._session = session
        self._on_finished = on_finished
        self._clock = clock

        lo, hi = sorted((int(step_range[0]), int(step_range[1])))
        self._rng = rng or random.Random()
        self._step = step or (lambda: self._rng.randint(lo, hi))
        self._seed_progress = max(1, clamp_progress(seed_progress))

        self._ticker = Ticker(self._on_tick, interval_seconds, name="progression")
        self._inflight: dict[str, asyncio.Task[None]] = {}
        self._finished = False

    @property
    def running(self) -> bool:
        return self._ticker.running

    @property
    def ticker(self) -> Ticker:
        return self._ticker

    def has_pending_request(self, task_id: str) -> bool:
        t = self._inflight.get(task_id)
        return t is not None and not t.done()

    def start(self) -> None:
        self._finished = False
        self._store.log(ENGINE_STARTED_MESSAGE, LogSeverity.SUCCESS)
        self._ticker.start()

    def stop(self) -> None:
        """
        Stop ticking. In-flight log requests are left to finish; their results
        are discarded because the session generation has moved on.
        """
        self._ticker.stop()

    async def drain(self) -> None:
        """Wait for the ticker and any outstanding log requests (used on shutdown and in tests)."""
        await self._ticker.wait_stopped()
        pending = [t for t in self._inflight.values() if not t.done()]
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    async def _on_tick(self) -> None:
        self.tick()

    def tick(self) -> TickOutcome:
        if self._session.mode != SessionMode.SIMULATING:
            return TickOutcome.INACTIVE

        store = self._store
        running = store.first_with_status(TaskStatus.IN_PROGRESS)

        if running is None:
            pending = store.first_with_status(TaskStatus.PENDING)
            if pending is None:
                return self._finish()

            with store.batch():
                task = store.mutate(pending.id, self._promote)
                store.set_active_task(pending.id)
            outcome = TickOutcome.STARTED
            logger.debug("Task %s -> in_progress", pending.id)
        else:
            step = self._step()
            with store.batch():
                task = store.mutate(running.id, lambda t: self._advance(t, step))
                if task is not None and task.status == TaskStatus.COMPLETED:
                    store.set_active_task(None)
                else:
                    store.set_active_task(running.id)

            if task is not None and task.status == TaskStatus.COMPLETED:
                logger.debug("Task %s -> completed", running.id)
                return TickOutcome.COMPLETED
            outcome = TickOutcome.ADVANCED

        if task is not None:
            self._request_log_line(task)
        return outcome

    def _promote(self, task: Task) -> Task:
        return replace(task, status=TaskStatus.IN_PROGRESS, progress=self._seed_progress)

    @staticmethod
    def _advance(task: Task, step: int) -> Task:
        progress = clamp_progress(task.progress + max(0, int(step)))
        if progress >= 100:
            return replace(task, progress=100, status=TaskStatus.COMPLETED)
        return replace(task, progress=progress)

    def _finish(self) -> TickOutcome:
        if self._finished:
            return TickOutcome.IDLE
        self._finished = True

        with self._store.batch():
            self._store.set_active_task(None)
            self._store.log(ALL_COMPLETED_MESSAGE, LogSeverity.SUCCESS)

        self._ticker.stop()
        if self._on_finished is not None:
            self._on_finished()
        return TickOutcome.FINISHED

    # ---- log lines ----

    def _request_log_line(self, task: Task) -> None:
        if self.has_pending_request(task.id):
            logger.debug("Log request for task %s still outstanding, not issuing another", task.id)
            return

        generation = self._session.generation
        fetch = asyncio.create_task(
            self._fetch_log_line(task, generation),
            name=f"log-line-{task.id}",
        )
        self._inflight[task.id] = fetch

        def _done(t: asyncio.Task[None], task_id: str = task.id) -> None:
            if self._inflight.get(task_id) is t:
                del self._inflight[task_id]

        fetch.add_done_callback(_done)

    async def _fetch_log_line(self, task: Task, generation: int) -> None:
        try:
            line = await self._log_provider.task_log_line(task)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.warning("Log text provider failed for task %s; using fallback", task.id, exc_info=True)
            line = FALLBACK_LOG_LINE

        self.apply_log_line(task.id, task.title, line, generation)

    def apply_log_line(self, task_id: str, title: str, line: LogLine, generation: int) -> bool:
        """Apply a fetched line as one atomic update. Returns False when the result is stale."""
        if not self._session.is_current(generation, SessionMode.SIMULATING):
            logger.debug("Discarding log line for task %s (session moved on)", task_id)
            return False
        if self._store.active_task_id != task_id:
            logger.debug("Discarding log line for task %s (no longer active)", task_id)
            return False

        now = self._clock()
        entry = LogEntry(timestamp=now, message=line.message, severity=line.severity)
        with self._store.batch():
            self._store.mutate(task_id, lambda t: t.with_log(entry))
            self._store.append_global_log(
                LogEntry(timestamp=now, message=f"[{title}] {line.message}", severity=line.severity)
            )
        return True
