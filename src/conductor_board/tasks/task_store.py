# src/conductor_board/tasks/task_store.py

from __future__ import annotations

import contextlib
import logging
import time
from collections import deque
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass, replace

from .task_models import LogEntry, LogSeverity, Task, TaskStatus, clamp_progress

logger = logging.getLogger(__name__)

DEFAULT_LOG_CAPACITY = 100

StoreListener = Callable[["StoreSnapshot"], None]

_SEVERITY_LEVELS = {
    LogSeverity.INFO: logging.INFO,
    LogSeverity.SUCCESS: logging.INFO,
    LogSeverity.WARNING: logging.WARNING,
    LogSeverity.ERROR: logging.ERROR,
}


def _count_by_status(tasks: Iterable[Task]) -> dict[TaskStatus, int]:
    out = {s: 0 for s in TaskStatus}
    for t in tasks:
        out[t.status] += 1
    return out


@dataclass(slots=True, frozen=True)
class StoreSnapshot:
    """Fully materialized, consistent view of the store at one instant."""

    tasks: tuple[Task, ...]
    goal: str
    active_task_id: str | None
    logs: tuple[LogEntry, ...]
    version: int
    # Total entries ever appended (the buffer itself is bounded).
    log_seq: int = 0

    def get(self, task_id: str) -> Task | None:
        for t in self.tasks:
            if t.id == task_id:
                return t
        return None

    def counts(self) -> dict[TaskStatus, int]:
        return _count_by_status(self.tasks)


class TaskStore:
    """
    In-memory task board state: ordered tasks, goal text, active task pointer
    and the bounded global log.

    Concurrency model:
    - single control thread (asyncio); every public method is synchronous,
      so no mutation is ever half applied across a suspension point
    - the task collection is an immutable tuple, replaced on every write
    - listeners are notified after each write, or once per batch()
    """

    def __init__(
        self,
        *,
        log_capacity: int = DEFAULT_LOG_CAPACITY,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._tasks: tuple[Task, ...] = ()
        self._goal = ""
        self._active_task_id: str | None = None
        self._logs: deque[LogEntry] = deque(maxlen=max(1, int(log_capacity)))
        self._version = 0
        self._log_seq = 0
        self._clock = clock

        self._listeners: list[StoreListener] = []
        self._batch_depth = 0
        self._dirty = False

    # ---- reads ----

    @property
    def tasks(self) -> tuple[Task, ...]:
        return self._tasks

    @property
    def goal(self) -> str:
        return self._goal

    @property
    def active_task_id(self) -> str | None:
        return self._active_task_id

    @property
    def logs(self) -> tuple[LogEntry, ...]:
        return tuple(self._logs)

    @property
    def log_capacity(self) -> int:
        return self._logs.maxlen or DEFAULT_LOG_CAPACITY

    @property
    def version(self) -> int:
        return self._version

    @property
    def log_seq(self) -> int:
        return self._log_seq

    def get(self, task_id: str) -> Task | None:
        for t in self._tasks:
            if t.id == task_id:
                return t
        return None

    def first_with_status(self, status: TaskStatus) -> Task | None:
        for t in self._tasks:
            if t.status == status:
                return t
        return None

    def counts(self) -> dict[TaskStatus, int]:
        return _count_by_status(self._tasks)

    def snapshot(self) -> StoreSnapshot:
        return StoreSnapshot(
            tasks=self._tasks,
            goal=self._goal,
            active_task_id=self._active_task_id,
            logs=tuple(self._logs),
            version=self._version,
            log_seq=self._log_seq,
        )

    # ---- writes ----

    def replace_all(self, tasks: Iterable[Task], goal: str | None = None) -> None:
        """
        Replace the whole task collection (and the goal, when given).

        The active-task pointer is cleared; callers recompute it if they need one.
        """
        self._tasks = tuple(tasks)
        if goal is not None:
            self._goal = goal
        self._active_task_id = None
        self._changed()

    def mutate(self, task_id: str, fn: Callable[[Task], Task]) -> Task | None:
        """Apply a pure transformation to one task. Returns the new task, or None if absent."""
        for idx, old in enumerate(self._tasks):
            if old.id != task_id:
                continue
            new = fn(old)
            if new.progress != clamp_progress(new.progress):
                new = replace(new, progress=clamp_progress(new.progress))
            self._tasks = (*self._tasks[:idx], new, *self._tasks[idx + 1 :])
            self._changed()
            return new
        return None

    def set_active_task(self, task_id: str | None) -> None:
        if task_id == self._active_task_id:
            return
        self._active_task_id = task_id
        self._changed()

    def set_goal(self, goal: str) -> None:
        if goal == self._goal:
            return
        self._goal = goal
        self._changed()

    def append_global_log(self, entry: LogEntry) -> None:
        # deque(maxlen=...) evicts the oldest entry on overflow.
        self._logs.append(entry)
        self._log_seq += 1
        self._changed()

    def log(self, message: str, severity: LogSeverity = LogSeverity.INFO) -> LogEntry:
        """Append a timestamped global log entry and mirror it into the Python log."""
        entry = LogEntry(timestamp=self._clock(), message=message, severity=severity)
        logger.log(_SEVERITY_LEVELS.get(severity, logging.INFO), "[board] %s", message)
        self.append_global_log(entry)
        return entry

    # ---- notifications ----

    def subscribe(self, listener: StoreListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            with contextlib.suppress(ValueError):
                self._listeners.remove(listener)

        return _unsubscribe

    @contextlib.contextmanager
    def batch(self) -> Iterator[None]:
        """Group several writes so listeners see a single consistent update."""
        self._batch_depth += 1
        try:
            yield
        finally:
            self._batch_depth -= 1
            if self._batch_depth == 0 and self._dirty:
                self._dirty = False
                self._notify()

    def _changed(self) -> None:
        self._version += 1
        if self._batch_depth > 0:
            self._dirty = True
            return
        self._notify()

    def _notify(self) -> None:
        if not self._listeners:
            return
        snap = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snap)
            except Exception:
                logger.exception("TaskStore listener failed")
