# src/conductor_board/feed/protocol.py

"""
Live feed wire format.

Each message is a JSON object with optional keys:
- "tasks": full task list (replaces the board)
- "log": one log object {"message": str, "type": "info"|"success"|"error"|"warning"}
- "logs": list of log objects
- "projectGoal": goal text

Unknown keys are ignored. Anything malformed is dropped, never raised:
the feed is best-effort and a bad message must not break the connection.
"""

from __future__ import annotations

import json
import logging
import math
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from ..tasks.task_models import (
    LogEntry,
    LogSeverity,
    Task,
    TaskPriority,
    TaskStatus,
    clamp_progress,
)

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class TaskListPayload:
    tasks: tuple[Task, ...]


@dataclass(slots=True, frozen=True)
class LogPayload:
    entry: LogEntry


@dataclass(slots=True, frozen=True)
class LogBatchPayload:
    entries: tuple[LogEntry, ...]


@dataclass(slots=True, frozen=True)
class GoalPayload:
    goal: str


FeedPayload = TaskListPayload | LogPayload | LogBatchPayload | GoalPayload


def _parse_log(raw: Any, now: float, *, keep_timestamp: bool = False) -> LogEntry | None:
    if not isinstance(raw, dict):
        return None
    message = raw.get("message")
    if not isinstance(message, str):
        return None

    ts = now
    ts_raw = _finite_number(raw.get("timestamp"))
    if keep_timestamp and ts_raw is not None:
        # Wire timestamps are JS milliseconds.
        ts = ts_raw / 1000.0

    return LogEntry(timestamp=ts, message=message, severity=LogSeverity.from_wire(raw.get("type")))


def _finite_number(raw: Any) -> float | None:
    # json.loads accepts NaN and Infinity.
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        return None
    try:
        value = float(raw)
    except OverflowError:
        return None
    return value if math.isfinite(value) else None


def _parse_progress(raw: Any) -> int:
    if isinstance(raw, int) and not isinstance(raw, bool):
        return clamp_progress(raw)
    value = _finite_number(raw)
    if value is None:
        return 0
    return clamp_progress(int(value))


def parse_task(raw: Any, now: float | None = None) -> Task | None:
    """Parse one wire task. Requires string id and title; everything else has defaults."""
    if not isinstance(raw, dict):
        return None

    task_id = raw.get("id")
    title = raw.get("title")
    if not isinstance(task_id, str) or not task_id or not isinstance(title, str):
        return None

    status_raw = raw.get("status")
    status = TaskStatus.PENDING if status_raw is None else TaskStatus.from_wire(status_raw)
    if status is None:
        return None

    ts = time.time() if now is None else now

    logs_raw = raw.get("logs")
    logs: tuple[LogEntry, ...] = ()
    if isinstance(logs_raw, list):
        logs = tuple(
            e for e in (_parse_log(x, ts, keep_timestamp=True) for x in logs_raw) if e is not None
        )

    files_raw = raw.get("fileChanges")
    files: tuple[str, ...] = ()
    if isinstance(files_raw, list):
        files = tuple(f for f in files_raw if isinstance(f, str))

    description = raw.get("description")

    return Task(
        id=task_id,
        title=title,
        description=description if isinstance(description, str) else "",
        priority=TaskPriority.from_wire(raw.get("priority")),
        status=status,
        progress=_parse_progress(raw.get("progress")),
        logs=logs,
        file_changes=files,
    )


def parse_feed_message(
    raw: str | bytes | None,
    *,
    clock: Callable[[], float] = time.time,
) -> list[FeedPayload]:
    """
    Decode one feed message into tagged payloads, in application order
    (tasks, log, logs, projectGoal). Returns [] for anything unusable.
    """
    if raw is None:
        return []
    try:
        data = json.loads(raw)
    except (ValueError, TypeError, RecursionError):
        logger.debug("Feed: dropping non-JSON or too deeply nested message")
        return []

    if not isinstance(data, dict):
        logger.debug("Feed: dropping non-object message (%s)", type(data).__name__)
        return []

    now = clock()
    out: list[FeedPayload] = []

    tasks_raw = data.get("tasks")
    if isinstance(tasks_raw, list):
        parsed = [parse_task(t, now) for t in tasks_raw]
        if all(t is not None for t in parsed):
            out.append(TaskListPayload(tasks=tuple(t for t in parsed if t is not None)))
        else:
            logger.debug("Feed: dropping task list with malformed entries")

    log_entry = _parse_log(data.get("log"), now)
    if log_entry is not None:
        out.append(LogPayload(entry=log_entry))

    logs_raw = data.get("logs")
    if isinstance(logs_raw, list):
        entries = tuple(e for e in (_parse_log(x, now) for x in logs_raw) if e is not None)
        if entries:
            out.append(LogBatchPayload(entries=entries))

    goal = data.get("projectGoal")
    if isinstance(goal, str) and goal:
        out.append(GoalPayload(goal=goal))

    return out
