# src/conductor_board/tasks/task_models.py

from __future__ import annotations

import uuid
from dataclasses import dataclass, replace
from enum import StrEnum


class TaskStatus(StrEnum):
    """
    Task lifecycle status (board columns).

    Notes:
    - The live feed sends upper-case values ("IN_PROGRESS"); parsing is case-insensitive.
    - "review" is never produced by the simulation engine, only by the feed.
    """

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    REVIEW = "review"
    COMPLETED = "completed"

    @classmethod
    def from_wire(cls, raw: object) -> TaskStatus | None:
        if not isinstance(raw, str):
            return None
        try:
            return cls(raw.strip().lower())
        except ValueError:
            return None


class TaskPriority(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @classmethod
    def from_wire(cls, raw: object) -> TaskPriority:
        if not isinstance(raw, str):
            return cls.MEDIUM
        try:
            return cls(raw.strip().lower())
        except ValueError:
            return cls.MEDIUM


class LogSeverity(StrEnum):
    INFO = "info"
    SUCCESS = "success"
    ERROR = "error"
    WARNING = "warning"

    @classmethod
    def from_wire(cls, raw: object) -> LogSeverity:
        if not isinstance(raw, str):
            return cls.INFO
        try:
            return cls(raw.strip().lower())
        except ValueError:
            return cls.INFO


PROGRESS_MIN = 0
PROGRESS_MAX = 100


def clamp_progress(value: int) -> int:
    return max(PROGRESS_MIN, min(PROGRESS_MAX, int(value)))


def new_task_id() -> str:
    return uuid.uuid4().hex


@dataclass(slots=True, frozen=True)
class LogEntry:
    timestamp: float
    message: str
    severity: LogSeverity = LogSeverity.INFO


@dataclass(slots=True, frozen=True)
class LogLine:
    """One line returned by a log-text provider (no timestamp yet)."""

    message: str
    severity: LogSeverity = LogSeverity.INFO


@dataclass(slots=True, frozen=True)
class TaskSkeleton:
    """Planner output before the core assigns an id and initial state."""

    title: str
    description: str
    priority: TaskPriority = TaskPriority.MEDIUM


@dataclass(slots=True, frozen=True)
class Task:
    id: str
    title: str
    description: str
    priority: TaskPriority
    status: TaskStatus = TaskStatus.PENDING
    progress: int = 0

    logs: tuple[LogEntry, ...] = ()
    file_changes: tuple[str, ...] = ()

    def with_log(self, entry: LogEntry) -> Task:
        return replace(self, logs=(*self.logs, entry))
