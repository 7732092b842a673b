# src/conductor_board/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The core depends on Protocols instead of concrete implementations.
This keeps the planner, the log-text source and the feed transport swappable
and makes testing easier.
"""

from collections.abc import Callable
from typing import TYPE_CHECKING, Awaitable, Protocol

if TYPE_CHECKING:
    from ..feed.events import FeedEvent
    from ..planning.demo import DemoState
    from ..tasks.task_models import LogLine, Task, TaskSkeleton


class PlanGenerator(Protocol):
    """Turns a free-text goal into an ordered list of task skeletons (4-8 items)."""

    def generate_plan(self, goal: str) -> Awaitable[list[TaskSkeleton]]: ...


class LogTextProvider(Protocol):
    """
    Produces one short "terminal" line for a running task.

    Implementations should return a fallback line instead of raising;
    the engine still guards against failures.
    """

    def task_log_line(self, task: Task) -> Awaitable[LogLine]: ...


class DemoDataset(Protocol):
    def load(self) -> Awaitable[DemoState]: ...


FeedEmitter = Callable[["FeedEvent"], None]


class FeedConnection(Protocol):
    """Handle for one open (or opening) feed connection."""

    def close(self) -> Awaitable[None]: ...


class FeedConnector(Protocol):
    """
    Transport-side port: opens a connection and reports everything that
    happens on it through a single event callback (opened/message/error/closed).
    """

    def connect(self, address: str, emit: FeedEmitter) -> FeedConnection: ...
