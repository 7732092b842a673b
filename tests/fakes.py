# tests/fakes.py

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field

from conductor_board.core.ports import FeedEmitter
from conductor_board.feed.events import FeedEvent
from conductor_board.planning.demo import DemoState, build_demo_state
from conductor_board.tasks.task_models import (
    LogLine,
    LogSeverity,
    Task,
    TaskPriority,
    TaskSkeleton,
    TaskStatus,
)


def make_task(
    task_id: str,
    *,
    status: TaskStatus = TaskStatus.PENDING,
    progress: int = 0,
    title: str | None = None,
) -> Task:
    return Task(
        id=task_id,
        title=title or f"Task {task_id}",
        description=f"description {task_id}",
        priority=TaskPriority.MEDIUM,
        status=status,
        progress=progress,
    )


class FakeLogTextProvider:
    """
    Deterministic log-text provider for unit tests.

    - Captures calls for assertions
    - When `gate` is set, every call waits for it (simulates a slow provider)
    - When `fail` is True, every call raises
    """

    def __init__(self, text: str = "working", *, gate: asyncio.Event | None = None, fail: bool = False) -> None:
        self.text = text
        self.gate = gate
        self.fail = fail
        self.calls: list[Task] = []

    async def task_log_line(self, task: Task) -> LogLine:
        self.calls.append(task)
        if self.gate is not None:
            await self.gate.wait()
        if self.fail:
            raise RuntimeError("provider down")
        return LogLine(self.text, LogSeverity.INFO)


class FakePlanGenerator:
    def __init__(self, skeletons: list[TaskSkeleton] | None = None, *, error: Exception | None = None) -> None:
        self.skeletons = skeletons or []
        self.error = error
        self.goals: list[str] = []

    async def generate_plan(self, goal: str) -> list[TaskSkeleton]:
        self.goals.append(goal)
        if self.error is not None:
            raise self.error
        return list(self.skeletons)


class FakeDemoDataset:
    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now
        self.loads = 0

    async def load(self) -> DemoState:
        self.loads += 1
        return build_demo_state(self.now)


@dataclass(slots=True)
class FakeFeedConnection:
    """One fake connection: tests push events through `emit`."""

    address: str
    emit: FeedEmitter
    log: list[str]
    closed: bool = False

    async def close(self) -> None:
        self.closed = True
        self.log.append(f"close {self.address}")


@dataclass(slots=True)
class FakeFeedConnector:
    """
    Fake FeedConnector.

    auto_open=True emits `opened` synchronously on connect,
    auto_fail=True emits `error` then `closed(1006)` instead.
    Otherwise the test drives events through the returned connection.
    """

    auto_open: bool = True
    auto_fail: bool = False
    connections: list[FakeFeedConnection] = field(default_factory=list)
    log: list[str] = field(default_factory=list)

    def connect(self, address: str, emit: FeedEmitter) -> FakeFeedConnection:
        conn = FakeFeedConnection(address=address, emit=emit, log=self.log)
        self.connections.append(conn)
        self.log.append(f"connect {address}")
        if self.auto_fail:
            emit(FeedEvent.error("refused"))
            emit(FeedEvent.closed(1006))
        elif self.auto_open:
            emit(FeedEvent.opened())
        return conn

    @property
    def last(self) -> FakeFeedConnection:
        return self.connections[-1]

    @property
    def open_connections(self) -> list[FakeFeedConnection]:
        return [c for c in self.connections if not c.closed]
