# src/conductor_board/planning/demo.py

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from dataclasses import dataclass

from ..tasks.task_models import LogEntry, LogSeverity, Task, TaskPriority, TaskStatus

DEMO_GOAL = "DEMO: Refactor Legacy API (Simulation)"


@dataclass(slots=True, frozen=True)
class DemoState:
    tasks: tuple[Task, ...]
    goal: str


class FixedDemoDataset:
    """
    Offline demo board: an ongoing session with two tasks done, one running
    and two in the backlog. Needs no API key or live agent.
    """

    def __init__(self, *, latency_seconds: float = 0.8, clock: Callable[[], float] = time.time) -> None:
        self._latency = max(0.0, float(latency_seconds))
        self._clock = clock

    async def load(self) -> DemoState:
        if self._latency:
            await asyncio.sleep(self._latency)
        return build_demo_state(self._clock())


def build_demo_state(now: float) -> DemoState:
    tasks = (
        Task(
            id="demo-1",
            title="Initialize Repository & Config",
            description="Setup git, tsconfig, and linting rules",
            priority=TaskPriority.HIGH,
            status=TaskStatus.COMPLETED,
            progress=100,
            logs=(LogEntry(now - 120.0, "Initialized git repository", LogSeverity.SUCCESS),),
            file_changes=("tsconfig.json", ".gitignore"),
        ),
        Task(
            id="demo-2",
            title="Core Service Architecture",
            description="Implement base service classes and DI container",
            priority=TaskPriority.HIGH,
            status=TaskStatus.COMPLETED,
            progress=100,
            logs=(LogEntry(now - 60.0, "Service container registered", LogSeverity.SUCCESS),),
            file_changes=("src/services/base.ts",),
        ),
        Task(
            id="demo-3",
            title="Implement API Routes",
            description="Create RESTful endpoints for the main resource",
            priority=TaskPriority.HIGH,
            status=TaskStatus.IN_PROGRESS,
            progress=42,
            logs=(LogEntry(now, "Compiling route handlers...", LogSeverity.INFO),),
            file_changes=("src/routes/api.ts",),
        ),
        Task(
            id="demo-4",
            title="Frontend Integration",
            description="Connect React frontend to the new API",
            priority=TaskPriority.MEDIUM,
        ),
        Task(
            id="demo-5",
            title="E2E Testing",
            description="Run full suite of Cypress tests",
            priority=TaskPriority.MEDIUM,
        ),
    )
    return DemoState(tasks=tasks, goal=DEMO_GOAL)
