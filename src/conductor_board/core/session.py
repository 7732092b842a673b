# src/conductor_board/core/session.py

"""
Session orchestration.

The controller owns the SessionState and is the only place that changes the
session mode. It decides which driver owns the board:
- simulating: the ProgressionEngine ticks tasks forward,
- live: the FeedAdapter applies snapshots from an external agent.

Key invariants:
- the engine and the feed are never both active; switching drivers always
  quiesces the current one first,
- every mode change bumps the session generation, so asynchronous results
  started under an old mode are discarded on arrival.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from ..feed.adapter import ConnectOutcome, FeedAdapter
from ..llm.client import friendly_llm_error_message
from ..planning.plan import build_tasks
from ..tasks.progression import ProgressionEngine
from ..tasks.task_models import LogSeverity, Task, TaskStatus
from ..tasks.task_store import TaskStore
from .ports import DemoDataset, FeedConnector, LogTextProvider, PlanGenerator
from .state import SessionMode, SessionState

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class PlanResult:
    ok: bool
    tasks: tuple[Task, ...] = ()
    error: str | None = None


@dataclass(slots=True, frozen=True)
class EngineOptions:
    interval_seconds: float = 2.0
    seed_progress: int = 5
    step_range: tuple[int, int] = (5, 19)


@dataclass(slots=True)
class SessionController:
    store: TaskStore
    plan_generator: PlanGenerator
    log_provider: LogTextProvider
    demo_dataset: DemoDataset
    connector: FeedConnector
    engine_options: EngineOptions = field(default_factory=EngineOptions)
    feed_open_timeout_seconds: float = 10.0

    state: SessionState = field(default_factory=SessionState)
    engine: ProgressionEngine = field(init=False)
    feed: FeedAdapter = field(init=False)

    def __post_init__(self) -> None:
        opts = self.engine_options
        self.engine = ProgressionEngine(
            self.store,
            self.log_provider,
            self.state,
            interval_seconds=opts.interval_seconds,
            seed_progress=opts.seed_progress,
            step_range=opts.step_range,
            on_finished=self._on_engine_finished,
        )
        self.feed = FeedAdapter(
            self.store,
            self.connector,
            on_live=self._on_feed_live,
            on_idle=self._on_feed_idle,
            open_timeout_seconds=self.feed_open_timeout_seconds,
        )

    @property
    def mode(self) -> SessionMode:
        return self.state.mode

    # ---- public operations ----

    async def start_plan(self, goal: str) -> PlanResult:
        goal = (goal or "").strip()
        if not goal:
            return PlanResult(ok=False, error="Goal is empty.")

        await self._quiesce()
        self._set_mode(SessionMode.PLANNING)
        self.store.log(f'Connecting to planning agent... analyzing goal: "{goal}"', LogSeverity.INFO)
        generation = self.state.generation

        try:
            skeletons = await self.plan_generator.generate_plan(goal)
            tasks = build_tasks(skeletons)
        except Exception as e:
            msg = friendly_llm_error_message(e)
            logger.error("Plan generation failed: %s", msg)
            if self.state.is_current(generation, SessionMode.PLANNING):
                self.store.log("Failed to generate plan. Please check API Key.", LogSeverity.ERROR)
                self._set_mode(SessionMode.IDLE)
            return PlanResult(ok=False, error=msg)

        if not self.state.is_current(generation, SessionMode.PLANNING):
            logger.info("Plan arrived after the session moved on; discarding")
            return PlanResult(ok=False, error="Session changed while planning.")

        if not tasks:
            self.store.log("Failed to generate plan. Please check API Key.", LogSeverity.ERROR)
            self._set_mode(SessionMode.IDLE)
            return PlanResult(ok=False, error="Planner returned no tasks.")

        self.store.replace_all(tasks, goal)
        self.store.log(f"Plan generated with {len(tasks)} tasks. Ready to execute.", LogSeverity.SUCCESS)
        self._set_mode(SessionMode.IDLE)
        return PlanResult(ok=True, tasks=tuple(tasks))

    async def start_connect(self, address: str) -> ConnectOutcome:
        address = (address or "").strip()
        if not address:
            return ConnectOutcome.FAILED

        if self.state.mode == SessionMode.SIMULATING:
            self._halt_engine()
            self._set_mode(SessionMode.IDLE)

        self.state.feed_address = address
        return await self.feed.open(address)

    async def load_demo(self) -> None:
        await self._quiesce()
        self.store.log("Loading Demo Simulation...", LogSeverity.INFO)
        generation = self.state.generation

        demo = await self.demo_dataset.load()
        if self.state.generation != generation:
            logger.info("Demo load superseded by another session change")
            return

        with self.store.batch():
            self.store.replace_all(demo.tasks, demo.goal)
            active = next((t for t in demo.tasks if t.status == TaskStatus.IN_PROGRESS), None)
            self.store.set_active_task(active.id if active else None)

        self._set_mode(SessionMode.SIMULATING)
        self.store.log("Demo loaded. This is a simulation, not real data.", LogSeverity.WARNING)
        self.engine.start()

    def start_simulation(self) -> bool:
        """Drive the current task list with the simulation engine. Returns False if nothing to drive."""
        if self.state.mode in (SessionMode.SIMULATING, SessionMode.LIVE, SessionMode.PLANNING):
            return False
        if not any(t.status in (TaskStatus.PENDING, TaskStatus.IN_PROGRESS) for t in self.store.tasks):
            return False

        active = self.store.first_with_status(TaskStatus.IN_PROGRESS)
        self.store.set_active_task(active.id if active else None)
        self._set_mode(SessionMode.SIMULATING)
        self.engine.start()
        return True

    async def stop(self) -> None:
        mode = self.state.mode
        if mode == SessionMode.LIVE or self.feed.is_open:
            await self.feed.close()
        if mode == SessionMode.SIMULATING:
            self._halt_engine()
        self._set_mode(SessionMode.IDLE)

    async def shutdown(self) -> None:
        await self.stop()
        await self.engine.drain()

    # ---- driver callbacks ----

    def _on_engine_finished(self) -> None:
        if self.state.mode == SessionMode.SIMULATING:
            self._set_mode(SessionMode.IDLE)

    def _on_feed_live(self) -> None:
        if self.state.mode == SessionMode.SIMULATING:
            self._halt_engine()
        self._set_mode(SessionMode.LIVE)

    def _on_feed_idle(self) -> None:
        if self.state.mode == SessionMode.SIMULATING:
            self._halt_engine()
        self._set_mode(SessionMode.IDLE)

    # ---- helpers ----

    async def _quiesce(self) -> None:
        if self.state.mode == SessionMode.LIVE or self.feed.is_open:
            await self.feed.close()
        elif self.state.mode == SessionMode.SIMULATING:
            self._halt_engine()
            self._set_mode(SessionMode.IDLE)

    def _halt_engine(self) -> None:
        self.engine.stop()
        self.store.set_active_task(None)

    def _set_mode(self, mode: SessionMode) -> None:
        if self.state.mode == mode:
            return
        logger.info("Session mode %s -> %s", self.state.mode, mode)
        self.state.mode = mode
        self.state.generation += 1
