# tests/conftest.py

from __future__ import annotations

import pytest

from conductor_board.core.session import EngineOptions, SessionController
from conductor_board.core.state import SessionMode, SessionState
from conductor_board.tasks.task_store import TaskStore

from .fakes import FakeDemoDataset, FakeFeedConnector, FakeLogTextProvider, FakePlanGenerator


@pytest.fixture()
def store() -> TaskStore:
    return TaskStore()


@pytest.fixture()
def simulating_session() -> SessionState:
    return SessionState(mode=SessionMode.SIMULATING, generation=1)


@pytest.fixture()
def log_provider() -> FakeLogTextProvider:
    return FakeLogTextProvider()


@pytest.fixture()
def connector() -> FakeFeedConnector:
    return FakeFeedConnector()


@pytest.fixture()
def controller(store: TaskStore, log_provider: FakeLogTextProvider, connector: FakeFeedConnector) -> SessionController:
    """
    SessionController wired with deterministic fakes.

    The tick interval is long so tests drive the engine through tick() directly.
    """
    return SessionController(
        store=store,
        plan_generator=FakePlanGenerator(),
        log_provider=log_provider,
        demo_dataset=FakeDemoDataset(),
        connector=connector,
        engine_options=EngineOptions(interval_seconds=3600.0),
        feed_open_timeout_seconds=1.0,
    )
