# src/conductor_board/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires concrete implementations (LLM planner, log text, demo data,
  WebSocket transport) into a SessionController.
"""

from __future__ import annotations

import logging

from ..config import Settings, get_settings
from ..connectors.websocket_feed import WebSocketFeedConnector
from ..core.ports import LogTextProvider
from ..core.session import EngineOptions, SessionController
from ..llm.client import OpenRouterConductorClient
from ..llm.offline import OfflineLogTextProvider
from ..planning.demo import FixedDemoDataset
from ..tasks.task_store import TaskStore

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings: Settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)


def create_controller(*, settings: Settings | None = None) -> SessionController:
    """
    Build a SessionController from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    llm = OpenRouterConductorClient(settings)

    log_provider: LogTextProvider
    if llm.configured:
        log_provider = llm
    else:
        # Demos / local runs without external services.
        logger.info("No LLM API key configured; using offline log text.")
        log_provider = OfflineLogTextProvider()

    return SessionController(
        store=TaskStore(log_capacity=settings.log_capacity),
        plan_generator=llm,
        log_provider=log_provider,
        demo_dataset=FixedDemoDataset(latency_seconds=settings.demo_latency_seconds),
        connector=WebSocketFeedConnector(open_timeout=settings.feed_open_timeout_seconds),
        engine_options=EngineOptions(
            interval_seconds=settings.tick_interval_seconds,
            seed_progress=settings.progress_seed,
            step_range=(settings.progress_step_min, settings.progress_step_max),
        ),
        feed_open_timeout_seconds=settings.feed_open_timeout_seconds,
    )
