# src/conductor_board/core/state.py

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class SessionMode(StrEnum):
    IDLE = "idle"
    PLANNING = "planning"
    SIMULATING = "simulating"
    LIVE = "live"


@dataclass(slots=True)
class SessionState:
    """
    Which driver (if any) currently owns the board.

    `generation` is bumped on every mode change. Asynchronous work captures it
    when it starts and compares it before applying its result, so results
    that belong to a previous mode are dropped on arrival.

    Goal text and the active task id live in the TaskStore snapshot.
    """

    mode: SessionMode = SessionMode.IDLE
    generation: int = 0
    feed_address: str | None = None

    @property
    def running(self) -> bool:
        return self.mode in (SessionMode.SIMULATING, SessionMode.LIVE)

    def is_current(self, generation: int, mode: SessionMode) -> bool:
        return self.generation == generation and self.mode == mode
