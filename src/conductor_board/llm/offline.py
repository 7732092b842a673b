# src/conductor_board/llm/offline.py

from __future__ import annotations

import itertools

from ..tasks.task_models import LogLine, LogSeverity, Task

OFFLINE_LINES = (
    "Simulated local execution...",
    "Compiling sources...",
    "Resolving dependencies...",
    "Running unit tests...",
    "Optimizing assets...",
    "Writing build artifacts...",
)


class OfflineLogTextProvider:
    """
    Offline deterministic log-text provider used when no external API is configured.

    Cycles through a fixed set of lines; never fails.
    """

    def __init__(self, lines: tuple[str, ...] = OFFLINE_LINES) -> None:
        self._lines = itertools.cycle(lines or OFFLINE_LINES)

    async def task_log_line(self, task: Task) -> LogLine:
        return LogLine(next(self._lines), LogSeverity.INFO)
