# src/conductor_board/cli/commands.py

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from datetime import datetime

from ..config import get_settings
from ..core.session import SessionController
from ..feed.adapter import ConnectOutcome
from ..tasks.task_models import LogEntry, Task, TaskStatus
from ..tasks.task_store import StoreSnapshot

CommandHandler = Callable[[SessionController, list[str]], Awaitable[str]]

logger = logging.getLogger(__name__)

BOARD_COLUMNS: tuple[tuple[TaskStatus, str], ...] = (
    (TaskStatus.PENDING, "Backlog"),
    (TaskStatus.IN_PROGRESS, "In Progress"),
    (TaskStatus.REVIEW, "Review / QA"),
    (TaskStatus.COMPLETED, "Done"),
)


class CommandRegistry:
    """Simple slash-command registry used by the console connector (/help, /plan, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    async def handle(self, controller: SessionController, line: str) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        return await handler(controller, args)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


def _ts_local(ts: float) -> str:
    return datetime.fromtimestamp(ts).astimezone().strftime("%H:%M:%S")


def format_log_entry(entry: LogEntry) -> str:
    return f"[{_ts_local(entry.timestamp)}] {entry.severity.value.upper():<7} {entry.message}"


def _progress_bar(progress: int, width: int = 10) -> str:
    filled = round(width * progress / 100)
    return "#" * filled + "." * (width - filled)


def _format_card(task: Task, active_task_id: str | None) -> str:
    marker = "*" if task.id == active_task_id else " "
    line = f" {marker} [{task.priority.value[0].upper()}] {task.title}"
    if task.status != TaskStatus.PENDING:
        line += f"  {_progress_bar(task.progress)} {task.progress:3d}%"
    return line


def render_board(snap: StoreSnapshot) -> str:
    counts = snap.counts()
    lines = [
        f"Goal: {snap.goal or '-'}",
        (
            f"Pending: {counts[TaskStatus.PENDING]}  "
            f"Active: {counts[TaskStatus.IN_PROGRESS]}  "
            f"Done: {counts[TaskStatus.COMPLETED]}"
        ),
    ]
    for status, title in BOARD_COLUMNS:
        col = [t for t in snap.tasks if t.status == status]
        lines.append(f"== {title} ({len(col)})")
        lines.extend(_format_card(t, snap.active_task_id) for t in col)
    return "\n".join(lines)


async def cmd_help(controller: SessionController, args: list[str]) -> str:
    return registry.build_help()


async def cmd_plan(controller: SessionController, args: list[str]) -> str:
    """/plan <goal text>"""
    goal = " ".join(args).strip()
    if not goal:
        return "Usage: /plan <project goal>"
    result = await controller.start_plan(goal)
    if not result.ok:
        return f"Planning failed: {result.error}"
    return render_board(controller.store.snapshot()) + "\nUse /run to simulate execution."


async def cmd_connect(controller: SessionController, args: list[str]) -> str:
    """/connect [ws://host:port]"""
    address = args[0] if args else get_settings().feed_url
    outcome = await controller.start_connect(address)
    if outcome == ConnectOutcome.CONNECTED:
        return f"Live: {address}"
    return f"Could not connect to {address}."


async def cmd_demo(controller: SessionController, args: list[str]) -> str:
    await controller.load_demo()
    return render_board(controller.store.snapshot())


async def cmd_run(controller: SessionController, args: list[str]) -> str:
    if controller.start_simulation():
        return "Simulation started."
    return f"Nothing to simulate (mode={controller.mode})."


async def cmd_stop(controller: SessionController, args: list[str]) -> str:
    await controller.stop()
    return "Stopped."


async def cmd_board(controller: SessionController, args: list[str]) -> str:
    return render_board(controller.store.snapshot())


async def cmd_logs(controller: SessionController, args: list[str]) -> str:
    """/logs [n] -> last n global log entries (default 20)"""
    n = 20
    if args:
        try:
            n = max(1, int(args[0]))
        except ValueError:
            return "Usage: /logs [n]"
    entries = controller.store.logs[-n:]
    if not entries:
        return "No log entries yet."
    return "\n".join(format_log_entry(e) for e in entries)


def _feed_line(controller: SessionController) -> str:
    address = controller.state.feed_address
    if not address:
        return "-"
    return f"{address} (open)" if controller.feed.is_open else f"{address} (closed)"


async def cmd_status(controller: SessionController, args: list[str]) -> str:
    state = controller.state
    snap = controller.store.snapshot()
    active = snap.get(snap.active_task_id) if snap.active_task_id else None
    return (
        "Status:\n"
        f"  Mode: {state.mode}\n"
        f"  Running: {'yes' if state.running else 'no'}\n"
        f"  Feed: {_feed_line(controller)}\n"
        f"  Goal: {snap.goal or '-'}\n"
        f"  Active task: {active.title if active else '-'}\n"
        f"  Tasks: {len(snap.tasks)}  Log entries: {len(snap.logs)}"
    )


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("plan", cmd_plan, help_text="Generate a task plan: /plan <goal>.")
registry.register("connect", cmd_connect, help_text="Attach to a live conductor: /connect [ws://host:port].")
registry.register("demo", cmd_demo, help_text="Load the demo board and simulate it.")
registry.register("run", cmd_run, help_text="Simulate execution of the current plan.")
registry.register("stop", cmd_stop, help_text="Disconnect / stop the simulation.", aliases=["disconnect"])
registry.register("board", cmd_board, help_text="Show the task board.", aliases=["b"])
registry.register("logs", cmd_logs, help_text="Show recent log lines: /logs [n].")
registry.register("status", cmd_status, help_text="Show session mode, goal and active task.")
