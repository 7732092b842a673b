# src/conductor_board/connectors/console_connector.py

from __future__ import annotations

import asyncio
import logging
from datetime import datetime

from ..cli.commands import format_log_entry
from ..cli.commands import registry as command_registry
from ..core.session import SessionController
from ..tasks.task_store import StoreSnapshot

logger = logging.getLogger(__name__)


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}")


class LogEcho:
    """Store listener that prints global log entries as they are appended."""

    def __init__(self, start_seq: int = 0) -> None:
        self._seen = start_seq

    def __call__(self, snap: StoreSnapshot) -> None:
        new = snap.log_seq - self._seen
        if new <= 0:
            return
        self._seen = snap.log_seq
        for entry in snap.logs[-min(new, len(snap.logs)) :]:
            print(format_log_entry(entry), flush=True)


async def run_console_loop(controller: SessionController) -> None:
    logger.info("Console connector started.")
    _print_ts("[CONSOLE] Use /demo, /plan <goal> or /connect [url]. Use /help for commands, /exit to quit.\n")

    unsubscribe = controller.store.subscribe(LogEcho(controller.store.log_seq))
    try:
        while True:
            try:
                line = (await asyncio.to_thread(input, ">>> ")).strip()
            except EOFError:
                logger.info("Console EOF received, exiting.")
                break
            except KeyboardInterrupt:
                logger.info("Console KeyboardInterrupt, exiting.")
                print()
                break

            if not line:
                continue

            if line.lower() in ("/exit", "/quit"):
                logger.info("Console exit command received.")
                break

            try:
                reply = await command_registry.handle(controller, line)
            except Exception:
                logger.exception("Command handler crashed.")
                reply = "Internal error while handling a command."

            if reply is None:
                reply = "Commands start with '/'. Use /help to list available commands."
            print(reply, flush=True)
    finally:
        unsubscribe()

    logger.info("Console connector finished.")
