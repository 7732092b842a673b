# src/conductor_board/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds the SessionController, then runs the console
connector on the asyncio loop until /exit, EOF or Ctrl+C.
"""

from __future__ import annotations

import asyncio
import logging

from ..cli.bootstrap import create_controller
from ..config import get_settings
from ..connectors.console_connector import run_console_loop
from ..core.session import SessionController
from ..logging_setup import setup_logging

logger = logging.getLogger(__name__)


async def _shutdown(controller: SessionController) -> None:
    """Best-effort shutdown (no exceptions should escape)."""
    try:
        await controller.shutdown()
    except Exception:
        logger.exception("Controller shutdown failed.")


async def _run() -> None:
    settings = get_settings()
    controller = create_controller(settings=settings)
    try:
        await run_console_loop(controller)
    finally:
        await _shutdown(controller)


def main() -> None:
    settings = get_settings()

    # choose console log level from settings.log_level
    level_name = str(settings.log_level).upper()
    console_level = getattr(logging, level_name, logging.INFO)

    setup_logging(log_dir=settings.data_dir, console_level=console_level)

    logger.info("Starting %s...", settings.app_name)
    try:
        asyncio.run(_run())
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down...")
    logger.info("Bye.")


if __name__ == "__main__":
    main()
