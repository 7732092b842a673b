# src/conductor_board/feed/adapter.py

from __future__ import annotations

"""
Live feed adapter.

Owns at most one external connection and turns everything that happens on it
into TaskStore updates. The transport reports through a single FeedEvent
channel; handle_event() is the only place that reacts to it.

Lifecycle rules:
- open() closes any existing connection first (one connection at a time),
- an error before the connection opened is a failed attempt: logged, mode stays idle,
- an error after it opened is not terminal; the following close event is,
- close() is an explicit teardown and always leaves the session idle,
- there is no automatic reconnection; callers re-invoke open().
"""

import asyncio
import logging
from collections.abc import Callable
from enum import StrEnum

from ..core.ports import FeedConnection, FeedConnector
from ..tasks.task_models import LogSeverity, TaskStatus
from ..tasks.task_store import TaskStore
from .events import FeedEvent, FeedEventKind
from .protocol import (
    GoalPayload,
    LogBatchPayload,
    LogPayload,
    TaskListPayload,
    parse_feed_message,
)

logger = logging.getLogger(__name__)

CONNECT_HINT = "Make sure the Conductor is running and exposing a WebSocket server."


class ConnectOutcome(StrEnum):
    CONNECTED = "connected"
    FAILED = "failed"


class FeedAdapter:
    def __init__(
        self,
        store: TaskStore,
        connector: FeedConnector,
        *,
        on_live: Callable[[], None],
        on_idle: Callable[[], None],
        open_timeout_seconds: float = 10.0,
    ) -> None:
        self._store = store
        self._connector = connector
        self._on_live = on_live
        self._on_idle = on_idle
        self._open_timeout = max(0.1, float(open_timeout_seconds))

        self._conn: FeedConnection | None = None
        self._conn_id = 0
        self._address: str | None = None
        self._live = False
        self._pending: asyncio.Future[ConnectOutcome] | None = None

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    @property
    def is_live(self) -> bool:
        return self._live

    @property
    def address(self) -> str | None:
        return self._address

    async def open(self, address: str) -> ConnectOutcome:
        if self._conn is not None:
            await self.close()

        self._conn_id += 1
        conn_id = self._conn_id
        self._address = address
        self._live = False
        pending: asyncio.Future[ConnectOutcome] = asyncio.get_running_loop().create_future()
        self._pending = pending

        self._store.log(f"Initiating handshake with conductor at {address}...", LogSeverity.INFO)

        def emit(event: FeedEvent) -> None:
            self.handle_event(conn_id, event)

        try:
            self._conn = self._connector.connect(address, emit)
        except Exception as e:
            logger.warning("Feed connector rejected %s: %s", address, e)
            self.handle_event(conn_id, FeedEvent.error(str(e)))

        try:
            outcome = await asyncio.wait_for(asyncio.shield(pending), timeout=self._open_timeout)
        except TimeoutError:
            logger.warning("Feed open timed out after %.1fs address=%s", self._open_timeout, address)
            self.handle_event(conn_id, FeedEvent.error("open timed out"))
            outcome = ConnectOutcome.FAILED

        if outcome == ConnectOutcome.FAILED and conn_id == self._conn_id:
            await self._discard_connection()
        return outcome

    async def close(self) -> None:
        conn = self._conn
        self._conn = None
        self._live = False
        # Anything the old connection still reports is ignored from here on.
        self._conn_id += 1
        self._resolve(ConnectOutcome.FAILED)

        if conn is not None:
            try:
                await conn.close()
            except Exception:
                logger.exception("Feed connection close failed")

        self._store.log("Disconnected from Conductor.", LogSeverity.INFO)
        self._on_idle()

    async def _discard_connection(self) -> None:
        """Drop a connection whose open failed, without the explicit-teardown log."""
        conn = self._conn
        self._conn = None
        self._conn_id += 1
        if conn is not None:
            try:
                await conn.close()
            except Exception:
                logger.debug("Closing failed feed connection raised", exc_info=True)

    def _resolve(self, outcome: ConnectOutcome) -> bool:
        pending = self._pending
        if pending is None or pending.done():
            return False
        pending.set_result(outcome)
        return True

    # ---- event channel ----

    def handle_event(self, conn_id: int, event: FeedEvent) -> None:
        if conn_id != self._conn_id:
            logger.debug("Ignoring %s from superseded feed connection", event.kind)
            return

        kind = event.kind
        if kind == FeedEventKind.OPENED:
            self._handle_opened()
        elif kind == FeedEventKind.MESSAGE:
            self._handle_message(event.data)
        elif kind == FeedEventKind.ERROR:
            self._handle_error(event.reason)
        elif kind == FeedEventKind.CLOSED:
            self._handle_closed(event.code)
        else:
            logger.debug("Unknown feed event kind: %r", kind)

    def _handle_opened(self) -> None:
        if self._live:
            return
        self._live = True
        self._on_live()
        self._store.log(f"Successfully connected to live session at {self._address}", LogSeverity.SUCCESS)
        self._resolve(ConnectOutcome.CONNECTED)

    def _handle_message(self, data: str | bytes | None) -> None:
        if not self._live:
            logger.debug("Feed message before open; dropping")
            return

        payloads = parse_feed_message(data)
        if not payloads:
            return

        store = self._store
        with store.batch():
            for p in payloads:
                if isinstance(p, TaskListPayload):
                    store.replace_all(p.tasks)
                    active = next((t for t in p.tasks if t.status == TaskStatus.IN_PROGRESS), None)
                    store.set_active_task(active.id if active else None)
                elif isinstance(p, LogPayload):
                    store.append_global_log(p.entry)
                elif isinstance(p, LogBatchPayload):
                    for entry in p.entries:
                        store.append_global_log(entry)
                elif isinstance(p, GoalPayload):
                    store.set_goal(p.goal)

    def _handle_error(self, reason: str) -> None:
        if self._live:
            logger.warning("Feed error on live connection (waiting for close): %s", reason or "unknown")
            return
        self._report_connect_failure(reason)

    def _handle_closed(self, code: int | None) -> None:
        if self._live:
            self._live = False
            self._conn = None
            self._conn_id += 1
            self._store.log(f"Connection closed by server (Code: {code}).", LogSeverity.WARNING)
            self._on_idle()
            return
        self._report_connect_failure(f"closed with code {code}")

    def _report_connect_failure(self, reason: str) -> None:
        if not self._resolve(ConnectOutcome.FAILED):
            return
        logger.info("Feed connect failed address=%s reason=%s", self._address, reason or "unknown")
        self._store.log(f"Connection failed to {self._address}.", LogSeverity.ERROR)
        self._store.log(CONNECT_HINT, LogSeverity.WARNING)
