# src/conductor_board/connectors/websocket_feed.py

from __future__ import annotations

"""
WebSocket transport for the live feed.

Each connection runs one reader task that reports through the FeedEvent channel:
- opened once the handshake completes,
- message for every text/binary frame,
- error (then closed 1006) when the handshake fails,
- closed with the received close code when the connection ends.

An explicit close() from our side reports nothing further; the adapter has
already moved on by then.
"""

import asyncio
import contextlib
import logging

import websockets
from websockets.exceptions import ConnectionClosed, InvalidHandshake, InvalidURI

from ..core.ports import FeedEmitter
from ..feed.events import ABNORMAL_CLOSURE, FeedEvent

logger = logging.getLogger(__name__)


class WebSocketFeedConnection:
    def __init__(self, address: str, emit: FeedEmitter, *, open_timeout: float, max_size: int) -> None:
        self._address = address
        self._emit = emit
        self._open_timeout = open_timeout
        self._max_size = max_size
        self._ws = None
        self._closing = False
        self._task = asyncio.create_task(self._run(), name=f"feed-{address}")

    def _report(self, event: FeedEvent) -> None:
        if self._closing:
            return
        try:
            self._emit(event)
        except Exception:
            logger.exception("Feed event handler failed (%s)", event.kind)

    async def _run(self) -> None:
        code: int | None = ABNORMAL_CLOSURE
        reason = ""
        try:
            async with websockets.connect(
                self._address,
                open_timeout=self._open_timeout,
                max_size=self._max_size,
            ) as ws:
                self._ws = ws
                logger.info("Feed connected: %s", self._address)
                self._report(FeedEvent.opened())

                async for message in ws:
                    self._report(FeedEvent.message(message))

                code = ws.close_code if ws.close_code is not None else ABNORMAL_CLOSURE
                reason = ws.close_reason or ""

        except ConnectionClosed as e:
            rcvd = e.rcvd
            code = rcvd.code if rcvd is not None else ABNORMAL_CLOSURE
            reason = rcvd.reason if rcvd is not None else ""
            if self._ws is None:
                self._report(FeedEvent.error(f"connection closed during handshake ({code})"))

        except (OSError, TimeoutError, InvalidURI, InvalidHandshake) as e:
            logger.info("Feed connect to %s failed: %s", self._address, e)
            self._report(FeedEvent.error(str(e) or e.__class__.__name__))

        except asyncio.CancelledError:
            raise

        except Exception as e:
            logger.exception("Feed reader crashed: %s", self._address)
            self._report(FeedEvent.error(str(e) or e.__class__.__name__))

        finally:
            self._ws = None

        logger.info("Feed closed: %s code=%s", self._address, code)
        self._report(FeedEvent.closed(code, reason))

    async def close(self) -> None:
        self._closing = True
        ws = self._ws
        if ws is not None:
            with contextlib.suppress(Exception):
                await ws.close()

        if not self._task.done():
            self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError, Exception):
            await self._task


class WebSocketFeedConnector:
    def __init__(self, *, open_timeout: float = 10.0, max_size: int = 8 * 1024 * 1024) -> None:
        self._open_timeout = open_timeout
        self._max_size = max_size

    def connect(self, address: str, emit: FeedEmitter) -> WebSocketFeedConnection:
        return WebSocketFeedConnection(
            address,
            emit,
            open_timeout=self._open_timeout,
            max_size=self._max_size,
        )
