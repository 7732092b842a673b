# tests/test_websocket_feed.py

from __future__ import annotations

import asyncio
import json

import pytest
import websockets

from conductor_board.connectors.websocket_feed import WebSocketFeedConnector
from conductor_board.feed.events import ABNORMAL_CLOSURE, FeedEvent, FeedEventKind


class EventSink:
    def __init__(self) -> None:
        self.events: list[FeedEvent] = []
        self.closed = asyncio.Event()

    def __call__(self, event: FeedEvent) -> None:
        self.events.append(event)
        if event.kind == FeedEventKind.CLOSED:
            self.closed.set()

    @property
    def kinds(self) -> list[FeedEventKind]:
        return [e.kind for e in self.events]


@pytest.mark.asyncio
async def test_messages_then_server_close_code() -> None:
    payload = json.dumps({"projectGoal": "from server"})

    async def handler(ws) -> None:
        await ws.send(payload)
        await ws.close(code=4000, reason="bye")

    async with websockets.serve(handler, "127.0.0.1", 0) as server:
        port = server.sockets[0].getsockname()[1]
        sink = EventSink()
        conn = WebSocketFeedConnector(open_timeout=5.0).connect(f"ws://127.0.0.1:{port}", sink)

        await asyncio.wait_for(sink.closed.wait(), timeout=5.0)
        await conn.close()

    assert sink.kinds == [FeedEventKind.OPENED, FeedEventKind.MESSAGE, FeedEventKind.CLOSED]
    assert sink.events[1].data == payload
    assert sink.events[2].code == 4000


@pytest.mark.asyncio
async def test_refused_connection_reports_error_then_abnormal_close() -> None:
    sink = EventSink()
    conn = WebSocketFeedConnector(open_timeout=2.0).connect("ws://127.0.0.1:1", sink)

    await asyncio.wait_for(sink.closed.wait(), timeout=5.0)
    await conn.close()

    assert sink.kinds == [FeedEventKind.ERROR, FeedEventKind.CLOSED]
    assert sink.events[-1].code == ABNORMAL_CLOSURE


@pytest.mark.asyncio
async def test_explicit_close_reports_nothing_further() -> None:
    release = asyncio.Event()

    async def handler(ws) -> None:
        await release.wait()

    async with websockets.serve(handler, "127.0.0.1", 0) as server:
        port = server.sockets[0].getsockname()[1]
        sink = EventSink()
        conn = WebSocketFeedConnector().connect(f"ws://127.0.0.1:{port}", sink)

        for _ in range(100):
            if sink.events:
                break
            await asyncio.sleep(0.02)

        await conn.close()
        release.set()

    assert sink.kinds == [FeedEventKind.OPENED]
