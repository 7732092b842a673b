# tests/test_feed_adapter.py

from __future__ import annotations

import json

import pytest

from conductor_board.feed.adapter import CONNECT_HINT, ConnectOutcome, FeedAdapter
from conductor_board.feed.events import FeedEvent
from conductor_board.tasks.task_models import LogSeverity
from conductor_board.tasks.task_store import TaskStore

from .fakes import FakeFeedConnector


class ModeRecorder:
    def __init__(self) -> None:
        self.calls: list[str] = []

    def live(self) -> None:
        self.calls.append("live")

    def idle(self) -> None:
        self.calls.append("idle")


def _adapter(store: TaskStore, connector: FakeFeedConnector, modes: ModeRecorder, **kw) -> FeedAdapter:
    return FeedAdapter(store, connector, on_live=modes.live, on_idle=modes.idle, **kw)


def _messages(store: TaskStore, severity: LogSeverity | None = None) -> list[str]:
    return [e.message for e in store.logs if severity is None or e.severity == severity]


@pytest.mark.asyncio
async def test_open_success_goes_live_and_logs(store: TaskStore) -> None:
    connector = FakeFeedConnector()
    modes = ModeRecorder()
    adapter = _adapter(store, connector, modes)

    outcome = await adapter.open("ws://agent:8080")

    assert outcome == ConnectOutcome.CONNECTED
    assert adapter.is_live
    assert modes.calls == ["live"]
    assert "Successfully connected to live session at ws://agent:8080" in _messages(store, LogSeverity.SUCCESS)


@pytest.mark.asyncio
async def test_initial_connect_failure_logs_error_and_hint_once(store: TaskStore) -> None:
    connector = FakeFeedConnector(auto_fail=True)
    modes = ModeRecorder()
    adapter = _adapter(store, connector, modes)

    outcome = await adapter.open("ws://nowhere:1")

    assert outcome == ConnectOutcome.FAILED
    assert modes.calls == []
    assert not adapter.is_open
    assert _messages(store, LogSeverity.ERROR) == ["Connection failed to ws://nowhere:1."]
    assert _messages(store, LogSeverity.WARNING) == [CONNECT_HINT]
    # No automatic retry.
    assert len(connector.connections) == 1


@pytest.mark.asyncio
async def test_open_timeout_counts_as_failure(store: TaskStore) -> None:
    connector = FakeFeedConnector(auto_open=False)
    modes = ModeRecorder()
    adapter = _adapter(store, connector, modes, open_timeout_seconds=0.1)

    outcome = await adapter.open("ws://slow:1")

    assert outcome == ConnectOutcome.FAILED
    assert connector.last.closed
    assert "Connection failed to ws://slow:1." in _messages(store, LogSeverity.ERROR)


@pytest.mark.asyncio
async def test_messages_update_store(store: TaskStore) -> None:
    connector = FakeFeedConnector()
    adapter = _adapter(store, connector, ModeRecorder())
    await adapter.open("ws://agent")
    emit = connector.last.emit

    emit(
        FeedEvent.message(
            json.dumps(
                {
                    "tasks": [
                        {"id": "a", "title": "A", "status": "COMPLETED", "progress": 100},
                        {"id": "b", "title": "B", "status": "IN_PROGRESS", "progress": 30},
                        {"id": "c", "title": "C", "status": "IN_PROGRESS", "progress": 10},
                    ],
                    "projectGoal": "Live goal",
                }
            )
        )
    )
    emit(FeedEvent.message(json.dumps({"logs": [{"message": "one"}, {"message": "two", "type": "error"}]})))
    emit(FeedEvent.message(json.dumps({"log": {"message": "three"}})))

    assert [t.id for t in store.tasks] == ["a", "b", "c"]
    # Multiple in_progress tasks from the feed are tolerated; the first is active.
    assert store.active_task_id == "b"
    assert store.goal == "Live goal"
    assert _messages(store)[-3:] == ["one", "two", "three"]
    assert store.logs[-2].severity == LogSeverity.ERROR


@pytest.mark.asyncio
async def test_malformed_message_is_dropped_and_connection_stays_open(store: TaskStore) -> None:
    connector = FakeFeedConnector()
    adapter = _adapter(store, connector, ModeRecorder())
    await adapter.open("ws://agent")
    before = store.version

    connector.last.emit(FeedEvent.message("{oops"))
    connector.last.emit(FeedEvent.message(json.dumps({"tasks": [{"no": "id"}]})))

    assert store.version == before
    assert adapter.is_live
    assert not connector.last.closed


@pytest.mark.asyncio
async def test_server_close_after_tasks_goes_idle_with_one_warning(store: TaskStore) -> None:
    connector = FakeFeedConnector()
    modes = ModeRecorder()
    adapter = _adapter(store, connector, modes)
    await adapter.open("ws://agent")
    emit = connector.last.emit

    emit(
        FeedEvent.message(
            json.dumps(
                {
                    "tasks": [
                        {"id": "a", "title": "A", "status": "IN_PROGRESS", "progress": 50},
                        {"id": "b", "title": "B", "status": "PENDING"},
                    ]
                }
            )
        )
    )
    emit(FeedEvent.closed(1006))

    warnings = [m for m in _messages(store, LogSeverity.WARNING) if "1006" in m]
    assert warnings == ["Connection closed by server (Code: 1006)."]
    assert modes.calls == ["live", "idle"]
    assert not adapter.is_live
    assert not adapter.is_open
    # Tasks stay on the board after the feed drops.
    assert len(store.tasks) == 2


@pytest.mark.asyncio
async def test_error_after_open_is_not_terminal(store: TaskStore) -> None:
    connector = FakeFeedConnector()
    modes = ModeRecorder()
    adapter = _adapter(store, connector, modes)
    await adapter.open("ws://agent")

    connector.last.emit(FeedEvent.error("glitch"))

    assert adapter.is_live
    assert modes.calls == ["live"]
    assert _messages(store, LogSeverity.ERROR) == []

    connector.last.emit(FeedEvent.closed(1011))
    assert modes.calls == ["live", "idle"]
    assert any("1011" in m for m in _messages(store, LogSeverity.WARNING))


@pytest.mark.asyncio
async def test_open_twice_closes_first_connection_before_second(store: TaskStore) -> None:
    connector = FakeFeedConnector()
    adapter = _adapter(store, connector, ModeRecorder())

    await adapter.open("ws://one")
    await adapter.open("ws://two")

    assert connector.log == ["connect ws://one", "close ws://one", "connect ws://two"]
    assert [c.address for c in connector.open_connections] == ["ws://two"]
    assert adapter.address == "ws://two"


@pytest.mark.asyncio
async def test_events_from_superseded_connection_are_ignored(store: TaskStore) -> None:
    connector = FakeFeedConnector()
    modes = ModeRecorder()
    adapter = _adapter(store, connector, modes)

    await adapter.open("ws://one")
    first = connector.last
    await adapter.open("ws://two")
    calls_before = list(modes.calls)

    first.emit(FeedEvent.message(json.dumps({"projectGoal": "stale"})))
    first.emit(FeedEvent.closed(1000))

    assert store.goal != "stale"
    assert modes.calls == calls_before
    assert adapter.is_live


@pytest.mark.asyncio
async def test_explicit_close_logs_and_goes_idle_without_close_warning(store: TaskStore) -> None:
    connector = FakeFeedConnector()
    modes = ModeRecorder()
    adapter = _adapter(store, connector, modes)
    await adapter.open("ws://agent")
    conn = connector.last

    await adapter.close()
    conn.emit(FeedEvent.closed(1000))

    assert conn.closed
    assert modes.calls == ["live", "idle"]
    assert "Disconnected from Conductor." in _messages(store, LogSeverity.INFO)
    assert not any("Connection closed by server" in m for m in _messages(store))


@pytest.mark.asyncio
async def test_close_without_connection_still_goes_idle(store: TaskStore) -> None:
    modes = ModeRecorder()
    adapter = _adapter(store, FakeFeedConnector(), modes)

    await adapter.close()

    assert modes.calls == ["idle"]


@pytest.mark.asyncio
async def test_connector_raising_is_a_failed_attempt(store: TaskStore) -> None:
    class BrokenConnector:
        def connect(self, address, emit):
            raise ValueError("bad uri")

    modes = ModeRecorder()
    adapter = FeedAdapter(store, BrokenConnector(), on_live=modes.live, on_idle=modes.idle)

    assert await adapter.open("nonsense") == ConnectOutcome.FAILED
    assert modes.calls == []
    assert "Connection failed to nonsense." in _messages(store, LogSeverity.ERROR)

    # The adapter stays usable after a failure.
    adapter._connector = FakeFeedConnector()
    assert await adapter.open("ws://ok") == ConnectOutcome.CONNECTED


@pytest.mark.asyncio
async def test_non_finite_progress_is_handled_without_raising(store: TaskStore) -> None:
    connector = FakeFeedConnector()
    adapter = _adapter(store, connector, ModeRecorder())
    await adapter.open("ws://agent")

    connector.last.emit(
        FeedEvent.message('{"tasks": [{"id": "a", "title": "A", "status": "IN_PROGRESS", "progress": Infinity}]}')
    )
    connector.last.emit(FeedEvent.message("[" * 100_000))

    assert [(t.id, t.progress) for t in store.tasks] == [("a", 0)]
    assert adapter.is_live
