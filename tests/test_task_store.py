# tests/test_task_store.py

from __future__ import annotations

from dataclasses import replace

from conductor_board.tasks.task_models import LogEntry, LogSeverity, TaskStatus
from conductor_board.tasks.task_store import TaskStore

from .fakes import make_task


def test_global_log_is_bounded_fifo() -> None:
    store = TaskStore()
    for i in range(101):
        store.append_global_log(LogEntry(timestamp=float(i), message=f"m{i}"))

    logs = store.logs
    assert len(logs) == 100
    messages = [e.message for e in logs]
    assert "m0" not in messages
    assert messages[0] == "m1"
    assert messages[-1] == "m100"
    assert store.log_seq == 101


def test_replace_all_clears_active_pointer_and_keeps_goal_when_omitted(store: TaskStore) -> None:
    store.replace_all([make_task("a"), make_task("b")], "first goal")
    store.set_active_task("a")

    store.replace_all([make_task("c")])

    assert [t.id for t in store.tasks] == ["c"]
    assert store.goal == "first goal"
    assert store.active_task_id is None


def test_mutate_unknown_id_is_noop(store: TaskStore) -> None:
    store.replace_all([make_task("a")])
    version = store.version

    assert store.mutate("missing", lambda t: replace(t, progress=50)) is None
    assert store.version == version
    assert store.tasks[0].progress == 0


def test_mutate_clamps_progress(store: TaskStore) -> None:
    store.replace_all([make_task("a"), make_task("b")])

    store.mutate("a", lambda t: replace(t, progress=250))
    store.mutate("b", lambda t: replace(t, progress=-7))

    assert store.get("a").progress == 100
    assert store.get("b").progress == 0


def test_snapshot_is_not_affected_by_later_writes(store: TaskStore) -> None:
    store.replace_all([make_task("a")], "goal")
    snap = store.snapshot()

    store.mutate("a", lambda t: replace(t, status=TaskStatus.COMPLETED, progress=100))
    store.log("later")

    assert snap.tasks[0].status == TaskStatus.PENDING
    assert snap.logs == ()
    assert store.snapshot().tasks[0].status == TaskStatus.COMPLETED


def test_batch_notifies_listeners_once_with_final_state(store: TaskStore) -> None:
    store.replace_all([make_task("a")])
    seen = []
    store.subscribe(seen.append)

    with store.batch():
        store.mutate("a", lambda t: replace(t, status=TaskStatus.COMPLETED, progress=100))
        store.set_active_task(None)
        store.log("done", LogSeverity.SUCCESS)

    assert len(seen) == 1
    assert seen[0].tasks[0].status == TaskStatus.COMPLETED
    assert seen[0].logs[-1].message == "done"


def test_failing_listener_does_not_break_store(store: TaskStore) -> None:
    def boom(_snap) -> None:
        raise RuntimeError("render failed")

    seen = []
    store.subscribe(boom)
    unsubscribe = store.subscribe(seen.append)

    store.set_goal("g")
    assert store.goal == "g"
    assert len(seen) == 1

    unsubscribe()
    store.set_goal("h")
    assert len(seen) == 1


def test_counts_by_status(store: TaskStore) -> None:
    store.replace_all(
        [
            make_task("a", status=TaskStatus.COMPLETED, progress=100),
            make_task("b", status=TaskStatus.IN_PROGRESS, progress=10),
            make_task("c"),
            make_task("d"),
        ]
    )
    counts = store.counts()
    assert counts[TaskStatus.PENDING] == 2
    assert counts[TaskStatus.IN_PROGRESS] == 1
    assert counts[TaskStatus.COMPLETED] == 1
    assert counts[TaskStatus.REVIEW] == 0
    assert store.snapshot().counts() == counts
