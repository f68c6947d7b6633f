# tests/test_task_store.py

from __future__ import annotations

import threading
from datetime import timedelta
from pathlib import Path

from omniflow.storage.collections import JsonCollectionStore, SqliteCollectionStore
from omniflow.tasks.task_models import Task, TaskStatus
from omniflow.tasks.task_store import TaskStore

from .conftest import START


def _task(task_id: str, *, minutes: int = 0, status: TaskStatus = TaskStatus.PENDING) -> Task:
    return Task(
        id=task_id,
        query=f"query {task_id}",
        type="summarize",
        result="",
        status=status,
        timestamp=START + timedelta(minutes=minutes),
    )


def test_put_upserts_in_place(task_store: TaskStore) -> None:
    task_store.put(_task("a"))
    task_store.put(_task("b", minutes=1))
    task_store.put(_task("c", minutes=2))

    updated = _task("b", minutes=1)
    updated.complete("done")
    task_store.put(updated)

    tasks = task_store.list()
    assert [t.id for t in tasks] == ["a", "b", "c"]
    assert tasks[1].status == TaskStatus.COMPLETED
    assert tasks[1].result == "done"
    assert task_store.count() == 3


def test_get_and_delete(task_store: TaskStore) -> None:
    task_store.put(_task("a"))

    assert task_store.get("a") is not None
    assert task_store.get("missing") is None

    assert task_store.delete("a") is True
    assert task_store.delete("a") is False
    assert task_store.list() == []


def test_list_filters_and_sorts(task_store: TaskStore) -> None:
    task_store.put(_task("old", minutes=0))
    task_store.put(_task("new", minutes=10))
    done = _task("mid", minutes=5)
    done.complete("ok")
    task_store.put(done)

    assert [t.id for t in task_store.list(TaskStatus.PENDING)] == ["old", "new"]
    assert [t.id for t in task_store.list(newest_first=True)] == ["new", "mid", "old"]
    assert [t.id for t in task_store.list(newest_first=True, limit=1)] == ["new"]


def test_time_window_and_cleanup(task_store: TaskStore) -> None:
    task_store.put(_task("a", minutes=0))
    task_store.put(_task("b", minutes=30))
    task_store.put(_task("c", minutes=60))

    window = task_store.list_between(START + timedelta(minutes=15), START + timedelta(minutes=60))
    assert [t.id for t in window] == ["b"]

    removed = task_store.delete_older_than(START + timedelta(minutes=30))
    assert removed == 1
    assert [t.id for t in task_store.list()] == ["b", "c"]


def test_malformed_records_are_skipped(backend, task_store: TaskStore) -> None:
    backend.write_all("tasks", [{"id": "broken"}, _task("ok").to_record()])

    assert [t.id for t in task_store.list()] == ["ok"]


def test_records_round_trip_through_json_file(tmp_path: Path) -> None:
    store = TaskStore(JsonCollectionStore(tmp_path))
    store.put(_task("a"))

    reopened = TaskStore(JsonCollectionStore(tmp_path))
    task = reopened.get("a")
    assert task is not None
    assert task.timestamp == START
    assert task.status == TaskStatus.PENDING


def test_concurrent_puts_do_not_lose_appends(tmp_path: Path) -> None:
    store = TaskStore(SqliteCollectionStore(tmp_path / "tasks.sqlite3"))

    def _writer(prefix: str) -> None:
        for i in range(10):
            store.put(_task(f"{prefix}{i}", minutes=i))

    threads = [threading.Thread(target=_writer, args=(p,)) for p in ("x", "y", "z")]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert store.count() == 30
