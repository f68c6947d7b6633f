# src/omniflow/tasks/task_store.py

from __future__ import annotations

import logging
import threading
from datetime import datetime

from ..core.ports import CollectionStore
from .task_models import Task, TaskStatus

logger = logging.getLogger(__name__)

TASKS_COLLECTION = "tasks"


class TaskStore:
    """
    Durable task log on top of a CollectionStore.

    Semantics:
    - put() upserts by id: an existing record is replaced in place (keeps its
      position), otherwise the task is appended
    - list() returns insertion order unless newest_first is requested
    - storage failures propagate as StorageError

    Thread-safety:
    - every read-modify-write cycle runs under one re-entrant lock, so two
      writers through the same store never lose each other's appends
    """

    def __init__(self, backend: CollectionStore, *, collection: str = TASKS_COLLECTION) -> None:
        self._backend = backend
        self._collection = collection
        self._lock = threading.RLock()

    # ---- low-level helpers ----

    def _load(self) -> list[Task]:
        out: list[Task] = []
        for rec in self._backend.read_all(self._collection):
            try:
                out.append(Task.from_record(rec))
            except (KeyError, ValueError):
                logger.warning("Skipping malformed task record id=%r", rec.get("id"))
        return out

    def _save(self, tasks: list[Task]) -> None:
        self._backend.write_all(self._collection, [t.to_record() for t in tasks])

    # ---- public API ----

    def put(self, task: Task) -> None:
        with self._lock:
            tasks = self._load()
            for i, existing in enumerate(tasks):
                if existing.id == task.id:
                    tasks[i] = task
                    break
            else:
                tasks.append(task)
            self._save(tasks)
        logger.debug("Task saved id=%s status=%s", task.id, task.status.value)

    def get(self, task_id: str) -> Task | None:
        for t in self._load():
            if t.id == task_id:
                return t
        return None

    def list(
        self,
        status: TaskStatus | None = None,
        *,
        newest_first: bool = False,
        limit: int | None = None,
    ) -> list[Task]:
        tasks = self._load()
        if status is not None:
            tasks = [t for t in tasks if t.status == status]
        if newest_first:
            tasks.sort(key=lambda t: t.timestamp, reverse=True)
        if limit is not None:
            tasks = tasks[: max(0, int(limit))]
        return tasks

    def list_between(self, start: datetime, end: datetime) -> list[Task]:
        """Tasks with start <= timestamp < end, insertion order."""
        return [t for t in self._load() if start <= t.timestamp < end]

    def count(self) -> int:
        return len(self._backend.read_all(self._collection))

    def delete(self, task_id: str) -> bool:
        with self._lock:
            tasks = self._load()
            kept = [t for t in tasks if t.id != task_id]
            if len(kept) == len(tasks):
                return False
            self._save(kept)
        logger.info("Task deleted id=%s", task_id)
        return True

    def delete_older_than(self, cutoff: datetime) -> int:
        """Remove tasks whose timestamp is before cutoff. Returns how many were removed."""
        with self._lock:
            tasks = self._load()
            kept = [t for t in tasks if t.timestamp >= cutoff]
            removed = len(tasks) - len(kept)
            if removed:
                self._save(kept)
        if removed:
            logger.info("Deleted %d tasks older than %s", removed, cutoff.isoformat())
        return removed
