# src/omniflow/tasks/task_models.py

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from typing import Any

from ..core.clock import format_timestamp, parse_timestamp


class TaskType(StrEnum):
    SUMMARIZE = "summarize"
    REWRITE = "rewrite"
    AUDIT = "audit"
    GENERATE_COPY = "generate-copy"
    INSIGHTS = "insights"

    @classmethod
    def is_known(cls, raw: str | None) -> bool:
        return raw in {t.value for t in cls}


class TaskStatus(StrEnum):
    """
    Task lifecycle status.

    pending -> completed | error. Terminal states never change again.
    """

    PENDING = "pending"
    COMPLETED = "completed"
    ERROR = "error"

    @classmethod
    def from_db(cls, raw: str | None) -> TaskStatus:
        if not raw:
            return cls.PENDING
        try:
            return cls(raw)
        except ValueError:
            return cls.PENDING


def new_task_id() -> str:
    return f"task_{uuid.uuid4().hex[:16]}"


@dataclass(slots=True)
class Task:
    id: str
    query: str
    # Kept as a plain string: unknown types are stored and served by the generic prompt.
    type: str
    result: str
    status: TaskStatus
    timestamp: datetime

    def complete(self, result: str) -> None:
        if self.status != TaskStatus.PENDING:
            raise ValueError(f"Task {self.id} is {self.status}, cannot complete")
        self.result = result
        self.status = TaskStatus.COMPLETED

    def fail(self, message: str) -> None:
        if self.status != TaskStatus.PENDING:
            raise ValueError(f"Task {self.id} is {self.status}, cannot fail")
        self.result = message
        self.status = TaskStatus.ERROR

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "query": self.query,
            "type": self.type,
            "result": self.result,
            "status": self.status.value,
            "timestamp": format_timestamp(self.timestamp),
        }

    @classmethod
    def from_record(cls, rec: dict[str, Any]) -> Task:
        ts = parse_timestamp(rec.get("timestamp"))
        if ts is None:
            raise ValueError(f"Task record {rec.get('id')!r} has no valid timestamp")
        return cls(
            id=str(rec["id"]),
            query=str(rec.get("query") or ""),
            type=str(rec.get("type") or ""),
            result=str(rec.get("result") or ""),
            status=TaskStatus.from_db(rec.get("status")),
            timestamp=ts,
        )


@dataclass(slots=True, frozen=True)
class TaskResult:
    """What a caller of TaskProcessor gets back. Failures are in-band (status=error)."""

    task_id: str
    type: str
    status: TaskStatus
    result: str
    timestamp: datetime
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == TaskStatus.COMPLETED

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "taskId": self.task_id,
            "type": self.type,
            "status": self.status.value,
            "result": self.result,
            "timestamp": format_timestamp(self.timestamp),
        }
        if self.error is not None:
            out["error"] = self.error
        return out
