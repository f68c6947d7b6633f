# tests/test_task_processor.py

from __future__ import annotations

import pytest

from omniflow.errors import NotFoundError, StorageError, ValidationError
from omniflow.tasks.task_models import TaskStatus
from omniflow.tasks.task_processor import GENERIC_TEMPLATE, TaskProcessor
from omniflow.tasks.task_store import TaskStore

from .conftest import START
from .fakes import FakeCompletionClient, failing_completion


@pytest.mark.asyncio
async def test_process_summarize_completes_task(processor, task_store, completion) -> None:
    result = await processor.process("Summarize X", "summarize")

    assert result.ok
    task = task_store.get(result.task_id)
    assert task is not None
    assert task.type == "summarize"
    assert task.result == "Y"
    assert task.status == TaskStatus.COMPLETED
    assert task.timestamp == START

    call = completion.calls[0]
    assert "summary" in call["user_prompt"]
    assert "Summarize X" in call["user_prompt"]
    assert call["max_tokens"] == 1500
    assert call["temperature"] == 0.7


@pytest.mark.asyncio
async def test_pending_then_completed_versions_are_written(processor, backend) -> None:
    result = await processor.process("Rewrite this", "rewrite")

    versions = backend.versions_of("tasks", result.task_id)
    assert [v["status"] for v in versions] == ["pending", "completed"]
    assert versions[0]["result"] == ""
    assert len(backend.read_all("tasks")) == 1


@pytest.mark.asyncio
async def test_completion_failure_marks_task_error(task_store, backend, clock) -> None:
    processor = TaskProcessor(task_store, failing_completion("LLM is rate-limited. Try again later."), clock)

    result = await processor.process("Audit my shop", "audit")

    assert not result.ok
    assert result.status == TaskStatus.ERROR
    assert result.error == "LLM is rate-limited. Try again later."

    task = task_store.get(result.task_id)
    assert task is not None
    assert task.status == TaskStatus.ERROR
    assert task.result == "LLM is rate-limited. Try again later."
    assert [v["status"] for v in backend.versions_of("tasks", result.task_id)] == ["pending", "error"]


@pytest.mark.asyncio
async def test_unexpected_collaborator_crash_is_recorded(task_store, clock) -> None:
    processor = TaskProcessor(task_store, FakeCompletionClient(error=RuntimeError("boom")), clock)

    result = await processor.process("anything", "insights")

    assert result.status == TaskStatus.ERROR
    assert task_store.get(result.task_id).status == TaskStatus.ERROR


@pytest.mark.asyncio
@pytest.mark.parametrize("query,task_type", [("", "summarize"), ("   ", "summarize"), ("hello", ""), ("hello", None)])
async def test_missing_query_or_type_is_rejected_without_writes(processor, backend, query, task_type) -> None:
    with pytest.raises(ValidationError):
        await processor.process(query, task_type)
    assert backend.writes == []


@pytest.mark.asyncio
async def test_unknown_type_uses_generic_instructions(processor, task_store, completion) -> None:
    result = await processor.process("Plan my week", "brainstorm")

    assert result.ok
    assert task_store.get(result.task_id).type == "brainstorm"
    assert completion.calls[0]["user_prompt"] == GENERIC_TEMPLATE.format(query="Plan my week")


@pytest.mark.asyncio
async def test_create_task_then_run_by_id(processor, task_store, clock) -> None:
    scheduled = clock.advance(hours=2)
    task = processor.create_task("Write a tagline", "generate-copy", scheduled_time=scheduled)

    assert task_store.get(task.id).status == TaskStatus.PENDING
    assert task_store.get(task.id).timestamp == scheduled

    result = await processor.run_task_by_id(task.id)
    assert result.ok

    with pytest.raises(ValidationError):
        await processor.run_task_by_id(task.id)
    with pytest.raises(NotFoundError):
        await processor.run_task_by_id("task_missing")


@pytest.mark.asyncio
async def test_business_audit_uses_audit_settings(processor, task_store, completion) -> None:
    result = await processor.run_business_audit({"businessName": "Acme", "employees": 12})

    assert result.ok
    assert task_store.get(result.task_id).type == "audit"
    call = completion.calls[0]
    assert call["max_tokens"] == 2000
    assert call["temperature"] == 0.3
    assert '"businessName": "Acme"' in call["user_prompt"]

    with pytest.raises(ValidationError):
        await processor.run_business_audit({})


class _BrokenBackend:
    def read_all(self, collection):
        return []

    def write_all(self, collection, records):
        raise StorageError("disk full")


@pytest.mark.asyncio
async def test_storage_failure_propagates(clock) -> None:
    processor = TaskProcessor(TaskStore(_BrokenBackend()), FakeCompletionClient(), clock)

    with pytest.raises(StorageError):
        await processor.process("Summarize X", "summarize")
