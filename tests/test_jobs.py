# tests/test_jobs.py

from __future__ import annotations

import asyncio
from datetime import timedelta

import pytest

from omniflow.scheduling.jobs import (
    DAILY_SUMMARY_JOB,
    EMAIL_DISPATCH_JOB,
    LOG_CLEANUP_JOB,
    PENDING_TASKS_JOB,
    cleanup_old_tasks,
    generate_daily_summary,
    install_default_jobs,
    schedule_active_workflows,
    schedule_workflow,
    sweep_pending_tasks,
    workflow_job_name,
)
from omniflow.errors import ValidationError
from omniflow.tasks.task_models import Task, TaskStatus, TaskType
from omniflow.tasks.task_processor import TaskProcessor

from .conftest import START
from .fakes import FakeCompletionClient


def _stored(task_store, task_id: str, *, at, status=TaskStatus.PENDING, task_type="summarize") -> Task:
    task = Task(id=task_id, query=f"q {task_id}", type=task_type, result="", status=status, timestamp=at)
    task_store.put(task)
    return task


@pytest.mark.asyncio
async def test_sweep_runs_only_due_pending_tasks(task_store, processor, clock) -> None:
    _stored(task_store, "due", at=START - timedelta(minutes=1))
    _stored(task_store, "now", at=START)
    _stored(task_store, "later", at=START + timedelta(hours=1))
    _stored(task_store, "done", at=START - timedelta(hours=1), status=TaskStatus.COMPLETED)

    ran = await sweep_pending_tasks(task_store, processor, clock)

    assert ran == 2
    assert task_store.get("due").status == TaskStatus.COMPLETED
    assert task_store.get("now").status == TaskStatus.COMPLETED
    assert task_store.get("later").status == TaskStatus.PENDING
    assert await sweep_pending_tasks(task_store, processor, clock) == 0


@pytest.mark.asyncio
async def test_sweep_leaves_in_flight_tasks_alone(task_store, clock) -> None:
    completion = FakeCompletionClient("Y", gate=asyncio.Event())
    processor = TaskProcessor(task_store, completion, clock)

    processing = asyncio.create_task(processor.process("Quarterly numbers", "summarize"))
    await asyncio.sleep(0)

    [task] = task_store.list(TaskStatus.PENDING)
    assert processor.is_running(task.id)
    assert await sweep_pending_tasks(task_store, processor, clock) == 0
    with pytest.raises(ValidationError):
        await processor.run_task(task)

    completion.gate.set()
    result = await processing

    assert result.status == TaskStatus.COMPLETED
    assert len(completion.calls) == 1
    assert not processor.is_running(task.id)


def test_daily_summary_counts_todays_tasks(task_store, clock) -> None:
    _stored(task_store, "y", at=START - timedelta(days=1), status=TaskStatus.COMPLETED)
    _stored(task_store, "a", at=START, status=TaskStatus.COMPLETED)
    _stored(task_store, "b", at=START + timedelta(hours=1), status=TaskStatus.ERROR, task_type="audit")
    _stored(task_store, "c", at=START + timedelta(hours=2), task_type="audit")

    clock.set(START.replace(hour=18))
    summary = generate_daily_summary(task_store, clock)

    stored = task_store.get(summary.id)
    assert stored.status == TaskStatus.COMPLETED
    assert stored.type == TaskType.INSIGHTS
    assert stored.query == "Daily Summary Generation"
    assert stored.result.startswith("Daily Summary - Mon Jun 02 2025")
    assert "Tasks: 3 (completed 1, failed 1)" in stored.result
    assert "Task Types: summarize, audit" in stored.result


def test_cleanup_removes_tasks_past_retention(task_store, clock) -> None:
    _stored(task_store, "ancient", at=START - timedelta(days=31))
    _stored(task_store, "recent", at=START - timedelta(days=29))

    assert cleanup_old_tasks(task_store, clock, retention_days=30) == 1
    assert [t.id for t in task_store.list()] == ["recent"]
    assert cleanup_old_tasks(task_store, clock, retention_days=30) == 0


@pytest.mark.asyncio
async def test_install_default_jobs(state) -> None:
    names = install_default_jobs(state.scheduler, state)

    assert names == [PENDING_TASKS_JOB, DAILY_SUMMARY_JOB, LOG_CLEANUP_JOB, EMAIL_DISPATCH_JOB]
    assert state.scheduler.list_active() == names
    assert state.scheduler.get(DAILY_SUMMARY_JOB).cron_expression == "0 18 * * *"

    assert await state.scheduler.run_now(DAILY_SUMMARY_JOB)
    assert [t.query for t in state.task_store.list()] == ["Daily Summary Generation"]


@pytest.mark.asyncio
async def test_pending_job_fires_from_the_scheduler(state, clock) -> None:
    install_default_jobs(state.scheduler, state)
    task = state.processor.create_task("Summarize X", "summarize")

    clock.advance(minutes=5)
    started = await state.scheduler.tick()
    await state.scheduler.wait_idle()

    assert PENDING_TASKS_JOB in started
    assert state.task_store.get(task.id).status == TaskStatus.COMPLETED


@pytest.mark.asyncio
async def test_scheduled_workflow_runs_stored_version(state, clock) -> None:
    store = state.workflow_store
    nightly = store.create_workflow(
        "Nightly insights",
        "schedule",
        [{"type": "ai-process", "config": {"taskType": "insights"}}],
        schedule="0 22 * * *",
    )
    store.create_workflow("Manual", "manual", [])
    paused = store.create_workflow("Paused", "schedule", [], schedule="0 1 * * *")
    store.set_active(paused.id, False)

    names = schedule_active_workflows(state.scheduler, state.workflow_engine, store)
    assert names == [workflow_job_name(nightly.id)]

    clock.set(START.replace(hour=22))
    await state.scheduler.tick()
    await state.scheduler.wait_idle()
    assert store.get(nightly.id).run_count == 1

    # deactivated after scheduling: the timer fires but the run is skipped
    store.set_active(nightly.id, False)
    clock.set(START.replace(day=3, hour=22))
    await state.scheduler.tick()
    await state.scheduler.wait_idle()
    assert store.get(nightly.id).run_count == 1

    assert schedule_workflow(state.scheduler, state.workflow_engine, store, store.get(nightly.id)) is None
    assert state.scheduler.list_active() == []
