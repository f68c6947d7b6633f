# src/omniflow/scheduling/jobs.py

"""
Default automation jobs.

The scheduler itself knows nothing about tasks, workflows or leads. This module
wires the application's periodic work into it:
- pending-task-checker: run pending tasks whose time has come
- daily-summary: store a completed insights task describing today's tasks
- log-cleanup: delete tasks older than the retention window
- nurturing-email-dispatch: send scheduled nurturing emails that are due
- workflow:<id>: one job per active schedule-triggered workflow
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from ..core.ports import Clock
from ..errors import ValidationError
from ..tasks.task_models import Task, TaskStatus, TaskType, new_task_id
from ..tasks.task_processor import TaskProcessor
from ..tasks.task_store import TaskStore
from ..workflows.engine import WorkflowEngine
from ..workflows.workflow_models import Workflow, WorkflowTrigger
from ..workflows.workflow_store import WorkflowStore
from .scheduler import Scheduler

if TYPE_CHECKING:
    from ..core.state import AppState

logger = logging.getLogger(__name__)

PENDING_TASKS_JOB = "pending-task-checker"
DAILY_SUMMARY_JOB = "daily-summary"
LOG_CLEANUP_JOB = "log-cleanup"
EMAIL_DISPATCH_JOB = "nurturing-email-dispatch"
WORKFLOW_JOB_PREFIX = "workflow:"


def workflow_job_name(workflow_id: str) -> str:
    return f"{WORKFLOW_JOB_PREFIX}{workflow_id}"


def _start_of_day(dt: datetime) -> datetime:
    return dt.replace(hour=0, minute=0, second=0, microsecond=0)


# ---- job bodies ----


async def sweep_pending_tasks(store: TaskStore, processor: TaskProcessor, clock: Clock) -> int:
    """Run every pending task whose timestamp is not in the future. Returns how many ran."""
    now = clock.now()
    # Tasks that process() is still awaiting are pending too; leave them alone.
    due = [
        t for t in store.list(TaskStatus.PENDING) if t.timestamp <= now and not processor.is_running(t.id)
    ]
    if not due:
        return 0

    logger.info("Processing %d pending tasks", len(due))
    ran = 0
    for task in due:
        # Re-read: a manual run may have finished it since the listing.
        current = store.get(task.id)
        if current is None or current.status != TaskStatus.PENDING:
            continue
        try:
            result = await processor.run_task(current)
        except ValidationError:
            continue
        ran += 1
        logger.info("Pending task %s (%s) -> %s", result.task_id, result.type, result.status.value)
    return ran


def generate_daily_summary(store: TaskStore, clock: Clock) -> Task:
    """Store a completed insights task summarizing the tasks created today (per clock)."""
    now = clock.now()
    start = _start_of_day(now)
    todays = store.list_between(start, start + timedelta(days=1))

    types: list[str] = []
    for t in todays:
        if t.type not in types:
            types.append(t.type)
    completed = sum(1 for t in todays if t.status == TaskStatus.COMPLETED)
    failed = sum(1 for t in todays if t.status == TaskStatus.ERROR)

    summary = Task(
        id=new_task_id(),
        query="Daily Summary Generation",
        type=TaskType.INSIGHTS,
        result=(
            f"Daily Summary - {start.strftime('%a %b %d %Y')}\n\n"
            f"Tasks: {len(todays)} (completed {completed}, failed {failed})\n"
            f"Task Types: {', '.join(types) or 'none'}"
        ),
        status=TaskStatus.COMPLETED,
        timestamp=now,
    )
    store.put(summary)
    logger.info("Generated daily summary: %d tasks processed", len(todays))
    return summary


def cleanup_old_tasks(store: TaskStore, clock: Clock, retention_days: int = 30) -> int:
    cutoff = clock.now() - timedelta(days=max(0, int(retention_days)))
    removed = store.delete_older_than(cutoff)
    logger.info("Cleaned up %d old task entries", removed)
    return removed


# ---- registration ----


def install_default_jobs(scheduler: Scheduler, state: AppState) -> list[str]:
    """Register the built-in jobs using the cron expressions from settings."""
    settings = state.settings
    clock = state.clock
    store = state.task_store

    async def _pending() -> None:
        await sweep_pending_tasks(store, state.processor, clock)

    def _summary() -> None:
        generate_daily_summary(store, clock)

    def _cleanup() -> None:
        cleanup_old_tasks(store, clock, getattr(settings, "task_retention_days", 30))

    async def _emails() -> None:
        await state.nurturing.dispatch_due_emails(clock.now())

    jobs = [
        (PENDING_TASKS_JOB, getattr(settings, "cron_pending_tasks", "*/5 * * * *"), _pending),
        (DAILY_SUMMARY_JOB, getattr(settings, "cron_daily_summary", "0 18 * * *"), _summary),
        (LOG_CLEANUP_JOB, getattr(settings, "cron_log_cleanup", "0 2 * * 0"), _cleanup),
        (EMAIL_DISPATCH_JOB, getattr(settings, "cron_email_dispatch", "*/5 * * * *"), _emails),
    ]
    for name, expr, callback in jobs:
        scheduler.schedule(name, expr, callback)

    logger.info("Automation workflows initialized")
    return [name for name, _, _ in jobs]


def schedule_workflow(
    scheduler: Scheduler,
    engine: WorkflowEngine,
    store: WorkflowStore,
    workflow: Workflow,
) -> str | None:
    """
    Register (or replace) the timer for a schedule-triggered workflow.

    Inactive or non-scheduled workflows get their job removed instead; returns
    the job name when a job was registered.
    """
    name = workflow_job_name(workflow.id)
    if workflow.trigger != WorkflowTrigger.SCHEDULE or not workflow.is_active or not workflow.schedule:
        scheduler.unschedule(name)
        return None

    workflow_id = workflow.id

    async def _run() -> None:
        # Always run the stored version; it may have been edited or deactivated.
        current = store.get(workflow_id)
        if current is None or not current.is_active:
            logger.info("Scheduled workflow %s is gone or inactive; skipping", workflow_id)
            return
        await engine.execute(current)

    scheduler.schedule(name, workflow.schedule, _run)
    return name


def schedule_active_workflows(scheduler: Scheduler, engine: WorkflowEngine, store: WorkflowStore) -> list[str]:
    names: list[str] = []
    for workflow in store.list(active_only=True):
        name = schedule_workflow(scheduler, engine, store, workflow)
        if name:
            names.append(name)
    return names
