# src/omniflow/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires concrete implementations into AppState (storage/LLM/email/engines/scheduler).
"""

from __future__ import annotations

import logging

from ..config import get_settings
from ..core.clock import SystemClock
from ..core.ports import Clock, CollectionStore, CompletionClient, EmailSender
from ..core.state import AppState
from ..errors import ServiceError
from ..leads.email import create_email_sender
from ..leads.lead_store import LeadStore, ScheduledEmailStore
from ..leads.nurturing import LeadNurturingEngine
from ..llm.client import OpenAICompletionClient
from ..llm.offline import OfflineCompletionClient
from ..scheduling.scheduler import Scheduler
from ..storage.collections import open_collection_store
from ..tasks.task_processor import TaskProcessor
from ..tasks.task_store import TaskStore
from ..workflows.engine import WorkflowEngine
from ..workflows.step_handlers import StepHandlers
from ..workflows.workflow_store import WorkflowStore

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    sqlite_path = getattr(settings, "sqlite_path", None)
    if sqlite_path is not None:
        sqlite_path.parent.mkdir(parents=True, exist_ok=True)


def _build_completion_client(settings) -> CompletionClient:
    try:
        return OpenAICompletionClient(settings)
    except ServiceError as e:
        # Fallback for demos / local runs without external services.
        logger.warning("%s Using offline completion client.", e)
        return OfflineCompletionClient()


def create_initial_state(
    *,
    settings=None,
    backend: CollectionStore | None = None,
    completion: CompletionClient | None = None,
    email_sender: EmailSender | None = None,
    clock: Clock | None = None,
) -> AppState:
    """
    Create AppState from the provided settings.

    Every collaborator can be injected (tests pass fakes); anything omitted is
    built from settings. If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    if backend is None:
        _ensure_local_dirs(settings)
        backend = open_collection_store(settings)

    clock = clock or SystemClock(getattr(settings, "timezone", None))
    completion = completion or _build_completion_client(settings)
    email_sender = email_sender or create_email_sender(settings, backend, clock)

    task_store = TaskStore(backend)
    processor = TaskProcessor(
        task_store,
        completion,
        clock,
        max_tokens=int(getattr(settings, "llm_max_tokens", 1500)),
        temperature=float(getattr(settings, "llm_temperature", 0.7)),
    )

    workflow_store = WorkflowStore(backend)
    handlers = StepHandlers(
        completion,
        email_sender,
        webhook_timeout_seconds=float(getattr(settings, "webhook_timeout_seconds", 20.0)),
    )
    workflow_engine = WorkflowEngine(workflow_store, handlers, clock)

    nurturing = LeadNurturingEngine(
        LeadStore(backend),
        ScheduledEmailStore(backend),
        email_sender,
        clock,
    )

    scheduler = Scheduler(
        clock,
        max_sleep_seconds=float(getattr(settings, "scheduler_max_sleep_seconds", 30.0)),
    )

    return AppState(
        settings=settings,
        clock=clock,
        backend=backend,
        completion=completion,
        email_sender=email_sender,
        task_store=task_store,
        processor=processor,
        workflow_store=workflow_store,
        workflow_engine=workflow_engine,
        nurturing=nurturing,
        scheduler=scheduler,
    )
