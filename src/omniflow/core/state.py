# src/omniflow/core/state.py

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ..leads.nurturing import LeadNurturingEngine
from ..scheduling.scheduler import Scheduler
from ..tasks.task_processor import TaskProcessor
from ..tasks.task_store import TaskStore
from ..workflows.engine import WorkflowEngine
from ..workflows.workflow_store import WorkflowStore
from .ports import Clock, CollectionStore, CompletionClient, EmailSender


@dataclass
class AppState:
    # Settings object (Settings in production, SimpleNamespace in tests).
    settings: Any

    clock: Clock
    backend: CollectionStore
    completion: CompletionClient
    email_sender: EmailSender

    task_store: TaskStore
    processor: TaskProcessor
    workflow_store: WorkflowStore
    workflow_engine: WorkflowEngine
    nurturing: LeadNurturingEngine
    scheduler: Scheduler
