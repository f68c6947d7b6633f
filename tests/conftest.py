# tests/conftest.py

from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path
from types import SimpleNamespace

import pytest

from omniflow.cli.bootstrap import create_initial_state
from omniflow.core.state import AppState
from omniflow.tasks.task_processor import TaskProcessor
from omniflow.tasks.task_store import TaskStore

from .fakes import FakeClock, FakeCompletionClient, FakeEmailSender, InMemoryCollectionStore

# Monday 2025-06-02 09:00 UTC
START = datetime(2025, 6, 2, 9, 0, tzinfo=UTC)


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and core modules.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="omniflow-test",
        data_dir=tmp_path,
        storage_backend="json",
        sqlite_path=tmp_path / "omniflow.sqlite3",
        llm_models=["test-model"],
        llm_max_tokens=1500,
        llm_temperature=0.7,
        timezone="UTC",
        scheduler_max_sleep_seconds=0.05,
        cron_pending_tasks="*/5 * * * *",
        cron_daily_summary="0 18 * * *",
        cron_log_cleanup="0 2 * * 0",
        cron_email_dispatch="*/5 * * * *",
        task_retention_days=30,
        lead_followup_days=3,
        high_value_lead_score=80,
        webhook_timeout_seconds=5.0,
        console_enabled=False,
    )


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock(START)


@pytest.fixture()
def backend() -> InMemoryCollectionStore:
    return InMemoryCollectionStore()


@pytest.fixture()
def completion() -> FakeCompletionClient:
    return FakeCompletionClient("Y")


@pytest.fixture()
def email_sender() -> FakeEmailSender:
    return FakeEmailSender()


@pytest.fixture()
def task_store(backend: InMemoryCollectionStore) -> TaskStore:
    return TaskStore(backend)


@pytest.fixture()
def processor(task_store: TaskStore, completion: FakeCompletionClient, clock: FakeClock) -> TaskProcessor:
    return TaskProcessor(task_store, completion, clock)


@pytest.fixture()
def state(
    settings: SimpleNamespace,
    backend: InMemoryCollectionStore,
    completion: FakeCompletionClient,
    email_sender: FakeEmailSender,
    clock: FakeClock,
) -> AppState:
    """
    AppState wired with deterministic fakes.

    NOTE: stores/engines are the real ones; only the collaborators at the
    edges (storage backend, LLM, email, clock) are fakes.
    """
    return create_initial_state(
        settings=settings,
        backend=backend,
        completion=completion,
        email_sender=email_sender,
        clock=clock,
    )
