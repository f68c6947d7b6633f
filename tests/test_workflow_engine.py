# tests/test_workflow_engine.py

from __future__ import annotations

import json

import httpx
import pytest

from omniflow.errors import StorageError
from omniflow.workflows.engine import WorkflowEngine
from omniflow.workflows.step_handlers import StepHandlers
from omniflow.workflows.workflow_models import Step, Workflow, WorkflowTrigger
from omniflow.workflows.workflow_store import WorkflowStore

from .conftest import START
from .fakes import FakeCompletionClient, FakeEmailSender, InMemoryCollectionStore, failing_completion


def _engine(backend, clock, *, completion=None, email=None, http_client=None):
    store = WorkflowStore(backend)
    handlers = StepHandlers(
        completion or FakeCompletionClient("AI says hi"),
        email or FakeEmailSender(),
        http_client=http_client,
    )
    return store, handlers, WorkflowEngine(store, handlers, clock)


LEAD_INPUT = {"email": "owner@acme.test", "businessName": "Acme", "contactName": "Sam", "score": 40}


@pytest.mark.asyncio
async def test_failed_condition_still_runs_every_step(backend, clock) -> None:
    email = FakeEmailSender()
    store, _, engine = _engine(backend, clock, email=email)
    workflow = store.create_workflow(
        "Lead follow-up",
        "manual",
        [
            {"type": "ai-process", "config": {"prompt": "Score {{businessName}}"}},
            {"type": "condition", "config": {"field": "score", "operator": "gte", "value": 80}},
            {"type": "email-send", "config": {"subject": "Hi {{contactName}}", "body": "Thanks"}},
        ],
    )

    run = await engine.execute(workflow, LEAD_INPUT)

    assert [s.step_id for s in run.steps] == ["step_0", "step_1", "step_2"]
    assert run.steps[0].result == {"success": True, "output": "AI says hi"}
    assert run.steps[1].result["success"] is False
    assert run.steps[1].result["nextAction"] == "stop"
    assert run.steps[2].success
    assert run.success is False

    stored = store.get(workflow.id)
    assert stored.run_count == 1
    assert stored.last_run == START
    assert workflow.run_count == 1

    assert email.sent[0].to == "owner@acme.test"
    assert email.sent[0].subject == "Hi Sam"


@pytest.mark.asyncio
async def test_run_count_increments_once_per_execute(backend, clock) -> None:
    store, _, engine = _engine(backend, clock, completion=failing_completion())
    workflow = store.create_workflow("Insights", "manual", [{"type": "ai-process", "config": {}}])

    first = await engine.execute(workflow)
    clock.advance(minutes=5)
    second = await engine.execute_by_id(workflow.id)

    assert first.success is False
    assert first.steps[0].result["success"] is False
    assert second.success is False
    stored = store.get(workflow.id)
    assert stored.run_count == 2
    assert stored.last_run == clock.now()


@pytest.mark.asyncio
async def test_unknown_step_type_and_raising_handler_are_contained(backend, clock) -> None:
    store, handlers, engine = _engine(backend, clock)

    async def _explode(config, data):
        raise RuntimeError("handler exploded")

    handlers.register("data-transform", _explode)
    workflow = store.create_workflow(
        "Messy",
        "manual",
        [
            {"type": "sms-send", "config": {"to": "+100"}},
            {"type": "data-transform", "config": {}},
            {"type": "ai-process", "config": {}},
        ],
    )

    run = await engine.execute(workflow)

    assert run.steps[0].result == {"success": False, "error": "Unknown step type"}
    assert run.steps[1].result == {"success": False, "error": "handler exploded"}
    assert run.steps[2].success
    assert len(run.steps) == 3
    assert store.get(workflow.id).run_count == 1


@pytest.mark.asyncio
async def test_previous_result_is_threaded_between_steps(backend, clock) -> None:
    seen: list[dict] = []
    store, handlers, engine = _engine(backend, clock)

    async def _record(config, data):
        seen.append(dict(data))
        return {"success": True, "output": f"out{len(seen)}"}

    handlers.register("ai-process", _record)
    workflow = store.create_workflow(
        "Chain",
        "manual",
        [{"type": "ai-process"}, {"type": "ai-process"}, {"type": "ai-process"}],
    )

    await engine.execute(workflow, {"customer": "Acme"})

    assert seen[0] == {"customer": "Acme"}
    assert seen[1] == {"customer": "Acme", "previousResult": {"success": True, "output": "out1"}}
    assert seen[2]["previousResult"]["output"] == "out2"
    assert seen[2]["customer"] == "Acme"


@pytest.mark.asyncio
async def test_email_body_falls_back_to_previous_output(backend, clock) -> None:
    email = FakeEmailSender()
    store, _, engine = _engine(backend, clock, email=email)
    workflow = store.create_workflow(
        "Report",
        "manual",
        [
            {"type": "ai-process", "config": {"taskType": "insights"}},
            {"type": "email-send", "config": {"to": "{{email}}", "subject": "Weekly insights"}},
        ],
    )

    run = await engine.execute(workflow, {"email": "boss@acme.test"})

    assert run.success
    assert email.sent[0].content == "AI says hi"
    assert run.steps[1].result["emailsSent"] == 1


@pytest.mark.asyncio
async def test_email_step_without_recipient_fails(backend, clock) -> None:
    store, _, engine = _engine(backend, clock)
    workflow = store.create_workflow("No one", "manual", [{"type": "email-send", "config": {"subject": "x"}}])

    run = await engine.execute(workflow, {})

    assert run.steps[0].result == {"success": False, "error": "No recipient email address"}


@pytest.mark.asyncio
async def test_data_transform_pick_rename_set(backend, clock) -> None:
    store, _, engine = _engine(backend, clock)
    workflow = store.create_workflow(
        "Shape",
        "manual",
        [
            {
                "type": "data-transform",
                "config": {"pick": ["businessName", "score"], "rename": {"businessName": "company"}, "set": {"tier": "gold"}},
            }
        ],
    )

    run = await engine.execute(workflow, LEAD_INPUT)

    assert run.steps[0].result["output"] == {"company": "Acme", "score": 40, "tier": "gold"}


@pytest.mark.asyncio
async def test_webhook_step_posts_input(backend, clock) -> None:
    received: list[httpx.Request] = []

    def _handler(request: httpx.Request) -> httpx.Response:
        received.append(request)
        if request.url.path == "/fail":
            return httpx.Response(500, text="nope")
        return httpx.Response(200, json={"ok": True})

    async with httpx.AsyncClient(transport=httpx.MockTransport(_handler)) as client:
        store, _, engine = _engine(backend, clock, http_client=client)
        workflow = store.create_workflow(
            "Hooks",
            "manual",
            [
                {"type": "webhook-call", "config": {"url": "https://hooks.test/ok", "headers": {"X-Token": "t"}}},
                {"type": "webhook-call", "config": {"url": "https://hooks.test/fail"}},
                {"type": "webhook-call", "config": {}},
            ],
        )
        run = await engine.execute(workflow, {"leadId": "lead_1"})

    assert run.steps[0].result["success"] is True
    assert run.steps[0].result["status"] == 200
    assert run.steps[1].result == {"success": False, "status": 500, "error": "Webhook returned HTTP 500"}
    assert run.steps[2].result["success"] is False

    assert json.loads(received[0].content) == {"leadId": "lead_1"}
    assert received[0].headers["X-Token"] == "t"
    assert json.loads(received[1].content)["previousResult"]["status"] == 200


@pytest.mark.asyncio
async def test_unsaved_workflow_still_counts_runs(backend, clock) -> None:
    _, _, engine = _engine(backend, clock)
    workflow = Workflow(
        id="workflow_adhoc",
        name="Ad hoc",
        trigger=WorkflowTrigger.MANUAL,
        steps=[Step(id="step_0", type="condition", config={})],
    )

    run = await engine.execute(workflow)

    assert workflow.run_count == 1
    assert run.to_dict()["success"] is False


class _ReadOnlyBackend(InMemoryCollectionStore):
    def __init__(self) -> None:
        super().__init__()
        self.read_only = False

    def write_all(self, collection, records) -> None:
        if self.read_only:
            raise StorageError(f"Failed to write collection {collection!r}")
        super().write_all(collection, records)


@pytest.mark.asyncio
async def test_storage_failure_while_recording_the_run_propagates(clock) -> None:
    backend = _ReadOnlyBackend()
    email = FakeEmailSender()
    store, _, engine = _engine(backend, clock, email=email)
    workflow = store.create_workflow(
        "Welcome",
        "manual",
        [{"type": "email-send", "config": {"subject": "Hi", "body": "Welcome"}}],
    )

    backend.read_only = True
    with pytest.raises(StorageError):
        await engine.execute(workflow, LEAD_INPUT)

    # steps ran; only the run bookkeeping was lost
    assert len(email.sent) == 1
    assert store.get(workflow.id).run_count == 0
