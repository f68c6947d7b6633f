# tests/test_workflow_store.py

from __future__ import annotations

import pytest

from omniflow.errors import NotFoundError, ValidationError
from omniflow.workflows.templates import WORKFLOW_TEMPLATES, create_from_template
from omniflow.workflows.workflow_models import (
    AIProcessConfig,
    ConditionConfig,
    ConditionOperator,
    Step,
    Workflow,
    WorkflowTrigger,
)
from omniflow.workflows.workflow_store import WorkflowStore

from .conftest import START


def test_create_assigns_ids_and_typed_configs(backend) -> None:
    store = WorkflowStore(backend)
    workflow = store.create_workflow(
        "Qualify",
        "manual",
        [
            {"type": "ai-process", "description": "score", "config": {"prompt": "Score it", "maxTokens": 300}},
            {"type": "condition", "config": {"field": "score", "operator": "GT", "value": 70}},
        ],
        created_by="ops@omniflow.test",
    )

    assert workflow.id.startswith("workflow_")
    assert [s.id for s in workflow.steps] == ["step_0", "step_1"]

    loaded = store.get(workflow.id)
    assert loaded is not None
    assert loaded.created_by == "ops@omniflow.test"
    assert loaded.run_count == 0 and loaded.last_run is None
    assert loaded.steps[0].config == AIProcessConfig(prompt="Score it", max_tokens=300)
    assert loaded.steps[1].config == ConditionConfig(path="score", operator=ConditionOperator.GT, value=70)

    rec = backend.read_all("workflows")[0]
    assert rec["isActive"] is True
    assert rec["steps"][1]["config"]["field"] == "score"


def test_schedule_is_required_only_for_schedule_trigger(backend) -> None:
    store = WorkflowStore(backend)

    with pytest.raises(ValidationError):
        store.create_workflow("Nightly", "schedule", [])
    with pytest.raises(ValidationError):
        store.create_workflow("Nightly", "schedule", [], schedule="61 * * * *")
    with pytest.raises(ValidationError):
        store.create_workflow("Manual", "manual", [], schedule="0 9 * * *")
    with pytest.raises(ValidationError):
        store.create_workflow("Odd", "carrier-pigeon", [])
    with pytest.raises(ValidationError):
        store.create_workflow("", "manual", [])
    with pytest.raises(ValidationError):
        store.create_workflow("Bad step", "manual", [{"description": "no type"}])

    ok = store.create_workflow("Nightly", "schedule", [], schedule="0  9 * * 1-5")
    assert ok.trigger == WorkflowTrigger.SCHEDULE
    assert ok.schedule == "0 9 * * 1-5"
    assert len(store.list()) == 1


def test_set_active_delete_and_require(backend) -> None:
    store = WorkflowStore(backend)
    w = store.create_workflow("Temp", "manual", [])

    store.set_active(w.id, False)
    assert store.get(w.id).is_active is False
    assert store.list(active_only=True) == []

    assert store.delete(w.id) is True
    assert store.delete(w.id) is False
    with pytest.raises(NotFoundError):
        store.require(w.id)
    assert store.record_run(w.id, START) is None


def test_put_rejects_duplicate_step_ids(backend) -> None:
    store = WorkflowStore(backend)
    workflow = Workflow(
        id="workflow_dupes",
        name="Dupes",
        trigger=WorkflowTrigger.MANUAL,
        steps=[
            Step(id="step_0", type="condition", config={}),
            Step(id="step_0", type="ai-process", config={}),
        ],
    )

    with pytest.raises(ValidationError):
        store.put(workflow)
    assert store.list() == []

    workflow.steps[1].id = "step_1"
    store.put(workflow)
    assert [s.id for s in store.require("workflow_dupes").steps] == ["step_0", "step_1"]


def test_templates_and_analytics(backend) -> None:
    store = WorkflowStore(backend)
    for template_id in WORKFLOW_TEMPLATES:
        create_from_template(store, template_id)
    with pytest.raises(NotFoundError):
        create_from_template(store, "does-not-exist")

    workflows = store.list()
    assert len(workflows) == len(WORKFLOW_TEMPLATES)

    busiest = workflows[2]
    for _ in range(3):
        store.record_run(busiest.id, START)
    store.record_run(workflows[0].id, START)
    store.set_active(workflows[1].id, False)

    stats = store.analytics()
    assert stats["totalWorkflows"] == 4
    assert stats["activeWorkflows"] == 3
    assert stats["totalExecutions"] == 4
    assert stats["topPerformingWorkflows"][0] == {"name": busiest.name, "executions": 3}


def test_scheduled_template(backend) -> None:
    store = WorkflowStore(backend)
    w = create_from_template(store, "data-insights", trigger="schedule", schedule="0 17 * * 5", name="Friday report")

    assert w.name == "Friday report"
    assert w.schedule == "0 17 * * 5"
