# src/omniflow/workflows/workflow_store.py

from __future__ import annotations

import logging
import threading
from datetime import datetime
from typing import Any, Iterable

from ..core.ports import CollectionStore
from ..errors import NotFoundError, SchedulingError, ValidationError
from ..scheduling.cron import validate_cron
from .workflow_models import Step, Workflow, WorkflowTrigger, new_workflow_id, parse_step_config

logger = logging.getLogger(__name__)

WORKFLOWS_COLLECTION = "workflows"


def build_steps(raw_steps: Iterable[dict[str, Any]]) -> list[Step]:
    """
    Authoring helper: assign step ids by position ("step_0", "step_1", ...).

    Execution order is list order; ids are only labels.
    """
    steps: list[Step] = []
    for index, raw in enumerate(raw_steps):
        if not isinstance(raw, dict):
            raise ValidationError(f"Step {index} must be an object")
        step_type = str(raw.get("type") or "").strip()
        if not step_type:
            raise ValidationError(f"Step {index} has no type")
        try:
            config = parse_step_config(step_type, raw.get("config"))
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Step {index} has an invalid config: {e}") from e
        steps.append(
            Step(
                id=f"step_{index}",
                type=step_type,
                config=config,
                description=str(raw.get("description") or ""),
            )
        )
    return steps


class WorkflowStore:
    """
    Workflow collection with upsert-by-id semantics.

    Run bookkeeping (run_count/last_run) is applied to the stored record under
    the store lock, so a scheduled run and a manual run of the same workflow
    never lose an increment.
    """

    def __init__(self, backend: CollectionStore, *, collection: str = WORKFLOWS_COLLECTION) -> None:
        self._backend = backend
        self._collection = collection
        self._lock = threading.RLock()

    def _load(self) -> list[Workflow]:
        out: list[Workflow] = []
        for rec in self._backend.read_all(self._collection):
            try:
                out.append(Workflow.from_record(rec))
            except (KeyError, TypeError, ValueError):
                logger.warning("Skipping malformed workflow record id=%r", rec.get("id"))
        return out

    def _save(self, workflows: list[Workflow]) -> None:
        self._backend.write_all(self._collection, [w.to_record() for w in workflows])

    # ---- authoring ----

    def create_workflow(
        self,
        name: str,
        trigger: str,
        steps: Iterable[dict[str, Any]],
        *,
        schedule: str | None = None,
        created_by: str = "system",
    ) -> Workflow:
        if not name or not name.strip():
            raise ValidationError("name is required")
        try:
            trig = WorkflowTrigger((trigger or "").strip())
        except ValueError as e:
            raise ValidationError(f"Unknown trigger: {trigger!r}") from e

        schedule = (schedule or "").strip() or None
        if trig == WorkflowTrigger.SCHEDULE:
            if not schedule:
                raise ValidationError("schedule is required when trigger is 'schedule'")
            try:
                schedule = validate_cron(schedule).expression
            except SchedulingError as e:
                raise ValidationError(str(e)) from e
        elif schedule:
            raise ValidationError("schedule is only allowed when trigger is 'schedule'")

        workflow = Workflow(
            id=new_workflow_id(),
            name=name.strip(),
            trigger=trig,
            schedule=schedule,
            steps=build_steps(steps),
            is_active=True,
            created_by=(created_by or "system"),
            run_count=0,
        )
        self.put(workflow)
        logger.info(
            "Workflow created id=%s name=%s trigger=%s steps=%d",
            workflow.id,
            workflow.name,
            workflow.trigger.value,
            len(workflow.steps),
        )
        return workflow

    # ---- CRUD ----

    def put(self, workflow: Workflow) -> None:
        """Insert or replace by id. Raises ValidationError on duplicate step ids."""
        seen: set[str] = set()
        for step in workflow.steps:
            if step.id in seen:
                raise ValidationError(f"Workflow {workflow.id} has duplicate step id {step.id!r}")
            seen.add(step.id)

        with self._lock:
            workflows = self._load()
            for i, existing in enumerate(workflows):
                if existing.id == workflow.id:
                    workflows[i] = workflow
                    break
            else:
                workflows.append(workflow)
            self._save(workflows)

    def get(self, workflow_id: str) -> Workflow | None:
        for w in self._load():
            if w.id == workflow_id:
                return w
        return None

    def require(self, workflow_id: str) -> Workflow:
        w = self.get(workflow_id)
        if w is None:
            raise NotFoundError(f"Workflow not found: {workflow_id}")
        return w

    def list(self, *, active_only: bool = False) -> list[Workflow]:
        workflows = self._load()
        if active_only:
            workflows = [w for w in workflows if w.is_active]
        return workflows

    def set_active(self, workflow_id: str, active: bool) -> Workflow:
        with self._lock:
            workflow = self.require(workflow_id)
            workflow.is_active = bool(active)
            self.put(workflow)
        logger.info("Workflow %s active=%s", workflow_id, workflow.is_active)
        return workflow

    def delete(self, workflow_id: str) -> bool:
        with self._lock:
            workflows = self._load()
            kept = [w for w in workflows if w.id != workflow_id]
            if len(kept) == len(workflows):
                return False
            self._save(kept)
        logger.info("Workflow deleted id=%s", workflow_id)
        return True

    def record_run(self, workflow_id: str, ran_at: datetime) -> Workflow | None:
        """
        Increment run_count and set last_run on the stored record.

        Returns the updated workflow, or None if it was deleted meanwhile.
        """
        with self._lock:
            workflows = self._load()
            for w in workflows:
                if w.id == workflow_id:
                    w.run_count += 1
                    w.last_run = ran_at
                    self._save(workflows)
                    return w
        logger.warning("record_run: workflow %s no longer exists", workflow_id)
        return None

    # ---- reporting ----

    def analytics(self) -> dict[str, Any]:
        workflows = self._load()
        top = sorted(workflows, key=lambda w: w.run_count, reverse=True)[:5]
        return {
            "totalWorkflows": len(workflows),
            "activeWorkflows": sum(1 for w in workflows if w.is_active),
            "totalExecutions": sum(w.run_count for w in workflows),
            "topPerformingWorkflows": [{"name": w.name, "executions": w.run_count} for w in top],
        }
