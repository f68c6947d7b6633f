# src/omniflow/workflows/engine.py

"""
Workflow engine.

A best-effort pipeline:
- steps run in list order, every step runs even if an earlier one failed,
- step i > 0 sees the caller's input plus the previous step's result under
  the reserved "previousResult" key,
- a handler that raises is converted into {"success": False, "error": ...},
- after the run, run_count/last_run are persisted whether or not steps failed.

Only a failure to read/write the workflow collection (StorageError) aborts execute().
"""

from __future__ import annotations

import logging
from typing import Any

from ..core.ports import Clock
from .step_handlers import StepHandlers
from .workflow_models import StepRunResult, Workflow, WorkflowRunResult
from .workflow_store import WorkflowStore

logger = logging.getLogger(__name__)

PREVIOUS_RESULT_KEY = "previousResult"
UNKNOWN_STEP_RESULT = {"success": False, "error": "Unknown step type"}


class WorkflowEngine:
    def __init__(self, store: WorkflowStore, handlers: StepHandlers, clock: Clock) -> None:
        self._store = store
        self._handlers = handlers
        self._clock = clock

    async def execute(self, workflow: Workflow, initial_input: dict[str, Any] | None = None) -> WorkflowRunResult:
        caller_input = dict(initial_input or {})
        executed_at = self._clock.now()
        results: list[StepRunResult] = []
        previous: dict[str, Any] | None = None

        logger.info("Running workflow id=%s name=%s steps=%d", workflow.id, workflow.name, len(workflow.steps))

        for step in workflow.steps:
            data = dict(caller_input)
            if previous is not None:
                data[PREVIOUS_RESULT_KEY] = previous

            handler = self._handlers.get(step.type)
            if handler is None:
                logger.warning("Workflow %s step %s: unknown step type %r", workflow.id, step.id, step.type)
                result = dict(UNKNOWN_STEP_RESULT)
            else:
                try:
                    result = await handler(step.config, data)
                except Exception as e:
                    logger.exception("Workflow %s step %s (%s) raised", workflow.id, step.id, step.type)
                    result = {"success": False, "error": str(e) or e.__class__.__name__}
                if not isinstance(result, dict):
                    result = {"success": True, "output": result}

            results.append(StepRunResult(step_id=step.id, result=result))
            previous = result

        run = WorkflowRunResult(workflow_id=workflow.id, executed_at=executed_at, steps=results)

        stored = self._store.record_run(workflow.id, self._clock.now())
        if stored is not None:
            workflow.run_count = stored.run_count
            workflow.last_run = stored.last_run
        else:
            workflow.run_count += 1
            workflow.last_run = self._clock.now()

        logger.info(
            "Workflow %s finished success=%s run_count=%d",
            workflow.id,
            run.success,
            workflow.run_count,
        )
        return run

    async def execute_by_id(self, workflow_id: str, initial_input: dict[str, Any] | None = None) -> WorkflowRunResult:
        """Load the current stored version and run it. Raises NotFoundError."""
        workflow = self._store.require(workflow_id)
        return await self.execute(workflow, initial_input)
