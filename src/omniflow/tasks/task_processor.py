# src/omniflow/tasks/task_processor.py

"""
Task processor.

Turns a (query, type) request into a persisted Task:
- the task is written as pending before the completion call (in-flight tasks are visible),
- the completion collaborator is awaited,
- the task is written again as completed (result text) or error (failure message).

ServiceError never escapes this module: callers get a TaskResult with status=error.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Any

from ..core.ports import Clock, CompletionClient
from ..errors import NotFoundError, ServiceError, ValidationError
from ..llm.client import friendly_llm_error_message
from .task_models import Task, TaskResult, TaskStatus, TaskType, new_task_id
from .task_store import TaskStore

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are an expert AI assistant helping with business automation and optimization. "
    "Provide clear, actionable, and professional responses."
)

AUDIT_SYSTEM_PROMPT = (
    "You are a senior business consultant and automation expert. Provide detailed, "
    "actionable business audits with specific recommendations for AI and automation "
    "implementation."
)

PROMPT_TEMPLATES: dict[str, str] = {
    TaskType.SUMMARIZE: "Please provide a clear, concise summary of the following content:\n\n{query}",
    TaskType.REWRITE: (
        "Please rewrite the following content to be more professional, clear, and engaging:\n\n{query}"
    ),
    TaskType.AUDIT: (
        "Please conduct a thorough analysis and audit of the following:\n\n{query}\n\n"
        "Provide specific recommendations and actionable insights."
    ),
    TaskType.GENERATE_COPY: "Please create compelling marketing copy based on the following brief:\n\n{query}",
    TaskType.INSIGHTS: "Please analyze the following and provide strategic business insights:\n\n{query}",
}

GENERIC_TEMPLATE = "Please help with the following request:\n\n{query}"

BUSINESS_AUDIT_TEMPLATE = """
Conduct a comprehensive business audit based on the following data:

{data}

Please provide:
1. Key Strengths Analysis
2. Areas for Improvement
3. Automation Opportunities
4. Growth Recommendations
5. Risk Assessment
6. Action Plan with Priorities

Format your response as a structured business report with clear sections and actionable insights.
""".strip()


def build_prompt(task_type: str, query: str) -> str:
    """Per-type instruction; unknown types use the generic template."""
    template = PROMPT_TEMPLATES.get(task_type, GENERIC_TEMPLATE)
    return template.format(query=query)


def _require_text(name: str, value: Any) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(f"{name} is required")
    return str(value).strip()


class TaskProcessor:
    def __init__(
        self,
        store: TaskStore,
        completion: CompletionClient,
        clock: Clock,
        *,
        max_tokens: int = 1500,
        temperature: float = 0.7,
    ) -> None:
        self._store = store
        self._completion = completion
        self._clock = clock
        self._max_tokens = int(max_tokens)
        self._temperature = float(temperature)
        # Task ids awaiting their completion call.
        self._in_flight: set[str] = set()

    def is_running(self, task_id: str) -> bool:
        return task_id in self._in_flight

    def create_task(self, query: str, task_type: str, scheduled_time: datetime | None = None) -> Task:
        """Persist a pending task without running it (the pending-task sweep picks it up)."""
        query = _require_text("query", query)
        task_type = _require_text("type", task_type)

        task = Task(
            id=new_task_id(),
            query=query,
            type=task_type,
            result="",
            status=TaskStatus.PENDING,
            timestamp=scheduled_time or self._clock.now(),
        )
        self._store.put(task)
        logger.info("Task created id=%s type=%s at=%s", task.id, task.type, task.timestamp.isoformat())
        return task

    async def process(self, query: str, task_type: str) -> TaskResult:
        """
        Create a task and run it to a terminal status.

        Raises ValidationError (nothing stored) for missing query/type and
        StorageError if the task log cannot be written.
        """
        if not TaskType.is_known((task_type or "").strip()):
            logger.info("Unknown task type %r, using generic instructions", task_type)
        task = self.create_task(query, task_type)
        return await self.run_task(task)

    async def run_task(self, task: Task) -> TaskResult:
        if task.status != TaskStatus.PENDING:
            raise ValidationError(f"Task {task.id} is already {task.status.value}")
        if task.id in self._in_flight:
            raise ValidationError(f"Task {task.id} is already running")

        prompt = build_prompt(task.type, task.query)
        return await self._complete_and_record(
            task,
            SYSTEM_PROMPT,
            prompt,
            max_tokens=self._max_tokens,
            temperature=self._temperature,
        )

    async def run_task_by_id(self, task_id: str) -> TaskResult:
        task = self._store.get(task_id)
        if task is None:
            raise NotFoundError(f"Task not found: {task_id}")
        return await self.run_task(task)

    async def run_business_audit(self, business_data: dict[str, Any]) -> TaskResult:
        if not business_data:
            raise ValidationError("Business data is required for audit")

        task = self.create_task("Business Audit", TaskType.AUDIT)
        prompt = BUSINESS_AUDIT_TEMPLATE.format(
            data=json.dumps(business_data, ensure_ascii=False, indent=2, default=str)
        )
        return await self._complete_and_record(
            task,
            AUDIT_SYSTEM_PROMPT,
            prompt,
            max_tokens=2000,
            temperature=0.3,
        )

    async def _complete_and_record(
        self,
        task: Task,
        system_prompt: str,
        prompt: str,
        *,
        max_tokens: int,
        temperature: float,
    ) -> TaskResult:
        self._in_flight.add(task.id)
        try:
            text = await self._completion.complete(
                system_prompt,
                prompt,
                max_tokens=max_tokens,
                temperature=temperature,
            )
        except ServiceError as e:
            return self._record_failure(task, friendly_llm_error_message(e))
        except Exception as e:
            logger.exception("Completion call crashed task_id=%s", task.id)
            return self._record_failure(task, friendly_llm_error_message(e))
        finally:
            self._in_flight.discard(task.id)

        task.complete(text or "No response generated")
        self._store.put(task)
        logger.info("Task %s -> completed", task.id)
        return TaskResult(
            task_id=task.id,
            type=task.type,
            status=task.status,
            result=task.result,
            timestamp=task.timestamp,
        )

    def _record_failure(self, task: Task, message: str) -> TaskResult:
        task.fail(message)
        self._store.put(task)
        logger.warning("Task %s -> error: %s", task.id, message)
        return TaskResult(
            task_id=task.id,
            type=task.type,
            status=task.status,
            result=task.result,
            timestamp=task.timestamp,
            error=message,
        )
