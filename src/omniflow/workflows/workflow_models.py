# src/omniflow/workflows/workflow_models.py

from __future__ import annotations

"""
Workflow data model.

Step configuration is a tagged union keyed by StepType: each step type has
its own config dataclass, parsed once when a workflow is loaded. Step types
outside the enumeration are kept (as raw config) so that the engine can
report them as "Unknown step type" instead of failing to load the workflow.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any, Union

from ..core.clock import format_timestamp, parse_timestamp


class WorkflowTrigger(StrEnum):
    MANUAL = "manual"
    SCHEDULE = "schedule"
    WEBHOOK = "webhook"
    EMAIL = "email"


class StepType(StrEnum):
    AI_PROCESS = "ai-process"
    EMAIL_SEND = "email-send"
    DATA_TRANSFORM = "data-transform"
    WEBHOOK_CALL = "webhook-call"
    CONDITION = "condition"


class ConditionOperator(StrEnum):
    EQ = "eq"
    NE = "ne"
    GT = "gt"
    GTE = "gte"
    LT = "lt"
    LTE = "lte"
    EXISTS = "exists"
    CONTAINS = "contains"


# ---- step configs ----


@dataclass(slots=True)
class AIProcessConfig:
    prompt: str = ""
    task_type: str = "insights"
    max_tokens: int = 800
    temperature: float = 0.7


@dataclass(slots=True)
class EmailSendConfig:
    # Empty "to" means: use the "email" key of the step input.
    to: str = ""
    subject: str = ""
    body: str = ""


@dataclass(slots=True)
class DataTransformConfig:
    pick: list[str] = field(default_factory=list)
    rename: dict[str, str] = field(default_factory=dict)
    assign: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class WebhookCallConfig:
    url: str = ""
    method: str = "POST"
    headers: dict[str, str] = field(default_factory=dict)


@dataclass(slots=True)
class ConditionConfig:
    path: str = ""
    operator: ConditionOperator = ConditionOperator.EXISTS
    value: Any = None


StepConfig = Union[
    AIProcessConfig,
    EmailSendConfig,
    DataTransformConfig,
    WebhookCallConfig,
    ConditionConfig,
    dict,
]


def _str_dict(raw: Any) -> dict[str, str]:
    if not isinstance(raw, dict):
        return {}
    return {str(k): str(v) for k, v in raw.items()}


def parse_step_config(step_type: str, raw: Any) -> StepConfig:
    """Build the typed config for a step. Unknown step types keep the raw dict."""
    cfg = raw if isinstance(raw, dict) else {}

    if step_type == StepType.AI_PROCESS:
        return AIProcessConfig(
            prompt=str(cfg.get("prompt") or ""),
            task_type=str(cfg.get("taskType") or "insights"),
            max_tokens=int(cfg.get("maxTokens") or 800),
            temperature=float(cfg.get("temperature", 0.7)),
        )
    if step_type == StepType.EMAIL_SEND:
        return EmailSendConfig(
            to=str(cfg.get("to") or ""),
            subject=str(cfg.get("subject") or ""),
            body=str(cfg.get("body") or ""),
        )
    if step_type == StepType.DATA_TRANSFORM:
        pick = cfg.get("pick") or []
        return DataTransformConfig(
            pick=[str(p) for p in pick] if isinstance(pick, list) else [],
            rename=_str_dict(cfg.get("rename")),
            assign=dict(cfg["set"]) if isinstance(cfg.get("set"), dict) else {},
        )
    if step_type == StepType.WEBHOOK_CALL:
        return WebhookCallConfig(
            url=str(cfg.get("url") or ""),
            method=str(cfg.get("method") or "POST").upper(),
            headers=_str_dict(cfg.get("headers")),
        )
    if step_type == StepType.CONDITION:
        raw_op = str(cfg.get("operator") or ConditionOperator.EXISTS.value).lower()
        try:
            op = ConditionOperator(raw_op)
        except ValueError:
            op = ConditionOperator.EXISTS
        return ConditionConfig(path=str(cfg.get("field") or ""), operator=op, value=cfg.get("value"))

    return dict(cfg)


def dump_step_config(config: StepConfig) -> dict[str, Any]:
    if isinstance(config, AIProcessConfig):
        return {
            "prompt": config.prompt,
            "taskType": config.task_type,
            "maxTokens": config.max_tokens,
            "temperature": config.temperature,
        }
    if isinstance(config, EmailSendConfig):
        return {"to": config.to, "subject": config.subject, "body": config.body}
    if isinstance(config, DataTransformConfig):
        return {"pick": list(config.pick), "rename": dict(config.rename), "set": dict(config.assign)}
    if isinstance(config, WebhookCallConfig):
        return {"url": config.url, "method": config.method, "headers": dict(config.headers)}
    if isinstance(config, ConditionConfig):
        return {"field": config.path, "operator": config.operator.value, "value": config.value}
    return dict(config)


# ---- workflow ----


@dataclass(slots=True)
class Step:
    id: str
    type: str
    config: StepConfig
    description: str = ""

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "config": dump_step_config(self.config),
            "description": self.description,
        }

    @classmethod
    def from_record(cls, rec: dict[str, Any]) -> Step:
        step_type = str(rec.get("type") or "")
        return cls(
            id=str(rec["id"]),
            type=step_type,
            config=parse_step_config(step_type, rec.get("config")),
            description=str(rec.get("description") or ""),
        )


def new_workflow_id() -> str:
    return f"workflow_{uuid.uuid4().hex[:12]}"


@dataclass(slots=True)
class Workflow:
    id: str
    name: str
    trigger: WorkflowTrigger
    steps: list[Step]
    schedule: str | None = None
    is_active: bool = True
    created_by: str = "system"
    last_run: datetime | None = None
    run_count: int = 0

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "trigger": self.trigger.value,
            "schedule": self.schedule,
            "steps": [s.to_record() for s in self.steps],
            "isActive": self.is_active,
            "createdBy": self.created_by,
            "lastRun": format_timestamp(self.last_run),
            "runCount": self.run_count,
        }

    @classmethod
    def from_record(cls, rec: dict[str, Any]) -> Workflow:
        steps_raw = rec.get("steps") or []
        return cls(
            id=str(rec["id"]),
            name=str(rec.get("name") or ""),
            trigger=WorkflowTrigger(str(rec.get("trigger") or "manual")),
            schedule=rec.get("schedule") or None,
            steps=[Step.from_record(s) for s in steps_raw if isinstance(s, dict)],
            is_active=bool(rec.get("isActive", True)),
            created_by=str(rec.get("createdBy") or "system"),
            last_run=parse_timestamp(rec.get("lastRun")),
            run_count=max(0, int(rec.get("runCount") or 0)),
        )


# ---- run results ----


@dataclass(slots=True, frozen=True)
class StepRunResult:
    step_id: str
    result: dict[str, Any]

    @property
    def success(self) -> bool:
        # A result without a success flag counts as successful.
        return self.result.get("success") is not False

    def to_dict(self) -> dict[str, Any]:
        return {"stepId": self.step_id, "result": self.result}


@dataclass(slots=True, frozen=True)
class WorkflowRunResult:
    workflow_id: str
    executed_at: datetime
    steps: list[StepRunResult]

    @property
    def success(self) -> bool:
        return all(s.success for s in self.steps)

    def to_dict(self) -> dict[str, Any]:
        return {
            "workflowId": self.workflow_id,
            "executedAt": format_timestamp(self.executed_at),
            "steps": [s.to_dict() for s in self.steps],
            "success": self.success,
        }
