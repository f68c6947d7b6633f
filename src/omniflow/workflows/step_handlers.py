# src/omniflow/workflows/step_handlers.py

"""
Step handlers for the workflow engine.

Each handler receives the step's typed config and the accumulated input, and
returns a JSON-serializable result dict. A result with success=False marks
the step as failed; raising is also allowed (the engine converts it).
"""

from __future__ import annotations

import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any

import httpx

from ..core.ports import CompletionClient, EmailSender
from ..core.templating import lookup, substitute
from ..errors import ServiceError, StepError
from ..tasks.task_processor import SYSTEM_PROMPT, build_prompt
from .workflow_models import (
    AIProcessConfig,
    ConditionConfig,
    ConditionOperator,
    DataTransformConfig,
    EmailSendConfig,
    StepConfig,
    StepType,
    WebhookCallConfig,
)

logger = logging.getLogger(__name__)

StepInput = dict[str, Any]
StepHandler = Callable[[StepConfig, StepInput], Awaitable[dict[str, Any]]]


def _expect(config: StepConfig, cls: type) -> Any:
    if not isinstance(config, cls):
        raise StepError(f"Expected {cls.__name__}, got {type(config).__name__}")
    return config


def _compare(op: ConditionOperator, actual: Any, expected: Any) -> bool:
    if op == ConditionOperator.EXISTS:
        return actual is not None
    if op == ConditionOperator.EQ:
        return actual == expected
    if op == ConditionOperator.NE:
        return actual != expected
    if op == ConditionOperator.CONTAINS:
        if isinstance(actual, str):
            return str(expected) in actual
        if isinstance(actual, (list, tuple, set, dict)):
            return expected in actual
        return False

    try:
        a, b = float(actual), float(expected)
    except (TypeError, ValueError):
        return False
    if op == ConditionOperator.GT:
        return a > b
    if op == ConditionOperator.GTE:
        return a >= b
    if op == ConditionOperator.LT:
        return a < b
    return a <= b


class StepHandlers:
    """
    Dispatch table: StepType -> handler.

    Collaborators are injected so tests can substitute fakes
    (FakeCompletionClient, FakeEmailSender, httpx.MockTransport).
    """

    def __init__(
        self,
        completion: CompletionClient,
        email_sender: EmailSender,
        *,
        http_client: httpx.AsyncClient | None = None,
        webhook_timeout_seconds: float = 20.0,
    ) -> None:
        self._completion = completion
        self._email = email_sender
        self._http = http_client
        self._webhook_timeout = float(webhook_timeout_seconds)
        self._table: dict[str, StepHandler] = {
            StepType.AI_PROCESS: self.ai_process,
            StepType.EMAIL_SEND: self.email_send,
            StepType.DATA_TRANSFORM: self.data_transform,
            StepType.WEBHOOK_CALL: self.webhook_call,
            StepType.CONDITION: self.condition,
        }

    def get(self, step_type: str) -> StepHandler | None:
        return self._table.get(step_type)

    def register(self, step_type: str, handler: StepHandler) -> None:
        self._table[step_type] = handler

    # ---- handlers ----

    async def ai_process(self, config: StepConfig, data: StepInput) -> dict[str, Any]:
        cfg: AIProcessConfig = _expect(config, AIProcessConfig)

        payload = json.dumps(data, ensure_ascii=False, indent=2, default=str)
        if cfg.prompt:
            prompt = f"{substitute(cfg.prompt, data)}\n\nInput data:\n{payload}"
        else:
            prompt = build_prompt(cfg.task_type, payload)

        try:
            text = await self._completion.complete(
                SYSTEM_PROMPT,
                prompt,
                max_tokens=cfg.max_tokens,
                temperature=cfg.temperature,
            )
        except ServiceError as e:
            return {"success": False, "error": str(e)}
        return {"success": True, "output": text}

    async def email_send(self, config: StepConfig, data: StepInput) -> dict[str, Any]:
        cfg: EmailSendConfig = _expect(config, EmailSendConfig)

        to = substitute(cfg.to, data) if cfg.to else str(data.get("email") or "")
        if not to or "@" not in to:
            return {"success": False, "error": "No recipient email address"}

        subject = substitute(cfg.subject, data) or "(no subject)"
        body = substitute(cfg.body, data)
        if not body:
            previous = lookup(data, "previousResult.output")
            body = str(previous) if previous is not None else ""

        sent = await self._email.send(to=to, subject=subject, content=body, lead_id=data.get("leadId"))
        out = sent.to_dict()
        out["emailsSent"] = 1 if sent.success else 0
        out["recipients"] = [to]
        return out

    async def data_transform(self, config: StepConfig, data: StepInput) -> dict[str, Any]:
        cfg: DataTransformConfig = _expect(config, DataTransformConfig)

        source = {k: v for k, v in data.items() if k != "previousResult"}
        record = {k: source[k] for k in cfg.pick if k in source} if cfg.pick else dict(source)
        for old, new in cfg.rename.items():
            if old in record:
                record[new] = record.pop(old)
        record.update(cfg.assign)
        return {"success": True, "transformedRecords": 1, "output": record}

    async def webhook_call(self, config: StepConfig, data: StepInput) -> dict[str, Any]:
        cfg: WebhookCallConfig = _expect(config, WebhookCallConfig)
        if not cfg.url:
            return {"success": False, "error": "Webhook URL is not configured"}

        body = json.loads(json.dumps(data, default=str))
        kwargs: dict[str, Any] = {"headers": cfg.headers or None}
        if cfg.method in {"POST", "PUT", "PATCH"}:
            kwargs["json"] = body

        try:
            if self._http is not None:
                resp = await self._http.request(cfg.method, cfg.url, **kwargs)
            else:
                async with httpx.AsyncClient(timeout=self._webhook_timeout) as client:
                    resp = await client.request(cfg.method, cfg.url, **kwargs)
        except httpx.HTTPError as e:
            logger.warning("Webhook %s %s failed: %s", cfg.method, cfg.url, e)
            return {"success": False, "error": f"Webhook request failed: {e.__class__.__name__}"}

        ok = 200 <= resp.status_code < 300
        out: dict[str, Any] = {"success": ok, "status": resp.status_code}
        if ok:
            out["response"] = resp.text[:2000]
        else:
            out["error"] = f"Webhook returned HTTP {resp.status_code}"
        return out

    async def condition(self, config: StepConfig, data: StepInput) -> dict[str, Any]:
        cfg: ConditionConfig = _expect(config, ConditionConfig)
        if not cfg.path:
            return {"success": False, "error": "Condition has no field"}

        met = _compare(cfg.operator, lookup(data, cfg.path), cfg.value)
        return {
            "success": met,
            "conditionMet": met,
            "nextAction": "continue" if met else "stop",
        }
