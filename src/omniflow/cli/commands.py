# src/omniflow/cli/commands.py

from __future__ import annotations

import contextlib
import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import Union, cast

from ..core.state import AppState
from ..errors import NotFoundError, ValidationError
from ..leads.email import OutboxEmailSender
from ..leads.lead_models import LeadStatus
from ..tasks.task_models import TaskStatus, TaskType
from ..workflows.templates import SCHEDULE_RECOMMENDATIONS, WORKFLOW_TEMPLATES, create_from_template

CommandEmitter = Callable[[str], None]
CommandReply = Union[str, Awaitable[str]]
CommandHandler2 = Callable[[AppState, list[str]], CommandReply]
CommandHandler3 = Callable[[AppState, list[str], CommandEmitter | None], CommandReply]
CommandHandler = CommandHandler2 | CommandHandler3

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Slash-command registry used by the ops console (/help, /jobs, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    async def handle(
        self,
        state: AppState,
        line: str,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            nparams = len(inspect.signature(handler).parameters)
        except (TypeError, ValueError):
            nparams = 3

        if nparams >= 3:
            reply = cast(CommandHandler3, handler)(state, args, emit)
        else:
            reply = cast(CommandHandler2, handler)(state, args)

        if inspect.isawaitable(reply):
            reply = await reply
        return str(reply)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


def _short(text: str, limit: int = 80) -> str:
    text = " ".join((text or "").split())
    return text if len(text) <= limit else text[: limit - 1] + "…"


def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


def cmd_status(state: AppState, args: list[str]) -> str:
    settings = state.settings
    models = ", ".join(list(getattr(settings, "llm_models", []) or []))
    return (
        "Status:\n"
        f"  Storage: {getattr(settings, 'storage_backend', 'json')}\n"
        f"  Completion client: {type(state.completion).__name__}\n"
        f"  Models (priority -> fallback): {models}\n"
        f"  Email sender: {type(state.email_sender).__name__}\n"
        f"  Timezone: {getattr(settings, 'timezone', 'UTC')}\n"
        f"  Active jobs: {len(state.scheduler.list_active())}\n"
        f"  Tasks stored: {state.task_store.count()}"
    )


def cmd_jobs(state: AppState, args: list[str]) -> str:
    jobs = state.scheduler.jobs()
    if not jobs:
        return "No scheduled jobs."
    lines = ["Scheduled jobs:"]
    for job in jobs:
        flag = " (running)" if job.running else ""
        lines.append(
            f"  {job.name} [{job.cron_expression}] next={job.next_fire.strftime('%Y-%m-%d %H:%M')}"
            f" fired={job.fire_count}{flag}"
        )
    return "\n".join(lines)


def cmd_tasks(state: AppState, args: list[str]) -> str:
    """
    /tasks            -> latest 10 tasks
    /tasks <status>   -> latest 10 tasks with that status
    """
    status: TaskStatus | None = None
    if args:
        try:
            status = TaskStatus(args[0].lower())
        except ValueError:
            return f"Unknown status: {args[0]}. Use one of: {', '.join(s.value for s in TaskStatus)}."

    tasks = state.task_store.list(status, newest_first=True, limit=10)
    if not tasks:
        return "No tasks."
    lines = ["Latest tasks:"]
    for t in tasks:
        lines.append(
            f"  {t.id} [{t.type}] {t.status.value} {t.timestamp.strftime('%Y-%m-%d %H:%M')} - {_short(t.query, 50)}"
        )
    return "\n".join(lines)


async def cmd_process(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if len(args) < 2:
        return f"Usage: /process <type> <query>. Types: {', '.join(t.value for t in TaskType)}."

    task_type, query = args[0], " ".join(args[1:])
    if emit:
        with contextlib.suppress(Exception):
            emit(f"[TASK] Processing {task_type}...")

    try:
        result = await state.processor.process(query, task_type)
    except ValidationError as e:
        return f"Invalid task: {e}"

    if not result.ok:
        return f"Task {result.task_id} failed: {result.error}"
    return f"Task {result.task_id} completed:\n{result.result}"


def cmd_workflows(state: AppState, args: list[str]) -> str:
    workflows = state.workflow_store.list()
    if not workflows:
        return "No workflows. Use /templates <id> to create one."
    lines = ["Workflows:"]
    for w in workflows:
        active = "active" if w.is_active else "inactive"
        sched = f" [{w.schedule}]" if w.schedule else ""
        lines.append(
            f"  {w.id} {w.name} ({w.trigger.value}{sched}, {active}) steps={len(w.steps)} runs={w.run_count}"
        )
    return "\n".join(lines)


async def cmd_run(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if not args:
        return "Usage: /run <workflow_id>"

    if emit:
        with contextlib.suppress(Exception):
            emit(f"[WORKFLOW] Running {args[0]}...")

    try:
        run = await state.workflow_engine.execute_by_id(args[0])
    except NotFoundError as e:
        return str(e)

    lines = [f"Workflow {run.workflow_id} finished success={run.success}:"]
    for step in run.steps:
        mark = "ok" if step.success else "FAILED"
        detail = step.result.get("error") or step.result.get("output") or ""
        lines.append(f"  {step.step_id}: {mark} {_short(str(detail), 60)}")
    return "\n".join(lines)


def cmd_templates(state: AppState, args: list[str]) -> str:
    """
    /templates        -> list templates and schedule recommendations
    /templates <id>   -> create a manual workflow from a template
    """
    if args:
        try:
            workflow = create_from_template(state.workflow_store, args[0])
        except NotFoundError as e:
            return str(e)
        return f"Created workflow {workflow.id} ({workflow.name})."

    lines = ["Workflow templates:"]
    for template_id, tpl in WORKFLOW_TEMPLATES.items():
        lines.append(f"  {template_id} - {tpl['description']}")
    lines.append("Schedule recommendations:")
    for name, expr in SCHEDULE_RECOMMENDATIONS.items():
        lines.append(f"  {name}: {expr}")
    return "\n".join(lines)


def cmd_leads(state: AppState, args: list[str]) -> str:
    """
    /leads            -> every lead
    /leads <status>   -> leads with that status
    /leads hot        -> high-value leads, best first
    /leads followup   -> open leads without a recent interaction
    """
    settings = state.settings
    if args and args[0].lower() == "hot":
        leads = state.nurturing.get_high_value_leads(int(getattr(settings, "high_value_lead_score", 80)))
    elif args and args[0].lower() == "followup":
        leads = state.nurturing.get_leads_needing_followup(int(getattr(settings, "lead_followup_days", 3)))
    elif args:
        try:
            leads = state.nurturing.get_leads_by_status(args[0].lower())
        except ValueError:
            return f"Unknown status: {args[0]}. Use one of: {', '.join(s.value for s in LeadStatus)}."
    else:
        leads = state.nurturing.leads.list()

    if not leads:
        return "No leads."
    lines = ["Leads:"]
    for lead in leads:
        lines.append(
            f"  {lead.id} {lead.business_name or '-'} <{lead.email}> {lead.status.value}"
            f" stage={lead.nurturing_stage.value} score={lead.score}"
        )
    return "\n".join(lines)


def cmd_analytics(state: AppState, args: list[str]) -> str:
    wf = state.workflow_store.analytics()
    leads = state.nurturing.conversion_analytics()
    return (
        "Analytics:\n"
        f"  Workflows: {wf['totalWorkflows']} (active {wf['activeWorkflows']}),"
        f" executions {wf['totalExecutions']}\n"
        f"  Leads: {leads['totalLeads']}, qualification {leads['qualificationRate']}%,"
        f" conversion {leads['conversionRate']}%, avg score {leads['averageScore']}"
    )


def cmd_outbox(state: AppState, args: list[str]) -> str:
    pending = OutboxEmailSender(state.backend, state.clock).pending()
    if not pending:
        return "Outbox is empty."
    lines = [f"Emails waiting for manual sending: {len(pending)}"]
    for rec in pending[:20]:
        lines.append(f"  {rec.get('id')} to={rec.get('to')} subject={_short(str(rec.get('subject') or ''), 60)}")
    return "\n".join(lines)


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show current settings and collaborators.")
registry.register("jobs", cmd_jobs, help_text="List scheduled automation jobs.")
registry.register("tasks", cmd_tasks, help_text="Latest tasks: /tasks [pending|completed|error].")
registry.register("process", cmd_process, help_text="Run a task now: /process <type> <query>.")
registry.register("workflows", cmd_workflows, help_text="List workflows.")
registry.register("run", cmd_run, help_text="Execute a workflow: /run <workflow_id>.")
registry.register("templates", cmd_templates, help_text="List templates or create one: /templates [id].")
registry.register("leads", cmd_leads, help_text="List leads: /leads [status|hot|followup].")
registry.register("analytics", cmd_analytics, help_text="Workflow and lead conversion analytics.")
registry.register("outbox", cmd_outbox, help_text="Emails queued for manual sending.")
