# src/omniflow/leads/nurturing.py

"""
Lead nurturing state machine.

Lead lifecycle:
- add_lead(): score + tags, stage=awareness, then sequence triggers are evaluated
- a matching sequence starts once per lead (its id lands in automation_triggers)
- starting a sequence persists one scheduled email per template at
  now + trigger_delay hours; dispatch_due_emails() sends the ones that are due
- record_interaction() appends and bumps the score (no re-capping)
- update_lead_status() sets the status and runs the hooks registered for it

Closed leads (closed_won/closed_lost) get no further nurturing emails.
"""

from __future__ import annotations

import inspect
import logging
import uuid
from collections.abc import Callable, Iterable
from datetime import datetime, timedelta
from typing import Any

from ..core.ports import Clock, EmailSender, EmailSendResult
from ..core.templating import substitute
from ..errors import NotFoundError, ValidationError
from .lead_models import (
    Interaction,
    InteractionType,
    Lead,
    LeadStatus,
    NurturingSequence,
    NurturingStage,
    ScheduledEmail,
    ScheduledEmailStatus,
    new_interaction_id,
    new_lead_id,
)
from .lead_store import LeadStore, ScheduledEmailStore
from .scoring import calculate_initial_score, generate_initial_tags, interaction_score
from .sequences import DEFAULT_SEQUENCES

logger = logging.getLogger(__name__)

StatusHook = Callable[[Lead], Any]
# Sync functions and coroutine functions are both accepted.


def _log_qualified(lead: Lead) -> None:
    logger.info("Lead %s qualified - triggering proposal automation", lead.id)


def _log_closed_won(lead: Lead) -> None:
    logger.info("Lead %s closed won - starting onboarding", lead.id)


def _rate(part: int, total: int) -> float:
    return round(part / total * 100, 1) if total else 0.0


class LeadNurturingEngine:
    def __init__(
        self,
        leads: LeadStore,
        scheduled: ScheduledEmailStore,
        email_sender: EmailSender,
        clock: Clock,
        *,
        sequences: Iterable[NurturingSequence] = DEFAULT_SEQUENCES,
    ) -> None:
        self._leads = leads
        self._scheduled = scheduled
        self._email = email_sender
        self._clock = clock
        self._sequences: dict[str, NurturingSequence] = {s.id: s for s in sequences}
        self._status_hooks: dict[LeadStatus, list[StatusHook]] = {}

        self.register_status_hook(LeadStatus.QUALIFIED, _log_qualified)
        self.register_status_hook(LeadStatus.CLOSED_WON, _log_closed_won)

    @property
    def leads(self) -> LeadStore:
        return self._leads

    @property
    def scheduled_emails(self) -> ScheduledEmailStore:
        return self._scheduled

    # ---- registration ----

    def register_sequence(self, sequence: NurturingSequence) -> None:
        self._sequences[sequence.id] = sequence

    def sequences(self) -> list[NurturingSequence]:
        return list(self._sequences.values())

    def register_status_hook(self, status: LeadStatus | str, hook: StatusHook) -> None:
        self._status_hooks.setdefault(LeadStatus(status), []).append(hook)

    # ---- lead capture ----

    async def add_lead(self, data: dict[str, Any]) -> Lead:
        """
        Capture a lead, start every matching sequence, and send the emails
        that are due immediately (trigger delay 0).
        """
        email = str(data.get("email") or "").strip()
        if not email or "@" not in email:
            raise ValidationError("A valid email is required")

        now = self._clock.now()
        lead = Lead(
            id=new_lead_id(),
            email=email,
            business_name=str(data.get("businessName") or "").strip(),
            contact_name=str(data.get("contactName") or "").strip(),
            company_size=str(data.get("companySize") or "").strip(),
            challenge=str(data.get("challenge") or ""),
            source=str(data.get("source") or "").strip(),
            status=LeadStatus.NEW,
            score=calculate_initial_score(data),
            tags=generate_initial_tags(data),
            created_at=now,
            last_interaction=now,
            nurturing_stage=NurturingStage.AWARENESS,
            phone=(str(data["phone"]).strip() if data.get("phone") else None),
        )
        self._leads.put(lead)
        logger.info("Lead created id=%s source=%s score=%d", lead.id, lead.source, lead.score)

        self.evaluate_triggers(lead.id)
        await self.dispatch_due_emails(now, lead_id=lead.id)
        return self._leads.require(lead.id)

    # ---- sequences ----

    def evaluate_triggers(self, lead_id: str) -> list[str]:
        """
        Start every active sequence whose conditions all hold for the lead.

        Safe to call repeatedly: a sequence already in automation_triggers is
        never started again. Returns the ids started by this call.
        """
        lead = self._leads.require(lead_id)
        fields = lead.fields()
        started: list[str] = []
        for seq in self._sequences.values():
            if not seq.is_active or seq.id in lead.automation_triggers:
                continue
            if seq.matches(fields) and self.start_sequence(lead_id, seq.id):
                started.append(seq.id)
        return started

    def start_sequence(self, lead_id: str, sequence_id: str) -> bool:
        """Schedule every email of the sequence. Returns False if it already ran for this lead."""
        seq = self._sequences.get(sequence_id)
        if seq is None:
            raise NotFoundError(f"Unknown nurturing sequence: {sequence_id}")

        claimed = False

        def _claim(lead: Lead) -> None:
            nonlocal claimed
            if sequence_id not in lead.automation_triggers:
                lead.automation_triggers.append(sequence_id)
                claimed = True

        self._leads.update(lead_id, _claim)
        if not claimed:
            return False

        now = self._clock.now()
        entries = [
            ScheduledEmail(
                id=f"sched_{uuid.uuid4().hex[:12]}",
                lead_id=lead_id,
                sequence_id=seq.id,
                template_id=t.id,
                send_at=now + timedelta(hours=t.trigger_delay),
                status=ScheduledEmailStatus.PENDING,
                created_at=now,
            )
            for t in seq.emails
        ]
        self._scheduled.add_many(entries)

        for entry in entries:
            logger.info(
                "Scheduling email %s for lead %s at %s",
                entry.template_id,
                lead_id,
                entry.send_at.isoformat(),
            )
        logger.info("Sequence %s started for lead %s (%d emails)", seq.id, lead_id, len(entries))
        return True

    async def dispatch_due_emails(
        self,
        now: datetime | None = None,
        *,
        lead_id: str | None = None,
    ) -> list[ScheduledEmail]:
        """
        Send every pending scheduled email whose time has come.

        Each entry is claimed (pending -> sending) before the send and ends up
        sent, failed or cancelled (lead closed); a failure never stops the
        remaining entries. Returns the processed entries.
        """
        now = now or self._clock.now()
        processed: list[ScheduledEmail] = []

        for entry in self._scheduled.due(now):
            if lead_id is not None and entry.lead_id != lead_id:
                continue
            # The job loop and add_lead() may dispatch concurrently; one of them wins each entry.
            if not self._scheduled.claim(entry.id):
                continue
            processed.append(await self._dispatch_one(entry, now))
        return processed

    async def _dispatch_one(self, entry: ScheduledEmail, now: datetime) -> ScheduledEmail:
        entry.status = ScheduledEmailStatus.SENDING
        lead = self._leads.get(entry.lead_id)
        seq = self._sequences.get(entry.sequence_id)
        template = seq.template(entry.template_id) if seq else None

        if lead is None or template is None:
            reason = "Lead not found" if lead is None else "Email template not found"
            self._scheduled.mark(entry.id, ScheduledEmailStatus.FAILED, at=now, error=reason)
            logger.warning("Scheduled email %s dropped: %s", entry.id, reason)
            entry.status, entry.error = ScheduledEmailStatus.FAILED, reason
            return entry

        if lead.status.is_closed:
            self._scheduled.mark(entry.id, ScheduledEmailStatus.CANCELLED, at=now)
            logger.info("Lead %s is %s; cancelled email %s", lead.id, lead.status.value, template.id)
            entry.status = ScheduledEmailStatus.CANCELLED
            return entry

        fields = lead.fields()
        subject = substitute(template.subject, fields)
        content = substitute(template.content, fields)

        try:
            result = await self._email.send(to=lead.email, subject=subject, content=content, lead_id=lead.id)
        except Exception as e:
            logger.exception("Email sender crashed for lead %s", lead.id)
            result = EmailSendResult(success=False, error=str(e) or e.__class__.__name__)

        if not result.success:
            self._scheduled.mark(entry.id, ScheduledEmailStatus.FAILED, at=now, error=result.error)
            logger.warning("Email %s to lead %s failed: %s", template.id, lead.id, result.error)
            entry.status, entry.error = ScheduledEmailStatus.FAILED, result.error
            return entry

        def _record(current: Lead) -> None:
            current.interactions.append(
                Interaction(
                    id=new_interaction_id(),
                    type=InteractionType.EMAIL_SENT,
                    timestamp=now,
                    metadata={
                        "emailId": template.id,
                        "sequenceId": entry.sequence_id,
                        "subject": subject,
                        "messageId": result.message_id,
                    },
                )
            )
            current.last_interaction = now
            if template.stage.rank > current.nurturing_stage.rank:
                current.nurturing_stage = template.stage

        self._leads.update(lead.id, _record)
        self._scheduled.mark(entry.id, ScheduledEmailStatus.SENT, at=now)
        logger.info("Sending email to %s: %s", lead.email, subject)
        entry.status, entry.sent_at = ScheduledEmailStatus.SENT, now
        return entry

    # ---- lead updates ----

    def record_interaction(
        self,
        lead_id: str,
        interaction_type: str,
        metadata: dict[str, Any] | None = None,
    ) -> Lead:
        try:
            kind = InteractionType(interaction_type)
        except ValueError as e:
            raise ValidationError(f"Unknown interaction type: {interaction_type!r}") from e

        now = self._clock.now()
        bump = interaction_score(kind)

        def _apply(lead: Lead) -> None:
            lead.interactions.append(
                Interaction(id=new_interaction_id(), type=kind, timestamp=now, metadata=dict(metadata or {}))
            )
            lead.last_interaction = now
            lead.score += bump

        lead = self._leads.update(lead_id, _apply)
        logger.info("Lead %s interaction=%s score=%d", lead_id, kind.value, lead.score)
        return lead

    async def update_lead_status(self, lead_id: str, status: LeadStatus | str) -> Lead:
        try:
            new_status = LeadStatus(status)
        except ValueError as e:
            raise ValidationError(f"Unknown lead status: {status!r}") from e

        now = self._clock.now()

        def _apply(lead: Lead) -> None:
            lead.status = new_status
            lead.last_interaction = now

        lead = self._leads.update(lead_id, _apply)
        logger.info("Lead %s status -> %s", lead_id, new_status.value)

        if new_status.is_closed:
            cancelled = self._scheduled.cancel_for_lead(lead_id)
            if cancelled:
                logger.info("Cancelled %d scheduled emails for closed lead %s", cancelled, lead_id)

        for hook in self._status_hooks.get(new_status, []):
            try:
                out = hook(lead)
                if inspect.isawaitable(out):
                    await out
            except Exception:
                logger.exception("Status hook failed lead=%s status=%s", lead_id, new_status.value)
        return lead

    # ---- queries ----

    def get_leads_by_status(self, status: LeadStatus | str) -> list[Lead]:
        wanted = LeadStatus(status)
        return [lead for lead in self._leads.list() if lead.status == wanted]

    def get_high_value_leads(self, min_score: int = 80) -> list[Lead]:
        leads = [lead for lead in self._leads.list() if lead.score >= min_score]
        leads.sort(key=lambda lead: lead.score, reverse=True)
        return leads

    def get_leads_needing_followup(self, days: int = 3) -> list[Lead]:
        cutoff = self._clock.now() - timedelta(days=days)
        return [
            lead
            for lead in self._leads.list()
            if not lead.status.is_closed and lead.last_interaction < cutoff
        ]

    def conversion_analytics(self) -> dict[str, Any]:
        leads = self._leads.list()
        total = len(leads)

        sources: dict[str, int] = {}
        statuses: dict[str, int] = {}
        stages: dict[str, int] = {}
        for lead in leads:
            sources[lead.source] = sources.get(lead.source, 0) + 1
            statuses[lead.status.value] = statuses.get(lead.status.value, 0) + 1
            stages[lead.nurturing_stage.value] = stages.get(lead.nurturing_stage.value, 0) + 1

        return {
            "totalLeads": total,
            "qualificationRate": _rate(statuses.get(LeadStatus.QUALIFIED.value, 0), total),
            "conversionRate": _rate(statuses.get(LeadStatus.CLOSED_WON.value, 0), total),
            "averageScore": round(sum(lead.score for lead in leads) / total, 1) if total else 0.0,
            "sourceBreakdown": sources,
            "statusDistribution": statuses,
            "stageDistribution": stages,
        }
