# src/omniflow/leads/lead_models.py

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any

from ..core.clock import format_timestamp, parse_timestamp


class CompanySize(StrEnum):
    STARTUP = "startup"
    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"


class LeadStatus(StrEnum):
    """
    Business status of a lead.

    Statuses are expected to move forward, but skipping is allowed.
    closed_won/closed_lost are terminal by convention (no automatic nurturing).
    """

    NEW = "new"
    CONTACTED = "contacted"
    QUALIFIED = "qualified"
    PROPOSAL_SENT = "proposal_sent"
    CLOSED_WON = "closed_won"
    CLOSED_LOST = "closed_lost"

    @property
    def is_closed(self) -> bool:
        return self in (LeadStatus.CLOSED_WON, LeadStatus.CLOSED_LOST)


class NurturingStage(StrEnum):
    AWARENESS = "awareness"
    CONSIDERATION = "consideration"
    DECISION = "decision"
    RETENTION = "retention"

    @property
    def rank(self) -> int:
        return list(NurturingStage).index(self)


class InteractionType(StrEnum):
    EMAIL_SENT = "email_sent"
    EMAIL_OPENED = "email_opened"
    EMAIL_CLICKED = "email_clicked"
    WEBSITE_VISIT = "website_visit"
    DEMO_REQUESTED = "demo_requested"
    PROPOSAL_VIEWED = "proposal_viewed"


class ScheduledEmailStatus(StrEnum):
    PENDING = "pending"
    SENDING = "sending"
    SENT = "sent"
    FAILED = "failed"
    CANCELLED = "cancelled"


def new_lead_id() -> str:
    return f"lead_{uuid.uuid4().hex[:12]}"


def new_interaction_id() -> str:
    return f"int_{uuid.uuid4().hex[:12]}"


def _required_time(raw: Any, name: str) -> datetime:
    dt = parse_timestamp(raw)
    if dt is None:
        raise ValueError(f"{name} is missing or invalid")
    return dt


@dataclass(slots=True)
class Interaction:
    id: str
    type: str
    timestamp: datetime
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "timestamp": format_timestamp(self.timestamp),
            "metadata": dict(self.metadata),
        }

    @classmethod
    def from_record(cls, rec: dict[str, Any]) -> Interaction:
        return cls(
            id=str(rec["id"]),
            type=str(rec["type"]),
            timestamp=_required_time(rec.get("timestamp"), "timestamp"),
            metadata=dict(rec.get("metadata") or {}),
        )


@dataclass(slots=True)
class Lead:
    id: str
    email: str
    business_name: str
    contact_name: str
    company_size: str
    challenge: str
    source: str
    status: LeadStatus
    score: int
    tags: list[str]
    created_at: datetime
    last_interaction: datetime
    nurturing_stage: NurturingStage
    interactions: list[Interaction] = field(default_factory=list)
    automation_triggers: list[str] = field(default_factory=list)
    phone: str | None = None

    def fields(self) -> dict[str, Any]:
        """Flat attribute view used for trigger predicates and {{field}} substitution."""
        return {
            "id": self.id,
            "email": self.email,
            "businessName": self.business_name,
            "contactName": self.contact_name,
            "companySize": self.company_size,
            "challenge": self.challenge,
            "source": self.source,
            "status": self.status.value,
            "score": self.score,
            "nurturingStage": self.nurturing_stage.value,
            "phone": self.phone,
        }

    def to_record(self) -> dict[str, Any]:
        rec = {
            "id": self.id,
            "email": self.email,
            "businessName": self.business_name,
            "contactName": self.contact_name,
            "companySize": self.company_size,
            "challenge": self.challenge,
            "source": self.source,
            "status": self.status.value,
            "score": self.score,
            "tags": list(self.tags),
            "createdAt": format_timestamp(self.created_at),
            "lastInteraction": format_timestamp(self.last_interaction),
            "interactions": [i.to_record() for i in self.interactions],
            "nurturingStage": self.nurturing_stage.value,
            "automationTriggers": list(self.automation_triggers),
        }
        if self.phone:
            rec["phone"] = self.phone
        return rec

    @classmethod
    def from_record(cls, rec: dict[str, Any]) -> Lead:
        created = _required_time(rec.get("createdAt"), "createdAt")
        return cls(
            id=str(rec["id"]),
            email=str(rec.get("email") or ""),
            business_name=str(rec.get("businessName") or ""),
            contact_name=str(rec.get("contactName") or ""),
            company_size=str(rec.get("companySize") or ""),
            challenge=str(rec.get("challenge") or ""),
            source=str(rec.get("source") or ""),
            status=LeadStatus(rec.get("status") or LeadStatus.NEW),
            score=int(rec.get("score") or 0),
            tags=[str(t) for t in rec.get("tags") or []],
            created_at=created,
            last_interaction=parse_timestamp(rec.get("lastInteraction")) or created,
            nurturing_stage=NurturingStage(rec.get("nurturingStage") or NurturingStage.AWARENESS),
            interactions=[Interaction.from_record(i) for i in rec.get("interactions") or []],
            automation_triggers=[str(s) for s in rec.get("automationTriggers") or []],
            phone=rec.get("phone") or None,
        )


@dataclass(slots=True, frozen=True)
class EmailTemplate:
    id: str
    name: str
    subject: str
    content: str
    stage: NurturingStage
    trigger_delay: int  # whole hours after the sequence starts
    conditions: tuple[str, ...] = ()


@dataclass(slots=True, frozen=True)
class NurturingSequence:
    """
    A named set of delayed emails.

    trigger_conditions are "field:value" predicates over Lead.fields(); all of
    them must hold for the sequence to start.
    """

    id: str
    name: str
    description: str
    trigger_conditions: tuple[str, ...]
    emails: tuple[EmailTemplate, ...]
    is_active: bool = True

    def matches(self, fields: dict[str, Any]) -> bool:
        if not self.trigger_conditions:
            return False
        for cond in self.trigger_conditions:
            key, sep, expected = cond.partition(":")
            if not sep:
                return False
            actual = fields.get(key.strip())
            if actual is None or str(actual) != expected.strip():
                return False
        return True

    def template(self, template_id: str) -> EmailTemplate | None:
        for t in self.emails:
            if t.id == template_id:
                return t
        return None


@dataclass(slots=True)
class ScheduledEmail:
    """One pending send of a sequence template to a lead (persisted so it survives restarts)."""

    id: str
    lead_id: str
    sequence_id: str
    template_id: str
    send_at: datetime
    status: ScheduledEmailStatus
    created_at: datetime
    sent_at: datetime | None = None
    error: str | None = None

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "leadId": self.lead_id,
            "sequenceId": self.sequence_id,
            "templateId": self.template_id,
            "sendAt": format_timestamp(self.send_at),
            "status": self.status.value,
            "createdAt": format_timestamp(self.created_at),
            "sentAt": format_timestamp(self.sent_at),
            "error": self.error,
        }

    @classmethod
    def from_record(cls, rec: dict[str, Any]) -> ScheduledEmail:
        return cls(
            id=str(rec["id"]),
            lead_id=str(rec["leadId"]),
            sequence_id=str(rec["sequenceId"]),
            template_id=str(rec["templateId"]),
            send_at=_required_time(rec.get("sendAt"), "sendAt"),
            status=ScheduledEmailStatus(rec.get("status") or ScheduledEmailStatus.PENDING),
            created_at=_required_time(rec.get("createdAt"), "createdAt"),
            sent_at=parse_timestamp(rec.get("sentAt")),
            error=rec.get("error") or None,
        )
