# src/omniflow/leads/lead_store.py

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable
from datetime import datetime

from ..core.ports import CollectionStore
from ..errors import NotFoundError
from .lead_models import Lead, ScheduledEmail, ScheduledEmailStatus

logger = logging.getLogger(__name__)

LEADS_COLLECTION = "leads"
SCHEDULED_EMAILS_COLLECTION = "scheduled_emails"


class LeadStore:
    """
    Lead collection with upsert-by-id semantics.

    update() runs a mutation against the freshly loaded record under the store
    lock, so concurrent interaction/status updates never overwrite each other.
    """

    def __init__(self, backend: CollectionStore, *, collection: str = LEADS_COLLECTION) -> None:
        self._backend = backend
        self._collection = collection
        self._lock = threading.RLock()

    def _load(self) -> list[Lead]:
        out: list[Lead] = []
        for rec in self._backend.read_all(self._collection):
            try:
                out.append(Lead.from_record(rec))
            except (KeyError, TypeError, ValueError):
                logger.warning("Skipping malformed lead record id=%r", rec.get("id"))
        return out

    def _save(self, leads: list[Lead]) -> None:
        self._backend.write_all(self._collection, [lead.to_record() for lead in leads])

    def put(self, lead: Lead) -> None:
        with self._lock:
            leads = self._load()
            for i, existing in enumerate(leads):
                if existing.id == lead.id:
                    leads[i] = lead
                    break
            else:
                leads.append(lead)
            self._save(leads)

    def get(self, lead_id: str) -> Lead | None:
        for lead in self._load():
            if lead.id == lead_id:
                return lead
        return None

    def require(self, lead_id: str) -> Lead:
        lead = self.get(lead_id)
        if lead is None:
            raise NotFoundError(f"Lead not found: {lead_id}")
        return lead

    def list(self) -> list[Lead]:
        return self._load()

    def update(self, lead_id: str, mutate: Callable[[Lead], None]) -> Lead:
        """Apply mutate() to the stored lead and persist it. Raises NotFoundError."""
        with self._lock:
            leads = self._load()
            for lead in leads:
                if lead.id == lead_id:
                    mutate(lead)
                    self._save(leads)
                    return lead
        raise NotFoundError(f"Lead not found: {lead_id}")


class ScheduledEmailStore:
    def __init__(self, backend: CollectionStore, *, collection: str = SCHEDULED_EMAILS_COLLECTION) -> None:
        self._backend = backend
        self._collection = collection
        self._lock = threading.RLock()

    def _load(self) -> list[ScheduledEmail]:
        out: list[ScheduledEmail] = []
        for rec in self._backend.read_all(self._collection):
            try:
                out.append(ScheduledEmail.from_record(rec))
            except (KeyError, TypeError, ValueError):
                logger.warning("Skipping malformed scheduled email id=%r", rec.get("id"))
        return out

    def _save(self, items: list[ScheduledEmail]) -> None:
        self._backend.write_all(self._collection, [e.to_record() for e in items])

    def add_many(self, items: Iterable[ScheduledEmail]) -> None:
        new = list(items)
        if not new:
            return
        with self._lock:
            current = self._load()
            current.extend(new)
            self._save(current)

    def list(
        self,
        status: ScheduledEmailStatus | None = None,
        *,
        lead_id: str | None = None,
    ) -> list[ScheduledEmail]:
        items = self._load()
        if status is not None:
            items = [e for e in items if e.status == status]
        if lead_id is not None:
            items = [e for e in items if e.lead_id == lead_id]
        return items

    def due(self, now: datetime) -> list[ScheduledEmail]:
        """Pending entries with send_at <= now, earliest first."""
        items = [e for e in self._load() if e.status == ScheduledEmailStatus.PENDING and e.send_at <= now]
        items.sort(key=lambda e: e.send_at)
        return items

    def claim(self, email_id: str) -> bool:
        """Flip a pending entry to sending. False if another dispatch got there first."""
        with self._lock:
            items = self._load()
            for e in items:
                if e.id == email_id:
                    if e.status != ScheduledEmailStatus.PENDING:
                        return False
                    e.status = ScheduledEmailStatus.SENDING
                    self._save(items)
                    return True
        return False

    def mark(
        self,
        email_id: str,
        status: ScheduledEmailStatus,
        *,
        at: datetime | None = None,
        error: str | None = None,
    ) -> bool:
        with self._lock:
            items = self._load()
            for e in items:
                if e.id == email_id:
                    e.status = status
                    e.sent_at = at
                    e.error = error
                    self._save(items)
                    return True
        return False

    def cancel_for_lead(self, lead_id: str) -> int:
        with self._lock:
            items = self._load()
            n = 0
            for e in items:
                if e.lead_id == lead_id and e.status == ScheduledEmailStatus.PENDING:
                    e.status = ScheduledEmailStatus.CANCELLED
                    n += 1
            if n:
                self._save(items)
        return n
