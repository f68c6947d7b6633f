# src/omniflow/leads/email.py

"""
Outbound email senders.

- OutboxEmailSender: no transport configured; emails are queued in the
  "emails_to_send" collection with status pending_manual_send.
- SmtpEmailSender: sends via SMTP in a worker thread, logs every attempt in
  "sent_emails", and falls back to the outbox when SMTP fails.
"""

from __future__ import annotations

import asyncio
import logging
import smtplib
import ssl
import threading
import uuid
from email.message import EmailMessage
from email.utils import formataddr, make_msgid
from typing import Any

from ..core.clock import format_timestamp
from ..core.ports import Clock, CollectionStore, EmailSendResult

logger = logging.getLogger(__name__)

OUTBOX_COLLECTION = "emails_to_send"
SENT_LOG_COLLECTION = "sent_emails"

PENDING_MANUAL_SEND = "pending_manual_send"
MANUALLY_SENT = "manually_sent"


class _AppendLog:
    """Append-only collection writer (read-all, append, write-all under a lock)."""

    def __init__(self, backend: CollectionStore, collection: str) -> None:
        self._backend = backend
        self._collection = collection
        self._lock = threading.RLock()

    def append(self, record: dict[str, Any]) -> None:
        with self._lock:
            records = self._backend.read_all(self._collection)
            records.append(record)
            self._backend.write_all(self._collection, records)

    def read(self) -> list[dict[str, Any]]:
        return self._backend.read_all(self._collection)

    def update(self, record_id: str, **changes: Any) -> bool:
        with self._lock:
            records = self._backend.read_all(self._collection)
            for rec in records:
                if rec.get("id") == record_id:
                    rec.update(changes)
                    self._backend.write_all(self._collection, records)
                    return True
        return False


class OutboxEmailSender:
    def __init__(self, backend: CollectionStore, clock: Clock) -> None:
        self._outbox = _AppendLog(backend, OUTBOX_COLLECTION)
        self._clock = clock

    async def send(self, *, to: str, subject: str, content: str, lead_id: str | None = None) -> EmailSendResult:
        message_id = f"outbox_{uuid.uuid4().hex[:12]}"
        self._outbox.append(
            {
                "id": message_id,
                "timestamp": format_timestamp(self._clock.now()),
                "to": to,
                "subject": subject,
                "content": content,
                "leadId": lead_id,
                "status": PENDING_MANUAL_SEND,
            }
        )
        logger.info("Email queued for manual sending to=%s subject=%r", to, subject)
        return EmailSendResult(success=True, message_id=message_id)

    def pending(self) -> list[dict[str, Any]]:
        return [r for r in self._outbox.read() if r.get("status") == PENDING_MANUAL_SEND]

    def mark_sent(self, message_id: str) -> bool:
        return self._outbox.update(
            message_id,
            status=MANUALLY_SENT,
            sentAt=format_timestamp(self._clock.now()),
        )


class SmtpEmailSender:
    """
    SMTP transport.

    smtplib is blocking, so each send runs in asyncio.to_thread().
    """

    def __init__(
        self,
        settings,
        backend: CollectionStore,
        clock: Clock,
        *,
        fallback: OutboxEmailSender | None = None,
    ) -> None:
        host = getattr(settings, "smtp_host", None)
        if not host:
            raise ValueError("SMTP host is not configured")

        self._host = str(host)
        self._port = int(getattr(settings, "smtp_port", 587))
        self._user = getattr(settings, "smtp_user", None)
        self._password = getattr(settings, "smtp_password", None)
        self._use_tls = bool(getattr(settings, "smtp_use_tls", True))
        self._timeout = float(getattr(settings, "webhook_timeout_seconds", 20.0))
        self._from = formataddr(
            (
                str(getattr(settings, "from_name", "OmniFlow")),
                str(getattr(settings, "from_email", "noreply@omniflow.local")),
            )
        )

        self._clock = clock
        self._log = _AppendLog(backend, SENT_LOG_COLLECTION)
        self._fallback = fallback or OutboxEmailSender(backend, clock)

    def _build(self, to: str, subject: str, content: str) -> EmailMessage:
        msg = EmailMessage()
        msg["From"] = self._from
        msg["To"] = to
        msg["Subject"] = subject
        msg["Message-ID"] = make_msgid(domain=self._host)
        msg.set_content(content)
        return msg

    def _send_blocking(self, msg: EmailMessage) -> None:
        with smtplib.SMTP(self._host, self._port, timeout=self._timeout) as smtp:
            if self._use_tls:
                smtp.starttls(context=ssl.create_default_context())
            if self._user and self._password:
                smtp.login(self._user, self._password)
            smtp.send_message(msg)

    async def send(self, *, to: str, subject: str, content: str, lead_id: str | None = None) -> EmailSendResult:
        msg = self._build(to, subject, content)
        try:
            await asyncio.to_thread(self._send_blocking, msg)
            result = EmailSendResult(success=True, message_id=str(msg["Message-ID"]))
            logger.info("Email sent to=%s subject=%r", to, subject)
        except (smtplib.SMTPException, OSError) as e:
            logger.warning("SMTP send failed to=%s: %s", to, e)
            result = EmailSendResult(success=False, error=f"SMTP error: {e}")

        self._log.append(
            {
                "id": f"sent_{uuid.uuid4().hex[:12]}",
                "timestamp": format_timestamp(self._clock.now()),
                "to": to,
                "subject": subject,
                "content": content,
                "leadId": lead_id,
                "status": "sent" if result.success else "failed",
                "messageId": result.message_id,
                "error": result.error,
            }
        )

        if not result.success:
            # Keep the email for manual sending instead of losing it.
            return await self._fallback.send(to=to, subject=subject, content=content, lead_id=lead_id)
        return result


def create_email_sender(settings, backend: CollectionStore, clock: Clock) -> OutboxEmailSender | SmtpEmailSender:
    outbox = OutboxEmailSender(backend, clock)
    if getattr(settings, "smtp_host", None):
        return SmtpEmailSender(settings, backend, clock, fallback=outbox)
    return outbox
