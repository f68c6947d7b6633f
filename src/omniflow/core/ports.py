# src/omniflow/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The core depends on Protocols instead of concrete implementations.
This keeps the LLM provider, storage backend, clock and email transport
swappable and makes testing easier.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Awaitable, Protocol

Record = dict[str, Any]
# One JSON-serializable row of a collection.


class CompletionClient(Protocol):
    """Opaque text-completion collaborator (OpenAI-compatible)."""

    def complete(
            self,
            system_prompt: str,
            user_prompt: str,
            *,
            max_tokens: int,
            temperature: float,
    ) -> Awaitable[str]: ...


class CollectionStore(Protocol):
    """
    Whole-collection durable store.

    Every mutation in the core is read-all -> modify -> write-all.
    Implementations raise StorageError on I/O failure.
    """

    def read_all(self, collection: str) -> list[Record]: ...
    def write_all(self, collection: str, records: list[Record]) -> None: ...


class Clock(Protocol):
    def now(self) -> datetime: ...


@dataclass(slots=True, frozen=True)
class EmailSendResult:
    success: bool
    message_id: str | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"success": self.success}
        if self.message_id is not None:
            out["messageId"] = self.message_id
        if self.error is not None:
            out["error"] = self.error
        return out


class EmailSender(Protocol):
    """Outbound email transport used by nurturing sequences and email-send steps."""

    def send(
            self,
            *,
            to: str,
            subject: str,
            content: str,
            lead_id: str | None = None,
    ) -> Awaitable[EmailSendResult]: ...
