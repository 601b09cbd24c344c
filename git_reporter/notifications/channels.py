"""Dispatch result type and the NotificationDispatcher protocol."""

from dataclasses import dataclass
from typing import Protocol, runtime_checkable


@dataclass
class DispatchResult:
    """Outcome of a single delivery attempt."""

    ok: bool
    channel: str
    recipient: str
    error: str | None = None
    provider_id: str | None = None


@runtime_checkable
class NotificationDispatcher(Protocol):
    """Protocol the report pipeline uses to deliver rendered reports."""

    async def send_email(self, to: str, subject: str, body: str) -> DispatchResult:
        """Send an email. Returns a failed result instead of raising."""
        ...

    async def send_message(self, to: str, body: str) -> DispatchResult:
        """Send a chat message (WhatsApp). Returns a failed result instead of raising."""
        ...
