"""ChannelDispatcher: routes reports to the email or message channel."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from git_reporter.notifications.channels import DispatchResult

if TYPE_CHECKING:
    from git_reporter.notifications.email_channel import EmailChannel
    from git_reporter.notifications.message_channel import MessageChannel

logger = logging.getLogger(__name__)


class ChannelDispatcher:
    """NotificationDispatcher built from concrete channels.

    Either channel may be omitted; sending through a missing channel
    returns a failed result.
    """

    def __init__(
        self,
        email: EmailChannel | None = None,
        message: MessageChannel | None = None,
    ) -> None:
        self._email = email
        self._message = message

    def list_channels(self) -> list[str]:
        """Return names of the configured channels."""
        return [ch.name for ch in (self._email, self._message) if ch is not None]

    async def send_email(self, to: str, subject: str, body: str) -> DispatchResult:
        if self._email is None:
            logger.warning("No email channel configured (to=%s)", to)
            return DispatchResult(
                ok=False, channel="email", recipient=to, error="email channel not configured"
            )
        return await self._email.send_email(to, subject, body)

    async def send_message(self, to: str, body: str) -> DispatchResult:
        if self._message is None:
            logger.warning("No message channel configured (to=%s)", to)
            return DispatchResult(
                ok=False, channel="message", recipient=to, error="message channel not configured"
            )
        return await self._message.send_message(to, body)

    async def close(self) -> None:
        if self._message is not None:
            await self._message.close()
