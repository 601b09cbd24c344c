"""WhatsApp message channel using the Twilio REST API over aiohttp."""

from __future__ import annotations

import logging

import aiohttp

from git_reporter.config import Settings, settings as default_settings
from git_reporter.notifications.channels import DispatchResult

logger = logging.getLogger(__name__)

# Twilio rejects WhatsApp bodies longer than this
MAX_MESSAGE_LENGTH = 1600

TWILIO_MESSAGES_URL = "https://api.twilio.com/2010-04-01/Accounts/{sid}/Messages.json"


def _whatsapp_address(number: str) -> str:
    number = number.strip()
    return number if number.startswith("whatsapp:") else f"whatsapp:{number}"


class MessageChannel:
    """Sends reports as WhatsApp messages via Twilio."""

    def __init__(self, config: Settings | None = None) -> None:
        self._config = config or default_settings
        self._session: aiohttp.ClientSession | None = None

    @property
    def name(self) -> str:
        return "message"

    def _get_session(self) -> aiohttp.ClientSession:
        """Return (and lazily create) the channel's aiohttp session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                auth=aiohttp.BasicAuth(
                    self._config.twilio_account_sid, self._config.twilio_auth_token
                ),
            )
        return self._session

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()

    async def send_message(self, to: str, body: str) -> DispatchResult:
        """Send a WhatsApp message. Returns a failed DispatchResult on any error."""
        if not self._config.whatsapp_configured:
            logger.error("WhatsApp not configured; missing Twilio credentials")
            return DispatchResult(
                ok=False, channel=self.name, recipient=to, error="whatsapp not configured"
            )
        if not to or not to.strip():
            return DispatchResult(
                ok=False, channel=self.name, recipient=to, error="missing recipient"
            )

        # Truncate to stay under the provider limit
        if len(body) > MAX_MESSAGE_LENGTH:
            body = body[: MAX_MESSAGE_LENGTH - 3] + "..."

        payload = {
            "From": _whatsapp_address(self._config.twilio_whatsapp_number),
            "To": _whatsapp_address(to),
            "Body": body,
        }
        url = TWILIO_MESSAGES_URL.format(sid=self._config.twilio_account_sid)

        session = self._get_session()
        try:
            async with session.post(url, data=payload) as resp:
                if resp.status in (200, 201):
                    data = await resp.json()
                    logger.info("WhatsApp message sent to %s (%d chars)", to, len(body))
                    return DispatchResult(
                        ok=True, channel=self.name, recipient=to, provider_id=data.get("sid")
                    )
                text = await resp.text()
                logger.error("WhatsApp send failed: status=%d body=%s", resp.status, text[:200])
                return DispatchResult(
                    ok=False, channel=self.name, recipient=to, error=f"HTTP {resp.status}"
                )
        except aiohttp.ClientError as exc:
            logger.exception("WhatsApp send failed (network error)")
            return DispatchResult(ok=False, channel=self.name, recipient=to, error=str(exc))
