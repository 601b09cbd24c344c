"""Tests for the email and WhatsApp channels and the ChannelDispatcher."""

import smtplib
from unittest.mock import AsyncMock, MagicMock, patch

import aiohttp
import pytest

from git_reporter.config import Settings
from git_reporter.notifications import (
    ChannelDispatcher,
    DispatchResult,
    EmailChannel,
    MessageChannel,
    NotificationDispatcher,
)
from git_reporter.notifications.message_channel import MAX_MESSAGE_LENGTH

# -- Helpers -------------------------------------------------------------------


def _smtp_settings(**kwargs) -> Settings:
    defaults = {
        "smtp_host": "smtp.test",
        "smtp_port": 2525,
        "smtp_username": "bot@acme.io",
        "smtp_password": "secret",
        "email_from": "reports@acme.io",
    }
    defaults.update(kwargs)
    return Settings(**defaults)


def _twilio_settings(**kwargs) -> Settings:
    defaults = {
        "twilio_account_sid": "AC123",
        "twilio_auth_token": "token",
        "twilio_whatsapp_number": "+15550001111",
    }
    defaults.update(kwargs)
    return Settings(**defaults)


def _mock_session(status: int = 201, json_data: dict | None = None, text: str = "") -> MagicMock:
    mock_resp = AsyncMock()
    mock_resp.status = status
    mock_resp.json = AsyncMock(return_value=json_data or {"sid": "SM123"})
    mock_resp.text = AsyncMock(return_value=text)
    mock_resp.__aenter__ = AsyncMock(return_value=mock_resp)
    mock_resp.__aexit__ = AsyncMock(return_value=False)

    mock_session = MagicMock()
    mock_session.post = MagicMock(return_value=mock_resp)
    mock_session.closed = False
    return mock_session


# -- EmailChannel --------------------------------------------------------------


async def test_email_send_success() -> None:
    channel = EmailChannel(_smtp_settings())

    with patch("git_reporter.notifications.email_channel.smtplib.SMTP") as mock_smtp:
        server = mock_smtp.return_value.__enter__.return_value
        result = await channel.send_email(
            "team@acme.io", "Automated report - acme/api", "line1\nline2"
        )

    assert result.ok is True
    assert result.channel == "email"
    mock_smtp.assert_called_once_with("smtp.test", 2525, timeout=30)
    server.starttls.assert_called_once()
    server.login.assert_called_once_with("bot@acme.io", "secret")
    sent = server.send_message.call_args[0][0]
    assert sent["To"] == "team@acme.io"
    assert sent["From"] == "reports@acme.io"
    assert sent["Subject"] == "Automated report - acme/api"
    assert "line1<br>line2" in sent.get_body(preferencelist=("html",)).get_content()


async def test_email_without_tls() -> None:
    channel = EmailChannel(_smtp_settings(smtp_use_tls=False))

    with patch("git_reporter.notifications.email_channel.smtplib.SMTP") as mock_smtp:
        server = mock_smtp.return_value.__enter__.return_value
        await channel.send_email("team@acme.io", "s", "b")

    server.starttls.assert_not_called()


async def test_email_smtp_error_returns_failure() -> None:
    channel = EmailChannel(_smtp_settings())

    with patch("git_reporter.notifications.email_channel.smtplib.SMTP") as mock_smtp:
        server = mock_smtp.return_value.__enter__.return_value
        server.send_message.side_effect = smtplib.SMTPRecipientsRefused({})
        result = await channel.send_email("team@acme.io", "s", "b")

    assert result.ok is False
    assert result.error is not None


async def test_email_connection_error_returns_failure() -> None:
    channel = EmailChannel(_smtp_settings())

    with patch(
        "git_reporter.notifications.email_channel.smtplib.SMTP",
        side_effect=ConnectionRefusedError("refused"),
    ):
        result = await channel.send_email("team@acme.io", "s", "b")

    assert result.ok is False
    assert "refused" in result.error


@pytest.mark.parametrize("address", ["", "not-an-email", "a@b", "two@@acme.io"])
async def test_email_invalid_address(address: str) -> None:
    result = await EmailChannel(_smtp_settings()).send_email(address, "s", "b")
    assert result.ok is False
    assert result.error == "invalid email address"


async def test_email_not_configured() -> None:
    channel = EmailChannel(Settings())

    with patch("git_reporter.notifications.email_channel.smtplib.SMTP") as mock_smtp:
        result = await channel.send_email("team@acme.io", "s", "b")

    assert result.ok is False
    assert result.error == "email not configured"
    mock_smtp.assert_not_called()


async def test_email_mock_mode_does_not_send() -> None:
    channel = EmailChannel(Settings(email_mock=True))

    with patch("git_reporter.notifications.email_channel.smtplib.SMTP") as mock_smtp:
        result = await channel.send_email("team@acme.io", "s", "b")

    assert result.ok is True
    assert result.provider_id == "mock"
    mock_smtp.assert_not_called()


# -- MessageChannel ------------------------------------------------------------


async def test_message_send_success() -> None:
    channel = MessageChannel(_twilio_settings())
    mock_session = _mock_session(201, {"sid": "SM42"})

    with patch.object(channel, "_get_session", return_value=mock_session):
        result = await channel.send_message("+33600000000", "Report body")

    assert result.ok is True
    assert result.provider_id == "SM42"
    url = mock_session.post.call_args[0][0]
    payload = mock_session.post.call_args.kwargs["data"]
    assert url == "https://api.twilio.com/2010-04-01/Accounts/AC123/Messages.json"
    assert payload == {
        "From": "whatsapp:+15550001111",
        "To": "whatsapp:+33600000000",
        "Body": "Report body",
    }


async def test_message_keeps_existing_prefix() -> None:
    channel = MessageChannel(_twilio_settings(twilio_whatsapp_number="whatsapp:+15550001111"))
    mock_session = _mock_session()

    with patch.object(channel, "_get_session", return_value=mock_session):
        await channel.send_message("whatsapp:+33600000000", "hi")

    payload = mock_session.post.call_args.kwargs["data"]
    assert payload["From"] == "whatsapp:+15550001111"
    assert payload["To"] == "whatsapp:+33600000000"


async def test_message_truncation() -> None:
    channel = MessageChannel(_twilio_settings())
    mock_session = _mock_session()

    with patch.object(channel, "_get_session", return_value=mock_session):
        await channel.send_message("+33600000000", "x" * 2000)

    body = mock_session.post.call_args.kwargs["data"]["Body"]
    assert len(body) == MAX_MESSAGE_LENGTH
    assert body.endswith("...")


async def test_message_http_error() -> None:
    channel = MessageChannel(_twilio_settings())
    mock_session = _mock_session(400, text="Invalid To number")

    with patch.object(channel, "_get_session", return_value=mock_session):
        result = await channel.send_message("+33600000000", "hi")

    assert result.ok is False
    assert result.error == "HTTP 400"


async def test_message_network_error() -> None:
    channel = MessageChannel(_twilio_settings())
    mock_session = MagicMock()
    mock_session.post = MagicMock(side_effect=aiohttp.ClientConnectionError("down"))

    with patch.object(channel, "_get_session", return_value=mock_session):
        result = await channel.send_message("+33600000000", "hi")

    assert result.ok is False
    assert "down" in result.error


async def test_message_not_configured() -> None:
    result = await MessageChannel(Settings()).send_message("+33600000000", "hi")
    assert result.ok is False
    assert result.error == "whatsapp not configured"


async def test_message_missing_recipient() -> None:
    result = await MessageChannel(_twilio_settings()).send_message("  ", "hi")
    assert result.ok is False
    assert result.error == "missing recipient"


# -- ChannelDispatcher ---------------------------------------------------------


def test_dispatcher_satisfies_protocol() -> None:
    assert isinstance(ChannelDispatcher(), NotificationDispatcher)


def test_list_channels() -> None:
    assert ChannelDispatcher().list_channels() == []
    dispatcher = ChannelDispatcher(
        email=EmailChannel(_smtp_settings()), message=MessageChannel(_twilio_settings())
    )
    assert dispatcher.list_channels() == ["email", "message"]


async def test_dispatcher_routes_to_channels() -> None:
    email = MagicMock()
    email.send_email = AsyncMock(return_value=DispatchResult(True, "email", "a@b.io"))
    message = MagicMock()
    message.send_message = AsyncMock(return_value=DispatchResult(True, "message", "+1"))
    message.close = AsyncMock()

    dispatcher = ChannelDispatcher(email=email, message=message)
    await dispatcher.send_email("a@b.io", "subj", "body")
    await dispatcher.send_message("+1", "body")
    await dispatcher.close()

    email.send_email.assert_awaited_once_with("a@b.io", "subj", "body")
    message.send_message.assert_awaited_once_with("+1", "body")
    message.close.assert_awaited_once()


async def test_dispatcher_missing_channel() -> None:
    dispatcher = ChannelDispatcher()

    email_result = await dispatcher.send_email("a@b.io", "s", "b")
    message_result = await dispatcher.send_message("+1", "b")

    assert email_result.ok is False
    assert email_result.error == "email channel not configured"
    assert message_result.ok is False
    assert message_result.error == "message channel not configured"
