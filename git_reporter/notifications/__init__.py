"""Notification channels for report delivery."""

from git_reporter.notifications.channels import DispatchResult, NotificationDispatcher
from git_reporter.notifications.dispatcher import ChannelDispatcher
from git_reporter.notifications.email_channel import EmailChannel
from git_reporter.notifications.message_channel import MessageChannel

__all__ = [
    "ChannelDispatcher",
    "DispatchResult",
    "EmailChannel",
    "MessageChannel",
    "NotificationDispatcher",
]
