"""Lifecycle notifications - template rendering and message dispatch."""

from .channels import ChannelError, HttpChannel, LoggingChannel, MessageChannel
from .notifier import NotificationConfig, Notifier
from .renderer import DEFAULT_TEMPLATES, TemplateError, TemplateRenderer

__all__ = [
    "ChannelError",
    "HttpChannel",
    "LoggingChannel",
    "MessageChannel",
    "NotificationConfig",
    "Notifier",
    "DEFAULT_TEMPLATES",
    "TemplateError",
    "TemplateRenderer",
]
