"""Best-effort notifier for request lifecycle events."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any

from ..requests.kinds import lookup
from ..requests.types import Request
from .channels import MessageChannel
from .renderer import TemplateRenderer, request_context

logger = logging.getLogger(__name__)


@dataclass
class NotificationConfig:
    """Notification configuration."""
    enabled: bool = True
    channel: str = "log"  # log | http
    base_url: str | None = None
    send_path: str = "/messages"
    timeout_seconds: float = 5.0
    templates: dict[str, str] = field(default_factory=dict)


class Notifier:
    """
    Renders a template from a request and dispatches it.

    Never raises: a notification is sent after the authoritative state
    change has been committed, and its failure must not overturn it.
    """

    def __init__(
        self,
        renderer: TemplateRenderer,
        channel: MessageChannel,
        enabled: bool = True,
        timeout_seconds: float = 5.0,
    ) -> None:
        self.renderer = renderer
        self.channel = channel
        self.enabled = enabled
        self.timeout_seconds = timeout_seconds
        self._sent = 0
        self._failed = 0

    async def notify(
        self,
        request: Request,
        template_id: str | None,
        contact_path: str | None,
        extra: dict[str, Any] | None = None,
    ) -> bool:
        """
        Notify the request's contact.

        A missing template, contact path or contact value is a no-op.

        Returns:
            True if a message was dispatched
        """
        if not self.enabled or not template_id or not contact_path:
            return False

        destination = lookup(request.data, contact_path)
        if not destination:
            logger.debug(f"No contact at {contact_path} for request {request.id}, skipping notification")
            return False

        try:
            text = self.renderer.render(template_id, request_context(request, extra))
            await asyncio.wait_for(
                self.channel.send(str(destination), text),
                timeout=self.timeout_seconds,
            )
        except Exception as e:
            self._failed += 1
            logger.error(f"Notification {template_id} for request {request.id} failed: {e}")
            return False

        self._sent += 1
        logger.info(f"Notification {template_id} sent for request {request.id}")
        return True

    @property
    def stats(self) -> dict[str, Any]:
        return {"enabled": self.enabled, "sent": self._sent, "failed": self._failed}
