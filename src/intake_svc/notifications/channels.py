"""Message dispatch channels."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any

import httpx

logger = logging.getLogger(__name__)


class ChannelError(Exception):
    """Raised when a message cannot be dispatched."""
    pass


class MessageChannel(ABC):
    """Sends a rendered message to a destination (email address, phone number, ...)."""

    @abstractmethod
    async def send(self, destination: str, text: str) -> None:
        """
        Dispatch a message.

        Raises:
            ChannelError: On dispatch failure
        """
        ...

    async def close(self) -> None:
        return None


class LoggingChannel(MessageChannel):
    """Writes messages to the log. Default when no messaging service is configured."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, str]] = []

    async def send(self, destination: str, text: str) -> None:
        self.sent.append((destination, text))
        logger.info(f"Message to {destination}: {text}")


class HttpChannel(MessageChannel):
    """Posts messages to a messaging service."""

    def __init__(
        self,
        base_url: str,
        send_path: str = "/messages",
        timeout_seconds: float = 5.0,
        headers: dict[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.send_path = send_path
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout_seconds,
            headers=headers or {},
            transport=transport,
        )

    async def send(self, destination: str, text: str) -> None:
        body: dict[str, Any] = {"to": destination, "body": text}
        try:
            response = await self._client.post(self.send_path, json=body)
        except httpx.HTTPError as e:
            raise ChannelError(f"Failed to send message to {destination}: {e}") from e

        if response.status_code >= 400:
            raise ChannelError(
                f"Messaging service error: {response.status_code} - {response.text[:200]}"
            )

    async def close(self) -> None:
        await self._client.aclose()
