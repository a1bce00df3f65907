"""REST registry client."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

import httpx

from ..governance.circuit_breaker import CircuitBreaker, CircuitBreakerOpen
from ..requests.types import CredentialRef, EntityRef
from .base import RegistryClient, RegistryError, RegistryRefusedError, RegistryUnavailableError

logger = logging.getLogger(__name__)


@dataclass
class RegistryConfig:
    """
    Remote registry configuration.

    Path templates may use {entity_type} and {id}. With no base_url the
    service falls back to the in-memory registry.
    """
    base_url: str | None = None
    timeout_seconds: float = 10.0
    headers: dict[str, str] = field(default_factory=dict)
    exists_path: str = "/{entity_type}/{id}"
    create_path: str = "/{entity_type}"
    grant_path: str = "/{entity_type}/{id}/roles"
    response_path: str = "data"   # where the created object sits in the response body


class RestRegistryClient(RegistryClient):
    """
    Registry client over HTTP.

    Status mapping:
        exists: 2xx -> True, 404 -> False, other 4xx -> refused, 5xx/connect/timeout -> unavailable
        create/grant: 2xx -> ref, 5xx/connect/timeout -> unavailable, other 4xx or unreadable body -> error
    """

    def __init__(
        self,
        config: RegistryConfig,
        circuit_breaker: CircuitBreaker | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not config.base_url:
            raise ValueError("base_url is required for the REST registry client")
        self.config = config
        self.circuit_breaker = circuit_breaker or CircuitBreaker()
        self._client = httpx.AsyncClient(
            base_url=config.base_url,
            timeout=config.timeout_seconds,
            headers=config.headers,
            transport=transport,
        )

    async def exists(self, entity_type: str, entity_id: str) -> bool:
        url = self.config.exists_path.format(entity_type=entity_type, id=entity_id)
        response = await self._request(entity_type, "GET", url)

        if response.status_code == 404:
            return False
        if response.status_code >= 400:
            raise RegistryRefusedError(
                f"registry:{entity_type}",
                response.status_code,
                f"Unexpected status {response.status_code} checking {entity_type}/{entity_id}",
            )
        return True

    async def create_entity(
        self,
        entity_type: str,
        payload: dict[str, Any],
        headers: dict[str, str] | None = None,
    ) -> EntityRef:
        url = self.config.create_path.format(entity_type=entity_type, id="")
        response = await self._request(entity_type, "POST", url, json=payload, headers=headers)

        if response.status_code >= 400:
            raise RegistryError(
                f"Creating {entity_type} failed: {response.status_code} - {response.text[:200]}"
            )

        data = self._extract(self._body(response, f"Creating {entity_type}"))
        if not isinstance(data, dict) or "id" not in data:
            raise RegistryError(f"Creating {entity_type} returned no id")

        return EntityRef(entity_type=entity_type, id=str(data["id"]), data=data)

    async def grant(
        self,
        entity_ref: EntityRef,
        role_spec: dict[str, Any],
        headers: dict[str, str] | None = None,
    ) -> CredentialRef:
        url = self.config.grant_path.format(entity_type=entity_ref.entity_type, id=entity_ref.id)
        response = await self._request(entity_ref.entity_type, "POST", url, json=role_spec, headers=headers)

        if response.status_code >= 400:
            raise RegistryError(
                f"Granting {role_spec.get('role')} to {entity_ref.entity_type}/{entity_ref.id} failed: "
                f"{response.status_code} - {response.text[:200]}"
            )

        data = {}
        if response.content:
            data = self._extract(self._body(response, f"Granting {role_spec.get('role')}"))
        credential_id = data.get("id") if isinstance(data, dict) else None
        return CredentialRef(
            entity_ref=entity_ref,
            role=str(role_spec.get("role", "")),
            id=str(credential_id) if credential_id is not None else None,
        )

    async def _request(
        self,
        entity_type: str,
        method: str,
        url: str,
        json: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """Issue a call through the circuit breaker, mapping transport failures."""
        service_key = f"registry:{entity_type}"
        try:
            self.circuit_breaker.check(service_key)
        except CircuitBreakerOpen as e:
            raise RegistryUnavailableError(service_key, str(e)) from e

        try:
            response = await self._client.request(method, url, json=json, headers=headers)
        except httpx.TimeoutException as e:
            self.circuit_breaker.record_failure(service_key)
            raise RegistryUnavailableError(service_key, f"Timed out calling {url}") from e
        except httpx.TransportError as e:
            self.circuit_breaker.record_failure(service_key)
            raise RegistryUnavailableError(service_key, f"Failed to connect for {url}: {e}") from e

        if response.status_code >= 500:
            self.circuit_breaker.record_failure(service_key)
            logger.warning(f"{method} {url} -> {response.status_code}")
            raise RegistryUnavailableError(service_key, f"{method} {url} returned {response.status_code}")

        self.circuit_breaker.record_success(service_key)
        return response

    @staticmethod
    def _body(response: httpx.Response, action: str) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise RegistryError(f"{action} returned a non-JSON body: {response.text[:200]!r}") from e

    def _extract(self, body: Any) -> Any:
        """Extract the payload using dot notation (e.g. "data")."""
        if not self.config.response_path:
            return body
        data = body
        for key in self.config.response_path.split("."):
            if isinstance(data, dict):
                data = data.get(key)
            else:
                return body
        return data if data is not None else body

    async def close(self) -> None:
        await self._client.aclose()

    @property
    def stats(self) -> dict[str, Any]:
        return {
            "base_url": self.config.base_url,
            "circuit_breaker": self.circuit_breaker.stats,
            "circuits": self.circuit_breaker.snapshot(),
        }
