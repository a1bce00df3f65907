"""Base registry client interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from ..requests.types import CredentialRef, EntityRef


class RegistryError(Exception):
    """Base exception for remote registry errors."""
    pass


class RegistryUnavailableError(RegistryError):
    """Raised when the registry cannot be reached (connection, timeout, 5xx)."""

    def __init__(self, service: str, message: str = ""):
        super().__init__(message or f"Registry unavailable: {service}")
        self.service = service


class RegistryRefusedError(RegistryError):
    """Raised when the registry answers a lookup with a client error other than 404."""

    def __init__(self, service: str, status_code: int, message: str = ""):
        super().__init__(message or f"Registry refused lookup: {service} ({status_code})")
        self.service = service
        self.status_code = status_code


class RegistryClient(ABC):
    """
    Abstract client for the remote registries a request refers to.

    One client fronts three services: existence checks used at submission,
    entity creation and role grants used on approval.
    """

    @abstractmethod
    async def exists(self, entity_type: str, entity_id: str) -> bool:
        """
        Check whether an entity exists.

        Raises:
            RegistryUnavailableError: If the owning registry cannot answer
            RegistryRefusedError: If the registry rejects the lookup itself
        """
        ...

    @abstractmethod
    async def create_entity(
        self,
        entity_type: str,
        payload: dict[str, Any],
        headers: dict[str, str] | None = None,
    ) -> EntityRef:
        """
        Materialize an approved request as a durable entity.

        Raises:
            RegistryError: On any failure
        """
        ...

    @abstractmethod
    async def grant(
        self,
        entity_ref: EntityRef,
        role_spec: dict[str, Any],
        headers: dict[str, str] | None = None,
    ) -> CredentialRef:
        """
        Grant a role/credential to a created entity.

        Raises:
            RegistryError: On any failure
        """
        ...

    async def close(self) -> None:
        """Release any held connections."""
        return None

    @property
    def stats(self) -> dict[str, Any]:
        return {}
