"""In-memory registry (for tests and local runs without remote registries)."""

from __future__ import annotations

import logging
import threading
import uuid
from typing import Any

from ..requests.types import CredentialRef, EntityRef
from .base import RegistryClient, RegistryError, RegistryUnavailableError

logger = logging.getLogger(__name__)


class InMemoryRegistry(RegistryClient):
    """
    Registry backed by dictionaries.

    Failure injection:
        unavailable: entity types whose registry behaves as unreachable
        fail_create: entity types whose creation fails
        fail_grant: roles whose grant fails
    """

    def __init__(self, entities: dict[str, set[str] | list[str]] | None = None) -> None:
        self._entities: dict[str, dict[str, dict[str, Any]]] = {}
        self._lock = threading.RLock()
        self.grants: list[CredentialRef] = []
        self.created: list[EntityRef] = []

        self.unavailable: set[str] = set()
        self.fail_create: set[str] = set()
        self.fail_grant: set[str] = set()

        for entity_type, ids in (entities or {}).items():
            for entity_id in ids:
                self.add(entity_type, entity_id)

    def add(self, entity_type: str, entity_id: str, data: dict[str, Any] | None = None) -> None:
        """Seed an entity."""
        with self._lock:
            self._entities.setdefault(entity_type, {})[entity_id] = dict(data or {}, id=entity_id)

    def remove(self, entity_type: str, entity_id: str) -> None:
        with self._lock:
            self._entities.get(entity_type, {}).pop(entity_id, None)

    async def exists(self, entity_type: str, entity_id: str) -> bool:
        if entity_type in self.unavailable:
            raise RegistryUnavailableError(f"registry:{entity_type}")
        with self._lock:
            return entity_id in self._entities.get(entity_type, {})

    async def create_entity(
        self,
        entity_type: str,
        payload: dict[str, Any],
        headers: dict[str, str] | None = None,
    ) -> EntityRef:
        if entity_type in self.unavailable:
            raise RegistryUnavailableError(f"registry:{entity_type}")
        if entity_type in self.fail_create:
            raise RegistryError(f"Creating {entity_type} failed")

        entity_id = str(uuid.uuid4())
        with self._lock:
            self._entities.setdefault(entity_type, {})[entity_id] = dict(payload, id=entity_id)
            ref = EntityRef(entity_type=entity_type, id=entity_id, data=dict(payload, id=entity_id))
            self.created.append(ref)

        logger.debug(f"Created {entity_type}/{entity_id}")
        return ref

    async def grant(
        self,
        entity_ref: EntityRef,
        role_spec: dict[str, Any],
        headers: dict[str, str] | None = None,
    ) -> CredentialRef:
        role = str(role_spec.get("role", ""))
        if role in self.fail_grant:
            raise RegistryError(f"Granting {role} failed")

        credential = CredentialRef(entity_ref=entity_ref, role=role, id=str(uuid.uuid4()))
        with self._lock:
            self.grants.append(credential)
        return credential

    @property
    def stats(self) -> dict[str, Any]:
        with self._lock:
            return {
                "entity_types": {k: len(v) for k, v in self._entities.items()},
                "created": len(self.created),
                "grants": len(self.grants),
            }
