"""Request kind definitions - what each kind of request validates and creates."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any


def lookup(data: Any, path: str | list[str]) -> Any:
    """Extract nested data using dot notation ("party.email") or a key list."""
    keys = path.split(".") if isinstance(path, str) else path
    for key in keys:
        if isinstance(data, dict):
            data = data.get(key)
        elif isinstance(data, list) and key.isdigit():
            idx = int(key)
            data = data[idx] if 0 <= idx < len(data) else None
        else:
            return None
    return data


@dataclass(frozen=True, slots=True)
class RoleSpec:
    """
    Role granted to the entity created on approval.

    Either a fixed ``role`` or ``role_field``, a payload path holding the
    role name (e.g. an employee type). ``scope_field`` names the payload
    path whose value scopes the grant.
    """
    role: str | None = None
    role_field: str | None = None
    scope_field: str | None = None

    def resolve(self, data: dict[str, Any]) -> dict[str, Any] | None:
        """Build the grant body for a payload, or None if no role applies."""
        role = self.role
        if self.role_field:
            role = lookup(data, self.role_field) or role
        if not role:
            return None
        spec: dict[str, Any] = {"role": role}
        if self.scope_field:
            spec["scope"] = lookup(data, self.scope_field)
        return spec


@dataclass(slots=True)
class KindDefinition:
    """Everything the lifecycle needs to know about one kind of request."""
    name: str
    schema: dict[str, Any]
    entity_type: str

    # payload path -> remote entity type
    reference_fields: dict[str, str] = field(default_factory=dict)

    scope_field: str | None = None
    contact_path: str | None = None
    role: RoleSpec | None = None

    # lifecycle event (submitted | approved | rejected) -> template id
    templates: dict[str, str] = field(default_factory=dict)

    description: str = ""

    def template_for(self, event: str) -> str | None:
        return self.templates.get(event)


class KindRegistry:
    """Thread-safe registry of request kind definitions."""

    def __init__(self) -> None:
        self._kinds: dict[str, KindDefinition] = {}
        self._lock = threading.RLock()

    def register(self, kind: KindDefinition) -> None:
        with self._lock:
            self._kinds[kind.name] = kind

    def get(self, name: str) -> KindDefinition | None:
        with self._lock:
            return self._kinds.get(name)

    def names(self) -> list[str]:
        with self._lock:
            return sorted(self._kinds)

    def all_kinds(self) -> list[KindDefinition]:
        with self._lock:
            return list(self._kinds.values())

    def __contains__(self, name: str) -> bool:
        with self._lock:
            return name in self._kinds

    def __len__(self) -> int:
        with self._lock:
            return len(self._kinds)


_UUID = {"type": "string", "format": "uuid"}
_DATE = {"type": "string", "format": "date"}


def default_kinds() -> KindRegistry:
    """Built-in kinds: employee requests, legal entity registrations, medication request drafts."""
    registry = KindRegistry()

    registry.register(KindDefinition(
        name="employee_request",
        description="Invite a person to work for a legal entity",
        entity_type="employees",
        schema={
            "type": "object",
            "required": ["legal_entity_id", "position", "start_date", "employee_type", "party"],
            "properties": {
                "legal_entity_id": _UUID,
                "division_id": _UUID,
                "employee_id": _UUID,
                "position": {"type": "string", "minLength": 1},
                "start_date": _DATE,
                "end_date": _DATE,
                "employee_type": {"type": "string", "enum": ["DOCTOR", "HR", "ADMIN", "OWNER", "PHARMACIST"]},
                "party": {
                    "type": "object",
                    "required": ["first_name", "last_name", "email"],
                    "properties": {
                        "first_name": {"type": "string", "minLength": 1},
                        "last_name": {"type": "string", "minLength": 1},
                        "second_name": {"type": "string"},
                        "email": {"type": "string", "format": "email"},
                        "phones": {"type": "array", "items": {"type": "object"}},
                    },
                },
            },
        },
        reference_fields={
            "legal_entity_id": "legal_entities",
            "division_id": "divisions",
            "employee_id": "employees",
        },
        scope_field="legal_entity_id",
        contact_path="party.email",
        role=RoleSpec(role_field="employee_type", scope_field="legal_entity_id"),
        templates={
            "submitted": "employee_request_invitation",
            "approved": "employee_created_notification",
            "rejected": "employee_request_rejected",
        },
    ))

    registry.register(KindDefinition(
        name="legal_entity_request",
        description="Register a legal entity with its owner",
        entity_type="legal_entities",
        schema={
            "type": "object",
            "required": ["name", "edrpou", "type", "email", "owner"],
            "properties": {
                "name": {"type": "string", "minLength": 1},
                "short_name": {"type": "string"},
                "edrpou": {"type": "string", "pattern": "^[0-9]{8,10}$"},
                "type": {"type": "string", "enum": ["MSP", "PHARMACY"]},
                "email": {"type": "string", "format": "email"},
                "owner": {
                    "type": "object",
                    "required": ["first_name", "last_name", "position"],
                    "properties": {
                        "first_name": {"type": "string"},
                        "last_name": {"type": "string"},
                        "position": {"type": "string"},
                    },
                },
            },
        },
        contact_path="email",
        role=RoleSpec(role="OWNER"),
        templates={
            "approved": "legal_entity_registered",
            "rejected": "legal_entity_rejected",
        },
    ))

    registry.register(KindDefinition(
        name="medication_request_request",
        description="Draft of a medication request awaiting sign-off",
        entity_type="medication_requests",
        schema={
            "type": "object",
            "required": [
                "created_at", "started_at", "ended_at",
                "dispense_valid_from", "dispense_valid_to",
                "person_id", "employee_id", "division_id",
                "medication_id", "legal_entity_id", "medication_qty",
            ],
            "properties": {
                "created_at": _DATE,
                "started_at": _DATE,
                "ended_at": _DATE,
                "dispense_valid_from": _DATE,
                "dispense_valid_to": _DATE,
                "person_id": _UUID,
                "employee_id": _UUID,
                "division_id": _UUID,
                "medication_id": _UUID,
                "legal_entity_id": _UUID,
                "medication_qty": {"type": "integer", "minimum": 1},
            },
        },
        reference_fields={
            "person_id": "persons",
            "employee_id": "employees",
            "division_id": "divisions",
            "medication_id": "medications",
            "legal_entity_id": "legal_entities",
        },
        scope_field="legal_entity_id",
    ))

    return registry
