"""Request lifecycle types - domain types for request intake and approval."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Generic, TypeVar

T = TypeVar("T")


class RequestStatus(str, Enum):
    """Status of a request through the approval workflow."""
    NEW = "NEW"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"

    @property
    def is_terminal(self) -> bool:
        return self is not RequestStatus.NEW


@dataclass(slots=True)
class Request:
    """
    A submitted request awaiting (or past) review.

    The payload in ``data`` is opaque to the lifecycle engine. It was
    validated against the kind's schema at submission and is never edited
    afterwards; only ``status``, ``updated_by`` and ``updated_at`` change.
    """
    id: str
    kind: str
    data: dict[str, Any] = field(default_factory=dict)
    status: RequestStatus = RequestStatus.NEW

    created_by: str | None = None
    updated_by: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class RequestFilters:
    """Filters for listing requests. ``None`` means no filter on that field."""
    status: RequestStatus | None = None
    kind: str | None = None
    scope: str | None = None    # value of the kind's scope field, e.g. a legal entity id


@dataclass(frozen=True, slots=True)
class Paging:
    """Page-number pagination."""
    page: int = 1
    page_size: int = 50

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size


@dataclass(frozen=True, slots=True)
class Page(Generic[T]):
    """One page of results, most recent first."""
    entries: list[T]
    page_number: int
    page_size: int
    total_entries: int

    @property
    def total_pages(self) -> int:
        if self.page_size <= 0:
            return 0
        return math.ceil(self.total_entries / self.page_size)


@dataclass(frozen=True, slots=True)
class EntityRef:
    """Reference to an entity materialized in a remote registry."""
    entity_type: str
    id: str
    data: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class CredentialRef:
    """Reference to a role/credential granted for a remote entity."""
    entity_ref: EntityRef
    role: str
    id: str | None = None


@dataclass(frozen=True, slots=True)
class ActorContext:
    """
    Who is acting, and what to forward to remote registries on their behalf.

    ``headers`` are passed through to the entity and credential services so
    they can apply their own authorization.
    """
    actor_id: str
    scope: str | None = None
    email: str | None = None
    headers: dict[str, str] = field(default_factory=dict)
