"""Error taxonomy for the request lifecycle.

Errors are carried inside ``Err`` results through the core and only raised
at the HTTP boundary, where a single handler renders them.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from .types import EntityRef, RequestStatus


class RequestError(Exception):
    """Base exception for request lifecycle errors."""
    status_code: int = 500
    error: str = "Request error"
    retryable: bool = False

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def details(self) -> dict[str, Any]:
        return {}

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"error": self.error, "detail": self.message}
        body.update(self.details())
        if self.retryable:
            body["retryable"] = True
        return body


@dataclass(frozen=True, slots=True)
class Violation:
    """A single schema violation."""
    path: str       # JSON path, e.g. "$.party.email"
    message: str
    rule: str = ""  # the schema keyword that failed (required, type, format, ...)


class ValidationError(RequestError):
    """Payload does not match the declared schema."""
    status_code = 422
    error = "Validation failed"

    def __init__(self, violations: list[Violation]):
        super().__init__(f"{len(violations)} schema violation(s)")
        self.violations = violations

    def details(self) -> dict[str, Any]:
        return {
            "violations": [
                {"path": v.path, "message": v.message, "rule": v.rule}
                for v in self.violations
            ]
        }


@dataclass(frozen=True, slots=True)
class InvalidReference:
    """A payload field referencing an id the owning registry does not know."""
    field: str
    entity_type: str
    id: str


class InvalidReferenceError(RequestError):
    """One or more referenced ids do not exist in their remote registries."""
    status_code = 422
    error = "Invalid references"

    def __init__(self, references: list[InvalidReference]):
        fields = ", ".join(r.field for r in references)
        super().__init__(f"Referenced entities not found: {fields}")
        self.references = references

    @property
    def fields(self) -> list[str]:
        return [r.field for r in self.references]

    def details(self) -> dict[str, Any]:
        return {
            "references": [
                {"field": r.field, "entity_type": r.entity_type, "id": r.id}
                for r in self.references
            ]
        }


class ServiceUnavailableError(RequestError):
    """A remote registry could not be reached. Safe to retry."""
    status_code = 503
    error = "Service unavailable"
    retryable = True

    def __init__(self, services: list[str], message: str | None = None):
        super().__init__(message or f"Remote registry unavailable: {', '.join(services)}")
        self.services = services

    def details(self) -> dict[str, Any]:
        return {"services": self.services}


class ConflictError(RequestError):
    """The request is already in a terminal status."""
    status_code = 409
    error = "Conflict"

    def __init__(self, current_status: RequestStatus):
        super().__init__(
            f"Request status is {current_status.value} and cannot be updated"
        )
        self.current_status = current_status

    def details(self) -> dict[str, Any]:
        return {"current_status": self.current_status.value}


class NotFoundError(RequestError):
    """Unknown request id."""
    status_code = 404
    error = "Not found"

    def __init__(self, request_id: str):
        super().__init__(f"Request not found: {request_id}")
        self.request_id = request_id


class UnknownKindError(RequestError):
    """No request kind is defined under this name."""
    status_code = 404
    error = "Unknown request kind"

    def __init__(self, kind: str):
        super().__init__(f"Request kind not defined: {kind}")
        self.kind = kind


class RemoteError(RequestError):
    """
    A remote call failed during the approval pipeline.

    The request status is left at NEW so approval can be retried. When
    ``entity_ref`` is set, the entity was created before the failure and
    was not rolled back.
    """
    status_code = 502
    error = "Remote registry error"
    retryable = True

    def __init__(
        self,
        stage: str,
        message: str,
        entity_ref: EntityRef | None = None,
        retryable: bool = True,
    ):
        super().__init__(f"{stage} failed: {message}")
        self.stage = stage
        self.entity_ref = entity_ref
        self.retryable = retryable

    def details(self) -> dict[str, Any]:
        data: dict[str, Any] = {"stage": self.stage}
        if self.entity_ref is not None:
            data["entity_ref"] = {
                "entity_type": self.entity_ref.entity_type,
                "id": self.entity_ref.id,
            }
        return data


class ForbiddenError(RequestError):
    """Caller is not allowed to see the request or queue."""
    status_code = 403
    error = "Forbidden"

    def __init__(self, message: str = "Caller does not match the request contact"):
        super().__init__(message)
