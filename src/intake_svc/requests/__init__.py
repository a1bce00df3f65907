"""
Request Lifecycle & Approval

Requests are submitted with an opaque payload, validated against their
kind's schema and against remote registries, and stored as NEW. A reviewer
then rejects them, or approves them through a pipeline that materializes
the request in its registry before committing the status change.
"""

from .errors import (
    ConflictError,
    ForbiddenError,
    InvalidReference,
    InvalidReferenceError,
    NotFoundError,
    RemoteError,
    RequestError,
    ServiceUnavailableError,
    UnknownKindError,
    ValidationError,
    Violation,
)
from .result import Err, Ok, Result
from .types import (
    ActorContext,
    CredentialRef,
    EntityRef,
    Page,
    Paging,
    Request,
    RequestFilters,
    RequestStatus,
)

__all__ = [
    "ConflictError",
    "ForbiddenError",
    "InvalidReference",
    "InvalidReferenceError",
    "NotFoundError",
    "RemoteError",
    "RequestError",
    "ServiceUnavailableError",
    "UnknownKindError",
    "ValidationError",
    "Violation",
    "Err",
    "Ok",
    "Result",
    "ActorContext",
    "CredentialRef",
    "EntityRef",
    "Page",
    "Paging",
    "Request",
    "RequestFilters",
    "RequestStatus",
]
