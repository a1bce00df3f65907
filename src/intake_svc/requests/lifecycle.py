"""Lifecycle state machine - the legal status transitions of a request.

    NEW --approve--> APPROVED
    NEW --reject---> REJECTED

APPROVED and REJECTED are terminal.
"""

from __future__ import annotations

from .errors import ConflictError
from .result import Err, Ok, Result
from .types import Request, RequestStatus

TRANSITIONS: dict[RequestStatus, frozenset[RequestStatus]] = {
    RequestStatus.NEW: frozenset({RequestStatus.APPROVED, RequestStatus.REJECTED}),
    RequestStatus.APPROVED: frozenset(),
    RequestStatus.REJECTED: frozenset(),
}


def can_transition(current: RequestStatus, target: RequestStatus) -> bool:
    return target in TRANSITIONS.get(current, frozenset())


def check_transition(request: Request) -> Result[Request, ConflictError]:
    """
    Guard every mutation path.

    Returns the request unchanged while it is NEW, otherwise a ConflictError
    carrying the current status. The store's conditional write repeats this
    check atomically at commit time.
    """
    if request.status == RequestStatus.NEW:
        return Ok(request)
    return Err(ConflictError(request.status))
