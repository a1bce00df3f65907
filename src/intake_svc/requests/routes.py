"""FastAPI routes for the request lifecycle."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, Query

from ..identity.extractor import extract_identity
from .models import (
    KindModel,
    PagingModel,
    RequestListResponse,
    RequestModel,
    RequestSummaryModel,
    SubmitRequestResponse,
)
from .service import RequestService
from .types import ActorContext, Paging, Request, RequestFilters, RequestStatus

logger = logging.getLogger(__name__)

# Create router
router = APIRouter(prefix="/requests", tags=["Requests"])

# Configuration - set during app startup
_service: RequestService | None = None


def configure(service: RequestService) -> None:
    """Configure the request routes with the lifecycle service."""
    global _service
    _service = service


def _get_service() -> RequestService:
    """Get the service, raising if not configured."""
    if _service is None:
        raise HTTPException(status_code=503, detail="Request module not initialized")
    return _service


def _request_to_model(req: Request) -> RequestModel:
    return RequestModel(
        id=req.id,
        kind=req.kind,
        data=req.data,
        status=req.status.value,
        created_by=req.created_by,
        updated_by=req.updated_by,
        created_at=req.created_at,
        updated_at=req.updated_at,
    )


def _request_to_summary(req: Request, scope: str | None) -> RequestSummaryModel:
    return RequestSummaryModel(
        id=req.id,
        kind=req.kind,
        status=req.status.value,
        scope=scope,
        created_by=req.created_by,
        created_at=req.created_at,
        updated_at=req.updated_at,
    )


# =============================================================================
# Kinds
# =============================================================================

@router.get("/kinds", response_model=list[KindModel])
async def list_kinds():
    """List the request kinds that can be submitted."""
    service = _get_service()
    return [
        KindModel(
            name=k.name,
            description=k.description,
            entity_type=k.entity_type,
            reference_fields=k.reference_fields,
            request_schema=k.schema,
        )
        for k in service.kinds.all_kinds()
    ]


# =============================================================================
# List / Get Requests
# =============================================================================

@router.get("", response_model=RequestListResponse)
async def list_requests(
    status: str | None = None,
    kind: str | None = None,
    page: int = Query(1, ge=1),
    page_size: int | None = Query(None, ge=1),
    identity: ActorContext = Depends(extract_identity),
):
    """
    List requests in the caller's scope, most recent first.

    Defaults to NEW requests (the review queue).
    """
    service = _get_service()

    filter_status = None
    if status:
        try:
            filter_status = RequestStatus(status.upper())
        except ValueError:
            raise HTTPException(status_code=400, detail=f"Invalid status: {status}")

    paging = Paging(page=page, page_size=page_size or service.paging.default_page_size)
    result = service.list_for_actor(
        identity,
        RequestFilters(status=filter_status, kind=kind),
        paging,
    ).unwrap()

    return RequestListResponse(
        data=[_request_to_summary(r, service.scope_of(r)) for r in result.entries],
        paging=PagingModel(
            page_number=result.page_number,
            page_size=result.page_size,
            total_entries=result.total_entries,
            total_pages=result.total_pages,
        ),
    )


@router.get("/{request_id}", response_model=RequestModel)
async def get_request(request_id: str):
    """Get a single request by ID."""
    service = _get_service()
    return _request_to_model(service.get_request(request_id).unwrap())


@router.get("/{request_id}/invitee", response_model=RequestModel)
async def check_invitee(request_id: str, identity: ActorContext = Depends(extract_identity)):
    """Confirm the authenticated caller is the person the request was issued to."""
    service = _get_service()
    return _request_to_model(service.verify_invitee(request_id, identity.email).unwrap())


# =============================================================================
# Submit Request
# =============================================================================

@router.post("/{kind}", response_model=SubmitRequestResponse, status_code=201)
async def submit_request(
    kind: str,
    payload: dict[str, Any] = Body(...),
    identity: ActorContext = Depends(extract_identity),
):
    """
    Submit a new request of the given kind.

    The payload is validated against the kind's schema, then every referenced
    id is checked against its registry. All problems are reported at once.
    """
    service = _get_service()
    request = (await service.submit_request(kind, payload, identity.actor_id)).unwrap()

    return SubmitRequestResponse(
        id=request.id,
        kind=request.kind,
        status=request.status.value,
        message="Request submitted for review",
    )


# =============================================================================
# Approve / Reject
# =============================================================================

@router.post("/{request_id}/actions/approve", response_model=RequestModel)
async def approve_request(
    request_id: str,
    identity: ActorContext = Depends(extract_identity),
):
    """
    Approve a request.

    Creates the remote entity and its credentials, then marks the request
    APPROVED. On a remote failure the request stays NEW and can be retried.
    """
    service = _get_service()
    return _request_to_model((await service.approve_request(request_id, identity)).unwrap())


@router.post("/{request_id}/actions/reject", response_model=RequestModel)
async def reject_request(
    request_id: str,
    identity: ActorContext = Depends(extract_identity),
):
    """Reject a request."""
    service = _get_service()
    return _request_to_model((await service.reject_request(request_id, identity)).unwrap())
