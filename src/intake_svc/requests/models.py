"""Pydantic models for Request API."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


# =============================================================================
# Response Models
# =============================================================================

class RequestModel(BaseModel):
    """Full representation of a request."""
    id: str
    kind: str
    data: dict[str, Any] = Field(default_factory=dict)
    status: str
    created_by: str | None = None
    updated_by: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class RequestSummaryModel(BaseModel):
    """Request as shown in a review queue."""
    id: str
    kind: str
    status: str
    scope: str | None = None
    created_by: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class PagingModel(BaseModel):
    page_number: int
    page_size: int
    total_entries: int
    total_pages: int


class RequestListResponse(BaseModel):
    """Response for listing requests."""
    data: list[RequestSummaryModel]
    paging: PagingModel


class SubmitRequestResponse(BaseModel):
    """Response after submitting a request."""
    id: str
    kind: str
    status: str
    message: str = ""


class KindModel(BaseModel):
    """A request kind definition as exposed to clients."""
    name: str
    description: str = ""
    entity_type: str
    reference_fields: dict[str, str] = Field(default_factory=dict)
    request_schema: dict[str, Any] = Field(default_factory=dict)
