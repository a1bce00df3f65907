"""Request service - the boundary operations of the request lifecycle.

The HTTP layer is a thin adapter over this class. Every operation returns a
Result; nothing here raises for expected failures.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from ..notifications.notifier import Notifier
from . import schema
from .errors import (
    ForbiddenError,
    InvalidReferenceError,
    NotFoundError,
    RemoteError,
    RequestError,
    ServiceUnavailableError,
    UnknownKindError,
    ValidationError,
)
from .kinds import KindDefinition, KindRegistry, lookup
from .pipeline import ApprovalPipeline
from .references import RemoteValidator
from .result import Err, Ok, Result
from .store import RequestStore
from .types import ActorContext, Page, Paging, Request, RequestFilters, RequestStatus

logger = logging.getLogger(__name__)

SubmissionError = (
    UnknownKindError | ValidationError | InvalidReferenceError | ServiceUnavailableError | RemoteError
)


@dataclass
class PagingConfig:
    """Paging defaults for review queues."""
    default_page_size: int = 50
    max_page_size: int = 500


class RequestService:
    """Submission, review and approval of requests."""

    def __init__(
        self,
        store: RequestStore,
        kinds: KindRegistry,
        validator: RemoteValidator,
        pipeline: ApprovalPipeline,
        notifier: Notifier,
        paging: PagingConfig | None = None,
    ) -> None:
        self.store = store
        self.kinds = kinds
        self.validator = validator
        self.pipeline = pipeline
        self.notifier = notifier
        self.paging = paging or PagingConfig()

    def _kind(self, name: str) -> Result[KindDefinition, UnknownKindError]:
        kind = self.kinds.get(name)
        if kind is None:
            return Err(UnknownKindError(name))
        return Ok(kind)

    # =========================================================================
    # Submission
    # =========================================================================

    async def submit_request(
        self,
        kind_name: str,
        payload: dict[str, Any],
        actor: str,
    ) -> Result[Request, SubmissionError]:
        """
        Validate and persist a new request with status NEW.

        Schema first (cheap, local), then remote references. Nothing is
        stored unless both pass.
        """
        kind_result = self._kind(kind_name)
        if isinstance(kind_result, Err):
            return kind_result
        kind = kind_result.value

        shape = schema.validate(kind.schema, payload)
        if isinstance(shape, Err):
            logger.info(f"Rejected {kind_name} submission by {actor}: {shape.error}")
            return shape

        references = await self.validator.validate_references(payload, kind.reference_fields)
        if isinstance(references, Err):
            logger.info(f"Rejected {kind_name} submission by {actor}: {references.error}")
            return references

        request = self.store.create(kind.name, payload, RequestStatus.NEW, actor)
        logger.info(f"Request {request.id} ({kind.name}) submitted by {actor}")

        await self.notifier.notify(request, kind.template_for("submitted"), kind.contact_path)
        return Ok(request)

    # =========================================================================
    # Queries
    # =========================================================================

    def list_requests(
        self,
        filters: RequestFilters | None = None,
        paging: Paging | None = None,
        scope: str | None = None,
    ) -> Page[Request]:
        """
        List requests for a review queue, most recent first.

        Status defaults to NEW. ``scope`` restricts results to requests whose
        kind scope field (e.g. legal_entity_id) equals it; kinds without a
        scope field are not bound to an organization and always match.
        """
        filters = filters or RequestFilters()
        if filters.status is None:
            filters = RequestFilters(status=RequestStatus.NEW, kind=filters.kind, scope=filters.scope)
        if scope is not None:
            filters = RequestFilters(status=filters.status, kind=filters.kind, scope=scope)

        return self.store.list(filters, self._clamp(paging), self.scope_fields())

    def list_for_actor(
        self,
        actor: ActorContext,
        filters: RequestFilters | None = None,
        paging: Paging | None = None,
    ) -> Result[Page[Request], ForbiddenError]:
        """Review queue of the caller's organization. A caller without one sees nothing."""
        if not actor.scope:
            return Err(ForbiddenError("Caller has no organization scope"))
        return Ok(self.list_requests(filters, paging, scope=actor.scope))

    def scope_fields(self) -> dict[str, str | None]:
        return {kind.name: kind.scope_field for kind in self.kinds.all_kinds()}

    def scope_of(self, request: Request) -> str | None:
        kind = self.kinds.get(request.kind)
        if kind is None or not kind.scope_field:
            return None
        value = lookup(request.data, kind.scope_field)
        return str(value) if value is not None else None

    def _clamp(self, paging: Paging | None) -> Paging:
        if paging is None:
            return Paging(page=1, page_size=self.paging.default_page_size)
        page_size = min(max(paging.page_size, 1), self.paging.max_page_size)
        return Paging(page=max(paging.page, 1), page_size=page_size)

    def get_request(self, request_id: str) -> Result[Request, NotFoundError]:
        return self.store.get(request_id)

    def verify_invitee(self, request_id: str, user_email: str | None) -> Result[Request, RequestError]:
        """Check that the caller is the person the request's contact path points at."""
        result = self.store.get(request_id)
        if isinstance(result, Err):
            return result
        request = result.value

        kind = self.kinds.get(request.kind)
        contact = lookup(request.data, kind.contact_path) if kind and kind.contact_path else None

        if not user_email or not contact or str(contact).lower() != user_email.lower():
            return Err(ForbiddenError())
        return Ok(request)

    # =========================================================================
    # Review
    # =========================================================================

    async def reject_request(self, request_id: str, actor: ActorContext) -> Result[Request, RequestError]:
        fetched = self._fetch_with_kind(request_id)
        if isinstance(fetched, Err):
            return fetched
        request, kind = fetched.value
        return await self.pipeline.reject(request, kind, actor)

    async def approve_request(self, request_id: str, actor: ActorContext) -> Result[Request, RequestError]:
        fetched = self._fetch_with_kind(request_id)
        if isinstance(fetched, Err):
            return fetched
        request, kind = fetched.value
        return await self.pipeline.approve(request, kind, actor)

    def _fetch_with_kind(
        self,
        request_id: str,
    ) -> Result[tuple[Request, KindDefinition], RequestError]:
        return self.store.get(request_id).and_then(
            lambda request: self._kind(request.kind).map(lambda kind: (request, kind))
        )

    def stats(self) -> dict[str, Any]:
        return {
            "requests": self.store.count_by_status(),
            "kinds": self.kinds.names(),
            "notifications": self.notifier.stats,
        }
