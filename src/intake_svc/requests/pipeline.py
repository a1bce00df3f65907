"""Approval pipeline - ordered side effects of approving or rejecting a request.

Approve:
    1. check_transition        request must still be NEW
    2. create_remote_entity    materialize the request in its registry
    3. create_credentials      grant the kind's role to the new entity
    4. commit                  conditional NEW -> APPROVED write
    5. notify                  best-effort, outside the chain

Stages 1-4 form a short-circuiting result chain: the first Err is returned
as-is and later stages never run. Until stage 4 commits, the stored status
stays NEW, so a failed approval can simply be retried. An entity created in
stage 2 is not rolled back if a later stage fails; it is logged as orphaned
for manual reconciliation.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace
from typing import Awaitable, Callable

from ..notifications.notifier import Notifier
from ..registries.base import RegistryClient, RegistryError
from .errors import RemoteError, RequestError
from .kinds import KindDefinition
from .lifecycle import check_transition
from .result import Err, Ok, Result
from .store import RequestStore
from .types import ActorContext, CredentialRef, EntityRef, Request, RequestStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ApprovalState:
    """Values threaded through the approval stages."""
    request: Request
    kind: KindDefinition
    actor: ActorContext
    entity_ref: EntityRef | None = None
    credential_ref: CredentialRef | None = None


Stage = Callable[[ApprovalState], Awaitable[Result[ApprovalState, RequestError]]]


class ApprovalPipeline:
    """Runs the approve and reject transitions with their side effects."""

    def __init__(
        self,
        store: RequestStore,
        registry: RegistryClient,
        notifier: Notifier,
        timeout_seconds: float = 15.0,
    ) -> None:
        self.store = store
        self.registry = registry
        self.notifier = notifier
        self.timeout_seconds = timeout_seconds

    # -------------------------------------------------------------------------
    # Approve
    # -------------------------------------------------------------------------

    async def approve(
        self,
        request: Request,
        kind: KindDefinition,
        actor: ActorContext,
    ) -> Result[Request, RequestError]:
        stages: list[Stage] = [
            self._check_transition,
            self._create_remote_entity,
            self._create_credentials,
            self._commit_approval,
        ]

        result: Result[ApprovalState, RequestError] = Ok(ApprovalState(request, kind, actor))
        for stage in stages:
            result = await stage(result.value)
            if isinstance(result, Err):
                logger.warning(f"Approval of {request.id} stopped at {stage.__name__}: {result.error}")
                return result

        state = result.value
        logger.info(
            f"Request {request.id} approved by {actor.actor_id} -> "
            f"{state.entity_ref.entity_type}/{state.entity_ref.id}"
        )

        await self._notify(state.request, kind, "approved", state.entity_ref)
        return Ok(state.request)

    async def _check_transition(self, state: ApprovalState) -> Result[ApprovalState, RequestError]:
        return check_transition(state.request).map(lambda _: state)

    async def _create_remote_entity(self, state: ApprovalState) -> Result[ApprovalState, RequestError]:
        payload = dict(state.request.data, request_id=state.request.id)
        try:
            entity_ref = await asyncio.wait_for(
                self.registry.create_entity(state.kind.entity_type, payload, state.actor.headers),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            return Err(RemoteError("create_entity", f"timed out after {self.timeout_seconds}s"))
        except RegistryError as e:
            return Err(RemoteError("create_entity", str(e)))

        return Ok(replace(state, entity_ref=entity_ref))

    async def _create_credentials(self, state: ApprovalState) -> Result[ApprovalState, RequestError]:
        role_spec = state.kind.role.resolve(state.request.data) if state.kind.role else None
        if role_spec is None:
            return Ok(state)

        try:
            credential_ref = await asyncio.wait_for(
                self.registry.grant(state.entity_ref, role_spec, state.actor.headers),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            self._log_orphan(state, "credential grant timed out")
            return Err(RemoteError(
                "create_credentials",
                f"timed out after {self.timeout_seconds}s",
                entity_ref=state.entity_ref,
            ))
        except RegistryError as e:
            self._log_orphan(state, str(e))
            return Err(RemoteError("create_credentials", str(e), entity_ref=state.entity_ref))

        return Ok(replace(state, credential_ref=credential_ref))

    async def _commit_approval(self, state: ApprovalState) -> Result[ApprovalState, RequestError]:
        result = self.store.transition_status(
            state.request.id,
            RequestStatus.NEW,
            RequestStatus.APPROVED,
            actor=state.actor.actor_id,
        )
        if isinstance(result, Err):
            # Another flow moved the request on while our remote calls ran.
            self._log_orphan(state, str(result.error))
            return result
        return Ok(replace(state, request=result.value))

    def _log_orphan(self, state: ApprovalState, reason: str) -> None:
        if state.entity_ref is None:
            return
        logger.error(
            f"Orphaned {state.entity_ref.entity_type}/{state.entity_ref.id} "
            f"for request {state.request.id}: {reason}"
        )

    # -------------------------------------------------------------------------
    # Reject
    # -------------------------------------------------------------------------

    async def reject(
        self,
        request: Request,
        kind: KindDefinition,
        actor: ActorContext,
    ) -> Result[Request, RequestError]:
        result = check_transition(request).and_then(
            lambda r: self.store.transition_status(
                r.id, RequestStatus.NEW, RequestStatus.REJECTED, actor=actor.actor_id,
            )
        )
        if isinstance(result, Err):
            return result

        logger.info(f"Request {request.id} rejected by {actor.actor_id}")
        await self._notify(result.value, kind, "rejected")
        return result

    # -------------------------------------------------------------------------
    # Notify
    # -------------------------------------------------------------------------

    async def _notify(
        self,
        request: Request,
        kind: KindDefinition,
        event: str,
        entity_ref: EntityRef | None = None,
    ) -> None:
        extra = {"entity_id": entity_ref.id} if entity_ref else None
        await self.notifier.notify(request, kind.template_for(event), kind.contact_path, extra)
