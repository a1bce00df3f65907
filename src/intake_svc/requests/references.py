"""Remote reference validation - confirm referenced ids exist before accepting a request."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any

from ..registries.base import RegistryClient, RegistryError, RegistryRefusedError, RegistryUnavailableError
from .errors import InvalidReference, InvalidReferenceError, RemoteError, ServiceUnavailableError
from .kinds import lookup
from .result import Err, Ok, Result

logger = logging.getLogger(__name__)


class FailureReason(str, Enum):
    NOT_FOUND = "not_found"
    UNAVAILABLE = "unavailable"
    REFUSED = "refused"


@dataclass(frozen=True, slots=True)
class ReferenceFailure:
    """Why a single reference check failed."""
    field: str
    entity_type: str
    id: str
    reason: FailureReason
    service: str = ""


class RemoteValidator:
    """
    Checks that every foreign id in a payload exists in its owning registry.

    Pure query: no registry is mutated. Checks are independent, so they run
    concurrently and every outcome is collected before deciding.
    """

    def __init__(self, registry: RegistryClient, timeout_seconds: float = 15.0) -> None:
        self.registry = registry
        self.timeout_seconds = timeout_seconds

    async def validate_reference(
        self,
        field_name: str,
        entity_type: str,
        referenced_id: str,
    ) -> Result[None, ReferenceFailure]:
        """Check a single reference."""
        def failure(reason: FailureReason, service: str = "") -> Err[ReferenceFailure]:
            return Err(ReferenceFailure(field_name, entity_type, referenced_id, reason, service))

        try:
            found = await asyncio.wait_for(
                self.registry.exists(entity_type, referenced_id),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning(f"Timed out checking {entity_type}/{referenced_id} for {field_name}")
            return failure(FailureReason.UNAVAILABLE, f"registry:{entity_type}")
        except RegistryUnavailableError as e:
            logger.warning(f"Registry unavailable checking {field_name}: {e}")
            return failure(FailureReason.UNAVAILABLE, e.service)
        except RegistryRefusedError as e:
            logger.error(f"Registry refused lookup for {field_name}: {e}")
            return failure(FailureReason.REFUSED, e.service)
        except RegistryError as e:
            logger.warning(f"Registry error checking {field_name}: {e}")
            return failure(FailureReason.UNAVAILABLE, f"registry:{entity_type}")

        if not found:
            return failure(FailureReason.NOT_FOUND)
        return Ok(None)

    async def validate_references(
        self,
        payload: dict[str, Any],
        reference_fields: dict[str, str],
    ) -> Result[None, InvalidReferenceError | ServiceUnavailableError | RemoteError]:
        """
        Check every reference field present in the payload.

        Fields absent from the payload are skipped; whether they are required
        is the schema's concern.

        Returns:
            Ok(None) if all references exist.
            Err(ServiceUnavailableError) if any registry could not answer,
            since the not-found list would be incomplete.
            Err(RemoteError) if a registry refused a lookup outright; retrying
            will not help, so it is reported as non-retryable.
            Err(InvalidReferenceError) listing every missing reference otherwise.
        """
        checks = []
        for field_name, entity_type in reference_fields.items():
            value = lookup(payload, field_name)
            if value is None:
                continue
            checks.append(self.validate_reference(field_name, entity_type, str(value)))

        if not checks:
            return Ok(None)

        results = await asyncio.gather(*checks)
        failures = [r.error for r in results if isinstance(r, Err)]

        refused = [f for f in failures if f.reason == FailureReason.REFUSED]
        if refused:
            services = ", ".join(sorted({f.service for f in refused}))
            return Err(RemoteError("validate_references", f"lookup refused by {services}", retryable=False))

        unavailable = [f for f in failures if f.reason == FailureReason.UNAVAILABLE]
        if unavailable:
            services = sorted({f.service for f in unavailable})
            return Err(ServiceUnavailableError(services))

        if failures:
            return Err(InvalidReferenceError([
                InvalidReference(field=f.field, entity_type=f.entity_type, id=f.id)
                for f in failures
            ]))

        return Ok(None)
