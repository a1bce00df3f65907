"""Identity extraction from requests.

Authentication happens upstream (API gateway); it forwards the
authenticated consumer as headers, which are read here.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field

from fastapi import HTTPException, Request

from ..requests.types import ActorContext

logger = logging.getLogger(__name__)


@dataclass
class IdentityExtractor:
    """
    Extracts the acting principal from gateway headers.

    - ``X-Consumer-Id``: the actor id (required)
    - ``X-Consumer-Metadata``: JSON with ``client_id`` (the caller's
      organizational scope) and optionally ``email``
    """
    consumer_id_header: str = "X-Consumer-Id"
    metadata_header: str = "X-Consumer-Metadata"
    scope_claim: str = "client_id"
    email_claim: str = "email"

    # Headers forwarded to remote registries on the actor's behalf
    forward_headers: tuple[str, ...] = field(
        default=("x-consumer-id", "x-consumer-metadata", "authorization", "api-key")
    )

    def extract(self, request: Request) -> ActorContext:
        """
        Build the actor context for a request.

        Raises:
            HTTPException: 401 if no consumer id is present
        """
        actor_id = request.headers.get(self.consumer_id_header)
        if not actor_id:
            raise HTTPException(status_code=401, detail=f"Missing {self.consumer_id_header} header")

        metadata = self._parse_metadata(request.headers.get(self.metadata_header))

        forwarded = {
            name: value
            for name, value in request.headers.items()
            if name.lower() in self.forward_headers
        }

        return ActorContext(
            actor_id=actor_id,
            scope=metadata.get(self.scope_claim),
            email=metadata.get(self.email_claim),
            headers=forwarded,
        )

    def _parse_metadata(self, raw: str | None) -> dict:
        if not raw:
            return {}
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning(f"Ignoring malformed {self.metadata_header} header")
            return {}
        return data if isinstance(data, dict) else {}


_default_extractor = IdentityExtractor()


def extract_identity(request: Request) -> ActorContext:
    """FastAPI dependency using the default extractor."""
    return _default_extractor.extract(request)
