"""Request store - persistence boundary for request records.

No business logic lives here. Legality of a status change is decided by the
lifecycle guard; the store only offers an unconditional write and a single
conditional write (compare-and-set on status) that mutation paths use to
close the read-then-write race.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
import uuid
from abc import ABC, abstractmethod
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from .errors import ConflictError, NotFoundError
from .kinds import lookup
from .result import Err, Ok, Result
from .types import Page, Paging, Request, RequestFilters, RequestStatus

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class RequestStore(ABC):
    """Abstract request store."""

    @abstractmethod
    def create(
        self,
        kind: str,
        data: dict[str, Any],
        status: RequestStatus = RequestStatus.NEW,
        actor: str | None = None,
    ) -> Request:
        """Persist a new request with a generated id and fresh timestamps."""
        ...

    @abstractmethod
    def get(self, request_id: str) -> Result[Request, NotFoundError]:
        ...

    @abstractmethod
    def list(
        self,
        filters: RequestFilters,
        paging: Paging,
        scope_fields: dict[str, str | None] | None = None,
    ) -> Page[Request]:
        """
        List requests matching filters, most recent first.

        ``scope_fields`` maps each kind to the payload path holding its scope.
        With a scope filter set, a kind mapped to ``None`` is not bound to any
        organization and always matches; a kind missing from the map never does.
        """
        ...

    @abstractmethod
    def update_status(
        self,
        request_id: str,
        new_status: RequestStatus,
        actor: str | None = None,
    ) -> Result[Request, NotFoundError]:
        """Unconditionally write a status."""
        ...

    @abstractmethod
    def transition_status(
        self,
        request_id: str,
        expected: RequestStatus,
        new_status: RequestStatus,
        actor: str | None = None,
    ) -> Result[Request, NotFoundError | ConflictError]:
        """Write a status only if the stored status still equals ``expected``."""
        ...

    @abstractmethod
    def count_by_status(self) -> dict[str, int]:
        ...

    def close(self) -> None:
        return None


# =============================================================================
# In-memory store
# =============================================================================

class InMemoryRequestStore(RequestStore):
    """
    Thread-safe in-memory request store.

    Returned records are copies, so callers never mutate stored state.
    """

    def __init__(self) -> None:
        self._requests: dict[str, Request] = {}
        self._sequence: dict[str, int] = {}  # insertion order, tie-breaker for equal timestamps
        self._lock = threading.RLock()

    @staticmethod
    def _copy(request: Request) -> Request:
        return replace(request, data=json.loads(json.dumps(request.data)))

    def create(
        self,
        kind: str,
        data: dict[str, Any],
        status: RequestStatus = RequestStatus.NEW,
        actor: str | None = None,
    ) -> Request:
        now = _now()
        request = Request(
            id=str(uuid.uuid4()),
            kind=kind,
            data=json.loads(json.dumps(data)),
            status=status,
            created_by=actor,
            updated_by=actor,
            created_at=now,
            updated_at=now,
        )
        with self._lock:
            self._requests[request.id] = request
            self._sequence[request.id] = len(self._sequence)
        logger.info(f"Request created: {request.id} ({kind})")
        return self._copy(request)

    def get(self, request_id: str) -> Result[Request, NotFoundError]:
        with self._lock:
            request = self._requests.get(request_id)
            if request is None:
                return Err(NotFoundError(request_id))
            return Ok(self._copy(request))

    def list(
        self,
        filters: RequestFilters,
        paging: Paging,
        scope_fields: dict[str, str | None] | None = None,
    ) -> Page[Request]:
        with self._lock:
            matches = [r for r in self._requests.values() if self._matches(r, filters, scope_fields or {})]

        matches.sort(key=lambda r: (r.created_at, self._sequence[r.id]), reverse=True)
        window = matches[paging.offset:paging.offset + paging.page_size]

        return Page(
            entries=[self._copy(r) for r in window],
            page_number=paging.page,
            page_size=paging.page_size,
            total_entries=len(matches),
        )

    @staticmethod
    def _matches(request: Request, filters: RequestFilters, scope_fields: dict[str, str | None]) -> bool:
        if filters.status is not None and request.status != filters.status:
            return False
        if filters.kind is not None and request.kind != filters.kind:
            return False
        if filters.scope is not None:
            if request.kind not in scope_fields:
                return False
            scope_field = scope_fields[request.kind]
            if scope_field and lookup(request.data, scope_field) != filters.scope:
                return False
        return True

    def update_status(
        self,
        request_id: str,
        new_status: RequestStatus,
        actor: str | None = None,
    ) -> Result[Request, NotFoundError]:
        with self._lock:
            request = self._requests.get(request_id)
            if request is None:
                return Err(NotFoundError(request_id))
            self._write_status(request, new_status, actor)
            return Ok(self._copy(request))

    def transition_status(
        self,
        request_id: str,
        expected: RequestStatus,
        new_status: RequestStatus,
        actor: str | None = None,
    ) -> Result[Request, NotFoundError | ConflictError]:
        with self._lock:
            request = self._requests.get(request_id)
            if request is None:
                return Err(NotFoundError(request_id))
            if request.status != expected:
                return Err(ConflictError(request.status))
            self._write_status(request, new_status, actor)
            return Ok(self._copy(request))

    @staticmethod
    def _write_status(request: Request, new_status: RequestStatus, actor: str | None) -> None:
        request.status = new_status
        request.updated_by = actor
        request.updated_at = _now()
        logger.info(f"Request {request.id} status -> {new_status.value}")

    def count_by_status(self) -> dict[str, int]:
        with self._lock:
            counts: dict[str, int] = {s.value: 0 for s in RequestStatus}
            for request in self._requests.values():
                counts[request.status.value] += 1
            counts["total"] = len(self._requests)
            return counts

    def clear(self) -> None:
        with self._lock:
            self._requests.clear()
            self._sequence.clear()


# =============================================================================
# SQLite store
# =============================================================================

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS requests (
    id TEXT PRIMARY KEY,
    kind TEXT NOT NULL,
    data TEXT NOT NULL,
    status TEXT NOT NULL DEFAULT 'NEW',
    created_by TEXT,
    updated_by TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_requests_status ON requests(status);
CREATE INDEX IF NOT EXISTS idx_requests_kind ON requests(kind);
CREATE INDEX IF NOT EXISTS idx_requests_created ON requests(created_at);
"""


def init_db(db_path: str | Path) -> sqlite3.Connection:
    """Open the database and create tables if they don't exist."""
    if str(db_path) != ":memory:":
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(str(db_path), check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.executescript(SCHEMA_SQL)
    conn.commit()
    return conn


class SqliteRequestStore(RequestStore):
    """
    SQLite-backed request store.

    ``data`` is stored as a JSON document. Status changes are single UPDATE
    statements; the conditional form filters on the current status so two
    concurrent transitions cannot both succeed.
    """

    def __init__(self, db_path: str | Path = "requests.db") -> None:
        self.db_path = db_path
        self._conn = init_db(db_path)
        self._lock = threading.Lock()

    @staticmethod
    def _row_to_request(row: sqlite3.Row) -> Request:
        return Request(
            id=row["id"],
            kind=row["kind"],
            data=json.loads(row["data"]),
            status=RequestStatus(row["status"]),
            created_by=row["created_by"],
            updated_by=row["updated_by"],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )

    def _fetch(self, request_id: str) -> Request | None:
        row = self._conn.execute("SELECT * FROM requests WHERE id = ?", (request_id,)).fetchone()
        return self._row_to_request(row) if row else None

    def create(
        self,
        kind: str,
        data: dict[str, Any],
        status: RequestStatus = RequestStatus.NEW,
        actor: str | None = None,
    ) -> Request:
        now = _now()
        request = Request(
            id=str(uuid.uuid4()),
            kind=kind,
            data=json.loads(json.dumps(data)),
            status=status,
            created_by=actor,
            updated_by=actor,
            created_at=now,
            updated_at=now,
        )
        with self._lock:
            self._conn.execute(
                """
                INSERT INTO requests (id, kind, data, status, created_by, updated_by, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    request.id,
                    request.kind,
                    json.dumps(request.data),
                    request.status.value,
                    request.created_by,
                    request.updated_by,
                    now.isoformat(),
                    now.isoformat(),
                ),
            )
            self._conn.commit()
        logger.info(f"Request created: {request.id} ({kind})")
        return request

    def get(self, request_id: str) -> Result[Request, NotFoundError]:
        with self._lock:
            request = self._fetch(request_id)
        if request is None:
            return Err(NotFoundError(request_id))
        return Ok(request)

    def list(
        self,
        filters: RequestFilters,
        paging: Paging,
        scope_fields: dict[str, str | None] | None = None,
    ) -> Page[Request]:
        conditions: list[str] = []
        params: list[Any] = []

        if filters.status is not None:
            conditions.append("status = ?")
            params.append(filters.status.value)

        if filters.kind is not None:
            conditions.append("kind = ?")
            params.append(filters.kind)

        if filters.scope is not None:
            per_kind: list[str] = []
            for kind, scope_field in (scope_fields or {}).items():
                if scope_field:
                    per_kind.append("(kind = ? AND json_extract(data, ?) = ?)")
                    params.extend([kind, f"$.{scope_field}", filters.scope])
                else:
                    per_kind.append("kind = ?")
                    params.append(kind)
            if not per_kind:
                return Page(entries=[], page_number=paging.page, page_size=paging.page_size, total_entries=0)
            conditions.append(f"({' OR '.join(per_kind)})")

        where_clause = f"WHERE {' AND '.join(conditions)}" if conditions else ""

        with self._lock:
            total = self._conn.execute(
                f"SELECT COUNT(*) FROM requests {where_clause}", params
            ).fetchone()[0]
            rows = self._conn.execute(
                f"""
                SELECT * FROM requests {where_clause}
                ORDER BY created_at DESC, rowid DESC
                LIMIT ? OFFSET ?
                """,
                [*params, paging.page_size, paging.offset],
            ).fetchall()

        return Page(
            entries=[self._row_to_request(r) for r in rows],
            page_number=paging.page,
            page_size=paging.page_size,
            total_entries=int(total),
        )

    def update_status(
        self,
        request_id: str,
        new_status: RequestStatus,
        actor: str | None = None,
    ) -> Result[Request, NotFoundError]:
        with self._lock:
            cursor = self._conn.execute(
                "UPDATE requests SET status = ?, updated_by = ?, updated_at = ? WHERE id = ?",
                (new_status.value, actor, _now().isoformat(), request_id),
            )
            self._conn.commit()
            if cursor.rowcount == 0:
                return Err(NotFoundError(request_id))
            request = self._fetch(request_id)

        logger.info(f"Request {request_id} status -> {new_status.value}")
        return Ok(request)

    def transition_status(
        self,
        request_id: str,
        expected: RequestStatus,
        new_status: RequestStatus,
        actor: str | None = None,
    ) -> Result[Request, NotFoundError | ConflictError]:
        with self._lock:
            cursor = self._conn.execute(
                """
                UPDATE requests SET status = ?, updated_by = ?, updated_at = ?
                WHERE id = ? AND status = ?
                """,
                (new_status.value, actor, _now().isoformat(), request_id, expected.value),
            )
            self._conn.commit()
            current = self._fetch(request_id)

        if current is None:
            return Err(NotFoundError(request_id))
        if cursor.rowcount == 0:
            return Err(ConflictError(current.status))

        logger.info(f"Request {request_id} status -> {new_status.value}")
        return Ok(current)

    def count_by_status(self) -> dict[str, int]:
        counts: dict[str, int] = {s.value: 0 for s in RequestStatus}
        with self._lock:
            rows = self._conn.execute(
                "SELECT status, COUNT(*) AS n FROM requests GROUP BY status"
            ).fetchall()
        for row in rows:
            counts[row["status"]] = row["n"]
        counts["total"] = sum(counts[s.value] for s in RequestStatus)
        return counts

    def close(self) -> None:
        with self._lock:
            self._conn.close()
