"""Tests for the request stores (in-memory and SQLite)."""

import pytest

from intake_svc.requests.errors import ConflictError, NotFoundError
from intake_svc.requests.result import Err, Ok
from intake_svc.requests.store import InMemoryRequestStore, SqliteRequestStore
from intake_svc.requests.types import Paging, RequestFilters, RequestStatus

from tests.conftest import LEGAL_ENTITY_ID, OTHER_LEGAL_ENTITY_ID, employee_payload


@pytest.fixture(params=["memory", "sqlite"])
def request_store(request, tmp_path):
    """Each test runs against both store implementations."""
    if request.param == "memory":
        yield InMemoryRequestStore()
    else:
        store = SqliteRequestStore(tmp_path / "requests.db")
        yield store
        store.close()


class TestCreateAndGet:
    """Tests for create/get."""

    def test_create_sets_identity_and_timestamps(self, request_store):
        request = request_store.create("employee_request", employee_payload(), actor="alice")

        assert request.id
        assert request.status == RequestStatus.NEW
        assert request.created_by == "alice"
        assert request.updated_by == "alice"
        assert request.created_at is not None
        assert request.created_at == request.updated_at

    def test_get_round_trip(self, request_store):
        payload = employee_payload()
        created = request_store.create("employee_request", payload, actor="alice")

        result = request_store.get(created.id)

        assert isinstance(result, Ok)
        assert result.value.data == payload
        assert result.value.kind == "employee_request"
        assert result.value.status == RequestStatus.NEW

    def test_get_unknown_id(self, request_store):
        result = request_store.get("does-not-exist")

        assert isinstance(result, Err)
        assert isinstance(result.error, NotFoundError)
        assert result.error.request_id == "does-not-exist"

    def test_stored_payload_is_isolated_from_caller(self, request_store):
        payload = employee_payload()
        created = request_store.create("employee_request", payload, actor="alice")

        payload["position"] = "changed"
        fetched = request_store.get(created.id).unwrap()
        fetched.data["party"]["email"] = "changed@example.com"

        assert request_store.get(created.id).unwrap().data == employee_payload()


class TestStatusWrites:
    """Tests for unconditional and conditional status writes."""

    def test_update_status(self, request_store):
        created = request_store.create("employee_request", employee_payload(), actor="alice")

        updated = request_store.update_status(created.id, RequestStatus.REJECTED, actor="bob").unwrap()

        assert updated.status == RequestStatus.REJECTED
        assert updated.updated_by == "bob"
        assert updated.created_by == "alice"
        assert updated.updated_at >= created.updated_at
        assert updated.data == created.data

    def test_update_status_unknown_id(self, request_store):
        result = request_store.update_status("missing", RequestStatus.APPROVED)
        assert isinstance(result.error, NotFoundError)

    def test_transition_when_expected_status_matches(self, request_store):
        created = request_store.create("employee_request", employee_payload(), actor="alice")

        result = request_store.transition_status(
            created.id, RequestStatus.NEW, RequestStatus.APPROVED, actor="bob",
        )

        assert result.unwrap().status == RequestStatus.APPROVED

    def test_stale_transition_is_refused(self, request_store):
        """Only one of two transitions from NEW can win."""
        created = request_store.create("employee_request", employee_payload(), actor="alice")

        first = request_store.transition_status(created.id, RequestStatus.NEW, RequestStatus.REJECTED, actor="bob")
        second = request_store.transition_status(created.id, RequestStatus.NEW, RequestStatus.APPROVED, actor="carol")

        assert first.is_ok()
        assert isinstance(second.error, ConflictError)
        assert second.error.current_status == RequestStatus.REJECTED
        assert request_store.get(created.id).unwrap().status == RequestStatus.REJECTED

    def test_transition_unknown_id(self, request_store):
        result = request_store.transition_status("missing", RequestStatus.NEW, RequestStatus.APPROVED)
        assert isinstance(result.error, NotFoundError)


class TestList:
    """Tests for filtered, paged listing."""

    def test_most_recent_first(self, request_store):
        ids = [
            request_store.create("employee_request", employee_payload(position=f"P{i}"), actor="alice").id
            for i in range(3)
        ]

        page = request_store.list(RequestFilters(), Paging(page=1, page_size=10))

        assert [r.id for r in page.entries] == list(reversed(ids))
        assert page.total_entries == 3

    def test_status_filter(self, request_store):
        keep = request_store.create("employee_request", employee_payload(), actor="alice")
        done = request_store.create("employee_request", employee_payload(), actor="alice")
        request_store.update_status(done.id, RequestStatus.APPROVED)

        page = request_store.list(RequestFilters(status=RequestStatus.NEW), Paging())

        assert [r.id for r in page.entries] == [keep.id]

    def test_scope_filter(self, request_store):
        mine = request_store.create("employee_request", employee_payload(), actor="alice")
        request_store.create(
            "employee_request",
            employee_payload(legal_entity_id=OTHER_LEGAL_ENTITY_ID),
            actor="alice",
        )

        page = request_store.list(
            RequestFilters(scope=LEGAL_ENTITY_ID),
            Paging(),
            scope_fields={"employee_request": "legal_entity_id"},
        )

        assert [r.id for r in page.entries] == [mine.id]

    def test_scope_filter_per_kind(self, request_store):
        mine = request_store.create("employee_request", employee_payload(), actor="alice")
        clinic = request_store.create("legal_entity_request", {"name": "Clinic"}, actor="alice")
        request_store.create("medication_request_request", {"legal_entity_id": LEGAL_ENTITY_ID}, actor="alice")

        page = request_store.list(
            RequestFilters(scope=LEGAL_ENTITY_ID),
            Paging(),
            scope_fields={"employee_request": "legal_entity_id", "legal_entity_request": None},
        )

        assert {r.id for r in page.entries} == {mine.id, clinic.id}

    def test_scope_filter_without_kinds_matches_nothing(self, request_store):
        request_store.create("employee_request", employee_payload(), actor="alice")

        page = request_store.list(RequestFilters(scope=LEGAL_ENTITY_ID), Paging())

        assert page.entries == []
        assert page.total_entries == 0

    def test_kind_filter(self, request_store):
        request_store.create("employee_request", employee_payload(), actor="alice")
        other = request_store.create("legal_entity_request", {"name": "Clinic"}, actor="alice")

        page = request_store.list(RequestFilters(kind="legal_entity_request"), Paging())

        assert [r.id for r in page.entries] == [other.id]

    def test_paging(self, request_store):
        for i in range(5):
            request_store.create("employee_request", employee_payload(position=f"P{i}"), actor="alice")

        page = request_store.list(RequestFilters(), Paging(page=2, page_size=2))

        assert len(page.entries) == 2
        assert page.page_number == 2
        assert page.total_entries == 5
        assert page.total_pages == 3
        assert [r.data["position"] for r in page.entries] == ["P2", "P1"]

    def test_count_by_status(self, request_store):
        a = request_store.create("employee_request", employee_payload(), actor="alice")
        request_store.create("employee_request", employee_payload(), actor="alice")
        request_store.update_status(a.id, RequestStatus.REJECTED)

        counts = request_store.count_by_status()

        assert counts == {"NEW": 1, "APPROVED": 0, "REJECTED": 1, "total": 2}
