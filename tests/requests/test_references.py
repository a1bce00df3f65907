"""Tests for remote reference validation."""

import asyncio

import pytest

from intake_svc.registries.base import RegistryRefusedError
from intake_svc.registries.memory import InMemoryRegistry
from intake_svc.requests.errors import InvalidReferenceError, RemoteError, ServiceUnavailableError
from intake_svc.requests.references import FailureReason, RemoteValidator
from intake_svc.requests.result import Err, Ok

from tests.conftest import DIVISION_ID, EMPLOYEE_ID, LEGAL_ENTITY_ID, MISSING_DIVISION_ID

REFERENCE_FIELDS = {
    "legal_entity_id": "legal_entities",
    "division_id": "divisions",
    "employee_id": "employees",
}


class SlowRegistry(InMemoryRegistry):
    """Registry that never answers in time."""

    async def exists(self, entity_type, entity_id):
        await asyncio.sleep(1)
        return True


class RefusingRegistry(InMemoryRegistry):
    """Registry that rejects our credentials for one entity type."""

    async def exists(self, entity_type, entity_id):
        if entity_type == "employees":
            raise RegistryRefusedError(f"registry:{entity_type}", 401)
        return await super().exists(entity_type, entity_id)


class TestValidateReference:
    """Tests for a single reference check."""

    @pytest.mark.asyncio
    async def test_existing_reference(self, registry):
        validator = RemoteValidator(registry)
        result = await validator.validate_reference("division_id", "divisions", DIVISION_ID)
        assert isinstance(result, Ok)

    @pytest.mark.asyncio
    async def test_missing_reference(self, registry):
        validator = RemoteValidator(registry)
        result = await validator.validate_reference("division_id", "divisions", MISSING_DIVISION_ID)

        assert isinstance(result, Err)
        assert result.error.reason == FailureReason.NOT_FOUND
        assert result.error.field == "division_id"

    @pytest.mark.asyncio
    async def test_unreachable_registry(self, registry):
        registry.unavailable.add("divisions")
        validator = RemoteValidator(registry)

        result = await validator.validate_reference("division_id", "divisions", DIVISION_ID)

        assert result.error.reason == FailureReason.UNAVAILABLE
        assert result.error.service == "registry:divisions"

    @pytest.mark.asyncio
    async def test_timeout_is_unavailable(self):
        validator = RemoteValidator(SlowRegistry(), timeout_seconds=0.01)

        result = await validator.validate_reference("division_id", "divisions", DIVISION_ID)

        assert result.error.reason == FailureReason.UNAVAILABLE

    @pytest.mark.asyncio
    async def test_refused_lookup(self):
        result = await RemoteValidator(RefusingRegistry()).validate_reference("employee_id", "employees", EMPLOYEE_ID)

        assert result.error.reason == FailureReason.REFUSED
        assert result.error.service == "registry:employees"


class TestValidateReferences:
    """Tests for aggregated reference checks over a payload."""

    @pytest.mark.asyncio
    async def test_all_references_exist(self, registry):
        payload = {"legal_entity_id": LEGAL_ENTITY_ID, "division_id": DIVISION_ID, "employee_id": EMPLOYEE_ID}
        result = await RemoteValidator(registry).validate_references(payload, REFERENCE_FIELDS)
        assert isinstance(result, Ok)

    @pytest.mark.asyncio
    async def test_aggregates_every_missing_reference(self, registry):
        """Every bad field is reported, not just the first."""
        payload = {
            "legal_entity_id": "ffffffff-ffff-4fff-8fff-ffffffffffff",
            "division_id": MISSING_DIVISION_ID,
            "employee_id": EMPLOYEE_ID,
        }

        result = await RemoteValidator(registry).validate_references(payload, REFERENCE_FIELDS)

        assert isinstance(result, Err)
        assert isinstance(result.error, InvalidReferenceError)
        assert result.error.fields == ["legal_entity_id", "division_id"]

    @pytest.mark.asyncio
    async def test_absent_fields_are_skipped(self, registry):
        payload = {"legal_entity_id": LEGAL_ENTITY_ID}
        result = await RemoteValidator(registry).validate_references(payload, REFERENCE_FIELDS)
        assert result.is_ok()

    @pytest.mark.asyncio
    async def test_nested_reference_path(self, registry):
        payload = {"owner": {"division_id": MISSING_DIVISION_ID}}
        result = await RemoteValidator(registry).validate_references(
            payload, {"owner.division_id": "divisions"},
        )
        assert result.error.fields == ["owner.division_id"]

    @pytest.mark.asyncio
    async def test_unavailable_is_not_conflated_with_not_found(self, registry):
        """An unreachable registry yields a retryable error, even alongside a missing id."""
        registry.unavailable.add("employees")
        payload = {
            "legal_entity_id": LEGAL_ENTITY_ID,
            "division_id": MISSING_DIVISION_ID,
            "employee_id": EMPLOYEE_ID,
        }

        result = await RemoteValidator(registry).validate_references(payload, REFERENCE_FIELDS)

        assert isinstance(result.error, ServiceUnavailableError)
        assert result.error.retryable is True
        assert result.error.services == ["registry:employees"]
        assert result.error.status_code == 503

    @pytest.mark.asyncio
    async def test_registry_is_not_mutated(self, registry):
        payload = {"division_id": MISSING_DIVISION_ID}
        await RemoteValidator(registry).validate_references(payload, REFERENCE_FIELDS)
        assert registry.created == []
        assert registry.grants == []

    @pytest.mark.asyncio
    async def test_refused_lookup_is_not_retryable(self):
        payload = {"division_id": DIVISION_ID, "employee_id": EMPLOYEE_ID}

        result = await RemoteValidator(RefusingRegistry()).validate_references(payload, REFERENCE_FIELDS)

        assert isinstance(result.error, RemoteError)
        assert result.error.retryable is False
        assert result.error.stage == "validate_references"
        assert result.error.status_code == 502
        assert "retryable" not in result.error.to_dict()
