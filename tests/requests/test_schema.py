"""Tests for payload schema validation."""

import jsonschema
import pytest

from intake_svc.requests.errors import ValidationError
from intake_svc.requests.kinds import default_kinds
from intake_svc.requests.result import Err, Ok
from intake_svc.requests.schema import check_schema, validate

from tests.conftest import employee_payload


@pytest.fixture
def employee_schema():
    return default_kinds().get("employee_request").schema


class TestValidate:
    """Tests for validate()."""

    def test_valid_payload(self, employee_schema):
        payload = employee_payload()
        result = validate(employee_schema, payload)

        assert isinstance(result, Ok)
        assert result.value == payload

    def test_reports_every_violation(self, employee_schema):
        """All violations come back together, not just the first."""
        payload = employee_payload(start_date="not-a-date")
        del payload["position"]
        payload["party"]["email"] = "no-at-sign"

        result = validate(employee_schema, payload)

        assert isinstance(result, Err)
        error = result.error
        assert isinstance(error, ValidationError)
        assert len(error.violations) == 3

        by_path = {v.path: v for v in error.violations}
        assert by_path["$"].rule == "required"
        assert "position" in by_path["$"].message
        assert by_path["$.start_date"].rule == "format"
        assert by_path["$.party.email"].rule == "format"

    def test_type_violation(self, employee_schema):
        result = validate(employee_schema, employee_payload(position=42))

        assert result.is_err()
        [violation] = result.error.violations
        assert violation.path == "$.position"
        assert violation.rule == "type"

    def test_non_object_payload(self, employee_schema):
        result = validate(employee_schema, ["not", "an", "object"])
        assert result.is_err()
        assert result.error.violations[0].rule == "type"

    def test_violations_rendered_in_error_body(self, employee_schema):
        payload = employee_payload()
        del payload["party"]

        body = validate(employee_schema, payload).error.to_dict()

        assert body["error"] == "Validation failed"
        assert body["violations"][0]["path"] == "$"
        assert body["violations"][0]["rule"] == "required"


class TestCheckSchema:
    """Tests for schema self-validation."""

    def test_accepts_builtin_schemas(self):
        for kind in default_kinds().all_kinds():
            check_schema(kind.schema)

    def test_rejects_malformed_schema(self):
        with pytest.raises(jsonschema.SchemaError):
            check_schema({"type": "object", "required": "legal_entity_id"})
