"""Tests for resource and outcome models."""

from __future__ import annotations

import pydantic
import pytest

from fhirkit.models import (
    AdministrativeGender,
    HumanName,
    Issue,
    IssueSeverity,
    IssueType,
    Meta,
    Organization,
    Patient,
    Resource,
    ValidationOutcome,
    parse_resource,
)


class TestResource:
    def test_to_fhir_uses_wire_names_and_drops_unset_fields(self, patient):
        data = patient.to_fhir()
        assert data == {
            "resourceType": "Patient",
            "identifier": [{"system": "system", "value": "example"}],
            "active": True,
            "name": [{"family": "Visser"}],
            "gender": "unknown",
            "birthDate": "2001-03-01",
        }

    def test_accepts_wire_names_on_input(self):
        patient = Patient.model_validate(
            {"resourceType": "Patient", "birthDate": "1990-01-01", "managingOrganization": {"reference": "Organization/1"}}
        )
        assert patient.birth_date == "1990-01-01"
        assert patient.managing_organization.reference == "Organization/1"

    def test_is_frozen(self, patient):
        with pytest.raises(pydantic.ValidationError):
            patient.active = False

    def test_rebuild_returns_new_instance(self, patient):
        renamed = patient.rebuild(name=[HumanName(family="Jansen")])
        assert renamed.name[0].family == "Jansen"
        assert patient.name[0].family == "Visser"
        assert renamed.gender is AdministrativeGender.UNKNOWN
        assert isinstance(renamed, Patient)

    def test_unknown_fields_survive_round_trip(self):
        data = {
            "resourceType": "Patient",
            "id": "1",
            "text": {"status": "generated", "div": "<div>x</div>"},
            "name": [{"family": "Visser"}],
            "communication": [{"language": {"text": "Dutch"}}],
        }
        assert parse_resource(data).to_fhir() == data

    def test_profiles_and_reference(self):
        patient = Patient(id="42", meta=Meta(profile=("http://example.org/p",)))
        assert patient.profiles == ("http://example.org/p",)
        assert patient.reference == "Patient/42"
        assert Patient().profiles == ()
        assert Patient().reference is None


class TestParseResource:
    def test_dispatches_on_resource_type(self):
        assert isinstance(parse_resource({"resourceType": "Patient"}), Patient)
        assert isinstance(parse_resource({"resourceType": "Organization", "name": "ACME"}), Organization)

    def test_unregistered_type_is_generic(self):
        resource = parse_resource({"resourceType": "Observation", "id": "o1", "status": "final"})
        assert type(resource) is Resource
        assert resource.resource_type == "Observation"
        assert resource.to_fhir()["status"] == "final"

    def test_missing_resource_type(self):
        with pytest.raises(ValueError):
            parse_resource({"id": "x"})

    def test_invalid_content_raises(self):
        with pytest.raises(pydantic.ValidationError):
            parse_resource({"resourceType": "Patient", "gender": "bogus"})


class TestValidationOutcome:
    @pytest.mark.parametrize(
        "severities, expected",
        [
            ((), True),
            ((IssueSeverity.INFORMATION, IssueSeverity.WARNING), True),
            ((IssueSeverity.WARNING, IssueSeverity.ERROR), False),
            ((IssueSeverity.FATAL,), False),
        ],
    )
    def test_success_iff_no_error_or_fatal(self, severities, expected):
        outcome = ValidationOutcome(issues=tuple(Issue(severity=s) for s in severities))
        assert outcome.success is expected

    def test_empty_outcome_renders_all_ok(self):
        rendered = ValidationOutcome().to_operation_outcome()
        assert rendered["resourceType"] == "OperationOutcome"
        assert rendered["issue"] == [
            {"severity": "information", "code": "informational", "diagnostics": "All OK"}
        ]
        assert ValidationOutcome.from_operation_outcome(rendered).issues == ()

    def test_issue_location_is_rendered_as_expression(self):
        issue = Issue(
            severity=IssueSeverity.ERROR,
            code=IssueType.VALUE,
            location="Patient.birthDate",
            message="bad date",
        )
        rendered = issue.to_fhir()
        assert rendered["expression"] == ["Patient.birthDate"]
        assert Issue.from_fhir(rendered) == issue

    def test_unknown_issue_code_becomes_processing(self):
        issue = Issue.from_fhir({"severity": "warning", "code": "business-rule", "details": {"text": "hm"}})
        assert issue.code is IssueType.PROCESSING
        assert issue.message == "hm"

    def test_transport_failure_is_not_success(self):
        outcome = ValidationOutcome.transport_failure("connection refused")
        assert not outcome.success
        assert outcome.errors[0].code is IssueType.EXCEPTION

    def test_success_is_serialised(self):
        assert ValidationOutcome().model_dump()["success"] is True
