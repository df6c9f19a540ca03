"""Pydantic models for FHIR R4 resources and the datatypes they use.

Models are frozen: once constructed a resource is a value. Use
``Resource.rebuild`` to get a modified copy. Field names are snake_case in
Python and camelCase on the wire; both spellings are accepted on input.
Unknown wire fields are kept so nothing the server sends is lost, and so
the validator can report them.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class FhirModel(BaseModel):
    """Common configuration for every resource and datatype model."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="allow",
    )


# =============================================================================
# Datatypes
# =============================================================================


class AdministrativeGender(str, Enum):
    """http://hl7.org/fhir/ValueSet/administrative-gender"""

    MALE = "male"
    FEMALE = "female"
    OTHER = "other"
    UNKNOWN = "unknown"


class Period(FhirModel):
    start: str | None = None
    end: str | None = None


class Coding(FhirModel):
    system: str | None = None
    version: str | None = None
    code: str | None = None
    display: str | None = None
    user_selected: bool | None = None


class CodeableConcept(FhirModel):
    coding: tuple[Coding, ...] | None = None
    text: str | None = None


class Reference(FhirModel):
    reference: str | None = None
    type: str | None = None
    display: str | None = None


class Identifier(FhirModel):
    use: str | None = None
    type: CodeableConcept | None = None
    system: str | None = None
    value: str | None = None
    period: Period | None = None
    assigner: Reference | None = None


class HumanName(FhirModel):
    use: str | None = None
    text: str | None = None
    family: str | None = None
    given: tuple[str, ...] | None = None
    prefix: tuple[str, ...] | None = None
    suffix: tuple[str, ...] | None = None
    period: Period | None = None


class ContactPoint(FhirModel):
    system: str | None = None
    value: str | None = None
    use: str | None = None
    rank: int | None = None
    period: Period | None = None


class Address(FhirModel):
    use: str | None = None
    type: str | None = None
    text: str | None = None
    line: tuple[str, ...] | None = None
    city: str | None = None
    district: str | None = None
    state: str | None = None
    postal_code: str | None = None
    country: str | None = None
    period: Period | None = None


class Meta(FhirModel):
    version_id: str | None = None
    last_updated: str | None = None
    source: str | None = None
    profile: tuple[str, ...] | None = None


# =============================================================================
# Resources
# =============================================================================


class Resource(FhirModel):
    """Any FHIR resource. Concrete types narrow ``resource_type``."""

    resource_type: str
    id: str | None = None
    meta: Meta | None = None

    @property
    def profiles(self) -> tuple[str, ...]:
        """Profile URLs this instance claims conformance to (meta.profile)."""
        if self.meta is None or not self.meta.profile:
            return ()
        return self.meta.profile

    @property
    def reference(self) -> str | None:
        """Relative reference such as ``Patient/123``, if the id is known."""
        if not self.id:
            return None
        return f"{self.resource_type}/{self.id}"

    def to_fhir(self) -> dict[str, Any]:
        """Serialise to the FHIR JSON wire representation."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    def rebuild(self, **changes: Any) -> Resource:
        """Return a new, re-validated instance with *changes* applied."""
        data = self.model_dump(exclude_none=True)
        data.update(changes)
        return type(self).model_validate(data)


class Patient(Resource):
    resource_type: Literal["Patient"] = "Patient"
    identifier: tuple[Identifier, ...] | None = None
    active: bool | None = None
    name: tuple[HumanName, ...] | None = None
    telecom: tuple[ContactPoint, ...] | None = None
    gender: AdministrativeGender | None = None
    birth_date: str | None = None
    address: tuple[Address, ...] | None = None
    managing_organization: Reference | None = None


class Organization(Resource):
    resource_type: Literal["Organization"] = "Organization"
    identifier: tuple[Identifier, ...] | None = None
    active: bool | None = None
    name: str | None = None
    alias: tuple[str, ...] | None = None
    telecom: tuple[ContactPoint, ...] | None = None
    address: tuple[Address, ...] | None = None
    part_of: Reference | None = None


RESOURCE_MODELS: dict[str, type[Resource]] = {
    "Patient": Patient,
    "Organization": Organization,
}


def parse_resource(data: dict[str, Any]) -> Resource:
    """Build the model registered for ``data["resourceType"]``.

    Types without a dedicated model come back as a generic ``Resource``
    that still carries every field.

    Raises:
        ValueError: If *data* has no resourceType.
        pydantic.ValidationError: If the content does not fit the model.
    """
    resource_type = data.get("resourceType")
    if not resource_type:
        raise ValueError("Resource JSON has no resourceType")
    model = RESOURCE_MODELS.get(resource_type, Resource)
    return model.model_validate(data)
