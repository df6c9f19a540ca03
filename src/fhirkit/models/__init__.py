"""Resource, profile, outcome and search models."""

from .outcome import Issue, IssueSeverity, IssueType, ValidationOutcome
from .profile import (
    ElementDefinition,
    ProfileDefinition,
    ValueSetDefinition,
    core_profile_url,
    strip_version,
)
from .resource import (
    Address,
    AdministrativeGender,
    CodeableConcept,
    Coding,
    ContactPoint,
    HumanName,
    Identifier,
    Meta,
    Organization,
    Patient,
    Period,
    Reference,
    Resource,
    parse_resource,
)
from .search import (
    PageDirection,
    SearchEntry,
    SearchFilter,
    SearchParams,
    SearchResult,
    ServerCapabilities,
    SortOrder,
    SummaryType,
)

__all__ = [
    # Resources
    "Resource",
    "Patient",
    "Organization",
    "parse_resource",
    # Datatypes
    "Address",
    "AdministrativeGender",
    "CodeableConcept",
    "Coding",
    "ContactPoint",
    "HumanName",
    "Identifier",
    "Meta",
    "Period",
    "Reference",
    # Outcomes
    "Issue",
    "IssueSeverity",
    "IssueType",
    "ValidationOutcome",
    # Conformance
    "ElementDefinition",
    "ProfileDefinition",
    "ValueSetDefinition",
    "core_profile_url",
    "strip_version",
    # Search
    "PageDirection",
    "SearchEntry",
    "SearchFilter",
    "SearchParams",
    "SearchResult",
    "ServerCapabilities",
    "SortOrder",
    "SummaryType",
]
