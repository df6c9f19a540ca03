"""Validation outcome models.

A ValidationOutcome is produced fresh for every validation call and never
changes afterwards. ``success`` is derived from the issues rather than
stored, so it cannot disagree with them.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, computed_field


class IssueSeverity(str, Enum):
    FATAL = "fatal"
    ERROR = "error"
    WARNING = "warning"
    INFORMATION = "information"

    @property
    def is_failure(self) -> bool:
        return self in (IssueSeverity.FATAL, IssueSeverity.ERROR)


class IssueType(str, Enum):
    """Subset of http://hl7.org/fhir/ValueSet/issue-type used by fhirkit."""

    INVALID = "invalid"
    STRUCTURE = "structure"
    REQUIRED = "required"
    VALUE = "value"
    CODE_INVALID = "code-invalid"
    NOT_FOUND = "not-found"
    EXCEPTION = "exception"
    PROCESSING = "processing"
    INFORMATIONAL = "informational"


class Issue(BaseModel):
    """One validation finding."""

    model_config = ConfigDict(frozen=True)

    severity: IssueSeverity
    code: IssueType = IssueType.PROCESSING
    location: str = Field("", description="FHIRPath-like location, e.g. Patient.name[0].family")
    message: str = ""

    def to_fhir(self) -> dict[str, Any]:
        issue: dict[str, Any] = {
            "severity": self.severity.value,
            "code": self.code.value,
            "diagnostics": self.message,
        }
        if self.location:
            issue["location"] = [self.location]
            issue["expression"] = [self.location]
        return issue

    @classmethod
    def from_fhir(cls, data: dict[str, Any]) -> Issue:
        """Parse one ``OperationOutcome.issue`` entry.

        Unknown issue-type codes are folded into ``processing``.
        """
        try:
            code = IssueType(data.get("code", "processing"))
        except ValueError:
            code = IssueType.PROCESSING
        locations = data.get("expression") or data.get("location") or []
        message = data.get("diagnostics") or (data.get("details") or {}).get("text", "")
        return cls(
            severity=IssueSeverity(data.get("severity", "error")),
            code=code,
            location=locations[0] if locations else "",
            message=message,
        )


_ALL_OK = "All OK"


class ValidationOutcome(BaseModel):
    """Success flag plus the ordered issues behind it."""

    model_config = ConfigDict(frozen=True)

    issues: tuple[Issue, ...] = ()

    @computed_field
    @property
    def success(self) -> bool:
        return not any(issue.severity.is_failure for issue in self.issues)

    @property
    def errors(self) -> tuple[Issue, ...]:
        return tuple(i for i in self.issues if i.severity.is_failure)

    @property
    def warnings(self) -> tuple[Issue, ...]:
        return tuple(i for i in self.issues if i.severity is IssueSeverity.WARNING)

    @classmethod
    def transport_failure(cls, message: str) -> ValidationOutcome:
        """Outcome used when a remote validation never reached the server."""
        return cls(
            issues=(
                Issue(
                    severity=IssueSeverity.FATAL,
                    code=IssueType.EXCEPTION,
                    message=message,
                ),
            )
        )

    def to_operation_outcome(self) -> dict[str, Any]:
        """Render as a FHIR OperationOutcome (issue is 1..*, hence the All OK marker)."""
        issues = [issue.to_fhir() for issue in self.issues]
        if not issues:
            issues = [
                {
                    "severity": IssueSeverity.INFORMATION.value,
                    "code": IssueType.INFORMATIONAL.value,
                    "diagnostics": _ALL_OK,
                }
            ]
        return {"resourceType": "OperationOutcome", "issue": issues}

    @classmethod
    def from_operation_outcome(cls, data: dict[str, Any]) -> ValidationOutcome:
        issues = []
        for raw in data.get("issue", []):
            issue = Issue.from_fhir(raw)
            if (
                issue.severity is IssueSeverity.INFORMATION
                and issue.message == _ALL_OK
                and not issue.location
            ):
                continue
            issues.append(issue)
        return cls(issues=tuple(issues))
