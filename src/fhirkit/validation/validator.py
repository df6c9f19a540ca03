"""Local profile validation.

The validator checks a resource against its base type profile plus every
profile it declares in ``meta.profile``. Problems with the instance, and
profiles that cannot be resolved, are reported as issues; ``validate``
does not raise for them.

Walk order is the instance's own key order, so issues come out grouped by
profile and then in document order. Missing required children are
reported after the children that are present.
"""

from __future__ import annotations

import logging
import re
from datetime import date
from typing import Any, Iterable

from ..errors import NotFound
from ..models.outcome import Issue, IssueSeverity, IssueType, ValidationOutcome
from ..models.profile import ElementDefinition, ProfileDefinition, core_profile_url
from ..models.resource import Resource
from ..source.cached import canonical_key
from .settings import ValidationSettings

logger = logging.getLogger(__name__)

_YEAR = r"([0-9]([0-9]([0-9][1-9]|[1-9]0)|[1-9]00)|[1-9]000)"
_MONTH = r"(0[1-9]|1[0-2])"
_DAY = r"(0[1-9]|[1-2][0-9]|3[0-1])"
_TIME = r"([01][0-9]|2[0-3]):[0-5][0-9]:([0-5][0-9]|60)(\.[0-9]+)?"
_ZONE = r"(Z|(\+|-)((0[0-9]|1[0-3]):[0-5][0-9]|14:00))"

_PATTERNS = {
    "date": re.compile(rf"{_YEAR}(-{_MONTH}(-{_DAY})?)?"),
    "dateTime": re.compile(rf"{_YEAR}(-{_MONTH}(-{_DAY}(T{_TIME}{_ZONE})?)?)?"),
    "instant": re.compile(rf"{_YEAR}-{_MONTH}-{_DAY}T{_TIME}{_ZONE}"),
    "time": re.compile(_TIME),
    "code": re.compile(r"[^\s]+( [^\s]+)*"),
    "id": re.compile(r"[A-Za-z0-9\-\.]{1,64}"),
    "uri": re.compile(r"\S*"),
    "url": re.compile(r"\S*"),
    "canonical": re.compile(r"\S*"),
    "oid": re.compile(r"urn:oid:[0-2](\.(0|[1-9][0-9]*))+"),
    "uuid": re.compile(r"urn:uuid:[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}"),
}

STRING_TYPES = {
    "string", "markdown", "code", "id", "uri", "url", "canonical", "oid", "uuid",
    "base64Binary", "date", "dateTime", "instant", "time", "xhtml",
}
PRIMITIVE_TYPES = STRING_TYPES | {"boolean", "integer", "positiveInt", "unsignedInt", "decimal"}

# Structural supertypes without a profile of their own in the archive
_ABSTRACT_TYPES = {"Element", "BackboneElement"}


def _json_type(value: Any) -> str:
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    if isinstance(value, dict):
        return "object"
    return "null"


def check_primitive(type_name: str, value: Any) -> str | None:
    """Return a problem description if *value* is not a valid *type_name*."""
    if type_name == "boolean":
        if not isinstance(value, bool):
            return f"Expected a boolean, found {_json_type(value)}"
        return None

    if type_name in ("integer", "positiveInt", "unsignedInt"):
        if isinstance(value, bool) or not isinstance(value, int):
            return f"Expected an integer, found {_json_type(value)}"
        if type_name == "positiveInt" and value < 1:
            return f"Value {value} is not a positiveInt"
        if type_name == "unsignedInt" and value < 0:
            return f"Value {value} is not an unsignedInt"
        return None

    if type_name == "decimal":
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return f"Expected a decimal, found {_json_type(value)}"
        return None

    if not isinstance(value, str):
        return f"Expected a string for type '{type_name}', found {_json_type(value)}"

    pattern = _PATTERNS.get(type_name)
    if pattern is not None and not pattern.fullmatch(value):
        return f"Value '{value}' does not match the format of type '{type_name}'"

    # The regexes accept 2001-02-30; the calendar does not
    if type_name in ("date", "dateTime", "instant") and len(value) >= 10:
        try:
            date.fromisoformat(value[:10])
        except ValueError:
            return f"Value '{value}' is not a valid calendar date"
    return None


def matches_pattern(value: Any, pattern: Any) -> bool:
    """FHIR pattern[x] semantics: everything in *pattern* must appear in *value*."""
    if isinstance(pattern, dict):
        return isinstance(value, dict) and all(
            key in value and matches_pattern(value[key], expected)
            for key, expected in pattern.items()
        )
    if isinstance(pattern, list):
        return isinstance(value, list) and all(
            any(matches_pattern(item, expected) for item in value) for expected in pattern
        )
    return value == pattern


def _overlay(primary: ElementDefinition, fallback: ElementDefinition) -> ElementDefinition:
    """Fields explicitly set on *primary* win; the rest come from *fallback*."""
    data = fallback.model_dump()
    data.update({name: getattr(primary, name) for name in primary.model_fields_set})
    data["path"] = primary.path
    return ElementDefinition(**data)


# A scope is a profile plus the element path inside it that describes the
# object currently being walked
Scope = tuple[ProfileDefinition, str]


class _ValidationRun:
    """State for one ``Validator.validate`` call."""

    def __init__(self, settings: ValidationSettings, resource_type: str):
        self._settings = settings
        self._resolver = settings.resolver
        self._resource_type = resource_type
        self._issues: list[Issue] = []
        self._seen: set[tuple[str, str, str, str]] = set()
        self._datatypes: dict[str, ProfileDefinition | None] = {}

    @property
    def issues(self) -> tuple[Issue, ...]:
        return tuple(self._issues)

    def add(self, severity: IssueSeverity, code: IssueType, location: str, message: str) -> None:
        key = (severity.value, code.value, location, message)
        if key in self._seen:
            return
        self._seen.add(key)
        self._issues.append(Issue(severity=severity, code=code, location=location, message=message))

    # ------------------------------------------------------------------
    # Profiles
    # ------------------------------------------------------------------

    def check_profile(self, url: str, data: dict[str, Any]) -> None:
        try:
            profile = self._resolver.resolve(url)
        except NotFound:
            self.add(
                IssueSeverity.FATAL,
                IssueType.NOT_FOUND,
                self._resource_type,
                f"Unable to resolve reference to profile '{url}'",
            )
            return

        if profile.type != self._resource_type:
            self.add(
                IssueSeverity.ERROR,
                IssueType.INVALID,
                self._resource_type,
                f"Profile '{url}' constrains {profile.type}, not {self._resource_type}",
            )
            return

        self._walk_object(data, self._resource_type, [(profile, profile.type)], is_root=True)

    def _datatype_profile(self, type_name: str) -> ProfileDefinition | None:
        if not self._settings.resolve_datatype_profiles or type_name in _ABSTRACT_TYPES:
            return None
        if type_name not in self._datatypes:
            try:
                self._datatypes[type_name] = self._resolver.resolve(type_name)
            except NotFound:
                logger.debug("[VALIDATOR] No profile for datatype %s, not descending", type_name)
                self._datatypes[type_name] = None
        return self._datatypes[type_name]

    # ------------------------------------------------------------------
    # Instance walk
    # ------------------------------------------------------------------

    @staticmethod
    def _child_definitions(scopes: list[Scope]) -> dict[str, ElementDefinition]:
        """Merge children of every scope; earlier scopes take precedence."""
        merged: dict[str, ElementDefinition] = {}
        for profile, path in reversed(scopes):
            for element in profile.children(path):
                existing = merged.get(element.name)
                merged[element.name] = element if existing is None else _overlay(element, existing)
        return merged

    @staticmethod
    def _match(
        definitions: dict[str, ElementDefinition], key: str
    ) -> tuple[ElementDefinition, str | None] | None:
        element = definitions.get(key)
        if element is not None and not element.is_choice:
            return element, element.types[0] if len(element.types) == 1 else None
        for element in definitions.values():
            if not element.is_choice or not key.startswith(element.choice_prefix):
                continue
            suffix = key[len(element.choice_prefix):]
            for type_name in element.types:
                if type_name[:1].upper() + type_name[1:] == suffix:
                    return element, type_name
        return None

    def _walk_object(
        self,
        obj: dict[str, Any],
        location: str,
        scopes: list[Scope],
        is_root: bool = False,
    ) -> None:
        definitions = self._child_definitions(scopes)
        if not definitions:
            # Nothing is known about this structure (Extension, Narrative, ...)
            return

        present: set[str] = set()
        for key, value in obj.items():
            if is_root and key == "resourceType":
                continue
            # _birthDate etc. carry id/extensions of a primitive sibling
            lookup = key[1:] if key.startswith("_") else key
            match = self._match(definitions, lookup)
            if match is None:
                self.add(
                    self._settings.unknown_element_severity,
                    IssueType.STRUCTURE,
                    f"{location}.{key}",
                    f"Encountered unknown element '{key}' at location '{location}'",
                )
                continue
            if key.startswith("_"):
                continue
            element, type_name = match
            present.add(element.name)
            child_scopes = [(profile, f"{path}.{element.name}") for profile, path in scopes]
            self._check_element(element, type_name, key, value, location, child_scopes)

        for name, element in definitions.items():
            if element.min > 0 and name not in present:
                self.add(
                    IssueSeverity.ERROR,
                    IssueType.REQUIRED,
                    location,
                    f"Instance count for '{element.path}' is 0, which is not within "
                    f"the specified cardinality of {element.cardinality}",
                )

    def _check_element(
        self,
        element: ElementDefinition,
        type_name: str | None,
        key: str,
        value: Any,
        location: str,
        child_scopes: list[Scope],
    ) -> None:
        here = f"{location}.{key}"

        if isinstance(value, list):
            if not element.is_repeating:
                self.add(
                    IssueSeverity.ERROR,
                    IssueType.STRUCTURE,
                    here,
                    f"Element '{key}' is not repeating (max {element.base_max or element.max}) "
                    "but has an array value",
                )
            items = [(f"{here}[{i}]", item) for i, item in enumerate(value)]
        else:
            if element.is_repeating:
                self.add(
                    IssueSeverity.ERROR,
                    IssueType.STRUCTURE,
                    here,
                    f"Element '{key}' is repeating and must be an array",
                )
            items = [(here, value)]

        count = len(items)
        max_count = element.max_count
        if count < element.min or (max_count is not None and count > max_count):
            self.add(
                IssueSeverity.ERROR,
                IssueType.REQUIRED,
                here,
                f"Instance count for '{element.path}' is {count}, which is not within "
                f"the specified cardinality of {element.cardinality}",
            )
        if not items:
            self.add(IssueSeverity.ERROR, IssueType.VALUE, here, "Arrays must not be empty")

        for item_location, item in items:
            self._check_value(element, type_name, item, item_location, child_scopes)

    def _check_value(
        self,
        element: ElementDefinition,
        type_name: str | None,
        value: Any,
        location: str,
        child_scopes: list[Scope],
    ) -> None:
        if value is None or value == "" or value == {} or value == []:
            self.add(
                IssueSeverity.ERROR,
                IssueType.VALUE,
                location,
                "Elements must have a value or children",
            )
            return

        if type_name is None and element.types:
            type_name = element.types[0]

        if type_name in PRIMITIVE_TYPES:
            problem = check_primitive(type_name, value)
            if problem:
                self.add(IssueSeverity.ERROR, IssueType.VALUE, location, problem)
                return
        else:
            if not isinstance(value, dict):
                self.add(
                    IssueSeverity.ERROR,
                    IssueType.STRUCTURE,
                    location,
                    f"Expected a complex value of type '{type_name or 'BackboneElement'}', "
                    f"found {_json_type(value)}",
                )
                return
            scopes = list(child_scopes)
            datatype = self._datatype_profile(type_name) if type_name else None
            if datatype is not None:
                scopes.append((datatype, datatype.type))
            self._walk_object(value, location, scopes)

        if element.fixed is not None and value != element.fixed:
            self.add(
                IssueSeverity.ERROR,
                IssueType.VALUE,
                location,
                f"Value is not exactly equal to fixed value {element.fixed!r}",
            )
        if element.pattern is not None and not matches_pattern(value, element.pattern):
            self.add(
                IssueSeverity.ERROR,
                IssueType.VALUE,
                location,
                f"Value does not match pattern {element.pattern!r}",
            )
        if element.binding_strength == "required" and element.value_set:
            self._check_binding(element.value_set, type_name, value, location)

    def _check_binding(self, value_set_url: str, type_name: str | None, value: Any, location: str) -> None:
        try:
            value_set = self._resolver.resolve_value_set(value_set_url)
        except NotFound:
            self.add(
                IssueSeverity.WARNING,
                IssueType.NOT_FOUND,
                location,
                f"Unable to resolve value set '{value_set_url}', binding not checked",
            )
            return

        if type_name == "CodeableConcept":
            codings = [c for c in value.get("coding", []) if isinstance(c, dict) and c.get("code")]
            if not codings:
                return
            if any(value_set.contains(c["code"], c.get("system")) for c in codings):
                return
            shown = ", ".join(c["code"] for c in codings)
        elif type_name == "Coding":
            if not value.get("code"):
                return
            if value_set.contains(value["code"], value.get("system")):
                return
            shown = value["code"]
        elif isinstance(value, str):
            if value_set.contains(value):
                return
            shown = value
        else:
            return

        self.add(
            IssueSeverity.ERROR,
            IssueType.CODE_INVALID,
            location,
            f"Code '{shown}' is not a member of the required value set '{value_set.url}'",
        )


class Validator:
    """Validates resources against profiles obtained from a resolver.

    Usage:
        resolver = CachedResolver.layered("profiles")
        validator = Validator(ValidationSettings(resolver=resolver))
        outcome = validator.validate(patient)
    """

    def __init__(self, settings: ValidationSettings):
        self._settings = settings

    def validate(
        self,
        resource: Resource | dict[str, Any],
        profiles: Iterable[str] = (),
    ) -> ValidationOutcome:
        """Validate *resource* against its applicable profiles.

        Args:
            resource: A resource model or its wire JSON. It is not modified.
            profiles: Extra profile URLs to check on top of the base type
                profile and ``meta.profile``.

        Returns:
            A fresh ValidationOutcome. Unresolvable profiles show up as
            fatal issues; the remaining profiles are still checked.
        """
        data = resource.to_fhir() if isinstance(resource, Resource) else resource
        resource_type = data.get("resourceType") if isinstance(data, dict) else None
        if not isinstance(resource_type, str) or not resource_type:
            return ValidationOutcome(
                issues=(
                    Issue(
                        severity=IssueSeverity.FATAL,
                        code=IssueType.STRUCTURE,
                        message="Resource has no resourceType",
                    ),
                )
            )

        urls = self._applicable_profiles(data, resource_type, profiles)
        run = _ValidationRun(self._settings, resource_type)
        for url in urls:
            run.check_profile(url, data)

        outcome = ValidationOutcome(issues=run.issues)
        logger.info(
            "[VALIDATOR] %s checked against %d profile(s): success=%s, %d issue(s)",
            resource_type,
            len(urls),
            outcome.success,
            len(outcome.issues),
        )
        return outcome

    @staticmethod
    def _applicable_profiles(
        data: dict[str, Any], resource_type: str, extra: Iterable[str]
    ) -> list[str]:
        meta = data.get("meta")
        declared = meta.get("profile") if isinstance(meta, dict) else None
        candidates = [core_profile_url(resource_type)]
        if isinstance(declared, list):
            candidates.extend(p for p in declared if isinstance(p, str) and p)
        candidates.extend(extra)

        urls: list[str] = []
        seen: set[str] = set()
        for url in candidates:
            key = canonical_key(url)
            if key not in seen:
                seen.add(key)
                urls.append(url)
        return urls
