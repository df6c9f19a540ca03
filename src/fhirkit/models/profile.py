"""Parsed conformance resources: profiles and value sets.

Only the parts of StructureDefinition and ValueSet the validator looks at
are kept. Once a definition is parsed and cached it is treated as
immutable for the rest of the process.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict

CORE_PROFILE_BASE = "http://hl7.org/fhir/StructureDefinition/"

# Type codes used in snapshots for the primitive value of id/extension url etc.
_FHIRPATH_SYSTEM_TYPES = {
    "http://hl7.org/fhirpath/System.String": "string",
    "http://hl7.org/fhirpath/System.Boolean": "boolean",
    "http://hl7.org/fhirpath/System.Integer": "integer",
    "http://hl7.org/fhirpath/System.Decimal": "decimal",
    "http://hl7.org/fhirpath/System.Date": "date",
    "http://hl7.org/fhirpath/System.DateTime": "dateTime",
    "http://hl7.org/fhirpath/System.Time": "time",
}


def core_profile_url(type_name: str) -> str:
    """Canonical URL of the base profile for a resource or datatype name."""
    return f"{CORE_PROFILE_BASE}{type_name}"


def strip_version(url: str) -> str:
    """Drop a ``|version`` suffix from a canonical URL."""
    return url.split("|", 1)[0]


class ElementDefinition(BaseModel):
    """Constraints on one element path, e.g. ``Patient.name.family``."""

    model_config = ConfigDict(frozen=True)

    path: str
    min: int = 0
    max: str = "*"
    # Cardinality of the element this one constrains; decides array form on the wire
    base_max: str | None = None
    types: tuple[str, ...] = ()
    fixed: Any = None
    pattern: Any = None
    binding_strength: str | None = None
    value_set: str | None = None
    short: str | None = None

    @property
    def name(self) -> str:
        return self.path.rsplit(".", 1)[-1]

    @property
    def is_choice(self) -> bool:
        return self.name.endswith("[x]")

    @property
    def choice_prefix(self) -> str:
        return self.name[: -len("[x]")] if self.is_choice else self.name

    @property
    def max_count(self) -> int | None:
        """Upper bound as an int, or None for ``*``."""
        return None if self.max == "*" else int(self.max)

    @property
    def is_repeating(self) -> bool:
        """Whether the element is an array in JSON, per its base cardinality."""
        max_value = self.base_max or self.max
        return max_value == "*" or int(max_value) > 1

    @property
    def cardinality(self) -> str:
        return f"{self.min}..{self.max}"

    @classmethod
    def fields_from_fhir(cls, raw: dict[str, Any]) -> dict[str, Any]:
        """Extract only the constraint fields that are present in *raw*.

        Used both for full snapshot elements and for differential elements
        that override part of a base element.
        """
        fields: dict[str, Any] = {"path": raw["path"]}
        if "min" in raw:
            fields["min"] = int(raw["min"])
        if "max" in raw:
            fields["max"] = str(raw["max"])
        if "max" in (raw.get("base") or {}):
            fields["base_max"] = str(raw["base"]["max"])
        if raw.get("type"):
            fields["types"] = tuple(
                _FHIRPATH_SYSTEM_TYPES.get(t["code"], t["code"]) for t in raw["type"]
            )
        if raw.get("short"):
            fields["short"] = raw["short"]
        for key, value in raw.items():
            if key.startswith("fixed"):
                fields["fixed"] = value
            elif key.startswith("pattern"):
                fields["pattern"] = value
        binding = raw.get("binding")
        if binding:
            fields["binding_strength"] = binding.get("strength")
            if binding.get("valueSet"):
                fields["value_set"] = binding["valueSet"]
        return fields

    @classmethod
    def from_fhir(cls, raw: dict[str, Any]) -> ElementDefinition:
        return cls(**cls.fields_from_fhir(raw))


class ProfileDefinition(BaseModel):
    """A named, versioned structural contract for one resource or datatype."""

    model_config = ConfigDict(frozen=True)

    url: str
    name: str = ""
    version: str | None = None
    type: str
    kind: str = "resource"
    derivation: str | None = None
    base_definition: str | None = None
    elements: tuple[ElementDefinition, ...] = ()

    def element(self, path: str) -> ElementDefinition | None:
        for element in self.elements:
            if element.path == path:
                return element
        return None

    def children(self, path: str) -> tuple[ElementDefinition, ...]:
        """Direct child elements of *path*, in definition order."""
        prefix = f"{path}."
        return tuple(
            e
            for e in self.elements
            if e.path.startswith(prefix) and "." not in e.path[len(prefix):]
        )

    @classmethod
    def from_structure_definition(
        cls,
        data: dict[str, Any],
        base: ProfileDefinition | None = None,
    ) -> ProfileDefinition:
        """Parse a StructureDefinition.

        A snapshot is used as-is. A differential-only definition is laid
        over *base* (its baseDefinition, already resolved): each
        differential element overrides the fields it sets on the base
        element with the same path, and new paths are appended. Sliced
        elements are ignored.

        Raises:
            ValueError: If *data* is not a usable StructureDefinition.
        """
        if data.get("resourceType") != "StructureDefinition":
            raise ValueError(f"Not a StructureDefinition: {data.get('resourceType')!r}")
        if not data.get("url") or not data.get("type"):
            raise ValueError("StructureDefinition needs both url and type")

        snapshot = (data.get("snapshot") or {}).get("element")
        differential = (data.get("differential") or {}).get("element", [])

        if snapshot:
            elements = [
                ElementDefinition.from_fhir(raw) for raw in snapshot if not raw.get("sliceName")
            ]
        else:
            merged: dict[str, ElementDefinition] = {}
            if base is not None:
                merged = {e.path: e for e in base.elements}
            for raw in differential:
                if raw.get("sliceName"):
                    continue
                fields = ElementDefinition.fields_from_fhir(raw)
                existing = merged.get(fields["path"])
                if existing is None:
                    merged[fields["path"]] = ElementDefinition(**fields)
                else:
                    fields.setdefault("base_max", existing.base_max or existing.max)
                    merged[fields["path"]] = existing.model_copy(update=fields)
            elements = list(merged.values())

        return cls(
            url=strip_version(data["url"]),
            name=data.get("name", ""),
            version=data.get("version"),
            type=data["type"],
            kind=data.get("kind", "resource"),
            derivation=data.get("derivation"),
            base_definition=data.get("baseDefinition"),
            elements=tuple(elements),
        )


class ValueSetDefinition(BaseModel):
    """Codes a required binding accepts."""

    model_config = ConfigDict(frozen=True)

    url: str
    name: str = ""
    version: str | None = None
    concepts: frozenset[tuple[str | None, str]] = frozenset()
    # Systems included without an explicit concept list: any code passes
    open_systems: frozenset[str] = frozenset()

    def contains(self, code: str, system: str | None = None) -> bool:
        if system is not None and system in self.open_systems:
            return True
        if system is None and self.open_systems:
            return True
        for concept_system, concept_code in self.concepts:
            if concept_code == code and (system is None or concept_system == system):
                return True
        return False

    @classmethod
    def from_value_set(cls, data: dict[str, Any]) -> ValueSetDefinition:
        """Parse a ValueSet from its expansion and/or compose.include."""
        if data.get("resourceType") != "ValueSet":
            raise ValueError(f"Not a ValueSet: {data.get('resourceType')!r}")
        if not data.get("url"):
            raise ValueError("ValueSet needs a url")

        concepts: set[tuple[str | None, str]] = set()
        open_systems: set[str] = set()

        for include in (data.get("compose") or {}).get("include", []):
            system = include.get("system")
            listed = include.get("concept")
            if listed:
                concepts.update((system, c["code"]) for c in listed)
            elif system:
                open_systems.add(system)

        for contained in (data.get("expansion") or {}).get("contains", []):
            if contained.get("code"):
                concepts.add((contained.get("system"), contained["code"]))

        return cls(
            url=strip_version(data["url"]),
            name=data.get("name", ""),
            version=data.get("version"),
            concepts=frozenset(concepts),
            open_systems=frozenset(open_systems),
        )
