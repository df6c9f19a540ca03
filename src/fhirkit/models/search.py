"""Search criteria, result pages and server capability models."""

from __future__ import annotations

from enum import Enum
from typing import Any, Iterable

from pydantic import BaseModel, ConfigDict, Field

from .resource import Resource, parse_resource


class SortOrder(str, Enum):
    ASCENDING = "ascending"
    DESCENDING = "descending"


class SummaryType(str, Enum):
    TRUE = "true"
    TEXT = "text"
    DATA = "data"
    COUNT = "count"
    FALSE = "false"


class PageDirection(str, Enum):
    """Bundle link relations a result page can be continued along."""

    FIRST = "first"
    PREVIOUS = "previous"
    NEXT = "next"
    LAST = "last"


# =============================================================================
# Search criteria
# =============================================================================


class SearchFilter(BaseModel):
    """One filter: ``field[:modifier]=value`` (prefixes like ``ge`` stay in value)."""

    model_config = ConfigDict(frozen=True)

    field: str = Field(..., min_length=1)
    value: str
    modifier: str | None = None

    @property
    def key(self) -> str:
        return f"{self.field}:{self.modifier}" if self.modifier else self.field


class SearchParams(BaseModel):
    """Immutable search criteria builder.

    Every builder method returns a new instance, so a base query can be
    shared and refined::

        q = (
            SearchParams()
            .where("family:exact=Visser")
            .order_by("birthdate", SortOrder.DESCENDING)
            .summary_only()
            .include("Patient:organization")
            .limit_to(5)
        )
    """

    model_config = ConfigDict(frozen=True)

    filters: tuple[SearchFilter, ...] = ()
    sort: tuple[tuple[str, SortOrder], ...] = ()
    includes: tuple[str, ...] = ()
    rev_includes: tuple[str, ...] = ()
    summary_type: SummaryType | None = None
    count: int | None = None
    element_names: tuple[str, ...] = ()

    def _with(self, **changes: Any) -> SearchParams:
        return self.model_copy(update=changes)

    def where(self, criterion: str) -> SearchParams:
        """Add a filter written the URL way, e.g. ``family:exact=Visser``."""
        key, sep, value = criterion.partition("=")
        if not sep or not key:
            raise ValueError(f"Search criterion must look like name=value, got {criterion!r}")
        field, _, modifier = key.partition(":")
        return self.add(field, value, modifier or None)

    def add(self, field: str, value: str, modifier: str | None = None) -> SearchParams:
        search_filter = SearchFilter(field=field, value=value, modifier=modifier)
        return self._with(filters=self.filters + (search_filter,))

    def order_by(self, field: str, order: SortOrder = SortOrder.ASCENDING) -> SearchParams:
        return self._with(sort=self.sort + ((field, order),))

    def include(self, path: str) -> SearchParams:
        return self._with(includes=self.includes + (path,))

    def rev_include(self, path: str) -> SearchParams:
        return self._with(rev_includes=self.rev_includes + (path,))

    def summary(self, summary_type: SummaryType) -> SearchParams:
        return self._with(summary_type=summary_type)

    def summary_only(self) -> SearchParams:
        return self.summary(SummaryType.TRUE)

    def limit_to(self, count: int) -> SearchParams:
        if count < 1:
            raise ValueError(f"Page size must be at least 1, got {count}")
        return self._with(count=count)

    def elements(self, *names: str) -> SearchParams:
        return self._with(element_names=self.element_names + names)

    def to_query(self) -> list[tuple[str, str]]:
        """Render as ordered query parameters."""
        query = [(f.key, f.value) for f in self.filters]
        if self.sort:
            query.append(
                (
                    "_sort",
                    ",".join(
                        f"-{field}" if order is SortOrder.DESCENDING else field
                        for field, order in self.sort
                    ),
                )
            )
        query.extend(("_include", path) for path in self.includes)
        query.extend(("_revinclude", path) for path in self.rev_includes)
        if self.summary_type is not None:
            query.append(("_summary", self.summary_type.value))
        if self.element_names:
            query.append(("_elements", ",".join(self.element_names)))
        if self.count is not None:
            query.append(("_count", str(self.count)))
        return query

    @classmethod
    def from_criteria(cls, criteria: Iterable[str]) -> SearchParams:
        """Build from ``name=value`` strings; ``_``-prefixed controls are understood."""
        params = cls()
        for criterion in criteria:
            key, sep, value = criterion.partition("=")
            if not sep:
                raise ValueError(f"Search criterion must look like name=value, got {criterion!r}")
            if key == "_count":
                params = params.limit_to(int(value))
            elif key == "_sort":
                for field in value.split(","):
                    if field.startswith("-"):
                        params = params.order_by(field[1:], SortOrder.DESCENDING)
                    else:
                        params = params.order_by(field)
            elif key == "_include":
                params = params.include(value)
            elif key == "_revinclude":
                params = params.rev_include(value)
            elif key == "_summary":
                params = params.summary(SummaryType(value))
            elif key == "_elements":
                params = params.elements(*value.split(","))
            else:
                params = params.where(criterion)
        return params


# =============================================================================
# Result pages
# =============================================================================


class SearchEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    resource: Resource
    full_url: str | None = None
    mode: str | None = None


class SearchResult(BaseModel):
    """One page of a searchset Bundle.

    A page is never modified; continuing a search returns a new page.
    """

    model_config = ConfigDict(frozen=True)

    id: str | None = None
    total: int | None = None
    entries: tuple[SearchEntry, ...] = ()
    links: tuple[tuple[str, str], ...] = ()

    @property
    def resources(self) -> list[Resource]:
        """Entries that matched the criteria (search mode ``match`` or unset)."""
        return [e.resource for e in self.entries if e.mode in (None, "match")]

    @property
    def included(self) -> list[Resource]:
        return [e.resource for e in self.entries if e.mode == "include"]

    def link(self, relation: str) -> str | None:
        aliases = {"previous": ("previous", "prev"), "prev": ("previous", "prev")}
        wanted = aliases.get(relation, (relation,))
        for rel, url in self.links:
            if rel in wanted:
                return url
        return None

    @property
    def next_link(self) -> str | None:
        """Continuation token for the following page, if any."""
        return self.link(PageDirection.NEXT.value)

    @classmethod
    def from_bundle(cls, data: dict[str, Any]) -> SearchResult:
        if data.get("resourceType") != "Bundle":
            raise ValueError(f"Expected a Bundle, got {data.get('resourceType')!r}")
        entries = []
        for entry in data.get("entry", []):
            if "resource" not in entry:
                continue
            entries.append(
                SearchEntry(
                    resource=parse_resource(entry["resource"]),
                    full_url=entry.get("fullUrl"),
                    mode=(entry.get("search") or {}).get("mode"),
                )
            )
        links = tuple(
            (link["relation"], link["url"])
            for link in data.get("link", [])
            if link.get("relation") and link.get("url")
        )
        return cls(id=data.get("id"), total=data.get("total"), entries=tuple(entries), links=links)

    def to_bundle(self) -> dict[str, Any]:
        bundle: dict[str, Any] = {"resourceType": "Bundle", "type": "searchset"}
        if self.id:
            bundle["id"] = self.id
        if self.total is not None:
            bundle["total"] = self.total
        if self.links:
            bundle["link"] = [{"relation": rel, "url": url} for rel, url in self.links]
        entries = []
        for entry in self.entries:
            raw: dict[str, Any] = {}
            if entry.full_url:
                raw["fullUrl"] = entry.full_url
            raw["resource"] = entry.resource.to_fhir()
            if entry.mode:
                raw["search"] = {"mode": entry.mode}
            entries.append(raw)
        if entries:
            bundle["entry"] = entries
        return bundle


# =============================================================================
# Capabilities
# =============================================================================


class ServerCapabilities(BaseModel):
    """The parts of a CapabilityStatement callers usually care about."""

    model_config = ConfigDict(frozen=True)

    name: str | None = None
    fhir_version: str | None = None
    software_name: str | None = None
    software_version: str | None = None
    formats: tuple[str, ...] = ()
    resource_types: tuple[str, ...] = ()

    def supports(self, resource_type: str) -> bool:
        return resource_type in self.resource_types

    @classmethod
    def from_capability_statement(cls, data: dict[str, Any]) -> ServerCapabilities:
        if data.get("resourceType") != "CapabilityStatement":
            raise ValueError(f"Expected a CapabilityStatement, got {data.get('resourceType')!r}")
        software = data.get("software") or {}
        resource_types = []
        for rest in data.get("rest", []):
            resource_types.extend(r["type"] for r in rest.get("resource", []) if r.get("type"))
        return cls(
            name=data.get("name"),
            fhir_version=data.get("fhirVersion"),
            software_name=software.get("name"),
            software_version=software.get("version"),
            formats=tuple(data.get("format", [])),
            resource_types=tuple(resource_types),
        )
