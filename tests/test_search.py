"""Tests for search criteria, result pages and capability parsing."""

from __future__ import annotations

import pytest

from fhirkit.models import (
    Organization,
    Patient,
    SearchParams,
    SearchResult,
    ServerCapabilities,
    SortOrder,
    SummaryType,
)


class TestSearchParams:
    def test_complex_query_renders_in_order(self):
        query = (
            SearchParams()
            .where("family:exact=Visser")
            .order_by("birthdate", SortOrder.DESCENDING)
            .summary_only()
            .include("Patient:organization")
            .limit_to(5)
        )
        assert query.to_query() == [
            ("family:exact", "Visser"),
            ("_sort", "-birthdate"),
            ("_include", "Patient:organization"),
            ("_summary", "true"),
            ("_count", "5"),
        ]

    def test_where_splits_field_modifier_value(self):
        search_filter = SearchParams().where("birthdate=ge2000-01-01").filters[0]
        assert (search_filter.field, search_filter.modifier, search_filter.value) == (
            "birthdate",
            None,
            "ge2000-01-01",
        )
        exact = SearchParams().add("family", "Visser", "exact").filters[0]
        assert exact.key == "family:exact"

    def test_builder_is_immutable(self):
        base = SearchParams().where("gender=unknown")
        refined = base.limit_to(2)
        assert base.count is None
        assert refined.count == 2
        assert base.filters == refined.filters

    def test_multiple_sort_fields_join(self):
        query = SearchParams().order_by("family").order_by("birthdate", SortOrder.DESCENDING)
        assert ("_sort", "family,-birthdate") in query.to_query()

    @pytest.mark.parametrize("criterion", ["family", "=Visser", ""])
    def test_where_rejects_malformed_criteria(self, criterion):
        with pytest.raises(ValueError):
            SearchParams().where(criterion)

    def test_limit_must_be_positive(self):
        with pytest.raises(ValueError):
            SearchParams().limit_to(0)

    def test_from_criteria_understands_controls(self):
        params = SearchParams.from_criteria(
            ["family:exact=Visser", "_sort=-birthdate,family", "_count=3", "_summary=data", "_elements=name,gender"]
        )
        assert params.filters[0].key == "family:exact"
        assert params.sort == (("birthdate", SortOrder.DESCENDING), ("family", SortOrder.ASCENDING))
        assert params.count == 3
        assert params.summary_type is SummaryType.DATA
        assert params.element_names == ("name", "gender")


def _bundle(**extra):
    bundle = {
        "resourceType": "Bundle",
        "type": "searchset",
        "total": 1,
        "entry": [
            {
                "fullUrl": "https://x/Patient/1",
                "resource": {"resourceType": "Patient", "id": "1", "name": [{"family": "Visser"}]},
                "search": {"mode": "match"},
            },
            {
                "fullUrl": "https://x/Organization/9",
                "resource": {"resourceType": "Organization", "id": "9", "name": "ACME"},
                "search": {"mode": "include"},
            },
        ],
    }
    bundle.update(extra)
    return bundle


class TestSearchResult:
    def test_separates_matches_from_includes(self):
        result = SearchResult.from_bundle(_bundle())
        assert [type(r) for r in result.resources] == [Patient]
        assert [type(r) for r in result.included] == [Organization]
        assert result.total == 1

    def test_without_next_link_is_terminal(self):
        assert SearchResult.from_bundle(_bundle()).next_link is None

    def test_links_and_prev_alias(self):
        result = SearchResult.from_bundle(
            _bundle(
                link=[
                    {"relation": "self", "url": "https://x/p1"},
                    {"relation": "next", "url": "https://x/p2"},
                    {"relation": "prev", "url": "https://x/p0"},
                ]
            )
        )
        assert result.next_link == "https://x/p2"
        assert result.link("previous") == "https://x/p0"

    def test_to_bundle_keeps_entries_and_links(self):
        source = _bundle(link=[{"relation": "next", "url": "https://x/p2"}])
        rendered = SearchResult.from_bundle(source).to_bundle()
        assert rendered["entry"] == source["entry"]
        assert rendered["link"] == source["link"]

    def test_rejects_non_bundle(self):
        with pytest.raises(ValueError):
            SearchResult.from_bundle({"resourceType": "Patient"})


def test_capabilities_from_statement():
    capabilities = ServerCapabilities.from_capability_statement(
        {
            "resourceType": "CapabilityStatement",
            "name": "Firely Server",
            "fhirVersion": "4.0.1",
            "format": ["json", "xml"],
            "software": {"name": "Firely Server", "version": "5.0"},
            "rest": [{"resource": [{"type": "Patient"}, {"type": "Organization"}]}],
        }
    )
    assert capabilities.name == "Firely Server"
    assert capabilities.fhir_version == "4.0.1"
    assert capabilities.supports("Patient")
    assert not capabilities.supports("Observation")
