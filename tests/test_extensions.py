"""
Tests for the facet helpers, introspection and the HTML dashboard.
"""

import json

import pytest

from facetcraft.dashboard import render_dashboard
from facetcraft.facets import Facet
from facetcraft.facets.exceptions import DeclarationFault
from facetcraft.facets.extensions import (
    check_declarations,
    discover_facets,
    is_facet_class,
    select_facets,
    to_facet,
)
from facetcraft.facets.schema import describe_facet

import sample_domain
from sample_domain import (
    Customer,
    CustomerFacet,
    Line,
    LineFacet,
    OrderFacet,
)


SAMPLE_FACETS = [
    "AddressFacet",
    "CustomerFacet",
    "CustomerStatusFacet",
    "LineFacet",
    "OrderFacet",
    "CategoryFacet",
    "CategoryTreeFacet",
    "AuthorFacet",
    "BookFacet",
    "PersonFacet",
    "AddressValue",
]


def broken_facet():
    class Broken(Facet):
        class Spec:
            source = Line
            include = ["sku"]
            max_depth = -1

    return Broken


class TestHelpers:

    def test_is_facet_class(self):
        assert is_facet_class(CustomerFacet)
        assert not is_facet_class(Facet)
        assert not is_facet_class(Customer)
        assert not is_facet_class(CustomerFacet.from_source)

    def test_to_facet(self, customer):
        assert to_facet(customer, CustomerFacet).id == 7
        with pytest.raises(TypeError):
            to_facet(customer, Customer)

    def test_select_facets_skips_none(self):
        lines = [Line("A", 1, 1.0), None, Line("B", 2, 1.0)]
        assert [f.sku for f in select_facets(lines, LineFacet)] == ["A", "B"]

    def test_discover_facets(self):
        assert [f.__name__ for f in discover_facets(sample_domain)] == SAMPLE_FACETS
        assert discover_facets("sample_domain") == discover_facets(sample_domain)


class TestCheckDeclarations:

    def test_sample_domain_is_clean(self):
        results = check_declarations(discover_facets(sample_domain))
        assert [fault for _, fault in results] == [None] * len(SAMPLE_FACETS)

    def test_fault_is_reported_per_class(self):
        broken = broken_facet()
        results = dict(check_declarations([LineFacet, broken]))
        assert results[LineFacet] is None
        assert isinstance(results[broken], DeclarationFault)
        assert results[broken].directive == "max_depth"


class TestDescribeFacet:

    def test_members_and_options(self):
        description = describe_facet(CustomerFacet)
        assert description["name"] == "CustomerFacet"
        assert description["source"] == "sample_domain.Customer"
        assert description["shape"] == "mutable_reference"
        assert description["max_depth"] == 10
        assert description["reverse"] is True
        assert description["excluded_required"] == []

        members = {m["name"]: m for m in description["members"]}
        assert members["full_name"]["origin"] == "computed"
        assert members["full_name"]["expression"] == "first_name + ' ' + last_name"
        assert members["full_name"]["reversible"] is False
        assert members["city"]["source"] == "address.city"
        assert members["city"]["type"] == "Optional[str]"
        assert members["address"]["nested"] == {"facet": "AddressFacet", "collection": None}
        assert "password_hash" not in members

    def test_collections_and_projection(self):
        description = describe_facet(OrderFacet)
        members = {m["name"]: m for m in description["members"]}
        assert members["lines"]["nested"] == {"facet": "LineFacet", "collection": "list"}
        assert description["flatten_to"] == ["OrderRow", "dict"]
        assert description["projection"].startswith("lambda src: OrderFacet(")

    def test_is_json_serializable(self):
        json.dumps(describe_facet(OrderFacet))

    def test_fault_is_described(self):
        description = describe_facet(broken_facet())
        assert description["fault"]["code"] == "FC100"
        assert "members" not in description


class TestDashboard:

    def test_render(self):
        html = render_dashboard([CustomerFacet, OrderFacet], title="Shop")
        assert "<title>Shop</title>" in html
        assert 'id="CustomerFacet"' in html
        assert "AddressFacet" in html
        assert "2 facets, 0 with faults" in html

    def test_faults_and_escaping(self):
        html = render_dashboard([broken_facet()], title="<Shop>")
        assert "&lt;Shop&gt;" in html
        assert "1 facets, 1 with faults" in html
        assert "FC100" in html
