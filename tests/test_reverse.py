"""
Tests for reverse conversion (facet back to source).
"""

import dataclasses
from dataclasses import dataclass
from typing import Tuple

import pytest

from facetcraft.facets import Facet, MapFrom
from facetcraft.facets.exceptions import DeclarationFault, ResolutionFault, ReverseFault
from facetcraft.facets.extensions import apply_facet, select_facet_sources, to_source

from sample_domain import (
    Address,
    AddressValue,
    Customer,
    CustomerFacet,
    CustomerStatusFacet,
    Line,
    LineFacet,
    Order,
    OrderFacet,
    Person,
    PersonFacet,
    Status,
)


@dataclass
class Basket:
    items: Tuple[Line, ...] = ()


class BasketFacet(Facet):
    class Spec:
        source = Basket
        nested = [LineFacet]
        reverse = True


class TestToSource:

    def test_round_trip_drops_excluded_members(self, customer):
        back = CustomerFacet.from_source(customer).to_source()
        assert isinstance(back, Customer)
        assert back == dataclasses.replace(customer, password_hash="")

    def test_nested_facets_are_reversed(self, customer):
        back = CustomerFacet.from_source(customer).to_source()
        assert isinstance(back.address, Address)
        assert back.address == customer.address
        assert back.address is not customer.address

    def test_one_way_members_are_not_written(self, customer):
        facet = CustomerFacet.from_source(customer)
        facet.full_name = "Someone Else"
        facet.city = "Elsewhere"
        back = facet.to_source()
        assert back.first_name == "Ada"
        assert back.address.city == "Springfield"

    def test_required_members_outside_the_facet_get_defaults(self, customer):
        class ContactOnly(Facet):
            class Spec:
                source = Customer
                include = ["id", "email"]
                reverse = True

        back = ContactOnly.from_source(customer).to_source()
        assert back.id == 7
        assert back.email == "ada@example.com"
        assert back.first_name == ""
        assert back.last_name == ""

    def test_collection_shape_survives(self):
        basket = Basket(items=(Line("A", 1, 2.0), Line("B", 2, 3.0)))
        facet = BasketFacet.from_source(basket)
        assert isinstance(facet.items, tuple)

        back = facet.to_source()
        assert isinstance(back.items, tuple)
        assert back == basket

    def test_properties(self):
        person = Person("Ada", "Lovelace", 36)
        person.nickname = "Countess"

        facet = PersonFacet.from_source(person)
        assert facet.full_name == "Ada Lovelace"

        back = facet.to_source()
        assert (back.first, back.last, back.age) == ("Ada", "Lovelace", 36)
        assert back.nickname == "Countess"

    def test_immutable_facet(self, address):
        assert AddressValue.from_source(address).to_source() == address

    def test_enum_rendering_is_undone(self, customer):
        class StatusName(Facet):
            class Spec:
                source = Customer
                include = ["id", "first_name", "last_name", "email", "status"]
                convert_enums_to = "string"
                reverse = True

        customer.status = Status.SUSPENDED
        facet = StatusName.from_source(customer)
        assert facet.status == "SUSPENDED"
        assert facet.to_source().status is Status.SUSPENDED

    def test_reverse_to_on_expression(self):
        class ShoutedSku(Facet):
            code: str = MapFrom("sku.upper()", reverse_to="sku")

            class Spec:
                source = Line
                include = ["quantity", "unit_price"]
                reverse = True

        back = ShoutedSku.from_source(Line("abc", 2, 1.0)).to_source()
        assert back == Line("ABC", 2, 1.0)

    def test_reverse_to_unknown_member(self):
        class Dangling(Facet):
            code: str = MapFrom("sku.upper()", reverse_to="nope")

            class Spec:
                source = Line
                reverse = True

        with pytest.raises(DeclarationFault, match="unknown source member 'nope'"):
            Dangling.from_source(Line("abc", 2, 1.0))

    def test_nested_facet_must_be_reversible(self, customer):
        class OrderEdit(Facet):
            class Spec:
                source = Order
                nested = [CustomerStatusFacet]
                reverse = True

        with pytest.raises(ResolutionFault, match="Spec.reverse = True"):
            OrderEdit.from_source(Order(1, customer))

    def test_reverse_not_generated(self, order):
        with pytest.raises(ReverseFault) as exc:
            OrderFacet.from_source(order).to_source()
        assert exc.value.code == "FC400"


class TestReverseHelpers:

    def test_to_source_and_select(self, customer):
        facet = CustomerFacet.from_source(customer)
        assert to_source(facet).id == 7
        assert [c.id for c in select_facet_sources([facet, None, facet])] == [7, 7]

    def test_apply_facet_writes_changed_members(self, customer):
        facet = CustomerFacet.from_source(customer)
        facet.email = "ada@lovelace.dev"

        changed = apply_facet(facet, customer)
        assert changed == ["email"]
        assert customer.email == "ada@lovelace.dev"
        assert customer.password_hash == "secret"

    def test_apply_facet_without_changes(self, customer):
        facet = CustomerFacet.from_source(customer)
        assert apply_facet(facet, customer) == []
