"""
Tests for flattening a facet into one row per collection element.
"""

import datetime
import enum
from typing import Any, List, Optional

import pytest

from facetcraft.config import configure
from facetcraft.facets import Facet
from facetcraft.facets.exceptions import DeclarationFault, ResolutionFault
from facetcraft.facets.flatten import is_scalar_type

from sample_domain import (
    CustomerFacet,
    LineFacet,
    Order,
    OrderFacet,
    OrderRow,
    Status,
)


ORDER_COLUMNS = (
    "id", "created_at", "updated_by", "customer_id", "first_name", "last_name",
    "email", "status", "street", "address_city", "zip_code", "full_name",
    "customer_city", "discount", "sku", "quantity", "unit_price", "lines_id", "total",
)


class TestFlattenRows:

    def test_default_row_type(self, order):
        rows = OrderFacet.from_source(order).flatten_to()
        assert rows == [
            OrderRow(id=100, sku="A-1", quantity=2, total=3.0, first_name="Ada", lines_id=1),
            OrderRow(id=100, sku="B-2", quantity=1, total=10.0, first_name="Ada", lines_id=2),
        ]

    def test_dict_rows(self, order):
        rows = OrderFacet.from_source(order).flatten_to(dict)
        assert len(rows) == 2
        first = rows[0]
        assert tuple(first) == ORDER_COLUMNS
        assert first["id"] == 100
        assert first["customer_id"] == 7
        assert first["lines_id"] == 1
        assert first["address_city"] == "Springfield"
        assert first["customer_city"] == "Springfield"
        assert first["full_name"] == "Ada Lovelace"
        assert first["discount"] == 0.5

    def test_column_names(self):
        assert OrderFacet._facet_flatten(dict).column_names == ORDER_COLUMNS

    def test_rows_are_independent(self, order):
        rows = OrderFacet.from_source(order).flatten_to(dict)
        rows[0]["id"] = -1
        assert rows[1]["id"] == 100

    def test_missing_nested_value_leaves_columns_empty(self, order):
        order.customer.address = None
        row = OrderFacet.from_source(order).flatten_to(dict)[0]
        assert row["street"] is None
        assert row["address_city"] is None

    @pytest.mark.parametrize("lines", [[], None])
    def test_empty_collection(self, customer, lines):
        facet = OrderFacet.from_source(Order(1, customer, lines=lines))
        assert facet.flatten_to() == []

    def test_facet_without_collection(self, customer):
        assert CustomerFacet.from_source(customer).flatten_to(dict) == []

    def test_no_row_type_declared(self, customer):
        with pytest.raises(DeclarationFault, match="no flatten_to row types"):
            CustomerFacet.from_source(customer).flatten_to()

    def test_row_type_must_be_a_class(self, order):
        with pytest.raises(DeclarationFault, match="must be a class"):
            OrderFacet.from_source(order).flatten_to("row")

    def test_row_type_with_var_keyword(self, order):
        class Row:
            def __init__(self, **values):
                self.values = values

        rows = OrderFacet.from_source(order).flatten_to(Row)
        assert tuple(rows[0].values) == ORDER_COLUMNS

    def test_flatten_max_depth(self, order):
        configure(flatten_max_depth=1)
        plan = OrderFacet._facet_flatten(dict)
        assert plan.column_names == (
            "id", "discount", "sku", "quantity", "unit_price", "lines_id", "total",
        )


class TestFlattenMember:

    def test_explicit_member(self, order):
        class Explicit(Facet):
            class Spec:
                source = Order
                nested = [LineFacet]
                include = ["id", "lines"]
                flatten_member = "lines"
                flatten_to = [dict]

        rows = Explicit.from_source(order).flatten_to()
        assert [r["sku"] for r in rows] == ["A-1", "B-2"]

    def test_member_must_be_nested_collection(self, order):
        class NotACollection(Facet):
            class Spec:
                source = Order
                nested = [CustomerFacet]
                flatten_member = "customer"
                flatten_to = [dict]

        with pytest.raises(ResolutionFault, match="collection of nested facets"):
            NotACollection.from_source(order).flatten_to()

    def test_unknown_member(self, order):
        class Unknown(Facet):
            class Spec:
                source = Order
                flatten_member = "items"

        with pytest.raises(DeclarationFault, match="flatten_member"):
            Unknown.from_source(order)


class TestScalarTypes:

    class Color(enum.Enum):
        RED = 1

    @pytest.mark.parametrize("tp", [
        int, str, float, bool, Optional[int], datetime.date, Any, Status,
    ])
    def test_scalars(self, tp):
        assert is_scalar_type(tp)

    @pytest.mark.parametrize("tp", [List[int], list, dict, object])
    def test_not_scalars(self, tp):
        assert not is_scalar_type(tp)

    def test_local_enum(self):
        assert is_scalar_type(self.Color)
