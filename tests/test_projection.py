"""
Tests for projection expressions.
"""

import dataclasses

import pytest

from facetcraft.config import configure
from facetcraft.facets import Facet, MapFrom
from facetcraft.facets import expressions as ex
from facetcraft.facets.exceptions import ProjectionFault
from facetcraft.facets.extensions import select_projection

from sample_domain import (
    AddressFacet,
    AddressValue,
    Author,
    AuthorFacet,
    Book,
    Category,
    CategoryFacet,
    CategoryTreeFacet,
    CustomerFacet,
    CustomerStatusFacet,
    Line,
    LineFacet,
    Order,
    OrderFacet,
    Status,
)


def same(a, b):
    return dataclasses.asdict(a) == dataclasses.asdict(b)


class TestProjectionText:

    def test_flat_facet(self):
        assert AddressFacet.projection().as_text() == (
            "lambda src: AddressFacet(street=src.street, city=src.city, zip_code=src.zip_code)"
        )

    def test_computed_and_guarded_members(self):
        text = CustomerFacet.projection().as_text()
        assert "full_name=((src.first_name + ' ') + src.last_name)" in text
        assert "city=(src.address.city if src.address is not None else None)" in text
        assert (
            "address=(AddressFacet(street=src.address.street, city=src.address.city, "
            "zip_code=src.address.zip_code) if src.address is not None else None)"
        ) in text

    def test_condition_and_enum(self):
        text = CustomerStatusFacet.projection().as_text()
        assert "email=(src.email if src.status == Status.ACTIVE else '<hidden>')" in text
        assert "status=src.status.name" in text

    def test_nested_collection(self):
        text = OrderFacet.projection().as_text()
        assert (
            "lines=(list(LineFacet(sku=e1.sku, quantity=e1.quantity, unit_price=e1.unit_price, "
            "id=e1.id, total=(e1.quantity * e1.unit_price)) for e1 in distinct(src.lines) "
            "if e1 is not None) if src.lines is not None else None)"
        ) in text

    def test_self_reference_becomes_conversion_call(self):
        projection = CategoryFacet.projection()
        assert projection.as_text() == (
            "lambda src: CategoryFacet(id=src.id, name=src.name, "
            "children=list(CategoryFacet.from_source(e1, depth=1, visited=(src,)) "
            "for e1 in distinct(src.children) if (e1 is not None and e1 is not src)))"
        )
        assert ex.ConvertCall in projection.node_types()

    def test_mutual_reference_inlines_once(self):
        text = AuthorFacet.projection().as_text()
        assert "BookFacet(title=e1.title, " in text
        assert (
            "author=(AuthorFacet.from_source(e1.author, depth=2, visited=(src, e1)) "
            "if (e1.author is not None and e1.author is not src) else None)"
        ) in text

    def test_unrelated_types_get_no_identity_guard(self):
        text = CustomerFacet.projection().as_text()
        assert " is not src" not in text

    def test_built_once(self):
        assert LineFacet.projection() is LineFacet.projection()

    def test_rebuilt_after_configure(self):
        before = LineFacet.projection()
        configure(default_max_depth=3)
        assert LineFacet.projection() is not before

    def test_translatable(self):
        projection = OrderFacet.projection()
        assert projection.is_translatable
        assert {ex.Init, ex.Select, ex.Conditional, ex.IsNotNone} <= projection.node_types()
        assert next(projection.walk()) is projection.parameter

    def test_past_max_depth_is_none(self):
        configure(default_max_depth=1)

        class ShallowOrder(Facet):
            class Spec:
                source = Order
                nested = [CustomerFacet]
                exclude = ["notes", "lines"]

        text = ShallowOrder.projection().as_text()
        assert "customer=(CustomerFacet(" in text
        assert "address=None" in text


class TestProjectionEvaluation:

    def test_matches_eager_conversion(self, order):
        projected = OrderFacet.projection()(order)
        assert isinstance(projected, OrderFacet)
        assert same(projected, OrderFacet.from_source(order))

    def test_null_guards(self, customer):
        customer.address = None
        projected = CustomerFacet.projection()(customer)
        assert projected.address is None
        assert projected.city is None
        assert same(projected, CustomerFacet.from_source(customer))

    def test_condition(self, customer):
        customer.status = Status.SUSPENDED
        projected = CustomerStatusFacet.projection()(customer)
        assert projected.email == "<hidden>"
        assert projected.status == "SUSPENDED"

    def test_depth_truncation_matches_eager(self):
        root = Category(1, "X", [Category(10, "A", [Category(100, "deep")])])
        projected = CategoryFacet.projection()(root)
        assert projected.children[0].children is None
        assert same(projected, CategoryFacet.from_source(root))

    def test_conversion_call_matches_eager_on_acyclic_data(self):
        author = Author("Ada")
        author.books.append(Book("Notes", author=Author("Charles")))
        projected = AuthorFacet.projection()(author)
        assert projected.books[0].author.name == "Charles"
        assert same(projected, AuthorFacet.from_source(author))

    def test_author_book_cycle_matches_eager(self):
        author = Author("A")
        author.books.append(Book("B", author=author))
        projected = AuthorFacet.projection()(author)
        assert projected.books[0].author is None
        assert same(projected, AuthorFacet.from_source(author))

    def test_parent_cycle_matches_eager(self):
        root = Category(1, "root")
        child = Category(2, "child", parent=root)
        grandchild = Category(3, "grandchild", parent=child)
        root.children.append(child)
        child.children.append(grandchild)
        root.parent = grandchild

        projected = CategoryTreeFacet.projection()(root)
        eager = CategoryTreeFacet.from_source(root)
        assert projected.parent.id == 3
        assert projected.parent.parent.parent is None
        assert projected.children[0].parent is None
        assert same(projected, eager)

    def test_repeated_elements_match_eager(self):
        shared = Category(2, "shared")
        root = Category(1, "root", children=[shared, shared])
        projected = CategoryTreeFacet.projection()(root)
        assert len(projected.children) == 1
        assert same(projected, CategoryTreeFacet.from_source(root))

    def test_repeated_inlined_elements_match_eager(self, order):
        order.lines.append(order.lines[0])
        projected = OrderFacet.projection()(order)
        assert [line.sku for line in projected.lines] == ["A-1", "B-2"]
        assert same(projected, OrderFacet.from_source(order))

    def test_none_elements_skipped_in_conversion_calls(self):
        root = Category(1, "root", children=[Category(2, "a"), None])
        projected = CategoryTreeFacet.projection()(root)
        assert [c.id for c in projected.children] == [2]
        assert same(projected, CategoryTreeFacet.from_source(root))

    def test_none_elements_skipped_when_inlined(self, order):
        order.lines.insert(1, None)
        projected = OrderFacet.projection()(order)
        assert [line.sku for line in projected.lines] == ["A-1", "B-2"]
        assert same(projected, OrderFacet.from_source(order))

    def test_without_reference_tracking(self):
        configure(default_preserve_references=False)
        shared = Category(2, "shared")
        root = Category(1, "root", children=[shared, None, shared])

        projection = CategoryFacet.projection()
        assert "distinct(" not in projection.as_text()
        assert "visited=" not in projection.as_text()

        projected = projection(root)
        assert [c.id for c in projected.children] == [2, 2]
        assert same(projected, CategoryFacet.from_source(root))

    def test_immutable_facet(self, address):
        assert AddressValue.projection()(address) == AddressValue.from_source(address)

    def test_hooks_do_not_run(self):
        def tag(source, target):
            target.sku = "hooked"

        class Tagged(Facet):
            class Spec:
                source = Line
                after = tag

        line = Line("A", 1, 1.0)
        assert Tagged.from_source(line).sku == "hooked"
        assert Tagged.projection()(line).sku == "A"

    def test_excluded_from_projection(self):
        class Secretive(Facet):
            secret: str = MapFrom("sku", include_in_projection=False)

            class Spec:
                source = Line
                include = ["id"]

        projection = Secretive.projection()
        assert projection.body.binding("secret") is None
        assert projection(Line("A", 1, 1.0)).secret == ""
        assert Secretive.from_source(Line("A", 1, 1.0)).secret == "A"

    def test_select_projection(self):
        lines = [Line("A", 2, 1.5), Line("B", 1, 10.0)]
        assert [f.total for f in select_projection(lines, LineFacet)] == [3.0, 10.0]
        assert [f.total for f in LineFacet.projection().apply(lines)] == [3.0, 10.0]

    def test_projection_disabled(self):
        class NoProjection(Facet):
            class Spec:
                source = Line
                projection = False

        with pytest.raises(ProjectionFault) as exc:
            NoProjection.projection()
        assert exc.value.code == "FC500"
