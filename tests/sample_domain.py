"""
Source types and facets shared by the facetcraft test suite.

Facets that nest other facets by name, or whose expressions refer to
module constants, live here: names resolve against the declaring module.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import List, Optional

from facetcraft.facets import EmissionShape, Facet, MapFrom, MapWhen, Wrapper


# ── Sources ──────────────────────────────────────────────────────────────

class Status(enum.Enum):
    ACTIVE = 1
    SUSPENDED = 2


@dataclass(kw_only=True)
class Auditable:
    created_at: str = ""
    updated_by: str = ""


@dataclass
class Address:
    street: str
    city: str
    zip_code: Optional[str] = None


@dataclass(kw_only=True)
class Customer(Auditable):
    id: int
    first_name: str
    last_name: str
    email: str
    status: Status = Status.ACTIVE
    address: Optional[Address] = None
    password_hash: str = ""


@dataclass
class Line:
    sku: str
    quantity: int
    unit_price: float
    id: int = 0


@dataclass
class Order:
    id: int
    customer: Customer
    lines: Optional[List[Line]] = field(default_factory=list)
    notes: Optional[str] = None
    discount: float = 0.0


@dataclass(eq=False)
class Category:
    id: int
    name: str
    children: List[Category] = field(default_factory=list)
    parent: Optional[Category] = None


@dataclass(eq=False)
class Author:
    name: str
    books: List[Book] = field(default_factory=list)


@dataclass(eq=False)
class Book:
    title: str
    author: Optional[Author] = None


class Person:
    """Plain annotated class with properties."""

    first: str
    last: str
    age: int

    def __init__(self, first: str = "", last: str = "", age: int = 0):
        self.first = first
        self.last = last
        self.age = age
        self._nickname = ""

    @property
    def full_name(self) -> str:
        return f"{self.first} {self.last}"

    @property
    def nickname(self) -> str:
        return self._nickname

    @nickname.setter
    def nickname(self, value: str) -> None:
        self._nickname = value


@dataclass
class OrderRow:
    id: int
    sku: str
    quantity: int
    total: float
    first_name: str
    lines_id: int


# ── Facets ───────────────────────────────────────────────────────────────

class AddressFacet(Facet):
    class Spec:
        source = Address
        reverse = True


class CustomerFacet(Facet):
    full_name: str = MapFrom("first_name + ' ' + last_name")
    city: Optional[str] = MapFrom("address.city")

    class Spec:
        source = Customer
        exclude = ["password_hash"]
        nested = [AddressFacet]
        reverse = True


class CustomerStatusFacet(Facet):
    email: str = MapWhen("status == Status.ACTIVE", default="<hidden>")

    class Spec:
        source = Customer
        include = ["id", "email", "status"]
        convert_enums_to = "string"


class LineFacet(Facet):
    total: float = MapFrom("quantity * unit_price")

    class Spec:
        source = Line
        reverse = True


class OrderFacet(Facet):
    class Spec:
        source = Order
        exclude = ["notes"]
        nested = ["CustomerFacet", "LineFacet"]
        flatten_to = [OrderRow, dict]


class CategoryFacet(Facet):
    class Spec:
        source = Category
        exclude = ["parent"]
        nested = ["CategoryFacet"]
        max_depth = 1


class CategoryTreeFacet(Facet):
    class Spec:
        source = Category
        nested = ["CategoryTreeFacet"]
        max_depth = 0
        preserve_references = True


class AuthorFacet(Facet):
    class Spec:
        source = Author
        nested = ["BookFacet"]
        max_depth = 0


class BookFacet(Facet):
    class Spec:
        source = Book
        nested = ["AuthorFacet"]
        max_depth = 0


class PersonFacet(Facet):
    class Spec:
        source = Person
        reverse = True


class AddressValue(Facet):
    class Spec:
        source = Address
        shape = EmissionShape.IMMUTABLE_POSITIONAL_VALUE
        reverse = True


# ── Wrappers ─────────────────────────────────────────────────────────────

class PublicAddress(Wrapper):
    class Spec:
        source = Address
        exclude = ["zip_code"]


class PublicCustomer(Wrapper):
    class Spec:
        source = Customer
        exclude = ["password_hash"]
        nested = ["PublicAddress"]


class OrderView(Wrapper):
    class Spec:
        source = Order
        read_only = True
        nested = ["PublicCustomer"]
