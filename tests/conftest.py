"""
Shared test fixtures for the facetcraft test suite.
"""

import os

import pytest

from facetcraft.config import reset_settings


@pytest.fixture(autouse=True)
def fresh_settings(monkeypatch):
    """Every test starts from default settings and an empty synthesis cache."""
    for key in list(os.environ):
        if key.startswith("FACETCRAFT_"):
            monkeypatch.delenv(key)
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def address():
    from sample_domain import Address

    return Address(street="1 Main St", city="Springfield", zip_code="12345")


@pytest.fixture
def customer(address):
    from sample_domain import Customer, Status

    return Customer(
        id=7,
        first_name="Ada",
        last_name="Lovelace",
        email="ada@example.com",
        status=Status.ACTIVE,
        address=address,
        password_hash="secret",
        created_at="2024-01-01",
        updated_by="admin",
    )


@pytest.fixture
def order(customer):
    from sample_domain import Line, Order

    return Order(
        id=100,
        customer=customer,
        lines=[
            Line(sku="A-1", quantity=2, unit_price=1.5, id=1),
            Line(sku="B-2", quantity=1, unit_price=10.0, id=2),
        ],
        notes="leave at door",
        discount=0.5,
    )
