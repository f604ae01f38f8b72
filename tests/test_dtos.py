"""
Tests for CRUD DTO generation.
"""

import dataclasses

import pytest

from facetcraft.facets import EmissionShape
from facetcraft.facets.dtos import AUDIT_MEMBERS, DtoTypes, generate_dtos
from facetcraft.facets.exceptions import ReverseFault
from facetcraft.facets.extensions import is_facet_class

from sample_domain import Address, Auditable, Customer, Status


def field_names(facet_type):
    return [f.name for f in dataclasses.fields(facet_type)]


class TestGenerateDtos:

    def test_default_set(self):
        dtos = generate_dtos(Customer)
        assert len(dtos) == 4
        assert [f.__name__ for f in dtos] == [
            "CreateCustomerRequest",
            "UpdateCustomerRequest",
            "CustomerResponse",
            "CustomerQuery",
        ]
        assert dtos.upsert is None
        assert all(is_facet_class(f) for f in dtos)
        assert dtos.response.__module__ == Customer.__module__

    def test_all_excludes_upsert(self):
        assert not DtoTypes.ALL & DtoTypes.UPSERT
        dtos = generate_dtos(Customer, types=DtoTypes.ALL | DtoTypes.UPSERT)
        assert dtos.upsert.__name__ == "UpsertCustomerRequest"
        assert len(dtos) == 5

    def test_selected_types(self):
        dtos = generate_dtos(Address, types=DtoTypes.CREATE | DtoTypes.RESPONSE)
        assert dtos.update is None
        assert dtos.query is None
        assert repr(dtos) == "DtoSet(Address: CreateAddressRequest, AddressResponse)"

    def test_prefix_and_suffix(self):
        dtos = generate_dtos(Address, types=DtoTypes.CREATE | DtoTypes.RESPONSE, prefix="Api", suffix="V2")
        assert dtos.create.__name__ == "CreateApiAddressRequestV2"
        assert dtos.response.__name__ == "ApiAddressResponseV2"

    def test_create_excludes_id(self):
        dtos = generate_dtos(Customer)
        assert "id" not in field_names(dtos.create)
        assert "id" in field_names(dtos.update)
        assert "id" in field_names(dtos.response)

    def test_exclude(self):
        dtos = generate_dtos(Customer, exclude=["password_hash"])
        for facet_type in dtos:
            assert "password_hash" not in field_names(facet_type)

    def test_auditable(self):
        dtos = generate_dtos(Customer, auditable=True)
        assert {"created_at", "updated_by"} <= AUDIT_MEMBERS
        for facet_type in dtos:
            assert "created_at" not in field_names(facet_type)
            assert "updated_by" not in field_names(facet_type)

    def test_exclude_declared_in(self):
        dtos = generate_dtos(Customer, exclude_declared_in=[Auditable])
        assert field_names(dtos.response)[:2] == ["id", "first_name"]

    def test_query_members_are_optional(self):
        query = generate_dtos(Customer).query
        empty = query()
        assert all(getattr(empty, name) is None for name in field_names(query))

    def test_value_shape_by_default(self, customer):
        response = generate_dtos(Customer).response
        assert response.facet_spec().shape is EmissionShape.MUTABLE_VALUE
        assert response.from_source(customer) == response.from_source(customer)

    def test_custom_shape(self, address):
        response = generate_dtos(
            Address, types=DtoTypes.RESPONSE, shape=EmissionShape.IMMUTABLE_POSITIONAL_VALUE
        ).response
        assert response.create(address).city == "Springfield"


class TestDtoConversion:

    def test_response(self, customer):
        response = generate_dtos(Customer, exclude=["password_hash"]).response.from_source(customer)
        assert response.id == 7
        assert response.status is Status.ACTIVE
        assert response.address is customer.address

    def test_response_is_one_way(self, customer):
        response = generate_dtos(Customer).response.from_source(customer)
        with pytest.raises(ReverseFault):
            response.to_source()

    def test_create_request_round_trip(self, customer):
        create = generate_dtos(Customer, auditable=True).create
        request = create.from_source(customer)
        back = request.to_source()
        assert isinstance(back, Customer)
        assert back.id == 0
        assert back.email == "ada@example.com"
        assert back.created_at == ""

    def test_update_request_keeps_id(self, customer):
        update = generate_dtos(Customer).update
        request = update.from_source(customer)
        request.email = "new@example.com"
        back = request.to_source()
        assert back.id == 7
        assert back.email == "new@example.com"
        assert back.password_hash == "secret"
