"""
CRUD DTO sets derived from one source type.

``generate_dtos(User)`` declares up to five facets over ``User``::

    CreateUserRequest   every member except ``id``        (reversible)
    UpdateUserRequest   every member                      (reversible)
    UpsertUserRequest   every member                      (reversible)
    UserResponse        every member
    UserQuery           every member, all Optional = None

``auditable=True`` additionally drops the usual audit columns
(``created_at``, ``updated_by`` ...).
"""

from __future__ import annotations

import logging
from enum import IntFlag
from typing import Any, Dict, Iterator, Optional, Sequence

from .core import Facet
from .directives import EmissionShape

logger = logging.getLogger("facetcraft.facets.dtos")

__all__ = ["DtoTypes", "DtoSet", "AUDIT_MEMBERS", "generate_dtos"]


class DtoTypes(IntFlag):
    CREATE = 1
    UPDATE = 2
    RESPONSE = 4
    QUERY = 8
    UPSERT = 16
    ALL = CREATE | UPDATE | RESPONSE | QUERY


AUDIT_MEMBERS = frozenset({
    "created_at", "created_date", "created_on", "created_by",
    "updated_at", "updated_date", "updated_on", "updated_by", "modified_by",
    "deleted_at", "deleted_date", "deleted_on", "deleted_by",
})

ID_MEMBERS = frozenset({"id"})

# kind -> (name prefix, name suffix)
_NAMING = {
    DtoTypes.CREATE: ("Create", "Request"),
    DtoTypes.UPDATE: ("Update", "Request"),
    DtoTypes.UPSERT: ("Upsert", "Request"),
    DtoTypes.RESPONSE: ("", "Response"),
    DtoTypes.QUERY: ("", "Query"),
}


class DtoSet:
    """The facets produced by one :func:`generate_dtos` call."""

    def __init__(self, source: type, facets: Dict[DtoTypes, type]):
        self.source = source
        self._facets = facets

    @property
    def create(self) -> Optional[type]:
        return self._facets.get(DtoTypes.CREATE)

    @property
    def update(self) -> Optional[type]:
        return self._facets.get(DtoTypes.UPDATE)

    @property
    def upsert(self) -> Optional[type]:
        return self._facets.get(DtoTypes.UPSERT)

    @property
    def response(self) -> Optional[type]:
        return self._facets.get(DtoTypes.RESPONSE)

    @property
    def query(self) -> Optional[type]:
        return self._facets.get(DtoTypes.QUERY)

    def __iter__(self) -> Iterator[type]:
        return iter(self._facets.values())

    def __len__(self) -> int:
        return len(self._facets)

    def __repr__(self) -> str:
        names = ", ".join(f.__name__ for f in self)
        return f"DtoSet({self.source.__name__}: {names})"


def _dto_name(source_name: str, kind: DtoTypes, prefix: str, suffix: str) -> str:
    before, after = _NAMING[kind]
    return f"{before}{prefix}{source_name}{after}{suffix}"


def generate_dtos(
    source: type,
    *,
    types: DtoTypes = DtoTypes.ALL,
    exclude: Sequence[str] = (),
    exclude_declared_in: Sequence[type] = (),
    auditable: bool = False,
    include_fields: bool = False,
    prefix: str = "",
    suffix: str = "",
    shape: EmissionShape = EmissionShape.MUTABLE_VALUE,
    module: Optional[str] = None,
) -> DtoSet:
    """
    Declare the CRUD facets of ``source``.

    Args:
        source: The source type.
        types: Which facets to declare.
        exclude: Source members left out of every facet.
        exclude_declared_in: Base types whose members are left out.
        auditable: Also leave out the standard audit members.
        include_fields: Also consider bare class attributes.
        prefix: Inserted before the source name (``Create{prefix}User...``).
        suffix: Appended after the standard suffix.
        shape: Emission shape of every generated facet.
        module: ``__module__`` of the generated classes (defaults to the
            source's module).
    """
    excluded = set(exclude)
    if auditable:
        excluded |= AUDIT_MEMBERS

    facets: Dict[DtoTypes, type] = {}
    for kind in (DtoTypes.CREATE, DtoTypes.UPDATE, DtoTypes.UPSERT, DtoTypes.RESPONSE, DtoTypes.QUERY):
        if not types & kind:
            continue
        spec_attrs: Dict[str, Any] = {
            "source": source,
            "exclude": sorted(excluded | ID_MEMBERS) if kind is DtoTypes.CREATE else sorted(excluded),
            "exclude_declared_in": tuple(exclude_declared_in),
            "include_fields": include_fields,
            "shape": shape,
            "reverse": kind in (DtoTypes.CREATE, DtoTypes.UPDATE, DtoTypes.UPSERT),
            "nullable_properties": kind is DtoTypes.QUERY,
        }
        name = _dto_name(source.__name__, kind, prefix, suffix)
        facets[kind] = type(name, (Facet,), {
            "__module__": module or source.__module__,
            "__qualname__": name,
            "Spec": type("Spec", (), spec_attrs),
        })

    dto_set = DtoSet(source, facets)
    logger.debug("Generated %r", dto_set)
    return dto_set
