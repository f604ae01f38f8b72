"""
facetcraft Facets: declarative, source-derived views of your types.

A facet is a dataclass whose members are derived from a source type, with
forward conversion, an optional reverse conversion, a projection
expression and flatten-to-rows generated from the declaration.

Quick Start::

    from facetcraft.facets import Facet, MapFrom, MapWhen

    class OrderSummary(Facet):
        customer: str = MapFrom("customer.name")
        total: float = MapFrom("quantity * unit_price")

        class Spec:
            source = Order
            exclude = ["internal_notes"]
            nested = ["LineSummary"]
            reverse = True

    summary = OrderSummary.from_source(order)       # eager
    rows = OrderSummary.projection().apply(orders)  # projection
    order = summary.to_source()                     # reverse

A wrapper is the reference counterpart: it copies nothing and forwards
member access to the object it wraps (see :mod:`.wrappers`).
"""

from .core import Facet, FacetMeta
from .directives import (
    UNSET,
    EmissionShape,
    EnumRendering,
    FacetSpec,
    MapFrom,
    MapWhen,
)
from .typeinfo import CollectionShape
from .traversal import TraversalState
from .graph import ExpansionStack, NestedBinding
from .model import GenerationModel, ResolvedMember, MemberOrigin
from .projection import Projection
from .flatten import FlattenPlan
from .eager import FacetDraft
from .cache import SynthesisCache, synthesis_cache
from .exceptions import (
    FACET,
    FacetFault,
    DeclarationFault,
    ResolutionFault,
    MappingFault,
    HookFault,
    ReverseFault,
    ProjectionFault,
)
from .extensions import (
    is_facet_class,
    to_facet,
    select_facets,
    to_source,
    select_facet_sources,
    apply_facet,
    select_projection,
    discover_facets,
    check_declarations,
)
from .dtos import DtoTypes, DtoSet, generate_dtos
from .wrappers import Wrapper, WrapperMeta, WrapperSpec, is_wrapper_class, wrap
from .schema import describe_facet

__all__ = [
    # Core
    "Facet",
    "FacetMeta",
    # Directives
    "MapFrom",
    "MapWhen",
    "UNSET",
    "EmissionShape",
    "EnumRendering",
    "FacetSpec",
    "CollectionShape",
    # Models
    "TraversalState",
    "ExpansionStack",
    "NestedBinding",
    "GenerationModel",
    "ResolvedMember",
    "MemberOrigin",
    # Artifacts
    "Projection",
    "FlattenPlan",
    "FacetDraft",
    "SynthesisCache",
    "synthesis_cache",
    # Exceptions
    "FACET",
    "FacetFault",
    "DeclarationFault",
    "ResolutionFault",
    "MappingFault",
    "HookFault",
    "ReverseFault",
    "ProjectionFault",
    # Extensions
    "is_facet_class",
    "to_facet",
    "select_facets",
    "to_source",
    "select_facet_sources",
    "apply_facet",
    "select_projection",
    "discover_facets",
    "check_declarations",
    # Wrappers
    "Wrapper",
    "WrapperMeta",
    "WrapperSpec",
    "is_wrapper_class",
    "wrap",
    # DTO sets
    "DtoTypes",
    "DtoSet",
    "generate_dtos",
    # Introspection
    "describe_facet",
]
