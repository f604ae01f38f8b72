"""
facetcraft Facet Core: the ``Facet`` base class and its metaclass.

A facet is declared as a subclass of :class:`Facet` with an inner ``Spec``::

    class OrderSummary(Facet):
        customer_name: str = MapFrom("customer.name")

        class Spec:
            source = Order
            exclude = ["internal_notes"]
            nested = ["LineSummary"]

At class creation the metaclass plans the members and turns the class into
a dataclass of the chosen emission shape. Everything that depends on other
facets (nested bindings, compiled expressions, converters, projections) is
built on first use and memoized in the synthesis cache.

If the declaration is malformed the class is still created; the fault is
logged and re-raised the first time the facet is used. Setting
``FACETCRAFT_STRICT_DECLARATIONS=true`` raises it immediately instead.
"""

from __future__ import annotations

import copy
import dataclasses
import logging
from typing import Any, ClassVar, Dict, List, Optional

from ..config import get_settings
from .cache import synthesis_cache
from .directives import FacetSpec
from .eager import ForwardConverter, ReverseConverter
from .exceptions import DeclarationFault, FacetFault, ProjectionFault, ReverseFault
from .flatten import FlattenPlan, build_flatten_plan
from .model import FacetPlan, GenerationModel, build_model, plan_facet
from .projection import Projection, build_projection

logger = logging.getLogger("facetcraft.facets.core")

__all__ = ["Facet", "FacetMeta"]

_MUTABLE_DEFAULTS = (list, dict, set)

_RESERVED = frozenset({
    "from_source",
    "from_source_async",
    "create",
    "projection",
    "to_source",
    "flatten_to",
    "facet_spec",
})


class FacetMeta(type):
    """
    Metaclass for Facet classes.

    Responsibilities:
        1. Pop the ``Spec`` inner class (or inherit the base facet's)
        2. Plan the facet's members against the source type
        3. Emit the class as a dataclass of the requested shape
        4. Isolate declaration faults until the facet is first used
    """

    def __new__(
        mcs,
        name: str,
        bases: tuple[type, ...],
        namespace: dict[str, Any],
        **kwargs,
    ) -> FacetMeta:
        spec_cls = namespace.pop("Spec", None)

        # A facet subclass without its own Spec reuses its base's
        if spec_cls is None:
            for base in bases:
                inherited = getattr(base, "_facet_spec_cls", None)
                if inherited is not None:
                    spec_cls = inherited
                    break

        cls = super().__new__(mcs, name, bases, namespace, **kwargs)
        cls._facet_spec_cls = spec_cls
        cls._facet_plan = None
        cls._facet_fault = None
        cls._facet_init_names = frozenset()

        # The Facet root itself carries no Spec
        if spec_cls is None:
            return cls

        root = _root_class(cls)
        try:
            plan = plan_facet(cls, spec_cls, root=root)
            mcs._emit(cls, plan)
        except FacetFault as fault:
            if get_settings().strict_declarations:
                raise
            logger.error("Facet %s is unusable: %s", cls.__qualname__, fault.message)
            cls._facet_fault = fault
            return cls

        cls._facet_plan = plan
        logger.debug(
            "Declared facet %s (%s) over %s",
            cls.__qualname__, plan.spec.shape.value, plan.spec.source.__qualname__,
        )
        return cls

    @staticmethod
    def _emit(cls: type, plan: FacetPlan) -> None:
        """Turn ``cls`` into a dataclass carrying the planned members."""
        annotations: Dict[str, Any] = {}
        for member in plan.members:
            if member.name in _RESERVED:
                raise DeclarationFault(
                    f"member name {member.name!r} shadows a Facet method; exclude or rename it",
                    facet=cls.__qualname__,
                    directive=member.name,
                )
            if member.declared_on_base:
                continue
            annotations[member.name] = member.annotation
            default = member.default
            if isinstance(default, _MUTABLE_DEFAULTS):
                default = dataclasses.field(default_factory=lambda value=default: copy.copy(value))
            setattr(cls, member.name, default)
        cls.__annotations__ = annotations

        shape = plan.spec.shape
        try:
            dataclasses.dataclass(cls, eq=shape.value_equality, frozen=not shape.mutable)
        except (TypeError, ValueError) as exc:
            raise DeclarationFault(
                f"cannot emit as {shape.value}: {exc}", facet=cls.__qualname__, directive="shape"
            ) from exc
        cls._facet_init_names = frozenset(f.name for f in dataclasses.fields(cls) if f.init)


def _root_class(cls: type) -> type:
    for klass in reversed(cls.__mro__):
        if type(klass) is FacetMeta or isinstance(klass, FacetMeta):
            return klass
    return cls


class Facet(metaclass=FacetMeta):
    """
    Base class for every facet.

    Subclasses declare an inner ``Spec`` naming the ``source`` type and the
    selection, shape and nesting options; class attributes may carry
    ``MapFrom`` / ``MapWhen`` directives.
    """

    _facet_spec_cls: ClassVar[Optional[type]]
    _facet_plan: ClassVar[Optional[FacetPlan]]
    _facet_fault: ClassVar[Optional[FacetFault]]
    _facet_init_names: ClassVar[frozenset]

    # ── Synthesized artifacts ────────────────────────────────────────

    @classmethod
    def _facet_usable(cls) -> FacetPlan:
        if cls._facet_plan is None:
            if cls._facet_fault is not None:
                raise cls._facet_fault
            raise DeclarationFault("Facet declares no Spec", facet=cls.__qualname__)
        return cls._facet_plan

    @classmethod
    def _facet_model(cls) -> GenerationModel:
        cls._facet_usable()
        return synthesis_cache.get_or_build((cls, "model"), lambda: build_model(cls))

    @classmethod
    def _facet_forward(cls) -> ForwardConverter:
        return synthesis_cache.get_or_build(
            (cls, "forward"), lambda: ForwardConverter(cls._facet_model())
        )

    @classmethod
    def _facet_reverse(cls) -> ReverseConverter:
        if not cls._facet_usable().spec.reverse:
            raise ReverseFault(cls.__qualname__)
        return synthesis_cache.get_or_build(
            (cls, "reverse"), lambda: ReverseConverter(cls._facet_model())
        )

    @classmethod
    def _facet_flatten(cls, row_type: type) -> FlattenPlan:
        return synthesis_cache.get_or_build(
            (cls, "flatten", row_type), lambda: build_flatten_plan(cls, row_type)
        )

    @classmethod
    def facet_spec(cls) -> FacetSpec:
        return cls._facet_usable().spec

    # ── Public contract ──────────────────────────────────────────────

    @classmethod
    def from_source(cls, source: Any):
        """Build a facet instance from one source object."""
        return cls._facet_forward().convert(source)

    @classmethod
    async def from_source_async(cls, source: Any):
        """Like :meth:`from_source`, awaiting hooks that return awaitables."""
        return await cls._facet_forward().convert_async(source)

    @classmethod
    def create(cls, source: Any):
        """Named factory of immutable facets; equivalent to :meth:`from_source`."""
        if cls._facet_usable().spec.shape.mutable:
            raise FacetFault(
                "create() is only generated for immutable shapes; use from_source()",
                facet=cls.__qualname__,
            )
        return cls.from_source(source)

    @classmethod
    def projection(cls) -> Projection:
        """The facet's projection expression, built once."""
        if not cls._facet_usable().spec.projection:
            raise ProjectionFault(cls.__qualname__)
        return synthesis_cache.get_or_build((cls, "projection"), lambda: build_projection(cls))

    def to_source(self):
        """Build a new source object from this facet's reversible members."""
        return type(self)._facet_reverse().convert(self)

    def flatten_to(self, row_type: Optional[type] = None) -> List[Any]:
        """
        One row per element of the flattened collection member.

        ``row_type`` defaults to the first type in ``Spec.flatten_to``.
        """
        cls = type(self)
        if row_type is None:
            targets = cls._facet_usable().spec.flatten_to
            if not targets:
                raise DeclarationFault(
                    "no flatten_to row types declared", facet=cls.__qualname__, directive="flatten_to"
                )
            row_type = targets[0]
        return cls._facet_flatten(row_type).rows(self)
