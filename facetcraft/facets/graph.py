"""
Nested-Facet Graph Resolver.

Decides which facet members are themselves facets of a related source type
and records how (single value or collection, and of which shape).

Matching a member to a nested facet:

    1. an explicit facet annotation on the member wins, but its source
       must match the member's (element) type;
    2. otherwise the ``Spec.nested`` candidates are tried, exact source
       type first, then subclass match.

:class:`ExpansionStack` is the generation-time cycle guard used while
projections and flatten plans inline nested facets; it never sees object
instances.
"""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple

from .exceptions import ResolutionFault
from .typeinfo import CollectionShape, collection_info, unwrap_optional

logger = logging.getLogger("facetcraft.facets.graph")

__all__ = [
    "NestedBinding",
    "ExpansionStack",
    "resolve_facet_refs",
    "facet_in_annotation",
    "bind_member",
]


@dataclass(frozen=True)
class NestedBinding:
    member_name: str
    source_element_type: Any
    facet_type: type
    is_collection: bool = False
    collection_shape: Optional[CollectionShape] = None
    nullable: bool = False


class ExpansionStack:
    """Facet types currently being inlined, outermost first."""

    __slots__ = ("_frames",)

    def __init__(self, frames: Iterable[type] = ()):
        self._frames: Tuple[type, ...] = tuple(frames)

    def push(self, facet_type: type) -> "ExpansionStack":
        return ExpansionStack(self._frames + (facet_type,))

    def __contains__(self, facet_type: object) -> bool:
        return facet_type in self._frames

    def __len__(self) -> int:
        return len(self._frames)

    def __iter__(self) -> Iterator[type]:
        return iter(self._frames)

    def __repr__(self) -> str:
        return "ExpansionStack(" + " -> ".join(f.__name__ for f in self._frames) + ")"


def _is_facet(obj: Any) -> bool:
    return inspect.isclass(obj) and hasattr(obj, "_facet_plan")


def resolve_facet_refs(
    refs: Sequence[Any],
    namespace: Mapping[str, Any],
    *,
    owner: type,
    accept: Callable[[Any], bool] = _is_facet,
    kind: str = "facet",
) -> List[type]:
    """
    Turn ``Spec.nested`` entries into facet classes.

    Strings are looked up in the declaring module, so a facet may name a
    facet defined later in the same module (or itself). ``accept`` and
    ``kind`` let wrappers resolve their nested wrappers the same way.
    """
    resolved: List[type] = []
    for ref in refs:
        target = ref
        if isinstance(ref, str):
            target = owner if ref == owner.__name__ else namespace.get(ref)
            if target is None:
                raise ResolutionFault(f"unknown nested {kind} {ref!r}", facet=owner.__qualname__)
        if not accept(target):
            raise ResolutionFault(
                f"nested entry {ref!r} is not a {kind} class", facet=owner.__qualname__
            )
        resolved.append(target)
    return resolved


def facet_in_annotation(annotation: Any) -> Optional[type]:
    """The facet class named by an annotation (``Optional[X]``, ``list[X]``, ``X``)."""
    inner, _ = unwrap_optional(annotation)
    info = collection_info(inner)
    if info is not None:
        inner, _ = unwrap_optional(info[1])
    return inner if _is_facet(inner) else None


def _source_of(facet_type: type) -> Any:
    plan = facet_type._facet_plan
    return plan.spec.source if plan is not None else None


def bind_member(
    name: str,
    source_type: Any,
    *,
    candidates: Sequence[type],
    explicit: Optional[type],
    facet: str,
    source_of: Callable[[type], Any] = _source_of,
) -> Optional[NestedBinding]:
    """
    Bind one member to a nested facet, or return None for a plain member.

    Args:
        name: Facet member name.
        source_type: Declared type of the source member feeding it.
        candidates: Facets listed in ``Spec.nested``.
        explicit: Facet named by the member's own annotation, if any.
        facet: Owning facet name, for fault messages.
        source_of: Source type a candidate maps (facets read their Spec).
    """
    inner, nullable = unwrap_optional(source_type)
    info = collection_info(inner)
    shape = None
    element = inner
    if info is not None:
        shape, element = info
        element, _ = unwrap_optional(element)

    if explicit is not None:
        target = source_of(explicit)
        if not (element is target or (inspect.isclass(element) and inspect.isclass(target)
                                      and issubclass(element, target))):
            raise ResolutionFault(
                f"annotated facet {explicit.__name__} maps {getattr(target, '__name__', target)!r} "
                f"but the source member is {getattr(element, '__name__', element)!r}",
                facet=facet,
                member=name,
            )
        bound = explicit
    else:
        bound = None
        for candidate in candidates:
            if source_of(candidate) is element:
                bound = candidate
                break
        if bound is None and inspect.isclass(element):
            for candidate in candidates:
                target = source_of(candidate)
                if inspect.isclass(target) and issubclass(element, target):
                    bound = candidate
                    break
        if bound is None:
            return None

    logger.debug(
        "%s.%s bound to nested facet %s (%s)",
        facet, name, bound.__name__, shape.value if shape else "single",
    )
    return NestedBinding(
        member_name=name,
        source_element_type=element,
        facet_type=bound,
        is_collection=shape is not None,
        collection_shape=shape,
        nullable=nullable,
    )
