"""
Convenience helpers around the generated facet contract.

These are thin, generic entry points for code that holds a facet *type* as
a value (registries, repositories, request handlers) rather than calling
the classmethods directly.
"""

from __future__ import annotations

import importlib
import inspect
import logging
from types import ModuleType
from typing import Any, Iterable, List, Optional, Tuple, Type, TypeVar, Union

from .core import Facet
from .exceptions import FacetFault

logger = logging.getLogger("facetcraft.facets.extensions")

__all__ = [
    "is_facet_class",
    "to_facet",
    "select_facets",
    "to_source",
    "select_facet_sources",
    "apply_facet",
    "select_projection",
    "discover_facets",
    "check_declarations",
]

F = TypeVar("F", bound=Facet)


def is_facet_class(obj: Any) -> bool:
    """True for declared facet classes (not the ``Facet`` root itself)."""
    return (
        inspect.isclass(obj)
        and issubclass(obj, Facet)
        and obj is not Facet
        and obj._facet_spec_cls is not None
    )


def _require_facet(facet_type: Any) -> None:
    if not is_facet_class(facet_type):
        raise TypeError(f"{facet_type!r} is not a facet class")


def to_facet(source: Any, facet_type: Type[F]) -> F:
    _require_facet(facet_type)
    return facet_type.from_source(source)


def select_facets(sources: Iterable[Any], facet_type: Type[F]) -> List[F]:
    """Convert every source eagerly; ``None`` entries are skipped."""
    _require_facet(facet_type)
    converter = facet_type._facet_forward()
    return [converter.convert(source) for source in sources if source is not None]


def to_source(facet: Facet) -> Any:
    return facet.to_source()


def select_facet_sources(facets: Iterable[Facet]) -> List[Any]:
    return [facet.to_source() for facet in facets if facet is not None]


def apply_facet(facet: Facet, target: Any) -> List[str]:
    """
    Copy the reversible members of ``facet`` onto an existing source object.

    Useful for update requests: only members whose value actually differs
    are written.

    Returns:
        Names of the source members that changed.
    """
    return type(facet)._facet_reverse().apply(facet, target)


def select_projection(sources: Iterable[Any], facet_type: Type[F]) -> List[F]:
    """Map ``sources`` through the facet's projection expression."""
    _require_facet(facet_type)
    return facet_type.projection().apply(sources)


def discover_facets(module: Union[str, ModuleType]) -> List[type]:
    """Facet classes defined in ``module``, in declaration order."""
    if isinstance(module, str):
        module = importlib.import_module(module)
    found = [
        obj for obj in vars(module).values()
        if is_facet_class(obj) and obj.__module__ == module.__name__
    ]
    logger.debug("Discovered %d facets in %s", len(found), module.__name__)
    return found


def check_declarations(classes: Iterable[type]) -> List[Tuple[type, Optional[FacetFault]]]:
    """
    Build every artifact of each facet and report faults per class.

    A fault in one facet does not stop the others from being checked.
    """
    results: List[Tuple[type, Optional[FacetFault]]] = []
    for facet_type in classes:
        try:
            facet_type._facet_model()
            facet_type._facet_forward()
            spec = facet_type.facet_spec()
            if spec.reverse:
                facet_type._facet_reverse()
            if spec.projection:
                facet_type.projection()
            for row_type in spec.flatten_to:
                facet_type._facet_flatten(row_type)
        except FacetFault as fault:
            logger.warning("%s: %s", facet_type.__qualname__, fault.message)
            results.append((facet_type, fault))
        else:
            results.append((facet_type, None))
    return results
