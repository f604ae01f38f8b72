"""
Annotation analysis helpers.

Everything the engine needs to know about a declared type is answered here:
whether it is optional, whether it is a collection (and of which shape),
and what a sensible type default is.
"""

from __future__ import annotations

import collections.abc
import types
import typing
from decimal import Decimal
from enum import Enum
from typing import Any, Iterable, Optional, Tuple, Union, get_args, get_origin

__all__ = [
    "CollectionShape",
    "unwrap_optional",
    "collection_info",
    "is_enum_type",
    "type_default",
    "type_name",
]

NoneType = type(None)


class CollectionShape(str, Enum):
    """How a collection member is materialized."""

    LIST = "list"
    TUPLE = "tuple"
    SEQUENCE = "sequence"   # read-only ordered view
    ITERABLE = "iterable"
    SET = "set"
    FROZENSET = "frozenset"

    def materialize(self, items: Iterable[Any]) -> Any:
        """Build a concrete collection of this shape."""
        if self in (CollectionShape.TUPLE, CollectionShape.SEQUENCE):
            return tuple(items)
        if self is CollectionShape.SET:
            return set(items)
        if self is CollectionShape.FROZENSET:
            return frozenset(items)
        return list(items)

    @property
    def suffix(self) -> str:
        """Materializer name used when rendering projections."""
        return {
            CollectionShape.LIST: "list",
            CollectionShape.ITERABLE: "list",
            CollectionShape.TUPLE: "tuple",
            CollectionShape.SEQUENCE: "tuple",
            CollectionShape.SET: "set",
            CollectionShape.FROZENSET: "frozenset",
        }[self]


_COLLECTION_ORIGINS = {
    list: CollectionShape.LIST,
    tuple: CollectionShape.TUPLE,
    set: CollectionShape.SET,
    frozenset: CollectionShape.FROZENSET,
    collections.abc.MutableSequence: CollectionShape.LIST,
    collections.abc.Sequence: CollectionShape.SEQUENCE,
    collections.abc.Collection: CollectionShape.ITERABLE,
    collections.abc.Iterable: CollectionShape.ITERABLE,
    collections.abc.MutableSet: CollectionShape.SET,
    collections.abc.Set: CollectionShape.FROZENSET,
}

_SCALAR_DEFAULTS = {
    int: 0,
    float: 0.0,
    bool: False,
    str: "",
    bytes: b"",
    Decimal: Decimal(0),
}


def unwrap_optional(tp: Any) -> Tuple[Any, bool]:
    """
    Strip ``None`` from a union.

    Returns:
        (inner type, whether None was part of the union)
    """
    if tp is None or tp is NoneType:
        return NoneType, True
    origin = get_origin(tp)
    if origin is Union or origin is types.UnionType:
        args = get_args(tp)
        rest = tuple(a for a in args if a is not NoneType)
        nullable = len(rest) != len(args)
        if len(rest) == 1:
            return rest[0], nullable
        return Union[rest], nullable
    return tp, False


def collection_info(tp: Any) -> Optional[Tuple[CollectionShape, Any]]:
    """
    Describe a collection annotation.

    ``str``, ``bytes`` and mappings are never collections. Heterogeneous
    tuples (``tuple[int, str]``) are treated as scalars.

    Returns:
        (shape, element type) or None
    """
    inner, _ = unwrap_optional(tp)
    if inner in _COLLECTION_ORIGINS:
        return _COLLECTION_ORIGINS[inner], Any

    origin = get_origin(inner)
    if origin not in _COLLECTION_ORIGINS:
        return None

    args = get_args(inner)
    if origin is tuple:
        if len(args) == 2 and args[1] is Ellipsis:
            return CollectionShape.TUPLE, args[0]
        return None
    return _COLLECTION_ORIGINS[origin], (args[0] if args else Any)


def is_enum_type(tp: Any) -> bool:
    return isinstance(tp, type) and issubclass(tp, Enum)


def type_default(tp: Any) -> Any:
    """
    Default value used for required source members that a reverse
    conversion does not write.
    """
    inner, nullable = unwrap_optional(tp)
    if nullable:
        return None
    info = collection_info(inner)
    if info is not None:
        return info[0].materialize(())
    if is_enum_type(inner):
        return next(iter(inner), None)
    for scalar, default in _SCALAR_DEFAULTS.items():
        if inner is scalar:
            return default
    return None


def type_name(tp: Any) -> str:
    """Readable rendering of an annotation (``Optional[list[Tag]]``)."""
    if tp is Any:
        return "Any"
    if tp is NoneType:
        return "None"
    inner, nullable = unwrap_optional(tp)
    if nullable and inner is not NoneType:
        return f"Optional[{type_name(inner)}]"
    origin = get_origin(inner)
    if origin is not None:
        args = ", ".join("..." if a is Ellipsis else type_name(a) for a in get_args(inner))
        base = getattr(origin, "__name__", None) or str(origin).replace("typing.", "")
        return f"{base}[{args}]" if args else base
    if isinstance(inner, type):
        return inner.__name__
    if isinstance(inner, typing.ForwardRef):
        return inner.__forward_arg__
    return str(inner).replace("typing.", "")
