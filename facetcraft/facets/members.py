"""
Member Resolver: the ordered member list of a source type.

Walks the inheritance chain from the most-derived class up to ``object``
and collects annotated attributes, properties and (optionally) bare slots.
A member name seen on a more-derived class shadows the same name further
up the chain.
"""

from __future__ import annotations

import dataclasses
import inspect
import logging
import types
import typing
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

from .exceptions import DeclarationFault

logger = logging.getLogger("facetcraft.facets.members")

__all__ = [
    "MemberKind",
    "SourceMember",
    "MISSING",
    "resolve_members",
    "base_member_names",
]


class _Missing:
    """Marker for a source member that declares no default."""

    def __repr__(self) -> str:
        return "MISSING"


MISSING = _Missing()


class MemberKind(str, Enum):
    FIELD = "field"
    PROPERTY = "property"


@dataclass(frozen=True)
class SourceMember:
    """A readable attribute of a source type."""

    name: str
    declared_type: Any
    is_mutable: bool
    is_required: bool
    kind: MemberKind
    declaring_type: type
    default: Any = MISSING

    @property
    def is_field_kind(self) -> bool:
        return self.kind is MemberKind.FIELD

    @property
    def has_default(self) -> bool:
        return self.default is not MISSING


def _type_hints(obj: Any, owner: type) -> Dict[str, Any]:
    try:
        return typing.get_type_hints(obj)
    except (NameError, TypeError) as exc:
        raise DeclarationFault(
            f"cannot resolve annotations of {owner.__qualname__}: {exc}",
            directive="source",
        ) from exc


def _is_classvar(tp: Any) -> bool:
    return tp is typing.ClassVar or typing.get_origin(tp) is typing.ClassVar


def _slot_names(klass: type) -> List[str]:
    slots = klass.__dict__.get("__slots__", ())
    if isinstance(slots, str):
        slots = (slots,)
    return [s for s in slots if s not in ("__dict__", "__weakref__")]


def resolve_members(source: type, *, include_fields: bool = False) -> List[SourceMember]:
    """
    Resolve the members of ``source``.

    Args:
        source: Any class (plain annotated class, dataclass, slotted class).
        include_fields: Also consider bare ``__slots__`` entries that carry
            no annotation (FIELD-kind members typed ``Any``).

    Returns:
        Members ordered base-first (the order a dataclass would declare them),
        each taken from the most-derived class that declares it.
    """
    if not inspect.isclass(source):
        raise DeclarationFault(f"source must be a class, got {source!r}", directive="source")

    hints = _type_hints(source, source)
    dc_fields = {}
    frozen = False
    if dataclasses.is_dataclass(source):
        dc_fields = {f.name: f for f in dataclasses.fields(source)}
        frozen = source.__dataclass_params__.frozen

    winners: Dict[str, SourceMember] = {}
    seen: set = set()

    for klass in source.__mro__:
        if klass is object:
            break

        for name in inspect.get_annotations(klass):
            if name in seen or name.startswith("_"):
                continue
            seen.add(name)
            tp = hints.get(name, Any)
            if _is_classvar(tp) or isinstance(tp, dataclasses.InitVar):
                continue

            if name in dc_fields:
                f = dc_fields[name]
                no_default = f.default is dataclasses.MISSING
                default = MISSING if no_default else f.default
                required = no_default and f.default_factory is dataclasses.MISSING
            else:
                default = klass.__dict__.get(name, MISSING)
                if isinstance(default, types.MemberDescriptorType):
                    default = MISSING
                required = default is MISSING

            winners[name] = SourceMember(
                name=name,
                declared_type=tp,
                is_mutable=not frozen,
                is_required=required,
                kind=MemberKind.FIELD,
                declaring_type=klass,
                default=default,
            )

        for name, value in klass.__dict__.items():
            if not isinstance(value, property) or name in seen or name.startswith("_"):
                continue
            seen.add(name)
            prop_hints = _type_hints(value.fget, source) if value.fget else {}
            winners[name] = SourceMember(
                name=name,
                declared_type=prop_hints.get("return", Any),
                is_mutable=value.fset is not None,
                is_required=False,
                kind=MemberKind.PROPERTY,
                declaring_type=klass,
            )

        if include_fields:
            for name in _slot_names(klass):
                if name in seen or name.startswith("_"):
                    continue
                seen.add(name)
                winners[name] = SourceMember(
                    name=name,
                    declared_type=Any,
                    is_mutable=True,
                    is_required=False,
                    kind=MemberKind.FIELD,
                    declaring_type=klass,
                )

    # Base-first ordering, keeping each class's declaration order.
    ordered: List[SourceMember] = []
    placed: set = set()
    for klass in reversed(source.__mro__):
        if klass is object:
            continue
        names = list(inspect.get_annotations(klass)) + list(klass.__dict__) + _slot_names(klass)
        for name in names:
            if name in winners and name not in placed:
                placed.add(name)
                ordered.append(winners[name])

    logger.debug(
        "Resolved %d members on %s: %s",
        len(ordered), source.__qualname__, [m.name for m in ordered],
    )
    return ordered


def base_member_names(facet_cls: type, *, stop: Optional[type] = None) -> List[str]:
    """
    Names declared by the facet's own base classes.

    These members are still populated by the converters but are not
    re-declared on the generated class. ``stop`` is the class at which the
    walk ends (the ``Facet`` root).
    """
    names: List[str] = []
    for klass in facet_cls.__mro__[1:]:
        if klass is object or klass is stop:
            continue
        if stop is not None and klass in stop.__mro__:
            continue
        for name in inspect.get_annotations(klass):
            if not name.startswith("_") and name not in names:
                names.append(name)
        for name, value in klass.__dict__.items():
            if isinstance(value, property) and not name.startswith("_") and name not in names:
                names.append(name)
    return names
