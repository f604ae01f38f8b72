"""
Wrappers: reference-delegating views over one source object.

A wrapper copies nothing. Every selected source member becomes a property
that reads from, and unless the wrapper is read-only writes to, the
wrapped object::

    class PublicAddress(Wrapper):
        class Spec:
            source = Address
            exclude = ["country"]

    class PublicPerson(Wrapper):
        class Spec:
            source = Person
            exclude = ["ssn"]
            nested = ["PublicAddress"]

    view = PublicPerson(person)
    view.address.city = "Oslo"     # person.address.city is now "Oslo"
    view.unwrap() is person

A single-valued member whose type is the source of a nested wrapper is
returned wrapped; assigning a wrapper to it stores the wrapped object.
Collections are passed through as they are.

Members are selected with the same resolver and filter as facets. An
attribute defined on the wrapper class itself is left alone, so a wrapper
can replace the generated property for one member.
"""

from __future__ import annotations

import inspect
import logging
import sys
from typing import Any, ClassVar, Dict, Optional, Tuple, Type, TypeVar

from ..config import get_settings
from .cache import synthesis_cache
from .directives import SelectionPolicy
from .exceptions import DeclarationFault, FacetFault, MappingFault
from .graph import NestedBinding, bind_member, resolve_facet_refs
from .members import SourceMember, resolve_members
from .selection import select_members

logger = logging.getLogger("facetcraft.facets.wrappers")

__all__ = ["Wrapper", "WrapperMeta", "WrapperSpec", "is_wrapper_class", "wrap"]

W = TypeVar("W", bound="Wrapper")

_RESERVED = frozenset({"unwrap", "wrapper_spec"})


class WrapperSpec:
    """Parsed ``Spec`` inner class of a wrapper."""

    __slots__ = (
        "source",
        "include",
        "exclude",
        "include_fields",
        "read_only",
        "nested",
        "exclude_declared_in",
    )

    def __init__(self, spec_cls: type, *, wrapper: str = "?"):
        self.source = getattr(spec_cls, "source", None)
        include = getattr(spec_cls, "include", None)
        exclude = getattr(spec_cls, "exclude", None)
        if isinstance(include, str) or isinstance(exclude, str):
            raise DeclarationFault(
                "include/exclude must be sequences of member names, not a string",
                facet=wrapper,
                directive="include" if isinstance(include, str) else "exclude",
            )
        self.include = tuple(include) if include is not None else None
        self.exclude = tuple(exclude) if exclude is not None else None
        self.include_fields = bool(getattr(spec_cls, "include_fields", False))
        self.read_only = bool(getattr(spec_cls, "read_only", False))
        self.nested = tuple(getattr(spec_cls, "nested", ()))
        self.exclude_declared_in = tuple(getattr(spec_cls, "exclude_declared_in", ()))

        if self.source is None:
            raise DeclarationFault("Spec.source is required", facet=wrapper, directive="source")
        if not inspect.isclass(self.source):
            raise DeclarationFault(
                f"Spec.source must be a class, got {self.source!r}",
                facet=wrapper,
                directive="source",
            )
        for klass in self.exclude_declared_in:
            if not inspect.isclass(klass) or klass not in self.source.__mro__:
                raise DeclarationFault(
                    f"exclude_declared_in entry {klass!r} is not a base of "
                    f"{self.source.__qualname__}",
                    facet=wrapper,
                    directive="exclude_declared_in",
                )

    @property
    def policy(self) -> SelectionPolicy:
        return SelectionPolicy.from_lists(self.include, self.exclude)


def _delegate(name: str, writable: bool) -> property:
    def read(self):
        value = getattr(self._source, name)
        binding = type(self)._wrapper_bindings().get(name)
        if binding is None or value is None:
            return value
        return binding.facet_type(value)

    def write(self, value):
        if isinstance(value, Wrapper):
            value = value.unwrap()
        setattr(self._source, name, value)

    return property(read, write if writable else None, doc=f"The wrapped object's {name!r}.")


class WrapperMeta(type):
    """
    Metaclass for Wrapper classes.

    Pops the ``Spec`` inner class (or inherits the base wrapper's), selects
    the source members and installs one delegating property per member.
    Declaration faults are isolated until the wrapper is first used, as
    for facets.
    """

    def __new__(
        mcs,
        name: str,
        bases: tuple[type, ...],
        namespace: dict[str, Any],
        **kwargs,
    ) -> WrapperMeta:
        spec_cls = namespace.pop("Spec", None)
        if spec_cls is None:
            for base in bases:
                inherited = getattr(base, "_wrapper_spec_cls", None)
                if inherited is not None:
                    spec_cls = inherited
                    break

        # Instances hold nothing but the wrapped object
        namespace.setdefault("__slots__", ())
        cls = super().__new__(mcs, name, bases, namespace, **kwargs)
        cls._wrapper_spec_cls = spec_cls
        cls._wrapper_spec = None
        cls._wrapper_fault = None
        cls._wrapper_members = ()

        if spec_cls is None:
            return cls

        try:
            spec = WrapperSpec(spec_cls, wrapper=cls.__qualname__)
            members = mcs._install(cls, spec, namespace)
        except FacetFault as fault:
            if get_settings().strict_declarations:
                raise
            logger.error("Wrapper %s is unusable: %s", cls.__qualname__, fault.message)
            cls._wrapper_fault = fault
            return cls

        cls._wrapper_spec = spec
        cls._wrapper_members = members
        logger.debug(
            "Declared wrapper %s over %s: %s",
            cls.__qualname__, spec.source.__qualname__, [m.name for m in members],
        )
        return cls

    @staticmethod
    def _install(cls: type, spec: WrapperSpec, namespace: Dict[str, Any]) -> Tuple[SourceMember, ...]:
        try:
            resolved = resolve_members(spec.source, include_fields=spec.include_fields)
        except DeclarationFault as exc:
            raise DeclarationFault(exc.message, facet=cls.__qualname__, directive="source") from exc

        selected = select_members(resolved, spec.policy, exclude_declared_in=spec.exclude_declared_in)
        for member in selected:
            if member.name in _RESERVED:
                raise DeclarationFault(
                    f"member name {member.name!r} shadows a Wrapper method; exclude it",
                    facet=cls.__qualname__,
                    directive=member.name,
                )
            if member.name in namespace:
                continue
            writable = member.is_mutable and not spec.read_only
            setattr(cls, member.name, _delegate(member.name, writable))
        return tuple(selected)


def is_wrapper_class(obj: Any) -> bool:
    """Whether ``obj`` is a declared wrapper class (not the ``Wrapper`` root)."""
    return inspect.isclass(obj) and isinstance(obj, WrapperMeta) and obj._wrapper_spec_cls is not None


def _wrapped_source(wrapper_type: type) -> Any:
    return wrapper_type._wrapper_spec.source


class Wrapper(metaclass=WrapperMeta):
    """
    Base class for every wrapper.

    Subclasses declare an inner ``Spec`` naming the ``source`` type and
    optionally ``include``/``exclude``, ``include_fields``, ``read_only``,
    ``nested`` and ``exclude_declared_in``.
    """

    __slots__ = ("_source",)

    _wrapper_spec_cls: ClassVar[Optional[type]]
    _wrapper_spec: ClassVar[Optional[WrapperSpec]]
    _wrapper_fault: ClassVar[Optional[FacetFault]]
    _wrapper_members: ClassVar[Tuple[SourceMember, ...]]

    def __init__(self, source: Any):
        cls = type(self)
        spec = cls._wrapper_usable()
        if source is None:
            raise MappingFault("<source>", "source object is None", facet=cls.__qualname__)
        if not isinstance(source, spec.source):
            raise TypeError(
                f"{cls.__name__} wraps {spec.source.__qualname__}, got {type(source).__name__}"
            )
        self._source = source

    @classmethod
    def _wrapper_usable(cls) -> WrapperSpec:
        if cls._wrapper_spec is None:
            if cls._wrapper_fault is not None:
                raise cls._wrapper_fault
            raise DeclarationFault("Wrapper declares no Spec", facet=cls.__qualname__)
        return cls._wrapper_spec

    @classmethod
    def _wrapper_bindings(cls) -> Dict[str, NestedBinding]:
        return synthesis_cache.get_or_build((cls, "bindings"), cls._bind_nested)

    @classmethod
    def _bind_nested(cls) -> Dict[str, NestedBinding]:
        spec = cls._wrapper_usable()
        namespace = vars(sys.modules[cls.__module__]) if cls.__module__ in sys.modules else {}
        candidates = resolve_facet_refs(
            spec.nested, namespace, owner=cls, accept=is_wrapper_class, kind="wrapper",
        )
        for candidate in candidates:
            candidate._wrapper_usable()

        bindings: Dict[str, NestedBinding] = {}
        for member in cls._wrapper_members:
            binding = bind_member(
                member.name,
                member.declared_type,
                candidates=candidates,
                explicit=None,
                facet=cls.__qualname__,
                source_of=_wrapped_source,
            )
            if binding is None:
                continue
            if binding.is_collection:
                logger.debug("%s.%s: collection passed through unwrapped", cls.__qualname__, member.name)
                continue
            bindings[member.name] = binding
        return bindings

    @classmethod
    def wrapper_spec(cls) -> WrapperSpec:
        return cls._wrapper_usable()

    def unwrap(self) -> Any:
        """The wrapped source object itself."""
        return self._source

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._source!r})"


def wrap(source: Any, wrapper_type: Type[W]) -> W:
    """Wrap ``source`` in ``wrapper_type``."""
    if not is_wrapper_class(wrapper_type):
        raise TypeError(f"{wrapper_type!r} is not a wrapper class")
    return wrapper_type(source)
