"""
Declarative directives and their parsed records.

Authors write directives in two places:

    * the inner ``Spec`` class of a facet (facet-level directives), parsed
      once into a :class:`FacetSpec`;
    * default values of facet annotations (member-level directives,
      :class:`MapFrom` and :class:`MapWhen`), parsed into
      :class:`MemberDirective` records.

Example::

    class UserSummary(Facet):
        class Spec:
            source = User
            exclude = ("password_hash",)
            nested = ["AddressView"]
            max_depth = 3

        display_name: str = MapFrom("first_name + ' ' + last_name")
        email_address: str = MapFrom("email")
        discount: float = MapWhen("is_vip", default=0.0)
"""

from __future__ import annotations

import inspect
import keyword
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, FrozenSet, Optional, Tuple

from .exceptions import DeclarationFault

logger = logging.getLogger("facetcraft.facets.directives")

__all__ = [
    "MapFrom",
    "MapWhen",
    "MemberDirective",
    "SelectionMode",
    "SelectionPolicy",
    "EmissionShape",
    "EnumRendering",
    "FacetSpec",
    "UNSET",
]


class _Unset:
    """Sentinel for 'no value supplied' (distinct from None)."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET = _Unset()


# ── Member-level directives (as written) ─────────────────────────────────

class MapFrom:
    """
    Populate a facet member from another source member, a dotted path, or
    a computed expression over source members.

    Args:
        source: ``"name"`` (rename), ``"address.city"`` (path) or an
            expression such as ``"first_name + ' ' + last_name"``.
        reversible: Whether the reverse conversion writes this member back.
            Defaults to True for renames and False for paths/expressions.
        reverse_to: Source member written by the reverse conversion. Needed
            to force ``reversible=True`` on a path or expression.
        include_in_projection: Omit the member from the projection when False.
        when: Conditions that must all hold for the member to be populated.
        default: Value used when a condition does not hold.
        enum_as: ``"string"`` or ``"int"``; re-project an enum member.
    """

    __slots__ = (
        "source",
        "reversible",
        "reverse_to",
        "include_in_projection",
        "when",
        "default",
        "enum_as",
    )

    def __init__(
        self,
        source: str,
        *,
        reversible: Optional[bool] = None,
        reverse_to: Optional[str] = None,
        include_in_projection: bool = True,
        when: Tuple[str, ...] | str = (),
        default: Any = UNSET,
        enum_as: Optional[str] = None,
    ):
        self.source = source
        self.reversible = reversible
        self.reverse_to = reverse_to
        self.include_in_projection = include_in_projection
        self.when = (when,) if isinstance(when, str) else tuple(when)
        self.default = default
        self.enum_as = enum_as

    def __repr__(self) -> str:
        return f"MapFrom({self.source!r})"


class MapWhen:
    """
    Populate a facet member only when every condition holds.

    Conditions are expressions over source members, e.g.
    ``MapWhen("status == Status.ACTIVE", "score > 10", default=0)``.
    """

    __slots__ = ("conditions", "default", "include_in_projection", "enum_as")

    def __init__(
        self,
        *conditions: str,
        default: Any = UNSET,
        include_in_projection: bool = True,
        enum_as: Optional[str] = None,
    ):
        self.conditions = tuple(conditions)
        self.default = default
        self.include_in_projection = include_in_projection
        self.enum_as = enum_as

    def __repr__(self) -> str:
        return f"MapWhen({', '.join(repr(c) for c in self.conditions)})"


class EnumRendering(str, Enum):
    STRING = "string"
    INT = "int"


def _parse_enum_rendering(value: Any, facet: str, directive: str) -> Optional[EnumRendering]:
    if value is None:
        return None
    try:
        return EnumRendering(value)
    except ValueError:
        raise DeclarationFault(
            f"{directive} must be 'string' or 'int', got {value!r}",
            facet=facet,
            directive=directive,
        ) from None


def _is_identifier(text: str) -> bool:
    return text.isidentifier() and not keyword.iskeyword(text)


# ── Member-level directives (parsed) ─────────────────────────────────────

@dataclass(frozen=True)
class MemberDirective:
    """
    Parsed per-member configuration.

    Exactly one of ``source_path`` / ``expression_text`` is set for MapFrom
    declarations; both are None for a bare MapWhen.
    """

    source_path: Optional[Tuple[str, ...]] = None
    expression_text: Optional[str] = None
    conditions: Tuple[str, ...] = ()
    condition_default: Any = UNSET
    reversible: bool = True
    reverse_to: Optional[str] = None
    include_in_projection: bool = True
    enum_as: Optional[EnumRendering] = None

    @property
    def is_rename(self) -> bool:
        return self.source_path is not None and len(self.source_path) == 1

    @property
    def is_path(self) -> bool:
        return self.source_path is not None and len(self.source_path) > 1

    @property
    def is_computed(self) -> bool:
        return self.expression_text is not None

    @classmethod
    def parse(cls, member: str, declared: Any, *, facet: str) -> "MemberDirective":
        """Parse a ``MapFrom``/``MapWhen`` default into a MemberDirective."""
        if isinstance(declared, MapWhen):
            if not declared.conditions:
                raise DeclarationFault(
                    f"MapWhen on '{member}' needs at least one condition",
                    facet=facet,
                    directive=member,
                )
            return cls(
                conditions=declared.conditions,
                condition_default=declared.default,
                include_in_projection=declared.include_in_projection,
                enum_as=_parse_enum_rendering(declared.enum_as, facet, f"{member}.enum_as"),
            )

        if not isinstance(declared, MapFrom):
            raise TypeError(f"not a member directive: {declared!r}")

        text = (declared.source or "").strip()
        if not text:
            raise DeclarationFault(
                f"MapFrom on '{member}' has an empty source",
                facet=facet,
                directive=member,
            )

        parts = tuple(p.strip() for p in text.split("."))
        if all(_is_identifier(p) for p in parts):
            path, expression = parts, None
        else:
            path, expression = None, text

        simple = path is not None and len(path) == 1
        reversible = declared.reversible
        reverse_to = declared.reverse_to
        if reversible is None:
            reversible = simple or reverse_to is not None
        elif reversible and not simple and reverse_to is None:
            kind = "path" if path else "computed expression"
            raise DeclarationFault(
                f"'{member}' maps from a {kind} ({text!r}) and cannot be reversible "
                f"without reverse_to=",
                facet=facet,
                directive=member,
            )
        if reverse_to is not None and not _is_identifier(reverse_to):
            raise DeclarationFault(
                f"reverse_to on '{member}' must name a source member, got {reverse_to!r}",
                facet=facet,
                directive=member,
            )

        return cls(
            source_path=path,
            expression_text=expression,
            conditions=declared.when,
            condition_default=declared.default,
            reversible=bool(reversible),
            reverse_to=reverse_to if reverse_to is not None else (path[0] if simple else None),
            include_in_projection=declared.include_in_projection,
            enum_as=_parse_enum_rendering(declared.enum_as, facet, f"{member}.enum_as"),
        )


# ── Selection ────────────────────────────────────────────────────────────

class SelectionMode(str, Enum):
    ALLOW_LIST = "allow_list"
    DENY_LIST = "deny_list"
    ALLOW_ALL = "allow_all"


@dataclass(frozen=True)
class SelectionPolicy:
    mode: SelectionMode = SelectionMode.ALLOW_ALL
    names: FrozenSet[str] = frozenset()

    @classmethod
    def from_lists(cls, include: Any, exclude: Any) -> "SelectionPolicy":
        if include is not None:
            return cls(SelectionMode.ALLOW_LIST, frozenset(include))
        if exclude:
            return cls(SelectionMode.DENY_LIST, frozenset(exclude))
        return cls()


# ── Emission shape ───────────────────────────────────────────────────────

class EmissionShape(str, Enum):
    """
    How the generated facet class is emitted.

    ``*_REFERENCE`` shapes compare by identity, ``*_VALUE`` shapes compare
    member-wise. ``IMMUTABLE_*`` shapes are frozen and built positionally.
    """

    MUTABLE_REFERENCE = "mutable_reference"
    MUTABLE_VALUE = "mutable_value"
    IMMUTABLE_POSITIONAL_REFERENCE = "immutable_positional_reference"
    IMMUTABLE_POSITIONAL_VALUE = "immutable_positional_value"

    @property
    def mutable(self) -> bool:
        return self in (EmissionShape.MUTABLE_REFERENCE, EmissionShape.MUTABLE_VALUE)

    @property
    def value_equality(self) -> bool:
        return self in (EmissionShape.MUTABLE_VALUE, EmissionShape.IMMUTABLE_POSITIONAL_VALUE)


# ── Facet-level directives ───────────────────────────────────────────────

class FacetSpec:
    """
    Parsed ``Spec`` inner class of a facet.

    Values left out of the Spec stay ``None`` where a process-wide setting
    supplies the default (``max_depth``, ``preserve_references``).
    """

    __slots__ = (
        "source",
        "include",
        "exclude",
        "include_fields",
        "shape",
        "reverse",
        "projection",
        "nested",
        "max_depth",
        "preserve_references",
        "before",
        "after",
        "hooks",
        "exclude_declared_in",
        "nullable_properties",
        "convert_enums_to",
        "flatten_to",
        "flatten_member",
    )

    def __init__(self, spec_cls: type | None = None, *, facet: str = "?"):
        get = (lambda attr, default: getattr(spec_cls, attr, default)) if spec_cls else (
            lambda attr, default: default
        )

        self.source = get("source", None)
        include = get("include", None)
        exclude = get("exclude", None)
        if isinstance(include, str) or isinstance(exclude, str):
            raise DeclarationFault(
                "include/exclude must be sequences of member names, not a string",
                facet=facet,
                directive="include" if isinstance(include, str) else "exclude",
            )
        self.include = tuple(include) if include is not None else None
        self.exclude = tuple(exclude) if exclude is not None else None
        self.include_fields = bool(get("include_fields", False))
        self.shape = get("shape", EmissionShape.MUTABLE_REFERENCE)
        self.reverse = bool(get("reverse", False))
        self.projection = bool(get("projection", True))
        self.nested = tuple(get("nested", ()))
        self.max_depth = get("max_depth", None)
        self.preserve_references = get("preserve_references", None)
        self.before = _callables(get("before", ()))
        self.after = _callables(get("after", ()))
        self.hooks = get("hooks", None)
        self.exclude_declared_in = tuple(get("exclude_declared_in", ()))
        self.nullable_properties = bool(get("nullable_properties", False))
        self.convert_enums_to = get("convert_enums_to", None)
        self.flatten_to = tuple(get("flatten_to", ()))
        self.flatten_member = get("flatten_member", None)

        if spec_cls is not None:
            self._validate(facet)

    def _validate(self, facet: str) -> None:
        if self.source is None:
            raise DeclarationFault("Spec.source is required", facet=facet, directive="source")
        if not inspect.isclass(self.source):
            raise DeclarationFault(
                f"Spec.source must be a class, got {self.source!r}",
                facet=facet,
                directive="source",
            )

        if self.include is not None and self.exclude:
            logger.debug("%s: include is set, exclude %s is ignored", facet, self.exclude)

        try:
            self.shape = EmissionShape(self.shape)
        except ValueError:
            raise DeclarationFault(
                f"unknown shape {self.shape!r}; expected one of "
                f"{[s.value for s in EmissionShape]}",
                facet=facet,
                directive="shape",
            ) from None

        if self.max_depth is not None and (
            isinstance(self.max_depth, bool)
            or not isinstance(self.max_depth, int)
            or self.max_depth < 0
        ):
            raise DeclarationFault(
                f"max_depth must be an int >= 0, got {self.max_depth!r}",
                facet=facet,
                directive="max_depth",
            )

        self.convert_enums_to = _parse_enum_rendering(
            self.convert_enums_to, facet, "convert_enums_to"
        )

        for klass in self.exclude_declared_in:
            if not inspect.isclass(klass) or klass not in self.source.__mro__:
                raise DeclarationFault(
                    f"exclude_declared_in entry {klass!r} is not a base of "
                    f"{self.source.__qualname__}",
                    facet=facet,
                    directive="exclude_declared_in",
                )

        for hook in self.before + self.after:
            if not callable(hook):
                raise DeclarationFault(
                    f"hook {hook!r} is not callable", facet=facet, directive="before/after"
                )
        if inspect.isclass(self.hooks):
            self.hooks = self.hooks()
        if self.hooks is not None and not (
            hasattr(self.hooks, "before_map") or hasattr(self.hooks, "after_map")
        ):
            raise DeclarationFault(
                "Spec.hooks must define before_map() and/or after_map()",
                facet=facet,
                directive="hooks",
            )

        for row in self.flatten_to:
            if not inspect.isclass(row):
                raise DeclarationFault(
                    f"flatten_to entries must be classes, got {row!r}",
                    facet=facet,
                    directive="flatten_to",
                )

    @property
    def policy(self) -> SelectionPolicy:
        return SelectionPolicy.from_lists(self.include, self.exclude)

    @property
    def before_hooks(self) -> Tuple[Callable, ...]:
        hooks = self.before
        if self.hooks is not None and hasattr(self.hooks, "before_map"):
            hooks = hooks + (self.hooks.before_map,)
        return hooks

    @property
    def after_hooks(self) -> Tuple[Callable, ...]:
        hooks = self.after
        if self.hooks is not None and hasattr(self.hooks, "after_map"):
            hooks = hooks + (self.hooks.after_map,)
        return hooks


def _callables(value: Any) -> Tuple[Any, ...]:
    if value is None:
        return ()
    if callable(value) and not isinstance(value, (list, tuple)):
        return (value,)
    return tuple(value)
