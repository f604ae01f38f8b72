"""
Generation model: everything the synthesizers need, built once per facet.

Model building happens in two phases:

    plan_facet()   runs while the facet class statement executes. It parses
                   the Spec, resolves and selects source members and decides
                   the fields of the generated dataclass.

    build_model()  runs on first use. It resolves nested facets (which may be
                   declared later in the module), compiles computed members and
                   conditions, and freezes the result into a GenerationModel.

Neither phase reads or writes anything outside the facet being built.
"""

from __future__ import annotations

import inspect
import logging
import sys
import typing
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from ..config import get_settings
from .directives import (
    UNSET,
    EmissionShape,
    EnumRendering,
    FacetSpec,
    MapFrom,
    MapWhen,
    MemberDirective,
)
from .exceptions import DeclarationFault, ResolutionFault
from .graph import NestedBinding, bind_member, facet_in_annotation, resolve_facet_refs
from .members import MISSING, MemberKind, SourceMember, base_member_names, resolve_members
from .selection import select_members
from .sources import SourceExpression, check_expression
from .typeinfo import collection_info, is_enum_type, type_default, unwrap_optional

logger = logging.getLogger("facetcraft.facets.model")

__all__ = [
    "MemberOrigin",
    "PlannedMember",
    "FacetPlan",
    "ResolvedMember",
    "GenerationModel",
    "plan_facet",
    "build_model",
]


class MemberOrigin(str, Enum):
    SOURCE = "source"       # same-named or renamed source member
    PATH = "path"           # dotted path through the source graph
    COMPUTED = "computed"   # expression over source members
    CUSTOM = "custom"       # declared on the facet only; never mapped


# ── Phase 1 ──────────────────────────────────────────────────────────────

@dataclass(frozen=True, eq=False)
class PlannedMember:
    name: str
    origin: MemberOrigin
    annotation: Any
    default: Any
    source_member: Optional[SourceMember] = None
    directive: Optional[MemberDirective] = None
    user_declared: bool = False
    declared_on_base: bool = False


@dataclass(frozen=True, eq=False)
class FacetPlan:
    facet_name: str
    module: str
    spec: FacetSpec
    source_members: Tuple[SourceMember, ...]
    selected: Tuple[SourceMember, ...]
    members: Tuple[PlannedMember, ...]

    def member(self, name: str) -> Optional[PlannedMember]:
        for m in self.members:
            if m.name == name:
                return m
        return None


def _is_classvar_annotation(annotation: Any) -> bool:
    if isinstance(annotation, str):
        return annotation.startswith(("ClassVar", "typing.ClassVar"))
    return annotation is typing.ClassVar or typing.get_origin(annotation) is typing.ClassVar


def _field_default(tp: Any) -> Any:
    if isinstance(tp, str):
        return None
    if collection_info(tp) is not None:
        return None
    return type_default(tp)


def _generated_annotation(member: SourceMember, spec: FacetSpec, enum_as: Optional[EnumRendering]) -> Any:
    tp = member.declared_type
    inner, nullable = unwrap_optional(tp)
    if enum_as is not None and is_enum_type(inner):
        tp = str if enum_as is EnumRendering.STRING else int
        if nullable:
            tp = Optional[tp]
    if spec.nullable_properties:
        tp = Optional[tp]
    return tp


def plan_facet(facet_cls: type, spec_cls: type, *, root: type) -> FacetPlan:
    """
    Phase 1: decide the members of ``facet_cls``.

    Args:
        facet_cls: The facet class being created (not yet a dataclass).
        spec_cls: Its inner ``Spec`` class.
        root: The ``Facet`` base class; the base-member walk stops there.
    """
    name = facet_cls.__qualname__
    spec = FacetSpec(spec_cls, facet=name)

    try:
        all_members = resolve_members(spec.source, include_fields=spec.include_fields)
    except DeclarationFault as exc:
        raise DeclarationFault(exc.message, facet=name, directive="source") from exc

    by_name = {m.name: m for m in all_members}
    selected = select_members(
        all_members, spec.policy, exclude_declared_in=spec.exclude_declared_in
    )
    own = {
        k: v for k, v in inspect.get_annotations(facet_cls).items()
        if not k.startswith("_") and not _is_classvar_annotation(v)
    }
    on_base = set(base_member_names(facet_cls, stop=root))

    def directive_for(attr: str) -> Optional[MemberDirective]:
        value = facet_cls.__dict__.get(attr, MISSING)
        if isinstance(value, (MapFrom, MapWhen)):
            return MemberDirective.parse(attr, value, facet=name)
        return None

    def user_default(attr: str, directive: Optional[MemberDirective]) -> Any:
        if directive is not None:
            if directive.condition_default is not UNSET:
                return directive.condition_default
            return _field_default(own[attr])
        value = facet_cls.__dict__.get(attr, MISSING)
        return _field_default(own[attr]) if value is MISSING else value

    def from_directive(attr: str, directive: MemberDirective) -> PlannedMember:
        if directive.is_computed:
            check_expression(directive.expression_text, facet=name, directive=attr)
            origin, source = MemberOrigin.COMPUTED, None
        else:
            root_name = directive.source_path[0]
            if root_name not in by_name:
                raise DeclarationFault(
                    f"'{attr}' maps from unknown source member {root_name!r}",
                    facet=name,
                    directive=attr,
                )
            origin = MemberOrigin.SOURCE if directive.is_rename else MemberOrigin.PATH
            source = by_name[root_name]
        for condition in directive.conditions:
            check_expression(condition, facet=name, directive=attr)
        return PlannedMember(
            name=attr,
            origin=origin,
            annotation=own[attr],
            default=user_default(attr, directive),
            source_member=source,
            directive=directive,
            user_declared=True,
        )

    planned: List[PlannedMember] = []
    placed = set()

    for sm in selected:
        attr = sm.name
        directive = directive_for(attr) if attr in own else None
        if directive is not None and (directive.source_path or directive.is_computed):
            planned.append(from_directive(attr, directive))
        elif attr in own:
            for condition in (directive.conditions if directive else ()):
                check_expression(condition, facet=name, directive=attr)
            planned.append(PlannedMember(
                name=attr,
                origin=MemberOrigin.SOURCE,
                annotation=own[attr],
                default=user_default(attr, directive),
                source_member=sm,
                directive=directive,
                user_declared=True,
            ))
        else:
            enum_as = spec.convert_enums_to
            annotation = _generated_annotation(sm, spec, enum_as)
            planned.append(PlannedMember(
                name=attr,
                origin=MemberOrigin.SOURCE,
                annotation=annotation,
                default=None if spec.nullable_properties else _field_default(annotation),
                source_member=sm,
                declared_on_base=attr in on_base,
            ))
        placed.add(attr)

    for attr in own:
        if attr in placed:
            continue
        directive = directive_for(attr)
        if directive is not None and (directive.source_path or directive.is_computed):
            planned.append(from_directive(attr, directive))
        elif directive is not None:
            if attr not in by_name:
                raise DeclarationFault(
                    f"MapWhen on '{attr}' has no source member of that name",
                    facet=name,
                    directive=attr,
                )
            for condition in directive.conditions:
                check_expression(condition, facet=name, directive=attr)
            planned.append(PlannedMember(
                name=attr,
                origin=MemberOrigin.SOURCE,
                annotation=own[attr],
                default=user_default(attr, directive),
                source_member=by_name[attr],
                directive=directive,
                user_declared=True,
            ))
        else:
            planned.append(PlannedMember(
                name=attr,
                origin=MemberOrigin.CUSTOM,
                annotation=own[attr],
                default=user_default(attr, None),
                user_declared=True,
            ))
        placed.add(attr)

    if spec.flatten_member is not None and spec.flatten_member not in placed:
        raise DeclarationFault(
            f"flatten_member {spec.flatten_member!r} is not a member of the facet",
            facet=name,
            directive="flatten_member",
        )

    logger.debug("Planned %s over %s: %s", name, spec.source.__qualname__, sorted(placed))
    return FacetPlan(
        facet_name=name,
        module=facet_cls.__module__,
        spec=spec,
        source_members=tuple(all_members),
        selected=tuple(selected),
        members=tuple(planned),
    )


# ── Phase 2 ──────────────────────────────────────────────────────────────

@dataclass(frozen=True, eq=False)
class ResolvedMember:
    """The facet-side view of one member, as the synthesizers consume it."""

    name: str
    origin: MemberOrigin
    annotation: Any
    source_type: Any = Any
    source_name: Optional[str] = None
    source_path: Tuple[str, ...] = ()
    expression_text: Optional[str] = None
    conditions: Tuple[str, ...] = ()
    fallback: Any = None
    reversible: bool = False
    reverse_to: Optional[str] = None
    include_in_projection: bool = True
    nullable: bool = False
    required: bool = False
    kind: MemberKind = MemberKind.FIELD
    declared_on_base: bool = False
    user_declared: bool = False
    nested: Optional[NestedBinding] = None
    enum_type: Optional[type] = None
    enum_as: Optional[EnumRendering] = None

    @property
    def is_nested(self) -> bool:
        return self.nested is not None

    @property
    def is_mapped(self) -> bool:
        return self.origin is not MemberOrigin.CUSTOM


@dataclass(frozen=True, eq=False)
class GenerationModel:
    facet_type: type
    source_type: type
    shape: EmissionShape
    namespace: str
    members: Tuple[ResolvedMember, ...]
    nested_bindings: Tuple[NestedBinding, ...]
    before_hooks: Tuple[Callable, ...]
    after_hooks: Tuple[Callable, ...]
    max_depth: int
    preserve_references: bool
    generate_reverse: bool
    generate_projection: bool
    flatten_targets: Tuple[type, ...]
    flatten_member: Optional[str]
    excluded_required: Tuple[SourceMember, ...]
    expressions: Mapping[str, SourceExpression]
    conditions: Mapping[str, Tuple[SourceExpression, ...]]

    @property
    def facet_name(self) -> str:
        return self.facet_type.__qualname__

    def member(self, name: str) -> Optional[ResolvedMember]:
        for m in self.members:
            if m.name == name:
                return m
        return None

    @property
    def mapped_members(self) -> Tuple[ResolvedMember, ...]:
        return tuple(m for m in self.members if m.is_mapped)


def _facet_hints(facet_cls: type) -> Dict[str, Any]:
    try:
        return typing.get_type_hints(facet_cls, localns={facet_cls.__name__: facet_cls})
    except (NameError, TypeError) as exc:
        raise DeclarationFault(
            f"cannot resolve member annotations: {exc}", facet=facet_cls.__qualname__
        ) from exc


def _path_type(root: Any, path: Tuple[str, ...]) -> Any:
    """Declared type at the end of ``path`` (``Any`` once it cannot be followed)."""
    current = root
    for segment in path:
        inner, _ = unwrap_optional(current)
        if not inspect.isclass(inner):
            return Any
        try:
            members = {m.name: m.declared_type for m in resolve_members(inner, include_fields=True)}
        except DeclarationFault:
            return Any
        current = members.get(segment, Any)
    return current


def _check_writable(
    member: PlannedMember, target: str, by_name: Mapping[str, SourceMember], facet: str
) -> None:
    source = by_name.get(target)
    if source is None:
        raise DeclarationFault(
            f"'{member.name}' reverses to unknown source member {target!r}",
            facet=facet,
            directive=member.name,
        )
    if source.kind is MemberKind.PROPERTY and not source.is_mutable:
        raise DeclarationFault(
            f"'{member.name}' reverses to read-only property {target!r}",
            facet=facet,
            directive=member.name,
        )


def build_model(facet_cls: type) -> GenerationModel:
    """Phase 2: freeze ``facet_cls`` into a GenerationModel."""
    plan: FacetPlan = facet_cls._facet_plan
    spec = plan.spec
    name = plan.facet_name
    settings = get_settings()
    namespace = vars(sys.modules[plan.module]) if plan.module in sys.modules else {}
    hints = _facet_hints(facet_cls)
    by_name = {m.name: m for m in plan.source_members}
    member_names = tuple(by_name)

    candidates = resolve_facet_refs(spec.nested, namespace, owner=facet_cls)
    for candidate in candidates:
        if candidate._facet_plan is None:
            raise candidate._facet_fault

    members: List[ResolvedMember] = []
    expressions: Dict[str, SourceExpression] = {}
    conditions: Dict[str, Tuple[SourceExpression, ...]] = {}

    for pm in plan.members:
        hint = hints.get(pm.name, pm.annotation)
        directive = pm.directive or MemberDirective(reversible=pm.source_member is not None)
        declared_nullable = unwrap_optional(hint)[1] if pm.user_declared else spec.nullable_properties

        if pm.origin is MemberOrigin.CUSTOM:
            members.append(ResolvedMember(
                name=pm.name,
                origin=pm.origin,
                annotation=hint,
                fallback=pm.default,
                nullable=unwrap_optional(hint)[1],
                user_declared=True,
            ))
            continue

        if directive.conditions:
            conditions[pm.name] = tuple(
                SourceExpression(c, members=member_names, namespace=namespace,
                                 facet=name, directive=pm.name)
                for c in directive.conditions
            )

        explicit = facet_in_annotation(hint) if pm.user_declared else None
        binding = None
        source_path: Tuple[str, ...] = ()
        if pm.origin is MemberOrigin.COMPUTED:
            if explicit is not None:
                raise ResolutionFault(
                    "a computed member cannot be bound to a nested facet",
                    facet=name,
                    member=pm.name,
                )
            expressions[pm.name] = SourceExpression(
                directive.expression_text, members=member_names, namespace=namespace,
                facet=name, directive=pm.name,
            )
            source_type = Any
        else:
            source_path = directive.source_path or (pm.source_member.name,)
            if pm.origin is MemberOrigin.PATH:
                source_type = _path_type(spec.source, source_path)
            else:
                source_type = pm.source_member.declared_type
            binding = bind_member(
                pm.name, source_type, candidates=candidates, explicit=explicit, facet=name,
            )

        if pm.origin is MemberOrigin.SOURCE and pm.directive is None:
            reversible = not (
                pm.source_member.kind is MemberKind.PROPERTY and not pm.source_member.is_mutable
            )
            reverse_to = pm.source_member.name
        elif pm.directive is not None and pm.directive.source_path is None and not pm.directive.is_computed:
            # MapWhen on a same-named member: conditions make it one-way
            reversible, reverse_to = False, None
        else:
            reversible, reverse_to = directive.reversible, directive.reverse_to

        if reversible and spec.reverse:
            _check_writable(pm, reverse_to, by_name, name)
            if binding is not None and not binding.facet_type._facet_plan.spec.reverse:
                raise ResolutionFault(
                    f"nested facet {binding.facet_type.__name__} does not generate a "
                    f"reverse conversion (set Spec.reverse = True on it)",
                    facet=name,
                    member=pm.name,
                )

        leaf, leaf_nullable = unwrap_optional(source_type)
        enum_type = leaf if is_enum_type(leaf) else None
        enum_as = directive.enum_as or (spec.convert_enums_to if not pm.user_declared else None)
        if enum_type is None:
            enum_as = None

        members.append(ResolvedMember(
            name=pm.name,
            origin=pm.origin,
            annotation=hint,
            source_type=source_type,
            source_name=pm.source_member.name if pm.source_member is not None else None,
            source_path=source_path,
            expression_text=directive.expression_text,
            conditions=directive.conditions,
            fallback=(
                _field_default(hint)
                if pm.directive is not None and pm.directive.condition_default is UNSET
                else pm.default
            ),
            reversible=reversible,
            reverse_to=reverse_to if reversible else None,
            include_in_projection=directive.include_in_projection,
            nullable=declared_nullable if pm.user_declared else (declared_nullable or leaf_nullable),
            required=pm.source_member.is_required if pm.source_member is not None else False,
            kind=pm.source_member.kind if pm.source_member is not None else MemberKind.FIELD,
            declared_on_base=pm.declared_on_base,
            user_declared=pm.user_declared,
            nested=binding,
            enum_type=enum_type,
            enum_as=enum_as,
        ))

    written = {m.reverse_to for m in members if m.reversible}
    excluded_required = tuple(
        sm for sm in plan.source_members if sm.is_required and sm.name not in written
    )

    model = GenerationModel(
        facet_type=facet_cls,
        source_type=spec.source,
        shape=spec.shape,
        namespace=plan.module,
        members=tuple(members),
        nested_bindings=tuple(m.nested for m in members if m.nested is not None),
        before_hooks=spec.before_hooks,
        after_hooks=spec.after_hooks,
        max_depth=spec.max_depth if spec.max_depth is not None else settings.default_max_depth,
        preserve_references=(
            spec.preserve_references
            if spec.preserve_references is not None
            else settings.default_preserve_references
        ),
        generate_reverse=spec.reverse,
        generate_projection=spec.projection,
        flatten_targets=spec.flatten_to,
        flatten_member=spec.flatten_member,
        excluded_required=excluded_required,
        expressions=MappingProxyType(expressions),
        conditions=MappingProxyType(conditions),
    )
    logger.debug(
        "Built model for %s: %d members, %d nested, max_depth=%d",
        name, len(model.members), len(model.nested_bindings), model.max_depth,
    )
    return model
