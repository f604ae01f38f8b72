"""
Eager Synthesizer: forward and reverse conversion routines.

A :class:`ForwardConverter` turns one source object into a facet instance.
For every member, in declaration order, it:

    1. checks the member's conditions (all must hold, else the fallback);
    2. reads the value (renamed member, dotted path or computed expression);
    3. recurses into nested facets with a deeper :class:`TraversalState`;
    4. re-projects enums when asked to.

Before-hooks run once before the first member, after-hooks once after the
last one. Immutable shapes hand the hooks a :class:`FacetDraft` and are
constructed from it afterwards.

A :class:`ReverseConverter` writes reversible members back into a new
source object; required source members it does not write receive type
defaults.
"""

from __future__ import annotations

import dataclasses
import inspect
import logging
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from .directives import EnumRendering
from .exceptions import HookFault, MappingFault
from .graph import NestedBinding
from .model import GenerationModel, MemberOrigin, ResolvedMember
from .traversal import TraversalState
from .typeinfo import collection_info, type_default

logger = logging.getLogger("facetcraft.facets.eager")

__all__ = [
    "FacetDraft",
    "ForwardConverter",
    "ReverseConverter",
    "construct",
    "field_defaults",
]

_EVAL_ERRORS = (AttributeError, TypeError, ValueError, ArithmeticError, LookupError)


class FacetDraft:
    """
    Staging object handed to hooks of immutable facets.

    Hooks may read and set any member; the facet is constructed from the
    draft once every hook has run.
    """

    def __init__(self, facet_type: type, values: Dict[str, Any]):
        object.__setattr__(self, "_facet_type", facet_type)
        self.__dict__.update(values)

    def values(self) -> Dict[str, Any]:
        return {k: v for k, v in self.__dict__.items() if k != "_facet_type"}

    def __repr__(self) -> str:
        inner = ", ".join(f"{k}={v!r}" for k, v in self.values().items())
        return f"FacetDraft[{self._facet_type.__name__}]({inner})"


def field_defaults(facet_type: type) -> Dict[str, Any]:
    """Default value of every dataclass field of a generated facet."""
    defaults: Dict[str, Any] = {}
    for f in dataclasses.fields(facet_type):
        if f.default is not dataclasses.MISSING:
            defaults[f.name] = f.default
        elif f.default_factory is not dataclasses.MISSING:
            defaults[f.name] = f.default_factory()
        else:
            defaults[f.name] = None
    return defaults


def construct(facet_type: type, values: Dict[str, Any]) -> Any:
    """
    Build a facet instance from member values.

    Dataclass fields go through ``__init__``; members declared on the
    facet's own base classes are set afterwards.
    """
    init_names = facet_type._facet_init_names
    obj = facet_type(**{k: v for k, v in values.items() if k in init_names})
    for key, value in values.items():
        if key not in init_names:
            object.__setattr__(obj, key, value)
    return obj


def _hook_name(hook: Callable) -> str:
    return getattr(hook, "__qualname__", None) or repr(hook)


class ForwardConverter:
    def __init__(self, model: GenerationModel):
        self.model = model
        self.facet_type = model.facet_type
        self.facet_name = model.facet_name
        self.members = model.mapped_members
        self.mutable = model.shape.mutable

    # -- entry points ---------------------------------------------------

    def convert(self, source: Any, state: Optional[TraversalState] = None) -> Any:
        state = self._start(source, state)
        target = self._new_target()
        for hook in self.model.before_hooks:
            self._call_hook(hook, source, target)

        for member in self.members:
            value, nested = self._resolve(member, source, state)
            if nested is not None:
                binding, jobs = nested
                converter = binding.facet_type._facet_forward()
                value = self._collect(binding, [converter.convert(item, s) for item, s in jobs])
            setattr(target, member.name, value)

        for hook in self.model.after_hooks:
            self._call_hook(hook, source, target)
        return self._finish(target)

    async def convert_async(self, source: Any, state: Optional[TraversalState] = None) -> Any:
        state = self._start(source, state)
        target = self._new_target()
        for hook in self.model.before_hooks:
            await self._call_hook_async(hook, source, target)

        for member in self.members:
            value, nested = self._resolve(member, source, state)
            if nested is not None:
                binding, jobs = nested
                converter = binding.facet_type._facet_forward()
                results = [await converter.convert_async(item, s) for item, s in jobs]
                value = self._collect(binding, results)
            setattr(target, member.name, value)

        for hook in self.model.after_hooks:
            await self._call_hook_async(hook, source, target)
        return self._finish(target)

    # -- target lifecycle -----------------------------------------------

    def _start(self, source: Any, state: Optional[TraversalState]) -> TraversalState:
        if source is None:
            raise MappingFault("<source>", "source object is None", facet=self.facet_name)
        if state is None:
            state = TraversalState.start(
                source,
                max_depth=self.model.max_depth,
                preserve_references=self.model.preserve_references,
            )
        return state

    def _new_target(self) -> Any:
        if self.mutable:
            return construct(self.facet_type, {})
        return FacetDraft(self.facet_type, field_defaults(self.facet_type))

    def _finish(self, target: Any) -> Any:
        if self.mutable:
            return target
        return construct(self.facet_type, target.values())

    def _call_hook(self, hook: Callable, source: Any, target: Any) -> None:
        result = hook(source, target)
        if inspect.isawaitable(result):
            if inspect.iscoroutine(result):
                result.close()
            raise HookFault(_hook_name(hook), facet=self.facet_name)

    async def _call_hook_async(self, hook: Callable, source: Any, target: Any) -> None:
        result = hook(source, target)
        if inspect.isawaitable(result):
            await result

    # -- member values --------------------------------------------------

    def _resolve(
        self, member: ResolvedMember, source: Any, state: TraversalState
    ) -> Tuple[Any, Optional[Tuple[NestedBinding, List[Tuple[Any, TraversalState]]]]]:
        """
        Compute a member value.

        Returns ``(value, None)`` for plain members, or ``(None, (binding,
        jobs))`` when nested conversions still have to run.
        """
        if member.conditions and not self._conditions_hold(member, source):
            return member.fallback, None

        raw = self._read(member, source)
        if member.nested is None:
            return self._render_enum(member, raw), None

        if raw is None:
            if member.nullable or member.nested.nullable:
                return None, None
            raise MappingFault(member.name, "required nested value was absent", facet=self.facet_name)

        if not state.can_descend:
            logger.debug(
                "%s.%s left unset: depth %d reached max_depth %d",
                self.facet_name, member.name, state.depth, state.max_depth,
            )
            return None, None

        if not member.nested.is_collection:
            if state.has_visited(raw):
                logger.debug("%s.%s: cycle broken at %r", self.facet_name, member.name, type(raw))
                return None, None
            return None, (member.nested, [(raw, state.descend(raw))])

        jobs: List[Tuple[Any, TraversalState]] = []
        seen = set()
        for item in raw:
            if item is None:
                continue
            if state.preserve_references:
                if id(item) in seen or state.has_visited(item):
                    continue
                seen.add(id(item))
            jobs.append((item, state.descend(item)))
        return None, (member.nested, jobs)

    def _collect(self, binding: NestedBinding, results: List[Any]) -> Any:
        if binding.is_collection:
            return binding.collection_shape.materialize(results)
        return results[0]

    def _conditions_hold(self, member: ResolvedMember, source: Any) -> bool:
        for condition in self.model.conditions.get(member.name, ()):
            try:
                if not condition.evaluate(source):
                    return False
            except _EVAL_ERRORS as exc:
                raise MappingFault(
                    member.name,
                    f"condition {condition.text!r} failed: {exc}",
                    facet=self.facet_name,
                ) from exc
        return True

    def _read(self, member: ResolvedMember, source: Any) -> Any:
        if member.origin is MemberOrigin.COMPUTED:
            expression = self.model.expressions[member.name]
            try:
                return expression.evaluate(source)
            except _EVAL_ERRORS as exc:
                raise MappingFault(
                    member.name,
                    f"expression {expression.text!r} failed: {exc}",
                    facet=self.facet_name,
                ) from exc

        current = source
        for i, segment in enumerate(member.source_path):
            if current is None:
                if member.nullable:
                    return None
                raise MappingFault(
                    member.name,
                    f"'{'.'.join(member.source_path[:i])}' was None",
                    facet=self.facet_name,
                )
            try:
                current = getattr(current, segment)
            except AttributeError as exc:
                raise MappingFault(
                    member.name,
                    f"source has no attribute '{'.'.join(member.source_path[:i + 1])}'",
                    facet=self.facet_name,
                ) from exc
        return current

    @staticmethod
    def _render_enum(member: ResolvedMember, value: Any) -> Any:
        if member.enum_as is None or not isinstance(value, Enum):
            return value
        return value.name if member.enum_as is EnumRendering.STRING else value.value


class ReverseConverter:
    def __init__(self, model: GenerationModel):
        self.model = model
        self.source_type = model.source_type
        self.members = tuple(m for m in model.members if m.reversible)
        self._init_params, self._init_kwargs = self._init_signature(model.source_type)

    @staticmethod
    def _init_signature(source_type: type) -> Tuple[frozenset, bool]:
        try:
            params = inspect.signature(source_type).parameters.values()
        except (TypeError, ValueError):
            return frozenset(), False
        names = frozenset(
            p.name for p in params
            if p.kind in (p.POSITIONAL_OR_KEYWORD, p.KEYWORD_ONLY)
        )
        return names, any(p.kind is p.VAR_KEYWORD for p in params)

    def convert(self, facet: Any) -> Any:
        values: Dict[str, Any] = {}
        for member in self.members:
            values[member.reverse_to] = self._value(member, getattr(facet, member.name))

        for sm in self.model.excluded_required:
            values.setdefault(sm.name, type_default(sm.declared_type))

        if self._init_kwargs:
            kwargs, rest = values, {}
        else:
            kwargs = {k: v for k, v in values.items() if k in self._init_params}
            rest = {k: v for k, v in values.items() if k not in self._init_params}

        obj = self.source_type(**kwargs)
        for key, value in rest.items():
            setattr(obj, key, value)
        return obj

    def apply(self, facet: Any, target: Any) -> List[str]:
        """
        Write reversible members of ``facet`` onto an existing ``target``.

        Returns the names of the source members whose value changed.
        """
        changed: List[str] = []
        for member in self.members:
            value = self._value(member, getattr(facet, member.name))
            if getattr(target, member.reverse_to, None) != value:
                setattr(target, member.reverse_to, value)
                changed.append(member.reverse_to)
        if changed:
            logger.debug("Applied %s to %s: %s", self.model.facet_name, type(target).__name__, changed)
        return changed

    def _value(self, member: ResolvedMember, value: Any) -> Any:
        if value is None:
            return None

        binding = member.nested
        if binding is not None:
            reverse = binding.facet_type._facet_reverse()
            if binding.is_collection:
                return binding.collection_shape.materialize(
                    reverse.convert(item) for item in value if item is not None
                )
            return reverse.convert(value)

        if member.enum_as is not None and member.enum_type is not None and not isinstance(value, Enum):
            if member.enum_as is EnumRendering.STRING:
                return member.enum_type[value]
            return member.enum_type(value)

        info = collection_info(member.source_type)
        if info is not None and not isinstance(value, (str, bytes)):
            return info[0].materialize(value)
        return value
