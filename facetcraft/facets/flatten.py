"""
Flatten synthesizer: one row per element of a nested collection.

Given a facet instance that owns a collection of nested facets, produce a
list of flat rows::

    Order(id=7, customer=Customer(name="Ada"), lines=[Line(sku="A"), Line(sku="B")])
        -> [Row(id=7, name="Ada", sku="A"), Row(id=7, name="Ada", sku="B")]

Columns come from two places. Root columns copy the owning facet's scalar
members and widen through its single-valued nested facets. Element columns
do the same for the element facet. Collections below the chosen one are
never expanded.

Leaf names are used as column names while they are unique. A leaf that
collides with another column is prefixed with its parent segment
(``customer_name``, ``lines_id``); the owner's own scalars always keep
their plain names.
"""

from __future__ import annotations

import datetime
import inspect
import logging
import uuid
from collections import Counter
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..config import get_settings
from .exceptions import DeclarationFault, ResolutionFault
from .graph import ExpansionStack
from .model import GenerationModel, ResolvedMember
from .typeinfo import collection_info, is_enum_type, unwrap_optional

logger = logging.getLogger("facetcraft.facets.flatten")

__all__ = ["FlattenColumn", "FlattenPlan", "build_flatten_plan", "is_scalar_type"]

_SCALARS = (
    int, float, bool, str, bytes, Decimal, complex,
    datetime.datetime, datetime.date, datetime.time, datetime.timedelta,
    uuid.UUID,
)


def is_scalar_type(tp: Any) -> bool:
    """True for annotations that end up as a single flat column."""
    inner, _ = unwrap_optional(tp)
    if inner is Any:
        return True
    if collection_info(inner) is not None:
        return False
    if is_enum_type(inner):
        return True
    return isinstance(inner, type) and issubclass(inner, _SCALARS)


@dataclass(frozen=True)
class FlattenColumn:
    name: str
    path: Tuple[str, ...]
    from_element: bool
    parent: Optional[str] = None

    @property
    def leaf(self) -> str:
        return self.path[-1]


def _is_collection(member: ResolvedMember) -> bool:
    if member.nested is not None:
        return member.nested.is_collection
    return collection_info(member.annotation) is not None


class FlattenPlan:
    """Column layout for one (facet, row type) pair."""

    def __init__(
        self,
        facet_type: type,
        row_type: type,
        collection_member: Optional[str],
        columns: Tuple[FlattenColumn, ...],
    ):
        self.facet_type = facet_type
        self.row_type = row_type
        self.collection_member = collection_member
        self.columns = columns
        self._make_row = self._row_factory(row_type)

    @property
    def column_names(self) -> Tuple[str, ...]:
        return tuple(c.name for c in self.columns)

    def _row_factory(self, row_type: type) -> Callable[[Dict[str, Any]], Any]:
        if row_type is dict:
            return dict
        try:
            params = inspect.signature(row_type).parameters.values()
        except (TypeError, ValueError):
            return lambda values: row_type(**values)
        if any(p.kind is p.VAR_KEYWORD for p in params):
            return lambda values: row_type(**values)
        accepted = frozenset(
            p.name for p in params if p.kind in (p.POSITIONAL_OR_KEYWORD, p.KEYWORD_ONLY)
        )
        dropped = [c.name for c in self.columns if c.name not in accepted]
        if dropped:
            logger.debug(
                "%s rows for %s ignore columns %s",
                row_type.__name__, self.facet_type.__name__, dropped,
            )
        return lambda values: row_type(**{k: v for k, v in values.items() if k in accepted})

    @staticmethod
    def _follow(obj: Any, path: Tuple[str, ...]) -> Any:
        for segment in path:
            if obj is None:
                return None
            obj = getattr(obj, segment)
        return obj

    def rows(self, facet: Any) -> List[Any]:
        if self.collection_member is None:
            return []
        items = getattr(facet, self.collection_member)
        if not items:
            return []

        base = {c.name: self._follow(facet, c.path) for c in self.columns if not c.from_element}
        element_columns = [c for c in self.columns if c.from_element]
        rows = []
        for item in items:
            if item is None:
                continue
            values = dict(base)
            for column in element_columns:
                values[column.name] = self._follow(item, column.path)
            rows.append(self._make_row(values))
        return rows

    def __repr__(self) -> str:
        return (
            f"FlattenPlan({self.facet_type.__name__} -> {self.row_type.__name__}, "
            f"over={self.collection_member!r}, columns={list(self.column_names)})"
        )


def _pick_collection(model: GenerationModel) -> Optional[ResolvedMember]:
    if model.flatten_member is not None:
        member = model.member(model.flatten_member)
        if member is None or member.nested is None or not member.nested.is_collection:
            raise ResolutionFault(
                "flatten_member must name a collection of nested facets",
                facet=model.facet_name,
                member=model.flatten_member,
            )
        return member
    for member in model.members:
        if member.nested is not None and member.nested.is_collection:
            return member
    return None


def _leaves(
    model: GenerationModel,
    prefix: Tuple[str, ...],
    parent: Optional[str],
    *,
    from_element: bool,
    stack: ExpansionStack,
    limit: int,
) -> List[FlattenColumn]:
    columns: List[FlattenColumn] = []
    for member in model.members:
        if _is_collection(member):
            continue
        path = prefix + (member.name,)
        if member.nested is not None:
            nested_type = member.nested.facet_type
            if len(path) >= limit or nested_type in stack:
                logger.debug("%s: not widening %s", model.facet_name, ".".join(path))
                continue
            columns.extend(_leaves(
                nested_type._facet_model(), path, member.name,
                from_element=from_element, stack=stack.push(nested_type), limit=limit,
            ))
        elif is_scalar_type(member.annotation):
            columns.append(FlattenColumn(member.name, path, from_element, parent))
    return columns


def _name_columns(columns: List[FlattenColumn]) -> Tuple[FlattenColumn, ...]:
    counts = Counter(c.leaf for c in columns)
    named: List[FlattenColumn] = []
    taken = set()
    for column in columns:
        direct_root = not column.from_element and len(column.path) == 1
        name = column.leaf
        if not direct_root and counts[name] > 1:
            name = f"{column.parent}_{name}"
            if name in taken:
                name = "_".join(column.path if not column.from_element else (column.parent,) + column.path)
        if name in taken:
            logger.debug("Duplicate flatten column %r dropped", name)
            continue
        taken.add(name)
        named.append(FlattenColumn(name, column.path, column.from_element, column.parent))
    return tuple(named)


def build_flatten_plan(facet_type: type, row_type: type) -> FlattenPlan:
    if not inspect.isclass(row_type):
        raise DeclarationFault(
            f"flatten row type must be a class, got {row_type!r}",
            facet=facet_type.__qualname__,
            directive="flatten_to",
        )
    model: GenerationModel = facet_type._facet_model()
    limit = get_settings().flatten_max_depth
    collection = _pick_collection(model)
    if collection is None:
        logger.debug("%s has no nested collection; flatten yields no rows", model.facet_name)
        return FlattenPlan(facet_type, row_type, None, ())

    stack = ExpansionStack((facet_type,))
    columns = _leaves(model, (), None, from_element=False, stack=stack, limit=limit)
    element_type = collection.nested.facet_type
    columns += _leaves(
        element_type._facet_model(), (), collection.name,
        from_element=True, stack=stack.push(element_type), limit=limit,
    )
    plan = FlattenPlan(facet_type, row_type, collection.name, _name_columns(columns))
    logger.debug("Built %r", plan)
    return plan
