"""
Projection synthesizer.

Builds a side-effect-free expression tree ``src -> Facet(...)`` from a
facet's generation model. The tree is made of the nodes in
:mod:`facetcraft.facets.expressions` only, so it can be evaluated in
process or handed to a query translator that walks it.

Nested facets are inlined as member-wise ``Init`` nodes. A facet that is
already being inlined further up is emitted as a ``ConvertCall`` instead,
and anything past the root facet's ``max_depth`` becomes ``None``.
Hooks never run inside projections.

The builder keeps the nodes of the source objects being expanded on the
current path. With ``preserve_references`` a nested value that may be one
of them is compared by identity and left ``None``, collections skip such
elements and repeated ones, and conversion calls receive them as their
visited set. ``None`` elements are always skipped. The result matches the
eager converter on cyclic and shared data alike.
"""

from __future__ import annotations

import inspect
import logging
from typing import Any, Iterable, Iterator, List, NamedTuple, Tuple

from . import expressions as ex
from .eager import construct
from .graph import ExpansionStack
from .model import GenerationModel, MemberOrigin, ResolvedMember

logger = logging.getLogger("facetcraft.facets.projection")

__all__ = ["Projection", "build_projection"]


class Projection:
    """A compiled projection: callable on one source, printable, walkable."""

    def __init__(self, facet_type: type, parameter: ex.Parameter, body: ex.Node):
        self.facet_type = facet_type
        self.parameter = parameter
        self.body = body

    def __call__(self, source: Any) -> Any:
        return self.body.evaluate({self.parameter.name: source})

    def apply(self, sources: Iterable[Any]) -> List[Any]:
        return [self(source) for source in sources]

    def as_text(self) -> str:
        return f"lambda {self.parameter.name}: {self.body.as_text()}"

    def walk(self) -> Iterator[ex.Node]:
        yield self.parameter
        yield from self.body.walk()

    def node_types(self) -> frozenset:
        return frozenset(type(node) for node in self.walk())

    @property
    def is_translatable(self) -> bool:
        return self.node_types() <= ex.TRANSLATABLE_NODES

    def __repr__(self) -> str:
        return f"<Projection {self.facet_type.__name__}: {self.as_text()}>"


def _may_alias(a: Any, b: Any) -> bool:
    """Whether a value declared ``a`` can be the same object as one declared ``b``."""
    if not (inspect.isclass(a) and inspect.isclass(b)):
        return True
    return issubclass(a, b) or issubclass(b, a)


class _Frame(NamedTuple):
    """A source object being expanded: the node producing it and its declared type."""

    node: ex.Node
    source_type: Any


class _Builder:
    def __init__(self, root: GenerationModel):
        self.max_depth = root.max_depth
        self.preserve_references = root.preserve_references

    def can_descend(self, depth: int) -> bool:
        return self.max_depth == 0 or depth < self.max_depth

    def facet(
        self,
        model: GenerationModel,
        source: ex.Node,
        depth: int,
        stack: ExpansionStack,
        frames: Tuple[_Frame, ...],
    ) -> ex.Init:
        bindings: List[Tuple[str, ex.Node]] = []
        for member in model.mapped_members:
            if not member.include_in_projection:
                continue
            bindings.append((member.name, self.member(model, member, source, depth, stack, frames)))
        facet_type = model.facet_type
        return ex.Init(facet_type, tuple(bindings), lambda values: construct(facet_type, values))

    def member(
        self,
        model: GenerationModel,
        member: ResolvedMember,
        source: ex.Node,
        depth: int,
        stack: ExpansionStack,
        frames: Tuple[_Frame, ...],
    ) -> ex.Node:
        if member.origin is MemberOrigin.COMPUTED:
            node = model.expressions[member.name].to_node(source)
        else:
            node = self.path(member, source)

        if member.nested is not None:
            node = self.nested(member, node, depth, stack, frames)
        elif member.enum_as is not None:
            node = ex.EnumValue(node, member.enum_as)

        conditions = model.conditions.get(member.name, ())
        if conditions:
            tests = tuple(c.to_node(source) for c in conditions)
            test = tests[0] if len(tests) == 1 else ex.BoolOp("and", tests)
            node = ex.Conditional(test, node, ex.Constant(member.fallback))
        return node

    @staticmethod
    def path(member: ResolvedMember, source: ex.Node) -> ex.Node:
        node = source
        guards = []
        for i, segment in enumerate(member.source_path):
            if i and member.nullable:
                guards.append(ex.IsNotNone(node))
            node = ex.Member(node, segment)
        if not guards:
            return node
        test = guards[0] if len(guards) == 1 else ex.BoolOp("and", tuple(guards))
        return ex.Conditional(test, node, ex.Constant(None))

    def unvisited(self, value: ex.Node, value_type: Any, frames: Tuple[_Frame, ...]) -> ex.Node:
        """``value is not None``, plus identity checks against aliasable frames."""
        tests: List[ex.Node] = [ex.IsNotNone(value)]
        if self.preserve_references:
            tests.extend(
                ex.Compare(value, ("is not",), (frame.node,))
                for frame in frames
                if _may_alias(value_type, frame.source_type)
            )
        return tests[0] if len(tests) == 1 else ex.BoolOp("and", tuple(tests))

    def nested(
        self,
        member: ResolvedMember,
        value: ex.Node,
        depth: int,
        stack: ExpansionStack,
        frames: Tuple[_Frame, ...],
    ) -> ex.Node:
        binding = member.nested
        child = depth + 1
        if not self.can_descend(depth):
            return ex.Constant(None)

        def body(operand: ex.Node) -> ex.Node:
            if binding.facet_type in stack:
                logger.debug(
                    "%s.%s: %s already expanded, emitting conversion call",
                    stack, member.name, binding.facet_type.__name__,
                )
                return ex.ConvertCall(
                    binding.facet_type,
                    operand,
                    depth=child,
                    max_depth=self.max_depth,
                    preserve_references=self.preserve_references,
                    ancestors=tuple(frame.node for frame in frames),
                )
            inner = binding.facet_type._facet_model()
            return self.facet(
                inner, operand, child, stack.push(binding.facet_type),
                frames + (_Frame(operand, binding.source_element_type),),
            )

        if binding.is_collection:
            element = ex.Parameter(f"e{child}", binding.source_element_type)
            node = ex.Select(
                value,
                element,
                body(element),
                binding.collection_shape,
                condition=self.unvisited(element, binding.source_element_type, frames),
                distinct=self.preserve_references,
            )
            if member.nullable or binding.nullable:
                node = ex.Conditional(ex.IsNotNone(value), node, ex.Constant(None))
            return node
        test = self.unvisited(value, binding.source_element_type, frames)
        return ex.Conditional(test, body(value), ex.Constant(None))


def build_projection(facet_type: type) -> Projection:
    model: GenerationModel = facet_type._facet_model()
    parameter = ex.Parameter("src", model.source_type)
    builder = _Builder(model)
    body = builder.facet(
        model, parameter, 0, ExpansionStack((facet_type,)), (_Frame(parameter, model.source_type),),
    )
    projection = Projection(facet_type, parameter, body)
    logger.debug("Projection for %s: %s", model.facet_name, projection.as_text())
    return projection
