"""
Projection expression nodes.

A projection is a tree of these nodes. The node set is small enough
for an external query translator to walk:

    Parameter, Member, Constant - leaves and member access
    Init - construct a facet from bindings
    IsNotNone, Conditional - null guards and MapWhen conditions
    Select - element-wise map + materialize
    ConvertCall - constructor-style conversion (cycles)
    BinaryOp, Compare, BoolOp, UnaryOp - scalar operators
    Func, MethodCall, EnumValue - whitelisted scalar functions

Every node can render itself (``as_text()``) and evaluate itself against an
environment that maps parameter names to values (``evaluate(env)``).
"""

from __future__ import annotations

import operator
from enum import Enum
from typing import Any, Callable, Dict, Iterator, Mapping, Optional, Tuple

from .traversal import TraversalState
from .typeinfo import CollectionShape

__all__ = [
    "Node",
    "Parameter",
    "Member",
    "Constant",
    "Init",
    "IsNotNone",
    "Conditional",
    "Select",
    "ConvertCall",
    "BinaryOp",
    "Compare",
    "BoolOp",
    "UnaryOp",
    "Func",
    "MethodCall",
    "EnumValue",
    "TupleLiteral",
    "TRANSLATABLE_NODES",
    "FUNCTIONS",
    "STRING_METHODS",
]


BINARY_OPERATORS: Dict[str, Callable[[Any, Any], Any]] = {
    "+": operator.add,
    "-": operator.sub,
    "*": operator.mul,
    "/": operator.truediv,
    "//": operator.floordiv,
    "%": operator.mod,
    "**": operator.pow,
}

COMPARE_OPERATORS: Dict[str, Callable[[Any, Any], bool]] = {
    "==": operator.eq,
    "!=": operator.ne,
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
    "is": operator.is_,
    "is not": operator.is_not,
    "in": lambda a, b: a in b,
    "not in": lambda a, b: a not in b,
}

UNARY_OPERATORS: Dict[str, Callable[[Any], Any]] = {
    "-": operator.neg,
    "+": operator.pos,
    "not": operator.not_,
}

# Scalar functions a translator is expected to understand.
FUNCTIONS: Dict[str, Callable[..., Any]] = {
    "len": len,
    "str": str,
    "int": int,
    "float": float,
    "bool": bool,
    "abs": abs,
    "round": round,
    "min": min,
    "max": max,
}

STRING_METHODS = frozenset({
    "upper",
    "lower",
    "strip",
    "title",
    "capitalize",
    "startswith",
    "endswith",
})


def _render_constant(value: Any) -> str:
    if isinstance(value, Enum):
        return f"{type(value).__name__}.{value.name}"
    if isinstance(value, type):
        return value.__name__
    return repr(value)


class Node:
    """Base class for all projection nodes."""

    def evaluate(self, env: Mapping[str, Any]) -> Any:
        raise NotImplementedError

    def as_text(self) -> str:
        raise NotImplementedError

    def children(self) -> Tuple["Node", ...]:
        return ()

    def walk(self) -> Iterator["Node"]:
        """Depth-first walk over this node and every descendant."""
        yield self
        for child in self.children():
            yield from child.walk()

    def __str__(self) -> str:
        return self.as_text()

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.as_text()}>"


class Parameter(Node):
    """A lambda parameter (the projected source, or a collection element)."""

    def __init__(self, name: str, annotation: Any = None):
        self.name = name
        self.annotation = annotation

    def evaluate(self, env: Mapping[str, Any]) -> Any:
        return env[self.name]

    def as_text(self) -> str:
        return self.name


class Member(Node):
    """Attribute access: ``target.name``."""

    def __init__(self, target: Node, name: str):
        self.target = target
        self.name = name

    def evaluate(self, env: Mapping[str, Any]) -> Any:
        return getattr(self.target.evaluate(env), self.name)

    def as_text(self) -> str:
        return f"{self.target.as_text()}.{self.name}"

    def children(self) -> Tuple[Node, ...]:
        return (self.target,)


class Constant(Node):
    def __init__(self, value: Any):
        self.value = value

    def evaluate(self, env: Mapping[str, Any]) -> Any:
        return self.value

    def as_text(self) -> str:
        return _render_constant(self.value)


class TupleLiteral(Node):
    """Literal tuple, used as the right side of ``in`` tests."""

    def __init__(self, items: Tuple[Node, ...]):
        self.items = tuple(items)

    def evaluate(self, env: Mapping[str, Any]) -> Any:
        return tuple(item.evaluate(env) for item in self.items)

    def as_text(self) -> str:
        inner = ", ".join(item.as_text() for item in self.items)
        return f"({inner},)" if len(self.items) == 1 else f"({inner})"

    def children(self) -> Tuple[Node, ...]:
        return self.items


class Init(Node):
    """
    Member-wise construction of a facet.

    ``factory`` receives the evaluated bindings as a dict and returns the
    facet instance.
    """

    def __init__(
        self,
        facet_type: type,
        bindings: Tuple[Tuple[str, Node], ...],
        factory: Callable[[Dict[str, Any]], Any],
    ):
        self.facet_type = facet_type
        self.bindings = tuple(bindings)
        self.factory = factory

    def evaluate(self, env: Mapping[str, Any]) -> Any:
        return self.factory({name: node.evaluate(env) for name, node in self.bindings})

    def as_text(self) -> str:
        args = ", ".join(f"{name}={node.as_text()}" for name, node in self.bindings)
        return f"{self.facet_type.__name__}({args})"

    def children(self) -> Tuple[Node, ...]:
        return tuple(node for _, node in self.bindings)

    def binding(self, name: str) -> Optional[Node]:
        for bound, node in self.bindings:
            if bound == name:
                return node
        return None


class IsNotNone(Node):
    def __init__(self, operand: Node):
        self.operand = operand

    def evaluate(self, env: Mapping[str, Any]) -> Any:
        return self.operand.evaluate(env) is not None

    def as_text(self) -> str:
        return f"{self.operand.as_text()} is not None"

    def children(self) -> Tuple[Node, ...]:
        return (self.operand,)


class Conditional(Node):
    """``then if test else otherwise``"""

    def __init__(self, test: Node, then: Node, otherwise: Node):
        self.test = test
        self.then = then
        self.otherwise = otherwise

    def evaluate(self, env: Mapping[str, Any]) -> Any:
        if self.test.evaluate(env):
            return self.then.evaluate(env)
        return self.otherwise.evaluate(env)

    def as_text(self) -> str:
        return f"({self.then.as_text()} if {self.test.as_text()} else {self.otherwise.as_text()})"

    def children(self) -> Tuple[Node, ...]:
        return (self.test, self.then, self.otherwise)


class Select(Node):
    """
    Map ``body`` over each element of ``source`` and materialize ``shape``.

    Elements failing ``condition`` are skipped. With ``distinct`` an element
    that occurs more than once (by identity) is mapped only the first time.
    """

    def __init__(
        self,
        source: Node,
        parameter: Parameter,
        body: Node,
        shape: CollectionShape = CollectionShape.LIST,
        *,
        condition: Optional[Node] = None,
        distinct: bool = False,
    ):
        self.source = source
        self.parameter = parameter
        self.body = body
        self.shape = shape
        self.condition = condition
        self.distinct = distinct

    def evaluate(self, env: Mapping[str, Any]) -> Any:
        items = self.source.evaluate(env)
        scope = dict(env)
        results = []
        seen = set()
        for item in items:
            scope[self.parameter.name] = item
            if self.condition is not None and not self.condition.evaluate(scope):
                continue
            if self.distinct:
                if id(item) in seen:
                    continue
                seen.add(id(item))
            results.append(self.body.evaluate(scope))
        return self.shape.materialize(results)

    def as_text(self) -> str:
        source = self.source.as_text()
        if self.distinct:
            source = f"distinct({source})"
        text = f"{self.shape.suffix}({self.body.as_text()} for {self.parameter.as_text()} in {source}"
        if self.condition is not None:
            text += f" if {self.condition.as_text()}"
        return text + ")"

    def children(self) -> Tuple[Node, ...]:
        nodes: Tuple[Node, ...] = (self.source, self.parameter, self.body)
        if self.condition is not None:
            nodes += (self.condition,)
        return nodes


class ConvertCall(Node):
    """
    Constructor-style conversion of ``operand`` into ``facet_type``.

    Used where inlining would recurse into a facet already being expanded.
    The conversion continues at ``depth`` so depth truncation matches the
    eager converter. ``ancestors`` evaluate to the source objects already
    being expanded on the enclosing path; with ``preserve_references`` they
    seed the visited set of the conversion.
    """

    def __init__(
        self,
        facet_type: type,
        operand: Node,
        *,
        depth: int = 0,
        max_depth: int = 0,
        preserve_references: bool = True,
        ancestors: Tuple[Node, ...] = (),
    ):
        self.facet_type = facet_type
        self.operand = operand
        self.depth = depth
        self.max_depth = max_depth
        self.preserve_references = preserve_references
        self.ancestors = tuple(ancestors) if preserve_references else ()

    def evaluate(self, env: Mapping[str, Any]) -> Any:
        value = self.operand.evaluate(env)
        if value is None:
            return None
        visited = frozenset()
        if self.preserve_references:
            visited = frozenset(id(node.evaluate(env)) for node in self.ancestors) | {id(value)}
        state = TraversalState(
            max_depth=self.max_depth,
            preserve_references=self.preserve_references,
            depth=self.depth,
            visited=visited,
        )
        return self.facet_type._facet_forward().convert(value, state)

    def as_text(self) -> str:
        args = f"{self.operand.as_text()}, depth={self.depth}"
        if self.ancestors:
            args += f", visited={TupleLiteral(self.ancestors).as_text()}"
        return f"{self.facet_type.__name__}.from_source({args})"

    def children(self) -> Tuple[Node, ...]:
        return (self.operand,) + self.ancestors


class BinaryOp(Node):
    def __init__(self, op: str, left: Node, right: Node):
        if op not in BINARY_OPERATORS:
            raise ValueError(f"Unsupported binary operator: {op}")
        self.op = op
        self.left = left
        self.right = right

    def evaluate(self, env: Mapping[str, Any]) -> Any:
        return BINARY_OPERATORS[self.op](self.left.evaluate(env), self.right.evaluate(env))

    def as_text(self) -> str:
        return f"({self.left.as_text()} {self.op} {self.right.as_text()})"

    def children(self) -> Tuple[Node, ...]:
        return (self.left, self.right)


class Compare(Node):
    """Chained comparison ``left op1 c1 op2 c2 ...``."""

    def __init__(self, left: Node, ops: Tuple[str, ...], comparators: Tuple[Node, ...]):
        for op in ops:
            if op not in COMPARE_OPERATORS:
                raise ValueError(f"Unsupported comparison: {op}")
        self.left = left
        self.ops = tuple(ops)
        self.comparators = tuple(comparators)

    def evaluate(self, env: Mapping[str, Any]) -> Any:
        current = self.left.evaluate(env)
        for op, node in zip(self.ops, self.comparators):
            right = node.evaluate(env)
            if not COMPARE_OPERATORS[op](current, right):
                return False
            current = right
        return True

    def as_text(self) -> str:
        parts = [self.left.as_text()]
        for op, node in zip(self.ops, self.comparators):
            parts.extend([op, node.as_text()])
        return " ".join(parts)

    def children(self) -> Tuple[Node, ...]:
        return (self.left,) + self.comparators


class BoolOp(Node):
    def __init__(self, op: str, values: Tuple[Node, ...]):
        if op not in ("and", "or"):
            raise ValueError(f"Unsupported boolean operator: {op}")
        self.op = op
        self.values = tuple(values)

    def evaluate(self, env: Mapping[str, Any]) -> Any:
        result: Any = None
        for node in self.values:
            result = node.evaluate(env)
            if self.op == "and" and not result:
                return result
            if self.op == "or" and result:
                return result
        return result

    def as_text(self) -> str:
        return "(" + f" {self.op} ".join(v.as_text() for v in self.values) + ")"

    def children(self) -> Tuple[Node, ...]:
        return self.values


class UnaryOp(Node):
    def __init__(self, op: str, operand: Node):
        if op not in UNARY_OPERATORS:
            raise ValueError(f"Unsupported unary operator: {op}")
        self.op = op
        self.operand = operand

    def evaluate(self, env: Mapping[str, Any]) -> Any:
        return UNARY_OPERATORS[self.op](self.operand.evaluate(env))

    def as_text(self) -> str:
        sep = " " if self.op == "not" else ""
        return f"({self.op}{sep}{self.operand.as_text()})"

    def children(self) -> Tuple[Node, ...]:
        return (self.operand,)


class Func(Node):
    """Call to a whitelisted scalar function (see ``FUNCTIONS``)."""

    def __init__(self, name: str, args: Tuple[Node, ...]):
        if name not in FUNCTIONS:
            raise ValueError(f"Unsupported function: {name}")
        self.name = name
        self.args = tuple(args)

    def evaluate(self, env: Mapping[str, Any]) -> Any:
        return FUNCTIONS[self.name](*(a.evaluate(env) for a in self.args))

    def as_text(self) -> str:
        return f"{self.name}({', '.join(a.as_text() for a in self.args)})"

    def children(self) -> Tuple[Node, ...]:
        return self.args


class MethodCall(Node):
    """Call to a whitelisted string method (see ``STRING_METHODS``)."""

    def __init__(self, target: Node, method: str, args: Tuple[Node, ...] = ()):
        if method not in STRING_METHODS:
            raise ValueError(f"Unsupported method: {method}")
        self.target = target
        self.method = method
        self.args = tuple(args)

    def evaluate(self, env: Mapping[str, Any]) -> Any:
        target = self.target.evaluate(env)
        return getattr(target, self.method)(*(a.evaluate(env) for a in self.args))

    def as_text(self) -> str:
        args = ", ".join(a.as_text() for a in self.args)
        return f"{self.target.as_text()}.{self.method}({args})"

    def children(self) -> Tuple[Node, ...]:
        return (self.target,) + self.args


class EnumValue(Node):
    """Re-project an enum as its name (``"string"``) or value (``"int"``)."""

    def __init__(self, operand: Node, rendering: str):
        self.operand = operand
        self.rendering = str(getattr(rendering, "value", rendering))

    def evaluate(self, env: Mapping[str, Any]) -> Any:
        value = self.operand.evaluate(env)
        if value is None or not isinstance(value, Enum):
            return value
        return value.name if self.rendering == "string" else value.value

    def as_text(self) -> str:
        attr = "name" if self.rendering == "string" else "value"
        return f"{self.operand.as_text()}.{attr}"

    def children(self) -> Tuple[Node, ...]:
        return (self.operand,)


TRANSLATABLE_NODES = frozenset({
    Parameter,
    Member,
    Constant,
    TupleLiteral,
    Init,
    IsNotNone,
    Conditional,
    Select,
    ConvertCall,
    BinaryOp,
    Compare,
    BoolOp,
    UnaryOp,
    Func,
    MethodCall,
    EnumValue,
})
