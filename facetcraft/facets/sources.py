"""
Restricted source expressions.

Computed members (``MapFrom("first_name + ' ' + last_name")``) and
``MapWhen`` conditions are short Python expressions over source members.
They are parsed once, checked against an AST whitelist, and then:

    * compiled to a code object for the eager converter (bare member
      names are rewritten to attribute reads on the source object);
    * lowered to projection nodes for the deferred projection.

Names that are not source members resolve against the module that
declares the facet (constants, enums).
"""

from __future__ import annotations

import ast
import copy
import logging
from collections.abc import Mapping
from typing import Any, FrozenSet, Iterable, Optional

from . import expressions as ex
from .exceptions import DeclarationFault

logger = logging.getLogger("facetcraft.facets.sources")

__all__ = ["SourceExpression", "check_expression"]

SOURCE_NAME = "__src__"

_ALLOWED_AST = {
    ast.Expression, ast.BoolOp, ast.BinOp, ast.UnaryOp, ast.IfExp,
    ast.Compare, ast.Call, ast.Name, ast.Load, ast.Constant,
    ast.Attribute, ast.Tuple, ast.List,
    ast.And, ast.Or, ast.Not, ast.Add, ast.Sub, ast.Mult, ast.Div,
    ast.FloorDiv, ast.Mod, ast.Pow, ast.USub, ast.UAdd,
    ast.Eq, ast.NotEq, ast.Gt, ast.GtE, ast.Lt, ast.LtE,
    ast.Is, ast.IsNot, ast.In, ast.NotIn,
}

_BINOPS = {
    ast.Add: "+", ast.Sub: "-", ast.Mult: "*", ast.Div: "/",
    ast.FloorDiv: "//", ast.Mod: "%", ast.Pow: "**",
}
_CMPOPS = {
    ast.Eq: "==", ast.NotEq: "!=", ast.Lt: "<", ast.LtE: "<=",
    ast.Gt: ">", ast.GtE: ">=", ast.Is: "is", ast.IsNot: "is not",
    ast.In: "in", ast.NotIn: "not in",
}
_UNARYOPS = {ast.USub: "-", ast.UAdd: "+", ast.Not: "not"}

_SAFE_GLOBALS = {"__builtins__": {}, **ex.FUNCTIONS}


def _parse(text: str, *, facet: str, directive: str) -> ast.Expression:
    try:
        tree = ast.parse(text.strip(), mode="eval")
    except SyntaxError as exc:
        raise DeclarationFault(
            f"invalid expression {text!r}: {exc.msg}", facet=facet, directive=directive
        ) from None

    for node in ast.walk(tree):
        if type(node) not in _ALLOWED_AST:
            raise DeclarationFault(
                f"expression {text!r} uses disallowed syntax: {type(node).__name__}",
                facet=facet,
                directive=directive,
            )
        if isinstance(node, ast.Call):
            func = node.func
            if node.keywords:
                raise DeclarationFault(
                    f"expression {text!r}: keyword arguments are not supported",
                    facet=facet,
                    directive=directive,
                )
            if isinstance(func, ast.Name) and func.id in ex.FUNCTIONS:
                continue
            if isinstance(func, ast.Attribute) and func.attr in ex.STRING_METHODS:
                continue
            raise DeclarationFault(
                f"expression {text!r} calls a function outside the allowed set "
                f"{sorted(ex.FUNCTIONS)} / {sorted(ex.STRING_METHODS)}",
                facet=facet,
                directive=directive,
            )
    return tree


def check_expression(text: str, *, facet: str, directive: str) -> None:
    """Syntax and whitelist check only; names are resolved later."""
    _parse(text, facet=facet, directive=directive)


class _RootRewriter(ast.NodeTransformer):
    """Rewrite bare member names ``x`` to ``__src__.x``."""

    def __init__(self, members: FrozenSet[str]):
        self.members = members

    def visit_Name(self, node: ast.Name) -> ast.AST:
        if node.id in self.members:
            return ast.copy_location(
                ast.Attribute(
                    value=ast.Name(id=SOURCE_NAME, ctx=ast.Load()),
                    attr=node.id,
                    ctx=ast.Load(),
                ),
                node,
            )
        return node


class _Scope(Mapping):
    """Locals mapping for eager evaluation: the source, then module names."""

    __slots__ = ("_source", "_namespace")

    def __init__(self, source: Any, namespace: Mapping[str, Any]):
        self._source = source
        self._namespace = namespace

    def __getitem__(self, key: str) -> Any:
        if key == SOURCE_NAME:
            return self._source
        return self._namespace[key]

    def __iter__(self):
        yield SOURCE_NAME
        yield from self._namespace

    def __len__(self) -> int:
        return len(self._namespace) + 1


class SourceExpression:
    """
    A validated, name-resolved expression over a source type's members.

    Args:
        text: The expression as written.
        members: Member names of the source type.
        namespace: Module globals of the declaring facet.
        facet: Facet name, for fault messages.
        directive: Member or directive name, for fault messages.
    """

    def __init__(
        self,
        text: str,
        *,
        members: Iterable[str],
        namespace: Mapping[str, Any],
        facet: str,
        directive: str,
    ):
        self.text = text.strip()
        self.facet = facet
        self.directive = directive
        self.members = frozenset(members)
        self.namespace = namespace
        self.tree = _parse(self.text, facet=facet, directive=directive)

        self.references = frozenset(
            n.id for n in ast.walk(self.tree)
            if isinstance(n, ast.Name) and n.id in self.members
        )
        for node in ast.walk(self.tree):
            if not isinstance(node, ast.Name) or node.id in self.members:
                continue
            if node.id in ex.FUNCTIONS or node.id in namespace:
                continue
            raise DeclarationFault(
                f"expression {self.text!r} references unknown name '{node.id}'",
                facet=facet,
                directive=directive,
            )

        rewritten = _RootRewriter(self.members).visit(copy.deepcopy(self.tree))
        ast.fix_missing_locations(rewritten)
        self._code = compile(rewritten, f"<facet {facet}.{directive}>", "eval")

    def evaluate(self, source: Any) -> Any:
        """Evaluate against a source instance (eager path)."""
        return eval(self._code, _SAFE_GLOBALS, _Scope(source, self.namespace))

    def to_node(self, parameter: ex.Node) -> ex.Node:
        """Lower to projection nodes rooted at ``parameter``."""
        return _NodeBuilder(self, parameter).build(self.tree.body)

    def __repr__(self) -> str:
        return f"SourceExpression({self.text!r})"


class _NodeBuilder:
    def __init__(self, expression: SourceExpression, parameter: ex.Node):
        self.expression = expression
        self.parameter = parameter

    def _fail(self, node: ast.AST) -> DeclarationFault:
        return DeclarationFault(
            f"expression {self.expression.text!r}: cannot translate "
            f"{type(node).__name__} to a projection",
            facet=self.expression.facet,
            directive=self.expression.directive,
        )

    def _static(self, node: ast.AST) -> Optional[Any]:
        """Fold ``Name`` / ``Name.attr...`` chains rooted at module names."""
        if isinstance(node, ast.Name) and node.id not in self.expression.members:
            if node.id in self.expression.namespace:
                return (self.expression.namespace[node.id],)
            return None
        if isinstance(node, ast.Attribute):
            base = self._static(node.value)
            if base is not None:
                return (getattr(base[0], node.attr),)
        return None

    def build(self, node: ast.AST) -> ex.Node:
        static = self._static(node)
        if static is not None:
            return ex.Constant(static[0])

        if isinstance(node, ast.Constant):
            return ex.Constant(node.value)
        if isinstance(node, ast.Name):
            if node.id in self.expression.members:
                return ex.Member(self.parameter, node.id)
            raise self._fail(node)
        if isinstance(node, ast.Attribute):
            return ex.Member(self.build(node.value), node.attr)
        if isinstance(node, ast.BinOp):
            return ex.BinaryOp(_BINOPS[type(node.op)], self.build(node.left), self.build(node.right))
        if isinstance(node, ast.UnaryOp):
            return ex.UnaryOp(_UNARYOPS[type(node.op)], self.build(node.operand))
        if isinstance(node, ast.BoolOp):
            op = "and" if isinstance(node.op, ast.And) else "or"
            return ex.BoolOp(op, tuple(self.build(v) for v in node.values))
        if isinstance(node, ast.Compare):
            return ex.Compare(
                self.build(node.left),
                tuple(_CMPOPS[type(op)] for op in node.ops),
                tuple(self.build(c) for c in node.comparators),
            )
        if isinstance(node, ast.IfExp):
            return ex.Conditional(self.build(node.test), self.build(node.body), self.build(node.orelse))
        if isinstance(node, (ast.Tuple, ast.List)):
            return ex.TupleLiteral(tuple(self.build(e) for e in node.elts))
        if isinstance(node, ast.Call):
            args = tuple(self.build(a) for a in node.args)
            if isinstance(node.func, ast.Name):
                return ex.Func(node.func.id, args)
            return ex.MethodCall(self.build(node.func.value), node.func.attr, args)
        raise self._fail(node)
