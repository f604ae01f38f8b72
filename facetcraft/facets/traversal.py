"""
Run-time traversal guards.

One :class:`TraversalState` is created per top-level conversion call and
threaded through nested conversions. It bounds nesting depth and, when
``preserve_references`` is on, remembers which source objects are being
expanded on the current path so a data cycle is never re-entered.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, FrozenSet

__all__ = ["TraversalState"]


@dataclass(frozen=True)
class TraversalState:
    max_depth: int
    preserve_references: bool
    depth: int = 0
    visited: FrozenSet[int] = frozenset()

    @classmethod
    def start(cls, source: Any, *, max_depth: int, preserve_references: bool) -> "TraversalState":
        visited = frozenset((id(source),)) if preserve_references else frozenset()
        return cls(max_depth=max_depth, preserve_references=preserve_references, visited=visited)

    @property
    def can_descend(self) -> bool:
        """Whether nested members may be populated at this depth (0 = unbounded)."""
        return self.max_depth == 0 or self.depth < self.max_depth

    def has_visited(self, obj: Any) -> bool:
        return self.preserve_references and id(obj) in self.visited

    def descend(self, obj: Any) -> "TraversalState":
        """State for converting ``obj`` one level further down."""
        visited = self.visited | {id(obj)} if self.preserve_references else self.visited
        return replace(self, depth=self.depth + 1, visited=visited)
