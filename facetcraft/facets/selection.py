"""
Selection Filter: narrows resolved source members by policy.

Rules, applied in order:

    1. allow-list: keep only the named members (unknown names are ignored)
    2. otherwise deny-list: drop the named members
    3. drop members whose declaring type is listed in ``exclude_declared_in``
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Sequence

from .directives import SelectionMode, SelectionPolicy
from .members import SourceMember

logger = logging.getLogger("facetcraft.facets.selection")

__all__ = ["select_members"]


def select_members(
    members: Sequence[SourceMember],
    policy: SelectionPolicy,
    *,
    exclude_declared_in: Iterable[type] = (),
) -> List[SourceMember]:
    """Return the members that survive ``policy``, in their resolved order."""
    excluded_types = tuple(exclude_declared_in)
    selected: List[SourceMember] = []

    if policy.mode is SelectionMode.ALLOW_LIST:
        known = {m.name for m in members}
        unknown = policy.names - known
        if unknown:
            logger.debug("Ignoring unknown include names: %s", sorted(unknown))

    for member in members:
        if policy.mode is SelectionMode.ALLOW_LIST and member.name not in policy.names:
            continue
        if policy.mode is SelectionMode.DENY_LIST and member.name in policy.names:
            continue
        if excluded_types and member.declaring_type in excluded_types:
            continue
        selected.append(member)

    return selected
