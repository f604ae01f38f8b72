"""
Facet introspection: a JSON-serializable description of a facet.
"""

from __future__ import annotations

from typing import Any, Dict, List

from .exceptions import FacetFault, ProjectionFault
from .model import GenerationModel, ResolvedMember
from .typeinfo import type_name

__all__ = ["describe_facet", "describe_member"]


def describe_member(member: ResolvedMember) -> Dict[str, Any]:
    data: Dict[str, Any] = {
        "name": member.name,
        "origin": member.origin.value,
        "type": type_name(member.annotation),
        "nullable": member.nullable,
        "reversible": member.reversible,
    }
    if member.source_path:
        data["source"] = ".".join(member.source_path)
    if member.expression_text:
        data["expression"] = member.expression_text
    if member.conditions:
        data["when"] = list(member.conditions)
    if member.reversible and member.reverse_to != member.name:
        data["reverse_to"] = member.reverse_to
    if not member.include_in_projection:
        data["include_in_projection"] = False
    if member.enum_as is not None:
        data["enum_as"] = member.enum_as.value
    if member.nested is not None:
        data["nested"] = {
            "facet": member.nested.facet_type.__qualname__,
            "collection": (
                member.nested.collection_shape.value if member.nested.is_collection else None
            ),
        }
    return data


def describe_facet(facet_type: type) -> Dict[str, Any]:
    """
    Describe a facet's members, options and generated artifacts.

    Faults are reported in the description rather than raised, so an
    inspection tool can list broken facets next to working ones.
    """
    description: Dict[str, Any] = {
        "name": facet_type.__qualname__,
        "module": facet_type.__module__,
    }
    try:
        model: GenerationModel = facet_type._facet_model()
    except FacetFault as fault:
        description["fault"] = fault.to_dict()
        return description

    members: List[Dict[str, Any]] = [describe_member(m) for m in model.members]
    description.update({
        "source": f"{model.source_type.__module__}.{model.source_type.__qualname__}",
        "shape": model.shape.value,
        "max_depth": model.max_depth,
        "preserve_references": model.preserve_references,
        "reverse": model.generate_reverse,
        "members": members,
        "excluded_required": [sm.name for sm in model.excluded_required],
        "hooks": {
            "before": [getattr(h, "__qualname__", repr(h)) for h in model.before_hooks],
            "after": [getattr(h, "__qualname__", repr(h)) for h in model.after_hooks],
        },
        "flatten_to": [t.__qualname__ for t in model.flatten_targets],
    })
    if model.generate_projection:
        try:
            description["projection"] = facet_type.projection().as_text()
        except ProjectionFault as fault:
            description["projection_fault"] = fault.to_dict()
    return description
