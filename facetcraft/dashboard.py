"""
HTML report of declared facets, rendered with Jinja2.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List

from jinja2 import Environment, PackageLoader, select_autoescape

from . import __version__
from .facets.schema import describe_facet

logger = logging.getLogger("facetcraft.dashboard")

__all__ = ["create_environment", "render_dashboard"]


def _badge(value: Any) -> str:
    return "yes" if value else "no"


def create_environment() -> Environment:
    env = Environment(
        loader=PackageLoader("facetcraft", "templates"),
        autoescape=select_autoescape(
            enabled_extensions=["html", "htm", "xml"],
            default_for_string=True,
        ),
        trim_blocks=True,
        lstrip_blocks=True,
    )
    env.filters["badge"] = _badge
    return env


def render_dashboard(facet_types: Iterable[type], *, title: str = "Facets") -> str:
    """Render one HTML page describing every facet in ``facet_types``."""
    facets: List[Dict[str, Any]] = [describe_facet(t) for t in facet_types]
    broken = sum(1 for f in facets if "fault" in f)
    logger.info("Rendering dashboard for %d facets (%d with faults)", len(facets), broken)
    template = create_environment().get_template("dashboard.html")
    return template.render(title=title, facets=facets, broken=broken, version=__version__)
