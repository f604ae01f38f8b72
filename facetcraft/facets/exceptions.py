"""
facetcraft Facet Exceptions: Fault-domain-integrated error hierarchy.

Every facet error participates in the fault domain system. The hierarchy
follows the three moments a facet can fail:

    * declaration - the directives themselves are malformed (FC1xx)
    * resolution - nested facets cannot be bound to their members (FC2xx)
    * conversion - a runtime value needed by a converter is absent (FC3xx)

Depth truncation and cycle breaking are NOT faults.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from ..faults.core import Fault, FaultDomain, Severity


# ── Fault Domain ─────────────────────────────────────────────────────────

FACET = FaultDomain(
    name="FACET",
    description="Facet declaration, nested binding and conversion failures",
)


# ── Base ─────────────────────────────────────────────────────────────────

class FacetFault(Fault):
    """Base fault for all facet errors."""

    domain = FACET
    severity = Severity.ERROR
    code = "FC000"

    def __init__(
        self,
        message: str = "Facet operation failed",
        *,
        facet: Optional[str] = None,
        code: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ):
        self.facet = facet
        super().__init__(
            message=message,
            code=code or self.__class__.code,
            metadata={**(metadata or {}), "facet": facet},
        )


# ── Declaration ──────────────────────────────────────────────────────────

class DeclarationFault(FacetFault):
    """Raised when a facet's directives are malformed or contradict each other."""

    code = "FC100"

    def __init__(
        self,
        message: str,
        *,
        facet: Optional[str] = None,
        directive: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ):
        prefix = f"{facet}: " if facet else ""
        super().__init__(
            message=f"{prefix}{message}",
            facet=facet,
            metadata={**(metadata or {}), "directive": directive},
        )
        self.directive = directive


# ── Resolution ───────────────────────────────────────────────────────────

class ResolutionFault(FacetFault):
    """Raised when a nested facet cannot be bound to a member."""

    code = "FC200"

    def __init__(
        self,
        message: str,
        *,
        facet: Optional[str] = None,
        member: Optional[str] = None,
    ):
        where = f"{facet}.{member}" if facet and member else (facet or member or "")
        super().__init__(
            message=f"{where}: {message}" if where else message,
            facet=facet,
            metadata={"member": member},
        )
        self.member = member


# ── Conversion ───────────────────────────────────────────────────────────

class MappingFault(FacetFault):
    """
    Raised when a converter finds a required value absent at run time.

    Attributes:
        member: Facet member being populated.
        cause: Short description of what was missing.
    """

    code = "FC300"

    def __init__(
        self,
        member: str,
        cause: str,
        *,
        facet: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ):
        where = f"{facet}.{member}" if facet else member
        super().__init__(
            message=f"Cannot populate '{where}': {cause}",
            facet=facet,
            metadata={**(metadata or {}), "member": member, "cause": cause},
        )
        self.member = member
        self.cause = cause


class HookFault(MappingFault):
    """Raised when an awaitable hook is used on the synchronous path."""

    code = "FC310"

    def __init__(self, hook: str, *, facet: Optional[str] = None):
        super().__init__(
            member=hook,
            cause="hook returned an awaitable; use from_source_async()",
            facet=facet,
        )


# ── Disabled artifacts ───────────────────────────────────────────────────

class ReverseFault(FacetFault):
    """Raised when reverse conversion is requested but was not generated."""

    code = "FC400"

    def __init__(self, facet: str):
        super().__init__(
            message=f"{facet} does not generate a reverse conversion (Spec.reverse = False)",
            facet=facet,
        )


class ProjectionFault(FacetFault):
    """Raised when a projection is requested but cannot be provided."""

    code = "FC500"

    def __init__(self, facet: str, message: Optional[str] = None):
        super().__init__(
            message=message or f"{facet} does not generate a projection (Spec.projection = False)",
            facet=facet,
        )
