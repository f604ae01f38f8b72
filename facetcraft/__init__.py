"""
facetcraft - declarative facets over Python source types

- Facets: source-derived dataclasses with eager, reverse, projection and
  flatten conversions generated from one declaration
- Wrappers: reference-delegating views with the same member selection
- Faults: structured error handling with fault domains
- Config: process-wide defaults from .env, environment and overrides
"""

__version__ = "0.1.0"

from .config import FacetSettings, ConfigLoader, configure, get_settings, reset_settings
from .faults import Fault, FaultDomain, Severity
from .facets import (
    Facet,
    MapFrom,
    MapWhen,
    Wrapper,
    EmissionShape,
    EnumRendering,
    FacetFault,
    DeclarationFault,
    ResolutionFault,
    MappingFault,
    HookFault,
    ReverseFault,
    ProjectionFault,
    generate_dtos,
    DtoTypes,
)

__all__ = [
    "__version__",
    # Config
    "FacetSettings",
    "ConfigLoader",
    "configure",
    "get_settings",
    "reset_settings",
    # Faults
    "Fault",
    "FaultDomain",
    "Severity",
    # Facets
    "Facet",
    "MapFrom",
    "MapWhen",
    "Wrapper",
    "EmissionShape",
    "EnumRendering",
    "FacetFault",
    "DeclarationFault",
    "ResolutionFault",
    "MappingFault",
    "HookFault",
    "ReverseFault",
    "ProjectionFault",
    "generate_dtos",
    "DtoTypes",
]
