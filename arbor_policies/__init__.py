"""
Policy records for arbor.

Every operation in ``arbor`` is driven by one of these JSON-serializable
dataclasses. Each policy provides ``to_dict()``, ``from_dict()`` and
``validate()``; operations turn validation errors into
``InvalidParameterError`` before doing any heavy work.
"""

from .base import OperationReport, coerce_vec3, is_finite_vec3
from .lsystem import LSystemPolicy, DEFAULT_RULES
from .space_colonization import SpaceColonizationPolicy, CrownSpec
from .meshing import (
    ScalarFieldPolicy,
    TubeSweepPolicy,
    JunctionBlendPolicy,
    OrganicPrimitivePolicy,
    FoliagePolicy,
    MeshAssemblyPolicy,
)
from .tessellation import TessellationPolicy, DEFAULT_TIER_SEGMENTS

__all__ = [
    "OperationReport",
    "coerce_vec3",
    "is_finite_vec3",
    "LSystemPolicy",
    "DEFAULT_RULES",
    "SpaceColonizationPolicy",
    "CrownSpec",
    "ScalarFieldPolicy",
    "TubeSweepPolicy",
    "JunctionBlendPolicy",
    "OrganicPrimitivePolicy",
    "FoliagePolicy",
    "MeshAssemblyPolicy",
    "TessellationPolicy",
    "DEFAULT_TIER_SEGMENTS",
]
