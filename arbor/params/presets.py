"""
Species presets.

Each species is described by a handful of traits; ``get_preset`` maps them
onto a full TreeGenerationConfig:

- L-system: iterations ``clamp(floor(height / 4), 2, 4)``, segment length
  ``height / 4``, turn angle = branch angle, length decay 0.7, upward
  tropism 0.1, jitter 0.1
- space colonization: influence ``2 * leaf_radius``, kill
  ``0.3 * leaf_radius``, step ``0.1 * branch_length``, 100 iterations,
  density 0.15
- crown: center ``(0, 0.7 h, 0)``, radius ``0.6 h``, height ``0.8 h``
"""

from dataclasses import dataclass
from typing import Dict, List
import math

from arbor_policies import (
    LSystemPolicy,
    SpaceColonizationPolicy,
    CrownSpec,
    FoliagePolicy,
)
from ..core.errors import InvalidParameterError
from .config import TreeGenerationConfig


@dataclass(frozen=True)
class SpeciesTraits:
    trunk_height: float
    trunk_radius: float
    branch_length: float
    branch_angle_deg: float
    leaf_radius: float


SPECIES: Dict[str, SpeciesTraits] = {
    "pine": SpeciesTraits(10.0, 0.5, 7.0, 95.0, 1.2),
    "broadleaf": SpeciesTraits(9.0, 0.8, 8.0, 100.0, 2.5),
    "birch": SpeciesTraits(10.0, 0.35, 7.0, 100.0, 0.7),
    "willow": SpeciesTraits(8.0, 0.6, 10.0, 110.0, 0.5),
    "palm": SpeciesTraits(12.0, 0.4, 10.0, 110.0, 2.2),
    "cypress": SpeciesTraits(10.0, 0.3, 6.0, 95.0, 0.4),
    "maple": SpeciesTraits(9.0, 0.7, 8.0, 100.0, 1.8),
}


def list_presets() -> List[str]:
    """Names accepted by ``get_preset``."""
    return sorted(SPECIES)


def get_preset(name: str) -> TreeGenerationConfig:
    """
    Build the configuration for a named species.

    Parameters
    ----------
    name : str
        Species name (case-insensitive), see ``list_presets()``

    Returns
    -------
    TreeGenerationConfig
        Fresh, independently mutable configuration

    Raises
    ------
    InvalidParameterError
        If the species is unknown
    """
    key = name.lower() if isinstance(name, str) else name
    if key not in SPECIES:
        raise InvalidParameterError(
            f"Unknown preset {name!r}. Available: {', '.join(list_presets())}"
        )
    t = SPECIES[key]
    h = t.trunk_height

    lsystem = LSystemPolicy(
        iterations=min(max(int(math.floor(h / 4.0)), 2), 4),
        angle_deg=t.branch_angle_deg,
        segment_length=h / 4.0,
        length_decay=0.7,
        initial_radius=t.trunk_radius,
        min_radius=t.trunk_radius * 0.05,
        tropism=(0.0, 1.0, 0.0),
        tropism_strength=0.1,
        jitter=0.1,
    )
    space_colonization = SpaceColonizationPolicy(
        point_density=0.15,
        influence_radius=t.leaf_radius * 2.0,
        kill_radius=t.leaf_radius * 0.3,
        step_size=t.branch_length * 0.1,
        max_iterations=100,
        max_branch_length=t.branch_length,
        min_radius=t.trunk_radius * 0.05,
    )
    crown = CrownSpec(center=(0.0, 0.7 * h, 0.0), radius=0.6 * h, height=0.8 * h)
    foliage = FoliagePolicy(leaf_size=t.leaf_radius)

    return TreeGenerationConfig(
        name=key,
        lsystem=lsystem,
        space_colonization=space_colonization,
        crown=crown,
        foliage=foliage,
    )


__all__ = ["SpeciesTraits", "SPECIES", "get_preset", "list_presets"]
