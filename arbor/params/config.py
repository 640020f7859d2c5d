"""
Tree generation configuration record.

Bundles every policy the pipeline needs plus the seed, so a configuration
can be validated in one place, serialized and reproduced exactly.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from arbor_policies import (
    LSystemPolicy,
    SpaceColonizationPolicy,
    CrownSpec,
    TubeSweepPolicy,
    JunctionBlendPolicy,
    FoliagePolicy,
    TessellationPolicy,
    MeshAssemblyPolicy,
    ScalarFieldPolicy,
    OrganicPrimitivePolicy,
)

_SECTIONS = {
    "lsystem": LSystemPolicy,
    "space_colonization": SpaceColonizationPolicy,
    "crown": CrownSpec,
    "tube_sweep": TubeSweepPolicy,
    "junctions": JunctionBlendPolicy,
    "foliage": FoliagePolicy,
    "tessellation": TessellationPolicy,
    "assembly": MeshAssemblyPolicy,
    "scalar_field": ScalarFieldPolicy,
    "organic": OrganicPrimitivePolicy,
}


@dataclass
class TreeGenerationConfig:
    """
    Complete configuration for one tree.

    JSON Schema:
    {
        "name": str,
        "seed": int | null,
        "lsystem": {...},
        "space_colonization": {...},
        "crown": {...},
        "tube_sweep": {...},
        "junctions": {...},
        "foliage": {...},
        "tessellation": {...},
        "assembly": {...},
        "scalar_field": {...},
        "organic": {...}
    }
    """
    name: str = "custom"
    seed: Optional[int] = None
    lsystem: LSystemPolicy = field(default_factory=LSystemPolicy)
    space_colonization: SpaceColonizationPolicy = field(default_factory=SpaceColonizationPolicy)
    crown: CrownSpec = field(default_factory=CrownSpec)
    tube_sweep: TubeSweepPolicy = field(default_factory=TubeSweepPolicy)
    junctions: JunctionBlendPolicy = field(default_factory=JunctionBlendPolicy)
    foliage: FoliagePolicy = field(default_factory=FoliagePolicy)
    tessellation: TessellationPolicy = field(default_factory=TessellationPolicy)
    assembly: MeshAssemblyPolicy = field(default_factory=MeshAssemblyPolicy)
    scalar_field: ScalarFieldPolicy = field(default_factory=ScalarFieldPolicy)
    organic: OrganicPrimitivePolicy = field(default_factory=OrganicPrimitivePolicy)

    def to_dict(self) -> Dict[str, Any]:
        d = {"name": self.name, "seed": self.seed}
        for key in _SECTIONS:
            d[key] = getattr(self, key).to_dict()
        return d

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "TreeGenerationConfig":
        kwargs = {"name": d.get("name", "custom"), "seed": d.get("seed")}
        for key, policy_cls in _SECTIONS.items():
            if key in d and d[key] is not None:
                kwargs[key] = policy_cls.from_dict(d[key])
        return cls(**kwargs)

    def validate(self) -> List[str]:
        """Validate every section; messages are prefixed with the section name."""
        errors = []
        if self.seed is not None and (isinstance(self.seed, bool) or not isinstance(self.seed, int)):
            errors.append(f"seed must be an int or None, got {self.seed!r}")
        for key in _SECTIONS:
            errors.extend(f"{key}: {e}" for e in getattr(self, key).validate())
        return errors


__all__ = ["TreeGenerationConfig"]
