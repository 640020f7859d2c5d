"""
Meshing policies for arbor.

This module contains the policies controlling every stage that turns a
skeleton into triangles:
- ScalarFieldPolicy: memory budget for scalar-field allocation
- TubeSweepPolicy: ring construction of branch tubes
- JunctionBlendPolicy: metaball blending at branching points
- OrganicPrimitivePolicy: stand-alone organic component meshes
- FoliagePolicy: per-instance leaf transforms at tips
- MeshAssemblyPolicy: merging and normal smoothing

UNIT CONVENTIONS
----------------
Lengths are in scene units. Memory budgets are in BYTES.
"""

from dataclasses import dataclass, asdict
from typing import Dict, Any, List


@dataclass
class ScalarFieldPolicy:
    """
    Policy for scalar-field volumes.

    JSON Schema:
    {
        "memory_budget_bytes": int,
        "default_resolution": int
    }
    """
    memory_budget_bytes: int = 64 * 1024 * 1024
    default_resolution: int = 32

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ScalarFieldPolicy":
        return cls(**{k: v for k, v in d.items() if k in cls.__dataclass_fields__})

    def validate(self) -> List[str]:
        errors = []
        if self.memory_budget_bytes <= 0:
            errors.append(f"memory_budget_bytes must be > 0, got {self.memory_budget_bytes}")
        if self.default_resolution < 2:
            errors.append(f"default_resolution must be >= 2, got {self.default_resolution}")
        return errors


@dataclass
class TubeSweepPolicy:
    """
    Policy for branch tube sweeping.

    The ring and lengthwise sample counts come from the branch's LOD tier;
    ``default_tier`` is used when no view metrics are supplied.

    JSON Schema:
    {
        "default_tier": "ultra" | "high" | "medium" | "low",
        "radius_floor_fraction": float,
        "up_flip_threshold": float,
        "densify": bool
    }
    """
    default_tier: str = "medium"
    radius_floor_fraction: float = 0.02  # of the base radius
    up_flip_threshold: float = 0.99
    densify: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "TubeSweepPolicy":
        return cls(**{k: v for k, v in d.items() if k in cls.__dataclass_fields__})

    def validate(self) -> List[str]:
        errors = []
        if self.default_tier not in ("ultra", "high", "medium", "low"):
            errors.append(f"default_tier must be a LOD tier name, got {self.default_tier!r}")
        if not 0.0 < self.radius_floor_fraction <= 1.0:
            errors.append(
                f"radius_floor_fraction must be in (0, 1], got {self.radius_floor_fraction}"
            )
        if not 0.0 < self.up_flip_threshold < 1.0:
            errors.append(f"up_flip_threshold must be in (0, 1), got {self.up_flip_threshold}")
        return errors


@dataclass
class JunctionBlendPolicy:
    """
    Policy for junction blending.

    ``sphere_radius_scale`` widens each metaball so that the 0.5 isosurface
    of a unit-strength ball sits close to the branch radius.

    JSON Schema:
    {
        "enabled": bool,
        "resolution": int,
        "box_scale": float,
        "sphere_radius_scale": float,
        "parent_strength": float,
        "threshold": float
    }
    """
    enabled: bool = True
    resolution: int = 16
    box_scale: float = 4.0  # box edge = box_scale * largest radius
    sphere_radius_scale: float = 2.0
    parent_strength: float = 1.0
    threshold: float = 0.5

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "JunctionBlendPolicy":
        return cls(**{k: v for k, v in d.items() if k in cls.__dataclass_fields__})

    def validate(self) -> List[str]:
        errors = []
        if self.resolution < 2:
            errors.append(f"resolution must be >= 2, got {self.resolution}")
        if not self.box_scale > 0:
            errors.append(f"box_scale must be > 0, got {self.box_scale}")
        if not self.sphere_radius_scale > 0:
            errors.append(f"sphere_radius_scale must be > 0, got {self.sphere_radius_scale}")
        if not self.parent_strength > 0:
            errors.append(f"parent_strength must be > 0, got {self.parent_strength}")
        if not self.threshold > 0:
            errors.append(f"threshold must be > 0, got {self.threshold}")
        return errors


@dataclass
class OrganicPrimitivePolicy:
    """
    Policy for organic component primitives (trunk, branch, leaf, flower).

    JSON Schema:
    {
        "resolution": int,
        "iso_level": float,
        "box_padding": float,
        "leaf_radius_scale": float
    }
    """
    resolution: int = 20
    iso_level: float = 0.05
    box_padding: float = 1.1  # box half-extent = padding * primitive extent
    leaf_radius_scale: float = 2.0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "OrganicPrimitivePolicy":
        return cls(**{k: v for k, v in d.items() if k in cls.__dataclass_fields__})

    def validate(self) -> List[str]:
        errors = []
        if self.resolution < 2:
            errors.append(f"resolution must be >= 2, got {self.resolution}")
        if not 0.0 < self.iso_level < 2.0:
            errors.append(f"iso_level must be in (0, 2), got {self.iso_level}")
        if not self.box_padding >= 1.0:
            errors.append(f"box_padding must be >= 1, got {self.box_padding}")
        if not self.leaf_radius_scale > 0:
            errors.append(f"leaf_radius_scale must be > 0, got {self.leaf_radius_scale}")
        return errors


@dataclass
class FoliagePolicy:
    """
    Policy for leaf instance placement.

    JSON Schema:
    {
        "enabled": bool,
        "leaf_size": float,
        "scale_min": float,
        "scale_max": float,
        "fine_tips_only": bool,
        "max_instances": int
    }
    """
    enabled: bool = True
    leaf_size: float = 1.0
    scale_min: float = 0.7
    scale_max: float = 1.3
    fine_tips_only: bool = False
    max_instances: int = 5000

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "FoliagePolicy":
        return cls(**{k: v for k, v in d.items() if k in cls.__dataclass_fields__})

    def validate(self) -> List[str]:
        errors = []
        if not self.leaf_size > 0:
            errors.append(f"leaf_size must be > 0, got {self.leaf_size}")
        if not 0.0 < self.scale_min <= self.scale_max:
            errors.append(
                f"scale range must satisfy 0 < scale_min <= scale_max, "
                f"got [{self.scale_min}, {self.scale_max}]"
            )
        if self.max_instances < 0:
            errors.append(f"max_instances must be >= 0, got {self.max_instances}")
        return errors


@dataclass
class MeshAssemblyPolicy:
    """
    Policy for final mesh assembly.

    JSON Schema:
    {
        "smooth_normals": bool,
        "smoothing_iterations": int,
        "smoothing_factor": float
    }
    """
    smooth_normals: bool = False
    smoothing_iterations: int = 3
    smoothing_factor: float = 0.5

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "MeshAssemblyPolicy":
        return cls(**{k: v for k, v in d.items() if k in cls.__dataclass_fields__})

    def validate(self) -> List[str]:
        errors = []
        if self.smoothing_iterations < 0:
            errors.append(f"smoothing_iterations must be >= 0, got {self.smoothing_iterations}")
        if not 0.0 <= self.smoothing_factor <= 1.0:
            errors.append(f"smoothing_factor must be in [0, 1], got {self.smoothing_factor}")
        return errors


__all__ = [
    "ScalarFieldPolicy",
    "TubeSweepPolicy",
    "JunctionBlendPolicy",
    "OrganicPrimitivePolicy",
    "FoliagePolicy",
    "MeshAssemblyPolicy",
]
