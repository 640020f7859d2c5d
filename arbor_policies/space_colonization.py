"""
Space Colonization Policy for arbor.

This module contains the SpaceColonizationPolicy dataclass that controls
the fine-branch growth pass, and the CrownSpec describing the ellipsoidal
crown volume that attraction points are sampled from.

All behavior is controlled via these records - no hidden constants.
Behavior is reproducible when the generator seed is fixed.

UNIT CONVENTIONS
----------------
Lengths are in scene units. Angles are in DEGREES.
"""

from dataclasses import dataclass, asdict
from typing import Dict, Any, List, Tuple
import math

from .base import coerce_vec3, is_finite_vec3


@dataclass
class CrownSpec:
    """
    Ellipsoidal crown volume.

    ``radius`` is the horizontal semi-axis, ``height`` the full vertical
    extent (the vertical semi-axis is ``height / 2``).

    JSON Schema:
    {
        "center": [x, y, z],
        "radius": float,
        "height": float
    }
    """
    center: Tuple[float, float, float] = (0.0, 7.0, 0.0)
    radius: float = 6.0
    height: float = 8.0

    @property
    def volume(self) -> float:
        return 4.0 / 3.0 * math.pi * self.radius * self.radius * (self.height / 2.0)

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["center"] = list(self.center)
        return d

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "CrownSpec":
        kwargs = {k: v for k, v in d.items() if k in CrownSpec.__dataclass_fields__}
        if "center" in kwargs:
            kwargs["center"] = coerce_vec3(kwargs["center"])
        return CrownSpec(**kwargs)

    def validate(self) -> List[str]:
        errors = []
        if not is_finite_vec3(self.center):
            errors.append(f"crown center must be a finite 3-vector, got {self.center}")
        if not self.radius > 0:
            errors.append(f"crown radius must be > 0, got {self.radius}")
        if not self.height > 0:
            errors.append(f"crown height must be > 0, got {self.height}")
        return errors


@dataclass
class SpaceColonizationPolicy:
    """
    Policy for the space colonization grower.

    JSON Schema:
    {
        "enabled": bool,
        "point_density": float (points per unit volume),
        "influence_radius": float,
        "kill_radius": float,
        "step_size": float,
        "max_iterations": int,
        "max_iterations_ceiling": int,
        "max_attraction_points": int,

        # Sibling spawning
        "spawn_probability": float,
        "spawn_angle_deg": float,
        "max_branch_length": float,

        # Radii
        "radius_taper": float,
        "min_radius": float
    }
    """
    enabled: bool = True

    point_density: float = 0.15
    influence_radius: float = 3.0
    kill_radius: float = 0.5
    step_size: float = 0.5
    max_iterations: int = 100
    max_iterations_ceiling: int = 10_000
    max_attraction_points: int = 200_000

    spawn_probability: float = 0.1
    spawn_angle_deg: float = 30.0
    max_branch_length: float = 5.0

    radius_taper: float = 0.97
    min_radius: float = 0.01

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return asdict(self)

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "SpaceColonizationPolicy":
        """Create from dictionary."""
        return SpaceColonizationPolicy(**{
            k: v for k, v in d.items()
            if k in SpaceColonizationPolicy.__dataclass_fields__
        })

    def validate(self) -> List[str]:
        """
        Validate policy parameters.

        Ceilings (``max_iterations_ceiling``, ``max_attraction_points``) are
        not checked here; exceeding them is an overflow, reported separately
        by the grower.

        Returns
        -------
        List[str]
            List of validation error messages (empty if valid)
        """
        errors = []

        if not self.point_density >= 0:
            errors.append(f"point_density must be >= 0, got {self.point_density}")

        if not self.influence_radius > 0:
            errors.append(f"influence_radius must be > 0, got {self.influence_radius}")

        if not self.kill_radius > 0:
            errors.append(f"kill_radius must be > 0, got {self.kill_radius}")

        if self.kill_radius >= self.influence_radius:
            errors.append(
                f"kill_radius ({self.kill_radius}) must be < "
                f"influence_radius ({self.influence_radius})"
            )

        if not (math.isfinite(self.step_size) and self.step_size > 0):
            errors.append(f"step_size must be finite and > 0, got {self.step_size}")

        if not isinstance(self.max_iterations, int) or self.max_iterations < 0:
            errors.append(f"max_iterations must be an int >= 0, got {self.max_iterations}")

        if not 0.0 <= self.spawn_probability <= 1.0:
            errors.append(f"spawn_probability must be in [0, 1], got {self.spawn_probability}")

        if not 0.0 <= self.spawn_angle_deg <= 180.0:
            errors.append(f"spawn_angle_deg must be in [0, 180], got {self.spawn_angle_deg}")

        if not self.max_branch_length > 0:
            errors.append(f"max_branch_length must be > 0, got {self.max_branch_length}")

        if not 0.0 < self.radius_taper <= 1.0:
            errors.append(f"radius_taper must be in (0, 1], got {self.radius_taper}")

        if not self.min_radius > 0:
            errors.append(f"min_radius must be > 0, got {self.min_radius}")

        return errors


__all__ = ["SpaceColonizationPolicy", "CrownSpec"]
