"""
L-system Policy for arbor.

This module contains the LSystemPolicy dataclass that controls grammar
rewriting and turtle interpretation of the skeleton generator.

UNIT CONVENTIONS
----------------
Lengths and radii are in scene units (the presets use metres).
Angles are in DEGREES in the policy and converted to radians internally.
"""

from dataclasses import dataclass, field, asdict
from typing import Dict, Any, List, Tuple
import math

from .base import coerce_vec3, is_finite_vec3


DEFAULT_RULES = {"F": "FF+[+F-F-F]-[-F+F+F]"}


@dataclass
class LSystemPolicy:
    """
    Policy for the L-system skeleton generator.

    JSON Schema:
    {
        "axiom": str,
        "rules": {symbol: replacement, ...},
        "iterations": int,
        "angle_deg": float,
        "segment_length": float,
        "length_decay": float,
        "initial_radius": float,
        "radius_taper": float,
        "branch_radius_ratio": float,
        "min_radius": float,
        "tropism": [x, y, z],
        "tropism_strength": float,
        "jitter": float,
        "max_string_length": int
    }
    """
    axiom: str = "F"
    rules: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_RULES))
    iterations: int = 4
    angle_deg: float = 30.0
    segment_length: float = 1.0
    length_decay: float = 0.7  # applied on every '['
    initial_radius: float = 0.3
    radius_taper: float = 0.95  # applied after every emitted 'F'
    branch_radius_ratio: float = 0.7  # applied on every '['
    min_radius: float = 0.01
    tropism: Tuple[float, float, float] = (0.0, 1.0, 0.0)
    tropism_strength: float = 0.1
    jitter: float = 0.1
    max_string_length: int = 1_000_000

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        d = asdict(self)
        d["tropism"] = list(self.tropism)
        return d

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "LSystemPolicy":
        """Create from dictionary."""
        kwargs = {k: v for k, v in d.items() if k in LSystemPolicy.__dataclass_fields__}
        if "tropism" in kwargs:
            kwargs["tropism"] = coerce_vec3(kwargs["tropism"], (0.0, 1.0, 0.0))
        if "rules" in kwargs:
            kwargs["rules"] = dict(kwargs["rules"])
        return LSystemPolicy(**kwargs)

    @property
    def angle_rad(self) -> float:
        return math.radians(self.angle_deg)

    def validate(self) -> List[str]:
        """
        Validate policy parameters.

        Returns
        -------
        List[str]
            List of validation error messages (empty if valid)
        """
        errors = []

        if not isinstance(self.axiom, str) or not self.axiom:
            errors.append("axiom must be a non-empty string")

        if not isinstance(self.rules, dict):
            errors.append(f"rules must be a mapping, got {type(self.rules).__name__}")
        else:
            for symbol, replacement in self.rules.items():
                if not isinstance(symbol, str) or len(symbol) != 1:
                    errors.append(f"rule symbol must be a single character, got {symbol!r}")
                if not isinstance(replacement, str):
                    errors.append(f"rule replacement for {symbol!r} must be a string")

        if not isinstance(self.iterations, int) or self.iterations < 0:
            errors.append(f"iterations must be an int >= 0, got {self.iterations}")

        if not math.isfinite(self.angle_deg):
            errors.append(f"angle_deg must be finite, got {self.angle_deg}")

        if not self.segment_length > 0:
            errors.append(f"segment_length must be > 0, got {self.segment_length}")

        if not 0.0 < self.length_decay <= 1.0:
            errors.append(f"length_decay must be in (0, 1], got {self.length_decay}")

        if not self.initial_radius > 0:
            errors.append(f"initial_radius must be > 0, got {self.initial_radius}")

        if not 0.0 < self.radius_taper <= 1.0:
            errors.append(f"radius_taper must be in (0, 1], got {self.radius_taper}")

        if not 0.0 < self.branch_radius_ratio <= 1.0:
            errors.append(
                f"branch_radius_ratio must be in (0, 1], got {self.branch_radius_ratio}"
            )

        if not 0.0 < self.min_radius <= self.initial_radius:
            errors.append(
                f"min_radius must be in (0, initial_radius], got {self.min_radius}"
            )

        if not is_finite_vec3(self.tropism):
            errors.append(f"tropism must be a finite 3-vector, got {self.tropism}")

        if not self.tropism_strength >= 0:
            errors.append(f"tropism_strength must be >= 0, got {self.tropism_strength}")

        if not self.jitter >= 0:
            errors.append(f"jitter must be >= 0, got {self.jitter}")

        if self.max_string_length < 1:
            errors.append(f"max_string_length must be >= 1, got {self.max_string_length}")

        return errors


__all__ = ["LSystemPolicy", "DEFAULT_RULES"]
