"""
Tessellation Policy for arbor.

Controls how the adaptive tessellation controller turns per-branch view
metrics into a discrete LOD tier.
"""

from dataclasses import dataclass, field, asdict
from typing import Dict, Any, List, Tuple
import math


DEFAULT_TIER_SEGMENTS = {
    "ultra": (16, 32),
    "high": (12, 24),
    "medium": (8, 16),
    "low": (4, 8),
}


@dataclass
class TessellationPolicy:
    """
    Policy for adaptive tessellation.

    Composite error is the weighted sum of the four clamped metrics. A tier
    is selected by strict comparison against the thresholds, highest first.

    JSON Schema:
    {
        "screen_weight": float,
        "curvature_weight": float,
        "distance_weight": float,
        "motion_weight": float,
        "ultra_threshold": float,
        "high_threshold": float,
        "medium_threshold": float,
        "tier_segments": {tier: [ring_segments, radial_segments], ...},
        "screen_space_threshold": float (pixels),
        "distance_threshold": float
    }
    """
    screen_weight: float = 0.4
    curvature_weight: float = 0.3
    distance_weight: float = 0.2
    motion_weight: float = 0.1

    ultra_threshold: float = 0.8
    high_threshold: float = 0.6
    medium_threshold: float = 0.4

    tier_segments: Dict[str, Tuple[int, int]] = field(
        default_factory=lambda: dict(DEFAULT_TIER_SEGMENTS)
    )

    screen_space_threshold: float = 2.0
    distance_threshold: float = 100.0

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["tier_segments"] = {k: list(v) for k, v in self.tier_segments.items()}
        return d

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "TessellationPolicy":
        kwargs = {k: v for k, v in d.items() if k in TessellationPolicy.__dataclass_fields__}
        if "tier_segments" in kwargs:
            kwargs["tier_segments"] = {
                k: (int(v[0]), int(v[1])) for k, v in kwargs["tier_segments"].items()
            }
        return TessellationPolicy(**kwargs)

    @property
    def weights(self) -> Tuple[float, float, float, float]:
        return (
            self.screen_weight,
            self.curvature_weight,
            self.distance_weight,
            self.motion_weight,
        )

    def validate(self) -> List[str]:
        errors = []

        for name, w in zip(("screen", "curvature", "distance", "motion"), self.weights):
            if not (math.isfinite(w) and w >= 0):
                errors.append(f"{name}_weight must be finite and >= 0, got {w}")

        if not (self.ultra_threshold > self.high_threshold > self.medium_threshold >= 0):
            errors.append(
                "thresholds must satisfy ultra > high > medium >= 0, got "
                f"{self.ultra_threshold}, {self.high_threshold}, {self.medium_threshold}"
            )

        missing = set(DEFAULT_TIER_SEGMENTS) - set(self.tier_segments)
        if missing:
            errors.append(f"tier_segments missing tiers: {sorted(missing)}")
        for tier, pair in self.tier_segments.items():
            ring, radial = pair
            if ring < 3 or radial < 2:
                errors.append(
                    f"tier {tier!r} needs ring_segments >= 3 and radial_segments >= 2, "
                    f"got {pair}"
                )

        if not self.screen_space_threshold > 0:
            errors.append(
                f"screen_space_threshold must be > 0, got {self.screen_space_threshold}"
            )
        if not self.distance_threshold > 0:
            errors.append(f"distance_threshold must be > 0, got {self.distance_threshold}")

        return errors


__all__ = ["TessellationPolicy", "DEFAULT_TIER_SEGMENTS"]
