"""
Adaptive tessellation control.

Each branch is scored with a composite geometric error

    error = w_s * screen + w_c * curvature + w_d * distance + w_m * motion

over four metrics clamped to [0, 1], and bucketed into a discrete LOD tier
by fixed thresholds. The controller remembers the last tier assigned to
each branch and flags a branch for regeneration only when its tier changes,
so unchanged branches are never rebuilt.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple
import logging
import math

import numpy as np

from arbor_policies import TessellationPolicy
from ..core.errors import InvalidParameterError, raise_if_invalid
from ..core.mesh import Mesh

logger = logging.getLogger(__name__)


class LODTier(str, Enum):
    """Discrete tessellation quality levels, finest first."""
    ULTRA = "ultra"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def smooth_normals(self) -> bool:
        return self in (LODTier.ULTRA, LODTier.HIGH)


@dataclass(frozen=True)
class BranchViewMetrics:
    """
    Per-branch view inputs, each nominally in [0, 1].

    screen_size : projected screen-space size factor
    curvature : average normal deviation between adjacent rings
    distance : closeness to the viewer (1 = near)
    motion : motion activity
    """
    screen_size: float = 0.0
    curvature: float = 0.0
    distance: float = 0.0
    motion: float = 0.0

    def clamped(self) -> Tuple[float, float, float, float]:
        values = (self.screen_size, self.curvature, self.distance, self.motion)
        for name, v in zip(("screen_size", "curvature", "distance", "motion"), values):
            if not math.isfinite(v):
                raise InvalidParameterError(f"{name} must be finite, got {v}")
        return tuple(min(1.0, max(0.0, float(v))) for v in values)


@dataclass
class TessellationDecision:
    """Outcome of one controller update for one branch."""
    branch_id: int
    error: float
    tier: LODTier
    previous_tier: Optional[LODTier]
    ring_segments: int
    radial_segments: int
    smooth_normals: bool
    needs_regeneration: bool


def composite_error(metrics: BranchViewMetrics, policy: TessellationPolicy) -> float:
    """Weighted sum of the clamped metrics."""
    return float(sum(w * v for w, v in zip(policy.weights, metrics.clamped())))


def tier_for_error(error: float, policy: TessellationPolicy) -> LODTier:
    """Bucket an error into a tier by strict threshold comparison."""
    if error > policy.ultra_threshold:
        return LODTier.ULTRA
    if error > policy.high_threshold:
        return LODTier.HIGH
    if error > policy.medium_threshold:
        return LODTier.MEDIUM
    return LODTier.LOW


def select_tier(metrics: BranchViewMetrics, policy: Optional[TessellationPolicy] = None) -> LODTier:
    """
    Pure tier selection from the four view metrics.

    Identical inputs always give the identical tier.
    """
    policy = policy or TessellationPolicy()
    return tier_for_error(composite_error(metrics, policy), policy)


def screen_space_error(pixel_size: float, threshold: Optional[float] = None) -> float:
    """Screen metric: ``min(1, pixel_size / threshold)``, threshold in pixels."""
    if threshold is None:
        threshold = TessellationPolicy.screen_space_threshold
    if threshold <= 0:
        raise InvalidParameterError(f"threshold must be > 0, got {threshold}")
    return min(1.0, max(0.0, pixel_size / threshold))


def distance_error(distance: float, threshold: Optional[float] = None) -> float:
    """Distance metric: 1 at the viewer, falling linearly to 0 at ``threshold``."""
    if threshold is None:
        threshold = TessellationPolicy.distance_threshold
    if threshold <= 0:
        raise InvalidParameterError(f"threshold must be > 0, got {threshold}")
    return max(0.0, 1.0 - distance / threshold)


def curvature_error(mesh: Mesh, ring_segments: int) -> float:
    """
    Average normal deviation ``1 - n_i . n_{i+R}`` between adjacent rings.

    ``mesh`` must be a swept tube with ``ring_segments`` vertices per ring.
    A single-ring or empty mesh has zero curvature.
    """
    normals = mesh.normals
    if ring_segments < 1 or len(normals) <= ring_segments:
        return 0.0
    dots = np.einsum("ij,ij->i", normals[:-ring_segments], normals[ring_segments:])
    return float(np.clip(np.mean(1.0 - dots), 0.0, 1.0))


class AdaptiveTessellationController:
    """
    Tracks the LOD tier of every branch.

    Parameters
    ----------
    policy : TessellationPolicy, optional
        Weights, thresholds and tier table
    """

    def __init__(self, policy: Optional[TessellationPolicy] = None):
        self.policy = policy or TessellationPolicy()
        raise_if_invalid(self.policy, "tessellation policy")
        self._tiers: Dict[int, LODTier] = {}

    def segments_for(self, tier: LODTier) -> Tuple[int, int]:
        """(ring_segments, radial_segments) for a tier."""
        ring, radial = self.policy.tier_segments[tier.value]
        return int(ring), int(radial)

    def current_tier(self, branch_id: int) -> Optional[LODTier]:
        return self._tiers.get(branch_id)

    def assign(self, branch_id: int, tier: LODTier) -> None:
        """Record a tier without scoring (e.g. the default tier of a fresh build)."""
        self._tiers[branch_id] = tier

    def forget(self, branch_id: int) -> None:
        self._tiers.pop(branch_id, None)

    def view_metrics(
        self,
        pixel_size: float,
        distance: float,
        curvature: float = 0.0,
        motion: float = 0.0,
    ) -> BranchViewMetrics:
        """
        Build metrics from raw view quantities.

        ``pixel_size`` and ``distance`` are normalized with the policy's
        ``screen_space_threshold`` and ``distance_threshold``.
        """
        return BranchViewMetrics(
            screen_size=screen_space_error(pixel_size, self.policy.screen_space_threshold),
            curvature=curvature,
            distance=distance_error(distance, self.policy.distance_threshold),
            motion=motion,
        )

    def update(self, branch_id: int, metrics: BranchViewMetrics) -> TessellationDecision:
        """
        Score one branch and record its tier.

        ``needs_regeneration`` is True when the tier differs from the one
        previously recorded for the branch, including the first assignment.
        """
        error = composite_error(metrics, self.policy)
        tier = tier_for_error(error, self.policy)
        previous = self._tiers.get(branch_id)
        self._tiers[branch_id] = tier

        ring, radial = self.segments_for(tier)
        changed = previous is not tier
        if changed and previous is not None:
            logger.debug(f"Branch {branch_id}: {previous.value} -> {tier.value} (error {error:.3f})")
        return TessellationDecision(
            branch_id=branch_id,
            error=error,
            tier=tier,
            previous_tier=previous,
            ring_segments=ring,
            radial_segments=radial,
            smooth_normals=tier.smooth_normals,
            needs_regeneration=changed,
        )

    def update_all(
        self,
        metrics: Iterable[Tuple[int, BranchViewMetrics]],
    ) -> List[TessellationDecision]:
        """
        Update many branches; decisions are ordered by error, highest first.
        """
        decisions = [self.update(branch_id, m) for branch_id, m in metrics]
        decisions.sort(key=lambda d: d.error, reverse=True)
        return decisions


__all__ = [
    "LODTier",
    "BranchViewMetrics",
    "TessellationDecision",
    "AdaptiveTessellationController",
    "composite_error",
    "tier_for_error",
    "select_tier",
    "screen_space_error",
    "distance_error",
    "curvature_error",
]
