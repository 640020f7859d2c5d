"""
Space colonization growth of fine branches.

Attraction points are sampled uniformly inside an ellipsoidal crown. Every
sweep, each active tip first kills the points within the kill radius, then
steps toward the normalized sum of unit vectors to the remaining alive
points within the influence radius. A tip that sees no alive point is
deactivated for good; killed points never come back.

The pass stops as soon as a full sweep grows nothing, and unconditionally
after ``max_iterations`` sweeps.

UNIT CONVENTIONS
----------------
Lengths are in scene units; density is points per unit volume.
"""

from dataclasses import dataclass
from typing import List, Optional, Tuple
import logging
import math

import numpy as np
from scipy.spatial import cKDTree
from tqdm import tqdm

from arbor_policies import SpaceColonizationPolicy, CrownSpec, OperationReport
from ..core.errors import (
    DegenerateGeometryError,
    GenerationOverflowError,
    InvalidParameterError,
    raise_if_invalid,
)
from ..core.skeleton import Skeleton, FINE_GENERATION
from ..utils.geometry import normalize, rotate_about_axis, any_perpendicular
from ..utils.rng import ensure_rng, RngLike

logger = logging.getLogger(__name__)


@dataclass
class GrowthTip:
    """Growing end of a branch during one colonization run."""
    segment: int
    branch_length: float = 0.0
    active: bool = True


class SpaceColonizationGrower:
    """
    Grows fine branches from skeleton tips toward attraction points.

    Parameters
    ----------
    policy : SpaceColonizationPolicy, optional
        Growth parameters. Validated and ceiling-checked on construction.
    """

    def __init__(self, policy: Optional[SpaceColonizationPolicy] = None):
        self.policy = policy or SpaceColonizationPolicy()
        raise_if_invalid(self.policy, "space colonization policy")
        if self.policy.max_iterations > self.policy.max_iterations_ceiling:
            raise GenerationOverflowError(
                "growth iterations",
                self.policy.max_iterations,
                self.policy.max_iterations_ceiling,
            )

    def distribute_attraction_points(self, crown: CrownSpec, rng: RngLike = None) -> np.ndarray:
        """
        Sample ``floor(point_density * volume)`` points uniformly in the crown.

        Parameters
        ----------
        crown : CrownSpec
            Ellipsoid center, horizontal radius and full height
        rng : Generator or int, optional
            Random source

        Returns
        -------
        np.ndarray
            Points with shape (N, 3)

        Raises
        ------
        GenerationOverflowError
            If N exceeds ``max_attraction_points``
        """
        raise_if_invalid(crown, "crown")
        rng = ensure_rng(rng)

        n = int(math.floor(self.policy.point_density * crown.volume))
        if n > self.policy.max_attraction_points:
            raise GenerationOverflowError(
                "attraction points", n, self.policy.max_attraction_points,
                f"density {self.policy.point_density} over volume {crown.volume:.3g}",
            )
        if n == 0:
            return np.zeros((0, 3))

        # uniform in the unit ball, then stretched to the ellipsoid
        directions = rng.normal(size=(n, 3))
        norms = np.linalg.norm(directions, axis=1, keepdims=True)
        directions = directions / np.maximum(norms, 1e-12)
        radii = rng.random(n) ** (1.0 / 3.0)
        semi_axes = np.array([crown.radius, crown.height / 2.0, crown.radius])
        points = directions * radii[:, None] * semi_axes + np.asarray(crown.center, dtype=float)

        logger.debug(f"Distributed {n} attraction points in crown volume {crown.volume:.3g}")
        return points

    def grow_fine_branches(
        self,
        skeleton: Skeleton,
        points: np.ndarray,
        rng: RngLike = None,
        disable_progress: bool = False,
    ) -> Tuple[Skeleton, OperationReport]:
        """
        Grow a copy of ``skeleton`` toward ``points``.

        Parameters
        ----------
        skeleton : Skeleton
            Base skeleton; left untouched
        points : np.ndarray
            Attraction points (N, 3)
        rng : Generator or int, optional
            Random source for sibling spawning
        disable_progress : bool
            Hide the tqdm progress bar

        Returns
        -------
        grown : Skeleton
            Copy of ``skeleton`` extended with "fine" segments
        report : OperationReport
            Report with iteration count, live point history and termination reason
        """
        policy = self.policy
        rng = ensure_rng(rng)
        report = OperationReport(
            operation="space_colonization",
            requested_policy=policy.to_dict(),
            effective_policy=policy.to_dict(),
        )

        points = np.asarray(points, dtype=float).reshape(-1, 3)
        if not np.all(np.isfinite(points)):
            raise InvalidParameterError("attraction points must be finite")
        if len(points) > policy.max_attraction_points:
            raise GenerationOverflowError(
                "attraction points", len(points), policy.max_attraction_points,
            )

        grown = skeleton.copy()
        alive = np.ones(len(points), dtype=bool)
        alive_history = [int(alive.sum())]
        tips = [GrowthTip(segment=i) for i in grown.tips()]
        segments_added = 0
        tips_spawned = 0
        iterations = 0
        termination = "max_iterations"

        if len(points) == 0 or not tips or not policy.enabled:
            termination = "nothing_to_grow"
            report.metrics.update(_growth_metrics(
                0, alive_history, 0, 0, termination, len(points),
            ))
            return grown, report

        tree = cKDTree(points)
        spawn_angle = math.radians(policy.spawn_angle_deg)

        pbar = tqdm(total=policy.max_iterations, desc="Space colonization", unit="sweep",
                    disable=disable_progress)
        try:
            for _ in range(policy.max_iterations):
                iterations += 1
                grew = False
                new_tips: List[GrowthTip] = []

                for tip in tips:
                    if not tip.active:
                        continue
                    seg = grown.segments[tip.segment]
                    position = seg.end

                    killed = tree.query_ball_point(position, policy.kill_radius)
                    if killed:
                        alive[killed] = False

                    nearby = [i for i in tree.query_ball_point(position, policy.influence_radius)
                              if alive[i]]
                    if not nearby:
                        tip.active = False
                        continue

                    direction = _attraction_direction(points[nearby] - position)
                    if direction is None:
                        tip.active = False
                        continue

                    index = self._extend(grown, tip.segment, direction, seg.branch_id, report)
                    if index is None:
                        tip.active = False
                        continue
                    tip.segment = index
                    tip.branch_length += policy.step_size
                    segments_added += 1
                    grew = True

                    if (tip.branch_length < policy.max_branch_length
                            and rng.random() < policy.spawn_probability):
                        axis = rotate_about_axis(
                            any_perpendicular(direction), direction, rng.uniform(0.0, 2.0 * math.pi)
                        )
                        sibling_dir = rotate_about_axis(direction, axis, spawn_angle)
                        sibling = self._extend(
                            grown, index, sibling_dir, grown.new_branch_id(), report
                        )
                        if sibling is not None:
                            new_tips.append(GrowthTip(segment=sibling, branch_length=policy.step_size))
                            segments_added += 1
                            tips_spawned += 1

                tips.extend(new_tips)
                alive_history.append(int(alive.sum()))
                pbar.update(1)
                pbar.set_postfix(alive=alive_history[-1], tips=sum(t.active for t in tips))

                if not grew:
                    termination = "converged"
                    break
        finally:
            pbar.close()

        report.metrics.update(_growth_metrics(
            iterations, alive_history, segments_added, tips_spawned, termination, len(points),
        ))
        logger.info(
            f"Space colonization: {segments_added} segments in {iterations} sweeps "
            f"({termination}), {alive_history[-1]}/{len(points)} points alive"
        )
        return grown, report

    def grow(
        self,
        skeleton: Skeleton,
        crown: CrownSpec,
        rng: RngLike = None,
        disable_progress: bool = False,
    ) -> Tuple[Skeleton, OperationReport]:
        """Distribute attraction points in ``crown`` and grow toward them."""
        rng = ensure_rng(rng)
        points = self.distribute_attraction_points(crown, rng)
        return self.grow_fine_branches(skeleton, points, rng, disable_progress=disable_progress)

    def _extend(
        self,
        skeleton: Skeleton,
        parent: int,
        direction: np.ndarray,
        branch_id: int,
        report: OperationReport,
    ) -> Optional[int]:
        policy = self.policy
        parent_seg = skeleton.segments[parent]
        start = parent_seg.end
        end = start + direction * policy.step_size
        radius = max(parent_seg.radius * policy.radius_taper,
                     min(policy.min_radius, parent_seg.radius))
        try:
            return skeleton.add_segment(start, end, radius, branch_id,
                                        parent=parent, generation=FINE_GENERATION)
        except DegenerateGeometryError as e:
            message = f"Skipped degenerate growth step from segment {parent}: {e}"
            logger.warning(message)
            report.add_warning(message)
            return None


def _attraction_direction(offsets: np.ndarray) -> Optional[np.ndarray]:
    """Normalized sum of unit vectors along ``offsets`` (None if it cancels)."""
    dists = np.linalg.norm(offsets, axis=1)
    mask = dists > 1e-12
    if not np.any(mask):
        return None
    return normalize((offsets[mask] / dists[mask, None]).sum(axis=0))


def _growth_metrics(iterations, alive_history, segments_added, tips_spawned, termination, n_points):
    return {
        "iterations": iterations,
        "initial_points": n_points,
        "remaining_points": alive_history[-1],
        "alive_history": list(alive_history),
        "segments_added": segments_added,
        "tips_spawned": tips_spawned,
        "termination": termination,
    }


def grow_space_colonization(
    skeleton: Skeleton,
    crown: CrownSpec,
    policy: Optional[SpaceColonizationPolicy] = None,
    seed: RngLike = None,
    disable_progress: bool = False,
) -> Tuple[Skeleton, OperationReport]:
    """
    Convenience wrapper around SpaceColonizationGrower.grow.

    Parameters
    ----------
    skeleton : Skeleton
        Base skeleton
    crown : CrownSpec
        Crown ellipsoid
    policy : SpaceColonizationPolicy, optional
        Growth parameters
    seed : int or Generator, optional
        Random source
    disable_progress : bool
        Hide the progress bar

    Returns
    -------
    grown : Skeleton
    report : OperationReport
    """
    grower = SpaceColonizationGrower(policy)
    return grower.grow(skeleton, crown, seed, disable_progress=disable_progress)


__all__ = [
    "SpaceColonizationGrower",
    "GrowthTip",
    "grow_space_colonization",
]
