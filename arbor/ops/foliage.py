"""
Leaf placement as per-instance transforms.

One instance per skeleton tip: positioned at the tip end, with +Y rotated
onto the tip direction followed by a random twist about that direction,
and uniformly scaled by ``leaf_size * U(scale_min, scale_max)``.
"""

from typing import List, Optional, Tuple
import logging

import numpy as np

from arbor_policies import FoliagePolicy, OperationReport
from ..core.errors import raise_if_invalid
from ..core.mesh import InstanceTransform
from ..core.skeleton import Skeleton, FINE_GENERATION
from ..utils.geometry import quaternion_from_vectors, quaternion_about_axis, quaternion_multiply
from ..utils.rng import ensure_rng, RngLike

logger = logging.getLogger(__name__)

LEAF_UP = np.array([0.0, 1.0, 0.0])


def place_foliage(
    skeleton: Skeleton,
    policy: Optional[FoliagePolicy] = None,
    rng: RngLike = None,
) -> Tuple[List[InstanceTransform], OperationReport]:
    """
    Build leaf instance transforms at the tips of ``skeleton``.

    Parameters
    ----------
    skeleton : Skeleton
        Finished skeleton
    policy : FoliagePolicy, optional
        Leaf size, scale range and tip selection
    rng : Generator or int, optional
        Random source for twist and scale

    Returns
    -------
    instances : List[InstanceTransform]
    report : OperationReport
    """
    policy = policy or FoliagePolicy()
    raise_if_invalid(policy, "foliage policy")
    rng = ensure_rng(rng)
    report = OperationReport(
        operation="foliage",
        requested_policy=policy.to_dict(),
        effective_policy=policy.to_dict(),
    )

    tips = skeleton.tips()
    if policy.fine_tips_only:
        tips = [i for i in tips if skeleton.segments[i].generation == FINE_GENERATION]
    if len(tips) > policy.max_instances:
        report.add_warning(f"{len(tips)} tips capped to {policy.max_instances} leaves")
        tips = tips[:policy.max_instances]

    instances = []
    if policy.enabled:
        for i in tips:
            seg = skeleton.segments[i]
            direction = seg.direction
            twist = quaternion_about_axis(direction, rng.uniform(0.0, 2.0 * np.pi))
            orientation = quaternion_multiply(twist, quaternion_from_vectors(LEAF_UP, direction))
            scale = policy.leaf_size * rng.uniform(policy.scale_min, policy.scale_max)
            instances.append(InstanceTransform(
                position=tuple(float(v) for v in seg.end),
                orientation=tuple(float(v) for v in orientation),
                scale=float(scale),
            ))

    report.metrics["instance_count"] = len(instances)
    logger.debug(f"Placed {len(instances)} leaf instances")
    return instances, report


__all__ = ["place_foliage"]
