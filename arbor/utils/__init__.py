"""
Utility functions for arbor.
"""

from .geometry import (
    normalize,
    rotate_about_axis,
    any_perpendicular,
    points_to_segment_distance,
    quaternion_from_vectors,
    quaternion_about_axis,
    quaternion_multiply,
    ring_frame,
)
from .topology import skeleton_to_graph, is_forest, branch_chains, skeleton_stats
from .rng import ensure_rng, RngLike

__all__ = [
    "normalize",
    "rotate_about_axis",
    "any_perpendicular",
    "points_to_segment_distance",
    "quaternion_from_vectors",
    "quaternion_about_axis",
    "quaternion_multiply",
    "ring_frame",
    "skeleton_to_graph",
    "is_forest",
    "branch_chains",
    "skeleton_stats",
    "ensure_rng",
    "RngLike",
]
