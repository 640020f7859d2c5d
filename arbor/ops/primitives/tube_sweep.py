"""
Tube sweep primitive for branch meshes.

Sweeps a circular cross-section along an ordered path of (position, radius)
samples. Each sample gets a ring of ``ring_segments`` vertices in the plane
perpendicular to the local tangent; consecutive rings are joined with two
triangles per quad. Tubes are open (no end caps) and the result is fully
determined by the path.

For N samples and R ring segments the mesh has exactly R*N vertices and
2*R*(N-1) triangles.

UNIT CONVENTIONS
----------------
Positions and radii are in scene units.
"""

from typing import List, Optional, Sequence, Tuple
import logging
import math

import numpy as np

from arbor_policies import TubeSweepPolicy
from ...core.errors import DegenerateGeometryError, InvalidParameterError
from ...core.mesh import Mesh
from ...core.skeleton import Skeleton
from ...utils.geometry import ring_frame

logger = logging.getLogger(__name__)


def densify_path(
    positions: np.ndarray,
    radii: np.ndarray,
    min_samples: int,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Insert evenly spaced samples so the path has at least ``min_samples``.

    Every interval is split into the same number of pieces; original samples
    are kept and new positions and radii are linear interpolations.

    Parameters
    ----------
    positions : np.ndarray
        Path samples (N, 3)
    radii : np.ndarray
        Radius per sample (N,)
    min_samples : int
        Minimum sample count of the result

    Returns
    -------
    positions, radii : np.ndarray
        Densified path
    """
    n = len(positions)
    if n < 2 or n >= min_samples:
        return positions, radii

    pieces = int(math.ceil((min_samples - 1) / (n - 1)))
    t = np.arange(pieces) / pieces
    new_pos = [positions[i] + t[:, None] * (positions[i + 1] - positions[i]) for i in range(n - 1)]
    new_rad = [radii[i] + t * (radii[i + 1] - radii[i]) for i in range(n - 1)]
    new_pos.append(positions[-1:])
    new_rad.append(radii[-1:])
    return np.vstack(new_pos), np.concatenate(new_rad)


def _tangents(positions: np.ndarray) -> np.ndarray:
    """Central-difference unit tangents, one-sided at the ends."""
    diffs = np.empty_like(positions)
    diffs[0] = positions[1] - positions[0]
    diffs[-1] = positions[-1] - positions[-2]
    if len(positions) > 2:
        diffs[1:-1] = positions[2:] - positions[:-2]

    lengths = np.linalg.norm(diffs, axis=1)
    # a hairpin cancels the central difference; use the forward step instead
    hairpins = np.nonzero(lengths < 1e-12)[0]
    if len(hairpins):
        diffs[hairpins] = positions[hairpins + 1] - positions[hairpins]
        lengths[hairpins] = np.linalg.norm(diffs[hairpins], axis=1)
    return diffs / lengths[:, None]


class TubeMeshSweeper:
    """
    Open tube builder.

    Parameters
    ----------
    policy : TubeSweepPolicy, optional
        Radius floor and frame parameters
    """

    def __init__(self, policy: Optional[TubeSweepPolicy] = None):
        self.policy = policy or TubeSweepPolicy()

    def sweep(
        self,
        positions: Sequence[Sequence[float]],
        radii: Sequence[float],
        ring_segments: int,
    ) -> Mesh:
        """
        Sweep rings along a path.

        Parameters
        ----------
        positions : array-like
            Ordered path samples (N, 3), N >= 2
        radii : array-like
            Radius per sample (N,)
        ring_segments : int
            Vertices per ring, >= 3

        Returns
        -------
        Mesh
            Open tube with radial normals

        Raises
        ------
        InvalidParameterError
            If N < 2, ring_segments < 3, or shapes disagree
        DegenerateGeometryError
            If the path is non-finite, has a zero-length step, or a
            non-positive base radius
        """
        positions = np.asarray(positions, dtype=float)
        radii = np.asarray(radii, dtype=float).reshape(-1)
        if positions.ndim != 2 or positions.shape[1] != 3 or len(positions) < 2:
            raise InvalidParameterError(
                f"path needs at least 2 samples of shape (N, 3), got {positions.shape}"
            )
        if len(radii) != len(positions):
            raise InvalidParameterError(
                f"got {len(radii)} radii for {len(positions)} path samples"
            )
        if ring_segments < 3:
            raise InvalidParameterError(f"ring_segments must be >= 3, got {ring_segments}")

        if not (np.all(np.isfinite(positions)) and np.all(np.isfinite(radii))):
            raise DegenerateGeometryError("path contains non-finite samples")
        steps = np.linalg.norm(np.diff(positions, axis=0), axis=1)
        if np.any(steps < 1e-12):
            raise DegenerateGeometryError("path contains a zero-length step")
        if radii[0] <= 0:
            raise DegenerateGeometryError(f"base radius must be > 0, got {radii[0]}")

        radii = np.maximum(radii, self.policy.radius_floor_fraction * radii[0])
        tangents = _tangents(positions)

        angles = 2.0 * np.pi * np.arange(ring_segments) / ring_segments
        cos_a = np.cos(angles)[:, None]
        sin_a = np.sin(angles)[:, None]

        n = len(positions)
        vertices = np.empty((n * ring_segments, 3))
        normals = np.empty((n * ring_segments, 3))
        for i in range(n):
            right, up = ring_frame(tangents[i], self.policy.up_flip_threshold)
            ring_normals = cos_a * right + sin_a * up
            ring = slice(i * ring_segments, (i + 1) * ring_segments)
            normals[ring] = ring_normals
            vertices[ring] = positions[i] + radii[i] * ring_normals

        faces = _ring_faces(n, ring_segments)
        return Mesh(vertices=vertices, normals=normals, faces=faces)

    def sweep_branch(
        self,
        skeleton: Skeleton,
        chain: List[int],
        ring_segments: int,
        min_samples: int = 2,
    ) -> Mesh:
        """
        Sweep one branch chain of a skeleton.

        The path runs from the first segment's start through every segment
        end. Each sample takes the radius of the segment leaving it, so the
        tube tapers with the skeleton. With ``policy.densify`` the path is
        subdivided to at least ``min_samples`` samples.
        """
        positions, radii = branch_path(skeleton, chain)
        if self.policy.densify:
            positions, radii = densify_path(positions, radii, min_samples)
        return self.sweep(positions, radii, ring_segments)


def branch_path(skeleton: Skeleton, chain: List[int]) -> Tuple[np.ndarray, np.ndarray]:
    """(positions, radii) samples along a chain of segment indices."""
    segments = [skeleton.segments[i] for i in chain]
    positions = np.vstack([segments[0].start] + [s.end for s in segments])
    radii = np.array([s.radius for s in segments] + [segments[-1].radius])
    return positions, radii


def _ring_faces(n_rings: int, ring_segments: int) -> np.ndarray:
    i = np.arange(n_rings - 1)[:, None]
    j = np.arange(ring_segments)[None, :]
    v0 = i * ring_segments + j
    v1 = i * ring_segments + (j + 1) % ring_segments
    v2 = (i + 1) * ring_segments + j
    v3 = (i + 1) * ring_segments + (j + 1) % ring_segments
    first = np.stack([v0, v2, v1], axis=-1).reshape(-1, 3)
    second = np.stack([v1, v2, v3], axis=-1).reshape(-1, 3)
    # interleave so each quad's two triangles are adjacent
    faces = np.empty((len(first) * 2, 3), dtype=np.uint32)
    faces[0::2] = first
    faces[1::2] = second
    return faces


def sweep_tube(
    positions: Sequence[Sequence[float]],
    radii: Sequence[float],
    ring_segments: int,
    policy: Optional[TubeSweepPolicy] = None,
) -> Mesh:
    """Functional form of ``TubeMeshSweeper(policy).sweep``."""
    return TubeMeshSweeper(policy).sweep(positions, radii, ring_segments)


__all__ = [
    "TubeMeshSweeper",
    "sweep_tube",
    "densify_path",
    "branch_path",
]
