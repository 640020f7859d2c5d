"""
Scalar-field volumes and isosurface extraction.

A ScalarFieldVolume samples a density field on a regular grid of
``resolution`` points per axis spanning an axis-aligned box. Sphere and
capsule primitives add a smooth falloff ``strength * 2 * (1 - d/r)^2``
inside their radius; contributions accumulate and are only reset by
``fill``. The isosurface is extracted with the canonical marching-cubes
case table from scikit-image, so the triangulation is connected.

Grid sample ``(i, j, k)`` sits at ``origin + (i, j, k) * spacing`` with
``origin = center - size / 2`` and ``spacing = size / (resolution - 1)``.

UNIT CONVENTIONS
----------------
Positions and sizes are in scene units. Memory budgets are in BYTES.
"""

from typing import Optional, Sequence, Tuple, Union
import logging
import math
import threading

import numpy as np
from skimage.measure import marching_cubes

from arbor_policies import ScalarFieldPolicy
from ..core.errors import InvalidParameterError, ResourceExhaustionError
from ..core.mesh import Mesh
from ..utils.geometry import points_to_segment_distance

logger = logging.getLogger(__name__)

SAMPLE_DTYPE = np.float32


def required_bytes(resolution: int) -> int:
    """Bytes needed for a cubic grid of ``resolution`` samples per axis."""
    return int(resolution) ** 3 * np.dtype(SAMPLE_DTYPE).itemsize


def max_resolution_for_budget(budget_bytes: int) -> int:
    """Largest resolution whose grid fits ``budget_bytes``."""
    n = int(math.floor((budget_bytes / np.dtype(SAMPLE_DTYPE).itemsize) ** (1.0 / 3.0)))
    while required_bytes(n + 1) <= budget_bytes:
        n += 1
    while n > 0 and required_bytes(n) > budget_bytes:
        n -= 1
    return n


class ScalarFieldVolume:
    """
    Dense density grid over a box.

    Parameters
    ----------
    resolution : int
        Samples per axis, >= 2
    center : sequence of float
        Box center
    size : float or sequence of float
        Box edge length(s), all > 0
    memory_budget_bytes : int, optional
        Allocation ceiling; defaults to ``ScalarFieldPolicy().memory_budget_bytes``

    Raises
    ------
    InvalidParameterError
        If resolution < 2, or center/size are non-finite or size <= 0
    ResourceExhaustionError
        If the grid would exceed the memory budget (checked before allocating)
    """

    def __init__(
        self,
        resolution: int,
        center: Sequence[float] = (0.0, 0.0, 0.0),
        size: Union[float, Sequence[float]] = 1.0,
        memory_budget_bytes: Optional[int] = None,
    ):
        if isinstance(resolution, bool) or not isinstance(resolution, (int, np.integer)):
            raise InvalidParameterError(f"resolution must be an int, got {resolution!r}")
        if resolution < 2:
            raise InvalidParameterError(f"resolution must be >= 2, got {resolution}")

        center = np.asarray(center, dtype=float).reshape(3)
        size = np.broadcast_to(np.asarray(size, dtype=float), (3,)).copy()
        if not np.all(np.isfinite(center)):
            raise InvalidParameterError(f"center must be finite, got {center.tolist()}")
        if not (np.all(np.isfinite(size)) and np.all(size > 0)):
            raise InvalidParameterError(f"size components must be > 0, got {size.tolist()}")

        if memory_budget_bytes is None:
            memory_budget_bytes = ScalarFieldPolicy().memory_budget_bytes
        requested = required_bytes(resolution)
        if requested > memory_budget_bytes:
            raise ResourceExhaustionError(
                requested_bytes=requested,
                budget_bytes=int(memory_budget_bytes),
                grid_shape=(resolution, resolution, resolution),
                suggested_resolution=max_resolution_for_budget(memory_budget_bytes),
            )

        self.resolution = int(resolution)
        self.center = center
        self.size = size
        self.origin = center - size / 2.0
        self.spacing = size / (self.resolution - 1)
        self.data = np.zeros((self.resolution,) * 3, dtype=SAMPLE_DTYPE)
        self._lock = threading.Lock()

    @classmethod
    def from_policy(
        cls,
        policy: ScalarFieldPolicy,
        center: Sequence[float],
        size: Union[float, Sequence[float]],
        resolution: Optional[int] = None,
    ) -> "ScalarFieldVolume":
        return cls(
            resolution if resolution is not None else policy.default_resolution,
            center=center,
            size=size,
            memory_budget_bytes=policy.memory_budget_bytes,
        )

    def fill(self, value: float) -> None:
        """Set every sample to ``value``."""
        self.data.fill(value)

    def add_sphere(self, center: Sequence[float], radius: float, strength: float = 1.0) -> bool:
        """
        Add a spherical metaball contribution.

        Returns
        -------
        bool
            False if the primitive was degenerate and skipped
        """
        center = np.asarray(center, dtype=float).reshape(3)
        if not self._usable(center, radius, strength):
            return False

        window = self._window(center - radius, center + radius)
        if window is None:
            return True
        slices, grid = window
        dist = np.linalg.norm(grid - center, axis=-1)
        self._accumulate(slices, dist, radius, strength)
        return True

    def add_cylinder(
        self,
        start: Sequence[float],
        end: Sequence[float],
        radius: float,
        strength: float = 1.0,
    ) -> bool:
        """
        Add a capsule contribution around the segment ``start``-``end``.

        A zero-length segment contributes like a sphere.

        Returns
        -------
        bool
            False if the primitive was degenerate and skipped
        """
        start = np.asarray(start, dtype=float).reshape(3)
        end = np.asarray(end, dtype=float).reshape(3)
        if not np.all(np.isfinite(end)):
            logger.warning(f"Skipping cylinder with non-finite end {end.tolist()}")
            return False
        if not self._usable(start, radius, strength):
            return False

        window = self._window(np.minimum(start, end) - radius, np.maximum(start, end) + radius)
        if window is None:
            return True
        slices, grid = window
        dist = points_to_segment_distance(grid, start, end)
        self._accumulate(slices, dist, radius, strength)
        return True

    def extract_isosurface(self, threshold: float) -> Mesh:
        """
        Extract the ``threshold`` isosurface as a triangle mesh.

        Vertices are in world coordinates; normals point down the field
        gradient (out of the dense region) and faces wind consistently with
        them. If the field never crosses ``threshold`` an empty mesh is
        returned.

        Parameters
        ----------
        threshold : float
            Iso level

        Returns
        -------
        Mesh
            Extracted surface
        """
        if not math.isfinite(threshold):
            raise InvalidParameterError(f"threshold must be finite, got {threshold}")

        with self._lock:
            lo = float(self.data.min())
            hi = float(self.data.max())
            if not lo < threshold < hi:
                logger.debug(f"Isosurface {threshold} outside field range [{lo}, {hi}]")
                return Mesh.empty()

            verts, faces, normals, _ = marching_cubes(
                self.data,
                level=threshold,
                spacing=tuple(self.spacing),
                gradient_direction="descent",
                allow_degenerate=False,
            )

        normals = _unit_normals(normals)
        faces = _orient_faces(verts, faces, normals)
        return Mesh(vertices=verts + self.origin, normals=normals, faces=faces)

    def _usable(self, center: np.ndarray, radius: float, strength: float) -> bool:
        if not (np.all(np.isfinite(center)) and math.isfinite(radius) and math.isfinite(strength)):
            logger.warning(f"Skipping non-finite primitive at {center.tolist()}")
            return False
        if radius <= 0:
            logger.warning(f"Skipping primitive with radius {radius}")
            return False
        return True

    def _window(
        self,
        lower: np.ndarray,
        upper: np.ndarray,
    ) -> Optional[Tuple[Tuple[slice, slice, slice], np.ndarray]]:
        """Index slices and sample coordinates of the grid inside [lower, upper]."""
        lo = np.ceil((lower - self.origin) / self.spacing).astype(int)
        hi = np.floor((upper - self.origin) / self.spacing).astype(int)
        lo = np.clip(lo, 0, self.resolution - 1)
        hi = np.clip(hi, 0, self.resolution - 1)
        if np.any(hi < lo) or np.any(upper < self.origin) or np.any(lower > self.origin + self.size):
            return None

        axes = [
            self.origin[a] + np.arange(lo[a], hi[a] + 1) * self.spacing[a]
            for a in range(3)
        ]
        grid = np.stack(np.meshgrid(*axes, indexing="ij"), axis=-1)
        slices = tuple(slice(lo[a], hi[a] + 1) for a in range(3))
        return slices, grid

    def _accumulate(self, slices, dist: np.ndarray, radius: float, strength: float) -> None:
        falloff = np.clip(1.0 - dist / radius, 0.0, None)
        self.data[slices] += (strength * 2.0 * falloff * falloff).astype(SAMPLE_DTYPE)


def _unit_normals(normals: np.ndarray) -> np.ndarray:
    normals = np.asarray(normals, dtype=float)
    lengths = np.linalg.norm(normals, axis=1, keepdims=True)
    fallback = np.array([0.0, 1.0, 0.0])
    return np.where(lengths > 1e-12, normals / np.maximum(lengths, 1e-12), fallback)


def _orient_faces(verts: np.ndarray, faces: np.ndarray, normals: np.ndarray) -> np.ndarray:
    """Flip winding if face normals disagree with the vertex normals overall."""
    if len(faces) == 0:
        return faces
    v0, v1, v2 = verts[faces[:, 0]], verts[faces[:, 1]], verts[faces[:, 2]]
    face_normals = np.cross(v1 - v0, v2 - v0)
    agreement = np.einsum("ij,ij->", face_normals, normals[faces].sum(axis=1))
    if agreement < 0:
        return faces[:, [0, 2, 1]]
    return faces


__all__ = [
    "ScalarFieldVolume",
    "required_bytes",
    "max_resolution_for_budget",
]
