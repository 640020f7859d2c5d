"""
Renderer-agnostic mesh buffers.

A Mesh is plain position / normal / index arrays plus an optional list of
per-instance transforms for foliage. The library never holds a reference to
a mesh after returning it.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple, TYPE_CHECKING
import numpy as np

if TYPE_CHECKING:
    import trimesh


@dataclass
class InstanceTransform:
    """
    Placement of one instanced object (a leaf).

    ``orientation`` is a unit quaternion in (x, y, z, w) order.
    """
    position: Tuple[float, float, float]
    orientation: Tuple[float, float, float, float]
    scale: float

    def to_matrix(self) -> np.ndarray:
        """4x4 homogeneous transform (rotate, scale uniformly, translate)."""
        from trimesh import transformations

        x, y, z, w = self.orientation
        matrix = transformations.quaternion_matrix([w, x, y, z])
        matrix[:3, :3] *= self.scale
        matrix[:3, 3] = self.position
        return matrix

    def to_dict(self) -> dict:
        return {
            "position": list(self.position),
            "orientation": list(self.orientation),
            "scale": self.scale,
        }


@dataclass
class Mesh:
    """Triangle mesh buffers with optional foliage instances."""

    vertices: np.ndarray
    normals: np.ndarray
    faces: np.ndarray
    instances: List[InstanceTransform] = field(default_factory=list)

    def __post_init__(self):
        self.vertices = np.asarray(self.vertices, dtype=np.float64).reshape(-1, 3)
        self.normals = np.asarray(self.normals, dtype=np.float64).reshape(-1, 3)
        self.faces = np.asarray(self.faces, dtype=np.uint32).reshape(-1, 3)

    @classmethod
    def empty(cls) -> "Mesh":
        return cls(
            vertices=np.zeros((0, 3)),
            normals=np.zeros((0, 3)),
            faces=np.zeros((0, 3), dtype=np.uint32),
        )

    @property
    def vertex_count(self) -> int:
        return int(self.vertices.shape[0])

    @property
    def face_count(self) -> int:
        return int(self.faces.shape[0])

    @property
    def is_empty(self) -> bool:
        return self.face_count == 0

    def validate(self) -> List[str]:
        """Return buffer consistency problems (empty if valid)."""
        errors = []
        if not np.all(np.isfinite(self.vertices)):
            errors.append("vertices contain non-finite values")
        if not np.all(np.isfinite(self.normals)):
            errors.append("normals contain non-finite values")
        if self.normals.shape[0] not in (0, self.vertex_count):
            errors.append(
                f"normal count {self.normals.shape[0]} != vertex count {self.vertex_count}"
            )
        if self.face_count and int(self.faces.max()) >= self.vertex_count:
            errors.append(
                f"face index {int(self.faces.max())} out of range for "
                f"{self.vertex_count} vertices"
            )
        return errors

    def to_trimesh(self, process: bool = False) -> "trimesh.Trimesh":
        """
        Convert to a trimesh.Trimesh for analysis.

        Parameters
        ----------
        process : bool
            Passed through to trimesh; False keeps vertex order intact
        """
        import trimesh

        kwargs = {}
        if self.normals.shape[0] == self.vertex_count and self.vertex_count:
            kwargs["vertex_normals"] = self.normals
        return trimesh.Trimesh(
            vertices=self.vertices,
            faces=self.faces.astype(np.int64),
            process=process,
            **kwargs,
        )

    def bounds(self) -> Optional[np.ndarray]:
        if self.vertex_count == 0:
            return None
        return np.array([self.vertices.min(axis=0), self.vertices.max(axis=0)])


__all__ = ["Mesh", "InstanceTransform"]
