"""
Skeleton data structures.

A Skeleton is an index-based arena of Segments. Parent and child links are
integer indices into ``Skeleton.segments``, so there are no mutually
referencing objects and no way to build a cycle through ``add_segment``.

The L-system generator creates a skeleton, the space colonization grower
extends a copy of it, and every meshing stage only reads it.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Any, Sequence
import numpy as np

from .errors import DegenerateGeometryError, InvalidParameterError


MIN_SEGMENT_LENGTH = 1e-9

SKELETON_GENERATION = "skeleton"
FINE_GENERATION = "fine"


@dataclass
class Segment:
    """
    Straight branch segment with a single radius.

    ``generation`` records which stage emitted it ("skeleton" for the
    L-system, "fine" for space colonization).
    """

    start: np.ndarray
    end: np.ndarray
    radius: float
    branch_id: int
    parent: Optional[int] = None
    children: List[int] = field(default_factory=list)
    generation: str = SKELETON_GENERATION

    @property
    def length(self) -> float:
        return float(np.linalg.norm(self.end - self.start))

    @property
    def direction(self) -> np.ndarray:
        """Unit direction from start to end."""
        vec = self.end - self.start
        length = np.linalg.norm(vec)
        if length < MIN_SEGMENT_LENGTH:
            return np.array([0.0, 1.0, 0.0])
        return vec / length

    def copy(self) -> "Segment":
        return Segment(
            start=self.start.copy(),
            end=self.end.copy(),
            radius=self.radius,
            branch_id=self.branch_id,
            parent=self.parent,
            children=list(self.children),
            generation=self.generation,
        )

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "start": self.start.tolist(),
            "end": self.end.tolist(),
            "radius": self.radius,
            "branch_id": self.branch_id,
            "parent": self.parent,
            "children": list(self.children),
            "generation": self.generation,
        }


def check_segment_geometry(start: Sequence[float], end: Sequence[float], radius: float) -> None:
    """
    Raise DegenerateGeometryError if a prospective segment is unusable.

    Unusable means a non-finite coordinate or radius, a non-positive radius,
    or a length below ``MIN_SEGMENT_LENGTH``.
    """
    start = np.asarray(start, dtype=float)
    end = np.asarray(end, dtype=float)
    if not (np.all(np.isfinite(start)) and np.all(np.isfinite(end))):
        raise DegenerateGeometryError(f"non-finite segment endpoints {start} -> {end}")
    if not np.isfinite(radius) or radius <= 0:
        raise DegenerateGeometryError(f"invalid segment radius {radius}")
    if np.linalg.norm(end - start) < MIN_SEGMENT_LENGTH:
        raise DegenerateGeometryError(f"zero-length segment at {start}")


class Skeleton:
    """
    Arena of segments plus a root index.

    The root is the first segment added without a parent. Segments are only
    ever appended; existing indices stay valid for the skeleton's lifetime.
    """

    def __init__(self, metadata: Optional[Dict[str, Any]] = None):
        self.segments: List[Segment] = []
        self.root: Optional[int] = None
        self.metadata = metadata or {}
        self._next_branch_id = 0

    def __len__(self) -> int:
        return len(self.segments)

    def __getitem__(self, index: int) -> Segment:
        return self.segments[index]

    def new_branch_id(self) -> int:
        """Allocate a branch id not used by any segment of this skeleton."""
        branch_id = self._next_branch_id
        self._next_branch_id += 1
        return branch_id

    def add_segment(
        self,
        start: Sequence[float],
        end: Sequence[float],
        radius: float,
        branch_id: int,
        parent: Optional[int] = None,
        generation: str = SKELETON_GENERATION,
    ) -> int:
        """
        Append a segment and link it to its parent.

        Parameters
        ----------
        start, end : array-like
            Segment endpoints
        radius : float
            Segment radius
        branch_id : int
            Owning branch
        parent : int, optional
            Index of the parent segment, or None for a root segment
        generation : str
            Emitting stage label

        Returns
        -------
        int
            Index of the new segment

        Raises
        ------
        DegenerateGeometryError
            If the segment is non-finite, zero-length or has radius <= 0
        InvalidParameterError
            If ``parent`` is not an existing index
        """
        check_segment_geometry(start, end, radius)
        if parent is not None and not 0 <= parent < len(self.segments):
            raise InvalidParameterError(
                f"parent index {parent} out of range for skeleton of {len(self.segments)}"
            )

        index = len(self.segments)
        self.segments.append(Segment(
            start=np.asarray(start, dtype=float).copy(),
            end=np.asarray(end, dtype=float).copy(),
            radius=float(radius),
            branch_id=int(branch_id),
            parent=parent,
            generation=generation,
        ))
        if parent is not None:
            self.segments[parent].children.append(index)
        elif self.root is None:
            self.root = index

        self._next_branch_id = max(self._next_branch_id, int(branch_id) + 1)
        return index

    def tips(self) -> List[int]:
        """Indices of segments without children."""
        return [i for i, seg in enumerate(self.segments) if not seg.children]

    def junctions(self) -> List[int]:
        """Indices of segments with more than one child."""
        return [i for i, seg in enumerate(self.segments) if len(seg.children) > 1]

    def branch_ids(self) -> List[int]:
        return sorted({seg.branch_id for seg in self.segments})

    def total_length(self) -> float:
        return float(sum(seg.length for seg in self.segments))

    def copy(self) -> "Skeleton":
        clone = Skeleton(metadata=dict(self.metadata))
        clone.segments = [seg.copy() for seg in self.segments]
        clone.root = self.root
        clone._next_branch_id = self._next_branch_id
        return clone

    def to_graph(self):
        """Return the skeleton as a networkx DiGraph (parent -> child edges)."""
        from ..utils.topology import skeleton_to_graph
        return skeleton_to_graph(self)

    def validate(self) -> List[str]:
        """
        Check structural invariants.

        Returns
        -------
        List[str]
            List of violations (empty if valid)
        """
        from ..utils.topology import is_forest

        errors = []
        n = len(self.segments)
        for i, seg in enumerate(self.segments):
            try:
                check_segment_geometry(seg.start, seg.end, seg.radius)
            except DegenerateGeometryError as e:
                errors.append(f"segment {i}: {e}")

            if seg.parent is not None:
                if not 0 <= seg.parent < n:
                    errors.append(f"segment {i}: parent {seg.parent} out of range")
                    continue
                parent = self.segments[seg.parent]
                if i not in parent.children:
                    errors.append(f"segment {i}: missing from children of {seg.parent}")
                if parent.branch_id == seg.branch_id and seg.radius > parent.radius + 1e-12:
                    errors.append(
                        f"segment {i}: radius {seg.radius} exceeds parent radius "
                        f"{parent.radius} within branch {seg.branch_id}"
                    )

            for c in seg.children:
                if not 0 <= c < n or self.segments[c].parent != i:
                    errors.append(f"segment {i}: inconsistent child link {c}")

        if n and not is_forest(self):
            errors.append("skeleton contains a cycle")

        return errors

    def to_dict(self) -> dict:
        return {
            "root": self.root,
            "segments": [seg.to_dict() for seg in self.segments],
            "metadata": self.metadata,
        }


__all__ = [
    "Segment",
    "Skeleton",
    "check_segment_geometry",
    "MIN_SEGMENT_LENGTH",
    "SKELETON_GENERATION",
    "FINE_GENERATION",
]
