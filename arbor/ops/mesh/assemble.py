"""
Mesh assembly.

Concatenates tube, junction and component pieces into one buffer set by
offsetting face indices, fills in missing normals, optionally smooths
normals and attaches foliage instances. Pieces are not welded; the result
is a plain concatenation.

Assembly is all-or-nothing: if the merged buffers fail validation an
ArborError is raised and nothing is returned.
"""

from typing import List, Optional, Sequence, Tuple
import logging

import numpy as np
from scipy import sparse

from arbor_policies import MeshAssemblyPolicy, OperationReport
from ...core.errors import ArborError, raise_if_invalid
from ...core.mesh import Mesh, InstanceTransform

logger = logging.getLogger(__name__)


def _ensure_normals(mesh: Mesh) -> np.ndarray:
    if mesh.normals.shape[0] == mesh.vertex_count:
        return mesh.normals
    # trimesh derives them from face winding
    return np.asarray(mesh.to_trimesh().vertex_normals, dtype=np.float64)


def smooth_normals(mesh: Mesh, iterations: int = 3, factor: float = 0.5) -> np.ndarray:
    """
    Iteratively blend each vertex normal toward the mean of its neighbours.

    Parameters
    ----------
    mesh : Mesh
        Mesh with one normal per vertex
    iterations : int
        Smoothing passes
    factor : float
        Blend weight toward the neighbour mean per pass (0 keeps normals)

    Returns
    -------
    np.ndarray
        Smoothed unit normals (N, 3)
    """
    normals = _ensure_normals(mesh).copy()
    if mesh.is_empty or iterations <= 0 or factor <= 0:
        return normals

    edges = mesh.to_trimesh().edges_unique
    n = mesh.vertex_count
    rows = np.concatenate([edges[:, 0], edges[:, 1]])
    cols = np.concatenate([edges[:, 1], edges[:, 0]])
    adjacency = sparse.coo_matrix((np.ones(len(rows)), (rows, cols)), shape=(n, n)).tocsr()
    degree = np.asarray(adjacency.sum(axis=1)).reshape(-1)
    has_neighbours = degree > 0

    for _ in range(iterations):
        mean = adjacency @ normals
        mean[has_neighbours] /= degree[has_neighbours, None]
        blended = normals + factor * (mean - normals)
        lengths = np.linalg.norm(blended, axis=1, keepdims=True)
        ok = (lengths[:, 0] > 1e-12) & has_neighbours
        normals[ok] = blended[ok] / lengths[ok]

    return normals


def assemble_meshes(
    pieces: Sequence[Mesh],
    instances: Optional[List[InstanceTransform]] = None,
    policy: Optional[MeshAssemblyPolicy] = None,
) -> Tuple[Mesh, OperationReport]:
    """
    Merge mesh pieces into one Mesh.

    Parameters
    ----------
    pieces : sequence of Mesh
        Pieces to merge; empty pieces are dropped
    instances : List[InstanceTransform], optional
        Foliage instances attached to the result
    policy : MeshAssemblyPolicy, optional
        Normal smoothing settings

    Returns
    -------
    mesh : Mesh
        Merged mesh
    report : OperationReport
        Report with piece, vertex and face counts

    Raises
    ------
    ArborError
        If the merged buffers are inconsistent
    """
    policy = policy or MeshAssemblyPolicy()
    raise_if_invalid(policy, "mesh assembly policy")
    report = OperationReport(
        operation="assemble_meshes",
        requested_policy=policy.to_dict(),
        effective_policy=policy.to_dict(),
    )

    kept = [p for p in pieces if not p.is_empty]
    dropped = len(pieces) - len(kept)

    vertices, normals, faces = [], [], []
    offset = 0
    for piece in kept:
        piece_normals = _ensure_normals(piece)
        if policy.smooth_normals:
            piece_normals = smooth_normals(
                Mesh(piece.vertices, piece_normals, piece.faces),
                policy.smoothing_iterations,
                policy.smoothing_factor,
            )
        vertices.append(piece.vertices)
        normals.append(piece_normals)
        faces.append(piece.faces.astype(np.int64) + offset)
        offset += piece.vertex_count

    if kept:
        merged = Mesh(
            vertices=np.vstack(vertices),
            normals=np.vstack(normals),
            faces=np.vstack(faces),
            instances=list(instances or []),
        )
    else:
        merged = Mesh.empty()
        merged.instances = list(instances or [])

    errors = merged.validate()
    if errors:
        raise ArborError("assembled mesh failed validation: " + "; ".join(errors))

    report.metrics.update({
        "piece_count": len(kept),
        "dropped_empty_pieces": dropped,
        "vertex_count": merged.vertex_count,
        "face_count": merged.face_count,
        "instance_count": len(merged.instances),
    })
    logger.info(
        f"Assembled {len(kept)} pieces: {merged.vertex_count} vertices, "
        f"{merged.face_count} faces, {len(merged.instances)} instances"
    )
    return merged, report


__all__ = ["assemble_meshes", "smooth_normals"]
