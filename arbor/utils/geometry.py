"""
Canonical geometry utilities for arbor.

Vector helpers, rotations and distance queries shared by the turtle,
the grower and the meshing stages.

CONVENTIONS
-----------
Rotations follow the right-hand rule. Quaternions are (x, y, z, w).
"""

import numpy as np
from typing import Optional, Tuple


EPSILON = 1e-12


def normalize(v: np.ndarray) -> Optional[np.ndarray]:
    """
    Return ``v`` scaled to unit length, or None if it cannot be normalized.

    None is returned for zero-length and non-finite vectors so callers can
    treat the element as degenerate.
    """
    v = np.asarray(v, dtype=float)
    norm = np.linalg.norm(v)
    if not np.isfinite(norm) or norm < EPSILON:
        return None
    return v / norm


def rotate_about_axis(v: np.ndarray, axis: np.ndarray, angle: float) -> np.ndarray:
    """
    Rotate vector ``v`` about unit ``axis`` by ``angle`` radians (Rodrigues).

    Parameters
    ----------
    v : np.ndarray
        Vector to rotate (shape (3,))
    axis : np.ndarray
        Unit rotation axis (shape (3,))
    angle : float
        Rotation angle in radians

    Returns
    -------
    np.ndarray
        Rotated vector
    """
    cos_a = np.cos(angle)
    sin_a = np.sin(angle)
    return (
        v * cos_a
        + np.cross(axis, v) * sin_a
        + axis * np.dot(axis, v) * (1.0 - cos_a)
    )


def any_perpendicular(v: np.ndarray) -> np.ndarray:
    """Unit vector perpendicular to unit vector ``v``."""
    ref = np.array([0.0, 1.0, 0.0]) if abs(v[1]) < 0.9 else np.array([1.0, 0.0, 0.0])
    perp = np.cross(v, ref)
    return perp / np.linalg.norm(perp)


def points_to_segment_distance(
    points: np.ndarray,
    seg_start: np.ndarray,
    seg_end: np.ndarray,
) -> np.ndarray:
    """
    Vectorized distance from many points to one segment.

    Parameters
    ----------
    points : np.ndarray
        Query points (shape (..., 3))
    seg_start, seg_end : np.ndarray
        Segment endpoints (shape (3,))

    Returns
    -------
    np.ndarray
        Distances with shape ``points.shape[:-1]``. A zero-length segment
        degrades to point distance.
    """
    d = seg_end - seg_start
    denom = float(np.dot(d, d))
    rel = points - seg_start
    if denom < EPSILON:
        return np.linalg.norm(rel, axis=-1)
    t = np.clip((rel @ d) / denom, 0.0, 1.0)
    closest = seg_start + t[..., None] * d
    return np.linalg.norm(points - closest, axis=-1)


def quaternion_from_vectors(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    """
    Shortest-arc quaternion (x, y, z, w) rotating unit vector ``a`` onto ``b``.
    """
    dot = float(np.clip(np.dot(a, b), -1.0, 1.0))
    if dot < -1.0 + 1e-9:
        axis = any_perpendicular(a)
        return np.array([axis[0], axis[1], axis[2], 0.0])
    cross = np.cross(a, b)
    q = np.array([cross[0], cross[1], cross[2], 1.0 + dot])
    return q / np.linalg.norm(q)


def quaternion_about_axis(axis: np.ndarray, angle: float) -> np.ndarray:
    """Quaternion (x, y, z, w) for a rotation of ``angle`` about unit ``axis``."""
    s = np.sin(angle / 2.0)
    return np.array([axis[0] * s, axis[1] * s, axis[2] * s, np.cos(angle / 2.0)])


def quaternion_multiply(q1: np.ndarray, q2: np.ndarray) -> np.ndarray:
    """Hamilton product ``q1 * q2`` (apply ``q2`` first, then ``q1``)."""
    x1, y1, z1, w1 = q1
    x2, y2, z2, w2 = q2
    return np.array([
        w1 * x2 + x1 * w2 + y1 * z2 - z1 * y2,
        w1 * y2 - x1 * z2 + y1 * w2 + z1 * x2,
        w1 * z2 + x1 * y2 - y1 * x2 + z1 * w2,
        w1 * w2 - x1 * x2 - y1 * y2 - z1 * z2,
    ])


def ring_frame(
    tangent: np.ndarray,
    flip_threshold: float = 0.99,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Orthonormal (right, up) pair spanning the plane perpendicular to ``tangent``.

    The up reference is +Y unless the tangent is nearly parallel to it, in
    which case +X is used instead.
    """
    up = np.array([0.0, 1.0, 0.0])
    if abs(float(np.dot(tangent, up))) > flip_threshold:
        up = np.array([1.0, 0.0, 0.0])
    right = np.cross(tangent, up)
    right /= np.linalg.norm(right)
    up = np.cross(right, tangent)
    return right, up


__all__ = [
    "normalize",
    "rotate_about_axis",
    "any_perpendicular",
    "points_to_segment_distance",
    "quaternion_from_vectors",
    "quaternion_about_axis",
    "quaternion_multiply",
    "ring_frame",
]
