"""
Unit tests for the tube sweep primitive.

Tests verify:
- vertex and triangle counts are R*N and 2*R*(N-1)
- rings sit at the sample radius, perpendicular to the tangent
- faces wind outward, consistent with the radial normals
- invalid and degenerate paths are rejected
- vertical paths use the fallback frame without NaN
- densified branch paths keep their end points and taper
"""

import numpy as np
import pytest

from arbor.core.errors import DegenerateGeometryError, InvalidParameterError
from arbor.core.skeleton import Skeleton
from arbor.ops.primitives.tube_sweep import (
    TubeMeshSweeper,
    branch_path,
    densify_path,
    sweep_tube,
)
from arbor_policies import TubeSweepPolicy


STRAIGHT_X = np.array([[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [2.0, 0.0, 0.0]])


class TestSweepCounts:
    """Tests for mesh sizes."""

    @pytest.mark.parametrize("ring_segments", [3, 8, 16])
    def test_counts(self, ring_segments):
        mesh = sweep_tube(STRAIGHT_X, [0.5, 0.5, 0.5], ring_segments)
        assert mesh.vertex_count == ring_segments * 3
        assert mesh.face_count == 2 * ring_segments * 2
        assert mesh.normals.shape == mesh.vertices.shape

    def test_face_indices_in_range(self):
        mesh = sweep_tube(STRAIGHT_X, [0.5, 0.4, 0.3], 8)
        assert mesh.validate() == []
        assert int(mesh.faces.max()) == mesh.vertex_count - 1


class TestSweepGeometry:
    """Tests for ring placement and orientation."""

    def test_ring_radius_and_plane(self):
        mesh = sweep_tube(STRAIGHT_X, [0.5, 0.4, 0.3], 8)
        rings = mesh.vertices.reshape(3, 8, 3)
        for i, r in enumerate([0.5, 0.4, 0.3]):
            offsets = rings[i] - STRAIGHT_X[i]
            np.testing.assert_allclose(np.linalg.norm(offsets, axis=1), r)
            np.testing.assert_allclose(offsets[:, 0], 0.0, atol=1e-12)

    def test_normals_are_unit_radial(self):
        mesh = sweep_tube(STRAIGHT_X, [0.5, 0.5, 0.5], 12)
        np.testing.assert_allclose(np.linalg.norm(mesh.normals, axis=1), 1.0)
        radial = mesh.vertices - np.repeat(STRAIGHT_X, 12, axis=0)
        np.testing.assert_allclose(radial, 0.5 * mesh.normals, atol=1e-12)

    def test_faces_wind_outward(self):
        mesh = sweep_tube(STRAIGHT_X, [0.5, 0.5, 0.5], 8)
        v = mesh.vertices
        f = mesh.faces.astype(int)
        face_normals = np.cross(v[f[:, 1]] - v[f[:, 0]], v[f[:, 2]] - v[f[:, 0]])
        vertex_normals = mesh.normals[f].sum(axis=1)
        assert np.all(np.einsum("ij,ij->i", face_normals, vertex_normals) > 0)

    def test_vertical_path_uses_fallback_frame(self):
        """A tangent along +Y swaps the up reference to +X."""
        path = [[0, 0, 0], [0, 1, 0], [0, 2, 0]]
        mesh = sweep_tube(path, [0.2, 0.2, 0.2], 6)
        assert np.all(np.isfinite(mesh.vertices))
        assert np.all(np.isfinite(mesh.normals))
        np.testing.assert_allclose(mesh.normals[:, 1], 0.0, atol=1e-12)

    def test_radius_floor(self):
        policy = TubeSweepPolicy(radius_floor_fraction=0.1)
        mesh = TubeMeshSweeper(policy).sweep(STRAIGHT_X, [1.0, 0.0, 0.0], 4)
        last_ring = mesh.vertices[8:] - STRAIGHT_X[2]
        np.testing.assert_allclose(np.linalg.norm(last_ring, axis=1), 0.1)

    def test_same_path_same_mesh(self):
        a = sweep_tube(STRAIGHT_X, [0.5, 0.4, 0.3], 8)
        b = sweep_tube(STRAIGHT_X, [0.5, 0.4, 0.3], 8)
        np.testing.assert_array_equal(a.vertices, b.vertices)
        np.testing.assert_array_equal(a.faces, b.faces)

    def test_hairpin_path_stays_finite(self):
        path = [[0, 0, 0], [1, 0, 0], [0, 0, 0]]
        mesh = sweep_tube(path, [0.2, 0.2, 0.2], 6)
        assert np.all(np.isfinite(mesh.vertices))


class TestSweepErrors:
    """Tests for rejected inputs."""

    def test_single_sample(self):
        with pytest.raises(InvalidParameterError):
            sweep_tube([[0, 0, 0]], [0.1], 8)

    def test_radius_count_mismatch(self):
        with pytest.raises(InvalidParameterError):
            sweep_tube(STRAIGHT_X, [0.1, 0.1], 8)

    def test_too_few_ring_segments(self):
        with pytest.raises(InvalidParameterError):
            sweep_tube(STRAIGHT_X, [0.1, 0.1, 0.1], 2)

    def test_nan_sample(self):
        with pytest.raises(DegenerateGeometryError):
            sweep_tube([[0, 0, 0], [np.nan, 1, 0]], [0.1, 0.1], 8)

    def test_zero_length_step(self):
        with pytest.raises(DegenerateGeometryError):
            sweep_tube([[0, 0, 0], [0, 0, 0], [1, 0, 0]], [0.1, 0.1, 0.1], 8)

    def test_zero_base_radius(self):
        with pytest.raises(DegenerateGeometryError):
            sweep_tube(STRAIGHT_X, [0.0, 0.1, 0.1], 8)


class TestBranchPaths:
    """Tests for skeleton chains and densification."""

    def _chain(self):
        sk = Skeleton()
        a = sk.add_segment((0, 0, 0), (0, 1, 0), 0.3, branch_id=0)
        sk.add_segment((0, 1, 0), (1, 2, 0), 0.2, branch_id=0, parent=a)
        return sk

    def test_branch_path_samples(self):
        positions, radii = branch_path(self._chain(), [0, 1])
        np.testing.assert_allclose(positions, [[0, 0, 0], [0, 1, 0], [1, 2, 0]])
        np.testing.assert_allclose(radii, [0.3, 0.2, 0.2])

    def test_densify_keeps_endpoints(self):
        positions, radii = densify_path(STRAIGHT_X, np.array([0.4, 0.2, 0.0]), 9)
        assert len(positions) == 9
        np.testing.assert_allclose(positions[0], STRAIGHT_X[0])
        np.testing.assert_allclose(positions[-1], STRAIGHT_X[-1])
        np.testing.assert_allclose(positions[:, 0], np.linspace(0, 2, 9))
        np.testing.assert_allclose(radii, np.linspace(0.4, 0.0, 9))

    def test_densify_noop_when_long_enough(self):
        positions, radii = densify_path(STRAIGHT_X, np.ones(3), 3)
        assert positions is STRAIGHT_X

    def test_sweep_branch_densifies(self):
        sweeper = TubeMeshSweeper(TubeSweepPolicy(densify=True))
        mesh = sweeper.sweep_branch(self._chain(), [0, 1], ring_segments=8, min_samples=5)
        assert mesh.vertex_count == 8 * 5

    def test_sweep_branch_without_densify(self):
        sweeper = TubeMeshSweeper(TubeSweepPolicy(densify=False))
        mesh = sweeper.sweep_branch(self._chain(), [0, 1], ring_segments=8, min_samples=5)
        assert mesh.vertex_count == 8 * 3
