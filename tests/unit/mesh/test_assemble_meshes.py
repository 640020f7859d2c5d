"""
Unit tests for mesh assembly.

Tests verify:
- pieces are concatenated with face indices offset per piece
- empty pieces are dropped and counted
- missing normals are filled in, smoothing keeps them unit length
- instances ride along on the merged mesh
- inconsistent buffers fail the whole assembly
"""

import numpy as np
import pytest

from arbor.core.errors import ArborError
from arbor.core.mesh import InstanceTransform, Mesh
from arbor.ops.mesh import assemble_meshes, smooth_normals
from arbor.ops.primitives.tube_sweep import sweep_tube
from arbor_policies import MeshAssemblyPolicy


def _tube(offset=0.0, ring=6):
    path = np.array([[0, 0, 0], [1, 0, 0], [2, 0, 0]], dtype=float) + [0, offset, 0]
    return sweep_tube(path, [0.2, 0.2, 0.2], ring)


class TestConcatenation:
    """Tests for buffer merging."""

    def test_counts_and_offsets(self):
        a, b = _tube(), _tube(offset=1.0, ring=4)
        merged, report = assemble_meshes([a, b])
        assert merged.vertex_count == a.vertex_count + b.vertex_count
        assert merged.face_count == a.face_count + b.face_count
        np.testing.assert_array_equal(
            merged.faces[a.face_count:], b.faces.astype(np.int64) + a.vertex_count
        )
        assert report.metrics["piece_count"] == 2
        assert merged.validate() == []

    def test_empty_pieces_dropped(self):
        merged, report = assemble_meshes([Mesh.empty(), _tube(), Mesh.empty()])
        assert report.metrics["piece_count"] == 1
        assert report.metrics["dropped_empty_pieces"] == 2
        assert merged.vertex_count == _tube().vertex_count

    def test_no_pieces(self):
        leaf = InstanceTransform(position=(0, 1, 0), orientation=(0, 0, 0, 1), scale=1.0)
        merged, report = assemble_meshes([], instances=[leaf])
        assert merged.is_empty
        assert merged.instances == [leaf]
        assert report.metrics["instance_count"] == 1

    def test_instances_attached(self):
        leaves = [InstanceTransform(position=(0, i, 0), orientation=(0, 0, 0, 1), scale=1.0)
                  for i in range(3)]
        merged, _ = assemble_meshes([_tube()], instances=leaves)
        assert len(merged.instances) == 3

    def test_invalid_buffers_raise(self):
        bad = Mesh(vertices=np.zeros((3, 3)), normals=np.tile([0.0, 1.0, 0.0], (3, 1)),
                   faces=[[0, 1, 7]])
        with pytest.raises(ArborError):
            assemble_meshes([_tube(), bad])


class TestNormals:
    """Tests for normal filling and smoothing."""

    def test_missing_normals_filled(self):
        tube = _tube()
        bare = Mesh(vertices=tube.vertices, normals=np.zeros((0, 3)), faces=tube.faces)
        merged, _ = assemble_meshes([bare])
        assert merged.normals.shape == merged.vertices.shape
        np.testing.assert_allclose(np.linalg.norm(merged.normals, axis=1), 1.0, atol=1e-6)

    def test_smoothing_keeps_unit_normals(self):
        smoothed = smooth_normals(_tube(), iterations=3, factor=0.5)
        np.testing.assert_allclose(np.linalg.norm(smoothed, axis=1), 1.0, atol=1e-9)

    def test_zero_factor_is_identity(self):
        tube = _tube()
        np.testing.assert_allclose(smooth_normals(tube, iterations=3, factor=0.0), tube.normals)

    def test_smoothing_policy_applied(self):
        tube = _tube()
        merged, _ = assemble_meshes([tube], policy=MeshAssemblyPolicy(smooth_normals=True))
        assert not np.allclose(merged.normals, tube.normals)
