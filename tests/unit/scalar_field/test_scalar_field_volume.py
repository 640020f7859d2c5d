"""
Unit tests for scalar-field volumes.

Tests verify:
- sphere and capsule contributions follow the quadratic falloff
- contributions accumulate until fill() resets them
- degenerate primitives are skipped without touching the grid
- the memory budget is enforced before allocation
- isosurface extraction yields a closed, outward-facing surface
- thresholds outside the field range give an empty mesh
- extraction does not allocate beyond the grid budget
"""

import math
import tracemalloc

import numpy as np
import pytest

from arbor.core.errors import InvalidParameterError, ResourceExhaustionError
from arbor.ops.scalar_field import (
    ScalarFieldVolume,
    max_resolution_for_budget,
    required_bytes,
)
from arbor_policies import ScalarFieldPolicy


class TestConstruction:
    """Tests for grid setup and validation."""

    def test_grid_geometry(self):
        vol = ScalarFieldVolume(5, center=(1.0, 2.0, 3.0), size=4.0)
        assert vol.data.shape == (5, 5, 5)
        np.testing.assert_allclose(vol.origin, [-1.0, 0.0, 1.0])
        np.testing.assert_allclose(vol.spacing, [1.0, 1.0, 1.0])
        assert np.all(vol.data == 0)

    @pytest.mark.parametrize("resolution", [1, 0, -4, 2.5, True])
    def test_bad_resolution(self, resolution):
        with pytest.raises(InvalidParameterError):
            ScalarFieldVolume(resolution)

    def test_bad_size(self):
        with pytest.raises(InvalidParameterError):
            ScalarFieldVolume(8, size=0.0)

    def test_non_finite_center(self):
        with pytest.raises(InvalidParameterError):
            ScalarFieldVolume(8, center=(0.0, np.inf, 0.0))

    def test_budget_checked_before_allocation(self):
        with pytest.raises(ResourceExhaustionError) as exc_info:
            ScalarFieldVolume(100, memory_budget_bytes=1000)
        err = exc_info.value
        assert err.requested_bytes == required_bytes(100)
        assert err.grid_shape == (100, 100, 100)
        assert err.suggested_resolution == 6
        assert isinstance(err, MemoryError)

    def test_max_resolution_fits_budget(self):
        for budget in (64, 1000, 4096, 10 ** 6):
            n = max_resolution_for_budget(budget)
            assert required_bytes(n) <= budget < required_bytes(n + 1)

    def test_from_policy_uses_default_resolution(self):
        vol = ScalarFieldVolume.from_policy(ScalarFieldPolicy(default_resolution=12), (0, 0, 0), 1.0)
        assert vol.resolution == 12


class TestPrimitives:
    """Tests for metaball contributions."""

    def test_sphere_falloff(self):
        """Center gets 2*strength, falloff is quadratic, zero outside the radius."""
        vol = ScalarFieldVolume(3, center=(0, 0, 0), size=2.0)
        assert vol.add_sphere((0, 0, 0), 1.5)
        assert vol.data[1, 1, 1] == pytest.approx(2.0)
        assert vol.data[2, 1, 1] == pytest.approx(2.0 / 9.0, rel=1e-5)
        assert vol.data[0, 0, 0] == 0.0

    def test_contributions_accumulate(self):
        vol = ScalarFieldVolume(3, size=2.0)
        vol.add_sphere((0, 0, 0), 1.5, strength=0.5)
        vol.add_sphere((0, 0, 0), 1.5, strength=0.5)
        assert vol.data[1, 1, 1] == pytest.approx(2.0)

    def test_fill_resets(self):
        vol = ScalarFieldVolume(3, size=2.0)
        vol.add_sphere((0, 0, 0), 1.5)
        vol.fill(0.0)
        assert np.all(vol.data == 0)

    def test_capsule_falloff(self):
        vol = ScalarFieldVolume(9, center=(0, 0, 0), size=2.0)
        assert vol.add_cylinder((0, -1, 0), (0, 1, 0), 0.5)
        # spacing 0.25; sample (5, 4, 4) sits at (0.25, 0, 0)
        assert vol.data[4, 4, 4] == pytest.approx(2.0)
        assert vol.data[5, 4, 4] == pytest.approx(0.5, rel=1e-5)
        assert vol.data[4, 0, 4] == pytest.approx(2.0)

    def test_zero_length_capsule_matches_sphere(self):
        a = ScalarFieldVolume(9, size=2.0)
        b = ScalarFieldVolume(9, size=2.0)
        a.add_cylinder((0.1, 0, 0), (0.1, 0, 0), 0.6)
        b.add_sphere((0.1, 0, 0), 0.6)
        np.testing.assert_allclose(a.data, b.data)

    def test_degenerate_primitives_skipped(self):
        vol = ScalarFieldVolume(5, size=2.0)
        assert not vol.add_sphere((0, 0, 0), 0.0)
        assert not vol.add_sphere((np.nan, 0, 0), 1.0)
        assert not vol.add_cylinder((0, 0, 0), (np.inf, 0, 0), 1.0)
        assert np.all(vol.data == 0)

    def test_primitive_outside_box_is_harmless(self):
        vol = ScalarFieldVolume(5, size=2.0)
        assert vol.add_sphere((10, 10, 10), 1.0)
        assert np.all(vol.data == 0)


class TestIsosurface:
    """Tests for marching-cubes extraction."""

    def _sphere_mesh(self, resolution=32):
        vol = ScalarFieldVolume(resolution, center=(0, 0, 0), size=1.2)
        vol.add_sphere((0, 0, 0), 1.0)
        # 2 * (1 - d)^2 = 0.5 at d = 0.5
        return vol.extract_isosurface(0.5)

    def test_sphere_volume(self):
        mesh = self._sphere_mesh()
        assert not mesh.is_empty
        tm = mesh.to_trimesh()
        expected = 4.0 / 3.0 * math.pi * 0.5 ** 3
        assert abs(tm.volume) == pytest.approx(expected, rel=0.1)

    def test_faces_wind_outward(self):
        tm = self._sphere_mesh().to_trimesh()
        assert tm.volume > 0

    def test_normals_point_outward(self):
        mesh = self._sphere_mesh()
        radial = mesh.vertices / np.linalg.norm(mesh.vertices, axis=1, keepdims=True)
        dots = np.einsum("ij,ij->i", radial, mesh.normals)
        assert dots.mean() > 0.9
        np.testing.assert_allclose(np.linalg.norm(mesh.normals, axis=1), 1.0, atol=1e-6)

    def test_vertices_near_iso_radius(self):
        mesh = self._sphere_mesh()
        r = np.linalg.norm(mesh.vertices, axis=1)
        assert np.all(np.abs(r - 0.5) < 0.05)

    def test_mesh_is_valid(self):
        mesh = self._sphere_mesh(16)
        assert mesh.validate() == []
        assert mesh.faces.dtype == np.uint32

    def test_offset_center_moves_surface(self):
        vol = ScalarFieldVolume(20, center=(5, 0, 0), size=1.2)
        vol.add_sphere((5, 0, 0), 1.0)
        mesh = vol.extract_isosurface(0.5)
        np.testing.assert_allclose(mesh.vertices.mean(axis=0), [5, 0, 0], atol=0.05)

    def test_threshold_above_max_is_empty(self):
        vol = ScalarFieldVolume(8, size=2.0)
        vol.add_sphere((0, 0, 0), 1.0)
        assert vol.extract_isosurface(3.0).is_empty

    def test_empty_field_is_empty(self):
        assert ScalarFieldVolume(8).extract_isosurface(0.5).is_empty

    def test_non_finite_threshold(self):
        with pytest.raises(InvalidParameterError):
            ScalarFieldVolume(8).extract_isosurface(float("nan"))

    def test_extraction_stays_within_grid_budget(self):
        """Extraction must not allocate whole-grid float64 copies."""
        resolution = 96
        vol = ScalarFieldVolume(resolution, center=(0, 0, 0), size=12.0)
        vol.add_sphere((0, 0, 0), 1.0)

        tracemalloc.start()
        try:
            mesh = vol.extract_isosurface(0.5)
            _, peak = tracemalloc.get_traced_memory()
        finally:
            tracemalloc.stop()

        assert not mesh.is_empty
        assert peak < 2 * required_bytes(resolution)
