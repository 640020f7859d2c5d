"""
Unit tests for adaptive tessellation.

Tests verify:
- tier selection is a pure function of the four metrics
- metrics outside [0, 1] are clamped; non-finite metrics are rejected
- tier changes, and only tier changes, request regeneration
- batch updates are ordered by error, highest first
- screen, distance and curvature metrics map into [0, 1]
- controller metrics are normalized with the policy thresholds
"""

import numpy as np
import pytest

from arbor.core.errors import InvalidParameterError
from arbor.ops.primitives.tube_sweep import sweep_tube
from arbor.ops.tessellation import (
    AdaptiveTessellationController,
    BranchViewMetrics,
    LODTier,
    composite_error,
    curvature_error,
    distance_error,
    screen_space_error,
    select_tier,
)
from arbor_policies import TessellationPolicy


ALL_ONE = BranchViewMetrics(screen_size=1.0, curvature=1.0, distance=1.0, motion=1.0)
ALL_ZERO = BranchViewMetrics()


class TestTierSelection:
    """Tests for the pure selection function."""

    def test_all_ones_is_ultra(self):
        assert select_tier(ALL_ONE) is LODTier.ULTRA

    def test_all_zeros_is_low(self):
        assert select_tier(ALL_ZERO) is LODTier.LOW

    def test_screen_and_curvature_is_high(self):
        assert select_tier(BranchViewMetrics(screen_size=1.0, curvature=1.0)) is LODTier.HIGH

    def test_screen_and_half_distance_is_medium(self):
        assert select_tier(BranchViewMetrics(screen_size=1.0, distance=0.5)) is LODTier.MEDIUM

    def test_values_are_clamped(self):
        wild = BranchViewMetrics(screen_size=5.0, curvature=-3.0, distance=2.0, motion=9.0)
        assert composite_error(wild, TessellationPolicy()) == pytest.approx(0.7)

    def test_non_finite_metric_rejected(self):
        with pytest.raises(InvalidParameterError):
            select_tier(BranchViewMetrics(screen_size=float("nan")))

    def test_same_inputs_same_tier(self):
        m = BranchViewMetrics(screen_size=0.3, curvature=0.8, distance=0.6, motion=0.2)
        assert len({select_tier(m) for _ in range(5)}) == 1

    def test_smooth_normals_only_on_fine_tiers(self):
        assert LODTier.ULTRA.smooth_normals
        assert LODTier.HIGH.smooth_normals
        assert not LODTier.MEDIUM.smooth_normals
        assert not LODTier.LOW.smooth_normals


class TestController:
    """Tests for per-branch tier tracking."""

    def test_segments_for_tiers(self):
        controller = AdaptiveTessellationController()
        assert controller.segments_for(LODTier.ULTRA) == (16, 32)
        assert controller.segments_for(LODTier.LOW) == (4, 8)

    def test_first_update_requests_regeneration(self):
        decision = AdaptiveTessellationController().update(3, ALL_ONE)
        assert decision.needs_regeneration
        assert decision.previous_tier is None
        assert decision.tier is LODTier.ULTRA
        assert decision.ring_segments == 16
        assert decision.smooth_normals

    def test_unchanged_tier_is_not_regenerated(self):
        controller = AdaptiveTessellationController()
        controller.update(1, ALL_ONE)
        decision = controller.update(1, BranchViewMetrics(screen_size=1.0, curvature=1.0,
                                                          distance=1.0, motion=0.5))
        assert decision.tier is LODTier.ULTRA
        assert not decision.needs_regeneration

    def test_tier_change_is_regenerated(self):
        controller = AdaptiveTessellationController()
        controller.update(1, ALL_ONE)
        decision = controller.update(1, ALL_ZERO)
        assert decision.needs_regeneration
        assert decision.previous_tier is LODTier.ULTRA
        assert controller.current_tier(1) is LODTier.LOW

    def test_assigned_tier_counts_as_previous(self):
        controller = AdaptiveTessellationController()
        controller.assign(7, LODTier.LOW)
        assert not controller.update(7, ALL_ZERO).needs_regeneration

    def test_forget(self):
        controller = AdaptiveTessellationController()
        controller.assign(7, LODTier.LOW)
        controller.forget(7)
        assert controller.current_tier(7) is None

    def test_update_all_orders_by_error(self):
        controller = AdaptiveTessellationController()
        decisions = controller.update_all([
            (0, ALL_ZERO),
            (1, ALL_ONE),
            (2, BranchViewMetrics(screen_size=1.0)),
        ])
        assert [d.branch_id for d in decisions] == [1, 2, 0]

    def test_invalid_policy_rejected(self):
        with pytest.raises(InvalidParameterError):
            AdaptiveTessellationController(TessellationPolicy(high_threshold=0.9))


class TestMetrics:
    """Tests for metric helpers."""

    def test_screen_space_error(self):
        assert screen_space_error(1.0) == pytest.approx(0.5)
        assert screen_space_error(10.0) == 1.0
        assert screen_space_error(-1.0) == 0.0

    def test_distance_error(self):
        assert distance_error(0.0) == 1.0
        assert distance_error(50.0) == pytest.approx(0.5)
        assert distance_error(500.0) == 0.0

    def test_controller_metrics_use_policy_thresholds(self):
        policy = TessellationPolicy(screen_space_threshold=8.0, distance_threshold=20.0)
        metrics = AdaptiveTessellationController(policy).view_metrics(
            pixel_size=2.0, distance=5.0, curvature=0.3,
        )
        assert metrics.screen_size == pytest.approx(0.25)
        assert metrics.distance == pytest.approx(0.75)
        assert metrics.curvature == 0.3
        assert metrics.motion == 0.0

    def test_controller_metrics_change_tier_with_thresholds(self):
        """The same view scores finer under a looser distance threshold."""
        near = AdaptiveTessellationController(TessellationPolicy(distance_threshold=1000.0))
        far = AdaptiveTessellationController(TessellationPolicy(distance_threshold=10.0))
        view = dict(pixel_size=2.0, distance=50.0, curvature=1.0)
        assert select_tier(near.view_metrics(**view)) is LODTier.ULTRA
        assert select_tier(far.view_metrics(**view)) is LODTier.HIGH

    def test_straight_tube_has_no_curvature(self):
        mesh = sweep_tube([[0, 0, 0], [1, 0, 0], [2, 0, 0]], [0.2, 0.2, 0.2], 8)
        assert curvature_error(mesh, 8) == pytest.approx(0.0, abs=1e-12)

    def test_bent_tube_has_curvature(self):
        mesh = sweep_tube([[0, 0, 0], [1, 0, 0], [1, 0, 1]], [0.2, 0.2, 0.2], 8)
        value = curvature_error(mesh, 8)
        assert 0.0 < value <= 1.0

    def test_single_ring_has_no_curvature(self):
        mesh = sweep_tube([[0, 0, 0], [1, 0, 0]], [0.2, 0.2], 8)
        assert curvature_error(mesh, 16) == 0.0
