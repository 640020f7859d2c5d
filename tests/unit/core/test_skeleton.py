"""
Unit tests for the skeleton arena.

Tests verify:
- add_segment links parents and children by index
- degenerate segments and bad parent indices are rejected
- tips, junctions and copies behave as documented
- validate() catches radius increases within a branch
- networkx views (graph, branch chains) match the arena
"""

import numpy as np
import pytest

from arbor.core.errors import DegenerateGeometryError, InvalidParameterError
from arbor.core.skeleton import Skeleton
from arbor.utils.topology import branch_chains, skeleton_stats


def _forked_skeleton() -> Skeleton:
    """Trunk of two segments splitting into two single-segment branches."""
    sk = Skeleton()
    a = sk.add_segment((0, 0, 0), (0, 1, 0), 0.3, branch_id=0)
    b = sk.add_segment((0, 1, 0), (0, 2, 0), 0.25, branch_id=0, parent=a)
    sk.add_segment((0, 2, 0), (1, 3, 0), 0.1, branch_id=1, parent=b)
    sk.add_segment((0, 2, 0), (-1, 3, 0), 0.1, branch_id=2, parent=b)
    return sk


class TestAddSegment:
    """Tests for appending segments."""

    def test_links_parent_and_child(self):
        """Child index is recorded on the parent."""
        sk = _forked_skeleton()
        assert sk.root == 0
        assert sk[1].parent == 0
        assert sk[1].children == [2, 3]
        assert sk[2].parent == 1

    def test_rejects_zero_length(self):
        """Zero-length segments are degenerate."""
        sk = Skeleton()
        with pytest.raises(DegenerateGeometryError):
            sk.add_segment((1, 1, 1), (1, 1, 1), 0.1, branch_id=0)

    def test_rejects_nan(self):
        """NaN endpoints are degenerate."""
        sk = Skeleton()
        with pytest.raises(DegenerateGeometryError):
            sk.add_segment((0, 0, 0), (np.nan, 1, 0), 0.1, branch_id=0)

    def test_rejects_non_positive_radius(self):
        """Radius must be positive."""
        sk = Skeleton()
        with pytest.raises(DegenerateGeometryError):
            sk.add_segment((0, 0, 0), (0, 1, 0), 0.0, branch_id=0)

    def test_rejects_unknown_parent(self):
        """Parent must be an existing index."""
        sk = Skeleton()
        with pytest.raises(InvalidParameterError):
            sk.add_segment((0, 0, 0), (0, 1, 0), 0.1, branch_id=0, parent=5)

    def test_new_branch_id_skips_used_ids(self):
        """Allocated branch ids never collide with ids already in use."""
        sk = _forked_skeleton()
        assert sk.new_branch_id() == 3


class TestQueries:
    """Tests for tips, junctions and copies."""

    def test_tips_and_junctions(self):
        sk = _forked_skeleton()
        assert sk.tips() == [2, 3]
        assert sk.junctions() == [1]
        assert sk.branch_ids() == [0, 1, 2]

    def test_copy_is_independent(self):
        """Mutating a copy leaves the original untouched."""
        sk = _forked_skeleton()
        clone = sk.copy()
        clone.add_segment((1, 3, 0), (2, 4, 0), 0.05, branch_id=1, parent=2)
        clone[0].end[0] = 42.0
        assert len(sk) == 4
        assert sk[2].children == []
        assert sk[0].end[0] == 0.0

    def test_segment_direction_is_unit(self):
        sk = _forked_skeleton()
        assert np.linalg.norm(sk[2].direction) == pytest.approx(1.0)
        assert sk[2].length == pytest.approx(np.sqrt(2.0))


class TestValidate:
    """Tests for structural validation."""

    def test_valid_skeleton_has_no_errors(self):
        assert _forked_skeleton().validate() == []

    def test_detects_radius_increase_within_branch(self):
        """A thicker child on the same branch violates tapering."""
        sk = Skeleton()
        a = sk.add_segment((0, 0, 0), (0, 1, 0), 0.1, branch_id=0)
        sk.add_segment((0, 1, 0), (0, 2, 0), 0.2, branch_id=0, parent=a)
        errors = sk.validate()
        assert any("exceeds parent radius" in e for e in errors)

    def test_thicker_child_on_new_branch_is_allowed(self):
        """Tapering is only required within a branch."""
        sk = Skeleton()
        a = sk.add_segment((0, 0, 0), (0, 1, 0), 0.1, branch_id=0)
        sk.add_segment((0, 1, 0), (0, 2, 0), 0.2, branch_id=1, parent=a)
        assert sk.validate() == []


class TestTopology:
    """Tests for networkx-based views."""

    def test_graph_mirrors_links(self):
        graph = _forked_skeleton().to_graph()
        assert graph.number_of_nodes() == 4
        assert set(graph.edges()) == {(0, 1), (1, 2), (1, 3)}
        assert graph.nodes[2]["branch_id"] == 1

    def test_branch_chains(self):
        """Each branch is an ordered chain from base to tip."""
        chains = branch_chains(_forked_skeleton())
        assert chains == {0: [0, 1], 1: [2], 2: [3]}

    def test_stats(self):
        stats = skeleton_stats(_forked_skeleton())
        assert stats["segment_count"] == 4
        assert stats["tip_count"] == 2
        assert stats["junction_count"] == 1
        assert stats["max_depth"] == 2
