"""
Unit tests for species presets.

Tests verify:
- every preset builds a valid configuration
- trait mapping (iterations clamp, crown placement, colonization radii)
- lookup is case-insensitive and unknown names fail
- returned configurations are independent copies
"""

import pytest

from arbor.core.errors import InvalidParameterError
from arbor.params import get_preset, list_presets
from arbor.params.presets import SPECIES


class TestPresets:
    """Tests for get_preset."""

    def test_all_species_listed(self):
        assert list_presets() == sorted(
            ["pine", "broadleaf", "birch", "willow", "palm", "cypress", "maple"]
        )

    @pytest.mark.parametrize("name", sorted(SPECIES))
    def test_preset_is_valid(self, name):
        config = get_preset(name)
        assert config.validate() == []
        assert config.name == name
        assert 2 <= config.lsystem.iterations <= 4

    def test_trait_mapping(self):
        traits = SPECIES["palm"]
        config = get_preset("palm")
        h = traits.trunk_height
        assert config.lsystem.iterations == 3
        assert config.lsystem.segment_length == pytest.approx(h / 4)
        assert config.lsystem.angle_deg == traits.branch_angle_deg
        assert config.lsystem.initial_radius == traits.trunk_radius
        assert config.crown.center == pytest.approx((0.0, 0.7 * h, 0.0))
        assert config.crown.radius == pytest.approx(0.6 * h)
        assert config.crown.height == pytest.approx(0.8 * h)
        assert config.space_colonization.influence_radius == pytest.approx(2 * traits.leaf_radius)
        assert config.space_colonization.kill_radius == pytest.approx(0.3 * traits.leaf_radius)
        assert config.foliage.leaf_size == traits.leaf_radius

    def test_case_insensitive(self):
        assert get_preset("Birch").to_dict() == get_preset("birch").to_dict()

    def test_unknown_preset(self):
        with pytest.raises(InvalidParameterError, match="oak"):
            get_preset("oak")

    def test_presets_are_independent(self):
        a = get_preset("pine")
        a.lsystem.iterations = 1
        assert get_preset("pine").lsystem.iterations == 2
