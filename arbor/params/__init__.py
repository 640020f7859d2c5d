"""
Configuration records and species presets.
"""

from .config import TreeGenerationConfig
from .presets import SpeciesTraits, SPECIES, get_preset, list_presets

__all__ = [
    "TreeGenerationConfig",
    "SpeciesTraits",
    "SPECIES",
    "get_preset",
    "list_presets",
]
