"""
Operations for building trees and their meshes.

This module re-exports commonly used operations from submodules.
For full API access, import from specific submodules:
    - arbor.ops.lsystem: grammar rewriting and turtle interpretation
    - arbor.ops.space_colonization: fine-branch growth
    - arbor.ops.scalar_field: scalar fields and marching cubes
    - arbor.ops.junctions: junction blending
    - arbor.ops.tessellation: LOD tier selection
    - arbor.ops.primitives: tube sweep and organic components
    - arbor.ops.mesh: mesh assembly
"""

from .lsystem import LSystemSkeletonGenerator, generate_lsystem_skeleton
from .space_colonization import SpaceColonizationGrower, grow_space_colonization
from .scalar_field import ScalarFieldVolume
from .junctions import JunctionBlender, find_junctions
from .tessellation import (
    AdaptiveTessellationController,
    BranchViewMetrics,
    LODTier,
    select_tier,
)
from .foliage import place_foliage
from .primitives import TubeMeshSweeper, sweep_tube, build_organic_component, union_primitives
from .mesh import assemble_meshes, smooth_normals

__all__ = [
    "LSystemSkeletonGenerator",
    "generate_lsystem_skeleton",
    "SpaceColonizationGrower",
    "grow_space_colonization",
    "ScalarFieldVolume",
    "JunctionBlender",
    "find_junctions",
    "AdaptiveTessellationController",
    "BranchViewMetrics",
    "LODTier",
    "select_tier",
    "place_foliage",
    "TubeMeshSweeper",
    "sweep_tube",
    "build_organic_component",
    "union_primitives",
    "assemble_meshes",
    "smooth_normals",
]
