"""
Arbor - Procedural Organic-Structure Generation

This package synthesizes branching tree-like structures and turns them into
renderable triangle meshes:

- L-system grammar rewriting and 3D turtle interpretation into a skeleton
- space colonization growth of fine branches toward a crown volume
- tube sweeping of branches with adaptive level of detail
- scalar-field (marching cubes) blending of junctions and organic primitives

Output is renderer-agnostic: vertex / normal / index arrays plus leaf
instance transforms.

Main Entry Points:
    - generate_tree(): one-call pipeline from a config or preset name
    - TreeBuilder: pipeline with LOD-driven selective regeneration
    - get_preset(): species configurations

Example:
    >>> from arbor import generate_tree
    >>> result, report = generate_tree("birch", seed=7)
    >>> result.mesh.vertex_count > 0
    True
"""

from .api import generate_tree, TreeBuilder, TreeResult, build_component
from .core import (
    ArborError,
    InvalidParameterError,
    GenerationOverflowError,
    DegenerateGeometryError,
    ResourceExhaustionError,
    Segment,
    Skeleton,
    Mesh,
    InstanceTransform,
)
from .ops import (
    LSystemSkeletonGenerator,
    SpaceColonizationGrower,
    ScalarFieldVolume,
    JunctionBlender,
    TubeMeshSweeper,
    AdaptiveTessellationController,
    BranchViewMetrics,
    LODTier,
)
from .params import TreeGenerationConfig, get_preset, list_presets

__version__ = "0.1.0"

__all__ = [
    "generate_tree",
    "TreeBuilder",
    "TreeResult",
    "build_component",
    "ArborError",
    "InvalidParameterError",
    "GenerationOverflowError",
    "DegenerateGeometryError",
    "ResourceExhaustionError",
    "Segment",
    "Skeleton",
    "Mesh",
    "InstanceTransform",
    "LSystemSkeletonGenerator",
    "SpaceColonizationGrower",
    "ScalarFieldVolume",
    "JunctionBlender",
    "TubeMeshSweeper",
    "AdaptiveTessellationController",
    "BranchViewMetrics",
    "LODTier",
    "TreeGenerationConfig",
    "get_preset",
    "list_presets",
]
