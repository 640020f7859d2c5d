"""
Geometric primitives: branch tubes and organic components.
"""

from .tube_sweep import TubeMeshSweeper, sweep_tube, densify_path, branch_path
from .organic import build_organic_component, union_primitives, COMPONENT_KINDS

__all__ = [
    "TubeMeshSweeper",
    "sweep_tube",
    "densify_path",
    "branch_path",
    "build_organic_component",
    "union_primitives",
    "COMPONENT_KINDS",
]
