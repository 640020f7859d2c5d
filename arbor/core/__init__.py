"""
Core data structures for arbor.
"""

from .errors import (
    ArborError,
    InvalidParameterError,
    GenerationOverflowError,
    DegenerateGeometryError,
    ResourceExhaustionError,
    raise_if_invalid,
)
from .skeleton import Segment, Skeleton, check_segment_geometry
from .mesh import Mesh, InstanceTransform

__all__ = [
    "ArborError",
    "InvalidParameterError",
    "GenerationOverflowError",
    "DegenerateGeometryError",
    "ResourceExhaustionError",
    "raise_if_invalid",
    "Segment",
    "Skeleton",
    "check_segment_geometry",
    "Mesh",
    "InstanceTransform",
]
