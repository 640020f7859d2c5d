"""
Mesh assembly operations.
"""

from .assemble import assemble_meshes, smooth_normals

__all__ = ["assemble_meshes", "smooth_normals"]
