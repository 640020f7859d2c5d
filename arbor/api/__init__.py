"""High-level API for procedural tree generation."""

from .generate import TreeResult, TreeBuilder, generate_tree, build_component, resolve_config

__all__ = [
    "TreeResult",
    "TreeBuilder",
    "generate_tree",
    "build_component",
    "resolve_config",
]
