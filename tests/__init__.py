"""
Tests for Arbor Generation

This package contains tests for:
- Skeleton data model and topology helpers
- L-system rewriting and space colonization growth
- Scalar fields, tube sweeping, junction blending and assembly
- Adaptive tessellation and the end-to-end pipeline
"""
