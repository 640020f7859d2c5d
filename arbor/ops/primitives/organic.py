"""
Organic component primitives.

Stand-alone blobby components built as isosurfaces of a local scalar
field: a trunk or branch is a capsule along +Y from the origin, a leaf is
a sphere of ``leaf_radius_scale * radius`` and a flower a sphere of
``radius``. ``union_primitives`` merges any number of spheres and capsules
into one smooth surface.
"""

from typing import Iterable, Optional, Sequence, Tuple
import logging

import numpy as np

from arbor_policies import OrganicPrimitivePolicy, ScalarFieldPolicy
from ...core.errors import InvalidParameterError, raise_if_invalid
from ...core.mesh import Mesh
from ..scalar_field import ScalarFieldVolume

logger = logging.getLogger(__name__)

COMPONENT_KINDS = ("trunk", "branches", "leaves", "flowers")

SphereSpec = Tuple[Sequence[float], float]
CapsuleSpec = Tuple[Sequence[float], Sequence[float], float]


def union_primitives(
    spheres: Iterable[SphereSpec] = (),
    capsules: Iterable[CapsuleSpec] = (),
    policy: Optional[OrganicPrimitivePolicy] = None,
    field_policy: Optional[ScalarFieldPolicy] = None,
) -> Mesh:
    """
    Smooth union of spheres and capsules.

    The sampled box is the padded bounding box of all primitives.

    Parameters
    ----------
    spheres : iterable of (center, radius)
    capsules : iterable of (start, end, radius)
    policy : OrganicPrimitivePolicy, optional
        Grid resolution, iso level and padding
    field_policy : ScalarFieldPolicy, optional
        Memory budget

    Returns
    -------
    Mesh
        Isosurface of the summed field (empty if there are no primitives)
    """
    policy = policy or OrganicPrimitivePolicy()
    field_policy = field_policy or ScalarFieldPolicy()
    raise_if_invalid(policy, "organic primitive policy")

    spheres = [(np.asarray(c, dtype=float), float(r)) for c, r in spheres]
    capsules = [(np.asarray(a, dtype=float), np.asarray(b, dtype=float), float(r))
                for a, b, r in capsules]
    if not spheres and not capsules:
        return Mesh.empty()
    for *_, r in spheres + capsules:
        if not r > 0:
            raise InvalidParameterError(f"primitive radius must be > 0, got {r}")

    lows = [c - r for c, r in spheres] + [np.minimum(a, b) - r for a, b, r in capsules]
    highs = [c + r for c, r in spheres] + [np.maximum(a, b) + r for a, b, r in capsules]
    low = np.min(lows, axis=0)
    high = np.max(highs, axis=0)
    center = (low + high) / 2.0
    size = (high - low) * policy.box_padding

    volume = ScalarFieldVolume.from_policy(
        field_policy, center=center, size=size, resolution=policy.resolution,
    )
    for c, r in spheres:
        volume.add_sphere(c, r)
    for a, b, r in capsules:
        volume.add_cylinder(a, b, r)
    return volume.extract_isosurface(policy.iso_level)


def build_organic_component(
    kind: str,
    length: float,
    radius: float,
    policy: Optional[OrganicPrimitivePolicy] = None,
    field_policy: Optional[ScalarFieldPolicy] = None,
) -> Mesh:
    """
    Build one organic component in local coordinates.

    Parameters
    ----------
    kind : str
        One of "trunk", "branches", "leaves", "flowers"
    length : float
        Capsule length for trunk/branches (ignored for leaves and flowers)
    radius : float
        Base radius

    Returns
    -------
    Mesh
        Component surface; trunk and branches run from the origin along +Y
    """
    policy = policy or OrganicPrimitivePolicy()
    if kind not in COMPONENT_KINDS:
        raise InvalidParameterError(f"unknown component kind {kind!r}, expected one of {COMPONENT_KINDS}")
    if not radius > 0:
        raise InvalidParameterError(f"radius must be > 0, got {radius}")

    if kind in ("trunk", "branches"):
        if not length > 0:
            raise InvalidParameterError(f"length must be > 0, got {length}")
        mesh = union_primitives(
            capsules=[((0.0, 0.0, 0.0), (0.0, length, 0.0), radius)],
            policy=policy, field_policy=field_policy,
        )
    elif kind == "leaves":
        mesh = union_primitives(
            spheres=[((0.0, 0.0, 0.0), policy.leaf_radius_scale * radius)],
            policy=policy, field_policy=field_policy,
        )
    else:
        mesh = union_primitives(
            spheres=[((0.0, 0.0, 0.0), radius)],
            policy=policy, field_policy=field_policy,
        )

    logger.debug(f"Built {kind} component: {mesh.vertex_count} vertices")
    return mesh


__all__ = ["build_organic_component", "union_primitives", "COMPONENT_KINDS"]
