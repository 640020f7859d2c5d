"""
Random generator plumbing.

Every stochastic operation takes an explicit ``numpy.random.Generator``
(or a seed to build one) so identical configurations reproduce exactly.
"""

from typing import Optional, Union

import numpy as np


RngLike = Optional[Union[int, np.random.Generator]]


def ensure_rng(rng: RngLike = None) -> np.random.Generator:
    """Return ``rng`` if it is a Generator, else ``default_rng(rng)``."""
    if isinstance(rng, np.random.Generator):
        return rng
    return np.random.default_rng(rng)


__all__ = ["ensure_rng", "RngLike"]
