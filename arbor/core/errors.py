"""
Error taxonomy for arbor.

- InvalidParameterError: a policy or call argument is malformed. Raised
  before any heavy computation.
- GenerationOverflowError: a grammar string or growth run would exceed its
  configured ceiling. Raised before the oversized work is started.
- DegenerateGeometryError: a single element (segment, path) is NaN or has
  zero extent. Callers catch it, log a warning and skip the element.
- ResourceExhaustionError: a scalar-field allocation exceeds the memory
  budget. Raised before allocation.
"""

from typing import List, Optional, Tuple


class ArborError(Exception):
    """Base class for all arbor errors."""


class InvalidParameterError(ArborError, ValueError):
    """
    Raised when parameters fail validation.

    Parameters
    ----------
    message : str
        Summary of the failure
    errors : List[str], optional
        Individual validation messages, as returned by ``policy.validate()``
    """

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        self.errors = list(errors or [])
        if self.errors:
            message = message + ": " + "; ".join(self.errors)
        super().__init__(message)


class GenerationOverflowError(ArborError):
    """
    Raised when generation would exceed a configured ceiling.

    Carries the quantity that overflowed, the requested amount and the limit
    so callers can report or adjust the configuration.
    """

    def __init__(self, quantity: str, requested: int, limit: int, detail: str = ""):
        self.quantity = quantity
        self.requested = requested
        self.limit = limit
        message = (
            f"Generation overflow: {quantity} would reach {requested:,}, "
            f"ceiling is {limit:,}"
        )
        if detail:
            message += f" ({detail})"
        super().__init__(message)


class DegenerateGeometryError(ArborError):
    """Raised for a NaN or zero-extent geometric element."""


class ResourceExhaustionError(ArborError, MemoryError):
    """
    Raised when a scalar-field volume would exceed the memory budget.

    This error provides diagnostic information about the grid size and
    the largest resolution that fits the budget.
    """

    def __init__(
        self,
        requested_bytes: int,
        budget_bytes: int,
        grid_shape: Tuple[int, int, int],
        suggested_resolution: int,
    ):
        self.requested_bytes = requested_bytes
        self.budget_bytes = budget_bytes
        self.grid_shape = grid_shape
        self.suggested_resolution = suggested_resolution

        message = (
            f"Scalar field budget exceeded: {requested_bytes:,} bytes requested, "
            f"budget is {budget_bytes:,}.\n"
            f"Grid shape: {grid_shape[0]} x {grid_shape[1]} x {grid_shape[2]}\n"
            f"Suggested resolution: {suggested_resolution} (to fit within budget)"
        )
        super().__init__(message)


def raise_if_invalid(policy, name: Optional[str] = None) -> None:
    """Run ``policy.validate()`` and raise InvalidParameterError on failure."""
    errors = policy.validate()
    if errors:
        raise InvalidParameterError(f"Invalid {name or type(policy).__name__}", errors)


__all__ = [
    "ArborError",
    "InvalidParameterError",
    "GenerationOverflowError",
    "DegenerateGeometryError",
    "ResourceExhaustionError",
    "raise_if_invalid",
]
