"""
Base utilities for arbor policies.

This module provides the OperationReport dataclass returned by every
policy-driven operation, plus small coercion helpers shared by the
policy ``from_dict`` constructors.
"""

from dataclasses import dataclass, field, asdict
from typing import Optional, Dict, Any, List, Tuple
import json
import math


def coerce_vec3(
    value: Any,
    default: Tuple[float, float, float] = (0.0, 0.0, 0.0)
) -> Tuple[float, float, float]:
    """
    Coerce a value to a 3D vector tuple.

    Accepts:
    - tuple/list/ndarray of 3 numbers
    - dict with x, y, z keys

    Parameters
    ----------
    value : Any
        Value to coerce
    default : tuple
        Default value if coercion fails

    Returns
    -------
    Tuple[float, float, float]
        Coerced 3D vector
    """
    if value is None:
        return default

    if isinstance(value, dict) and all(k in value for k in ("x", "y", "z")):
        try:
            return (float(value["x"]), float(value["y"]), float(value["z"]))
        except (TypeError, ValueError):
            return default

    try:
        if len(value) >= 3:
            return (float(value[0]), float(value[1]), float(value[2]))
    except (TypeError, ValueError):
        return default

    return default


def is_finite_vec3(value: Any) -> bool:
    """Return True if ``value`` is a length-3 sequence of finite numbers."""
    try:
        return len(value) == 3 and all(math.isfinite(float(v)) for v in value)
    except (TypeError, ValueError):
        return False


@dataclass
class OperationReport:
    """
    Standard report structure for all operations.

    Every operation returns a report with requested vs effective policy,
    warnings, and operation-specific metrics. Degenerate elements that were
    skipped are recorded as warnings rather than errors, since they do not
    fail the operation.
    """
    operation: str = "unknown"
    success: bool = True
    requested_policy: Dict[str, Any] = field(default_factory=dict)
    effective_policy: Dict[str, Any] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    metrics: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2, default=_json_default)

    def add_warning(self, message: str) -> None:
        """Add a warning message."""
        self.warnings.append(message)

    def add_error(self, message: str) -> None:
        """Add an error message and mark as failed."""
        self.errors.append(message)
        self.success = False

    def merge(self, other: "OperationReport", prefix: Optional[str] = None) -> None:
        """
        Merge another report into this one.

        Metrics of the merged report are namespaced under ``prefix`` (or the
        other report's operation name) so stage metrics do not collide.
        """
        self.warnings.extend(other.warnings)
        self.errors.extend(other.errors)
        if not other.success:
            self.success = False
        self.metrics[prefix or other.operation] = dict(other.metrics)


def _json_default(obj: Any) -> Any:
    # numpy scalars and arrays end up in metrics
    if hasattr(obj, "tolist"):
        return obj.tolist()
    if hasattr(obj, "item"):
        return obj.item()
    return str(obj)


__all__ = [
    "OperationReport",
    "coerce_vec3",
    "is_finite_vec3",
]
