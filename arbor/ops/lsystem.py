"""
L-system skeleton generation.

Rewrites an axiom with a set of single-symbol production rules and walks
the result with a 3D turtle to produce a Skeleton.

Turtle alphabet
---------------
F      draw forward: emit a segment of the current length
f      move forward without drawing
+ -    yaw about the turtle up axis
& ^    pitch about the turtle left axis
\\ /    roll about the heading
|      turn around
[ ]    push / pop turtle state

Any other symbol is a no-op during interpretation.

Before every F the heading is nudged toward the tropism vector and
perturbed by jitter drawn from the supplied generator, then re-normalized
and kept. Opening a bracket starts a new branch id and scales length by
``length_decay`` and radius by ``branch_radius_ratio``. Radius is
multiplied by ``radius_taper`` after every emitted segment and never drops
below ``min_radius``.

Closing a bracket with an empty stack is not fatal: it is logged, counted
in the report as ``unbalanced_pops`` and otherwise ignored.

UNIT CONVENTIONS
----------------
Lengths and radii are in scene units. The turtle starts at the origin
heading +Y (up).
"""

from collections import Counter
from dataclasses import dataclass, replace
from typing import List, Optional, Tuple
import logging
import math

import numpy as np

from arbor_policies import LSystemPolicy, OperationReport
from ..core.errors import DegenerateGeometryError, GenerationOverflowError, raise_if_invalid
from ..core.skeleton import Skeleton, SKELETON_GENERATION
from ..utils.geometry import normalize, rotate_about_axis, any_perpendicular
from ..utils.rng import ensure_rng, RngLike

logger = logging.getLogger(__name__)


@dataclass
class TurtleState:
    """Interpretation state pushed by '[' and restored by ']'."""
    position: np.ndarray
    heading: np.ndarray
    left: np.ndarray
    length: float
    radius: float
    branch_id: int
    last_segment: Optional[int] = None

    @property
    def up(self) -> np.ndarray:
        return np.cross(self.heading, self.left)

    def copy(self) -> "TurtleState":
        return replace(self, position=self.position.copy(),
                       heading=self.heading.copy(), left=self.left.copy())


def predicted_length(s: str, rules: dict) -> int:
    """Length of ``s`` after one parallel rewrite, without building it."""
    counts = Counter(s)
    return sum(n * len(rules.get(symbol, symbol)) for symbol, n in counts.items())


class LSystemSkeletonGenerator:
    """
    Grammar rewriting plus turtle interpretation.

    Parameters
    ----------
    policy : LSystemPolicy, optional
        Grammar and turtle parameters. Validated on construction.
    """

    def __init__(self, policy: Optional[LSystemPolicy] = None):
        self.policy = policy or LSystemPolicy()
        raise_if_invalid(self.policy, "L-system policy")
        self._table = str.maketrans(self.policy.rules)

    def generate_string(self) -> str:
        """
        Apply the rules to every symbol, ``iterations`` times.

        The length of each rewrite is predicted from symbol counts before the
        string is built, so an exploding grammar fails immediately.

        Returns
        -------
        str
            The rewritten string, never longer than ``max_string_length``

        Raises
        ------
        GenerationOverflowError
            If the axiom or any rewrite would exceed ``max_string_length``
        """
        limit = self.policy.max_string_length
        current = self.policy.axiom
        if len(current) > limit:
            raise GenerationOverflowError("grammar string length", len(current), limit, "axiom")

        for i in range(self.policy.iterations):
            next_length = predicted_length(current, self.policy.rules)
            if next_length > limit:
                raise GenerationOverflowError(
                    "grammar string length", next_length, limit,
                    f"iteration {i + 1} of {self.policy.iterations}",
                )
            current = current.translate(self._table)
            logger.debug(f"L-system iteration {i + 1}: {len(current)} symbols")

        return current

    def interpret_string(
        self,
        s: str,
        rng: RngLike = None,
        report: Optional[OperationReport] = None,
    ) -> Skeleton:
        """
        Walk ``s`` with the turtle and emit a Skeleton.

        Parent links follow bracket nesting: each emitted segment's parent is
        the last segment emitted in the current (restored) turtle state.

        Parameters
        ----------
        s : str
            Symbol string to interpret
        rng : Generator or int, optional
            Source of jitter; a seed builds a fresh generator
        report : OperationReport, optional
            Receives warnings and interpretation metrics

        Returns
        -------
        Skeleton
            Skeleton whose segments all have finite positions and radius >= min_radius
        """
        rng = ensure_rng(rng)
        policy = self.policy
        if report is None:
            report = OperationReport(operation="lsystem_interpret")

        skeleton = Skeleton(metadata={"source": "lsystem"})
        angle = policy.angle_rad
        tropism = np.asarray(policy.tropism, dtype=float)

        state = TurtleState(
            position=np.zeros(3),
            heading=np.array([0.0, 1.0, 0.0]),
            left=np.array([-1.0, 0.0, 0.0]),
            length=float(policy.segment_length),
            radius=float(policy.initial_radius),
            branch_id=skeleton.new_branch_id(),
        )
        stack: List[TurtleState] = []
        unbalanced_pops = 0
        skipped = 0
        max_depth = 0

        for symbol in s:
            if symbol == "F":
                if not self._steer(state, tropism, rng):
                    skipped += 1
                    _warn(report, f"Skipped F with degenerate heading at {state.position.tolist()}")
                    continue
                end = state.position + state.heading * state.length
                try:
                    index = skeleton.add_segment(
                        state.position, end, state.radius, state.branch_id,
                        parent=state.last_segment, generation=SKELETON_GENERATION,
                    )
                except DegenerateGeometryError as e:
                    skipped += 1
                    _warn(report, f"Skipped degenerate segment: {e}")
                    continue
                state.position = end
                state.last_segment = index
                state.radius = max(state.radius * policy.radius_taper, policy.min_radius)

            elif symbol == "f":
                state.position = state.position + state.heading * state.length

            elif symbol in "+-":
                sign = 1.0 if symbol == "+" else -1.0
                self._turn(state, state.up, sign * self._jittered(angle, rng), ("heading", "left"))

            elif symbol in "&^":
                sign = 1.0 if symbol == "&" else -1.0
                self._turn(state, state.left, sign * self._jittered(angle, rng), ("heading",))

            elif symbol in "\\/":
                sign = 1.0 if symbol == "\\" else -1.0
                self._turn(state, state.heading, sign * self._jittered(angle, rng), ("left",))

            elif symbol == "|":
                self._turn(state, state.up, math.pi, ("heading", "left"))

            elif symbol == "[":
                stack.append(state.copy())
                max_depth = max(max_depth, len(stack))
                state.branch_id = skeleton.new_branch_id()
                state.length *= policy.length_decay
                state.radius = max(state.radius * policy.branch_radius_ratio, policy.min_radius)

            elif symbol == "]":
                if not stack:
                    unbalanced_pops += 1
                    logger.warning("Ignoring ']' with an empty turtle stack")
                    continue
                state = stack.pop()

        if stack:
            _warn(report, f"{len(stack)} unclosed '[' at end of string")

        report.metrics.update({
            "string_length": len(s),
            "segment_count": len(skeleton),
            "branch_count": len(skeleton.branch_ids()),
            "skipped_segments": skipped,
            "unbalanced_pops": unbalanced_pops,
            "final_stack_depth": len(stack),
            "max_stack_depth": max_depth,
        })
        if unbalanced_pops:
            report.add_warning(f"{unbalanced_pops} ']' with empty stack ignored")

        return skeleton

    def generate(self, rng: RngLike = None) -> Tuple[Skeleton, OperationReport]:
        """
        Rewrite the axiom and interpret the result.

        Returns
        -------
        skeleton : Skeleton
            Generated base skeleton
        report : OperationReport
            Report with string and interpretation metrics
        """
        report = OperationReport(
            operation="lsystem_generate",
            requested_policy=self.policy.to_dict(),
            effective_policy=self.policy.to_dict(),
        )
        s = self.generate_string()
        skeleton = self.interpret_string(s, rng=rng, report=report)
        logger.info(
            f"L-system produced {len(skeleton)} segments from {len(s)} symbols "
            f"({self.policy.iterations} iterations)"
        )
        return skeleton, report

    def _steer(self, state: TurtleState, tropism: np.ndarray, rng: np.random.Generator) -> bool:
        """Apply tropism and jitter to the heading. False if it degenerates."""
        policy = self.policy
        noise = policy.jitter * rng.uniform(-0.5, 0.5, size=3)
        heading = normalize(state.heading + policy.tropism_strength * tropism + noise)
        if heading is None:
            return False
        left = normalize(state.left - np.dot(state.left, heading) * heading)
        if left is None:
            left = any_perpendicular(heading)
        state.heading = heading
        state.left = left
        return True

    def _jittered(self, angle: float, rng: np.random.Generator) -> float:
        return angle * (1.0 + self.policy.jitter * rng.uniform(-0.5, 0.5))

    @staticmethod
    def _turn(state: TurtleState, axis: np.ndarray, angle: float, names: Tuple[str, ...]) -> None:
        axis = axis / np.linalg.norm(axis)
        for name in names:
            setattr(state, name, rotate_about_axis(getattr(state, name), axis, angle))


def _warn(report: OperationReport, message: str) -> None:
    logger.warning(message)
    report.add_warning(message)


def generate_lsystem_skeleton(
    policy: Optional[LSystemPolicy] = None,
    seed: RngLike = None,
) -> Tuple[Skeleton, OperationReport]:
    """
    Convenience wrapper: build a generator and run it once.

    Parameters
    ----------
    policy : LSystemPolicy, optional
        Grammar and turtle parameters
    seed : int or Generator, optional
        Seed or generator for jitter

    Returns
    -------
    skeleton : Skeleton
    report : OperationReport
    """
    return LSystemSkeletonGenerator(policy).generate(rng=seed)


__all__ = [
    "LSystemSkeletonGenerator",
    "TurtleState",
    "generate_lsystem_skeleton",
    "predicted_length",
]
