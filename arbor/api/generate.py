"""
Tree generation pipeline.

grammar -> L-system skeleton -> space colonization -> per-branch tubes
(tier from the tessellation controller) + junction blends + leaf instances
-> assembled mesh.

Every policy is validated before any stage runs. A call either returns a
complete, validated result or raises; degenerate individual branches are
skipped with a warning in the report.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Tuple, Union
import logging

from arbor_policies import OperationReport, OrganicPrimitivePolicy, ScalarFieldPolicy
from ..core.errors import ArborError, DegenerateGeometryError, InvalidParameterError
from ..core.mesh import Mesh, InstanceTransform
from ..core.skeleton import Skeleton
from ..ops.lsystem import LSystemSkeletonGenerator
from ..ops.space_colonization import SpaceColonizationGrower
from ..ops.junctions import JunctionBlender
from ..ops.tessellation import AdaptiveTessellationController, BranchViewMetrics, LODTier
from ..ops.foliage import place_foliage
from ..ops.primitives.tube_sweep import TubeMeshSweeper
from ..ops.primitives.organic import build_organic_component
from ..ops.mesh.assemble import assemble_meshes, smooth_normals
from ..params.config import TreeGenerationConfig
from ..params.presets import get_preset
from ..utils.rng import ensure_rng, RngLike
from ..utils.topology import branch_chains, skeleton_stats

logger = logging.getLogger(__name__)


@dataclass
class TreeResult:
    """Everything produced by one generation run."""
    skeleton: Skeleton
    base_skeleton: Skeleton
    branch_meshes: Dict[int, Mesh]
    junction_meshes: List[Mesh]
    instances: List[InstanceTransform]
    mesh: Mesh
    tiers: Dict[int, LODTier] = field(default_factory=dict)


def resolve_config(config: Union[None, str, TreeGenerationConfig]) -> TreeGenerationConfig:
    """Accept a config, a preset name, or None (defaults)."""
    if config is None:
        return TreeGenerationConfig()
    if isinstance(config, str):
        return get_preset(config)
    if isinstance(config, TreeGenerationConfig):
        return config
    raise InvalidParameterError(
        f"config must be a TreeGenerationConfig or preset name, got {type(config).__name__}"
    )


class TreeBuilder:
    """
    Stateful tree generator with LOD-driven selective regeneration.

    ``build`` runs the whole pipeline. ``update_lod`` then re-sweeps only
    the branches whose tier changed and re-assembles the mesh.

    Parameters
    ----------
    config : TreeGenerationConfig or str, optional
        Configuration or preset name
    seed : int or Generator, optional
        Overrides ``config.seed``

    Raises
    ------
    InvalidParameterError
        If any policy fails validation
    GenerationOverflowError
        If growth iterations exceed the configured ceiling
    """

    def __init__(
        self,
        config: Union[None, str, TreeGenerationConfig] = None,
        seed: RngLike = None,
    ):
        self.config = resolve_config(config)
        errors = self.config.validate()
        if errors:
            raise InvalidParameterError(f"Invalid configuration {self.config.name!r}", errors)

        self.seed = seed if seed is not None else self.config.seed
        self.generator = LSystemSkeletonGenerator(self.config.lsystem)
        self.grower = SpaceColonizationGrower(self.config.space_colonization)
        self.blender = JunctionBlender(self.config.junctions, self.config.scalar_field)
        self.sweeper = TubeMeshSweeper(self.config.tube_sweep)
        self.controller = AdaptiveTessellationController(self.config.tessellation)

        self.result: Optional[TreeResult] = None
        self._chains: Dict[int, List[int]] = {}

    def build(
        self,
        view_metrics: Optional[Mapping[int, BranchViewMetrics]] = None,
        disable_progress: bool = True,
    ) -> Tuple[TreeResult, OperationReport]:
        """
        Run the full pipeline.

        Parameters
        ----------
        view_metrics : mapping of branch_id -> BranchViewMetrics, optional
            Initial view metrics; branches without an entry get the
            policy's default tier
        disable_progress : bool
            Hide the growth progress bar

        Returns
        -------
        result : TreeResult
        report : OperationReport
            Stage reports merged under their operation names
        """
        config = self.config
        rng = ensure_rng(self.seed)
        report = OperationReport(
            operation="generate_tree",
            requested_policy=config.to_dict(),
            effective_policy=config.to_dict(),
        )

        base, lsys_report = self.generator.generate(rng)
        report.merge(lsys_report)

        if config.space_colonization.enabled:
            skeleton, growth_report = self.grower.grow(
                base, config.crown, rng, disable_progress=disable_progress
            )
            report.merge(growth_report)
        else:
            skeleton = base.copy()

        problems = skeleton.validate()
        if problems:
            raise ArborError("generated skeleton is inconsistent: " + "; ".join(problems[:5]))

        chains = branch_chains(skeleton)
        controller = AdaptiveTessellationController(config.tessellation)
        view_metrics = view_metrics or {}
        default_tier = LODTier(config.tube_sweep.default_tier)

        branch_meshes: Dict[int, Mesh] = {}
        for branch_id, chain in chains.items():
            if branch_id in view_metrics:
                tier = controller.update(branch_id, view_metrics[branch_id]).tier
            else:
                tier = default_tier
                controller.assign(branch_id, tier)
            mesh = self._sweep_branch(skeleton, chain, branch_id, tier, report)
            if mesh is not None:
                branch_meshes[branch_id] = mesh

        junction_meshes, junction_report = self.blender.blend(skeleton)
        report.merge(junction_report)

        instances, foliage_report = place_foliage(skeleton, config.foliage, rng)
        report.merge(foliage_report)

        mesh = self._assemble(branch_meshes, junction_meshes, instances, report)

        self.controller = controller
        self._chains = chains
        self.result = TreeResult(
            skeleton=skeleton,
            base_skeleton=base,
            branch_meshes=branch_meshes,
            junction_meshes=junction_meshes,
            instances=instances,
            mesh=mesh,
            tiers={b: controller.current_tier(b) for b in chains},
        )

        report.metrics["skeleton"] = skeleton_stats(skeleton)
        report.metrics["swept_branches"] = len(branch_meshes)
        logger.info(
            f"Generated tree {config.name!r}: {len(skeleton)} segments, "
            f"{len(branch_meshes)} tubes, {len(junction_meshes)} joints, "
            f"{len(instances)} leaves"
        )
        return self.result, report

    def update_lod(
        self,
        view_metrics: Mapping[int, BranchViewMetrics],
    ) -> Tuple[TreeResult, OperationReport]:
        """
        Re-score branches and rebuild only those whose tier changed.

        Parameters
        ----------
        view_metrics : mapping of branch_id -> BranchViewMetrics
            Metrics for the branches to re-score; unknown ids are ignored

        Returns
        -------
        result : TreeResult
            Updated result (same skeleton, new meshes for changed branches)
        report : OperationReport
            ``metrics["regenerated"]`` lists the rebuilt branch ids
        """
        if self.result is None:
            raise ArborError("update_lod called before build")

        report = OperationReport(operation="update_lod")
        result = self.result
        known = [(b, m) for b, m in view_metrics.items() if b in self._chains]
        saved_tiers = {b: self.controller.current_tier(b) for b, _ in known}
        decisions = self.controller.update_all(known)

        branch_meshes = dict(result.branch_meshes)
        tiers = dict(result.tiers)
        regenerated = []
        try:
            for decision in decisions:
                if not decision.needs_regeneration:
                    continue
                branch_id = decision.branch_id
                mesh = self._sweep_branch(
                    result.skeleton, self._chains[branch_id], branch_id, decision.tier, report
                )
                if mesh is None:
                    branch_meshes.pop(branch_id, None)
                else:
                    branch_meshes[branch_id] = mesh
                tiers[branch_id] = decision.tier
                regenerated.append(branch_id)

            mesh = result.mesh
            if regenerated:
                mesh = self._assemble(branch_meshes, result.junction_meshes, result.instances, report)
        except ArborError:
            for branch_id, tier in saved_tiers.items():
                if tier is None:
                    self.controller.forget(branch_id)
                else:
                    self.controller.assign(branch_id, tier)
            raise

        result.branch_meshes.clear()
        result.branch_meshes.update(branch_meshes)
        result.tiers.update(tiers)
        result.mesh = mesh
        report.metrics["regenerated"] = regenerated
        report.metrics["scored"] = len(decisions)
        logger.debug(f"LOD update rebuilt {len(regenerated)} of {len(decisions)} branches")
        return self.result, report

    def _sweep_branch(
        self,
        skeleton: Skeleton,
        chain: List[int],
        branch_id: int,
        tier: LODTier,
        report: OperationReport,
    ) -> Optional[Mesh]:
        ring, radial = self.controller.segments_for(tier)
        try:
            mesh = self.sweeper.sweep_branch(skeleton, chain, ring, radial)
        except DegenerateGeometryError as e:
            message = f"Skipped branch {branch_id}: {e}"
            logger.warning(message)
            report.add_warning(message)
            return None
        if tier.smooth_normals:
            mesh.normals = smooth_normals(mesh)
        return mesh

    def build_component(self, kind: str, length: float, radius: float) -> Tuple[Mesh, OperationReport]:
        """Build an organic component with this builder's ``organic`` and ``scalar_field`` policies."""
        return build_component(kind, length, radius, self.config.organic, self.config.scalar_field)

    def _assemble(
        self,
        branch_meshes: Dict[int, Mesh],
        junction_meshes: List[Mesh],
        instances: List[InstanceTransform],
        report: OperationReport,
    ) -> Mesh:
        pieces = [branch_meshes[b] for b in sorted(branch_meshes)]
        pieces.extend(junction_meshes)
        mesh, assembly_report = assemble_meshes(pieces, instances, self.config.assembly)
        report.merge(assembly_report)
        return mesh


def generate_tree(
    config: Union[None, str, TreeGenerationConfig] = None,
    seed: RngLike = None,
    view_metrics: Optional[Mapping[int, BranchViewMetrics]] = None,
    disable_progress: bool = True,
) -> Tuple[TreeResult, OperationReport]:
    """
    Generate a tree in one call.

    Parameters
    ----------
    config : TreeGenerationConfig or str, optional
        Configuration or preset name (defaults if None)
    seed : int or Generator, optional
        Overrides ``config.seed``; identical config and seed give identical output
    view_metrics : mapping of branch_id -> BranchViewMetrics, optional
        Initial per-branch view metrics
    disable_progress : bool
        Hide the growth progress bar

    Returns
    -------
    result : TreeResult
    report : OperationReport
    """
    builder = TreeBuilder(config, seed)
    return builder.build(view_metrics, disable_progress=disable_progress)


def build_component(
    kind: str,
    length: float,
    radius: float,
    policy: Optional[OrganicPrimitivePolicy] = None,
    field_policy: Optional[ScalarFieldPolicy] = None,
) -> Tuple[Mesh, OperationReport]:
    """
    Build a stand-alone organic component (trunk, branches, leaves, flowers).

    Returns
    -------
    mesh : Mesh
    report : OperationReport
    """
    policy = policy or OrganicPrimitivePolicy()
    mesh = build_organic_component(kind, length, radius, policy, field_policy)
    report = OperationReport(
        operation="build_component",
        requested_policy=policy.to_dict(),
        effective_policy=policy.to_dict(),
        metrics={
            "kind": kind,
            "vertex_count": mesh.vertex_count,
            "face_count": mesh.face_count,
        },
    )
    if mesh.is_empty:
        report.add_warning(f"{kind} component produced an empty surface")
    return mesh, report


__all__ = ["TreeResult", "TreeBuilder", "generate_tree", "build_component", "resolve_config"]
