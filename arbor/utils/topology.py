"""
Skeleton topology helpers built on networkx.

The skeleton itself is an index arena; these helpers expose it as a
directed graph (parent -> child) for structural checks and for splitting
it into per-branch chains that the tube sweeper consumes.
"""

import logging
from typing import Dict, List, TYPE_CHECKING

import networkx as nx

if TYPE_CHECKING:
    from ..core.skeleton import Skeleton

logger = logging.getLogger(__name__)


def skeleton_to_graph(skeleton: "Skeleton") -> nx.DiGraph:
    """
    Build a DiGraph with one node per segment and parent -> child edges.

    Node attributes: ``branch_id``, ``radius``, ``length``, ``generation``.
    """
    graph = nx.DiGraph()
    for i, seg in enumerate(skeleton.segments):
        graph.add_node(
            i,
            branch_id=seg.branch_id,
            radius=seg.radius,
            length=seg.length,
            generation=seg.generation,
        )
    for i, seg in enumerate(skeleton.segments):
        if seg.parent is not None:
            graph.add_edge(seg.parent, i)
    return graph


def is_forest(skeleton: "Skeleton") -> bool:
    """True if every segment has at most one parent and there are no cycles."""
    return nx.is_branching(skeleton_to_graph(skeleton))


def branch_chains(skeleton: "Skeleton") -> Dict[int, List[int]]:
    """
    Split a skeleton into ordered per-branch segment chains.

    A chain starts at a segment whose parent is absent or belongs to another
    branch, and follows the same-branch child until the branch ends.

    Returns
    -------
    Dict[int, List[int]]
        branch_id -> segment indices ordered from base to tip
    """
    chains: Dict[int, List[int]] = {}
    for i, seg in enumerate(skeleton.segments):
        parent = skeleton.segments[seg.parent] if seg.parent is not None else None
        if parent is not None and parent.branch_id == seg.branch_id:
            continue

        if seg.branch_id in chains:
            logger.warning(
                f"Branch {seg.branch_id} has more than one base segment; "
                f"keeping the chain starting at {chains[seg.branch_id][0]}"
            )
            continue

        chain = [i]
        current = seg
        while True:
            same = [c for c in current.children if skeleton.segments[c].branch_id == seg.branch_id]
            if not same:
                break
            chain.append(same[0])
            current = skeleton.segments[same[0]]
        chains[seg.branch_id] = chain
    return chains


def skeleton_stats(skeleton: "Skeleton") -> Dict[str, float]:
    """
    Summary metrics for reports.

    Returns
    -------
    dict
        segment, tip, junction and branch counts, total length and the
        maximum root-to-tip depth in segments
    """
    graph = skeleton_to_graph(skeleton)
    max_depth = 0
    roots = [n for n, deg in graph.in_degree() if deg == 0]
    for root in roots:
        depths = nx.single_source_shortest_path_length(graph, root)
        max_depth = max(max_depth, max(depths.values()))
    return {
        "segment_count": len(skeleton),
        "tip_count": len(skeleton.tips()),
        "junction_count": len(skeleton.junctions()),
        "branch_count": len(skeleton.branch_ids()),
        "total_length": skeleton.total_length(),
        "max_depth": max_depth,
    }


__all__ = ["skeleton_to_graph", "is_forest", "branch_chains", "skeleton_stats"]
