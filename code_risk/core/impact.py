"""
Reachability and impact metrics over a CallGraph.

The Functionality score blends three ratios:
  F = 0.5 * impacted_entrypoint_ratio + 0.3 * reachable_nodes_ratio + 0.2 * centrality
"""

from typing import Iterable, Optional, Set

from .call_graph_builder import CallGraph
from .models import SemanticFunctionality

ENTRYPOINT_WEIGHT = 0.5
REACHABILITY_WEIGHT = 0.3
CENTRALITY_WEIGHT = 0.2


def clamp01(x: float) -> float:
    return max(0.0, min(1.0, x))


def reachable_from(graph: CallGraph, seeds: Iterable[int]) -> Set[int]:
    """All nodes reachable by following outgoing edges, seeds included."""
    seen: Set[int] = set()
    stack = list(seeds)
    while stack:
        u = stack.pop()
        if u in seen:
            continue
        seen.add(u)
        for v in graph.edges.get(u, ()):
            if v not in seen:
                stack.append(v)
    return seen


def reachable_nodes_ratio(graph: CallGraph, reach: Set[int]) -> float:
    return min(1.0, len(reach) / max(1, len(graph)))


def impacted_entrypoint_ratio(graph: CallGraph, reach: Set[int]) -> float:
    impacted = sum(1 for ep in graph.entrypoints if ep in reach)
    return min(1.0, impacted / max(1, len(graph.entrypoints)))


def centrality(graph: CallGraph, node_ids: Set[int]) -> float:
    """Average degree of `node_ids` relative to twice the graph's average degree."""
    if not len(graph):
        return 0.0

    def degree(n: int) -> int:
        return graph.in_degree.get(n, 0) + graph.out_degree.get(n, 0)

    local_avg = sum(degree(n) for n in node_ids) / len(node_ids) if node_ids else 0.0
    global_avg = sum(degree(n) for n in graph.node_ids()) / len(graph)
    if not global_avg:
        return 0.0
    return clamp01(local_avg / (global_avg * 2))


def functionality_score(graph: CallGraph) -> Optional[SemanticFunctionality]:
    """
    Graph-based Functionality signal for the graph's changed set.

    Returns None for an empty graph; callers fall back to the structural signal.
    """
    if not len(graph):
        return None

    reach = reachable_from(graph, graph.changed)
    entry_ratio = impacted_entrypoint_ratio(graph, reach)
    reach_ratio = reachable_nodes_ratio(graph, reach)
    central = centrality(graph, graph.changed)
    score = clamp01(
        ENTRYPOINT_WEIGHT * entry_ratio
        + REACHABILITY_WEIGHT * reach_ratio
        + CENTRALITY_WEIGHT * central
    )
    return SemanticFunctionality(
        score=score,
        impacted_entrypoint_ratio=round(entry_ratio, 3),
        reachable_nodes_ratio=round(reach_ratio, 3),
        centrality_score=round(central, 3),
        nodes=len(graph),
        entrypoints=len(graph.entrypoints),
    )
