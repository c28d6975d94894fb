import pytest

from code_risk.core.call_graph_builder import CallGraph, CallGraphBuilder, CallGraphNode, NodeKey
from code_risk.core.impact import (
    centrality,
    functionality_score,
    impacted_entrypoint_ratio,
    reachable_from,
    reachable_nodes_ratio,
)


def _make_graph(names, edges, entrypoints=(), changed=()):
    graph = CallGraph(unit="unit.ts")
    ids = {}
    for name in names:
        ids[name] = graph.add_node(CallGraphNode(
            key=NodeKey("unit.ts", name),
            kind="function",
            line_start=1,
            line_end=1,
            signature=f"function {name}() {{}}",
        ))
    for src, dst in edges:
        graph.add_edge(ids[src], ids[dst])
    graph.entrypoints = {ids[n] for n in entrypoints}
    graph.changed = {ids[n] for n in changed}
    return graph, ids


def test_reachability_follows_outgoing_edges_and_includes_seeds():
    graph, ids = _make_graph(["a", "b", "c", "d"], [("a", "b"), ("b", "c"), ("c", "a")])

    assert reachable_from(graph, {ids["b"]}) == {ids["a"], ids["b"], ids["c"]}
    assert reachable_from(graph, {ids["d"]}) == {ids["d"]}
    assert reachable_from(graph, set()) == set()


def test_duplicate_edges_do_not_inflate_degrees():
    graph, ids = _make_graph(["a", "b"], [("a", "b")])

    assert graph.add_edge(ids["a"], ids["b"]) is False
    assert graph.out_degree[ids["a"]] == 1
    assert graph.in_degree[ids["b"]] == 1


def test_ratios():
    graph, ids = _make_graph(
        ["a", "b", "c", "d"], [("a", "b")], entrypoints=["a", "d"], changed=["a"]
    )
    reach = reachable_from(graph, graph.changed)

    assert reachable_nodes_ratio(graph, reach) == 0.5
    assert impacted_entrypoint_ratio(graph, reach) == 0.5


def test_entrypoint_ratio_without_entrypoints_is_zero():
    graph, ids = _make_graph(["a"], [], changed=["a"])
    assert impacted_entrypoint_ratio(graph, {ids["a"]}) == 0.0


def test_centrality_is_relative_to_twice_the_global_average():
    graph, ids = _make_graph(["a", "b", "c", "d"], [("a", "b"), ("b", "c")])

    # degrees: a=1, b=2, c=1, d=0 -> global average 1
    assert centrality(graph, {ids["b"]}) == pytest.approx(1.0)
    assert centrality(graph, {ids["a"]}) == pytest.approx(0.5)
    assert centrality(graph, set()) == 0.0


def test_centrality_of_edgeless_graph_is_zero():
    graph, ids = _make_graph(["a", "b"], [])
    assert centrality(graph, {ids["a"]}) == 0.0


def test_empty_graph_has_no_functionality_score():
    assert functionality_score(CallGraph(unit="unit.ts")) is None


def test_functionality_score_when_everything_changed(sample_typescript_code):
    graph = CallGraphBuilder().build(sample_typescript_code)
    f = functionality_score(graph)

    assert f.impacted_entrypoint_ratio == 1.0
    assert f.reachable_nodes_ratio == 1.0
    assert f.centrality_score == pytest.approx(0.5)
    assert f.score == pytest.approx(0.5 + 0.3 + 0.1)
    assert f.nodes == 4
    assert f.entrypoints == 1


def test_functionality_score_for_a_leaf_change(sample_typescript_code):
    previous = sample_typescript_code.replace("x.toString()", "String(x)")
    graph = CallGraphBuilder().build(sample_typescript_code, previous_code=previous)
    f = functionality_score(graph)

    assert graph.names(graph.changed) == {"format"}
    assert f.impacted_entrypoint_ratio == 0.0
    assert f.reachable_nodes_ratio == 0.25
    assert f.score == pytest.approx(0.3 * 0.25 + 0.2 * 0.5)


def test_functionality_score_is_zero_when_nothing_changed(sample_typescript_code):
    graph = CallGraphBuilder().build(sample_typescript_code, previous_code=sample_typescript_code)
    assert functionality_score(graph).score == 0.0
