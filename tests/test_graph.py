"""Tests for graph construction, cycle detection and traversal."""

import pytest

from mise_cli.graph import FORWARD, REVERSE, build_graph, strongly_connected_components
from mise_cli.models import DependencyEdge


def _edges(*pairs):
    return [DependencyEdge(a, b) for a, b in pairs]


class TestBuildGraph:
    """Tests for build_graph."""

    def test_empty_project(self):
        graph, cycles = build_graph([], [])
        assert graph.nodes == ()
        assert graph.edges() == []
        assert cycles == []

    def test_forward_and_reverse_maps(self):
        graph, _ = build_graph(["a", "b", "c"], _edges(("a", "b"), ("b", "c"), ("a", "c")))
        assert graph.forward_neighbors("a") == ["b", "c"]
        assert graph.reverse_neighbors("c") == ["a", "b"]
        assert graph.reverse_neighbors("a") == []

    def test_self_loops_are_dropped(self):
        graph, cycles = build_graph(["a"], _edges(("a", "a")))
        assert graph.forward_neighbors("a") == []
        assert cycles == []

    def test_duplicates_collapse(self):
        graph, _ = build_graph([], _edges(("a", "b"), ("a", "b")))
        assert graph.edges() == [DependencyEdge("a", "b")]
        assert graph.edge_count() == 1

    def test_edge_endpoints_become_nodes(self):
        graph, _ = build_graph(["a"], _edges(("a", "README.md")))
        assert "README.md" in graph
        assert graph.nodes == ("README.md", "a")

    def test_build_is_deterministic(self):
        pairs = [("x", "y"), ("y", "z"), ("a", "z"), ("z", "x")]
        first, first_cycles = build_graph(["q"], _edges(*pairs))
        second, second_cycles = build_graph(["q"], _edges(*reversed(pairs)))
        assert first.edges() == second.edges()
        assert first.nodes == second.nodes
        assert [first.reverse_neighbors(n) for n in first.nodes] == [
            second.reverse_neighbors(n) for n in second.nodes
        ]
        assert first_cycles == second_cycles


class TestCycles:
    """Tests for SCC-based cycle detection."""

    def test_two_node_cycle(self):
        _, cycles = build_graph([], _edges(("a.py", "b.py"), ("b.py", "a.py")))
        assert len(cycles) == 1
        assert cycles[0].cycle == ("a.py", "b.py")
        assert cycles[0].code == "CIRCULAR_DEPENDENCY"
        assert cycles[0].message == "Circular dependency detected: a.py -> b.py -> a.py"

    def test_shortest_cycle_through_smallest_member(self):
        # a -> b -> c -> a and a -> c -> a both exist; the shorter one wins
        _, cycles = build_graph([], _edges(("a", "b"), ("b", "c"), ("c", "a"), ("a", "c")))
        assert [c.cycle for c in cycles] == [("a", "c")]

    def test_one_diagnostic_per_component(self):
        edges = _edges(("a", "b"), ("b", "a"), ("x", "y"), ("y", "z"), ("z", "x"), ("b", "x"))
        _, cycles = build_graph([], edges)
        assert [c.cycle for c in cycles] == [("a", "b"), ("x", "y", "z")]

    def test_acyclic_graph(self):
        _, cycles = build_graph([], _edges(("a", "b"), ("b", "c")))
        assert cycles == []

    def test_long_chain_does_not_recurse(self):
        n = 5000
        edges = [DependencyEdge(f"f{i:05d}", f"f{i + 1:05d}") for i in range(n)]
        edges.append(DependencyEdge(f"f{n:05d}", "f00000"))
        graph, cycles = build_graph([], edges)
        assert len(cycles) == 1
        assert len(cycles[0].cycle) == n + 1
        assert len(strongly_connected_components(graph)) == 1


class TestTraversal:
    """Tests for bounded BFS and tree views."""

    @pytest.fixture
    def chain(self):
        graph, _ = build_graph([], _edges(("a", "b"), ("b", "c"), ("c", "d")))
        return graph

    def test_reverse_levels(self, chain):
        traversal = chain.traverse(["d"], direction=REVERSE, max_depth=3)
        assert traversal.levels == (("d",), ("c",), ("b",), ("a",))
        assert traversal.truncated is False

    def test_depth_limit_sets_truncated(self, chain):
        traversal = chain.traverse(["d"], direction=REVERSE, max_depth=2)
        assert traversal.levels == (("d",), ("c",), ("b",))
        assert traversal.truncated is True

    def test_forward_direction(self, chain):
        assert chain.traverse(["a"], direction=FORWARD, max_depth=1).at(1) == ("b",)

    def test_minimum_depth_wins(self):
        graph, _ = build_graph([], _edges(("a", "c"), ("a", "b"), ("b", "c")))
        traversal = graph.traverse(["c"], direction=REVERSE, max_depth=3)
        assert traversal.levels == (("c",), ("a", "b"))

    def test_cycles_terminate(self):
        graph, _ = build_graph([], _edges(("a", "b"), ("b", "a")))
        traversal = graph.traverse(["a"], direction=REVERSE, max_depth=10)
        assert traversal.levels == (("a",), ("b",))

    def test_invalid_depth(self, chain):
        with pytest.raises(ValueError):
            chain.traverse(["a"], max_depth=0)

    def test_unknown_direction(self, chain):
        with pytest.raises(ValueError):
            chain.traverse(["a"], direction="sideways")

    def test_tree_marks_cycles(self):
        graph, _ = build_graph([], _edges(("a", "b"), ("b", "a")))
        tree = graph.tree("a", direction=FORWARD, max_depth=5)
        assert tree["path"] == "a"
        child = tree["children"][0]
        assert child["path"] == "b"
        assert child["children"][0] == {"path": "a", "children": [], "cycle": True}
