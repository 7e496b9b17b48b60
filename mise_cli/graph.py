"""Dependency graph construction, cycle detection and queries.

A :class:`DependencyGraph` is built once per analysis from the complete edge
list and is read-only afterwards, so queries can be shared freely.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, List, Mapping, Set, Tuple

from .models import CycleDetected, DependencyEdge

logger = logging.getLogger(__name__)

FORWARD = "forward"
REVERSE = "reverse"


@dataclass(frozen=True)
class Traversal:
    """Result of a bounded BFS: ``levels[0]`` holds the seeds."""

    levels: Tuple[Tuple[str, ...], ...]
    truncated: bool = False

    def at(self, depth: int) -> Tuple[str, ...]:
        return self.levels[depth] if depth < len(self.levels) else ()


@dataclass(frozen=True)
class DependencyGraph:
    nodes: Tuple[str, ...] = ()
    forward: Mapping[str, FrozenSet[str]] = field(default_factory=dict)
    reverse: Mapping[str, FrozenSet[str]] = field(default_factory=dict)

    def __contains__(self, path: str) -> bool:
        return path in self.forward

    def forward_neighbors(self, path: str) -> List[str]:
        """Files *path* depends on."""
        return sorted(self.forward.get(path, ()))

    def reverse_neighbors(self, path: str) -> List[str]:
        """Files that depend on *path*."""
        return sorted(self.reverse.get(path, ()))

    def edges(self) -> List[DependencyEdge]:
        return [
            DependencyEdge(src, dst)
            for src in self.nodes
            for dst in self.forward_neighbors(src)
        ]

    def edge_count(self) -> int:
        return sum(len(targets) for targets in self.forward.values())

    def _adjacency(self, direction: str) -> Mapping[str, FrozenSet[str]]:
        if direction == FORWARD:
            return self.forward
        if direction == REVERSE:
            return self.reverse
        raise ValueError(f"Unknown direction: {direction!r}")

    def traverse(self, seeds: Iterable[str], direction: str = REVERSE, max_depth: int = 3) -> Traversal:
        """Multi-source BFS; each node is assigned its minimum depth.

        ``truncated`` is set when nodes at *max_depth* still have
        undiscovered neighbours.
        """
        if max_depth < 1:
            raise ValueError("max_depth must be >= 1")
        adjacency = self._adjacency(direction)
        start = sorted(set(seeds))
        seen: Set[str] = set(start)
        levels: List[Tuple[str, ...]] = [tuple(start)]
        frontier = start
        for _ in range(max_depth):
            discovered: Set[str] = set()
            for node in frontier:
                for neighbor in adjacency.get(node, ()):
                    if neighbor not in seen:
                        discovered.add(neighbor)
            if not discovered:
                break
            seen.update(discovered)
            frontier = sorted(discovered)
            levels.append(tuple(frontier))

        truncated = False
        if len(levels) == max_depth + 1:
            truncated = any(
                neighbor not in seen
                for node in levels[-1]
                for neighbor in adjacency.get(node, ())
            )
        return Traversal(levels=tuple(levels), truncated=truncated)

    def tree(self, path: str, direction: str = FORWARD, max_depth: int = 3) -> Dict[str, object]:
        """Nested ``{"path", "children", "cycle"}`` mapping rooted at *path*.

        Nodes already on the current branch are emitted once with
        ``cycle=True`` and not expanded again.
        """
        adjacency = self._adjacency(direction)

        def _build(node: str, depth: int, branch: FrozenSet[str]) -> Dict[str, object]:
            if node in branch:
                return {"path": node, "children": [], "cycle": True}
            children: List[Dict[str, object]] = []
            if depth < max_depth:
                for child in sorted(adjacency.get(node, ())):
                    children.append(_build(child, depth + 1, branch | {node}))
            return {"path": node, "children": children, "cycle": False}

        return _build(path, 0, frozenset())


# ===================================================================
# Builder
# ===================================================================

def build_graph(
    nodes: Iterable[str],
    edges: Iterable[DependencyEdge],
) -> Tuple[DependencyGraph, List[CycleDetected]]:
    """Build the graph in one pass and report every cycle found in it.

    Self-loops are dropped and duplicate edges collapse.  Edge endpoints are
    added to the node set.
    """
    node_set: Set[str] = set(nodes)
    forward: Dict[str, Set[str]] = {}
    reverse: Dict[str, Set[str]] = {}
    for edge in edges:
        node_set.add(edge.source)
        node_set.add(edge.target)
        if edge.source == edge.target:
            continue
        forward.setdefault(edge.source, set()).add(edge.target)
        reverse.setdefault(edge.target, set()).add(edge.source)

    ordered = tuple(sorted(node_set))
    graph = DependencyGraph(
        nodes=ordered,
        forward={n: frozenset(forward.get(n, ())) for n in ordered},
        reverse={n: frozenset(reverse.get(n, ())) for n in ordered},
    )
    cycles = find_cycles(graph)
    if cycles:
        logger.debug("Found %d dependency cycle(s)", len(cycles))
    return graph, cycles


def strongly_connected_components(graph: DependencyGraph) -> List[List[str]]:
    """Iterative Tarjan SCC over the forward graph, in discovery order."""
    index_of: Dict[str, int] = {}
    lowlink: Dict[str, int] = {}
    on_stack: Set[str] = set()
    stack: List[str] = []
    components: List[List[str]] = []
    counter = 0

    for root in graph.nodes:
        if root in index_of:
            continue
        work: List[Tuple[str, int]] = [(root, 0)]
        while work:
            node, child_idx = work.pop()
            if child_idx == 0:
                index_of[node] = lowlink[node] = counter
                counter += 1
                stack.append(node)
                on_stack.add(node)

            children = graph.forward_neighbors(node)
            recursed = False
            for i in range(child_idx, len(children)):
                child = children[i]
                if child not in index_of:
                    work.append((node, i + 1))
                    work.append((child, 0))
                    recursed = True
                    break
                if child in on_stack:
                    lowlink[node] = min(lowlink[node], index_of[child])
            if recursed:
                continue

            if lowlink[node] == index_of[node]:
                component: List[str] = []
                while True:
                    member = stack.pop()
                    on_stack.discard(member)
                    component.append(member)
                    if member == node:
                        break
                components.append(sorted(component))

            if work:
                parent = work[-1][0]
                lowlink[parent] = min(lowlink[parent], lowlink[node])

    return components


def _shortest_cycle(graph: DependencyGraph, start: str, members: Set[str]) -> Tuple[str, ...]:
    """Shortest path from *start* back to itself inside one SCC."""
    parents: Dict[str, str] = {}
    queue = deque([start])
    seen = {start}
    while queue:
        node = queue.popleft()
        for child in graph.forward_neighbors(node):
            if child not in members:
                continue
            if child == start:
                path = [node]
                while path[-1] != start:
                    path.append(parents[path[-1]])
                return tuple(reversed(path))
            if child not in seen:
                seen.add(child)
                parents[child] = node
                queue.append(child)
    return (start,)


def find_cycles(graph: DependencyGraph) -> List[CycleDetected]:
    """One :class:`CycleDetected` per SCC with more than one member."""
    cycles = [
        CycleDetected(_shortest_cycle(graph, component[0], set(component)))
        for component in strongly_connected_components(graph)
        if len(component) > 1
    ]
    return sorted(cycles, key=lambda c: c.cycle)
