"""Dependency graph normalization with deterministic cycle detection."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass, replace
from types import MappingProxyType

from recovery_sim.constants import OWNERS
from recovery_sim.domain.errors import CycleDetectedError, Result
from recovery_sim.domain.models import (
    PlainDataModel,
    SimulationConstraint,
    SimulationDependency,
    SimulationGraph,
    SimulationNode,
)

_WHITE = 0
_GRAY = 1
_BLACK = 2


def normalize_id(raw: str) -> str:
    """Canonical node identifier: trimmed and lower-cased."""
    return raw.strip().lower()


class DependencyGraph:
    """Directed adjacency-list graph keyed by normalized node id.

    Nodes keep insertion order so every traversal is deterministic for a given input.
    """

    __slots__ = ("_children", "_parents")

    def __init__(
        self,
        nodes: Iterable[str] | None = None,
        edges: Iterable[tuple[str, str]] | None = None,
    ) -> None:
        self._children: dict[str, dict[str, None]] = {}
        self._parents: dict[str, dict[str, None]] = {}

        if nodes is not None:
            for node_id in nodes:
                self.add_node(node_id)
        if edges is not None:
            for parent, child in edges:
                self.add_edge(parent, child)

    @property
    def nodes(self) -> tuple[str, ...]:
        return tuple(self._children)

    @property
    def edges(self) -> tuple[tuple[str, str], ...]:
        return tuple(
            (parent, child) for parent, children in self._children.items() for child in children
        )

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._children

    def add_node(self, node_id: str) -> None:
        if not node_id:
            raise ValueError("Node ID must be non-empty.")
        if node_id in self._children:
            return
        self._children[node_id] = {}
        self._parents[node_id] = {}

    def add_edge(self, parent: str, child: str) -> None:
        """Add ``parent -> child``; both endpoints must already exist."""
        if parent not in self._children or child not in self._children:
            raise KeyError(f"Unknown edge endpoint: {parent} -> {child}")
        self._children[parent][child] = None
        self._parents[child][parent] = None

    def children(self, node_id: str) -> tuple[str, ...]:
        return tuple(self._children[node_id])

    def parents(self, node_id: str) -> tuple[str, ...]:
        return tuple(self._parents[node_id])

    def roots(self) -> tuple[str, ...]:
        """Nodes with in-degree 0."""
        return tuple(node for node, parents in self._parents.items() if not parents)

    def leaves(self) -> tuple[str, ...]:
        """Nodes with out-degree 0."""
        return tuple(node for node, children in self._children.items() if not children)

    def adjacency(self) -> Mapping[str, tuple[str, ...]]:
        return MappingProxyType(
            {node: tuple(children) for node, children in self._children.items()}
        )

    def detect_cycles(self) -> tuple[tuple[str, ...], ...]:
        """
        Detect directed cycles with an iterative three-color DFS.

        Returns cycle paths as closed paths, e.g. ``("a", "b", "c", "a")``.
        """
        state: dict[str, int] = {}
        stack: list[str] = []
        stack_index: dict[str, int] = {}
        cycles: dict[tuple[str, ...], None] = {}

        for start in self._children:
            if state.get(start, _WHITE) != _WHITE:
                continue

            state[start] = _GRAY
            stack_index[start] = len(stack)
            stack.append(start)
            frames: list[tuple[str, Iterator[str]]] = [(start, iter(self._children[start]))]

            while frames:
                node, child_iter = frames[-1]
                try:
                    child = next(child_iter)
                except StopIteration:
                    frames.pop()
                    state[node] = _BLACK
                    stack.pop()
                    del stack_index[node]
                    continue

                child_state = state.get(child, _WHITE)
                if child_state == _WHITE:
                    state[child] = _GRAY
                    stack_index[child] = len(stack)
                    stack.append(child)
                    frames.append((child, iter(self._children[child])))
                elif child_state == _GRAY:
                    cycle = tuple(stack[stack_index[child] :] + [child])
                    cycles[_canonicalize_cycle(cycle)] = None

        return tuple(sorted(cycles))

    def assert_acyclic(self) -> None:
        """Raise ``CycleDetectedError`` when any cycle exists."""
        cycles = self.detect_cycles()
        if cycles:
            raise CycleDetectedError(cycles)


@dataclass(frozen=True, slots=True)
class NormalizedGraph(PlainDataModel):
    nodes: tuple[SimulationNode, ...]
    dependencies: tuple[SimulationDependency, ...]
    adjacency: Mapping[str, tuple[str, ...]]
    root_nodes: tuple[str, ...]
    leaf_nodes: tuple[str, ...]

    @property
    def node_ids(self) -> tuple[str, ...]:
        return tuple(node.id for node in self.nodes)


def normalize_graph(
    graph: SimulationGraph,
    constraints: SimulationConstraint,
) -> Result[NormalizedGraph]:
    """
    Canonicalize ids, drop dangling edges, and reject cyclic graphs.

    When ``constraints.min_window_coverage <= 0`` no dependency edge enters the adjacency,
    so every node is both a root and a leaf.
    """
    nodes = _normalize_nodes(graph.nodes)
    known = {node.id for node in nodes}
    dependencies = _normalize_dependencies(graph.dependencies, known)

    directed = DependencyGraph(nodes=(node.id for node in nodes))
    if constraints.min_window_coverage > 0:
        for dependency in dependencies:
            directed.add_edge(dependency.from_id, dependency.to_id)

    try:
        directed.assert_acyclic()
    except CycleDetectedError as exc:
        return Result.failure(exc)

    return Result.success(
        NormalizedGraph(
            nodes=nodes,
            dependencies=dependencies,
            adjacency=directed.adjacency(),
            root_nodes=directed.roots(),
            leaf_nodes=directed.leaves(),
        )
    )


def sort_by_criticality(nodes: Sequence[SimulationNode]) -> tuple[SimulationNode, ...]:
    """Stable descending sort on ``criticality``."""
    return tuple(sorted(nodes, key=lambda node: -node.criticality))


def partition_by_owner(nodes: Sequence[SimulationNode]) -> dict[str, tuple[str, ...]]:
    """Group node ids into the four owner buckets, preserving input order."""
    buckets: dict[str, list[str]] = {owner: [] for owner in OWNERS}
    for node in nodes:
        buckets[node.owner.value].append(node.id)
    return {owner: tuple(ids) for owner, ids in buckets.items()}


def _normalize_nodes(nodes: Sequence[SimulationNode]) -> tuple[SimulationNode, ...]:
    seen: set[str] = set()
    normalized: list[SimulationNode] = []
    for node in nodes:
        node_id = normalize_id(node.id)
        if node_id in seen:
            continue
        seen.add(node_id)
        normalized.append(node if node.id == node_id else replace(node, id=node_id))
    return tuple(normalized)


def _normalize_dependencies(
    dependencies: Sequence[SimulationDependency],
    known: set[str],
) -> tuple[SimulationDependency, ...]:
    seen: set[tuple[str, str]] = set()
    normalized: list[SimulationDependency] = []
    for dependency in dependencies:
        from_id = normalize_id(dependency.from_id)
        to_id = normalize_id(dependency.to_id)
        if from_id not in known or to_id not in known:
            continue
        if (from_id, to_id) in seen:
            continue
        seen.add((from_id, to_id))
        normalized.append(
            SimulationDependency(from_id=from_id, to_id=to_id, reason=dependency.reason)
        )
    return tuple(normalized)


def _canonicalize_cycle(cycle: Sequence[str]) -> tuple[str, ...]:
    core = tuple(cycle[:-1])
    if len(core) == 1:
        return (core[0], core[0])

    best = core
    for offset in range(1, len(core)):
        rotated = core[offset:] + core[:offset]
        if rotated < best:
            best = rotated
    return best + (best[0],)


__all__ = [
    "DependencyGraph",
    "NormalizedGraph",
    "normalize_graph",
    "normalize_id",
    "partition_by_owner",
    "sort_by_criticality",
]
