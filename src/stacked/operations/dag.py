"""Dependency graph utilities for stacked -- cycle checks and topological order.

The graph is an immutable view over a RegistryDocument: one edge per
tracked branch, from the branch to its base.  The trunk is the implicit
root.  Nothing here mutates the registry; callers apply validated changes
through the store.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import TYPE_CHECKING

from stacked.exceptions import CycleDetected

if TYPE_CHECKING:
    from stacked.models.registry import RegistryDocument


@dataclass(frozen=True)
class DependencyGraph:
    """Immutable branch -> base graph.

    Attributes:
        trunk: Name of the implicit root.
        bases: Mapping of tracked branch name to its base name.
        created: Creation time per branch, used to order siblings.
    """

    trunk: str
    bases: Mapping[str, str]
    created: Mapping[str, datetime] = field(default_factory=dict)

    def __contains__(self, name: object) -> bool:
        return name in self.bases

    def base_of(self, name: str) -> str | None:
        return self.bases.get(name)

    def children(self, name: str) -> list[str]:
        """Tracked branches stacked directly on *name*, in creation order."""
        kids = [b for b, base in self.bases.items() if base == name]
        return sorted(kids, key=self._sort_key)

    def with_edge(self, name: str, base: str) -> DependencyGraph:
        """Return a new graph with *name* stacked on *base*."""
        bases = dict(self.bases)
        bases[name] = base
        return DependencyGraph(trunk=self.trunk, bases=MappingProxyType(bases), created=self.created)

    def _sort_key(self, name: str) -> tuple[str, str]:
        created = self.created.get(name)
        return (created.isoformat() if created else "", name)


def build(doc: RegistryDocument) -> DependencyGraph:
    """Build a graph snapshot from a registry document."""
    return DependencyGraph(
        trunk=doc.trunk,
        bases=MappingProxyType({name: b.base_name for name, b in doc.branches.items()}),
        created=MappingProxyType({name: b.created_at for name, b in doc.branches.items()}),
    )


def _walk_bases(graph: DependencyGraph, start: str) -> Iterator[str]:
    """Yield *start* and each successive base until trunk or an untracked name.

    Stops after the first repeated name so a corrupt graph cannot loop forever.
    """
    seen: set[str] = set()
    current: str | None = start
    while current is not None:
        yield current
        if current == graph.trunk or current in seen:
            return
        seen.add(current)
        current = graph.base_of(current)


def find_cycle(graph: DependencyGraph, candidate_name: str, candidate_base: str) -> list[str] | None:
    """Return the chain a proposed edge would close, or None.

    Walks from *candidate_base* toward trunk; reaching *candidate_name* first
    means the edge ``candidate_name -> candidate_base`` closes a cycle.  The
    returned chain starts and ends with *candidate_name*.
    """
    if candidate_base == candidate_name:
        return [candidate_name, candidate_name]
    chain = [candidate_name]
    for name in _walk_bases(graph, candidate_base):
        chain.append(name)
        if name == candidate_name:
            return chain
    return None


def would_create_cycle(graph: DependencyGraph, candidate_name: str, candidate_base: str) -> bool:
    """True if stacking *candidate_name* on *candidate_base* creates a cycle."""
    return find_cycle(graph, candidate_name, candidate_base) is not None


def validate_base_exists(graph: DependencyGraph, base: str) -> bool:
    """True if *base* is the trunk or a tracked branch."""
    return base == graph.trunk or base in graph


def chain_to_trunk(graph: DependencyGraph, name: str) -> list[str]:
    """Bases from *name* down to trunk (inclusive of both ends when reachable)."""
    return list(_walk_bases(graph, name))


def reaches_trunk(graph: DependencyGraph, name: str) -> bool:
    chain = chain_to_trunk(graph, name)
    return chain[-1] == graph.trunk


def trunk_for(graph: DependencyGraph, name: str) -> str:
    """Root the stack containing *name* lands on: trunk, or an untracked base."""
    return chain_to_trunk(graph, name)[-1]


def depth(graph: DependencyGraph, name: str) -> int | None:
    """Number of edges from *name* to trunk, or None if trunk is unreachable."""
    chain = chain_to_trunk(graph, name)
    if chain[-1] != graph.trunk:
        return None
    return len(chain) - 1


def find_persisted_cycle(graph: DependencyGraph) -> list[str] | None:
    """Return one cycle already present in the graph, or None."""
    for name in sorted(graph.bases):
        chain = chain_to_trunk(graph, name)
        last = chain[-1]
        if last != graph.trunk and last in graph and chain.count(last) > 1:
            start = chain.index(last)
            return chain[start:]
    return None


def topological_order(graph: DependencyGraph) -> list[str]:
    """All tracked branches, bases before dependents.

    Stacks rooted on trunk come first (depth-first, siblings in creation
    order), followed by orphaned stacks whose root base is untracked.

    Raises:
        CycleDetected: If the graph already contains a cycle.  A persisted
            registry must never hold one, so this is a consistency error.
    """
    cycle = find_persisted_cycle(graph)
    if cycle is not None:
        raise CycleDetected(cycle, persisted=True)

    order: list[str] = []

    def visit(name: str) -> None:
        order.append(name)
        for child in graph.children(name):
            visit(child)

    for root in graph.children(graph.trunk):
        visit(root)

    orphan_bases = sorted(
        {base for base in graph.bases.values() if base != graph.trunk and base not in graph}
    )
    for base in orphan_bases:
        for root in graph.children(base):
            visit(root)

    return order
