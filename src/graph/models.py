# src/graph/models.py — v1
"""PackageGraph: resolved records plus import edges, backed by NetworkX.

Edges point from importer to imported package, so ``descendants`` are
(transitive) dependencies and ``ancestors`` are dependents.
"""

from __future__ import annotations

from collections.abc import Iterator

import networkx as nx

from pkgweaver.core.models import DependencyEdge, PackageRecord


class PackageGraph:
    """Immutable-after-build view over one invocation's package graph."""

    def __init__(self) -> None:
        self._graph = nx.DiGraph()
        self._seeds: list[str] = []

    # --- construction (graph builder only) ---

    def add_record(self, record: PackageRecord) -> None:
        self._graph.add_node(record.identifier, record=record)

    def add_edge(self, importer: str, imported: str) -> None:
        self._graph.add_edge(importer, imported)

    def add_seed(self, identifier: str) -> None:
        if identifier not in self._seeds:
            self._seeds.append(identifier)

    # --- queries ---

    @property
    def seeds(self) -> list[str]:
        return list(self._seeds)

    @property
    def nx_graph(self) -> nx.DiGraph:
        """Read-only view of the underlying NetworkX graph."""
        return self._graph.copy(as_view=True)

    def __contains__(self, identifier: object) -> bool:
        return identifier in self._graph

    def __len__(self) -> int:
        return self._graph.number_of_nodes()

    def __iter__(self) -> Iterator[str]:
        return iter(self._graph.nodes)

    def record(self, identifier: str) -> PackageRecord:
        return self._graph.nodes[identifier]["record"]

    @property
    def records(self) -> dict[str, PackageRecord]:
        return {n: d["record"] for n, d in self._graph.nodes(data=True)}

    @property
    def edges(self) -> list[DependencyEdge]:
        return [
            DependencyEdge(importer=u, imported=v)
            for u, v in sorted(self._graph.edges)
        ]

    def dependencies(self, identifier: str) -> list[str]:
        """Direct dependencies, sorted."""
        return sorted(self._graph.successors(identifier))

    def transitive_dependencies(self, identifier: str) -> set[str]:
        return nx.descendants(self._graph, identifier)

    def dependents(self, identifier: str) -> set[str]:
        """Every package depending on ``identifier``, directly or not."""
        return nx.ancestors(self._graph, identifier)

    def topological_order(self) -> list[str]:
        """Dependencies first, deterministic for a given graph."""
        return list(
            reversed(list(nx.lexicographical_topological_sort(self._graph)))
        )

    def stats(self) -> dict[str, int]:
        records = self.records.values()
        return {
            "packages": self._graph.number_of_nodes(),
            "edges": self._graph.number_of_edges(),
            "commands": sum(1 for r in records if r.is_command),
            "restricted": sum(1 for r in records if r.is_restricted),
        }
