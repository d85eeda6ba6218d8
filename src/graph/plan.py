# src/graph/plan.py — v1
"""Execution plan: group packages into levels of mutually independent work.

Produces a topologically sorted, levelled plan. Packages within one level
have no dependencies on each other and may build concurrently; every
package appears after all of its dependencies.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

import networkx as nx

from pkgweaver.core.errors import CycleDetected, NotFound
from pkgweaver.graph.models import PackageGraph

logger = logging.getLogger(__name__)


@dataclass
class ExecutionPlan:
    """Levelled build order.

    stages is a list of "levels": packages within the same level can build
    concurrently. Levels complete in order.
    """

    stages: list[list[str]] = field(default_factory=list)
    total_packages: int = 0

    @property
    def flat_order(self) -> list[str]:
        """Return a flat topological ordering (no concurrency info)."""
        return [pkg for stage in self.stages for pkg in stage]

    def level_of(self, identifier: str) -> int:
        for idx, stage in enumerate(self.stages):
            if identifier in stage:
                return idx
        raise KeyError(identifier)


def build_plan(dependency_map: dict[str, list[str]]) -> ExecutionPlan:
    """Build a levelled plan from package -> dependencies declarations.

    Uses Kahn's algorithm with level tracking.

    Raises:
        NotFound: A dependency is not a key of the map.
        CycleDetected: The declarations contain a cycle.
    """
    if not dependency_map:
        return ExecutionPlan()

    all_packages = set(dependency_map.keys())
    for pkg, deps in dependency_map.items():
        for dep in deps:
            if dep not in all_packages:
                raise NotFound(dep, importer=pkg)

    in_degree: dict[str, int] = {p: 0 for p in all_packages}
    dependents: dict[str, list[str]] = {p: [] for p in all_packages}
    for pkg, deps in dependency_map.items():
        for dep in set(deps):
            dependents[dep].append(pkg)
            in_degree[pkg] += 1

    stages: list[list[str]] = []
    queue: list[str] = sorted(p for p, d in in_degree.items() if d == 0)
    processed = 0

    while queue:
        stages.append(queue)
        next_queue: list[str] = []
        for pkg in queue:
            processed += 1
            for dependent in dependents[pkg]:
                in_degree[dependent] -= 1
                if in_degree[dependent] == 0:
                    next_queue.append(dependent)
        queue = sorted(next_queue)

    if processed != len(all_packages):
        remaining = nx.DiGraph(
            (p, d)
            for p, deps in dependency_map.items()
            for d in deps
            if in_degree[p] > 0 and in_degree.get(d, 0) > 0
        )
        edges = nx.find_cycle(remaining)
        raise CycleDetected([u for u, _ in edges] + [edges[0][0]])

    plan = ExecutionPlan(stages=stages, total_packages=processed)
    logger.debug(
        "Plan built: %d packages in %d levels", plan.total_packages, len(plan.stages)
    )
    return plan


def plan_for_graph(graph: PackageGraph) -> ExecutionPlan:
    """Levelled plan for an already-built PackageGraph."""
    return build_plan({pkg: graph.dependencies(pkg) for pkg in graph})
