# src/graph/builder.py — v1
"""Dependency graph builder: resolve seeds and everything they import.

Depth-first traversal with white/grey/black colouring. A dependency that
is still grey (on the current path) closes a cycle, which is reported as
the ordered path from that dependency back to itself.

Nodes are keyed by identifier. Two packages sharing a short name, or two
identical subtrees reached through different identifiers, stay distinct.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Sequence

from pkgweaver.core.errors import CycleDetected, NotFound
from pkgweaver.core.models import PackageRecord, Platform
from pkgweaver.graph.models import PackageGraph
from pkgweaver.resolver.constraints import imports_for
from pkgweaver.resolver.workspace import BaseResolver

logger = logging.getLogger(__name__)

_WHITE, _GREY, _BLACK = 0, 1, 2


def build_graph(
    seeds: Sequence[str | PackageRecord],
    resolver: BaseResolver,
    platform: Platform | None = None,
    tags: Iterable[str] = (),
    include_tests: bool = False,
) -> PackageGraph:
    """Build the graph reachable from ``seeds``.

    Args:
        seeds: Identifiers, or already-resolved records (file-list builds).
        resolver: Identifier resolution strategy.
        platform: When given, only imports of files matching the platform
            are followed. None follows every declared import.
        tags: Extra build tags for constraint evaluation.
        include_tests: Also add each seed's test-only imports and its
            auxiliary test package.

    Returns:
        Complete PackageGraph.

    Raises:
        CycleDetected: On any import cycle.
        NotFound / AmbiguousRoot / InvalidIdentifier: From the resolver;
            NotFound carries the importing package.
    """
    tags = tuple(tags)
    graph = PackageGraph()
    color: dict[str, int] = {}
    path: list[str] = []
    stack: list[tuple[str, Iterator[str]]] = []

    def declared(record: PackageRecord) -> list[str]:
        if platform is None:
            return list(record.imports)
        return imports_for(record.source_files, platform, tags)

    def enter(record: PackageRecord) -> None:
        graph.add_record(record)
        color[record.identifier] = _GREY
        path.append(record.identifier)
        stack.append((record.identifier, iter(declared(record))))

    def walk(start: str | PackageRecord, importer: str | None = None) -> None:
        record = start if isinstance(start, PackageRecord) else _resolve(
            resolver, start, importer
        )
        if color.get(record.identifier, _WHITE) != _WHITE:
            return
        enter(record)
        while stack:
            current, pending = stack[-1]
            dep = next(pending, None)
            if dep is None:
                stack.pop()
                path.pop()
                color[current] = _BLACK
                continue
            state = color.get(dep, _WHITE)
            if state == _GREY:
                cycle = path[path.index(dep):] + [dep]
                raise CycleDetected(cycle)
            if state == _WHITE:
                enter(_resolve(resolver, dep, current))
            graph.add_edge(current, dep)

    for seed in seeds:
        walk(seed)
        graph.add_seed(seed.identifier if isinstance(seed, PackageRecord) else seed)

    if include_tests:
        for seed in list(graph.seeds):
            _add_tests(graph, seed, resolver, walk, platform, tags)

    stats = graph.stats()
    logger.info(
        "Dependency graph built: %d packages (%d commands), %d edges from %d seeds",
        stats["packages"], stats["commands"], stats["edges"], len(graph.seeds),
    )
    return graph


def _add_tests(graph, seed, resolver, walk, platform, tags) -> None:
    """Add test-only imports and the auxiliary package of one seed."""
    record = graph.record(seed)
    test_imports = (
        record.test_imports if platform is None
        else imports_for(record.test_files, platform, tags)
    )
    for identifier in test_imports:
        walk(identifier, seed)

    auxiliary = resolver.resolve_test(seed)
    if auxiliary is not None:
        walk(auxiliary)


def _resolve(resolver: BaseResolver, identifier: str, importer: str | None) -> PackageRecord:
    try:
        return resolver.resolve(identifier)
    except NotFound as exc:
        if importer is None or exc.importer is not None:
            raise
        raise exc.with_importer(importer) from exc
