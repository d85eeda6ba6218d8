# src/graph/visibility.py — v1
"""Visibility enforcer for restricted ('internal') packages.

A restricted package may only be imported by packages whose directory is
the permitted root (the parent of the restricted segment) or lies below
it. The check is structural path containment, run once per edge after the
graph is built and before anything is scheduled.
"""

from __future__ import annotations

import logging
from pathlib import Path

from pkgweaver.core.errors import RestrictedImport
from pkgweaver.core.models import PackageRecord
from pkgweaver.graph.models import PackageGraph

logger = logging.getLogger(__name__)


def is_visible(importer: PackageRecord, imported: PackageRecord) -> bool:
    """True when ``importer`` may import ``imported``."""
    if not imported.is_restricted or imported.permitted_root is None:
        return True
    return _within(importer.directory, imported.permitted_root)


def find_violations(graph: PackageGraph) -> list[RestrictedImport]:
    """Every edge breaking the visibility rule, in sorted edge order."""
    records = graph.records
    violations: list[RestrictedImport] = []
    for edge in graph.edges:
        if not is_visible(records[edge.importer], records[edge.imported]):
            violations.append(RestrictedImport(edge.importer, edge.imported))
    return violations


def enforce_visibility(graph: PackageGraph) -> None:
    """Raise the first RestrictedImport found in ``graph``."""
    violations = find_violations(graph)
    for violation in violations[1:]:
        logger.error("%s", violation)
    if violations:
        raise violations[0]


def _within(path: Path, root: Path) -> bool:
    return path == root or path.is_relative_to(root)
