# src/build/models.py — v1
"""Build domain models: toolchain requests, targets, per-node results, report."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal

from pkgweaver.core.errors import ToolchainError
from pkgweaver.core.models import Artifact, PackageRecord, Platform, SourceFile

NodeStatus = Literal["built", "cached", "failed", "blocked"]


@dataclass
class CompileRequest:
    """Everything the compiler collaborator gets for one package."""

    record: PackageRecord
    platform: Platform
    files: list[SourceFile]
    dependencies: dict[str, Artifact]
    output_path: Path
    fingerprint: str


@dataclass
class LinkRequest:
    """Everything the linker collaborator gets for one command."""

    record: PackageRecord
    platform: Platform
    artifact: Artifact
    transitive_artifacts: dict[str, Artifact]
    output_path: Path


@dataclass
class BuildTarget:
    """A package bound to a platform, with its fingerprint and artifact."""

    record: PackageRecord
    platform: Platform
    fingerprint: str = ""
    stale: bool = True
    artifact_path: Path | None = None

    @property
    def identifier(self) -> str:
        return self.record.identifier


@dataclass
class NodeResult:
    """Outcome of one package in one build."""

    identifier: str
    status: NodeStatus
    target: BuildTarget | None = None
    artifact: Artifact | None = None
    executable: Path | None = None
    error: ToolchainError | None = None
    # Failing packages that prevented this one from starting.
    blocked_by: list[str] = field(default_factory=list)
    # Transitive dependency identifier -> artifact / fingerprint.
    transitive_artifacts: dict[str, Artifact] = field(default_factory=dict)
    dependency_fingerprints: dict[str, str] = field(default_factory=dict)
    linked: bool = False
    duration_ms: int = 0

    @property
    def ok(self) -> bool:
        return self.status in ("built", "cached")

    @property
    def fingerprint(self) -> str | None:
        return self.target.fingerprint if self.target else None


@dataclass
class BuildReport:
    """Result of one scheduler invocation for one platform."""

    platform: Platform
    results: dict[str, NodeResult] = field(default_factory=dict)
    # Order in which the compiler was invoked.
    compile_order: list[str] = field(default_factory=list)
    duration_ms: int = 0

    @property
    def success(self) -> bool:
        return all(r.ok for r in self.results.values())

    def with_status(self, status: NodeStatus) -> list[str]:
        return sorted(i for i, r in self.results.items() if r.status == status)

    @property
    def failures(self) -> dict[str, list[str]]:
        """Failing package -> packages it blocked."""
        out: dict[str, list[str]] = {i: [] for i in self.with_status("failed")}
        for identifier, result in self.results.items():
            for root in result.blocked_by:
                out.setdefault(root, []).append(identifier)
        return {k: sorted(v) for k, v in out.items()}

    @property
    def executables(self) -> dict[str, Path]:
        return {
            i: r.executable for i, r in self.results.items() if r.executable is not None
        }

    def summary(self) -> dict[str, Any]:
        return {
            "platform": str(self.platform),
            "packages": len(self.results),
            "built": len(self.with_status("built")),
            "cached": len(self.with_status("cached")),
            "failed": len(self.with_status("failed")),
            "blocked": len(self.with_status("blocked")),
            "duration_ms": self.duration_ms,
        }
