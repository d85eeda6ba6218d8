# src/core/errors.py — v1
"""Error taxonomy shared by resolver, graph, build and cache modules.

Structural errors (resolution, cycles, visibility) abort an invocation
before any compilation starts. Toolchain errors are per package and are
reported through the BuildReport instead of being raised out of a build.
"""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path

from pkgweaver.core.models import CompileDiagnostic


class PkgweaverError(Exception):
    """Base class for all pkgweaver errors."""


# === RESOLUTION ===


class ResolutionError(PkgweaverError):
    """Identifier could not be turned into a PackageRecord."""

    def __init__(self, identifier: str, message: str) -> None:
        self.identifier = identifier
        super().__init__(message)


class InvalidIdentifier(ResolutionError):
    """Identifier is syntactically invalid."""

    def __init__(self, identifier: str, reason: str) -> None:
        self.reason = reason
        super().__init__(identifier, f"invalid package identifier {identifier!r}: {reason}")


class NotFound(ResolutionError):
    """No workspace root contains the identifier."""

    def __init__(self, identifier: str, importer: str | None = None, detail: str = "") -> None:
        self.importer = importer
        msg = f"package {identifier!r} not found"
        if importer:
            msg += f" (imported by {importer!r})"
        if detail:
            msg += f": {detail}"
        super().__init__(identifier, msg)

    def with_importer(self, importer: str) -> NotFound:
        return NotFound(self.identifier, importer=importer)


class AmbiguousRoot(ResolutionError):
    """More than one root resolves the identifier inconsistently."""

    def __init__(self, identifier: str, roots: Sequence[Path]) -> None:
        self.roots = list(roots)
        joined = ", ".join(str(r) for r in self.roots)
        super().__init__(
            identifier,
            f"package {identifier!r} resolves inconsistently in roots: {joined}",
        )


class MultiplePackages(ResolutionError):
    """Non-test files in one directory declare different package names."""

    def __init__(self, identifier: str, names: Sequence[str]) -> None:
        self.names = sorted(set(names))
        super().__init__(
            identifier,
            f"found packages {', '.join(self.names)} in {identifier!r}",
        )


# === GRAPH ===


class GraphError(PkgweaverError):
    """Dependency graph violates a structural invariant."""


class CycleDetected(GraphError):
    """Import cycle; ``cycle`` starts and ends with the same identifier."""

    def __init__(self, cycle: Sequence[str]) -> None:
        self.cycle = list(cycle)
        super().__init__(f"import cycle not allowed: {' -> '.join(self.cycle)}")


class RestrictedImport(GraphError):
    """Importer lies outside the permitted subtree of a restricted package."""

    def __init__(self, importer: str, imported: str) -> None:
        self.importer = importer
        self.imported = imported
        super().__init__(
            f"package {importer!r} may not import restricted package {imported!r}"
        )


# === TOOLCHAIN ===


class ToolchainError(PkgweaverError):
    """External compiler / linker failure for one package."""

    kind = "toolchain"

    def __init__(
        self,
        identifier: str,
        diagnostics: Sequence[CompileDiagnostic] | None = None,
        message: str | None = None,
    ) -> None:
        self.identifier = identifier
        self.diagnostics = list(diagnostics or [])
        if message is None:
            message = "; ".join(str(d) for d in self.diagnostics) or "unknown error"
        super().__init__(f"{self.kind} failed for {identifier!r}: {message}")


class CompileFailure(ToolchainError):
    kind = "compile"


class LinkFailure(ToolchainError):
    kind = "link"


# === CACHE ===


class CacheKeyMismatch(PkgweaverError):
    """A cache store served an entry for a different key. Always a defect."""

    def __init__(self, requested: str, served: str) -> None:
        self.requested = requested
        self.served = served
        super().__init__(f"cache served entry {served!r} for key {requested!r}")
