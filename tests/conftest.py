# tests/conftest.py — v1
"""Shared test fixtures for all unit and integration tests.

Provides a throwaway workspace builder, a fixed target platform, fresh
format registries and in-memory compiler / linker fakes. All I/O happens
under pytest's tmp_path.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from pkgweaver.build.models import CompileRequest, LinkRequest
from pkgweaver.build.toolchain import BaseCompiler, BaseLinker
from pkgweaver.cache.fingerprint import digest_bytes
from pkgweaver.config.settings import Settings
from pkgweaver.core.errors import CompileFailure, LinkFailure
from pkgweaver.core.models import Artifact, CompileDiagnostic, Platform
from pkgweaver.registry.formats import bzip2_format, gzip_format, json_format
from pkgweaver.registry.registry import FormatRegistry
from pkgweaver.resolver.workspace import WorkspaceResolver


# === WORKSPACE BUILDER ===


class Workspace:
    """Writes ``.src`` packages under ``<root>/src/<identifier>/``."""

    def __init__(self, root: Path) -> None:
        self.root = root
        (root / "src").mkdir(parents=True, exist_ok=True)

    def directory(self, identifier: str) -> Path:
        return self.root / "src" / identifier

    def add(
        self,
        identifier: str,
        package: str | None = None,
        imports: tuple[str, ...] | list[str] = (),
        filename: str | None = None,
        directives: tuple[str, ...] | list[str] = (),
        body: str = "",
    ) -> Path:
        """Write one source file and return its path."""
        name = package or identifier.rsplit("/", 1)[-1]
        directory = self.directory(identifier)
        directory.mkdir(parents=True, exist_ok=True)
        lines = [f"//build: {d}" for d in directives]
        lines.append(f"package {name}")
        lines.extend(f'import "{i}"' for i in imports)
        if body:
            lines.append("")
            lines.append(body)
        path = directory / (filename or f"{name}.src")
        path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        return path

    def resolver(self) -> WorkspaceResolver:
        return WorkspaceResolver([self.root])


@pytest.fixture
def workspace(tmp_path: Path) -> Workspace:
    return Workspace(tmp_path / "ws")


@pytest.fixture
def make_workspace(tmp_path: Path):
    """Factory for additional workspace roots: make_workspace("r2")."""
    return lambda name: Workspace(tmp_path / name)


@pytest.fixture
def linux() -> Platform:
    return Platform(os="linux", arch="amd64")


@pytest.fixture
def settings(tmp_path: Path, workspace: Workspace) -> Settings:
    """Settings isolated from any .env file and the home directory."""
    return Settings(
        _env_file=None,
        workspace_roots=str(workspace.root),
        target_os="linux",
        target_arch="amd64",
        cache_root=tmp_path / "cache",
        artifact_root=tmp_path / "pkg",
        bin_dir=tmp_path / "bin",
    )


# === REGISTRIES ===


@pytest.fixture
def registry() -> FormatRegistry:
    """Fresh, unsealed registry with the bundled capabilities."""
    reg = FormatRegistry()
    json_format.register(reg)
    gzip_format.register(reg)
    bzip2_format.register(reg)
    return reg


# === TOOLCHAIN FAKES ===


class FakeCompiler(BaseCompiler):
    """Writes ``identifier:fingerprint`` as the artifact.

    Attributes:
        fail: Identifiers whose compilation fails.
        delay: Seconds to sleep inside compile().
        calls: Identifiers in invocation order.
        peak: Highest number of simultaneous compile() calls seen.
    """

    def __init__(self) -> None:
        self.fail: set[str] = set()
        self.delay = 0.0
        self.calls: list[str] = []
        self.requests: list[CompileRequest] = []
        self.active = 0
        self.peak = 0

    async def compile(self, request: CompileRequest) -> Artifact:
        identifier = request.record.identifier
        self.calls.append(identifier)
        self.requests.append(request)
        self.active += 1
        self.peak = max(self.peak, self.active)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if identifier in self.fail:
                raise CompileFailure(
                    identifier,
                    [CompileDiagnostic(message="boom", file=request.files[0].name, line=1)],
                )
            payload = f"{identifier}:{request.fingerprint}".encode("utf-8")
            request.output_path.parent.mkdir(parents=True, exist_ok=True)
            request.output_path.write_bytes(payload)
            return Artifact(path=str(request.output_path), digest=digest_bytes(payload))
        finally:
            self.active -= 1


class FakeLinker(BaseLinker):
    """Writes the sorted closure as the executable."""

    def __init__(self) -> None:
        self.fail: set[str] = set()
        self.calls: list[LinkRequest] = []

    async def link(self, request: LinkRequest) -> Path:
        self.calls.append(request)
        if request.record.identifier in self.fail:
            raise LinkFailure(request.record.identifier, message="undefined symbol")
        closure = sorted([request.record.identifier, *request.transitive_artifacts])
        request.output_path.parent.mkdir(parents=True, exist_ok=True)
        request.output_path.write_text("\n".join(closure) + "\n", encoding="utf-8")
        return request.output_path


@pytest.fixture
def fake_compiler() -> FakeCompiler:
    return FakeCompiler()


@pytest.fixture
def fake_linker() -> FakeLinker:
    return FakeLinker()
