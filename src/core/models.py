# src/core/models.py — v2
"""Shared Pydantic domain models used across modules.

No module redefines these types: Platform, SourceFile, PackageRecord,
DependencyEdge, Artifact and CompileDiagnostic all come from core.models.
"""

from __future__ import annotations

import platform as _host
import sys
from pathlib import Path

from pydantic import BaseModel, ConfigDict, field_validator

# Host platform names mapped onto target OS / arch tokens.
_HOST_OS: dict[str, str] = {
    "linux": "linux",
    "darwin": "darwin",
    "win32": "windows",
    "cygwin": "windows",
    "freebsd": "freebsd",
    "openbsd": "openbsd",
    "netbsd": "netbsd",
}
_HOST_ARCH: dict[str, str] = {
    "x86_64": "amd64",
    "amd64": "amd64",
    "aarch64": "arm64",
    "arm64": "arm64",
    "i386": "386",
    "i686": "386",
    "x86": "386",
    "armv7l": "arm",
    "ppc64le": "ppc64le",
    "s390x": "s390x",
    "riscv64": "riscv64",
}


# === TARGET PLATFORM ===


class Platform(BaseModel):
    """Target operating system / architecture pair."""

    model_config = ConfigDict(frozen=True)

    os: str
    arch: str

    @field_validator("os", "arch")
    @classmethod
    def validate_token(cls, v: str) -> str:
        v = v.strip().lower()
        if not v or "/" in v or "_" in v:
            raise ValueError(f"Invalid platform token: {v!r}")
        return v

    @property
    def key(self) -> str:
        """Directory-safe key, e.g. 'linux_amd64'."""
        return f"{self.os}_{self.arch}"

    def __str__(self) -> str:
        return f"{self.os}/{self.arch}"

    @classmethod
    def parse(cls, value: str) -> Platform:
        """Parse 'os/arch' (or 'os_arch')."""
        sep = "/" if "/" in value else "_"
        parts = value.split(sep)
        if len(parts) != 2:
            raise ValueError(f"Invalid platform {value!r}, expected 'os/arch'")
        return cls(os=parts[0], arch=parts[1])

    @classmethod
    def host(cls) -> Platform:
        """Platform of the running interpreter."""
        os_name = _HOST_OS.get(sys.platform, sys.platform)
        machine = _host.machine().lower()
        return cls(os=os_name, arch=_HOST_ARCH.get(machine, machine or "unknown"))


# === SOURCES & PACKAGES ===


class SourceFile(BaseModel):
    """One source file as reported by the source reader."""

    model_config = ConfigDict(frozen=True)

    name: str
    package: str
    imports: tuple[str, ...] = ()
    constraints: tuple[str, ...] = ()

    @property
    def stem(self) -> str:
        return self.name.rsplit(".", 1)[0] if "." in self.name else self.name

    @property
    def is_test(self) -> bool:
        return self.stem.endswith("_test")


class PackageRecord(BaseModel):
    """Resolved metadata for one package identifier.

    Immutable for the duration of a build invocation. ``source_files`` holds
    every non-test file regardless of build constraints; platform selection
    happens later (resolver.constraints.select_files).
    """

    model_config = ConfigDict(frozen=True)

    identifier: str
    name: str
    short_name: str
    directory: Path
    root: Path
    source_files: tuple[SourceFile, ...] = ()
    test_files: tuple[SourceFile, ...] = ()
    imports: tuple[str, ...] = ()
    test_imports: tuple[str, ...] = ()
    is_command: bool = False
    is_test: bool = False
    is_restricted: bool = False
    permitted_root: Path | None = None
    executable_name: str | None = None

    @property
    def file_names(self) -> list[str]:
        return [f.name for f in self.source_files]


class DependencyEdge(BaseModel):
    """Ordered (importer, imported) pair."""

    model_config = ConfigDict(frozen=True)

    importer: str
    imported: str


# === TOOLCHAIN PAYLOADS ===


class Artifact(BaseModel):
    """Opaque compiled-artifact handle."""

    model_config = ConfigDict(frozen=True)

    path: str
    digest: str


class CompileDiagnostic(BaseModel):
    """Structured compiler / linker message, surfaced verbatim."""

    message: str
    file: str | None = None
    line: int | None = None

    def __str__(self) -> str:
        if self.file and self.line is not None:
            return f"{self.file}:{self.line}: {self.message}"
        if self.file:
            return f"{self.file}: {self.message}"
        return self.message
