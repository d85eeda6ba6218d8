# src/build/layout.py — v1
"""Output directory structure definition.

Artifacts and executables are namespaced per target platform so builds
for different platforms never overwrite each other:

    {artifact_root}/{os}_{arch}/{identifier}/{fingerprint[:16]}.pkg
    {bin_dir}/{os}_{arch}/{identifier}/{executable}[.exe]
"""

from __future__ import annotations

from pathlib import Path

from pkgweaver.core.models import Platform

ARTIFACT_SUFFIX = ".pkg"
STAMP_SUFFIX = ".stamp"
WINDOWS_SUFFIX = ".exe"


def platform_dir(root: Path, platform: Platform) -> Path:
    """Return the per-platform directory under ``root``."""
    return root / platform.key


def artifact_path(
    artifact_root: Path, identifier: str, platform: Platform, fingerprint: str
) -> Path:
    """Return the artifact file for one package build."""
    return (
        platform_dir(artifact_root, platform)
        / identifier
        / f"{fingerprint[:16]}{ARTIFACT_SUFFIX}"
    )


def executable_name(name: str, platform: Platform) -> str:
    """Platform-specific executable file name."""
    if platform.os == "windows" and not name.endswith(WINDOWS_SUFFIX):
        return name + WINDOWS_SUFFIX
    return name


def executable_path(
    bin_dir: Path, identifier: str, name: str, platform: Platform
) -> Path:
    """Return the output path of a linked command.

    Commands sharing a last path segment get distinct directories.
    """
    return platform_dir(bin_dir, platform) / identifier / executable_name(name, platform)


def stamp_path(executable: Path) -> Path:
    """Return the fingerprint stamp kept next to an executable."""
    return executable.with_name(executable.name + STAMP_SUFFIX)
