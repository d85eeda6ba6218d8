# src/cache/fingerprint.py — v3
"""Package fingerprints: Merkle-style rollup of sources and dependencies.

A package fingerprint covers its identifier, target platform, toolchain
id, the content of every participating source file, and the fingerprints
of its direct dependencies. Because each dependency fingerprint already
covers that dependency's own dependencies, changing any transitive
dependency changes every ancestor's fingerprint.
"""

from __future__ import annotations

import hashlib
from collections.abc import Mapping, Sequence
from pathlib import Path

from pkgweaver.core.models import Platform, SourceFile

FINGERPRINT_VERSION = "pkgweaver-fp-1"


def digest_bytes(data: bytes) -> str:
    """SHA-256 hex digest of raw bytes."""
    return hashlib.sha256(data).hexdigest()


def digest_file(path: Path) -> str:
    """SHA-256 hex digest of a file's content, read in blocks."""
    h = hashlib.sha256()
    with path.open("rb") as fh:
        for block in iter(lambda: fh.read(65536), b""):
            h.update(block)
    return h.hexdigest()


def source_digests(directory: Path, files: Sequence[SourceFile]) -> dict[str, str]:
    """File name -> content digest for the participating files."""
    return {f.name: digest_file(directory / f.name) for f in files}


def compute_fingerprint(
    identifier: str,
    platform: Platform,
    sources: Mapping[str, str],
    dependencies: Mapping[str, str],
    toolchain_id: str = "",
) -> str:
    """Compute a package fingerprint.

    Args:
        identifier: Package identifier.
        platform: Target platform.
        sources: File name -> content digest (participating files only).
        dependencies: Direct dependency identifier -> fingerprint.
        toolchain_id: Opaque compiler identity; changing it invalidates all.

    Returns:
        Hex SHA-256 fingerprint.
    """
    h = hashlib.sha256()
    _field(h, "version", FINGERPRINT_VERSION)
    _field(h, "package", identifier)
    _field(h, "platform", platform.key)
    _field(h, "toolchain", toolchain_id)
    for name in sorted(sources):
        _field(h, "source", f"{name}={sources[name]}")
    for dep in sorted(dependencies):
        _field(h, "dep", f"{dep}={dependencies[dep]}")
    return h.hexdigest()


def _field(h, tag: str, value: str) -> None:
    # Length-prefixed so adjacent fields cannot run together.
    encoded = value.encode("utf-8")
    h.update(f"{tag}:{len(encoded)}:".encode("ascii"))
    h.update(encoded)
    h.update(b"\n")
