# src/registry/formats/gzip_format.py — v1
"""gzip capability: compressed artifacts."""

from __future__ import annotations

import gzip

from pkgweaver.registry.registry import FormatRegistry

NAME = "gzip"
PROBE = b"\x1f\x8b"


def decode(data: bytes) -> bytes:
    return gzip.decompress(data)


def encode(data: bytes) -> bytes:
    # Fixed mtime keeps output byte-identical across builds.
    return gzip.compress(data, mtime=0)


def register(registry: FormatRegistry) -> None:
    registry.register(NAME, PROBE, decode, encode)
