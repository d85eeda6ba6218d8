# src/registry/formats/bzip2_format.py — v1
"""bzip2 capability: compressed artifacts."""

from __future__ import annotations

import bz2

from pkgweaver.registry.registry import FormatRegistry

NAME = "bzip2"
PROBE = b"BZh"


def decode(data: bytes) -> bytes:
    return bz2.decompress(data)


def encode(data: bytes) -> bytes:
    return bz2.compress(data)


def register(registry: FormatRegistry) -> None:
    registry.register(NAME, PROBE, decode, encode)
