# src/registry/formats/json_format.py — v1
"""JSON capability: plain JSON artifact manifests."""

from __future__ import annotations

import json
from typing import Any

from pkgweaver.registry.registry import FormatRegistry

NAME = "json"
PROBE = b"{"


def decode(data: bytes) -> Any:
    return json.loads(data.decode("utf-8"))


def encode(value: Any) -> bytes:
    return json.dumps(value, sort_keys=True, indent=2).encode("utf-8")


def register(registry: FormatRegistry) -> None:
    registry.register(NAME, PROBE, decode, encode)
