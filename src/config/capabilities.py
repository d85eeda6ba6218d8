# src/config/capabilities.py — v1
"""Declarative list of capability modules linked into the process.

Each module exposes ``register(registry)`` and is initialised once at
startup by registry/startup.py. Dropping a module from the list removes
the capability; lookups for it then fail at dispatch time only.
"""

from __future__ import annotations

# Fully qualified module paths, registered in this order.
DEFAULT_CAPABILITIES: list[str] = [
    "pkgweaver.registry.formats.json_format",
    "pkgweaver.registry.formats.gzip_format",
    "pkgweaver.registry.formats.bzip2_format",
]
