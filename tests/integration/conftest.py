# tests/integration/conftest.py — v8
"""Shared fixtures for integration tests.

Everything runs against real files under tmp_path with the manifest
toolchain. The Redis cache backend is exercised only when REDIS_URL
points at a reachable server.
"""

from __future__ import annotations

import os

import pytest

from pkgweaver.build.manifest_toolchain import ManifestCompiler, ManifestLinker
from pkgweaver.registry.registry import FormatRegistry
from pkgweaver.registry.startup import initialize_capabilities


# ── Pytest markers ──────────────────────────────────────────────

def pytest_configure(config):
    config.addinivalue_line("markers", "redis: marks tests requiring a Redis server (REDIS_URL)")


@pytest.fixture
def redis_url() -> str:
    url = os.environ.get("REDIS_URL", "")
    if not url:
        pytest.skip("REDIS_URL not set")
    return url


@pytest.fixture
def sealed_registry(settings) -> FormatRegistry:
    """Registry initialised from the configured capability list."""
    return initialize_capabilities(settings.capabilities_list, FormatRegistry())


class CountingCompiler(ManifestCompiler):
    """ManifestCompiler that records each package it compiles."""

    def __init__(self, registry: FormatRegistry, encoding: str = "none") -> None:
        super().__init__(registry, encoding)
        self.calls: list[str] = []

    async def compile(self, request):
        self.calls.append(request.record.identifier)
        return await super().compile(request)


@pytest.fixture
def manifest_toolchain(sealed_registry) -> tuple[CountingCompiler, ManifestLinker]:
    return CountingCompiler(sealed_registry), ManifestLinker(sealed_registry)
