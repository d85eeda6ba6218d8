# tests/unit/cache/test_unit_artifact_cache.py — v1
"""Tests for cache/artifact_cache.py — exact keys, idempotent writes."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest

from pkgweaver.cache.artifact_cache import ArtifactCache
from pkgweaver.cache.json_store import JsonCacheStore
from pkgweaver.cache.models import CacheEntry
from pkgweaver.core.errors import CacheKeyMismatch
from pkgweaver.core.models import Artifact, Platform

LINUX = Platform(os="linux", arch="amd64")
ARM = Platform(os="linux", arch="arm64")


@pytest.fixture
def cache(tmp_path):
    return ArtifactCache(JsonCacheStore(tmp_path / "cache"), toolchain_id="tc")


def _artifact(digest="d1") -> Artifact:
    return Artifact(path="/pkg/x.pkg", digest=digest)


class TestArtifactCache:
    @pytest.mark.asyncio
    async def test_miss_then_hit(self, cache):
        assert await cache.get("x", LINUX, "fp") is None
        await cache.put("x", LINUX, "fp", _artifact(), {"y": "fy"})
        entry = await cache.get("x", LINUX, "fp")
        assert entry is not None
        assert entry.artifact == _artifact()
        assert entry.dependency_fingerprints == {"y": "fy"}
        assert entry.toolchain_id == "tc"
        assert (cache.stats.misses, cache.stats.hits, cache.stats.writes) == (1, 1, 1)

    @pytest.mark.asyncio
    async def test_key_parts_are_exact(self, cache):
        await cache.put("x", LINUX, "fp", _artifact())
        assert await cache.get("x", LINUX, "other") is None
        assert await cache.get("x", ARM, "fp") is None
        assert await cache.get("x/y", LINUX, "fp") is None

    @pytest.mark.asyncio
    async def test_identical_put_is_noop(self, cache):
        first = await cache.put("x", LINUX, "fp", _artifact())
        second = await cache.put("x", LINUX, "fp", _artifact())
        assert cache.stats.writes == 1
        assert cache.stats.skipped_writes == 1
        assert second.created_at == first.created_at

    @pytest.mark.asyncio
    async def test_different_digest_overwrites(self, cache):
        await cache.put("x", LINUX, "fp", _artifact("d1"))
        await cache.put("x", LINUX, "fp", _artifact("d2"))
        entry = await cache.get("x", LINUX, "fp")
        assert entry is not None and entry.artifact.digest == "d2"

    @pytest.mark.asyncio
    async def test_concurrent_puts_write_once(self, cache):
        await asyncio.gather(*(cache.put("x", LINUX, "fp", _artifact()) for _ in range(5)))
        assert cache.stats.writes == 1
        assert cache.stats.skipped_writes == 4
        assert len(await cache._store.list_entries()) == 1

    @pytest.mark.asyncio
    async def test_write_locks_released_after_put(self, cache):
        await asyncio.gather(
            cache.put("x", LINUX, "fp", _artifact()),
            cache.put("y", LINUX, "fp", _artifact()),
        )
        await cache.put("x", ARM, "fp", _artifact())
        assert len(cache._locks) == 0

    @pytest.mark.asyncio
    async def test_store_serving_wrong_key(self):
        wrong = CacheEntry(identifier="other", platform=LINUX, fingerprint="fp", artifact=_artifact())
        store = AsyncMock()
        store.get.return_value = wrong
        cache = ArtifactCache(store)
        with pytest.raises(CacheKeyMismatch) as exc_info:
            await cache.get("x", LINUX, "fp")
        assert exc_info.value.requested == "linux_amd64/x@fp"
        assert exc_info.value.served == "linux_amd64/other@fp"

    @pytest.mark.asyncio
    async def test_disabled_cache(self):
        cache = ArtifactCache(None)
        assert not cache.enabled
        entry = await cache.put("x", LINUX, "fp", _artifact())
        assert entry.key == "linux_amd64/x@fp"
        assert await cache.get("x", LINUX, "fp") is None
        assert cache.stats.writes == 0
