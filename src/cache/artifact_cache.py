# src/cache/artifact_cache.py — v1
"""Artifact cache front: exact-key lookups over a BaseCacheStore.

Guarantees on top of the raw store:
  - an entry is only served if identifier, platform and fingerprint all
    match the request (anything else raises CacheKeyMismatch);
  - writes are serialised per key, concurrent reads are unrestricted;
  - re-writing an identical entry for an existing key is a no-op.
"""

from __future__ import annotations

import asyncio
import logging
import weakref
from collections.abc import Mapping

from pkgweaver.cache.base_cache_store import BaseCacheStore
from pkgweaver.cache.models import CacheEntry, CacheStats, cache_key
from pkgweaver.core.errors import CacheKeyMismatch
from pkgweaver.core.models import Artifact, Platform

logger = logging.getLogger(__name__)


class ArtifactCache:
    """Keyed by (identifier, platform, fingerprint).

    Args:
        store: Persistence backend. None disables caching (every get misses,
            puts are dropped).
        toolchain_id: Recorded on written entries.
    """

    def __init__(self, store: BaseCacheStore | None, toolchain_id: str = "") -> None:
        self._store = store
        self._toolchain_id = toolchain_id
        # A key's lock lives only while some put() holds or awaits it.
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )
        self.stats = CacheStats()

    @property
    def enabled(self) -> bool:
        return self._store is not None

    async def get(
        self, identifier: str, platform: Platform, fingerprint: str
    ) -> CacheEntry | None:
        """Return the entry for the exact key, or None on a miss."""
        if self._store is None:
            self.stats.misses += 1
            return None
        key = cache_key(identifier, platform, fingerprint)
        entry = await self._store.get(key)
        if entry is None:
            self.stats.misses += 1
            return None
        if entry.key != key:
            raise CacheKeyMismatch(key, entry.key)
        self.stats.hits += 1
        return entry

    async def put(
        self,
        identifier: str,
        platform: Platform,
        fingerprint: str,
        artifact: Artifact,
        dependency_fingerprints: Mapping[str, str] | None = None,
    ) -> CacheEntry:
        """Store an artifact; idempotent for an identical existing entry."""
        entry = CacheEntry(
            identifier=identifier,
            platform=platform,
            fingerprint=fingerprint,
            artifact=artifact,
            dependency_fingerprints=dict(dependency_fingerprints or {}),
            toolchain_id=self._toolchain_id,
        )
        if self._store is None:
            return entry

        key = entry.key
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        async with lock:
            existing = await self._store.get(key)
            if existing is not None and existing.key != key:
                raise CacheKeyMismatch(key, existing.key)
            if existing is not None and existing.artifact.digest == artifact.digest:
                self.stats.skipped_writes += 1
                logger.debug("Cache entry %s already present", key)
                return existing
            await self._store.put(key, entry)
            self.stats.writes += 1
            logger.debug("Cached %s -> %s", key, artifact.path)
        return entry

    def close(self) -> None:
        if self._store is not None:
            self._store.close()
