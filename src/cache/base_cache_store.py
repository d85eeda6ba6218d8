# src/cache/base_cache_store.py — v2
"""Abstract cache store interface."""

from __future__ import annotations

from abc import ABC, abstractmethod

from pkgweaver.cache.models import CacheEntry


class BaseCacheStore(ABC):
    """Unified interface for cache storage backends.

    Stores are plain key/value persistence. Key validation, per-key write
    serialisation and idempotence live in ArtifactCache.
    """

    @abstractmethod
    async def get(self, key: str) -> CacheEntry | None:
        """Retrieve cache entry by key."""

    @abstractmethod
    async def put(self, key: str, entry: CacheEntry) -> None:
        """Store cache entry."""

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove cache entry."""

    @abstractmethod
    async def list_entries(self) -> list[CacheEntry]:
        """List all cached entries."""

    def close(self) -> None:
        """Release backend resources."""
