# src/cache/redis_store.py — v2
"""Redis-based cache store (CACHE_BACKEND=redis).

Requires 'redis' package: pip install pkgweaver[redis].
Lets several build hosts share one artifact index.
"""

from __future__ import annotations

import json
import logging

from pydantic import ValidationError

from pkgweaver.cache.base_cache_store import BaseCacheStore
from pkgweaver.cache.models import CacheEntry

logger = logging.getLogger(__name__)

_KEY_PREFIX = "pkgweaver:cache:"
_INDEX_KEY = "pkgweaver:cache:__index__"


class RedisCacheStore(BaseCacheStore):
    """Redis-backed cache store for shared deployments."""

    def __init__(self, redis_url: str) -> None:
        try:
            import redis
        except ImportError as e:
            raise ImportError(
                "redis package required: pip install redis"
            ) from e

        self._client = redis.Redis.from_url(redis_url, decode_responses=True)

    async def get(self, key: str) -> CacheEntry | None:
        """Retrieve cache entry by key."""
        data = self._client.get(f"{_KEY_PREFIX}{key}")
        if data is None:
            return None
        try:
            return CacheEntry(**json.loads(data))
        except (json.JSONDecodeError, ValidationError) as e:
            logger.warning("Failed to deserialize cache entry %s: %s", key, e)
            return None

    async def put(self, key: str, entry: CacheEntry) -> None:
        """Store a cache entry."""
        self._client.set(f"{_KEY_PREFIX}{key}", entry.model_dump_json())
        # Index of all keys for list_entries
        self._client.sadd(_INDEX_KEY, key)

    async def delete(self, key: str) -> None:
        """Remove a cache entry."""
        self._client.delete(f"{_KEY_PREFIX}{key}")
        self._client.srem(_INDEX_KEY, key)

    async def list_entries(self) -> list[CacheEntry]:
        """List all cached entries."""
        keys = sorted(self._client.smembers(_INDEX_KEY))
        entries: list[CacheEntry] = []
        for key in keys:
            entry = await self.get(key)
            if entry is not None:
                entries.append(entry)
        return entries

    def close(self) -> None:
        """Close the Redis connection."""
        self._client.close()
