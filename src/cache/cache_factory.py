# src/cache/cache_factory.py — v3
"""Factory for cache store instantiation (CACHE_BACKEND setting)."""

from __future__ import annotations

from pkgweaver.cache.artifact_cache import ArtifactCache
from pkgweaver.cache.base_cache_store import BaseCacheStore
from pkgweaver.config.settings import Settings


def create_cache_store(settings: Settings | None = None) -> BaseCacheStore:
    """Instantiate the configured cache backend.

    Args:
        settings: Application settings. Defaults to JSON backend.

    Returns:
        Configured BaseCacheStore implementation.
    """
    backend = "json" if settings is None else settings.cache_backend
    cache_root = "~/.pkgweaver/cache" if settings is None else str(settings.cache_root)

    if backend == "json":
        from pkgweaver.cache.json_store import JsonCacheStore
        return JsonCacheStore(cache_root=cache_root)

    if backend == "sqlite":
        from pkgweaver.cache.sqlite_store import SqliteCacheStore
        return SqliteCacheStore(db_path=f"{cache_root}/pkgweaver_cache.db")

    if backend == "redis":
        from pkgweaver.cache.redis_store import RedisCacheStore
        if settings is None or not settings.cache_redis_url:
            raise ValueError(
                "CACHE_REDIS_URL must be set when CACHE_BACKEND=redis"
            )
        return RedisCacheStore(redis_url=settings.cache_redis_url)

    raise ValueError(f"Unsupported cache backend: {backend!r}")


def create_artifact_cache(settings: Settings) -> ArtifactCache:
    """ArtifactCache over the configured store, or a disabled one."""
    store = create_cache_store(settings) if settings.cache_enabled else None
    return ArtifactCache(store, toolchain_id=settings.toolchain_id)
