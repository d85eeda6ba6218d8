# src/cache/json_store.py — v2
"""JSON file-based cache store (default CACHE_BACKEND=json).

Stores cache entries as individual JSON files under CACHE_ROOT, one
sub-directory per platform. File names are the SHA-256 of the full key,
so identifiers containing slashes never collide.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import tempfile
from pathlib import Path

from pydantic import ValidationError

from pkgweaver.cache.base_cache_store import BaseCacheStore
from pkgweaver.cache.models import CacheEntry

logger = logging.getLogger(__name__)


class JsonCacheStore(BaseCacheStore):
    """File-based cache store using JSON files."""

    def __init__(self, cache_root: Path | str) -> None:
        self._root = Path(cache_root).expanduser()
        self._root.mkdir(parents=True, exist_ok=True)

    @property
    def root(self) -> Path:
        return self._root

    async def get(self, key: str) -> CacheEntry | None:
        """Retrieve cache entry by key."""
        path = self._entry_path(key)
        if not path.exists():
            return None
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            return CacheEntry(**data)
        except (json.JSONDecodeError, ValidationError, OSError) as e:
            logger.warning("Failed to read cache entry %s: %s", key, e)
            return None

    async def put(self, key: str, entry: CacheEntry) -> None:
        """Store a cache entry (atomic replace)."""
        path = self._entry_path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(entry.model_dump_json(indent=2))
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    async def delete(self, key: str) -> None:
        """Remove a cache entry."""
        path = self._entry_path(key)
        if path.exists():
            path.unlink()

    async def list_entries(self) -> list[CacheEntry]:
        """List all cached entries."""
        entries: list[CacheEntry] = []
        if not self._root.is_dir():
            return entries

        for path in sorted(self._root.glob("*/*.json")):
            try:
                data = json.loads(path.read_text(encoding="utf-8"))
                entries.append(CacheEntry(**data))
            except (json.JSONDecodeError, ValidationError, OSError) as e:
                logger.debug("Skipping unreadable cache file %s: %s", path, e)
                continue

        return entries

    def _entry_path(self, key: str) -> Path:
        """Return file path for a cache key."""
        platform_key = key.split("/", 1)[0] or "_"
        digest = hashlib.sha256(key.encode("utf-8")).hexdigest()
        return self._root / platform_key / f"{digest}.json"
