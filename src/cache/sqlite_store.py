# src/cache/sqlite_store.py — v2
"""SQLite-based cache store (CACHE_BACKEND=sqlite).

Uses stdlib sqlite3, no external dependency.
Better than JSON files for workspaces with many packages and platforms.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from pathlib import Path

from pydantic import ValidationError

from pkgweaver.cache.base_cache_store import BaseCacheStore
from pkgweaver.cache.models import CacheEntry

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS cache_entries (
    key TEXT PRIMARY KEY,
    data TEXT NOT NULL,
    identifier TEXT NOT NULL,
    platform TEXT NOT NULL,
    fingerprint TEXT NOT NULL,
    created_at TEXT DEFAULT CURRENT_TIMESTAMP
);
CREATE INDEX IF NOT EXISTS idx_identifier ON cache_entries(identifier, platform);
"""


class SqliteCacheStore(BaseCacheStore):
    """SQLite-backed cache store."""

    def __init__(self, db_path: Path | str) -> None:
        self._db_path = Path(db_path).expanduser()
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(self._db_path))
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.executescript(_SCHEMA)

    async def get(self, key: str) -> CacheEntry | None:
        """Retrieve cache entry by key."""
        cursor = self._conn.execute(
            "SELECT data FROM cache_entries WHERE key = ?", (key,)
        )
        row = cursor.fetchone()
        if row is None:
            return None
        try:
            return CacheEntry(**json.loads(row[0]))
        except (json.JSONDecodeError, ValidationError) as e:
            logger.warning("Failed to deserialize cache entry %s: %s", key, e)
            return None

    async def put(self, key: str, entry: CacheEntry) -> None:
        """Store a cache entry (upsert)."""
        self._conn.execute(
            """INSERT OR REPLACE INTO cache_entries
               (key, data, identifier, platform, fingerprint)
               VALUES (?, ?, ?, ?, ?)""",
            (
                key,
                entry.model_dump_json(),
                entry.identifier,
                entry.platform.key,
                entry.fingerprint,
            ),
        )
        self._conn.commit()

    async def delete(self, key: str) -> None:
        """Remove a cache entry."""
        self._conn.execute("DELETE FROM cache_entries WHERE key = ?", (key,))
        self._conn.commit()

    async def list_entries(self) -> list[CacheEntry]:
        """List all cached entries."""
        cursor = self._conn.execute("SELECT data FROM cache_entries ORDER BY key")
        entries: list[CacheEntry] = []
        for row in cursor.fetchall():
            try:
                entries.append(CacheEntry(**json.loads(row[0])))
            except (json.JSONDecodeError, ValidationError):
                continue
        return entries

    async def entries_for(self, identifier: str) -> list[CacheEntry]:
        """All entries of one package, across platforms and fingerprints."""
        cursor = self._conn.execute(
            "SELECT data FROM cache_entries WHERE identifier = ? ORDER BY key",
            (identifier,),
        )
        return [CacheEntry(**json.loads(row[0])) for row in cursor.fetchall()]

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()
