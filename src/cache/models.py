# src/cache/models.py — v2
"""Cache domain models: CacheEntry, CacheStats and the cache key format.

An entry is addressed by (identifier, platform, fingerprint). The key
string embeds all three so no store can confuse platforms or contents.
"""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, Field

from pkgweaver.core.models import Artifact, Platform


def cache_key(identifier: str, platform: Platform, fingerprint: str) -> str:
    """Canonical key, e.g. 'linux_amd64/x/y@3fa2...'."""
    return f"{platform.key}/{identifier}@{fingerprint}"


class CacheEntry(BaseModel):
    """Compiled artifact of one package for one platform and fingerprint."""

    identifier: str
    platform: Platform
    fingerprint: str
    artifact: Artifact
    # Transitive dependency identifier -> fingerprint at compile time.
    dependency_fingerprints: dict[str, str] = Field(default_factory=dict)
    toolchain_id: str = ""
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def key(self) -> str:
        return cache_key(self.identifier, self.platform, self.fingerprint)


class CacheStats(BaseModel):
    """Counters for one ArtifactCache instance."""

    hits: int = 0
    misses: int = 0
    writes: int = 0
    skipped_writes: int = 0
