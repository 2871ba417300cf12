# src/api/models.py — v1
"""Session-level models exposed to the rendering layer."""

from __future__ import annotations

from pydantic import BaseModel

from copilens.cache.models import CacheStats, SnapshotCacheStats


class SessionStats(BaseModel):
    """Diagnostics of one editor session."""

    imports: CacheStats
    inspections: SnapshotCacheStats
    in_flight: int = 0
    invalidations: int = 0
    watching: bool = False
