# src/cache/models.py — v2
"""Cache domain models: fingerprints, entries, statistics, change events."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, computed_field

from copilens.core.models import Inspection


class FileFingerprint(BaseModel):
    """Cheap composite identity of a file: version, mtime and size."""

    model_config = ConfigDict(frozen=True)

    document_version: int | None = None
    modified_time_ns: int
    size: int


class TTLCacheEntry(BaseModel):
    """Single entry of the bounded TTL cache.

    `created_at` and `last_access` are wall-clock milliseconds.
    """

    id: str
    resource: str
    value: Any
    created_at: float
    last_access: float
    document_version: int | None = None
    fingerprint: FileFingerprint | None = None
    position_hint: int | None = None


class SnapshotEntry(BaseModel):
    """Results cached for one symbol, valid while its text is unchanged."""

    snapshot_id: str
    results: list[Inspection] = Field(default_factory=list)


class CacheStats(BaseModel):
    """Diagnostics exposed to the rendering layer."""

    size: int
    max_size: int
    access_count: int = 0
    hits: int = 0
    misses: int = 0
    evictions: int = 0

    @computed_field  # type: ignore[prop-decorator]
    @property
    def hit_rate(self) -> float | None:
        if self.access_count == 0:
            return None
        return self.hits / self.access_count


class SnapshotCacheStats(BaseModel):
    documents: int
    symbols: int
    results: int


class ChangeType(str, Enum):
    CREATED = "created"
    CHANGED = "changed"
    DELETED = "deleted"


class FileChangeEvent(BaseModel):
    """File-system or editor change notification."""

    model_config = ConfigDict(frozen=True)

    uri: str
    change_type: ChangeType
