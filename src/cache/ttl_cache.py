# src/cache/ttl_cache.py — v1
"""Bounded TTL/LRU cache keyed by hashed resource identity.

Validity of an entry:
  - ``now - created_at < expiry_time_ms``;
  - when content hashing is enabled, its stored file fingerprint equals
    a freshly computed one (checked by ``get`` only);
  - when position sensitivity is enabled, the recorded cursor offset is
    within ``max_caret_distance`` of the query's offset.

Capacity is never exceeded: inserting a new key at capacity evicts exactly
the entry with the smallest ``last_access``. A background task sweeps
expired entries on a fixed interval so write-once keys are reclaimed too.
A late sweep never produces a stale hit because ``get`` re-validates.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from typing import TYPE_CHECKING, Any, Callable

from copilens.cache.fingerprint import compute_file_fingerprint, hash_resource_key
from copilens.cache.models import CacheStats, FileChangeEvent, TTLCacheEntry

if TYPE_CHECKING:
    from copilens.config.settings import Settings

logger = logging.getLogger(__name__)

DEFAULT_EXPIRY_TIME_MS = 5 * 60 * 1000
DEFAULT_MAX_SIZE = 100
DEFAULT_CLEANUP_INTERVAL_MS = 60 * 1000
DEFAULT_MAX_CARET_DISTANCE = 2000


def wall_clock_ms() -> float:
    return time.time() * 1000


class BoundedTTLCache:
    """TTL + LRU cache with fingerprint re-validation.

    Args:
        expiry_time_ms: Time-to-live of an entry.
        max_size: Capacity; one LRU entry is evicted per insertion beyond it.
        cleanup_interval_ms: Period of the background expiry sweep.
        enable_content_hashing: Re-validate file fingerprints in ``get``.
        enable_position_sensitive: Reject hits far from the recorded cursor.
        max_caret_distance: Allowed cursor distance when position-sensitive.
        clock: Wall-clock source in milliseconds (injectable for tests).
    """

    def __init__(
        self,
        expiry_time_ms: int = DEFAULT_EXPIRY_TIME_MS,
        max_size: int = DEFAULT_MAX_SIZE,
        cleanup_interval_ms: int = DEFAULT_CLEANUP_INTERVAL_MS,
        enable_content_hashing: bool = True,
        enable_position_sensitive: bool = False,
        max_caret_distance: int = DEFAULT_MAX_CARET_DISTANCE,
        clock: Callable[[], float] = wall_clock_ms,
    ) -> None:
        if max_size < 1:
            raise ValueError("max_size must be >= 1")
        self._expiry_time_ms = expiry_time_ms
        self._max_size = max_size
        self._cleanup_interval_ms = cleanup_interval_ms
        self._enable_content_hashing = enable_content_hashing
        self._enable_position_sensitive = enable_position_sensitive
        self._max_caret_distance = max_caret_distance
        self._clock = clock
        self._entries: dict[str, TTLCacheEntry] = {}
        self._sweeper: asyncio.Task[None] | None = None
        self._access_count = 0
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    @classmethod
    def from_settings(
        cls, settings: Settings, clock: Callable[[], float] = wall_clock_ms
    ) -> BoundedTTLCache:
        return cls(
            expiry_time_ms=settings.expiry_time_ms,
            max_size=settings.max_cache_size,
            cleanup_interval_ms=settings.cleanup_interval_ms,
            enable_content_hashing=settings.enable_content_hashing,
            enable_position_sensitive=settings.enable_position_sensitive,
            max_caret_distance=settings.max_caret_distance,
            clock=clock,
        )

    def __len__(self) -> int:
        return len(self._entries)

    # --- Reads ---

    async def get(
        self,
        resource: str,
        position_hint: int | None = None,
        document_version: int | None = None,
    ) -> Any | None:
        """Authoritative lookup; may stat the backing file.

        A fingerprint mismatch evicts the entry. A stat failure is treated
        as "unchanged" (fail-open).
        """
        key = hash_resource_key(resource)
        entry = self._lookup(key, position_hint)
        if entry is None:
            return None

        if (
            document_version is not None
            and entry.document_version is not None
            and document_version != entry.document_version
        ):
            logger.debug("Document version changed for %s, evicting", resource)
            self._remove(key)
            self._misses += 1
            return None

        if self._enable_content_hashing and entry.fingerprint is not None:
            # version changes were handled above; only the file itself is compared
            try:
                fresh = await compute_file_fingerprint(entry.resource, entry.document_version)
            except OSError as e:
                logger.debug("Fingerprint check failed for %s, assuming unchanged: %s", resource, e)
            else:
                if fresh != entry.fingerprint:
                    logger.debug("Fingerprint mismatch for %s, evicting", resource)
                    if self._entries.get(key) is entry:
                        self._remove(key)
                    self._misses += 1
                    return None
            # the entry may have been invalidated or replaced while suspended
            if self._entries.get(key) is not entry:
                self._misses += 1
                return None

        return self._hit(entry)

    def get_fast(self, resource: str, position_hint: int | None = None) -> Any | None:
        """Non-suspending lookup trusting TTL and position only."""
        entry = self._lookup(hash_resource_key(resource), position_hint)
        if entry is None:
            return None
        return self._hit(entry)

    def is_cached(self, resource: str) -> bool:
        """Presence check that does not count as an access."""
        return hash_resource_key(resource) in self._entries

    # --- Writes ---

    async def put(
        self,
        resource: str,
        value: Any,
        document_version: int | None = None,
        position_hint: int | None = None,
    ) -> None:
        """Insert or replace the entry for `resource`."""
        key = hash_resource_key(resource)
        fingerprint = None
        if self._enable_content_hashing:
            try:
                fingerprint = await compute_file_fingerprint(resource, document_version)
            except OSError as e:
                logger.debug("Cannot fingerprint %s, storing without it: %s", resource, e)

        now = self._clock()
        if key not in self._entries and len(self._entries) >= self._max_size:
            self._evict_lru()
        self._entries[key] = TTLCacheEntry(
            id=key,
            resource=resource,
            value=value,
            created_at=now,
            last_access=now,
            document_version=document_version,
            fingerprint=fingerprint,
            position_hint=position_hint,
        )

    def invalidate(self, resource: str) -> bool:
        """Drop the entry for `resource`; returns whether one existed."""
        removed = self._remove(hash_resource_key(resource))
        if removed:
            logger.debug("Cache invalidated for %s", resource)
        return removed

    def clear(self) -> None:
        self._entries.clear()

    def sweep_expired(self) -> int:
        """Remove every expired entry; returns how many were removed."""
        now = self._clock()
        expired = [k for k, e in self._entries.items() if self._is_expired(e, now)]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug("Swept %d expired cache entries", len(expired))
        return len(expired)

    def handle_file_event(self, event: FileChangeEvent) -> bool:
        """Invalidate on a file change or delete notification."""
        return self.invalidate(event.uri)

    # --- Lifecycle ---

    def start(self) -> None:
        """Start the periodic sweep; requires a running event loop."""
        if self._sweeper is None or self._sweeper.done():
            self._sweeper = asyncio.get_running_loop().create_task(
                self._sweep_periodically(), name="copilens-ttl-sweep"
            )
        if self._cleanup_interval_ms > self._expiry_time_ms:
            logger.debug(
                "Cleanup interval (%dms) exceeds TTL (%dms); reclamation will lag",
                self._cleanup_interval_ms, self._expiry_time_ms,
            )

    async def dispose(self) -> None:
        """Stop the sweep task and drop all entries."""
        if self._sweeper is not None:
            self._sweeper.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._sweeper
            self._sweeper = None
        self.clear()

    def stats(self) -> CacheStats:
        return CacheStats(
            size=len(self._entries),
            max_size=self._max_size,
            access_count=self._access_count,
            hits=self._hits,
            misses=self._misses,
            evictions=self._evictions,
        )

    # --- Internal helpers ---

    async def _sweep_periodically(self) -> None:
        interval_s = self._cleanup_interval_ms / 1000
        while True:
            await asyncio.sleep(interval_s)
            self.sweep_expired()

    def _lookup(self, key: str, position_hint: int | None) -> TTLCacheEntry | None:
        self._access_count += 1
        entry = self._entries.get(key)
        if entry is None:
            self._misses += 1
            return None
        if self._is_expired(entry, self._clock()):
            del self._entries[key]
            self._misses += 1
            return None
        if not self._position_matches(entry, position_hint):
            self._misses += 1
            return None
        return entry

    def _hit(self, entry: TTLCacheEntry) -> Any:
        entry.last_access = self._clock()
        self._hits += 1
        return entry.value

    def _is_expired(self, entry: TTLCacheEntry, now: float) -> bool:
        return now - entry.created_at >= self._expiry_time_ms

    def _position_matches(self, entry: TTLCacheEntry, position_hint: int | None) -> bool:
        if not self._enable_position_sensitive:
            return True
        if position_hint is None or entry.position_hint is None:
            return True
        return abs(entry.position_hint - position_hint) <= self._max_caret_distance

    def _evict_lru(self) -> None:
        victim = min(self._entries.values(), key=lambda e: e.last_access)
        del self._entries[victim.id]
        self._evictions += 1
        logger.debug("Evicted least recently used entry for %s", victim.resource)

    def _remove(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None
