# src/cache/invalidation.py — v1
"""File-system driven invalidation feeding the caches.

Events come from two places: a watchdog observer over the workspace root
(running on its own thread, marshalled onto the event loop) and explicit
editor notifications through ``notify``. Excluded directories (build
output, dependencies, VCS metadata) and non-matching file names are
filtered before any cache is consulted. With ``watch_only_cached_files``
an event only reaches subscribers that report the file as cached.

Invalidation is best effort: readers re-validate entries themselves, so a
late or lost event never yields an incorrect hit.
"""

from __future__ import annotations

import asyncio
import fnmatch
import logging
from dataclasses import dataclass
from pathlib import Path, PurePath
from typing import TYPE_CHECKING, Callable

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from copilens.cache.fingerprint import normalize_resource
from copilens.cache.models import ChangeType, FileChangeEvent

if TYPE_CHECKING:
    from copilens.config.settings import Settings

logger = logging.getLogger(__name__)

DEFAULT_EXCLUDE_DIRS = (
    "node_modules", ".git", "build", "out", "target", "bin", ".gradle", ".idea", "dist",
)

EventHandler = Callable[[FileChangeEvent], object]
InterestCheck = Callable[[str], bool]


def is_excluded_path(path: str, exclude_dirs: set[str] | frozenset[str]) -> bool:
    """True if any directory component of `path` is excluded."""
    return any(part in exclude_dirs for part in PurePath(path).parts[:-1])


@dataclass
class _Subscription:
    handler: EventHandler
    is_interested: InterestCheck | None = None


class _WatchdogBridge(FileSystemEventHandler):
    """Forwards watchdog callbacks from the observer thread to the loop."""

    def __init__(self, source: InvalidationSource, loop: asyncio.AbstractEventLoop) -> None:
        self._source = source
        self._loop = loop

    def _forward(self, path: str | bytes, change_type: ChangeType) -> None:
        if isinstance(path, bytes):
            path = path.decode("utf-8", errors="replace")
        if self._loop.is_closed():
            return
        self._loop.call_soon_threadsafe(self._source.notify, path, change_type)

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._forward(event.src_path, ChangeType.CHANGED)

    def on_deleted(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._forward(event.src_path, ChangeType.DELETED)

    def on_moved(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._forward(event.src_path, ChangeType.DELETED)


class InvalidationSource:
    """Filters change notifications and fans them out to cache handlers."""

    def __init__(
        self,
        exclude_dirs: list[str] | tuple[str, ...] = DEFAULT_EXCLUDE_DIRS,
        patterns: list[str] | tuple[str, ...] = ("*.java",),
        watch_only_cached_files: bool = True,
    ) -> None:
        self._exclude_dirs = frozenset(exclude_dirs)
        self._patterns = tuple(patterns)
        self._watch_only_cached_files = watch_only_cached_files
        self._subscriptions: list[_Subscription] = []
        self._observer: Observer | None = None
        self._dispatched = 0

    @classmethod
    def from_settings(cls, settings: Settings) -> InvalidationSource:
        return cls(
            exclude_dirs=settings.watcher_exclude_dirs_list,
            patterns=settings.watcher_patterns_list,
            watch_only_cached_files=settings.watch_only_cached_files,
        )

    @property
    def watching(self) -> bool:
        return self._observer is not None

    @property
    def dispatched_count(self) -> int:
        return self._dispatched

    def subscribe(
        self, handler: EventHandler, is_interested: InterestCheck | None = None
    ) -> None:
        """Register a handler; `is_interested` reports whether a file is cached."""
        self._subscriptions.append(_Subscription(handler, is_interested))

    def accepts(self, path: str) -> bool:
        """Path filter applied before any cache lookup."""
        if is_excluded_path(path, self._exclude_dirs):
            return False
        if not self._patterns:
            return True
        name = PurePath(path).name
        return any(fnmatch.fnmatch(name, p) for p in self._patterns)

    def notify(self, uri: str, change_type: ChangeType | str) -> int:
        """Dispatch one change event; returns how many handlers received it."""
        path = normalize_resource(uri)
        if not self.accepts(path):
            return 0
        event = FileChangeEvent(uri=uri, change_type=ChangeType(change_type))
        delivered = 0
        for sub in self._subscriptions:
            if (
                self._watch_only_cached_files
                and sub.is_interested is not None
                and not sub.is_interested(uri)
            ):
                continue
            try:
                sub.handler(event)
            except Exception:
                logger.exception("Invalidation handler failed for %s (%s)", uri, event.change_type.value)
                continue
            delivered += 1
        if delivered:
            self._dispatched += 1
            logger.debug("Dispatched %s event for %s to %d handlers", event.change_type.value, uri, delivered)
        return delivered

    # --- Lifecycle ---

    def start(self, root: str | Path) -> None:
        """Watch `root` recursively; must be called from the event loop."""
        if self._observer is not None:
            return
        loop = asyncio.get_running_loop()
        observer = Observer()
        observer.schedule(_WatchdogBridge(self, loop), str(Path(root).expanduser()), recursive=True)
        observer.daemon = True
        observer.start()
        self._observer = observer
        logger.info("File watching started for %s", root)

    def dispose(self) -> None:
        """Stop the observer and drop all subscriptions."""
        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=5)
            self._observer = None
            logger.info("File watching stopped")
        self._subscriptions.clear()
