# src/api/session.py — v1
"""Editor session: the one owner of caches, gate and watcher.

Usage:
    async with EditorSession(settings, inspection_backend=backend) as session:
        findings = await session.inspections.get_or_inspect(document)

Everything with scheduled work (sweep task, debounce timers, watchdog
observer) is started by ``start()`` and torn down by ``dispose()``.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable

from copilens.api.models import SessionStats
from copilens.cache.fingerprint import normalize_resource
from copilens.cache.invalidation import InvalidationSource
from copilens.cache.models import ChangeType, FileChangeEvent
from copilens.cache.snapshot_cache import SnapshotKeyedCache
from copilens.cache.ttl_cache import BoundedTTLCache, wall_clock_ms
from copilens.concurrency.gate import CoalescingGate
from copilens.concurrency.retry import RetryPolicy
from copilens.config.settings import Settings, load_settings
from copilens.core.document import TextDocument
from copilens.core.outline import JavaOutlineNavigator
from copilens.imports.service import ImportContextService
from copilens.inspection.service import InspectionService

if TYPE_CHECKING:
    from copilens.backend.base_backend import ImportBackend, InspectionBackend
    from copilens.core.symbols import SymbolNavigator

logger = logging.getLogger(__name__)


class SessionNotConfiguredError(RuntimeError):
    """The service needed for an operation has no backend."""


class EditorSession:
    """Explicitly owned cache layer for one editor session.

    Args:
        settings: Configuration; loaded from the environment when omitted.
        navigator: Symbol source; the Java outline navigator by default.
        import_backend: Enables ``imports`` when given.
        inspection_backend: Enables ``inspections`` when given.
        notify: Receives user-visible notices.
        clock: Wall clock in milliseconds for the TTL cache.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        navigator: SymbolNavigator | None = None,
        import_backend: ImportBackend | None = None,
        inspection_backend: InspectionBackend | None = None,
        notify: Callable[[str], object] | None = None,
        clock: Callable[[], float] = wall_clock_ms,
    ) -> None:
        self.settings = settings or load_settings()
        self.navigator = navigator or JavaOutlineNavigator()
        self.import_cache = BoundedTTLCache.from_settings(self.settings, clock=clock)
        self.snapshot_cache = SnapshotKeyedCache(self.navigator)
        self.gate = CoalescingGate.from_settings(self.settings)
        self.invalidation = InvalidationSource.from_settings(self.settings)

        self._imports = (
            ImportContextService(
                self.import_cache,
                self.gate,
                import_backend,
                retry_policy=RetryPolicy.from_settings(self.settings),
                notify=notify,
            )
            if import_backend is not None
            else None
        )
        self._inspections = (
            InspectionService(
                self.snapshot_cache, self.gate, inspection_backend, self.navigator, notify=notify
            )
            if inspection_backend is not None
            else None
        )

        self._subscribed = False
        self._subscribe()
        self._started = False

    @property
    def imports(self) -> ImportContextService:
        if self._imports is None:
            raise SessionNotConfiguredError("No import backend configured")
        return self._imports

    @property
    def inspections(self) -> InspectionService:
        if self._inspections is None:
            raise SessionNotConfiguredError("No inspection backend configured")
        return self._inspections

    @property
    def started(self) -> bool:
        return self._started

    # --- Lifecycle ---

    async def start(self) -> None:
        """Start the expiry sweep and, with a workspace root, the file watcher."""
        if self._started:
            return
        self._subscribe()
        self.import_cache.start()
        if self.settings.workspace_root is not None:
            self.invalidation.start(self.settings.workspace_root)
        self._started = True
        logger.info("Editor session started")

    async def dispose(self) -> None:
        """Stop timers and watchers, then drop every cached entry."""
        await self.gate.dispose()
        self.invalidation.dispose()
        self._subscribed = False
        await self.import_cache.dispose()
        self.snapshot_cache.invalidate()
        self._started = False
        logger.info("Editor session disposed")

    async def __aenter__(self) -> EditorSession:
        await self.start()
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.dispose()

    # --- Editor notifications ---

    def on_document_closed(self, document: TextDocument) -> None:
        self.snapshot_cache.invalidate(document.key)
        forget = getattr(self.navigator, "forget", None)
        if forget is not None:
            forget(document.key)

    def on_file_event(self, uri: str, change_type: ChangeType | str) -> int:
        """Feed an editor or file-system change through the invalidation filters."""
        return self.invalidation.notify(uri, change_type)

    def stats(self) -> SessionStats:
        return SessionStats(
            imports=self.import_cache.stats(),
            inspections=self.snapshot_cache.stats(),
            in_flight=self.gate.in_flight,
            invalidations=self.invalidation.dispatched_count,
            watching=self.invalidation.watching,
        )

    # --- Internal helpers ---

    def _subscribe(self) -> None:
        # InvalidationSource.dispose() drops subscriptions; a restart registers again
        if self._subscribed:
            return
        self.invalidation.subscribe(self.import_cache.handle_file_event, self.import_cache.is_cached)
        self.invalidation.subscribe(self._invalidate_inspections, self._has_inspections)
        self._subscribed = True

    def _snapshot_keys_for(self, uri: str) -> list[str]:
        path = normalize_resource(uri)
        return [k for k in self.snapshot_cache.document_keys() if normalize_resource(k) == path]

    def _has_inspections(self, uri: str) -> bool:
        return bool(self._snapshot_keys_for(uri))

    def _invalidate_inspections(self, event: FileChangeEvent) -> None:
        for key in self._snapshot_keys_for(event.uri):
            self.snapshot_cache.invalidate(key)
