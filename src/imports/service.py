# src/imports/service.py — v1
"""Local import context for a document, cached in a BoundedTTLCache.

Resolution goes through the backend at most once per document at a time
and is retried at a fixed interval while the backend is still starting.
Only successful resolutions are cached.
"""

from __future__ import annotations

import logging
from typing import Callable

from copilens.backend.base_backend import ImportBackend
from copilens.cache.ttl_cache import BoundedTTLCache
from copilens.concurrency.cancellation import CancelToken, OperationCancelled, race_cancellation
from copilens.concurrency.gate import CoalescingGate, GateDecision
from copilens.concurrency.retry import NO_RETRY, RetryPolicy, retry_until
from copilens.core.document import TextDocument
from copilens.core.models import ImportClass
from copilens.logging.context import set_document_context, set_operation_context

logger = logging.getLogger(__name__)

Notify = Callable[[str], object]


def _gate_key(uri: str) -> str:
    # kept apart from inspection requests on the same document
    return f"imports:{uri}"


class ImportContextService:
    """Resolves and caches the local types imported by a document."""

    def __init__(
        self,
        cache: BoundedTTLCache,
        gate: CoalescingGate,
        backend: ImportBackend,
        retry_policy: RetryPolicy = NO_RETRY,
        notify: Notify | None = None,
    ) -> None:
        self._cache = cache
        self._gate = gate
        self._backend = backend
        self._retry_policy = retry_policy
        self._notify = notify or logger.warning

    def resolve_fast(
        self, document: TextDocument, position_hint: int | None = None
    ) -> list[ImportClass] | None:
        """Cached imports without fingerprint I/O; None on a miss."""
        return self._cache.get_fast(document.uri, position_hint)

    async def resolve(
        self,
        document: TextDocument,
        position_hint: int | None = None,
        token: CancelToken | None = None,
    ) -> list[ImportClass]:
        """Imports of `document`, from the cache or the backend.

        Returns ``[]`` when cancelled or rejected by the gate.

        Raises:
            BackendError: If the backend keeps failing until the retry deadline.
        """
        set_document_context(document.key)
        set_operation_context("resolve_imports", cache_key=document.uri)
        cached = await self._cache.get(document.uri, position_hint, document.version)
        if cached is not None:
            return cached

        async def fetch() -> list[ImportClass]:
            return await race_cancellation(
                retry_until(
                    self._backend.resolve_imports,
                    document.uri,
                    token,
                    policy=self._retry_policy,
                    label=f"resolve imports of {document.uri}",
                ),
                token,
            )

        try:
            result = await self._gate.run_guarded(_gate_key(document.uri), fetch)
        except OperationCancelled:
            logger.info("Import resolution for %s cancelled", document.uri)
            return []
        if not result.granted:
            if result.decision is GateDecision.BUSY_GLOBAL:
                self._notify("Import resolution is busy, please retry later.")
            else:
                self._notify(f"Imports of {document.uri} are already being resolved.")
            return []

        imports = result.value or []
        await self._cache.put(
            document.uri, imports, document_version=document.version, position_hint=position_hint
        )
        logger.debug("Cached %d imports for %s", len(imports), document.uri)
        return imports

    def invalidate(self, document: TextDocument | str) -> bool:
        uri = document if isinstance(document, str) else document.uri
        return self._cache.invalidate(uri)
