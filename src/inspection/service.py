# src/inspection/service.py — v1
"""Inspection orchestration: cache first, then the guarded backend.

Reads go to the SnapshotKeyedCache and never suspend. A miss (or an
explicit inspect request) goes through the CoalescingGate: a rejected
request returns ``[]`` plus a notice, an admitted one expands the target
range to whole symbols, calls the backend, parses the answer and files
each finding under the symbol that locates it.

Cancelled requests return ``[]`` without touching the cache. Backend
failures propagate and are never cached.
"""

from __future__ import annotations

import logging
from typing import Callable

from copilens.backend.base_backend import InspectionBackend
from copilens.cache.snapshot_cache import SnapshotKeyedCache
from copilens.concurrency.cancellation import CancelToken, OperationCancelled, race_cancellation
from copilens.concurrency.gate import CoalescingGate, GateDecision
from copilens.core.document import TextDocument
from copilens.core.models import Inspection, Range, SymbolInfo
from copilens.core.symbols import (
    SymbolNavigator,
    classes_contained_in_range,
    find_symbol,
    innermost_class_containing,
    members_intersecting_range,
    union_range,
)
from copilens.inspection.parser import extract_inspections
from copilens.logging.context import set_document_context, set_operation_context

logger = logging.getLogger(__name__)

Notify = Callable[[str], object]

BUSY_MESSAGE = "Inspection is busy, please retry after the current inspections finish."
NOTHING_TO_INSPECT = "Nothing to inspect."


class InspectionService:
    """Symbol-scoped inspections backed by a SnapshotKeyedCache.

    Args:
        cache: Result cache; the service is its only writer.
        gate: Admission control shared with other expensive operations.
        backend: Produces raw inspection text.
        navigator: Supplies the symbols of a document.
        notify: Receives user-visible notices (defaults to a warning log).
    """

    def __init__(
        self,
        cache: SnapshotKeyedCache,
        gate: CoalescingGate,
        backend: InspectionBackend,
        navigator: SymbolNavigator,
        notify: Notify | None = None,
    ) -> None:
        self._cache = cache
        self._gate = gate
        self._backend = backend
        self._navigator = navigator
        self._notify = notify or logger.warning

    # --- Cached reads ---

    def get_inspections(
        self,
        document: TextDocument,
        symbol: SymbolInfo | None = None,
        include_contained: bool = True,
    ) -> list[Inspection]:
        """Valid cached inspections; never calls the backend."""
        return self._cache.get_valid(document, symbol, include_contained)

    def has_inspections(self, document: TextDocument, symbol: SymbolInfo | None = None) -> bool:
        return self._cache.has_valid_entries(document, symbol, include_contained=symbol is not None)

    async def get_or_inspect(
        self,
        document: TextDocument,
        symbol: SymbolInfo | None = None,
        token: CancelToken | None = None,
    ) -> list[Inspection]:
        """Cached inspections when any are valid, a fresh inspection otherwise."""
        cached = self.get_inspections(document, symbol)
        if cached:
            return cached
        if symbol is None:
            return await self.inspect_document(document, token)
        return await self.inspect_symbol(document, symbol, token)

    # --- Backend-driven operations ---

    async def inspect_document(
        self, document: TextDocument, token: CancelToken | None = None
    ) -> list[Inspection]:
        set_document_context(document.key)
        if not self._navigator.list_symbols(document):
            logger.warning("No symbol found in %s, skipping inspection", document.key)
            return []
        return await self.inspect_range(document, document.full_range, token)

    async def inspect_symbol(
        self,
        document: TextDocument,
        symbol: SymbolInfo,
        token: CancelToken | None = None,
    ) -> list[Inspection]:
        set_document_context(document.key, symbol.qualified_name)
        logger.info("Inspecting %s", symbol)
        return await self.inspect_range(document, symbol.range, token)

    async def inspect_range(
        self,
        document: TextDocument,
        range: Range,
        token: CancelToken | None = None,
    ) -> list[Inspection]:
        """Inspect the symbols touched by `range` and replace their cached results."""
        set_operation_context("inspect", cache_key=document.key)
        result = await self._gate.run_guarded(
            document.key, lambda: self._inspect_range(document, range, token)
        )
        if not result.granted:
            self._reject(document, result.decision)
            return []
        return result.value or []

    async def inspect_more(
        self, document: TextDocument, token: CancelToken | None = None
    ) -> list[Inspection]:
        """Ask for findings beyond the valid ones and append them.

        Falls back to a full inspection when nothing valid is cached yet.
        """
        set_document_context(document.key)
        set_operation_context("inspect_more", cache_key=document.key)
        symbols = self._navigator.list_symbols(document)
        if not symbols:
            logger.warning("No symbol found in %s, skipping inspection", document.key)
            return []
        existing = self._cache.get_valid(document)
        if not existing:
            logger.info("No valid inspections for %s yet, inspecting the document", document.key)
            return await self.inspect_document(document, token)

        async def run() -> list[Inspection]:
            try:
                raw = await race_cancellation(
                    self._backend.run_inspection(document.text, token, previous=existing),
                    token,
                )
            except OperationCancelled:
                logger.info("Inspecting more of %s cancelled", document.key)
                return []
            found = extract_inspections(raw, document.lines)
            return self._store_located(document, symbols, found, append=True)

        result = await self._gate.run_guarded(document.key, run)
        if not result.granted:
            self._reject(document, result.decision)
            return []
        return result.value or []

    async def inspect_document_debounced(
        self,
        document: TextDocument,
        token: CancelToken | None = None,
        wait_ms: int | None = None,
    ) -> list[Inspection]:
        """Re-inspect after edits settle; rapid calls share the latest run."""
        return await self._gate.debounce(
            document.key, lambda: self.inspect_document(document, token), wait_ms
        )

    # --- Dismissal and invalidation ---

    def dismiss(self, document: TextDocument, inspection: Inspection) -> bool:
        """Hide one inspection until its symbol changes."""
        symbol = None
        if inspection.symbol is not None:
            symbol = find_symbol(self._navigator.list_symbols(document), inspection.symbol)
        return self._cache.mark_ignored(document, symbol, inspection) > 0

    def dismiss_all(self, document: TextDocument, symbol: SymbolInfo | None = None) -> int:
        return self._cache.mark_ignored(document, symbol)

    def forget(self, document: TextDocument | str, symbol: SymbolInfo | None = None) -> None:
        self._cache.invalidate(document, symbol)

    # --- Internal helpers ---

    async def _inspect_range(
        self, document: TextDocument, range: Range, token: CancelToken | None
    ) -> list[Inspection]:
        symbols = self._navigator.list_symbols(document)
        targets = [
            *classes_contained_in_range(symbols, range),
            *members_intersecting_range(symbols, range),
        ]
        if not targets:
            container = innermost_class_containing(symbols, range)
            if container is not None:
                targets.append(container)
        if not targets:
            logger.warning("No symbol found in the range of %s", document.key)
            self._notify(NOTHING_TO_INSPECT)
            return []

        expanded = union_range(targets).union(range)
        logger.info(
            "Inspecting lines %d-%d of %s (%d symbols)",
            expanded.start.line, expanded.end.line, document.key, len(targets),
        )
        try:
            raw = await race_cancellation(
                self._backend.run_inspection(
                    document.text,
                    token,
                    start_line=expanded.start.line,
                    end_line=expanded.end.line,
                ),
                token,
            )
        except OperationCancelled:
            logger.info("Inspection of %s cancelled", document.key)
            return []

        found = extract_inspections(
            raw, document.lines, expanded.start.line, expanded.end.line
        )
        return self._store_located(document, targets, found, append=False)

    def _store_located(
        self,
        document: TextDocument,
        symbols: list[SymbolInfo],
        inspections: list[Inspection],
        append: bool,
    ) -> list[Inspection]:
        """File each inspection under the first symbol that locates it."""
        by_symbol: dict[str, list[Inspection]] = {s.qualified_name: [] for s in symbols}
        located: list[Inspection] = []
        for inspection in inspections:
            owner = next((s for s in symbols if s.locates_line(inspection.start_line)), None)
            if owner is None:
                logger.warning(
                    "Cannot locate a symbol for inspection %r at line %d",
                    inspection.description, inspection.start_line,
                )
                continue
            base = owner.range.start.line
            inspection = inspection.model_copy(
                update={
                    "symbol": owner.qualified_name,
                    "relative_start_line": inspection.start_line - base,
                    "relative_end_line": inspection.end_line - base,
                }
            )
            by_symbol[owner.qualified_name].append(inspection)
            located.append(inspection)

        for s in symbols:
            results = by_symbol[s.qualified_name]
            if append and not results:
                continue
            self._cache.store(document, s, results, append=append)
        return located

    def _reject(self, document: TextDocument, decision: GateDecision) -> None:
        if decision is GateDecision.BUSY_GLOBAL:
            self._notify(BUSY_MESSAGE)
        else:
            self._notify(f"{document.key} is already being inspected.")
