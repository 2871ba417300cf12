# src/cache/snapshot_cache.py — v1
"""Per-document, per-symbol cache of derived results.

Layout: ``document key -> qualified name -> SnapshotEntry(snapshot_id, results)``.

An entry is valid only while the snapshot identity recomputed from the
symbol's current text equals the stored one. Results keep positions
relative to the symbol start and are projected to absolute lines on every
read, so they follow a symbol that moves up or down in the file.

Every operation is total: a miss or stale snapshot yields an empty result,
never an exception. All operations are synchronous in-memory work.
"""

from __future__ import annotations

import logging

from copilens.cache.fingerprint import symbol_snapshot_id
from copilens.cache.models import SnapshotCacheStats, SnapshotEntry
from copilens.core.document import TextDocument
from copilens.core.models import Inspection, SymbolInfo
from copilens.core.symbols import SymbolNavigator, symbols_contained_in

logger = logging.getLogger(__name__)

QUALIFIED_NAME_DELIMITER = "."


def is_nested_name(name: str, parent: str) -> bool:
    """True if `name` is `parent` or a qualified name nested under it.

    Requires a delimiter right after the prefix, so "AccountManager" is
    not nested under "Account".
    """
    return name == parent or name.startswith(parent + QUALIFIED_NAME_DELIMITER)


def _document_key(document: TextDocument | str) -> str:
    return document if isinstance(document, str) else document.key


class SnapshotKeyedCache:
    """Symbol-scoped result cache validated by snapshot identity."""

    def __init__(self, navigator: SymbolNavigator) -> None:
        self._navigator = navigator
        self._documents: dict[str, dict[str, SnapshotEntry]] = {}

    # --- Reads ---

    def has_valid_entries(
        self,
        document: TextDocument,
        symbol: SymbolInfo | None = None,
        include_contained: bool = False,
    ) -> bool:
        """Whether at least one non-ignored, snapshot-valid result exists."""
        if document.key not in self._documents:
            return False
        return any(
            not r.ignored
            for s in self._scope(document, symbol, include_contained)
            for r in self._valid_entry_results(document, s)
        )

    def get_valid(
        self,
        document: TextDocument,
        symbol: SymbolInfo | None = None,
        include_contained: bool = False,
    ) -> list[Inspection]:
        """Valid, non-ignored results projected to absolute positions.

        Without `symbol` every symbol of the document is visited; with
        `include_contained` the symbols nested in `symbol`'s range are
        aggregated as well.
        """
        if document.key not in self._documents:
            return []
        results: list[Inspection] = []
        for s in self._scope(document, symbol, include_contained):
            results.extend(self._project(document, s))
        return results

    # --- Writes ---

    def store(
        self,
        document: TextDocument,
        symbol: SymbolInfo,
        results: list[Inspection],
        append: bool = False,
    ) -> None:
        """Cache `results` (absolute lines) under the symbol's current snapshot.

        With `append`, results are added to an existing entry whose snapshot
        still matches; otherwise the entry is replaced.
        """
        current_id = symbol_snapshot_id(document, symbol)
        base_line = symbol.range.start.line
        stored = [
            r.model_copy(
                update={
                    "relative_start_line": r.start_line - base_line,
                    "relative_end_line": r.end_line - base_line,
                    "symbol": symbol.qualified_name,
                }
            )
            for r in results
        ]
        symbols = self._documents.setdefault(document.key, {})
        existing = symbols.get(symbol.qualified_name)
        if append and existing is not None and existing.snapshot_id == current_id:
            existing.results.extend(stored)
        else:
            symbols[symbol.qualified_name] = SnapshotEntry(
                snapshot_id=current_id, results=stored
            )
        logger.debug(
            "Cached %d results for %s of %s (append=%s)",
            len(stored), symbol, document.key, append,
        )

    def invalidate(
        self,
        document: TextDocument | str | None = None,
        symbol: SymbolInfo | None = None,
        entry: Inspection | None = None,
    ) -> None:
        """Drop cached results at whole-cache, document, symbol or entry scope.

        Invalidating a symbol also drops every symbol nested under its
        qualified name.
        """
        if document is None:
            self._documents.clear()
            return
        key = _document_key(document)
        if symbol is None:
            if self._documents.pop(key, None) is not None:
                logger.debug("Invalidated snapshot cache for %s", key)
            return
        symbols = self._documents.get(key)
        if not symbols:
            return
        if entry is None:
            for name in [n for n in symbols if is_nested_name(n, symbol.qualified_name)]:
                del symbols[name]
            return
        if isinstance(document, TextDocument):
            cached = self._valid_entry(document, symbol)
            if cached is not None:
                cached.results = [r for r in cached.results if r.id != entry.id]

    def mark_ignored(
        self,
        document: TextDocument,
        symbol: SymbolInfo | None = None,
        entry: Inspection | None = None,
    ) -> int:
        """Flag valid results as dismissed; returns how many were flagged.

        Ignored results stay in place until their scope is invalidated.
        """
        if document.key not in self._documents:
            return 0
        symbols = [symbol] if symbol is not None else self._navigator.list_symbols(document)
        marked = 0
        for s in symbols:
            for r in self._valid_entry_results(document, s):
                if r.ignored or (entry is not None and r.id != entry.id):
                    continue
                r.ignored = True
                marked += 1
        return marked

    def has_document(self, document_key: str) -> bool:
        return document_key in self._documents

    def document_keys(self) -> list[str]:
        return list(self._documents)

    def stats(self) -> SnapshotCacheStats:
        return SnapshotCacheStats(
            documents=len(self._documents),
            symbols=sum(len(s) for s in self._documents.values()),
            results=sum(
                len(e.results) for s in self._documents.values() for e in s.values()
            ),
        )

    # --- Internal helpers ---

    def _scope(
        self,
        document: TextDocument,
        symbol: SymbolInfo | None,
        include_contained: bool,
    ) -> list[SymbolInfo]:
        if symbol is None:
            return self._navigator.list_symbols(document)
        if include_contained:
            return symbols_contained_in(self._navigator, document, symbol)
        return [symbol]

    def _valid_entry(self, document: TextDocument, symbol: SymbolInfo) -> SnapshotEntry | None:
        cached = self._documents.get(document.key, {}).get(symbol.qualified_name)
        if cached is None:
            return None
        if cached.snapshot_id != symbol_snapshot_id(document, symbol):
            logger.debug("Snapshot mismatch for %s of %s", symbol, document.key)
            return None
        return cached

    def _valid_entry_results(self, document: TextDocument, symbol: SymbolInfo) -> list[Inspection]:
        cached = self._valid_entry(document, symbol)
        return cached.results if cached is not None else []

    def _project(self, document: TextDocument, symbol: SymbolInfo) -> list[Inspection]:
        cached = self._valid_entry(document, symbol)
        if cached is None:
            logger.debug("Cache miss for %s of %s", symbol, document.key)
            return []
        logger.debug("Cache hit for %s of %s", symbol, document.key)
        base_line = symbol.range.start.line
        return [
            r.model_copy(
                update={
                    "start_line": r.relative_start_line + base_line,
                    "end_line": r.relative_end_line + base_line,
                }
            )
            for r in cached.results
            if not r.ignored
        ]
