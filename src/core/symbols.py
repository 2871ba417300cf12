# src/core/symbols.py — v1
"""Symbol-navigation interface and range helpers.

The editor's symbol service is an external collaborator; the caches only
need a flat, pre-order list of symbols with qualified names and ranges.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from copilens.core.document import TextDocument
from copilens.core.models import Range, SymbolInfo


class SymbolNavigator(ABC):
    """Supplies the symbols of a document."""

    @abstractmethod
    def list_symbols(self, document: TextDocument) -> list[SymbolInfo]:
        """Flat pre-order list of classes, methods and fields of `document`."""

    def range_contains(self, outer: Range, inner: Range) -> bool:
        return outer.contains(inner)


def symbols_contained_in(
    navigator: SymbolNavigator,
    document: TextDocument,
    symbol: SymbolInfo,
) -> list[SymbolInfo]:
    """`symbol` plus every symbol whose range lies inside it.

    Containment is tested on ranges, never on names.
    """
    nested = [
        s
        for s in navigator.list_symbols(document)
        if s.qualified_name != symbol.qualified_name
        and navigator.range_contains(symbol.range, s.range)
    ]
    return [symbol, *nested]


def classes_contained_in_range(
    symbols: list[SymbolInfo], range: Range
) -> list[SymbolInfo]:
    return [s for s in symbols if s.is_class and range.contains(s.range)]


def members_intersecting_range(
    symbols: list[SymbolInfo], range: Range
) -> list[SymbolInfo]:
    """Methods and fields partially or completely inside `range`."""
    return [s for s in symbols if not s.is_class and s.range.intersects(range)]


def innermost_class_containing(
    symbols: list[SymbolInfo], range: Range
) -> SymbolInfo | None:
    # pre-order: the last containing class is the innermost one
    containing = [s for s in symbols if s.is_class and s.range.contains(range)]
    return containing[-1] if containing else None


def union_range(symbols: list[SymbolInfo]) -> Range:
    if not symbols:
        raise ValueError("union_range() requires at least one symbol")
    result = symbols[0].range
    for s in symbols[1:]:
        result = result.union(s.range)
    return result


def find_symbol(symbols: list[SymbolInfo], qualified_name: str) -> SymbolInfo | None:
    for s in symbols:
        if s.qualified_name == qualified_name:
            return s
    return None
