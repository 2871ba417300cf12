# src/core/models.py — v1
"""Shared Pydantic domain models used across modules.

No module redefines these types; all imports come from core.models.
Lines and characters are zero-based, ranges are inclusive of both ends
at line granularity (a symbol spanning lines 3..7 contains line 7).
"""

from __future__ import annotations

import uuid
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


# === POSITIONS ===


class Position(BaseModel):
    """Zero-based line/character position in a document."""

    model_config = ConfigDict(frozen=True)

    line: int
    character: int = 0

    def before_or_equal(self, other: Position) -> bool:
        return (self.line, self.character) <= (other.line, other.character)


class Range(BaseModel):
    """Span between two positions, start <= end."""

    model_config = ConfigDict(frozen=True)

    start: Position
    end: Position

    @classmethod
    def of_lines(cls, start_line: int, end_line: int, end_character: int = 0) -> Range:
        """Shorthand for a line-based range."""
        return cls(
            start=Position(line=start_line),
            end=Position(line=end_line, character=end_character),
        )

    def contains(self, other: Range) -> bool:
        """True if `other` lies completely inside this range."""
        return self.start.before_or_equal(other.start) and other.end.before_or_equal(
            self.end
        )

    def contains_line(self, line: int) -> bool:
        return self.start.line <= line <= self.end.line

    def intersects(self, other: Range) -> bool:
        return self.start.before_or_equal(other.end) and other.start.before_or_equal(
            self.end
        )

    def union(self, other: Range) -> Range:
        start = self.start if self.start.before_or_equal(other.start) else other.start
        end = other.end if self.end.before_or_equal(other.end) else self.end
        return Range(start=start, end=end)


# === SYMBOLS ===


class SymbolKind(str, Enum):
    """Subset of editor symbol kinds the caches care about."""

    CLASS = "class"
    INTERFACE = "interface"
    ENUM = "enum"
    RECORD = "record"
    METHOD = "method"
    CONSTRUCTOR = "constructor"
    FIELD = "field"


CLASS_KINDS: frozenset[SymbolKind] = frozenset(
    {SymbolKind.CLASS, SymbolKind.INTERFACE, SymbolKind.ENUM, SymbolKind.RECORD}
)
METHOD_KINDS: frozenset[SymbolKind] = frozenset(
    {SymbolKind.METHOD, SymbolKind.CONSTRUCTOR}
)


class SymbolInfo(BaseModel):
    """A symbol as reported by the symbol-navigation service."""

    model_config = ConfigDict(frozen=True)

    name: str
    qualified_name: str
    kind: SymbolKind
    range: Range

    @property
    def is_class(self) -> bool:
        return self.kind in CLASS_KINDS

    @property
    def is_method(self) -> bool:
        return self.kind in METHOD_KINDS

    def locates_line(self, line: int) -> bool:
        """Whether a finding starting at `line` belongs to this symbol.

        Methods own every line inside their range; classes and fields own
        only their first line.
        """
        if self.is_method:
            return self.range.contains_line(line)
        return line == self.range.start.line

    def __str__(self) -> str:
        return f"{self.kind.value} {self.qualified_name}"


# === DERIVED RESULTS ===


class Inspection(BaseModel):
    """A single code-improvement suggestion.

    `start_line`/`end_line` are absolute document lines and are recomputed on
    every cache read; `relative_*` lines are offsets from the owning symbol's
    first line and never change while the symbol's text is unchanged.
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    description: str
    solution: str
    severity: Literal["HIGH", "MIDDLE", "LOW"] = "LOW"
    indicator: str = ""
    code: str = ""
    start_line: int
    end_line: int
    relative_start_line: int = 0
    relative_end_line: int = 0
    symbol: str | None = None
    ignored: bool = False


class ImportClass(BaseModel):
    """A local project type imported by a source file."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    uri: str
    class_name: str = Field(alias="className")
