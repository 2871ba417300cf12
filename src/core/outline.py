# src/core/outline.py — v1
"""Brace-structure outline of Java sources.

Fallback SymbolNavigator used when no editor symbol service is wired in
(the CLI, tests). Classes declared inside method bodies are not reported,
matching what the inspection caches expect.
"""

from __future__ import annotations

import bisect
import logging
import re
from dataclasses import dataclass

from copilens.core.document import TextDocument
from copilens.core.models import Position, Range, SymbolInfo, SymbolKind
from copilens.core.symbols import SymbolNavigator

logger = logging.getLogger(__name__)

_CLASS_RE = re.compile(r"(?:^|[\s;])@?(class|interface|enum|record)\s+(\w+)")
_METHOD_NAME_RE = re.compile(r"(\w+)\s*$")
_FIELD_NAME_RE = re.compile(r"[\w>\]]\s+(\w+)\s*$")
_ANNOTATIONS_RE = re.compile(r"^\s*(?:@(?!interface\b)[\w.]+\s*(?:\([^)]*\))?\s*)+")
_CLASS_KIND = {
    "class": SymbolKind.CLASS,
    "interface": SymbolKind.INTERFACE,
    "enum": SymbolKind.ENUM,
    "record": SymbolKind.RECORD,
}


@dataclass
class _Scope:
    kind: str  # "class", "member", "initializer", "other"
    header_start: int | None
    symbol_index: int | None = None
    class_name: str | None = None


@dataclass
class _PendingSymbol:
    name: str
    qualified_name: str
    kind: SymbolKind
    start: int
    end: int = -1


def mask_comments_and_strings(text: str) -> str:
    """Blank out comments and literals, keeping offsets and newlines intact."""
    out = list(text)
    i, n = 0, len(text)

    def blank(a: int, b: int) -> None:
        for k in range(a, min(b, n)):
            if out[k] != "\n":
                out[k] = " "

    while i < n:
        c = text[i]
        if text.startswith("//", i):
            j = text.find("\n", i)
            j = n if j < 0 else j
            blank(i, j)
            i = j
        elif text.startswith("/*", i):
            j = text.find("*/", i + 2)
            j = n if j < 0 else j + 2
            blank(i, j)
            i = j
        elif text.startswith('"""', i):
            j = text.find('"""', i + 3)
            j = n if j < 0 else j + 3
            blank(i + 1, j - 1)
            i = j
        elif c in ('"', "'"):
            j = i + 1
            while j < n and text[j] != c and text[j] != "\n":
                j += 2 if text[j] == "\\" else 1
            blank(i + 1, j)
            i = j + 1
        else:
            i += 1
    return "".join(out)


class JavaOutlineNavigator(SymbolNavigator):
    """Derives class, method and field symbols from brace structure."""

    def __init__(self) -> None:
        self._memo: dict[str, tuple[int, str, list[SymbolInfo]]] = {}

    def list_symbols(self, document: TextDocument) -> list[SymbolInfo]:
        memo = self._memo.get(document.key)
        if memo is not None and memo[0] == document.version and memo[1] == document.text:
            return memo[2]
        symbols = outline(document.text)
        self._memo[document.key] = (document.version, document.text, symbols)
        return symbols

    def forget(self, document_key: str) -> None:
        self._memo.pop(document_key, None)


def outline(text: str) -> list[SymbolInfo]:
    """Flat pre-order symbol list for Java source `text`."""
    masked = mask_comments_and_strings(text)
    line_starts = [0] + [m.end() for m in re.finditer(r"\n", text)]

    def pos(offset: int) -> Position:
        line = bisect.bisect_right(line_starts, offset) - 1
        return Position(line=line, character=offset - line_starts[line])

    pending: list[_PendingSymbol] = []
    stack: list[_Scope] = []
    header_start: int | None = None

    def class_names() -> list[str]:
        return [s.class_name for s in stack if s.kind == "class" and s.class_name]

    def in_class_body() -> bool:
        return not stack or stack[-1].kind == "class"

    for i, c in enumerate(masked):
        if c == "{":
            header = masked[header_start:i] if header_start is not None else ""
            scope = _Scope(kind="other", header_start=None)
            if in_class_body():
                scope = _open_declaration(header, header_start, class_names(), pending)
            stack.append(scope)
            header_start = None
        elif c == "}":
            if not stack:
                logger.debug("Unbalanced closing brace at offset %d", i)
                header_start = None
                continue
            scope = stack.pop()
            if scope.symbol_index is not None:
                pending[scope.symbol_index].end = i + 1
            # field initializers continue up to their terminating ';'
            header_start = scope.header_start if scope.kind == "initializer" else None
        elif c == ";":
            if stack and stack[-1].kind == "class" and header_start is not None:
                _close_statement(masked[header_start:i], header_start, i + 1, class_names(), pending)
            header_start = None
        elif header_start is None and not c.isspace():
            header_start = i

    symbols: list[SymbolInfo] = []
    for p in pending:
        if p.end < 0:
            p.end = len(text)
        symbols.append(
            SymbolInfo(
                name=p.name,
                qualified_name=p.qualified_name,
                kind=p.kind,
                range=Range(start=pos(p.start), end=pos(p.end)),
            )
        )
    return symbols


def _open_declaration(
    header: str,
    header_start: int | None,
    enclosing: list[str],
    pending: list[_PendingSymbol],
) -> _Scope:
    start = header_start if header_start is not None else 0
    header = _strip_annotations(header)
    match = _CLASS_RE.search(header)
    if match and "=" not in header[: match.start()] and "(" not in header[: match.start()]:
        name = match.group(2)
        pending.append(
            _PendingSymbol(
                name=name,
                qualified_name=".".join([*enclosing, name]),
                kind=_CLASS_KIND[match.group(1)],
                start=start,
            )
        )
        return _Scope(kind="class", header_start=start, symbol_index=len(pending) - 1, class_name=name)

    paren = header.find("(")
    eq = header.find("=")
    if eq >= 0 and (paren < 0 or eq < paren):
        return _Scope(kind="initializer", header_start=header_start)
    if paren > 0:
        name_match = _METHOD_NAME_RE.search(header[:paren])
        if name_match:
            name = name_match.group(1)
            kind = (
                SymbolKind.CONSTRUCTOR
                if enclosing and name == enclosing[-1]
                else SymbolKind.METHOD
            )
            pending.append(
                _PendingSymbol(
                    name=name,
                    qualified_name=".".join([*enclosing, name]),
                    kind=kind,
                    start=start,
                )
            )
            return _Scope(kind="member", header_start=start, symbol_index=len(pending) - 1)
    return _Scope(kind="other", header_start=None)


def _close_statement(
    header: str,
    start: int,
    end: int,
    enclosing: list[str],
    pending: list[_PendingSymbol],
) -> None:
    header = _strip_annotations(header)
    eq = header.find("=")
    paren = header.find("(")
    if paren >= 0 and (eq < 0 or paren < eq):
        # abstract or interface method without a body
        name_match = _METHOD_NAME_RE.search(header[:paren])
        if name_match:
            name = name_match.group(1)
            pending.append(
                _PendingSymbol(name, ".".join([*enclosing, name]), SymbolKind.METHOD, start, end)
            )
        return
    declaration = header[:eq] if eq >= 0 else header
    field_match = _FIELD_NAME_RE.search(declaration)
    if field_match:
        name = field_match.group(1)
        pending.append(
            _PendingSymbol(name, ".".join([*enclosing, name]), SymbolKind.FIELD, start, end)
        )


def _strip_annotations(header: str) -> str:
    return _ANNOTATIONS_RE.sub("", header, count=1)
