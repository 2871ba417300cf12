# src/core/document.py — v1
"""In-memory text document as seen by the caches.

The editor owns the real buffer; this is the snapshot handed to cache and
service calls: a stable key, the current text and a monotonically
increasing version.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path

from copilens.core.models import Range

_LINE_SPLIT = re.compile(r"\r?\n")


@dataclass
class TextDocument:
    """Snapshot of an open document."""

    uri: str
    text: str
    version: int = 1
    language_id: str = "java"
    _lines: list[str] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._lines = _LINE_SPLIT.split(self.text)

    @classmethod
    def from_path(cls, path: str | Path, version: int = 1) -> TextDocument:
        p = Path(path).expanduser().resolve()
        return cls(uri=str(p), text=p.read_text(encoding="utf-8"), version=version)

    @property
    def key(self) -> str:
        """Stable path-like identity used by every cache."""
        return self.uri

    @property
    def lines(self) -> list[str]:
        return self._lines

    @property
    def line_count(self) -> int:
        return len(self._lines)

    @property
    def full_range(self) -> Range:
        last = self.line_count - 1
        return Range.of_lines(0, last, len(self._lines[last]))

    def line_at(self, line: int) -> str:
        return self._lines[line]

    def get_text(self, range: Range | None = None) -> str:
        """Exact text covered by `range` (whole document when omitted)."""
        if range is None:
            return self.text
        start_line = max(range.start.line, 0)
        end_line = min(range.end.line, self.line_count - 1)
        if start_line > end_line:
            return ""
        selected = self._lines[start_line : end_line + 1]
        if start_line == end_line:
            return selected[0][range.start.character : range.end.character]
        selected[0] = selected[0][range.start.character :]
        selected[-1] = selected[-1][: range.end.character]
        return "\n".join(selected)

    def updated(self, text: str) -> TextDocument:
        """Next version of this document with new text."""
        return TextDocument(
            uri=self.uri,
            text=text,
            version=self.version + 1,
            language_id=self.language_id,
        )
