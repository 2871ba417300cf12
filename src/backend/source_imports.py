# src/backend/source_imports.py — v1
"""Import resolution against a local source tree.

Used when no language server is available: ``import a.b.C;`` resolves to
``<source_root>/a/b/C.java`` when that file exists, and ``import a.b.*;``
expands to every ``.java`` file of the package directory. Static imports
and types outside the source root (JDK, libraries) are skipped.
"""

from __future__ import annotations

import asyncio
import logging
import re
from pathlib import Path
from typing import TYPE_CHECKING

from copilens.backend.base_backend import BackendError, ImportBackend
from copilens.cache.fingerprint import resource_path
from copilens.concurrency.cancellation import race_cancellation
from copilens.core.models import ImportClass

if TYPE_CHECKING:
    from copilens.concurrency.cancellation import CancelToken

logger = logging.getLogger(__name__)

_IMPORT_RE = re.compile(r"^\s*import\s+(static\s+)?([\w.]+?)(\.\*)?\s*;", re.MULTILINE)


def parse_import_statements(text: str) -> list[tuple[str, bool]]:
    """Non-static imports of `text` as ``(qualified_name, is_wildcard)``."""
    return [
        (m.group(2), m.group(3) is not None)
        for m in _IMPORT_RE.finditer(text)
        if m.group(1) is None
    ]


class SourceImportBackend(ImportBackend):
    """Resolves imports of Java files to files under `source_root`."""

    def __init__(self, source_root: str | Path) -> None:
        self._root = Path(source_root).expanduser().resolve()

    @property
    def source_root(self) -> Path:
        return self._root

    async def resolve_imports(
        self, document_uri: str, token: CancelToken | None = None
    ) -> list[ImportClass]:
        return await race_cancellation(asyncio.to_thread(self._resolve, document_uri), token)

    def _resolve(self, document_uri: str) -> list[ImportClass]:
        path = resource_path(document_uri)
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as e:
            raise BackendError(f"Cannot read {path}: {e}") from e

        seen: set[str] = set()
        resolved: list[ImportClass] = []
        for name, wildcard in parse_import_statements(text):
            for class_name, file in self._candidates(name, wildcard):
                if class_name in seen:
                    continue
                seen.add(class_name)
                resolved.append(ImportClass(uri=file.as_uri(), class_name=class_name))
        logger.debug("Resolved %d local imports for %s", len(resolved), path)
        return resolved

    def _candidates(self, name: str, wildcard: bool) -> list[tuple[str, Path]]:
        package_dir = self._root.joinpath(*name.split("."))
        if wildcard:
            if not package_dir.is_dir():
                return []
            return [
                (f"{name}.{f.stem}", f)
                for f in sorted(package_dir.glob("*.java"))
                if f.is_file()
            ]
        file = package_dir.with_suffix(".java")
        return [(name, file)] if file.is_file() else []
