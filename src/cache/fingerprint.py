# src/cache/fingerprint.py — v3
"""Content identities used to validate cache entries.

Two levels are used:
  - snapshot identity: MD5 of the exact text span of a symbol, any edit
    (whitespace included) yields a new identity;
  - file fingerprint: (document version, mtime, size), cheap to recompute
    from a stat call and enough to detect internal or external edits
    without reading file content.
Neither needs cryptographic strength, only cheap computation and a
negligible collision probability over a cache lifetime.
"""

from __future__ import annotations

import asyncio
import hashlib
import os
from pathlib import Path
from urllib.parse import unquote, urlparse

from copilens.cache.models import FileFingerprint
from copilens.core.document import TextDocument
from copilens.core.models import SymbolInfo


def snapshot_id(text: str) -> str:
    """Identity of an exact piece of source text."""
    return hashlib.md5(text.encode("utf-8")).hexdigest()  # noqa: S324


def symbol_snapshot_id(document: TextDocument, symbol: SymbolInfo) -> str:
    """Identity of the current text of `symbol` in `document`."""
    return snapshot_id(document.get_text(symbol.range))


def hash_resource_key(resource: str) -> str:
    """Hashed identity of a resource (uri or path) used as cache key."""
    return hashlib.md5(normalize_resource(resource).encode("utf-8")).hexdigest()  # noqa: S324


def normalize_resource(resource: str) -> str:
    """Map `file://` URIs and plain paths to the same identity."""
    if resource.startswith("file://"):
        return unquote(urlparse(resource).path)
    return resource


def resource_path(resource: str) -> Path:
    return Path(normalize_resource(resource))


def stat_fingerprint(resource: str, document_version: int | None = None) -> FileFingerprint:
    """Blocking fingerprint of `resource`.

    Raises:
        OSError: If the resource cannot be stat'ed.
    """
    st = os.stat(resource_path(resource))
    return FileFingerprint(
        document_version=document_version,
        modified_time_ns=st.st_mtime_ns,
        size=st.st_size,
    )


async def compute_file_fingerprint(
    resource: str, document_version: int | None = None
) -> FileFingerprint:
    """Fingerprint `resource` without blocking the event loop.

    Raises:
        OSError: If the resource cannot be stat'ed.
    """
    return await asyncio.to_thread(stat_fingerprint, resource, document_version)
