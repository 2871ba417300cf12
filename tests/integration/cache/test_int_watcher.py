# tests/integration/cache/test_int_watcher.py — v1
"""Integration tests for file watching driving cache invalidation.

Uses a real watchdog observer on tmp_path.
Coverage targets: cache/invalidation.py, cache/ttl_cache.py, api/session.py
"""

from __future__ import annotations

import asyncio

import pytest

from copilens.api.session import EditorSession
from copilens.backend.source_imports import SourceImportBackend
from copilens.core.document import TextDocument


async def _wait_until(predicate, timeout: float = 5.0) -> bool:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while loop.time() < deadline:
        if predicate():
            return True
        await asyncio.sleep(0.05)
    return predicate()


@pytest.mark.asyncio
async def test_external_change_evicts_cached_imports(settings, tmp_path):
    source = tmp_path / "Main.java"
    source.write_text("class Main {}\n", encoding="utf-8")
    settings = settings.model_copy(update={"workspace_root": tmp_path})

    async with EditorSession(settings, import_backend=SourceImportBackend(tmp_path)) as session:
        document = TextDocument.from_path(source)
        await session.imports.resolve(document)
        assert session.import_cache.is_cached(document.uri)
        await asyncio.sleep(0.2)

        source.write_text("class Main { int x; }\n", encoding="utf-8")

        assert await _wait_until(lambda: not session.import_cache.is_cached(document.uri))
        assert session.stats().invalidations >= 1


@pytest.mark.asyncio
async def test_excluded_directory_not_dispatched(settings, tmp_path):
    build = tmp_path / "build"
    build.mkdir()
    generated = build / "Gen.java"
    generated.write_text("class Gen {}\n", encoding="utf-8")
    settings = settings.model_copy(update={"workspace_root": tmp_path})

    async with EditorSession(settings) as session:
        await asyncio.sleep(0.2)
        generated.write_text("class Gen { int y; }\n", encoding="utf-8")
        await asyncio.sleep(0.5)
        assert session.stats().invalidations == 0
