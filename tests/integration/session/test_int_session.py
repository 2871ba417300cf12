# tests/integration/session/test_int_session.py — v1
"""Integration tests for a full editor session.

Real outline navigator, caches, gate and source-tree import backend; the
inspection model is a mocked chat client. No network access.
Coverage targets: api/session.py, inspection/service.py, imports/service.py,
backend/llm_backend.py, backend/source_imports.py
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio

from copilens.api.session import EditorSession
from copilens.backend.base_backend import BackendError
from copilens.backend.llm_backend import END_MARK, LLMInspectionBackend
from copilens.backend.source_imports import SourceImportBackend
from copilens.core.document import TextDocument
from copilens.core.symbols import find_symbol
from copilens.llm.models import LLMResponse


def _answer(findings: list[dict]) -> LLMResponse:
    return LLMResponse(
        content=f"{json.dumps(findings)}\n//{END_MARK}", model="mock-model", provider="mock"
    )


@pytest.fixture
def llm_client() -> MagicMock:
    client = MagicMock()
    client.provider_name = "mock"
    client.model_name = "mock-model"
    client.complete = AsyncMock()
    return client


@pytest.fixture
def project(tmp_path: Path, sample_text: str) -> Path:
    root = tmp_path / "src"
    util = root / "com/example/util/Strings.java"
    util.parent.mkdir(parents=True)
    util.write_text("package com.example.util;\npublic class Strings {}\n", encoding="utf-8")
    sample = root / "com/example/Sample.java"
    sample.write_text(
        sample_text.replace(
            "import java.util.List;", "import java.util.List;\nimport com.example.util.Strings;"
        ),
        encoding="utf-8",
    )
    return root


@pytest.fixture
def notices() -> list[str]:
    return []


@pytest_asyncio.fixture
async def session(settings, llm_client, project, notices):
    async with EditorSession(
        settings,
        import_backend=SourceImportBackend(project),
        inspection_backend=LLMInspectionBackend.from_settings(llm_client, settings),
        notify=notices.append,
    ) as s:
        yield s


class TestInspectionRoundTrip:
    @pytest.mark.asyncio
    async def test_edit_keeps_untouched_symbols(self, session, llm_client, sample_document, make_finding):
        llm_client.complete.return_value = _answer(
            [make_finding(12, 16), make_finding(21, 21, "Printing to stdout", "Use a logger")]
        )
        first = await session.inspections.get_or_inspect(sample_document)
        assert {f.symbol for f in first} == {"Sample.describe", "Sample.Inner.run"}

        # add a line inside describe: its entry goes stale, run moves down one line
        edited = sample_document.updated(
            sample_document.text.replace(
                "        if (kind == 1) {", "        int unused = 0;\n        if (kind == 1) {"
            )
        )
        remaining = session.inspections.get_inspections(edited)
        assert [(f.symbol, f.start_line) for f in remaining] == [("Sample.Inner.run", 22)]

        llm_client.complete.return_value = _answer([make_finding(13, 17)])
        describe = find_symbol(session.navigator.list_symbols(edited), "Sample.describe")
        refreshed = await session.inspections.get_or_inspect(edited, describe)
        assert [(f.symbol, f.start_line) for f in refreshed] == [("Sample.describe", 13)]
        assert len(session.inspections.get_inspections(edited)) == 2
        assert llm_client.complete.await_count == 2

    @pytest.mark.asyncio
    async def test_failure_is_not_cached(self, session, llm_client, sample_document, make_finding):
        llm_client.complete.side_effect = [ConnectionError("offline"), _answer([make_finding(12, 16)])]

        with pytest.raises(BackendError):
            await session.inspections.get_or_inspect(sample_document)
        assert not session.inspections.has_inspections(sample_document)
        assert session.gate.in_flight == 0

        assert len(await session.inspections.get_or_inspect(sample_document)) == 1

    @pytest.mark.asyncio
    async def test_concurrent_request_rejected_then_served(
        self, session, notices, llm_client, sample_document, make_finding
    ):
        release = asyncio.Event()

        async def slow_complete(*args, **kwargs):
            await release.wait()
            return _answer([make_finding(12, 16)])

        llm_client.complete.side_effect = slow_complete
        running = asyncio.create_task(session.inspections.inspect_document(sample_document))
        for _ in range(5):
            await asyncio.sleep(0)

        assert await session.inspections.inspect_document(sample_document) == []
        assert notices == [f"{sample_document.key} is already being inspected."]

        release.set()
        assert len(await running) == 1
        assert len(session.inspections.get_inspections(sample_document)) == 1


class TestImportsRoundTrip:
    @pytest.mark.asyncio
    async def test_resolve_cache_and_invalidate(self, session, project):
        sample = project / "com/example/Sample.java"
        document = TextDocument.from_path(sample)

        imports = await session.imports.resolve(document)
        assert [i.class_name for i in imports] == ["com.example.util.Strings"]
        assert session.imports.resolve_fast(document) == imports

        # external edit: the fingerprint no longer matches
        sample.write_text(sample.read_text(encoding="utf-8") + "\n// edited\n", encoding="utf-8")
        assert await session.import_cache.get(document.uri, document_version=document.version) is None

        assert await session.imports.resolve(document) == imports
        assert session.on_file_event(sample.as_uri(), "deleted") == 1
        assert session.imports.resolve_fast(document) is None
