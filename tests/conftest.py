# tests/conftest.py — v1
"""Shared test fixtures for all unit and integration tests.

Provides a sample Java document, scripted backends, settings without .env
and a controllable clock. No network access; file I/O stays in tmp_path.
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path

import pytest

from copilens.backend.base_backend import ImportBackend, InspectionBackend
from copilens.concurrency.cancellation import CancelToken
from copilens.config.settings import Settings
from copilens.core.document import TextDocument
from copilens.core.models import ImportClass, Inspection
from copilens.core.outline import JavaOutlineNavigator
from copilens.llm.models import LLMResponse

# Line numbers (zero-based) referenced throughout the tests:
#   4  class Sample          (4..24)
#   5  field Sample.count
#   7  constructor Sample.Sample (7..9)
#   11 method Sample.describe (11..17)
#   19 class Sample.Inner    (19..23)
#   20 method Sample.Inner.run (20..22)
SAMPLE_JAVA = """\
package com.example;

import java.util.List;

public class Sample {
    private int count = 0;

    public Sample(int count) {
        this.count = count;
    }

    public String describe(int kind) {
        if (kind == 1) {
            return "one";
        } else {
            return "other";
        }
    }

    static class Inner {
        void run() {
            System.out.println("run");
        }
    }
}
"""


def json_finding(start: int, end: int, description: str = "Using if-else", solution: str = "Use switch") -> dict:
    return {
        "problem": {"position": {"startLine": start, "endLine": end}, "description": description},
        "solution": solution,
    }


class FakeClock:
    """Millisecond clock advanced by hand."""

    def __init__(self, start: float = 1_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


class ScriptedInspectionBackend(InspectionBackend):
    """Returns queued answers; optionally blocks until released."""

    def __init__(self, answers: list[str | Exception] | None = None) -> None:
        self.answers = list(answers or [])
        self.calls: list[dict] = []
        self.release: asyncio.Event | None = None

    def hold(self) -> asyncio.Event:
        self.release = asyncio.Event()
        return self.release

    async def run_inspection(
        self,
        document_text: str,
        token: CancelToken | None = None,
        *,
        start_line: int = 0,
        end_line: int | None = None,
        previous: list[Inspection] | None = None,
    ) -> str:
        self.calls.append(
            {"start_line": start_line, "end_line": end_line, "previous": previous}
        )
        if self.release is not None:
            await self.release.wait()
        answer = self.answers.pop(0) if self.answers else "[]"
        if isinstance(answer, Exception):
            raise answer
        return answer


class ScriptedImportBackend(ImportBackend):
    def __init__(self, results: list[list[ImportClass] | Exception] | None = None) -> None:
        self.results = list(results or [])
        self.calls: list[str] = []

    async def resolve_imports(
        self, document_uri: str, token: CancelToken | None = None
    ) -> list[ImportClass]:
        self.calls.append(document_uri)
        result = self.results.pop(0) if self.results else []
        if isinstance(result, Exception):
            raise result
        return result


# === FIXTURES ===


@pytest.fixture
def sample_document() -> TextDocument:
    return TextDocument(uri="/workspace/src/com/example/Sample.java", text=SAMPLE_JAVA)


@pytest.fixture
def navigator() -> JavaOutlineNavigator:
    return JavaOutlineNavigator()


@pytest.fixture
def settings() -> Settings:
    """Settings isolated from any local .env file."""
    return Settings(_env_file=None, debounce_wait_ms=10, retry_interval_ms=0, retry_deadline_ms=0)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def inspection_backend() -> ScriptedInspectionBackend:
    return ScriptedInspectionBackend()


@pytest.fixture
def import_backend() -> ScriptedImportBackend:
    return ScriptedImportBackend()


@pytest.fixture
def java_file(tmp_path: Path) -> Path:
    path = tmp_path / "Sample.java"
    path.write_text(SAMPLE_JAVA, encoding="utf-8")
    return path


@pytest.fixture
def describe_finding_json() -> str:
    return json.dumps([json_finding(12, 16)])


@pytest.fixture
def mock_llm_response() -> LLMResponse:
    return LLMResponse(
        content="[]",
        model="claude-sonnet-4-20250514",
        provider="anthropic",
        input_tokens=120,
        output_tokens=8,
        latency_ms=250,
    )


@pytest.fixture
def make_finding():
    """Factory for one JSON-grammar finding."""
    return json_finding


@pytest.fixture
def sample_text() -> str:
    return SAMPLE_JAVA
