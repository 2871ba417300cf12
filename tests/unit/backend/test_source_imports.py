# tests/unit/backend/test_source_imports.py — v1
"""Tests for backend/source_imports.py."""

from __future__ import annotations

from pathlib import Path

import pytest

from copilens.backend.base_backend import BackendError
from copilens.backend.source_imports import SourceImportBackend, parse_import_statements
from copilens.concurrency.cancellation import CancelToken, OperationCancelled

MAIN = """\
package com.example.app;

import java.util.List;
import static com.example.util.Strings.pad;
import com.example.util.Strings;
import com.example.model.*;
import com.example.missing.Gone;
import com.example.util.Strings;

public class Main {}
"""


@pytest.fixture
def source_root(tmp_path: Path) -> Path:
    root = tmp_path / "src"
    for relative in ("com/example/util/Strings.java", "com/example/model/A.java", "com/example/model/B.java"):
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("class X {}\n", encoding="utf-8")
    (root / "com/example/model/notes.txt").write_text("", encoding="utf-8")
    main = root / "com/example/app/Main.java"
    main.parent.mkdir(parents=True)
    main.write_text(MAIN, encoding="utf-8")
    return root


class TestParseImports:
    def test_skips_static_imports(self):
        assert parse_import_statements(MAIN) == [
            ("java.util.List", False),
            ("com.example.util.Strings", False),
            ("com.example.model", True),
            ("com.example.missing.Gone", False),
            ("com.example.util.Strings", False),
        ]

    def test_no_imports(self):
        assert parse_import_statements("class A {}") == []


class TestSourceImportBackend:
    @pytest.mark.asyncio
    async def test_resolves_local_types(self, source_root):
        backend = SourceImportBackend(source_root)
        main = source_root / "com/example/app/Main.java"

        result = await backend.resolve_imports(main.as_uri())

        assert [i.class_name for i in result] == [
            "com.example.util.Strings",
            "com.example.model.A",
            "com.example.model.B",
        ]
        assert result[0].uri == (source_root / "com/example/util/Strings.java").resolve().as_uri()

    @pytest.mark.asyncio
    async def test_plain_path_accepted(self, source_root):
        backend = SourceImportBackend(source_root)
        result = await backend.resolve_imports(str(source_root / "com/example/app/Main.java"))
        assert len(result) == 3

    @pytest.mark.asyncio
    async def test_unreadable_file(self, source_root):
        backend = SourceImportBackend(source_root)
        with pytest.raises(BackendError, match="Cannot read"):
            await backend.resolve_imports(str(source_root / "Nope.java"))

    @pytest.mark.asyncio
    async def test_cancelled_token(self, source_root):
        token = CancelToken()
        token.cancel()
        backend = SourceImportBackend(source_root)
        with pytest.raises(OperationCancelled):
            await backend.resolve_imports(str(source_root / "com/example/app/Main.java"), token)
