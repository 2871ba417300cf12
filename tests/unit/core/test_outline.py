# tests/unit/core/test_outline.py — v1
"""Tests for core/outline.py — brace-structure Java outline."""

from __future__ import annotations

from copilens.core.document import TextDocument
from copilens.core.models import SymbolKind
from copilens.core.outline import JavaOutlineNavigator, mask_comments_and_strings, outline


def _summary(text: str) -> list[tuple[str, SymbolKind, int, int]]:
    return [(s.qualified_name, s.kind, s.range.start.line, s.range.end.line) for s in outline(text)]


class TestMasking:
    def test_keeps_offsets(self):
        text = 'int a = 1; // note {\nString s = "}";'
        masked = mask_comments_and_strings(text)
        assert len(masked) == len(text)
        assert "{" not in masked and "}" not in masked
        assert masked.count("\n") == 1

    def test_block_comment(self):
        masked = mask_comments_and_strings("a /* { } */ b")
        assert masked.strip().split() == ["a", "b"]

    def test_char_literal_and_escape(self):
        masked = mask_comments_and_strings("char c = '{'; String s = \"\\\"}\";")
        assert "{" not in masked and "}" not in masked


class TestOutline:
    def test_sample(self, sample_text):
        assert _summary(sample_text) == [
            ("Sample", SymbolKind.CLASS, 4, 24),
            ("Sample.count", SymbolKind.FIELD, 5, 5),
            ("Sample.Sample", SymbolKind.CONSTRUCTOR, 7, 9),
            ("Sample.describe", SymbolKind.METHOD, 11, 17),
            ("Sample.Inner", SymbolKind.CLASS, 19, 23),
            ("Sample.Inner.run", SymbolKind.METHOD, 20, 22),
        ]

    def test_start_character_is_declaration_start(self, sample_text):
        describe = outline(sample_text)[3]
        assert describe.range.start.character == 4

    def test_interface_and_abstract_methods(self):
        text = "interface Shape {\n    double area();\n    default String name() {\n        return \"s\";\n    }\n}\n"
        assert _summary(text) == [
            ("Shape", SymbolKind.INTERFACE, 0, 5),
            ("Shape.area", SymbolKind.METHOD, 1, 1),
            ("Shape.name", SymbolKind.METHOD, 2, 4),
        ]

    def test_annotations_are_part_of_declaration(self):
        text = "class A {\n    @Override\n    public String toString() {\n        return \"a\";\n    }\n}\n"
        assert _summary(text)[1] == ("A.toString", SymbolKind.METHOD, 1, 4)

    def test_anonymous_class_initializer_is_a_field(self):
        text = (
            "class A {\n"
            "    Runnable r = new Runnable() {\n"
            "        public void run() {}\n"
            "    };\n"
            "}\n"
        )
        assert _summary(text) == [
            ("A", SymbolKind.CLASS, 0, 4),
            ("A.r", SymbolKind.FIELD, 1, 3),
        ]

    def test_local_class_not_reported(self):
        text = "class A {\n    void m() {\n        class Local {}\n    }\n}\n"
        assert [name for name, *_ in _summary(text)] == ["A", "A.m"]

    def test_enum_and_record(self):
        text = "enum Color { RED, GREEN }\nrecord Point(int x, int y) {}\n"
        kinds = [(name, kind) for name, kind, *_ in _summary(text)]
        assert ("Color", SymbolKind.ENUM) in kinds
        assert ("Point", SymbolKind.RECORD) in kinds

    def test_braces_in_comments_ignored(self):
        text = "class A {\n    // }\n    void m() { /* { */ }\n}\n"
        assert _summary(text) == [
            ("A", SymbolKind.CLASS, 0, 3),
            ("A.m", SymbolKind.METHOD, 2, 2),
        ]


class TestNavigator:
    def test_memoised_per_version(self, sample_document):
        navigator = JavaOutlineNavigator()
        first = navigator.list_symbols(sample_document)
        assert navigator.list_symbols(sample_document) is first
        assert navigator.list_symbols(sample_document.updated(sample_document.text)) is not first

    def test_same_version_new_text_recomputed(self, sample_document):
        navigator = JavaOutlineNavigator()
        navigator.list_symbols(sample_document)
        other = TextDocument(uri=sample_document.uri, text="class B {}\n", version=sample_document.version)
        assert [s.qualified_name for s in navigator.list_symbols(other)] == ["B"]

    def test_forget(self, sample_document):
        navigator = JavaOutlineNavigator()
        first = navigator.list_symbols(sample_document)
        navigator.forget(sample_document.key)
        assert navigator.list_symbols(sample_document) is not first
