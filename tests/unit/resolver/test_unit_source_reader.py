# tests/unit/resolver/test_unit_source_reader.py — v1
"""Tests for resolver/source_reader.py — header parsing and listings."""

from __future__ import annotations

from pathlib import Path

import pytest

from pkgweaver.resolver.source_reader import (
    BaseSourceReader,
    HeaderSourceReader,
    SourceReadError,
    parse_header,
)

P = Path("pkg/a.src")


class TestParseHeader:
    def test_single_imports(self):
        src = 'package a\nimport "x/y"\nimport "z"\n\nfunc body\n'
        f = parse_header(src, P)
        assert f.name == "a.src"
        assert f.package == "a"
        assert f.imports == ("x/y", "z")
        assert f.constraints == ()

    def test_import_block_with_comments(self):
        src = (
            "// leading comment\n"
            "package a\n"
            "import (\n"
            '    "x"\n'
            "    // note\n"
            '    "y"\n'
            ")\n"
        )
        assert parse_header(src, P).imports == ("x", "y")

    def test_duplicate_imports_collapsed(self):
        src = 'package a\nimport "x"\nimport (\n"x"\n)\n'
        assert parse_header(src, P).imports == ("x",)

    def test_directives_before_package(self):
        src = "//build: linux darwin\n//build: amd64\npackage a\n//build: windows\n"
        assert parse_header(src, P).constraints == ("linux darwin", "amd64")

    def test_header_ends_at_first_body_line(self):
        src = 'package a\nimport "x"\nvar v = 1\nimport "late"\n'
        assert parse_header(src, P).imports == ("x",)

    def test_missing_package(self):
        with pytest.raises(SourceReadError, match="missing package"):
            parse_header("// only a comment\n", P)

    def test_bad_package_clause(self):
        with pytest.raises(SourceReadError) as exc_info:
            parse_header("\npackage 9bad\n", P)
        assert exc_info.value.line == 2

    def test_unterminated_block(self):
        with pytest.raises(SourceReadError, match="unterminated"):
            parse_header('package a\nimport (\n"x"\n', P)

    def test_bad_block_line(self):
        with pytest.raises(SourceReadError, match="bad import"):
            parse_header("package a\nimport (\nx\n)\n", P)


class TestHeaderSourceReader:
    def test_is_source_reader(self):
        assert isinstance(HeaderSourceReader(), BaseSourceReader)

    def test_extension_normalised(self):
        assert HeaderSourceReader("txt").extension == ".txt"

    def test_read_sorted_and_filtered(self, tmp_path):
        (tmp_path / "b.src").write_text("package p\n")
        (tmp_path / "a.src").write_text("package p\n")
        (tmp_path / "_skip.src").write_text("package p\n")
        (tmp_path / ".hidden.src").write_text("package p\n")
        (tmp_path / "notes.txt").write_text("package p\n")
        files = HeaderSourceReader().read(tmp_path)
        assert [f.name for f in files] == ["a.src", "b.src"]

    def test_read_missing_directory(self, tmp_path):
        assert HeaderSourceReader().read(tmp_path / "nope") == []

    def test_has_sources_ignores_tests(self, tmp_path):
        reader = HeaderSourceReader()
        (tmp_path / "a_test.src").write_text("package p\n")
        assert reader.has_sources(tmp_path) is False
        (tmp_path / "a.src").write_text("package p\n")
        assert reader.has_sources(tmp_path) is True

    def test_invalid_utf8_reports_path_and_line(self, tmp_path):
        path = tmp_path / "bad.src"
        path.write_bytes(b"package bad\n// \xff\xfe\n")
        with pytest.raises(SourceReadError, match="invalid UTF-8") as exc_info:
            HeaderSourceReader().read_file(path)
        assert exc_info.value.path == path
        assert exc_info.value.line == 2
