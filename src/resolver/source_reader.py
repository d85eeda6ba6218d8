# src/resolver/source_reader.py — v1
"""Source reader: lists a directory's source files and their header data.

The resolver trusts the listing verbatim. The default reader only scans
file headers; it never parses source bodies.

Header format::

    // comments and blank lines are skipped
    //build: linux,amd64 darwin
    package name
    import "a/b"
    import (
        "c/d"
        "e/f"
    )

The first line that is none of the above ends the header.
"""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from pathlib import Path

from pkgweaver.core.models import SourceFile

logger = logging.getLogger(__name__)

DIRECTIVE_PREFIX = "//build:"

_PACKAGE_RE = re.compile(r"^package\s+([A-Za-z_][A-Za-z0-9_]*)\s*$")
_IMPORT_RE = re.compile(r'^import\s+"([^"]+)"\s*$')
_QUOTED_RE = re.compile(r'^"([^"]+)"\s*$')


class SourceReadError(ValueError):
    """Raised when a source file header is malformed."""

    def __init__(self, path: Path, line: int, message: str) -> None:
        self.path = path
        self.line = line
        super().__init__(f"{path}:{line}: {message}")


class BaseSourceReader(ABC):
    """Unified interface for directory listings consumed by the resolver."""

    @abstractmethod
    def read(self, directory: Path) -> list[SourceFile]:
        """Return source files of ``directory`` in lexical order."""

    @abstractmethod
    def has_sources(self, directory: Path) -> bool:
        """Cheap check used during wildcard traversal."""


class HeaderSourceReader(BaseSourceReader):
    """Reads package/import/directive headers from files with one extension."""

    def __init__(self, extension: str = ".src") -> None:
        self._extension = extension if extension.startswith(".") else f".{extension}"

    @property
    def extension(self) -> str:
        return self._extension

    def has_sources(self, directory: Path) -> bool:
        if not directory.is_dir():
            return False
        test_suffix = f"_test{self._extension}"
        return any(
            p.is_file()
            and not p.name.startswith((".", "_"))
            and not p.name.endswith(test_suffix)
            for p in directory.glob(f"*{self._extension}")
        )

    def read(self, directory: Path) -> list[SourceFile]:
        if not directory.is_dir():
            return []
        files: list[SourceFile] = []
        for path in sorted(directory.glob(f"*{self._extension}")):
            if not path.is_file() or path.name.startswith((".", "_")):
                continue
            files.append(self.read_file(path))
        logger.debug("Read %d source files from %s", len(files), directory)
        return files

    def read_file(self, path: Path) -> SourceFile:
        """Parse the header of a single file.

        Raises:
            SourceReadError: Unreadable file, invalid UTF-8 or a
                malformed header.
        """
        try:
            data = path.read_bytes()
        except OSError as exc:
            raise SourceReadError(path, 0, f"cannot read file: {exc.strerror or exc}") from exc
        try:
            text = data.decode("utf-8")
        except UnicodeDecodeError as exc:
            line = data.count(b"\n", 0, exc.start) + 1
            raise SourceReadError(path, line, "invalid UTF-8 encoding") from exc
        return parse_header(text, path)


def parse_header(text: str, path: Path) -> SourceFile:
    """Parse a source header into a SourceFile."""
    package: str | None = None
    imports: list[str] = []
    constraints: list[str] = []
    in_block = False

    for lineno, raw in enumerate(text.splitlines(), start=1):
        line = raw.strip()

        if in_block:
            if line == ")":
                in_block = False
                continue
            if not line or line.startswith("//"):
                continue
            match = _QUOTED_RE.match(line)
            if not match:
                raise SourceReadError(path, lineno, f"bad import line {line!r}")
            _append_unique(imports, match.group(1))
            continue

        if not line:
            continue
        if line.startswith(DIRECTIVE_PREFIX):
            if package is not None:
                # Directives after the package clause are ignored.
                continue
            constraints.append(line[len(DIRECTIVE_PREFIX):].strip())
            continue
        if line.startswith("//"):
            continue

        if package is None:
            match = _PACKAGE_RE.match(line)
            if not match:
                raise SourceReadError(path, lineno, "expected package clause")
            package = match.group(1)
            continue

        if line in ("import (", "import("):
            in_block = True
            continue
        match = _IMPORT_RE.match(line)
        if match:
            _append_unique(imports, match.group(1))
            continue
        break

    if package is None:
        raise SourceReadError(path, 1, "missing package clause")
    if in_block:
        raise SourceReadError(path, 1, "unterminated import block")

    return SourceFile(
        name=path.name,
        package=package,
        imports=tuple(imports),
        constraints=tuple(constraints),
    )


def _append_unique(items: list[str], value: str) -> None:
    if value not in items:
        items.append(value)
