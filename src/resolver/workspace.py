# src/resolver/workspace.py — v1
"""Identifier resolver: maps package identifiers onto workspace directories.

Layout convention: identifier ``a/b/c`` lives in ``<root>/src/a/b/c`` for
one of the configured workspace roots. Roots are consulted in order; the
resolver is a strategy behind BaseResolver so tests and alternative
layouts can substitute their own.
"""

from __future__ import annotations

import logging
import os
from abc import ABC, abstractmethod
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from pathlib import Path

from pkgweaver.core.errors import (
    AmbiguousRoot,
    InvalidIdentifier,
    MultiplePackages,
    NotFound,
    ResolutionError,
)
from pkgweaver.core.models import PackageRecord, SourceFile
from pkgweaver.resolver.identifier import (
    COMMAND_PACKAGE,
    TEST_SUFFIX,
    auxiliary_identifier,
    is_wildcard,
    permitted_prefix,
    short_name,
    validate_identifier,
    wildcard_prefix,
)
from pkgweaver.resolver.source_reader import (
    BaseSourceReader,
    HeaderSourceReader,
    SourceReadError,
)

logger = logging.getLogger(__name__)

SRC_DIR = "src"
# Pseudo-identifier for packages built from an explicit file list.
COMMAND_LINE_ID = "command-line-arguments"

_SKIP_DIRS = {"testdata"}


class BaseResolver(ABC):
    """Strategy turning an identifier into a PackageRecord."""

    @abstractmethod
    def resolve(self, identifier: str) -> PackageRecord:
        """Resolve one identifier.

        Raises:
            NotFound, AmbiguousRoot, InvalidIdentifier, MultiplePackages.
        """

    def resolve_test(self, identifier: str) -> PackageRecord | None:
        """Auxiliary test-only package of ``identifier``, if any."""
        return None


@dataclass
class _Candidate:
    root: Path
    directory: Path
    files: list[SourceFile]

    @property
    def signature(self) -> tuple[frozenset[str], tuple[str, ...]]:
        names = frozenset(f.package for f in self.files if not f.is_test)
        return names, tuple(f.name for f in self.files)


class WorkspaceResolver(BaseResolver):
    """Resolve identifiers against ``<root>/src`` trees.

    Args:
        roots: Workspace roots, in lookup order.
        source_reader: Directory listing collaborator.
    """

    def __init__(
        self,
        roots: Sequence[Path | str],
        source_reader: BaseSourceReader | None = None,
    ) -> None:
        if not roots:
            raise ValueError("At least one workspace root is required")
        self._roots = [Path(r).expanduser().resolve() for r in roots]
        self._reader = source_reader or HeaderSourceReader()
        self._records: dict[str, PackageRecord] = {}
        self._tests: dict[str, PackageRecord | None] = {}

    @property
    def roots(self) -> list[Path]:
        return list(self._roots)

    # ------------------------------------------------------------------
    # Single identifiers
    # ------------------------------------------------------------------

    def resolve(self, identifier: str) -> PackageRecord:
        cached = self._records.get(identifier)
        if cached is not None:
            return cached

        validate_identifier(identifier)
        candidates: list[_Candidate] = []
        for root in self._roots:
            directory = root / SRC_DIR / identifier
            files = self._read(identifier, directory)
            if any(not f.is_test for f in files):
                candidates.append(_Candidate(root, directory, files))

        if not candidates:
            raise NotFound(identifier)

        chosen = candidates[0]
        for other in candidates[1:]:
            if other.signature != chosen.signature:
                raise AmbiguousRoot(identifier, [c.root for c in candidates])

        record, auxiliary = _build_records(identifier, chosen)
        self._records[identifier] = record
        self._tests[identifier] = auxiliary
        logger.debug(
            "Resolved %s -> %s (name=%s, command=%s, restricted=%s)",
            identifier, chosen.directory, record.name,
            record.is_command, record.is_restricted,
        )
        return record

    def resolve_test(self, identifier: str) -> PackageRecord | None:
        self.resolve(identifier)
        return self._tests.get(identifier)

    def resolve_files(self, paths: Sequence[Path | str]) -> PackageRecord:
        """Resolve a command-line list of files as one synthetic package.

        All files must share a directory. The executable name of a command
        built this way is the stem of the first file given.
        """
        if not paths:
            raise InvalidIdentifier(COMMAND_LINE_ID, "no files given")
        resolved = [Path(p).expanduser().resolve() for p in paths]
        directories = {p.parent for p in resolved}
        if len(directories) != 1:
            raise InvalidIdentifier(
                COMMAND_LINE_ID, "named files must all be in one directory"
            )
        directory = directories.pop()
        listing = {f.name: f for f in self._read(COMMAND_LINE_ID, directory)}
        files: list[SourceFile] = []
        for path in resolved:
            source = listing.get(path.name)
            if source is None:
                raise NotFound(COMMAND_LINE_ID, detail=f"no such source file {path}")
            files.append(source)

        names = {f.package for f in files if not f.is_test}
        if not names:
            raise NotFound(COMMAND_LINE_ID, detail="no non-test source files")
        if len(names) > 1:
            raise MultiplePackages(COMMAND_LINE_ID, list(names))
        name = names.pop()
        is_command = name == COMMAND_PACKAGE
        source_files = tuple(f for f in files if not f.is_test)
        return PackageRecord(
            identifier=COMMAND_LINE_ID,
            name=name,
            short_name=source_files[0].stem if is_command else name,
            directory=directory,
            root=directory,
            source_files=source_files,
            test_files=tuple(f for f in files if f.is_test),
            imports=_collect_imports(source_files),
            is_command=is_command,
            executable_name=source_files[0].stem if is_command else None,
        )

    # ------------------------------------------------------------------
    # Wildcards and paths
    # ------------------------------------------------------------------

    def expand(self, pattern: str) -> list[str]:
        """Expand a wildcard pattern in directory traversal order.

        Non-wildcard patterns are validated and returned as-is.
        """
        if not is_wildcard(pattern):
            return [validate_identifier(pattern)]

        prefix = wildcard_prefix(pattern)
        if prefix:
            validate_identifier(prefix)

        seen: set[str] = set()
        matches: list[str] = []
        for root in self._roots:
            src = root / SRC_DIR
            start = src / prefix if prefix else src
            if not start.is_dir():
                continue
            for dirpath, dirnames, _ in os.walk(start):
                dirnames[:] = sorted(
                    d for d in dirnames
                    if not d.startswith((".", "_")) and d not in _SKIP_DIRS
                )
                directory = Path(dirpath)
                if directory == src or not self._reader.has_sources(directory):
                    continue
                identifier = directory.relative_to(src).as_posix()
                if identifier not in seen:
                    seen.add(identifier)
                    matches.append(identifier)

        if not matches:
            logger.warning("Pattern %r matched no packages", pattern)
        return matches

    def resolve_patterns(self, patterns: Iterable[str]) -> list[PackageRecord]:
        """Expand and resolve patterns, de-duplicated, in request order."""
        records: list[PackageRecord] = []
        seen: set[str] = set()
        for pattern in patterns:
            for identifier in self.expand(pattern):
                if identifier in seen:
                    continue
                seen.add(identifier)
                records.append(self.resolve(identifier))
        return records

    def identifier_for_directory(self, path: Path | str) -> str:
        """Identifier of a directory inside one of the roots' src trees."""
        target = Path(path).expanduser().resolve()
        for root in self._roots:
            src = root / SRC_DIR
            try:
                relative = target.relative_to(src)
            except ValueError:
                continue
            identifier = relative.as_posix()
            if identifier in ("", "."):
                raise InvalidIdentifier(str(path), "directory is a source root")
            return validate_identifier(identifier)
        raise NotFound(str(path), detail="directory is outside all workspace roots")

    # ------------------------------------------------------------------

    def _read(self, identifier: str, directory: Path) -> list[SourceFile]:
        try:
            return self._reader.read(directory)
        except SourceReadError as exc:
            raise ResolutionError(identifier, str(exc)) from exc


def _build_records(
    identifier: str, candidate: _Candidate
) -> tuple[PackageRecord, PackageRecord | None]:
    """Split a directory listing into the normal and auxiliary records."""
    regular = [f for f in candidate.files if not f.is_test]
    names = {f.package for f in regular}
    if len(names) > 1:
        raise MultiplePackages(identifier, list(names))
    name = names.pop()
    aux_name = name + TEST_SUFFIX

    in_package_tests: list[SourceFile] = []
    external_tests: list[SourceFile] = []
    for source in candidate.files:
        if not source.is_test:
            continue
        if source.package == name:
            in_package_tests.append(source)
        elif source.package == aux_name:
            external_tests.append(source)
        else:
            raise MultiplePackages(identifier, [name, source.package])

    src = candidate.root / SRC_DIR
    prefix = permitted_prefix(identifier)
    permitted_root = None if prefix is None else (src / prefix if prefix else src)
    is_command = name == COMMAND_PACKAGE
    derived = short_name(identifier)

    record = PackageRecord(
        identifier=identifier,
        name=name,
        short_name=derived,
        directory=candidate.directory,
        root=candidate.root,
        source_files=tuple(regular),
        test_files=tuple(in_package_tests),
        imports=_collect_imports(regular),
        test_imports=_collect_imports(in_package_tests),
        is_command=is_command,
        is_restricted=prefix is not None,
        permitted_root=permitted_root,
        executable_name=derived if is_command else None,
    )

    auxiliary = None
    if external_tests:
        auxiliary = PackageRecord(
            identifier=auxiliary_identifier(identifier),
            name=aux_name,
            short_name=derived + TEST_SUFFIX,
            directory=candidate.directory,
            root=candidate.root,
            source_files=tuple(external_tests),
            imports=_collect_imports(external_tests),
            is_test=True,
            is_restricted=prefix is not None,
            permitted_root=permitted_root,
        )
    return record, auxiliary


def _collect_imports(files: Iterable[SourceFile]) -> tuple[str, ...]:
    found: set[str] = set()
    for source in files:
        found.update(source.imports)
    return tuple(sorted(found))
