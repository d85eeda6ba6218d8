# src/resolver/constraints.py — v1
"""Platform-conditional file membership.

Two mechanisms decide whether a source file takes part in a build for a
given platform:

  - File-name tags: ``stem_<os>_<arch>``, ``stem_<os>`` or ``stem_<arch>``
    (after removing a trailing ``_test``).
  - Directives: ``//build: <expr>`` lines in the file header. An expression
    is a space-separated list of alternatives (OR); each alternative is a
    comma-separated list of terms (AND); ``!`` negates a term. Several
    directive lines must all be satisfied.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from pkgweaver.core.models import Platform, SourceFile

KNOWN_OS: frozenset[str] = frozenset({
    "aix", "android", "darwin", "dragonfly", "freebsd", "illumos", "ios",
    "js", "linux", "netbsd", "openbsd", "plan9", "solaris", "wasip1",
    "windows",
})
KNOWN_ARCH: frozenset[str] = frozenset({
    "386", "amd64", "arm", "arm64", "loong64", "mips", "mips64", "mips64le",
    "mipsle", "ppc64", "ppc64le", "riscv64", "s390x", "wasm",
})
UNIX_OS: frozenset[str] = frozenset({
    "aix", "android", "darwin", "dragonfly", "freebsd", "illumos", "ios",
    "linux", "netbsd", "openbsd", "solaris",
})


def satisfied_tags(platform: Platform, extra_tags: Iterable[str] = ()) -> frozenset[str]:
    """Tags considered true when building for ``platform``."""
    tags = {platform.os, platform.arch, *extra_tags}
    if platform.os in UNIX_OS:
        tags.add("unix")
    return frozenset(t for t in tags if t)


def filename_matches(name: str, platform: Platform) -> bool:
    """Evaluate file-name platform tags."""
    stem = name.rsplit(".", 1)[0] if "." in name else name
    if stem.endswith("_test"):
        stem = stem[: -len("_test")]
    parts = stem.split("_")
    # A bare 'linux.src' is a name, not a tag.
    if len(parts) < 2:
        return True
    last = parts[-1]
    if len(parts) >= 3 and parts[-2] in KNOWN_OS and last in KNOWN_ARCH:
        return parts[-2] == platform.os and last == platform.arch
    if last in KNOWN_OS:
        return last == platform.os
    if last in KNOWN_ARCH:
        return last == platform.arch
    return True


def evaluate_directive(expr: str, tags: frozenset[str]) -> bool:
    """Evaluate one directive expression against satisfied tags."""
    alternatives = expr.split()
    if not alternatives:
        return True
    for alternative in alternatives:
        if all(_term(t, tags) for t in alternative.split(",") if t):
            return True
    return False


def _term(term: str, tags: frozenset[str]) -> bool:
    if term.startswith("!"):
        return term[1:] not in tags
    return term in tags


def file_matches(
    source: SourceFile, platform: Platform, extra_tags: Iterable[str] = ()
) -> bool:
    """True when ``source`` belongs to the build for ``platform``."""
    if not filename_matches(source.name, platform):
        return False
    tags = satisfied_tags(platform, extra_tags)
    return all(evaluate_directive(expr, tags) for expr in source.constraints)


def select_files(
    files: Sequence[SourceFile],
    platform: Platform | None,
    extra_tags: Iterable[str] = (),
) -> list[SourceFile]:
    """Files taking part in a build; all of them when no platform is given."""
    if platform is None:
        return list(files)
    extra = tuple(extra_tags)
    return [f for f in files if file_matches(f, platform, extra)]


def imports_for(
    files: Sequence[SourceFile],
    platform: Platform | None,
    extra_tags: Iterable[str] = (),
) -> list[str]:
    """Sorted, de-duplicated imports of the platform-matching files."""
    found: set[str] = set()
    for source in select_files(files, platform, extra_tags):
        found.update(source.imports)
    return sorted(found)
