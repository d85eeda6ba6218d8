# src/resolver/identifier.py — v1
"""Identifier rules: validation, short names, wildcards, restricted segments.

Pure string functions; nothing here touches the filesystem.
"""

from __future__ import annotations

import re

from pkgweaver.core.errors import InvalidIdentifier

# Declared package name that marks a program entry (command) package.
COMMAND_PACKAGE = "main"
# Suffix on a declared package name marking the test-only auxiliary package.
TEST_SUFFIX = "_test"
# Path segment restricting visibility to the parent subtree.
RESTRICTED_SEGMENT = "internal"
# Trailing wildcard matching any remaining segments.
WILDCARD = "..."

_VERSION_SEGMENT = re.compile(r"^v([2-9]|[1-9][0-9]+)$")
_DOTTED_VERSION = re.compile(r"^(?P<base>.+)\.v[0-9]+$")
_BAD_CHARS = set('\\"\'` \t\n:*?<>|')


def validate_identifier(identifier: str) -> str:
    """Return the identifier unchanged or raise InvalidIdentifier."""
    if not identifier:
        raise InvalidIdentifier(identifier, "empty")
    if identifier.startswith("/") or identifier.endswith("/"):
        raise InvalidIdentifier(identifier, "leading or trailing slash")
    bad = _BAD_CHARS.intersection(identifier)
    if bad:
        raise InvalidIdentifier(identifier, f"invalid characters {''.join(sorted(bad))!r}")
    for segment in identifier.split("/"):
        if segment in ("", ".", ".."):
            raise InvalidIdentifier(identifier, f"invalid segment {segment!r}")
    return identifier


def segments(identifier: str) -> list[str]:
    return identifier.split("/")


def is_version_segment(segment: str) -> bool:
    """True for a major-version segment such as 'v2'."""
    return bool(_VERSION_SEGMENT.match(segment))


def short_name(identifier: str) -> str:
    """Derive the default short name.

    The last segment, skipping a trailing ``vN`` segment and stripping a
    ``.vN`` suffix: ``x/y/v2`` -> ``y``, ``example.org/yaml.v3`` -> ``yaml``.
    """
    parts = segments(identifier)
    last = parts[-1]
    if len(parts) > 1 and is_version_segment(last):
        last = parts[-2]
    match = _DOTTED_VERSION.match(last)
    if match:
        last = match.group("base")
    return last


def restricted_index(identifier: str) -> int | None:
    """Index of the last restricted segment, or None."""
    parts = segments(identifier)
    for idx in range(len(parts) - 1, -1, -1):
        if parts[idx] == RESTRICTED_SEGMENT:
            return idx
    return None


def permitted_prefix(identifier: str) -> str | None:
    """Identifier prefix whose subtree may import ``identifier``.

    Returns None for unrestricted identifiers and "" when the restricted
    segment is the first one (the whole root may import it).
    """
    idx = restricted_index(identifier)
    if idx is None:
        return None
    return "/".join(segments(identifier)[:idx])


def is_wildcard(pattern: str) -> bool:
    return pattern == WILDCARD or pattern.endswith("/" + WILDCARD)


def wildcard_prefix(pattern: str) -> str:
    """Prefix of a wildcard pattern ('' for the bare wildcard)."""
    if pattern == WILDCARD:
        return ""
    return pattern[: -len("/" + WILDCARD)]


def auxiliary_identifier(identifier: str) -> str:
    """Node key of the auxiliary test package for ``identifier``."""
    return identifier + TEST_SUFFIX
