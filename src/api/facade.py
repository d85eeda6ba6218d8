# src/api/facade.py — v1
"""Public API facade: resolve, graph and build in a few calls.

Usage:
    from pkgweaver.api.facade import build
    report = await build(["cmd/server"], settings)

Build arguments may be package identifiers, wildcard patterns
(``net/...``), directories given as paths (``./cmd/server``), or a list
of source files from one directory, which is built as the
``command-line-arguments`` package.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from pathlib import Path
from typing import TYPE_CHECKING

from pkgweaver.build.models import BuildReport
from pkgweaver.config.settings import Settings
from pkgweaver.core.models import PackageRecord, Platform
from pkgweaver.graph.builder import build_graph
from pkgweaver.graph.models import PackageGraph
from pkgweaver.graph.visibility import enforce_visibility
from pkgweaver.logging.context import new_invocation
from pkgweaver.resolver.identifier import WILDCARD
from pkgweaver.resolver.source_reader import HeaderSourceReader
from pkgweaver.resolver.workspace import SRC_DIR, WorkspaceResolver

if TYPE_CHECKING:
    from pkgweaver.build.toolchain import BaseCompiler, BaseLinker
    from pkgweaver.cache.artifact_cache import ArtifactCache
    from pkgweaver.registry.registry import FormatRegistry

logger = logging.getLogger(__name__)


def create_resolver(settings: Settings | None = None) -> WorkspaceResolver:
    """WorkspaceResolver over the configured roots and source extension."""
    settings = settings or Settings()
    return WorkspaceResolver(
        settings.workspace_roots_list,
        source_reader=HeaderSourceReader(settings.source_extension),
    )


def resolve_packages(
    patterns: Sequence[str],
    settings: Settings | None = None,
    resolver: WorkspaceResolver | None = None,
) -> list[PackageRecord]:
    """Resolve identifiers, wildcard patterns and directory paths."""
    settings = settings or Settings()
    resolver = resolver or create_resolver(settings)
    return _seeds(patterns, resolver, settings.source_extension)


def load_graph(
    patterns: Sequence[str],
    settings: Settings | None = None,
    resolver: WorkspaceResolver | None = None,
    platform: Platform | None = None,
    tags: Iterable[str] | None = None,
    include_tests: bool = False,
) -> PackageGraph:
    """Resolve the arguments, build their graph and check visibility.

    Raises:
        ResolutionError, CycleDetected, RestrictedImport: Structural
            errors, raised before anything is compiled.
    """
    settings = settings or Settings()
    resolver = resolver or create_resolver(settings)
    platform = platform or settings.target_platform
    tags = settings.build_tags_list if tags is None else list(tags)

    seeds = _seeds(patterns, resolver, settings.source_extension)
    graph = build_graph(seeds, resolver, platform, tags, include_tests=include_tests)
    enforce_visibility(graph)
    return graph


async def build(
    patterns: Sequence[str],
    settings: Settings | None = None,
    *,
    platform: Platform | None = None,
    tags: Iterable[str] | None = None,
    resolver: WorkspaceResolver | None = None,
    cache: ArtifactCache | None = None,
    compiler: BaseCompiler | None = None,
    linker: BaseLinker | None = None,
    registry: FormatRegistry | None = None,
    include_tests: bool = False,
) -> BuildReport:
    """Build the requested packages and link any commands among them.

    Args:
        patterns: Identifiers, patterns, directories or source files.
        settings: Global settings. Loaded from .env if None.
        platform: Target platform; defaults to the configured one.
        tags: Extra build tags; defaults to BUILD_TAGS.
        resolver, cache, compiler, linker, registry: Collaborator
            overrides. Unset ones are created from settings.
        include_tests: Also build test-only imports and auxiliary test
            packages of the requested packages.

    Returns:
        BuildReport for the target platform.
    """
    from pkgweaver.build.scheduler import BuildScheduler
    from pkgweaver.build.toolchain_factory import create_toolchain
    from pkgweaver.cache.cache_factory import create_artifact_cache
    from pkgweaver.registry.startup import initialize_capabilities

    settings = settings or Settings()
    invocation = new_invocation()
    platform = platform or settings.target_platform
    tags = settings.build_tags_list if tags is None else list(tags)
    logger.info("Invocation %s: build %s for %s", invocation, " ".join(patterns), platform)

    graph = load_graph(
        patterns, settings, resolver, platform, tags, include_tests=include_tests
    )

    registry = initialize_capabilities(settings.capabilities_list, registry)
    if compiler is None or linker is None:
        default_compiler, default_linker = create_toolchain(settings, registry)
        compiler = compiler or default_compiler
        linker = linker or default_linker

    owns_cache = cache is None
    cache = cache or create_artifact_cache(settings)
    scheduler = BuildScheduler(
        cache=cache,
        compiler=compiler,
        linker=linker,
        artifact_root=settings.artifact_root,
        bin_dir=settings.bin_dir,
        max_concurrency=settings.max_concurrency,
        toolchain_id=settings.toolchain_id,
    )
    try:
        return await scheduler.build(graph, platform, tags)
    finally:
        if owns_cache:
            cache.close()


def sniff_format(data: bytes, settings: Settings | None = None) -> str:
    """Name of the registered format recognising ``data``.

    Raises:
        FormatNotFound: No capability claims the bytes.
    """
    from pkgweaver.registry.startup import initialize_capabilities

    settings = settings or Settings()
    registry = initialize_capabilities(settings.capabilities_list)
    return registry.dispatch(data).name


def _seeds(
    patterns: Sequence[str], resolver: WorkspaceResolver, extension: str
) -> list[PackageRecord]:
    files = [p for p in patterns if p.endswith(extension)]
    if files:
        if len(files) != len(patterns):
            raise ValueError("cannot mix source files with package arguments")
        return [resolver.resolve_files(files)]
    return resolver.resolve_patterns(_to_identifier(p, resolver) for p in patterns)


def _to_identifier(argument: str, resolver: WorkspaceResolver) -> str:
    """Map a directory path argument onto its identifier; others pass through."""
    if argument == WILDCARD or not (argument.startswith(".") or Path(argument).is_absolute()):
        return argument
    if argument.endswith("/" + WILDCARD):
        directory = Path(argument[: -len(WILDCARD) - 1] or "/").expanduser().resolve()
        if directory in {root / SRC_DIR for root in resolver.roots}:
            return WILDCARD
        return resolver.identifier_for_directory(directory) + "/" + WILDCARD
    return resolver.identifier_for_directory(argument)
