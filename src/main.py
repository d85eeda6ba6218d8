# src/main.py — v1
"""CLI entry point: resolve, list, graph, build, sniff commands.

Usage:
    pkgweaver resolve <identifier>... [--json]
    pkgweaver list <pattern>...
    pkgweaver graph <identifier>... [--tests]
    pkgweaver build <identifier|dir|file>... [--platform OS/ARCH] [--os OS] [--arch ARCH]
                    [-j N] [--tags a,b] [--no-cache] [--tests]
    pkgweaver sniff <file>

Exit status is 0 on success, 1 on any error, 130 when interrupted.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

from pkgweaver.config.settings import ConfigurationError, Settings, load_settings
from pkgweaver.core.errors import PkgweaverError
from pkgweaver.core.models import Platform
from pkgweaver.logging.logger import setup_logging
from pkgweaver.registry.registry import FormatNotFound, RegistryError
from pkgweaver.version import __version__

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    try:
        settings = load_settings(**_overrides(args))
    except (ConfigurationError, ValueError) as exc:
        setup_logging()
        logger.error("Invalid configuration: %s", exc)
        return 1

    setup_logging(
        level="DEBUG" if args.verbose else settings.log_level,
        log_format=settings.log_format,
        log_file=settings.log_file,
        rotation=settings.log_rotation,
        retention=settings.log_retention,
    )

    try:
        return asyncio.run(args.func(args, settings))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except (PkgweaverError, RegistryError, FormatNotFound, ValueError, OSError) as exc:
        logger.error("%s", exc, exc_info=args.verbose)
        return 1


def _build_parser() -> argparse.ArgumentParser:
    """Build CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="pkgweaver",
        description=f"pkgweaver v{__version__} - package resolver and incremental builder",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--root", dest="roots", action="append", default=None,
        help="Workspace root (repeatable; default: WORKSPACE_ROOTS)",
    )

    subparsers = parser.add_subparsers(dest="command")

    # --- resolve ---
    p_resolve = subparsers.add_parser("resolve", help="Show resolved package records")
    p_resolve.add_argument("identifiers", nargs="+", help="Package identifiers or patterns")
    p_resolve.add_argument("--json", action="store_true", help="Emit JSON")
    p_resolve.set_defaults(func=_cmd_resolve)

    # --- list ---
    p_list = subparsers.add_parser("list", help="List packages matching patterns")
    p_list.add_argument("patterns", nargs="+", help="Identifiers or '...' patterns")
    p_list.set_defaults(func=_cmd_list)

    # --- graph ---
    p_graph = subparsers.add_parser("graph", help="Print the dependency graph")
    _add_target_args(p_graph)
    p_graph.add_argument("identifiers", nargs="+", help="Seed packages")
    p_graph.set_defaults(func=_cmd_graph)

    # --- build ---
    p_build = subparsers.add_parser("build", help="Build packages and link commands")
    _add_target_args(p_build)
    p_build.add_argument("targets", nargs="+", help="Packages, directories or source files")
    p_build.add_argument(
        "-j", "--jobs", type=int, default=None,
        help="Max concurrent compile/link jobs (default: MAX_CONCURRENCY)",
    )
    p_build.add_argument(
        "--no-cache", action="store_true",
        help="Ignore and do not update the artifact cache",
    )
    p_build.set_defaults(func=_cmd_build)

    # --- sniff ---
    p_sniff = subparsers.add_parser("sniff", help="Identify a file's registered format")
    p_sniff.add_argument("file", type=Path, help="File to inspect")
    p_sniff.set_defaults(func=_cmd_sniff)

    return parser


def _add_target_args(p: argparse.ArgumentParser) -> None:
    p.add_argument(
        "--platform", default=None,
        help="Target as os/arch (overridden by --os / --arch)",
    )
    p.add_argument("--os", dest="target_os", default=None, help="Target OS")
    p.add_argument("--arch", dest="target_arch", default=None, help="Target architecture")
    p.add_argument("--tags", default=None, help="Comma-separated build tags")
    p.add_argument(
        "--tests", action="store_true",
        help="Include test imports and auxiliary test packages",
    )


def _overrides(args: argparse.Namespace) -> dict[str, Any]:
    """Settings overrides from CLI flags; unset flags fall back to .env."""
    overrides: dict[str, Any] = {}
    if args.roots:
        overrides["workspace_roots"] = ",".join(args.roots)
    if getattr(args, "platform", None):
        target = Platform.parse(args.platform)
        overrides.update(target_os=target.os, target_arch=target.arch)
    for flag, field in (
        ("target_os", "target_os"),
        ("target_arch", "target_arch"),
        ("tags", "build_tags"),
        ("jobs", "max_concurrency"),
    ):
        value = getattr(args, flag, None)
        if value is not None:
            overrides[field] = value
    if getattr(args, "no_cache", False):
        overrides["cache_enabled"] = False
    return overrides


async def _cmd_resolve(args: argparse.Namespace, settings: Settings) -> int:
    """Print the records of the requested packages."""
    from pkgweaver.api.facade import resolve_packages

    records = resolve_packages(args.identifiers, settings)
    if args.json:
        print(json.dumps([r.model_dump(mode="json") for r in records], indent=2))
        return 0
    for record in records:
        print(f"{record.identifier}:")
        print(f"  name:       {record.name}")
        print(f"  directory:  {record.directory}")
        print(f"  files:      {' '.join(record.file_names) or '-'}")
        print(f"  imports:    {' '.join(record.imports) or '-'}")
        if record.is_command:
            print(f"  executable: {record.executable_name}")
        if record.is_restricted:
            print(f"  restricted: {record.permitted_root}")
    return 0


async def _cmd_list(args: argparse.Namespace, settings: Settings) -> int:
    """Print matching identifiers, one per line."""
    from pkgweaver.api.facade import resolve_packages

    for record in resolve_packages(args.patterns, settings):
        print(record.identifier)
    return 0


async def _cmd_graph(args: argparse.Namespace, settings: Settings) -> int:
    """Print the graph in build order with each package's direct imports."""
    from pkgweaver.api.facade import load_graph

    graph = load_graph(args.identifiers, settings, include_tests=args.tests)
    for identifier in graph.topological_order():
        deps = graph.dependencies(identifier)
        print(f"{identifier}: {' '.join(deps)}" if deps else identifier)
    return 0


async def _cmd_build(args: argparse.Namespace, settings: Settings) -> int:
    """Build the requested targets and print a summary."""
    from pkgweaver.api.facade import build

    report = await build(args.targets, settings, include_tests=args.tests)
    summary = report.summary()

    for identifier, result in sorted(report.results.items()):
        if result.status == "failed" and result.error is not None:
            print(f"# {identifier}", file=sys.stderr)
            lines = [str(d) for d in result.error.diagnostics] or [str(result.error)]
            for line in lines:
                print(f"  {line}", file=sys.stderr)
    for failing, blocked in sorted(report.failures.items()):
        if blocked:
            print(f"{failing} blocked: {' '.join(blocked)}", file=sys.stderr)
    for identifier, executable in sorted(report.executables.items()):
        print(f"{identifier} -> {executable}")

    print(
        f"\nBuild {'succeeded' if report.success else 'failed'} for {summary['platform']}:"
        f" {summary['built']} built, {summary['cached']} cached,"
        f" {summary['failed']} failed, {summary['blocked']} blocked"
        f" ({summary['duration_ms']}ms)"
    )
    return 0 if report.success else 1


async def _cmd_sniff(args: argparse.Namespace, settings: Settings) -> int:
    """Print the registered format name recognising the file."""
    from pkgweaver.api.facade import sniff_format

    print(sniff_format(args.file.read_bytes(), settings))
    return 0


if __name__ == "__main__":
    sys.exit(main())
