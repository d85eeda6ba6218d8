# src/build/toolchain_factory.py — v1
"""Factory for compiler / linker pairs (TOOLCHAIN setting)."""

from __future__ import annotations

from pkgweaver.build.toolchain import BaseCompiler, BaseLinker
from pkgweaver.config.settings import Settings
from pkgweaver.registry.registry import FormatRegistry


def create_toolchain(
    settings: Settings, registry: FormatRegistry
) -> tuple[BaseCompiler, BaseLinker]:
    """Instantiate the configured toolchain.

    Returns:
        (compiler, linker) pair.
    """
    if settings.toolchain == "manifest":
        from pkgweaver.build.manifest_toolchain import ManifestCompiler, ManifestLinker
        return (
            ManifestCompiler(registry, encoding=settings.artifact_encoding),
            ManifestLinker(registry),
        )

    if settings.toolchain == "command":
        from pkgweaver.build.command_toolchain import CommandCompiler, CommandLinker
        return (
            CommandCompiler(settings.compile_command),
            CommandLinker(settings.link_command),
        )

    raise ValueError(f"Unsupported toolchain: {settings.toolchain!r}")
