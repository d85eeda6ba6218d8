# src/build/toolchain.py — v1
"""Abstract compiler and linker collaborators.

The scheduler treats both as black boxes invoked once per package. A
compiler returns an Artifact handle or raises CompileFailure; a linker
returns the executable path or raises LinkFailure. Diagnostics are
surfaced verbatim.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path

from pkgweaver.build.models import CompileRequest, LinkRequest
from pkgweaver.core.models import Artifact


class BaseCompiler(ABC):
    """Unified interface for per-package compilers."""

    @abstractmethod
    async def compile(self, request: CompileRequest) -> Artifact:
        """Compile one package into ``request.output_path``."""


class BaseLinker(ABC):
    """Unified interface for command linkers."""

    @abstractmethod
    async def link(self, request: LinkRequest) -> Path:
        """Link a command into ``request.output_path``."""
