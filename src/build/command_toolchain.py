# src/build/command_toolchain.py — v1
"""Toolchain shelling out to configured compile / link commands.

Command templates are split shell-style, then each argument is expanded:

  {files}     one argument per participating source file (absolute path)
  {deps}      one argument per dependency artifact (direct for compile,
              transitive for link)
  {output}    output path
  {artifact}  the command's own artifact (link only)
  {package}, {name}, {os}, {arch}, {dir}

Stderr lines shaped ``file:line: message`` become structured diagnostics.
"""

from __future__ import annotations

import asyncio
import logging
import re
import shlex
from collections.abc import Sequence
from pathlib import Path

from pkgweaver.build.models import CompileRequest, LinkRequest
from pkgweaver.build.toolchain import BaseCompiler, BaseLinker
from pkgweaver.cache.fingerprint import digest_file
from pkgweaver.core.errors import CompileFailure, LinkFailure, ToolchainError
from pkgweaver.core.models import Artifact, CompileDiagnostic

logger = logging.getLogger(__name__)

_DIAGNOSTIC_RE = re.compile(r"^(?P<file>[^:\s][^:]*):(?P<line>\d+):\s*(?P<message>.+)$")


class CommandCompiler(BaseCompiler):
    """Compile by running an external command per package."""

    def __init__(self, template: str) -> None:
        self._template = shlex.split(template)
        if not self._template:
            raise ValueError("compile command template is empty")

    async def compile(self, request: CompileRequest) -> Artifact:
        record = request.record
        argv = expand_template(
            self._template,
            files=[str(record.directory / f.name) for f in request.files],
            deps=[a.path for _, a in sorted(request.dependencies.items())],
            values={
                "package": record.identifier,
                "name": record.name,
                "output": str(request.output_path),
                "os": request.platform.os,
                "arch": request.platform.arch,
                "dir": str(record.directory),
            },
        )
        request.output_path.parent.mkdir(parents=True, exist_ok=True)
        await _run(argv, record.identifier, CompileFailure, cwd=record.directory)
        if not request.output_path.exists():
            raise CompileFailure(
                record.identifier,
                message=f"compiler produced no output at {request.output_path}",
            )
        return Artifact(
            path=str(request.output_path), digest=digest_file(request.output_path)
        )


class CommandLinker(BaseLinker):
    """Link by running an external command per command package."""

    def __init__(self, template: str) -> None:
        self._template = shlex.split(template)
        if not self._template:
            raise ValueError("link command template is empty")

    async def link(self, request: LinkRequest) -> Path:
        record = request.record
        argv = expand_template(
            self._template,
            files=[],
            deps=[a.path for _, a in sorted(request.transitive_artifacts.items())],
            values={
                "package": record.identifier,
                "name": record.name,
                "output": str(request.output_path),
                "artifact": request.artifact.path,
                "os": request.platform.os,
                "arch": request.platform.arch,
                "dir": str(record.directory),
            },
        )
        request.output_path.parent.mkdir(parents=True, exist_ok=True)
        await _run(argv, record.identifier, LinkFailure, cwd=record.directory)
        if not request.output_path.exists():
            raise LinkFailure(
                record.identifier,
                message=f"linker produced no output at {request.output_path}",
            )
        return request.output_path


def expand_template(
    template: Sequence[str],
    files: Sequence[str],
    deps: Sequence[str],
    values: dict[str, str],
) -> list[str]:
    """Expand list placeholders into arguments and format the rest."""
    argv: list[str] = []
    for arg in template:
        if arg == "{files}":
            argv.extend(files)
        elif arg == "{deps}":
            argv.extend(deps)
        else:
            argv.append(arg.format(**values))
    return argv


def parse_diagnostics(stderr: str) -> list[CompileDiagnostic]:
    """Turn tool stderr into diagnostics; unstructured lines are kept as-is."""
    diagnostics: list[CompileDiagnostic] = []
    for line in stderr.splitlines():
        line = line.rstrip()
        if not line:
            continue
        match = _DIAGNOSTIC_RE.match(line)
        if match:
            diagnostics.append(CompileDiagnostic(
                message=match.group("message"),
                file=match.group("file"),
                line=int(match.group("line")),
            ))
        else:
            diagnostics.append(CompileDiagnostic(message=line))
    return diagnostics


async def _run(
    argv: list[str],
    identifier: str,
    error_cls: type[ToolchainError],
    cwd: Path,
) -> None:
    logger.debug("Running %s", shlex.join(argv))
    try:
        proc = await asyncio.create_subprocess_exec(
            *argv,
            cwd=str(cwd),
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as exc:
        raise error_cls(identifier, message=f"cannot run {argv[0]}: {exc}") from exc
    _, stderr = await proc.communicate()
    if proc.returncode != 0:
        text = stderr.decode("utf-8", errors="replace")
        diagnostics = parse_diagnostics(text)
        if not diagnostics:
            diagnostics = [CompileDiagnostic(message=f"exit status {proc.returncode}")]
        raise error_cls(identifier, diagnostics)
