# src/build/manifest_toolchain.py — v1
"""Reference toolchain writing JSON manifests instead of object code.

ManifestCompiler records, for one package, the digest of each compiled
file and of each direct dependency artifact. A source line starting with
``//error:`` is reported as a compile diagnostic at that file and line.

ManifestLinker reads every artifact back through the format registry
(so compressed artifacts need their capability linked in) and writes an
executable manifest listing the whole package closure.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

from pkgweaver.build.models import CompileRequest, LinkRequest
from pkgweaver.build.toolchain import BaseCompiler, BaseLinker
from pkgweaver.cache.fingerprint import digest_bytes, digest_file
from pkgweaver.core.errors import CompileFailure, LinkFailure
from pkgweaver.core.models import Artifact, CompileDiagnostic
from pkgweaver.registry.registry import (
    FormatNotFound,
    FormatRegistry,
    RegistryError,
    decode_payload,
    encode_payload,
)

logger = logging.getLogger(__name__)

ERROR_DIRECTIVE = "//error:"
MANIFEST_KIND = "pkgweaver/package"
EXECUTABLE_KIND = "pkgweaver/executable"


class ManifestCompiler(BaseCompiler):
    """Compile a package into a JSON manifest artifact.

    Args:
        registry: Registry providing the json encoder (and ``encoding``).
        encoding: Optional wrapper format, e.g. "gzip". "none" keeps JSON.
    """

    def __init__(self, registry: FormatRegistry, encoding: str = "none") -> None:
        self._registry = registry
        self._encoding = encoding

    async def compile(self, request: CompileRequest) -> Artifact:
        record = request.record
        diagnostics: list[CompileDiagnostic] = []
        files: dict[str, str] = {}

        for source in request.files:
            path = record.directory / source.name
            try:
                files[source.name] = digest_file(path)
                diagnostics.extend(_error_directives(path))
            except OSError as exc:
                diagnostics.append(CompileDiagnostic(message=str(exc), file=str(path)))

        if diagnostics:
            raise CompileFailure(record.identifier, diagnostics)

        manifest: dict[str, Any] = {
            "kind": MANIFEST_KIND,
            "identifier": record.identifier,
            "name": record.name,
            "platform": str(request.platform),
            "fingerprint": request.fingerprint,
            "files": files,
            "dependencies": {
                dep: artifact.digest
                for dep, artifact in sorted(request.dependencies.items())
            },
        }
        payload = self._encode(manifest)
        _write_atomic(request.output_path, payload)
        logger.debug("Compiled %s -> %s", record.identifier, request.output_path)
        return Artifact(path=str(request.output_path), digest=digest_bytes(payload))

    def _encode(self, manifest: dict[str, Any]) -> bytes:
        payload = encode_payload(manifest, "json", self._registry)
        if self._encoding != "none":
            payload = encode_payload(payload, self._encoding, self._registry)
        return payload


class ManifestLinker(BaseLinker):
    """Link a command manifest from its package closure."""

    def __init__(self, registry: FormatRegistry) -> None:
        self._registry = registry

    async def link(self, request: LinkRequest) -> Path:
        record = request.record
        closure = {record.identifier: request.artifact, **request.transitive_artifacts}
        packages: list[dict[str, str]] = []

        for identifier in sorted(closure):
            artifact = closure[identifier]
            manifest = self._read(record.identifier, identifier, artifact)
            if manifest.get("identifier") != identifier:
                raise LinkFailure(
                    record.identifier,
                    [CompileDiagnostic(
                        message=f"artifact for {identifier} describes {manifest.get('identifier')}",
                        file=artifact.path,
                    )],
                )
            packages.append({"identifier": identifier, "digest": artifact.digest})

        executable = {
            "kind": EXECUTABLE_KIND,
            "entry": record.identifier,
            "name": request.output_path.name,
            "platform": str(request.platform),
            "packages": packages,
        }
        payload = encode_payload(executable, "json", self._registry)
        _write_atomic(request.output_path, payload)
        os.chmod(request.output_path, 0o755)
        logger.debug("Linked %s -> %s", record.identifier, request.output_path)
        return request.output_path

    def _read(self, command: str, identifier: str, artifact: Artifact) -> dict[str, Any]:
        path = Path(artifact.path)
        try:
            data = path.read_bytes()
        except OSError as exc:
            raise LinkFailure(
                command, [CompileDiagnostic(message=str(exc), file=str(path))]
            ) from exc
        if digest_bytes(data) != artifact.digest:
            raise LinkFailure(
                command,
                [CompileDiagnostic(message=f"artifact of {identifier} changed on disk", file=str(path))],
            )
        try:
            value = decode_payload(data, self._registry)
        except (FormatNotFound, RegistryError) as exc:
            raise LinkFailure(
                command, [CompileDiagnostic(message=str(exc), file=str(path))]
            ) from exc
        if not isinstance(value, dict):
            raise LinkFailure(
                command, [CompileDiagnostic(message="artifact is not a manifest", file=str(path))]
            )
        return value


def _error_directives(path: Path) -> list[CompileDiagnostic]:
    found: list[CompileDiagnostic] = []
    with path.open(encoding="utf-8") as fh:
        for lineno, line in enumerate(fh, start=1):
            stripped = line.strip()
            if stripped.startswith(ERROR_DIRECTIVE):
                found.append(CompileDiagnostic(
                    message=stripped[len(ERROR_DIRECTIVE):].strip() or "error",
                    file=path.name,
                    line=lineno,
                ))
    return found


def _write_atomic(path: Path, payload: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(path.name + ".tmp")
    tmp.write_bytes(payload)
    os.replace(tmp, path)
