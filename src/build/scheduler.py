# src/build/scheduler.py — v1
"""Build scheduler: compile a package graph bottom-up with bounded parallelism.

Every (package, platform) pair becomes one asyncio task. A task first
awaits the tasks of its direct dependencies, holding no worker slot
while it waits, and only then acquires the semaphore that bounds the
number of concurrent compiler / linker invocations.

Per node, inside the semaphore:
  1. select the files taking part for the platform and digest them;
  2. roll the fingerprint up from those digests and the direct
     dependencies' fingerprints;
  3. serve the artifact from the cache, or compile and cache it;
  4. for commands, link unless the executable's stamp already records
     the same fingerprint.

A failing node never aborts the build. Its dependents are reported as
blocked, naming the failing package(s), and unrelated packages go on.
Tasks are shared across overlapping build() calls on one scheduler, so
a package requested twice at the same time is compiled once.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Iterable
from pathlib import Path

from pkgweaver.build.layout import artifact_path, executable_path, stamp_path
from pkgweaver.build.models import (
    BuildReport,
    BuildTarget,
    CompileRequest,
    LinkRequest,
    NodeResult,
)
from pkgweaver.build.toolchain import BaseCompiler, BaseLinker
from pkgweaver.cache.artifact_cache import ArtifactCache
from pkgweaver.cache.fingerprint import compute_fingerprint, source_digests
from pkgweaver.core.errors import (
    CacheKeyMismatch,
    CompileFailure,
    LinkFailure,
    ToolchainError,
)
from pkgweaver.core.models import Artifact, PackageRecord, Platform
from pkgweaver.graph.models import PackageGraph
from pkgweaver.graph.plan import plan_for_graph
from pkgweaver.logging.context import set_package_context, set_step
from pkgweaver.resolver.constraints import select_files

logger = logging.getLogger(__name__)

DEFAULT_MAX_CONCURRENCY = 4

_TaskKey = tuple[str, str, tuple[str, ...]]


class BuildScheduler:
    """Drive compiler and linker over a PackageGraph.

    Args:
        cache: Artifact cache (may wrap no store, in which case every
            lookup misses).
        compiler: Per-package compiler collaborator.
        linker: Command linker collaborator.
        artifact_root: Where compiled package artifacts are written.
        bin_dir: Where linked executables are written.
        max_concurrency: Max simultaneous compile/link invocations.
        toolchain_id: Folded into every fingerprint.
    """

    def __init__(
        self,
        cache: ArtifactCache,
        compiler: BaseCompiler,
        linker: BaseLinker,
        artifact_root: Path,
        bin_dir: Path,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
        toolchain_id: str = "",
    ) -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be >= 1")
        self._cache = cache
        self._compiler = compiler
        self._linker = linker
        self._artifact_root = Path(artifact_root).expanduser()
        self._bin_dir = Path(bin_dir).expanduser()
        self._max_concurrency = max_concurrency
        self._toolchain_id = toolchain_id
        self._semaphore = asyncio.Semaphore(max_concurrency)
        self._inflight: dict[_TaskKey, asyncio.Future[NodeResult]] = {}
        # (identifier, platform key) in compiler invocation order; emptied
        # once no build() call is running.
        self.compile_log: list[tuple[str, str]] = []
        self._active_builds = 0

    @property
    def max_concurrency(self) -> int:
        return self._max_concurrency

    async def build(
        self,
        graph: PackageGraph,
        platform: Platform,
        tags: Iterable[str] = (),
    ) -> BuildReport:
        """Build every package of ``graph`` for ``platform``.

        Returns:
            BuildReport with one NodeResult per package. Toolchain
            failures are recorded there, never raised.

        Raises:
            CacheKeyMismatch: The cache store served an entry for a
                different key.
        """
        start_ns = time.monotonic_ns()
        tag_key = tuple(sorted(set(tags)))
        report = BuildReport(platform=platform)
        log_mark = len(self.compile_log)
        created: list[_TaskKey] = []

        plan = plan_for_graph(graph)
        logger.info(
            "Building %d packages in %d levels for %s (concurrency=%d)",
            plan.total_packages, len(plan.stages), platform, self._max_concurrency,
        )
        self._active_builds += 1
        try:
            tasks = [
                self._task_for(i, graph, platform, tag_key, created)
                for i in plan.flat_order
            ]
            for result in await asyncio.gather(*tasks):
                report.results[result.identifier] = result
            report.compile_order = [
                identifier
                for identifier, platform_key in self.compile_log[log_mark:]
                if platform_key == platform.key and identifier in graph
            ]
        except BaseException:
            for key in created:
                task = self._inflight.pop(key, None)
                if task is not None and not task.done():
                    task.cancel()
            raise
        finally:
            for key in created:
                task = self._inflight.get(key)
                if task is not None and task.done():
                    del self._inflight[key]
            self._active_builds -= 1
            if self._active_builds == 0:
                self.compile_log.clear()

        report.duration_ms = (time.monotonic_ns() - start_ns) // 1_000_000
        summary = report.summary()
        logger.info(
            "Build complete for %s: %d built, %d cached, %d failed, %d blocked, %dms",
            platform, summary["built"], summary["cached"],
            summary["failed"], summary["blocked"], report.duration_ms,
        )
        return report

    def _task_for(
        self,
        identifier: str,
        graph: PackageGraph,
        platform: Platform,
        tags: tuple[str, ...],
        created: list[_TaskKey],
    ) -> asyncio.Future[NodeResult]:
        """Return the single task building ``identifier`` for ``platform``."""
        key = (identifier, platform.key, tags)
        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(
                self._run_node(identifier, graph, platform, tags, created)
            )
            self._inflight[key] = task
            created.append(key)
        return task

    async def _run_node(
        self,
        identifier: str,
        graph: PackageGraph,
        platform: Platform,
        tags: tuple[str, ...],
        created: list[_TaskKey],
    ) -> NodeResult:
        set_package_context(identifier, str(platform))
        deps = graph.dependencies(identifier)
        dep_results: list[NodeResult] = []
        if deps:
            set_step("wait")
            dep_results = list(await asyncio.gather(
                *(self._task_for(d, graph, platform, tags, created) for d in deps)
            ))

        blocked_by = sorted({
            root
            for r in dep_results if not r.ok
            for root in (r.blocked_by or [r.identifier])
        })
        if blocked_by:
            logger.warning("Skipping %s: blocked by %s", identifier, ", ".join(blocked_by))
            return NodeResult(identifier=identifier, status="blocked", blocked_by=blocked_by)

        async with self._semaphore:
            start_ns = time.monotonic_ns()
            try:
                result = await self._build_node(graph.record(identifier), platform, tags, dep_results)
            except CacheKeyMismatch:
                raise
            except ToolchainError as exc:
                logger.error("%s", exc)
                result = NodeResult(identifier=identifier, status="failed", error=exc)
            except Exception as exc:
                logger.exception("Unexpected error building %s", identifier)
                result = NodeResult(
                    identifier=identifier,
                    status="failed",
                    error=CompileFailure(identifier, message=f"{type(exc).__name__}: {exc}"),
                )
            result.duration_ms = (time.monotonic_ns() - start_ns) // 1_000_000
            set_step(None)
        return result

    async def _build_node(
        self,
        record: PackageRecord,
        platform: Platform,
        tags: tuple[str, ...],
        dep_results: list[NodeResult],
    ) -> NodeResult:
        identifier = record.identifier
        files = select_files(record.source_files, platform, tags)
        if not files:
            raise CompileFailure(
                identifier,
                message=f"build constraints exclude all files in {record.directory}",
            )

        set_step("fingerprint")
        try:
            sources = await asyncio.to_thread(source_digests, record.directory, files)
        except OSError as exc:
            raise CompileFailure(identifier, message=f"cannot read sources: {exc}") from exc

        direct: dict[str, Artifact] = {}
        dep_fingerprints: dict[str, str] = {}
        transitive: dict[str, Artifact] = {}
        for dep in dep_results:
            if dep.artifact is None or dep.fingerprint is None:
                raise CompileFailure(
                    identifier, message=f"dependency {dep.identifier} finished without an artifact"
                )
            direct[dep.identifier] = dep.artifact
            dep_fingerprints[dep.identifier] = dep.fingerprint
            transitive.update(dep.transitive_artifacts)
            transitive[dep.identifier] = dep.artifact

        fingerprint = compute_fingerprint(
            identifier, platform, sources, dep_fingerprints, self._toolchain_id
        )
        target = BuildTarget(record=record, platform=platform, fingerprint=fingerprint)

        entry = await self._cache.get(identifier, platform, fingerprint)
        if entry is not None and Path(entry.artifact.path).exists():
            logger.debug("Cache hit for %s (%s)", identifier, fingerprint[:12])
            artifact = entry.artifact
            target.stale = False
            status = "cached"
        else:
            if entry is not None:
                logger.warning("Cached artifact for %s missing on disk, rebuilding", identifier)
            set_step("compile")
            output = artifact_path(self._artifact_root, identifier, platform, fingerprint)
            self.compile_log.append((identifier, platform.key))
            logger.info("Compiling %s", identifier)
            artifact = await self._compiler.compile(CompileRequest(
                record=record,
                platform=platform,
                files=files,
                dependencies=direct,
                output_path=output,
                fingerprint=fingerprint,
            ))
            await self._cache.put(identifier, platform, fingerprint, artifact, dep_fingerprints)
            status = "built"

        target.artifact_path = Path(artifact.path)
        result = NodeResult(
            identifier=identifier,
            status=status,
            target=target,
            artifact=artifact,
            transitive_artifacts=transitive,
            dependency_fingerprints=dep_fingerprints,
        )
        if record.is_command:
            result.executable, result.linked = await self._link(
                record, platform, artifact, transitive, fingerprint
            )
        return result

    async def _link(
        self,
        record: PackageRecord,
        platform: Platform,
        artifact: Artifact,
        transitive: dict[str, Artifact],
        fingerprint: str,
    ) -> tuple[Path, bool]:
        """Link a command; returns (executable, whether the linker ran)."""
        name = record.executable_name or record.short_name
        output = executable_path(self._bin_dir, record.identifier, name, platform)
        if await asyncio.to_thread(_read_stamp, output) == fingerprint:
            logger.debug("Executable %s up to date", output)
            return output, False

        set_step("link")
        logger.info("Linking %s -> %s", record.identifier, output)
        executable = await self._linker.link(LinkRequest(
            record=record,
            platform=platform,
            artifact=artifact,
            transitive_artifacts=dict(sorted(transitive.items())),
            output_path=output,
        ))
        if not Path(executable).exists():
            raise LinkFailure(record.identifier, message=f"linker produced no output at {executable}")
        await asyncio.to_thread(_write_stamp, Path(executable), fingerprint)
        return Path(executable), True


def _read_stamp(executable: Path) -> str | None:
    """Fingerprint recorded for ``executable``, or None if either file is gone."""
    stamp = stamp_path(executable)
    if not (executable.exists() and stamp.exists()):
        return None
    return stamp.read_text(encoding="utf-8").strip()


def _write_stamp(executable: Path, fingerprint: str) -> None:
    stamp_path(executable).write_text(fingerprint + "\n", encoding="utf-8")
