# tests/unit/build/test_scheduler.py — v1
"""Tests for build/scheduler.py — ordering, caching, failures, concurrency."""

from __future__ import annotations

import asyncio
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from pkgweaver.build.scheduler import BuildScheduler
from pkgweaver.cache.artifact_cache import ArtifactCache
from pkgweaver.cache.json_store import JsonCacheStore
from pkgweaver.cache.models import CacheEntry
from pkgweaver.core.errors import CacheKeyMismatch
from pkgweaver.core.models import Artifact
from pkgweaver.graph.builder import build_graph


@pytest.fixture
def cache(tmp_path) -> ArtifactCache:
    return ArtifactCache(JsonCacheStore(tmp_path / "cache"))


@pytest.fixture
def make_scheduler(cache, fake_compiler, fake_linker, tmp_path):
    def make(max_concurrency: int = 4, artifact_cache: ArtifactCache | None = None):
        return BuildScheduler(
            cache=artifact_cache or cache,
            compiler=fake_compiler,
            linker=fake_linker,
            artifact_root=tmp_path / "pkg",
            bin_dir=tmp_path / "bin",
            max_concurrency=max_concurrency,
        )
    return make


def _chain(workspace):
    workspace.add("a", imports=["b"])
    workspace.add("b", imports=["c"])
    workspace.add("c")
    return build_graph(["a"], workspace.resolver())


class TestOrdering:
    @pytest.mark.asyncio
    async def test_dependencies_compile_first(self, workspace, linux, make_scheduler):
        report = await make_scheduler().build(_chain(workspace), linux)
        assert report.success
        assert report.compile_order == ["c", "b", "a"]
        assert report.with_status("built") == ["a", "b", "c"]

    @pytest.mark.asyncio
    async def test_compiler_sees_direct_dependencies(
        self, workspace, linux, make_scheduler, fake_compiler
    ):
        await make_scheduler().build(_chain(workspace), linux)
        by_id = {r.record.identifier: r for r in fake_compiler.requests}
        assert list(by_id["a"].dependencies) == ["b"]
        assert by_id["c"].dependencies == {}

    def test_invalid_concurrency(self, cache, fake_compiler, fake_linker, tmp_path):
        with pytest.raises(ValueError):
            BuildScheduler(cache, fake_compiler, fake_linker, tmp_path, tmp_path, 0)


class TestIncremental:
    @pytest.mark.asyncio
    async def test_rebuild_is_fully_cached(self, workspace, linux, make_scheduler, fake_compiler):
        graph = _chain(workspace)
        first = await make_scheduler().build(graph, linux)
        second = await make_scheduler().build(graph, linux)
        assert second.compile_order == []
        assert second.with_status("cached") == ["a", "b", "c"]
        assert len(fake_compiler.calls) == 3
        for identifier in ("a", "b", "c"):
            assert second.results[identifier].artifact == first.results[identifier].artifact
            assert second.results[identifier].fingerprint == first.results[identifier].fingerprint

    @pytest.mark.asyncio
    async def test_leaf_change_rebuilds_dependents(self, workspace, linux, make_scheduler):
        graph = _chain(workspace)
        first = await make_scheduler().build(graph, linux)
        workspace.add("c", body="changed = true")
        second = await make_scheduler().build(graph, linux)
        assert second.compile_order == ["c", "b", "a"]
        assert first.results["a"].fingerprint != second.results["a"].fingerprint

    @pytest.mark.asyncio
    async def test_root_change_rebuilds_only_root(self, workspace, linux, make_scheduler):
        graph = _chain(workspace)
        await make_scheduler().build(graph, linux)
        workspace.add("a", imports=["b"], body="changed = true")
        second = await make_scheduler().build(graph, linux)
        assert second.compile_order == ["a"]
        assert second.with_status("cached") == ["b", "c"]

    @pytest.mark.asyncio
    async def test_missing_cached_file_recompiles(self, workspace, linux, make_scheduler):
        graph = _chain(workspace)
        first = await make_scheduler().build(graph, linux)
        Path(first.results["c"].artifact.path).unlink()
        second = await make_scheduler().build(graph, linux)
        assert second.compile_order == ["c"]

    @pytest.mark.asyncio
    async def test_disabled_cache_always_compiles(
        self, workspace, linux, make_scheduler, fake_compiler
    ):
        graph = _chain(workspace)
        await make_scheduler(artifact_cache=ArtifactCache(None)).build(graph, linux)
        await make_scheduler(artifact_cache=ArtifactCache(None)).build(graph, linux)
        assert len(fake_compiler.calls) == 6

    @pytest.mark.asyncio
    async def test_platforms_cached_separately(self, workspace, linux, make_scheduler):
        from pkgweaver.core.models import Platform

        graph = _chain(workspace)
        scheduler = make_scheduler()
        await scheduler.build(graph, linux)
        arm = await scheduler.build(graph, Platform(os="linux", arch="arm64"))
        assert arm.compile_order == ["c", "b", "a"]


class TestFailures:
    @pytest.mark.asyncio
    async def test_failure_blocks_dependents_only(
        self, workspace, linux, make_scheduler, fake_compiler
    ):
        workspace.add("app", imports=["bad", "good"])
        workspace.add("bad")
        workspace.add("good")
        workspace.add("other")
        fake_compiler.fail.add("bad")
        graph = build_graph(["app", "other"], workspace.resolver())

        report = await make_scheduler().build(graph, linux)
        assert not report.success
        assert report.results["bad"].status == "failed"
        assert report.results["app"].status == "blocked"
        assert report.results["app"].blocked_by == ["bad"]
        assert report.with_status("built") == ["good", "other"]
        assert report.failures == {"bad": ["app"]}
        assert "app" not in fake_compiler.calls

    @pytest.mark.asyncio
    async def test_blocked_names_root_failure(
        self, workspace, linux, make_scheduler, fake_compiler
    ):
        fake_compiler.fail.add("c")
        report = await make_scheduler().build(_chain(workspace), linux)
        assert report.results["a"].blocked_by == ["c"]
        assert report.failures == {"c": ["a", "b"]}

    @pytest.mark.asyncio
    async def test_diagnostics_preserved(self, workspace, linux, make_scheduler, fake_compiler):
        workspace.add("x")
        fake_compiler.fail.add("x")
        report = await make_scheduler().build(build_graph(["x"], workspace.resolver()), linux)
        [diag] = report.results["x"].error.diagnostics
        assert (diag.file, diag.line, diag.message) == ("x.src", 1, "boom")

    @pytest.mark.asyncio
    async def test_constraints_exclude_all_files(self, workspace, linux, make_scheduler):
        workspace.add("winonly", directives=["windows"])
        report = await make_scheduler().build(
            build_graph(["winonly"], workspace.resolver()), linux
        )
        result = report.results["winonly"]
        assert result.status == "failed"
        assert "build constraints exclude all files" in str(result.error)

    @pytest.mark.asyncio
    async def test_unexpected_error_is_contained(self, workspace, linux, make_scheduler, fake_compiler):
        workspace.add("x")

        async def explode(request):
            raise RuntimeError("kaboom")

        fake_compiler.compile = explode
        report = await make_scheduler().build(build_graph(["x"], workspace.resolver()), linux)
        assert report.results["x"].status == "failed"
        assert "RuntimeError: kaboom" in str(report.results["x"].error)

    @pytest.mark.asyncio
    async def test_cache_key_mismatch_propagates(
        self, workspace, linux, make_scheduler, fake_compiler
    ):
        store = AsyncMock()
        store.get.return_value = CacheEntry(
            identifier="other",
            platform=linux,
            fingerprint="f" * 64,
            artifact=Artifact(path="/pkg/other.pkg", digest="d"),
        )
        scheduler = make_scheduler(artifact_cache=ArtifactCache(store))
        with pytest.raises(CacheKeyMismatch):
            await scheduler.build(_chain(workspace), linux)
        assert fake_compiler.calls == []
        assert scheduler._inflight == {}


class TestConcurrency:
    @pytest.mark.asyncio
    async def test_bounded_parallelism(self, workspace, linux, make_scheduler, fake_compiler):
        leaves = [f"leaf{i}" for i in range(6)]
        for leaf in leaves:
            workspace.add(leaf)
        workspace.add("top", imports=leaves)
        fake_compiler.delay = 0.02

        report = await make_scheduler(max_concurrency=2).build(
            build_graph(["top"], workspace.resolver()), linux
        )
        assert report.success
        assert fake_compiler.peak == 2
        assert report.compile_order[-1] == "top"

    @pytest.mark.asyncio
    async def test_overlapping_builds_coalesce(
        self, workspace, linux, make_scheduler, fake_compiler
    ):
        graph = _chain(workspace)
        fake_compiler.delay = 0.01
        scheduler = make_scheduler()
        first, second = await asyncio.gather(
            scheduler.build(graph, linux), scheduler.build(graph, linux)
        )
        assert sorted(fake_compiler.calls) == ["a", "b", "c"]
        assert first.results["a"].artifact == second.results["a"].artifact
        assert scheduler._inflight == {}

    @pytest.mark.asyncio
    async def test_compile_log_emptied_between_builds(self, workspace, linux, make_scheduler):
        scheduler = make_scheduler()
        report = await scheduler.build(_chain(workspace), linux)
        assert report.compile_order == ["c", "b", "a"]
        assert scheduler.compile_log == []

class TestLinking:
    @pytest.mark.asyncio
    async def test_command_linked_with_closure(
        self, workspace, linux, make_scheduler, fake_linker, tmp_path
    ):
        workspace.add("cmd/server", package="main", imports=["lib"])
        workspace.add("lib", imports=["base"])
        workspace.add("base")
        report = await make_scheduler().build(
            build_graph(["cmd/server"], workspace.resolver()), linux
        )
        exe = tmp_path / "bin" / "linux_amd64" / "cmd" / "server" / "server"
        assert report.executables == {"cmd/server": exe}
        assert report.results["cmd/server"].linked
        assert exe.read_text().split() == ["base", "cmd/server", "lib"]
        [request] = fake_linker.calls
        assert list(request.transitive_artifacts) == ["base", "lib"]

    @pytest.mark.asyncio
    async def test_up_to_date_executable_not_relinked(
        self, workspace, linux, make_scheduler, fake_linker
    ):
        workspace.add("cmd/server", package="main")
        graph = build_graph(["cmd/server"], workspace.resolver())
        await make_scheduler().build(graph, linux)
        second = await make_scheduler().build(graph, linux)
        assert len(fake_linker.calls) == 1
        assert not second.results["cmd/server"].linked
        assert second.results["cmd/server"].executable is not None

    @pytest.mark.asyncio
    async def test_deleted_executable_relinked(
        self, workspace, linux, make_scheduler, fake_linker
    ):
        workspace.add("cmd/server", package="main")
        graph = build_graph(["cmd/server"], workspace.resolver())
        first = await make_scheduler().build(graph, linux)
        first.executables["cmd/server"].unlink()
        await make_scheduler().build(graph, linux)
        assert len(fake_linker.calls) == 2

    @pytest.mark.asyncio
    async def test_link_failure(self, workspace, linux, make_scheduler, fake_linker):
        workspace.add("cmd/server", package="main")
        fake_linker.fail.add("cmd/server")
        report = await make_scheduler().build(
            build_graph(["cmd/server"], workspace.resolver()), linux
        )
        assert report.results["cmd/server"].status == "failed"
        assert "undefined symbol" in str(report.results["cmd/server"].error)

    @pytest.mark.asyncio
    async def test_windows_executable_suffix(self, workspace, make_scheduler):
        from pkgweaver.core.models import Platform

        workspace.add("cmd/server", package="main")
        report = await make_scheduler().build(
            build_graph(["cmd/server"], workspace.resolver()),
            Platform(os="windows", arch="amd64"),
        )
        assert report.executables["cmd/server"].name == "server.exe"

    @pytest.mark.asyncio
    async def test_commands_with_same_last_segment(
        self, workspace, linux, make_scheduler, fake_linker
    ):
        workspace.add("x/tool", package="main")
        workspace.add("y/tool", package="main")
        graph = build_graph(["x/tool", "y/tool"], workspace.resolver())
        report = await make_scheduler().build(graph, linux)
        x_exe = report.executables["x/tool"]
        y_exe = report.executables["y/tool"]
        assert x_exe != y_exe
        assert x_exe.name == y_exe.name == "tool"
        assert x_exe.read_text().split() == ["x/tool"]
        assert y_exe.read_text().split() == ["y/tool"]

        second = await make_scheduler().build(graph, linux)
        assert not second.results["x/tool"].linked
        assert not second.results["y/tool"].linked
        assert len(fake_linker.calls) == 2
