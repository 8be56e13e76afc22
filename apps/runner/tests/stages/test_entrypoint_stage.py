"""Tests for entrypoint resolution against real temp directories."""

import json
from pathlib import Path
from unittest.mock import patch

import pytest

from bundler.detector.manifest import read_manifest
from bundler.stages.entrypoint import find_entrypoint, resolve_entrypoint
from bundler.types import EntrypointNotFoundError, StepResult


def _touch(root: Path, relative: str) -> None:
    path = root / relative
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("export {};\n", encoding="utf-8")


def _manifest(root: Path, data: dict) -> None:
    (root / "package.json").write_text(json.dumps(data), encoding="utf-8")


class TestFindEntrypoint:
    def test_conventional_path_beats_manifest(self, tmp_path: Path) -> None:
        _touch(tmp_path, "src/index.ts")
        _touch(tmp_path, "build/cli.js")
        _manifest(tmp_path, {"bin": "build/cli.js", "main": "build/cli.js"})

        assert find_entrypoint(tmp_path, read_manifest(tmp_path)) == "src/index.ts"

    def test_conventional_order(self, tmp_path: Path) -> None:
        _touch(tmp_path, "src/server.ts")
        _touch(tmp_path, "index.js")
        assert find_entrypoint(tmp_path, None) == "index.js"

    def test_bin_beats_main(self, tmp_path: Path) -> None:
        _touch(tmp_path, "build/cli.js")
        _touch(tmp_path, "build/lib.js")
        _manifest(tmp_path, {"bin": {"weather": "./build/cli.js"}, "main": "build/lib.js"})

        assert find_entrypoint(tmp_path, read_manifest(tmp_path)) == "build/cli.js"

    def test_missing_bin_falls_through_to_main(self, tmp_path: Path) -> None:
        _touch(tmp_path, "build/lib.js")
        _manifest(tmp_path, {"bin": "build/missing.js", "main": "build/lib.js"})

        assert find_entrypoint(tmp_path, read_manifest(tmp_path)) == "build/lib.js"

    def test_directories_do_not_count(self, tmp_path: Path) -> None:
        (tmp_path / "index.ts").mkdir()
        assert find_entrypoint(tmp_path, None) is None


class TestResolveEntrypoint:
    async def test_nothing_found_raises(self, build_context) -> None:
        with pytest.raises(EntrypointNotFoundError) as exc_info:
            await resolve_entrypoint(build_context())
        assert exc_info.value.stage == "find:entrypoint"

    async def test_resolves_inside_monorepo_subdirectory(self, build_context, workspace_root) -> None:
        _touch(workspace_root, "src/slack/index.ts")
        ctx = build_context(url="https://github.com/acme/servers/tree/main/src/slack")

        assert await resolve_entrypoint(ctx) == "index.ts"

    async def test_runs_build_script_when_entry_lives_in_dist(self, build_context, workspace_root) -> None:
        _manifest(workspace_root, {"scripts": {"build": "tsc"}, "bin": "dist/index.js"})
        calls = []

        async def fake(name, command, cwd, timeout, env=None):
            calls.append(command)
            _touch(cwd, "dist/index.js")
            return StepResult(name=name, command=command, exit_code=0, duration_seconds=0.1)

        with patch("bundler.stages.entrypoint.run_command", side_effect=fake):
            entrypoint = await resolve_entrypoint(build_context())

        assert calls == ["npm run build"]
        assert entrypoint == "dist/index.js"

    async def test_build_script_falls_back_to_bun(self, build_context, workspace_root, reporter) -> None:
        _manifest(workspace_root, {"scripts": {"build": "tsc"}, "main": "dist/index.js"})
        calls = []

        async def fake(name, command, cwd, timeout, env=None):
            calls.append(command)
            return StepResult(name=name, command=command, exit_code=1, duration_seconds=0.1)

        with patch("bundler.stages.entrypoint.run_command", side_effect=fake):
            with pytest.raises(EntrypointNotFoundError):
                await resolve_entrypoint(build_context())

        assert calls == ["npm run build", "bun run build"]
        assert reporter.report_failure.call_args.kwargs["stage"] == "build:script"

    async def test_broken_manifest_is_reported_and_conventions_still_apply(
        self, build_context, workspace_root, reporter
    ) -> None:
        (workspace_root / "package.json").write_text("{oops", encoding="utf-8")
        _touch(workspace_root, "index.ts")

        assert await resolve_entrypoint(build_context()) == "index.ts"
        assert reporter.report.call_args.kwargs["stage"] == "find:entrypoint:package.json"
