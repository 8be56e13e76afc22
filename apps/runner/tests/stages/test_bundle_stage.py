"""Tests for the bundle stage. Tools are patched; fakes write bundle files."""

from pathlib import Path
from unittest.mock import patch

import pytest

from bundler.settings import PipelineSettings
from bundler.stages.bundle import bundle_entrypoint, bun_command, esbuild_command
from bundler.types import BundleError, OutputFormat, StepResult

BUNDLE_TEXT = "import { Server } from '@modelcontextprotocol/sdk';\nconsole.log('weather');\n"


def _step(name: str, exit_code: int = 0, stderr: str = "") -> StepResult:
    return StepResult(name=name, command=name, exit_code=exit_code, duration_seconds=0.01, stderr=stderr)


def _fake_tools(succeeding: set[str], writes_output: bool = True):
    """Fake run_command: listed step names succeed; bundlers write the output file."""
    calls: list[str] = []

    async def fake(name, command, cwd, timeout, env=None):
        calls.append(name)
        if name not in succeeding:
            return _step(name, 1, stderr=f"{name} failed")
        if writes_output and name.startswith("bundle:") and name not in (
            "bundle:probe", "bundle:install-esbuild",
        ):
            ext = "cjs" if "--format=cjs" in command or "--format cjs" in command else "mjs"
            (Path(cwd) / f"bundle.{ext}").write_text(BUNDLE_TEXT, encoding="utf-8")
        return _step(name)

    return fake, calls


@pytest.fixture
def entry(workspace_root: Path) -> str:
    (workspace_root / "src").mkdir()
    (workspace_root / "src/index.ts").write_text("console.log('weather');\n", encoding="utf-8")
    return "src/index.ts"


class TestBundleEntrypoint:
    async def test_bun_first_when_available(self, build_context, entry) -> None:
        fake, calls = _fake_tools({"bundle:bun"})
        with (
            patch("bundler.stages.bundle.tool_available", return_value=True),
            patch("bundler.stages.bundle.run_command", side_effect=fake),
        ):
            artifact = await bundle_entrypoint(build_context(), entry)

        assert calls == ["bundle:bun"]
        assert artifact.strategy == "bun"
        assert artifact.filename == "bundle.mjs"
        assert artifact.read_text() == BUNDLE_TEXT
        assert artifact.size_bytes == len(BUNDLE_TEXT.encode())

    async def test_installed_esbuild_when_bun_missing(self, build_context, entry) -> None:
        fake, calls = _fake_tools({"bundle:probe", "bundle:esbuild"})
        with (
            patch("bundler.stages.bundle.tool_available", return_value=False),
            patch("bundler.stages.bundle.run_command", side_effect=fake),
        ):
            artifact = await bundle_entrypoint(build_context(), entry)

        assert calls == ["bundle:probe", "bundle:esbuild"]
        assert artifact.strategy == "esbuild"

    async def test_install_then_retry_matches_first_attempt_output(self, build_context, entry) -> None:
        first_fake, _ = _fake_tools({"bundle:bun"})
        with (
            patch("bundler.stages.bundle.tool_available", return_value=True),
            patch("bundler.stages.bundle.run_command", side_effect=first_fake),
        ):
            direct = (await bundle_entrypoint(build_context(), entry)).read_text()

        fake, calls = _fake_tools({"bundle:install-esbuild", "bundle:esbuild-after-install"})
        with (
            patch("bundler.stages.bundle.tool_available", return_value=True),
            patch("bundler.stages.bundle.run_command", side_effect=fake),
        ):
            artifact = await bundle_entrypoint(build_context(), entry)

        assert calls == [
            "bundle:bun",
            "bundle:probe",
            "bundle:install-esbuild",
            "bundle:esbuild-after-install",
        ]
        assert artifact.strategy == "esbuild:install"
        assert artifact.read_text() == direct

    async def test_commonjs_output(self, build_context, entry) -> None:
        fake, _ = _fake_tools({"bundle:bun"})
        with (
            patch("bundler.stages.bundle.tool_available", return_value=True),
            patch("bundler.stages.bundle.run_command", side_effect=fake),
        ):
            artifact = await bundle_entrypoint(
                build_context(output_format=OutputFormat.COMMONJS), entry
            )
        assert artifact.filename == "bundle.cjs"

    async def test_exhausted_chain_raises_bundle_error(self, build_context, entry) -> None:
        fake, _ = _fake_tools(set())
        with (
            patch("bundler.stages.bundle.tool_available", return_value=True),
            patch("bundler.stages.bundle.run_command", side_effect=fake),
        ):
            with pytest.raises(BundleError) as exc_info:
                await bundle_entrypoint(build_context(), entry)

        assert [a.name for a in exc_info.value.attempts] == ["bundle:bun", "bundle:install-esbuild"]

    async def test_zero_exit_without_output_counts_as_failure(self, build_context, entry) -> None:
        fake, _ = _fake_tools({"bundle:bun", "bundle:install-esbuild"}, writes_output=False)
        with (
            patch("bundler.stages.bundle.tool_available", return_value=True),
            patch("bundler.stages.bundle.run_command", side_effect=fake),
        ):
            with pytest.raises(BundleError):
                await bundle_entrypoint(build_context(), entry)

    async def test_large_bundle_is_kept(self, build_context, entry) -> None:
        fake, _ = _fake_tools({"bundle:bun"})
        ctx = build_context(settings=PipelineSettings(prefetch_native_binaries=False, large_bundle_bytes=1))
        with (
            patch("bundler.stages.bundle.tool_available", return_value=True),
            patch("bundler.stages.bundle.run_command", side_effect=fake),
        ):
            artifact = await bundle_entrypoint(ctx, entry)
        assert artifact.size_bytes > 1


class TestCommands:
    def test_bun_command(self) -> None:
        assert bun_command(Path("/w/src/index.ts"), OutputFormat.MODULE) == (
            "bun build /w/src/index.ts --outfile bundle.mjs --target node "
            "--format esm --packages external"
        )

    def test_esbuild_command(self) -> None:
        assert esbuild_command(Path("/w/index.js"), OutputFormat.COMMONJS) == (
            "npx esbuild /w/index.js --bundle --platform=node --outfile=bundle.cjs "
            "--format=cjs --packages=external"
        )
