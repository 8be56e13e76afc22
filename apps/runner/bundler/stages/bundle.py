"""Bundle stage: one self-contained file from the resolved entrypoint.

Strategies, in order:
  1. bun build            (only when bun is on PATH)
  2. esbuild via npx      (only when esbuild is already installed)
  3. npm install --no-save esbuild, then esbuild via npx

All three emit bundle.<ext> in the install directory with the same
module format and leave package imports external, so they produce
equivalent output. Exhausting the list ends the build.
"""

import logging
import shlex
from pathlib import Path

from bundler.execution.strategy_engine import run_strategies
from bundler.execution.strategy_types import Strategy
from bundler.sandbox.process import run_command, tool_available, truncate_output
from bundler.stages.context import BuildContext
from bundler.types import BuildArtifact, BundleError, OutputFormat, StepResult

logger = logging.getLogger(__name__)

ESBUILD_PROBE = "npx --no-install esbuild --version"
ESBUILD_INSTALL = "npm install --no-save esbuild"


def bundle_filename(output_format: OutputFormat) -> str:
    return f"bundle.{output_format.extension}"


def bun_command(entry: Path, output_format: OutputFormat) -> str:
    return (
        f"bun build {shlex.quote(str(entry))} "
        f"--outfile {bundle_filename(output_format)} --target node "
        f"--format {output_format.bundler_format} --packages external"
    )


def esbuild_command(entry: Path, output_format: OutputFormat) -> str:
    return (
        f"npx esbuild {shlex.quote(str(entry))} "
        f"--bundle --platform=node --outfile={bundle_filename(output_format)} "
        f"--format={output_format.bundler_format} --packages=external"
    )


async def bundle_entrypoint(ctx: BuildContext, entrypoint: str) -> BuildArtifact:
    """Bundle entrypoint and return the artifact on disk."""
    install_dir = ctx.install_dir
    output_format = ctx.request.output_format
    entry = install_dir / entrypoint
    output_path = install_dir / bundle_filename(output_format)
    timeout = ctx.timeouts.bundle

    async def bun_available() -> bool:
        return tool_available("bun")

    async def esbuild_installed() -> bool:
        probe = await run_command(
            "bundle:probe", ESBUILD_PROBE, install_dir, timeout=ctx.timeouts.tool_probe
        )
        return probe.is_success

    async def bun_build() -> StepResult:
        output_path.unlink(missing_ok=True)
        result = await run_command(
            "bundle:bun", bun_command(entry, output_format), install_dir, timeout=timeout
        )
        return _require_output(result, output_path)

    async def esbuild_build() -> StepResult:
        output_path.unlink(missing_ok=True)
        result = await run_command(
            "bundle:esbuild", esbuild_command(entry, output_format), install_dir, timeout=timeout
        )
        return _require_output(result, output_path)

    async def install_then_esbuild() -> StepResult:
        logger.info("Installing esbuild...")
        installed = await run_command(
            "bundle:install-esbuild", ESBUILD_INSTALL, install_dir, timeout=ctx.timeouts.install
        )
        if not installed.is_success:
            return installed
        output_path.unlink(missing_ok=True)
        result = await run_command(
            "bundle:esbuild-after-install",
            esbuild_command(entry, output_format),
            install_dir,
            timeout=timeout,
        )
        return _require_output(result, output_path)

    strategies = [
        Strategy(name="bun", run=bun_build, available=bun_available),
        Strategy(name="esbuild", run=esbuild_build, available=esbuild_installed),
        Strategy(name="esbuild:install", run=install_then_esbuild),
    ]

    logger.info("Attempting to bundle %s", entry)
    with ctx.perf.measure("bundle:build"):
        outcome = await run_strategies("bundle", strategies)

    if not outcome.succeeded:
        failure = outcome.last_failure
        detail = truncate_output(failure.output, max_lines=10) if failure else "no bundler available"
        raise BundleError(f"Failed to bundle: {detail}", attempts=outcome.attempts)

    size = output_path.stat().st_size
    logger.info(
        "Raw bundle size: %d bytes (%.2f MB) via %s",
        size, size / (1024 * 1024), outcome.strategy,
    )
    if size > ctx.settings.large_bundle_bytes:
        logger.warning(
            "Bundle is larger than %d bytes; publishing anyway",
            ctx.settings.large_bundle_bytes,
        )
    return BuildArtifact(path=output_path, size_bytes=size, strategy=outcome.strategy or "")


def _require_output(result: StepResult, output_path: Path) -> StepResult:
    """Treat a zero exit without an output file as a failure."""
    if result.is_success and not output_path.is_file():
        result.exit_code = 1
        result.stderr = f"{result.stderr}\nBundler exited 0 but {output_path.name} was not written".strip()
    return result
