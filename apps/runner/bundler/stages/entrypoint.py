"""Entrypoint resolution.

Order:
  1. If package.json has a build script and bin/main point into dist/,
     run the build script so generated files exist.
  2. Probe the conventional paths below; first existing file wins.
  3. package.json `bin` (a string, or the first entry of a mapping).
  4. package.json `main`.

Failing all of these ends the build.
"""

import logging
from pathlib import Path
from typing import Optional

from bundler.detector.manifest import (
    Manifest,
    ManifestError,
    normalize_manifest_path,
    read_manifest,
)
from bundler.execution.strategy_engine import run_strategies
from bundler.execution.strategy_types import Strategy, StrategyOutcome
from bundler.sandbox.process import run_command, truncate_output
from bundler.stages.context import BuildContext
from bundler.types import EntrypointNotFoundError

logger = logging.getLogger(__name__)

CONVENTIONAL_ENTRYPOINTS: tuple[str, ...] = (
    "index.ts",
    "index.js",
    "src/index.ts",
    "src/index.js",
    "src/mcp-server.ts",
    "src/bin.ts",
    "src/server.ts",
)

BUILD_SCRIPT_COMMANDS = (
    ("npm", "npm run build"),
    ("bun", "bun run build"),
)


async def resolve_entrypoint(ctx: BuildContext) -> str:
    """Return the entrypoint path relative to the install directory."""
    install_dir = ctx.install_dir

    with ctx.perf.measure("find:entrypoint"):
        manifest = _load_manifest(ctx)
        if manifest is not None and manifest.needs_prebuild:
            logger.info("Found build script and dist/ entrypoint, running build script first...")
            await run_build_script(ctx)

        entrypoint = find_entrypoint(install_dir, manifest)

    if entrypoint is None:
        raise EntrypointNotFoundError("No valid entrypoint file found", stage="find:entrypoint")
    return entrypoint


def find_entrypoint(install_dir: Path, manifest: Optional[Manifest]) -> Optional[str]:
    """Probe conventional paths, then manifest bin, then manifest main."""
    for candidate in CONVENTIONAL_ENTRYPOINTS:
        if (install_dir / candidate).is_file():
            logger.info("Using conventional entrypoint: %s", candidate)
            return candidate

    if manifest is None:
        return None

    for field_name, declared in (("bin", manifest.first_bin), ("main", manifest.main)):
        if not declared:
            continue
        normalized = normalize_manifest_path(declared)
        if (install_dir / normalized).is_file():
            logger.info("Using entrypoint from package.json %s field: %s", field_name, normalized)
            return normalized
        logger.warning("%s file %s not found, continuing search", field_name.capitalize(), normalized)

    return None


async def run_build_script(ctx: BuildContext) -> StrategyOutcome:
    """Run the package's build script with npm, falling back to bun."""
    install_dir = ctx.install_dir
    timeout = ctx.timeouts.build_script

    def _runner(tool: str, command: str):
        return lambda: run_command(f"build:{tool}", command, install_dir, timeout=timeout)

    strategies = [
        Strategy(name=tool, run=_runner(tool, command))
        for tool, command in BUILD_SCRIPT_COMMANDS
    ]
    with ctx.perf.measure("build:script"):
        outcome = await run_strategies("build:script", strategies)

    if outcome.succeeded:
        logger.info("Build script completed successfully with %s", outcome.strategy)
    else:
        failure = outcome.last_failure
        logger.warning("Build script failed with every runner")
        ctx.reporter.report_failure(
            "Build script failed",
            stage="build:script",
            stderr=truncate_output(failure.stderr, max_lines=10) if failure else "",
        )
    return outcome


def _load_manifest(ctx: BuildContext) -> Optional[Manifest]:
    try:
        return read_manifest(ctx.install_dir)
    except ManifestError as exc:
        logger.warning("Failed to read or parse package.json: %s", exc)
        ctx.reporter.report(exc, stage="find:entrypoint:package.json", install_dir=ctx.install_dir)
        return None
