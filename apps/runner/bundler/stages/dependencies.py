"""Dependency stage: platform pre-fetch, then bun install with npm fallback.

Nothing here fails the build. Missing dependencies surface later as
compile or bundle failures.
"""

import logging
from typing import Optional

from bundler.execution.strategy_engine import run_strategies
from bundler.execution.strategy_types import Strategy, StrategyOutcome
from bundler.sandbox.process import run_command, truncate_output
from bundler.stages.context import BuildContext
from bundler.types import StepResult

logger = logging.getLogger(__name__)

PRIMARY_INSTALL = "bun install"
FALLBACK_INSTALL = "npm install"


def install_env(extra: Optional[dict] = None) -> dict:
    """Env overrides for install steps.

    Hosts commonly run with NODE_ENV=production, which makes npm skip
    devDependencies. The compiler and bundler usually live there.
    """
    env = {
        "NODE_ENV": "development",
        "NPM_CONFIG_PRODUCTION": "false",
    }
    if extra:
        env.update(extra)
    return env


def prefetch_command(os_name: str, cpu: str) -> str:
    return f"npm install --no-save --force --ignore-scripts --os={os_name} --cpu={cpu}"


async def prefetch_platform_binaries(ctx: BuildContext) -> list[StepResult]:
    """Pull optional native binaries for every platform in the matrix.

    Each platform is timed and fails on its own; one bad platform never
    stops the others.
    """
    install_dir = ctx.install_dir
    results: list[StepResult] = []
    for os_name, cpu in ctx.settings.platform_matrix:
        result = await run_command(
            f"install:{os_name}-{cpu}",
            prefetch_command(os_name, cpu),
            install_dir,
            timeout=ctx.timeouts.install,
            env=install_env({
                "npm_config_platform": os_name,
                "npm_config_arch": cpu,
                "INIT_CWD": str(install_dir),
            }),
        )
        if not result.is_success:
            logger.warning("Failed to install for %s-%s", os_name, cpu)
        results.append(result)
    return results


async def install_dependencies(ctx: BuildContext) -> StrategyOutcome:
    """Run the dependency stage and return the primary install outcome."""
    install_dir = ctx.install_dir

    if ctx.settings.prefetch_native_binaries:
        with ctx.perf.measure("install:platforms"):
            await prefetch_platform_binaries(ctx)

    strategies = [
        Strategy(
            name="bun",
            run=lambda: run_command(
                "install:bun", PRIMARY_INSTALL, install_dir,
                timeout=ctx.timeouts.install, env=install_env(),
            ),
        ),
        Strategy(
            name="npm",
            run=lambda: run_command(
                "install:npm", FALLBACK_INSTALL, install_dir,
                timeout=ctx.timeouts.install, env=install_env(),
            ),
        ),
    ]

    with ctx.perf.measure("npm:install"):
        outcome = await run_strategies("install", strategies)

    if not outcome.succeeded:
        failure = outcome.last_failure
        logger.warning("Both bun and npm install failed, continuing anyway")
        ctx.reporter.report_failure(
            "Dependency install failed",
            stage="npm:install",
            stderr=truncate_output(failure.stderr, max_lines=10) if failure else "",
        )
    return outcome
