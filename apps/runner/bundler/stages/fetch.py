"""Fetch stage: clone, optional pinned checkout, revision read-back.

Policy:
  - A missing git binary is a configuration error and ends the build.
  - Any other clone failure ends the build as a FetchError.
  - A failed pinned checkout is logged and the build continues on
    whatever branch the clone left checked out.
  - The revision actually used is always returned. If git cannot report
    it, a random 40-hex identifier stands in so downstream naming still
    works.
"""

import logging
import secrets
import shutil
from pathlib import Path

from bundler.execution.failure_classifier import is_command_not_found
from bundler.execution.strategy_engine import run_strategies
from bundler.execution.strategy_types import Strategy
from bundler.locator import clone_target
from bundler.sandbox.checkout import (
    checkout_revision,
    clone_repo,
    read_current_branch,
    read_head_revision,
    redact_repo_url,
)
from bundler.sandbox.process import tool_available, truncate_output
from bundler.stages.context import BuildContext
from bundler.types import ConfigurationError, FetchError

logger = logging.getLogger(__name__)

GIT_MISSING_MESSAGE = "Git is not installed. Please install git in your environment."


async def fetch_source(ctx: BuildContext) -> str:
    """Materialize the repository in the workspace and return the revision used."""
    if not tool_available("git"):
        raise ConfigurationError(GIT_MISSING_MESSAGE, stage="git:clone")

    with ctx.perf.measure("git:clone"):
        await _clone(ctx)

    requested = ctx.request.requested_revision
    if requested:
        with ctx.perf.measure("git:checkout"):
            await _checkout_pinned(ctx, requested)

    revision = await resolve_revision(ctx.workspace.root, ctx.timeouts.revision)
    if requested and requested != revision:
        logger.info(
            "Note: Requested commit %r resolved to actual commit %r", requested, revision
        )
    return revision


async def resolve_revision(repo_dir: Path, timeout: float) -> str:
    """Return HEAD's commit hash, or a random stand-in if git cannot say."""
    result = await read_head_revision(repo_dir, timeout=timeout)
    revision = result.stdout.strip() if result.is_success else ""
    if revision:
        logger.info("Using actual commit hash: %s", revision)
        return revision

    fallback = secrets.token_hex(20)
    logger.warning(
        "Failed to get actual commit hash (%s); using generated identifier %s",
        truncate_output(result.stderr, max_lines=5) or "empty output",
        fallback,
    )
    return fallback


async def _clone(ctx: BuildContext) -> None:
    target = ctx.workspace.root
    url = clone_target(ctx.location.clone_url)
    timeout = ctx.timeouts.clone

    async def clone_branch():
        _empty_dir(target)
        return await clone_repo(url, target, timeout=timeout, branch=ctx.location.branch)

    async def clone_default():
        _empty_dir(target)
        return await clone_repo(url, target, timeout=timeout)

    strategies = []
    if ctx.location.branch:
        strategies.append(Strategy(name=f"branch:{ctx.location.branch}", run=clone_branch))
    strategies.append(Strategy(name="default-branch", run=clone_default))

    outcome = await run_strategies("git:clone", strategies)
    if outcome.succeeded:
        return

    failure = outcome.last_failure
    if failure is not None and is_command_not_found(failure):
        raise ConfigurationError(GIT_MISSING_MESSAGE, stage="git:clone")

    detail = truncate_output(failure.stderr, max_lines=10) if failure else "no attempt ran"
    raise FetchError(
        f"git clone failed for {redact_repo_url(url)}: {detail}",
        stage="git:clone",
    )


async def _checkout_pinned(ctx: BuildContext, revision: str) -> None:
    repo_dir = ctx.workspace.root
    result = await checkout_revision(repo_dir, revision, timeout=ctx.timeouts.checkout)
    if result.is_success:
        return

    logger.warning("Failed to checkout commit %s, using default branch", revision)
    ctx.reporter.report_failure(
        f"Failed to checkout commit {revision}",
        stage="git:checkout",
        timed_out=result.timed_out,
        stderr=truncate_output(result.stderr, max_lines=10),
    )
    branch = await read_current_branch(repo_dir, timeout=ctx.timeouts.revision)
    if branch.is_success:
        logger.info("Using default branch: %s", branch.stdout.strip())


def _empty_dir(path: Path) -> None:
    """Remove leftovers of an interrupted clone; git refuses non-empty targets."""
    for child in path.iterdir():
        if child.is_dir() and not child.is_symlink():
            shutil.rmtree(child, ignore_errors=True)
        else:
            child.unlink(missing_ok=True)
