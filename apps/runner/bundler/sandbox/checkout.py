"""Git operations against a build workspace.

Thin wrappers around the git CLI. Each returns the StepResult of the
command it ran; deciding what a failure means is left to the fetch
stage.
"""

import logging
import shlex
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse, urlunparse

from bundler.sandbox.process import run_command
from bundler.types import StepResult

logger = logging.getLogger(__name__)


def redact_repo_url(url: str) -> str:
    """Return a clone URL safe to write into logs.

    Masks embedded credentials (e.g. access tokens) while preserving
    host/path context useful for debugging.
    """
    parsed = urlparse(url)
    if parsed.username is None:
        return url

    host = parsed.hostname or ""
    if not host:
        return url

    port = f":{parsed.port}" if parsed.port else ""
    auth = f"{parsed.username}:***@" if parsed.password is not None else "***@"
    return urlunparse(parsed._replace(netloc=f"{auth}{host}{port}"))


async def clone_repo(
    clone_url: str,
    target_dir: Path,
    timeout: float,
    branch: Optional[str] = None,
) -> StepResult:
    """Clone clone_url into target_dir, optionally checking out branch."""
    branch_arg = f"--branch {shlex.quote(branch)} " if branch else ""
    command = f"git clone {branch_arg}{shlex.quote(clone_url)} {shlex.quote(str(target_dir))}"
    logger.info("Cloning %s into %s", redact_repo_url(clone_url), target_dir)
    return await run_command("git:clone", command, target_dir, timeout=timeout)


async def checkout_revision(repo_dir: Path, revision: str, timeout: float) -> StepResult:
    """Check out a specific commit, tag or branch in repo_dir."""
    logger.info("Checking out %s in %s", revision, repo_dir)
    return await run_command(
        "git:checkout",
        f"git checkout {shlex.quote(revision)}",
        repo_dir,
        timeout=timeout,
    )


async def read_head_revision(repo_dir: Path, timeout: float) -> StepResult:
    """Run `git rev-parse HEAD`; stdout holds the full commit hash on success."""
    return await run_command("git:rev-parse", "git rev-parse HEAD", repo_dir, timeout=timeout)


async def read_current_branch(repo_dir: Path, timeout: float) -> StepResult:
    return await run_command(
        "git:branch",
        "git rev-parse --abbrev-ref HEAD",
        repo_dir,
        timeout=timeout,
    )
