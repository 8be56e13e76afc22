"""Async subprocess runner for pipeline steps.

Every external tool the pipeline touches (git, npm, bun, tsc, esbuild)
goes through run_command(). It never raises for command failure: the
outcome, including a timeout, is always reported as a StepResult.

Each command runs in its own process group. When the wall-clock timeout
fires, or the awaiting task is cancelled because the overall build
budget ran out, the whole group is killed so no tool outlives its build.
"""

import asyncio
import logging
import os
import shutil
import signal
import time
from pathlib import Path
from typing import Optional

from bundler.sandbox.limits import apply_resource_limits
from bundler.types import StepResult

logger = logging.getLogger(__name__)

TIMEOUT_EXIT_CODE = -1
SPAWN_ERROR_EXIT_CODE = -2


async def run_command(
    name: str,
    command: str,
    cwd: Path,
    timeout: float,
    env: Optional[dict] = None,
) -> StepResult:
    """Execute a shell command and capture its output.

    env entries are merged over the current process environment.
    """
    logger.info("Running step '%s': %s (cwd=%s)", name, command, cwd)
    start = time.monotonic()
    merged_env = {**os.environ, **env} if env else None

    try:
        process = await asyncio.create_subprocess_shell(
            command,
            cwd=str(cwd),
            env=merged_env,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            start_new_session=True,
            preexec_fn=apply_resource_limits,
        )
    except (OSError, ValueError) as exc:
        step_result = StepResult(
            name=name,
            command=command,
            exit_code=SPAWN_ERROR_EXIT_CODE,
            duration_seconds=time.monotonic() - start,
            stderr=str(exc),
        )
        _log_outcome(step_result)
        return step_result

    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        _kill_process_group(process)
        await process.wait()
        step_result = StepResult(
            name=name,
            command=command,
            exit_code=TIMEOUT_EXIT_CODE,
            duration_seconds=time.monotonic() - start,
            stderr=f"Operation '{name}' timed out after {timeout:g} seconds",
            timed_out=True,
        )
    except asyncio.CancelledError:
        _kill_process_group(process)
        await process.wait()
        raise
    else:
        step_result = StepResult(
            name=name,
            command=command,
            exit_code=process.returncode if process.returncode is not None else 0,
            duration_seconds=time.monotonic() - start,
            stdout=_decode(stdout),
            stderr=_decode(stderr),
        )

    _log_outcome(step_result)
    return step_result


def tool_available(tool: str) -> bool:
    """Return True if tool resolves on PATH."""
    return shutil.which(tool) is not None


def _kill_process_group(process: asyncio.subprocess.Process) -> None:
    if process.returncode is not None:
        return
    try:
        os.killpg(process.pid, signal.SIGKILL)
    except (ProcessLookupError, PermissionError, AttributeError):
        try:
            process.kill()
        except ProcessLookupError:
            pass


def _decode(data: Optional[bytes]) -> str:
    if not data:
        return ""
    return data.decode("utf-8", errors="replace")


def _log_outcome(step_result: StepResult) -> None:
    status = "OK" if step_result.is_success else "FAILED"
    logger.info(
        "Step '%s' %s (exit=%d, %.1fs)",
        step_result.name, status, step_result.exit_code, step_result.duration_seconds,
    )
    if not step_result.is_success:
        if step_result.stderr:
            logger.warning(
                "Step '%s' stderr (tail):\n%s",
                step_result.name,
                truncate_output(step_result.stderr),
            )
        if step_result.stdout:
            logger.warning(
                "Step '%s' stdout (tail):\n%s",
                step_result.name,
                truncate_output(step_result.stdout),
            )


def truncate_output(text: str, max_lines: int = 60, max_chars: int = 4000) -> str:
    """Return a concise tail of command output for logs."""
    if not text:
        return ""
    lines = text.splitlines()
    tail = lines[-max_lines:]
    joined = "\n".join(tail)
    if len(joined) > max_chars:
        joined = joined[-max_chars:]
    return joined
