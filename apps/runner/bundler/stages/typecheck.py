"""Typecheck stage: best-effort tsc with a relaxed retry and a target repair.

The stage exists to leave compiled output behind for the bundler when a
project is written against a newer language level than the toolchain
defaults to. Its outcome never stops the build.

Repair: when the first failure carries the Symbol.dispose signature, the
compiler target and lib are raised in tsconfig.json for one retry. The
original file is backed up first and restored afterwards whatever the
retry does.
"""

import json
import logging
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from bundler.execution.failure_classifier import classify_step_failure
from bundler.execution.strategy_types import FailureReasonCode
from bundler.reporting import ErrorReporter
from bundler.sandbox.process import run_command
from bundler.stages.context import BuildContext
from bundler.types import StepResult

logger = logging.getLogger(__name__)

COMPILE_COMMAND = "bun run tsc"
RELAXED_COMPILE_COMMAND = "npx tsc --noEmitOnError false"

COMPILER_CONFIG = "tsconfig.json"
COMPILER_CONFIG_BACKUP = "tsconfig.json.backup"
REPAIRED_TARGET = "ES2022"
REPAIRED_LIB = ["ES2022", "DOM"]


@dataclass
class TypecheckOutcome:
    succeeded: bool = False
    attempts: list[StepResult] = field(default_factory=list)
    repair_attempted: bool = False


async def run_typecheck(ctx: BuildContext) -> TypecheckOutcome:
    install_dir = ctx.install_dir
    timeout = ctx.timeouts.compile
    outcome = TypecheckOutcome()

    with ctx.perf.measure("typescript:compile"):
        first = await run_command("typecheck", COMPILE_COMMAND, install_dir, timeout=timeout)
        outcome.attempts.append(first)
        if first.is_success:
            outcome.succeeded = True
            return outcome

        logger.warning("TypeScript compilation failed, continuing with build")
        logger.info("Retrying TypeScript compilation with --noEmitOnError=false...")
        relaxed = await run_command(
            "typecheck:relaxed", RELAXED_COMPILE_COMMAND, install_dir, timeout=timeout
        )
        outcome.attempts.append(relaxed)
        if relaxed.is_success:
            logger.info("TypeScript compilation succeeded with noEmitOnError=false")
            outcome.succeeded = True
        else:
            logger.warning(
                "TypeScript compilation still failed with noEmitOnError=false, continuing anyway"
            )

        if classify_step_failure(first).reason_code == FailureReasonCode.TARGET_MISMATCH:
            logger.info("Detected Symbol.dispose error, applying fix...")
            outcome.repair_attempted = True
            repaired = await repair_compiler_target(install_dir, timeout, ctx.reporter)
            if repaired is not None:
                outcome.attempts.append(repaired)
                outcome.succeeded = outcome.succeeded or repaired.is_success

    return outcome


async def repair_compiler_target(
    install_dir: Path,
    timeout: float,
    reporter: Optional[ErrorReporter] = None,
) -> Optional[StepResult]:
    """Recompile once with target/lib raised, then restore tsconfig.json.

    Returns the retry's StepResult, or None when the config could not be
    read or backed up.
    """
    config_path = install_dir / COMPILER_CONFIG
    backup_path = install_dir / COMPILER_CONFIG_BACKUP

    try:
        original = config_path.read_text(encoding="utf-8")
        config = json.loads(original)
        if not isinstance(config, dict):
            raise ValueError(f"{COMPILER_CONFIG} is not a JSON object")
        shutil.copyfile(config_path, backup_path)
    except (OSError, UnicodeDecodeError, ValueError) as exc:
        logger.warning("Failed to apply tsconfig fix: %s", exc)
        if reporter is not None:
            reporter.report(exc, stage="typescript:fix", install_dir=install_dir)
        return None

    try:
        options = config.get("compilerOptions")
        if not isinstance(options, dict):
            options = {}
            config["compilerOptions"] = options
        options["target"] = REPAIRED_TARGET
        options["lib"] = list(REPAIRED_LIB)
        config_path.write_text(json.dumps(config, indent=2), encoding="utf-8")

        result = await run_command(
            "typecheck:repaired", COMPILE_COMMAND, install_dir, timeout=timeout
        )
        if result.is_success:
            logger.info("Compilation succeeded with modified tsconfig")
        else:
            logger.warning("TypeScript compilation still failed after fix, continuing with build")
        return result
    finally:
        shutil.copyfile(backup_path, config_path)
        backup_path.unlink(missing_ok=True)
