"""Failure signature classifier for fallback and repair decisions."""

from bundler.execution.strategy_types import FailureReasonCode, StepFailure
from bundler.types import StepResult

# Exit status the shell uses when the command itself does not exist
SHELL_COMMAND_NOT_FOUND = 127

# Emitted by tsc when the sources use explicit resource management but the
# configured target/lib predates it.
TARGET_MISMATCH_SIGNATURES = ("symbol.dispose", "symbol.asyncdispose")

_STEP_REASONS: dict[str, FailureReasonCode] = {
    "install": FailureReasonCode.INSTALL_FAILED,
    "typecheck": FailureReasonCode.TYPECHECK_FAILED,
    "build": FailureReasonCode.BUILD_FAILED,
    "bundle": FailureReasonCode.BUNDLE_FAILED,
}


def classify_step_failure(step: StepResult) -> StepFailure:
    """Classify a failed step into a normalized reason code."""
    return StepFailure(
        step_name=step.name,
        reason_code=_classify(step),
        stdout=step.stdout,
        stderr=step.stderr,
    )


def is_command_not_found(step: StepResult) -> bool:
    if step.exit_code == SHELL_COMMAND_NOT_FOUND:
        return True
    text = step.stderr.lower()
    return "command not found" in text or "not recognized as an internal" in text


def _classify(step: StepResult) -> FailureReasonCode:
    if step.is_success:
        return FailureReasonCode.UNKNOWN
    if step.timed_out:
        return FailureReasonCode.TIMEOUT
    if is_command_not_found(step):
        return FailureReasonCode.COMMAND_NOT_FOUND

    text = f"{step.stdout}\n{step.stderr}".lower()
    if _contains_any(text, TARGET_MISMATCH_SIGNATURES):
        return FailureReasonCode.TARGET_MISMATCH

    # Step names look like "install:bun" or "bundle:esbuild"
    family = step.name.split(":", 1)[0]
    return _STEP_REASONS.get(family, FailureReasonCode.UNKNOWN)


def _contains_any(text: str, needles: tuple[str, ...]) -> bool:
    return any(needle in text for needle in needles)
