"""Types for ordered fallback strategies."""

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Awaitable, Callable, Optional

from bundler.types import StepResult


class FailureReasonCode(StrEnum):
    """Normalized failure reasons used for fallback decisions."""

    UNKNOWN = "unknown"
    TIMEOUT = "timeout"
    COMMAND_NOT_FOUND = "command_not_found"
    TARGET_MISMATCH = "target_mismatch"
    INSTALL_FAILED = "install_failed"
    TYPECHECK_FAILED = "typecheck_failed"
    BUILD_FAILED = "build_failed"
    BUNDLE_FAILED = "bundle_failed"


@dataclass
class StepFailure:
    """Classified failure of a single step."""

    step_name: str
    reason_code: FailureReasonCode
    stdout: str = ""
    stderr: str = ""


StrategyRunner = Callable[[], Awaitable[StepResult]]
Precondition = Callable[[], Awaitable[bool]]


@dataclass
class Strategy:
    """One way of getting a stage done.

    `available` is checked right before `run`; an unavailable strategy is
    skipped without counting as an attempt.
    """

    name: str
    run: StrategyRunner
    available: Optional[Precondition] = None


@dataclass
class StrategyOutcome:
    """Result of walking an ordered strategy list."""

    succeeded: bool = False
    strategy: Optional[str] = None
    result: Optional[StepResult] = None
    attempts: list[StepResult] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)

    @property
    def last_failure(self) -> Optional[StepResult]:
        failures = [a for a in self.attempts if not a.is_success]
        return failures[-1] if failures else None
