"""Ordered fallback strategies and failure classification."""

from bundler.execution.failure_classifier import classify_step_failure
from bundler.execution.strategy_engine import run_strategies
from bundler.execution.strategy_types import FailureReasonCode, Strategy, StrategyOutcome

__all__ = [
    "classify_step_failure",
    "run_strategies",
    "FailureReasonCode",
    "Strategy",
    "StrategyOutcome",
]
